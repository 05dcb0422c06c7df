from __future__ import annotations
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .types.enums import ErrorCode


class FrameZLError(Exception):
    def __init__(self, message: str, **kwargs):
        super().__init__(message)
        self.message = message
        self.context = kwargs


class ValidationError(FrameZLError, ValueError):
    pass


class EngineError(FrameZLError):
    def __init__(self, message: str, operation: Optional[str] = None,
                 error_code: Optional[ErrorCode] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation
        self.error_code = error_code


class CompilationError(FrameZLError):
    def __init__(self, message: str, diagnostic: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.diagnostic = diagnostic


class ResourceClosedError(FrameZLError):
    pass


class SessionBusyError(FrameZLError):
    pass


class FatalError(FrameZLError):
    pass


class AllocationFailure(FatalError):
    def __init__(self, message: str, handle_kind: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.handle_kind = handle_kind


class OutputOverflow(FatalError):
    def __init__(self, message: str, capacity: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.capacity = capacity


class FrameError(FatalError):
    pass
