"""
Compression and decompression sessions.

A session owns one engine context and is affine to a single caller: every
engine call takes the session's call lock without blocking, so a second call
in flight raises :class:`SessionBusyError` instead of sharing mutable engine
state.
"""

from __future__ import annotations
import logging
import sys
from contextlib import contextmanager
from threading import Lock
from typing import Any, Iterator, Optional

from .compressor import Compressor
from .faults import engine_errors
from .handles import CompressionContextGuard, DecompressionContextGuard, HandleGuard
from ..engine.base import CompressionEngine
from ..exceptions import ResourceClosedError, SessionBusyError, ValidationError
from ..types.aliases import CompressionLevel
from ..types.enums import CParam

if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self

logger = logging.getLogger(__name__)


def require_payload(data: Any, field: str = 'data') -> bytes:
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise ValidationError(f"{field} must be bytes, got {type(data).__name__}", field=field)
    if len(data) == 0:
        raise ValidationError("input must not be empty", field=field)
    return bytes(data)


class _Session:
    guard_class = HandleGuard

    def __init__(self, engine: CompressionEngine):
        self._engine = engine
        self._ctx = self.guard_class.allocate(engine)
        self._call_lock = Lock()

    @property
    def engine(self) -> CompressionEngine:
        return self._engine

    @property
    def closed(self) -> bool:
        return self._ctx.closed

    @contextmanager
    def acquire(self) -> Iterator[Any]:
        """Hold the session for one engine call and yield its context handle."""
        if not self._call_lock.acquire(blocking=False):
            raise SessionBusyError(f"{type(self).__name__} is already in use by another caller")
        try:
            if self._ctx.closed:
                raise ResourceClosedError(f"{type(self).__name__} is closed")
            yield self._ctx.handle
        finally:
            self._call_lock.release()

    def close(self) -> None:
        if not self._call_lock.acquire(blocking=False):
            raise SessionBusyError(f"Cannot close {type(self).__name__} while a call is in flight")
        try:
            if not self._ctx.closed:
                self._release()
        finally:
            self._call_lock.release()

    def _release(self) -> None:
        self._ctx.release()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"{type(self).__name__}(engine={self._engine.name}, {state})"


class CompressionSession(_Session):
    guard_class = CompressionContextGuard

    def __init__(self, engine: CompressionEngine):
        super().__init__(engine)
        self._level: Optional[CompressionLevel] = None
        self._compressor: Optional[Compressor] = None
        self._default: Optional[Compressor] = None
        try:
            self._default = Compressor.default(engine)
            with self.acquire() as ctx:
                with engine_errors("Failed to configure compression context", operation='set_parameter'):
                    engine.set_parameter(ctx, CParam.FORMAT_VERSION, engine.default_format_version())
                    engine.set_parameter(ctx, CParam.STICKY_PARAMETERS, 1)
                self._install(ctx, self._default)
        except BaseException:
            self._ctx.release()
            if self._default is not None:
                if self._compressor is not None:
                    self._compressor._detach()
                self._default.close()
            raise

    @property
    def level(self) -> Optional[CompressionLevel]:
        """Sticky compression level, or ``None`` while the engine default applies."""
        return self._level

    @property
    def compressor(self) -> Compressor:
        """The compressor whose graph is active on this session."""
        return self._compressor

    @property
    def default_compressor(self) -> Compressor:
        return self._default

    def set_level(self, level: CompressionLevel) -> None:
        if isinstance(level, bool) or not isinstance(level, int):
            raise ValidationError("compression level must be an integer", value=level)

        with self.acquire() as ctx:
            with engine_errors("Failed to set compression level", operation='set_level'):
                self._engine.set_parameter(ctx, CParam.COMPRESSION_LEVEL, level)
        self._level = level
        logger.debug("Compression level set to %d", level)

    def attach_compressor(self, compressor: Compressor) -> None:
        if not isinstance(compressor, Compressor):
            raise ValidationError(
                f"expected a Compressor, got {type(compressor).__name__}",
                field='compressor',
            )
        if compressor.engine is not self._engine:
            raise ValidationError("compressor was built on a different engine", field='compressor')

        with self.acquire() as ctx:
            self._install(ctx, compressor)

    def detach_compressor(self) -> None:
        """Revert to the session's default graph."""
        with self.acquire() as ctx:
            self._install(ctx, self._default)

    def _install(self, ctx: Any, compressor: Compressor) -> None:
        previous = self._compressor
        if compressor is previous:
            return

        compressor._attach()
        try:
            with engine_errors("Failed to attach compressor", operation='ref_graph'):
                self._engine.ref_graph(ctx, compressor.graph_handle)
        except BaseException:
            compressor._detach()
            raise

        self._compressor = compressor
        if previous is not None:
            previous._detach()
        logger.debug("Attached %r", compressor)

    def compress(self, data: bytes) -> bytes:
        """Compress serial bytes with the active graph."""
        data = require_payload(data)
        capacity = self._engine.compress_bound(len(data))
        with self.acquire() as ctx:
            with engine_errors("compression failed", operation='compress', capacity=capacity):
                frame = self._engine.compress(ctx, capacity, data)
        logger.debug("Compressed %d bytes into %d", len(data), len(frame))
        return frame

    def _release(self) -> None:
        current, self._compressor = self._compressor, None
        self._ctx.release()
        if current is not None:
            current._detach()
        self._default.close()


class DecompressionSession(_Session):
    guard_class = DecompressionContextGuard

    def decompress(self, frame: bytes) -> bytes:
        """Decompress a single-output frame back into serial bytes."""
        frame = require_payload(frame, 'frame')
        with engine_errors("failed to read decompressed size from frame", operation='decompressed_size'):
            size = self._engine.decompressed_size(frame)
        with self.acquire() as ctx:
            with engine_errors("decompression failed", operation='decompress', capacity=size):
                data = self._engine.decompress(ctx, size, frame)
        logger.debug("Decompressed %d bytes into %d", len(frame), len(data))
        return data
