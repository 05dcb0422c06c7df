from __future__ import annotations
from contextlib import contextmanager
from typing import Iterator, Optional

from ..engine.base import EngineFault
from ..exceptions import EngineError, OutputOverflow
from ..types.enums import ErrorCode


@contextmanager
def engine_errors(fallback: str, operation: str, capacity: Optional[int] = None) -> Iterator[None]:
    """Translate engine faults raised inside the block into framezl errors.

    The engine's own context string wins over ``fallback``. A destination
    capacity fault is fatal and becomes :class:`OutputOverflow`.
    """
    try:
        yield
    except EngineFault as fault:
        message = fault.context or fallback
        if fault.code == ErrorCode.DST_CAPACITY_TOO_SMALL:
            raise OutputOverflow(message, capacity=capacity, operation=operation) from fault
        raise EngineError(message, operation=operation, error_code=fault.code) from fault
