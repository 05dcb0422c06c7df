"""
Scope-bound guards for engine-side handles.

Each guard owns exactly one engine handle and releases it exactly once:
explicitly via :meth:`HandleGuard.release` / ``with`` exit, or through a
``weakref.finalize`` hook when the guard is garbage collected.
"""

from __future__ import annotations
import logging
import sys
from typing import Any, Callable
from weakref import finalize

from ..engine.base import CompressionEngine, EngineFault
from ..exceptions import AllocationFailure, ResourceClosedError

if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self

logger = logging.getLogger(__name__)


class HandleGuard:
    kind = "handle"
    create_method = ""
    release_method = ""

    __slots__ = ('_engine', '_handle', '_finalizer', '__weakref__')

    def __init__(self, engine: CompressionEngine, handle: Any):
        if handle is None:
            raise AllocationFailure(f"Engine could not allocate a {self.kind}", handle_kind=self.kind)
        self._engine = engine
        self._handle = handle
        self._finalizer = finalize(
            self, self._release_handle, getattr(engine, self.release_method), handle, self.kind
        )
        logger.debug("Allocated %s on engine %s", self.kind, engine.name)

    @classmethod
    def allocate(cls, engine: CompressionEngine, *args: Any) -> Self:
        return cls(engine, getattr(engine, cls.create_method)(*args))

    @property
    def engine(self) -> CompressionEngine:
        return self._engine

    @property
    def handle(self) -> Any:
        if not self._finalizer.alive:
            raise ResourceClosedError(f"{self.kind} has been released", handle_kind=self.kind)
        return self._handle

    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    def release(self) -> None:
        self._finalizer()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "released" if self.closed else "live"
        return f"{type(self).__name__}({self._engine.name}, {state})"

    @staticmethod
    def _release_handle(free: Callable[[Any], None], handle: Any, kind: str) -> None:
        try:
            free(handle)
        except EngineFault as fault:
            logger.warning("Engine failed to release %s: %s", kind, fault)
        else:
            logger.debug("Released %s", kind)


class CompressionContextGuard(HandleGuard):
    kind = "compression context"
    create_method = "create_cctx"
    release_method = "free_cctx"
    __slots__ = ()


class DecompressionContextGuard(HandleGuard):
    kind = "decompression context"
    create_method = "create_dctx"
    release_method = "free_dctx"
    __slots__ = ()


class GraphGuard(HandleGuard):
    kind = "compressor graph"
    create_method = "create_graph"
    release_method = "free_graph"
    __slots__ = ()

    @classmethod
    def allocate_default(cls, engine: CompressionEngine) -> GraphGuard:
        return cls(engine, engine.create_default_graph())


class TypedRefGuard(HandleGuard):
    kind = "typed reference"
    create_method = "make_typed_ref"
    release_method = "free_typed_ref"
    __slots__ = ()


class TypedBufferGuard(HandleGuard):
    kind = "typed buffer"
    create_method = "create_typed_buffer"
    release_method = "free_typed_buffer"
    __slots__ = ()


class FrameInfoGuard(HandleGuard):
    kind = "frame info"
    create_method = "open_frame_info"
    release_method = "free_frame_info"
    __slots__ = ()
