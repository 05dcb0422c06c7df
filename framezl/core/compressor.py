from __future__ import annotations
import logging
from threading import Lock
from typing import Any, Optional

from .faults import engine_errors
from .handles import GraphGuard
from ..engine.base import CompressionEngine
from ..exceptions import ResourceClosedError, ValidationError
from ..types.aliases import GraphID

logger = logging.getLogger(__name__)


class Compressor:
    """Shareable handle to a compiled compression graph.

    Sessions attach a compressor by reference. Attachment only reads the
    graph, so one compressor may be attached to any number of sessions on
    different threads. Closing a compressor that is still attached defers
    the release of its graph until the last session lets go.
    """

    __slots__ = ('_engine', '_graph', '_graph_id', '_is_default', '_lock', '_attachments', '_closed')

    def __init__(
        self,
        engine: CompressionEngine,
        graph: GraphGuard,
        graph_id: Optional[GraphID] = None,
        is_default: bool = False,
    ):
        self._engine = engine
        self._graph = graph
        self._graph_id = graph_id
        self._is_default = is_default
        self._lock = Lock()
        self._attachments = 0
        self._closed = False

    @classmethod
    def default(cls, engine: CompressionEngine) -> Compressor:
        """The engine's generic graph, installed on every new compression session."""
        return cls(engine, GraphGuard.allocate_default(engine), is_default=True)

    @classmethod
    def from_description(cls, engine: CompressionEngine, description: bytes) -> Compressor:
        if not isinstance(description, (bytes, bytearray, memoryview)):
            raise ValidationError(
                f"description must be bytes, got {type(description).__name__}",
                field='description',
            )
        if len(description) == 0:
            raise ValidationError("description must not be empty", field='description')

        graph = GraphGuard.allocate(engine)
        try:
            with engine_errors("Failed to build compressor graph", operation='build_graph'):
                graph_id = engine.build_graph(graph.handle, bytes(description))
            with engine_errors("Failed to select starting graph", operation='select_starting_graph'):
                engine.select_starting_graph(graph.handle, graph_id)
        except BaseException:
            graph.release()
            raise

        logger.debug("Built compressor graph %s from %d-byte description", graph_id, len(description))
        return cls(engine, graph, graph_id)

    @property
    def engine(self) -> CompressionEngine:
        return self._engine

    @property
    def starting_graph(self) -> Optional[GraphID]:
        return self._graph_id

    @property
    def is_default(self) -> bool:
        return self._is_default

    @property
    def attachments(self) -> int:
        return self._attachments

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def released(self) -> bool:
        return self._graph.closed

    @property
    def graph_handle(self) -> Any:
        return self._graph.handle

    def _attach(self) -> None:
        with self._lock:
            if self._closed:
                raise ResourceClosedError("Compressor is closed", graph_id=self._graph_id)
            self._attachments += 1

    def _detach(self) -> None:
        with self._lock:
            self._attachments -= 1
            release = self._closed and self._attachments == 0
        if release:
            logger.debug("Releasing deferred compressor graph %s", self._graph_id)
            self._graph.release()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            pending = self._attachments
        if pending:
            logger.warning(
                "Compressor graph %s closed while attached to %d session(s); release deferred",
                self._graph_id, pending,
            )
            return
        self._graph.release()

    def __enter__(self) -> Compressor:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        label = "default" if self._is_default else f"graph={self._graph_id}"
        return f"Compressor({label}, attachments={self._attachments}, closed={self._closed})"
