from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence

from ..types.aliases import ByteSize, FormatVersion, GraphID
from ..types.enums import CParam, ColumnType, ErrorCode
from ..types.protocols import ITypedBuffer


class EngineFault(Exception):
    """Failure reported by an engine call.

    ``context`` is the engine's own contextual message and may be ``None``,
    in which case callers fall back to an operation-specific description.
    """

    def __init__(self, code: ErrorCode = ErrorCode.GENERIC, context: Optional[str] = None):
        super().__init__(context or code.name.lower())
        self.code = code
        self.context = context


class CompressionEngine(ABC):
    """Boundary to a format-aware compression engine.

    Handle creation methods return ``None`` when the engine cannot allocate
    the handle; every other failure is raised as :class:`EngineFault`.
    """

    def __init__(self, name: str):
        self._name = name
        self._capabilities: Dict[str, Any] = {}
        self._initialized = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def capabilities(self) -> Dict[str, Any]:
        return self._capabilities.copy()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        if not self._initialized:
            self._capabilities = self.detect_capabilities()
            self._initialized = True

    def get_engine_info(self) -> Dict[str, Any]:
        return {
            'name': self._name,
            'version': self.version(),
            'capabilities': self._capabilities,
            'initialized': self._initialized,
        }

    @abstractmethod
    def detect_capabilities(self) -> Dict[str, Any]:
        pass

    @abstractmethod
    def version(self) -> str:
        pass

    @abstractmethod
    def default_format_version(self) -> FormatVersion:
        pass

    # Contexts

    @abstractmethod
    def create_cctx(self) -> Optional[Any]:
        pass

    @abstractmethod
    def free_cctx(self, ctx: Any) -> None:
        pass

    @abstractmethod
    def create_dctx(self) -> Optional[Any]:
        pass

    @abstractmethod
    def free_dctx(self, ctx: Any) -> None:
        pass

    @abstractmethod
    def set_parameter(self, ctx: Any, param: CParam, value: int) -> None:
        pass

    # Serial compression

    @abstractmethod
    def compress_bound(self, src_size: int) -> ByteSize:
        pass

    @abstractmethod
    def compress(self, ctx: Any, dst_capacity: int, src: bytes) -> bytes:
        pass

    @abstractmethod
    def decompressed_size(self, frame: bytes) -> ByteSize:
        pass

    @abstractmethod
    def decompress(self, ctx: Any, dst_capacity: int, frame: bytes) -> bytes:
        pass

    # Typed compression

    @abstractmethod
    def make_typed_ref(self, kind: ColumnType, payload: bytes, shape: Any) -> Optional[Any]:
        pass

    @abstractmethod
    def free_typed_ref(self, ref: Any) -> None:
        pass

    @abstractmethod
    def compress_typed(self, ctx: Any, dst_capacity: int, refs: Sequence[Any]) -> bytes:
        pass

    @abstractmethod
    def create_typed_buffer(self) -> Optional[ITypedBuffer]:
        pass

    @abstractmethod
    def free_typed_buffer(self, buffer: ITypedBuffer) -> None:
        pass

    @abstractmethod
    def decompress_typed(self, ctx: Any, buffers: Sequence[ITypedBuffer], frame: bytes) -> None:
        pass

    # Frame introspection

    @abstractmethod
    def frame_output_count(self, frame: bytes) -> int:
        pass

    @abstractmethod
    def open_frame_info(self, frame: bytes) -> Optional[Any]:
        pass

    @abstractmethod
    def free_frame_info(self, info: Any) -> None:
        pass

    @abstractmethod
    def frame_format_version(self, info: Any) -> FormatVersion:
        pass

    @abstractmethod
    def frame_info_output_count(self, info: Any) -> int:
        pass

    @abstractmethod
    def frame_output_type(self, info: Any, index: int) -> ColumnType:
        pass

    @abstractmethod
    def frame_output_size(self, info: Any, index: int) -> ByteSize:
        pass

    @abstractmethod
    def frame_output_elements(self, info: Any, index: int) -> int:
        pass

    # Graphs

    @abstractmethod
    def compile_description(self, source: str) -> bytes:
        pass

    @abstractmethod
    def create_graph(self) -> Optional[Any]:
        pass

    @abstractmethod
    def free_graph(self, graph: Any) -> None:
        pass

    @abstractmethod
    def create_default_graph(self) -> Optional[Any]:
        pass

    @abstractmethod
    def build_graph(self, graph: Any, description: bytes) -> GraphID:
        pass

    @abstractmethod
    def select_starting_graph(self, graph: Any, graph_id: GraphID) -> None:
        pass

    @abstractmethod
    def ref_graph(self, ctx: Any, graph: Any) -> None:
        pass
