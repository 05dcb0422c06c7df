from __future__ import annotations
from functools import lru_cache
from typing import Any, Iterable, List, Optional

from .codecs.frame_codec import FrameCodec
from .codecs.inspector import FrameInspector
from .core.compiler import GraphCompiler
from .core.compressor import Compressor
from .core.session import CompressionSession, DecompressionSession
from .engine.base import CompressionEngine
from .engine.config import EngineConfig
from .engine.reference import ReferenceEngine
from .exceptions import ValidationError
from .types.aliases import ByteOrder, ByteSize
from .types.enums import EntropyCodec
from .types.outputs import FrameInfo, TypedOutput


@lru_cache(maxsize=1)
def get_default_engine() -> ReferenceEngine:
    return ReferenceEngine()


def create_engine(**kwargs) -> ReferenceEngine:
    return ReferenceEngine(EngineConfig(**kwargs))


def create_fast_engine() -> ReferenceEngine:
    return ReferenceEngine(EngineConfig(
        entropy=EntropyCodec.LZ4,
        default_level=1,
        checksums=False
    ))


def create_dense_engine() -> ReferenceEngine:
    return ReferenceEngine(EngineConfig(
        entropy=EntropyCodec.ZSTD,
        default_level=19,
        shuffle=True
    ))


def _engine(engine: Optional[CompressionEngine]) -> CompressionEngine:
    return engine if engine is not None else get_default_engine()


def version(engine: Optional[CompressionEngine] = None) -> str:
    return _engine(engine).version()


def compress_bound(src_size: int, engine: Optional[CompressionEngine] = None) -> ByteSize:
    if isinstance(src_size, bool) or not isinstance(src_size, int) or src_size < 0:
        raise ValidationError("src_size must be a non-negative integer", value=src_size)
    return _engine(engine).compress_bound(src_size)


def create_compression_session(engine: Optional[CompressionEngine] = None) -> CompressionSession:
    return CompressionSession(_engine(engine))


def create_decompression_session(engine: Optional[CompressionEngine] = None) -> DecompressionSession:
    return DecompressionSession(_engine(engine))


def compress(data: bytes, engine: Optional[CompressionEngine] = None) -> bytes:
    """One-shot serial compression with a throwaway session."""
    with create_compression_session(engine) as session:
        return session.compress(data)


def decompress(frame: bytes, engine: Optional[CompressionEngine] = None) -> bytes:
    """One-shot serial decompression with a throwaway session."""
    with create_decompression_session(engine) as session:
        return session.decompress(frame)


def set_level(session: CompressionSession, level: int) -> None:
    session.set_level(level)


def attach_compressor(session: CompressionSession, compressor: Compressor) -> None:
    session.attach_compressor(compressor)


def compress_typed(session: CompressionSession, column: Any) -> bytes:
    return FrameCodec().encode_one(session, column)


def compress_multi_typed(session: CompressionSession, columns: Iterable[Any]) -> bytes:
    return FrameCodec().encode_multi(session, columns)


def decompress_typed(session: DecompressionSession, frame: bytes, byteorder: ByteOrder = "little") -> TypedOutput:
    return FrameCodec(byteorder).decode_one(session, frame)


def decompress_multi_typed(
    session: DecompressionSession,
    frame: bytes,
    byteorder: ByteOrder = "little"
) -> List[TypedOutput]:
    return FrameCodec(byteorder).decode_all(session, frame)


def frame_info(frame: bytes, engine: Optional[CompressionEngine] = None) -> FrameInfo:
    return FrameInspector(_engine(engine)).frame_info(frame)


def compile(source: str, engine: Optional[CompressionEngine] = None) -> bytes:
    return GraphCompiler(_engine(engine)).compile(source)


def build_compressor(description: bytes, engine: Optional[CompressionEngine] = None) -> Compressor:
    return GraphCompiler(_engine(engine)).build_compressor(description)
