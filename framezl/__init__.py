"""
framezl - Typed-column frame compression

A marshalling and session-management layer over a format-aware compression
engine. Heterogeneous typed columns are packed into one compressed frame and
recovered from it in order.

Key Features:
- Reusable compression and decompression sessions with sticky levels
- Shareable compressors built from compiled record descriptions
- Numeric, struct and string columns validated before any engine call
- Frame metadata inspection without decoding
- zstandard/lz4 reference engine with byte-plane shuffling
"""

from __future__ import annotations
import logging

__version__ = "0.3.0"
__license__ = "MIT"

# Core components
from .core.session import CompressionSession, DecompressionSession
from .core.compressor import Compressor
from .core.compiler import GraphCompiler

# Codecs
from .codecs.frame_codec import FrameCodec
from .codecs.inspector import FrameInspector

# Engines
from .engine.base import CompressionEngine, EngineFault
from .engine.config import EngineConfig
from .engine.reference import ReferenceEngine

# Module-level API
from .factory import (
    attach_compressor,
    build_compressor,
    compile,
    compress,
    compress_bound,
    compress_multi_typed,
    compress_typed,
    create_compression_session,
    create_decompression_session,
    create_dense_engine,
    create_engine,
    create_fast_engine,
    decompress,
    decompress_multi_typed,
    decompress_typed,
    frame_info,
    get_default_engine,
    set_level,
    version,
)

# Types
from .types.columns import NumericColumn, StructColumn, StringColumn, TypedColumn, pack_lengths
from .types.outputs import UNKNOWN, TypedOutput, OutputInfo, FrameInfo
from .types.enums import ColumnType, EntropyCodec, ErrorCode

# Exceptions
from .exceptions import (
    FrameZLError,
    ValidationError,
    EngineError,
    CompilationError,
    ResourceClosedError,
    SessionBusyError,
    FatalError,
    AllocationFailure,
    OutputOverflow,
    FrameError,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Public API
__all__ = [
    # Core components
    "CompressionSession",
    "DecompressionSession",
    "Compressor",
    "GraphCompiler",

    # Codecs
    "FrameCodec",
    "FrameInspector",

    # Engines
    "CompressionEngine",
    "EngineFault",
    "EngineConfig",
    "ReferenceEngine",

    # Module-level API
    "attach_compressor",
    "build_compressor",
    "compile",
    "compress",
    "compress_bound",
    "compress_multi_typed",
    "compress_typed",
    "create_compression_session",
    "create_decompression_session",
    "create_dense_engine",
    "create_engine",
    "create_fast_engine",
    "decompress",
    "decompress_multi_typed",
    "decompress_typed",
    "frame_info",
    "get_default_engine",
    "set_level",
    "version",

    # Types
    "NumericColumn",
    "StructColumn",
    "StringColumn",
    "TypedColumn",
    "pack_lengths",
    "UNKNOWN",
    "TypedOutput",
    "OutputInfo",
    "FrameInfo",
    "ColumnType",
    "EntropyCodec",
    "ErrorCode",

    # Exceptions
    "FrameZLError",
    "ValidationError",
    "EngineError",
    "CompilationError",
    "ResourceClosedError",
    "SessionBusyError",
    "FatalError",
    "AllocationFailure",
    "OutputOverflow",
    "FrameError",
]

# Version info
VERSION_INFO = tuple(map(int, __version__.split('.')))

def get_version() -> str:
    """Get the current version string."""
    return __version__

def get_version_info() -> tuple[int, ...]:
    """Get version as tuple of integers."""
    return VERSION_INFO
