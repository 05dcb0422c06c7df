"""
Type definitions and protocols for framezl.

This module provides type definitions, protocols, and data structures
used throughout the library for type safety and clarity.
"""

from .aliases import (
    ByteSize,
    ElementWidth,
    CompressionLevel,
    FormatVersion,
    GraphID,
)
from .enums import (
    ColumnType,
    EntropyCodec,
    Transform,
    CParam,
    ErrorCode,
)
from .columns import (
    NumericColumn,
    StructColumn,
    StringColumn,
    TypedColumn,
    coerce_column,
    pack_lengths,
)
from .outputs import (
    UNKNOWN,
    TypedOutput,
    OutputInfo,
    FrameInfo,
)
from .protocols import (
    ITypedBuffer,
    IGraph,
)

__all__ = [
    # Type aliases
    "ByteSize",
    "ElementWidth",
    "CompressionLevel",
    "FormatVersion",
    "GraphID",

    # Enums
    "ColumnType",
    "EntropyCodec",
    "Transform",
    "CParam",
    "ErrorCode",

    # Columns
    "NumericColumn",
    "StructColumn",
    "StringColumn",
    "TypedColumn",
    "coerce_column",
    "pack_lengths",

    # Outputs
    "UNKNOWN",
    "TypedOutput",
    "OutputInfo",
    "FrameInfo",

    # Protocols
    "ITypedBuffer",
    "IGraph",
]
