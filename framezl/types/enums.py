"""
Enumeration types for framezl.

This module defines all enumeration types used throughout the library
for configuration, frame metadata and engine error reporting.
"""

from __future__ import annotations
from enum import IntEnum


class ColumnType(IntEnum):
    """Type tag of one frame output."""
    SERIAL = 0
    STRUCT = 1
    NUMERIC = 2
    STRING = 3
    UNKNOWN = 255

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def from_tag(cls, tag: int) -> ColumnType:
        try:
            return cls(tag)
        except ValueError:
            return cls.UNKNOWN


class EntropyCodec(IntEnum):
    """Entropy stage used by the reference engine."""
    NONE = 0
    ZSTD = 1
    LZ4 = 2


class Transform(IntEnum):
    """Byte layout transform applied before the entropy stage."""
    NONE = 0
    SHUFFLE = 1
    RECORD_SPLIT = 2


class CParam(IntEnum):
    """Compression context parameters."""
    FORMAT_VERSION = 1
    COMPRESSION_LEVEL = 2
    STICKY_PARAMETERS = 3


class ErrorCode(IntEnum):
    """Failure categories reported by an engine."""
    GENERIC = 1
    SRC_SIZE_TOO_SMALL = 2
    DST_CAPACITY_TOO_SMALL = 3
    CORRUPTION = 4
    PARAMETER_INVALID = 5
    FORMAT_VERSION_UNSUPPORTED = 6
    GRAPH_INVALID = 7
    INPUT_TYPE_UNSUPPORTED = 8
    OUTPUT_COUNT_MISMATCH = 9
    COMPILATION_FAILED = 10
