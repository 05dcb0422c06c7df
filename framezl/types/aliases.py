"""
Type aliases for framezl.

This module defines type aliases used throughout the library
for better type safety and code clarity.
"""

from typing import NewType

# Core type aliases
ByteSize = NewType('ByteSize', int)
ElementWidth = NewType('ElementWidth', int)
CompressionLevel = NewType('CompressionLevel', int)
FormatVersion = NewType('FormatVersion', int)
GraphID = NewType('GraphID', int)

# Caller-chosen byte order for packed string lengths
ByteOrder = str

NUMERIC_WIDTHS = frozenset({1, 2, 4, 8})
LENGTH_ITEM_SIZE = 4
MIN_COMPRESSION_LEVEL = 1
MAX_COMPRESSION_LEVEL = 19
