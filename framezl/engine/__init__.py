"""
Compression engine backends for framezl.

This module provides the engine boundary used by sessions and codecs,
plus the zstandard/lz4 reference engine.
"""

from .base import CompressionEngine, EngineFault
from .config import EngineConfig
from .reference import ReferenceEngine

__all__ = [
    "CompressionEngine",
    "EngineFault",
    "EngineConfig",
    "ReferenceEngine",
]
