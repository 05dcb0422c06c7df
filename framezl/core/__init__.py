"""
Core components of framezl.

This module contains the session and compressor lifecycle, the graph
compiler and the engine handle guards.
"""

from .compiler import GraphCompiler
from .compressor import Compressor
from .session import CompressionSession, DecompressionSession

__all__ = [
    "GraphCompiler",
    "Compressor",
    "CompressionSession",
    "DecompressionSession",
]
