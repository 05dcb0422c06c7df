"""
Codec components for framezl.

This module provides the typed-column frame codec and the frame
metadata inspector.
"""

from .frame_codec import FrameCodec
from .inspector import FrameInspector

__all__ = [
    "FrameCodec",
    "FrameInspector",
]
