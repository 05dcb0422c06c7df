"""
Decode results and frame metadata for framezl.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import numpy as np

from .aliases import ByteOrder, ElementWidth
from .columns import NumericColumn, StringColumn, StructColumn, TypedColumn, lengths_dtype
from .enums import ColumnType
from ..exceptions import ValidationError


class _Unknown:
    """Marker for a frame metadata field that could not be read."""

    __slots__ = ()
    _instance: Optional[_Unknown] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNKNOWN"

    def __str__(self) -> str:
        return "unknown"

    def __reduce__(self):
        return (_Unknown, ())


UNKNOWN = _Unknown()

MaybeInt = Union[int, _Unknown]


@dataclass(frozen=True)
class TypedOutput:
    type: ColumnType
    data: bytes
    element_width: ElementWidth
    num_elements: int
    string_lengths: Optional[bytes] = None
    byteorder: ByteOrder = "little"

    def __post_init__(self):
        if (self.type == ColumnType.STRING) != (self.string_lengths is not None):
            raise ValueError("string_lengths must be present exactly for string outputs")

    @property
    def byte_size(self) -> int:
        return len(self.data)

    def length_array(self) -> np.ndarray:
        if self.string_lengths is None:
            raise ValidationError("only string outputs carry lengths", type=self.type.label)
        return np.frombuffer(self.string_lengths, dtype=lengths_dtype(self.byteorder))

    def as_array(self, dtype: Any = None) -> np.ndarray:
        """View the payload as a numpy array (unsigned integers by default)."""
        if dtype is None:
            if self.type == ColumnType.NUMERIC:
                dtype = np.dtype(f"<u{self.element_width}")
            elif self.type == ColumnType.STRUCT:
                return np.frombuffer(self.data, dtype=np.uint8).reshape(-1, self.element_width)
            else:
                dtype = np.uint8
        return np.frombuffer(self.data, dtype=dtype)

    def strings(self) -> List[bytes]:
        """Split a string payload back into its individual values."""
        offsets = np.concatenate(([0], np.cumsum(self.length_array(), dtype=np.int64)))
        return [self.data[int(a):int(b)] for a, b in zip(offsets[:-1], offsets[1:])]

    def to_column(self) -> TypedColumn:
        if self.type == ColumnType.NUMERIC:
            return NumericColumn(self.data, self.element_width)
        if self.type == ColumnType.STRUCT:
            return StructColumn(self.data, self.element_width)
        if self.type == ColumnType.STRING:
            return StringColumn(self.data, self.string_lengths, self.byteorder)
        raise ValidationError(f"{self.type.label} outputs have no typed column form", type=self.type.label)


@dataclass(frozen=True)
class OutputInfo:
    type: ColumnType
    decompressed_size: MaybeInt
    num_elements: MaybeInt

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type.label,
            'decompressed_size': str(self.decompressed_size) if self.decompressed_size is UNKNOWN
            else self.decompressed_size,
            'num_elements': str(self.num_elements) if self.num_elements is UNKNOWN
            else self.num_elements,
        }


@dataclass(frozen=True)
class FrameInfo:
    format_version: int
    num_outputs: int
    outputs: List[OutputInfo] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'format_version': self.format_version,
            'num_outputs': self.num_outputs,
            'outputs': [output.to_dict() for output in self.outputs],
        }
