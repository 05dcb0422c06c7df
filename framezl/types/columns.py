"""
Typed column definitions for framezl.

A typed column is one homogeneous unit of input handed to the engine:
fixed-width numbers, fixed-width records, or variable-length strings.
Columns validate themselves on construction, so an invalid column never
reaches an engine call.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, ClassVar, Iterable, Sequence, Tuple, Union

import numpy as np

from .aliases import ByteOrder, LENGTH_ITEM_SIZE, NUMERIC_WIDTHS
from .enums import ColumnType
from ..exceptions import ValidationError

_BYTEORDER_PREFIX = {"little": "<", "big": ">", "native": "="}


def _as_bytes(data: Any, field: str) -> bytes:
    if isinstance(data, bytes):
        return data
    if isinstance(data, (bytearray, memoryview)):
        return bytes(data)
    if isinstance(data, np.ndarray):
        return np.ascontiguousarray(data).tobytes()
    raise ValidationError(
        f"{field} must be a bytes-like object, got {type(data).__name__}",
        field=field,
    )


def _check_width(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise ValidationError(f"{field} must be an integer", field=field, value=value)
    return int(value)


def lengths_dtype(byteorder: ByteOrder) -> np.dtype:
    try:
        return np.dtype(f"{_BYTEORDER_PREFIX[byteorder]}u4")
    except KeyError:
        raise ValidationError(
            f"byteorder must be one of {sorted(_BYTEORDER_PREFIX)}, got {byteorder!r}",
            byteorder=byteorder,
        ) from None


def pack_lengths(lengths: Iterable[int], byteorder: ByteOrder = "little") -> bytes:
    """Pack string lengths as 4-byte unsigned integers."""
    values = np.asarray(list(lengths), dtype=np.int64)
    if values.size and (values.min() < 0 or values.max() > 0xFFFFFFFF):
        raise ValidationError("string lengths must fit in an unsigned 32-bit integer")
    return values.astype(lengths_dtype(byteorder)).tobytes()


@dataclass(frozen=True)
class NumericColumn:
    data: bytes
    element_width: int

    column_type: ClassVar[ColumnType] = ColumnType.NUMERIC

    def __post_init__(self):
        object.__setattr__(self, 'data', _as_bytes(self.data, 'data'))
        width = _check_width(self.element_width, 'element_width')
        object.__setattr__(self, 'element_width', width)

        if not self.data:
            raise ValidationError("input must not be empty", column_type=self.column_type.label)
        if width not in NUMERIC_WIDTHS:
            raise ValidationError("element_width must be 1, 2, 4, or 8", element_width=width)
        if len(self.data) % width != 0:
            raise ValidationError(
                "data size must be a multiple of element_width",
                byte_size=len(self.data),
                element_width=width,
            )

    @property
    def byte_size(self) -> int:
        return len(self.data)

    @property
    def num_elements(self) -> int:
        return len(self.data) // self.element_width

    @classmethod
    def from_array(cls, array: np.ndarray) -> NumericColumn:
        """Build a numeric column from a one-dimensional numpy array."""
        array = np.ascontiguousarray(array)
        if array.dtype.kind not in "biuf":
            raise ValidationError(f"unsupported numeric dtype {array.dtype}", dtype=str(array.dtype))
        return cls(array.tobytes(), array.dtype.itemsize)


@dataclass(frozen=True)
class StructColumn:
    data: bytes
    record_width: int

    column_type: ClassVar[ColumnType] = ColumnType.STRUCT

    def __post_init__(self):
        object.__setattr__(self, 'data', _as_bytes(self.data, 'data'))
        width = _check_width(self.record_width, 'record_width')
        object.__setattr__(self, 'record_width', width)

        if not self.data:
            raise ValidationError("input must not be empty", column_type=self.column_type.label)
        if width <= 0:
            raise ValidationError("record_width must be > 0", record_width=width)
        if len(self.data) % width != 0:
            raise ValidationError(
                "data size must be a multiple of record_width",
                byte_size=len(self.data),
                record_width=width,
            )

    @property
    def byte_size(self) -> int:
        return len(self.data)

    @property
    def element_width(self) -> int:
        return self.record_width

    @property
    def num_elements(self) -> int:
        return len(self.data) // self.record_width

    @classmethod
    def from_array(cls, array: np.ndarray) -> StructColumn:
        """Build a struct column from a (structured) numpy array, one record per row."""
        array = np.ascontiguousarray(array)
        width = array.dtype.itemsize
        if array.ndim > 1:
            width *= int(np.prod(array.shape[1:]))
        return cls(array.tobytes(), width)


@dataclass(frozen=True)
class StringColumn:
    data: bytes
    lengths: bytes
    byteorder: ByteOrder = "little"

    column_type: ClassVar[ColumnType] = ColumnType.STRING

    def __post_init__(self):
        object.__setattr__(self, 'data', _as_bytes(self.data, 'data'))
        dtype = lengths_dtype(self.byteorder)
        if isinstance(self.lengths, np.ndarray):
            # Arrays hold length values, whatever their integer width.
            if self.lengths.dtype.kind not in "iu":
                raise ValidationError(
                    f"lengths array must have an integer dtype, got {self.lengths.dtype}",
                    dtype=str(self.lengths.dtype),
                )
            lengths = pack_lengths(self.lengths.ravel().tolist(), self.byteorder)
        elif isinstance(self.lengths, (bytes, bytearray, memoryview)):
            lengths = _as_bytes(self.lengths, 'lengths')
        else:
            lengths = pack_lengths(self.lengths, self.byteorder)
        object.__setattr__(self, 'lengths', lengths)

        if not self.data:
            raise ValidationError("input must not be empty", column_type=self.column_type.label)
        if len(lengths) % LENGTH_ITEM_SIZE != 0:
            raise ValidationError(
                "lengths binary size must be a multiple of 4",
                lengths_size=len(lengths),
            )
        total = int(np.frombuffer(lengths, dtype=dtype).sum(dtype=np.uint64))
        if total != len(self.data):
            raise ValidationError(
                f"string lengths sum to {total} but data holds {len(self.data)} bytes",
                lengths_total=total,
                byte_size=len(self.data),
            )

    @property
    def byte_size(self) -> int:
        return len(self.data)

    @property
    def element_width(self) -> int:
        """Strings are variable width."""
        return 0

    @property
    def num_elements(self) -> int:
        return len(self.lengths) // LENGTH_ITEM_SIZE

    def length_array(self) -> np.ndarray:
        return np.frombuffer(self.lengths, dtype=lengths_dtype(self.byteorder))

    @classmethod
    def from_strings(
        cls,
        strings: Sequence[Union[str, bytes]],
        byteorder: ByteOrder = "little",
        encoding: str = "utf-8",
    ) -> StringColumn:
        encoded = [s.encode(encoding) if isinstance(s, str) else bytes(s) for s in strings]
        return cls(b"".join(encoded), pack_lengths(map(len, encoded), byteorder), byteorder)


TypedColumn = Union[NumericColumn, StructColumn, StringColumn]

_TAGS = {
    "numeric": NumericColumn,
    "struct": StructColumn,
    "string": StringColumn,
}


def coerce_column(item: Any) -> TypedColumn:
    """Accept a column object or a ``(type, data, param)`` tagged tuple."""
    if isinstance(item, (NumericColumn, StructColumn, StringColumn)):
        return item

    if not isinstance(item, tuple) or len(item) != 3:
        raise ValidationError("each input must be a typed column or a 3-tuple (type, data, param)")

    tag, data, param = item
    if isinstance(tag, ColumnType):
        tag = tag.label
    column_cls = _TAGS.get(tag) if isinstance(tag, str) else None
    if column_cls is None:
        raise ValidationError(f"unknown type tag: {tag!r}", tag=tag)
    return column_cls(data, param)


def column_shape(column: TypedColumn) -> Tuple[int, Any]:
    """Shape handed to the engine alongside a column payload."""
    if isinstance(column, NumericColumn):
        return column.element_width, column.num_elements
    if isinstance(column, StructColumn):
        return column.record_width, column.num_elements
    if isinstance(column, StringColumn):
        return column.element_width, column.length_array().astype(np.uint32)
    raise TypeError(f"not a typed column: {type(column).__name__}")
