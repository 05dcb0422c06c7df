from __future__ import annotations
from typing import Optional, Protocol, runtime_checkable

import numpy as np

from .aliases import ByteSize, GraphID
from .enums import ColumnType


@runtime_checkable
class ITypedBuffer(Protocol):
    @property
    def type(self) -> ColumnType:
        ...

    @property
    def byte_size(self) -> ByteSize:
        ...

    @property
    def num_elements(self) -> int:
        ...

    @property
    def element_width(self) -> int:
        ...

    @property
    def data(self) -> bytes:
        ...

    @property
    def string_lengths(self) -> Optional[np.ndarray]:
        ...


@runtime_checkable
class IGraph(Protocol):
    @property
    def starting_graph(self) -> Optional[GraphID]:
        ...

    @property
    def is_default(self) -> bool:
        ...
