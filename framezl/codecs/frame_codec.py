"""
Typed-column marshalling for framezl.

This module packs typed columns into a single compressed frame and recovers
them from it. Columns are validated before any engine resource is touched;
engine-side typed references and buffers are always released, whatever the
outcome of the call.
"""

from __future__ import annotations
import asyncio
import logging
from contextlib import ExitStack
from typing import Any, Iterable, List

import numpy as np

from ..core.faults import engine_errors
from ..core.handles import TypedBufferGuard, TypedRefGuard
from ..core.session import CompressionSession, DecompressionSession, require_payload
from ..engine.base import EngineFault
from ..exceptions import EngineError, FrameError, ValidationError
from ..types.aliases import ByteOrder
from ..types.columns import TypedColumn, coerce_column, column_shape, lengths_dtype
from ..types.enums import ColumnType
from ..types.outputs import TypedOutput
from ..types.protocols import ITypedBuffer

logger = logging.getLogger(__name__)


class FrameCodec:
    """Encodes typed columns into frames and decodes frames into typed outputs."""

    __slots__ = ('_byteorder',)

    def __init__(self, byteorder: ByteOrder = "little"):
        lengths_dtype(byteorder)
        self._byteorder = byteorder

    @property
    def byteorder(self) -> ByteOrder:
        return self._byteorder

    def encode_one(self, session: CompressionSession, column: Any) -> bytes:
        """Compress one typed column into a single-output frame."""
        self._check_session(session, CompressionSession)
        return self._encode(session, [coerce_column(column)])

    def encode_multi(self, session: CompressionSession, columns: Iterable[Any]) -> bytes:
        """Compress an ordered sequence of typed columns into one frame.

        Every column is validated before the engine sees any of them; the
        frame holds exactly one output per column, in submitted order.
        """
        self._check_session(session, CompressionSession)
        items = list(columns)
        if not items:
            raise ValidationError("input list must not be empty")
        validated = []
        for index, item in enumerate(items):
            try:
                validated.append(coerce_column(item))
            except ValidationError as exc:
                exc.context.setdefault('index', index)
                raise
        return self._encode(session, validated)

    def decode_one(self, session: DecompressionSession, frame: bytes) -> TypedOutput:
        self._check_session(session, DecompressionSession)
        frame = require_payload(frame, 'frame')
        return self._decode(session, frame, 1)[0]

    def decode_all(self, session: DecompressionSession, frame: bytes) -> List[TypedOutput]:
        """Decode every output of a frame, in the order they were encoded."""
        self._check_session(session, DecompressionSession)
        frame = require_payload(frame, 'frame')
        try:
            count = session.engine.frame_output_count(frame)
        except EngineFault as fault:
            raise FrameError(
                fault.context or "failed to get number of outputs from frame",
                error_code=fault.code,
            ) from fault
        return self._decode(session, frame, count)

    async def encode_multi_async(self, session: CompressionSession, columns: Iterable[Any]) -> bytes:
        return await asyncio.to_thread(self.encode_multi, session, columns)

    async def decode_all_async(self, session: DecompressionSession, frame: bytes) -> List[TypedOutput]:
        return await asyncio.to_thread(self.decode_all, session, frame)

    @staticmethod
    def _check_session(session: Any, expected: type) -> None:
        if not isinstance(session, expected):
            raise ValidationError(
                f"expected a {expected.__name__}, got {type(session).__name__}",
                field='session',
            )

    def _encode(self, session: CompressionSession, columns: List[TypedColumn]) -> bytes:
        engine = session.engine
        capacity = engine.compress_bound(sum(column.byte_size for column in columns))

        with session.acquire() as ctx, ExitStack() as stack:
            refs = [
                stack.enter_context(
                    TypedRefGuard.allocate(engine, column.column_type, column.data, column_shape(column))
                ).handle
                for column in columns
            ]
            fallback = "typed compression failed" if len(refs) == 1 else "multi-typed compression failed"
            with engine_errors(fallback, operation='compress_typed', capacity=capacity):
                frame = engine.compress_typed(ctx, capacity, refs)

        logger.debug("Encoded %d column(s) into a %d-byte frame", len(columns), len(frame))
        return frame

    def _decode(self, session: DecompressionSession, frame: bytes, count: int) -> List[TypedOutput]:
        engine = session.engine

        with session.acquire() as ctx, ExitStack() as stack:
            buffers = [stack.enter_context(TypedBufferGuard.allocate(engine)).handle for _ in range(count)]
            fallback = "typed decompression failed" if count == 1 else "multi-typed decompression failed"
            with engine_errors(fallback, operation='decompress_typed'):
                engine.decompress_typed(ctx, buffers, frame)
            outputs = [self._to_output(buffer) for buffer in buffers]

        logger.debug("Decoded %d output(s) from a %d-byte frame", len(outputs), len(frame))
        return outputs

    def _to_output(self, buffer: ITypedBuffer) -> TypedOutput:
        kind = ColumnType.from_tag(buffer.type)
        lengths = None
        if kind == ColumnType.STRING:
            if buffer.string_lengths is None:
                raise EngineError("engine returned a string output without lengths", operation='decompress_typed')
            lengths = np.asarray(buffer.string_lengths).astype(lengths_dtype(self._byteorder)).tobytes()

        return TypedOutput(
            type=kind,
            data=bytes(buffer.data),
            element_width=int(buffer.element_width),
            num_elements=int(buffer.num_elements),
            string_lengths=lengths,
            byteorder=self._byteorder,
        )
