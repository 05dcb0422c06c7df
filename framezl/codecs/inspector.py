from __future__ import annotations
import logging
from typing import Callable

from ..core.handles import FrameInfoGuard
from ..engine.base import CompressionEngine, EngineFault
from ..exceptions import FrameError, ValidationError
from ..types.enums import ColumnType
from ..types.outputs import UNKNOWN, FrameInfo, MaybeInt, OutputInfo

logger = logging.getLogger(__name__)


class FrameInspector:
    """Reads frame metadata without a session and without decoding payloads.

    Only a frame that cannot be opened at all is an error. Each per-output
    field the engine fails to report comes back as ``UNKNOWN``.
    """

    __slots__ = ('_engine',)

    def __init__(self, engine: CompressionEngine):
        self._engine = engine

    def frame_info(self, frame: bytes) -> FrameInfo:
        if not isinstance(frame, (bytes, bytearray, memoryview)):
            raise ValidationError(f"frame must be bytes, got {type(frame).__name__}", field='frame')
        if len(frame) == 0:
            raise FrameError("frame must not be empty")
        frame = bytes(frame)
        try:
            guard = FrameInfoGuard.allocate(self._engine, frame)
        except EngineFault as fault:
            raise FrameError(fault.context or "failed to read frame header", error_code=fault.code) from fault

        with guard:
            try:
                format_version = self._engine.frame_format_version(guard.handle)
                num_outputs = self._engine.frame_info_output_count(guard.handle)
            except EngineFault as fault:
                raise FrameError(fault.context or "failed to read frame header", error_code=fault.code) from fault
            outputs = [self._output_info(guard, index) for index in range(num_outputs)]

        return FrameInfo(format_version=int(format_version), num_outputs=int(num_outputs), outputs=outputs)

    def _output_info(self, guard: FrameInfoGuard, index: int) -> OutputInfo:
        info = guard.handle
        output_type = self._field(lambda: self._engine.frame_output_type(info, index), index, 'type')
        if output_type is UNKNOWN:
            output_type = ColumnType.UNKNOWN
        return OutputInfo(
            type=ColumnType.from_tag(output_type),
            decompressed_size=self._field(lambda: self._engine.frame_output_size(info, index), index, 'size'),
            num_elements=self._field(lambda: self._engine.frame_output_elements(info, index), index, 'count'),
        )

    @staticmethod
    def _field(read: Callable[[], int], index: int, name: str) -> MaybeInt:
        try:
            return int(read())
        except EngineFault as fault:
            logger.debug("Output %d %s unreadable: %s", index, name, fault)
            return UNKNOWN
