import asyncio
import struct

import numpy as np
import pytest
from unittest.mock import Mock

from framezl import (
    ColumnType,
    CompressionSession,
    DecompressionSession,
    EngineError,
    ErrorCode,
    FrameCodec,
    FrameError,
    NumericColumn,
    OutputOverflow,
    ReferenceEngine,
    StringColumn,
    StructColumn,
    ValidationError,
    build_compressor,
    compile,
    pack_lengths,
)
from framezl.engine.base import CompressionEngine, EngineFault


def assert_matches(output, column):
    assert output.type == column.column_type
    assert output.data == column.data
    assert output.element_width == column.element_width
    assert output.num_elements == column.num_elements
    if column.column_type == ColumnType.STRING:
        assert output.string_lengths == column.lengths
    else:
        assert output.string_lengths is None


class TestSingleColumn:
    def setup_method(self):
        self.engine = ReferenceEngine()
        self.cctx = CompressionSession(self.engine)
        self.dctx = DecompressionSession(self.engine)
        self.codec = FrameCodec()

    def teardown_method(self):
        self.cctx.close()
        self.dctx.close()

    def test_numeric_round_trip(self, timestamps):
        frame = self.codec.encode_one(self.cctx, timestamps)
        output = self.codec.decode_one(self.dctx, frame)

        assert_matches(output, timestamps)
        assert output.as_array().tolist() == list(range(1000, 1100))

    @pytest.mark.parametrize("dtype", ["<u1", "<i2", "<f4", "<f8"])
    def test_numeric_widths(self, dtype):
        column = NumericColumn.from_array(np.linspace(0, 50, 64).astype(dtype))
        output = self.codec.decode_one(self.dctx, self.codec.encode_one(self.cctx, column))

        assert_matches(output, column)

    def test_struct_round_trip(self, records):
        output = self.codec.decode_one(self.dctx, self.codec.encode_one(self.cctx, records))

        assert_matches(output, records)
        assert output.as_array().shape == (40, 12)

    def test_string_round_trip(self, names):
        output = self.codec.decode_one(self.dctx, self.codec.encode_one(self.cctx, names))

        assert_matches(output, names)
        assert output.strings() == [b"alpha", b"", b"gamma", b"delta-epsilon", b"z"]

    def test_tagged_tuple_input(self):
        frame = self.codec.encode_one(self.cctx, ("string", b"abcd", pack_lengths([1, 3])))
        output = self.codec.decode_one(self.dctx, frame)

        assert output.strings() == [b"a", b"bcd"]

    def test_output_byteorder(self, names):
        frame = self.codec.encode_one(self.cctx, names)
        output = FrameCodec(byteorder="big").decode_one(self.dctx, frame)

        assert output.byteorder == "big"
        assert output.string_lengths == pack_lengths([5, 0, 5, 13, 1], "big")
        assert output.length_array().tolist() == [5, 0, 5, 13, 1]

    def test_decode_one_rejects_multi_output_frame(self, timestamps, names):
        frame = self.codec.encode_multi(self.cctx, [timestamps, names])

        with pytest.raises(EngineError) as exc_info:
            self.codec.decode_one(self.dctx, frame)
        assert exc_info.value.error_code == ErrorCode.OUTPUT_COUNT_MISMATCH

    def test_empty_frame_rejected(self):
        with pytest.raises(ValidationError, match="must not be empty"):
            self.codec.decode_one(self.dctx, b"")

    def test_wrong_session_kind(self, timestamps):
        with pytest.raises(ValidationError, match="expected a CompressionSession"):
            self.codec.encode_one(self.dctx, timestamps)

    def test_typed_input_rejected_by_record_graph(self, timestamps):
        source = "Row = { UInt64LE }\n: Row[_rem / 8]\n"
        compressor = build_compressor(compile(source, engine=self.engine), engine=self.engine)
        self.cctx.attach_compressor(compressor)

        with pytest.raises(EngineError) as exc_info:
            self.codec.encode_one(self.cctx, timestamps)
        assert exc_info.value.error_code == ErrorCode.INPUT_TYPE_UNSUPPORTED

    def test_sticky_level_across_typed_encodes(self, timestamps):
        self.cctx.set_level(12)
        first = self.codec.encode_one(self.cctx, timestamps)
        second = self.codec.encode_one(self.cctx, timestamps)

        assert first == second
        assert self.cctx.level == 12


class TestMultiColumn:
    def setup_method(self):
        self.engine = ReferenceEngine()
        self.cctx = CompressionSession(self.engine)
        self.dctx = DecompressionSession(self.engine)
        self.codec = FrameCodec()

    def teardown_method(self):
        self.cctx.close()
        self.dctx.close()

    def test_heterogeneous_round_trip(self, timestamps, records, names):
        columns = [timestamps, records, names]
        frame = self.codec.encode_multi(self.cctx, columns)
        outputs = self.codec.decode_all(self.dctx, frame)

        assert [output.type for output in outputs] == [ColumnType.NUMERIC, ColumnType.STRUCT, ColumnType.STRING]
        for output, column in zip(outputs, columns):
            assert_matches(output, column)

    def test_order_preserved(self):
        columns = [NumericColumn(bytes([i]) * 8, 8) for i in range(10)]
        outputs = self.codec.decode_all(self.dctx, self.codec.encode_multi(self.cctx, columns))

        assert [output.data for output in outputs] == [column.data for column in columns]

    def test_single_column_frame_decodes_with_decode_all(self, timestamps):
        outputs = self.codec.decode_all(self.dctx, self.codec.encode_one(self.cctx, timestamps))

        assert len(outputs) == 1
        assert_matches(outputs[0], timestamps)

    def test_empty_sequence_rejected(self):
        with pytest.raises(ValidationError, match="input list must not be empty"):
            self.codec.encode_multi(self.cctx, [])

    def test_invalid_element_aborts_whole_call(self, timestamps):
        with pytest.raises(ValidationError) as exc_info:
            self.codec.encode_multi(self.cctx, [timestamps, ("numeric", b"\x00" * 7, 8)])
        assert exc_info.value.context['index'] == 1

    def test_unreadable_output_count_is_fatal(self):
        with pytest.raises(FrameError):
            self.codec.decode_all(self.dctx, b"nope")

        with pytest.raises(FrameError):
            self.codec.decode_all(self.dctx, b"X" * 64)

    @pytest.mark.parametrize("declared", [200_000, 0xFFFFFFFF])
    def test_oversized_output_count_allocates_nothing(self, declared):
        frame = struct.pack("<4sHHI", b"FZLF", 1, 0, declared) + b"\x00" * 64
        self.engine.create_typed_buffer = Mock(wraps=self.engine.create_typed_buffer)

        with pytest.raises(FrameError) as exc_info:
            self.codec.decode_all(self.dctx, frame)
        assert exc_info.value.context['error_code'] == ErrorCode.CORRUPTION
        self.engine.create_typed_buffer.assert_not_called()

    def test_trailing_bytes_rejected(self, timestamps):
        frame = self.codec.encode_one(self.cctx, timestamps)

        with pytest.raises(EngineError) as exc_info:
            self.codec.decode_all(self.dctx, frame + b"\x00")
        assert exc_info.value.error_code == ErrorCode.CORRUPTION

    def test_async_round_trip(self, timestamps, names):
        async def run():
            frame = await self.codec.encode_multi_async(self.cctx, [timestamps, names])
            return await self.codec.decode_all_async(self.dctx, frame)

        outputs = asyncio.run(run())

        assert_matches(outputs[0], timestamps)
        assert_matches(outputs[1], names)


class TestEngineInteraction:
    def setup_method(self):
        self.engine = Mock(spec=CompressionEngine)
        self.cctx = CompressionSession(self.engine)
        self.dctx = DecompressionSession(self.engine)
        self.engine.reset_mock()
        self.codec = FrameCodec()

    @pytest.mark.parametrize("item", [
        ("numeric", b"", 8),
        ("struct", b"", 4),
        ("string", b"", b""),
        ("numeric", b"\x00" * 12, 3),
        ("numeric", b"\x00" * 12, 8),
        ("struct", b"\x00" * 10, 4),
        ("string", b"abc", b"\x03\x00\x00"),
    ])
    def test_invalid_column_never_reaches_engine(self, item):
        with pytest.raises(ValidationError):
            self.codec.encode_one(self.cctx, item)

        with pytest.raises(ValidationError):
            self.codec.encode_multi(self.cctx, [("numeric", b"\x00" * 8, 8), item])

        self.engine.compress_bound.assert_not_called()
        self.engine.make_typed_ref.assert_not_called()
        self.engine.compress_typed.assert_not_called()

    def test_empty_list_never_reaches_engine(self):
        with pytest.raises(ValidationError):
            self.codec.encode_multi(self.cctx, [])
        assert self.engine.mock_calls == []

    def test_typed_refs_released_after_encode(self):
        self.engine.compress_typed.return_value = b"frame"

        assert self.codec.encode_multi(self.cctx, [("numeric", b"\x00" * 8, 8)] * 3) == b"frame"
        assert self.engine.make_typed_ref.call_count == 3
        assert self.engine.free_typed_ref.call_count == 3

    def test_typed_refs_released_on_failure(self):
        self.engine.compress_typed.side_effect = EngineFault(ErrorCode.GENERIC)

        with pytest.raises(EngineError, match="multi-typed compression failed"):
            self.codec.encode_multi(self.cctx, [("numeric", b"\x00" * 8, 8)] * 2)
        assert self.engine.free_typed_ref.call_count == 2

    def test_capacity_overflow_is_fatal(self):
        self.engine.compress_bound.return_value = 64
        self.engine.compress_typed.side_effect = EngineFault(ErrorCode.DST_CAPACITY_TOO_SMALL)

        with pytest.raises(OutputOverflow) as exc_info:
            self.codec.encode_one(self.cctx, ("numeric", b"\x00" * 8, 8))
        assert exc_info.value.capacity == 64

    def test_capacity_uses_total_input_size(self):
        self.engine.compress_typed.return_value = b"frame"
        self.codec.encode_multi(self.cctx, [("numeric", b"\x00" * 16, 8), ("struct", b"\x00" * 24, 12)])

        self.engine.compress_bound.assert_called_once_with(40)

    def test_buffers_allocated_from_output_count(self):
        self.engine.frame_output_count.return_value = 4
        self.engine.decompress_typed.side_effect = EngineFault(ErrorCode.CORRUPTION, "bad stream")

        with pytest.raises(EngineError, match="bad stream"):
            self.codec.decode_all(self.dctx, b"frame")
        assert self.engine.create_typed_buffer.call_count == 4
        assert self.engine.free_typed_buffer.call_count == 4

    def test_output_count_failure_allocates_nothing(self):
        self.engine.frame_output_count.side_effect = EngineFault(ErrorCode.SRC_SIZE_TOO_SMALL)

        with pytest.raises(FrameError, match="failed to get number of outputs"):
            self.codec.decode_all(self.dctx, b"frame")
        self.engine.create_typed_buffer.assert_not_called()
