import numpy as np
import pytest

from framezl import (
    ColumnType,
    NumericColumn,
    StringColumn,
    StructColumn,
    TypedOutput,
    UNKNOWN,
    ValidationError,
    pack_lengths,
)
from framezl.types.columns import coerce_column, column_shape
from framezl.types.outputs import OutputInfo


class TestNumericColumn:
    def test_numeric_creation(self):
        column = NumericColumn(b"\x01\x00\x02\x00\x03\x00", 2)

        assert column.column_type == ColumnType.NUMERIC
        assert column.byte_size == 6
        assert column.num_elements == 3
        assert column.element_width == 2

    def test_numeric_from_array(self):
        column = NumericColumn.from_array(np.array([1.5, 2.5], dtype=np.float32))

        assert column.element_width == 4
        assert column.num_elements == 2

    def test_numeric_accepts_bytearray(self):
        column = NumericColumn(bytearray(b"\x00" * 8), 8)
        assert isinstance(column.data, bytes)

    def test_numeric_validation(self):
        with pytest.raises(ValidationError, match="must not be empty"):
            NumericColumn(b"", 8)

        for width in (0, 3, 5, 16):
            with pytest.raises(ValidationError, match="element_width must be 1, 2, 4, or 8"):
                NumericColumn(b"\x00" * 48, width)

        with pytest.raises(ValidationError, match="multiple of element_width"):
            NumericColumn(b"\x00" * 6, 4)

        with pytest.raises(ValidationError, match="must be an integer"):
            NumericColumn(b"\x00" * 8, True)

    def test_numeric_rejects_object_dtype(self):
        with pytest.raises(ValidationError, match="unsupported numeric dtype"):
            NumericColumn.from_array(np.array(["a", "b"]))


class TestStructColumn:
    def test_struct_creation(self):
        column = StructColumn(b"\x00" * 24, 12)

        assert column.column_type == ColumnType.STRUCT
        assert column.num_elements == 2
        assert column.element_width == 12

    def test_struct_from_structured_array(self):
        dtype = np.dtype([("id", "<u4"), ("price", "<f8")])
        column = StructColumn.from_array(np.zeros(5, dtype=dtype))

        assert column.record_width == 12
        assert column.num_elements == 5

    def test_struct_validation(self):
        with pytest.raises(ValidationError, match="must not be empty"):
            StructColumn(b"", 4)

        with pytest.raises(ValidationError, match="record_width must be > 0"):
            StructColumn(b"abc", 0)

        with pytest.raises(ValidationError, match="multiple of record_width"):
            StructColumn(b"\x00" * 10, 12)


class TestStringColumn:
    def test_string_from_strings(self):
        column = StringColumn.from_strings(["ab", "", "cde"])

        assert column.column_type == ColumnType.STRING
        assert column.data == b"abcde"
        assert column.num_elements == 3
        assert column.element_width == 0
        assert column.length_array().tolist() == [2, 0, 3]

    def test_string_lengths_from_sequence(self):
        column = StringColumn(b"hello", [2, 3])
        assert column.lengths == pack_lengths([2, 3])

    @pytest.mark.parametrize("dtype", ["<i8", "<u4", ">u2", "<i4"])
    def test_string_lengths_from_integer_array(self, dtype):
        column = StringColumn(b"abcdefg", np.array([3, 4], dtype=dtype))

        assert column.num_elements == 2
        assert column.length_array().tolist() == [3, 4]
        assert column.lengths == pack_lengths([3, 4])

    def test_string_lengths_array_follows_byteorder(self):
        column = StringColumn(b"abcdefg", np.array([3, 4]), byteorder="big")
        assert column.lengths == b"\x00\x00\x00\x03\x00\x00\x00\x04"

    def test_string_lengths_array_rejects_non_integers(self):
        with pytest.raises(ValidationError, match="integer dtype"):
            StringColumn(b"abcdefg", np.array([3.0, 4.0]))
        with pytest.raises(ValidationError, match="unsigned 32-bit"):
            StringColumn(b"abcdefg", np.array([-1, 8]))

    def test_string_big_endian_lengths(self):
        column = StringColumn.from_strings(["abc", "d"], byteorder="big")

        assert column.lengths == b"\x00\x00\x00\x03\x00\x00\x00\x01"
        assert column.length_array().tolist() == [3, 1]

    def test_string_validation(self):
        with pytest.raises(ValidationError, match="must not be empty"):
            StringColumn(b"", b"")

        with pytest.raises(ValidationError, match="multiple of 4"):
            StringColumn(b"abc", b"\x03\x00\x00")

        with pytest.raises(ValidationError, match="sum to 2"):
            StringColumn(b"abc", [1, 1])

        with pytest.raises(ValidationError, match="byteorder must be one of"):
            StringColumn(b"abc", [3], byteorder="middle")

    def test_pack_lengths_range(self):
        with pytest.raises(ValidationError, match="unsigned 32-bit"):
            pack_lengths([-1])


class TestCoercion:
    def test_tagged_tuples(self):
        assert isinstance(coerce_column(("numeric", b"\x00" * 8, 8)), NumericColumn)
        assert isinstance(coerce_column(("struct", b"\x00" * 8, 4)), StructColumn)
        assert isinstance(coerce_column(("string", b"ab", pack_lengths([1, 1]))), StringColumn)
        assert isinstance(coerce_column((ColumnType.NUMERIC, b"\x00", 1)), NumericColumn)

    def test_column_passthrough(self):
        column = NumericColumn(b"\x00", 1)
        assert coerce_column(column) is column

    def test_unknown_tag(self):
        with pytest.raises(ValidationError, match="unknown type tag"):
            coerce_column(("float", b"\x00" * 8, 8))

    def test_malformed_item(self):
        with pytest.raises(ValidationError, match="3-tuple"):
            coerce_column(b"\x00" * 8)

    def test_column_shape(self):
        assert column_shape(NumericColumn(b"\x00" * 16, 8)) == (8, 2)
        assert column_shape(StructColumn(b"\x00" * 24, 12)) == (12, 2)

        width, lengths = column_shape(StringColumn.from_strings(["ab", "c"], byteorder="big"))
        assert width == 0
        assert lengths.tolist() == [2, 1]

        with pytest.raises(TypeError):
            column_shape(("numeric", b"\x00", 1))


class TestTypedOutput:
    def test_string_lengths_required_for_strings(self):
        with pytest.raises(ValueError):
            TypedOutput(ColumnType.STRING, b"abc", 0, 1)

        with pytest.raises(ValueError):
            TypedOutput(ColumnType.NUMERIC, b"\x00" * 8, 8, 1, string_lengths=b"\x08\x00\x00\x00")

    def test_numeric_as_array(self):
        output = TypedOutput(ColumnType.NUMERIC, np.arange(4, dtype="<u4").tobytes(), 4, 4)
        assert output.as_array().tolist() == [0, 1, 2, 3]

    def test_string_helpers(self):
        output = TypedOutput(ColumnType.STRING, b"abcde", 0, 3, string_lengths=pack_lengths([2, 0, 3]))

        assert output.strings() == [b"ab", b"", b"cde"]
        assert output.to_column() == StringColumn(b"abcde", pack_lengths([2, 0, 3]))

    def test_serial_has_no_column_form(self):
        output = TypedOutput(ColumnType.SERIAL, b"abc", 1, 3)
        with pytest.raises(ValidationError):
            output.to_column()

    def test_output_info_unknown_fields(self):
        info = OutputInfo(ColumnType.UNKNOWN, UNKNOWN, 7)

        assert info.to_dict() == {'type': 'unknown', 'decompressed_size': 'unknown', 'num_elements': 7}
        assert repr(UNKNOWN) == "UNKNOWN"
