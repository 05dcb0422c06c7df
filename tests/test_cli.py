import json

from framezl.cli import compile_command, compress_command, decompress_command, info_command

SOURCE = "Row = { UInt32LE UInt32LE }\n: Row[_rem / 8]\n"


class TestCommands:
    def test_compress_decompress_round_trip(self, tmp_path, capsys):
        data = b"columnar data " * 300
        src = tmp_path / "input.bin"
        frame = tmp_path / "input.fzl"
        restored = tmp_path / "restored.bin"
        src.write_bytes(data)

        assert compress_command([str(src), str(frame), "--level", "9"]) == 0
        stats = json.loads(capsys.readouterr().out)
        assert stats['input_size'] == len(data)
        assert stats['output_size'] == frame.stat().st_size

        assert decompress_command([str(frame), str(restored)]) == 0
        assert restored.read_bytes() == data

    def test_info(self, tmp_path, capsys):
        src = tmp_path / "input.bin"
        frame = tmp_path / "input.fzl"
        src.write_bytes(b"x" * 256)
        compress_command([str(src), str(frame)])
        capsys.readouterr()

        assert info_command([str(frame)]) == 0
        info = json.loads(capsys.readouterr().out)

        assert info['num_outputs'] == 1
        assert info['outputs'][0] == {'type': 'serial', 'decompressed_size': 256, 'num_elements': 256}

    def test_compile_and_compress_with_description(self, tmp_path, capsys):
        source = tmp_path / "rows.sddl"
        compiled = tmp_path / "rows.bin"
        src = tmp_path / "input.bin"
        frame = tmp_path / "input.fzl"
        restored = tmp_path / "restored.bin"
        source.write_text(SOURCE)
        data = b"".join(i.to_bytes(4, "little") * 2 for i in range(100))
        src.write_bytes(data)

        assert compile_command([str(source), "-o", str(compiled)]) == 0
        assert compiled.stat().st_size > 0
        assert compress_command([str(src), str(frame), "--description", str(compiled)]) == 0
        assert decompress_command([str(frame), str(restored)]) == 0
        assert restored.read_bytes() == data

    def test_errors_exit_nonzero(self, tmp_path, capsys):
        bogus = tmp_path / "bogus.fzl"
        bogus.write_bytes(b"not a frame")

        assert info_command([str(bogus)]) == 1
        assert "error:" in capsys.readouterr().err

        assert decompress_command([str(bogus), str(tmp_path / "out.bin")]) == 1

        src = tmp_path / "input.bin"
        src.write_bytes(b"data")
        assert compress_command([str(src), str(tmp_path / "out.fzl"), "--level", "42"]) == 1
        assert "outside" in capsys.readouterr().err

    def test_compile_error_reports_diagnostic(self, tmp_path, capsys):
        source = tmp_path / "broken.sddl"
        source.write_text("Row = { Mystery }\n: Row[1]\n")

        assert compile_command([str(source), "-o", str(tmp_path / "out.bin")]) == 1
        assert "unknown type 'Mystery'" in capsys.readouterr().err
