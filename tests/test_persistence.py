"""
Tests for const file persistence — encoding, decoding, atomic writes.
"""

from pathlib import Path

import pytest

from kconstx.core.persistence.const_file import (
    HEADER,
    CorruptFormat,
    deserialize,
    output_path,
    read_const_file,
    serialize,
    write_const_file,
)

U64_MAX = (1 << 64) - 1


class TestSerialize:
    def test_sorted_decimal(self):
        data = serialize({"O_NONBLOCK": 2048, "EINVAL": 22, "FIONREAD": 0x541B})
        assert data == (
            b"# AUTOGENERATED FILE\n"
            b"EINVAL = 22\n"
            b"FIONREAD = 21531\n"
            b"O_NONBLOCK = 2048\n"
        )

    def test_insertion_order_irrelevant(self):
        a = {"B": 2, "A": 1, "C": 3}
        b = {"C": 3, "A": 1, "B": 2}
        assert serialize(a) == serialize(b)

    def test_empty_map(self):
        data = serialize({})
        assert data == f"{HEADER}\n".encode()
        assert deserialize(data) == {}

    def test_extremes(self):
        consts = {"ZERO": 0, "MAX": U64_MAX}
        assert deserialize(serialize(consts)) == consts

    @pytest.mark.parametrize("value", [-1, U64_MAX + 1])
    def test_out_of_range(self, value):
        with pytest.raises(ValueError):
            serialize({"BAD": value})


class TestDeserialize:
    def test_ignores_comments_and_blank_lines(self):
        data = b"# AUTOGENERATED FILE\n\n# arch: amd64\nEINVAL = 22\n"
        assert deserialize(data) == {"EINVAL": 22}

    def test_tolerates_spacing(self):
        assert deserialize(b"EINVAL=22\n  O_RDONLY   =   0  \n") == {"EINVAL": 22, "O_RDONLY": 0}

    @pytest.mark.parametrize("data,match", [
        (b"EINVAL = 0x16\n", "line 1"),
        (b"EINVAL = -1\n", "line 1"),
        (b"# ok\nEINVAL 22\n", "line 2"),
        (b"EINVAL = 18446744073709551616\n", "64 bits"),
        (b"EINVAL = 22\nEINVAL = 22\n", "duplicate"),
        (b"EINVAL = 022\n", "line 1"),
        ("EINVAL = \u0662\u0662\n".encode(), "line 1"),
        (b"\xff\xfe = 1\n", "UTF-8"),
    ])
    def test_corrupt(self, data, match):
        with pytest.raises(CorruptFormat, match=match):
            deserialize(data)


class TestFiles:
    def test_output_path(self):
        assert output_path(Path("sys/linux/fs.txt"), "amd64") == Path("sys/linux/fs_amd64.const")
        assert output_path(Path("dev_kvm.txt"), "arm64") == Path("dev_kvm_arm64.const")

    def test_write_then_read(self, tmp_path: Path):
        path = tmp_path / "fs_amd64.const"
        write_const_file({"EINVAL": 22, "AT_FDCWD": U64_MAX - 99}, path)
        assert read_const_file(path) == {"EINVAL": 22, "AT_FDCWD": U64_MAX - 99}

    def test_write_is_byte_stable(self, tmp_path: Path):
        path = tmp_path / "a.const"
        write_const_file({"B": 2, "A": 1}, path)
        first = path.read_bytes()
        write_const_file({"A": 1, "B": 2}, path)
        assert path.read_bytes() == first

    def test_write_leaves_no_temp_files(self, tmp_path: Path):
        write_const_file({"A": 1}, tmp_path / "a.const")
        assert [p.name for p in tmp_path.iterdir()] == ["a.const"]

    def test_failed_write_keeps_previous_file(self, tmp_path: Path):
        path = tmp_path / "a.const"
        write_const_file({"A": 1}, path)
        with pytest.raises(ValueError):
            write_const_file({"A": -1}, path)
        assert read_const_file(path) == {"A": 1}
        assert len(list(tmp_path.iterdir())) == 1

    def test_creates_parent_dirs(self, tmp_path: Path):
        path = tmp_path / "out" / "sys" / "a.const"
        write_const_file({"A": 1}, path)
        assert path.is_file()

    def test_read_missing(self, tmp_path: Path):
        with pytest.raises(OSError):
            read_const_file(tmp_path / "missing.const")
