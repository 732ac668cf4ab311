"""
Tests for the description parser.
"""

import textwrap

from kconstx.core.models.description import (
    Call,
    Define,
    FlagSet,
    Ident,
    Incdir,
    Include,
    IntValue,
    RangeValue,
    Resource,
    StrFlags,
    Struct,
    TypeExpr,
)
from kconstx.core.services.description_parser import parse


def _parse(text: str):
    errors = []
    desc = parse(
        textwrap.dedent(text).encode(),
        "test.txt",
        error_handler=lambda pos, msg: errors.append((pos.line, msg)),
    )
    return desc, errors


class TestDirectives:
    def test_include_and_incdir(self):
        desc, errors = _parse("""\
            include <linux/fcntl.h>
            incdir <include/uapi>
        """)
        assert errors == []
        assert isinstance(desc.nodes[0], Include)
        assert desc.nodes[0].path == "linux/fcntl.h"
        assert isinstance(desc.nodes[1], Incdir)
        assert desc.nodes[1].path == "include/uapi"

    def test_define_with_and_without_value(self):
        desc, errors = _parse("""\
            define _GNU_SOURCE
            define SOME_MACRO 1 << 3
        """)
        assert errors == []
        d1, d2 = desc.of_type(Define)
        assert (d1.name, d1.value) == ("_GNU_SOURCE", None)
        assert (d2.name, d2.value) == ("SOME_MACRO", "1 << 3")

    def test_malformed_include(self):
        desc, errors = _parse("include linux/fcntl.h\n")
        assert desc is None
        assert errors[0][0] == 1
        assert "malformed directive" in errors[0][1]

    def test_identifier_starting_with_include(self):
        desc, errors = _parse("include_flags = FOO, BAR\n")
        assert errors == []
        assert desc.nodes[0].name == "include_flags"


class TestDeclarations:
    def test_comments_and_blank_lines(self):
        desc, errors = _parse("""\
            # leading comment

            open_flags = O_RDONLY, O_WRONLY  # trailing comment
        """)
        assert errors == []
        assert len(desc.nodes) == 1

    def test_flag_set(self):
        desc, _ = _parse("open_flags = O_RDONLY, 0x10, -1\n")
        flags = desc.nodes[0]
        assert isinstance(flags, FlagSet)
        assert flags.values == [Ident("O_RDONLY"), IntValue(16), IntValue(-1)]

    def test_string_flags(self):
        desc, _ = _parse('fs_names = "ext4", "x#fs"\n')
        flags = desc.nodes[0]
        assert isinstance(flags, StrFlags)
        assert flags.values == ["ext4", "x#fs"]

    def test_resource(self):
        desc, errors = _parse("resource fd[int32]: -1, AT_FDCWD\n")
        assert errors == []
        res = desc.nodes[0]
        assert isinstance(res, Resource)
        assert res.base == TypeExpr("int32")
        assert res.values == [IntValue(-1), Ident("AT_FDCWD")]

    def test_resource_without_values(self):
        desc, _ = _parse("resource sock[fd]\n")
        assert desc.nodes[0].values == []

    def test_call(self):
        desc, errors = _parse(
            "open(file ptr[in, filename], flags flags[open_flags], mode int32) fd\n"
        )
        assert errors == []
        call = desc.nodes[0]
        assert isinstance(call, Call)
        assert call.name == "open"
        assert [a.name for a in call.args] == ["file", "flags", "mode"]
        assert call.args[0].type == TypeExpr("ptr", [Ident("in"), Ident("filename")])
        assert call.ret == TypeExpr("fd")

    def test_call_variant_and_no_return(self):
        desc, _ = _parse("ioctl$FIONREAD(fd fd, cmd const[FIONREAD], arg ptr[out, int32])\n")
        call = desc.nodes[0]
        assert call.name == "ioctl$FIONREAD"
        assert call.call_name == "ioctl"
        assert call.ret is None
        assert call.args[1].type == TypeExpr("const", [Ident("FIONREAD")])

    def test_call_without_args(self):
        desc, _ = _parse("getpid() pid\n")
        assert desc.nodes[0].args == []

    def test_range_argument(self):
        desc, _ = _parse("f(a int32[0:MAX_LEN])\n")
        assert desc.nodes[0].args[0].type.args == [RangeValue(IntValue(0), Ident("MAX_LEN"))]

    def test_struct_and_union(self):
        desc, errors = _parse("""\
            stat_buf {
                dev     int64
                pad     array[int8, STAT_PAD]
            }
            addr [
                in      sockaddr_in
                un      sockaddr_un
            ] [varlen]
        """)
        assert errors == []
        struct, union = desc.of_type(Struct)
        assert not struct.is_union
        assert [f.name for f in struct.fields] == ["dev", "pad"]
        assert struct.fields[1].type == TypeExpr(
            "array", [Ident("int8"), Ident("STAT_PAD")]
        )
        assert union.is_union
        assert union.attrs == ["varlen"]


class TestErrors:
    def test_all_errors_reported(self):
        desc, errors = _parse("""\
            ???
            open_flags = O_RDONLY
            foo(a ptr[in)
        """)
        assert desc is None
        assert [line for line, _ in errors] == [1, 3]

    def test_unterminated_struct(self):
        desc, errors = _parse("""\
            s {
                a int8
        """)
        assert desc is None
        assert "unterminated struct s" in errors[0][1]

    def test_wrong_closer(self):
        desc, errors = _parse("""\
            s {
                a int8
            ]
        """)
        assert desc is None
        assert "expected '}'" in errors[0][1]

    def test_empty_flags(self):
        desc, errors = _parse("open_flags =\n")
        assert desc is None
        assert "no values" in errors[0][1]

    def test_invalid_utf8(self):
        errors = []
        desc = parse(b"\xff\xfe", "bad.txt", lambda pos, msg: errors.append(msg))
        assert desc is None
        assert "UTF-8" in errors[0]

    def test_default_handler_logs(self, caplog):
        assert parse(b"???\n", "x.txt") is None
        assert "x.txt:1" in caplog.text

    def test_empty_file(self):
        desc, errors = _parse("")
        assert errors == []
        assert desc.nodes == []

    def test_non_ascii_identifiers_rejected(self):
        desc, errors = _parse("""\
            open_flags = O_RDONLY, Aé
            flägs = O_WRONLY
        """)
        assert desc is None
        assert [line for line, _ in errors] == [1, 2]
        assert "bad value" in errors[0][1]
