"""
End-to-end extraction with a real gcc against a miniature kernel tree.
"""

import platform
import shutil
import subprocess
import textwrap
from pathlib import Path

import pytest

from kconstx.core.config.loader import CC_ENV_VAR
from kconstx.core.engine.probe import build_probe_source
from kconstx.core.persistence.const_file import read_const_file
from kconstx.core.use_cases.extract import run_extract

pytestmark = [
    pytest.mark.skipif(shutil.which("gcc") is None, reason="gcc not installed"),
    pytest.mark.skipif(
        platform.machine() not in ("x86_64", "AMD64"),
        reason="needs a gcc that targets x86 (-m64/-m32)",
    ),
]

HEADERS = {
    "include/linux/kconfig.h": """\
        #define IS_ENABLED(option) 0
    """,
    "include/uapi/linux/errno.h": """\
        #define EINVAL 22
    """,
    "include/uapi/linux/fcntl.h": """\
        #include <linux/errno.h>
        #define O_NONBLOCK 00004000
        #define AT_FDCWD -100
    """,
    "arch/x86/include/uapi/asm/unistd.h": """\
        #ifdef __x86_64__
        #define __NR_read 0
        #define ARCH_ONLY_CONST 1
        #else
        #define __NR_read 3
        #endif
    """,
}

DESCRIPTION = """\
    include <linux/fcntl.h>

    read(fd fd, buf ptr[out, array[int8]], count len[buf]) int32
    open_flags = O_NONBLOCK
    errors = EINVAL
    resource fd[int32]: AT_FDCWD
    guarded = ARCH_ONLY_CONST
"""


@pytest.fixture
def mini_kernel(tmp_path: Path) -> Path:
    """A kernel tree holding only the headers the description needs."""
    linux = tmp_path / "linux"
    for rel, content in HEADERS.items():
        path = linux / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content))
    return linux


@pytest.fixture(autouse=True)
def default_compiler(monkeypatch):
    monkeypatch.delenv(CC_ENV_VAR, raising=False)


@pytest.mark.parametrize("arch,expected", [
    ("amd64", {
        "__NR_read": 0,
        "O_NONBLOCK": 2048,
        "EINVAL": 22,
        "AT_FDCWD": (1 << 64) - 100,
        "ARCH_ONLY_CONST": 1,
    }),
    ("386", {
        "__NR_read": 3,
        "O_NONBLOCK": 2048,
        "EINVAL": 22,
        "AT_FDCWD": (1 << 64) - 100,
    }),
])
def test_extract_with_gcc(tmp_path: Path, mini_kernel: Path, arch, expected):
    desc = tmp_path / "sys" / "fs.txt"
    desc.parent.mkdir()
    desc.write_text(textwrap.dedent(DESCRIPTION))

    result = run_extract(desc, arch, mini_kernel)

    assert result.error is None
    assert read_const_file(desc.with_name(f"fs_{arch}.const")) == expected


def test_missing_header_fails(tmp_path: Path, mini_kernel: Path):
    desc = tmp_path / "bad.txt"
    desc.write_text("include <linux/nope.h>\nflags = EINVAL\n")

    result = run_extract(desc, "amd64", mini_kernel)

    assert result.error.startswith("header check failed")
    assert not desc.with_name("bad_amd64.const").exists()


def test_generated_source_compiles(tmp_path: Path):
    src = tmp_path / "unit.c"
    src.write_text(build_probe_source(["A", "B"], [], {"A": "7", "B": "(A << 4)"}))
    out = tmp_path / "unit.s"
    subprocess.run(
        ["gcc", "-x", "c", "-S", "-o", str(out), str(src)],
        check=True, capture_output=True,
    )
    asm = out.read_text()
    assert "@@kconstx@@ A $7" in asm
    assert "@@kconstx@@ B $112" in asm
