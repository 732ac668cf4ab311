"""
Architecture model — what the toolchain needs to target one arch.

The registry is a fixed, read-only table built at import time. Each
entry names the compiler macros that select the arch inside kernel
headers, the directory under ``arch/`` holding its headers, the header
that carries its syscall numbers, and any extra compiler flags (word
size selection on a 64-bit host, for instance).
"""

from __future__ import annotations

from types import MappingProxyType

from pydantic import BaseModel, ConfigDict


class UnknownArchitecture(LookupError):
    """Raised when an architecture identifier is not in the registry."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"unknown arch {name!r} (known: {', '.join(names())})"
        )


class Architecture(BaseModel):
    """A target architecture. Immutable."""

    model_config = ConfigDict(frozen=True)

    name: str                               # identifier, e.g. "amd64"
    predefined_macros: tuple[str, ...]      # e.g. ("__x86_64__",)
    kernel_header_arch: str                 # arch/<this>/include
    kernel_include: str = "asm/unistd.h"    # syscall numbers
    cflags: tuple[str, ...] = ()
    clang_target: str = ""                  # --target triple for clang

    @property
    def define_flags(self) -> list[str]:
        """``-D`` flags for every predefined macro."""
        return [f"-D{macro}" for macro in self.predefined_macros]


_ARCHITECTURES = (
    Architecture(
        name="amd64",
        predefined_macros=("__x86_64__",),
        kernel_header_arch="x86",
        cflags=("-m64",),
        clang_target="x86_64-linux-gnu",
    ),
    Architecture(
        name="386",
        predefined_macros=("__i386__",),
        kernel_header_arch="x86",
        cflags=("-m32",),
        clang_target="i386-linux-gnu",
    ),
    Architecture(
        name="arm64",
        predefined_macros=("__aarch64__",),
        kernel_header_arch="arm64",
        clang_target="aarch64-linux-gnu",
    ),
    Architecture(
        name="arm",
        predefined_macros=("__arm__",),
        kernel_header_arch="arm",
        cflags=("-D__LINUX_ARM_ARCH__=6", "-m32"),
        clang_target="arm-linux-gnueabi",
    ),
    Architecture(
        name="ppc64le",
        predefined_macros=("__ppc64__", "__PPC64__", "__powerpc64__"),
        kernel_header_arch="powerpc",
        cflags=("-D__powerpc64__",),
        clang_target="powerpc64le-linux-gnu",
    ),
)

ARCHITECTURES = MappingProxyType({a.name: a for a in _ARCHITECTURES})


def lookup(name: str) -> Architecture:
    """Look up an architecture by identifier.

    Raises:
        UnknownArchitecture: If ``name`` is not registered.
    """
    arch = ARCHITECTURES.get(name)
    if arch is None:
        raise UnknownArchitecture(name)
    return arch


def names() -> list[str]:
    """All registered identifiers, sorted."""
    return sorted(ARCHITECTURES)
