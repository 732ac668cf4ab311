"""
Description AST — the parsed form of a syscall description file.

Nodes are kept in file order inside ``Description.nodes``. Every node
remembers where it came from so later stages can point at the line
that caused a problem.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


@dataclass(frozen=True)
class Pos:
    """Source position."""

    file: str
    line: int

    def __str__(self) -> str:
        return f"{self.file}:{self.line}"


@dataclass
class IntValue:
    value: int


@dataclass
class Ident:
    name: str


@dataclass
class RangeValue:
    """``lo:hi`` inside a type argument list, e.g. ``int32[0:MAX]``."""

    lo: Value
    hi: Value


@dataclass
class TypeExpr:
    """A type reference such as ``ptr[in, array[int8, PAD]]``."""

    ident: str
    args: list[Arg] = field(default_factory=list)


Value = Union[IntValue, Ident]
Arg = Union[TypeExpr, IntValue, Ident, RangeValue]


@dataclass
class Include:
    pos: Pos
    path: str


@dataclass
class Incdir:
    pos: Pos
    path: str


@dataclass
class Define:
    pos: Pos
    name: str
    value: str | None = None


@dataclass
class Resource:
    pos: Pos
    name: str
    base: TypeExpr
    values: list[Value] = field(default_factory=list)


@dataclass
class Field:
    pos: Pos
    name: str
    type: TypeExpr


@dataclass
class Call:
    pos: Pos
    name: str                       # may carry a $variant suffix
    args: list[Field] = field(default_factory=list)
    ret: TypeExpr | None = None

    @property
    def call_name(self) -> str:
        """The syscall name without its ``$variant`` suffix."""
        return self.name.split("$", 1)[0]


@dataclass
class FlagSet:
    pos: Pos
    name: str
    values: list[Value] = field(default_factory=list)


@dataclass
class StrFlags:
    pos: Pos
    name: str
    values: list[str] = field(default_factory=list)


@dataclass
class Struct:
    pos: Pos
    name: str
    fields: list[Field] = field(default_factory=list)
    is_union: bool = False
    attrs: list[str] = field(default_factory=list)


Node = Union[Include, Incdir, Define, Resource, Call, FlagSet, StrFlags, Struct]


@dataclass
class Description:
    """A whole description file."""

    nodes: list[Node] = field(default_factory=list)

    def of_type(self, kind: type) -> list:
        """All nodes of one kind, in file order."""
        return [n for n in self.nodes if isinstance(n, kind)]
