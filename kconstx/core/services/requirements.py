"""
Requirement extraction — which constants does a description need?

Walks a parsed Description and collects every symbolic constant it
references, plus the includes, include directories and defines the
probe needs to resolve them.

What counts as a constant reference:
    - each syscall (except ``syz_`` pseudo-calls) needs ``__NR_<name>``
    - every identifier in a flag set or resource value list
    - the first argument of ``const[...]``
    - any all-caps identifier elsewhere in a type argument list

Lower-case identifiers in argument position name types, fields and
flag sets, so they are never constants.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable

from kconstx.core.models.arch import Architecture
from kconstx.core.models.consts import ConstantInfo
from kconstx.core.models.description import (
    Arg,
    Call,
    Define,
    Description,
    FlagSet,
    Ident,
    Incdir,
    Include,
    Pos,
    RangeValue,
    Resource,
    Struct,
    TypeExpr,
)

logger = logging.getLogger(__name__)

_RE_CONST_NAME = re.compile(r"^_*[A-Z][A-Z0-9_]*$")

SYSCALL_PREFIX = "__NR_"
PSEUDO_CALL_PREFIX = "syz_"


def is_const_name(name: str) -> bool:
    """True if ``name`` looks like a C macro constant (all caps)."""
    return bool(_RE_CONST_NAME.match(name))


class _OrderedSet:
    """Insertion-ordered, duplicate-free collection."""

    def __init__(self) -> None:
        self._items: dict[str, None] = {}

    def add(self, item: str) -> None:
        self._items.setdefault(item, None)

    def update(self, items: Iterable[str]) -> None:
        for item in items:
            self.add(item)

    def __len__(self) -> int:
        return len(self._items)

    def as_tuple(self) -> tuple[str, ...]:
        return tuple(self._items)


def _type_consts(expr: TypeExpr) -> list[str]:
    found: list[str] = []
    for i, arg in enumerate(expr.args):
        found.extend(_arg_consts(arg, in_const=expr.ident == "const" and i == 0))
    return found


def _arg_consts(arg: Arg, in_const: bool = False) -> list[str]:
    if isinstance(arg, TypeExpr):
        return _type_consts(arg)
    if isinstance(arg, RangeValue):
        return _arg_consts(arg.lo) + _arg_consts(arg.hi)
    if isinstance(arg, Ident) and (in_const or is_const_name(arg.name)):
        return [arg.name]
    return []


def extract_requirements(
    desc: Description,
    arch: Architecture | None = None,
    error_handler: Callable[[Pos, str], None] | None = None,
) -> ConstantInfo | None:
    """Collect the constants and build requirements of a description.

    Args:
        desc: Parsed description.
        arch: Target architecture. When given, its syscall-number
            header is appended to the include list.
        error_handler: Called with (pos, message) for every error.

    Returns:
        ConstantInfo, or None if an error was reported.
    """
    names = _OrderedSet()
    includes = _OrderedSet()
    incdirs = _OrderedSet()
    defines: dict[str, str | None] = {}
    define_pos: dict[str, Pos] = {}
    errors = 0

    def fail(pos: Pos, message: str) -> None:
        nonlocal errors
        errors += 1
        if error_handler:
            error_handler(pos, message)
        else:
            logger.error("%s: %s", pos, message)

    for node in desc.nodes:
        if isinstance(node, Include):
            includes.add(node.path)
        elif isinstance(node, Incdir):
            incdirs.add(node.path)
        elif isinstance(node, Define):
            if node.name in defines and defines[node.name] != node.value:
                fail(
                    node.pos,
                    f"{node.name} redefined (previous definition at "
                    f"{define_pos[node.name]})",
                )
                continue
            defines[node.name] = node.value
            define_pos.setdefault(node.name, node.pos)
        elif isinstance(node, Call):
            if not node.call_name.startswith(PSEUDO_CALL_PREFIX):
                names.add(SYSCALL_PREFIX + node.call_name)
            for arg in node.args:
                names.update(_type_consts(arg.type))
            if node.ret is not None:
                names.update(_type_consts(node.ret))
        elif isinstance(node, (FlagSet, Resource)):
            if isinstance(node, Resource):
                names.update(_type_consts(node.base))
            names.update(v.name for v in node.values if isinstance(v, Ident))
        elif isinstance(node, Struct):
            for field in node.fields:
                names.update(_type_consts(field.type))

    if errors:
        return None

    if not names:
        logger.info("Description references no constants")
        return ConstantInfo()

    if arch is not None:
        includes.add(arch.kernel_include)

    logger.debug(
        "Extracted %d constants, %d includes, %d incdirs, %d defines",
        len(names), len(includes), len(incdirs), len(defines),
    )
    return ConstantInfo(
        names=names.as_tuple(),
        includes=includes.as_tuple(),
        incdirs=incdirs.as_tuple(),
        defines=defines,
    )
