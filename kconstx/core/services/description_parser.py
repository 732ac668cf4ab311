"""
Description parser — syscall description text into a Description AST.

The format is line oriented::

    include <linux/fcntl.h>
    incdir <include/uapi>
    define _GNU_SOURCE
    resource fd[int32]: -1, AT_FDCWD
    open(file ptr[in, filename], flags flags[open_flags]) fd
    open_flags = O_RDONLY, O_WRONLY, O_NONBLOCK
    stat_buf {
        dev     int64
        pad     array[int8, STAT_PAD]
    }

``#`` starts a comment anywhere outside a string literal. Structs open
with ``name {`` and close with ``}``, unions use ``[`` / ``]``; either
closer may be followed by an attribute list such as ``[packed]``.

Errors never stop the parse: every problem is reported through the
error handler so one run shows all of them, and ``parse`` then returns
None.
"""

from __future__ import annotations

import logging
import re
from typing import Callable

from kconstx.core.models.description import (
    Arg,
    Call,
    Define,
    Description,
    Field,
    FlagSet,
    Ident,
    Incdir,
    Include,
    IntValue,
    Pos,
    RangeValue,
    Resource,
    StrFlags,
    Struct,
    TypeExpr,
    Value,
)

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[Pos, str], None]

_RE_DIRECTIVE = re.compile(r"^(include|incdir)\s+<([^<>\s]+)>$", re.ASCII)
_RE_DIRECTIVE_WORD = re.compile(r"^(include|incdir)\s", re.ASCII)
_RE_DEFINE = re.compile(r"^define\s+([A-Za-z_]\w*)(?:\s+(.+))?$", re.ASCII)
_RE_RESOURCE = re.compile(r"^resource\s+([A-Za-z_]\w*)\[(.+)\](?:\s*:\s*(.*))?$", re.ASCII)
_RE_BLOCK_OPEN = re.compile(r"^([A-Za-z_]\w*)\s*([{\[])$", re.ASCII)
_RE_FLAGS = re.compile(r"^([A-Za-z_]\w*)\s*=\s*(.*)$", re.ASCII)
_RE_CALL = re.compile(r"^([A-Za-z_][\w$]*)\((.*)\)\s*(.*)$", re.ASCII)
_RE_FIELD = re.compile(r"^([A-Za-z_]\w*)\s+(.+)$", re.ASCII)
_RE_ATTRS = re.compile(r"^\[\s*([\w\s,]*)\]$", re.ASCII)
_RE_STRING = re.compile(r'^"([^"]*)"$')

_TOKEN = re.compile(
    r"\s*(?:(?P<int>-?0[xX][0-9a-fA-F]+|-?\d+)"
    r"|(?P<ident>[A-Za-z_]\w*)"
    r"|(?P<punct>[\[\],:]))",
    re.ASCII,
)


class _SyntaxError(Exception):
    """A problem on the current line."""


def _default_error_handler(pos: Pos, message: str) -> None:
    logger.error("%s: %s", pos, message)


def parse(
    data: bytes,
    filename: str,
    error_handler: ErrorHandler | None = None,
) -> Description | None:
    """Parse a description file.

    Args:
        data: Raw file contents.
        filename: Name used in diagnostics.
        error_handler: Called with (pos, message) for every error.
            Defaults to logging at ERROR level.

    Returns:
        The Description, or None if any error was reported.
    """
    report = error_handler or _default_error_handler
    errors = 0

    def fail(pos: Pos, message: str) -> None:
        nonlocal errors
        errors += 1
        report(pos, message)

    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        fail(Pos(filename, 0), f"file is not valid UTF-8: {e}")
        return None

    desc = Description()
    block: Struct | None = None

    for lineno, raw in enumerate(text.splitlines(), start=1):
        pos = Pos(filename, lineno)
        line = _strip_comment(raw).strip()
        if not line:
            continue

        try:
            if block is not None:
                if line[0] in "}]":
                    _close_block(block, line)
                    desc.nodes.append(block)
                    block = None
                else:
                    block.fields.append(_parse_field(pos, line))
                continue

            node = _parse_top_level(pos, line)
            if isinstance(node, Struct):
                block = node
            else:
                desc.nodes.append(node)
        except _SyntaxError as e:
            fail(pos, str(e))

    if block is not None:
        fail(block.pos, f"unterminated {'union' if block.is_union else 'struct'} {block.name}")

    if errors:
        return None

    logger.debug("Parsed %s: %d nodes", filename, len(desc.nodes))
    return desc


def _strip_comment(line: str) -> str:
    in_string = False
    for i, ch in enumerate(line):
        if ch == '"':
            in_string = not in_string
        elif ch == "#" and not in_string:
            return line[:i]
    return line


def _parse_top_level(pos: Pos, line: str):
    m = _RE_DIRECTIVE.match(line)
    if m:
        kind, path = m.groups()
        return Include(pos, path) if kind == "include" else Incdir(pos, path)

    if _RE_DIRECTIVE_WORD.match(line):
        raise _SyntaxError(f"malformed directive: {line!r} (expected '<path>')")

    m = _RE_DEFINE.match(line)
    if m:
        name, value = m.groups()
        return Define(pos, name, value.strip() if value else None)

    m = _RE_RESOURCE.match(line)
    if m:
        name, base, values = m.groups()
        return Resource(
            pos,
            name,
            _parse_type(base),
            _parse_values(values) if values else [],
        )

    m = _RE_BLOCK_OPEN.match(line)
    if m:
        name, opener = m.groups()
        return Struct(pos, name, is_union=opener == "[")

    m = _RE_FLAGS.match(line)
    if m:
        name, rest = m.groups()
        if not rest.strip():
            raise _SyntaxError(f"flags {name} has no values")
        if rest.lstrip().startswith('"'):
            return StrFlags(pos, name, _parse_strings(rest))
        return FlagSet(pos, name, _parse_values(rest))

    m = _RE_CALL.match(line)
    if m:
        name, args, ret = m.groups()
        fields = [_parse_field(pos, a.strip()) for a in _split_top_level(args) if a.strip()]
        return Call(pos, name, fields, _parse_type(ret) if ret.strip() else None)

    raise _SyntaxError(f"unexpected line: {line!r}")


def _close_block(block: Struct, line: str) -> None:
    closer = "]" if block.is_union else "}"
    if line[0] != closer:
        raise _SyntaxError(f"expected {closer!r} to close {block.name}, got {line[0]!r}")
    rest = line[1:].strip()
    if not rest:
        return
    m = _RE_ATTRS.match(rest)
    if not m:
        raise _SyntaxError(f"bad attributes after {block.name}: {rest!r}")
    block.attrs = [a.strip() for a in m.group(1).split(",") if a.strip()]


def _parse_field(pos: Pos, text: str) -> Field:
    m = _RE_FIELD.match(text)
    if not m:
        raise _SyntaxError(f"expected 'name type', got {text!r}")
    name, type_text = m.groups()
    return Field(pos, name, _parse_type(type_text))


def _split_top_level(text: str) -> list[str]:
    """Split on commas that are not inside brackets."""
    parts, depth, start = [], 0, 0
    for i, ch in enumerate(text):
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth < 0:
                raise _SyntaxError(f"unbalanced ']' in {text!r}")
        elif ch == "," and depth == 0:
            parts.append(text[start:i])
            start = i + 1
    if depth:
        raise _SyntaxError(f"unbalanced '[' in {text!r}")
    parts.append(text[start:])
    return parts


def _parse_values(text: str) -> list[Value]:
    values: list[Value] = []
    for item in text.split(","):
        item = item.strip()
        if not item:
            raise _SyntaxError(f"empty value in {text!r}")
        values.append(_parse_value(item))
    return values


def _parse_value(item: str) -> Value:
    if re.fullmatch(r"-?0[xX][0-9a-fA-F]+|-?[0-9]+", item):
        return IntValue(_to_int(item))
    if re.fullmatch(r"[A-Za-z_]\w*", item, re.ASCII):
        return Ident(item)
    raise _SyntaxError(f"bad value {item!r}")


def _parse_strings(text: str) -> list[str]:
    values = []
    for item in text.split(","):
        m = _RE_STRING.match(item.strip())
        if not m:
            raise _SyntaxError(f"bad string value {item.strip()!r}")
        values.append(m.group(1))
    return values


# ── Type expressions ────────────────────────────────────────────


def _tokenize(text: str) -> list[tuple[str, str]]:
    tokens, pos = [], 0
    text = text.rstrip()
    while pos < len(text):
        m = _TOKEN.match(text, pos)
        if not m or m.end() == pos:
            raise _SyntaxError(f"unexpected character {text[pos:].strip()[:1]!r} in {text!r}")
        kind = m.lastgroup
        tokens.append((kind, m.group(kind)))
        pos = m.end()
    return tokens


class _TypeParser:
    def __init__(self, text: str):
        self.text = text
        self.tokens = _tokenize(text)
        self.pos = 0

    def peek(self) -> tuple[str, str] | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def take(self) -> tuple[str, str]:
        tok = self.peek()
        if tok is None:
            raise _SyntaxError(f"unexpected end of type {self.text!r}")
        self.pos += 1
        return tok

    def expect(self, punct: str) -> None:
        kind, value = self.take()
        if kind != "punct" or value != punct:
            raise _SyntaxError(f"expected {punct!r}, got {value!r} in {self.text!r}")

    def at(self, punct: str) -> bool:
        tok = self.peek()
        return tok is not None and tok == ("punct", punct)

    def type_expr(self) -> TypeExpr:
        kind, value = self.take()
        if kind != "ident":
            raise _SyntaxError(f"expected type name, got {value!r} in {self.text!r}")
        return TypeExpr(value, self.arg_list())

    def arg_list(self) -> list[Arg]:
        if not self.at("["):
            return []
        self.expect("[")
        args = [self.arg()]
        while self.at(","):
            self.expect(",")
            args.append(self.arg())
        self.expect("]")
        return args

    def arg(self) -> Arg:
        kind, value = self.take()
        if kind == "int":
            lo: Value = IntValue(_to_int(value))
        elif kind == "ident":
            if self.at("["):
                return TypeExpr(value, self.arg_list())
            lo = Ident(value)
        else:
            raise _SyntaxError(f"unexpected {value!r} in {self.text!r}")
        if self.at(":"):
            self.expect(":")
            kind, value = self.take()
            if kind == "int":
                return RangeValue(lo, IntValue(_to_int(value)))
            if kind == "ident":
                return RangeValue(lo, Ident(value))
            raise _SyntaxError(f"bad range bound {value!r} in {self.text!r}")
        return lo


def _parse_type(text: str) -> TypeExpr:
    parser = _TypeParser(text)
    expr = parser.type_expr()
    if parser.peek() is not None:
        raise _SyntaxError(f"trailing tokens in type {text!r}")
    return expr


def _to_int(text: str) -> int:
    if text.lstrip("-")[:2] in ("0x", "0X"):
        return int(text, 16)
    return int(text, 10)
