"""
Const file persistence — byte-stable encoding of a ConstantMap.

Format::

    # AUTOGENERATED FILE
    EINVAL = 22
    O_NONBLOCK = 2048

One ``NAME = value`` line per constant, sorted by name, values in
decimal. Equal maps always encode to identical bytes, so regenerated
files diff cleanly in version control. Writes are atomic (write to
temp file, then rename).
"""

from __future__ import annotations

import logging
import re
import tempfile
from pathlib import Path

from kconstx.core.models.consts import U64_MAX, ConstantMap

logger = logging.getLogger(__name__)

HEADER = "# AUTOGENERATED FILE"
CONST_SUFFIX = ".const"

_RE_ENTRY = re.compile(r"^([A-Za-z_]\w*)\s*=\s*(0|[1-9][0-9]*)$", re.ASCII)


class CorruptFormat(ValueError):
    """Raised when const file content cannot be decoded."""


def serialize(consts: ConstantMap) -> bytes:
    """Encode a constant map.

    Raises:
        ValueError: If a value is not an unsigned 64-bit integer.
    """
    lines = [HEADER]
    for name in sorted(consts):
        value = consts[name]
        if not 0 <= value <= U64_MAX:
            raise ValueError(f"{name}: value {value} is not an unsigned 64-bit integer")
        lines.append(f"{name} = {value}")
    return ("\n".join(lines) + "\n").encode("ascii")


def deserialize(data: bytes) -> ConstantMap:
    """Decode a constant map.

    Raises:
        CorruptFormat: On bad encoding, malformed lines, out-of-range
            values, or duplicate names.
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CorruptFormat(f"not valid UTF-8: {e}") from e

    consts: ConstantMap = {}
    for lineno, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        m = _RE_ENTRY.match(line)
        if not m:
            raise CorruptFormat(f"line {lineno}: expected 'NAME = value', got {line!r}")
        name, raw = m.groups()
        value = int(raw)
        if value > U64_MAX:
            raise CorruptFormat(f"line {lineno}: {name} value {value} exceeds 64 bits")
        if name in consts:
            raise CorruptFormat(f"line {lineno}: duplicate constant {name}")
        consts[name] = value
    return consts


def output_path(input_path: Path, arch_name: str) -> Path:
    """Where the const file for ``input_path`` and ``arch_name`` goes.

    ``sys/linux/fs.txt`` + ``amd64`` → ``sys/linux/fs_amd64.const``.
    """
    return input_path.with_name(f"{input_path.stem}_{arch_name}{CONST_SUFFIX}")


def read_const_file(path: Path) -> ConstantMap:
    """Load a const file.

    Raises:
        OSError: If the file cannot be read.
        CorruptFormat: If its content cannot be decoded.
    """
    return deserialize(path.read_bytes())


def write_const_file(consts: ConstantMap, path: Path) -> None:
    """Save a constant map (atomic write).

    Uses write-to-temp-then-rename so readers never see a partial file.
    """
    content = serialize(consts)

    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=".kconstx_",
        suffix=".tmp",
    )
    tmp = Path(tmp_path)
    try:
        with open(fd, "wb") as f:
            f.write(content)
        tmp.replace(path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise
    logger.debug("Wrote %d constants to %s", len(consts), path)
