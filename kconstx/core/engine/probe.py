"""
Probe engine — resolve symbolic constants through the C toolchain.

For every batch of requested names the engine generates one C file
that includes the requested headers and, for each name, plants an
inline-asm ``.ascii`` directive whose ``"i"`` operand is the constant.
Compiling with ``-S`` makes the compiler evaluate every constant and
print it into the assembly, where the engine reads it back. Nothing is
ever executed, so any cross compiler works.

Flow:
    header check → split into batches → compile each batch
    (dropping names the compiler reports as undeclared) → parse markers
    → merge

A name the compiler calls undeclared is "unavailable for this arch"
(headers routinely guard constants per architecture) and is left out
of the result. Any other compile error fails the whole run.
"""

from __future__ import annotations

import concurrent.futures
import logging
import re
from pathlib import Path

from kconstx.adapters.base import VALUE_MARKER, ProbeResult, ProbeUnit
from kconstx.adapters.registry import ExecutorRegistry
from kconstx.core.models.arch import Architecture
from kconstx.core.models.consts import U64_MAX, ConstantMap

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500
DEFAULT_MAX_WORKERS = 4
DEFAULT_TIMEOUT = 120.0

# Lines of compiler output quoted in a failure message
_STDERR_CONTEXT = 10

_RE_MARKER = re.compile(re.escape(VALUE_MARKER) + r' (\w+) ([^"\s]*)')

# Quotes are ASCII under LC_ALL=C, typographic otherwise
_Q_OPEN = "['‘`]"
_Q_CLOSE = "['’]"
_UNDECLARED_PATTERNS = (
    re.compile(rf"error: {_Q_OPEN}(\w+){_Q_CLOSE} undeclared"),
    re.compile(rf"note: in expansion of macro {_Q_OPEN}(\w+){_Q_CLOSE}"),
    re.compile(rf"error: use of undeclared identifier {_Q_OPEN}(\w+){_Q_CLOSE}"),
)

_PROBE_FUNCTION = "__kconstx_probe"
_MARKER_MACRO = "KCONSTX_VALUE"


class ProbeError(Exception):
    """Base class for resolution failures."""


class ToolchainInvocationFailed(ProbeError):
    """The compiler could not run, timed out, or hit a structural error."""

    def __init__(self, message: str, result: ProbeResult | None = None):
        self.result = result
        super().__init__(message)


class MalformedValue(ProbeError):
    """The compiler produced output the engine cannot read as a u64."""


class UnresolvedSymbols(ProbeError):
    """Strict mode: some requested names are unavailable."""

    def __init__(self, names: list[str]):
        self.names = names
        super().__init__(
            f"{len(names)} constant(s) unavailable for this arch: {', '.join(names)}"
        )


# ── Probe source and arguments ──────────────────────────────────


def build_probe_source(
    symbols: list[str] | tuple[str, ...],
    includes: list[str] | tuple[str, ...],
    defines: dict[str, str | None],
) -> str:
    """Generate the C text of one probe unit.

    Defines come first (guarded so headers may override them), then
    the includes in request order, then one marker per symbol.
    """
    lines = ["/* Generated by kconstx. */"]
    for name, value in defines.items():
        lines.append(f"#ifndef {name}")
        lines.append(f"#define {name} {value}" if value is not None else f"#define {name}")
        lines.append("#endif")
    for include in includes:
        lines.append(f"#include <{include}>")
    lines.append("")
    lines.append(
        f"#define {_MARKER_MACRO}(name, val) "
        f'asm volatile("\\n.ascii \\"{VALUE_MARKER} " #name " %0\\"" '
        f': : "i" ((long long)(val)))'
    )
    lines.append("")
    lines.append(f"void {_PROBE_FUNCTION}(void);")
    lines.append(f"void {_PROBE_FUNCTION}(void)")
    lines.append("{")
    for symbol in symbols:
        lines.append(f"\t{_MARKER_MACRO}({symbol}, {symbol});")
    lines.append("}")
    return "\n".join(lines) + "\n"


def kernel_include_dirs(arch: Architecture, linux: Path, linux_build: Path) -> list[str]:
    """Kernel include search path, generated (build) headers first."""
    h = arch.kernel_header_arch
    dirs = [
        linux_build / "arch" / h / "include" / "generated" / "uapi",
        linux_build / "arch" / h / "include" / "generated",
        linux / "arch" / h / "include",
        linux / "arch" / h / "include" / "uapi",
        linux_build / "include" / "generated" / "uapi",
        linux_build / "include",
        linux / "include",
        linux / "include" / "uapi",
        linux,
    ]
    seen: dict[str, None] = {}
    for d in dirs:
        seen.setdefault(str(d), None)
    return list(seen)


def build_compiler_args(
    arch: Architecture,
    linux: Path,
    linux_build: Path,
    incdirs: list[str] | tuple[str, ...] = (),
    extra_flags: list[str] | tuple[str, ...] = (),
) -> list[str]:
    """Compiler arguments shared by every unit of one resolve pass."""
    args = [
        "-x", "c",
        "-fmessage-length=0",
        "-nostdinc",
        "-D__KERNEL__",
        '-DKBUILD_MODNAME="-"',
    ]
    args.extend(arch.define_flags)
    args.extend(f"-I{d}" for d in kernel_include_dirs(arch, linux, linux_build))
    args.extend(["-include", str(linux / "include" / "linux" / "kconfig.h")])
    args.extend(extra_flags)
    for incdir in incdirs:
        path = Path(incdir)
        args.append(f"-I{path if path.is_absolute() else linux / path}")
    return args


# ── Output parsing ──────────────────────────────────────────────


def find_undeclared(stderr: str, candidates: set[str]) -> set[str]:
    """Names from ``candidates`` the compiler reported as undeclared."""
    found = set()
    for pattern in _UNDECLARED_PATTERNS:
        for match in pattern.finditer(stderr):
            if match.group(1) in candidates:
                found.add(match.group(1))
    return found


def parse_value(name: str, text: str) -> int:
    """Parse one immediate as printed by the compiler into a u64."""
    raw = text.lstrip("$#")
    try:
        value = int(raw, 0)
    except ValueError:
        # int(x, 0) rejects leading zeros; compilers don't emit octal
        try:
            value = int(raw, 10)
        except ValueError:
            raise MalformedValue(f"{name}: cannot parse value {text!r}") from None
    if value < -(1 << 63) or value > U64_MAX:
        raise MalformedValue(f"{name}: value {value} does not fit in 64 bits")
    return value & U64_MAX


def parse_markers(output: str, symbols: list[str]) -> ConstantMap:
    """Read every symbol's value back out of the generated assembly."""
    wanted = set(symbols)
    values: ConstantMap = {}
    for match in _RE_MARKER.finditer(output):
        name, text = match.groups()
        if name not in wanted:
            continue
        value = parse_value(name, text)
        if name in values and values[name] != value:
            raise MalformedValue(f"{name}: conflicting values {values[name]} and {value}")
        values[name] = value

    missing = [s for s in symbols if s not in values]
    if missing:
        raise MalformedValue(f"no value emitted for: {', '.join(missing)}")
    return values


def _stderr_tail(result: ProbeResult) -> str:
    lines = [ln for ln in result.stderr.splitlines() if ln.strip()]
    return "\n".join(lines[-_STDERR_CONTEXT:])


def _failure(what: str, result: ProbeResult) -> ToolchainInvocationFailed:
    detail = _stderr_tail(result)
    message = f"{what}: {result.error or 'compilation failed'}"
    if detail:
        message += f"\n{detail}"
    return ToolchainInvocationFailed(message, result)


# ── Engine ──────────────────────────────────────────────────────


class ProbeEngine:
    """Resolves constant names to values for one kernel tree.

    Args:
        registry: Executor registry to dispatch units through.
        executor: Name of the executor to use ('gcc', 'clang', ...).
        linux: Kernel source tree.
        linux_build: Kernel build tree (defaults to ``linux``).
        compiler: Compiler binary override handed to the executor.
        batch_size: Max names per compilation unit.
        max_workers: Max units compiled in parallel.
        timeout: Per-invocation timeout in seconds.
        strict: Fail if any name is unavailable instead of omitting it.
    """

    def __init__(
        self,
        registry: ExecutorRegistry,
        executor: str,
        linux: Path,
        linux_build: Path | None = None,
        compiler: str = "",
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_workers: int = DEFAULT_MAX_WORKERS,
        timeout: float = DEFAULT_TIMEOUT,
        strict: bool = False,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if max_workers < 1:
            raise ValueError(f"max_workers must be positive, got {max_workers}")
        self.registry = registry
        self.executor = executor
        self.linux = Path(linux)
        self.linux_build = Path(linux_build) if linux_build else self.linux
        self.compiler = compiler
        self.batch_size = batch_size
        self.max_workers = max_workers
        self.timeout = timeout
        self.strict = strict

    def resolve(
        self,
        arch: Architecture,
        names: list[str] | tuple[str, ...],
        includes: list[str] | tuple[str, ...] = (),
        incdirs: list[str] | tuple[str, ...] = (),
        defines: dict[str, str | None] | None = None,
        extra_flags: list[str] | tuple[str, ...] = (),
    ) -> ConstantMap:
        """Resolve ``names`` for ``arch``.

        Returns:
            Map of every available name to its unsigned 64-bit value.

        Raises:
            ToolchainInvocationFailed: The compiler failed for a reason
                other than an undeclared requested name.
            MalformedValue: A value could not be read back.
            UnresolvedSymbols: Strict mode and some names unavailable.
        """
        if not names:
            return {}

        names = list(dict.fromkeys(names))
        defines = defines or {}
        args = build_compiler_args(arch, self.linux, self.linux_build, incdirs, extra_flags)

        def make_unit(unit_id: str, symbols: list[str]) -> ProbeUnit:
            return ProbeUnit(
                id=unit_id,
                arch=arch.name,
                source=build_probe_source(symbols, includes, defines),
                args=args,
                symbols=tuple(symbols),
                timeout=self.timeout,
                target=arch.clang_target,
                compiler=self.compiler,
            )

        # Fail fast on anything not attributable to a single name
        # (missing header, bad define, broken tree).
        check = self.registry.run(self.executor, make_unit("header-check", []))
        if check.failed:
            raise _failure("header check failed", check)

        batches = [names[i:i + self.batch_size] for i in range(0, len(names), self.batch_size)]
        logger.info(
            "Resolving %d constants for %s in %d batch(es)",
            len(names), arch.name, len(batches),
        )

        consts: ConstantMap = {}
        unavailable: set[str] = set()

        if len(batches) == 1 or self.max_workers == 1:
            for i, batch in enumerate(batches):
                values, missing = self._resolve_batch(i, batch, make_unit)
                consts.update(values)
                unavailable |= missing
        else:
            workers = min(self.max_workers, len(batches))
            with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as pool:
                futures = [
                    pool.submit(self._resolve_batch, i, batch, make_unit)
                    for i, batch in enumerate(batches)
                ]
                try:
                    for future in concurrent.futures.as_completed(futures):
                        values, missing = future.result()
                        consts.update(values)
                        unavailable |= missing
                except BaseException:
                    # Batches still queued are never started
                    pool.shutdown(wait=True, cancel_futures=True)
                    raise

        if unavailable:
            ordered = [n for n in names if n in unavailable]
            if self.strict:
                raise UnresolvedSymbols(ordered)
            logger.info("%d constant(s) unavailable for %s", len(ordered), arch.name)
            for name in ordered:
                logger.debug("Unavailable for %s: %s", arch.name, name)

        return consts

    def _resolve_batch(self, index: int, batch: list[str], make_unit) -> tuple[ConstantMap, set[str]]:
        """Compile one batch until it succeeds, dropping undeclared names."""
        remaining = list(batch)
        unavailable: set[str] = set()
        attempt = 0

        while remaining:
            attempt += 1
            unit = make_unit(f"batch-{index}.{attempt}", remaining)
            result = self.registry.run(self.executor, unit)

            if result.ok:
                return parse_markers(result.output, remaining), unavailable

            if result.timed_out or not result.stderr:
                raise _failure(f"batch {index}", result)

            undeclared = find_undeclared(result.stderr, set(remaining))
            if not undeclared:
                raise _failure(f"batch {index}", result)

            logger.debug(
                "Batch %d attempt %d: %d undeclared, retrying without them",
                index, attempt, len(undeclared),
            )
            unavailable |= undeclared
            remaining = [n for n in remaining if n not in undeclared]

        return {}, unavailable
