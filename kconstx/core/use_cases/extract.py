"""
Extract use case — one description file in, one const file out.

This is the top-level orchestrator:

    arch lookup → read description → parse → extract requirements
    → resolve through the toolchain → serialize → atomic write

Every stage fails fast. On any failure ``ExtractResult.error`` carries a
one-line message and no file is written: the output either holds the
full requested set (minus names unavailable for the arch) or does not
change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from kconstx.adapters.registry import ExecutorRegistry, default_registry
from kconstx.core.config.loader import ExtractSettings
from kconstx.core.engine.probe import ProbeEngine, ProbeError
from kconstx.core.models.arch import Architecture, UnknownArchitecture, lookup
from kconstx.core.models.consts import ConstantInfo, ConstantMap
from kconstx.core.persistence.const_file import output_path, write_const_file
from kconstx.core.services.description_parser import parse
from kconstx.core.services.requirements import extract_requirements

logger = logging.getLogger(__name__)


@dataclass
class ExtractResult:
    """Result of extracting one description."""

    input_path: Path | None = None
    output_path: Path | None = None
    arch: Architecture | None = None
    info: ConstantInfo | None = None
    consts: ConstantMap = field(default_factory=dict)
    written: bool = False
    error: str | None = None

    @property
    def requested(self) -> int:
        return len(self.info.names) if self.info else 0

    @property
    def unavailable(self) -> list[str]:
        """Requested names the toolchain could not resolve for the arch."""
        if not self.info or not self.written:
            return []
        return [n for n in self.info.names if n not in self.consts]

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {
            "input": str(self.input_path) if self.input_path else None,
            "output": str(self.output_path) if self.output_path else None,
            "arch": self.arch.name if self.arch else None,
            "requested": self.requested,
            "resolved": len(self.consts),
            "unavailable": self.unavailable,
            "written": self.written,
            "includes": list(self.info.includes) if self.info else [],
            "consts": dict(sorted(self.consts.items())),
        }


def _first_line(message: str) -> str:
    return message.strip().splitlines()[0] if message.strip() else message


def run_extract(
    input_path: Path,
    arch_name: str,
    linux: Path | None,
    linux_build: Path | None = None,
    settings: ExtractSettings | None = None,
    registry: ExecutorRegistry | None = None,
    dry_run: bool = False,
) -> ExtractResult:
    """Extract the constants one description needs for one architecture.

    Args:
        input_path: Description file.
        arch_name: Target architecture identifier.
        linux: Kernel source tree.
        linux_build: Kernel build tree; defaults to ``linux``.
        settings: Toolchain/batching settings (defaults if None).
        registry: Executor registry (gcc + clang if None).
        dry_run: Stop after requirement extraction; write nothing.

    Returns:
        ExtractResult; ``error`` is set on failure.
    """
    result = ExtractResult(input_path=input_path)
    settings = settings or ExtractSettings()

    # ── Validate flags (before any file I/O) ─────────────────────
    try:
        arch = lookup(arch_name)
    except UnknownArchitecture as e:
        result.error = str(e)
        return result
    result.arch = arch

    if linux is None:
        result.error = "provide path to linux kernel checkout via --linux"
        return result
    if linux_build is None:
        logger.info("No kernel build directory provided, assuming in-place build")
        linux_build = linux

    result.output_path = output_path(input_path, arch.name)

    # ── Read and parse ───────────────────────────────────────────
    try:
        data = input_path.read_bytes()
    except OSError as e:
        result.error = f"failed to read input file: {e}"
        return result

    desc = parse(data, input_path.name)
    if desc is None:
        result.error = f"failed to parse {input_path}"
        return result

    info = extract_requirements(desc, arch)
    if info is None:
        result.error = f"failed to extract constants from {input_path}"
        return result
    result.info = info

    if dry_run:
        return result

    # ── Resolve ──────────────────────────────────────────────────
    if info.is_empty:
        logger.info("%s references no constants, nothing to resolve", input_path)
        consts: ConstantMap = {}
    else:
        engine = ProbeEngine(
            registry=registry or default_registry(),
            executor=settings.toolchain,
            linux=linux,
            linux_build=linux_build,
            compiler=settings.compiler_for(arch.name),
            batch_size=settings.batch_size,
            max_workers=settings.max_workers,
            timeout=settings.timeout,
            strict=settings.strict,
        )
        try:
            consts = engine.resolve(
                arch,
                info.names,
                info.includes,
                info.incdirs,
                info.defines,
                arch.cflags,
            )
        except ProbeError as e:
            message = str(e).strip()
            result.error = _first_line(message)
            detail = message.partition("\n")[2]
            if detail:
                logger.info("Compiler output:\n%s", detail)
            return result
    result.consts = consts

    # ── Write ────────────────────────────────────────────────────
    try:
        write_const_file(consts, result.output_path)
    except (OSError, ValueError) as e:
        result.error = f"failed to write output file: {e}"
        return result
    result.written = True

    logger.info(
        "Wrote %d/%d constants to %s",
        len(consts), len(info.names), result.output_path,
    )
    return result
