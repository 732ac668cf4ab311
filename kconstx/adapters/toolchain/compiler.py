"""
Compiler executors — compile probe units to assembly with gcc or clang.

Each unit gets a fresh temporary directory holding the generated C file
and the assembly the compiler writes. The directory is removed when the
call returns, whatever the outcome. The compiler runs with ``LC_ALL=C``
so its diagnostics use plain ASCII quotes.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
import time
from pathlib import Path

from kconstx.adapters.base import ProbeExecutor, ProbeResult, ProbeUnit, elapsed_ms

logger = logging.getLogger(__name__)

# Diagnostics beyond this are dropped from results
_MAX_STDERR = 64 * 1024


class GccExecutor(ProbeExecutor):
    """Compile probe units with a gcc-compatible driver.

    The unit's ``compiler`` field, when set, overrides the binary given
    here (a cross compiler for one architecture, for instance).
    """

    def __init__(self, compiler: str = "gcc"):
        self._compiler = compiler

    @property
    def name(self) -> str:
        return "gcc"

    @property
    def compiler(self) -> str:
        return self._compiler

    def is_available(self) -> bool:
        return shutil.which(self._compiler) is not None

    def validate(self, unit: ProbeUnit) -> tuple[bool, str]:
        if not unit.source.strip():
            return False, "Empty probe source"
        compiler = unit.compiler or self._compiler
        if shutil.which(compiler) is None:
            return False, f"Compiler not found: {compiler}"
        if unit.timeout <= 0:
            return False, f"Invalid timeout: {unit.timeout}"
        return True, ""

    def command(self, unit: ProbeUnit, source: Path, output: Path) -> list[str]:
        """Full argv for compiling ``source`` to ``output``."""
        return [
            unit.compiler or self._compiler,
            *self.target_args(unit),
            *unit.args,
            "-S",
            "-o", str(output),
            str(source),
        ]

    def target_args(self, unit: ProbeUnit) -> list[str]:
        return []

    def execute(self, unit: ProbeUnit) -> ProbeResult:
        start = time.monotonic()

        try:
            with tempfile.TemporaryDirectory(prefix="kconstx-") as tmpdir:
                source = Path(tmpdir) / "probe.c"
                output = Path(tmpdir) / "probe.s"
                source.write_text(unit.source, encoding="utf-8")

                cmd = self.command(unit, source, output)
                logger.debug("Executing: %s", " ".join(cmd))

                result = subprocess.run(
                    cmd,
                    cwd=tmpdir,
                    capture_output=True,
                    text=True,
                    errors="replace",
                    timeout=unit.timeout,
                    env={**os.environ, "LC_ALL": "C"},
                )
                stderr = result.stderr[-_MAX_STDERR:]

                if result.returncode != 0:
                    return ProbeResult.failure(
                        executor=self.name,
                        unit_id=unit.id,
                        error=f"Compiler exited with code {result.returncode}",
                        stderr=stderr,
                        return_code=result.returncode,
                        duration_ms=elapsed_ms(start),
                        metadata={"command": cmd},
                    )

                if not output.is_file():
                    return ProbeResult.failure(
                        executor=self.name,
                        unit_id=unit.id,
                        error="Compiler produced no assembly output",
                        stderr=stderr,
                        return_code=result.returncode,
                        duration_ms=elapsed_ms(start),
                        metadata={"command": cmd},
                    )

                return ProbeResult.success(
                    executor=self.name,
                    unit_id=unit.id,
                    output=output.read_text(encoding="utf-8", errors="replace"),
                    stderr=stderr,
                    return_code=result.returncode,
                    duration_ms=elapsed_ms(start),
                    metadata={"command": cmd},
                )

        except subprocess.TimeoutExpired:
            return ProbeResult.failure(
                executor=self.name,
                unit_id=unit.id,
                error=f"Compiler timed out after {unit.timeout}s",
                timed_out=True,
                duration_ms=elapsed_ms(start),
            )
        except OSError as e:
            return ProbeResult.failure(
                executor=self.name,
                unit_id=unit.id,
                error=f"Cannot run compiler: {e}",
                duration_ms=elapsed_ms(start),
            )


class ClangExecutor(GccExecutor):
    """Compile probe units with clang, selecting the target by triple."""

    def __init__(self, compiler: str = "clang"):
        super().__init__(compiler)

    @property
    def name(self) -> str:
        return "clang"

    def target_args(self, unit: ProbeUnit) -> list[str]:
        args = [f"--target={unit.target}"] if unit.target else []
        # clang stops after 19 errors by default; report every undeclared name
        args.append("-ferror-limit=0")
        return args
