"""
Probe executor base — the contract between the engine and toolchains.

The probe engine never runs a compiler itself. It hands a ProbeUnit
(C source plus compiler arguments) to an executor and gets a
ProbeResult back. Swapping the executor is how the engine runs against
gcc, clang, or canned output in tests.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any, Literal

from pydantic import BaseModel, Field

# Prefix of the string every probed value is emitted under in the
# generated assembly: @@kconstx@@ NAME VALUE
VALUE_MARKER = "@@kconstx@@"


class ProbeUnit(BaseModel):
    """One generated compilation unit.

    Exists only for the duration of a single toolchain invocation.
    """

    id: str                             # unique within one resolve pass
    arch: str                           # architecture identifier
    source: str                         # C text to compile
    args: list[str] = Field(default_factory=list)
    symbols: tuple[str, ...] = ()       # names this unit probes
    timeout: float = 120.0              # seconds
    target: str = ""                    # clang target triple, if any
    compiler: str = ""                  # overrides the executor default


class ProbeResult(BaseModel):
    """Outcome of compiling a ProbeUnit.

    Executors NEVER raise — failures are captured here.
    """

    executor: str
    unit_id: str
    status: Literal["ok", "failed"] = "ok"

    output: str = ""                # generated assembly
    stderr: str = ""                # compiler diagnostics
    error: str | None = None        # one-line failure summary
    return_code: int | None = None
    timed_out: bool = False
    duration_ms: int = 0

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def success(
        cls,
        executor: str,
        unit_id: str,
        output: str = "",
        **kwargs: Any,
    ) -> ProbeResult:
        """Create a success result."""
        return cls(
            executor=executor,
            unit_id=unit_id,
            status="ok",
            output=output,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        executor: str,
        unit_id: str,
        error: str,
        **kwargs: Any,
    ) -> ProbeResult:
        """Create a failure result."""
        return cls(
            executor=executor,
            unit_id=unit_id,
            status="failed",
            error=error,
            **kwargs,
        )


class ProbeExecutor(ABC):
    """Abstract base class for all probe executors.

    To add a toolchain:
        1. Subclass ProbeExecutor
        2. Implement name, is_available, validate, execute
        3. Register it in the ExecutorRegistry
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The executor identifier (e.g., 'gcc', 'clang', 'mock')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the underlying toolchain can be found.

        Should be fast and never raise.
        """

    @abstractmethod
    def validate(self, unit: ProbeUnit) -> tuple[bool, str]:
        """Validate that the unit can be compiled.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """

    @abstractmethod
    def execute(self, unit: ProbeUnit) -> ProbeResult:
        """Compile the unit and return the result.

        MUST never raise exceptions. All failures are captured
        in the ProbeResult with status='failed'.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


def elapsed_ms(start: float) -> int:
    """Milliseconds since ``start`` (a time.monotonic() value)."""
    return int((time.monotonic() - start) * 1000)
