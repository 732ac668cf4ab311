"""
Mock executor — test double that answers probes from a dict.

Behaves like a well-mannered gcc: symbols it knows come back as value
markers in the "assembly", symbols it doesn't know are reported as
undeclared, and it can be told to fail every unit the way a missing
header would.
"""

from __future__ import annotations

from kconstx.adapters.base import VALUE_MARKER, ProbeExecutor, ProbeResult, ProbeUnit


class MockProbeExecutor(ProbeExecutor):
    """Universal mock executor for testing.

    By default, resolves every symbol present in ``values`` and reports
    the rest as undeclared.
    """

    def __init__(
        self,
        values: dict[str, int] | None = None,
        executor_name: str = "mock",
        available: bool = True,
        immediate_prefix: str = "$",
    ):
        self._name = executor_name
        self._available = available
        self._prefix = immediate_prefix
        self._values: dict[str, str] = {k: str(v) for k, v in (values or {}).items()}
        self._failure: str | None = None
        self._call_log: list[ProbeUnit] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ProbeUnit]:
        """All units this mock has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        """Number of times execute has been called."""
        return len(self._call_log)

    def is_available(self) -> bool:
        return self._available

    def set_value(self, name: str, value: int) -> None:
        """Make ``name`` resolve to ``value``."""
        self._values[name] = str(value)

    def set_raw_value(self, name: str, text: str) -> None:
        """Emit ``text`` verbatim as the value of ``name``."""
        self._values[name] = text

    def set_failure(self, stderr: str = "fatal error: mock failure") -> None:
        """Fail every unit with the given compiler diagnostics."""
        self._failure = stderr

    def validate(self, unit: ProbeUnit) -> tuple[bool, str]:
        return True, ""

    def execute(self, unit: ProbeUnit) -> ProbeResult:
        self._call_log.append(unit)

        if self._failure is not None:
            return ProbeResult.failure(
                executor=self._name,
                unit_id=unit.id,
                error="compilation failed",
                stderr=self._failure,
                return_code=1,
            )

        missing = [s for s in unit.symbols if s not in self._values]
        if missing:
            stderr = "\n".join(
                f"probe.c:{i + 20}:17: error: '{s}' undeclared (first use in this function)"
                for i, s in enumerate(missing)
            )
            return ProbeResult.failure(
                executor=self._name,
                unit_id=unit.id,
                error="compilation failed",
                stderr=stderr,
                return_code=1,
            )

        lines = ["\t.text"]
        for symbol in unit.symbols:
            lines.append(f'\t.ascii "{VALUE_MARKER} {symbol} {self._prefix}{self._values[symbol]}"')
        return ProbeResult.success(
            executor=self._name,
            unit_id=unit.id,
            output="\n".join(lines) + "\n",
            return_code=0,
            metadata={"mock": True},
        )

    def reset(self) -> None:
        """Clear call log and any configured failure."""
        self._call_log.clear()
        self._failure = None
