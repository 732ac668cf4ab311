"""
Executor registry — central dispatch for probe executors.

The probe engine reaches executors only through the registry. It
handles registration, lookup, mock mode, and unit execution.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from kconstx.adapters.base import ProbeExecutor, ProbeResult, ProbeUnit, elapsed_ms

logger = logging.getLogger(__name__)


class ExecutorRegistry:
    """Central registry and dispatcher for probe executors.

    Features:
        - Register/unregister executors by name
        - Mock mode: route every unit to one mock executor
        - Execute units through the named executor
        - Query executor availability
    """

    def __init__(self, mock_executor: ProbeExecutor | None = None):
        self._executors: dict[str, ProbeExecutor] = {}
        self._mock_executor = mock_executor

    @property
    def mock_mode(self) -> bool:
        return self._mock_executor is not None

    def set_mock_mode(self, mock_executor: ProbeExecutor | None) -> None:
        """Route every unit to ``mock_executor`` (None turns mock mode off)."""
        self._mock_executor = mock_executor

    def register(self, executor: ProbeExecutor) -> None:
        """Register an executor."""
        name = executor.name
        if name in self._executors:
            logger.warning("Overwriting existing executor: %s", name)
        self._executors[name] = executor
        logger.debug("Registered executor: %s", name)

    def unregister(self, name: str) -> None:
        """Remove an executor from the registry."""
        self._executors.pop(name, None)

    def get(self, name: str) -> ProbeExecutor | None:
        """Look up an executor by name."""
        return self._executors.get(name)

    def list_executors(self) -> list[str]:
        """List all registered executor names."""
        return list(self._executors.keys())

    def executor_status(self) -> dict[str, dict[str, Any]]:
        """Get availability status of all registered executors."""
        status = {}
        for name, executor in self._executors.items():
            try:
                available = executor.is_available()
            except Exception:
                available = False
            status[name] = {
                "name": name,
                "available": available,
                "type": executor.__class__.__name__,
            }
        return status

    def run(self, executor_name: str, unit: ProbeUnit) -> ProbeResult:
        """Compile a unit through the named executor (or the mock).

        Resolves the executor, validates the unit, executes it and
        stamps the duration. Never raises.
        """
        start = time.monotonic()

        executor = self._mock_executor or self._executors.get(executor_name)
        if executor is None:
            return ProbeResult.failure(
                executor=executor_name,
                unit_id=unit.id,
                error=f"No executor registered for '{executor_name}'",
            )

        try:
            is_valid, error_msg = executor.validate(unit)
            if not is_valid:
                return ProbeResult.failure(
                    executor=executor.name,
                    unit_id=unit.id,
                    error=f"Validation failed: {error_msg}",
                )
        except Exception as e:
            return ProbeResult.failure(
                executor=executor.name,
                unit_id=unit.id,
                error=f"Validation error: {e}",
            )

        try:
            result = executor.execute(unit)
        except Exception as e:
            logger.error("Executor %s raised during execution: %s", executor.name, e)
            result = ProbeResult.failure(
                executor=executor.name,
                unit_id=unit.id,
                error=f"Unexpected error: {e}",
            )

        result.duration_ms = elapsed_ms(start)
        logger.debug(
            "Unit %s via %s: %s (%dms)",
            unit.id, executor.name, result.status, result.duration_ms,
        )
        return result


def default_registry() -> ExecutorRegistry:
    """A registry with the gcc and clang executors registered."""
    from kconstx.adapters.toolchain.compiler import ClangExecutor, GccExecutor

    registry = ExecutorRegistry()
    registry.register(GccExecutor())
    registry.register(ClangExecutor())
    return registry
