"""
Shared test fixtures and configuration.
"""

import textwrap
from pathlib import Path

import pytest

from kconstx.adapters.mock import MockProbeExecutor
from kconstx.adapters.registry import ExecutorRegistry


@pytest.fixture
def kernel_tree(tmp_path: Path) -> Path:
    """Return an (empty) kernel source directory."""
    linux = tmp_path / "linux"
    linux.mkdir()
    return linux


@pytest.fixture
def mock_executor() -> MockProbeExecutor:
    """A mock executor knowing a handful of amd64 values."""
    return MockProbeExecutor(
        values={
            "EINVAL": 22,
            "O_NONBLOCK": 2048,
            "O_RDONLY": 0,
            "O_WRONLY": 1,
            "AT_FDCWD": -100,
            "__NR_open": 2,
            "__NR_read": 0,
            "FIONREAD": 0x541B,
        },
        executor_name="gcc",
    )


@pytest.fixture
def mock_registry(mock_executor: MockProbeExecutor) -> ExecutorRegistry:
    """A registry that routes every unit to ``mock_executor``."""
    registry = ExecutorRegistry()
    registry.register(mock_executor)
    return registry


@pytest.fixture
def write_description(tmp_path: Path):
    """Write a dedented description file and return its path."""

    def _write(content: str, name: str = "sys.txt") -> Path:
        path = tmp_path / "sys" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content))
        return path

    return _write
