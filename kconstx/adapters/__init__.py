"""Adapters — probe executors that drive external toolchains.

Public re-exports for convenient access.
"""

from kconstx.adapters.base import ProbeExecutor, ProbeResult, ProbeUnit
from kconstx.adapters.mock import MockProbeExecutor
from kconstx.adapters.registry import ExecutorRegistry

__all__ = [
    "ExecutorRegistry",
    "MockProbeExecutor",
    "ProbeExecutor",
    "ProbeResult",
    "ProbeUnit",
]
