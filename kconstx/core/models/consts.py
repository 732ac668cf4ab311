"""
Constant models — the request and the answer.

``ConstantInfo`` is what a description asks for: symbol names plus the
includes, include directories and defines they need. ``ConstantMap`` is
what the probe engine answers: name to unsigned 64-bit value.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

U64_MAX = (1 << 64) - 1

ConstantMap = dict[str, int]


class ConstantInfo(BaseModel):
    """Constants requested by one description. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    names: tuple[str, ...] = ()         # first-appearance order, no dupes
    includes: tuple[str, ...] = ()      # #include order
    incdirs: tuple[str, ...] = ()
    defines: dict[str, str | None] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        """Nothing to extract."""
        return not self.names
