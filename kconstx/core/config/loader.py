"""
Configuration loader — reads kconstx.yml into ExtractSettings.

The file is optional: without one every setting takes its default.
Command-line flags override whatever the file says; ``KCONSTX_CC``
overrides the compiler binary.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from kconstx.core.engine.probe import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_WORKERS,
    DEFAULT_TIMEOUT,
)

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "kconstx.yml"

CC_ENV_VAR = "KCONSTX_CC"


class ConfigError(Exception):
    """Raised when configuration is invalid or unreadable."""


class ExtractSettings(BaseModel):
    """Tunables for one extraction run."""

    toolchain: str = "gcc"                  # executor name
    compiler: str = ""                      # binary override for every arch
    compilers: dict[str, str] = Field(default_factory=dict)  # per-arch binary
    timeout: float = DEFAULT_TIMEOUT        # seconds per compiler call
    batch_size: int = DEFAULT_BATCH_SIZE
    max_workers: int = DEFAULT_MAX_WORKERS
    strict: bool = False

    @field_validator("timeout")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v

    @field_validator("batch_size", "max_workers")
    @classmethod
    def _positive_int(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    def compiler_for(self, arch: str) -> str:
        """Compiler binary for ``arch``; empty means the executor default.

        Precedence: per-arch entry > global ``compiler`` > KCONSTX_CC.
        """
        return self.compilers.get(arch) or self.compiler or os.environ.get(CC_ENV_VAR, "")

    def merged(self, **overrides: object) -> ExtractSettings:
        """A copy with every non-None override applied (and validated)."""
        data = self.model_dump()
        data.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return ExtractSettings.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid setting: {_first_error(e)}") from e


def _first_error(e: ValidationError) -> str:
    err = e.errors()[0]
    loc = ".".join(str(p) for p in err["loc"])
    return f"{loc}: {err['msg']}" if loc else err["msg"]


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for kconstx.yml starting from the given directory, walking up.

    Returns:
        Path to kconstx.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_settings(path: Path | None = None) -> ExtractSettings:
    """Load and validate settings.

    Args:
        path: Explicit path to kconstx.yml. If None, searches upward;
            if nothing is found, defaults are returned.

    Raises:
        ConfigError: If the file is missing (explicit path) or invalid.
    """
    if path is None:
        path = find_config_file()
        if path is None:
            logger.debug("No %s found, using defaults", CONFIG_FILE)
            return ExtractSettings()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return ExtractSettings()

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        settings = ExtractSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {_first_error(e)}") from e

    logger.info("Loaded settings from %s", path)
    return settings
