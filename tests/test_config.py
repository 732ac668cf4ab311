"""
Tests for configuration loading — kconstx.yml parsing and validation.
"""

import textwrap
from pathlib import Path

import pytest

from kconstx.core.config.loader import (
    CC_ENV_VAR,
    ConfigError,
    ExtractSettings,
    find_config_file,
    load_settings,
)
from kconstx.core.engine.probe import DEFAULT_BATCH_SIZE, DEFAULT_MAX_WORKERS


@pytest.fixture
def config_yml(tmp_path: Path) -> Path:
    """Create a kconstx.yml in a temp directory."""
    content = textwrap.dedent("""\
        toolchain: clang
        timeout: 30
        batch_size: 100
        max_workers: 8
        compilers:
          arm64: aarch64-linux-gnu-gcc
          arm: arm-linux-gnueabi-gcc
    """)
    path = tmp_path / "kconstx.yml"
    path.write_text(content)
    return path


class TestLoadSettings:
    def test_load_valid(self, config_yml: Path):
        settings = load_settings(config_yml)
        assert settings.toolchain == "clang"
        assert settings.timeout == 30
        assert settings.batch_size == 100
        assert settings.max_workers == 8
        assert settings.strict is False

    def test_defaults_without_file(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        settings = load_settings()
        assert settings.toolchain == "gcc"
        assert settings.batch_size == DEFAULT_BATCH_SIZE
        assert settings.max_workers == DEFAULT_MAX_WORKERS

    def test_empty_file_gives_defaults(self, tmp_path: Path):
        path = tmp_path / "kconstx.yml"
        path.write_text("")
        assert load_settings(path) == ExtractSettings()

    def test_explicit_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_settings(tmp_path / "nope.yml")

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "kconstx.yml"
        path.write_text("toolchain: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_settings(path)

    def test_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "kconstx.yml"
        path.write_text("- gcc\n- clang\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_settings(path)

    def test_invalid_value(self, tmp_path: Path):
        path = tmp_path / "kconstx.yml"
        path.write_text("batch_size: 0\n")
        with pytest.raises(ConfigError, match="batch_size"):
            load_settings(path)


class TestFindConfigFile:
    def test_walks_up(self, config_yml: Path):
        nested = config_yml.parent / "sys" / "linux"
        nested.mkdir(parents=True)
        assert find_config_file(nested) == config_yml.resolve()

    def test_not_found(self, tmp_path: Path):
        # tmp dirs live outside any project, but guard against a stray file
        found = find_config_file(tmp_path)
        assert found is None or not found.is_relative_to(tmp_path)


class TestSettings:
    def test_merged_ignores_none(self, config_yml: Path):
        settings = load_settings(config_yml).merged(toolchain=None, timeout=5.0)
        assert settings.toolchain == "clang"
        assert settings.timeout == 5.0

    def test_merged_validates(self):
        with pytest.raises(ConfigError, match="max_workers"):
            ExtractSettings().merged(max_workers=0)

    def test_negative_timeout(self):
        with pytest.raises(ConfigError, match="timeout"):
            ExtractSettings().merged(timeout=-1)

    def test_compiler_precedence(self, config_yml: Path, monkeypatch):
        monkeypatch.setenv(CC_ENV_VAR, "env-cc")
        settings = load_settings(config_yml)
        assert settings.compiler_for("arm64") == "aarch64-linux-gnu-gcc"
        assert settings.compiler_for("amd64") == "env-cc"
        settings = settings.merged(compiler="x86_64-linux-gnu-gcc")
        assert settings.compiler_for("amd64") == "x86_64-linux-gnu-gcc"
        assert settings.compiler_for("arm") == "arm-linux-gnueabi-gcc"

    def test_compiler_default_empty(self, monkeypatch):
        monkeypatch.delenv(CC_ENV_VAR, raising=False)
        assert ExtractSettings().compiler_for("amd64") == ""
