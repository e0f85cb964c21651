"""Integration tests for layered configuration loading."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from playarr.infrastructure.config import load_config

pytestmark = pytest.mark.integration


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch):
    for name in list(os.environ):
        if name.startswith("PLAYARR_"):
            monkeypatch.delenv(name)
    yield
    # load_dotenv writes into os.environ directly
    for name in list(os.environ):
        if name.startswith("PLAYARR_"):
            del os.environ[name]


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_defaults_only(self) -> None:
        cfg = load_config()
        assert cfg.environment == "dev"
        assert cfg.log_format == "console"
        assert cfg.resolution.cache_ttl_seconds == 3600
        assert cfg.voe.markers == ["@#", "^^", "~@", "%?", "*~", "!!", "#&"]

    def test_yaml_overrides_defaults(self, tmp_path: Path) -> None:
        config_path = _write(
            tmp_path / "config.yaml",
            "environment: prod\n"
            "http:\n  timeout_seconds: 5\n"
            "resolution:\n  cache_ttl_seconds: 600\n  provider_order: [filmpalast]\n"
            "filmpalast:\n  domains: [filmpalast.sx, filmpalast.to]\n",
        )
        cfg = load_config(config_path=config_path)

        assert cfg.environment == "prod"
        assert cfg.log_format == "json"
        assert cfg.http_timeout_seconds == 5.0
        assert cfg.resolution.cache_ttl_seconds == 600
        assert cfg.resolution.provider_order == ["filmpalast"]
        assert cfg.filmpalast.domains == ["filmpalast.sx", "filmpalast.to"]
        # Untouched keys of a section keep their defaults
        assert cfg.resolution.cache_max_entries == 10_000

    def test_env_overrides_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_path = _write(tmp_path / "config.yaml", "logging:\n  level: WARNING\n")
        monkeypatch.setenv("PLAYARR_LOG_LEVEL", "ERROR")
        monkeypatch.setenv("PLAYARR_FILMPALAST_DOMAINS", "filmpalast.to,filmpalast.sx")

        cfg = load_config(config_path=config_path)
        assert cfg.log_level == "ERROR"
        assert cfg.filmpalast.domains == ["filmpalast.to", "filmpalast.sx"]

    def test_cli_overrides_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PLAYARR_LOG_LEVEL", "ERROR")
        cfg = load_config(cli_overrides={"log_level": "DEBUG", "log_format": "json"})
        assert cfg.log_level == "DEBUG"
        assert cfg.log_format == "json"

    def test_dotenv_file(self, tmp_path: Path) -> None:
        dotenv_path = _write(tmp_path / ".env", "PLAYARR_CACHE_TTL_SECONDS=90\n")
        cfg = load_config(dotenv_path=dotenv_path)
        assert cfg.resolution.cache_ttl_seconds == 90

    def test_real_env_beats_dotenv(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PLAYARR_CACHE_TTL_SECONDS", "30")
        dotenv_path = _write(tmp_path / ".env", "PLAYARR_CACHE_TTL_SECONDS=90\n")
        assert load_config(dotenv_path=dotenv_path).resolution.cache_ttl_seconds == 30

    def test_empty_yaml(self, tmp_path: Path) -> None:
        cfg = load_config(config_path=_write(tmp_path / "config.yaml", ""))
        assert cfg.app_name == "playarr"

    def test_missing_config_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(config_path=tmp_path / "missing.yaml")

    def test_missing_dotenv_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(dotenv_path=tmp_path / ".env")

    def test_yaml_must_be_mapping(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="mapping"):
            load_config(config_path=_write(tmp_path / "config.yaml", "- a\n- b\n"))

    def test_invalid_value(self, tmp_path: Path) -> None:
        config_path = _write(tmp_path / "config.yaml", "matching:\n  title_match_threshold: 2\n")
        with pytest.raises(ValidationError):
            load_config(config_path=config_path)
