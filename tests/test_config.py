"""Summary: Tests for configuration loading.

Importance: Ensures defaults, .env, and environment overrides behave correctly.
Alternatives: Validate configuration manually during runtime.
"""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path

import pytest

from financeai.config import AppConfig, load_defaults, load_dotenv, sqlite_path
from financeai.errors import ConfigError


DEFAULTS_PATH = Path(__file__).resolve().parents[1] / "config" / "defaults.json"

REQUIRED_ENV = {
    "DATABASE_URL": "file:finance.db",
    "DATABASE_AUTH_TOKEN": "token",
    "DISCORD_BOT_TOKEN": "bot",
    "DISCORD_CLIENT_ID": "123",
    "DISCORD_CLIENT_SECRET": "secret",
}


def _set_required(monkeypatch: pytest.MonkeyPatch) -> None:
    for key, value in REQUIRED_ENV.items():
        monkeypatch.setenv(key, value)


def test_load_defaults_reads_json(tmp_path: Path) -> None:
    defaults_path = tmp_path / "defaults.json"
    defaults_path.write_text("{\"port\": \"3333\"}", encoding="utf-8")
    assert load_defaults(defaults_path)["port"] == "3333"


def test_load_dotenv_sets_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Summary: Ensure .env values populate environment variables.

    Importance: Validates local secret loading without external tools.
    Alternatives: Assume OS environment is always set.
    """

    env_path = tmp_path / ".env"
    env_path.write_text("# comment\nFINANCEAI_AI_PROVIDER='ollama'\n", encoding="utf-8")
    monkeypatch.delenv("FINANCEAI_AI_PROVIDER", raising=False)
    load_dotenv(env_path)
    assert os.getenv("FINANCEAI_AI_PROVIDER") == "ollama"


def test_from_env_reads_required_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_required(monkeypatch)
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("TRUSTED_ORIGINS", "http://a.test, http://b.test")
    monkeypatch.setenv("AUTH_BASE_URL", "https://finance.test/")
    config = AppConfig.from_env(DEFAULTS_PATH)
    assert config.port == 8080
    assert config.trusted_origins == ["http://a.test", "http://b.test"]
    assert config.auth_base_url == "https://finance.test"
    assert config.login_url == "https://finance.test/login/discord"
    assert config.database_path == "finance.db"


def test_from_env_reports_every_missing_setting(monkeypatch: pytest.MonkeyPatch) -> None:
    """Summary: Verify startup aborts listing all missing required variables.

    Importance: Operators fix configuration in one pass.
    Alternatives: Fail on the first missing variable.
    """

    for key in REQUIRED_ENV:
        monkeypatch.setenv(key, "")
    with pytest.raises(ConfigError) as excinfo:
        AppConfig.from_env(DEFAULTS_PATH)
    for key in REQUIRED_ENV:
        assert key in str(excinfo.value)


def test_from_env_rejects_non_numeric_port(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_required(monkeypatch)
    monkeypatch.setenv("PORT", "abc")
    with pytest.raises(ConfigError):
        AppConfig.from_env(DEFAULTS_PATH)


def test_validate_rejects_unknown_providers(config: AppConfig) -> None:
    with pytest.raises(ConfigError):
        replace(config, ai_provider="anthropic").validate()
    with pytest.raises(ConfigError):
        replace(config, transcription_provider="whisper").validate()


def test_sqlite_path_accepts_supported_urls() -> None:
    assert sqlite_path("file:local.db") == "local.db"
    assert sqlite_path("sqlite:///data/app.db") == "data/app.db"
    assert sqlite_path("sqlite:////var/app.db") == "/var/app.db"
    with pytest.raises(ConfigError):
        sqlite_path("libsql://remote.turso.io")
