"""Summary: Application configuration for FinanceAI.

Importance: Centralizes environment, .env, and config defaults for consistent behavior.
Alternatives: Use a dedicated settings library like Pydantic Settings.
"""

from __future__ import annotations

import json
import os
import urllib.parse
from dataclasses import dataclass
from pathlib import Path

from financeai.errors import ConfigError


AI_PROVIDERS = {"mock", "openai", "ollama"}
TRANSCRIPTION_PROVIDERS = {"mock", "groq"}
REQUIRED_SETTINGS = {
    "database_url": "DATABASE_URL",
    "database_auth_token": "DATABASE_AUTH_TOKEN",
    "discord_bot_token": "DISCORD_BOT_TOKEN",
    "discord_client_id": "DISCORD_CLIENT_ID",
    "discord_client_secret": "DISCORD_CLIENT_SECRET",
}


@dataclass(frozen=True)
class AppConfig:
    """Summary: Holds configuration values for Discord, storage, and AI providers.

    Importance: Ensures all services derive settings from a single source of truth.
    Alternatives: Read environment variables ad hoc inside each service.
    """

    host: str
    port: int
    database_url: str
    database_auth_token: str
    discord_bot_token: str
    discord_client_id: str
    discord_client_secret: str
    auth_base_url: str
    trusted_origins: list[str]
    log_level: str
    ai_provider: str
    openai_api_key: str | None
    openai_model: str
    ollama_url: str
    ollama_model: str
    agent_max_steps: int
    transcription_provider: str
    groq_api_key: str | None
    groq_transcription_model: str
    transcription_language: str
    test_mode: bool = False

    @staticmethod
    def from_env(defaults_path: Path | None = None) -> "AppConfig":
        """Summary: Build configuration from defaults, .env, and environment.

        Importance: Keeps all variables defined in config defaults while allowing overrides.
        Alternatives: Parse only environment variables without a defaults file.
        """

        defaults = load_defaults(defaults_path or Path("config") / "defaults.json")
        load_dotenv(Path(".env"))
        port = os.getenv("PORT", defaults["port"])
        max_steps = os.getenv("FINANCEAI_AGENT_MAX_STEPS", defaults["agent_max_steps"])
        config = AppConfig(
            host=os.getenv("HOST", defaults["host"]),
            port=_parse_int("PORT", port),
            database_url=os.getenv("DATABASE_URL", defaults["database_url"]),
            database_auth_token=os.getenv("DATABASE_AUTH_TOKEN", defaults["database_auth_token"]),
            discord_bot_token=os.getenv("DISCORD_BOT_TOKEN", defaults["discord_bot_token"]),
            discord_client_id=os.getenv("DISCORD_CLIENT_ID", defaults["discord_client_id"]),
            discord_client_secret=os.getenv(
                "DISCORD_CLIENT_SECRET", defaults["discord_client_secret"]
            ),
            auth_base_url=os.getenv("AUTH_BASE_URL", defaults["auth_base_url"]).rstrip("/"),
            trusted_origins=_split_list(
                os.getenv("TRUSTED_ORIGINS", defaults["trusted_origins"])
            ),
            log_level=os.getenv("LOG_LEVEL", defaults["log_level"]).upper(),
            ai_provider=os.getenv("FINANCEAI_AI_PROVIDER", defaults["ai_provider"]),
            openai_api_key=os.getenv("OPENAI_API_KEY") or defaults["openai_api_key"] or None,
            openai_model=os.getenv("OPENAI_MODEL", defaults["openai_model"]),
            ollama_url=os.getenv("OLLAMA_URL", defaults["ollama_url"]),
            ollama_model=os.getenv("OLLAMA_MODEL", defaults["ollama_model"]),
            agent_max_steps=_parse_int("FINANCEAI_AGENT_MAX_STEPS", max_steps),
            transcription_provider=os.getenv(
                "FINANCEAI_TRANSCRIPTION_PROVIDER", defaults["transcription_provider"]
            ),
            groq_api_key=os.getenv("GROQ_API_KEY") or defaults["groq_api_key"] or None,
            groq_transcription_model=os.getenv(
                "GROQ_TRANSCRIPTION_MODEL", defaults["groq_transcription_model"]
            ),
            transcription_language=os.getenv(
                "FINANCEAI_TRANSCRIPTION_LANGUAGE", defaults["transcription_language"]
            ),
            test_mode=os.getenv("FINANCEAI_ENV", "").lower() == "test",
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Summary: Check required settings and value ranges.

        Importance: Aborts startup on missing secrets instead of failing mid-request.
        Alternatives: Validate each setting lazily where it is used.
        """

        missing = [env for attr, env in REQUIRED_SETTINGS.items() if not getattr(self, attr)]
        if missing:
            raise ConfigError(f"Missing required settings: {', '.join(missing)}")
        if not 0 < self.port < 65536:
            raise ConfigError(f"PORT must be between 1 and 65535, got {self.port}")
        sqlite_path(self.database_url)
        if self.ai_provider not in AI_PROVIDERS:
            raise ConfigError(f"Unknown AI provider: {self.ai_provider}")
        if self.transcription_provider not in TRANSCRIPTION_PROVIDERS:
            raise ConfigError(f"Unknown transcription provider: {self.transcription_provider}")
        if self.agent_max_steps < 1:
            raise ConfigError("FINANCEAI_AGENT_MAX_STEPS must be at least 1")

    @property
    def database_path(self) -> str:
        return sqlite_path(self.database_url)

    @property
    def login_url(self) -> str:
        return f"{self.auth_base_url}/login/discord"


def sqlite_path(database_url: str) -> str:
    """Summary: Resolve a filesystem path from a DATABASE_URL.

    Importance: Accepts the URL forms used in deployment files while staying on sqlite3.
    Alternatives: Require a bare filesystem path.
    """

    parsed = urllib.parse.urlparse(database_url)
    if parsed.scheme == "file":
        path = parsed.path or parsed.netloc
    elif parsed.scheme in {"sqlite", "sqlite3"}:
        # sqlite:///relative.db and sqlite:////absolute.db
        path = parsed.path[1:]
    else:
        raise ConfigError(
            f"Unsupported DATABASE_URL '{database_url}': expected a file: or sqlite:/// URL"
        )
    if not path:
        raise ConfigError(f"DATABASE_URL '{database_url}' does not name a database file")
    return path


def load_defaults(path: Path) -> dict[str, str]:
    """Summary: Load configuration defaults from JSON.

    Importance: Ensures all variables exist in a single config file.
    Alternatives: Inline defaults in the AppConfig initializer.
    """

    if not path.exists():
        raise FileNotFoundError(f"Defaults file not found: {path}")
    return json.loads(path.read_text(encoding="utf-8"))


def load_dotenv(path: Path) -> None:
    """Summary: Load key-value pairs from a .env file into the environment.

    Importance: Keeps secrets out of code while supporting local workflows.
    Alternatives: Use python-dotenv or OS-specific secret stores.
    """

    if not path.exists():
        return
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip().strip('"').strip("'"))


def _parse_int(name: str, value: str | int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]
