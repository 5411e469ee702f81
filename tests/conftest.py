"""Summary: Shared fixtures for FinanceAI tests.

Importance: Gives every test an isolated SQLite file and a complete configuration.
Alternatives: Build AppConfig by hand inside each test module.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from financeai.config import AppConfig
from financeai.models import Account, User
from financeai.storage.auth_repository import DISCORD_PROVIDER, AccountRepository, AuthRepository
from financeai.storage.database import Database
from financeai.storage.expense_repository import ExpenseRepository


def make_config(tmp_path: Path, **overrides: object) -> AppConfig:
    values: dict[str, object] = {
        "host": "127.0.0.1",
        "port": 3333,
        "database_url": f"file:{tmp_path / 'financeai.db'}",
        "database_auth_token": "token",
        "discord_bot_token": "bot-token",
        "discord_client_id": "123456789",
        "discord_client_secret": "client-secret",
        "auth_base_url": "http://localhost:3333",
        "trusted_origins": ["http://localhost:8080"],
        "log_level": "INFO",
        "ai_provider": "mock",
        "openai_api_key": None,
        "openai_model": "gpt-4o-mini",
        "ollama_url": "http://localhost:11434",
        "ollama_model": "llama3",
        "agent_max_steps": 20,
        "transcription_provider": "mock",
        "groq_api_key": None,
        "groq_transcription_model": "whisper-large-v3-turbo",
        "transcription_language": "pt",
        "test_mode": True,
    }
    values.update(overrides)
    return AppConfig(**values)


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return make_config(tmp_path)


@pytest.fixture
def database(config: AppConfig) -> Database:
    database = Database(config.database_path, test_mode=True)
    database.initialize()
    return database


@pytest.fixture
def users(database: Database) -> AuthRepository:
    return AuthRepository(database)


@pytest.fixture
def accounts(database: Database) -> AccountRepository:
    return AccountRepository(database)


@pytest.fixture
def expenses(database: Database) -> ExpenseRepository:
    return ExpenseRepository(database)


def link_discord_user(
    users: AuthRepository,
    accounts: AccountRepository,
    discord_id: str = "42",
    name: str = "Ana",
) -> User:
    """Create a user with a linked Discord account."""

    user = users.create(User(name=name, email=f"{discord_id}@example.com"))
    accounts.create(Account(account_id=discord_id, provider_id=DISCORD_PROVIDER, user_id=user.id))
    return user
