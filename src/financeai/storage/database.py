"""Summary: SQLite database access for FinanceAI.

Importance: Owns connections, schema creation, and transaction scopes for all repositories.
Alternatives: Use an ORM or an external database server.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Iterator


logger = logging.getLogger(__name__)

TransactionScope = sqlite3.Connection

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        email_verified INTEGER NOT NULL DEFAULT 0,
        image TEXT,
        monthly_salary REAL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS accounts (
        id TEXT PRIMARY KEY,
        account_id TEXT NOT NULL,
        provider_id TEXT NOT NULL,
        user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        access_token TEXT,
        refresh_token TEXT,
        scope TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        UNIQUE(provider_id, account_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS expenses (
        id TEXT PRIMARY KEY,
        date TEXT NOT NULL,
        description TEXT NOT NULL,
        amount REAL NOT NULL,
        category TEXT NOT NULL CHECK (
            category IN ('essentials', 'leisure', 'investments', 'knowledge', 'emergency')
        ),
        is_recurring INTEGER NOT NULL DEFAULT 0,
        user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_expenses_user_created ON expenses(user_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_accounts_user ON accounts(user_id)",
)


class Database:
    """Summary: SQLite-backed database handle shared by all repositories.

    Importance: Keeps connection settings and transaction handling in one place.
    Alternatives: Let each repository open its own connections.
    """

    def __init__(self, db_path: str, test_mode: bool = False) -> None:
        self._db_path = Path(db_path)
        self.test_mode = test_mode

    @property
    def path(self) -> Path:
        return self._db_path

    def initialize(self) -> None:
        """Summary: Create tables if they do not exist.

        Importance: Ensures the database is ready before the bot or web server start.
        Alternatives: Run migrations using a dedicated migration tool.
        """

        with self.transaction() as connection:
            for statement in SCHEMA:
                connection.execute(statement)
        logger.info("Database initialized at %s.", self._db_path)

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Summary: Context manager for SQLite connections.

        Importance: Ensures connections are closed cleanly after use.
        Alternatives: Keep a single long-lived connection.
        """

        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        try:
            yield connection
        finally:
            connection.close()

    @contextmanager
    def transaction(self) -> Iterator[TransactionScope]:
        """Summary: Run a block of repository calls atomically.

        Importance: Lets several operations commit or roll back together.
        Alternatives: Commit after every statement.
        """

        with self.connect() as connection:
            try:
                yield connection
            except Exception:
                connection.rollback()
                raise
            connection.commit()


def to_db(value: object) -> object:
    """Convert a Python value into something sqlite3 binds natively."""

    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    return value


def parse_timestamp(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)
