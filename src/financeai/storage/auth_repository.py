"""Summary: User and account persistence for Discord authentication.

Importance: Resolves Discord identities to internal users for every bot interaction.
Alternatives: Store the Discord id directly on the user record.
"""

from __future__ import annotations

import logging
import sqlite3

from financeai.models import Account, User
from financeai.storage.database import Database, TransactionScope, parse_timestamp
from financeai.storage.repository import Repository, Table, and_, contains, eq


logger = logging.getLogger(__name__)

DISCORD_PROVIDER = "discord"

USERS_TABLE = Table(
    name="users",
    columns=(
        "id",
        "name",
        "email",
        "email_verified",
        "image",
        "monthly_salary",
        "created_at",
        "updated_at",
    ),
)

ACCOUNTS_TABLE = Table(
    name="accounts",
    columns=(
        "id",
        "account_id",
        "provider_id",
        "user_id",
        "access_token",
        "refresh_token",
        "scope",
        "created_at",
        "updated_at",
    ),
)


def map_user(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        email_verified=bool(row["email_verified"]),
        image=row["image"],
        monthly_salary=row["monthly_salary"],
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
    )


def map_account(row: sqlite3.Row) -> Account:
    return Account(
        id=row["id"],
        account_id=row["account_id"],
        provider_id=row["provider_id"],
        user_id=row["user_id"],
        access_token=row["access_token"],
        refresh_token=row["refresh_token"],
        scope=row["scope"],
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
    )


class AuthRepository(Repository[User]):
    """Summary: Repository for users with Discord identity lookups.

    Importance: Backs the authentication check run before each message is handled.
    Alternatives: Query accounts and users separately in the service layer.
    """

    def __init__(self, database: Database) -> None:
        super().__init__(database, USERS_TABLE, map_user)

    def find_user_by_discord_id(
        self, discord_id: str, transaction: TransactionScope | None = None
    ) -> User | None:
        """Summary: Find the user linked to a Discord account.

        Importance: Single join keeps the auth check to one round trip.
        Alternatives: Look up the account first and then the user.
        """

        def operation(connection: sqlite3.Connection) -> User | None:
            row = connection.execute(
                """
                SELECT users.* FROM users
                INNER JOIN accounts ON accounts.user_id = users.id
                WHERE accounts.account_id = ? AND accounts.provider_id = ?
                LIMIT 1
                """,
                (discord_id, DISCORD_PROVIDER),
            ).fetchone()
            return map_user(row) if row else None

        return self._execute(operation, transaction)

    def find_users_by_name(self, name: str) -> list[User]:
        return self.find_all(contains("name", name))

    def find_by_email(self, email: str, transaction: TransactionScope | None = None) -> User | None:
        users = self.find_all(eq("email", email), transaction)
        return users[0] if users else None

    def update_user_salary(self, user_id: str, salary: float) -> User:
        logger.info("Updating monthly salary for user %s.", user_id)
        return self.update(user_id, {"monthly_salary": salary})

    def verify_user_email(self, user_id: str) -> User:
        return self.update(user_id, {"email_verified": True})


class AccountRepository(Repository[Account]):
    """Summary: Repository for external provider accounts.

    Importance: Lets the OAuth handler link Discord identities to users.
    Alternatives: Keep provider accounts as JSON on the user row.
    """

    def __init__(self, database: Database) -> None:
        super().__init__(database, ACCOUNTS_TABLE, map_account)

    def find_by_provider_account(
        self,
        provider_id: str,
        account_id: str,
        transaction: TransactionScope | None = None,
    ) -> Account | None:
        accounts = self.find_all(
            and_(eq("provider_id", provider_id), eq("account_id", account_id)), transaction
        )
        return accounts[0] if accounts else None

    def find_discord_account_for_user(self, user_id: str) -> Account | None:
        accounts = self.find_all(and_(eq("user_id", user_id), eq("provider_id", DISCORD_PROVIDER)))
        return accounts[0] if accounts else None
