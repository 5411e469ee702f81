"""Summary: Domain model dataclasses for FinanceAI.

Importance: Defines the entities shared across repositories, services, and the bot.
Alternatives: Use Pydantic models or ORM classes directly.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    """Return the current UTC time as an aware datetime."""

    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class ExpenseCategory(str, Enum):
    """Summary: Fixed set of expense categories.

    Importance: Keeps categorization consistent between the agent, storage, and commands.
    Alternatives: Store free-form category labels per user.
    """

    ESSENTIALS = "essentials"
    LEISURE = "leisure"
    INVESTMENTS = "investments"
    KNOWLEDGE = "knowledge"
    EMERGENCY = "emergency"

    @classmethod
    def parse(cls, value: str | ExpenseCategory) -> ExpenseCategory:
        """Summary: Resolve a category from its stored value.

        Importance: Rejects anything outside the enumeration with a clear message.
        Alternatives: Let the database enforce a CHECK constraint only.
        """

        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            valid = ", ".join(item.value for item in cls)
            raise ValueError(f"Invalid category '{value}'. Valid categories: {valid}") from exc


CATEGORY_LABELS: dict[ExpenseCategory, str] = {
    ExpenseCategory.ESSENTIALS: "🏠 Essenciais",
    ExpenseCategory.LEISURE: "🎉 Lazer",
    ExpenseCategory.INVESTMENTS: "📈 Investimentos",
    ExpenseCategory.KNOWLEDGE: "📚 Conhecimento",
    ExpenseCategory.EMERGENCY: "🚨 Emergência",
}


@dataclass(frozen=True, kw_only=True)
class Entity:
    """Summary: Base record with identity and timestamps.

    Importance: Gives every persisted entity a stable id and audit timestamps.
    Alternatives: Let the database assign integer keys on insert.
    """

    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    deleted_at: datetime | None = None

    def touch(self, **changes: object):
        """Return a copy with ``changes`` applied and ``updated_at`` refreshed."""

        now = utcnow()
        return replace(self, **changes, updated_at=max(now, self.updated_at))


@dataclass(frozen=True, kw_only=True)
class User(Entity):
    """Summary: Represents a person linked to one or more provider accounts.

    Importance: Owns expenses and carries profile data used by the agent.
    Alternatives: Key everything directly on the Discord user id.
    """

    name: str
    email: str
    email_verified: bool = False
    image: str | None = None
    monthly_salary: float | None = None

    def update_salary(self, salary: float) -> User:
        return self.touch(monthly_salary=salary)

    def verify_email(self) -> User:
        return self.touch(email_verified=True)


@dataclass(frozen=True, kw_only=True)
class Account(Entity):
    """Summary: Links an external provider identity to an internal user.

    Importance: Drives authentication lookups from Discord ids.
    Alternatives: Store the Discord id as a column on the user record.
    """

    account_id: str
    provider_id: str
    user_id: str
    access_token: str | None = None
    refresh_token: str | None = None
    scope: str | None = None


@dataclass(frozen=True, kw_only=True)
class Expense(Entity):
    """Summary: Represents a single expense owned by a user.

    Importance: Core unit recorded, listed, and summarized by the assistant.
    Alternatives: Store expenses as generic ledger transactions.
    """

    date: str
    description: str
    amount: float
    category: ExpenseCategory
    user_id: str
    is_recurring: bool = False

    def update_amount(self, amount: float) -> Expense:
        return self.touch(amount=amount)

    def update_category(self, category: ExpenseCategory | str) -> Expense:
        return self.touch(category=ExpenseCategory.parse(category))

    def update_description(self, description: str) -> Expense:
        return self.touch(description=description)

    @property
    def formatted_amount(self) -> str:
        return format_currency(self.amount)

    def is_essential(self) -> bool:
        return self.category is ExpenseCategory.ESSENTIALS

    def is_emergency(self) -> bool:
        return self.category is ExpenseCategory.EMERGENCY

    def is_investment(self) -> bool:
        return self.category is ExpenseCategory.INVESTMENTS


@dataclass(frozen=True)
class CategoryTotal:
    """Summary: Aggregate of expenses for one category.

    Importance: Feeds category reports without loading every expense.
    Alternatives: Aggregate in Python after listing all expenses.
    """

    category: ExpenseCategory
    total: float
    count: int


def format_currency(amount: float) -> str:
    return f"R$ {amount:.2f}"


def today_iso() -> str:
    return date.today().isoformat()
