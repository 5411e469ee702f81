"""Summary: Core application services for FinanceAI.

Importance: Orchestrates authentication checks, expense use cases, and login notifications.
Alternatives: Build a full service layer with a dependency injection framework.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import discord

from financeai.errors import AppError
from financeai.models import (
    CATEGORY_LABELS,
    CategoryTotal,
    Expense,
    ExpenseCategory,
    User,
    today_iso,
)
from financeai.storage.auth_repository import AccountRepository, AuthRepository
from financeai.storage.expense_repository import ExpenseFilters, ExpenseRepository


logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_USER_NAME = "Usuário"
AUTH_CHECK_FAILED_MESSAGE = "❌ Erro ao verificar autenticação. Tente novamente."


@dataclass(frozen=True)
class AuthCheckResult:
    """Summary: Outcome of resolving a Discord user to an internal user.

    Importance: Lets the bot branch on authentication without exceptions.
    Alternatives: Raise an Unauthorized error for unlinked users.
    """

    is_authenticated: bool
    user_id: str | None = None
    user_name: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class AuthService:
    """Summary: Translates account lookups into authentication state.

    Importance: Every bot interaction starts with this check.
    Alternatives: Check sessions directly inside the Discord handlers.
    """

    users: AuthRepository
    auth_base_url: str

    @property
    def login_url(self) -> str:
        return f"{self.auth_base_url}/login/discord"

    def check_auth_and_get_message(self, discord_id: str) -> AuthCheckResult:
        """Summary: Resolve a Discord id to an authenticated context or a login prompt.

        Importance: Unlinked users are a normal outcome that yields a login link.
        Alternatives: Return None and let callers build the prompt.
        """

        try:
            user = self.users.find_user_by_discord_id(discord_id)
        except sqlite3.Error:
            logger.exception("Auth check failed for Discord user %s.", discord_id)
            return AuthCheckResult(is_authenticated=False, message=AUTH_CHECK_FAILED_MESSAGE)

        if user is None:
            return AuthCheckResult(is_authenticated=False, message=self.login_prompt())

        user_name = user.name or DEFAULT_USER_NAME
        return AuthCheckResult(
            is_authenticated=True,
            user_id=user.id,
            user_name=user_name,
            message=f"✅ Autenticado como {user_name}",
        )

    def login_prompt(self) -> str:
        return (
            "🔐 **Você precisa fazer login primeiro!**\n\n"
            "Para usar o bot, faça login com sua conta Discord:\n"
            f"👉 [REALIZAR LOGIN]({self.login_url})\n\n"
            "Após o login, volte aqui e envie seu comando novamente."
        )

    def get_user_by_id(self, user_id: str) -> User:
        user = self.users.find_by_id(user_id)
        if user is None:
            logger.warning("User %s not found.", user_id)
            raise AppError.not_found("User not found")
        return user

    def get_user_by_discord_id(self, discord_id: str) -> User:
        user = self.users.find_user_by_discord_id(discord_id)
        if user is None:
            logger.warning("No user linked to Discord id %s.", discord_id)
            raise AppError.not_found("User not found")
        return user


@dataclass(frozen=True)
class UseCaseResult(Generic[T]):
    """Summary: Uniform envelope returned by every expense use case.

    Importance: Callers such as the agent tools never have to catch exceptions.
    Alternatives: Raise domain errors and let each caller translate them.
    """

    success: bool
    data: T | None = None
    error: str | None = None

    @staticmethod
    def ok(data: Any = None) -> "UseCaseResult":
        return UseCaseResult(success=True, data=data)

    @staticmethod
    def fail(error: str) -> "UseCaseResult":
        return UseCaseResult(success=False, error=error)


@dataclass(frozen=True)
class CreateExpenseInput:
    description: str
    amount: float
    category: str
    date: str | None = None
    is_recurring: bool | None = None


@dataclass(frozen=True)
class UpdateExpenseInput:
    """Fields left as None are not touched."""

    description: str | None = None
    amount: float | None = None
    category: str | None = None
    date: str | None = None
    is_recurring: bool | None = None

    def changes(self) -> dict[str, object]:
        values = {
            "description": self.description,
            "amount": self.amount,
            "category": ExpenseCategory.parse(self.category) if self.category is not None else None,
            "date": self.date,
            "is_recurring": self.is_recurring,
        }
        return {key: value for key, value in values.items() if value is not None}


@dataclass(frozen=True)
class GetExpensesInput:
    user_id: str
    filters: ExpenseFilters = field(default_factory=ExpenseFilters)


@dataclass(frozen=True)
class ExpenseSummary:
    total: float
    by_category: list[CategoryTotal]
    start_date: str | None = None
    end_date: str | None = None


@dataclass(frozen=True)
class ExpenseUseCase:
    """Summary: Expense operations exposed to the agent and slash commands.

    Importance: Applies ownership and validation rules in one place.
    Alternatives: Let the agent write to the repository directly.
    """

    expenses: ExpenseRepository
    auth_service: AuthService

    def create_expense(self, user_id: str, data: CreateExpenseInput) -> UseCaseResult[Expense]:
        """Summary: Record a new expense for an existing user.

        Importance: Defaults the date to today and recurring to False.
        Alternatives: Require the agent to always supply every field.
        """

        try:
            self.auth_service.get_user_by_id(user_id)
            expense = Expense(
                description=data.description,
                amount=float(data.amount),
                category=ExpenseCategory.parse(data.category),
                date=data.date or today_iso(),
                is_recurring=bool(data.is_recurring),
                user_id=user_id,
            )
            created = self.expenses.create(expense)
            logger.info("Created expense %s for user %s.", created.id, user_id)
            return UseCaseResult.ok(created)
        except Exception as exc:
            return self._failure(exc, "Failed to create expense", user_id=user_id)

    def get_expense(self, expense_id: str, user_id: str | None = None) -> UseCaseResult[Expense]:
        try:
            expense = self.expenses.find_by_id(expense_id)
            if expense is None or (user_id is not None and expense.user_id != user_id):
                return UseCaseResult.fail("Expense not found")
            return UseCaseResult.ok(expense)
        except Exception as exc:
            return self._failure(exc, "Failed to get expense", expense_id=expense_id)

    def get_user_expenses(self, data: GetExpensesInput) -> UseCaseResult[list[Expense]]:
        try:
            self.auth_service.get_user_by_id(data.user_id)
            return UseCaseResult.ok(self.expenses.find_by_user_id(data.user_id, data.filters))
        except Exception as exc:
            return self._failure(exc, "Failed to get expenses", user_id=data.user_id)

    def update_expense(
        self,
        expense_id: str,
        data: UpdateExpenseInput,
        user_id: str | None = None,
    ) -> UseCaseResult[Expense]:
        """Summary: Apply a partial update to an expense.

        Importance: Only fields present in the input are written.
        Alternatives: Replace the whole record with a merged snapshot.
        """

        try:
            current = self.get_expense(expense_id, user_id)
            if not current.success:
                return current
            changes = data.changes()
            if not changes:
                return UseCaseResult.ok(current.data)
            updated = self.expenses.update(expense_id, changes)
            logger.info("Updated expense %s fields %s.", expense_id, sorted(changes))
            return UseCaseResult.ok(updated)
        except Exception as exc:
            return self._failure(exc, "Failed to update expense", expense_id=expense_id)

    def delete_expense(self, expense_id: str, user_id: str) -> UseCaseResult[None]:
        try:
            current = self.get_expense(expense_id, user_id)
            if not current.success:
                return UseCaseResult.fail(current.error or "Expense not found")
            self.expenses.hard_delete(expense_id)
            logger.info("Deleted expense %s for user %s.", expense_id, user_id)
            return UseCaseResult.ok()
        except Exception as exc:
            return self._failure(
                exc, "Failed to delete expense", expense_id=expense_id, user_id=user_id
            )

    def get_expense_summary(
        self,
        user_id: str,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> UseCaseResult[ExpenseSummary]:
        try:
            self.auth_service.get_user_by_id(user_id)
            filters = ExpenseFilters(start_date=start_date, end_date=end_date)
            summary = ExpenseSummary(
                total=self.expenses.get_total_by_user_id(user_id, filters),
                by_category=self.expenses.get_expenses_by_category(user_id, start_date, end_date),
                start_date=start_date,
                end_date=end_date,
            )
            return UseCaseResult.ok(summary)
        except Exception as exc:
            return self._failure(exc, "Failed to summarize expenses", user_id=user_id)

    def format_expense_for_display(self, expense: Expense) -> dict[str, Any]:
        return format_expense_for_display(expense)

    def _failure(self, exc: Exception, message: str, **context: object) -> UseCaseResult:
        logger.error("%s %s.", message, context, exc_info=exc)
        if isinstance(exc, AppError):
            return UseCaseResult.fail(exc.message)
        if isinstance(exc, ValueError):
            return UseCaseResult.fail(str(exc))
        return UseCaseResult.fail(message)


def format_expense_for_display(expense: Expense) -> dict[str, Any]:
    """Summary: Project an expense into display-ready fields.

    Importance: Shares category labels and currency formatting between replies.
    Alternatives: Format inside every Discord message template.
    """

    return {
        "id": expense.id,
        "description": expense.description,
        "amount": expense.amount,
        "formatted_amount": expense.formatted_amount,
        "category": expense.category.value,
        "category_label": CATEGORY_LABELS[expense.category],
        "date": expense.date,
        "is_recurring": expense.is_recurring,
        "created_at": expense.created_at.isoformat(),
        "updated_at": expense.updated_at.isoformat(),
    }


LOGIN_SUCCESS_TEMPLATE = (
    "🎉 **Login realizado com sucesso!**\n\n"
    "Olá {name}! Sua conta Discord foi conectada ao sistema de finanças.\n\n"
    "Agora você pode conversar comigo normalmente e eu vou ajudar com suas finanças! 💰\n\n"
    "Digite qualquer mensagem para começar! 🚀"
)


class NotificationService:
    """Summary: Sends Discord direct messages about account events.

    Importance: Confirms a completed web login inside Discord.
    Alternatives: Show the confirmation only on the web page.
    """

    def __init__(
        self,
        users: AuthRepository,
        accounts: AccountRepository,
        client: discord.Client | None = None,
    ) -> None:
        self.users = users
        self.accounts = accounts
        self.client = client

    async def notify_user_login_success(self, user_id: str) -> bool:
        """Summary: DM the user that their Discord login succeeded.

        Importance: A failed DM never fails the login itself.
        Alternatives: Queue notifications for a background worker.
        """

        if self.client is None or not self.client.is_ready():
            logger.warning("Discord client not ready; skipping login notification for %s.", user_id)
            return False
        account = await asyncio.to_thread(self.accounts.find_discord_account_for_user, user_id)
        user = await asyncio.to_thread(self.users.find_by_id, user_id)
        if account is None or user is None:
            logger.error("No Discord account found for user %s.", user_id)
            return False
        try:
            discord_user = await self.client.fetch_user(int(account.account_id))
            await discord_user.send(LOGIN_SUCCESS_TEMPLATE.format(name=user.name or DEFAULT_USER_NAME))
        except (discord.HTTPException, ValueError):
            logger.exception("Failed to send login notification to user %s.", user_id)
            return False
        logger.info("Sent login notification to user %s.", user_id)
        return True
