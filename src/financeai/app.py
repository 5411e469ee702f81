"""Summary: Application factory wiring core services.

Importance: Builds every repository, service, and client once for the bot, web server, and CLI.
Alternatives: Use a dependency injection container.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from financeai.agent import ExpenseAgent
from financeai.ai import AiProviderFactory
from financeai.bot import FinanceBot
from financeai.commands import CommandHandler
from financeai.config import AppConfig
from financeai.dispatch import DiscordMessageUseCase, ReplyDelivery
from financeai.oauth import DiscordAuthHandler
from financeai.services import AuthService, ExpenseUseCase, NotificationService
from financeai.storage.auth_repository import AccountRepository, AuthRepository
from financeai.storage.database import Database
from financeai.storage.expense_repository import ExpenseRepository
from financeai.transcription import TranscriberFactory


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class AppContext:
    """Summary: Shared application context built at startup.

    Importance: The bot, the web server, and the CLI share one set of services.
    Alternatives: Rebuild dependencies for every request.
    """

    config: AppConfig
    database: Database
    users: AuthRepository
    accounts: AccountRepository
    expenses: ExpenseRepository
    auth_service: AuthService
    expense_use_case: ExpenseUseCase
    notifications: NotificationService
    agent: ExpenseAgent
    commands: CommandHandler
    messages: DiscordMessageUseCase
    auth_handler: DiscordAuthHandler
    bot: FinanceBot


def configure_logging(level: str = "INFO") -> None:
    """Install a basic handler once, honoring LOG_LEVEL."""

    if not logging.getLogger().handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    else:
        logging.getLogger().setLevel(level)


def build_context(config: AppConfig) -> AppContext:
    """Summary: Build the shared context from configuration.

    Importance: The only place where concrete implementations are chosen.
    Alternatives: Construct dependencies separately per entrypoint.
    """

    database = Database(config.database_path, test_mode=config.test_mode)
    database.initialize()
    users = AuthRepository(database)
    accounts = AccountRepository(database)
    expenses = ExpenseRepository(database)

    auth_service = AuthService(users=users, auth_base_url=config.auth_base_url)
    expense_use_case = ExpenseUseCase(expenses=expenses, auth_service=auth_service)
    agent = ExpenseAgent(
        provider=AiProviderFactory(config).build(),
        expenses=expense_use_case,
        max_steps=config.agent_max_steps,
    )
    commands = CommandHandler(auth_service, expense_use_case)
    messages = DiscordMessageUseCase(
        auth_service=auth_service,
        agent=agent,
        transcriber=TranscriberFactory(config).build(),
        commands=commands,
        delivery=ReplyDelivery(),
    )

    bot = FinanceBot(application_id=parse_application_id(config.discord_client_id))
    bot.attach(messages, commands)
    notifications = NotificationService(users, accounts, bot)
    auth_handler = DiscordAuthHandler(
        config,
        database,
        users,
        accounts,
        on_account_created=notifications.notify_user_login_success,
    )
    return AppContext(
        config=config,
        database=database,
        users=users,
        accounts=accounts,
        expenses=expenses,
        auth_service=auth_service,
        expense_use_case=expense_use_case,
        notifications=notifications,
        agent=agent,
        commands=commands,
        messages=messages,
        auth_handler=auth_handler,
        bot=bot,
    )


def parse_application_id(client_id: str) -> int | None:
    return int(client_id) if client_id.isdigit() else None
