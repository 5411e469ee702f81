"""Summary: Tests for login, logout, and expense listing commands.

Importance: Slash commands and text prefixes share these handlers.
Alternatives: Verify commands manually in a Discord test server.
"""

from __future__ import annotations

import asyncio

import pytest

from conftest import link_discord_user
from financeai.commands import CommandHandler, parse_command, parse_list_args
from financeai.services import AuthService, CreateExpenseInput, ExpenseUseCase
from financeai.storage.auth_repository import AccountRepository, AuthRepository
from financeai.storage.expense_repository import ExpenseRepository


@pytest.fixture
def expense_use_case(expenses: ExpenseRepository, users: AuthRepository) -> ExpenseUseCase:
    return ExpenseUseCase(expenses, AuthService(users, "http://localhost:3333"))


@pytest.fixture
def handler(expense_use_case: ExpenseUseCase) -> CommandHandler:
    return CommandHandler(expense_use_case.auth_service, expense_use_case)


def test_parse_command_and_list_args() -> None:
    assert parse_command("/Despesas --categoria leisure") == ("despesas", ["--categoria", "leisure"])
    assert parse_command("!") == ("", [])
    assert parse_list_args(["-c", "leisure", "--pagina", "3"]) == ("leisure", 3)
    assert parse_list_args(["--pagina", "abc"]) == (None, 1)
    assert parse_list_args(["-p", "-2"]) == (None, 1)


def test_login_for_linked_user(
    handler: CommandHandler, users: AuthRepository, accounts: AccountRepository
) -> None:
    link_discord_user(users, accounts, discord_id="42", name="Ana")
    result = asyncio.run(handler.login("42"))
    assert result.success
    assert result.message == "✅ Você já está logado como **Ana**!"
    assert result.embed is None


def test_logout_requires_login(
    handler: CommandHandler, users: AuthRepository, accounts: AccountRepository
) -> None:
    assert asyncio.run(handler.logout("42")).message == "❌ Você não está logado."
    link_discord_user(users, accounts, discord_id="42")
    result = asyncio.run(handler.logout("42"))
    assert result.embed.title == "🚪 Logout"
    assert result.view.children[0].url == "http://localhost:3333/logout/discord"


def test_list_expenses_requires_login(handler: CommandHandler) -> None:
    result = asyncio.run(handler.list_expenses("42"))
    assert not result.success
    assert "login" in result.message.lower()


def test_list_expenses_renders_page(
    handler: CommandHandler,
    expense_use_case: ExpenseUseCase,
    users: AuthRepository,
    accounts: AccountRepository,
) -> None:
    """Summary: Verify the embed fields and the next-page footer.

    Importance: The footer only appears when more results may exist.
    Alternatives: Always show the footer.
    """

    user = link_discord_user(users, accounts, discord_id="42")
    for index in range(3):
        expense_use_case.create_expense(
            user.id,
            CreateExpenseInput(description=f"Lanche {index}", amount=10, category="leisure"),
        )

    full = asyncio.run(handler.list_expenses("42", "leisure", page=1, limit=2))
    assert full.embed.title == "💰 Suas Despesas"
    assert full.embed.description == "Categoria: **🎉 Lazer**"
    assert [field.name for field in full.embed.fields] == [
        "📋 Lista de Despesas",
        "💵 Total desta página",
        "📄 Página",
    ]
    assert "Lanche 2" in full.embed.fields[0].value
    assert full.embed.fields[1].value == "R$ 20.00"
    assert full.embed.footer.text == "Use /despesas pagina:2 para ver mais resultados"

    last = asyncio.run(handler.list_expenses("42", None, page=2, limit=2))
    assert last.embed.description == "Todas as categorias"
    assert last.embed.footer.text is None


def test_list_expenses_empty_and_invalid_category(
    handler: CommandHandler, users: AuthRepository, accounts: AccountRepository
) -> None:
    link_discord_user(users, accounts, discord_id="42")
    empty = asyncio.run(handler.list_expenses("42", "investments"))
    assert empty.message == "📝 Nenhuma despesa encontrada na categoria **📈 Investimentos** (página 1)."
    invalid = asyncio.run(handler.list_expenses("42", "food"))
    assert not invalid.success
    assert invalid.message.startswith("❌ Invalid category")


def test_unknown_text_command_lists_commands(handler: CommandHandler) -> None:
    result = asyncio.run(handler.handle_text_command("42", "ajuda", []))
    assert not result.success
    assert "`/despesas`" in result.message
