"""Summary: Tests for the expense agent loop and its tools.

Importance: Confirms tool calls are bound to the caller and the loop always terminates.
Alternatives: Evaluate the agent only against a live model.
"""

from __future__ import annotations

import json
from typing import Any

import pytest

from conftest import link_discord_user
from financeai.agent import INSTRUCTIONS, ExpenseAgent, user_context
from financeai.ai import ChatProvider, ChatResult, ToolCall, ToolSpec
from financeai.services import AuthService, ExpenseUseCase
from financeai.storage.auth_repository import AccountRepository, AuthRepository
from financeai.storage.expense_repository import ExpenseRepository


class ScriptedProvider(ChatProvider):
    """Replays a fixed list of results and records every request."""

    def __init__(self, results: list[ChatResult]) -> None:
        self.results = list(results)
        self.requests: list[list[dict[str, Any]]] = []
        self.tools: list[ToolSpec] = []

    def chat(self, messages: list[dict[str, Any]], tools: list[ToolSpec]) -> ChatResult:
        self.requests.append([dict(message) for message in messages])
        self.tools = tools
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]


def _call(name: str, call_id: str = "call_1", **arguments: Any) -> ChatResult:
    return ChatResult(text="", tool_calls=[ToolCall(id=call_id, name=name, arguments=arguments)])


@pytest.fixture
def use_case(expenses: ExpenseRepository, users: AuthRepository) -> ExpenseUseCase:
    return ExpenseUseCase(expenses, AuthService(users, "http://localhost:3333"))


def _tool_payloads(provider: ScriptedProvider) -> list[dict[str, Any]]:
    return [
        json.loads(message["content"])
        for message in provider.requests[-1]
        if message["role"] == "tool"
    ]


def test_agent_returns_plain_answers(use_case: ExpenseUseCase) -> None:
    provider = ScriptedProvider([ChatResult(text="Olá, Ana!")])
    agent = ExpenseAgent(provider, use_case)
    assert agent.run("user-1", "Ana", "oi") == "Olá, Ana!"
    first = provider.requests[0]
    assert first[0] == {"role": "system", "content": INSTRUCTIONS}
    assert first[1]["content"] == user_context("user-1", "Ana")
    assert first[2] == {"role": "user", "content": "oi"}
    assert {tool.name for tool in provider.tools} == {
        "generate_uuid",
        "get_current_date",
        "create_expense",
        "list_expenses",
        "update_expense",
        "delete_expense",
        "expense_summary",
    }


def test_agent_creates_expense_for_the_calling_user(
    use_case: ExpenseUseCase,
    users: AuthRepository,
    accounts: AccountRepository,
    expenses: ExpenseRepository,
) -> None:
    """Summary: Verify a create_expense call is stored under the caller's id.

    Importance: The model never chooses whose data it writes.
    Alternatives: Accept a user id argument from the model.
    """

    user = link_discord_user(users, accounts)
    provider = ScriptedProvider(
        [
            _call("create_expense", description="Mercado", amount=150.5, category="essentials"),
            ChatResult(text="Despesa registrada!"),
        ]
    )
    reply = ExpenseAgent(provider, use_case).run(user.id, user.name, "gastei 150,50 no mercado")

    assert reply == "Despesa registrada!"
    stored = expenses.find_by_user_id(user.id)
    assert [item.description for item in stored] == ["Mercado"]
    payload = _tool_payloads(provider)[0]
    assert payload["success"] is True
    assert payload["data"]["formatted_amount"] == "R$ 150.50"
    assistant = provider.requests[-1][3]
    assert assistant["role"] == "assistant"
    assert assistant["tool_calls"][0]["function"]["name"] == "create_expense"


def test_agent_reports_validation_errors_to_the_model(use_case: ExpenseUseCase) -> None:
    provider = ScriptedProvider(
        [
            _call("create_expense", description="Mercado", amount=-5, category="food"),
            ChatResult(text="Qual a categoria?"),
        ]
    )
    assert ExpenseAgent(provider, use_case).run("user-1", "Ana", "mercado") == "Qual a categoria?"
    payload = _tool_payloads(provider)[0]
    assert payload["success"] is False
    fields = {error["loc"][0] for error in payload["error"]}
    assert fields == {"amount", "category"}


def test_agent_reports_unknown_tools(use_case: ExpenseUseCase) -> None:
    provider = ScriptedProvider([_call("transfer_money"), ChatResult(text="ok")])
    ExpenseAgent(provider, use_case).run("user-1", "Ana", "transfira")
    assert _tool_payloads(provider)[0] == {"success": False, "error": "Unknown tool: transfer_money"}


def test_agent_stops_at_step_limit(use_case: ExpenseUseCase) -> None:
    provider = ScriptedProvider(
        [ChatResult(text="pensando", tool_calls=[ToolCall("c", "get_current_date", {})])]
    )
    reply = ExpenseAgent(provider, use_case, max_steps=3).run("user-1", "Ana", "que dia é hoje?")
    assert reply == "pensando"
    assert len(provider.requests) == 3


def test_agent_tools_cannot_touch_other_users_expenses(
    use_case: ExpenseUseCase, users: AuthRepository, accounts: AccountRepository
) -> None:
    owner = link_discord_user(users, accounts, discord_id="1")
    stranger = link_discord_user(users, accounts, discord_id="2")
    agent = ExpenseAgent(ScriptedProvider([ChatResult(text="")]), use_case)
    created = agent.call_tool(
        owner.id,
        ToolCall("c1", "create_expense", {"description": "Livro", "amount": 80, "category": "knowledge"}),
    )
    expense_id = created["data"]["id"]

    denied = agent.call_tool(stranger.id, ToolCall("c2", "delete_expense", {"expense_id": expense_id}))
    assert denied == {"success": False, "error": "Expense not found"}

    updated = agent.call_tool(
        owner.id, ToolCall("c3", "update_expense", {"expense_id": expense_id, "amount": 95})
    )
    assert updated["data"]["amount"] == 95

    listed = agent.call_tool(owner.id, ToolCall("c4", "list_expenses", {"category": "knowledge"}))
    assert [item["id"] for item in listed["data"]] == [expense_id]

    summary = agent.call_tool(owner.id, ToolCall("c5", "expense_summary", {}))
    assert summary["data"]["total"] == 95
    assert summary["data"]["by_category"][0]["label"] == "📚 Conhecimento"

    deleted = agent.call_tool(owner.id, ToolCall("c6", "delete_expense", {"expense_id": expense_id}))
    assert deleted == {"success": True, "data": None}


def test_utility_tools(use_case: ExpenseUseCase) -> None:
    agent = ExpenseAgent(ScriptedProvider([ChatResult(text="")]), use_case)
    generated = agent.call_tool("user-1", ToolCall("c1", "generate_uuid", {}))
    assert len(generated["data"]) == 36
    today = agent.call_tool("user-1", ToolCall("c2", "get_current_date", {}))
    assert set(today["data"]) == {"date", "datetime"}
