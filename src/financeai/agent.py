"""Summary: Expense assistant agent with a bounded tool-calling loop.

Importance: Turns free-form user messages into expense operations and answers.
Alternatives: Parse commands with regular expressions instead of an LLM.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Callable

from pydantic import BaseModel, Field, ValidationError

from financeai.ai import ChatProvider, ToolCall, ToolSpec
from financeai.models import CATEGORY_LABELS, Expense, ExpenseCategory, utcnow
from financeai.services import (
    CreateExpenseInput,
    ExpenseUseCase,
    GetExpensesInput,
    UpdateExpenseInput,
    UseCaseResult,
    format_expense_for_display,
)
from financeai.storage.expense_repository import ExpenseFilters


logger = logging.getLogger(__name__)

CATEGORY_LINES = "\n".join(
    f"- {label} ({category.value})" for category, label in CATEGORY_LABELS.items()
)

INSTRUCTIONS = f"""
Você é um assistente virtual amigável especializado em ajudar usuários a gerenciar suas despesas pessoais.
Use as ferramentas disponíveis para registrar, listar, atualizar, remover e resumir despesas.

Ao registrar uma despesa, colete descrição, valor e categoria. Se a categoria não foi
informada, pergunte ao usuário. Assuma a data de hoje e despesa não recorrente quando
não mencionadas.

Categorias válidas:
{CATEGORY_LINES}

Seja sempre amigável, use o nome do usuário e formate valores como R$ 0,00.
""".strip()


class NoArgs(BaseModel):
    pass


class CreateExpenseArgs(BaseModel):
    description: str = Field(min_length=1)
    amount: float = Field(gt=0)
    category: ExpenseCategory
    date: str | None = Field(default=None, description="ISO date, defaults to today")
    is_recurring: bool = False


class ListExpensesArgs(BaseModel):
    category: ExpenseCategory | None = None
    start_date: str | None = None
    end_date: str | None = None
    search: str | None = None
    limit: int = Field(default=50, ge=1, le=200)
    offset: int = Field(default=0, ge=0)


class UpdateExpenseArgs(BaseModel):
    expense_id: str
    description: str | None = None
    amount: float | None = Field(default=None, gt=0)
    category: ExpenseCategory | None = None
    date: str | None = None
    is_recurring: bool | None = None


class DeleteExpenseArgs(BaseModel):
    expense_id: str


class SummaryArgs(BaseModel):
    start_date: str | None = None
    end_date: str | None = None


@dataclass(frozen=True)
class AgentTool:
    spec: ToolSpec
    args_model: type[BaseModel]
    handler: Callable[[str, Any], Any]


class ExpenseAgent:
    """Summary: Runs chat turns for one authenticated user at a time.

    Importance: Binds every expense tool to the caller's user id.
    Alternatives: Let the model pass user ids and trust them.
    """

    def __init__(self, provider: ChatProvider, expenses: ExpenseUseCase, max_steps: int = 20) -> None:
        self.provider = provider
        self.expenses = expenses
        self.max_steps = max_steps
        self.tools = {tool.spec.name: tool for tool in self._build_tools()}

    def run(self, user_id: str, user_name: str, content: str) -> str:
        """Summary: Answer one user message, calling tools as the model asks.

        Importance: Stops after max_steps model calls so a looping model cannot stall a reply.
        Alternatives: Let the model call tools without a step limit.
        """

        messages: list[dict[str, Any]] = [
            {"role": "system", "content": INSTRUCTIONS},
            {"role": "system", "content": user_context(user_id, user_name)},
            {"role": "user", "content": content},
        ]
        specs = [tool.spec for tool in self.tools.values()]
        text = ""
        for step in range(1, self.max_steps + 1):
            result = self.provider.chat(messages, specs)
            text = result.text
            if not result.tool_calls:
                logger.info("Agent answered user %s after %s step(s).", user_id, step)
                return text
            messages.append(_assistant_message(result.text, result.tool_calls))
            for call in result.tool_calls:
                messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": call.id,
                        "content": json.dumps(self.call_tool(user_id, call), default=str),
                    }
                )
        logger.warning("Agent hit the %s step limit for user %s.", self.max_steps, user_id)
        return text

    def call_tool(self, user_id: str, call: ToolCall) -> dict[str, Any]:
        tool = self.tools.get(call.name)
        if tool is None:
            logger.warning("Model requested unknown tool %s.", call.name)
            return {"success": False, "error": f"Unknown tool: {call.name}"}
        try:
            args = tool.args_model.model_validate(call.arguments)
        except ValidationError as exc:
            return {"success": False, "error": exc.errors(include_url=False)}
        logger.debug("Running tool %s for user %s.", call.name, user_id)
        return tool.handler(user_id, args)

    def _build_tools(self) -> list[AgentTool]:
        return [
            _tool("generate_uuid", "create and return a new valid uuid", NoArgs, self._generate_uuid),
            _tool("get_current_date", "get the current date and time", NoArgs, self._current_date),
            _tool(
                "create_expense",
                "record a new expense for the current user",
                CreateExpenseArgs,
                self._create_expense,
            ),
            _tool(
                "list_expenses",
                "list the current user's expenses, newest first, with optional filters",
                ListExpensesArgs,
                self._list_expenses,
            ),
            _tool(
                "update_expense",
                "change fields of one of the current user's expenses",
                UpdateExpenseArgs,
                self._update_expense,
            ),
            _tool(
                "delete_expense",
                "delete one of the current user's expenses",
                DeleteExpenseArgs,
                self._delete_expense,
            ),
            _tool(
                "expense_summary",
                "total and per-category breakdown of the current user's expenses",
                SummaryArgs,
                self._summary,
            ),
        ]

    def _generate_uuid(self, user_id: str, args: NoArgs) -> dict[str, Any]:
        return {"success": True, "data": str(uuid.uuid4())}

    def _current_date(self, user_id: str, args: NoArgs) -> dict[str, Any]:
        now: datetime = utcnow()
        return {"success": True, "data": {"date": now.date().isoformat(), "datetime": now.isoformat()}}

    def _create_expense(self, user_id: str, args: CreateExpenseArgs) -> dict[str, Any]:
        result = self.expenses.create_expense(
            user_id,
            CreateExpenseInput(
                description=args.description,
                amount=args.amount,
                category=args.category.value,
                date=args.date,
                is_recurring=args.is_recurring,
            ),
        )
        return _envelope(result)

    def _list_expenses(self, user_id: str, args: ListExpensesArgs) -> dict[str, Any]:
        filters = ExpenseFilters(**args.model_dump())
        return _envelope(self.expenses.get_user_expenses(GetExpensesInput(user_id, filters)))

    def _update_expense(self, user_id: str, args: UpdateExpenseArgs) -> dict[str, Any]:
        changes = UpdateExpenseInput(
            description=args.description,
            amount=args.amount,
            category=args.category.value if args.category else None,
            date=args.date,
            is_recurring=args.is_recurring,
        )
        return _envelope(self.expenses.update_expense(args.expense_id, changes, user_id))

    def _delete_expense(self, user_id: str, args: DeleteExpenseArgs) -> dict[str, Any]:
        return _envelope(self.expenses.delete_expense(args.expense_id, user_id))

    def _summary(self, user_id: str, args: SummaryArgs) -> dict[str, Any]:
        result = self.expenses.get_expense_summary(user_id, args.start_date, args.end_date)
        if not result.success:
            return {"success": False, "error": result.error}
        summary = result.data
        return {
            "success": True,
            "data": {
                "total": summary.total,
                "by_category": [
                    {
                        "category": item.category.value,
                        "label": CATEGORY_LABELS[item.category],
                        "total": item.total,
                        "count": item.count,
                    }
                    for item in summary.by_category
                ],
            },
        }


def user_context(user_id: str, user_name: str) -> str:
    return f"Você responde a esse usuário:\n- ID: {user_id}\n- Nome: {user_name}"


def _tool(
    name: str,
    description: str,
    args_model: type[BaseModel],
    handler: Callable[[str, Any], Any],
) -> AgentTool:
    return AgentTool(
        spec=ToolSpec(name=name, description=description, parameters=args_model.model_json_schema()),
        args_model=args_model,
        handler=handler,
    )


def _envelope(result: UseCaseResult) -> dict[str, Any]:
    if not result.success:
        return {"success": False, "error": result.error}
    data = result.data
    if isinstance(data, list):
        data = [format_expense_for_display(item) for item in data]
    elif isinstance(data, Expense):
        data = format_expense_for_display(data)
    elif data is not None:
        data = asdict(data)
    return {"success": True, "data": data}


def _assistant_message(text: str, calls: list[ToolCall]) -> dict[str, Any]:
    return {
        "role": "assistant",
        "content": text or None,
        "tool_calls": [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
            }
            for call in calls
        ],
    }
