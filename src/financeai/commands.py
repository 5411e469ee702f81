"""Summary: Bot commands shared by slash commands and text prefixes.

Importance: Gives /login, /logout, and /despesas one implementation for both entry points.
Alternatives: Duplicate the logic inside each slash command callback.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import discord

from financeai.models import CATEGORY_LABELS, ExpenseCategory, format_currency, utcnow
from financeai.services import AuthService, ExpenseUseCase, GetExpensesInput
from financeai.storage.expense_repository import ExpenseFilters


logger = logging.getLogger(__name__)

PAGE_SIZE = 10
FIELD_LIMIT = 1024
COMMAND_PREFIXES = ("/", "!")
COMMAND_ERROR = "❌ Ocorreu um erro ao processar o comando. Tente novamente."
AVAILABLE_COMMANDS = (
    "Comandos disponíveis:\n"
    "• `/login` - Fazer login\n"
    "• `/logout` - Fazer logout\n"
    "• `/despesas` - Listar suas despesas"
)


@dataclass
class CommandResult:
    """Summary: Reply produced by a command.

    Importance: Lets text and slash entry points render the same result.
    Alternatives: Send messages directly from each handler.
    """

    success: bool
    message: str = ""
    embed: discord.Embed | None = None
    view: discord.ui.View | None = None


def is_command(content: str) -> bool:
    return content.startswith(COMMAND_PREFIXES)


def parse_command(content: str) -> tuple[str, list[str]]:
    cleaned = content[1:] if is_command(content) else content
    parts = cleaned.split()
    if not parts:
        return "", []
    return parts[0].lower(), parts[1:]


def parse_list_args(args: list[str]) -> tuple[str | None, int]:
    """Summary: Read --categoria/-c and --pagina/-p from text command arguments.

    Importance: Mirrors the slash command options for users typing !despesas.
    Alternatives: Use argparse with exit_on_error disabled.
    """

    category: str | None = None
    page = 1
    index = 0
    while index < len(args):
        flag = args[index].lower()
        value = args[index + 1] if index + 1 < len(args) else None
        if flag in {"--categoria", "-c"}:
            category = value
            index += 1
        elif flag in {"--pagina", "-p"}:
            try:
                page = max(1, int(value or 1))
            except ValueError:
                page = 1
            index += 1
        index += 1
    return category, page


def link_view(label: str, url: str) -> discord.ui.View:
    view = discord.ui.View()
    view.add_item(discord.ui.Button(label=label, style=discord.ButtonStyle.link, url=url))
    return view


class CommandHandler:
    """Summary: Executes login, logout, and expense listing commands.

    Importance: Every command resolves the Discord user before acting.
    Alternatives: Use discord.ext.commands with a prefix bot.
    """

    def __init__(self, auth_service: AuthService, expenses: ExpenseUseCase) -> None:
        self.auth_service = auth_service
        self.expenses = expenses

    @property
    def logout_url(self) -> str:
        return f"{self.auth_service.auth_base_url}/logout/discord"

    async def handle_text_command(self, discord_id: str, command: str, args: list[str]) -> CommandResult:
        try:
            if command == "login":
                return await self.login(discord_id)
            if command == "logout":
                return await self.logout(discord_id)
            if command == "despesas":
                category, page = parse_list_args(args)
                return await self.list_expenses(discord_id, category, page)
        except Exception:
            logger.exception("Text command %s failed for %s.", command, discord_id)
            return CommandResult(success=False, message=COMMAND_ERROR)
        return CommandResult(
            success=False,
            message=f"❌ Comando `{command}` não reconhecido.\n\n{AVAILABLE_COMMANDS}",
        )

    async def login(self, discord_id: str) -> CommandResult:
        auth = await asyncio.to_thread(self.auth_service.check_auth_and_get_message, discord_id)
        if auth.is_authenticated:
            return CommandResult(success=True, message=f"✅ Você já está logado como **{auth.user_name}**!")
        embed = discord.Embed(
            title="🔐 Login Necessário",
            description=(
                "Para usar o bot de finanças, você precisa fazer login primeiro.\n\n"
                "Clique no botão abaixo para fazer login com sua conta Discord."
            ),
            color=discord.Color(0x5865F2),
            timestamp=utcnow(),
        )
        embed.set_footer(text="Finances[AI] Bot • Seguro e confiável")
        return CommandResult(
            success=True,
            embed=embed,
            view=link_view("🔐 Fazer Login", self.auth_service.login_url),
        )

    async def logout(self, discord_id: str) -> CommandResult:
        auth = await asyncio.to_thread(self.auth_service.check_auth_and_get_message, discord_id)
        if not auth.is_authenticated:
            return CommandResult(success=False, message="❌ Você não está logado.")
        embed = discord.Embed(
            title="🚪 Logout",
            description="Para fazer logout, acesse o link e desconecte sua conta.\n\nClique no botão abaixo.",
            color=discord.Color(0xFF6B6B),
            timestamp=utcnow(),
        )
        embed.set_footer(text="Finances[AI] Bot")
        return CommandResult(
            success=True,
            embed=embed,
            view=link_view("Clique aqui para realizar o logout", self.logout_url),
        )

    async def list_expenses(
        self,
        discord_id: str,
        category: str | None = None,
        page: int = 1,
        limit: int = PAGE_SIZE,
    ) -> CommandResult:
        """Summary: Render one page of the user's expenses as an embed.

        Importance: Shows a next-page hint only when the page came back full.
        Alternatives: Paginate with interactive buttons.
        """

        auth = await asyncio.to_thread(self.auth_service.check_auth_and_get_message, discord_id)
        if not auth.is_authenticated:
            return CommandResult(
                success=False,
                message=auth.message or "❌ Você precisa estar logado para ver suas despesas.",
            )
        try:
            parsed = ExpenseCategory.parse(category) if category else None
        except ValueError as exc:
            return CommandResult(success=False, message=f"❌ {exc}")

        filters = ExpenseFilters(category=parsed, limit=limit, offset=(page - 1) * limit)
        result = await asyncio.to_thread(
            self.expenses.get_user_expenses, GetExpensesInput(auth.user_id, filters)
        )
        if not result.success:
            return CommandResult(success=False, message=f"❌ {result.error or 'Erro ao buscar despesas'}")

        expenses = result.data or []
        label = CATEGORY_LABELS[parsed] if parsed else None
        if not expenses:
            if label:
                text = f"📝 Nenhuma despesa encontrada na categoria **{label}** (página {page})."
            else:
                text = f"📝 Nenhuma despesa encontrada (página {page})."
            return CommandResult(success=True, message=text)

        lines = []
        for expense in expenses:
            shown = self.expenses.format_expense_for_display(expense)
            lines.append(
                f"{shown['category_label']} **{shown['description']}**\n"
                f"💰 {shown['formatted_amount']} • 📅 {shown['date']}"
            )
        embed = discord.Embed(
            title="💰 Suas Despesas",
            description=f"Categoria: **{label}**" if label else "Todas as categorias",
            color=discord.Color(0x00D4AA),
            timestamp=utcnow(),
        )
        embed.add_field(name="📋 Lista de Despesas", value=_truncate("\n\n".join(lines)), inline=False)
        embed.add_field(
            name="💵 Total desta página",
            value=format_currency(sum(expense.amount for expense in expenses)),
            inline=True,
        )
        embed.add_field(name="📄 Página", value=str(page), inline=True)
        if len(expenses) == limit:
            embed.set_footer(text=f"Use /despesas pagina:{page + 1} para ver mais resultados")
        return CommandResult(success=True, embed=embed)


async def respond(interaction: discord.Interaction, result: CommandResult) -> None:
    """Send a command result as an ephemeral interaction response."""

    options: dict[str, Any] = {"ephemeral": True}
    if result.message:
        options["content"] = result.message
    if result.embed is not None:
        options["embed"] = result.embed
    if result.view is not None:
        options["view"] = result.view
    await interaction.response.send_message(**options)


def _truncate(text: str, limit: int = FIELD_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"
