"""Summary: discord.py client wiring for FinanceAI.

Importance: Connects Discord events and slash commands to the dispatch pipeline.
Alternatives: Use discord.ext.commands.Bot with prefix commands only.
"""

import logging
from typing import Optional

import discord
from discord import app_commands

from financeai.commands import COMMAND_ERROR, CommandHandler, respond
from financeai.dispatch import DiscordMessageUseCase
from financeai.models import CATEGORY_LABELS


logger = logging.getLogger(__name__)

CATEGORY_CHOICES = [
    app_commands.Choice(name=label, value=category.value) for category, label in CATEGORY_LABELS.items()
]


def build_intents() -> discord.Intents:
    intents = discord.Intents.default()
    intents.message_content = True
    intents.dm_messages = True
    return intents


class FinanceBot(discord.Client):
    """Summary: Discord client that forwards DMs and slash commands.

    Importance: Keeps discord.py specifics out of the use cases.
    Alternatives: Register module-level event handlers on a global client.
    """

    def __init__(self, application_id: Optional[int] = None) -> None:
        super().__init__(intents=build_intents(), application_id=application_id)
        self.tree = app_commands.CommandTree(self)
        self.message_use_case: Optional[DiscordMessageUseCase] = None

    def attach(self, message_use_case: DiscordMessageUseCase, commands: CommandHandler) -> None:
        self.message_use_case = message_use_case
        register_slash_commands(self.tree, commands)

    async def on_ready(self) -> None:
        logger.info("Discord bot connected as %s.", self.user)

    async def on_message(self, message: discord.Message) -> None:
        if self.message_use_case is None:
            logger.warning("Message %s received before the bot was attached.", message.id)
            return
        await self.message_use_case.handle_message(message)


def register_slash_commands(tree: app_commands.CommandTree, commands: CommandHandler) -> None:
    """Summary: Declare /login, /logout, and /despesas on a command tree.

    Importance: Registration and the runtime bot share one definition.
    Alternatives: Maintain JSON command payloads by hand.
    """

    @tree.command(name="login", description="Fazer login no bot de finanças")
    async def login(interaction: discord.Interaction) -> None:
        await _run(interaction, commands.login(str(interaction.user.id)))

    @tree.command(name="logout", description="Fazer logout do bot de finanças")
    async def logout(interaction: discord.Interaction) -> None:
        await _run(interaction, commands.logout(str(interaction.user.id)))

    @tree.command(name="despesas", description="Listar suas despesas com filtros e paginação")
    @app_commands.describe(categoria="Filtrar por categoria", pagina="Número da página (padrão: 1)")
    @app_commands.choices(categoria=CATEGORY_CHOICES)
    async def despesas(
        interaction: discord.Interaction,
        categoria: Optional[app_commands.Choice[str]] = None,
        pagina: Optional[app_commands.Range[int, 1]] = None,
    ) -> None:
        await _run(
            interaction,
            commands.list_expenses(
                str(interaction.user.id),
                categoria.value if categoria else None,
                pagina or 1,
            ),
        )


async def _run(interaction: discord.Interaction, pending) -> None:
    try:
        result = await pending
    except Exception:
        logger.exception(
            "Slash command %s failed for %s.",
            interaction.command.name if interaction.command else "?",
            interaction.user.id,
        )
        await interaction.response.send_message(COMMAND_ERROR, ephemeral=True)
        return
    await respond(interaction, result)


async def sync_commands(
    token: str,
    application_id: Optional[int],
    commands: Optional[CommandHandler] = None,
) -> int:
    """Summary: Publish or remove the global slash commands.

    Importance: Commands must be synced once before they appear in Discord; passing no handler clears them.
    Alternatives: Sync on every startup inside setup_hook.
    """

    client = FinanceBot(application_id=application_id)
    if commands is None:
        client.tree.clear_commands(guild=None)
    else:
        register_slash_commands(client.tree, commands)
    async with client:
        await client.login(token)
        synced = await client.tree.sync()
    logger.info("%s %s slash command(s).", "Synced" if commands is not None else "Cleared", len(synced))
    return len(synced)
