"""Summary: Command-line interface for FinanceAI.

Importance: Starts the bot and web server and runs one-off maintenance tasks.
Alternatives: Use a CLI framework like Typer or Click.
"""

from __future__ import annotations

import argparse
import asyncio
import logging

import uvicorn

from financeai.api import create_app
from financeai.app import AppContext, build_context, configure_logging, parse_application_id
from financeai.bot import sync_commands
from financeai.config import AppConfig
from financeai.storage.database import Database


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Summary: Build the CLI argument parser.

    Importance: Defines supported commands for local operation.
    Alternatives: Use a CLI framework like Typer or Click.
    """

    parser = argparse.ArgumentParser(description="FinanceAI CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("run", help="Run the Discord bot and the web server together")
    subparsers.add_parser("serve-web", help="Run only the web server")
    subparsers.add_parser("run-bot", help="Run only the Discord bot")
    subparsers.add_parser("register-commands", help="Publish the slash commands to Discord")
    subparsers.add_parser("delete-commands", help="Remove all global slash commands")
    subparsers.add_parser("init-db", help="Create the database tables")
    return parser


def _web_server(config: AppConfig, context: AppContext) -> uvicorn.Server:
    app = create_app(config, context)
    return uvicorn.Server(
        uvicorn.Config(app, host=config.host, port=config.port, log_level=config.log_level.lower())
    )


async def run_all(config: AppConfig, context: AppContext) -> None:
    """Summary: Serve HTTP and Discord traffic on one event loop.

    Importance: The OAuth callback can DM users through the running bot client.
    Alternatives: Run the web server and bot as separate processes.
    """

    server = _web_server(config, context)
    async with context.bot:
        await asyncio.gather(server.serve(), context.bot.start(config.discord_bot_token))


async def run_bot(config: AppConfig, context: AppContext) -> None:
    async with context.bot:
        await context.bot.start(config.discord_bot_token)


def run_cli(argv: list[str] | None = None) -> None:
    """Summary: Execute CLI commands based on parsed arguments.

    Importance: Provides a scriptable interface for local operation.
    Alternatives: Use a UI or a REST API as the only interface.
    """

    parser = build_parser()
    args = parser.parse_args(argv)
    config = AppConfig.from_env()
    configure_logging(config.log_level)

    if args.command == "init-db":
        Database(config.database_path).initialize()
        print(f"Database ready at {config.database_path}.")
        return

    application_id = parse_application_id(config.discord_client_id)
    if args.command == "delete-commands":
        count = asyncio.run(sync_commands(config.discord_bot_token, application_id))
        print(f"Remaining global commands: {count}.")
        return

    context = build_context(config)

    if args.command == "register-commands":
        count = asyncio.run(
            sync_commands(config.discord_bot_token, application_id, context.commands)
        )
        print(f"Registered {count} slash commands.")
        return

    if args.command == "serve-web":
        _web_server(config, context).run()
        return

    if args.command == "run-bot":
        asyncio.run(run_bot(config, context))
        return

    if args.command == "run":
        logger.info("Starting FinanceAI on %s:%s.", config.host, config.port)
        asyncio.run(run_all(config, context))
        return


if __name__ == "__main__":
    run_cli()
