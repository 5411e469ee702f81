"""Summary: Direct-message dispatch pipeline for the Discord bot.

Importance: Classifies inbound DMs, enforces authentication, runs the agent, and delivers replies.
Alternatives: Handle everything inline inside the discord.py on_message event.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any

import discord

from financeai.agent import ExpenseAgent
from financeai.commands import CommandHandler, is_command, parse_command
from financeai.services import AuthService
from financeai.transcription import Transcriber, is_audio_file


logger = logging.getLogger(__name__)

MESSAGE_LIMIT = 2000
DM_FAILED_NOTICE = "🔒 Não consegui te enviar uma mensagem privada. Aqui está sua resposta:\n\n"
EMPTY_AGENT_REPLY = "Desculpe, não consegui processar sua solicitação."
TEXT_ERROR_REPLY = "❌ Ops! Ocorreu um erro ao processar sua mensagem. Tente novamente."
AUDIO_ERROR_REPLY = "❌ Ops! Ocorreu um erro ao processar seu áudio. Tente novamente."
UNEXPECTED_ERROR_REPLY = "❌ Ocorreu um erro inesperado. Nossa equipe foi notificada."
AUDIO_NOT_UNDERSTOOD = "Não consegui entender o áudio. Tente novamente com uma gravação mais clara."
AUDIO_FAILED = "Erro ao processar o áudio. Tente novamente."

PROCESSING_REACTION = "🎧"
SUCCESS_REACTION = "✅"
FAILURE_REACTION = "❌"


class MessageKind(str, Enum):
    AUDIO = "audio"
    COMMAND = "command"
    TEXT = "text"
    IGNORE = "ignore"


def find_audio_attachment(message: Any) -> Any | None:
    for attachment in message.attachments:
        if attachment.filename and is_audio_file(attachment.filename):
            return attachment
    return None


def classify_message(message: Any) -> MessageKind:
    """Summary: Decide which branch handles a direct message.

    Importance: An audio attachment wins over any text in the same message.
    Alternatives: Let the agent decide what to do with attachments.
    """

    if find_audio_attachment(message) is not None:
        return MessageKind.AUDIO
    content = (message.content or "").strip()
    if is_command(content):
        return MessageKind.COMMAND
    if content:
        return MessageKind.TEXT
    return MessageKind.IGNORE


def split_message(text: str, limit: int = MESSAGE_LIMIT) -> list[str]:
    return [text[index : index + limit] for index in range(0, len(text), limit)]


class ReplyDelivery:
    """Summary: Sends replies by DM, falling back to the original channel.

    Importance: Users with closed DMs still receive their answers.
    Alternatives: Always reply in the channel the message came from.
    """

    def __init__(self, limit: int = MESSAGE_LIMIT) -> None:
        self.limit = limit

    async def deliver(self, message: Any, text: str) -> None:
        """Summary: Send text in ordered chunks, each DM-first with a channel fallback.

        Importance: The first fallback carries the notice that the DM failed.
        Alternatives: Abort the whole reply after the first failed DM.
        """

        notified = False
        for chunk in split_message(text, self.limit):
            try:
                await message.author.send(chunk)
                continue
            except discord.HTTPException as exc:
                logger.warning(
                    "DM to %s failed for message %s (%s); replying in channel.",
                    message.author.id,
                    message.id,
                    exc,
                )
            if notified:
                await message.reply(chunk)
            elif len(DM_FAILED_NOTICE) + len(chunk) <= self.limit:
                await message.reply(DM_FAILED_NOTICE + chunk)
            else:
                await message.reply(DM_FAILED_NOTICE.rstrip())
                await message.reply(chunk)
            notified = True
        logger.info("Delivered %s chars to %s.", len(text), message.author.id)

    async def deliver_rich(
        self,
        message: Any,
        content: str | None = None,
        embed: discord.Embed | None = None,
        view: discord.ui.View | None = None,
    ) -> None:
        options: dict[str, Any] = {}
        if content:
            options["content"] = content
        if embed is not None:
            options["embed"] = embed
        if view is not None:
            options["view"] = view
        if not options:
            return
        try:
            await message.author.send(**options)
        except discord.HTTPException:
            logger.warning("DM to %s failed; replying in channel.", message.author.id)
            await message.reply(**options)


class DiscordMessageUseCase:
    """Summary: Routes one inbound direct message through the right branch.

    Importance: Exceptions never escape to the discord.py dispatcher.
    Alternatives: Rely on discord.py's default on_error logging.
    """

    def __init__(
        self,
        auth_service: AuthService,
        agent: ExpenseAgent,
        transcriber: Transcriber,
        commands: CommandHandler,
        delivery: ReplyDelivery | None = None,
    ) -> None:
        self.auth_service = auth_service
        self.agent = agent
        self.transcriber = transcriber
        self.commands = commands
        self.delivery = delivery or ReplyDelivery()

    async def handle_message(self, message: Any) -> MessageKind:
        if message.author.bot:
            return MessageKind.IGNORE
        if message.guild is not None:
            logger.debug("Ignoring guild message %s.", message.id)
            return MessageKind.IGNORE

        kind = classify_message(message)
        logger.info("DM %s from %s classified as %s.", message.id, message.author.id, kind.value)
        try:
            if kind is MessageKind.AUDIO:
                await self.handle_audio_message(message, find_audio_attachment(message))
            elif kind is MessageKind.COMMAND:
                await self.handle_command(message, message.content.strip())
            elif kind is MessageKind.TEXT:
                await self.handle_text_message(message, message.content.strip())
        except Exception:
            logger.exception("Failed to handle message %s from %s.", message.id, message.author.id)
            await self._safe_reply(message, UNEXPECTED_ERROR_REPLY)
        return kind

    async def handle_text_message(self, message: Any, content: str) -> None:
        try:
            await message.channel.typing()
            auth = await asyncio.to_thread(
                self.auth_service.check_auth_and_get_message, str(message.author.id)
            )
            if not auth.is_authenticated:
                await self.delivery.deliver(message, auth.message or "Erro de autenticação")
                return
            reply = await self._ask_agent(auth.user_id, auth.user_name, content)
            await self.delivery.deliver(message, reply)
            logger.info("Text message %s handled for user %s.", message.id, auth.user_id)
        except Exception:
            logger.exception(
                "Failed to handle text message %s from %s.", message.id, message.author.id
            )
            await self._safe_reply(message, TEXT_ERROR_REPLY)

    async def handle_audio_message(self, message: Any, attachment: Any) -> None:
        """Summary: Transcribe a voice note and answer it like a text message.

        Importance: Echoes the transcription so users can confirm what was heard.
        Alternatives: Ask users to confirm the transcription before running the agent.
        """

        try:
            await message.add_reaction(PROCESSING_REACTION)
            auth = await asyncio.to_thread(
                self.auth_service.check_auth_and_get_message, str(message.author.id)
            )
            if not auth.is_authenticated:
                await self.delivery.deliver(message, auth.message or "Erro de autenticação")
                return

            transcription, error = await self._transcribe(message, attachment)
            if error:
                await message.reply(error)
                await message.add_reaction(FAILURE_REACTION)
                return

            reply = await self._ask_agent(auth.user_id, auth.user_name, transcription)
            await self.delivery.deliver(message, f'🎤 **Você disse:** "{transcription}"\n\n{reply}')
            await message.add_reaction(SUCCESS_REACTION)
            logger.info("Audio message %s handled for user %s.", message.id, auth.user_id)
        except Exception:
            logger.exception(
                "Failed to handle audio message %s from %s.", message.id, message.author.id
            )
            await self._safe_reply(message, AUDIO_ERROR_REPLY)
            await self._safe_react(message, FAILURE_REACTION)

    async def handle_command(self, message: Any, content: str) -> None:
        command, args = parse_command(content)
        result = await self.commands.handle_text_command(str(message.author.id), command, args)
        await self.delivery.deliver_rich(message, result.message, result.embed, result.view)

    async def _ask_agent(self, user_id: str, user_name: str, content: str) -> str:
        reply = await asyncio.to_thread(self.agent.run, user_id, user_name, content)
        return reply or EMPTY_AGENT_REPLY

    async def _transcribe(self, message: Any, attachment: Any) -> tuple[str, str | None]:
        try:
            audio = await attachment.read()
            text = await asyncio.to_thread(self.transcriber.transcribe, audio, attachment.filename)
        except Exception:
            logger.exception("Audio processing failed for message %s.", message.id)
            return "", AUDIO_FAILED
        if not text.strip():
            logger.warning("Empty transcription for message %s.", message.id)
            return "", AUDIO_NOT_UNDERSTOOD
        logger.info("Transcribed message %s (%s chars).", message.id, len(text))
        return text.strip(), None

    async def _safe_reply(self, message: Any, text: str) -> None:
        try:
            await message.reply(text)
        except discord.HTTPException:
            logger.exception("Failed to send error reply for message %s.", message.id)

    async def _safe_react(self, message: Any, emoji: str) -> None:
        try:
            await message.add_reaction(emoji)
        except discord.HTTPException:
            logger.exception("Failed to react to message %s.", message.id)
