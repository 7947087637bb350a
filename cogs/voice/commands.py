"""
Voice Commands Cog

Parses prefixed chat commands and routes them to the PrivateVoiceService.
All business logic is delegated to the service.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, NamedTuple

import discord
from discord.ext import commands

from utils.logging import get_logger
from utils.types import CommandOutcome, VoiceChannelResult

if TYPE_CHECKING:
    from services.service_container import ServiceContainer
    from services.voice_service import PrivateVoiceService

logger = get_logger(__name__)

RECOGNIZED_COMMANDS = frozenset(
    {"new", "delete", "invite", "allow", "op", "deop", "kick", "leave"}
)


class ParsedCommand(NamedTuple):
    name: str
    argument: str


def parse_command(content: str | None, prefix: str) -> ParsedCommand | None:
    """Split ``<prefix><command> <argument>`` into its parts.

    Returns None for empty messages, messages without the prefix, and
    unknown commands. The command name is matched case-insensitively and
    must follow the prefix directly.
    """
    if not content or not content.startswith(prefix):
        return None
    body = content[len(prefix):]
    if not body or body[0].isspace():
        return None
    parts = body.split(maxsplit=1)
    name = parts[0].lower()
    if name not in RECOGNIZED_COMMANDS:
        return None
    argument = parts[1].strip() if len(parts) > 1 else ""
    return ParsedCommand(name, argument)


Handler = Callable[[discord.Message, ParsedCommand], Awaitable[VoiceChannelResult]]


class VoiceCommands(commands.Cog):
    """Private voice channel chat commands."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot
        self._handlers: dict[str, Handler] = {
            "new": self._handle_new,
            "invite": self._handle_invite,
            "allow": self._handle_invite,
            "op": self._handle_op,
            "deop": self._handle_deop,
            "kick": self._handle_kick,
            "delete": self._handle_delete,
            "leave": self._handle_leave,
        }

    @property
    def services(self) -> ServiceContainer:
        services = getattr(self.bot, "services", None)
        if services is None:
            raise RuntimeError("Bot services not initialized")
        return services

    @property
    def voice_service(self) -> PrivateVoiceService:
        """Get the voice service from the bot's service container."""
        return self.services.voice

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        try:
            await self.dispatch(message)
        except Exception as e:
            logger.exception(
                "Error handling command message %s",
                message.id,
                exc_info=e,
                extra={"user_id": message.author.id, "channel_id": message.channel.id},
            )

    async def dispatch(self, message: discord.Message) -> VoiceChannelResult | None:
        """Run the command in ``message``, if it holds one."""
        if self.bot.user is not None and message.author.id == self.bot.user.id:
            return None
        if message.guild is None:
            return None

        parsed = parse_command(message.content, self.services.settings.command_prefix)
        if parsed is None:
            return None

        logger.debug(
            "Dispatching %s from %s",
            parsed.name,
            message.author.id,
            extra={
                "guild_id": message.guild.id,
                "user_id": message.author.id,
                "command_name": parsed.name,
            },
        )
        result = await self._handlers[parsed.name](message, parsed)
        if result.outcome is CommandOutcome.FAILED:
            logger.warning(
                "Command %s from %s failed: %s",
                parsed.name,
                message.author.id,
                result.error,
                extra={"guild_id": message.guild.id, "command_name": parsed.name},
            )
        return result

    @staticmethod
    def _mentioned_ids(message: discord.Message) -> list[int]:
        return [user.id for user in message.mentions]

    async def _handle_new(
        self, message: discord.Message, parsed: ParsedCommand
    ) -> VoiceChannelResult:
        return await self.voice_service.create_channel(
            guild_id=message.guild.id,
            text_channel_id=message.channel.id,
            author_id=message.author.id,
            author_name=message.author.display_name,
            title=parsed.argument,
        )

    async def _handle_invite(
        self, message: discord.Message, parsed: ParsedCommand
    ) -> VoiceChannelResult:
        return await self.voice_service.invite_members(
            guild_id=message.guild.id,
            text_channel_id=message.channel.id,
            actor_id=message.author.id,
            user_ids=self._mentioned_ids(message),
        )

    async def _handle_op(
        self, message: discord.Message, parsed: ParsedCommand
    ) -> VoiceChannelResult:
        return await self.voice_service.op_members(
            guild_id=message.guild.id,
            text_channel_id=message.channel.id,
            actor_id=message.author.id,
            user_ids=self._mentioned_ids(message),
        )

    async def _handle_deop(
        self, message: discord.Message, parsed: ParsedCommand
    ) -> VoiceChannelResult:
        return await self.voice_service.deop_members(
            guild_id=message.guild.id,
            text_channel_id=message.channel.id,
            actor_id=message.author.id,
            user_ids=self._mentioned_ids(message),
        )

    async def _handle_kick(
        self, message: discord.Message, parsed: ParsedCommand
    ) -> VoiceChannelResult:
        return await self.voice_service.kick_members(
            guild_id=message.guild.id,
            text_channel_id=message.channel.id,
            actor_id=message.author.id,
            user_ids=self._mentioned_ids(message),
        )

    async def _handle_delete(
        self, message: discord.Message, parsed: ParsedCommand
    ) -> VoiceChannelResult:
        return await self.voice_service.delete_channel(
            guild_id=message.guild.id,
            text_channel_id=message.channel.id,
            actor_id=message.author.id,
        )

    async def _handle_leave(
        self, message: discord.Message, parsed: ParsedCommand
    ) -> VoiceChannelResult:
        # Reserved command name; accepted and ignored
        return VoiceChannelResult(CommandOutcome.IGNORED)


async def setup(bot: commands.Bot) -> None:
    """Set up the Voice Commands cog."""
    await bot.add_cog(VoiceCommands(bot))
