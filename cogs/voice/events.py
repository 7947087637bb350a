"""
Voice Events Cog

Handles Discord voice state and channel events and delegates to the
lifecycle reactor and voice service.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from utils.logging import get_logger

if TYPE_CHECKING:
    from services.service_container import ServiceContainer

logger = get_logger(__name__)


class VoiceEvents(commands.Cog):
    """Handles voice state change events."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot

    @property
    def services(self) -> ServiceContainer:
        services = getattr(self.bot, "services", None)
        if services is None:
            raise RuntimeError("Bot services not initialized")
        return services

    @commands.Cog.listener()
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        """Mark joined channels occupied and clean up emptied ones."""
        try:
            await self.services.lifecycle.handle_voice_state_update(
                guild_id=member.guild.id,
                channel_id=after.channel.id if after.channel else None,
            )
        except Exception as e:
            logger.exception(
                f"Error handling voice state update for {member} "
                f"(before: {before.channel}, after: {after.channel}): {e}"
            )

    @commands.Cog.listener()
    async def on_guild_channel_delete(self, channel: discord.abc.GuildChannel) -> None:
        """Drop registry records of channels deleted outside the bot."""
        if not isinstance(channel, discord.VoiceChannel):
            return

        try:
            await self.services.voice.handle_channel_deleted(channel.id)
        except Exception as e:
            logger.exception("Error handling channel deletion for %s", channel, exc_info=e)

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        """Remove empty private channels left over from a previous run."""
        for guild in list(self.bot.guilds):
            try:
                deleted = await self.services.lifecycle.reconcile_guild(guild.id)
                if deleted:
                    logger.info(
                        "Startup reconcile removed %s channel(s) in '%s'",
                        deleted,
                        guild.name,
                        extra={"guild_id": guild.id},
                    )
            except Exception as e:
                logger.exception("Error reconciling guild %s", guild.id, exc_info=e)


async def setup(bot: commands.Bot) -> None:
    """Set up the Voice Events cog."""
    await bot.add_cog(VoiceEvents(bot))
