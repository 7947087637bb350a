"""
Lifecycle reactor for private voice channels.

Reacts to voice state changes: marks joined channels as occupied and deletes
prefixed channels that have been left empty.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from config.config_loader import BotSettings
from utils.errors import GatewayError

from .base import BaseService
from .channel_registry import ChannelRegistry

if TYPE_CHECKING:
    from helpers.discord_api import DiscordGateway, GuildSnapshot

    from .voice_service import PrivateVoiceService


class LifecycleReactor(BaseService):
    """Keeps platform channels and registry records in step with voice presence."""

    def __init__(
        self,
        settings: BotSettings,
        registry: ChannelRegistry,
        gateway: DiscordGateway,
        voice: PrivateVoiceService,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__("lifecycle")
        self.settings = settings
        self.registry = registry
        self.gateway = gateway
        self.voice = voice
        self.clock = clock
        self.deleted_count = 0
        self.orphans_deleted = 0

    async def health_check(self) -> dict[str, Any]:
        health = self._base_health()
        health["deleted_channels"] = self.deleted_count
        health["deleted_orphans"] = self.orphans_deleted
        return health

    async def handle_voice_state_update(
        self, guild_id: int, channel_id: int | None
    ) -> None:
        """Process one voice state change in ``guild_id``.

        ``channel_id`` is the channel the member moved into, or None when
        they disconnected.
        """
        await self.registry.mark_occupied(channel_id)
        await self.reconcile_guild(guild_id)

    async def reconcile_guild(self, guild_id: int) -> int:
        """Delete every empty prefixed channel that should not exist anymore.

        Returns the number of platform channels deleted.
        """
        try:
            snapshot = await self.gateway.get_guild_snapshot(guild_id)
        except GatewayError as e:
            self.logger.warning(
                "Skipping reconcile of guild %s: %s", guild_id, e, extra={"guild_id": guild_id}
            )
            return 0

        if not snapshot.from_cache:
            # Occupancy is unknown without voice states
            self.logger.info(
                "Skipping reconcile of guild %s: no voice state snapshot",
                guild_id,
                extra={"guild_id": guild_id},
            )
            return 0

        return await self._sweep_empty_channels(snapshot)

    async def _sweep_empty_channels(self, snapshot: GuildSnapshot) -> int:
        deleted = 0
        now = self.clock()
        delay = self.settings.unjoined_channel_delete_delay
        creation_in_flight = await self.registry.has_pending(snapshot.guild_id)

        for channel in snapshot.prefixed_channels(self.settings.voice_channel_prefix):
            occupants = snapshot.occupant_count(channel.channel_id)
            self.logger.debug(
                "Channel %s (%s) has %s occupant(s)",
                channel.channel_id,
                channel.name,
                occupants,
            )
            if occupants:
                continue

            if await self.registry.get(channel.channel_id) is not None:
                record = await self.registry.delete_if_abandoned(
                    channel.channel_id, now, delay
                )
                if record is None:
                    # Never joined and still inside its grace period
                    continue
                if await self.voice.discard_channel(record):
                    deleted += 1
                    self.deleted_count += 1
                continue

            if creation_in_flight:
                # Could be a channel whose record is about to be committed
                continue
            if await self._delete_orphan(snapshot.guild_id, channel.channel_id, channel.name):
                deleted += 1

        return deleted

    async def _delete_orphan(self, guild_id: int, channel_id: int, name: str) -> bool:
        self.logger.info(
            "Deleting untracked empty channel %s (%s)",
            channel_id,
            name,
            extra={"guild_id": guild_id, "channel_id": channel_id},
        )
        try:
            await self.gateway.delete_channel(channel_id)
        except GatewayError as e:
            self.logger.warning("Failed to delete orphan channel %s: %s", channel_id, e)
            return False
        self.orphans_deleted += 1
        return True
