"""
Centralized module for all Discord API calls.

DiscordGateway is the only place the bot talks to the platform. Each call is
routed through task_queue.submit so it is rate-limited and transient server
errors are retried. Cache misses fall back to a direct fetch via the
per-entity refreshers below.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Generic, Protocol, TypeVar

import discord

from helpers.permissions_helper import SubjectKind
from helpers.task_queue import submit
from utils.errors import GatewayError
from utils.logging import get_logger

logger = get_logger(__name__)

EntityT = TypeVar("EntityT", covariant=True)


class Refreshable(Protocol[EntityT]):
    """Looks an entity up in the client cache, or fetches it from the API."""

    def cached(self, entity_id: int) -> EntityT | None: ...

    async def refetch(self, entity_id: int) -> EntityT: ...


class GuildRefresher:
    def __init__(self, bot: discord.Client) -> None:
        self.bot = bot

    def cached(self, entity_id: int) -> discord.Guild | None:
        return self.bot.get_guild(entity_id)

    async def refetch(self, entity_id: int) -> discord.Guild:
        return await submit(lambda: self.bot.fetch_guild(entity_id))


class ChannelRefresher:
    def __init__(self, bot: discord.Client) -> None:
        self.bot = bot

    def cached(self, entity_id: int) -> discord.abc.GuildChannel | None:
        return self.bot.get_channel(entity_id)  # type: ignore[return-value]

    async def refetch(self, entity_id: int) -> discord.abc.GuildChannel:
        return await submit(lambda: self.bot.fetch_channel(entity_id))  # type: ignore[return-value]


T = TypeVar("T")


@dataclass
class Resolved(Generic[T]):
    entity: T
    from_cache: bool


async def resolve(refresher: Refreshable[T], entity_id: int, kind: str) -> Resolved[T]:
    """Return the cached entity, or fetch it when the cache has no copy.

    Raises:
        GatewayError: If the fallback fetch fails.
    """
    entity = refresher.cached(entity_id)
    if entity is not None:
        return Resolved(entity, True)

    logger.debug("Cache miss for %s %s; fetching", kind, entity_id)
    try:
        fetched = await refresher.refetch(entity_id)
    except discord.HTTPException as e:
        raise GatewayError(f"fetch_{kind}", e) from e
    return Resolved(fetched, False)


@dataclass(frozen=True)
class VoiceChannelView:
    channel_id: int
    name: str


@dataclass
class GuildSnapshot:
    """Voice channels of a guild and who is connected where."""

    guild_id: int
    voice_channels: list[VoiceChannelView] = field(default_factory=list)
    # user_id -> channel_id
    voice_states: dict[int, int] = field(default_factory=dict)
    from_cache: bool = True

    def occupant_count(self, channel_id: int) -> int:
        return sum(1 for cid in self.voice_states.values() if cid == channel_id)

    def presence_of(self, user_id: int) -> int | None:
        return self.voice_states.get(user_id)

    def prefixed_channels(self, prefix: str) -> list[VoiceChannelView]:
        """Channels whose name starts with ``prefix`` and has a title after it."""
        return [
            ch
            for ch in self.voice_channels
            if len(ch.name) > len(prefix) and ch.name.startswith(prefix)
        ]


def _snapshot_from_channels(
    guild_id: int, channels: Iterable[object], *, from_cache: bool
) -> GuildSnapshot:
    snapshot = GuildSnapshot(guild_id=guild_id, from_cache=from_cache)
    for channel in channels:
        if not isinstance(channel, discord.VoiceChannel):
            continue
        snapshot.voice_channels.append(VoiceChannelView(channel.id, channel.name))
        if from_cache:
            for user_id in channel.voice_states:
                snapshot.voice_states[user_id] = channel.id
    return snapshot


class DiscordGateway:
    """Platform operations used by the private voice channel core."""

    def __init__(self, bot: discord.Client) -> None:
        self.bot = bot
        self.guilds = GuildRefresher(bot)
        self.channels = ChannelRefresher(bot)

    async def send_message(self, channel_id: int, text: str) -> bool:
        """Send a chat message. Failures are logged, never raised."""
        try:
            resolved = await resolve(self.channels, channel_id, "channel")
            channel = resolved.entity
            if not isinstance(channel, discord.abc.Messageable):
                logger.warning("Channel %s cannot receive messages", channel_id)
                return False
            await submit(lambda: channel.send(text))
        except (GatewayError, discord.HTTPException) as e:
            logger.warning(
                "Failed to send message to channel %s: %s",
                channel_id,
                e,
                extra={"channel_id": channel_id},
            )
            return False
        return True

    async def create_voice_channel(self, guild_id: int, name: str) -> int:
        """Create a voice channel and return its id.

        Raises:
            GatewayError: If the platform rejects the request.
        """
        try:
            data = await submit(
                lambda: self.bot.http.create_channel(
                    guild_id, discord.ChannelType.voice.value, name=name
                )
            )
        except discord.HTTPException as e:
            raise GatewayError("create_voice_channel", e) from e
        channel_id = int(data["id"])
        logger.info(
            "Created voice channel '%s' (%s)",
            name,
            channel_id,
            extra={"guild_id": guild_id, "channel_id": channel_id},
        )
        return channel_id

    async def delete_channel(self, channel_id: int) -> None:
        """Delete a channel. A channel that is already gone counts as deleted.

        Raises:
            GatewayError: If the platform refuses the deletion.
        """
        try:
            await submit(lambda: self.bot.http.delete_channel(channel_id))
        except discord.NotFound:
            logger.warning(
                f"Channel '{channel_id}' not found. It may have already been deleted."
            )
            return
        except discord.HTTPException as e:
            raise GatewayError("delete_channel", e) from e
        logger.info(f"Deleted channel '{channel_id}' successfully.")

    async def set_channel_permission(
        self,
        channel_id: int,
        subject_id: int,
        subject_kind: SubjectKind,
        allow: int,
        deny: int,
    ) -> None:
        """Replace the overwrite for one member or role on a channel.

        Raises:
            GatewayError: If the platform rejects the overwrite.
        """
        try:
            await submit(
                lambda: self.bot.http.edit_channel_permissions(
                    channel_id,
                    subject_id,
                    str(allow),
                    str(deny),
                    subject_kind.overwrite_type,
                )
            )
        except discord.HTTPException as e:
            raise GatewayError("set_channel_permission", e) from e
        logger.debug(
            "Set %s overwrite for %s on %s (allow=%s deny=%s)",
            subject_kind.value,
            subject_id,
            channel_id,
            allow,
            deny,
        )

    async def get_guild_snapshot(self, guild_id: int) -> GuildSnapshot:
        """Voice channels and voice states of a guild.

        Served from the client cache. On a cache miss the guild and its
        channels are fetched directly; such snapshots carry no voice states
        and are flagged with ``from_cache=False``.
        """
        resolved = await resolve(self.guilds, guild_id, "guild")
        if resolved.from_cache:
            return _snapshot_from_channels(
                guild_id, resolved.entity.voice_channels, from_cache=True
            )

        guild = resolved.entity
        try:
            channels = await submit(guild.fetch_channels)
        except discord.HTTPException as e:
            raise GatewayError("fetch_channels", e) from e
        logger.warning(
            "Guild %s was not cached; voice states unavailable for this pass",
            guild_id,
            extra={"guild_id": guild_id},
        )
        return _snapshot_from_channels(guild_id, channels, from_cache=False)

    async def get_voice_presence(self, user_id: int, guild_id: int) -> int | None:
        """Id of the voice channel ``user_id`` is connected to, if any."""
        snapshot = await self.get_guild_snapshot(guild_id)
        return snapshot.presence_of(user_id)
