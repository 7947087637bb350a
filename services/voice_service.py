"""
Voice service for private voice channels.

Implements the chat command handlers (create, invite, op, deop, kick,
delete) on top of the channel registry and the Discord gateway. Platform
I/O never runs while the registry lock is held.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from config.config_loader import MAX_CHANNEL_NAME_LENGTH, BotSettings
from helpers.error_messages import format_user_error, format_user_success
from helpers.permissions_helper import (
    EVERYONE_DENY,
    MEMBER_ALLOW,
    NO_PERMISSIONS,
    OWNER_ALLOW,
    SubjectKind,
    is_authorized,
    is_owner,
)
from utils.errors import GatewayError
from utils.types import CommandOutcome, VoiceChannelResult

from .base import BaseService
from .channel_registry import ChannelRegistry, VoiceChannelRecord

if TYPE_CHECKING:
    from helpers.discord_api import DiscordGateway


class PrivateVoiceService(BaseService):
    """
    Service owning the private voice channel commands.

    Every privileged command resolves "the actor's channel" from the actor's
    live voice presence and is silently ignored unless the actor owns or
    operates that channel.
    """

    def __init__(
        self,
        settings: BotSettings,
        registry: ChannelRegistry,
        gateway: DiscordGateway,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__("voice")
        self.settings = settings
        self.registry = registry
        self.gateway = gateway
        self.clock = clock

    async def health_check(self) -> dict[str, Any]:
        health = self._base_health()
        health["registry"] = await self.registry.health_check()
        return health

    def compose_name(self, title: str, fallback: str) -> str:
        return f"{self.settings.voice_channel_prefix}{title or fallback}"

    async def _reply(self, channel_id: int, text: str) -> None:
        await self.gateway.send_message(channel_id, text)

    async def _actor_channel(
        self, guild_id: int, actor_id: int
    ) -> VoiceChannelRecord | None:
        """The tracked channel the actor is connected to right now."""
        presence = await self.gateway.get_voice_presence(actor_id, guild_id)
        return await self.registry.find_by_presence(presence)

    async def _authorized_channel(
        self, guild_id: int, actor_id: int, command: str
    ) -> VoiceChannelRecord | None:
        record = await self._actor_channel(guild_id, actor_id)
        if record is None:
            self.logger.debug(
                "%s by %s ignored: not in a private channel",
                command,
                actor_id,
                extra={"guild_id": guild_id, "user_id": actor_id, "command_name": command},
            )
            return None
        if not is_authorized(record, actor_id):
            self.logger.debug(
                "%s by %s ignored: not owner or operator of %s",
                command,
                actor_id,
                record.channel_id,
                extra={"guild_id": guild_id, "user_id": actor_id, "command_name": command},
            )
            return None
        return record

    async def create_channel(
        self,
        *,
        guild_id: int,
        text_channel_id: int,
        author_id: int,
        author_name: str,
        title: str,
    ) -> VoiceChannelResult:
        """Create a private voice channel owned by the author."""
        name = self.compose_name(title, author_name)
        if len(name) > MAX_CHANNEL_NAME_LENGTH:
            await self._reply(
                text_channel_id,
                format_user_error(
                    "NAME_TOO_LONG", user_id=author_id, limit=MAX_CHANNEL_NAME_LENGTH
                ),
            )
            return VoiceChannelResult(CommandOutcome.REJECTED, error="NAME_TOO_LONG")

        try:
            presence = await self.gateway.get_voice_presence(author_id, guild_id)
        except GatewayError as e:
            self.logger.warning("Cannot resolve voice presence of %s: %s", author_id, e)
            return VoiceChannelResult(CommandOutcome.FAILED, error="PRESENCE_UNAVAILABLE")

        if not await self.registry.reserve(author_id, guild_id, presence):
            await self._reply(
                text_channel_id, format_user_error("NOT_ELIGIBLE", user_id=author_id)
            )
            return VoiceChannelResult(CommandOutcome.REJECTED, error="NOT_ELIGIBLE")

        committed = False
        try:
            try:
                channel_id = await self._provision_channel(guild_id, author_id, name)
            except GatewayError as e:
                self.logger.exception(
                    "Failed to create private channel for %s",
                    author_id,
                    exc_info=e,
                    extra={"guild_id": guild_id, "user_id": author_id},
                )
                return VoiceChannelResult(CommandOutcome.FAILED, error="CREATION_FAILED")

            record = VoiceChannelRecord(
                guild_id=guild_id,
                channel_id=channel_id,
                owner_id=author_id,
                display_name=name,
                created_at=self.clock(),
            )
            await self.registry.create(record)
            committed = True
        finally:
            # Any other outcome must not leave the owner slot reserved
            if not committed:
                await self.registry.release(author_id)

        await self._reply(text_channel_id, format_user_success("CREATED", name=name))
        return VoiceChannelResult(CommandOutcome.OK, channel_id=channel_id)

    async def _provision_channel(self, guild_id: int, owner_id: int, name: str) -> int:
        """Create the platform channel and lock it down to the owner.

        The @everyone role shares the guild's id. A half-configured channel
        is deleted again before the error propagates.
        """
        channel_id = await self.gateway.create_voice_channel(guild_id, name)
        try:
            await self.gateway.set_channel_permission(
                channel_id, guild_id, SubjectKind.ROLE, NO_PERMISSIONS, EVERYONE_DENY
            )
            await self.gateway.set_channel_permission(
                channel_id, owner_id, SubjectKind.MEMBER, OWNER_ALLOW, NO_PERMISSIONS
            )
        except Exception:
            try:
                await self.gateway.delete_channel(channel_id)
            except Exception as cleanup_error:
                self.logger.warning(
                    "Could not remove half-created channel %s: %s",
                    channel_id,
                    cleanup_error,
                )
            raise
        return channel_id

    async def _apply_to_members(
        self,
        record: VoiceChannelRecord,
        user_ids: Iterable[int],
        allow: int,
        deny: int,
    ) -> list[int]:
        """Set the same member overwrite for each user; returns those that succeeded."""
        applied: list[int] = []
        for user_id in dict.fromkeys(user_ids):
            try:
                await self.gateway.set_channel_permission(
                    record.channel_id, user_id, SubjectKind.MEMBER, allow, deny
                )
            except GatewayError as e:
                self.logger.warning(
                    "Failed to update permissions of %s on %s: %s",
                    user_id,
                    record.channel_id,
                    e,
                    extra={"channel_id": record.channel_id, "user_id": user_id},
                )
                continue
            applied.append(user_id)
        return applied

    async def invite_members(
        self,
        *,
        guild_id: int,
        text_channel_id: int,
        actor_id: int,
        user_ids: list[int],
    ) -> VoiceChannelResult:
        """Let mentioned users connect and speak in the actor's channel.

        Anyone currently inside a tracked channel may invite.
        """
        if not user_ids:
            return VoiceChannelResult(CommandOutcome.IGNORED)
        record = await self._actor_channel(guild_id, actor_id)
        if record is None:
            return VoiceChannelResult(CommandOutcome.IGNORED)

        applied = await self._apply_to_members(record, user_ids, MEMBER_ALLOW, NO_PERMISSIONS)
        await self._reply(
            text_channel_id, format_user_success("INVITED", name=record.display_name)
        )
        return VoiceChannelResult(
            CommandOutcome.OK, channel_id=record.channel_id, affected_user_ids=tuple(applied)
        )

    async def op_members(
        self,
        *,
        guild_id: int,
        text_channel_id: int,
        actor_id: int,
        user_ids: list[int],
    ) -> VoiceChannelResult:
        """Give mentioned users owner-equivalent rights and operator status."""
        if not user_ids:
            return VoiceChannelResult(CommandOutcome.IGNORED)
        record = await self._authorized_channel(guild_id, actor_id, "op")
        if record is None:
            return VoiceChannelResult(CommandOutcome.UNAUTHORIZED)

        targets = [uid for uid in user_ids if not is_owner(record, uid)]
        applied = await self._apply_to_members(record, targets, OWNER_ALLOW, NO_PERMISSIONS)
        for user_id in applied:
            await self.registry.add_operator(record.channel_id, user_id)

        await self._reply(
            text_channel_id, format_user_success("OPPED", name=record.display_name)
        )
        return VoiceChannelResult(
            CommandOutcome.OK, channel_id=record.channel_id, affected_user_ids=tuple(applied)
        )

    async def deop_members(
        self,
        *,
        guild_id: int,
        text_channel_id: int,
        actor_id: int,
        user_ids: list[int],
    ) -> VoiceChannelResult:
        """Drop mentioned users back to plain connect/speak access."""
        if not user_ids:
            return VoiceChannelResult(CommandOutcome.IGNORED)
        record = await self._authorized_channel(guild_id, actor_id, "deop")
        if record is None:
            return VoiceChannelResult(CommandOutcome.UNAUTHORIZED)

        targets = [uid for uid in user_ids if not is_owner(record, uid)]
        applied = await self._apply_to_members(record, targets, MEMBER_ALLOW, NO_PERMISSIONS)
        await self.registry.remove_operators(record.channel_id, applied)

        await self._reply(
            text_channel_id, format_user_success("DEOPPED", name=record.display_name)
        )
        return VoiceChannelResult(
            CommandOutcome.OK, channel_id=record.channel_id, affected_user_ids=tuple(applied)
        )

    async def kick_members(
        self,
        *,
        guild_id: int,
        text_channel_id: int,
        actor_id: int,
        user_ids: list[int],
    ) -> VoiceChannelResult:
        """Remove every capability mentioned users had on the channel."""
        if not user_ids:
            return VoiceChannelResult(CommandOutcome.IGNORED)
        record = await self._authorized_channel(guild_id, actor_id, "kick")
        if record is None:
            return VoiceChannelResult(CommandOutcome.UNAUTHORIZED)

        targets = [uid for uid in user_ids if not is_owner(record, uid)]
        applied = await self._apply_to_members(record, targets, NO_PERMISSIONS, NO_PERMISSIONS)
        await self.registry.remove_operators(record.channel_id, applied)

        await self._reply(
            text_channel_id, format_user_success("KICKED", name=record.display_name)
        )
        return VoiceChannelResult(
            CommandOutcome.OK, channel_id=record.channel_id, affected_user_ids=tuple(applied)
        )

    async def delete_channel(
        self, *, guild_id: int, text_channel_id: int, actor_id: int
    ) -> VoiceChannelResult:
        """Delete the actor's channel on the platform and in the registry."""
        record = await self._authorized_channel(guild_id, actor_id, "delete")
        if record is None:
            return VoiceChannelResult(CommandOutcome.UNAUTHORIZED)

        removed = await self.registry.delete(record.channel_id)
        if removed is None:
            # Already removed by the reactor or sweeper
            return VoiceChannelResult(CommandOutcome.IGNORED, channel_id=record.channel_id)
        if not await self.discard_channel(removed):
            return VoiceChannelResult(
                CommandOutcome.FAILED, channel_id=record.channel_id, error="DELETE_FAILED"
            )

        await self._reply(
            text_channel_id, format_user_success("DELETED", name=record.display_name)
        )
        return VoiceChannelResult(CommandOutcome.OK, channel_id=record.channel_id)

    async def discard_channel(self, record: VoiceChannelRecord) -> bool:
        """Delete the platform channel of a record already removed from the registry.

        On failure the record is put back so a later pass retries; if that is
        no longer possible the channel is left as an untracked orphan.
        """
        try:
            await self.gateway.delete_channel(record.channel_id)
        except Exception as e:
            # Any failure counts as "still on the platform"
            self.logger.error(
                "Failed to delete private channel %s: %s",
                record.channel_id,
                e,
                extra={"guild_id": record.guild_id, "channel_id": record.channel_id},
            )
            if not await self.registry.restore(record):
                self.logger.warning(
                    "Channel %s left untracked; it will be removed as an orphan once empty",
                    record.channel_id,
                )
            return False
        return True

    async def handle_channel_deleted(self, channel_id: int) -> None:
        """Forget a tracked channel that was deleted outside the bot."""
        record = await self.registry.delete(channel_id)
        if record:
            self.logger.info(
                "Private channel %s was deleted externally",
                channel_id,
                extra={"guild_id": record.guild_id, "channel_id": channel_id},
            )
