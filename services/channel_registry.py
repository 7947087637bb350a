"""
In-memory registry of active private voice channels.

Every read and write goes through a single asyncio lock. Records handed out
are copies; callers mutate state only through registry methods.
"""

from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from utils.errors import ServiceError
from utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class VoiceChannelRecord:
    """State of one bot-created private voice channel."""

    guild_id: int
    channel_id: int
    owner_id: int
    display_name: str
    created_at: float
    operators: set[int] = field(default_factory=set)
    occupied: bool = False

    def is_expired(self, now: float, delete_delay: int) -> bool:
        """True once an unjoined channel has outlived its grace period."""
        return self.created_at + delete_delay <= now

    def copy(self) -> VoiceChannelRecord:
        return dataclasses.replace(self, operators=set(self.operators))


class ChannelRegistry:
    """Authoritative mapping of channel id to VoiceChannelRecord."""

    def __init__(self) -> None:
        self._records: dict[int, VoiceChannelRecord] = {}
        # owner_id -> guild_id for creations in flight
        self._pending: dict[int, int] = {}
        self._lock = asyncio.Lock()

    def _owner_record(self, owner_id: int) -> VoiceChannelRecord | None:
        for record in self._records.values():
            if record.owner_id == owner_id:
                return record
        return None

    async def reserve(
        self, owner_id: int, guild_id: int, presence_channel_id: int | None
    ) -> bool:
        """Atomically check creation eligibility and reserve the owner slot.

        A user is eligible when they own no channel, have no creation in
        flight, and are not currently inside a tracked channel.
        """
        async with self._lock:
            if owner_id in self._pending or self._owner_record(owner_id) is not None:
                return False
            if presence_channel_id is not None and presence_channel_id in self._records:
                return False
            self._pending[owner_id] = guild_id
            return True

    async def release(self, owner_id: int) -> None:
        async with self._lock:
            self._pending.pop(owner_id, None)

    async def has_pending(self, guild_id: int) -> bool:
        async with self._lock:
            return guild_id in self._pending.values()

    async def create(self, record: VoiceChannelRecord) -> int:
        """Insert a new record and clear the owner's reservation.

        Raises:
            ServiceError: If the owner already holds a channel or the
                channel id is already tracked.
        """
        async with self._lock:
            if record.channel_id in self._records:
                raise ServiceError(f"Channel {record.channel_id} is already tracked")
            if self._owner_record(record.owner_id) is not None:
                raise ServiceError(f"User {record.owner_id} already owns a channel")
            stored = record.copy()
            stored.operators.discard(stored.owner_id)
            self._records[stored.channel_id] = stored
            self._pending.pop(stored.owner_id, None)
        logger.info(
            "Tracking private channel %s (%s) owned by %s",
            record.channel_id,
            record.display_name,
            record.owner_id,
            extra={"guild_id": record.guild_id, "channel_id": record.channel_id},
        )
        return record.channel_id

    async def restore(self, record: VoiceChannelRecord) -> bool:
        """Re-insert a record removed by a failed deletion.

        Returns False (and leaves the registry unchanged) when the channel id
        is taken by now, or the owner already holds or is creating a new channel.
        """
        async with self._lock:
            if record.channel_id in self._records:
                return False
            if record.owner_id in self._pending:
                return False
            if self._owner_record(record.owner_id) is not None:
                return False
            self._records[record.channel_id] = record.copy()
        logger.info("Restored private channel %s after failed deletion", record.channel_id)
        return True

    async def get(self, channel_id: int | None) -> VoiceChannelRecord | None:
        if channel_id is None:
            return None
        async with self._lock:
            record = self._records.get(channel_id)
            return record.copy() if record else None

    async def find_by_owner(self, owner_id: int) -> VoiceChannelRecord | None:
        async with self._lock:
            record = self._owner_record(owner_id)
            return record.copy() if record else None

    async def find_by_presence(
        self, presence_channel_id: int | None
    ) -> VoiceChannelRecord | None:
        """Look up the tracked channel a user is currently connected to."""
        return await self.get(presence_channel_id)

    async def add_operator(self, channel_id: int, user_id: int) -> bool:
        """Grant operator status. Returns True if the set changed."""
        async with self._lock:
            record = self._records.get(channel_id)
            if record is None or user_id == record.owner_id or user_id in record.operators:
                return False
            record.operators.add(user_id)
        logger.debug("Added operator %s to channel %s", user_id, channel_id)
        return True

    async def remove_operators(self, channel_id: int, user_ids: Iterable[int]) -> set[int]:
        """Revoke operator status. Returns the ids actually removed."""
        async with self._lock:
            record = self._records.get(channel_id)
            if record is None:
                return set()
            removed = record.operators & set(user_ids)
            record.operators -= removed
        if removed:
            logger.debug("Removed operators %s from channel %s", sorted(removed), channel_id)
        return removed

    async def mark_occupied(self, channel_id: int | None) -> bool:
        """Flag a tracked channel as joined. The flag never reverts."""
        if channel_id is None:
            return False
        async with self._lock:
            record = self._records.get(channel_id)
            if record is None:
                return False
            if not record.occupied:
                record.occupied = True
                logger.debug("Channel %s is now occupied", channel_id)
            return True

    async def delete(self, channel_id: int) -> VoiceChannelRecord | None:
        async with self._lock:
            record = self._records.pop(channel_id, None)
        if record:
            logger.info(
                "Untracked private channel %s (%s)",
                channel_id,
                record.display_name,
                extra={"guild_id": record.guild_id, "channel_id": channel_id},
            )
        return record

    async def delete_if_abandoned(
        self, channel_id: int, now: float, delete_delay: int
    ) -> VoiceChannelRecord | None:
        """Remove a record that was occupied before or whose grace period ran out."""
        async with self._lock:
            record = self._records.get(channel_id)
            if record is None:
                return None
            if not (record.occupied or record.is_expired(now, delete_delay)):
                return None
            del self._records[channel_id]
        logger.info("Untracked abandoned private channel %s", channel_id)
        return record

    async def pop_expired(self, now: float, delete_delay: int) -> list[VoiceChannelRecord]:
        """Remove and return every never-joined record past its grace period."""
        async with self._lock:
            expired = [
                record
                for record in self._records.values()
                if not record.occupied and record.is_expired(now, delete_delay)
            ]
            for record in expired:
                del self._records[record.channel_id]
        if expired:
            logger.info(
                "Expired %s unjoined private channel(s): %s",
                len(expired),
                [record.channel_id for record in expired],
            )
        return expired

    async def all(self) -> list[VoiceChannelRecord]:
        async with self._lock:
            return [record.copy() for record in self._records.values()]

    async def health_check(self) -> dict[str, Any]:
        async with self._lock:
            return {
                "service": "channel_registry",
                "tracked_channels": len(self._records),
                "pending_creations": len(self._pending),
                "status": "healthy",
            }
