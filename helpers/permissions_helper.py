"""
Permission model for private voice channels.

Ownership/operator checks are pure functions over a channel record. The
overwrite masks are the platform bit values applied per member or role.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

import discord

if TYPE_CHECKING:
    from services.channel_registry import VoiceChannelRecord


class SubjectKind(str, Enum):
    """Target type of a channel permission overwrite."""

    ROLE = "role"
    MEMBER = "member"

    @property
    def overwrite_type(self) -> int:
        # Platform encoding: 0 = role, 1 = member
        return 0 if self is SubjectKind.ROLE else 1


# Owner and operators: connect, speak, server-mute, voice activity.
OWNER_ALLOW = discord.Permissions(
    connect=True, speak=True, mute_members=True, use_voice_activation=True
).value

# Invited members (and de-op'd operators): connect and speak.
MEMBER_ALLOW = discord.Permissions(
    connect=True, speak=True, use_voice_activation=True
).value

# @everyone on a freshly created channel.
EVERYONE_DENY = discord.Permissions(
    connect=True,
    speak=True,
    mute_members=True,
    deafen_members=True,
    move_members=True,
    use_voice_activation=True,
).value

NO_PERMISSIONS = 0


def is_authorized(record: VoiceChannelRecord, actor_id: int) -> bool:
    """Return True if ``actor_id`` owns or operates the channel."""
    return actor_id == record.owner_id or actor_id in record.operators


def is_owner(record: VoiceChannelRecord, user_id: int) -> bool:
    return user_id == record.owner_id


__all__ = [
    "EVERYONE_DENY",
    "MEMBER_ALLOW",
    "NO_PERMISSIONS",
    "OWNER_ALLOW",
    "SubjectKind",
    "is_authorized",
    "is_owner",
]
