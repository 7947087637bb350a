"""
Type definitions and common data structures for the private voice bot.
"""

from enum import Enum
from typing import NamedTuple


class CommandOutcome(str, Enum):
    """How a chat command ended, used for logging and tests."""

    OK = "ok"
    IGNORED = "ignored"
    UNAUTHORIZED = "unauthorized"
    REJECTED = "rejected"
    FAILED = "failed"


class VoiceChannelResult(NamedTuple):
    """Result of a voice channel command."""

    outcome: CommandOutcome
    channel_id: int | None = None
    error: str | None = None
    affected_user_ids: tuple[int, ...] = ()

    @property
    def success(self) -> bool:
        return self.outcome is CommandOutcome.OK
