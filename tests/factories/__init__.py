"""
Test Factories Module

Centralized factory functions and fixtures for creating test objects.
Provides DRY utilities for Discord mocks, the fake gateway and config fixtures.
"""

from .config_factories import (
    make_config,
    make_settings,
    temp_config_file,
)
from .discord_factories import (
    BOT_USER_ID,
    GUILD_ID,
    TEXT_CHANNEL_ID,
    FakeGuild,
    FakeMember,
    FakeMessage,
    FakeTextChannel,
    FakeUser,
    FakeVoiceChannel,
    make_bot,
    make_member,
    make_message,
    make_user,
)
from .gateway_factories import (
    FakeClock,
    FakeGateway,
)

__all__ = [
    "BOT_USER_ID",
    "GUILD_ID",
    "TEXT_CHANNEL_ID",
    "FakeClock",
    "FakeGateway",
    "FakeGuild",
    "FakeMember",
    "FakeMessage",
    "FakeTextChannel",
    "FakeUser",
    "FakeVoiceChannel",
    "make_bot",
    "make_config",
    "make_member",
    "make_message",
    "make_settings",
    "make_user",
    "temp_config_file",
]
