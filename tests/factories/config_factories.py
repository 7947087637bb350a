"""
Config Factories

Provides factory functions for creating test configuration objects and files.
Use these to test config loading, validation, and defaults.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from config.config_loader import BotSettings

if TYPE_CHECKING:
    from collections.abc import Generator


def make_config(
    bot_token: str = "test_token",  # noqa: S107
    command_prefix: Any = "!",
    voice_channel_prefix: Any = "PV: ",
    ticker_delay: Any = 30,
    unjoined_channel_delete_delay: Any = 30,
    logging_level: str = "INFO",
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Create a configuration dictionary for testing.

    Args:
        bot_token: Discord bot token
        command_prefix: Chat command prefix
        voice_channel_prefix: Prefix of bot-created channel names
        ticker_delay: Sweep interval in seconds
        unjoined_channel_delete_delay: Grace period in seconds
        logging_level: Logging level string
        extra: Additional top-level keys to merge

    Returns:
        Complete configuration dictionary.

    Examples:
        config = make_config(voice_channel_prefix="Voice:")
    """
    config: dict[str, Any] = {
        "bot_settings": {
            "token": bot_token,
            "commandPrefix": command_prefix,
            "voiceChannelPrefix": voice_channel_prefix,
            "tickerDelay": ticker_delay,
            "unjoinedChannelDeleteDelay": unjoined_channel_delete_delay,
        },
        "logging": {"level": logging_level},
    }
    if extra:
        config.update(extra)
    return config


def make_settings(**overrides: Any) -> BotSettings:
    """Create validated BotSettings with test defaults."""
    values: dict[str, Any] = {"token": "test_token"}  # noqa: S105
    values.update(overrides)
    return BotSettings(**values)


@contextlib.contextmanager
def temp_config_file(
    config: dict[str, Any] | str,
) -> Generator[str, None, None]:
    """
    Write ``config`` to a temporary YAML file and yield its path.

    A string is written verbatim, which allows testing malformed YAML.
    """
    fd, path = tempfile.mkstemp(suffix=".yaml")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            if isinstance(config, str):
                f.write(config)
            else:
                yaml.safe_dump(config, f)
        yield path
    finally:
        Path(path).unlink(missing_ok=True)
