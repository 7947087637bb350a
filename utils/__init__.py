"""
Utilities Package

Common utilities and helper functions for the private voice bot.
"""

from .errors import BotError, ConfigError, ConfigTemplateCreated, GatewayError, ServiceError
from .logging import get_logger, setup_logging
from .tasks import spawn
from .types import CommandOutcome, VoiceChannelResult

__all__ = [
    "BotError",
    "CommandOutcome",
    "ConfigError",
    "ConfigTemplateCreated",
    "GatewayError",
    "ServiceError",
    "VoiceChannelResult",
    "get_logger",
    "setup_logging",
    "spawn",
]
