"""
Services package for the private voice bot.

Contains the channel registry and the services that drive private voice
channels through their lifecycle: command handling, voice presence reaction
and periodic expiration.
"""

from .base import BaseService
from .channel_registry import ChannelRegistry, VoiceChannelRecord
from .expiration_sweeper import ExpirationSweeper
from .lifecycle import LifecycleReactor
from .service_container import ServiceContainer
from .voice_service import PrivateVoiceService

__all__ = [
    "BaseService",
    "ChannelRegistry",
    "ExpirationSweeper",
    "LifecycleReactor",
    "PrivateVoiceService",
    "ServiceContainer",
    "VoiceChannelRecord",
]
