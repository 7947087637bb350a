"""
Service Container

Central registry for the bot's services providing dependency injection and
service lifecycle management.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from config.config_loader import BotSettings
from utils.logging import get_logger

from .base import BaseService
from .channel_registry import ChannelRegistry
from .expiration_sweeper import ExpirationSweeper
from .lifecycle import LifecycleReactor
from .voice_service import PrivateVoiceService

if TYPE_CHECKING:
    from helpers.discord_api import DiscordGateway


class ServiceContainer:
    """
    Central container for managing all bot services.

    Provides a centralized access point for services throughout the bot,
    handles initialization order, and manages service dependencies.
    """

    def __init__(
        self,
        settings: BotSettings,
        gateway: DiscordGateway,
        *,
        clock: Callable[[], float] = time.time,
        test_mode: bool = False,
    ) -> None:
        self.logger = get_logger("services.container")
        self.settings = settings
        self.gateway = gateway
        self.clock = clock
        self.test_mode = test_mode
        self.registry = ChannelRegistry()
        self._voice: PrivateVoiceService | None = None
        self._lifecycle: LifecycleReactor | None = None
        self._sweeper: ExpirationSweeper | None = None
        self._initialized = False

    @property
    def voice(self) -> PrivateVoiceService:
        """Get the voice command service."""
        if self._voice is None:
            raise RuntimeError("PrivateVoiceService not initialized")
        return self._voice

    @property
    def lifecycle(self) -> LifecycleReactor:
        """Get the lifecycle reactor."""
        if self._lifecycle is None:
            raise RuntimeError("LifecycleReactor not initialized")
        return self._lifecycle

    @property
    def sweeper(self) -> ExpirationSweeper:
        """Get the expiration sweeper."""
        if self._sweeper is None:
            raise RuntimeError("ExpirationSweeper not initialized")
        return self._sweeper

    def get_all_services(self) -> list[BaseService]:
        """Get all initialized services for health monitoring."""
        return [s for s in (self._voice, self._lifecycle, self._sweeper) if s]

    async def initialize(self) -> None:
        """Initialize all services in dependency order."""
        if self._initialized:
            self.logger.warning("ServiceContainer already initialized")
            return

        try:
            self.logger.info("Initializing services")

            self._voice = PrivateVoiceService(
                self.settings, self.registry, self.gateway, clock=self.clock
            )
            await self._voice.initialize()

            # Reactor and sweeper delete channels through the voice service
            self._lifecycle = LifecycleReactor(
                self.settings, self.registry, self.gateway, self._voice, clock=self.clock
            )
            await self._lifecycle.initialize()

            self._sweeper = ExpirationSweeper(
                self.settings,
                self.registry,
                self._voice,
                clock=self.clock,
                test_mode=self.test_mode,
            )
            await self._sweeper.initialize()

            self._initialized = True
            self.logger.info("All services initialized successfully")

        except Exception as e:
            self.logger.exception("Failed to initialize services", exc_info=e)
            raise

    async def health(self) -> dict[str, Any]:
        return {
            service.name: await service.health_check()
            for service in self.get_all_services()
        }

    async def cleanup(self) -> None:
        """Clean up all services in reverse dependency order."""
        if not self._initialized:
            return

        self.logger.info("Cleaning up services")

        if self._sweeper:
            await self._sweeper.shutdown()
            self._sweeper = None

        if self._lifecycle:
            await self._lifecycle.shutdown()
            self._lifecycle = None

        if self._voice:
            await self._voice.shutdown()
            self._voice = None

        self._initialized = False
        self.logger.info("Services cleaned up")
