"""
Periodic removal of private channels nobody ever joined.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from config.config_loader import BotSettings

from .base import BaseService
from .channel_registry import ChannelRegistry

if TYPE_CHECKING:
    from .voice_service import PrivateVoiceService


class ExpirationSweeper(BaseService):
    """Every ``tickerDelay`` seconds, deletes unjoined channels past their grace period."""

    def __init__(
        self,
        settings: BotSettings,
        registry: ChannelRegistry,
        voice: PrivateVoiceService,
        clock: Callable[[], float] = time.time,
        test_mode: bool = False,
    ) -> None:
        super().__init__("expiration_sweeper")
        self.settings = settings
        self.registry = registry
        self.voice = voice
        self.clock = clock
        self.test_mode = test_mode
        self.ticks = 0
        self.expired_count = 0

    async def _initialize_impl(self) -> None:
        if not self.test_mode:
            self._spawn_background_task(self._sweep_loop(), name="voice.expiration_sweep")

    async def health_check(self) -> dict[str, Any]:
        health = self._base_health()
        health["ticks"] = self.ticks
        health["expired_channels"] = self.expired_count
        return health

    async def sweep_once(self) -> int:
        """Delete every expired, never-joined channel. Returns how many were deleted."""
        expired = await self.registry.pop_expired(
            self.clock(), self.settings.unjoined_channel_delete_delay
        )
        deleted = 0
        for record in expired:
            if await self.voice.discard_channel(record):
                deleted += 1
        self.ticks += 1
        self.expired_count += deleted
        return deleted

    async def _sweep_loop(self) -> None:
        interval = self.settings.ticker_delay
        self.logger.info("Expiration sweep running every %ss", interval)
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep_once()
            except Exception as exc:
                self.logger.exception("Error during expiration sweep", exc_info=exc)
