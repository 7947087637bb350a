"""
Base service class providing lifecycle, logging and background tasks.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Coroutine
from typing import Any

from utils.logging import get_logger
from utils.tasks import spawn


class BaseService(ABC):
    """
    Abstract base class for the bot's services.

    Handles single initialization, ordered shutdown and tracking of the
    background tasks a service spawns so they are cancelled on shutdown.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.logger = get_logger(f"services.{name}")
        self._initialized = False
        self._lifecycle_lock = asyncio.Lock()
        self._background_tasks: set[asyncio.Task] = set()

    async def initialize(self) -> None:
        """Initialize the service. Ensures single initialization."""
        async with self._lifecycle_lock:
            if self._initialized:
                return

            self.logger.info(f"Initializing {self.name} service")
            try:
                await self._initialize_impl()
                self._initialized = True
                self.logger.info(f"{self.name} service initialized successfully")
            except Exception as e:
                self.logger.exception(
                    "Failed to initialize %s service", self.name, exc_info=e
                )
                raise

    async def shutdown(self) -> None:
        """Cancel background work and run subclass cleanup."""
        if not self._initialized:
            return

        self.logger.info(f"Shutting down {self.name} service")
        try:
            await self._shutdown_impl()
        except Exception as e:
            self.logger.exception(
                "Error during %s service shutdown", self.name, exc_info=e
            )
        finally:
            await self._cancel_background_tasks()
            self._initialized = False

    async def _initialize_impl(self) -> None:
        """Subclass-specific initialization logic. Override if needed."""
        pass

    async def _shutdown_impl(self) -> None:
        """Subclass-specific shutdown logic. Override if needed."""
        pass

    def _spawn_background_task(
        self, coro: Coroutine[Any, Any, Any], *, name: str
    ) -> asyncio.Task:
        """Create and track a background task with exception logging."""

        task = spawn(coro, name=name)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def _cancel_background_tasks(self) -> None:
        for task in list(self._background_tasks):
            task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()

    @abstractmethod
    async def health_check(self) -> dict[str, Any]:
        """
        Return health status of this service.

        Returns:
            Dict containing health information
        """

    def _base_health(self) -> dict[str, Any]:
        return {
            "service": self.name,
            "initialized": self._initialized,
            "status": "healthy" if self._initialized else "not_initialized",
        }
