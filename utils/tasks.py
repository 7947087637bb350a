"""
Task utilities for managing asyncio tasks and background operations.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any

from utils.logging import get_logger

logger = get_logger(__name__)


def spawn(coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task[Any]:
    """
    Spawn a coroutine as a background task.

    This is a convenience function that creates an asyncio task and logs
    any exceptions that occur during execution.

    Args:
        coro: The coroutine to spawn as a task
        name: Optional task name used in log output

    Returns:
        The created asyncio task
    """
    try:
        task = asyncio.create_task(coro, name=name)
        task.add_done_callback(_log_task_exception)
        return task
    except Exception as e:
        logger.exception(f"Failed to spawn task: {e}")
        raise


def _log_task_exception(task: asyncio.Task[Any]) -> None:
    """Log exceptions from completed tasks."""
    if task.cancelled():
        logger.debug("Task %s cancelled", task.get_name())
        return
    exc = task.exception()
    if exc:
        logger.error(
            f"Task {task.get_name()} failed with exception", exc_info=exc
        )
