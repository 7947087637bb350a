import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import discord
from aiolimiter import AsyncLimiter

from utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

task_queue: asyncio.Queue = asyncio.Queue()

# Track worker tasks for clean shutdown
_worker_tasks: set[asyncio.Task] = set()

api_limiter = AsyncLimiter(max_rate=45, time_period=1)

MAX_RETRIES = 3
BASE_DELAY = 0.5


async def worker() -> None:
    """
    Worker coroutine that processes tasks from the task_queue.
    """
    while True:
        task = await task_queue.get()
        if task is None:
            task_queue.task_done()
            logger.info("Worker received shutdown signal.")
            break  # Exit the worker
        try:
            async with api_limiter:
                await task()
        except Exception:
            logger.exception("Error running queued task")
        finally:
            task_queue.task_done()


def _is_retryable(exc: BaseException) -> bool:
    """Transient Discord server errors (5xx/DiscordServerError) are retried."""
    if isinstance(exc, discord.DiscordServerError):
        return True
    if isinstance(exc, discord.HTTPException):
        status = getattr(exc, "status", None)
        return isinstance(status, int) and 500 <= status < 600
    return False


async def run_task(task: Callable[[], Awaitable[T]]) -> T:
    """
    Executes the given task, retrying transient server errors.

    Args:
        task (Callable): An asynchronous callable representing the task.

    Raises:
        Exception: The last error once retries are exhausted, or any
            non-retryable error immediately.
    """
    attempt = 0
    while True:
        try:
            return await task()
        except Exception as e:
            attempt += 1
            # Only retry while attempt < MAX_RETRIES so the total number of
            # attempts equals MAX_RETRIES.
            if _is_retryable(e) and attempt < MAX_RETRIES:
                delay = BASE_DELAY * (2 ** (attempt - 1))
                # jitter
                delay = delay + random.uniform(0, 0.1 * delay)
                logger.warning(
                    f"Transient error in queued task (attempt {attempt}/{MAX_RETRIES}), retrying in {delay:.2f}s: {e}"
                )
                await asyncio.sleep(delay)
                continue
            raise


async def enqueue_task(task: Callable[[], Awaitable[T]]) -> "asyncio.Future[T]":
    """
    Enqueues a task to be processed by the worker.

    Args:
        task (Callable): An asynchronous callable representing the task.

    Returns:
        A future resolved with the task's result or its final exception.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[Any] = loop.create_future()

    async def wrapped_task() -> None:
        try:
            result = await run_task(task)
        except Exception as exc:
            if not future.done():
                future.set_exception(exc)
            return
        if not future.done():
            future.set_result(result)

    await task_queue.put(wrapped_task)
    logger.debug("Task enqueued.")
    return future


async def submit(task: Callable[[], Awaitable[T]]) -> T:
    """Enqueue ``task`` and wait for its outcome.

    Without running workers the task is executed inline under the same
    rate limit and retry policy.
    """
    if not _worker_tasks:
        async with api_limiter:
            return await run_task(task)
    future = await enqueue_task(task)
    return await future


async def start_task_workers(num_workers: int = 2) -> None:
    """
    Starts the specified number of worker tasks.

    Args:
        num_workers (int): Number of worker coroutines to start.
    """
    global task_queue
    if not _worker_tasks:
        # Bind a fresh queue to the running loop
        task_queue = asyncio.Queue()
    for idx in range(num_workers):
        task = asyncio.create_task(worker(), name=f"task_queue_worker_{idx}")
        _worker_tasks.add(task)

        def _cleanup(done: asyncio.Task) -> None:
            _worker_tasks.discard(done)
            if done.cancelled():
                logger.debug("Task queue worker %s cancelled", done.get_name())
                return
            exc = done.exception()
            if exc:
                logger.error(
                    "Task queue worker %s failed", done.get_name(), exc_info=exc
                )

        task.add_done_callback(_cleanup)
    logger.info(f"Started {num_workers} task queue worker(s).")


async def stop_task_workers() -> None:
    """Signal all worker tasks to exit and await completion."""

    if not _worker_tasks:
        return

    workers = list(_worker_tasks)
    for _ in range(len(workers)):
        await task_queue.put(None)

    await task_queue.join()
    await asyncio.gather(*workers, return_exceptions=True)
    _worker_tasks.clear()


__all__ = [
    "enqueue_task",
    "run_task",
    "start_task_workers",
    "stop_task_workers",
    "submit",
    "task_queue",
]
