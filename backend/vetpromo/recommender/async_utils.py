import asyncio
import logging
from typing import Awaitable, Optional, Set, TypeVar

from vetpromo.errors import DependencyUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Strong references so detached tasks are not garbage-collected mid-flight.
_background_tasks: Set[asyncio.Task] = set()


async def bounded(awaitable: Awaitable[T], timeout: Optional[float], dependency: str) -> T:
    """
    Await `awaitable` for at most `timeout` seconds.

    A timeout is reported exactly like any other outage of `dependency`.
    """
    if timeout is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise DependencyUnavailable(dependency, f"timed out after {timeout}s") from e


def fire_and_forget(awaitable: Awaitable[None], timeout: Optional[float], dependency: str) -> asyncio.Task:
    """
    Run a best-effort side effect without blocking the caller.

    Failures and timeouts are logged and dropped.
    """

    async def _runner() -> None:
        try:
            await bounded(awaitable, timeout, dependency)
        except DependencyUnavailable as e:
            logger.warning(f"Background {dependency} call failed: {e}")

    task = asyncio.ensure_future(_runner())
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task
