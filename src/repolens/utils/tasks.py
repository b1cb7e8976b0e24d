"""Structured concurrency helpers.

gather_settled() joins a set of awaitables and reports each one as an
Outcome, so callers handle failures per task instead of relying on a single
exception escaping the join. race_deadline() runs an awaitable against a timer
without cancelling it; a result that arrives after the deadline is dropped.
"""

import asyncio
import logging
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from repolens.errors import StageTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of one task in a settled join.

    Exactly one of ``value`` / ``error`` is meaningful, selected by ``ok``.

    Attributes:
        name: Task label (used for warnings)
        value: Task result when it succeeded
        error: Exception raised by the task
    """

    name: str
    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: T) -> T:
        """Return the value, or ``default`` if the task failed."""
        if self.error is not None or self.value is None:
            return default
        return self.value


async def _settle(name: str, awaitable: Awaitable[T]) -> Outcome[T]:
    try:
        value = await awaitable
    except asyncio.CancelledError:
        raise
    except Exception as e:
        return Outcome(name=name, error=e)
    return Outcome(name=name, value=value)


async def gather_settled(
    tasks: dict[str, Awaitable[Any]] | Sequence[tuple[str, Awaitable[Any]]],
) -> list[Outcome[Any]]:
    """Run awaitables concurrently and collect a per-task Outcome.

    Args:
        tasks: Mapping (or ordered pairs) of task name to awaitable

    Returns:
        Outcomes in the same order as ``tasks``
    """
    items = list(tasks.items()) if isinstance(tasks, dict) else list(tasks)
    return list(await asyncio.gather(*(_settle(name, aw) for name, aw in items)))


async def race_deadline(stage: str, awaitable: Awaitable[T], timeout: float) -> T:
    """Race an awaitable against a timer.

    The underlying task is not cancelled when the timer wins. It keeps
    running in the background and its result (or error) is discarded.

    Args:
        stage: Stage name used in the timeout error
        awaitable: Work to run
        timeout: Deadline in seconds

    Returns:
        The awaitable's result if it finished in time

    Raises:
        StageTimeoutError: If the deadline passed first
    """
    task = asyncio.ensure_future(awaitable)
    done, _ = await asyncio.wait({task}, timeout=timeout)
    if task in done:
        return task.result()

    task.add_done_callback(_discard_late_result(stage))
    raise StageTimeoutError(stage, timeout)


def _discard_late_result(stage: str):
    def _callback(task: asyncio.Future[Any]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug("Late failure from timed-out stage %s ignored: %s", stage, error)
        else:
            logger.debug("Late result from timed-out stage %s discarded", stage)

    return _callback
