"""Fire-and-forget task dispatch.

Side effects that must never fail the request that triggered them (notifications,
read receipts) run as detached tasks. The dispatcher keeps a strong reference to
every task until it finishes, logs failures, and can be drained on shutdown.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Coroutine, Optional, Set, TypeVar

from app.obs import metrics as obs_metrics

_LOG = logging.getLogger(__name__)

T = TypeVar("T")

_TASKS: Set[asyncio.Task] = set()


def spawn(coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task:
	task = asyncio.create_task(coro, name=name)
	_TASKS.add(task)
	task.add_done_callback(_on_done)
	return task


def _on_done(task: asyncio.Task) -> None:
	_TASKS.discard(task)
	name = task.get_name()
	if task.cancelled():
		obs_metrics.record_background(name, result="cancelled")
		return
	exc = task.exception()
	if exc is None:
		obs_metrics.record_background(name, result="ok")
		return
	obs_metrics.record_background(name, result="error")
	_LOG.error("background task failed", extra={"task": name}, exc_info=exc)


def pending() -> int:
	return len(_TASKS)


async def drain(timeout: Optional[float] = None) -> None:
	"""Wait for in-flight tasks, including tasks spawned while draining."""
	while _TASKS:
		done, not_done = await asyncio.wait(set(_TASKS), timeout=timeout)
		if not_done:
			_LOG.warning("background drain timed out", extra={"pending": len(not_done)})
			for task in not_done:
				task.cancel()
			await asyncio.gather(*not_done, return_exceptions=True)
			return


async def retry(
	operation: Callable[[], Awaitable[T]],
	*,
	attempts: int = 3,
	delay_seconds: float = 0.1,
	name: str = "operation",
) -> T:
	"""Run ``operation`` up to ``attempts`` times with linear backoff."""
	attempts = max(1, attempts)
	for attempt in range(1, attempts + 1):
		try:
			return await operation()
		except Exception:
			if attempt == attempts:
				raise
			_LOG.warning("retrying after failure", extra={"task": name, "attempt": attempt}, exc_info=True)
			await asyncio.sleep(delay_seconds * attempt)
	raise AssertionError("unreachable")
