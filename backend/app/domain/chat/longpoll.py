"""Bounded long-poll over ``ChatService.fetch``."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from app.domain.chat.models import Message
from app.domain.chat.service import ChatService
from app.infra.auth import AuthenticatedUser
from app.obs import metrics as obs_metrics
from app.settings import settings

DisconnectCheck = Callable[[], Awaitable[bool]]

# floor for the spacing between polls
MIN_INTERVAL_SECONDS = 0.01


@dataclass(slots=True)
class LongPollResult:
	items: List[Message] = field(default_factory=list)
	timed_out: bool = False
	disconnected: bool = False


def clamp_timeout(requested: Optional[float]) -> float:
	if requested is None:
		requested = settings.longpoll_default_timeout_seconds
	return max(0.0, min(float(requested), settings.longpoll_max_timeout_seconds))


async def wait_for_messages(
	service: ChatService,
	auth_user: AuthenticatedUser,
	match_id: str,
	*,
	since: datetime,
	timeout: Optional[float] = None,
	interval: Optional[float] = None,
	is_disconnected: Optional[DisconnectCheck] = None,
) -> LongPollResult:
	"""Poll for messages newer than ``since`` until some arrive or the timeout passes.

	Polls are spaced ``interval`` seconds apart; only the final sleep is cut
	short to honour the deadline. Cancelling the awaiting task stops the loop.
	"""
	loop = asyncio.get_running_loop()
	deadline = loop.time() + clamp_timeout(timeout)
	step = max(MIN_INTERVAL_SECONDS, interval if interval is not None else settings.longpoll_interval_seconds)
	while True:
		items = await service.fetch(auth_user, match_id, since=since)
		if items:
			obs_metrics.inc_longpoll("messages")
			return LongPollResult(items=items)
		remaining = deadline - loop.time()
		if remaining <= 0:
			obs_metrics.inc_longpoll("timeout")
			return LongPollResult(timed_out=True)
		if is_disconnected is not None and await is_disconnected():
			obs_metrics.inc_longpoll("disconnected")
			return LongPollResult(disconnected=True)
		await asyncio.sleep(min(step, remaining))
