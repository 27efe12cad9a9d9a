import asyncio
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from conftest import auth

from app.domain.chat.longpoll import MIN_INTERVAL_SECONDS, clamp_timeout, wait_for_messages
from app.domain.chat.service import ChatService
from app.domain.matching.models import SwipeAction
from app.domain.matching.service import MatchService
from app.settings import Settings, settings


async def _matched(make_user):
    await make_user("alice")
    await make_user("bob")
    matches = MatchService()
    await matches.record_action(auth("alice"), "bob", SwipeAction.LIKE)
    match, _ = await matches.record_action(auth("bob"), "alice", SwipeAction.LIKE)
    return match


class CountingService:
    def __init__(self, inner: ChatService) -> None:
        self.inner = inner
        self.calls = 0

    async def fetch(self, *args, **kwargs):
        self.calls += 1
        return await self.inner.fetch(*args, **kwargs)


def test_clamp_timeout_uses_defaults_and_maximum():
    assert clamp_timeout(None) == settings.longpoll_default_timeout_seconds
    assert clamp_timeout(10_000) == settings.longpoll_max_timeout_seconds
    assert clamp_timeout(-5) == 0.0


@pytest.mark.asyncio
async def test_times_out_without_messages(make_user):
    match = await _matched(make_user)
    service = CountingService(ChatService())
    since = datetime.now(timezone.utc)

    result = await wait_for_messages(service, auth("bob"), match.id, since=since, timeout=0.2, interval=0.05)
    assert result.timed_out
    assert result.items == []
    # one poll up front plus at most one per interval
    assert service.calls <= 6


@pytest.mark.asyncio
async def test_returns_early_when_message_arrives(make_user):
    match = await _matched(make_user)
    chat = ChatService()
    since = datetime.now(timezone.utc)

    async def send_later():
        await asyncio.sleep(0.05)
        await chat.send_message(auth("alice"), match.id, "ping")

    sender = asyncio.create_task(send_later())
    loop = asyncio.get_running_loop()
    started = loop.time()
    result = await wait_for_messages(chat, auth("bob"), match.id, since=since, timeout=5, interval=0.02)
    await sender
    assert not result.timed_out
    assert [m.content for m in result.items] == ["ping"]
    assert loop.time() - started < 2


@pytest.mark.asyncio
async def test_stops_when_client_disconnects(make_user):
    match = await _matched(make_user)

    async def gone() -> bool:
        return True

    result = await wait_for_messages(
        ChatService(),
        auth("bob"),
        match.id,
        since=datetime.now(timezone.utc),
        timeout=5,
        interval=0.01,
        is_disconnected=gone,
    )
    assert result.disconnected
    assert not result.timed_out


@pytest.mark.asyncio
async def test_cancelling_the_waiter_stops_polling(make_user):
    match = await _matched(make_user)
    service = CountingService(ChatService())
    waiter = asyncio.create_task(
        wait_for_messages(
            service,
            auth("bob"),
            match.id,
            since=datetime.now(timezone.utc),
            timeout=5,
            interval=0.02,
        )
    )
    await asyncio.sleep(0.07)
    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter
    calls = service.calls
    assert calls >= 1

    await asyncio.sleep(0.1)
    assert service.calls == calls


@pytest.mark.asyncio
async def test_zero_interval_does_not_spin(make_user):
    match = await _matched(make_user)
    service = CountingService(ChatService())
    result = await wait_for_messages(
        service,
        auth("bob"),
        match.id,
        since=datetime.now(timezone.utc),
        timeout=0.1,
        interval=0,
    )
    assert result.timed_out
    assert service.calls <= 0.1 / MIN_INTERVAL_SECONDS + 2


def test_settings_reject_non_positive_interval(monkeypatch):
    monkeypatch.setenv("LONGPOLL_INTERVAL_SECONDS", "0")
    with pytest.raises(ValidationError):
        Settings()
