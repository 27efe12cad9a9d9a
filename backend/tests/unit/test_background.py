import asyncio

import pytest

from app.infra import background


@pytest.mark.asyncio
async def test_spawned_failures_are_logged_not_raised(caplog):
    async def boom():
        raise RuntimeError("nope")

    background.spawn(boom(), name="boom")
    await background.drain()
    assert background.pending() == 0
    assert any(record.getMessage() == "background task failed" for record in caplog.records)


@pytest.mark.asyncio
async def test_drain_waits_for_tasks_spawned_while_draining():
    seen = []

    async def child():
        seen.append("child")

    async def parent():
        await asyncio.sleep(0)
        background.spawn(child(), name="child")
        seen.append("parent")

    background.spawn(parent(), name="parent")
    await background.drain()
    assert seen == ["parent", "child"]


@pytest.mark.asyncio
async def test_retry_gives_up_after_attempts():
    calls = []

    async def flaky():
        calls.append(1)
        raise ValueError("still failing")

    with pytest.raises(ValueError):
        await background.retry(flaky, attempts=3, delay_seconds=0)
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_retry_returns_first_success():
    calls = []

    async def eventually():
        calls.append(1)
        if len(calls) < 2:
            raise ValueError("first call fails")
        return "ok"

    assert await background.retry(eventually, attempts=3, delay_seconds=0) == "ok"
    assert len(calls) == 2
