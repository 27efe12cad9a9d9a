import pytest

from app.domain.common.errors import RateLimited
from app.infra.rate_limit import allow, enforce


@pytest.mark.asyncio
async def test_rate_limit_allows_within_budget():
    assert await allow("message_send", "u5", limit=2, window_seconds=60)
    assert await allow("message_send", "u5", limit=2, window_seconds=60)


@pytest.mark.asyncio
async def test_rate_limit_blocks_when_budget_exhausted():
    await allow("match_action", "u6", limit=1, window_seconds=60)
    assert not await allow("match_action", "u6", limit=1, window_seconds=60)


@pytest.mark.asyncio
async def test_budgets_are_per_actor():
    await allow("match_action", "u7", limit=1, window_seconds=60)
    assert await allow("match_action", "u8", limit=1, window_seconds=60)


@pytest.mark.asyncio
async def test_enforce_raises_rate_limited():
    await enforce("login", "10.0.0.1", limit=1)
    with pytest.raises(RateLimited) as excinfo:
        await enforce("login", "10.0.0.1", limit=1)
    assert excinfo.value.reason == "login_rate_limited"
