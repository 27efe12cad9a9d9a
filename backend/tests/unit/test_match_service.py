import asyncio

import pytest

from conftest import auth

from app.domain.common.errors import MatchNotFound, NotEligible, RateLimited, ValidationFailed
from app.domain.matching.models import MatchStatus, SwipeAction
from app.domain.matching.service import MatchService
from app.domain.notifications import NotificationService
from app.infra import background
from app.settings import settings


@pytest.mark.asyncio
async def test_mutual_like_creates_match_and_notifies(make_user):
    await make_user("u1")
    await make_user("u2")
    service = MatchService()

    first, became = await service.record_action(auth("u1"), "u2", SwipeAction.LIKE)
    assert not became
    assert first.status is MatchStatus.PENDING
    assert first.compatibility == 100

    second, became = await service.record_action(auth("u2"), "u1", SwipeAction.SUPER_LIKE)
    assert became
    assert second.id == first.id
    assert second.status is MatchStatus.MATCHED
    assert second.matched_at is not None

    await background.drain()
    notifications = NotificationService()
    for user_id in ("u1", "u2"):
        items = await notifications.list_for_user(user_id)
        assert [item.kind for item in items] == ["new_match"]


@pytest.mark.asyncio
async def test_concurrent_opposite_likes_both_land(make_user):
    await make_user("u1")
    await make_user("u2")
    service = MatchService()

    results = await asyncio.gather(
        service.record_action(auth("u1"), "u2", SwipeAction.LIKE),
        service.record_action(auth("u2"), "u1", SwipeAction.LIKE),
    )
    match_ids = {match.id for match, _ in results}
    assert len(match_ids) == 1
    assert sum(1 for _, became in results if became) == 1
    final = await service.get_match(auth("u1"), match_ids.pop())
    assert final.status is MatchStatus.MATCHED
    assert final.action_of("u1") is SwipeAction.LIKE
    assert final.action_of("u2") is SwipeAction.LIKE


@pytest.mark.asyncio
async def test_ineligible_target_is_rejected(make_user):
    await make_user("u1")
    await make_user("u2", verified=False)
    with pytest.raises(NotEligible) as excinfo:
        await MatchService().record_action(auth("u1"), "u2", SwipeAction.LIKE)
    assert excinfo.value.reason == "target_not_eligible"
    assert excinfo.value.missing == ("email_verified",)


@pytest.mark.asyncio
async def test_self_swipe_is_rejected(make_user):
    await make_user("u1")
    with pytest.raises(ValidationFailed):
        await MatchService().record_action(auth("u1"), "u1", SwipeAction.LIKE)


@pytest.mark.asyncio
async def test_candidates_skip_users_already_acted_on(make_user):
    await make_user("me")
    await make_user("liked")
    await make_user("fresh")
    await make_user("other-campus", campus="Tuxtla")
    service = MatchService()
    await service.record_action(auth("me"), "liked", SwipeAction.LIKE)

    candidates = await service.potential_matches(auth("me"), limit=10)
    assert [candidate.user.id for candidate in candidates] == ["fresh"]


@pytest.mark.asyncio
async def test_pending_likes_and_statistics(make_user):
    await make_user("me")
    await make_user("fan")
    await make_user("crush")
    service = MatchService()
    await service.record_action(auth("fan"), "me", SwipeAction.LIKE)
    await service.record_action(auth("me"), "crush", SwipeAction.LIKE)
    await service.record_action(auth("crush"), "me", SwipeAction.LIKE)

    pending = await service.pending_likes(auth("me"))
    assert [match.counterpart("me") for match in pending] == ["fan"]

    matches = await service.list_matches(auth("me"))
    assert [match.counterpart("me") for match in matches] == ["crush"]

    stats = await service.statistics(auth("me"))
    assert stats.likes_sent == 1
    assert stats.likes_received == 2
    assert stats.matches == 1
    assert stats.conversations == 0
    assert stats.match_rate == 100.0


@pytest.mark.asyncio
async def test_unmatch_then_block(make_user):
    await make_user("u1")
    await make_user("u2")
    service = MatchService()
    match, _ = await service.record_action(auth("u1"), "u2", SwipeAction.LIKE)

    closed = await service.unmatch(auth("u2"), match.id)
    assert closed.status is MatchStatus.UNMATCHED
    blocked = await service.block(auth("u1"), match.id)
    assert blocked.status is MatchStatus.BLOCKED

    with pytest.raises(MatchNotFound):
        await service.get_match(auth("stranger"), match.id)
    with pytest.raises(MatchNotFound):
        await service.unmatch(auth("u1"), "missing")


@pytest.mark.asyncio
async def test_match_actions_are_rate_limited(make_user, monkeypatch):
    await make_user("u1")
    await make_user("u2")
    monkeypatch.setattr(settings, "match_actions_per_minute", 1)
    service = MatchService()
    await service.record_action(auth("u1"), "u2", SwipeAction.LIKE)
    with pytest.raises(RateLimited):
        await service.record_action(auth("u1"), "u2", SwipeAction.DISLIKE)


@pytest.mark.asyncio
async def test_candidates_survive_a_crowd_of_ineligible_and_swiped_users(make_user, monkeypatch):
    monkeypatch.setattr(settings, "candidate_pool_size", 3)
    await make_user("me")
    for index in range(3):
        await make_user(f"old{index}", with_photo=False)
    await make_user("seen")
    await make_user("newcomer")
    service = MatchService()
    await service.record_action(auth("me"), "seen", SwipeAction.DISLIKE)

    candidates = await service.potential_matches(auth("me"))
    assert [candidate.user.id for candidate in candidates] == ["newcomer"]
