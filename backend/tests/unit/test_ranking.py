from dataclasses import replace

from conftest import build_user

from app.domain.matching.ranking import rank_candidates


def test_ranking_orders_by_score_and_truncates():
    requester = build_user("me").academic_profile
    pool = [
        build_user("far", campus="Tuxtla", semester=11, interests=()),
        build_user("close"),
        build_user("mid", semester=8),
    ]
    ranked = rank_candidates(requester, pool, limit=2)
    assert [candidate.user.id for candidate in ranked] == ["close", "mid"]
    assert ranked[0].score >= ranked[1].score


def test_ties_keep_pool_order():
    requester = build_user("me").academic_profile
    pool = [build_user("b"), build_user("a"), build_user("c")]
    ranked = rank_candidates(requester, pool, limit=10)
    assert [candidate.user.id for candidate in ranked] == ["b", "a", "c"]


def test_ineligible_excluded_and_self_are_dropped():
    requester = build_user("me").academic_profile
    pool = [
        build_user("me"),
        build_user("unverified", verified=False),
        build_user("no-photo", with_photo=False),
        build_user("seen"),
        build_user("ok"),
    ]
    ranked = rank_candidates(requester, pool, exclude={"seen"}, limit=10)
    assert [candidate.user.id for candidate in ranked] == ["ok"]


def test_empty_pool_returns_empty_list():
    requester = build_user("me").academic_profile
    assert rank_candidates(requester, [], limit=5) == []
    assert rank_candidates(requester, [build_user("x")], limit=0) == []


def test_users_without_academic_profile_are_skipped():
    requester = build_user("me").academic_profile
    orphan = replace(build_user("orphan"), academic_profile=None)
    ranked = rank_candidates(requester, [orphan, build_user("ok")], limit=10)
    assert [candidate.user.id for candidate in ranked] == ["ok"]
