from dataclasses import replace

from conftest import build_user

from app.domain.identity.eligibility import is_eligible_for_matching, missing_requirements, profile_is_complete


def test_complete_verified_user_is_eligible():
    user = build_user("u1")
    assert profile_is_complete(user)
    assert is_eligible_for_matching(user)
    assert missing_requirements(user) == []


def test_each_failed_check_is_reported():
    user = replace(build_user("u1", verified=False, with_photo=False), is_active=False)
    assert missing_requirements(user) == ["email_verified", "profile_complete", "active", "photo"]
    assert not is_eligible_for_matching(user)


def test_missing_academic_profile_blocks_matching():
    user = replace(build_user("u1"), academic_profile=None)
    assert "academic_profile" in missing_requirements(user)
    assert not profile_is_complete(user)
