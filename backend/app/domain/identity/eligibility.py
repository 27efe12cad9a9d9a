"""Profile completeness and matching eligibility rules."""

from __future__ import annotations

from typing import List

from app.domain.identity.models import User


def profile_is_complete(user: User) -> bool:
	"""A profile is complete once bio, photo and academic data are present."""
	profile = user.academic_profile
	return bool(
		user.bio.strip()
		and user.photos
		and profile is not None
		and profile.career.strip()
		and profile.campus.strip()
		and profile.semester
	)


def missing_requirements(user: User) -> List[str]:
	missing: List[str] = []
	if not user.email_verified:
		missing.append("email_verified")
	if not user.profile_complete:
		missing.append("profile_complete")
	if not user.is_active:
		missing.append("active")
	if not user.photos:
		missing.append("photo")
	profile = user.academic_profile
	if profile is None or not profile.career.strip() or not profile.campus.strip():
		missing.append("academic_profile")
	return missing


def is_eligible_for_matching(user: User) -> bool:
	return not missing_requirements(user)
