"""Candidate ranking for the discovery feed."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Collection, Iterable, List

from app.domain.identity.eligibility import is_eligible_for_matching
from app.domain.identity.models import AcademicProfile, User
from app.domain.matching import scoring


@dataclass(frozen=True, slots=True)
class Candidate:
	user: User
	score: int


def rank_candidates(
	requester: AcademicProfile,
	pool: Iterable[User],
	*,
	exclude: Collection[str] = (),
	limit: int,
) -> List[Candidate]:
	"""Score eligible, non-excluded users and return the best ``limit``.

	The sort is stable, so candidates with equal scores keep pool order.
	"""
	if limit <= 0:
		return []
	scored: List[Candidate] = []
	for user in pool:
		if user.id == requester.user_id or user.id in exclude:
			continue
		profile = user.academic_profile
		if profile is None or not is_eligible_for_matching(user):
			continue
		scored.append(Candidate(user=user, score=scoring.compatibility(requester, profile)))
	scored.sort(key=lambda candidate: candidate.score, reverse=True)
	return scored[:limit]
