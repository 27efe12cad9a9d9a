"""Pure state transitions for a match.

``pending`` becomes ``matched`` once both slots hold a like or super like.
A dislike over a matched pair moves it to ``unmatched``, so ``matched`` always
means a standing mutual like. ``blocked`` is terminal.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from app.domain.common.errors import InvalidState, UnauthorizedActor, ValidationFailed
from app.domain.matching.models import Match, MatchStatus, SwipeAction


def _slot_for(match: Match, actor_id: str) -> str:
	actor_id = str(actor_id)
	if actor_id == match.user_a:
		return "action_a"
	if actor_id == match.user_b:
		return "action_b"
	raise UnauthorizedActor()


def is_mutual_like(match: Match) -> bool:
	return match.action_a.is_positive and match.action_b.is_positive


def apply_action(match: Match, actor_id: str, action: SwipeAction, *, now: datetime) -> Match:
	slot = _slot_for(match, actor_id)
	if action is SwipeAction.NONE:
		raise ValidationFailed("invalid_action")
	updated = replace(match, **{slot: action}, last_interaction=now, updated_at=now)
	if updated.status is MatchStatus.PENDING and is_mutual_like(updated):
		return replace(updated, status=MatchStatus.MATCHED, matched_at=now)
	if updated.status is MatchStatus.MATCHED and not is_mutual_like(updated):
		return replace(updated, status=MatchStatus.UNMATCHED)
	return updated


def unmatch(match: Match, actor_id: str, *, now: datetime) -> Match:
	_slot_for(match, actor_id)
	if match.status is MatchStatus.BLOCKED:
		raise InvalidState("match_blocked")
	if match.status is MatchStatus.UNMATCHED:
		return match
	return replace(match, status=MatchStatus.UNMATCHED, updated_at=now)


def block(match: Match, actor_id: str, *, now: datetime) -> Match:
	_slot_for(match, actor_id)
	if match.status is MatchStatus.BLOCKED:
		return match
	return replace(match, status=MatchStatus.BLOCKED, updated_at=now)
