"""Pydantic schemas for the matching API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.domain.identity.schemas import UserSummary

from .models import Match, MatchStats, MatchStatus, SwipeAction
from .ranking import Candidate


class SwipeRequest(BaseModel):
	target_user_id: str = Field(..., min_length=1)
	action: SwipeAction

	@field_validator("action")
	@classmethod
	def _reject_none(cls, value: SwipeAction) -> SwipeAction:
		if value is SwipeAction.NONE:
			raise ValueError("action must be like, dislike or super_like")
		return value


class CandidateResponse(BaseModel):
	user: UserSummary
	compatibility: int

	@classmethod
	def from_model(cls, candidate: Candidate) -> "CandidateResponse":
		return cls(user=UserSummary.from_model(candidate.user), compatibility=candidate.score)


class MatchResponse(BaseModel):
	id: str
	status: MatchStatus
	compatibility: int
	other_user_id: str
	my_action: SwipeAction
	their_action: SwipeAction
	matched_at: Optional[datetime] = None
	last_interaction: Optional[datetime] = None
	created_at: Optional[datetime] = None
	other_user: Optional[UserSummary] = None

	@classmethod
	def from_model(
		cls,
		match: Match,
		viewer_id: str,
		*,
		other_user: Optional[UserSummary] = None,
	) -> "MatchResponse":
		other_id = match.counterpart(viewer_id) or ""
		# a pending match only reveals the counterpart's action once it is a like
		their_action = match.action_of(other_id)
		if match.status is MatchStatus.PENDING and not their_action.is_positive:
			their_action = SwipeAction.NONE
		return cls(
			id=match.id,
			status=match.status,
			compatibility=match.compatibility,
			other_user_id=other_id,
			my_action=match.action_of(viewer_id),
			their_action=their_action,
			matched_at=match.matched_at,
			last_interaction=match.last_interaction,
			created_at=match.created_at,
			other_user=other_user,
		)


class SwipeResponse(BaseModel):
	match: MatchResponse
	is_new_match: bool


class MatchStatsResponse(BaseModel):
	total_likes_sent: int
	total_likes_received: int
	total_matches: int
	total_conversations: int
	match_rate: float

	@classmethod
	def from_model(cls, stats: MatchStats) -> "MatchStatsResponse":
		return cls(
			total_likes_sent=stats.likes_sent,
			total_likes_received=stats.likes_received,
			total_matches=stats.matches,
			total_conversations=stats.conversations,
			match_rate=stats.match_rate,
		)


class MatchListResponse(BaseModel):
	items: List[MatchResponse]
