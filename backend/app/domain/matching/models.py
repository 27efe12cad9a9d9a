"""Domain models for pairwise matches."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Tuple
from uuid import uuid4

from app.domain.common.errors import ValidationFailed


class MatchStatus(str, Enum):
	PENDING = "pending"
	MATCHED = "matched"
	UNMATCHED = "unmatched"
	BLOCKED = "blocked"


class SwipeAction(str, Enum):
	NONE = "none"
	LIKE = "like"
	DISLIKE = "dislike"
	SUPER_LIKE = "super_like"

	@property
	def is_positive(self) -> bool:
		return self in (SwipeAction.LIKE, SwipeAction.SUPER_LIKE)

	@classmethod
	def from_column(cls, value: Optional[str]) -> "SwipeAction":
		return cls(value) if value else cls.NONE

	def to_column(self) -> Optional[str]:
		return None if self is SwipeAction.NONE else self.value


@dataclass(frozen=True, slots=True)
class PairKey:
	"""Canonical, order-independent key for two users."""

	user_a: str
	user_b: str

	@classmethod
	def from_participants(cls, user_one: str, user_two: str) -> "PairKey":
		one, two = str(user_one), str(user_two)
		if one == two:
			raise ValidationFailed("self_match")
		ordered = sorted((one, two))
		return cls(user_a=ordered[0], user_b=ordered[1])

	def participants(self) -> Tuple[str, str]:
		return (self.user_a, self.user_b)


@dataclass(frozen=True, slots=True)
class Match:
	id: str
	user_a: str
	user_b: str
	compatibility: int
	status: MatchStatus = MatchStatus.PENDING
	action_a: SwipeAction = SwipeAction.NONE
	action_b: SwipeAction = SwipeAction.NONE
	matched_at: Optional[datetime] = None
	last_interaction: Optional[datetime] = None
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None

	@classmethod
	def open(cls, key: PairKey, *, compatibility: int, now: datetime) -> "Match":
		return cls(
			id=str(uuid4()),
			user_a=key.user_a,
			user_b=key.user_b,
			compatibility=compatibility,
			created_at=now,
			updated_at=now,
		)

	@property
	def key(self) -> PairKey:
		return PairKey(self.user_a, self.user_b)

	def is_participant(self, user_id: str) -> bool:
		return str(user_id) in (self.user_a, self.user_b)

	def counterpart(self, user_id: str) -> Optional[str]:
		user_id = str(user_id)
		if user_id == self.user_a:
			return self.user_b
		if user_id == self.user_b:
			return self.user_a
		return None

	def action_of(self, user_id: str) -> SwipeAction:
		user_id = str(user_id)
		if user_id == self.user_a:
			return self.action_a
		if user_id == self.user_b:
			return self.action_b
		return SwipeAction.NONE

	@classmethod
	def from_record(cls, record: Mapping[str, Any]) -> "Match":
		return cls(
			id=str(record["id"]),
			user_a=str(record["user_a"]),
			user_b=str(record["user_b"]),
			compatibility=int(record["compatibility"]),
			status=MatchStatus(record["status"]),
			action_a=SwipeAction.from_column(record["action_a"]),
			action_b=SwipeAction.from_column(record["action_b"]),
			matched_at=record["matched_at"],
			last_interaction=record["last_interaction"],
			created_at=record["created_at"],
			updated_at=record["updated_at"],
		)


@dataclass(frozen=True, slots=True)
class MatchStats:
	likes_sent: int
	likes_received: int
	matches: int
	conversations: int

	@property
	def match_rate(self) -> float:
		if self.likes_sent <= 0:
			return 0.0
		return round(self.matches / self.likes_sent * 100, 1)
