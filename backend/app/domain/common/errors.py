"""Domain-level exceptions shared by matching, chat, events and study groups."""

from __future__ import annotations

from typing import Iterable, Tuple


class DomainError(Exception):
	"""Base class for business rule failures."""

	reason: str = "unknown"

	def __init__(self, reason: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason


class NotFound(DomainError):
	reason = "not_found"


class Unauthorized(DomainError):
	reason = "forbidden"


class InvalidState(DomainError):
	reason = "invalid_state"


class ValidationFailed(DomainError):
	reason = "validation_failed"


class Conflict(DomainError):
	reason = "conflict"


class RateLimited(DomainError):
	reason = "rate_limited"


class MatchNotFound(NotFound):
	reason = "match_not_found"


class MessageNotFound(NotFound):
	reason = "message_not_found"


class EventNotFound(NotFound):
	reason = "event_not_found"


class StudyGroupNotFound(NotFound):
	reason = "study_group_not_found"


class UserNotFound(NotFound):
	reason = "user_not_found"


class UnauthorizedActor(Unauthorized):
	reason = "not_a_participant"


class MatchNotActive(InvalidState):
	reason = "match_not_active"


class GroupFull(InvalidState):
	reason = "full"


class NotEligible(InvalidState):
	"""Raised when a user fails the matching eligibility checks."""

	reason = "not_eligible"

	def __init__(self, reason: str | None = None, *, missing: Iterable[str] = ()) -> None:
		super().__init__(reason)
		self.missing: Tuple[str, ...] = tuple(missing)
