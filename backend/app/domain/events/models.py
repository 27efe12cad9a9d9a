"""Domain models for campus events."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from app.domain.common.admission import AdmissionRules
from app.infra.postgres import decode_json


class EventType(str, Enum):
	SOCIAL = "social"
	ACADEMIC = "academic"
	SPORTS = "sports"
	CULTURAL = "cultural"


class EventStatus(str, Enum):
	ACTIVE = "active"
	CANCELLED = "cancelled"
	COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class Event:
	id: str
	creator_id: str
	title: str
	event_type: EventType
	location: str
	campus: str
	start_at: datetime
	end_at: datetime
	description: str = ""
	max_participants: Optional[int] = None
	current_participants: int = 0
	is_public: bool = True
	rules: AdmissionRules = AdmissionRules()
	tags: Tuple[str, ...] = ()
	status: EventStatus = EventStatus.ACTIVE
	cancel_reason: Optional[str] = None
	image_url: Optional[str] = None
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None

	def is_open_at(self, now: datetime) -> bool:
		"""Active and not yet started."""
		return self.status is EventStatus.ACTIVE and now < self.start_at

	@property
	def spots_left(self) -> Optional[int]:
		if self.max_participants is None:
			return None
		return max(0, self.max_participants - self.current_participants)

	@classmethod
	def from_record(cls, record: Mapping[str, Any]) -> "Event":
		return cls(
			id=str(record["id"]),
			creator_id=str(record["creator_id"]),
			title=record["title"],
			event_type=EventType(record["event_type"]),
			location=record["location"],
			campus=record["campus"],
			start_at=record["start_at"],
			end_at=record["end_at"],
			description=record["description"] or "",
			max_participants=record["max_participants"],
			current_participants=int(record["current_participants"]),
			is_public=bool(record["is_public"]),
			rules=AdmissionRules.from_dict(decode_json(record["requirements"], {})),
			tags=tuple(decode_json(record["tags"], [])),
			status=EventStatus(record["status"]),
			cancel_reason=record["cancel_reason"],
			image_url=record["image_url"],
			created_at=record["created_at"],
			updated_at=record["updated_at"],
		)
