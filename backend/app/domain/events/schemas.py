"""Pydantic schemas for the events API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .models import Event, EventStatus, EventType


class EventRequirements(BaseModel):
	careers: List[str] = Field(default_factory=list)
	min_semester: Optional[int] = Field(default=None, ge=1, le=12)


class EventCreateRequest(BaseModel):
	title: str = Field(..., min_length=3, max_length=120)
	description: str = Field(default="", max_length=2000)
	event_type: EventType
	location: str = Field(..., min_length=1, max_length=200)
	campus: Optional[str] = Field(default=None, description="Defaults to the creator's campus")
	start_at: datetime
	end_at: datetime
	max_participants: Optional[int] = Field(default=None, ge=2, le=1000)
	is_public: bool = True
	requirements: EventRequirements = Field(default_factory=EventRequirements)
	tags: List[str] = Field(default_factory=list, max_length=10)
	image_url: Optional[str] = None


class EventCancelRequest(BaseModel):
	reason: Optional[str] = Field(default=None, max_length=300)


class EventResponse(BaseModel):
	id: str
	creator_id: str
	title: str
	description: str
	event_type: EventType
	location: str
	campus: str
	start_at: datetime
	end_at: datetime
	max_participants: Optional[int] = None
	current_participants: int
	spots_left: Optional[int] = None
	is_public: bool
	required_careers: List[str]
	min_semester: Optional[int] = None
	tags: List[str]
	status: EventStatus
	cancel_reason: Optional[str] = None
	image_url: Optional[str] = None
	is_participating: Optional[bool] = None
	created_at: Optional[datetime] = None

	@classmethod
	def from_model(cls, event: Event, *, is_participating: Optional[bool] = None) -> "EventResponse":
		return cls(
			id=event.id,
			creator_id=event.creator_id,
			title=event.title,
			description=event.description,
			event_type=event.event_type,
			location=event.location,
			campus=event.campus,
			start_at=event.start_at,
			end_at=event.end_at,
			max_participants=event.max_participants,
			current_participants=event.current_participants,
			spots_left=event.spots_left,
			is_public=event.is_public,
			required_careers=list(event.rules.careers),
			min_semester=event.rules.min_semester,
			tags=list(event.tags),
			status=event.status,
			cancel_reason=event.cancel_reason,
			image_url=event.image_url,
			is_participating=is_participating,
			created_at=event.created_at,
		)
