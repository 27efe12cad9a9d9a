"""Event workflows: create, browse, join, leave and cancel."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from uuid import uuid4

from app.domain.common.admission import AdmissionRules, admits, has_capacity
from app.domain.common.errors import (
	DomainError,
	EventNotFound,
	GroupFull,
	InvalidState,
	NotEligible,
	Unauthorized,
	UserNotFound,
	ValidationFailed,
)
from app.domain.events.models import Event, EventStatus, EventType
from app.domain.events.repo import EventRepository
from app.domain.events.schemas import EventCreateRequest
from app.domain.identity.repo import UserRepository
from app.domain.notifications import NotificationService
from app.infra import background
from app.infra.auth import AuthenticatedUser
from app.obs import metrics as obs_metrics

_LOG = logging.getLogger(__name__)


def _now() -> datetime:
	return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
	return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class EventService:
	def __init__(
		self,
		repository: Optional[EventRepository] = None,
		users: Optional[UserRepository] = None,
		notifications: Optional[NotificationService] = None,
	) -> None:
		self._repo = repository or EventRepository()
		self._users = users or UserRepository()
		self._notifications = notifications or NotificationService()

	async def _get(self, event_id: str) -> Event:
		event = await self._repo.get(event_id)
		if event is None:
			raise EventNotFound()
		return event

	async def create_event(self, auth_user: AuthenticatedUser, payload: EventCreateRequest) -> Event:
		creator = await self._users.get(auth_user.id)
		if creator is None:
			raise UserNotFound()
		now = _now()
		start_at = _as_utc(payload.start_at)
		end_at = _as_utc(payload.end_at)
		if start_at <= now:
			raise ValidationFailed("start_must_be_future")
		if end_at <= start_at:
			raise ValidationFailed("end_before_start")
		campus = (payload.campus or "").strip()
		if not campus and creator.academic_profile is not None:
			campus = creator.academic_profile.campus
		if not campus:
			raise ValidationFailed("campus_required")
		event = Event(
			id=str(uuid4()),
			creator_id=creator.id,
			title=payload.title.strip(),
			description=payload.description.strip(),
			event_type=payload.event_type,
			location=payload.location.strip(),
			campus=campus,
			start_at=start_at,
			end_at=end_at,
			max_participants=payload.max_participants,
			is_public=payload.is_public,
			rules=AdmissionRules.build(
				campus=campus,
				careers=payload.requirements.careers,
				min_semester=payload.requirements.min_semester,
			),
			tags=tuple(tag.strip() for tag in payload.tags if tag.strip()),
			image_url=payload.image_url,
			created_at=now,
			updated_at=now,
		)
		created = await self._repo.create(event)
		_LOG.info("event created", extra={"event_id": created.id, "event_type": created.event_type.value})
		return created

	async def get_event(self, auth_user: AuthenticatedUser, event_id: str) -> Tuple[Event, bool]:
		event = await self._get(event_id)
		return event, await self._repo.is_participant(event.id, str(auth_user.id))

	async def list_events(
		self,
		*,
		campus: Optional[str] = None,
		event_type: Optional[EventType] = None,
		limit: int = 20,
		offset: int = 0,
	) -> List[Event]:
		return await self._repo.list_upcoming(
			now=_now(),
			campus=campus,
			event_type=event_type,
			limit=limit,
			offset=offset,
		)

	async def my_events(self, auth_user: AuthenticatedUser) -> List[Event]:
		return await self._repo.list_for_member(str(auth_user.id))

	async def join_event(self, auth_user: AuthenticatedUser, event_id: str) -> Event:
		user_id = str(auth_user.id)
		event = await self._get(event_id)
		user = await self._users.get(user_id)
		if user is None:
			raise UserNotFound()
		try:
			if not event.is_open_at(_now()):
				raise InvalidState("event_not_open")
			if not has_capacity(event.current_participants, event.max_participants):
				raise GroupFull("event_full")
			if not admits(event.rules, user.academic_profile):
				raise NotEligible("requirements_not_met")
			joined = await self._repo.add_participant(event.id, user_id, at=_now())
		except DomainError as exc:
			obs_metrics.inc_group_join("event", exc.reason)
			raise
		obs_metrics.inc_group_join("event", "ok")
		if joined.creator_id != user_id:
			background.spawn(
				self._notifications.notify_event_join(joined.creator_id, user.first_name, joined.id, joined.title),
				name="notify_event_join",
			)
		return joined

	async def leave_event(self, auth_user: AuthenticatedUser, event_id: str) -> Event:
		user_id = str(auth_user.id)
		event = await self._get(event_id)
		if event.creator_id == user_id:
			raise InvalidState("creator_cannot_leave")
		left = await self._repo.remove_participant(event.id, user_id, at=_now())
		if left is None:
			raise InvalidState("not_participating")
		return left

	async def cancel_event(self, auth_user: AuthenticatedUser, event_id: str, *, reason: Optional[str] = None) -> Event:
		event = await self._get(event_id)
		if event.creator_id != str(auth_user.id):
			raise Unauthorized("not_creator")
		if event.status is EventStatus.COMPLETED:
			raise InvalidState("event_completed")
		if event.status is EventStatus.CANCELLED:
			return event
		reason = (reason or "").strip() or None
		cancelled = await self._repo.set_status(event.id, EventStatus.CANCELLED, reason=reason, at=_now())
		if cancelled is None:
			raise EventNotFound()
		for participant_id in await self._repo.participants(event.id):
			if participant_id == event.creator_id:
				continue
			background.spawn(
				self._notifications.notify_event_cancelled(participant_id, event.id, event.title, reason),
				name="notify_event_cancelled",
			)
		_LOG.info("event cancelled", extra={"event_id": event.id})
		return cancelled
