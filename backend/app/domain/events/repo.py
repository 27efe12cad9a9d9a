"""Event persistence; membership and the participant counter change together."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from app.domain.common.errors import Conflict, EventNotFound, GroupFull
from app.domain.events.models import Event, EventStatus, EventType
from app.infra.postgres import PoolBackedRepository, encode_json


class _InMemoryStore:
	"""Fallback store used in tests when Postgres is unavailable."""

	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self.events: Dict[str, Event] = {}
		self.participants: Dict[str, Dict[str, datetime]] = {}

	def reset(self) -> None:
		self._lock = asyncio.Lock()
		self.events.clear()
		self.participants.clear()

	async def create(self, event: Event) -> Event:
		async with self._lock:
			stored = replace(event, current_participants=1)
			self.events[event.id] = stored
			self.participants[event.id] = {event.creator_id: event.created_at or datetime.now().astimezone()}
			return stored

	async def add(self, event_id: str, user_id: str, at: datetime) -> Event:
		async with self._lock:
			event = self.events.get(event_id)
			if event is None:
				raise EventNotFound()
			members = self.participants.setdefault(event_id, {})
			if user_id in members:
				raise Conflict("already_participating")
			if event.max_participants is not None and event.current_participants >= event.max_participants:
				raise GroupFull("event_full")
			members[user_id] = at
			updated = replace(event, current_participants=event.current_participants + 1, updated_at=at)
			self.events[event_id] = updated
			return updated

	async def remove(self, event_id: str, user_id: str, at: datetime) -> Optional[Event]:
		async with self._lock:
			members = self.participants.get(event_id, {})
			event = self.events.get(event_id)
			if event is None or user_id not in members:
				return None
			del members[user_id]
			updated = replace(event, current_participants=max(event.current_participants - 1, 0), updated_at=at)
			self.events[event_id] = updated
			return updated

	async def set_status(self, event_id: str, status: EventStatus, reason: Optional[str], at: datetime) -> Optional[Event]:
		async with self._lock:
			event = self.events.get(event_id)
			if event is None:
				return None
			updated = replace(event, status=status, cancel_reason=reason, updated_at=at)
			self.events[event_id] = updated
			return updated


_MEMORY_STORE = _InMemoryStore()


class EventRepository(PoolBackedRepository):
	async def create(self, event: Event) -> Event:
		"""Insert ``event`` with its creator as the first participant."""
		pool = await self._pool_or_none()
		if pool is None:
			return await _MEMORY_STORE.create(event)
		async with pool.acquire() as conn:
			async with conn.transaction():
				row = await conn.fetchrow(
					"""
					INSERT INTO events (id, creator_id, title, description, event_type, location, campus, start_at, end_at,
						max_participants, current_participants, is_public, requirements, tags, status, image_url,
						created_at, updated_at)
					VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, 1, $11, $12::jsonb, $13::jsonb, $14, $15, $16, $16)
					RETURNING *
					""",
					event.id,
					event.creator_id,
					event.title,
					event.description,
					event.event_type.value,
					event.location,
					event.campus,
					event.start_at,
					event.end_at,
					event.max_participants,
					event.is_public,
					encode_json(event.rules.to_dict()),
					encode_json(list(event.tags)),
					event.status.value,
					event.image_url,
					event.created_at,
				)
				await conn.execute(
					"INSERT INTO event_participants (event_id, user_id, joined_at) VALUES ($1, $2, $3)",
					event.id,
					event.creator_id,
					event.created_at,
				)
		return Event.from_record(row)

	async def get(self, event_id: str) -> Optional[Event]:
		pool = await self._pool_or_none()
		if pool is None:
			return _MEMORY_STORE.events.get(event_id)
		async with pool.acquire() as conn:
			row = await conn.fetchrow("SELECT * FROM events WHERE id = $1", event_id)
		return Event.from_record(row) if row else None

	async def list_upcoming(
		self,
		*,
		now: datetime,
		campus: Optional[str] = None,
		event_type: Optional[EventType] = None,
		limit: int = 20,
		offset: int = 0,
	) -> List[Event]:
		"""Active public events that have not started, soonest first."""
		pool = await self._pool_or_none()
		if pool is None:
			found = [
				event
				for event in _MEMORY_STORE.events.values()
				if event.status is EventStatus.ACTIVE
				and event.is_public
				and event.start_at > now
				and (campus is None or event.campus == campus)
				and (event_type is None or event.event_type is event_type)
			]
			found.sort(key=lambda e: (e.start_at, e.id))
			return found[offset : offset + limit]
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT * FROM events
				WHERE status = 'active' AND is_public AND start_at > $1
					AND ($2::text IS NULL OR campus = $2)
					AND ($3::text IS NULL OR event_type = $3)
				ORDER BY start_at ASC, id ASC
				LIMIT $4 OFFSET $5
				""",
				now,
				campus,
				event_type.value if event_type else None,
				limit,
				offset,
			)
		return [Event.from_record(row) for row in rows]

	async def list_for_member(self, user_id: str) -> List[Event]:
		pool = await self._pool_or_none()
		if pool is None:
			found = [
				_MEMORY_STORE.events[event_id]
				for event_id, members in _MEMORY_STORE.participants.items()
				if user_id in members and event_id in _MEMORY_STORE.events
			]
			return sorted(found, key=lambda e: (e.start_at, e.id))
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT e.* FROM events e
				JOIN event_participants p ON p.event_id = e.id
				WHERE p.user_id = $1
				ORDER BY e.start_at ASC, e.id ASC
				""",
				user_id,
			)
		return [Event.from_record(row) for row in rows]

	async def participants(self, event_id: str) -> List[str]:
		pool = await self._pool_or_none()
		if pool is None:
			members = _MEMORY_STORE.participants.get(event_id, {})
			return [uid for uid, _ in sorted(members.items(), key=lambda item: item[1])]
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"SELECT user_id FROM event_participants WHERE event_id = $1 ORDER BY joined_at",
				event_id,
			)
		return [str(row["user_id"]) for row in rows]

	async def is_participant(self, event_id: str, user_id: str) -> bool:
		pool = await self._pool_or_none()
		if pool is None:
			return user_id in _MEMORY_STORE.participants.get(event_id, {})
		async with pool.acquire() as conn:
			found = await conn.fetchval(
				"SELECT 1 FROM event_participants WHERE event_id = $1 AND user_id = $2",
				event_id,
				user_id,
			)
		return found is not None

	async def add_participant(self, event_id: str, user_id: str, *, at: datetime) -> Event:
		"""Add a participant; raises ``Conflict`` if already in, ``GroupFull`` at capacity."""
		pool = await self._pool_or_none()
		if pool is None:
			return await _MEMORY_STORE.add(event_id, user_id, at)
		async with pool.acquire() as conn:
			async with conn.transaction():
				inserted = await conn.fetchval(
					"""
					INSERT INTO event_participants (event_id, user_id, joined_at)
					VALUES ($1, $2, $3)
					ON CONFLICT (event_id, user_id) DO NOTHING
					RETURNING user_id
					""",
					event_id,
					user_id,
					at,
				)
				if inserted is None:
					raise Conflict("already_participating")
				row = await conn.fetchrow(
					"""
					UPDATE events
					SET current_participants = current_participants + 1, updated_at = $2
					WHERE id = $1 AND (max_participants IS NULL OR current_participants < max_participants)
					RETURNING *
					""",
					event_id,
					at,
				)
				if row is None:
					# raising rolls back the membership insert
					raise GroupFull("event_full")
		return Event.from_record(row)

	async def remove_participant(self, event_id: str, user_id: str, *, at: datetime) -> Optional[Event]:
		"""Remove a participant; None when ``user_id`` was not participating."""
		pool = await self._pool_or_none()
		if pool is None:
			return await _MEMORY_STORE.remove(event_id, user_id, at)
		async with pool.acquire() as conn:
			async with conn.transaction():
				removed = await conn.fetchval(
					"DELETE FROM event_participants WHERE event_id = $1 AND user_id = $2 RETURNING user_id",
					event_id,
					user_id,
				)
				if removed is None:
					return None
				row = await conn.fetchrow(
					"""
					UPDATE events
					SET current_participants = GREATEST(current_participants - 1, 0), updated_at = $2
					WHERE id = $1
					RETURNING *
					""",
					event_id,
					at,
				)
		return Event.from_record(row) if row else None

	async def set_status(
		self,
		event_id: str,
		status: EventStatus,
		*,
		reason: Optional[str] = None,
		at: datetime,
	) -> Optional[Event]:
		pool = await self._pool_or_none()
		if pool is None:
			return await _MEMORY_STORE.set_status(event_id, status, reason, at)
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				UPDATE events SET status = $2, cancel_reason = $3, updated_at = $4
				WHERE id = $1
				RETURNING *
				""",
				event_id,
				status.value,
				reason,
				at,
			)
		return Event.from_record(row) if row else None
