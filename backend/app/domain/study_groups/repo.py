"""Study group persistence; membership and the member counter change together."""

from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from app.domain.common.errors import Conflict, GroupFull, StudyGroupNotFound
from app.domain.study_groups.models import StudyGroup, StudyGroupStatus, SubjectCount
from app.infra.postgres import PoolBackedRepository, encode_json


class _InMemoryStore:
	"""Fallback store used in tests when Postgres is unavailable."""

	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self.groups: Dict[str, StudyGroup] = {}
		self.members: Dict[str, Dict[str, datetime]] = {}

	def reset(self) -> None:
		self._lock = asyncio.Lock()
		self.groups.clear()
		self.members.clear()

	async def create(self, group: StudyGroup, at: datetime) -> StudyGroup:
		async with self._lock:
			stored = replace(group, current_members=1)
			self.groups[group.id] = stored
			self.members[group.id] = {group.creator_id: at}
			return stored

	async def add(self, group_id: str, user_id: str, at: datetime) -> StudyGroup:
		async with self._lock:
			group = self.groups.get(group_id)
			if group is None:
				raise StudyGroupNotFound()
			members = self.members.setdefault(group_id, {})
			if user_id in members:
				raise Conflict("already_member")
			if group.current_members >= group.max_members:
				raise GroupFull("group_full")
			members[user_id] = at
			updated = replace(group, current_members=group.current_members + 1, updated_at=at)
			self.groups[group_id] = updated
			return updated

	async def remove(self, group_id: str, user_id: str, at: datetime) -> Optional[StudyGroup]:
		async with self._lock:
			members = self.members.get(group_id, {})
			group = self.groups.get(group_id)
			if group is None or user_id not in members:
				return None
			del members[user_id]
			updated = replace(group, current_members=max(group.current_members - 1, 1), updated_at=at)
			self.groups[group_id] = updated
			return updated

	async def set_status(self, group_id: str, status: StudyGroupStatus, at: datetime) -> Optional[StudyGroup]:
		async with self._lock:
			group = self.groups.get(group_id)
			if group is None:
				return None
			updated = replace(group, status=status, updated_at=at)
			self.groups[group_id] = updated
			return updated


_MEMORY_STORE = _InMemoryStore()


def _newest_first(groups: List[StudyGroup]) -> List[StudyGroup]:
	return sorted(groups, key=lambda g: (g.created_at is not None, g.created_at, g.id), reverse=True)


class StudyGroupRepository(PoolBackedRepository):
	async def create(self, group: StudyGroup, *, at: datetime) -> StudyGroup:
		"""Insert ``group`` with its creator as the first member."""
		pool = await self._pool_or_none()
		if pool is None:
			return await _MEMORY_STORE.create(group, at)
		async with pool.acquire() as conn:
			async with conn.transaction():
				row = await conn.fetchrow(
					"""
					INSERT INTO study_groups (id, creator_id, name, description, subject, campus, career, semester,
						max_members, current_members, schedule, is_private, requirements, status, created_at, updated_at)
					VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, 1, $10::jsonb, $11, $12::jsonb, $13, $14, $14)
					RETURNING *
					""",
					group.id,
					group.creator_id,
					group.name,
					group.description,
					group.subject,
					group.campus,
					group.career,
					group.semester,
					group.max_members,
					encode_json(group.schedule),
					group.is_private,
					encode_json(group.rules.to_dict()),
					group.status.value,
					at,
				)
				await conn.execute(
					"INSERT INTO study_group_members (group_id, user_id, joined_at) VALUES ($1, $2, $3)",
					group.id,
					group.creator_id,
					at,
				)
		return StudyGroup.from_record(row)

	async def get(self, group_id: str) -> Optional[StudyGroup]:
		pool = await self._pool_or_none()
		if pool is None:
			return _MEMORY_STORE.groups.get(group_id)
		async with pool.acquire() as conn:
			row = await conn.fetchrow("SELECT * FROM study_groups WHERE id = $1", group_id)
		return StudyGroup.from_record(row) if row else None

	async def list_active(
		self,
		*,
		campus: Optional[str] = None,
		career: Optional[str] = None,
		limit: int = 20,
		offset: int = 0,
	) -> List[StudyGroup]:
		"""Active, non-private groups, newest first."""
		pool = await self._pool_or_none()
		if pool is None:
			found = [
				group
				for group in _MEMORY_STORE.groups.values()
				if group.is_active
				and not group.is_private
				and (campus is None or group.campus == campus)
				and (career is None or group.career == career)
			]
			return _newest_first(found)[offset : offset + limit]
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT * FROM study_groups
				WHERE status = 'active' AND NOT is_private
					AND ($1::text IS NULL OR campus = $1)
					AND ($2::text IS NULL OR career = $2)
				ORDER BY created_at DESC, id DESC
				LIMIT $3 OFFSET $4
				""",
				campus,
				career,
				limit,
				offset,
			)
		return [StudyGroup.from_record(row) for row in rows]

	async def search(self, text: str, *, campus: Optional[str] = None, limit: int = 20) -> List[StudyGroup]:
		"""Case-insensitive substring match over name, subject and description."""
		pool = await self._pool_or_none()
		if pool is None:
			needle = text.lower()
			found = [
				group
				for group in _MEMORY_STORE.groups.values()
				if group.is_active
				and not group.is_private
				and (campus is None or group.campus == campus)
				and any(needle in value.lower() for value in (group.name, group.subject, group.description))
			]
			return _newest_first(found)[:limit]
		pattern = f"%{text}%"
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT * FROM study_groups
				WHERE status = 'active' AND NOT is_private
					AND ($2::text IS NULL OR campus = $2)
					AND (name ILIKE $1 OR subject ILIKE $1 OR description ILIKE $1)
				ORDER BY created_at DESC, id DESC
				LIMIT $3
				""",
				pattern,
				campus,
				limit,
			)
		return [StudyGroup.from_record(row) for row in rows]

	async def popular_subjects(self, *, campus: Optional[str] = None, limit: int = 10) -> List[SubjectCount]:
		pool = await self._pool_or_none()
		if pool is None:
			counts = Counter(
				group.subject
				for group in _MEMORY_STORE.groups.values()
				if group.is_active and (campus is None or group.campus == campus)
			)
			ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
			return [SubjectCount(subject=subject, groups=total) for subject, total in ordered[:limit]]
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT subject, COUNT(*) AS groups FROM study_groups
				WHERE status = 'active' AND ($1::text IS NULL OR campus = $1)
				GROUP BY subject
				ORDER BY groups DESC, subject ASC
				LIMIT $2
				""",
				campus,
				limit,
			)
		return [SubjectCount(subject=row["subject"], groups=int(row["groups"])) for row in rows]

	async def list_for_member(self, user_id: str) -> List[StudyGroup]:
		pool = await self._pool_or_none()
		if pool is None:
			found = [
				_MEMORY_STORE.groups[group_id]
				for group_id, members in _MEMORY_STORE.members.items()
				if user_id in members and group_id in _MEMORY_STORE.groups
			]
			return _newest_first(found)
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT g.* FROM study_groups g
				JOIN study_group_members m ON m.group_id = g.id
				WHERE m.user_id = $1
				ORDER BY g.created_at DESC, g.id DESC
				""",
				user_id,
			)
		return [StudyGroup.from_record(row) for row in rows]

	async def members(self, group_id: str) -> List[str]:
		"""Member ids in join order."""
		pool = await self._pool_or_none()
		if pool is None:
			members = _MEMORY_STORE.members.get(group_id, {})
			return [uid for uid, _ in sorted(members.items(), key=lambda item: item[1])]
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"SELECT user_id FROM study_group_members WHERE group_id = $1 ORDER BY joined_at",
				group_id,
			)
		return [str(row["user_id"]) for row in rows]

	async def is_member(self, group_id: str, user_id: str) -> bool:
		pool = await self._pool_or_none()
		if pool is None:
			return user_id in _MEMORY_STORE.members.get(group_id, {})
		async with pool.acquire() as conn:
			found = await conn.fetchval(
				"SELECT 1 FROM study_group_members WHERE group_id = $1 AND user_id = $2",
				group_id,
				user_id,
			)
		return found is not None

	async def add_member(self, group_id: str, user_id: str, *, at: datetime) -> StudyGroup:
		"""Add a member; raises ``Conflict`` if already in, ``GroupFull`` at capacity."""
		pool = await self._pool_or_none()
		if pool is None:
			return await _MEMORY_STORE.add(group_id, user_id, at)
		async with pool.acquire() as conn:
			async with conn.transaction():
				inserted = await conn.fetchval(
					"""
					INSERT INTO study_group_members (group_id, user_id, joined_at)
					VALUES ($1, $2, $3)
					ON CONFLICT (group_id, user_id) DO NOTHING
					RETURNING user_id
					""",
					group_id,
					user_id,
					at,
				)
				if inserted is None:
					raise Conflict("already_member")
				row = await conn.fetchrow(
					"""
					UPDATE study_groups
					SET current_members = current_members + 1, updated_at = $2
					WHERE id = $1 AND current_members < max_members
					RETURNING *
					""",
					group_id,
					at,
				)
				if row is None:
					# raising rolls back the membership insert
					raise GroupFull("group_full")
		return StudyGroup.from_record(row)

	async def remove_member(self, group_id: str, user_id: str, *, at: datetime) -> Optional[StudyGroup]:
		"""Remove a member; None when ``user_id`` was not a member."""
		pool = await self._pool_or_none()
		if pool is None:
			return await _MEMORY_STORE.remove(group_id, user_id, at)
		async with pool.acquire() as conn:
			async with conn.transaction():
				removed = await conn.fetchval(
					"DELETE FROM study_group_members WHERE group_id = $1 AND user_id = $2 RETURNING user_id",
					group_id,
					user_id,
				)
				if removed is None:
					return None
				row = await conn.fetchrow(
					"""
					UPDATE study_groups
					SET current_members = GREATEST(current_members - 1, 1), updated_at = $2
					WHERE id = $1
					RETURNING *
					""",
					group_id,
					at,
				)
		return StudyGroup.from_record(row) if row else None

	async def set_status(self, group_id: str, status: StudyGroupStatus, *, at: datetime) -> Optional[StudyGroup]:
		pool = await self._pool_or_none()
		if pool is None:
			return await _MEMORY_STORE.set_status(group_id, status, at)
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"UPDATE study_groups SET status = $2, updated_at = $3 WHERE id = $1 RETURNING *",
				group_id,
				status.value,
				at,
			)
		return StudyGroup.from_record(row) if row else None
