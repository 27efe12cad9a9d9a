"""Match persistence with atomic read-modify-write per pair."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Set

from app.domain.matching.models import Match, MatchStatus, PairKey
from app.infra.postgres import PoolBackedRepository

Change = Callable[[Match], Match]

_CLOSED = (MatchStatus.UNMATCHED, MatchStatus.BLOCKED)
_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


class _InMemoryStore:
	"""Fallback store used in tests when Postgres is unavailable."""

	def __init__(self) -> None:
		self._locks: Dict[PairKey, asyncio.Lock] = {}
		self.matches: Dict[str, Match] = {}
		self.by_pair: Dict[PairKey, str] = {}

	def reset(self) -> None:
		self._locks = {}
		self.matches.clear()
		self.by_pair.clear()

	def _lock_for(self, key: PairKey) -> asyncio.Lock:
		return self._locks.setdefault(key, asyncio.Lock())

	async def apply(self, key: PairKey, *, compatibility: int, now: datetime, change: Change) -> Match:
		async with self._lock_for(key):
			match_id = self.by_pair.get(key)
			current = self.matches[match_id] if match_id else Match.open(key, compatibility=compatibility, now=now)
			updated = change(current)
			self.matches[updated.id] = updated
			self.by_pair[key] = updated.id
			return updated

	async def update(self, match_id: str, change: Change) -> Optional[Match]:
		existing = self.matches.get(match_id)
		if existing is None:
			return None
		async with self._lock_for(existing.key):
			updated = change(self.matches[match_id])
			self.matches[match_id] = updated
			return updated


_MEMORY_STORE = _InMemoryStore()


class MatchRepository(PoolBackedRepository):
	async def apply(self, key: PairKey, *, compatibility: int, now: datetime, change: Change) -> Match:
		"""Load or create the pair's match and persist ``change(match)`` atomically.

		If ``change`` raises, nothing is written, not even the new record.
		"""
		pool = await self._pool_or_none()
		if pool is None:
			return await _MEMORY_STORE.apply(key, compatibility=compatibility, now=now, change=change)
		fresh = Match.open(key, compatibility=compatibility, now=now)
		async with pool.acquire() as conn:
			async with conn.transaction():
				await conn.execute(
					"""
					INSERT INTO matches (id, user_a, user_b, status, compatibility, created_at, updated_at)
					VALUES ($1, $2, $3, $4, $5, $6, $6)
					ON CONFLICT (user_a, user_b) DO NOTHING
					""",
					fresh.id,
					fresh.user_a,
					fresh.user_b,
					fresh.status.value,
					fresh.compatibility,
					now,
				)
				row = await conn.fetchrow(
					"SELECT * FROM matches WHERE user_a = $1 AND user_b = $2 FOR UPDATE",
					key.user_a,
					key.user_b,
				)
				current = Match.from_record(row)
				updated = change(current)
				if updated != current:
					await self._write(conn, updated)
				return updated

	async def update(self, match_id: str, change: Change) -> Optional[Match]:
		pool = await self._pool_or_none()
		if pool is None:
			return await _MEMORY_STORE.update(match_id, change)
		async with pool.acquire() as conn:
			async with conn.transaction():
				row = await conn.fetchrow("SELECT * FROM matches WHERE id = $1 FOR UPDATE", match_id)
				if row is None:
					return None
				current = Match.from_record(row)
				updated = change(current)
				if updated != current:
					await self._write(conn, updated)
				return updated

	async def _write(self, conn, match: Match) -> None:
		await conn.execute(
			"""
			UPDATE matches
			SET status = $2, action_a = $3, action_b = $4, matched_at = $5,
				last_interaction = $6, updated_at = $7
			WHERE id = $1
			""",
			match.id,
			match.status.value,
			match.action_a.to_column(),
			match.action_b.to_column(),
			match.matched_at,
			match.last_interaction,
			match.updated_at,
		)

	async def get(self, match_id: str) -> Optional[Match]:
		pool = await self._pool_or_none()
		if pool is None:
			return _MEMORY_STORE.matches.get(str(match_id))
		async with pool.acquire() as conn:
			row = await conn.fetchrow("SELECT * FROM matches WHERE id = $1", str(match_id))
		return Match.from_record(row) if row else None

	async def get_by_pair(self, key: PairKey) -> Optional[Match]:
		pool = await self._pool_or_none()
		if pool is None:
			match_id = _MEMORY_STORE.by_pair.get(key)
			return _MEMORY_STORE.matches.get(match_id) if match_id else None
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"SELECT * FROM matches WHERE user_a = $1 AND user_b = $2",
				key.user_a,
				key.user_b,
			)
		return Match.from_record(row) if row else None

	async def list_for_user(
		self,
		user_id: str,
		*,
		statuses: Optional[Iterable[MatchStatus]] = None,
	) -> List[Match]:
		"""Matches involving ``user_id``, most recently updated first."""
		wanted = [status.value for status in statuses] if statuses is not None else None
		pool = await self._pool_or_none()
		if pool is None:
			found = [
				match
				for match in _MEMORY_STORE.matches.values()
				if match.is_participant(user_id) and (wanted is None or match.status.value in wanted)
			]
			found.sort(key=lambda match: match.updated_at or _EPOCH, reverse=True)
			return found
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT * FROM matches
				WHERE (user_a = $1 OR user_b = $1)
					AND ($2::text[] IS NULL OR status = ANY($2::text[]))
				ORDER BY updated_at DESC
				""",
				str(user_id),
				wanted,
			)
		return [Match.from_record(row) for row in rows]

	async def interacted_with(self, user_id: str) -> Set[str]:
		"""Users that ``user_id`` already swiped on, plus pairs that were closed."""
		user_id = str(user_id)
		pool = await self._pool_or_none()
		if pool is None:
			return {
				match.counterpart(user_id)
				for match in _MEMORY_STORE.matches.values()
				if match.is_participant(user_id)
				and (match.action_of(user_id).to_column() is not None or match.status in _CLOSED)
			}
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT CASE WHEN user_a = $1 THEN user_b ELSE user_a END AS other_id
				FROM matches
				WHERE (user_a = $1 AND action_a IS NOT NULL)
					OR (user_b = $1 AND action_b IS NOT NULL)
					OR ((user_a = $1 OR user_b = $1) AND status IN ('unmatched', 'blocked'))
				""",
				user_id,
			)
		return {str(row["other_id"]) for row in rows}
