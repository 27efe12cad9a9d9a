"""User persistence backed by asyncpg with an in-memory fallback."""

from __future__ import annotations

import asyncio
from typing import Callable, Collection, Dict, Iterable, List, Optional

import asyncpg

from app.domain.common.errors import Conflict
from app.domain.identity.eligibility import is_eligible_for_matching
from app.domain.identity.models import User
from app.infra.postgres import PoolBackedRepository, encode_json

_SELECT_USER = """
SELECT u.*, p.student_id, p.career, p.campus, p.semester, p.interests, p.university
FROM users u
LEFT JOIN academic_profiles p ON p.user_id = u.id
"""

# SQL form of identity.eligibility.missing_requirements
_ELIGIBLE = """
u.email_verified AND u.profile_complete AND u.is_active
AND jsonb_array_length(u.photos) > 0
AND btrim(COALESCE(p.career, '')) <> '' AND btrim(COALESCE(p.campus, '')) <> ''
"""

Change = Callable[[User], User]


class _InMemoryStore:
	"""Fallback store used in tests when Postgres is unavailable."""

	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self._user_locks: Dict[str, asyncio.Lock] = {}
		self.users: Dict[str, User] = {}

	def reset(self) -> None:
		self._lock = asyncio.Lock()
		self._user_locks = {}
		self.users.clear()

	async def create(self, user: User) -> User:
		async with self._lock:
			for existing in self.users.values():
				if existing.email == user.email:
					raise Conflict("email_taken")
				student_id = user.academic_profile.student_id if user.academic_profile else None
				if student_id and existing.academic_profile and existing.academic_profile.student_id == student_id:
					raise Conflict("student_id_taken")
			self.users[user.id] = user
			return user

	async def update(self, user_id: str, change: Change) -> Optional[User]:
		async with self._user_locks.setdefault(user_id, asyncio.Lock()):
			current = self.users.get(user_id)
			if current is None:
				return None
			updated = change(current)
			self.users[user_id] = updated
			return updated


_MEMORY_STORE = _InMemoryStore()


class UserRepository(PoolBackedRepository):
	async def create(self, user: User) -> User:
		pool = await self._pool_or_none()
		if pool is None:
			return await _MEMORY_STORE.create(user)
		profile = user.academic_profile
		try:
			async with pool.acquire() as conn:
				async with conn.transaction():
					await conn.execute(
						"""
						INSERT INTO users (id, email, first_name, last_name, password_hash, bio, date_of_birth,
							photos, email_verified, profile_complete, is_active, created_at, updated_at)
						VALUES ($1, $2, $3, $4, $5, $6, $7, $8::jsonb, $9, $10, $11, $12, $12)
						""",
						user.id,
						user.email,
						user.first_name,
						user.last_name,
						user.password_hash,
						user.bio,
						user.date_of_birth,
						encode_json([photo.to_dict() for photo in user.photos]),
						user.email_verified,
						user.profile_complete,
						user.is_active,
						user.created_at,
					)
					if profile is not None:
						await conn.execute(
							"""
							INSERT INTO academic_profiles (user_id, student_id, career, campus, semester, interests, university)
							VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7)
							""",
							user.id,
							profile.student_id,
							profile.career,
							profile.campus,
							profile.semester,
							encode_json(list(profile.interests)),
							profile.university,
						)
		except asyncpg.UniqueViolationError as exc:
			constraint = getattr(exc, "constraint_name", "") or ""
			raise Conflict("student_id_taken" if "student" in constraint else "email_taken") from exc
		return user

	async def get(self, user_id: str) -> Optional[User]:
		pool = await self._pool_or_none()
		if pool is None:
			return _MEMORY_STORE.users.get(str(user_id))
		async with pool.acquire() as conn:
			row = await conn.fetchrow(_SELECT_USER + " WHERE u.id = $1", str(user_id))
		return User.from_record(row) if row else None

	async def get_many(self, user_ids: Iterable[str]) -> Dict[str, User]:
		ids = list(dict.fromkeys(str(uid) for uid in user_ids))
		if not ids:
			return {}
		pool = await self._pool_or_none()
		if pool is None:
			return {uid: _MEMORY_STORE.users[uid] for uid in ids if uid in _MEMORY_STORE.users}
		async with pool.acquire() as conn:
			rows = await conn.fetch(_SELECT_USER + " WHERE u.id = ANY($1::text[])", ids)
		users = {str(row["id"]): User.from_record(row) for row in rows}
		return users

	async def find_by_email(self, email: str) -> Optional[User]:
		email = email.strip().lower()
		pool = await self._pool_or_none()
		if pool is None:
			for user in _MEMORY_STORE.users.values():
				if user.email == email:
					return user
			return None
		async with pool.acquire() as conn:
			row = await conn.fetchrow(_SELECT_USER + " WHERE u.email = $1", email)
		return User.from_record(row) if row else None

	async def list_candidates(
		self,
		campus: str,
		*,
		exclude: Collection[str] = (),
		limit: int = 500,
	) -> List[User]:
		"""Users on ``campus`` eligible for matching and not in ``exclude``, oldest account first.

		Filtering happens before ``limit`` so excluded or ineligible accounts
		never crowd out the ones that qualify.
		"""
		excluded = sorted({str(uid) for uid in exclude})
		pool = await self._pool_or_none()
		if pool is None:
			users = [
				user
				for user in _MEMORY_STORE.users.values()
				if user.id not in excluded
				and user.academic_profile is not None
				and user.academic_profile.campus == campus
				and is_eligible_for_matching(user)
			]
			return users[:limit]
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				_SELECT_USER
				+ " WHERE p.campus = $1 AND NOT (u.id = ANY($2::text[])) AND "
				+ _ELIGIBLE
				+ " ORDER BY u.created_at, u.id LIMIT $3",
				campus,
				excluded,
				limit,
			)
		return [User.from_record(row) for row in rows]

	async def update(self, user_id: str, change: Change) -> Optional[User]:
		"""Apply ``change`` to the current row under a row lock and persist it.

		Concurrent updates of one user are serialised, so each ``change`` sees
		the previous one's result. Returns None when the user does not exist.
		"""
		user_id = str(user_id)
		pool = await self._pool_or_none()
		if pool is None:
			return await _MEMORY_STORE.update(user_id, change)
		async with pool.acquire() as conn:
			async with conn.transaction():
				locked = await conn.fetchval("SELECT id FROM users WHERE id = $1 FOR UPDATE", user_id)
				if locked is None:
					return None
				row = await conn.fetchrow(_SELECT_USER + " WHERE u.id = $1", user_id)
				current = User.from_record(row)
				updated = change(current)
				if updated != current:
					await self._write(conn, updated)
		return updated

	async def _write(self, conn, user: User) -> None:
		profile = user.academic_profile
		await conn.execute(
			"""
			UPDATE users
			SET first_name = $2, last_name = $3, bio = $4, date_of_birth = $5, photos = $6::jsonb,
				email_verified = $7, profile_complete = $8, is_active = $9, updated_at = $10
			WHERE id = $1
			""",
			user.id,
			user.first_name,
			user.last_name,
			user.bio,
			user.date_of_birth,
			encode_json([photo.to_dict() for photo in user.photos]),
			user.email_verified,
			user.profile_complete,
			user.is_active,
			user.updated_at,
		)
		if profile is not None:
			await conn.execute(
				"UPDATE academic_profiles SET semester = $2, interests = $3::jsonb WHERE user_id = $1",
				user.id,
				profile.semester,
				encode_json(list(profile.interests)),
			)
