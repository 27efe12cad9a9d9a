"""Message persistence backed by asyncpg with an in-memory fallback."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from app.domain.chat.models import INVITATION_RESPONSE_KIND, InvitationStatus, Message
from app.infra.postgres import PoolBackedRepository, encode_json


def _order(message: Message) -> tuple:
	return (message.created_at, message.id)


class _InMemoryStore:
	"""Fallback store used in tests when Postgres is unavailable."""

	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self.messages: Dict[str, Message] = {}

	def reset(self) -> None:
		self._lock = asyncio.Lock()
		self.messages.clear()

	def for_match(self, match_id: str) -> List[Message]:
		return sorted((m for m in self.messages.values() if m.match_id == match_id), key=_order)

	async def put(self, message: Message) -> Message:
		async with self._lock:
			self.messages[message.id] = message
			return message

	async def mark_read(self, ids: List[str], receiver_id: str, at: datetime) -> List[str]:
		async with self._lock:
			updated: List[str] = []
			for message_id in ids:
				message = self.messages.get(message_id)
				if message is None or message.receiver_id != receiver_id or message.is_read:
					continue
				self.messages[message_id] = replace(message, is_read=True, read_at=at, updated_at=at)
				updated.append(message_id)
			return updated

	async def answer_invitation(self, message_id: str, metadata: Dict[str, Any], at: datetime) -> Optional[Message]:
		async with self._lock:
			message = self.messages.get(message_id)
			if message is None or message.metadata.get("status", InvitationStatus.PENDING.value) != InvitationStatus.PENDING.value:
				return None
			answered = replace(message, metadata=dict(metadata), updated_at=at)
			self.messages[message_id] = answered
			return answered


_MEMORY_STORE = _InMemoryStore()


class MessageRepository(PoolBackedRepository):
	async def create(self, message: Message) -> Message:
		pool = await self._pool_or_none()
		if pool is None:
			return await _MEMORY_STORE.put(message)
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				INSERT INTO messages (id, match_id, sender_id, receiver_id, content, message_type, metadata,
					is_delivered, is_read, created_at, updated_at)
				VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, FALSE, FALSE, $8, $8)
				RETURNING *
				""",
				message.id,
				message.match_id,
				message.sender_id,
				message.receiver_id,
				message.content,
				message.message_type.value,
				encode_json(message.metadata),
				message.created_at,
			)
		return Message.from_record(row)

	async def get(self, message_id: str) -> Optional[Message]:
		pool = await self._pool_or_none()
		if pool is None:
			return _MEMORY_STORE.messages.get(message_id)
		async with pool.acquire() as conn:
			row = await conn.fetchrow("SELECT * FROM messages WHERE id = $1", message_id)
		return Message.from_record(row) if row else None

	async def list_recent(self, match_id: str, *, limit: int) -> List[Message]:
		"""The newest ``limit`` messages of a match, oldest first."""
		pool = await self._pool_or_none()
		if pool is None:
			return _MEMORY_STORE.for_match(match_id)[-limit:] if limit > 0 else []
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT * FROM messages
				WHERE match_id = $1
				ORDER BY created_at DESC, id DESC
				LIMIT $2
				""",
				match_id,
				limit,
			)
		return [Message.from_record(row) for row in reversed(rows)]

	async def list_since(self, match_id: str, since: datetime) -> List[Message]:
		"""Every message of a match created strictly after ``since``, oldest first."""
		pool = await self._pool_or_none()
		if pool is None:
			return [m for m in _MEMORY_STORE.for_match(match_id) if m.created_at > since]
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT * FROM messages
				WHERE match_id = $1 AND created_at > $2
				ORDER BY created_at ASC, id ASC
				""",
				match_id,
				since,
			)
		return [Message.from_record(row) for row in rows]

	async def mark_delivered(self, message_id: str, *, at: datetime) -> Optional[Message]:
		pool = await self._pool_or_none()
		if pool is None:
			message = _MEMORY_STORE.messages.get(message_id)
			if message is None:
				return None
			return await _MEMORY_STORE.put(replace(message, is_delivered=True, delivered_at=at, updated_at=at))
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				UPDATE messages
				SET is_delivered = TRUE, delivered_at = $2, updated_at = $2
				WHERE id = $1
				RETURNING *
				""",
				message_id,
				at,
			)
		return Message.from_record(row) if row else None

	async def mark_read(self, message_ids: Iterable[str], receiver_id: str, *, at: datetime) -> List[str]:
		"""Mark unread messages addressed to ``receiver_id``; returns the ids changed."""
		ids = list(dict.fromkeys(str(mid) for mid in message_ids))
		if not ids:
			return []
		pool = await self._pool_or_none()
		if pool is None:
			return await _MEMORY_STORE.mark_read(ids, receiver_id, at)
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				UPDATE messages
				SET is_read = TRUE, read_at = $3, updated_at = $3
				WHERE id = ANY($1::text[]) AND receiver_id = $2 AND is_read = FALSE
				RETURNING id
				""",
				ids,
				receiver_id,
				at,
			)
		return [str(row["id"]) for row in rows]

	async def unread_ids(self, match_id: str, receiver_id: str) -> List[str]:
		pool = await self._pool_or_none()
		if pool is None:
			return [
				m.id
				for m in _MEMORY_STORE.for_match(match_id)
				if m.receiver_id == receiver_id and not m.is_read
			]
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"SELECT id FROM messages WHERE match_id = $1 AND receiver_id = $2 AND is_read = FALSE ORDER BY created_at",
				match_id,
				receiver_id,
			)
		return [str(row["id"]) for row in rows]

	async def unread_counts(self, receiver_id: str) -> Dict[str, int]:
		pool = await self._pool_or_none()
		if pool is None:
			counts: Dict[str, int] = {}
			for message in _MEMORY_STORE.messages.values():
				if message.receiver_id == receiver_id and not message.is_read:
					counts[message.match_id] = counts.get(message.match_id, 0) + 1
			return counts
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT match_id, COUNT(*) AS unread
				FROM messages
				WHERE receiver_id = $1 AND is_read = FALSE
				GROUP BY match_id
				""",
				receiver_id,
			)
		return {str(row["match_id"]): int(row["unread"]) for row in rows}

	async def answer_invitation(
		self,
		message_id: str,
		metadata: Dict[str, Any],
		*,
		at: datetime,
	) -> Optional[Message]:
		"""Replace the metadata of a still-pending invitation; None when already answered."""
		pool = await self._pool_or_none()
		if pool is None:
			return await _MEMORY_STORE.answer_invitation(message_id, metadata, at)
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				UPDATE messages
				SET metadata = $2::jsonb, updated_at = $3
				WHERE id = $1 AND COALESCE(metadata->>'status', 'pending') = 'pending'
				RETURNING *
				""",
				message_id,
				encode_json(metadata),
				at,
			)
		return Message.from_record(row) if row else None

	async def find_invitation_response(self, invitation_id: str) -> Optional[Message]:
		pool = await self._pool_or_none()
		if pool is None:
			for message in _MEMORY_STORE.messages.values():
				meta = message.metadata
				if meta.get("type") == INVITATION_RESPONSE_KIND and meta.get("original_invitation_id") == invitation_id:
					return message
			return None
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				SELECT * FROM messages
				WHERE metadata->>'type' = $2 AND metadata->>'original_invitation_id' = $1
				LIMIT 1
				""",
				invitation_id,
				INVITATION_RESPONSE_KIND,
			)
		return Message.from_record(row) if row else None

	async def count_conversations(self, match_ids: Iterable[str]) -> int:
		"""How many of ``match_ids`` have at least one message."""
		ids = list(dict.fromkeys(str(mid) for mid in match_ids))
		if not ids:
			return 0
		pool = await self._pool_or_none()
		if pool is None:
			active = {m.match_id for m in _MEMORY_STORE.messages.values()}
			return sum(1 for mid in ids if mid in active)
		async with pool.acquire() as conn:
			value = await conn.fetchval(
				"SELECT COUNT(DISTINCT match_id) FROM messages WHERE match_id = ANY($1::text[])",
				ids,
			)
		return int(value or 0)
