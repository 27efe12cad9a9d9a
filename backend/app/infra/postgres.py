"""AsyncPG pool management for the backend."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import asyncpg

from app.settings import settings

_LOG = logging.getLogger(__name__)

_pool: Optional[asyncpg.pool.Pool] = None


async def init_pool() -> asyncpg.pool.Pool:
	global _pool
	if _pool is None:
		_pool = await asyncpg.create_pool(
			dsn=settings.postgres_url,
			min_size=settings.postgres_min_pool_size,
			max_size=settings.postgres_max_pool_size,
			ssl="require" if settings.postgres_ssl else "disable",
		)
		_LOG.info("postgres pool ready", extra={"max_size": settings.postgres_max_pool_size})
	return _pool


def set_pool(pool: Optional[asyncpg.pool.Pool]) -> None:
	global _pool
	_pool = pool


async def get_pool() -> asyncpg.pool.Pool:
	if _pool is None:
		await init_pool()
	assert _pool is not None
	return _pool


async def close_pool() -> None:
	global _pool
	if _pool is not None:
		await _pool.close()
		_pool = None


class PoolBackedRepository:
	"""Repository base backed by asyncpg with an in-memory fallback.

	The pool is resolved once per repository instance; when Postgres cannot be
	reached the subclass serves requests from its process-local store.
	"""

	def __init__(self) -> None:
		self._pool_checked = False
		self._pool: Optional[asyncpg.pool.Pool] = None

	async def _pool_or_none(self) -> Optional[asyncpg.pool.Pool]:
		if self._pool_checked:
			return self._pool
		self._pool_checked = True
		try:
			pool = await get_pool()
		except AssertionError:
			pool = None
		except Exception:
			_LOG.warning("postgres unavailable; using in-memory store", exc_info=True)
			pool = None
		self._pool = pool
		return pool


def encode_json(value: Any) -> str:
	return json.dumps(value, separators=(",", ":"), default=str)


def decode_json(raw: Any, default: Any) -> Any:
	"""Decode a JSONB column that asyncpg hands back as text."""
	if raw is None:
		return default
	if isinstance(raw, (dict, list)):
		return raw
	try:
		return json.loads(raw)
	except (TypeError, ValueError):
		return default
