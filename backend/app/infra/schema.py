"""Idempotent table creation run at startup."""

from __future__ import annotations

import logging

import asyncpg

_LOG = logging.getLogger(__name__)

_STATEMENTS = (
	"""
	CREATE TABLE IF NOT EXISTS users (
		id TEXT PRIMARY KEY,
		email TEXT NOT NULL UNIQUE,
		first_name TEXT NOT NULL,
		last_name TEXT NOT NULL,
		password_hash TEXT NOT NULL,
		bio TEXT NOT NULL DEFAULT '',
		date_of_birth DATE,
		photos JSONB NOT NULL DEFAULT '[]'::jsonb,
		email_verified BOOLEAN NOT NULL DEFAULT FALSE,
		profile_complete BOOLEAN NOT NULL DEFAULT FALSE,
		is_active BOOLEAN NOT NULL DEFAULT TRUE,
		created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
		updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS academic_profiles (
		user_id TEXT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
		student_id TEXT UNIQUE,
		career TEXT NOT NULL,
		campus TEXT NOT NULL,
		semester INTEGER NOT NULL CHECK (semester BETWEEN 1 AND 12),
		interests JSONB NOT NULL DEFAULT '[]'::jsonb,
		university TEXT NOT NULL
	)
	""",
	"CREATE INDEX IF NOT EXISTS idx_academic_profiles_campus ON academic_profiles (campus)",
	"""
	CREATE TABLE IF NOT EXISTS matches (
		id TEXT PRIMARY KEY,
		user_a TEXT NOT NULL REFERENCES users(id),
		user_b TEXT NOT NULL REFERENCES users(id),
		status TEXT NOT NULL DEFAULT 'pending',
		compatibility INTEGER NOT NULL CHECK (compatibility BETWEEN 0 AND 100),
		action_a TEXT,
		action_b TEXT,
		matched_at TIMESTAMPTZ,
		last_interaction TIMESTAMPTZ,
		created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
		updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
		UNIQUE (user_a, user_b),
		CHECK (user_a < user_b)
	)
	""",
	"CREATE INDEX IF NOT EXISTS idx_matches_user_a ON matches (user_a, status)",
	"CREATE INDEX IF NOT EXISTS idx_matches_user_b ON matches (user_b, status)",
	"""
	CREATE TABLE IF NOT EXISTS messages (
		id TEXT PRIMARY KEY,
		match_id TEXT NOT NULL REFERENCES matches(id),
		sender_id TEXT NOT NULL,
		receiver_id TEXT NOT NULL,
		content TEXT NOT NULL,
		message_type TEXT NOT NULL DEFAULT 'text',
		metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
		is_delivered BOOLEAN NOT NULL DEFAULT FALSE,
		delivered_at TIMESTAMPTZ,
		is_read BOOLEAN NOT NULL DEFAULT FALSE,
		read_at TIMESTAMPTZ,
		created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
		updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
	)
	""",
	"CREATE INDEX IF NOT EXISTS idx_messages_match_created ON messages (match_id, created_at, id)",
	"CREATE INDEX IF NOT EXISTS idx_messages_unread ON messages (receiver_id) WHERE is_read = FALSE",
	"""
	CREATE TABLE IF NOT EXISTS events (
		id TEXT PRIMARY KEY,
		creator_id TEXT NOT NULL REFERENCES users(id),
		title TEXT NOT NULL,
		description TEXT NOT NULL DEFAULT '',
		event_type TEXT NOT NULL,
		location TEXT NOT NULL,
		campus TEXT NOT NULL,
		start_at TIMESTAMPTZ NOT NULL,
		end_at TIMESTAMPTZ NOT NULL,
		max_participants INTEGER,
		current_participants INTEGER NOT NULL DEFAULT 0,
		is_public BOOLEAN NOT NULL DEFAULT TRUE,
		requirements JSONB NOT NULL DEFAULT '{}'::jsonb,
		tags JSONB NOT NULL DEFAULT '[]'::jsonb,
		status TEXT NOT NULL DEFAULT 'active',
		cancel_reason TEXT,
		image_url TEXT,
		created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
		updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
		CHECK (max_participants IS NULL OR current_participants <= max_participants)
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS event_participants (
		event_id TEXT NOT NULL REFERENCES events(id),
		user_id TEXT NOT NULL REFERENCES users(id),
		joined_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
		PRIMARY KEY (event_id, user_id)
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS study_groups (
		id TEXT PRIMARY KEY,
		creator_id TEXT NOT NULL REFERENCES users(id),
		name TEXT NOT NULL,
		description TEXT NOT NULL DEFAULT '',
		subject TEXT NOT NULL,
		campus TEXT NOT NULL,
		career TEXT,
		semester INTEGER,
		max_members INTEGER NOT NULL DEFAULT 10,
		current_members INTEGER NOT NULL DEFAULT 1,
		schedule JSONB NOT NULL DEFAULT '{}'::jsonb,
		is_private BOOLEAN NOT NULL DEFAULT FALSE,
		requirements JSONB NOT NULL DEFAULT '{}'::jsonb,
		status TEXT NOT NULL DEFAULT 'active',
		created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
		updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
		CHECK (current_members BETWEEN 1 AND max_members)
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS study_group_members (
		group_id TEXT NOT NULL REFERENCES study_groups(id),
		user_id TEXT NOT NULL REFERENCES users(id),
		joined_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
		PRIMARY KEY (group_id, user_id)
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS notifications (
		id TEXT PRIMARY KEY,
		user_id TEXT NOT NULL,
		kind TEXT NOT NULL,
		title TEXT NOT NULL,
		body TEXT NOT NULL,
		link TEXT,
		read_at TIMESTAMPTZ,
		created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
	)
	""",
	"CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications (user_id, created_at DESC)",
)


async def ensure_schema(pool: asyncpg.Pool) -> None:
	async with pool.acquire() as conn:
		async with conn.transaction():
			for statement in _STATEMENTS:
				await conn.execute(statement)
	_LOG.info("schema ensured", extra={"statements": len(_STATEMENTS)})
