"""Domain logic for user notifications.

Every ``notify_*`` call is best-effort: a failure to persist is logged and
counted, never raised to the caller.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

import asyncpg

from app.infra.postgres import PoolBackedRepository
from app.obs import metrics as obs_metrics

_LOG = logging.getLogger(__name__)

PREVIEW_LENGTH = 80


@dataclass
class Notification:
    id: str
    user_id: str
    title: str
    body: str
    kind: str  # e.g. "new_match", "event_cancelled"
    link: Optional[str]
    read_at: Optional[datetime]
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "body": self.body,
            "kind": self.kind,
            "link": self.link,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat(),
        }


class _InMemoryStore:
    """Fallback store used in tests when Postgres is unavailable."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self.items: Dict[str, List[Notification]] = {}

    def reset(self) -> None:
        self._lock = asyncio.Lock()
        self.items.clear()

    async def add(self, notification: Notification) -> Notification:
        async with self._lock:
            self.items.setdefault(notification.user_id, []).append(notification)
            return notification


_MEMORY_STORE = _InMemoryStore()


class NotificationRepository(PoolBackedRepository):
    async def create(
        self,
        *,
        user_id: str,
        title: str,
        body: str,
        kind: str,
        link: Optional[str] = None,
    ) -> Notification:
        notification = Notification(
            id=str(uuid.uuid4()),
            user_id=user_id,
            title=title,
            body=body,
            kind=kind,
            link=link,
            read_at=None,
            created_at=datetime.now(timezone.utc),
        )
        pool = await self._pool_or_none()
        if pool is None:
            return await _MEMORY_STORE.add(notification)
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO notifications (id, user_id, title, body, kind, link, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                RETURNING *
                """,
                notification.id,
                user_id,
                title,
                body,
                kind,
                link,
                notification.created_at,
            )
        return self._map_row(row)

    async def list_for_user(self, user_id: str, limit: int = 50) -> List[Notification]:
        pool = await self._pool_or_none()
        if pool is None:
            items = sorted(_MEMORY_STORE.items.get(user_id, []), key=lambda n: n.created_at, reverse=True)
            return items[:limit]
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM notifications
                WHERE user_id = $1
                ORDER BY created_at DESC
                LIMIT $2
                """,
                user_id,
                limit,
            )
        return [self._map_row(row) for row in rows]

    def _map_row(self, row: asyncpg.Record) -> Notification:
        return Notification(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            title=row["title"],
            body=row["body"],
            kind=row["kind"],
            link=row["link"],
            read_at=row["read_at"],
            created_at=row["created_at"],
        )


class NotificationService:
    def __init__(self, repository: Optional[NotificationRepository] = None) -> None:
        self._repo = repository or NotificationRepository()

    async def _deliver(
        self,
        user_id: str,
        *,
        kind: str,
        title: str,
        body: str,
        link: Optional[str] = None,
    ) -> Optional[Notification]:
        try:
            notification = await self._repo.create(user_id=user_id, title=title, body=body, kind=kind, link=link)
        except Exception:
            obs_metrics.inc_notification(kind, ok=False)
            _LOG.exception("notification delivery failed", extra={"kind": kind, "recipient_id": user_id})
            return None
        obs_metrics.inc_notification(kind)
        return notification

    async def notify_match(self, match_id: str, user_a: str, user_b: str) -> None:
        for user_id in (user_a, user_b):
            await self._deliver(
                user_id,
                kind="new_match",
                title="It's a match!",
                body="You both liked each other. Say hello.",
                link=f"/matches/{match_id}",
            )

    async def notify_message(self, receiver_id: str, sender_name: str, match_id: str, preview: str) -> None:
        text = preview if len(preview) <= PREVIEW_LENGTH else f"{preview[:PREVIEW_LENGTH]}…"
        await self._deliver(
            receiver_id,
            kind="new_message",
            title=f"New message from {sender_name}",
            body=text,
            link=f"/chat/matches/{match_id}",
        )

    async def notify_study_invitation(
        self,
        receiver_id: str,
        sender_name: str,
        match_id: str,
        subject: str,
        scheduled_time: Optional[datetime],
    ) -> None:
        when = f" on {scheduled_time.isoformat()}" if scheduled_time else ""
        await self._deliver(
            receiver_id,
            kind="study_invitation",
            title="Study invitation",
            body=f"{sender_name} invited you to study {subject}{when}",
            link=f"/chat/matches/{match_id}",
        )

    async def notify_group_join(self, creator_id: str, member_name: str, group_id: str, group_name: str) -> None:
        await self._deliver(
            creator_id,
            kind="study_group_join",
            title="New study group member",
            body=f"{member_name} joined {group_name}",
            link=f"/study-groups/{group_id}",
        )

    async def notify_group_cancelled(self, member_id: str, group_id: str, group_name: str) -> None:
        await self._deliver(
            member_id,
            kind="study_group_cancelled",
            title="Study group cancelled",
            body=f"{group_name} has been cancelled",
            link=f"/study-groups/{group_id}",
        )

    async def notify_event_join(self, creator_id: str, participant_name: str, event_id: str, event_title: str) -> None:
        await self._deliver(
            creator_id,
            kind="event_join",
            title="New participant",
            body=f"{participant_name} joined {event_title}",
            link=f"/events/{event_id}",
        )

    async def notify_event_cancelled(
        self,
        participant_id: str,
        event_id: str,
        event_title: str,
        reason: Optional[str],
    ) -> None:
        suffix = f": {reason}" if reason else ""
        await self._deliver(
            participant_id,
            kind="event_cancelled",
            title="Event cancelled",
            body=f"{event_title} has been cancelled{suffix}",
            link=f"/events/{event_id}",
        )

    async def list_for_user(self, user_id: str, *, limit: int = 50) -> List[Notification]:
        return await self._repo.list_for_user(user_id, limit=limit)
