"""Notification inbox endpoint."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.domain.notifications import Notification, NotificationService
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/notifications", tags=["notifications"])
_service = NotificationService()


class NotificationResponse(BaseModel):
	id: str
	kind: str
	title: str
	body: str
	link: Optional[str] = None
	read_at: Optional[datetime] = None
	created_at: datetime

	@classmethod
	def from_model(cls, notification: Notification) -> "NotificationResponse":
		return cls(
			id=notification.id,
			kind=notification.kind,
			title=notification.title,
			body=notification.body,
			link=notification.link,
			read_at=notification.read_at,
			created_at=notification.created_at,
		)


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
	limit: int = Query(default=50, ge=1, le=200),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[NotificationResponse]:
	items = await _service.list_for_user(str(auth_user.id), limit=limit)
	return [NotificationResponse.from_model(item) for item in items]
