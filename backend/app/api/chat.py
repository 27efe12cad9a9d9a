"""FastAPI endpoints for match conversations."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from app.domain.chat import schemas
from app.domain.chat.longpoll import wait_for_messages
from app.domain.chat.models import MessageType
from app.domain.chat.service import ChatService
from app.domain.common.errors import ValidationFailed
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/chat", tags=["chat"])
_service = ChatService()


def _utc(value: Optional[datetime]) -> Optional[datetime]:
	# clients often send naive ISO timestamps; they are read as UTC
	if value is None or value.tzinfo is not None:
		return value
	return value.replace(tzinfo=timezone.utc)


@router.post(
	"/matches/{match_id}/messages",
	response_model=schemas.SendMessageResponse,
	status_code=status.HTTP_201_CREATED,
)
async def send_message(
	match_id: str,
	payload: schemas.SendMessageRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.SendMessageResponse:
	if payload.message_type is MessageType.STUDY_INVITATION:
		raise ValidationFailed("use_study_invitation_endpoint")
	result = await _service.send_message(auth_user, match_id, payload.content, message_type=payload.message_type)
	return schemas.SendMessageResponse.from_result(result)


@router.get("/matches/{match_id}/messages", response_model=schemas.MessageListResponse)
async def list_messages(
	match_id: str,
	since: Optional[datetime] = Query(default=None),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.MessageListResponse:
	messages = await _service.fetch(auth_user, match_id, since=_utc(since))
	return schemas.MessageListResponse.from_models(messages)


@router.get("/matches/{match_id}/poll", response_model=schemas.MessageListResponse)
async def poll_messages(
	match_id: str,
	request: Request,
	since: datetime = Query(...),
	timeout: Optional[float] = Query(default=None, ge=0),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.MessageListResponse:
	result = await wait_for_messages(
		_service,
		auth_user,
		match_id,
		since=_utc(since),
		timeout=timeout,
		is_disconnected=request.is_disconnected,
	)
	return schemas.MessageListResponse.from_models(result.items, timeout=result.timed_out)


@router.post("/matches/{match_id}/read", response_model=schemas.MarkReadResponse)
async def mark_all_read(
	match_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.MarkReadResponse:
	return schemas.MarkReadResponse(updated=await _service.mark_all_read(auth_user, match_id))


@router.post("/messages/read", response_model=schemas.MarkReadResponse)
async def mark_read(
	payload: schemas.MarkReadRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.MarkReadResponse:
	return schemas.MarkReadResponse(updated=await _service.mark_read(auth_user, payload.message_ids))


@router.get("/unread", response_model=schemas.UnreadCountsResponse)
async def unread_counts(auth_user: AuthenticatedUser = Depends(get_current_user)) -> schemas.UnreadCountsResponse:
	counts = await _service.unread_counts(auth_user)
	return schemas.UnreadCountsResponse(total=sum(counts.values()), by_match=counts)


@router.post(
	"/matches/{match_id}/study-invitations",
	response_model=schemas.SendMessageResponse,
	status_code=status.HTTP_201_CREATED,
)
async def send_study_invitation(
	match_id: str,
	payload: schemas.StudyInvitationRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.SendMessageResponse:
	result = await _service.send_study_invitation(
		auth_user,
		match_id,
		subject=payload.subject,
		description=payload.description,
		scheduled_time=_utc(payload.scheduled_time),
		location=payload.location,
	)
	return schemas.SendMessageResponse.from_result(result)


@router.post("/messages/{message_id}/invitation-response", response_model=schemas.InvitationOutcomeResponse)
async def respond_to_invitation(
	message_id: str,
	payload: schemas.InvitationResponseRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.InvitationOutcomeResponse:
	outcome = await _service.respond_to_invitation(auth_user, message_id, accept=payload.accept, note=payload.message)
	return schemas.InvitationOutcomeResponse.from_outcome(outcome)
