"""Campus event endpoints."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from app.domain.events import schemas
from app.domain.events.models import EventType
from app.domain.events.service import EventService
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/events", tags=["events"])
_service = EventService()


@router.post("", response_model=schemas.EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
	payload: schemas.EventCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.EventResponse:
	event = await _service.create_event(auth_user, payload)
	return schemas.EventResponse.from_model(event, is_participating=True)


@router.get("", response_model=List[schemas.EventResponse])
async def list_events(
	campus: Optional[str] = None,
	event_type: Optional[EventType] = None,
	limit: int = Query(default=20, ge=1, le=100),
	offset: int = Query(default=0, ge=0),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[schemas.EventResponse]:
	events = await _service.list_events(
		campus=campus or auth_user.campus_id,
		event_type=event_type,
		limit=limit,
		offset=offset,
	)
	return [schemas.EventResponse.from_model(event) for event in events]


@router.get("/mine", response_model=List[schemas.EventResponse])
async def my_events(auth_user: AuthenticatedUser = Depends(get_current_user)) -> List[schemas.EventResponse]:
	events = await _service.my_events(auth_user)
	return [schemas.EventResponse.from_model(event, is_participating=True) for event in events]


@router.get("/{event_id}", response_model=schemas.EventResponse)
async def get_event(
	event_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.EventResponse:
	event, participating = await _service.get_event(auth_user, event_id)
	return schemas.EventResponse.from_model(event, is_participating=participating)


@router.post("/{event_id}/join", response_model=schemas.EventResponse)
async def join_event(
	event_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.EventResponse:
	event = await _service.join_event(auth_user, event_id)
	return schemas.EventResponse.from_model(event, is_participating=True)


@router.post("/{event_id}/leave", response_model=schemas.EventResponse)
async def leave_event(
	event_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.EventResponse:
	event = await _service.leave_event(auth_user, event_id)
	return schemas.EventResponse.from_model(event, is_participating=False)


@router.post("/{event_id}/cancel", response_model=schemas.EventResponse)
async def cancel_event(
	event_id: str,
	payload: Optional[schemas.EventCancelRequest] = Body(default=None),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.EventResponse:
	event = await _service.cancel_event(auth_user, event_id, reason=payload.reason if payload else None)
	return schemas.EventResponse.from_model(event, is_participating=True)
