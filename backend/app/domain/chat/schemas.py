"""Pydantic schemas for the chat API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.settings import settings

from .models import InvitationOutcome, Message, MessageType, SendResult


class SendMessageRequest(BaseModel):
	content: str = Field(..., min_length=1, max_length=settings.chat_max_content_length)
	message_type: MessageType = MessageType.TEXT


class StudyInvitationRequest(BaseModel):
	subject: str = Field(..., min_length=1, max_length=120)
	description: str = Field(default="", max_length=500)
	scheduled_time: Optional[datetime] = None
	location: Optional[str] = Field(default=None, max_length=200)


class InvitationResponseRequest(BaseModel):
	accept: bool
	message: Optional[str] = Field(default=None, max_length=300)


class MarkReadRequest(BaseModel):
	message_ids: List[str] = Field(..., min_length=1, max_length=200)


class MessageResponse(BaseModel):
	id: str
	match_id: str
	sender_id: str
	receiver_id: str
	content: str
	message_type: MessageType
	metadata: Dict[str, Any]
	is_delivered: bool
	delivered_at: Optional[datetime] = None
	is_read: bool
	read_at: Optional[datetime] = None
	created_at: datetime

	@classmethod
	def from_model(cls, message: Message) -> "MessageResponse":
		return cls(
			id=message.id,
			match_id=message.match_id,
			sender_id=message.sender_id,
			receiver_id=message.receiver_id,
			content=message.content,
			message_type=message.message_type,
			metadata=dict(message.metadata),
			is_delivered=message.is_delivered,
			delivered_at=message.delivered_at,
			is_read=message.is_read,
			read_at=message.read_at,
			created_at=message.created_at,
		)


class SendMessageResponse(BaseModel):
	message: MessageResponse
	warnings: List[str] = Field(default_factory=list)

	@classmethod
	def from_result(cls, result: SendResult) -> "SendMessageResponse":
		return cls(message=MessageResponse.from_model(result.message), warnings=list(result.warnings))


class MessageListResponse(BaseModel):
	items: List[MessageResponse]
	timeout: bool = False

	@classmethod
	def from_models(cls, messages: List[Message], *, timeout: bool = False) -> "MessageListResponse":
		return cls(items=[MessageResponse.from_model(m) for m in messages], timeout=timeout)


class MarkReadResponse(BaseModel):
	updated: List[str]


class UnreadCountsResponse(BaseModel):
	total: int
	by_match: Dict[str, int]


class InvitationOutcomeResponse(BaseModel):
	invitation: MessageResponse
	announcement: Optional[MessageResponse] = None
	warnings: List[str] = Field(default_factory=list)

	@classmethod
	def from_outcome(cls, outcome: InvitationOutcome) -> "InvitationOutcomeResponse":
		return cls(
			invitation=MessageResponse.from_model(outcome.invitation),
			announcement=MessageResponse.from_model(outcome.announcement) if outcome.announcement else None,
			warnings=list(outcome.warnings),
		)
