"""Domain models for match-scoped messaging."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from app.infra.postgres import decode_json


class MessageType(str, Enum):
	TEXT = "text"
	IMAGE = "image"
	EMOJI = "emoji"
	STUDY_INVITATION = "study_invitation"


class InvitationStatus(str, Enum):
	PENDING = "pending"
	ACCEPTED = "accepted"
	DECLINED = "declined"


INVITATION_KIND = "study_invitation"
INVITATION_RESPONSE_KIND = "study_invitation_response"


@dataclass(frozen=True, slots=True)
class Message:
	id: str
	match_id: str
	sender_id: str
	receiver_id: str
	content: str
	created_at: datetime
	message_type: MessageType = MessageType.TEXT
	metadata: Dict[str, Any] = field(default_factory=dict)
	is_delivered: bool = False
	delivered_at: Optional[datetime] = None
	is_read: bool = False
	read_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None

	@property
	def invitation_status(self) -> Optional[InvitationStatus]:
		if self.message_type is not MessageType.STUDY_INVITATION:
			return None
		return InvitationStatus(self.metadata.get("status", InvitationStatus.PENDING.value))

	@classmethod
	def from_record(cls, record: Mapping[str, Any]) -> "Message":
		return cls(
			id=str(record["id"]),
			match_id=str(record["match_id"]),
			sender_id=str(record["sender_id"]),
			receiver_id=str(record["receiver_id"]),
			content=record["content"],
			created_at=record["created_at"],
			message_type=MessageType(record["message_type"]),
			metadata=decode_json(record["metadata"], {}),
			is_delivered=bool(record["is_delivered"]),
			delivered_at=record["delivered_at"],
			is_read=bool(record["is_read"]),
			read_at=record["read_at"],
			updated_at=record["updated_at"],
		)


@dataclass(slots=True)
class SendResult:
	message: Message
	warnings: tuple[str, ...] = ()


@dataclass(slots=True)
class InvitationOutcome:
	invitation: Message
	announcement: Optional[Message]
	warnings: tuple[str, ...] = ()
