"""Match-scoped messaging: send, fetch, read receipts and study invitations."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import ulid

from app.domain.chat.models import (
	INVITATION_KIND,
	INVITATION_RESPONSE_KIND,
	InvitationOutcome,
	InvitationStatus,
	Message,
	MessageType,
	SendResult,
)
from app.domain.chat.repo import MessageRepository
from app.domain.common.errors import (
	InvalidState,
	MatchNotActive,
	MatchNotFound,
	MessageNotFound,
	Unauthorized,
	ValidationFailed,
)
from app.domain.identity.repo import UserRepository
from app.domain.matching.models import Match, MatchStatus
from app.domain.matching.repo import MatchRepository
from app.domain.notifications import NotificationService
from app.infra import background, rate_limit
from app.infra.auth import AuthenticatedUser
from app.obs import metrics as obs_metrics
from app.settings import settings

_LOG = logging.getLogger(__name__)

DELIVERY_WARNING = "delivery_not_confirmed"
ANNOUNCEMENT_WARNING = "announcement_not_sent"


def _now() -> datetime:
	return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
	return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class ChatService:
	def __init__(
		self,
		repository: Optional[MessageRepository] = None,
		matches: Optional[MatchRepository] = None,
		users: Optional[UserRepository] = None,
		notifications: Optional[NotificationService] = None,
		*,
		page_size: Optional[int] = None,
	) -> None:
		self._repo = repository or MessageRepository()
		self._matches = matches or MatchRepository()
		self._users = users or UserRepository()
		self._notifications = notifications or NotificationService()
		self._page_size = page_size or settings.chat_page_size

	async def _participant_match(self, match_id: str, user_id: str) -> Match:
		match = await self._matches.get(match_id)
		if match is None:
			raise MatchNotFound()
		if not match.is_participant(user_id):
			raise Unauthorized("not_a_participant")
		return match

	async def _display_name(self, user_id: str) -> str:
		user = await self._users.get(user_id)
		return user.first_name if user else "Someone"

	async def send_message(
		self,
		auth_user: AuthenticatedUser,
		match_id: str,
		content: str,
		*,
		message_type: MessageType = MessageType.TEXT,
		metadata: Optional[Dict[str, Any]] = None,
	) -> SendResult:
		sender_id = str(auth_user.id)
		match = await self._matches.get(match_id)
		if match is None:
			raise MatchNotFound()
		if match.status is not MatchStatus.MATCHED:
			raise MatchNotActive()
		receiver_id = match.counterpart(sender_id)
		if receiver_id is None:
			raise Unauthorized("not_a_participant")
		text = (content or "").strip()
		if not text:
			raise ValidationFailed("content_required")
		if len(text) > settings.chat_max_content_length:
			raise ValidationFailed("content_too_long")
		await rate_limit.enforce("message_send", sender_id, limit=settings.messages_per_minute)

		now = _now()
		message = await self._repo.create(
			Message(
				id=str(ulid.new()),
				match_id=match.id,
				sender_id=sender_id,
				receiver_id=receiver_id,
				content=text,
				created_at=now,
				message_type=message_type,
				metadata=dict(metadata or {}),
				updated_at=now,
			)
		)
		obs_metrics.inc_message_sent(message_type.value)

		warnings: List[str] = []
		try:
			delivered = await self._repo.mark_delivered(message.id, at=_now())
		except Exception:
			obs_metrics.inc_delivery_failure()
			_LOG.warning("delivered flag not recorded", extra={"message_id": message.id}, exc_info=True)
			warnings.append(DELIVERY_WARNING)
		else:
			message = delivered or message

		background.spawn(self._notify_receiver(message), name="notify_message")
		return SendResult(message=message, warnings=tuple(warnings))

	async def _notify_receiver(self, message: Message) -> None:
		sender_name = await self._display_name(message.sender_id)
		await self._notifications.notify_message(message.receiver_id, sender_name, message.match_id, message.content)

	async def fetch(
		self,
		auth_user: AuthenticatedUser,
		match_id: str,
		*,
		since: Optional[datetime] = None,
	) -> List[Message]:
		"""Messages of a match in chronological order.

		With ``since`` every message strictly newer than it is returned; without
		it, the most recent page. Unread messages addressed to the caller are
		marked read in the background.
		"""
		caller_id = str(auth_user.id)
		match = await self._participant_match(match_id, caller_id)
		if since is not None:
			messages = await self._repo.list_since(match.id, _as_utc(since))
		else:
			messages = await self._repo.list_recent(match.id, limit=self._page_size)
		unread = [m.id for m in messages if m.receiver_id == caller_id and not m.is_read]
		if unread:
			background.spawn(self._mark_read_with_retry(unread, caller_id), name="chat_mark_read")
		return messages

	async def _mark_read_with_retry(self, message_ids: List[str], reader_id: str) -> None:
		updated = await background.retry(
			lambda: self._repo.mark_read(message_ids, reader_id, at=_now()),
			attempts=settings.background_retry_attempts,
			name="chat_mark_read",
		)
		obs_metrics.inc_messages_read(len(updated))

	async def mark_read(self, auth_user: AuthenticatedUser, message_ids: Iterable[str]) -> List[str]:
		"""Mark messages read for the caller. Ids the caller did not receive are ignored."""
		updated = await self._repo.mark_read(message_ids, str(auth_user.id), at=_now())
		obs_metrics.inc_messages_read(len(updated))
		return updated

	async def mark_all_read(self, auth_user: AuthenticatedUser, match_id: str) -> List[str]:
		caller_id = str(auth_user.id)
		match = await self._participant_match(match_id, caller_id)
		unread = await self._repo.unread_ids(match.id, caller_id)
		return await self.mark_read(auth_user, unread)

	async def unread_counts(self, auth_user: AuthenticatedUser) -> Dict[str, int]:
		return await self._repo.unread_counts(str(auth_user.id))

	async def send_study_invitation(
		self,
		auth_user: AuthenticatedUser,
		match_id: str,
		*,
		subject: str,
		description: str = "",
		scheduled_time: Optional[datetime] = None,
		location: Optional[str] = None,
	) -> SendResult:
		subject = subject.strip()
		if not subject:
			raise ValidationFailed("subject_required")
		metadata = {
			"type": INVITATION_KIND,
			"subject": subject,
			"description": description.strip(),
			"scheduled_time": _as_utc(scheduled_time).isoformat() if scheduled_time else None,
			"location": location,
			"status": InvitationStatus.PENDING.value,
		}
		result = await self.send_message(
			auth_user,
			match_id,
			f"📚 Study invitation: {subject}",
			message_type=MessageType.STUDY_INVITATION,
			metadata=metadata,
		)
		background.spawn(self._notify_invitation(result.message, subject, scheduled_time), name="notify_study_invitation")
		return result

	async def _notify_invitation(self, message: Message, subject: str, scheduled_time: Optional[datetime]) -> None:
		sender_name = await self._display_name(message.sender_id)
		await self._notifications.notify_study_invitation(
			message.receiver_id,
			sender_name,
			message.match_id,
			subject,
			scheduled_time,
		)

	async def respond_to_invitation(
		self,
		auth_user: AuthenticatedUser,
		message_id: str,
		*,
		accept: bool,
		note: Optional[str] = None,
	) -> InvitationOutcome:
		"""Answer a study invitation, then announce the answer in the conversation.

		The two steps are independent: if the announcement cannot be sent the
		answer stays recorded and the outcome carries a warning. Calling again
		with the same answer sends only the missing announcement.
		"""
		caller_id = str(auth_user.id)
		invitation = await self._repo.get(message_id)
		if invitation is None:
			raise MessageNotFound()
		if invitation.receiver_id != caller_id:
			raise Unauthorized("not_invitee")
		if invitation.message_type is not MessageType.STUDY_INVITATION:
			raise ValidationFailed("not_a_study_invitation")

		desired = InvitationStatus.ACCEPTED if accept else InvitationStatus.DECLINED
		note = (note or "").strip() or None
		if invitation.invitation_status is InvitationStatus.PENDING:
			now = _now()
			metadata = {
				**invitation.metadata,
				"status": desired.value,
				"responded_at": now.isoformat(),
				"response_message": note,
			}
			answered = await self._repo.answer_invitation(invitation.id, metadata, at=now)
			if answered is None:
				# answered concurrently; re-read to decide below
				answered = await self._repo.get(invitation.id)
				if answered is None:
					raise MessageNotFound()
			invitation = answered
		if invitation.invitation_status is not desired:
			raise InvalidState("invitation_already_answered")

		announcement = await self._repo.find_invitation_response(invitation.id)
		warnings: List[str] = []
		if announcement is None:
			stored_note = invitation.metadata.get("response_message")
			headline = "✅ Invitation accepted" if desired is InvitationStatus.ACCEPTED else "❌ Invitation declined"
			try:
				result = await self.send_message(
					auth_user,
					invitation.match_id,
					f"{headline}: {stored_note}" if stored_note else headline,
					metadata={
						"type": INVITATION_RESPONSE_KIND,
						"original_invitation_id": invitation.id,
						"response": desired.value,
					},
				)
			except Exception:
				_LOG.warning("invitation announcement not sent", extra={"message_id": invitation.id}, exc_info=True)
				warnings.append(ANNOUNCEMENT_WARNING)
			else:
				announcement = result.message
				warnings.extend(result.warnings)
		return InvitationOutcome(invitation=invitation, announcement=announcement, warnings=tuple(warnings))
