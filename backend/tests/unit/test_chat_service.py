from datetime import datetime, timedelta, timezone

import pytest

from conftest import auth

from app.domain.chat.models import InvitationStatus, Message, MessageType
from app.domain.chat.repo import MessageRepository
from app.domain.chat.service import ChatService
from app.domain.common.errors import (
    InvalidState,
    MatchNotActive,
    MatchNotFound,
    Unauthorized,
    ValidationFailed,
)
from app.domain.matching.models import SwipeAction
from app.domain.matching.service import MatchService
from app.domain.notifications import NotificationService
from app.infra import background


async def _matched(make_user, *, mutual=True):
    await make_user("alice")
    await make_user("bob")
    matches = MatchService()
    match, _ = await matches.record_action(auth("alice"), "bob", SwipeAction.LIKE)
    if mutual:
        match, _ = await matches.record_action(auth("bob"), "alice", SwipeAction.LIKE)
    return match


@pytest.mark.asyncio
async def test_send_on_pending_match_is_rejected(make_user):
    match = await _matched(make_user, mutual=False)
    with pytest.raises(MatchNotActive):
        await ChatService().send_message(auth("alice"), match.id, "hi")


@pytest.mark.asyncio
async def test_send_checks_existence_then_participation(make_user):
    match = await _matched(make_user)
    service = ChatService()
    with pytest.raises(MatchNotFound):
        await service.send_message(auth("alice"), "missing", "hi")
    with pytest.raises(Unauthorized):
        await service.send_message(auth("mallory"), match.id, "hi")
    with pytest.raises(ValidationFailed):
        await service.send_message(auth("alice"), match.id, "   ")


@pytest.mark.asyncio
async def test_send_marks_delivered_and_notifies_receiver(make_user):
    match = await _matched(make_user)
    result = await ChatService().send_message(auth("alice"), match.id, "  hola bob  ")
    message = result.message
    assert message.content == "hola bob"
    assert message.receiver_id == "bob"
    assert message.is_delivered
    assert not message.is_read
    assert result.warnings == ()

    await background.drain()
    kinds = [item.kind for item in await NotificationService().list_for_user("bob")]
    assert "new_message" in kinds


@pytest.mark.asyncio
async def test_delivery_failure_is_a_warning(make_user, monkeypatch):
    match = await _matched(make_user)
    repo = MessageRepository()

    async def broken(*args, **kwargs):
        raise RuntimeError("db hiccup")

    monkeypatch.setattr(repo, "mark_delivered", broken)
    result = await ChatService(repository=repo).send_message(auth("alice"), match.id, "still here")
    assert result.warnings == ("delivery_not_confirmed",)
    assert not result.message.is_delivered


@pytest.mark.asyncio
async def test_fetch_since_is_strictly_newer(make_user):
    match = await _matched(make_user)
    repo = MessageRepository()
    base = datetime(2025, 5, 1, 10, 0, tzinfo=timezone.utc)
    for index in range(3):
        await repo.create(
            Message(
                id=f"m{index}",
                match_id=match.id,
                sender_id="alice",
                receiver_id="bob",
                content=f"msg {index}",
                created_at=base + timedelta(seconds=index),
            )
        )
    service = ChatService(repository=repo)

    newer = await service.fetch(auth("alice"), match.id, since=base + timedelta(seconds=1))
    assert [m.id for m in newer] == ["m2"]
    page = await service.fetch(auth("alice"), match.id)
    assert [m.id for m in page] == ["m0", "m1", "m2"]
    assert await service.fetch(auth("alice"), match.id, since=base + timedelta(seconds=2)) == []

    with pytest.raises(Unauthorized):
        await service.fetch(auth("mallory"), match.id)


@pytest.mark.asyncio
async def test_page_size_keeps_most_recent(make_user):
    match = await _matched(make_user)
    repo = MessageRepository()
    base = datetime(2025, 5, 1, 10, 0, tzinfo=timezone.utc)
    for index in range(4):
        await repo.create(
            Message(id=f"m{index}", match_id=match.id, sender_id="bob", receiver_id="alice", content="x", created_at=base + timedelta(seconds=index))
        )
    page = await ChatService(repository=repo, page_size=2).fetch(auth("alice"), match.id)
    assert [m.id for m in page] == ["m2", "m3"]


@pytest.mark.asyncio
async def test_receiver_fetch_marks_messages_read_in_background(make_user):
    match = await _matched(make_user)
    service = ChatService()
    sent = (await service.send_message(auth("alice"), match.id, "hi")).message

    await service.fetch(auth("alice"), match.id)
    await background.drain()
    assert not (await MessageRepository().get(sent.id)).is_read

    await service.fetch(auth("bob"), match.id)
    await background.drain()
    stored = await MessageRepository().get(sent.id)
    assert stored.is_read
    assert stored.read_at is not None


@pytest.mark.asyncio
async def test_mark_read_ignores_foreign_ids(make_user):
    match = await _matched(make_user)
    service = ChatService()
    sent = (await service.send_message(auth("alice"), match.id, "hi")).message

    assert await service.mark_read(auth("alice"), [sent.id, "unknown"]) == []
    assert await service.unread_counts(auth("bob")) == {match.id: 1}
    assert await service.mark_read(auth("bob"), [sent.id]) == [sent.id]
    assert await service.mark_read(auth("bob"), [sent.id]) == []
    assert await service.unread_counts(auth("bob")) == {}


@pytest.mark.asyncio
async def test_mark_all_read(make_user):
    match = await _matched(make_user)
    service = ChatService()
    first = (await service.send_message(auth("alice"), match.id, "one")).message
    second = (await service.send_message(auth("alice"), match.id, "two")).message
    updated = await service.mark_all_read(auth("bob"), match.id)
    assert sorted(updated) == sorted([first.id, second.id])


@pytest.mark.asyncio
async def test_study_invitation_accept_flow(make_user):
    match = await _matched(make_user)
    service = ChatService()
    sent = await service.send_study_invitation(auth("alice"), match.id, subject="Cálculo", location="Biblioteca")
    invitation = sent.message
    assert invitation.message_type is MessageType.STUDY_INVITATION
    assert invitation.content == "📚 Study invitation: Cálculo"
    assert invitation.invitation_status is InvitationStatus.PENDING

    with pytest.raises(Unauthorized):
        await service.respond_to_invitation(auth("alice"), invitation.id, accept=True)

    outcome = await service.respond_to_invitation(auth("bob"), invitation.id, accept=True, note="nos vemos")
    assert outcome.invitation.invitation_status is InvitationStatus.ACCEPTED
    assert outcome.invitation.metadata["response_message"] == "nos vemos"
    assert outcome.announcement is not None
    assert outcome.announcement.content == "✅ Invitation accepted: nos vemos"
    assert outcome.warnings == ()

    with pytest.raises(InvalidState):
        await service.respond_to_invitation(auth("bob"), invitation.id, accept=False)


@pytest.mark.asyncio
async def test_invitation_answer_survives_failed_announcement(make_user, monkeypatch):
    match = await _matched(make_user)
    invitation = (await ChatService().send_study_invitation(auth("alice"), match.id, subject="Física")).message

    flaky = ChatService()

    async def broken_send(*args, **kwargs):
        raise RuntimeError("send failed")

    monkeypatch.setattr(flaky, "send_message", broken_send)
    outcome = await flaky.respond_to_invitation(auth("bob"), invitation.id, accept=False)
    assert outcome.announcement is None
    assert outcome.warnings == ("announcement_not_sent",)
    stored = await MessageRepository().get(invitation.id)
    assert stored.invitation_status is InvitationStatus.DECLINED

    retry = await ChatService().respond_to_invitation(auth("bob"), invitation.id, accept=False)
    assert retry.announcement is not None
    assert retry.announcement.content == "❌ Invitation declined"
    assert retry.warnings == ()


@pytest.mark.asyncio
async def test_responding_to_plain_message_is_rejected(make_user):
    match = await _matched(make_user)
    service = ChatService()
    sent = (await service.send_message(auth("alice"), match.id, "hi")).message
    with pytest.raises(ValidationFailed):
        await service.respond_to_invitation(auth("bob"), sent.id, accept=True)


@pytest.mark.asyncio
async def test_sent_message_round_trips_through_since(make_user):
    match = await _matched(make_user)
    service = ChatService()
    sent = (await service.send_message(auth("alice"), match.id, "hola")).message

    just_before = await service.fetch(auth("alice"), match.id, since=sent.created_at - timedelta(milliseconds=1))
    assert [m.id for m in just_before] == [sent.id]
    assert await service.fetch(auth("alice"), match.id, since=sent.created_at) == []
