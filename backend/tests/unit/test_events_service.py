import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from conftest import auth

from app.domain.common.errors import Conflict, GroupFull, InvalidState, NotEligible, Unauthorized, ValidationFailed
from app.domain.events.models import EventStatus, EventType
from app.domain.events.schemas import EventCreateRequest
from app.domain.events.service import EventService
from app.domain.notifications import NotificationService
from app.infra import background


def _payload(**overrides) -> EventCreateRequest:
    start = datetime.now(timezone.utc) + timedelta(days=2)
    data = {
        "title": "Torneo de ajedrez",
        "event_type": EventType.SPORTS,
        "location": "Cafetería",
        "start_at": start,
        "end_at": start + timedelta(hours=3),
    }
    data.update(overrides)
    return EventCreateRequest(**data)


@pytest.mark.asyncio
async def test_create_event_adds_creator_as_participant(make_user):
    await make_user("host")
    service = EventService()
    event = await service.create_event(auth("host"), _payload())
    assert event.current_participants == 1
    assert event.campus == "Suchiapa"
    assert event.rules.campus == "Suchiapa"
    fetched, participating = await service.get_event(auth("host"), event.id)
    assert participating
    assert fetched.id == event.id
    assert [e.id for e in await service.my_events(auth("host"))] == [event.id]


@pytest.mark.asyncio
async def test_create_event_validates_dates(make_user):
    await make_user("host")
    service = EventService()
    past = datetime.now(timezone.utc) - timedelta(hours=1)
    with pytest.raises(ValidationFailed):
        await service.create_event(auth("host"), _payload(start_at=past, end_at=past + timedelta(hours=2)))
    start = datetime.now(timezone.utc) + timedelta(days=1)
    with pytest.raises(ValidationFailed):
        await service.create_event(auth("host"), _payload(start_at=start, end_at=start))


@pytest.mark.asyncio
async def test_concurrent_joins_never_exceed_capacity(make_user):
    await make_user("host")
    for user_id in ("p1", "p2", "p3"):
        await make_user(user_id)
    service = EventService()
    event = await service.create_event(auth("host"), _payload(max_participants=3))

    results = await asyncio.gather(
        *(service.join_event(auth(user_id), event.id) for user_id in ("p1", "p2", "p3")),
        return_exceptions=True,
    )
    joined = [r for r in results if not isinstance(r, Exception)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(joined) == 2
    assert len(failures) == 1
    assert isinstance(failures[0], GroupFull)
    stored, _ = await service.get_event(auth("host"), event.id)
    assert stored.current_participants == 3
    assert stored.spots_left == 0


@pytest.mark.asyncio
async def test_join_rules(make_user):
    await make_user("host")
    await make_user("guest")
    await make_user("freshman", semester=1)
    await make_user("visitor", campus="Tuxtla")
    service = EventService()
    event = await service.create_event(auth("host"), _payload(requirements={"min_semester": 3}))

    await service.join_event(auth("guest"), event.id)
    with pytest.raises(Conflict):
        await service.join_event(auth("guest"), event.id)
    with pytest.raises(NotEligible):
        await service.join_event(auth("freshman"), event.id)
    with pytest.raises(NotEligible):
        await service.join_event(auth("visitor"), event.id)

    await background.drain()
    kinds = [n.kind for n in await NotificationService().list_for_user("host")]
    assert kinds == ["event_join"]


@pytest.mark.asyncio
async def test_leave_event(make_user):
    await make_user("host")
    await make_user("guest")
    service = EventService()
    event = await service.create_event(auth("host"), _payload())
    with pytest.raises(InvalidState):
        await service.leave_event(auth("host"), event.id)
    with pytest.raises(InvalidState):
        await service.leave_event(auth("guest"), event.id)
    await service.join_event(auth("guest"), event.id)
    left = await service.leave_event(auth("guest"), event.id)
    assert left.current_participants == 1


@pytest.mark.asyncio
async def test_cancel_event_notifies_participants(make_user):
    await make_user("host")
    await make_user("guest")
    service = EventService()
    event = await service.create_event(auth("host"), _payload())
    await service.join_event(auth("guest"), event.id)

    with pytest.raises(Unauthorized):
        await service.cancel_event(auth("guest"), event.id)
    cancelled = await service.cancel_event(auth("host"), event.id, reason="lluvia")
    assert cancelled.status is EventStatus.CANCELLED
    assert cancelled.cancel_reason == "lluvia"
    again = await service.cancel_event(auth("host"), event.id)
    assert again.status is EventStatus.CANCELLED

    with pytest.raises(InvalidState):
        await service.join_event(auth("guest"), event.id)
    assert await service.list_events(campus="Suchiapa") == []

    await background.drain()
    notes = await NotificationService().list_for_user("guest")
    assert [n.kind for n in notes] == ["event_cancelled"]
    assert "lluvia" in notes[0].body


@pytest.mark.asyncio
async def test_list_events_filters_by_campus_and_type(make_user):
    await make_user("host")
    await make_user("other", campus="Tuxtla")
    service = EventService()
    sports = await service.create_event(auth("host"), _payload())
    await service.create_event(auth("host"), _payload(event_type=EventType.ACADEMIC))
    await service.create_event(auth("other"), _payload())

    found = await service.list_events(campus="Suchiapa", event_type=EventType.SPORTS)
    assert [e.id for e in found] == [sports.id]
    assert len(await service.list_events()) == 3
