import asyncio

import pytest

from conftest import auth

from app.domain.common.errors import GroupFull, InvalidState, NotEligible, Unauthorized, ValidationFailed
from app.domain.notifications import NotificationService
from app.domain.study_groups.models import StudyGroupStatus
from app.domain.study_groups.schemas import StudyGroupCreateRequest
from app.domain.study_groups.service import StudyGroupService
from app.infra import background


def _payload(**overrides) -> StudyGroupCreateRequest:
    data = {"name": "Cálculo nocturno", "subject": "Cálculo Diferencial", "description": "Repaso para el parcial"}
    data.update(overrides)
    return StudyGroupCreateRequest(**data)


@pytest.mark.asyncio
async def test_create_group_defaults_from_creator_profile(make_user):
    await make_user("lead", semester=4)
    service = StudyGroupService()
    group = await service.create_group(auth("lead"), _payload())
    assert group.current_members == 1
    assert group.max_members == 10
    assert group.campus == "Suchiapa"
    assert group.career == "Ingeniería en Desarrollo de Software"
    assert group.semester == 4
    fetched, is_member = await service.get_group(auth("lead"), group.id)
    assert is_member
    assert fetched.id == group.id


@pytest.mark.asyncio
async def test_concurrent_joins_respect_capacity(make_user):
    await make_user("lead")
    for user_id in ("s1", "s2", "s3"):
        await make_user(user_id)
    service = StudyGroupService()
    group = await service.create_group(auth("lead"), _payload(max_members=3))

    results = await asyncio.gather(
        *(service.join_group(auth(user_id), group.id) for user_id in ("s1", "s2", "s3")),
        return_exceptions=True,
    )
    assert sum(1 for r in results if isinstance(r, GroupFull)) == 1
    stored, _ = await service.get_group(auth("lead"), group.id)
    assert stored.current_members == 3


@pytest.mark.asyncio
async def test_admission_rules(make_user):
    await make_user("lead")
    await make_user("match")
    await make_user("other-career", career="Licenciatura en Turismo")
    service = StudyGroupService()
    group = await service.create_group(
        auth("lead"),
        _payload(requirements={"careers": ["Ingeniería en Desarrollo de Software"]}),
    )
    await service.join_group(auth("match"), group.id)
    with pytest.raises(NotEligible):
        await service.join_group(auth("other-career"), group.id)

    await background.drain()
    assert [n.kind for n in await NotificationService().list_for_user("lead")] == ["study_group_join"]


@pytest.mark.asyncio
async def test_leave_never_drops_below_creator(make_user):
    await make_user("lead")
    await make_user("member")
    service = StudyGroupService()
    group = await service.create_group(auth("lead"), _payload())
    with pytest.raises(InvalidState):
        await service.leave_group(auth("lead"), group.id)
    await service.join_group(auth("member"), group.id)
    left = await service.leave_group(auth("member"), group.id)
    assert left.current_members == 1
    with pytest.raises(InvalidState):
        await service.leave_group(auth("member"), group.id)


@pytest.mark.asyncio
async def test_private_group_members_are_hidden_from_outsiders(make_user):
    await make_user("lead")
    await make_user("member")
    await make_user("outsider")
    service = StudyGroupService()
    group = await service.create_group(auth("lead"), _payload(is_private=True))
    await service.join_group(auth("member"), group.id)

    _, members = await service.members(auth("member"), group.id)
    assert [user.id for user in members] == ["lead", "member"]
    with pytest.raises(Unauthorized):
        await service.members(auth("outsider"), group.id)
    assert await service.list_groups(campus="Suchiapa") == []


@pytest.mark.asyncio
async def test_search_and_popular_subjects(make_user):
    await make_user("lead")
    service = StudyGroupService()
    calc = await service.create_group(auth("lead"), _payload())
    await service.create_group(auth("lead"), _payload(name="Integrales", subject="Cálculo Diferencial"))
    await service.create_group(auth("lead"), _payload(name="Bases", subject="Bases de Datos", description=""))

    found = await service.search("parcial")
    assert calc.id in [g.id for g in found]
    assert [g.subject for g in await service.search("datos")] == ["Bases de Datos"]
    with pytest.raises(ValidationFailed):
        await service.search("   ")

    popular = await service.popular_subjects()
    assert (popular[0].subject, popular[0].groups) == ("Cálculo Diferencial", 2)


@pytest.mark.asyncio
async def test_cancel_group_notifies_members(make_user):
    await make_user("lead")
    await make_user("member")
    service = StudyGroupService()
    group = await service.create_group(auth("lead"), _payload())
    await service.join_group(auth("member"), group.id)

    with pytest.raises(Unauthorized):
        await service.cancel_group(auth("member"), group.id)
    cancelled = await service.cancel_group(auth("lead"), group.id)
    assert cancelled.status is StudyGroupStatus.CANCELLED
    with pytest.raises(InvalidState):
        await service.join_group(auth("member"), group.id)

    await background.drain()
    assert [n.kind for n in await NotificationService().list_for_user("member")] == ["study_group_cancelled"]
