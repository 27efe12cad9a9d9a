import asyncio

import pytest

from conftest import auth

from app.domain.common.errors import UserNotFound
from app.domain.identity.repo import UserRepository
from app.domain.identity.schemas import AcademicProfileUpdateRequest, PhotoUploadRequest
from app.domain.identity.service import IdentityService


class SlowReadRepository(UserRepository):
    """Reads yield to the loop first, like a database round trip."""

    async def get(self, user_id):
        await asyncio.sleep(0.01)
        return await super().get(user_id)


@pytest.mark.asyncio
async def test_verification_and_photo_upload_do_not_overwrite_each_other(make_user):
    await make_user("u", verified=False, with_photo=False)
    service = IdentityService(repository=SlowReadRepository())

    await asyncio.gather(
        service.verify_email("u"),
        service.add_photo(auth("u"), PhotoUploadRequest(mime="image/jpeg", bytes=1000)),
    )

    stored = await UserRepository().get("u")
    assert stored.email_verified
    assert len(stored.photos) == 1
    assert stored.profile_complete


@pytest.mark.asyncio
async def test_concurrent_photo_uploads_keep_one_main(make_user):
    await make_user("u", with_photo=False)
    service = IdentityService(repository=SlowReadRepository())
    upload = PhotoUploadRequest(mime="image/png", bytes=2048)

    await asyncio.gather(service.add_photo(auth("u"), upload), service.add_photo(auth("u"), upload))

    stored = await UserRepository().get("u")
    assert len(stored.photos) == 2
    assert [photo.is_main for photo in stored.photos] == [True, False]


@pytest.mark.asyncio
async def test_profile_edits_keep_the_verified_flag(make_user):
    await make_user("u", verified=False)
    service = IdentityService(repository=SlowReadRepository())

    await asyncio.gather(
        service.update_academic_profile(auth("u"), AcademicProfileUpdateRequest(semester=7)),
        service.verify_email("u"),
    )

    stored = await UserRepository().get("u")
    assert stored.email_verified
    assert stored.academic_profile.semester == 7


@pytest.mark.asyncio
async def test_updating_a_missing_user_raises():
    with pytest.raises(UserNotFound):
        await IdentityService().verify_email("ghost")
