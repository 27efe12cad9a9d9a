import sys
from pathlib import Path
from typing import Iterable, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from app.domain.chat import repo as chat_repo
from app.domain.events import repo as events_repo
from app.domain.identity import repo as identity_repo
from app.domain.identity.models import AcademicProfile, PhotoDescriptor, User
from app.domain.matching import repo as matching_repo
from app.domain.notifications import service as notifications_service
from app.domain.study_groups import repo as study_groups_repo
from app.infra import background, postgres
from app.infra.auth import AuthenticatedUser
from app.main import app
from app.settings import settings

_STORES = (
    identity_repo._MEMORY_STORE,
    matching_repo._MEMORY_STORE,
    chat_repo._MEMORY_STORE,
    events_repo._MEMORY_STORE,
    study_groups_repo._MEMORY_STORE,
    notifications_service._MEMORY_STORE,
)


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
    from app.infra.redis import redis_client, set_redis_client
    original = redis_client._client
    client = FakeRedis(decode_responses=True)
    set_redis_client(client)
    try:
        yield client
    finally:
        set_redis_client(original)
        await client.flushall()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
    async def _noop():
        return None

    monkeypatch.setattr(postgres, "init_pool", _noop)
    monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest_asyncio.fixture(autouse=True)
async def memory_stores():
    for store in _STORES:
        store.reset()
    yield
    await background.drain(timeout=2.0)
    for store in _STORES:
        store.reset()


@pytest.fixture(autouse=True)
def force_test_settings():
    """Header authentication (X-User-Id / X-Campus-Id) is only accepted in dev mode."""
    original_env = settings.environment
    settings.environment = "dev"
    try:
        yield
    finally:
        settings.environment = original_env


def build_user(
    user_id: str,
    *,
    career: str = "Ingeniería en Desarrollo de Software",
    campus: str = "Suchiapa",
    semester: int = 5,
    interests: Iterable[str] = ("python", "music"),
    verified: bool = True,
    with_photo: bool = True,
    first_name: Optional[str] = None,
) -> User:
    profile = AcademicProfile(
        user_id=user_id,
        career=career,
        campus=campus,
        semester=semester,
        interests=tuple(interests),
        student_id=f"S-{user_id}",
    )
    photos = (PhotoDescriptor(photo_id=f"p-{user_id}", url=f"https://cdn.test/{user_id}.jpg", storage_key=f"{user_id}.jpg", is_main=True),) if with_photo else ()
    return User(
        id=user_id,
        email=f"{user_id}@ids.upchiapas.edu.mx",
        first_name=first_name or user_id.capitalize(),
        last_name="Test",
        bio="Hola",
        photos=photos,
        academic_profile=profile,
        email_verified=verified,
        profile_complete=with_photo,
    )


@pytest.fixture
def make_user():
    async def _make(user_id: str, **kwargs) -> User:
        return await identity_repo.UserRepository().create(build_user(user_id, **kwargs))

    return _make


def auth(user_id: str, campus: Optional[str] = "Suchiapa") -> AuthenticatedUser:
    return AuthenticatedUser(id=user_id, campus_id=campus)


def headers(user_id: str, campus: str = "Suchiapa", roles: str = "") -> dict:
    values = {"X-User-Id": user_id, "X-Campus-Id": campus}
    if roles:
        values["X-User-Roles"] = roles
    return values


@pytest_asyncio.fixture
async def api_client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
