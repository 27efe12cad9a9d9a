import pytest

from conftest import headers


async def _register(api_client, student_id="213456", code="ids", **overrides):
    payload = {
        "email": f"{student_id}@{code}.upchiapas.edu.mx",
        "password": "correct-horse-battery",
        "first_name": "Ana",
        "last_name": "López",
        "campus": "Suchiapa",
        "semester": 5,
        "interests": ["Python", "python", "Música"],
        "bio": "Me gusta programar",
    }
    payload.update(overrides)
    return await api_client.post("/auth/register", json=payload)


@pytest.mark.asyncio
async def test_register_derives_academic_profile(api_client):
    response = await _register(api_client)
    assert response.status_code == 201
    body = response.json()
    profile = body["academic_profile"]
    assert profile["student_id"] == "213456"
    assert profile["career"] == "Ingeniería en Desarrollo de Software"
    assert profile["interests"] == ["Python", "Música"]
    assert body["email_verified"] is False
    assert body["eligible_for_matching"] is False
    assert "email_verified" in body["missing_requirements"]


@pytest.mark.asyncio
async def test_register_rejects_duplicates_and_foreign_domains(api_client):
    assert (await _register(api_client)).status_code == 201
    duplicate = await _register(api_client)
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"] == "email_taken"

    foreign = await _register(api_client, student_id="999", code="ids", email="999@gmail.com")
    assert foreign.status_code == 400
    assert foreign.json()["detail"] == "email_not_institutional"
    assert "request_id" in foreign.json()


@pytest.mark.asyncio
async def test_login_issues_bearer_token(api_client):
    created = (await _register(api_client)).json()
    bad = await api_client.post("/auth/login", json={"email": created["email"], "password": "wrong-password"})
    assert bad.status_code == 403
    assert bad.json()["detail"] == "invalid_credentials"

    login = await api_client.post("/auth/login", json={"email": created["email"], "password": "correct-horse-battery"})
    assert login.status_code == 200
    token = login.json()["access_token"]
    me = await api_client.get("/users/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["id"] == created["id"]


@pytest.mark.asyncio
async def test_profile_becomes_eligible_after_photo_and_verification(api_client):
    user_id = (await _register(api_client)).json()["id"]
    me_headers = headers(user_id)

    photo = await api_client.post("/users/me/photos", json={"mime": "image/png", "bytes": 2048}, headers=me_headers)
    assert photo.status_code == 201
    assert photo.json()["photos"][0]["is_main"] is True
    assert photo.json()["profile_complete"] is True

    bad_photo = await api_client.post("/users/me/photos", json={"mime": "image/gif", "bytes": 10}, headers=me_headers)
    assert bad_photo.status_code == 400
    assert bad_photo.json()["detail"] == "mime_invalid"

    forbidden = await api_client.post(f"/users/{user_id}/verify-email", headers=me_headers)
    assert forbidden.status_code == 403
    verified = await api_client.post(f"/users/{user_id}/verify-email", headers=headers("staff", roles="admin"))
    assert verified.status_code == 200

    updated = await api_client.patch(
        "/users/me/academic-profile",
        json={"semester": 6, "interests": ["Ajedrez"]},
        headers=me_headers,
    )
    assert updated.status_code == 200
    body = updated.json()
    assert body["academic_profile"]["semester"] == 6
    assert body["eligible_for_matching"] is True
    assert body["missing_requirements"] == []


@pytest.mark.asyncio
async def test_requests_without_identity_are_rejected(api_client):
    response = await api_client.get("/users/me")
    assert response.status_code == 401
    assert response.json()["detail"] == "invalid_token"
