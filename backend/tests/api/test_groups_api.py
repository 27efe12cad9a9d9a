from datetime import datetime, timedelta, timezone

import pytest

from conftest import headers


@pytest.mark.asyncio
async def test_event_lifecycle(api_client, make_user):
    await make_user("host")
    await make_user("guest")
    start = datetime.now(timezone.utc) + timedelta(days=3)
    created = await api_client.post(
        "/events",
        json={
            "title": "Noche de juegos",
            "event_type": "social",
            "location": "Auditorio",
            "start_at": start.isoformat(),
            "end_at": (start + timedelta(hours=2)).isoformat(),
            "max_participants": 2,
        },
        headers=headers("host"),
    )
    assert created.status_code == 201
    event = created.json()
    assert event["current_participants"] == 1
    assert event["spots_left"] == 1

    listed = await api_client.get("/events", headers=headers("guest"))
    assert [e["id"] for e in listed.json()] == [event["id"]]

    joined = await api_client.post(f"/events/{event['id']}/join", headers=headers("guest"))
    assert joined.status_code == 200
    assert joined.json()["spots_left"] == 0

    full = await api_client.post(f"/events/{event['id']}/join", headers=headers("guest"))
    assert full.status_code == 409

    cancelled = await api_client.post(f"/events/{event['id']}/cancel", json={"reason": "clima"}, headers=headers("host"))
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"

    missing = await api_client.get("/events/does-not-exist", headers=headers("host"))
    assert missing.status_code == 404
    assert missing.json()["detail"] == "event_not_found"


@pytest.mark.asyncio
async def test_study_group_endpoints(api_client, make_user):
    await make_user("lead")
    await make_user("peer")
    created = await api_client.post(
        "/study-groups",
        json={"name": "Redes", "subject": "Redes de Computadoras", "schedule": {"day": "martes", "time": "18:00"}},
        headers=headers("lead"),
    )
    assert created.status_code == 201
    group_id = created.json()["id"]
    assert created.json()["schedule"] == {"day": "martes", "time": "18:00"}

    joined = await api_client.post(f"/study-groups/{group_id}/join", headers=headers("peer"))
    assert joined.json()["current_members"] == 2

    members = await api_client.get(f"/study-groups/{group_id}/members", headers=headers("peer"))
    assert [(m["user_id"], m["is_creator"]) for m in members.json()] == [("lead", True), ("peer", False)]

    search = await api_client.get("/study-groups/search", params={"q": "redes"}, headers=headers("peer"))
    assert [g["id"] for g in search.json()] == [group_id]

    popular = await api_client.get("/study-groups/subjects/popular", headers=headers("peer"))
    assert popular.json() == [{"subject": "Redes de Computadoras", "groups": 1}]

    left = await api_client.post(f"/study-groups/{group_id}/leave", headers=headers("peer"))
    assert left.json()["current_members"] == 1

    inbox = await api_client.get("/notifications", headers=headers("lead"))
    assert inbox.status_code == 200


@pytest.mark.asyncio
async def test_health_and_metrics(api_client):
    health = await api_client.get("/health")
    assert health.status_code == 200
    assert health.json() == {"status": "ok"}
    assert "X-Request-Id" in health.headers

    metrics = await api_client.get("/metrics")
    assert metrics.status_code == 200
    assert "matchup_" in metrics.text
