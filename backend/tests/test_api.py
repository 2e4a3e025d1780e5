"""
HTTP surface: routing, bearer identity and error mapping, against the
in-memory database.
"""

from unittest.mock import AsyncMock, patch

import httpx
import pytest
import pytest_asyncio

from tabiplan.api.rate_limit import limiter
from tabiplan.core.security import create_access_token
from tabiplan.db.session import get_db_session
from tabiplan.main import app

from conftest import USER_ID

API = "/api/v1"


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_session
    was_enabled = limiter.enabled
    limiter.enabled = False
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    limiter.enabled = was_enabled
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {create_access_token(USER_ID)}"}


async def test_root_health(client):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "API active"


async def test_requests_without_token_are_rejected(client):
    response = await client.get(f"{API}/trips/")
    assert response.status_code == 401


async def test_invalid_token_is_rejected(client):
    response = await client.get(f"{API}/trips/", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_create_and_read_trip(client, auth_headers, trip_payload, spot_payload):
    payload = trip_payload([("2024-03-01", [spot_payload("a"), spot_payload("b"), spot_payload("c")])])

    response = await client.post(f"{API}/trips/", json=payload.model_dump(mode="json"), headers=auth_headers)

    assert response.status_code == 201
    body = response.json()
    plan = body["plans"][0]
    assert [ps["order"] for ps in plan["plan_spots"]] == [0, 1, 2]
    assert len(plan["transports"]) == 4
    assert response.headers["X-Request-ID"]

    detail = await client.get(f"{API}/trips/{body['id']}", headers=auth_headers)
    assert detail.status_code == 200
    assert detail.json()["title"] == payload.title

    count = await client.get(f"{API}/trips/count", headers=auth_headers)
    assert count.json()["count"] == 1


async def test_missing_trip_maps_to_404(client, auth_headers):
    response = await client.get(f"{API}/trips/12345", headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Trip 12345 not found"


async def test_malformed_itinerary_is_rejected(client, auth_headers, trip_payload, spot_payload):
    body = trip_payload([("2024-03-01", [spot_payload("a")])]).model_dump(mode="json")
    body["plans"][0]["spots"][0]["stay_start"] = "25:99"

    response = await client.post(f"{API}/trips/", json=body, headers=auth_headers)
    assert response.status_code == 422


async def test_wishlist_conflict_maps_to_400(client, auth_headers, wishlist_payload):
    body = wishlist_payload("s1").model_dump(mode="json")

    first = await client.post(f"{API}/wishlist/", json=body, headers=auth_headers)
    second = await client.post(f"{API}/wishlist/", json=body, headers=auth_headers)

    assert first.status_code == 201
    assert second.status_code == 400


async def test_wishlist_update_and_delete(client, auth_headers, wishlist_payload):
    created = await client.post(
        f"{API}/wishlist/", json=wishlist_payload("s1").model_dump(mode="json"), headers=auth_headers,
    )
    entry_id = created.json()["id"]

    updated = await client.put(
        f"{API}/wishlist/",
        json={"id": entry_id, "priority": 5, "visited": True, "visited_at": "2024-02-01T00:00:00Z"},
        headers=auth_headers,
    )
    assert updated.status_code == 200
    assert updated.json()["visited"] is True

    deleted = await client.delete(f"{API}/wishlist/{entry_id}", headers=auth_headers)
    assert deleted.status_code == 204

    missing = await client.delete(f"{API}/wishlist/{entry_id}", headers=auth_headers)
    assert missing.status_code == 404


async def test_spot_history_endpoints(client, auth_headers, trip_payload, spot_payload, wishlist_payload):
    await client.post(
        f"{API}/trips/",
        json=trip_payload([("2024-03-01", [spot_payload("spotB")])]).model_dump(mode="json"),
        headers=auth_headers,
    )
    await client.post(
        f"{API}/wishlist/",
        json=wishlist_payload("spotA", visited=True, visited_at="2024-02-01T00:00:00Z").model_dump(mode="json"),
        headers=auth_headers,
    )
    await client.post(
        f"{API}/wishlist/", json=wishlist_payload("spotC", priority=4).model_dump(mode="json"), headers=auth_headers,
    )

    visited = await client.get(f"{API}/spots/visited", headers=auth_headers)
    assert visited.status_code == 200
    assert [(r["spot_id"], r["origin"]) for r in visited.json()] == [("spotA", "wishlist"), ("spotB", "plan")]

    by_count = await client.get(
        f"{API}/spots/visited", params={"sort_by": "visitCount", "min_visit_count": 1}, headers=auth_headers,
    )
    assert by_count.status_code == 200
    assert len(by_count.json()) == 2

    unvisited = await client.get(f"{API}/spots/unvisited", params={"priority": 4}, headers=auth_headers)
    assert [e["spot_id"] for e in unvisited.json()] == ["spotC"]


async def test_invalid_sort_key_is_rejected(client, auth_headers):
    response = await client.get(f"{API}/spots/visited", params={"sort_by": "rating"}, headers=auth_headers)
    assert response.status_code == 422


async def test_detailed_health_reports_database_state(client):
    with patch("tabiplan.main.database_health_check", AsyncMock(return_value={"status": "healthy"})):
        response = await client.get("/health")
    assert response.json()["status"] == "healthy"

    with patch("tabiplan.main.database_health_check",
               AsyncMock(return_value={"status": "unhealthy", "error": "down"})):
        response = await client.get("/health")
    body = response.json()
    assert body["status"] == "degraded"
    assert body["components"]["database"] == "unhealthy"


async def test_database_health_endpoint_status_codes(client):
    with patch("tabiplan.api.database.database_health_check", AsyncMock(return_value={"status": "healthy"})):
        assert (await client.get(f"{API}/database/health")).status_code == 200

    with patch("tabiplan.api.database.database_health_check",
               AsyncMock(return_value={"status": "unhealthy", "error": "down"})):
        response = await client.get(f"{API}/database/health")
    assert response.status_code == 503
    assert response.json()["error"] == "down"
