"""
Route Details Backend: HTTP Endpoint Tests
============================================

What:  End-to-end tests over the FastAPI app with an in-memory database.
How:   httpx AsyncClient + ASGITransport; get_db_session is overridden in
       conftest so every request commits into the same SQLite connection.

What we test:
    ✅ full lifecycle: create → fetch → update → fetch → delete → 404
    ✅ list pagination, search, count and tag endpoints
    ✅ request-parsing errors become 400 envelopes
    ✅ request ID header and health check
"""

import re
from datetime import datetime

import pytest

from route_details.config import settings

ROUTE_ID_PATTERN = re.compile(r"^route-\d+-[0-9a-f]{8}$")


def parse_timestamp(value):
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


async def create(client, payload):
    response = await client.post("/routes", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestRouteLifecycle:

    @pytest.mark.asyncio
    async def test_create_fetch_update_delete(self, test_client, route_payload):
        response = await test_client.post("/routes", json=route_payload)
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["statusCode"] == 201
        assert body["message"] == "Route created successfully"
        assert body["errors"] is None
        created = body["data"]
        assert ROUTE_ID_PATTERN.match(created["routeId"])
        assert len(created["path"]) == 3

        fetched = await test_client.get(f"/routes/{created['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["data"] == created

        updated = await test_client.patch(f"/routes/{created['id']}", json={"travelMode": "WALKING"})
        assert updated.status_code == 200
        assert updated.json()["message"] == "Route updated successfully"

        after = (await test_client.get(f"/routes/{created['id']}")).json()["data"]
        assert after["travelMode"] == "WALKING"
        assert parse_timestamp(after["updatedAt"]) > parse_timestamp(created["updatedAt"])
        for field in ("name", "routeId", "origin", "destination", "waypoints", "path",
                      "distance", "duration", "userId", "createdAt"):
            assert after[field] == created[field]

        deleted = await test_client.delete(f"/routes/{created['id']}")
        assert deleted.status_code == 200
        assert deleted.json()["message"] == "Route deleted successfully"
        assert deleted.json()["data"]["id"] == created["id"]

        missing = await test_client.get(f"/routes/{created['id']}")
        assert missing.status_code == 404
        assert missing.json() == {
            "success": False,
            "statusCode": 404,
            "message": "Route not found",
            "data": None,
            "errors": f"No route found with ID: {created['id']}",
        }

    @pytest.mark.asyncio
    async def test_delete_twice_is_404(self, test_client, route_payload):
        created = await create(test_client, route_payload)

        await test_client.delete(f"/routes/{created['id']}")
        again = await test_client.delete(f"/routes/{created['id']}")

        assert again.status_code == 404

    @pytest.mark.asyncio
    async def test_patch_unknown_route_is_404(self, test_client):
        response = await test_client.patch("/routes/nope", json={"name": "X"})

        assert response.status_code == 404
        assert response.json()["message"] == "Route not found"

    @pytest.mark.asyncio
    async def test_create_invalid_payload_is_400(self, test_client, route_payload):
        route_payload["path"] = []

        response = await test_client.post("/routes", json=route_payload)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Validation failed"
        assert "path" in body["errors"]

    @pytest.mark.asyncio
    async def test_create_rejects_client_route_id(self, test_client, route_payload):
        route_payload["routeId"] = "route-1-abcdef12"

        response = await test_client.post("/routes", json=route_payload)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_malformed_json_is_400_envelope(self, test_client):
        response = await test_client.post(
            "/routes", content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Validation failed"


class TestListAndSearch:

    @pytest.mark.asyncio
    async def test_list_paginates_with_total(self, test_client, route_payload):
        for index in range(3):
            await create(test_client, {**route_payload, "name": f"Route {index}"})

        response = await test_client.get("/routes", params={"page": 1, "limit": 2})

        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data["routes"]) == 2
        assert data["total"] == 3
        assert response.json()["message"] == "Routes retrieved successfully"

    @pytest.mark.asyncio
    async def test_limit_defaults_to_configured_page_size(self, test_client, route_payload, monkeypatch):
        monkeypatch.setattr(settings, "default_page_size", 2)
        for index in range(3):
            await create(test_client, {**route_payload, "name": f"Route {index}"})

        listed = await test_client.get("/routes")
        searched = await test_client.get("/routes/search", params={"searchText": "route"})

        assert len(listed.json()["data"]["routes"]) == 2
        assert listed.json()["data"]["total"] == 3
        assert len(searched.json()["data"]["routes"]) == 2

    @pytest.mark.asyncio
    async def test_non_integer_page_is_400(self, test_client):
        response = await test_client.get("/routes", params={"page": "abc"})

        assert response.status_code == 400
        assert "page" in response.json()["errors"]

    @pytest.mark.asyncio
    async def test_zero_limit_is_400(self, test_client):
        response = await test_client.get("/routes", params={"limit": 0})

        assert response.status_code == 400
        assert response.json()["errors"] == "limit: must be greater than or equal to 1"

    @pytest.mark.asyncio
    async def test_search(self, test_client, route_payload):
        await create(test_client, route_payload)
        await create(
            test_client,
            {
                **route_payload,
                "name": "Office",
                "origin": {"name": "Pier", "lat": 1, "lng": 1},
                "destination": {"name": "Mall", "lat": 2, "lng": 2},
                "waypoints": [],
            },
        )

        response = await test_client.get("/routes/search", params={"searchText": "HOME"})

        data = response.json()["data"]
        assert response.status_code == 200
        assert data["total"] == 1
        assert data["routes"][0]["name"] == "Home to Work"

    @pytest.mark.asyncio
    async def test_search_without_text_matches_all(self, test_client, route_payload):
        await create(test_client, route_payload)

        response = await test_client.get("/routes/search")

        assert response.json()["data"]["total"] == 1


class TestCountAndTags:

    @pytest.mark.asyncio
    async def test_count(self, test_client, route_payload):
        await create(test_client, {**route_payload, "isFavorite": True})
        await create(test_client, {**route_payload, "userId": "other"})

        everything = await test_client.get("/routes/count")
        favorites = await test_client.get("/routes/count", params={"favorites": "true"})
        mine = await test_client.get("/routes/count", params={"userId": "user-42"})

        assert everything.json()["data"] == {"count": 2}
        assert favorites.json()["data"] == {"count": 1}
        assert mine.json()["data"] == {"count": 1}

    @pytest.mark.asyncio
    async def test_by_tags(self, test_client, route_payload):
        tagged = await create(test_client, {**route_payload, "tags": ["commute"]})
        await create(test_client, {**route_payload, "tags": ["scenic"]})

        repeated = await test_client.get("/routes/by-tags", params=[("tags", "commute"), ("tags", "none")])
        joined = await test_client.get("/routes/by-tags", params={"tags": "commute,scenic"})
        empty = await test_client.get("/routes/by-tags")

        assert [route["id"] for route in repeated.json()["data"]["routes"]] == [tagged["id"]]
        assert joined.json()["data"]["total"] == 2
        assert empty.json()["data"] == {"routes": [], "total": 0}

    @pytest.mark.asyncio
    async def test_patch_tags_and_favorite(self, test_client, route_payload):
        created = await create(test_client, route_payload)

        response = await test_client.patch(
            f"/routes/{created['id']}", json={"tags": ["weekend"], "isFavorite": True}
        )

        data = response.json()["data"]
        assert data["tags"] == ["weekend"]
        assert data["isFavorite"] is True


class TestCrossCutting:

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, test_client):
        response = await test_client.get("/routes", headers={"X-Request-ID": "abc12345"})

        assert response.headers["X-Request-ID"] == "abc12345"

    @pytest.mark.asyncio
    async def test_request_id_is_generated(self, test_client):
        response = await test_client.get("/routes")

        assert len(response.headers["X-Request-ID"]) == 8

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["message_transport"] == "disabled"
