import time

from fastapi.testclient import TestClient

from conftest import SETTLE


def create_link(client: TestClient, short_code: str = "abc123", **overrides) -> dict:
    payload = {"short_code": short_code, "original_url": "https://www.github.com/"}
    payload.update(overrides)
    response = client.post("/api/v1/links/", json=payload)
    assert response.status_code == 201
    return response.json()


class TestLinkAPI:
    """Test the HTTP surface over the link data service"""

    def test_root_and_health(self, client: TestClient):
        assert client.get("/").status_code == 200
        assert client.get("/health").json()["status"] == "healthy"

    def test_create_link(self, client: TestClient):
        data = create_link(client, user_id="u1")

        assert data["short_code"] == "abc123"
        assert data["original_url"] == "https://www.github.com/"
        assert data["short_url"].endswith("/abc123")
        assert data["visits"] == 0
        assert data["user_id"] == "u1"

    def test_create_duplicate_code(self, client: TestClient):
        create_link(client)

        response = client.post("/api/v1/links/", json={"short_code": "abc123", "original_url": "https://x.org/"})
        assert response.status_code == 400

    def test_create_with_invalid_url(self, client: TestClient):
        response = client.post("/api/v1/links/", json={"short_code": "abc123", "original_url": "not a url"})
        assert response.status_code == 422

    def test_get_link(self, client: TestClient):
        create_link(client)

        response = client.get("/api/v1/links/abc123")
        assert response.status_code == 200
        assert response.json()["original_url"] == "https://www.github.com/"

    def test_get_nonexistent_link(self, client: TestClient):
        response = client.get("/api/v1/links/nonexistent")
        assert response.status_code == 404

    def test_redirect(self, client: TestClient):
        create_link(client)

        response = client.get("/abc123", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "https://www.github.com/"

    def test_redirect_nonexistent_link(self, client: TestClient):
        response = client.get("/nonexistent", follow_redirects=False)
        assert response.status_code == 404

    def test_redirect_expired_link(self, client: TestClient):
        create_link(client, expires_at="2020-01-01T00:00:00Z")

        response = client.get("/abc123", follow_redirects=False)
        assert response.status_code == 410

    def test_visits_show_up_in_stats(self, client: TestClient):
        create_link(client)

        client.get("/abc123", follow_redirects=False, headers={"referer": "https://twitter.com"})
        client.get("/abc123", follow_redirects=False)
        time.sleep(SETTLE)  # write-behind commit

        response = client.get("/api/v1/links/abc123/stats")
        assert response.status_code == 200

        data = response.json()
        assert data["total_visits"] == 2
        assert data["visits_today"] == 2
        assert [v["referrer"] for v in data["visits_history"]] == ["https://twitter.com", "Direct"]

    def test_stats_for_nonexistent_link(self, client: TestClient):
        response = client.get("/api/v1/links/nonexistent/stats")
        assert response.status_code == 404

    def test_update_link(self, client: TestClient):
        created = create_link(client)
        client.get("/api/v1/links/abc123")

        response = client.patch(f"/api/v1/links/{created['id']}", json={"original_url": "https://python.org/"})
        assert response.status_code == 204

        assert client.get("/api/v1/links/abc123").json()["original_url"] == "https://python.org/"

    def test_update_nonexistent_link(self, client: TestClient):
        response = client.patch("/api/v1/links/nonexistent", json={"original_url": "https://python.org/"})
        assert response.status_code == 404

    def test_delete_link(self, client: TestClient):
        created = create_link(client, user_id="u1")
        client.get("/api/v1/links/abc123")

        response = client.delete(f"/api/v1/links/{created['id']}", params={"short_code": "abc123", "user_id": "u1"})
        assert response.status_code == 204

        assert client.get("/api/v1/links/abc123").status_code == 404
        assert client.get("/api/v1/users/u1/links").json() == []

    def test_delete_nonexistent_link(self, client: TestClient):
        response = client.delete("/api/v1/links/nonexistent", params={"short_code": "abc123"})
        assert response.status_code == 404


class TestUserAndCacheAPI:
    """Test owner listings and cache maintenance endpoints"""

    def test_user_links(self, client: TestClient):
        create_link(client, "first", user_id="u1")
        create_link(client, "second", user_id="u1")

        response = client.get("/api/v1/users/u1/links")
        assert response.status_code == 200
        assert [link["short_code"] for link in response.json()] == ["second", "first"]

    def test_warmup(self, client: TestClient):
        create_link(client, "first", user_id="u1")

        response = client.post("/api/v1/users/u1/warmup")
        assert response.json() == {"user_id": "u1", "cached": 1}

    def test_cache_stats(self, client: TestClient):
        response = client.get("/api/v1/cache/stats")
        assert response.status_code == 200

        data = response.json()
        assert data["cache"]["available"] is True
        assert data["pending_batches"] == 0

    def test_invalidate_cached_link(self, client: TestClient):
        create_link(client)
        client.get("/api/v1/links/abc123")

        response = client.delete("/api/v1/cache/links/abc123")
        assert response.status_code == 204

        stats = client.get("/api/v1/cache/stats").json()
        assert stats["cache"]["backend"]["keys"] == 0
