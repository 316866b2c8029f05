"""
Integration tests for token refresh and publishing quota routes.
"""

from httpx import AsyncClient

from infrastructure.config import get_settings

settings = get_settings()

PREFIX = settings.api_prefix


class TestRefreshToken:
    async def test_refresh(self, async_client: AsyncClient, graph_stub):
        response = await async_client.post(f"{PREFIX}/refresh-token", json={"access_token": "old"})

        assert response.status_code == 200
        body = response.json()
        assert body["access_token"] == "long-lived-token"
        assert body["expires_in"] == 5184000
        assert body["expires_at"] is not None

        request = graph_stub.calls("GET", "/oauth/access_token")[0]
        assert request.url.params["fb_exchange_token"] == "old"

    async def test_missing_token(self, async_client: AsyncClient):
        response = await async_client.post(f"{PREFIX}/refresh-token", json={})

        assert response.status_code == 400
        assert response.json()["missing"] == ["access_token"]

    async def test_expired_token(self, async_client: AsyncClient, graph_stub, graph_error_response):
        graph_stub.overrides[("GET", "oauth/access_token")] = graph_error_response(
            400, 190, "Session has expired"
        )

        response = await async_client.post(f"{PREFIX}/refresh-token", json={"access_token": "old"})

        assert response.status_code == 401
        assert response.json()["code"] == "token_expired"


class TestRateLimit:
    async def test_quota(self, async_client: AsyncClient):
        response = await async_client.get(
            f"{PREFIX}/rate-limit", params={"instagram_account_id": "123", "access_token": "tok"}
        )

        assert response.status_code == 200
        assert response.json() == {
            "quota_usage": 5,
            "quota_total": 50,
            "quota_remaining": 45,
            "usage_percentage": 10.0,
            "limit_reached": False,
        }

    async def test_missing_params(self, async_client: AsyncClient, graph_stub):
        response = await async_client.get(f"{PREFIX}/rate-limit", params={"access_token": "tok"})

        assert response.status_code == 400
        assert response.json()["missing"] == ["instagram_account_id"]
        assert graph_stub.requests == []

    async def test_endpoint_is_rate_limited(self, async_client: AsyncClient):
        params = {"instagram_account_id": "123", "access_token": "tok"}
        for _ in range(60):
            response = await async_client.get(f"{PREFIX}/rate-limit", params=params)
            assert response.status_code == 200

        response = await async_client.get(f"{PREFIX}/rate-limit", params=params)
        assert response.status_code == 429
