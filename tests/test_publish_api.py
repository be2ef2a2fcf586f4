"""
Tests for the /publish endpoint and health probes.
"""
import pytest
from httpx import ASGITransport, AsyncClient

from apppublisher.api.deps import get_environment_router, get_publish_service
from apppublisher.api.main import app, create_app
from apppublisher.core.config import CreationPolicy, Settings
from apppublisher.services.environment_router import EnvironmentRouter

from conftest import read_app


class TestPublishEndpoint:
    """Successful publishes."""

    async def test_create_returns_created_at(self, client, full_descriptor, datastore_urls):
        response = await client.post("/publish", json=full_descriptor)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["action"] == "created"
        assert data["environment"] == "staging"
        assert data["appId"] == "a1"
        assert data["createdAt"] == data["timestamp"]
        assert "updatedAt" not in data

        assert (await read_app(datastore_urls["staging"], "a1"))["app_name"] == "svc"

    async def test_update_returns_updated_at(self, client, full_descriptor):
        await client.post("/publish", json=full_descriptor)

        response = await client.post(
            "/publish", json={"env": "staging", "appId": "a1", "appVersion": "1.1"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["action"] == "updated"
        assert data["updatedAt"] == data["timestamp"]
        assert "createdAt" not in data

    async def test_response_carries_request_id(self, client, full_descriptor):
        response = await client.post("/publish", json=full_descriptor)

        assert response.headers.get("X-Request-ID")


class TestPublishErrors:
    """Every failure is ``{"success": false, "error": ...}`` with a status code."""

    async def test_malformed_json(self, client):
        response = await client.post(
            "/publish", content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Invalid JSON"}

    async def test_wrong_field_type(self, client):
        response = await client.post(
            "/publish", json={"env": "staging", "appId": "a1", "hasTriggers": "yes"}
        )

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert "hasTriggers" in response.json()["error"]

    @pytest.mark.parametrize(
        "body",
        [{"appId": "a1", "appName": "x"}, {"env": "staging", "appName": "x"}, {}],
    )
    async def test_missing_env_or_app_id(self, client, body):
        response = await client.post("/publish", json=body)

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Missing required fields: env, appId",
        }

    async def test_unknown_environment(self, client, full_descriptor):
        response = await client.post("/publish", json={**full_descriptor, "env": "qa"})

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Invalid environment"}

    async def test_empty_update(self, client, full_descriptor):
        await client.post("/publish", json=full_descriptor)

        response = await client.post("/publish", json={"env": "staging", "appId": "a1"})

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "No fields provided to update"}

    async def test_missing_creation_fields(self, client, datastore_urls):
        response = await client.post(
            "/publish", json={"env": "staging", "appId": "a2", "appName": "only-name"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == (
            "appVersion, appCode, hasTriggers, hasActions required when creating a new app"
        )
        assert await read_app(datastore_urls["staging"], "a2") is None

    async def test_strict_policy_not_found(self, client, strict_service):
        app.dependency_overrides[get_publish_service] = lambda: strict_service

        response = await client.post(
            "/publish", json={"env": "staging", "appId": "ghost", "appCode": "x"}
        )

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "App not found: ghost"}

    async def test_store_failure(self, client, tmp_path, full_descriptor):
        unmigrated = EnvironmentRouter({"staging": f"sqlite+aiosqlite:///{tmp_path / 'bare.db'}"})
        app.dependency_overrides[get_environment_router] = lambda: unmigrated

        response = await client.post("/publish", json=full_descriptor)

        assert response.status_code == 500
        assert response.json()["success"] is False
        assert "no such table" in response.json()["error"]

    async def test_wrong_method(self, client):
        response = await client.get("/publish")

        assert response.status_code == 405
        assert response.json()["success"] is False

    async def test_unknown_path(self, client):
        response = await client.post("/deploy", json={})

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Not found"}


class TestHealthEndpoints:
    """Probes never touch a datastore."""

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["environments"] == ["prestaging", "staging", "production"]
        assert data["creationPolicy"] == "upsert"
        assert "X-Request-ID" not in response.headers

    async def test_live(self, client):
        response = await client.get("/live")

        assert response.status_code == 200
        assert response.json() == {"alive": True}


class TestAppFactorySettings:
    """Routes follow the settings handed to ``create_app``."""

    @staticmethod
    def _client(settings):
        return AsyncClient(transport=ASGITransport(app=create_app(settings)), base_url="http://test")

    @pytest.mark.parametrize(
        "policy,status_code",
        [("strict_update", 404), ("upsert", 400)],
    )
    async def test_publish_uses_factory_policy(self, environment_router, datastore_urls, policy, status_code):
        settings = Settings(_env_file=None, creation_policy=policy, staging_db_url=datastore_urls["staging"])

        async with self._client(settings) as client:
            response = await client.post(
                "/publish", json={"env": "staging", "appId": "ghost", "appCode": "x"}
            )

        # strict: not found; upsert: creation fields missing
        assert response.status_code == status_code

    async def test_health_reports_factory_settings(self, environment_router, datastore_urls):
        settings = Settings(
            _env_file=None,
            creation_policy="strict_update",
            prestaging_db_url=None,
            staging_db_url=datastore_urls["staging"],
            production_db_url=None,
        )

        async with self._client(settings) as client:
            data = (await client.get("/health")).json()

        assert data["creationPolicy"] == "strict_update"
        assert data["environments"] == ["staging"]

    def test_publish_service_dependency_reads_given_settings(self):
        settings = Settings(_env_file=None, creation_policy="strict_update")

        assert get_publish_service(settings).policy is CreationPolicy.STRICT_UPDATE
