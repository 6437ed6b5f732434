"""Tests for the /api/v1/mirror HTTP routes."""

import pytest
from fastapi.testclient import TestClient

from app.core.deps import get_mirror_service
from app.main import app
from domains.mirror_hub.core.settings import Neo4jSettings
from domains.mirror_hub.services.mirror_service import MirrorService
from tests.fakes import store_factory


def enabled(**overrides):
    values = {
        "enabled": True,
        "uri": "bolt://localhost:7687",
        "username": "neo4j",
        "password": "secret",
    }
    values.update(overrides)
    return Neo4jSettings(_env_file=None, **values)


@pytest.fixture
def use_service():
    def install(service):
        app.dependency_overrides[get_mirror_service] = lambda: service
        return service

    yield install
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def service(use_service, scenario_a_source, fake_store):
    return use_service(MirrorService(scenario_a_source, enabled(), store_factory(fake_store)))


class TestMirrorRoutes:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_sync_then_status_then_traverse(self, client, service):
        response = client.post("/api/v1/mirror/sync")
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        run_id = body["data"]["run_id"]
        assert body["data"]["consistent"] is True
        assert body["data"]["mirrored_counts"] == {
            "notes": 3, "typed_links": 1, "targets": 1, "resolved_links": 1,
        }

        status = client.get("/api/v1/mirror/status").json()["data"]
        assert status["health"] == "ok"
        assert status["active_run_id"] == run_id

        response = client.get(
            "/api/v1/mirror/traverse",
            params={"path": "A", "direction": "outgoing", "max_hops": 1},
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["active_run_id"] == run_id
        assert data["nodes"] == [{"path": "A", "hop": 0}, {"path": "B", "hop": 1}]
        assert data["edges"][0]["rel"] == "supports"
        assert data["truncated"] is False

    def test_sync_body_is_validated(self, client, service):
        response = client.post("/api/v1/mirror/sync", json={"batch_size": 5000})
        assert response.status_code == 422

    def test_sync_body_options(self, client, service, fake_store):
        response = client.post("/api/v1/mirror/sync", json={"batch_size": 1})
        assert response.status_code == 200
        assert len(fake_store.written_chunks) == 3 + 1 + 1 + 1

    def test_unknown_direction(self, client, service):
        response = client.get("/api/v1/mirror/traverse", params={"path": "A", "direction": "up"})
        assert response.status_code == 422

    def test_empty_mirror(self, client, service):
        response = client.get("/api/v1/mirror/traverse", params={"path": "A"})
        assert response.status_code == 422
        assert response.json()["code"] == "MIRROR_EMPTY"

    def test_seed_not_found(self, client, service):
        client.post("/api/v1/mirror/sync")

        response = client.get("/api/v1/mirror/traverse", params={"path": "Z"})

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "SEED_NOT_FOUND"
        assert body["details"]["path"] == "Z"
        assert "timestamp" in body

    def test_request_id_is_echoed(self, client, service):
        response = client.get("/api/v1/mirror/status", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"

    def test_request_id_is_generated(self, client, service):
        response = client.get("/api/v1/mirror/status")

        assert len(response.headers["X-Request-ID"]) == 8


class TestUnavailableIntegration:
    def test_sync_returns_503(self, client, use_service, scenario_a_source, fake_store):
        use_service(MirrorService(scenario_a_source, enabled(enabled=False), store_factory(fake_store)))

        response = client.post("/api/v1/mirror/sync")

        assert response.status_code == 503
        assert response.json()["code"] == "INTEGRATION_UNAVAILABLE"

    def test_status_still_reports(self, client, use_service, scenario_a_source, fake_store):
        use_service(MirrorService(scenario_a_source, enabled(enabled=False), store_factory(fake_store)))

        response = client.get("/api/v1/mirror/status")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["health"] == "disabled"
        assert data["source_counts"] == {"notes": 3, "typed_links": 1}
