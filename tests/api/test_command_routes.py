import base64
from typing import Iterator
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from src.app import app
from src.commands.executor.command_executor import CommandExecutor
from src.commands.filter.command_filter import FilterPolicy
from src.config.settings import AdapterConfig
from src.core.errors import StoreConnectionError
from src.routers.dependencies import get_command_executor, get_config

AUTH = {"Authorization": "Bearer secret"}


@pytest.fixture
def api_config() -> AdapterConfig:
    return AdapterConfig(redis_url="memory://test", token="secret", max_body_size=256)


def client_for(config: AdapterConfig, executor: CommandExecutor) -> TestClient:
    app.dependency_overrides[get_config] = lambda: config
    app.dependency_overrides[get_command_executor] = lambda: executor
    return TestClient(app)


@pytest.fixture
def client(api_config: AdapterConfig, executor: CommandExecutor) -> Iterator[TestClient]:
    yield client_for(api_config, executor)
    app.dependency_overrides.clear()


@pytest.fixture
def offline_client(api_config: AdapterConfig) -> Iterator[TestClient]:
    """Client whose store can never be reached"""
    manager = Mock()
    manager.acquire = AsyncMock(side_effect=StoreConnectionError("Could not connect"))
    yield client_for(api_config, CommandExecutor(manager, FilterPolicy()))
    app.dependency_overrides.clear()


class TestHealthAndAuth:
    def test_health_needs_no_auth(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert isinstance(data["timestamp"], int)

    def test_missing_credentials(self, client: TestClient) -> None:
        response = client.post("/", json=["PING"])

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized - Missing Authorization header"}

    def test_wrong_token(self, client: TestClient) -> None:
        response = client.get("/ping", headers={"Authorization": "Bearer wrong"})

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized - Invalid token"}

    def test_basic_auth_as_sent_by_upstash_clients(self, client: TestClient) -> None:
        credentials = base64.b64encode(b"default:secret").decode("ascii")

        response = client.post("/", json=["PING"], headers={"Authorization": f"Basic {credentials}"})

        assert response.status_code == 200
        assert response.json() == {"result": "PONG"}


class TestBodyCommand:
    def test_set_then_get(self, client: TestClient) -> None:
        assert client.post("/", json=["SET", "k", "v"], headers=AUTH).json() == {"result": "OK"}

        response = client.post("/", json={"command": "get", "args": ["k"]}, headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {"result": "v"}

    def test_blocked_command(self, client: TestClient) -> None:
        response = client.post("/", json=["flushall"], headers=AUTH)

        assert response.status_code == 403
        assert "FLUSHALL" in response.json()["error"]

    def test_empty_array(self, client: TestClient) -> None:
        response = client.post("/", json=[], headers=AUTH)

        assert response.status_code == 400
        assert response.json() == {"error": "Empty command array"}

    def test_invalid_json(self, client: TestClient) -> None:
        response = client.post(
            "/", content=b"{not json", headers={**AUTH, "Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON body"}

    def test_body_too_large(self, client: TestClient) -> None:
        response = client.post("/", json=["SET", "k", "x" * 1000], headers=AUTH)

        assert response.status_code == 413

    def test_backend_error_message_is_returned(self, client: TestClient) -> None:
        client.post("/", json=["LPUSH", "list", "a"], headers=AUTH)

        response = client.post("/", json=["GET", "list"], headers=AUTH)

        assert response.status_code == 400
        assert response.json()["error"].startswith("WRONGTYPE")

    def test_store_unavailable(self, offline_client: TestClient) -> None:
        response = offline_client.post("/", json=["GET", "k"], headers=AUTH)

        assert response.status_code == 503
        assert response.json() == {"error": "Could not connect"}


class TestBatchRoutes:
    def test_pipeline_returns_one_envelope_per_command(self, client: TestClient) -> None:
        response = client.post(
            "/pipeline",
            json=[["SET", "a", "1"], ["INCR", "a"], ["LPUSH", "a", "x"]],
            headers=AUTH,
        )

        assert response.status_code == 200
        data = response.json()
        assert data[:2] == [{"result": "OK"}, {"result": 2}]
        assert data[2]["error"].startswith("WRONGTYPE")

    def test_pipeline_rejects_batch_with_blocked_command(self, client: TestClient) -> None:
        response = client.post("/pipeline", json=[["GET", "a"], ["KEYS", "*"]], headers=AUTH)

        assert response.status_code == 403

    def test_pipeline_names_bad_index(self, client: TestClient) -> None:
        response = client.post("/pipeline", json=[["GET", "a"], []], headers=AUTH)

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid command at index 1: Empty command array"}

    def test_transaction_success(self, client: TestClient) -> None:
        response = client.post(
            "/multi-exec", json=[["SET", "t", "1"], ["INCRBY", "t", 4]], headers=AUTH
        )

        assert response.status_code == 200
        assert response.json() == [{"result": "OK"}, {"result": 5}]

    def test_transaction_failure_is_single_envelope(self, client: TestClient) -> None:
        response = client.post(
            "/multi-exec", json=[["SET", "t", "v"], ["LPUSH", "t", "x"]], headers=AUTH
        )

        assert response.status_code == 400
        assert response.json()["error"].startswith("Transaction failed: WRONGTYPE")


class TestPathCommand:
    def test_path_set_and_get(self, client: TestClient) -> None:
        assert client.get("/set/color/blue", headers=AUTH).json() == {"result": "OK"}

        response = client.get("/GET/color", headers=AUTH)

        assert response.json() == {"result": "blue"}

    def test_percent_encoded_segments(self, client: TestClient) -> None:
        client.post("/", json=["SET", "a/b c", "v"], headers=AUTH)

        response = client.get("/get/a%2Fb%20c", headers=AUTH)

        assert response.json() == {"result": "v"}

    def test_hybrid_path_and_body(self, client: TestClient) -> None:
        response = client.post("/set", json=["doc", {"a": 1}], headers=AUTH)
        assert response.json() == {"result": "OK"}

        assert client.get("/get/doc", headers=AUTH).json() == {"result": '{"a":1}'}

    def test_no_command(self, client: TestClient) -> None:
        response = client.get("/", headers=AUTH)

        assert response.status_code == 400
        assert response.json() == {"error": "No command provided"}

    def test_blocked(self, client: TestClient) -> None:
        response = client.get("/flushdb", headers=AUTH)

        assert response.status_code == 403

    def test_store_errors_are_sanitized(self, client: TestClient) -> None:
        response = client.get("/nosuchcommand/x", headers=AUTH)

        assert response.status_code == 400
        assert response.json() == {"error": "Redis command error"}

    def test_store_unavailable_is_internal_error(self, offline_client: TestClient) -> None:
        response = offline_client.get("/get/k", headers=AUTH)

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}
