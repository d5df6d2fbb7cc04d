"""
Tests for the FastAPI HTTP server layer.

Validates that:
- FastAPI app is created with correct configuration
- GET /api/health reports agent counts and plan progress
- Agent endpoints list, fetch, and toggle registered agents (404 when unknown)
- Task endpoints plan and run objectives and expose progress
- Channel endpoints publish messages and return history
"""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from agent_coordinator.config import CoordinatorConfig
from agent_coordinator.error_codes import COORD_1001_AGENT_NOT_FOUND
from agent_coordinator.http_server import _get_system, create_app, reset_http_singletons
from agent_coordinator.system import AgentSystem


@pytest.fixture()
def http_system() -> AgentSystem:
    system = AgentSystem(CoordinatorConfig(step_timeout_seconds=2.0))
    system.register_default_agents()
    return system


@pytest.fixture()
def http_app(http_system: AgentSystem) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app around an isolated system."""
    app = create_app(http_system)
    with TestClient(app) as client:
        yield client


class TestAppCreation:
    """Tests for FastAPI app factory."""

    def test_create_app_returns_fastapi_instance(self) -> None:
        app = create_app()

        assert app.title == "Agent Coordinator API"
        assert app.docs_url == "/api/docs"
        assert app.openapi_url == "/api/openapi.json"

    def test_create_app_registers_api_routes(self) -> None:
        app = create_app()

        route_paths = [r.path for r in app.routes if hasattr(r, "path")]
        for path in (
            "/api/health",
            "/api/agents",
            "/api/agents/{agent_id}",
            "/api/agents/{agent_id}/enabled",
            "/api/tasks",
            "/api/tasks/progress",
            "/api/tasks/current",
            "/api/channels/{channel_id}/history",
            "/api/channels/{channel_id}/messages",
        ):
            assert path in route_paths

    def test_create_app_has_cors_middleware(self) -> None:
        app = create_app()
        middleware_classes = [m.cls.__name__ for m in app.user_middleware]
        assert "CORSMiddleware" in middleware_classes

    def test_lazy_system_has_default_team(self) -> None:
        system = _get_system()
        assert [e.id for e in system.registry.get_all_agents()] == [
            "team-leader",
            "architect",
            "ui-designer",
            "frontend-dev",
            "backend-dev",
            "qa-tester",
        ]
        assert _get_system() is system

    def test_reset_http_singletons(self) -> None:
        first = _get_system()
        reset_http_singletons()
        assert _get_system() is not first


class TestHealthEndpoint:
    """Tests for GET /api/health."""

    def test_health(self, http_app: TestClient) -> None:
        response = http_app.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["total_agents"] == 6
        assert body["enabled_agents"] == 6
        assert body["current_plan_id"] is None
        assert body["progress"] == {"completed": 0, "total": 0, "progress": 0.0}


class TestAgentEndpoints:
    """Tests for the /api/agents routes."""

    def test_list_agents(self, http_app: TestClient) -> None:
        body = http_app.get("/api/agents").json()
        assert body["total_agents"] == 6
        assert body["agents"][1]["id"] == "architect"
        assert "agent" not in body["agents"][1]

    def test_get_agent(self, http_app: TestClient) -> None:
        response = http_app.get("/api/agents/qa-tester")
        assert response.status_code == 200
        assert "testing" in response.json()["capabilities"]

    def test_get_unknown_agent_404(self, http_app: TestClient) -> None:
        response = http_app.get("/api/agents/ghost")
        assert response.status_code == 404
        assert response.json()["detail"]["error_code"] == COORD_1001_AGENT_NOT_FOUND

    def test_disable_agent(self, http_app: TestClient, http_system: AgentSystem) -> None:
        response = http_app.post("/api/agents/ui-designer/enabled", json={"enabled": False})

        assert response.status_code == 200
        assert response.json() == {"agent_id": "ui-designer", "enabled": False}
        assert http_system.find_agents_by_capability("ui_design") == []

    def test_toggle_unknown_agent_404(self, http_app: TestClient) -> None:
        response = http_app.post("/api/agents/ghost/enabled", json={"enabled": True})
        assert response.status_code == 404


class TestTaskEndpoints:
    """Tests for the /api/tasks routes."""

    def test_no_current_plan(self, http_app: TestClient) -> None:
        assert http_app.get("/api/tasks/current").json() == {"plan": None}
        assert http_app.get("/api/tasks/progress").json()["total"] == 0

    def test_submit_task_runs_plan(self, http_app: TestClient) -> None:
        response = http_app.post("/api/tasks", json={"objective": "Optimize the payment flow"})

        assert response.status_code == 200
        body = response.json()
        assert body["plan_id"].startswith("plan-")
        assert [r["agent_id"] for r in body["results"]] == [
            "architect",
            "frontend-dev",
            "qa-tester",
        ]
        assert all(r["success"] for r in body["results"])
        assert body["progress"]["progress"] == 1.0

        current = http_app.get("/api/tasks/current").json()["plan"]
        assert current["id"] == body["plan_id"]
        assert [s["status"] for s in current["steps"]] == ["completed"] * 3

    def test_submit_empty_objective_rejected(self, http_app: TestClient) -> None:
        response = http_app.post("/api/tasks", json={"objective": ""})
        assert response.status_code == 422


class TestChannelEndpoints:
    """Tests for the /api/channels routes."""

    def test_publish_and_read_history(self, http_app: TestClient) -> None:
        response = http_app.post(
            "/api/channels/design-review/messages",
            json={"content": "hello", "sender_id": "user"},
        )

        assert response.status_code == 200
        published = response.json()
        assert published["id"].startswith("msg-")
        assert published["type"] == "USER_INPUT"
        assert published["channel_id"] == "design-review"

        history = http_app.get("/api/channels/design-review/history").json()
        assert history["count"] == 1
        assert history["messages"][0]["id"] == published["id"]

    def test_unknown_channel_history_empty(self, http_app: TestClient) -> None:
        body = http_app.get("/api/channels/nowhere/history").json()
        assert body == {"channel_id": "nowhere", "messages": [], "count": 0}

    def test_publish_invalid_sender_rejected(self, http_app: TestClient) -> None:
        response = http_app.post(
            "/api/channels/general/messages",
            json={"content": "hello", "sender_id": "  "},
        )
        assert response.status_code == 400
