"""
Shared test fixtures for agent-coordinator.

Provides reusable fixtures for:
- CoordinatorConfig with fast, test-safe timings
- A message bus, registry, and fully wired agent system
- Module-level singleton cleanup between tests
"""

from collections.abc import Generator

import pytest

from agent_coordinator.config import CompletionMode, CoordinatorConfig
from agent_coordinator.message_bus import MessageBus
from agent_coordinator.models.agents import AgentConfig
from agent_coordinator.registry import AgentRegistry
from agent_coordinator.system import AgentSystem

# ---------------------------------------------------------------------------
# Configuration fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def test_config(monkeypatch: pytest.MonkeyPatch) -> CoordinatorConfig:
    """Return a CoordinatorConfig with short timeouts for tests."""
    monkeypatch.setenv("COORD_LOG_LEVEL", "DEBUG")
    return CoordinatorConfig(
        completion_mode=CompletionMode.CORRELATED,
        step_timeout_seconds=2.0,
        simulated_delay_seconds=0.0,
    )


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def bus() -> MessageBus:
    return MessageBus()


@pytest.fixture()
def registry() -> AgentRegistry:
    return AgentRegistry()


@pytest.fixture()
def make_config():
    """Factory for AgentConfig objects on the ``general`` channel."""

    def _make(agent_id: str, *capabilities: str, **overrides) -> AgentConfig:
        return AgentConfig(
            id=agent_id,
            name=overrides.pop("name", agent_id.replace("-", " ").title()),
            capabilities=list(capabilities),
            **overrides,
        )

    return _make


@pytest.fixture()
def system(test_config: CoordinatorConfig) -> Generator[AgentSystem, None, None]:
    """An AgentSystem with the built-in specialist team registered."""
    agent_system = AgentSystem(test_config)
    agent_system.register_default_agents()
    yield agent_system
    agent_system.dispose()


# ---------------------------------------------------------------------------
# Singleton cleanup
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_global_singletons() -> Generator[None, None, None]:
    """Reset all module-level global singletons before and after each test.

    This prevents one test's state from leaking into another.
    """
    import agent_coordinator.config as config_mod
    import agent_coordinator.http_server as http_server_mod

    config_mod._config = None
    http_server_mod.reset_http_singletons()

    yield

    config_mod._config = None
    http_server_mod.reset_http_singletons()
