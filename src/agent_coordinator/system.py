"""
Composition root for the Agent Coordinator.

:class:`AgentSystem` builds one message bus, one agent registry and one
coordinator from a :class:`CoordinatorConfig`, and optionally registers
the built-in specialist team. Hosts (the HTTP API, tests, embedding
applications) talk to the system rather than wiring components by hand.
"""

import logging
from collections.abc import Callable
from typing import Any

from agent_coordinator.agent import Agent, ProcessingPolicy, process_eagerly
from agent_coordinator.config import CoordinatorConfig
from agent_coordinator.coordinator import Coordinator
from agent_coordinator.logging_config import get_structured_logger
from agent_coordinator.message_bus import MessageBus, Subscription
from agent_coordinator.models.agents import AgentConfig, RegisteredAgent
from agent_coordinator.models.messages import Message
from agent_coordinator.models.tasks import StepResult, TaskProgress
from agent_coordinator.planning import TaskPlanner
from agent_coordinator.registry import AgentRegistry
from agent_coordinator.responders import ResponseGenerator, specialist_responder

logger: logging.LoggerAdapter[Any] = get_structured_logger(__name__)

# (id, name, description, capabilities) of the built-in specialist team.
DEFAULT_SPECIALISTS: tuple[tuple[str, str, str, tuple[str, ...]], ...] = (
    (
        "architect",
        "System Architect",
        "Designs system architecture and selects technology",
        ("architecture", "system_design", "technology_selection"),
    ),
    (
        "ui-designer",
        "UI Designer",
        "Designs user interfaces and interaction flows",
        ("ui_design", "ux", "prototyping"),
    ),
    (
        "frontend-dev",
        "Frontend Developer",
        "Implements client-side features",
        ("frontend_development", "javascript", "react"),
    ),
    (
        "backend-dev",
        "Backend Developer",
        "Implements services, APIs and data storage",
        ("backend_development", "api_development", "api_design", "database"),
    ),
    (
        "qa-tester",
        "QA Tester",
        "Tests features and verifies quality",
        ("testing", "qa", "automation"),
    ),
)


class AgentSystem:
    """Owns the bus, the registry and the coordinator.

    The coordinator's team-leader agent is registered on construction.
    Specialists are added with :meth:`register_default_agents` or
    :meth:`create_agent`.

    Args:
        config: Settings for every component. Defaults to a fresh
            :class:`CoordinatorConfig` (environment and ``.env`` applied).
        planner: Optional task planner for the coordinator.
    """

    def __init__(
        self,
        config: CoordinatorConfig | None = None,
        planner: TaskPlanner | None = None,
    ) -> None:
        self.config = config or CoordinatorConfig()
        self.bus = MessageBus(
            max_history=self.config.max_channel_history,
            max_subscribers=self.config.max_subscribers_per_channel,
        )
        self.registry = AgentRegistry()
        self.coordinator = Coordinator(self.bus, self.registry, self.config, planner=planner)
        self.registry.register_agent(self.coordinator.agent)

        logger.info(
            "Agent system initialized",
            extra={
                "extra_data": {
                    "channel": self.config.default_channel,
                    "completion_mode": self.config.completion_mode.value,
                }
            },
        )

    # -- agents -------------------------------------------------------------

    def create_agent(
        self,
        config: AgentConfig,
        responder: ResponseGenerator | None = None,
        policy: ProcessingPolicy = process_eagerly,
    ) -> Agent:
        """Build an agent on this system's bus and register it."""
        agent = Agent(config, self.bus, responder=responder, policy=policy)
        try:
            self.registry.register_agent(agent)
        except Exception:
            agent.dispose()
            raise
        return agent

    def register_default_agents(self) -> list[RegisteredAgent]:
        """Register the built-in specialist team on the default channel.

        Raises:
            AgentAlreadyRegisteredError: If a specialist ID is taken.
        """
        entries = []
        for agent_id, name, description, capabilities in DEFAULT_SPECIALISTS:
            agent = self.create_agent(
                AgentConfig(
                    id=agent_id,
                    name=name,
                    description=description,
                    team_channel=self.config.default_channel,
                    capabilities=list(capabilities),
                ),
                responder=specialist_responder(name),
            )
            entries.append(self.registry.require_agent(agent.id))
        return entries

    def register_agent(self, agent: Agent) -> RegisteredAgent:
        return self.registry.register_agent(agent)

    def unregister_agent(self, agent_id: str) -> bool:
        return self.registry.unregister_agent(agent_id)

    def find_agents_by_capability(self, capability: str) -> list[RegisteredAgent]:
        return self.registry.find_agents_by_capability(capability)

    def set_agent_enabled(self, agent_id: str, enabled: bool) -> bool:
        return self.registry.set_agent_enabled(agent_id, enabled)

    # -- tasks --------------------------------------------------------------

    async def submit_task(self, objective: str) -> list[StepResult]:
        """Plan ``objective`` and run the plan to completion."""
        return await self.coordinator.handle_task(objective)

    def get_task_progress(self) -> TaskProgress:
        return self.coordinator.get_task_progress()

    # -- messaging ----------------------------------------------------------

    def subscribe(self, channel_id: str, callback: Callable[[Message], None]) -> Subscription:
        return self.bus.subscribe(channel_id, callback)

    def publish(self, message: Message) -> Message:
        return self.bus.publish(message)

    def get_channel_history(self, channel_id: str) -> tuple[Message, ...]:
        return self.bus.get_channel_history(channel_id)

    async def wait_idle(self) -> None:
        """Wait for every registered agent's scheduled drains to finish."""
        for entry in self.registry.get_all_agents():
            await entry.agent.wait_idle()

    # -- lifecycle ----------------------------------------------------------

    def dispose(self) -> None:
        """Unsubscribe every registered agent and the coordinator."""
        for entry in self.registry.get_all_agents():
            if entry.agent is not self.coordinator.agent:
                entry.agent.dispose()
        self.coordinator.dispose()
        logger.info("Agent system disposed")
