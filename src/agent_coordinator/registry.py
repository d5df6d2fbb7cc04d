"""
Agent Registry for the Agent Coordinator.

Tracks the known agents, their declared capabilities and enabled state,
supports capability-based lookup, and emits lifecycle events to
registered listeners.
"""

import logging
import threading
from collections.abc import Callable, Iterable
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from agent_coordinator.error_codes import (
    COORD_1001_AGENT_NOT_FOUND,
    COORD_1002_AGENT_ALREADY_REGISTERED,
)
from agent_coordinator.logging_config import get_structured_logger
from agent_coordinator.models.agents import RegisteredAgent

if TYPE_CHECKING:
    from agent_coordinator.agent import Agent

logger: logging.LoggerAdapter[Any] = get_structured_logger(__name__)


class RegistryEvent(StrEnum):
    """Lifecycle events emitted by the registry."""

    REGISTERED = "registered"
    UNREGISTERED = "unregistered"
    STATE_CHANGED = "state-changed"


RegistryListener = Callable[[RegisteredAgent], None]


class RegistryError(Exception):
    """Base exception for registry operations.

    Attributes:
        error_code: Machine-readable error code from error_codes.py.
        message: Human-readable error description.
    """

    def __init__(self, error_code: str, message: str) -> None:
        self.error_code = error_code
        self.message = message
        super().__init__(f"[{error_code}] {message}")


class AgentNotFoundError(RegistryError):
    """Raised when an agent ID is required but not registered."""

    def __init__(self, agent_id: str) -> None:
        super().__init__(
            COORD_1001_AGENT_NOT_FOUND,
            f"Agent '{agent_id}' not found in registry.",
        )


class AgentAlreadyRegisteredError(RegistryError):
    """Raised when attempting to register an agent with a duplicate ID."""

    def __init__(self, agent_id: str) -> None:
        super().__init__(
            COORD_1002_AGENT_ALREADY_REGISTERED,
            f"Agent '{agent_id}' is already registered.",
        )


class AgentRegistry:
    """Registry of live agents and their capabilities.

    Lookups on unknown IDs return ``None`` rather than raising. Lookups by
    capability only consider enabled agents and return them in
    registration order. Mutations are serialized by a lock so the
    unique-ID invariant holds under concurrent callers.
    """

    def __init__(self) -> None:
        # Insertion order is registration order.
        self._agents: dict[str, RegisteredAgent] = {}
        self._listeners: dict[RegistryEvent, list[RegistryListener]] = {
            event: [] for event in RegistryEvent
        }
        self._lock = threading.RLock()

    # -- listeners ----------------------------------------------------------

    def on(self, event: RegistryEvent | str, listener: RegistryListener) -> None:
        """Add a listener for a lifecycle event."""
        self._listeners[RegistryEvent(event)].append(listener)

    def off(self, event: RegistryEvent | str, listener: RegistryListener) -> bool:
        """Remove a listener.

        Returns:
            True if the listener was registered for the event.
        """
        listeners = self._listeners[RegistryEvent(event)]
        if listener in listeners:
            listeners.remove(listener)
            return True
        return False

    def _emit(self, event: RegistryEvent, entry: RegisteredAgent) -> None:
        for listener in list(self._listeners[event]):
            try:
                listener(entry)
            except Exception:
                logger.error(
                    "Registry listener raised an exception",
                    extra={"extra_data": {"event": event.value, "agent_id": entry.id}},
                    exc_info=True,
                )

    # -- mutation -----------------------------------------------------------

    def register_agent(self, agent: "Agent") -> RegisteredAgent:
        """Register a live agent.

        Args:
            agent: The agent to register; its ``config.id`` must be unique.

        Returns:
            The new RegisteredAgent record.

        Raises:
            AgentAlreadyRegisteredError: If an agent with the same ID exists.
        """
        config = agent.get_config()
        with self._lock:
            if config.id in self._agents:
                raise AgentAlreadyRegisteredError(config.id)

            entry = RegisteredAgent(
                id=config.id,
                name=config.name,
                description=config.description or "",
                agent=agent,
                capabilities=list(config.capabilities),
                enabled=True,
            )
            self._agents[config.id] = entry

        logger.info(
            "Agent registered",
            extra={
                "extra_data": {
                    "agent_id": entry.id,
                    "capabilities": entry.capabilities,
                }
            },
        )
        self._emit(RegistryEvent.REGISTERED, entry)
        return entry

    def register_agents(self, agents: Iterable["Agent"]) -> list[RegisteredAgent]:
        """Register several agents in order.

        Raises:
            AgentAlreadyRegisteredError: On the first duplicate. Agents
                registered before it stay registered.
        """
        return [self.register_agent(agent) for agent in agents]

    def unregister_agent(self, agent_id: str) -> bool:
        """Remove an agent from the registry.

        The agent itself is not disposed.

        Returns:
            True if the agent was registered, False otherwise.
        """
        with self._lock:
            entry = self._agents.pop(agent_id, None)
        if entry is None:
            return False

        logger.info("Agent unregistered", extra={"extra_data": {"agent_id": agent_id}})
        self._emit(RegistryEvent.UNREGISTERED, entry)
        return True

    def set_agent_enabled(self, agent_id: str, enabled: bool) -> bool:
        """Enable or disable an agent for capability lookup.

        Returns:
            True if the agent exists, False otherwise.
        """
        with self._lock:
            entry = self._agents.get(agent_id)
            if entry is None:
                return False
            entry.enabled = enabled

        logger.info(
            "Agent %s",
            "enabled" if enabled else "disabled",
            extra={"extra_data": {"agent_id": agent_id, "enabled": enabled}},
        )
        self._emit(RegistryEvent.STATE_CHANGED, entry)
        return True

    def update_agent_config(self, agent_id: str, config_update: dict[str, Any]) -> bool:
        """Apply a partial config update to a live agent and re-sync the record.

        Args:
            agent_id: The agent to update.
            config_update: Partial AgentConfig fields.

        Returns:
            True if the agent exists, False otherwise.
        """
        with self._lock:
            entry = self._agents.get(agent_id)
            if entry is None:
                return False

            entry.agent.update_config(config_update)
            updated = entry.agent.get_config()
            entry.name = updated.name
            entry.description = updated.description or ""
            entry.capabilities = list(updated.capabilities)

        logger.info(
            "Agent config updated",
            extra={
                "extra_data": {
                    "agent_id": agent_id,
                    "fields": sorted(config_update),
                }
            },
        )
        self._emit(RegistryEvent.STATE_CHANGED, entry)
        return True

    # -- lookup -------------------------------------------------------------

    def get_agent(self, agent_id: str) -> RegisteredAgent | None:
        """Look up an agent by ID, or ``None`` if unknown."""
        with self._lock:
            return self._agents.get(agent_id)

    def require_agent(self, agent_id: str) -> RegisteredAgent:
        """Look up an agent that must exist.

        Raises:
            AgentNotFoundError: If no agent with the given ID is registered.
        """
        with self._lock:
            entry = self._agents.get(agent_id)
        if entry is None:
            raise AgentNotFoundError(agent_id)
        return entry

    def get_all_agents(self) -> list[RegisteredAgent]:
        """All registered agents in registration order."""
        with self._lock:
            return list(self._agents.values())

    def find_agents_by_capability(self, capability: str) -> list[RegisteredAgent]:
        """Find enabled agents that declare ``capability``.

        Returns:
            Matching agents in registration order; possibly empty.
        """
        return [
            entry
            for entry in self.get_all_agents()
            if entry.enabled and entry.has_capability(capability)
        ]

    def get_summary(self) -> dict[str, Any]:
        """Summary of the registry state.

        Returns:
            Dictionary with total_agents, enabled_agents, agents_by_capability
            and agent_ids.
        """
        entries = self.get_all_agents()
        by_capability: dict[str, int] = {}
        for entry in entries:
            for capability in entry.capabilities:
                by_capability[capability] = by_capability.get(capability, 0) + 1

        return {
            "total_agents": len(entries),
            "enabled_agents": sum(1 for e in entries if e.enabled),
            "agents_by_capability": by_capability,
            "agent_ids": [e.id for e in entries],
        }

    @property
    def agent_count(self) -> int:
        """Return the number of registered agents."""
        with self._lock:
            return len(self._agents)

    def __contains__(self, agent_id: object) -> bool:
        with self._lock:
            return agent_id in self._agents
