"""
Agent Coordinator -- in-process coordination substrate for agents.

Provides a publish/subscribe message bus, an agent registry with
capability lookup, a shared agent contract, and a team-leader
coordinator that plans objectives and delegates the steps to agents.
"""

__version__ = "0.1.0"

from agent_coordinator.agent import Agent, process_eagerly, process_in_batches
from agent_coordinator.config import CompletionMode, CoordinatorConfig, get_config, reset_config
from agent_coordinator.coordinator import Coordinator, CoordinatorError
from agent_coordinator.logging_config import get_structured_logger, setup_logging
from agent_coordinator.message_bus import MessageBus, Subscription
from agent_coordinator.planning import KeywordTaskPlanner, TaskPlanner
from agent_coordinator.registry import AgentRegistry, RegistryEvent
from agent_coordinator.responders import CallableResponder, TemplateResponder
from agent_coordinator.system import AgentSystem

__all__ = [
    # Configuration
    "CompletionMode",
    "CoordinatorConfig",
    "get_config",
    "reset_config",
    # Logging
    "get_structured_logger",
    "setup_logging",
    # Messaging
    "MessageBus",
    "Subscription",
    # Registry
    "AgentRegistry",
    "RegistryEvent",
    # Agents
    "Agent",
    "process_eagerly",
    "process_in_batches",
    "TemplateResponder",
    "CallableResponder",
    # Coordination
    "Coordinator",
    "CoordinatorError",
    "KeywordTaskPlanner",
    "TaskPlanner",
    "AgentSystem",
]
