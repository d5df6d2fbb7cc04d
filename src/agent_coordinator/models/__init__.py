"""
Pydantic models for the Agent Coordinator.

All foundational data contracts are defined here and re-exported
for convenient access via ``from agent_coordinator.models import ...``.

Modules:
    messages -- Bus messages and message types.
    agents -- Agent configuration and registry records.
    tasks -- Task plans, steps, pending-task bookkeeping, and progress.
"""

from agent_coordinator.models.agents import DEFAULT_TEAM_CHANNEL, AgentConfig, RegisteredAgent
from agent_coordinator.models.messages import Message, MessageType
from agent_coordinator.models.tasks import (
    TERMINAL_STATUSES,
    InvalidStepTransitionError,
    PendingTask,
    StepResult,
    StepStatus,
    TaskPlan,
    TaskProgress,
    TaskStep,
)

__all__ = [
    # Agent models
    "AgentConfig",
    "DEFAULT_TEAM_CHANNEL",
    "RegisteredAgent",
    # Message models
    "Message",
    "MessageType",
    # Task models
    "InvalidStepTransitionError",
    "PendingTask",
    "StepResult",
    "StepStatus",
    "TERMINAL_STATUSES",
    "TaskPlan",
    "TaskProgress",
    "TaskStep",
]
