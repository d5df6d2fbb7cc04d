"""
Task decomposition strategies for the Coordinator.

A planner turns an objective into a :class:`TaskPlan`. The coordinator
only depends on the :class:`TaskPlanner` protocol, so the keyword table
below can be replaced by a smarter planner without touching the step
state machine.
"""

import logging
from dataclasses import dataclass
from typing import Any, Protocol
from uuid import uuid4

from agent_coordinator.logging_config import get_structured_logger
from agent_coordinator.models.tasks import TaskPlan, TaskStep

logger: logging.LoggerAdapter[Any] = get_structured_logger(__name__)

# Capability tags
ARCHITECTURE = "architecture"
UI_DESIGN = "ui_design"
FRONTEND_DEVELOPMENT = "frontend_development"
BACKEND_DEVELOPMENT = "backend_development"
API_DEVELOPMENT = "api_development"
DATABASE = "database"
TESTING = "testing"

BASELINE_CAPABILITY = FRONTEND_DEVELOPMENT

# Keyword -> capability, matched case-insensitively by containment.
DEFAULT_CAPABILITY_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("UI", UI_DESIGN),
    ("界面", UI_DESIGN),
    ("设计", UI_DESIGN),
    ("前端", FRONTEND_DEVELOPMENT),
    ("frontend", FRONTEND_DEVELOPMENT),
    ("后端", BACKEND_DEVELOPMENT),
    ("backend", BACKEND_DEVELOPMENT),
    ("API", API_DEVELOPMENT),
    ("数据库", DATABASE),
    ("database", DATABASE),
    ("测试", TESTING),
    ("test", TESTING),
    ("架构", ARCHITECTURE),
)


class TaskPlanner(Protocol):
    """Strategy that decomposes an objective into a task plan."""

    def create_plan(self, objective: str) -> TaskPlan: ...


@dataclass(frozen=True)
class StepTemplate:
    """Blueprint for one plan step.

    Attributes:
        key: Short name used in the generated step ID.
        description: Step description.
        assigned_to: Role name (normally also the specialist agent's ID).
        capability: Capability tag used for registry lookup.
        required_tools: Tools the step expects to use.
        priority: Advisory display priority (1-10).
    """

    key: str
    description: str
    assigned_to: str
    capability: str
    required_tools: tuple[str, ...]
    priority: int

    def build(self) -> TaskStep:
        return TaskStep(
            id=f"step-{self.key}-{uuid4().hex[:8]}",
            description=self.description,
            assigned_to=self.assigned_to,
            required_capability=self.capability,
            required_tools=list(self.required_tools),
            priority=self.priority,
        )


ANALYSIS_STEP = StepTemplate(
    key="analysis",
    description="Requirements analysis and task decomposition",
    assigned_to="architect",
    capability=ARCHITECTURE,
    required_tools=("task-analyzer",),
    priority=10,
)
DESIGN_STEP = StepTemplate(
    key="design",
    description="User interface design",
    assigned_to="ui-designer",
    capability=UI_DESIGN,
    required_tools=("ui-design-tool",),
    priority=8,
)
FRONTEND_STEP = StepTemplate(
    key="frontend",
    description="Frontend implementation",
    assigned_to="frontend-dev",
    capability=FRONTEND_DEVELOPMENT,
    required_tools=("code-writer",),
    priority=6,
)
BACKEND_STEP = StepTemplate(
    key="backend",
    description="Backend implementation",
    assigned_to="backend-dev",
    capability=BACKEND_DEVELOPMENT,
    required_tools=("code-writer",),
    priority=6,
)
DATABASE_STEP = StepTemplate(
    key="database",
    description="Database schema and data access",
    assigned_to="backend-dev",
    capability=DATABASE,
    required_tools=("code-writer",),
    priority=5,
)
VERIFICATION_STEP = StepTemplate(
    key="test",
    description="Functional testing and quality verification",
    assigned_to="qa-tester",
    capability=TESTING,
    required_tools=("test-runner",),
    priority=4,
)


class KeywordTaskPlanner:
    """Plans by matching capability keywords in the objective.

    Every plan starts with the analysis step and ends with the
    verification step. In between there is one step per matched
    capability group, in a fixed order. Objectives that match no keyword
    get the baseline capability so that every plan has real work in it.

    Args:
        keywords: Ordered ``(keyword, capability)`` pairs.
        baseline_capability: Capability used when nothing matches.
    """

    def __init__(
        self,
        keywords: tuple[tuple[str, str], ...] = DEFAULT_CAPABILITY_KEYWORDS,
        baseline_capability: str = BASELINE_CAPABILITY,
    ) -> None:
        self._keywords = keywords
        self._baseline = baseline_capability

    def identify_capabilities(self, objective: str) -> list[str]:
        """Capabilities mentioned by ``objective``, in keyword-table order."""
        lowered = objective.lower()
        capabilities: list[str] = []
        for keyword, capability in self._keywords:
            if keyword.lower() in lowered and capability not in capabilities:
                capabilities.append(capability)

        if not capabilities:
            capabilities.append(self._baseline)
        return capabilities

    def create_plan(self, objective: str) -> TaskPlan:
        capabilities = self.identify_capabilities(objective)

        templates = [ANALYSIS_STEP]
        if UI_DESIGN in capabilities:
            templates.append(DESIGN_STEP)
        if FRONTEND_DEVELOPMENT in capabilities:
            templates.append(FRONTEND_STEP)
        if BACKEND_DEVELOPMENT in capabilities or API_DEVELOPMENT in capabilities:
            templates.append(BACKEND_STEP)
        if DATABASE in capabilities:
            templates.append(DATABASE_STEP)
        templates.append(VERIFICATION_STEP)

        plan = TaskPlan(
            id=f"plan-{uuid4().hex[:12]}",
            objective=objective,
            steps=[template.build() for template in templates],
        )
        logger.debug(
            "Plan created from keywords",
            extra={
                "extra_data": {
                    "plan_id": plan.id,
                    "capabilities": capabilities,
                    "step_count": len(plan.steps),
                }
            },
        )
        return plan
