"""
Task plan models for the Agent Coordinator.

Defines the data contracts for task plans, their ordered steps, the
coordinator's pending-task bookkeeping, step results, and aggregate
progress. Tasks are the unit of work the coordinator delegates to
agents.
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from agent_coordinator.error_codes import COORD_3002_INVALID_STEP_TRANSITION


class StepStatus(StrEnum):
    """Lifecycle status of a task step.

    Steps progress through these states: PENDING -> IN_PROGRESS ->
    one of {COMPLETED, FAILED}.
    """

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"


# Terminal statuses -- a step in one of these states will not change again.
TERMINAL_STATUSES = frozenset({StepStatus.COMPLETED, StepStatus.FAILED})

_ALLOWED_TRANSITIONS: dict[StepStatus, frozenset[StepStatus]] = {
    StepStatus.PENDING: frozenset({StepStatus.IN_PROGRESS}),
    StepStatus.IN_PROGRESS: frozenset({StepStatus.COMPLETED, StepStatus.FAILED}),
    StepStatus.COMPLETED: frozenset(),
    StepStatus.FAILED: frozenset(),
}


class InvalidStepTransitionError(Exception):
    """Raised when a step status change is not allowed by the state machine.

    Attributes:
        error_code: Machine-readable error code from error_codes.py.
        message: Human-readable error description.
    """

    def __init__(self, step_id: str, current: StepStatus, requested: StepStatus) -> None:
        self.error_code = COORD_3002_INVALID_STEP_TRANSITION
        self.message = (
            f"Step '{step_id}' cannot move from '{current.value}' to '{requested.value}'"
        )
        super().__init__(f"[{self.error_code}] {self.message}")


class TaskStep(BaseModel):
    """One ordered unit of work inside a task plan.

    Attributes:
        id: Unique step identifier.
        description: What the step should accomplish.
        assigned_to: Role name or agent ID the step is meant for.
        required_capability: Capability tag used to find an agent when no
            agent is registered under ``assigned_to``. Defaults to
            ``assigned_to``.
        status: Current lifecycle status.
        required_tools: Tool names the step expects to use.
        priority: Advisory priority (1-10). Does not change execution order.
        estimated_duration: Advisory duration estimate in seconds.
        started_at: When the step entered IN_PROGRESS.
        ended_at: When the step reached a terminal state.
        status_history: Every status the step has held, in order.
    """

    id: str
    description: str
    assigned_to: str
    required_capability: str = ""
    status: StepStatus = StepStatus.PENDING
    required_tools: list[str] = Field(default_factory=list)
    priority: int | None = None
    estimated_duration: float | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    status_history: list[StepStatus] = Field(default_factory=list)

    @field_validator("priority")
    @classmethod
    def priority_in_range(cls, v: int | None) -> int | None:
        """Priority, when given, must be between 1 and 10."""
        if v is not None and not 1 <= v <= 10:
            raise ValueError(f"priority must be between 1 and 10, got {v}")
        return v

    @model_validator(mode="after")
    def fill_defaults(self) -> "TaskStep":
        if not self.required_capability:
            self.required_capability = self.assigned_to
        if not self.status_history:
            self.status_history = [self.status]
        return self

    @property
    def is_terminal(self) -> bool:
        """Whether the step has completed or failed."""
        return self.status in TERMINAL_STATUSES

    def transition_to(self, new_status: StepStatus) -> None:
        """Move the step to ``new_status``.

        Raises:
            InvalidStepTransitionError: If the transition skips IN_PROGRESS
                or leaves a terminal state.
        """
        if new_status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidStepTransitionError(self.id, self.status, new_status)

        now = datetime.now(UTC)
        if new_status == StepStatus.IN_PROGRESS:
            self.started_at = now
        else:
            self.ended_at = now
        self.status = new_status
        self.status_history.append(new_status)


class TaskPlan(BaseModel):
    """The decomposition of an objective into ordered steps.

    The step list is fixed once the plan is created; only each step's
    status and timestamps change during execution.

    Attributes:
        id: Unique plan identifier.
        objective: Free-text objective the plan was derived from.
        steps: Ordered steps, executed strictly in list order.
        created_at: When the plan was created.
    """

    id: str
    objective: str
    steps: list[TaskStep] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def get_step(self, step_id: str) -> TaskStep | None:
        """Return the step with ``step_id`` or ``None``."""
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def pending_steps(self) -> list[TaskStep]:
        """Steps that have not started yet, in execution order."""
        return [s for s in self.steps if s.status == StepStatus.PENDING]

    @property
    def is_complete(self) -> bool:
        """Whether every step has reached a terminal state."""
        return all(s.is_terminal for s in self.steps)


class PendingTask(BaseModel):
    """Coordinator-local execution bookkeeping for one step.

    Attributes:
        step_id: The step this record shadows.
        description: Step description, for log and audit output.
        assigned_to: Role or agent the step was planned for.
        agent_id: The agent the step was actually delegated to.
        status: Mirrors the step's status.
        start_time: When delegation began.
        end_time: When the step reached a terminal state.
        error: Human-readable error for failed steps.
    """

    step_id: str
    description: str
    assigned_to: str
    agent_id: str | None = None
    status: StepStatus = StepStatus.IN_PROGRESS
    start_time: datetime = Field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    error: str | None = None


class StepResult(BaseModel):
    """Outcome of executing one step.

    Attributes:
        step_id: The executed step.
        success: Whether the step completed.
        message: Human-readable outcome. Never empty for failures.
        output: Structured output (agent response, error details).
        agent_id: The agent that handled the step, if one was found.
    """

    step_id: str
    success: bool
    message: str
    output: dict[str, Any] = Field(default_factory=dict)
    agent_id: str | None = None

    @model_validator(mode="after")
    def failure_needs_message(self) -> "StepResult":
        """Failed results must explain themselves."""
        if not self.success and not self.message.strip():
            raise ValueError("A failed StepResult must carry a non-empty message")
        return self


class TaskProgress(BaseModel):
    """Aggregate progress of the current plan."""

    completed: int = 0
    total: int = 0
    progress: float = 0.0

    @classmethod
    def for_plan(cls, plan: TaskPlan | None) -> "TaskProgress":
        """Compute progress by scanning ``plan``'s steps."""
        if plan is None:
            return cls()
        total = len(plan.steps)
        completed = sum(1 for s in plan.steps if s.status == StepStatus.COMPLETED)
        return cls(
            completed=completed,
            total=total,
            progress=completed / total if total > 0 else 0.0,
        )
