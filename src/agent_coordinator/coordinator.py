"""
Team-leader coordinator for the Agent Coordinator.

The coordinator decomposes an objective into a task plan, delegates
each step over the message bus to an agent found in the registry, and
tracks every step through pending -> in-progress -> completed/failed.

Step completion follows one of two protocols (see
:class:`~agent_coordinator.config.CompletionMode`): the coordinator
either waits for the agent's ``result`` message correlated with the
assignment, bounded by a timeout, or it sleeps for a fixed simulated
delay.
"""

import asyncio
import logging
from collections import deque
from typing import Any

from agent_coordinator.agent import Agent, format_error, process_eagerly
from agent_coordinator.config import CompletionMode, CoordinatorConfig
from agent_coordinator.error_codes import (
    COORD_3001_NO_ACTIVE_PLAN,
    COORD_3003_NO_AGENT_FOR_STEP,
    COORD_3004_STEP_TIMEOUT,
    COORD_3005_STEP_EXECUTION_FAILED,
)
from agent_coordinator.logging_config import (
    correlation_id_var,
    get_structured_logger,
    plan_id_var,
)
from agent_coordinator.message_bus import MessageBus, generate_message_id
from agent_coordinator.models.agents import AgentConfig, RegisteredAgent
from agent_coordinator.models.messages import Message, MessageType
from agent_coordinator.models.tasks import (
    PendingTask,
    StepResult,
    StepStatus,
    TaskPlan,
    TaskProgress,
    TaskStep,
)
from agent_coordinator.planning import KeywordTaskPlanner, TaskPlanner
from agent_coordinator.registry import AgentRegistry

logger: logging.LoggerAdapter[Any] = get_structured_logger(__name__)

TEAM_LEADER_ID = "team-leader"
TEAM_LEADER_CAPABILITIES = ("task_planning", "team_coordination")

NO_ACTIVE_PLAN_MESSAGE = "No active plan to execute"
STEP_CANCELLED_MESSAGE = "step execution cancelled"

# Role name -> agent ID used before falling back to capability lookup.
DEFAULT_ROLE_MAPPING: dict[str, str] = {
    "architect": "architect",
    "ui-designer": "ui-designer",
    "frontend-dev": "frontend-dev",
    "backend-dev": "backend-dev",
    "qa-tester": "qa-tester",
}


class CoordinatorError(Exception):
    """Base exception for coordinator failures.

    The step-level subclasses below never escape
    :meth:`Coordinator.execute_step`; they become a failed step and a
    failed :class:`StepResult`.

    Attributes:
        error_code: Machine-readable error code from error_codes.py.
        message: Human-readable error description.
        step_id: The step concerned, when there is one.
    """

    def __init__(self, error_code: str, message: str, step_id: str | None = None) -> None:
        self.error_code = error_code
        self.message = message
        self.step_id = step_id
        super().__init__(f"[{error_code}] {message}")


class NoAgentForStepError(CoordinatorError):
    """Raised when no enabled agent can take a step."""

    def __init__(self, step: TaskStep) -> None:
        super().__init__(
            COORD_3003_NO_AGENT_FOR_STEP,
            f"No agent found for step \"{step.description}\" "
            f"(role '{step.assigned_to}', capability '{step.required_capability}')",
            step.id,
        )


class StepTimeoutError(CoordinatorError):
    """Raised when the delegated agent does not answer in time."""

    def __init__(self, step_id: str, agent_id: str, timeout_seconds: float) -> None:
        super().__init__(
            COORD_3004_STEP_TIMEOUT,
            f"Agent '{agent_id}' did not report a result within {timeout_seconds}s",
            step_id,
        )


class StepExecutionError(CoordinatorError):
    """Raised when the delegated agent reports that the step failed."""

    def __init__(self, step_id: str, agent_id: str, reason: str) -> None:
        super().__init__(
            COORD_3005_STEP_EXECUTION_FAILED,
            f"Agent '{agent_id}' failed the step: {reason}",
            step_id,
        )


class Coordinator:
    """Decomposes objectives into plans and drives them to completion.

    The coordinator owns a team-leader :class:`Agent` on the team channel.
    Plain text sent to that channel creates a plan when none is current
    and otherwise advances the current plan by one step.

    Args:
        bus: Message bus shared with the agents.
        registry: Registry used to find agents for steps.
        config: Coordinator settings (timeouts, completion mode, history).
        planner: Decomposition strategy. Defaults to :class:`KeywordTaskPlanner`.
        agent_config: Config for the team-leader agent.
        role_mapping: Role name -> agent ID overrides tried before
            capability lookup.
    """

    def __init__(
        self,
        bus: MessageBus,
        registry: AgentRegistry,
        config: CoordinatorConfig | None = None,
        planner: TaskPlanner | None = None,
        agent_config: AgentConfig | None = None,
        role_mapping: dict[str, str] | None = None,
    ) -> None:
        self._bus = bus
        self._registry = registry
        self._config = config or CoordinatorConfig()
        self._planner: TaskPlanner = planner or KeywordTaskPlanner()
        self._role_mapping = dict(DEFAULT_ROLE_MAPPING if role_mapping is None else role_mapping)

        leader_config = agent_config or AgentConfig(
            id=TEAM_LEADER_ID,
            name="Team Leader",
            description="Analyses tasks, creates plans and assigns work",
            team_channel=self._config.default_channel,
        )
        leader_config = leader_config.merged(
            {
                "capabilities": [
                    *leader_config.capabilities,
                    *TEAM_LEADER_CAPABILITIES,
                ]
            }
        )
        self.agent = Agent(
            leader_config,
            bus,
            responder=self.generate_response,
            policy=process_eagerly,
        )

        self._current_plan: TaskPlan | None = None
        self._plan_history: deque[TaskPlan] = deque(maxlen=self._config.plan_history_limit)
        self._pending_tasks: dict[str, PendingTask] = {}
        # assignment message ID -> (agent ID, future resolved by the reply)
        self._waiters: dict[str, tuple[str, asyncio.Future[Message]]] = {}
        self._execution_lock = asyncio.Lock()
        self._watch = bus.subscribe(leader_config.team_channel, self._on_channel_message)

    # -- accessors ----------------------------------------------------------

    @property
    def id(self) -> str:
        return self.agent.id

    @property
    def channel_id(self) -> str:
        return self.agent.config.team_channel

    @property
    def current_plan(self) -> TaskPlan | None:
        return self._current_plan

    @property
    def plan_history(self) -> list[TaskPlan]:
        """Analysed plans, oldest first."""
        return list(self._plan_history)

    @property
    def pending_tasks(self) -> dict[str, PendingTask]:
        return dict(self._pending_tasks)

    def get_pending_task(self, step_id: str) -> PendingTask | None:
        return self._pending_tasks.get(step_id)

    def get_task_progress(self) -> TaskProgress:
        """Completed/total steps of the current plan; zeros without a plan."""
        return TaskProgress.for_plan(self._current_plan)

    def reset(self) -> None:
        """Forget the current plan so the next message starts a new one."""
        self._current_plan = None

    # -- analysis -----------------------------------------------------------

    def analyze_task(self, objective: str) -> TaskPlan:
        """Create a plan for ``objective`` and make it the current plan."""
        self._log_action(f"Analysing task: {objective}")
        plan = self._planner.create_plan(objective)

        self._current_plan = plan
        if len(self._plan_history) == self._plan_history.maxlen:
            self._forget_pending_tasks(self._plan_history[0])
        self._plan_history.append(plan)

        logger.info(
            "Task plan created",
            extra={
                "extra_data": {
                    "plan_id": plan.id,
                    "objective": objective,
                    "steps": [s.assigned_to for s in plan.steps],
                }
            },
        )
        self._log_action(f"Created task plan {plan.id} with {len(plan.steps)} steps")
        return plan

    def _forget_pending_tasks(self, plan: TaskPlan) -> None:
        """Drop bookkeeping for a plan that left the history."""
        for step in plan.steps:
            self._pending_tasks.pop(step.id, None)

    # -- execution ----------------------------------------------------------

    async def handle_task(self, objective: str) -> list[StepResult]:
        """Analyse ``objective`` and run every step of the new plan.

        Unexpected errors are logged and broadcast rather than raised.
        """
        try:
            self.analyze_task(objective)
            return await self.run_plan()
        except Exception as exc:
            logger.error(
                "Task handling failed",
                extra={"extra_data": {"objective": objective}},
                exc_info=True,
            )
            self._log_action(f"Task handling failed: {format_error(exc)}")
            return []

    async def run_plan(self) -> list[StepResult]:
        """Execute the current plan's pending steps one at a time, in order."""
        plan = self._current_plan
        if plan is None:
            logger.info(
                NO_ACTIVE_PLAN_MESSAGE,
                extra={"extra_data": {"error_code": COORD_3001_NO_ACTIVE_PLAN}},
            )
            return []

        results: list[StepResult] = []
        token = plan_id_var.set(plan.id)
        try:
            while True:
                async with self._execution_lock:
                    pending = plan.pending_steps()
                    if not pending:
                        break
                    results.append(await self.execute_step(pending[0]))
        finally:
            plan_id_var.reset(token)

        progress = self.get_task_progress()
        self._log_action(
            f"Plan {plan.id} finished: {progress.completed}/{progress.total} steps completed"
        )
        return results

    async def execute_current_plan(self) -> str:
        """Execute the next pending step of the current plan.

        Returns:
            A human-readable status line. Without a current plan this is
            an informational no-op message.
        """
        plan = self._current_plan
        if plan is None:
            return NO_ACTIVE_PLAN_MESSAGE

        async with self._execution_lock:
            pending = plan.pending_steps()
            if not pending:
                progress = self.get_task_progress()
                return (
                    f"Plan in progress: {progress.completed}/{progress.total} steps "
                    f"completed ({round(progress.progress * 100)}%)"
                )

            step = pending[0]
            token = plan_id_var.set(plan.id)
            try:
                result = await self.execute_step(step)
            finally:
                plan_id_var.reset(token)

        if result.success:
            return f"Executed step: {step.description}\nResult: {result.message}"
        return f"Step failed: {step.description}\nError: {result.message}"

    async def execute_step(self, step: TaskStep) -> StepResult:
        """Delegate one pending step and wait for it to finish.

        Step-level problems (no agent, timeout, agent-reported failure)
        mark the step failed and are returned as ``success=False``; they
        are never raised.

        Raises:
            InvalidStepTransitionError: If ``step`` is not pending.
        """
        step.transition_to(StepStatus.IN_PROGRESS)
        self._log_action(f"Executing step: {step.description}")

        pending = PendingTask(
            step_id=step.id,
            description=step.description,
            assigned_to=step.assigned_to,
        )
        self._pending_tasks[step.id] = pending

        try:
            entry = self._find_agent_for_step(step)
            pending.agent_id = entry.id
            self._log_action(f"Assigning step \"{step.description}\" to {entry.name}")
            output = await self._delegate(step, entry)
        except asyncio.CancelledError:
            logger.warning(
                "Step execution cancelled",
                extra={"extra_data": {"step_id": step.id, "agent_id": pending.agent_id}},
            )
            self._fail_step(step, pending, STEP_CANCELLED_MESSAGE)
            raise
        except Exception as exc:
            if isinstance(exc, CoordinatorError):
                error_text = exc.message
                logger.warning(
                    "Step failed",
                    extra={
                        "extra_data": {
                            "step_id": step.id,
                            "error_code": exc.error_code,
                            "error": error_text,
                        }
                    },
                )
            else:
                error_text = format_error(exc)
                logger.error(
                    "Step raised an unexpected error",
                    extra={"extra_data": {"step_id": step.id}},
                    exc_info=True,
                )

            self._fail_step(step, pending, error_text)
            return StepResult(
                step_id=step.id,
                success=False,
                message=f"Step execution failed: {error_text}",
                output={"error": error_text},
                agent_id=pending.agent_id,
            )

        step.transition_to(StepStatus.COMPLETED)
        pending.status = StepStatus.COMPLETED
        pending.end_time = step.ended_at

        logger.info(
            "Step completed",
            extra={"extra_data": {"step_id": step.id, "agent_id": entry.id}},
        )
        return StepResult(
            step_id=step.id,
            success=True,
            message=f"Step \"{step.description}\" completed by agent {entry.id}",
            output=output,
            agent_id=entry.id,
        )

    def _fail_step(self, step: TaskStep, pending: PendingTask, error_text: str) -> None:
        step.transition_to(StepStatus.FAILED)
        pending.status = StepStatus.FAILED
        pending.end_time = step.ended_at
        pending.error = error_text
        self._log_action(f"Step \"{step.description}\" failed: {error_text}")

    def _find_agent_for_step(self, step: TaskStep) -> RegisteredAgent:
        """Resolve the agent for a step: role mapping first, then capability.

        Raises:
            NoAgentForStepError: If no enabled agent qualifies.
        """
        mapped_id = self._role_mapping.get(step.assigned_to, step.assigned_to)
        entry = self._registry.get_agent(mapped_id)
        if entry is not None and entry.enabled and entry.id != self.id:
            return entry

        for candidate in self._registry.find_agents_by_capability(step.required_capability):
            if candidate.id != self.id:
                return candidate

        raise NoAgentForStepError(step)

    async def _delegate(self, step: TaskStep, entry: RegisteredAgent) -> dict[str, Any]:
        """Publish the assignment and wait for the agent to finish."""
        assignment_id = generate_message_id()
        mode = self._config.completion_mode

        waiter: asyncio.Future[Message] | None = None
        if mode == CompletionMode.CORRELATED:
            waiter = asyncio.get_running_loop().create_future()
            self._waiters[assignment_id] = (entry.id, waiter)

        token = correlation_id_var.set(assignment_id)
        try:
            self._bus.publish(
                Message(
                    id=assignment_id,
                    type=MessageType.TASK_ASSIGNMENT,
                    sender_id=self.id,
                    recipient_id=entry.id,
                    channel_id=self.channel_id,
                    content={
                        "stepId": step.id,
                        "description": step.description,
                        "planObjective": self._current_plan.objective if self._current_plan else None,
                        "requiredTools": list(step.required_tools),
                    },
                    correlation_id=assignment_id,
                    priority=step.priority or 0,
                )
            )

            if waiter is None:
                await asyncio.sleep(self._config.simulated_delay_seconds)
                return {"stepId": step.id, "completedBy": entry.id, "simulated": True}

            timeout = self._config.step_timeout_seconds
            try:
                reply = await asyncio.wait_for(waiter, timeout)
            except TimeoutError:
                raise StepTimeoutError(step.id, entry.id, timeout) from None
        finally:
            self._waiters.pop(assignment_id, None)
            correlation_id_var.reset(token)

        if reply.type == MessageType.STATUS_UPDATE:
            content = reply.content if isinstance(reply.content, dict) else {}
            raise StepExecutionError(
                step.id, entry.id, str(content.get("error") or "agent reported failure")
            )

        return {
            "stepId": step.id,
            "completedBy": entry.id,
            "response": reply.content,
            "resultMessageId": reply.id,
        }

    # -- channel traffic ----------------------------------------------------

    def _on_channel_message(self, message: Message) -> None:
        """Resolve waiting steps and record status updates."""
        if message.sender_id == self.id:
            return

        if message.type == MessageType.STATUS_UPDATE:
            self.handle_status_update(message)

        if message.correlation_id is None:
            return
        waiting = self._waiters.get(message.correlation_id)
        if waiting is None:
            return
        agent_id, future = waiting
        if message.sender_id != agent_id or future.done():
            return

        if message.type == MessageType.RESULT:
            future.set_result(message)
        elif message.type == MessageType.STATUS_UPDATE and _reports_failure(message):
            future.set_result(message)

    def handle_status_update(self, message: Message) -> None:
        """Record a status update reported for a known pending task."""
        content = message.content if isinstance(message.content, dict) else {}
        step_id = content.get("stepId")
        pending = self._pending_tasks.get(step_id) if step_id else None
        if pending is None or pending.status in (StepStatus.COMPLETED, StepStatus.FAILED):
            return

        logger.info(
            "Status update received for step",
            extra={
                "extra_data": {
                    "step_id": step_id,
                    "sender_id": message.sender_id,
                    "reported_status": content.get("status"),
                }
            },
        )
        if content.get("error"):
            pending.error = str(content["error"])

    async def generate_response(self, context: str) -> str:
        """Team-leader response: plan on first message, then advance the plan."""
        if self._current_plan is None and context.strip():
            plan = self.analyze_task(context)
            return (
                f"Created task plan:\nObjective: {plan.objective}\n"
                f"Steps: {len(plan.steps)}"
            )

        if self._current_plan is not None:
            return await self.execute_current_plan()

        return f"Received message: {context}"

    def _log_action(self, text: str) -> None:
        self.agent.log_action(text)

    # -- lifecycle ----------------------------------------------------------

    async def wait_idle(self) -> None:
        """Wait for chat-driven work scheduled on the team-leader agent."""
        await self.agent.wait_idle()

    def dispose(self) -> None:
        """Drop the coordinator's subscriptions."""
        self._watch.unsubscribe()
        self.agent.dispose()


def _reports_failure(message: Message) -> bool:
    content = message.content
    return isinstance(content, dict) and content.get("status") == StepStatus.FAILED.value
