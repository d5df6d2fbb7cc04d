"""
Integration tests for end-to-end coordination.

Tests the full path: objective -> plan -> task assignments over the bus ->
specialist replies -> step completion and progress.
"""

import pytest

from agent_coordinator.config import CompletionMode, CoordinatorConfig
from agent_coordinator.models.agents import AgentConfig
from agent_coordinator.models.messages import Message, MessageType
from agent_coordinator.models.tasks import StepStatus
from agent_coordinator.responders import CallableResponder
from agent_coordinator.system import AgentSystem


def _of_type(system, message_type, channel="general"):
    return [m for m in system.get_channel_history(channel) if m.type == message_type]


@pytest.mark.integration
class TestNavigationBarScenario:
    """The navigation-bar objective runs through the default team."""

    @pytest.mark.asyncio
    async def test_navbar_plan_runs_to_completion(self, system):
        results = await system.submit_task("设计并实现一个响应式导航栏组件")
        await system.wait_idle()

        plan = system.coordinator.current_plan
        assert len(plan.steps) >= 3
        assert plan.steps[0].assigned_to == "architect"
        assert "ui-designer" in [s.assigned_to for s in plan.steps]
        assert plan.steps[-1].assigned_to == "qa-tester"

        assert all(r.success for r in results)
        progress = system.get_task_progress()
        assert progress.completed == progress.total == len(plan.steps)
        assert progress.progress == 1.0

    @pytest.mark.asyncio
    async def test_every_assignment_gets_a_correlated_result(self, system):
        await system.submit_task("设计并实现一个响应式导航栏组件")
        await system.wait_idle()

        assignments = _of_type(system, MessageType.TASK_ASSIGNMENT)
        results = _of_type(system, MessageType.RESULT)
        result_correlations = {r.correlation_id for r in results}

        assert len(assignments) == len(system.coordinator.current_plan.steps)
        for assignment in assignments:
            assert assignment.id in result_correlations

    @pytest.mark.asyncio
    async def test_steps_run_in_plan_order(self, system):
        await system.submit_task("设计并实现一个响应式导航栏组件")
        await system.wait_idle()

        plan = system.coordinator.current_plan
        assigned_steps = [
            m.content["stepId"] for m in _of_type(system, MessageType.TASK_ASSIGNMENT)
        ]
        assert assigned_steps == [s.id for s in plan.steps]
        for earlier, later in zip(plan.steps, plan.steps[1:]):
            assert earlier.ended_at <= later.started_at


@pytest.mark.integration
class TestBaselineScenario:
    @pytest.mark.asyncio
    async def test_unmatched_objective_uses_baseline(self, system):
        results = await system.submit_task("Optimize the payment flow")
        await system.wait_idle()

        assert [r.agent_id for r in results] == ["architect", "frontend-dev", "qa-tester"]
        assert system.get_task_progress().progress == 1.0


@pytest.mark.integration
class TestDegradedTeam:
    """Plans keep running when individual steps cannot be served."""

    @pytest.mark.asyncio
    async def test_missing_capability_fails_only_that_step(self, system):
        system.unregister_agent("ui-designer")

        results = await system.submit_task("设计并实现一个响应式导航栏组件")
        await system.wait_idle()

        plan = system.coordinator.current_plan
        statuses = [s.status for s in plan.steps]
        assert statuses == [StepStatus.COMPLETED, StepStatus.FAILED, StepStatus.COMPLETED]
        assert results[1].message
        progress = system.get_task_progress()
        assert (progress.completed, progress.total) == (2, 3)

    @pytest.mark.asyncio
    async def test_failing_specialist_fails_its_step(self, test_config):
        system = AgentSystem(test_config)

        def broken(context):
            raise RuntimeError("specialist crashed")

        for agent_id, capability in (("architect", "architecture"), ("qa-tester", "testing")):
            system.create_agent(AgentConfig(id=agent_id, name=agent_id, capabilities=[capability]))
        system.create_agent(
            AgentConfig(id="frontend-dev", name="Frontend", capabilities=["frontend_development"]),
            responder=CallableResponder(broken),
        )

        results = await system.submit_task("Optimize the payment flow")
        await system.wait_idle()

        assert [r.success for r in results] == [True, False, True]
        assert "specialist crashed" in results[1].message
        apologies = [
            m.content
            for m in _of_type(system, MessageType.RESULT)
            if m.sender_id == "frontend-dev"
        ]
        assert apologies and apologies[0].startswith("Sorry, Frontend could not process")
        system.dispose()


@pytest.mark.integration
class TestSimulatedMode:
    @pytest.mark.asyncio
    async def test_simulated_completion(self):
        system = AgentSystem(
            CoordinatorConfig(
                completion_mode=CompletionMode.SIMULATED, simulated_delay_seconds=0.0
            )
        )
        system.register_default_agents()

        results = await system.submit_task("backend API with database")
        await system.wait_idle()

        assert all(r.output.get("simulated") for r in results)
        assert system.get_task_progress().progress == 1.0
        system.dispose()


@pytest.mark.integration
class TestChatDrivenTeam:
    """A user chatting with the team leader drives the plan step by step."""

    @pytest.mark.asyncio
    async def test_chat_plan_then_steps(self, system):
        def say(text):
            system.publish(
                Message(
                    type=MessageType.USER_INPUT,
                    sender_id="user",
                    recipient_id="team-leader",
                    channel_id="general",
                    content=text,
                )
            )

        say("Optimize the payment flow")
        await system.wait_idle()
        plan = system.coordinator.current_plan
        assert plan is not None

        for _ in plan.steps:
            say("next")
            await system.wait_idle()

        assert plan.is_complete
        assert system.get_task_progress().progress == 1.0

        say("status?")
        await system.wait_idle()
        leader_replies = [
            m.content
            for m in _of_type(system, MessageType.RESULT)
            if m.sender_id == "team-leader"
        ]
        assert leader_replies[-1] == "Plan in progress: 3/3 steps completed (100%)"


@pytest.mark.integration
class TestSubscriptionsAcrossSystem:
    def test_observer_sees_coordination_traffic_only_on_its_channel(self, system):
        general, other = [], []
        system.subscribe("general", general.append)
        system.subscribe("other", other.append)

        system.coordinator.analyze_task("UI")

        assert general
        assert all(m.type == MessageType.NOTIFICATION for m in general)
        assert other == []
