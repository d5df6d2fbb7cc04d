"""
Tests for the shared agent contract: buffering, policies, and replies.
"""

import json

import pytest

from agent_coordinator.agent import (
    Agent,
    format_error,
    process_eagerly,
    process_in_batches,
)
from agent_coordinator.message_bus import MessageBus, SubscriberLimitError
from agent_coordinator.models.messages import Message, MessageType
from agent_coordinator.responders import CallableResponder, TemplateResponder, specialist_responder


def _user_input(content="hello", channel="general", **kwargs) -> Message:
    return Message(
        type=kwargs.pop("type", MessageType.USER_INPUT),
        sender_id=kwargs.pop("sender_id", "user"),
        channel_id=channel,
        content=content,
        **kwargs,
    )


def _results(bus, channel="general"):
    return [m for m in bus.get_channel_history(channel) if m.type == MessageType.RESULT]


class TestPolicies:
    def test_process_eagerly(self):
        assert process_eagerly([]) is False
        assert process_eagerly([_user_input()]) is True

    def test_process_in_batches(self):
        policy = process_in_batches(3)
        assert policy([_user_input()] * 2) is False
        assert policy([_user_input()] * 3) is True

    def test_invalid_batch_size(self):
        with pytest.raises(ValueError):
            process_in_batches(0)


class TestResponders:
    @pytest.mark.asyncio
    async def test_template_responder(self):
        responder = TemplateResponder("{name} says {context}", name="Bot")
        assert await responder("hi") == "Bot says hi"

    @pytest.mark.asyncio
    async def test_specialist_template(self):
        responder = specialist_responder("QA Tester")
        assert await responder("check it") == 'Response from QA Tester: processed "check it"'

    @pytest.mark.asyncio
    async def test_callable_responder_sync_and_async(self):
        async def shout(context):
            return context.upper()

        assert await CallableResponder(lambda c: c[::-1])("abc") == "cba"
        assert await CallableResponder(shout)("abc") == "ABC"


class TestHandleMessage:
    """Tests for Agent.handle_message routing."""

    def test_subscribes_on_construction(self, bus, make_config):
        agent = Agent(make_config("echo"), bus)
        assert agent.is_subscribed
        assert bus.subscriber_count("general") == 1

    def test_user_input_produces_result(self, bus, make_config):
        Agent(
            make_config("echo"),
            bus,
            responder=TemplateResponder("echo: {context}"),
        )

        bus.publish(_user_input("ping"))

        results = _results(bus)
        assert len(results) == 1
        assert results[0].content == "echo: ping"
        assert results[0].sender_id == "echo"

    def test_ignores_own_messages(self, bus, make_config):
        agent = Agent(make_config("echo"), bus)
        bus.publish(_user_input(sender_id="echo"))
        assert agent.buffered_count == 0
        assert _results(bus) == []

    def test_ignores_messages_for_other_agents(self, bus, make_config):
        agent = Agent(make_config("echo"), bus, policy=process_in_batches(10))
        bus.publish(_user_input(recipient_id="someone-else"))
        bus.publish(_user_input(recipient_id="echo"))
        assert agent.buffered_count == 1

    def test_output_types_not_buffered(self, bus, make_config):
        agent = Agent(make_config("echo"), bus, policy=process_in_batches(10))
        for message_type in (
            MessageType.RESULT,
            MessageType.NOTIFICATION,
            MessageType.STATUS_UPDATE,
            MessageType.UI_UPDATE,
            MessageType.AGENT_RESPONSE,
            MessageType.SYSTEM_ALERT,
        ):
            bus.publish(_user_input("x", type=message_type))
        assert agent.buffered_count == 0

    def test_peers_do_not_reply_to_each_other(self, bus, make_config):
        Agent(make_config("a"), bus)
        Agent(make_config("b"), bus)

        bus.publish(_user_input("start"))

        # One reply each to the user input, none to each other's results
        assert sorted(m.sender_id for m in _results(bus)) == ["a", "b"]

    def test_batch_policy_waits_for_batch(self, bus, make_config):
        agent = Agent(
            make_config("batcher"),
            bus,
            responder=TemplateResponder("{context}"),
            policy=process_in_batches(2),
        )

        bus.publish(_user_input("one"))
        assert agent.buffered_count == 1
        assert _results(bus) == []

        bus.publish(_user_input("two"))
        assert agent.buffered_count == 0
        assert _results(bus)[0].content == "one\ntwo"

    def test_information_request_uses_handler(self, bus, make_config):
        seen = []
        agent = Agent(
            make_config("helper"),
            bus,
            information_handler=lambda a, m: a.send_response(m.sender_id, "42", m.id),
        )
        bus.subscribe("general", seen.append)

        request = bus.publish(
            _user_input("what?", type=MessageType.INFORMATION_REQUEST, sender_id="asker")
        )

        responses = [m for m in seen if m.type == MessageType.INFORMATION_RESPONSE]
        assert len(responses) == 1
        assert responses[0].recipient_id == "asker"
        assert responses[0].correlation_id == request.id
        assert agent.buffered_count == 0


class TestTaskAssignment:
    """Tests for task assignment handling."""

    def test_assignment_reply_is_correlated(self, bus, make_config):
        Agent(make_config("frontend-dev"), bus, responder=specialist_responder("Frontend"))

        assignment = bus.publish(
            Message(
                id="assign-1",
                type=MessageType.TASK_ASSIGNMENT,
                sender_id="team-leader",
                recipient_id="frontend-dev",
                channel_id="general",
                content={"stepId": "step-1", "description": "Build the navbar"},
                correlation_id="assign-1",
            )
        )

        results = _results(bus)
        assert len(results) == 1
        assert results[0].correlation_id == assignment.id
        assert "Build the navbar" in results[0].content

    def test_work_item_carries_origin(self, bus, make_config):
        agent = Agent(make_config("frontend-dev"), bus, policy=process_in_batches(5))
        agent.handle_task_assignment(
            Message(
                id="assign-2",
                type=MessageType.TASK_ASSIGNMENT,
                sender_id="team-leader",
                channel_id="general",
                content={"stepId": "step-2", "description": "Style it"},
            )
        )

        work_item = agent._buffer[0]
        assert work_item.id.startswith("task-")
        assert work_item.correlation_id == "assign-2"
        assert work_item.content == {
            "description": "Style it",
            "stepId": "step-2",
            "originalMessageId": "assign-2",
        }

    def test_assignment_without_description_ignored(self, bus, make_config):
        agent = Agent(make_config("frontend-dev"), bus, policy=process_in_batches(5))
        bus.publish(
            Message(
                type=MessageType.TASK_ASSIGNMENT,
                sender_id="team-leader",
                channel_id="general",
                content={"stepId": "step-3"},
            )
        )
        assert agent.buffered_count == 0


class TestGenerationFailure:
    """Generator errors are contained at the agent boundary."""

    def test_failure_reports_status_and_apology(self, bus, make_config):
        def explode(context):
            raise RuntimeError("model unavailable")

        Agent(make_config("flaky", name="Flaky"), bus, responder=CallableResponder(explode))

        bus.publish(
            Message(
                id="assign-9",
                type=MessageType.TASK_ASSIGNMENT,
                sender_id="team-leader",
                recipient_id="flaky",
                channel_id="general",
                content={"stepId": "step-9", "description": "Do it"},
            )
        )

        history = bus.get_channel_history("general")
        status = [m for m in history if m.type == MessageType.STATUS_UPDATE]
        assert len(status) == 1
        assert status[0].correlation_id == "assign-9"
        assert status[0].content["status"] == "failed"
        assert status[0].content["stepId"] == "step-9"
        assert "model unavailable" in status[0].content["error"]

        apology = _results(bus)
        assert len(apology) == 1
        assert apology[0].content.startswith("Sorry, Flaky could not process the request")

    def test_plain_failure_has_no_status_update(self, bus, make_config):
        def explode(context):
            raise ValueError("bad input")

        Agent(make_config("flaky"), bus, responder=CallableResponder(explode))
        bus.publish(_user_input("hi"))

        types = [m.type for m in bus.get_channel_history("general")]
        assert MessageType.STATUS_UPDATE not in types
        assert types.count(MessageType.RESULT) == 1

    def test_format_error(self):
        assert format_error(ValueError("nope")) == "ValueError: nope"


class TestAsyncProcessing:
    """Drains scheduled on a running event loop."""

    @pytest.mark.asyncio
    async def test_drain_scheduled_as_task(self, bus, make_config):
        agent = Agent(make_config("echo"), bus, responder=TemplateResponder("{context}"))

        bus.publish(_user_input("async"))
        assert _results(bus) == []

        await agent.wait_idle()
        assert [m.content for m in _results(bus)] == ["async"]

    @pytest.mark.asyncio
    async def test_deliver_processes_in_place(self, bus, make_config):
        agent = Agent(make_config("echo"), bus, responder=TemplateResponder("got {context}"))

        result = await agent.deliver(_user_input({"k": "v"}))

        assert result is not None
        assert result.content == "got " + json.dumps({"k": "v"})

    @pytest.mark.asyncio
    async def test_deliver_assignment_with_text_content(self, bus, make_config):
        agent = Agent(make_config("echo"), bus, responder=TemplateResponder("did {context}"))

        result = await agent.deliver(
            _user_input(
                "do it",
                type=MessageType.TASK_ASSIGNMENT,
                sender_id="team-leader",
                correlation_id="assign-9",
            )
        )

        assert result.content == "did do it"
        assert result.correlation_id == "assign-9"

    @pytest.mark.asyncio
    async def test_process_empty_buffer(self, bus, make_config):
        agent = Agent(make_config("echo"), bus)
        assert await agent.process_message_buffer() is None


class TestAgentHelpers:
    """Tests for config updates and outbound helpers."""

    def test_get_config_is_a_copy(self, bus, make_config):
        agent = Agent(make_config("echo", "x"), bus)
        copy = agent.get_config()
        copy.capabilities.append("y")
        assert agent.config.capabilities == ["x"]

    def test_update_config_moves_channel(self, bus, make_config):
        agent = Agent(make_config("echo"), bus)

        agent.update_config({"team_channel": "design"})

        assert bus.subscriber_count("general") == 0
        assert bus.subscriber_count("design") == 1
        bus.publish(_user_input("hi", channel="design"))
        assert len(_results(bus, "design")) == 1

    def test_update_config_to_full_channel_keeps_agent_unchanged(self, make_config):
        bus = MessageBus(max_subscribers=1)
        bus.subscribe("full", lambda message: None)
        agent = Agent(make_config("echo"), bus)

        with pytest.raises(SubscriberLimitError):
            agent.update_config({"team_channel": "full", "name": "Renamed"})

        assert agent.config.team_channel == "general"
        assert agent.name == "Echo"
        assert agent.is_subscribed
        bus.publish(_user_input("still here"))
        assert len(_results(bus)) == 1

    def test_update_config_rejects_unknown_fields(self, bus, make_config):
        agent = Agent(make_config("echo"), bus)
        with pytest.raises(ValueError):
            agent.update_config({"colour": "blue"})

    def test_log_action_broadcasts_notification(self, bus, make_config):
        agent = Agent(make_config("echo"), bus)
        message = agent.log_action("Started work")
        assert message.type == MessageType.NOTIFICATION
        assert message.content == "Started work"
        assert bus.get_channel_history("general") == (message,)

    def test_send_request(self, bus, make_config):
        agent = Agent(make_config("asker"), bus)
        message = agent.send_request("helper", {"question": "status?"})
        assert message.type == MessageType.INFORMATION_REQUEST
        assert message.recipient_id == "helper"

    def test_dispose_unsubscribes(self, bus, make_config):
        agent = Agent(make_config("echo"), bus)
        agent.dispose()
        assert not agent.is_subscribed
        bus.publish(_user_input("hi"))
        assert _results(bus) == []
