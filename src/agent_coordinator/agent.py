"""
Shared agent contract for the Agent Coordinator.

An :class:`Agent` is a named, capability-tagged participant on a team
channel. It buffers inbound work, lets a processing policy decide when
to drain the buffer, hands the drained context to an injected response
generator, and broadcasts the result back to the channel. Agents differ
only in their config, policy, and response generator.
"""

import asyncio
import json
import logging
from collections.abc import Callable, Sequence
from typing import Any
from uuid import uuid4

from agent_coordinator.error_codes import COORD_4001_RESPONSE_GENERATION_FAILED
from agent_coordinator.logging_config import agent_id_var, get_structured_logger
from agent_coordinator.message_bus import MessageBus, Subscription
from agent_coordinator.models.agents import AgentConfig
from agent_coordinator.models.messages import Message, MessageType
from agent_coordinator.responders import ResponseGenerator, TemplateResponder

logger: logging.LoggerAdapter[Any] = get_structured_logger(__name__)

ProcessingPolicy = Callable[[Sequence[Message]], bool]
InformationHandler = Callable[["Agent", Message], None]

# Text of these types is buffered as work. Everything else on the channel
# (results, notifications, status updates) is output from other agents.
BUFFERED_TYPES = frozenset(
    {
        MessageType.USER_INPUT,
        MessageType.COMMAND,
        MessageType.INFORMATION_RESPONSE,
        MessageType.TASK_UPDATE,
    }
)


def process_eagerly(buffer: Sequence[Message]) -> bool:
    """Drain as soon as anything is buffered."""
    return len(buffer) > 0


def process_in_batches(size: int) -> ProcessingPolicy:
    """Build a policy that drains once ``size`` messages are buffered."""
    if size < 1:
        raise ValueError(f"batch size must be >= 1, got {size}")

    def policy(buffer: Sequence[Message]) -> bool:
        return len(buffer) >= size

    policy.__name__ = f"process_in_batches({size})"
    return policy


def format_error(error: BaseException) -> str:
    """Render an exception as ``Type: message``."""
    return f"{type(error).__name__}: {error}"


def _render_content(content: Any) -> str:
    if isinstance(content, str):
        return content
    return json.dumps(content, ensure_ascii=False, default=str)


class Agent:
    """A capability-tagged unit that consumes and answers channel messages.

    On construction the agent subscribes to ``config.team_channel``. It
    ignores its own messages and messages addressed to other agents.
    Generation failures are logged and broadcast as an apology; they are
    never raised into the bus or the coordinator.

    Args:
        config: The agent's configuration.
        bus: Message bus the agent publishes to and subscribes on.
        responder: Async ``context -> str`` generator. Defaults to an echo
            template.
        policy: Decides after each buffered message whether to drain.
        information_handler: Optional hook for information requests.
    """

    def __init__(
        self,
        config: AgentConfig,
        bus: MessageBus,
        responder: ResponseGenerator | None = None,
        policy: ProcessingPolicy = process_eagerly,
        information_handler: InformationHandler | None = None,
    ) -> None:
        self.config = config
        self._bus = bus
        self._responder: ResponseGenerator = responder or TemplateResponder(
            "{name} received: {context}", name=config.name
        )
        self._policy = policy
        self._information_handler = information_handler
        self._buffer: list[Message] = []
        self._subscriptions: list[Subscription] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self._subscribe(config.team_channel)

    # -- config -------------------------------------------------------------

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def name(self) -> str:
        return self.config.name

    def get_config(self) -> AgentConfig:
        """Return a copy of the agent's config."""
        return self.config.model_copy(deep=True)

    def update_config(self, config_update: dict[str, Any]) -> AgentConfig:
        """Apply a partial config update.

        Re-subscribes when ``team_channel`` changes. The new channel is
        joined before the config is committed, so a failed subscription
        leaves the agent unchanged.

        Returns:
            The updated config.

        Raises:
            SubscriberLimitError: If the new team channel is full.
        """
        previous_channel = self.config.team_channel
        updated = self.config.merged(config_update)

        if updated.team_channel == previous_channel:
            self.config = updated
            return self.config

        subscription = self._bus.subscribe(updated.team_channel, self.handle_message)
        self._unsubscribe_all()
        self._subscriptions.append(subscription)
        self.config = updated
        logger.info(
            "Agent moved to a new team channel",
            extra={
                "extra_data": {
                    "agent_id": self.id,
                    "old_channel": previous_channel,
                    "new_channel": self.config.team_channel,
                }
            },
        )
        return self.config

    def _subscribe(self, channel_id: str) -> None:
        self._subscriptions.append(self._bus.subscribe(channel_id, self.handle_message))

    def _unsubscribe_all(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []

    # -- inbound ------------------------------------------------------------

    def handle_message(self, message: Message) -> None:
        """Bus callback for the agent's team channel."""
        if message.sender_id == self.id:
            return
        if not message.is_for(self.id):
            return

        if message.type == MessageType.TASK_ASSIGNMENT:
            self.handle_task_assignment(message)
        elif message.type == MessageType.INFORMATION_REQUEST:
            self.handle_information_request(message)
        elif message.type in BUFFERED_TYPES and isinstance(message.content, str):
            self._buffer_message(message)

    def handle_task_assignment(self, message: Message) -> None:
        """Buffer a task assignment as a work item that remembers its origin."""
        content = message.content
        if not isinstance(content, dict) or not isinstance(content.get("description"), str):
            logger.warning(
                "Ignoring task assignment without a description",
                extra={"extra_data": {"agent_id": self.id, "message_id": message.id}},
            )
            return

        work_item = Message(
            id=f"task-{uuid4().hex}",
            type=MessageType.TASK_ASSIGNMENT,
            sender_id=message.sender_id,
            channel_id=message.channel_id,
            content={
                "description": content["description"],
                "stepId": content.get("stepId"),
                "originalMessageId": message.id,
            },
            timestamp=message.timestamp,
            correlation_id=message.id,
        )
        self._buffer_message(work_item)

    def handle_information_request(self, message: Message) -> None:
        """Answer an information request. The default only logs it."""
        if self._information_handler is not None:
            self._information_handler(self, message)
            return
        logger.info(
            "Information request received",
            extra={
                "extra_data": {
                    "agent_id": self.id,
                    "sender_id": message.sender_id,
                    "content": message.content,
                }
            },
        )

    def _buffer_message(self, message: Message) -> None:
        self._buffer.append(message)
        if self.should_process_messages():
            self._schedule_processing()

    def should_process_messages(self) -> bool:
        """Whether the buffer should be drained now."""
        return self._policy(self._buffer)

    def _schedule_processing(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self.process_message_buffer())
            return

        task = loop.create_task(self.process_message_buffer())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def deliver(self, message: Message) -> Message | None:
        """Hand a message to the agent directly and process it in place.

        Returns:
            The broadcast response, or ``None`` if the policy kept buffering.
        """
        self._buffer.append(message)
        if self.should_process_messages():
            return await self.process_message_buffer()
        return None

    # -- processing ---------------------------------------------------------

    async def process_message_buffer(self) -> Message | None:
        """Drain the buffer, generate a response, and broadcast it.

        Returns:
            The broadcast result message, or ``None`` when the buffer was
            empty or generation failed.
        """
        if not self._buffer:
            return None

        batch, self._buffer = self._buffer, []
        context = "\n".join(_render_content(m.content) for m in batch)

        correlation_id: str | None = None
        step_id: str | None = None
        for item in batch:
            if item.type == MessageType.TASK_ASSIGNMENT:
                correlation_id = item.correlation_id
                step_id = item.content.get("stepId") if isinstance(item.content, dict) else None

        token = agent_id_var.set(self.id)
        try:
            try:
                response = await self.generate_response(context)
            except Exception as exc:
                logger.error(
                    "Response generation failed",
                    extra={
                        "extra_data": {
                            "error_code": COORD_4001_RESPONSE_GENERATION_FAILED,
                            "agent_id": self.id,
                            "batch_size": len(batch),
                            "correlation_id": correlation_id,
                        }
                    },
                    exc_info=True,
                )
                self._report_failure(exc, correlation_id, step_id)
                return None
            return self.broadcast_response(response, correlation_id=correlation_id)
        finally:
            agent_id_var.reset(token)

    async def generate_response(self, context: str) -> str:
        """Produce the response text for a drained context."""
        return await self._responder(context)

    async def wait_idle(self) -> None:
        """Wait until every scheduled drain has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # -- outbound -----------------------------------------------------------

    def _report_failure(
        self, error: Exception, correlation_id: str | None, step_id: str | None
    ) -> None:
        if correlation_id is not None:
            self._bus.publish(
                Message(
                    type=MessageType.STATUS_UPDATE,
                    sender_id=self.id,
                    channel_id=self.config.team_channel,
                    content={
                        "stepId": step_id,
                        "status": "failed",
                        "error": format_error(error),
                    },
                    correlation_id=correlation_id,
                )
            )
        self.broadcast_response(
            f"Sorry, {self.name} could not process the request: {format_error(error)}",
            correlation_id=correlation_id,
        )

    def broadcast_response(self, response: str, correlation_id: str | None = None) -> Message:
        """Publish a ``result`` message on the team channel."""
        return self._bus.publish(
            Message(
                type=MessageType.RESULT,
                sender_id=self.id,
                channel_id=self.config.team_channel,
                content=response,
                correlation_id=correlation_id,
            )
        )

    def send_request(self, recipient_id: str, content: Any) -> Message:
        """Ask another agent for information."""
        return self._bus.publish(
            Message(
                type=MessageType.INFORMATION_REQUEST,
                sender_id=self.id,
                recipient_id=recipient_id,
                channel_id=self.config.team_channel,
                content=content,
            )
        )

    def send_response(
        self, recipient_id: str, content: Any, correlation_id: str | None = None
    ) -> Message:
        """Answer another agent's information request."""
        return self._bus.publish(
            Message(
                type=MessageType.INFORMATION_RESPONSE,
                sender_id=self.id,
                recipient_id=recipient_id,
                channel_id=self.config.team_channel,
                content=content,
                correlation_id=correlation_id,
            )
        )

    def log_action(self, text: str) -> Message:
        """Log an activity and broadcast it as a notification."""
        logger.info(text, extra={"extra_data": {"agent_id": self.id}})
        return self._bus.publish(
            Message(
                type=MessageType.NOTIFICATION,
                sender_id=self.id,
                channel_id=self.config.team_channel,
                content=text,
            )
        )

    # -- lifecycle ----------------------------------------------------------

    @property
    def buffered_count(self) -> int:
        """Number of messages waiting in the buffer."""
        return len(self._buffer)

    @property
    def is_subscribed(self) -> bool:
        return any(s.active for s in self._subscriptions)

    def dispose(self) -> None:
        """Drop all subscriptions. Call before discarding the agent."""
        self._unsubscribe_all()

    def __repr__(self) -> str:
        return f"Agent(id={self.id!r}, capabilities={self.config.capabilities!r})"
