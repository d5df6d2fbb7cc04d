"""
Message bus for the Agent Coordinator.

Provides a synchronous, in-process publish/subscribe hub keyed by
channel ID. Each channel keeps a bounded history (oldest messages are
evicted first) and delivers every published message to the channel's
current subscribers in subscription order.
"""

import logging
import threading
from collections import deque
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from agent_coordinator.error_codes import (
    COORD_2001_SUBSCRIBER_FAILED,
    COORD_2002_SUBSCRIBER_LIMIT,
)
from agent_coordinator.logging_config import get_structured_logger
from agent_coordinator.models.messages import Message

logger: logging.LoggerAdapter[Any] = get_structured_logger(__name__)

DEFAULT_MAX_HISTORY = 1000
DEFAULT_MAX_SUBSCRIBERS = 100

MessageHandler = Callable[[Message], None]


class MessageBusError(Exception):
    """Base exception for message bus operations.

    Attributes:
        error_code: Machine-readable error code from error_codes.py.
        message: Human-readable error description.
    """

    def __init__(self, error_code: str, message: str) -> None:
        self.error_code = error_code
        self.message = message
        super().__init__(f"[{error_code}] {message}")


class SubscriberLimitError(MessageBusError):
    """Raised when a channel already holds the maximum number of subscribers."""

    def __init__(self, channel_id: str, limit: int) -> None:
        super().__init__(
            COORD_2002_SUBSCRIBER_LIMIT,
            f"Channel '{channel_id}' already has the maximum of {limit} subscribers.",
        )


def generate_message_id() -> str:
    """Generate a new message ID."""
    return f"msg-{uuid4().hex}"


class Subscription:
    """Handle returned by :meth:`MessageBus.subscribe`.

    Calling the handle (or :meth:`unsubscribe`) removes the subscription.
    Removing it more than once is harmless.
    """

    def __init__(self, bus: "MessageBus", subscription_id: str, channel_id: str) -> None:
        self._bus = bus
        self.subscription_id = subscription_id
        self.channel_id = channel_id

    def unsubscribe(self) -> bool:
        """Stop further deliveries to this subscription.

        Returns:
            True if the subscription was still active, False otherwise.
        """
        return self._bus.unsubscribe(self.subscription_id)

    def __call__(self) -> bool:
        return self.unsubscribe()

    @property
    def active(self) -> bool:
        """Whether the subscription still receives messages."""
        return self._bus.has_subscription(self.subscription_id)

    def __repr__(self) -> str:
        return f"Subscription(id={self.subscription_id!r}, channel={self.channel_id!r})"


class MessageBus:
    """In-process publish/subscribe hub for agent messages.

    Messages published on a channel are appended to that channel's
    history and then delivered synchronously to every subscriber of the
    same channel. A subscriber that raises is logged and skipped; the
    remaining subscribers still receive the message and the history is
    unaffected. There is no cross-channel fan-out.

    Args:
        max_history: Maximum messages kept per channel.
        max_subscribers: Maximum live subscriptions per channel.
    """

    def __init__(
        self,
        max_history: int = DEFAULT_MAX_HISTORY,
        max_subscribers: int = DEFAULT_MAX_SUBSCRIBERS,
    ) -> None:
        if max_history < 1:
            raise ValueError(f"max_history must be >= 1, got {max_history}")
        if max_subscribers < 1:
            raise ValueError(f"max_subscribers must be >= 1, got {max_subscribers}")
        self._max_history = max_history
        self._max_subscribers = max_subscribers
        # channel_id -> list of (subscription_id, handler)
        self._subscribers: dict[str, list[tuple[str, MessageHandler]]] = {}
        self._history: dict[str, deque[Message]] = {}
        self._lock = threading.RLock()

    def publish(self, message: Message) -> Message:
        """Publish a message to every subscriber of its channel.

        Missing ``id`` and ``timestamp`` are filled in first; the
        completed message is what gets recorded and delivered.

        Args:
            message: The message to publish.

        Returns:
            The completed message as recorded in the channel history.
        """
        updates: dict[str, Any] = {}
        if not message.id:
            updates["id"] = generate_message_id()
        if message.timestamp is None:
            updates["timestamp"] = datetime.now(UTC)
        complete = message.model_copy(update=updates) if updates else message

        channel_id = complete.channel_id
        with self._lock:
            history = self._history.get(channel_id)
            if history is None:
                history = deque(maxlen=self._max_history)
                self._history[channel_id] = history
            history.append(complete)
            # Snapshot so handlers may (un)subscribe during delivery.
            handlers = list(self._subscribers.get(channel_id, []))

        self._log_message(complete)

        for subscription_id, handler in handlers:
            try:
                handler(complete)
            except Exception:
                logger.error(
                    "Message subscriber raised an exception",
                    extra={
                        "extra_data": {
                            "error_code": COORD_2001_SUBSCRIBER_FAILED,
                            "channel_id": channel_id,
                            "message_id": complete.id,
                            "message_type": complete.type.value,
                            "subscription_id": subscription_id,
                        }
                    },
                    exc_info=True,
                )

        return complete

    def subscribe(self, channel_id: str, callback: MessageHandler) -> Subscription:
        """Subscribe a callback to future messages on a channel.

        History is not replayed to new subscribers.

        Args:
            channel_id: The channel to subscribe to.
            callback: Callable that accepts a Message argument.

        Returns:
            A :class:`Subscription` handle for later unsubscription.

        Raises:
            SubscriberLimitError: If the channel is already at capacity.
        """
        subscription_id = str(uuid4())
        with self._lock:
            handlers = self._subscribers.setdefault(channel_id, [])
            if len(handlers) >= self._max_subscribers:
                raise SubscriberLimitError(channel_id, self._max_subscribers)
            handlers.append((subscription_id, callback))

        logger.debug(
            "Channel subscriber added",
            extra={
                "extra_data": {
                    "channel_id": channel_id,
                    "subscription_id": subscription_id,
                }
            },
        )
        return Subscription(self, subscription_id, channel_id)

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription by its ID.

        Args:
            subscription_id: The ID of a :class:`Subscription`.

        Returns:
            True if the subscription was found and removed, False otherwise.
        """
        with self._lock:
            for channel_id, handlers in self._subscribers.items():
                for i, (sid, _) in enumerate(handlers):
                    if sid == subscription_id:
                        handlers.pop(i)
                        if not handlers:
                            del self._subscribers[channel_id]
                        logger.debug(
                            "Channel subscriber removed",
                            extra={
                                "extra_data": {
                                    "subscription_id": subscription_id,
                                    "channel_id": channel_id,
                                }
                            },
                        )
                        return True
        return False

    def has_subscription(self, subscription_id: str) -> bool:
        """Whether ``subscription_id`` is still registered."""
        with self._lock:
            return any(
                sid == subscription_id
                for handlers in self._subscribers.values()
                for sid, _ in handlers
            )

    def get_channel_history(self, channel_id: str) -> tuple[Message, ...]:
        """Return a channel's history in publish order.

        Args:
            channel_id: The channel to read.

        Returns:
            Read-only snapshot of the history; empty if the channel never existed.
        """
        with self._lock:
            return tuple(self._history.get(channel_id, ()))

    def clear_channel_history(self, channel_id: str) -> int:
        """Truncate a channel's history. Subscriptions are not affected.

        Args:
            channel_id: The channel to clear.

        Returns:
            Number of messages cleared.
        """
        with self._lock:
            history = self._history.get(channel_id)
            count = len(history) if history is not None else 0
            if history is not None:
                history.clear()

        logger.info(
            "Channel history cleared",
            extra={"extra_data": {"channel_id": channel_id, "cleared_count": count}},
        )
        return count

    def subscriber_count(self, channel_id: str | None = None) -> int:
        """Number of live subscriptions on one channel, or on all channels."""
        with self._lock:
            if channel_id is not None:
                return len(self._subscribers.get(channel_id, []))
            return sum(len(handlers) for handlers in self._subscribers.values())

    @property
    def channels(self) -> list[str]:
        """Channels that have history or live subscribers."""
        with self._lock:
            return sorted(set(self._history) | set(self._subscribers))

    @property
    def max_history(self) -> int:
        """Per-channel history cap."""
        return self._max_history

    def _log_message(self, message: Message) -> None:
        """Write a diagnostic line for a published message."""
        logger.debug(
            "%s -> %s (%s)",
            message.sender_id,
            message.recipient_id or "BROADCAST",
            message.type.value,
            extra={
                "extra_data": {
                    "channel_id": message.channel_id,
                    "message_id": message.id,
                    "correlation_id": message.correlation_id,
                    "content": message.content,
                }
            },
        )
