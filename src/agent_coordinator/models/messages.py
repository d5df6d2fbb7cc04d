"""
Inter-agent messaging models for the Agent Coordinator.

Defines the data contract for messages published on the message bus.
Messages support point-to-point delivery (with ``recipient_id``),
channel broadcast (when ``recipient_id`` is ``None``), and
request/response pairs linked via ``correlation_id``.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class MessageType(StrEnum):
    """Type of inter-agent message.

    The upper-case members are the generic categories used by hosts and
    chat-style traffic; the lower-case members are the coordination
    protocol between the coordinator and its agents.
    """

    USER_INPUT = "USER_INPUT"
    AGENT_RESPONSE = "AGENT_RESPONSE"
    SYSTEM_ALERT = "SYSTEM_ALERT"
    TASK_UPDATE = "TASK_UPDATE"
    TASK_ASSIGNMENT = "task_assignment"
    STATUS_UPDATE = "status_update"
    INFORMATION_REQUEST = "information_request"
    INFORMATION_RESPONSE = "information_response"
    NOTIFICATION = "notification"
    RESULT = "result"
    COMMAND = "command"
    UI_UPDATE = "ui_update"


class Message(BaseModel):
    """A single unit of inter-agent communication.

    Messages are immutable once created. The message bus fills in
    ``id`` and ``timestamp`` when they are absent and publishes the
    completed copy.

    Attributes:
        id: Unique identifier; generated by the bus if ``None``.
        type: The type of message.
        sender_id: Agent ID of the sender, or a system pseudo ID.
        recipient_id: Agent ID of the recipient, or ``None`` for broadcast.
        channel_id: Channel the message is published on.
        content: Opaque payload; interpretation depends on ``type``.
        timestamp: Publish time; assigned by the bus if ``None``.
        correlation_id: Links a response to its originating message.
        priority: Advisory priority. Never reorders delivery.
    """

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    type: MessageType
    sender_id: str
    recipient_id: str | None = None
    channel_id: str
    content: Any = None
    timestamp: datetime | None = None
    correlation_id: str | None = None
    priority: int = 0

    @field_validator("sender_id")
    @classmethod
    def sender_id_must_be_non_empty(cls, v: str) -> str:
        """Sender ID must be a non-empty string."""
        if not v.strip():
            raise ValueError("sender_id must not be empty")
        return v

    @field_validator("channel_id")
    @classmethod
    def channel_id_must_be_non_empty(cls, v: str) -> str:
        """Channel ID must be a non-empty string."""
        if not v.strip():
            raise ValueError("channel_id must not be empty")
        return v

    @property
    def is_broadcast(self) -> bool:
        """Whether the message is addressed to every channel subscriber."""
        return self.recipient_id is None

    def is_for(self, agent_id: str) -> bool:
        """Whether ``agent_id`` should act on this message."""
        return self.recipient_id is None or self.recipient_id == agent_id
