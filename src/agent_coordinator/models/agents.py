"""
Agent-related Pydantic models for the Agent Coordinator.

Defines the declarative agent configuration and the registry-owned
wrapper that tracks a live agent, its capabilities, and whether it is
eligible for capability lookup.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_TEAM_CHANNEL = "general"


class AgentConfig(BaseModel):
    """Declarative description of an agent.

    Attributes:
        id: Unique identifier (e.g. ``"frontend-dev"``).
        name: Human-readable display name.
        description: What this agent does.
        team_channel: Channel the agent subscribes to.
        capabilities: Capability tags used for step assignment.
        default_tools: Names of tools the agent may use by default.
    """

    id: str
    name: str
    description: str | None = None
    team_channel: str = DEFAULT_TEAM_CHANNEL
    capabilities: list[str] = Field(default_factory=list)
    default_tools: list[str] = Field(default_factory=list)

    @field_validator("id")
    @classmethod
    def id_must_be_non_empty(cls, v: str) -> str:
        """Agent ID must be a non-empty string."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("Agent id must not be empty")
        return stripped

    @field_validator("name")
    @classmethod
    def name_must_be_non_empty(cls, v: str) -> str:
        """Agent name must be a non-empty string."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("Agent name must not be empty")
        return stripped

    @field_validator("team_channel")
    @classmethod
    def team_channel_must_be_non_empty(cls, v: str) -> str:
        """Team channel must be a non-empty string."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("team_channel must not be empty")
        return stripped

    @field_validator("capabilities")
    @classmethod
    def capabilities_are_unique(cls, v: list[str]) -> list[str]:
        """Drop blank and repeated capability tags, keeping first-seen order."""
        seen: list[str] = []
        for tag in v:
            tag = tag.strip()
            if tag and tag not in seen:
                seen.append(tag)
        return seen

    def merged(self, update: dict[str, Any]) -> "AgentConfig":
        """Return a new config with a partial update applied.

        Args:
            update: Field names mapped to new values.

        Returns:
            A validated copy of this config with the update applied.

        Raises:
            ValueError: If ``update`` names a field that does not exist.
        """
        unknown = set(update) - set(type(self).model_fields)
        if unknown:
            raise ValueError(f"Unknown agent config fields: {sorted(unknown)}")
        return type(self).model_validate({**self.model_dump(), **update})


class RegisteredAgent(BaseModel):
    """Registry-owned record for a live agent.

    Attributes:
        id: Agent ID, unique within the registry.
        name: Display name, synced from the agent's config.
        description: Description, synced from the agent's config.
        agent: The live agent instance.
        capabilities: Capability tags, synced from the agent's config.
        enabled: Whether the agent is eligible for capability lookup.
        registered_at: When the agent was registered.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str
    name: str
    description: str = ""
    agent: Any = Field(exclude=True)
    capabilities: list[str] = Field(default_factory=list)
    enabled: bool = True
    registered_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def has_capability(self, capability: str) -> bool:
        """Whether the agent declares ``capability``."""
        return capability in self.capabilities

    def to_summary(self) -> dict[str, Any]:
        """JSON-safe summary without the live agent reference."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "capabilities": list(self.capabilities),
            "enabled": self.enabled,
            "registered_at": self.registered_at.isoformat(),
        }
