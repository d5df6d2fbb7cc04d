"""
Configuration management for the Agent Coordinator.

Uses Pydantic BaseSettings for type-safe configuration loaded from
environment variables with the ``COORD_`` prefix, ``.env`` files,
and sensible defaults.
"""

from enum import StrEnum

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CompletionMode(StrEnum):
    """How the coordinator decides that a delegated step has finished.

    ``CORRELATED`` waits for the agent's result message matched by
    ``correlation_id``. ``SIMULATED`` sleeps for a fixed delay and then
    reports success without waiting on the agent.
    """

    CORRELATED = "correlated"
    SIMULATED = "simulated"


class CoordinatorConfig(BaseSettings):
    """Main coordinator configuration.

    All settings can be overridden via environment variables prefixed with ``COORD_``.
    For example, ``COORD_STEP_TIMEOUT_SECONDS`` sets :pyattr:`step_timeout_seconds`.
    """

    model_config = SettingsConfigDict(
        env_prefix="COORD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).",
    )
    log_dir: str = Field(
        default="",
        description="Directory for log files. If empty, only stderr logging is configured.",
    )

    # Message bus
    default_channel: str = Field(
        default="general",
        description="Team channel agents subscribe to when none is configured.",
    )
    max_channel_history: int = Field(
        default=1000,
        description="Maximum number of messages retained per channel (oldest evicted first).",
    )
    max_subscribers_per_channel: int = Field(
        default=100,
        description="Upper bound on live subscriptions per channel.",
    )

    # Coordinator
    completion_mode: CompletionMode = Field(
        default=CompletionMode.CORRELATED,
        description="Step completion protocol: 'correlated' or 'simulated'.",
    )
    step_timeout_seconds: float = Field(
        default=30.0,
        description="How long the coordinator waits for a correlated step result.",
    )
    simulated_delay_seconds: float = Field(
        default=1.0,
        description="Fixed delay used by the 'simulated' completion mode.",
    )
    plan_history_limit: int = Field(
        default=50,
        description="Number of analysed plans kept in memory.",
    )

    # HTTP server settings
    http_host: str = Field(
        default="127.0.0.1",
        description="Host to bind the HTTP server to.",
    )
    http_port: int = Field(
        default=8000,
        description="Port for the HTTP server.",
    )
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173", "http://127.0.0.1:3000"],
        description="Allowed CORS origins for the HTTP API.",
    )

    @field_validator("max_channel_history", "max_subscribers_per_channel", "plan_history_limit")
    @classmethod
    def limits_must_be_positive(cls, v: int) -> int:
        """Capacity limits must be at least 1."""
        if v < 1:
            raise ValueError(f"limit must be >= 1, got {v}")
        return v

    @field_validator("step_timeout_seconds")
    @classmethod
    def timeout_must_be_positive(cls, v: float) -> float:
        """Timeout must be a positive number."""
        if v <= 0:
            raise ValueError(f"step_timeout_seconds must be positive, got {v}")
        return v

    @field_validator("simulated_delay_seconds")
    @classmethod
    def delay_must_be_non_negative(cls, v: float) -> float:
        """Simulated delay must be zero or positive."""
        if v < 0:
            raise ValueError(f"simulated_delay_seconds must be >= 0, got {v}")
        return v


# ---------------------------------------------------------------------------
# Global configuration singleton
# ---------------------------------------------------------------------------

_config: CoordinatorConfig | None = None


def get_config() -> CoordinatorConfig:
    """Return the global :class:`CoordinatorConfig` singleton.

    Creates the instance on first call.  Subsequent calls return the same
    instance.  Call :func:`reset_config` in tests to clear the singleton.
    """
    global _config
    if _config is None:
        _config = CoordinatorConfig()
    return _config


def reset_config() -> None:
    """Reset the global config singleton.

    Intended for use in test fixtures to ensure a clean config per test.
    """
    global _config
    _config = None
