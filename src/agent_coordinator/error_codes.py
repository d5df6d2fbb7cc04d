"""
Error code constants for the Agent Coordinator.

All error codes follow the ``COORD_XXXX`` format grouped by domain.
Each constant is a string suitable for use in structured error responses
and machine-readable logging.
"""

# ---------------------------------------------------------------------------
# Registry errors (COORD_1xxx)
# ---------------------------------------------------------------------------

COORD_1001_AGENT_NOT_FOUND = "COORD_1001"
"""Agent ID not found in the registry."""

COORD_1002_AGENT_ALREADY_REGISTERED = "COORD_1002"
"""Agent with the given ID is already registered."""

# ---------------------------------------------------------------------------
# Message bus errors (COORD_2xxx)
# ---------------------------------------------------------------------------

COORD_2001_SUBSCRIBER_FAILED = "COORD_2001"
"""A subscriber callback raised while a message was being delivered."""

COORD_2002_SUBSCRIBER_LIMIT = "COORD_2002"
"""The channel already holds the maximum number of subscribers."""

# ---------------------------------------------------------------------------
# Task plan / step errors (COORD_3xxx)
# ---------------------------------------------------------------------------

COORD_3001_NO_ACTIVE_PLAN = "COORD_3001"
"""An execute call was made while no plan is current."""

COORD_3002_INVALID_STEP_TRANSITION = "COORD_3002"
"""Attempted a step status transition the state machine does not allow."""

COORD_3003_NO_AGENT_FOR_STEP = "COORD_3003"
"""No enabled agent could be matched for the step."""

COORD_3004_STEP_TIMEOUT = "COORD_3004"
"""The delegated agent did not report a result within the timeout."""

COORD_3005_STEP_EXECUTION_FAILED = "COORD_3005"
"""The delegated agent reported that the step failed."""

# ---------------------------------------------------------------------------
# Agent errors (COORD_4xxx)
# ---------------------------------------------------------------------------

COORD_4001_RESPONSE_GENERATION_FAILED = "COORD_4001"
"""An agent's response generator raised; contained at the agent boundary."""
