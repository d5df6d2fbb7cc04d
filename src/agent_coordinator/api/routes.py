"""
API route definitions for the Agent Coordinator HTTP server.

All routes are prefixed with ``/api`` and delegate to the shared
:class:`~agent_coordinator.system.AgentSystem`.

Endpoints:
- GET  /api/health                         -- system health
- GET  /api/agents                         -- all registered agents
- GET  /api/agents/{id}                    -- one registered agent
- POST /api/agents/{id}/enabled            -- enable/disable an agent
- POST /api/tasks                          -- plan and run an objective
- GET  /api/tasks/progress                 -- progress of the current plan
- GET  /api/tasks/current                  -- the current plan
- GET  /api/channels/{channel_id}/history  -- channel message history
- POST /api/channels/{channel_id}/messages -- publish to a channel
"""

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, ValidationError

from agent_coordinator import __version__
from agent_coordinator.error_codes import COORD_1001_AGENT_NOT_FOUND
from agent_coordinator.logging_config import (
    correlation_id_var,
    generate_correlation_id,
    get_structured_logger,
)
from agent_coordinator.models.messages import Message, MessageType
from agent_coordinator.system import AgentSystem

logger: logging.LoggerAdapter[Any] = get_structured_logger(__name__)

router = APIRouter(prefix="/api", tags=["api"])


class EnabledRequest(BaseModel):
    """Body of ``POST /api/agents/{id}/enabled``."""

    enabled: bool


class TaskRequest(BaseModel):
    """Body of ``POST /api/tasks``."""

    objective: str = Field(..., min_length=1, description="Objective to plan and execute.")


class PublishRequest(BaseModel):
    """Body of ``POST /api/channels/{channel_id}/messages``."""

    content: Any
    sender_id: str = "user"
    type: MessageType = MessageType.USER_INPUT
    recipient_id: str | None = None
    correlation_id: str | None = None
    priority: int = 0


def _get_system() -> AgentSystem:
    """Get the agent system singleton via the http_server module."""
    from agent_coordinator.http_server import _get_system as get_sys

    return get_sys()


def _agent_not_found(agent_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={
            "error_code": COORD_1001_AGENT_NOT_FOUND,
            "error_message": f"Agent '{agent_id}' not found in registry.",
            "timestamp": datetime.now(UTC).isoformat(),
        },
    )


@router.get("/health")
async def get_health() -> dict[str, Any]:
    """Return the current health of the agent system.

    Returns:
        JSON object with status, version, agent counts, the current plan
        ID (or null), its progress, and a timestamp.
    """
    system = _get_system()
    summary = system.registry.get_summary()
    plan = system.coordinator.current_plan

    return {
        "status": "healthy",
        "version": __version__,
        "total_agents": summary["total_agents"],
        "enabled_agents": summary["enabled_agents"],
        "current_plan_id": plan.id if plan else None,
        "progress": system.get_task_progress().model_dump(),
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/agents")
async def list_agents() -> dict[str, Any]:
    """Return every registered agent in registration order."""
    agents = [entry.to_summary() for entry in _get_system().registry.get_all_agents()]
    return {"agents": agents, "total_agents": len(agents)}


@router.get("/agents/{agent_id}")
async def get_agent_details(agent_id: str) -> dict[str, Any]:
    """Return one registered agent.

    Raises:
        HTTPException: 404 if the agent is not registered.
    """
    entry = _get_system().registry.get_agent(agent_id)
    if entry is None:
        raise _agent_not_found(agent_id)
    return entry.to_summary()


@router.post("/agents/{agent_id}/enabled")
async def set_agent_enabled(agent_id: str, request: EnabledRequest) -> dict[str, Any]:
    """Enable or disable an agent for capability lookup.

    Raises:
        HTTPException: 404 if the agent is not registered.
    """
    if not _get_system().set_agent_enabled(agent_id, request.enabled):
        raise _agent_not_found(agent_id)

    logger.info(
        "HTTP agent state changed",
        extra={"extra_data": {"agent_id": agent_id, "enabled": request.enabled}},
    )
    return {"agent_id": agent_id, "enabled": request.enabled}


@router.post("/tasks")
async def submit_task(request: TaskRequest) -> dict[str, Any]:
    """Plan an objective and run every step before responding.

    Returns:
        JSON object with the plan ID, per-step results, and final progress.
    """
    system = _get_system()
    token = correlation_id_var.set(generate_correlation_id())
    try:
        results = await system.submit_task(request.objective)
        await system.wait_idle()
    finally:
        correlation_id_var.reset(token)
    plan = system.coordinator.current_plan

    logger.info(
        "HTTP task served",
        extra={
            "extra_data": {
                "plan_id": plan.id if plan else None,
                "steps": len(results),
                "failed": sum(1 for r in results if not r.success),
            }
        },
    )
    return {
        "plan_id": plan.id if plan else None,
        "objective": request.objective,
        "results": [r.model_dump(mode="json") for r in results],
        "progress": system.get_task_progress().model_dump(),
    }


@router.get("/tasks/progress")
async def get_task_progress() -> dict[str, Any]:
    """Return completed/total steps of the current plan."""
    return _get_system().get_task_progress().model_dump()


@router.get("/tasks/current")
async def get_current_plan() -> dict[str, Any]:
    """Return the current plan, or ``{"plan": null}`` when there is none."""
    plan = _get_system().coordinator.current_plan
    return {"plan": plan.model_dump(mode="json") if plan else None}


@router.get("/channels/{channel_id}/history")
async def get_channel_history(channel_id: str) -> dict[str, Any]:
    """Return a channel's retained messages in publish order."""
    messages = _get_system().get_channel_history(channel_id)
    return {
        "channel_id": channel_id,
        "messages": [m.model_dump(mode="json") for m in messages],
        "count": len(messages),
    }


@router.post("/channels/{channel_id}/messages")
async def publish_message(channel_id: str, request: PublishRequest) -> dict[str, Any]:
    """Publish a message to a channel.

    Subscribed agents react asynchronously; their replies show up in the
    channel history.

    Raises:
        HTTPException: 400 if the message is invalid.
    """
    try:
        message = Message(
            type=request.type,
            sender_id=request.sender_id,
            recipient_id=request.recipient_id,
            channel_id=channel_id,
            content=request.content,
            correlation_id=request.correlation_id,
            priority=request.priority,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    published = _get_system().publish(message)
    logger.info(
        "HTTP message published",
        extra={
            "extra_data": {
                "channel_id": channel_id,
                "message_id": published.id,
                "type": published.type.value,
            }
        },
    )
    return published.model_dump(mode="json")
