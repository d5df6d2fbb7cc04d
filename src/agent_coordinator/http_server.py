"""
FastAPI HTTP server for the Agent Coordinator.

Exposes the agent system to HTTP clients: registry inspection, task
submission and progress, and channel history and publishing. All routes
live under ``/api`` (see :mod:`agent_coordinator.api.routes`).
"""

import logging
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agent_coordinator import __version__
from agent_coordinator.config import get_config
from agent_coordinator.logging_config import get_structured_logger
from agent_coordinator.system import AgentSystem

logger: logging.LoggerAdapter[Any] = get_structured_logger(__name__)

# Lazy-initialized agent system shared by all routes.
_system_instance: AgentSystem | None = None


def _get_system() -> AgentSystem:
    """Get or create the AgentSystem singleton.

    The system is created on first access from the global config, with
    the built-in specialist team registered.
    """
    global _system_instance
    if _system_instance is None:
        _system_instance = AgentSystem(get_config())
        _system_instance.register_default_agents()
    return _system_instance


def reset_http_singletons() -> None:
    """Dispose and forget the HTTP server's agent system. For use in tests."""
    global _system_instance
    if _system_instance is not None:
        _system_instance.dispose()
    _system_instance = None


def create_app(system: AgentSystem | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        system: Agent system to serve. When omitted one is created lazily
            from the global config on the first request.

    Returns:
        Configured FastAPI application instance.
    """
    global _system_instance
    if system is not None:
        _system_instance = system

    config = get_config()

    app = FastAPI(
        title="Agent Coordinator API",
        description=(
            "REST API for the Agent Coordinator. Provides agent registry, "
            "task planning and channel messaging endpoints."
        ),
        version=__version__,
        docs_url="/api/docs",
        openapi_url="/api/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    from agent_coordinator.api.routes import router

    app.include_router(router)

    logger.info(
        "FastAPI app created",
        extra={
            "extra_data": {
                "version": __version__,
                "cors_origins": config.cors_origins,
                "docs_url": "/api/docs",
            }
        },
    )

    return app
