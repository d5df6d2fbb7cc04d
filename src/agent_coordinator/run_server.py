"""
Entry point for running the Agent Coordinator HTTP server.

Usage:
    agent-coordinator                          # HTTP server on COORD_HTTP_HOST:COORD_HTTP_PORT
    agent-coordinator --host 0.0.0.0 --port 9000
"""

import argparse

import uvicorn
from dotenv import load_dotenv

from agent_coordinator.config import get_config
from agent_coordinator.logging_config import setup_logging


def main() -> None:
    """Start the Agent Coordinator HTTP server.

    Loads ``.env``, configures structured logging from the config, and
    serves the FastAPI app with uvicorn.
    """
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Agent Coordinator -- message bus, agent registry and task coordinator.",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind the HTTP server to (overrides COORD_HTTP_HOST).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the HTTP server (overrides COORD_HTTP_PORT).",
    )

    args = parser.parse_args()

    config = get_config()
    setup_logging(level=config.log_level, log_dir=config.log_dir or None)

    _run_http(
        host=args.host or config.http_host,
        port=args.port or config.http_port,
    )


def _run_http(host: str, port: int) -> None:
    """Start the FastAPI HTTP server with uvicorn.

    Args:
        host: Host to bind to.
        port: Port to listen on.
    """
    from agent_coordinator.http_server import create_app

    app = create_app()

    print(f"Starting Agent Coordinator HTTP server on {host}:{port}")
    print(f"API docs available at http://{host}:{port}/api/docs")

    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
