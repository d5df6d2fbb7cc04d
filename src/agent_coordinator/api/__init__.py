"""
HTTP API routes for the Agent Coordinator.

This package contains the FastAPI route definitions that expose the
agent system over HTTP.
"""
