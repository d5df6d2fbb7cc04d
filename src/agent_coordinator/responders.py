"""
Response generators for agents.

An agent turns its drained message buffer into a single context string
and hands it to a response generator: an async callable that returns
the text the agent broadcasts. Generators are plain values injected at
agent construction, so a static template, a rule, or a remote model
client can be swapped in without subclassing :class:`~agent_coordinator.agent.Agent`.
"""

import inspect
from collections.abc import Awaitable, Callable
from typing import Any

ResponseGenerator = Callable[[str], Awaitable[str]]


class TemplateResponder:
    """Answers every context with a fixed template.

    The template may reference ``{name}`` (the responder's display name)
    and ``{context}`` (the drained buffer).

    Args:
        template: ``str.format`` template.
        name: Value substituted for ``{name}``.
    """

    def __init__(self, template: str, name: str = "") -> None:
        self.template = template
        self.name = name

    async def __call__(self, context: str) -> str:
        return self.template.format(name=self.name, context=context)

    def __repr__(self) -> str:
        return f"TemplateResponder(name={self.name!r})"


class CallableResponder:
    """Adapts a sync or async ``context -> str`` function.

    Useful for wrapping an external model client whose own retry and
    streaming behaviour stays outside the coordinator.
    """

    def __init__(self, fn: Callable[[str], Any]) -> None:
        self._fn = fn

    async def __call__(self, context: str) -> str:
        result = self._fn(context)
        if inspect.isawaitable(result):
            result = await result
        return str(result)


def specialist_responder(name: str) -> TemplateResponder:
    """Default template used for the built-in specialist agents."""
    return TemplateResponder('Response from {name}: processed "{context}"', name=name)
