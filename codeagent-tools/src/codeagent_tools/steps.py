"""Protocol for the durable-step runner the sandbox tools execute inside."""
from __future__ import annotations

from typing import Awaitable, Callable, Protocol, TypeVar

T = TypeVar("T")


class StepRunner(Protocol):
    """
    Runs a named unit of work at most once per run and invocation ordinal.

    Implementations memoize the JSON-serializable result of `fn` so that a
    replayed run returns the recorded value instead of calling `fn` again.
    """

    async def run(self, name: str, fn: Callable[[], Awaitable[T]]) -> T:
        ...


class InlineSteps:
    """Step runner without memoization, for tools used outside a run."""

    async def run(self, name: str, fn: Callable[[], Awaitable[T]]) -> T:
        return await fn()


__all__ = ["StepRunner", "InlineSteps"]
