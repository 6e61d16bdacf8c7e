"""
Routing decisions for the agent network.

A router inspects a frozen snapshot of the shared state together with the
network's agent roster and answers either ``Continue(agent)`` or ``Halt()``.
The network never interprets shared state itself; whether a run is finished is
entirely the router's call (bounded by the network's iteration limit).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Sequence, Union

from .state import SharedStateSnapshot

if TYPE_CHECKING:  # pragma: no cover
    from .agent import CodeAgent


@dataclass(frozen=True)
class Continue:
    agent: "CodeAgent"


@dataclass(frozen=True)
class Halt:
    pass


RouteDecision = Union[Continue, Halt]
Router = Callable[[SharedStateSnapshot, Sequence["CodeAgent"]], RouteDecision]


def summary_router(state: SharedStateSnapshot, agents: Sequence["CodeAgent"]) -> RouteDecision:
    """Halts once a summary exists, otherwise hands control to the first agent."""
    if state.summary:
        return Halt()
    if not agents:
        raise ValueError("summary_router requires at least one agent")
    return Continue(agents[0])


__all__ = ["Continue", "Halt", "RouteDecision", "Router", "summary_router"]
