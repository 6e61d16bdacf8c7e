"""
This module provides the agent network: the outer orchestration loop of a run.

The network is compiled into a LangGraph `StateGraph` with a ``route`` node and
one node per agent::

    START -> route -> <agent> -> route -> ... -> END

Each pass through ``route`` first enforces the iteration cap and then asks the
router for a decision. ``Continue(agent)`` sends control to that agent's node,
which runs one agent turn and folds the turn's messages, file changes and
summary back into the graph state. ``Halt()`` (or reaching the cap) ends the
run with a terminal status. Agent turns never overlap: iteration n+1 starts
only after iteration n, including all of its tool calls, has returned.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from langchain_core.messages import AnyMessage
from langgraph.graph import END, START, StateGraph

from .agent import CodeAgent
from .router import Continue, Halt, Router, summary_router
from .state import (
    AgentResult,
    NetworkState,
    NetworkStatus,
    SharedState,
    SharedStateSnapshot,
    make_initial_state,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 15
ROUTE_NODE = "route"


@dataclass
class NetworkResult:
    state: SharedStateSnapshot
    status: NetworkStatus
    iterations: int
    results: List[AgentResult] = field(default_factory=list)
    messages: List[AnyMessage] = field(default_factory=list)


class AgentNetwork:
    """
    Runs agents in a loop chosen by a router, bounded by `max_iterations`.

    Args:
        name: Name of the network, used in logs.
        agents: Agent roster handed to the router. Agent names must be unique.
        router: Routing function; defaults to `summary_router`.
        max_iterations: Maximum number of agent invocations per run.
    """

    def __init__(
        self,
        name: str,
        agents: Sequence[CodeAgent],
        router: Router = summary_router,
        *,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> None:
        if not agents:
            raise ValueError("an agent network needs at least one agent")
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        names = [agent.name for agent in agents]
        if len(set(names)) != len(names):
            raise ValueError(f"agent names must be unique: {names}")
        if ROUTE_NODE in names:
            raise ValueError(f"'{ROUTE_NODE}' is reserved and cannot be used as an agent name")
        self.name = name
        self.agents: List[CodeAgent] = list(agents)
        self.router = router
        self.max_iterations = max_iterations
        self._agents_by_name: Dict[str, CodeAgent] = {agent.name: agent for agent in self.agents}
        self._graph = self._build_graph()

    @property
    def recursion_limit(self) -> int:
        # route + agent per iteration, plus the final route.
        return 2 * self.max_iterations + 5

    def _route(self, state: NetworkState) -> Dict[str, Any]:
        iterations = state.get("iteration_count", 0)
        if iterations >= self.max_iterations:
            LOGGER.info("Network %s reached the iteration limit (%s)", self.name, self.max_iterations)
            return {"status": NetworkStatus.HALTED_BY_LIMIT, "next_agent": None}

        decision = self.router(SharedStateSnapshot.from_state(state), tuple(self.agents))
        if isinstance(decision, Halt):
            LOGGER.info("Router halted network %s after %s iteration(s)", self.name, iterations)
            return {"status": NetworkStatus.HALTED_BY_ROUTER, "next_agent": None}
        if isinstance(decision, Continue):
            agent_name = decision.agent.name
            if agent_name not in self._agents_by_name:
                raise ValueError(f"router selected unknown agent {agent_name!r}")
            LOGGER.info("Iteration %s of %s: routing to %s", iterations + 1, self.name, agent_name)
            return {"status": NetworkStatus.RUNNING, "next_agent": agent_name}
        raise TypeError(f"router returned unsupported decision {decision!r}")

    @staticmethod
    def _next_node(state: NetworkState) -> str:
        if state.get("status") == NetworkStatus.RUNNING and state.get("next_agent"):
            return str(state["next_agent"])
        return END

    def _make_agent_node(self, agent: CodeAgent):
        async def agent_node(state: NetworkState) -> Dict[str, Any]:
            iteration = state.get("iteration_count", 0) + 1
            shared = SharedState.from_state(state)
            result = await agent.run(state["messages"], shared, iteration=iteration)
            return {
                "messages": result.messages,
                "files": shared.files,
                "summary": shared.summary,
                "results": [result],
                "iteration_count": iteration,
            }

        return agent_node

    def _build_graph(self):
        workflow = StateGraph(NetworkState)
        workflow.add_node(ROUTE_NODE, self._route)
        for agent in self.agents:
            workflow.add_node(agent.name, self._make_agent_node(agent))
            workflow.add_edge(agent.name, ROUTE_NODE)
        workflow.add_edge(START, ROUTE_NODE)
        destinations = {agent.name: agent.name for agent in self.agents}
        destinations[END] = END
        workflow.add_conditional_edges(ROUTE_NODE, self._next_node, destinations)
        return workflow.compile()

    async def run(self, prompt: str) -> NetworkResult:
        """Runs the network on `prompt` until the router halts it or the cap is reached."""
        final = await self._graph.ainvoke(
            make_initial_state(prompt),
            config={"recursion_limit": self.recursion_limit},
        )
        status = NetworkStatus(final.get("status", NetworkStatus.RUNNING))
        iterations = final.get("iteration_count", 0)
        LOGGER.info("Network %s finished with status %s after %s iteration(s)", self.name, status.value, iterations)
        return NetworkResult(
            state=SharedStateSnapshot.from_state(final),
            status=status,
            iterations=iterations,
            results=list(final.get("results") or []),
            messages=list(final.get("messages") or []),
        )


__all__ = ["AgentNetwork", "DEFAULT_MAX_ITERATIONS", "NetworkResult", "NetworkStatus"]
