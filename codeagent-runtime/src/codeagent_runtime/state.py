"""
State shared between the agent network, the code agent and its tools.

`NetworkState` is the LangGraph state schema of both the outer network graph
and the agent's inner driver/tools subgraph. Besides the conversation it
carries the two pieces of shared state the loop revolves around:

- ``files``: the path -> content map the agent produced. Only the
  `createOrUpdateFiles` tool changes it; the tool node copies the tool's
  returned map into state.
- ``summary``: the completion summary. Absent until the completion detector
  sees the task-summary marker; never cleared afterwards.

`SharedState` is the mutable view lifecycle hooks receive, and
`SharedStateSnapshot` is the frozen view routers decide on.
"""
from __future__ import annotations

import operator
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Annotated, Any, Dict, List, Mapping, Optional, TypedDict

from langchain_core.messages import AnyMessage, HumanMessage
from langgraph.graph import add_messages


class NetworkStatus(str, Enum):
    RUNNING = "running"
    HALTED_BY_ROUTER = "halted_by_router"
    HALTED_BY_LIMIT = "halted_by_limit"


@dataclass
class AgentResult:
    """Transcript of one agent invocation (one network iteration)."""

    agent_name: str
    messages: List[AnyMessage] = field(default_factory=list)
    iteration: int = 0


class _NetworkStateRequired(TypedDict):
    messages: Annotated[list[AnyMessage], add_messages]


class AgentState(_NetworkStateRequired, total=False):
    """State of one agent turn (the driver/tools subgraph)."""

    files: Dict[str, str]
    tool_rounds: int


class NetworkState(_NetworkStateRequired, total=False):
    files: Dict[str, str]
    summary: Optional[str]
    results: Annotated[List[AgentResult], operator.add]
    iteration_count: int
    status: NetworkStatus
    next_agent: Optional[str]


@dataclass
class SharedState:
    files: Dict[str, str] = field(default_factory=dict)
    summary: Optional[str] = None

    @classmethod
    def from_state(cls, state: Mapping[str, Any]) -> "SharedState":
        return cls(files=dict(state.get("files") or {}), summary=state.get("summary"))

    def snapshot(self) -> "SharedStateSnapshot":
        return SharedStateSnapshot(files=MappingProxyType(dict(self.files)), summary=self.summary)


@dataclass(frozen=True)
class SharedStateSnapshot:
    files: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    summary: Optional[str] = None

    @classmethod
    def from_state(cls, state: Mapping[str, Any]) -> "SharedStateSnapshot":
        return SharedState.from_state(state).snapshot()

    @property
    def has_summary(self) -> bool:
        return bool(self.summary)


def make_initial_state(prompt: str) -> NetworkState:
    return {
        "messages": [HumanMessage(content=prompt)],
        "files": {},
        "summary": None,
        "results": [],
        "iteration_count": 0,
        "status": NetworkStatus.RUNNING,
        "next_agent": None,
    }


__all__ = [
    "AgentResult",
    "AgentState",
    "NetworkState",
    "NetworkStatus",
    "SharedState",
    "SharedStateSnapshot",
    "make_initial_state",
]
