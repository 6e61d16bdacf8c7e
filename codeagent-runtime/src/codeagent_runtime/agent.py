"""
This module defines the code agent: a chat model bound to the sandbox tools and
driven by a small LangGraph loop.

One invocation of `CodeAgent.run` is one iteration of the agent network. Inside
it the agent alternates between the model (the ``driver`` node) and the tool
executor (the ``tools`` node) until the model answers without requesting any
tool or the turn runs out of tool rounds. It then wraps the messages produced
during that turn in an `AgentResult` and hands it to its ``on_response``
lifecycle hook together with the mutable shared state. The hook (by default
the completion detector) may record the summary.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from langchain.chat_models import init_chat_model
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AnyMessage
from langchain_core.tools import BaseTool
from langgraph.graph import END, START, StateGraph
from langgraph.prebuilt import tools_condition

from codeagent_tools import SandboxProvider, StepRunner, build_sandbox_tools

from .config import RuntimeSettings
from .lifecycle import LifecycleHooks, detect_completion
from .nodes.driver import make_driver
from .nodes.tool_node import SequentialToolNode
from .prompts import PROMPT
from .state import AgentResult, AgentState, SharedState
from .tools.mcp_loader import aload_context7_tools

LOGGER = logging.getLogger(__name__)

CODE_AGENT_NAME = "code-agent"
CODE_AGENT_DESCRIPTION = "An expert coding agent"
DEFAULT_MAX_TOOL_ROUNDS = 25


def create_chat_model(settings: RuntimeSettings) -> BaseChatModel:
    """Builds the agent's chat model from the configured model id and reasoning effort."""
    kwargs: Dict[str, Any] = {}
    if settings.reasoning_effort:
        kwargs["reasoning_effort"] = settings.reasoning_effort
    return init_chat_model(settings.model, **kwargs)


class CodeAgent:
    """
    A named agent whose turns run a driver/tools LangGraph loop.

    Attributes:
        name: Unique agent name; also prefixes the agent's durable model steps.
        description: Human-readable purpose of the agent.
        system_prompt: Prompt prepended to every model call.
        tools: Tools bound to the model, in presentation order.
        lifecycle: Hooks invoked after every turn.
        max_tool_rounds: Tool rounds a turn may run before it ends without a
            plain-text answer. The network iteration cap then decides what happens.
    """

    def __init__(
        self,
        name: str,
        description: str,
        system_prompt: str,
        llm: BaseChatModel,
        tools: Sequence[BaseTool],
        steps: StepRunner,
        *,
        lifecycle: Optional[LifecycleHooks] = None,
        max_tool_rounds: int = DEFAULT_MAX_TOOL_ROUNDS,
    ) -> None:
        if max_tool_rounds < 1:
            raise ValueError("max_tool_rounds must be at least 1")
        self.name = name
        self.description = description
        self.system_prompt = system_prompt
        self.tools: List[BaseTool] = list(tools)
        self.lifecycle = lifecycle or LifecycleHooks()
        self.max_tool_rounds = max_tool_rounds
        self._graph = self._build_graph(llm, steps)

    @property
    def infer_step(self) -> str:
        return f"{self.name}/infer"

    @property
    def recursion_limit(self) -> int:
        # driver + tools per round, plus the closing driver call.
        return 2 * self.max_tool_rounds + 5

    def _after_tools(self, state: AgentState) -> str:
        rounds = state.get("tool_rounds", 0)
        if rounds >= self.max_tool_rounds:
            LOGGER.warning(
                "Agent %s used %s tool round(s) without a final answer; ending the turn",
                self.name,
                rounds,
            )
            return END
        return "driver"

    def _build_graph(self, llm: BaseChatModel, steps: StepRunner):
        driver = make_driver(self.system_prompt, self.tools, llm, steps, infer_step=self.infer_step)
        workflow = StateGraph(AgentState)
        workflow.add_node("driver", driver)
        workflow.add_node("tools", SequentialToolNode(self.tools, steps=steps))
        workflow.add_edge(START, "driver")
        workflow.add_conditional_edges("driver", tools_condition)
        workflow.add_conditional_edges("tools", self._after_tools, {"driver": "driver", END: END})
        return workflow.compile()

    async def run(
        self,
        messages: Sequence[AnyMessage],
        shared: SharedState,
        *,
        iteration: int = 0,
    ) -> AgentResult:
        """
        Runs one turn of the agent.

        Args:
            messages: Conversation so far; the turn continues from its last message.
            shared: Shared state of the run. Updated in place with the turn's
                file changes and whatever the lifecycle hook records.
            iteration: 1-based network iteration this turn belongs to.

        Returns:
            The turn's `AgentResult`, as returned by the ``on_response`` hook.
        """
        history = list(messages)
        final = await self._graph.ainvoke(
            {"messages": history, "files": dict(shared.files), "tool_rounds": 0},
            config={"recursion_limit": self.recursion_limit},
        )
        shared.files = dict(final.get("files") or {})
        result = AgentResult(
            agent_name=self.name,
            messages=list(final["messages"][len(history):]),
            iteration=iteration,
        )
        LOGGER.debug("Agent %s produced %s message(s) on iteration %s", self.name, len(result.messages), iteration)
        if self.lifecycle.on_response is not None:
            result = self.lifecycle.on_response(result, shared)
        return result


async def build_code_agent(
    sandbox_id: str,
    provider: SandboxProvider,
    steps: StepRunner,
    settings: RuntimeSettings,
    *,
    llm: Optional[BaseChatModel] = None,
    extra_tools: Optional[Sequence[BaseTool]] = None,
) -> CodeAgent:
    """
    Assembles the code agent for one run.

    The agent gets the three sandbox tools bound to `sandbox_id`, followed by
    the auxiliary MCP tools (loaded from Context7 unless `extra_tools` is
    given), and the completion detector as its ``on_response`` hook.
    """
    tools: List[BaseTool] = build_sandbox_tools(sandbox_id, provider, steps)
    if extra_tools is None:
        extra_tools = await aload_context7_tools(settings.context7_mcp_server_url)
    taken = {tool.name for tool in tools}
    for tool in extra_tools:
        if tool.name in taken:
            LOGGER.warning("Skipping auxiliary tool %r; the name is already in use", tool.name)
            continue
        tools.append(tool)
        taken.add(tool.name)

    return CodeAgent(
        name=CODE_AGENT_NAME,
        description=CODE_AGENT_DESCRIPTION,
        system_prompt=PROMPT,
        llm=llm if llm is not None else create_chat_model(settings),
        tools=tools,
        steps=steps,
        lifecycle=LifecycleHooks(on_response=detect_completion),
        max_tool_rounds=settings.agent_max_tool_rounds,
    )


__all__ = [
    "CODE_AGENT_DESCRIPTION",
    "CODE_AGENT_NAME",
    "CodeAgent",
    "DEFAULT_MAX_TOOL_ROUNDS",
    "build_code_agent",
    "create_chat_model",
]
