from __future__ import annotations

from typing import Any, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AnyMessage, SystemMessage, message_to_dict, messages_from_dict

from codeagent_tools import StepRunner

from ..state import AgentState


def make_driver(
    system_prompt: str,
    tools: Sequence[Any],
    llm: BaseChatModel,
    steps: StepRunner,
    *,
    infer_step: str,
):
    llm_with_tools = llm.bind_tools(list(tools))

    async def driver(state: AgentState) -> dict[str, list[AnyMessage]]:
        msgs: list[AnyMessage] = state["messages"]
        if not msgs or not isinstance(msgs[0], SystemMessage):
            msgs = [SystemMessage(content=system_prompt), *msgs]
        else:
            msgs = [SystemMessage(content=system_prompt), *msgs[1:]]

        async def _infer() -> dict:
            ai_msg = await llm_with_tools.ainvoke(msgs)
            return message_to_dict(ai_msg)

        # The journaled dict is rebuilt into a message so replays return the same response.
        payload = await steps.run(infer_step, _infer)
        ai_msg = messages_from_dict([payload])[0]
        return {"messages": [ai_msg]}

    return driver
