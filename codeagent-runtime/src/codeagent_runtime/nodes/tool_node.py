"""
This module provides the tool-execution node of the code agent's graph.

Tool calls requested by the model are executed one at a time, in the order the
model listed them, so that every call observes the shared state left behind by
the previous one. Tools that declare an injected ``state`` argument receive the
current file map without the model ever seeing that argument. When a
file-writing tool returns its updated file map as the tool message artifact,
the node adopts it as the new ``files`` value. Each batch of calls counts as
one tool round in ``tool_rounds``.

The sandbox tools journal their own work as durable steps. Any other tool (the
auxiliary MCP tools) is journaled here under ``mcp/<tool name>`` when the node
is given a step runner, so a replayed run does not call the MCP server again.

Failures never escape this node: unknown tool names, argument validation errors
and exceptions raised by a tool are all turned into error `ToolMessage`s so the
model can correct itself on its next step.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from langchain_core.messages import AIMessage, ToolMessage
from langchain_core.tools import BaseTool
from pydantic import BaseModel

from codeagent_tools import CREATE_OR_UPDATE_FILES_TOOL, READ_FILES_TOOL, TERMINAL_TOOL, StepRunner

from ..state import AgentState

LOGGER = logging.getLogger(__name__)

INJECTED_STATE_ARG = "state"
FILE_ARTIFACT_TOOLS: FrozenSet[str] = frozenset({CREATE_OR_UPDATE_FILES_TOOL})
SELF_JOURNALED_TOOLS: FrozenSet[str] = frozenset({TERMINAL_TOOL, CREATE_OR_UPDATE_FILES_TOOL, READ_FILES_TOOL})
AUXILIARY_STEP_PREFIX = "mcp/"

INVALID_TOOL_NAME_ERROR_TEMPLATE = "Error: {requested_tool} is not a valid tool, try one of [{available_tools}]."
TOOL_CALL_ERROR_TEMPLATE = "Error: {error}\n Please fix your mistakes."


def _model_fields(schema: Any) -> Iterable[str]:
    if isinstance(schema, type) and issubclass(schema, BaseModel):
        return schema.model_fields.keys()
    return ()


def _accepts_injected_state(tool: BaseTool) -> bool:
    declared = set(_model_fields(tool.args_schema))
    if INJECTED_STATE_ARG not in declared:
        return False
    return INJECTED_STATE_ARG not in set(_model_fields(tool.tool_call_schema))


class SequentialToolNode:
    """Executes the last AI message's tool calls sequentially against shared state."""

    name = "tools"

    def __init__(
        self,
        tools: Iterable[BaseTool],
        *,
        steps: Optional[StepRunner] = None,
        file_artifact_tools: FrozenSet[str] = FILE_ARTIFACT_TOOLS,
        self_journaled_tools: FrozenSet[str] = SELF_JOURNALED_TOOLS,
    ):
        self.tools_by_name: Dict[str, BaseTool] = {tool.name: tool for tool in tools}
        self._stateful = {name for name, tool in self.tools_by_name.items() if _accepts_injected_state(tool)}
        self._steps = steps
        self._file_artifact_tools = file_artifact_tools
        self._self_journaled_tools = self_journaled_tools

    async def __call__(self, state: AgentState) -> Dict[str, Any]:
        messages = state["messages"]
        last = messages[-1] if messages else None
        if not isinstance(last, AIMessage) or not last.tool_calls:
            return {"messages": []}

        files: Dict[str, str] = dict(state.get("files") or {})
        files_changed = False
        outputs: List[ToolMessage] = []
        for call in last.tool_calls:
            message = await self._run_call(call, files)
            outputs.append(message)
            updated = self._files_from_artifact(call["name"], message)
            if updated is not None:
                files = updated
                files_changed = True

        update: Dict[str, Any] = {
            "messages": outputs,
            "tool_rounds": state.get("tool_rounds", 0) + 1,
        }
        if files_changed:
            update["files"] = files
        return update

    def _files_from_artifact(self, name: str, message: ToolMessage) -> Optional[Dict[str, str]]:
        if name not in self._file_artifact_tools or message.status == "error":
            return None
        artifact = getattr(message, "artifact", None)
        if not isinstance(artifact, dict):
            return None
        return {str(path): str(content) for path, content in artifact.items()}

    async def _run_call(self, call: Dict[str, Any], files: Dict[str, str]) -> ToolMessage:
        name = call["name"]
        call_id = call.get("id") or ""
        tool = self.tools_by_name.get(name)
        if tool is None:
            LOGGER.warning("Model requested unknown tool %r", name)
            return ToolMessage(
                content=INVALID_TOOL_NAME_ERROR_TEMPLATE.format(
                    requested_tool=name,
                    available_tools=", ".join(self.tools_by_name),
                ),
                name=name,
                tool_call_id=call_id,
                status="error",
            )

        args = dict(call.get("args") or {})
        if name in self._stateful:
            args[INJECTED_STATE_ARG] = {"files": dict(files)}

        if self._steps is None or name in self._self_journaled_tools:
            return await self._invoke(tool, name, args, call_id)

        async def _journaled() -> Dict[str, Any]:
            message = await self._invoke(tool, name, args, call_id)
            return {"content": message.content, "status": message.status}

        # Journal entries carry content and status only.
        payload = await self._steps.run(f"{AUXILIARY_STEP_PREFIX}{name}", _journaled)
        return ToolMessage(
            content=payload["content"],
            name=name,
            tool_call_id=call_id,
            status=payload.get("status", "success"),
        )

    async def _invoke(self, tool: BaseTool, name: str, args: Dict[str, Any], call_id: str) -> ToolMessage:
        try:
            output = await tool.ainvoke({"type": "tool_call", "name": name, "args": args, "id": call_id})
        except Exception as exc:  # noqa: BLE001 - reported back to the model
            LOGGER.warning("Tool %s raised: %s", name, exc)
            return ToolMessage(
                content=TOOL_CALL_ERROR_TEMPLATE.format(error=repr(exc)),
                name=name,
                tool_call_id=call_id,
                status="error",
            )

        if isinstance(output, ToolMessage):
            return output
        return ToolMessage(content=str(output), name=name, tool_call_id=call_id)


__all__ = ["AUXILIARY_STEP_PREFIX", "FILE_ARTIFACT_TOOLS", "SELF_JOURNALED_TOOLS", "SequentialToolNode"]
