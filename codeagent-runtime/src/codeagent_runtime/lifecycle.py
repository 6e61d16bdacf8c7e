"""
Lifecycle hooks run after each agent invocation, and the completion detector.

The code agent is told to finish its work with a message containing
``<task_summary>``. `detect_completion` is the ``on_response`` hook that looks
for that marker in the last plain-text assistant message of the turn and, when
found, stores the whole message text as the run's summary. The summary's
presence is what the router treats as "done".
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from langchain_core.messages import AIMessage

from .state import AgentResult, SharedState

LOGGER = logging.getLogger(__name__)

TASK_SUMMARY_MARKER = "<task_summary>"

ResponseHook = Callable[[AgentResult, SharedState], AgentResult]


def _message_text(message: AIMessage) -> str:
    content: Any = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text") or ""))
    return "".join(parts)


def last_assistant_text_message_content(result: AgentResult) -> Optional[str]:
    """
    Returns the text of the last assistant message in the turn that is not a
    tool call request, or None when the turn has no such message.
    """
    for message in reversed(result.messages):
        if not isinstance(message, AIMessage) or message.tool_calls:
            continue
        text = _message_text(message)
        if text:
            return text
    return None


def detect_completion(result: AgentResult, state: SharedState) -> AgentResult:
    if state.summary:
        return result
    text = last_assistant_text_message_content(result)
    if text and TASK_SUMMARY_MARKER in text:
        state.summary = text
        LOGGER.info(
            "Agent %s reported completion on iteration %s", result.agent_name, result.iteration
        )
    return result


@dataclass(frozen=True)
class LifecycleHooks:
    on_response: Optional[ResponseHook] = None


__all__ = [
    "LifecycleHooks",
    "ResponseHook",
    "TASK_SUMMARY_MARKER",
    "detect_completion",
    "last_assistant_text_message_content",
]
