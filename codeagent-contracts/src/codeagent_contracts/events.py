"""
This module defines the trigger event that starts a code-agent run.

A run is requested by publishing a `code-agent/run` event whose data carries the
user's prompt (`value`) and the project that owns the conversation
(`projectId`). The event id doubles as the run id: redelivering the same event
replays the durable steps that already completed instead of re-executing them.
The module also provides helpers for moving events in and out of Redis streams,
which is how the worker receives them.
"""
from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Dict, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

CODE_AGENT_FUNCTION_ID = "code-agent"
CODE_AGENT_RUN_EVENT = "code-agent/run"


def _default_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _default_event_id() -> str:
    return f"evt-{uuid.uuid4().hex}"


class CodeAgentRunData(BaseModel):
    """
    Payload of a `code-agent/run` event.

    Attributes:
        value: The user prompt that seeds the agent conversation.
        project_id: Identifier of the project the resulting message belongs to.
    """

    value: str = Field(..., description="User prompt / conversation seed.")
    project_id: str = Field(..., alias="projectId", description="Owning project identifier.")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("value", "project_id")
    @classmethod
    def _require_non_empty(cls, value: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("must be a non-empty string")
        return value


class CodeAgentRunEvent(BaseModel):
    """
    Envelope of the event that triggers the code-agent function.

    The `id` is stable across redeliveries and is used as the durable-step run
    id, so the same event always maps to the same step journal.
    """

    name: Literal["code-agent/run"] = CODE_AGENT_RUN_EVENT
    id: str = Field(default_factory=_default_event_id)
    timestamp: str = Field(default_factory=_default_timestamp)
    data: CodeAgentRunData

    @classmethod
    def create(cls, value: str, project_id: str, *, event_id: str | None = None) -> "CodeAgentRunEvent":
        payload: Dict[str, object] = {"data": {"value": value, "projectId": project_id}}
        if event_id:
            payload["id"] = event_id
        return cls.model_validate(payload)

    def to_stream_fields(self) -> Dict[str, str]:
        """
        Serializes the event to the flat string mapping expected by `XADD`.

        Returns:
            A dictionary of string key-value pairs.
        """
        return {
            "name": self.name,
            "id": self.id,
            "timestamp": self.timestamp,
            "data": json.dumps(self.data.model_dump(by_alias=True), separators=(",", ":")),
        }

    @classmethod
    def from_stream_fields(cls, fields: Mapping[str, str]) -> "CodeAgentRunEvent":
        """
        Rebuilds an event from a Redis stream entry.

        Raises:
            ValueError: If the entry is not a `code-agent/run` event or its data
                        payload is not valid JSON.
        """
        name = fields.get("name", CODE_AGENT_RUN_EVENT)
        if name != CODE_AGENT_RUN_EVENT:
            raise ValueError(f"Unsupported event name: {name!r}")
        raw_data = fields.get("data", "")
        try:
            data = json.loads(raw_data) if raw_data else {}
        except json.JSONDecodeError as exc:
            raise ValueError(f"Event data is not valid JSON: {exc}") from exc
        payload: Dict[str, object] = {"name": name, "data": data}
        for key in ("id", "timestamp"):
            if fields.get(key):
                payload[key] = fields[key]
        return cls.model_validate(payload)


__all__ = [
    "CODE_AGENT_FUNCTION_ID",
    "CODE_AGENT_RUN_EVENT",
    "CodeAgentRunData",
    "CodeAgentRunEvent",
]
