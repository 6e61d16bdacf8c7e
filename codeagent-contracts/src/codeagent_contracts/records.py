"""
This module defines the records a run persists and returns.

When a run finishes, exactly one assistant message is stored for the project.
Failed runs store a fixed, generic error message; successful runs store the
agent's summary together with a fragment that points at the live sandbox and
carries the produced file-set. `RunOutput` is the value returned to the caller
of the function and is serialized with camelCase keys.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .files import FileSet

FRAGMENT_TITLE = "Fragment"
GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."


def _default_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class MessageRole(str, Enum):
    USER = "USER"
    ASSISTANT = "ASSISTANT"


class MessageType(str, Enum):
    RESULT = "RESULT"
    ERROR = "ERROR"


class FragmentRecord(BaseModel):
    """Artifact attached to a successful result message."""

    sandbox_url: str = Field(..., description="Public URL of the running sandbox.")
    title: str = Field(default=FRAGMENT_TITLE)
    files: FileSet = Field(default_factory=dict)


class MessageRecord(BaseModel):
    """
    A persisted chat message.

    Only `RESULT` messages may carry a fragment; `ERROR` messages never do.
    """

    project_id: str
    content: str
    role: MessageRole = MessageRole.ASSISTANT
    type: MessageType
    fragment: Optional[FragmentRecord] = None
    id: Optional[str] = None
    created_at: str = Field(default_factory=_default_timestamp)

    @model_validator(mode="after")
    def _fragment_only_on_result(self) -> "MessageRecord":
        if self.type is MessageType.ERROR and self.fragment is not None:
            raise ValueError("error messages cannot carry a fragment")
        return self

    @classmethod
    def error(cls, project_id: str) -> "MessageRecord":
        return cls(
            project_id=project_id,
            content=GENERIC_ERROR_MESSAGE,
            role=MessageRole.ASSISTANT,
            type=MessageType.ERROR,
        )

    @classmethod
    def result(
        cls,
        project_id: str,
        summary: str,
        *,
        sandbox_url: str,
        files: FileSet,
        title: str = FRAGMENT_TITLE,
    ) -> "MessageRecord":
        return cls(
            project_id=project_id,
            content=summary,
            role=MessageRole.ASSISTANT,
            type=MessageType.RESULT,
            fragment=FragmentRecord(sandbox_url=sandbox_url, title=title, files=dict(files)),
        )


class RunOutput(BaseModel):
    """Value returned by the code-agent function to its caller."""

    sandbox_url: str = Field(..., alias="sandboxUrl")
    title: str = FRAGMENT_TITLE
    files: FileSet = Field(default_factory=dict)
    summary: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


__all__ = [
    "FRAGMENT_TITLE",
    "GENERIC_ERROR_MESSAGE",
    "MessageRole",
    "MessageType",
    "FragmentRecord",
    "MessageRecord",
    "RunOutput",
]
