"""Provides the `createOrUpdateFiles` tool that writes a batch of files into the sandbox.

This is the only tool that changes the run's shared state. It starts from the
file-set currently held in graph state (injected, never shown to the model),
writes every entry of the batch to the sandbox, and returns the merged
``path -> content`` mapping both as the tool content and as the tool message
artifact. The runtime's tool node reads the artifact to update shared state.

A batch is all-or-nothing as far as shared state is concerned: if any write
throws, the tool returns an ``Error: ...`` string without an artifact, leaving the
recorded file-set untouched even though earlier writes of the batch may already
have landed in the sandbox.
"""
from __future__ import annotations

import json
import logging
from typing import Annotated, Any, Dict, List, Optional, Tuple, Union

from langchain_core.tools import BaseTool, tool
from langgraph.prebuilt import InjectedState
from pydantic import BaseModel, Field

from codeagent_contracts import FileEntry, FileSet, merge_file_batch

from ..sandbox import SandboxProvider
from ..steps import StepRunner

LOGGER = logging.getLogger(__name__)

CREATE_OR_UPDATE_FILES_TOOL = "createOrUpdateFiles"


class CreateOrUpdateFilesRequest(BaseModel):
    files: List[FileEntry] = Field(..., description="Files to create or overwrite, applied in order.")
    state: Annotated[Dict[str, Any], InjectedState] = Field(default_factory=dict)


def make_create_or_update_files_tool(
    sandbox_id: str,
    provider: SandboxProvider,
    steps: StepRunner,
) -> BaseTool:
    """Builds the `createOrUpdateFiles` tool bound to one sandbox and step runner."""

    @tool(
        CREATE_OR_UPDATE_FILES_TOOL,
        args_schema=CreateOrUpdateFilesRequest,
        response_format="content_and_artifact",
    )
    async def create_or_update_files(
        files: List[FileEntry],
        state: Optional[Dict[str, Any]] = None,
    ) -> Tuple[str, Optional[FileSet]]:
        """Create or update files in the sandbox."""

        current: FileSet = dict((state or {}).get("files") or {})
        batch = [FileEntry.model_validate(entry) for entry in files]

        async def _write() -> Union[FileSet, str]:
            try:
                sandbox = await provider.connect(sandbox_id)
                for entry in batch:
                    await sandbox.write_file(entry.path, entry.content)
                return merge_file_batch(current, batch)
            except Exception as exc:  # noqa: BLE001 - surfaced to the agent as tool output
                LOGGER.warning("File batch failed in sandbox %s: %s", sandbox_id, exc)
                return f"Error: {exc}"

        result = await steps.run(CREATE_OR_UPDATE_FILES_TOOL, _write)
        if isinstance(result, dict):
            return json.dumps(result), result
        return str(result), None

    return create_or_update_files


__all__ = [
    "CREATE_OR_UPDATE_FILES_TOOL",
    "CreateOrUpdateFilesRequest",
    "make_create_or_update_files_tool",
]
