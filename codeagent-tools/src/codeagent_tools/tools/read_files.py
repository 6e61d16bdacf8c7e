"""Provides the `readFiles` tool for reading files back out of the sandbox.

Reads go straight to the sandbox filesystem, not to the file-set recorded in
shared state, so a path the agent never wrote is reported as missing by the
sandbox itself. The result is a JSON array of ``{"path", "content"}`` objects.
"""
from __future__ import annotations

import json
from typing import Dict, List

from langchain_core.tools import BaseTool, tool
from pydantic import BaseModel, Field

from ..sandbox import SandboxProvider
from ..steps import StepRunner

READ_FILES_TOOL = "readFiles"


class ReadFilesRequest(BaseModel):
    files: List[str] = Field(..., description="Paths of the files to read from the sandbox.")


def make_read_files_tool(sandbox_id: str, provider: SandboxProvider, steps: StepRunner) -> BaseTool:
    """Builds the `readFiles` tool bound to one sandbox and step runner."""

    @tool(READ_FILES_TOOL, args_schema=ReadFilesRequest)
    async def read_files(files: List[str]) -> str:
        """Read files from the sandbox."""

        async def _read() -> str:
            try:
                sandbox = await provider.connect(sandbox_id)
                contents: List[Dict[str, str]] = []
                for path in files:
                    content = await sandbox.read_file(path)
                    contents.append({"path": path, "content": content})
                return json.dumps(contents)
            except Exception as exc:  # noqa: BLE001 - surfaced to the agent as tool output
                return f"Error: {exc}"

        return await steps.run(READ_FILES_TOOL, _read)

    return read_files


__all__ = ["READ_FILES_TOOL", "ReadFilesRequest", "make_read_files_tool"]
