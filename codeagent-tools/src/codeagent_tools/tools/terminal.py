"""Provides the `terminal` tool for running shell commands inside the run's sandbox.

The command executes remotely; standard output and standard error are collected
incrementally through the sandbox's streaming callbacks so that, when a command
fails, whatever it printed before failing can still be shown to the agent. The
tool never raises: failures (non-zero exit, lost connection) come back as a
formatted string so the agent can react, for example by trying another command.
The whole execution is a single durable step named ``terminal``.
"""
from __future__ import annotations

import logging
from typing import Dict

from langchain_core.tools import BaseTool, tool
from pydantic import BaseModel, Field, field_validator

from ..sandbox import SandboxProvider
from ..steps import StepRunner

LOGGER = logging.getLogger(__name__)

TERMINAL_TOOL = "terminal"


class TerminalRequest(BaseModel):
    command: str = Field(..., description="Shell command to run inside the sandbox.")

    @field_validator("command")
    @classmethod
    def _validate_command(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("command must be a non-empty string")
        return value


def format_command_failure(error: BaseException, stdout: str, stderr: str) -> str:
    return f"Command failed: {error} \nstdout: {stdout}\nstderr: {stderr}"


def make_terminal_tool(sandbox_id: str, provider: SandboxProvider, steps: StepRunner) -> BaseTool:
    """Builds the `terminal` tool bound to one sandbox and step runner."""

    @tool(TERMINAL_TOOL, args_schema=TerminalRequest)
    async def terminal(command: str) -> str:
        """Use the terminal to run commands."""

        async def _run() -> str:
            buffers: Dict[str, str] = {"stdout": "", "stderr": ""}

            def _on_stdout(data: str) -> None:
                buffers["stdout"] += data

            def _on_stderr(data: str) -> None:
                buffers["stderr"] += data

            try:
                sandbox = await provider.connect(sandbox_id)
                return await sandbox.run_command(command, on_stdout=_on_stdout, on_stderr=_on_stderr)
            except Exception as exc:  # noqa: BLE001 - surfaced to the agent as tool output
                message = format_command_failure(exc, buffers["stdout"], buffers["stderr"])
                LOGGER.error(message)
                return message

        return await steps.run(TERMINAL_TOOL, _run)

    return terminal


__all__ = ["TERMINAL_TOOL", "TerminalRequest", "format_command_failure", "make_terminal_tool"]
