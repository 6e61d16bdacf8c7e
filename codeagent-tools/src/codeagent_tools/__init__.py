"""Code-agent sandbox tools (file-per-tool, built per run).

Public API:
- build_sandbox_tools(sandbox_id, provider, steps) -> list[Tool]
- E2BSandboxProvider, SandboxProvider, SandboxSession, SandboxError
- StepRunner, InlineSteps
"""

from .assembly import build_sandbox_tools
from .sandbox import (
    E2BSandboxProvider,
    E2BSandboxSession,
    SandboxError,
    SandboxProvider,
    SandboxSession,
)
from .steps import InlineSteps, StepRunner
from .tools.create_or_update_files import CREATE_OR_UPDATE_FILES_TOOL
from .tools.read_files import READ_FILES_TOOL
from .tools.terminal import TERMINAL_TOOL

__all__ = [
    "build_sandbox_tools",
    "E2BSandboxProvider",
    "E2BSandboxSession",
    "SandboxError",
    "SandboxProvider",
    "SandboxSession",
    "InlineSteps",
    "StepRunner",
    "CREATE_OR_UPDATE_FILES_TOOL",
    "READ_FILES_TOOL",
    "TERMINAL_TOOL",
]
