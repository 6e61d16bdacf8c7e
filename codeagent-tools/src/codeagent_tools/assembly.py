"""A central assembly point for the sandbox tools handed to the code agent.

Unlike module-level tools, the sandbox tools are built per run: each one closes
over the run's sandbox id and durable-step runner, which is what ties every tool
invocation to the right remote environment and to the run's step journal. The
runtime calls `build_sandbox_tools()` once per run and binds the result to its
agent.
"""
from __future__ import annotations

from typing import List, Optional

from langchain_core.tools import BaseTool

from .sandbox import SandboxProvider
from .steps import InlineSteps, StepRunner
from .tools.create_or_update_files import make_create_or_update_files_tool
from .tools.read_files import make_read_files_tool
from .tools.terminal import make_terminal_tool


def build_sandbox_tools(
    sandbox_id: str,
    provider: SandboxProvider,
    steps: Optional[StepRunner] = None,
) -> List[BaseTool]:
    """Assembles the `terminal`, `createOrUpdateFiles` and `readFiles` tools.

    Args:
        sandbox_id: Identifier of the sandbox owned by the run.
        provider: Sandbox provider used to reconnect on every invocation.
        steps: Durable-step runner; defaults to inline execution.

    Returns:
        The tools in the order they are presented to the model.
    """
    runner = steps or InlineSteps()
    return [
        make_terminal_tool(sandbox_id, provider, runner),
        make_create_or_update_files_tool(sandbox_id, provider, runner),
        make_read_files_tool(sandbox_id, provider, runner),
    ]
