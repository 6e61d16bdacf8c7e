"""
This module provides `run_code_agent`, the handler for ``code-agent/run`` events.

A run creates a sandbox, lets the code agent network work on the user's prompt
inside it, classifies the outcome, and persists exactly one assistant message
for the project: the agent's summary with a fragment (sandbox URL and files) on
success, or a fixed generic error message otherwise. Every side effect is a
durable step journaled under the event id, so handling the same event twice
replays the first attempt's completed steps instead of repeating them.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.tools import BaseTool

from codeagent_contracts import (
    CODE_AGENT_FUNCTION_ID,
    FRAGMENT_TITLE,
    CodeAgentRunEvent,
    MessageRecord,
    RunOutput,
)
from codeagent_tools import E2BSandboxProvider, SandboxProvider

from .agent import build_code_agent
from .config import RuntimeSettings, get_settings
from .errors import ConfigurationError
from .network import AgentNetwork
from .persistence import MessageStore
from .router import summary_router
from .state import SharedStateSnapshot
from .steps import DurableSteps, StepJournal, build_step_journal

LOGGER = logging.getLogger(__name__)

NETWORK_NAME = "coding-agent-network"


def is_error_result(state: SharedStateSnapshot) -> bool:
    """A run failed unless it produced both a summary and at least one file."""
    return not state.summary or len(state.files) == 0


def create_sandbox_provider(settings: RuntimeSettings) -> SandboxProvider:
    if not settings.e2b_api_key:
        raise ConfigurationError("E2B_API_KEY must be set to create sandboxes")
    return E2BSandboxProvider(
        api_key=settings.e2b_api_key,
        sandbox_timeout=settings.sandbox_timeout,
        command_timeout=settings.command_timeout,
    )


def create_message_store(settings: RuntimeSettings) -> MessageStore:
    store = MessageStore(settings.database_path)
    store.init_schema()
    return store


def create_steps(run_id: str, journal: StepJournal, settings: RuntimeSettings) -> DurableSteps:
    return DurableSteps(
        run_id,
        journal,
        max_attempts=settings.step_max_attempts,
        initial_delay=settings.step_retry_initial_delay,
        max_delay=settings.step_retry_max_delay,
    )


async def run_code_agent(
    event: CodeAgentRunEvent,
    *,
    settings: Optional[RuntimeSettings] = None,
    provider: Optional[SandboxProvider] = None,
    store: Optional[MessageStore] = None,
    journal: Optional[StepJournal] = None,
    llm: Optional[BaseChatModel] = None,
    extra_tools: Optional[Sequence[BaseTool]] = None,
) -> RunOutput:
    """
    Handles one ``code-agent/run`` event end to end.

    Args:
        event: Trigger event carrying the prompt and the project id. Its id is
            the run id under which steps are journaled.
        settings: Runtime settings; defaults to `get_settings()`.
        provider: Sandbox provider; defaults to E2B.
        store: Message store; defaults to the configured SQLite database.
        journal: Step journal; defaults to the configured journal backend.
        llm: Chat model override; defaults to the configured model.
        extra_tools: Auxiliary tools; defaults to the Context7 MCP tools.

    Returns:
        The run output: sandbox URL, fragment title, files and summary.

    Raises:
        StepFailedError: A durable step kept failing after all retries.
    """
    settings = settings or get_settings()
    provider = provider or create_sandbox_provider(settings)
    store = store or create_message_store(settings)
    journal = journal if journal is not None else build_step_journal(settings.step_journal_path)
    steps = create_steps(event.id, journal, settings)
    project_id = event.data.project_id

    LOGGER.info("%s: starting run %s for project %s", CODE_AGENT_FUNCTION_ID, event.id, project_id)

    sandbox_id = await steps.run(
        "get-sandbox-id",
        lambda: provider.create(settings.sandbox_template),
    )

    agent = await build_code_agent(
        sandbox_id,
        provider,
        steps,
        settings,
        llm=llm,
        extra_tools=extra_tools,
    )
    network = AgentNetwork(
        NETWORK_NAME,
        [agent],
        summary_router,
        max_iterations=settings.max_iterations,
    )
    result = await network.run(event.data.value)

    files = dict(result.state.files)
    summary = result.state.summary
    is_error = is_error_result(result.state)

    async def _get_sandbox_url() -> str:
        sandbox = await provider.connect(sandbox_id)
        return f"https://{sandbox.get_host(settings.sandbox_port)}"

    sandbox_url = await steps.run("get-sandbox-url", _get_sandbox_url)

    async def _save_result() -> str:
        if is_error:
            record = MessageRecord.error(project_id)
        else:
            record = MessageRecord.result(
                project_id,
                summary or "",
                sandbox_url=sandbox_url,
                files=files,
                title=FRAGMENT_TITLE,
            )
        return store.create_message(record)

    await steps.run("save-result", _save_result)

    if is_error:
        LOGGER.warning(
            "Run %s ended without a usable result (status=%s, summary=%s, files=%s)",
            event.id,
            result.status.value,
            bool(summary),
            len(files),
        )
    else:
        LOGGER.info("Run %s completed with %s file(s) after %s iteration(s)", event.id, len(files), result.iterations)

    return RunOutput(sandbox_url=sandbox_url, title=FRAGMENT_TITLE, files=files, summary=summary)


__all__ = ["NETWORK_NAME", "is_error_result", "run_code_agent"]
