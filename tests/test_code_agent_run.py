"""End-to-end runs of the code-agent function against the in-memory sandbox."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from langchain_core.messages import AIMessage, ToolMessage

from codeagent_contracts import GENERIC_ERROR_MESSAGE, CodeAgentRunEvent, MessageType
from codeagent_runtime.config import RuntimeSettings
from codeagent_runtime.errors import StepFailedError
from codeagent_runtime.function import is_error_result, run_code_agent
from codeagent_runtime.persistence import MessageStore
from codeagent_runtime.state import SharedStateSnapshot
from codeagent_runtime.steps import MemoryStepJournal, SqliteStepJournal

HELLO_PAGE = "export default function Page() { return <h1>Hello world</h1> }"
SUMMARY = "<task_summary>\nCreated a hello world page.\n</task_summary>"


@pytest.fixture
def settings(tmp_path) -> RuntimeSettings:
    return RuntimeSettings(
        _env_file=None,
        database_path=str(tmp_path / "codeagent.db"),
        context7_mcp_server_url=None,
        step_retry_initial_delay=0.0,
        step_retry_max_delay=0.0,
    )


@pytest.fixture
def store(settings) -> MessageStore:
    message_store = MessageStore(settings.database_path)
    message_store.init_schema()
    return message_store


def _hello_world_script(tool_call_message):
    return [
        tool_call_message(
            ("terminal", {"command": "npm install --yes"}),
            ("createOrUpdateFiles", {"files": [{"path": "app/page.tsx", "content": HELLO_PAGE}]}),
        ),
        AIMessage(content=SUMMARY),
    ]


async def _run(event, settings, provider, store, model, journal=None):
    return await run_code_agent(
        event,
        settings=settings,
        provider=provider,
        store=store,
        journal=journal if journal is not None else MemoryStepJournal(),
        llm=model,
        extra_tools=[],
    )


@pytest.mark.anyio
async def test_hello_world_run_persists_result_with_fragment(
    settings, store, sandbox_provider, scripted_model, tool_call_message
) -> None:
    model = scripted_model(_hello_world_script(tool_call_message))
    event = CodeAgentRunEvent.create("Build a hello world page", "proj-1", event_id="evt-hello")

    output = await _run(event, settings, sandbox_provider, store, model)

    assert output.sandbox_url == "https://3000-sbx-lovableclone-test16-1.e2b.app"
    assert output.title == "Fragment"
    assert output.files == {"app/page.tsx": HELLO_PAGE}
    assert output.summary == SUMMARY
    assert output.model_dump(by_alias=True)["sandboxUrl"] == output.sandbox_url

    assert sandbox_provider.created == ["sbx-lovableclone-test16-1"]
    assert sandbox_provider.commands == ["npm install --yes"]
    assert sandbox_provider.files == {"app/page.tsx": HELLO_PAGE}

    messages = store.list_messages("proj-1")
    assert len(messages) == 1
    assert messages[0].type is MessageType.RESULT
    assert messages[0].content == SUMMARY
    assert messages[0].fragment is not None
    assert messages[0].fragment.sandbox_url == output.sandbox_url
    assert messages[0].fragment.title == "Fragment"
    assert messages[0].fragment.files == {"app/page.tsx": HELLO_PAGE}


@pytest.mark.anyio
async def test_run_without_summary_stops_at_fifteen_iterations_and_persists_error(
    settings, store, sandbox_provider, scripted_model, tool_call_message
) -> None:
    model = scripted_model(
        [tool_call_message(("createOrUpdateFiles", {"files": [{"path": "index.html", "content": "<p>wip</p>"}]}))]
    )
    event = CodeAgentRunEvent.create("Build forever", "proj-1", event_id="evt-limit")

    output = await _run(event, settings, sandbox_provider, store, model)

    # One extra call: the turn that wrote index.html ends with a second model answer.
    assert len(model.calls) == 16
    assert output.summary is None
    assert output.files == {"index.html": "<p>wip</p>"}
    messages = store.list_messages("proj-1")
    assert [m.type for m in messages] == [MessageType.ERROR]
    assert messages[0].content == GENERIC_ERROR_MESSAGE
    assert messages[0].fragment is None


@pytest.mark.anyio
async def test_summary_without_files_is_an_error(settings, store, sandbox_provider, scripted_model) -> None:
    model = scripted_model([AIMessage(content=SUMMARY)])
    event = CodeAgentRunEvent.create("Say hi", "proj-1", event_id="evt-nofiles")

    output = await _run(event, settings, sandbox_provider, store, model)

    assert output.summary == SUMMARY
    assert output.files == {}
    assert [m.type for m in store.list_messages("proj-1")] == [MessageType.ERROR]


@pytest.mark.anyio
async def test_mid_batch_write_failure_keeps_previous_files(
    settings, store, sandbox_provider, scripted_model, tool_call_message
) -> None:
    sandbox_provider.failing_paths.add("b.txt")
    model = scripted_model(
        [
            tool_call_message(("createOrUpdateFiles", {"files": [{"path": "keep.txt", "content": "keep"}]})),
            tool_call_message(
                (
                    "createOrUpdateFiles",
                    {"files": [{"path": "a.txt", "content": "a"}, {"path": "b.txt", "content": "b"}]},
                )
            ),
            AIMessage(content=SUMMARY),
        ]
    )
    event = CodeAgentRunEvent.create("Write files", "proj-1", event_id="evt-partial")

    output = await _run(event, settings, sandbox_provider, store, model)

    assert output.files == {"keep.txt": "keep"}
    assert sandbox_provider.files == {"keep.txt": "keep", "a.txt": "a"}
    tool_outputs = [m for m in model.calls[-1] if isinstance(m, ToolMessage)]
    assert tool_outputs[-1].content == "Error: write failed: b.txt"
    assert [m.type for m in store.list_messages("proj-1")] == [MessageType.RESULT]


@pytest.mark.anyio
async def test_replaying_an_event_reexecutes_no_step(
    tmp_path, settings, store, sandbox_provider, scripted_model, tool_call_message
) -> None:
    journal = SqliteStepJournal(str(tmp_path / "steps.sqlite3"))
    journal.init_schema()
    event = CodeAgentRunEvent.create("Build a hello world page", "proj-1", event_id="evt-replay")

    first = await _run(event, settings, sandbox_provider, store, scripted_model(_hello_world_script(tool_call_message)), journal)
    replay_model = scripted_model([])
    second = await _run(event, settings, sandbox_provider, store, replay_model, journal)

    assert second == first
    assert replay_model.calls == []
    assert sandbox_provider.created == ["sbx-lovableclone-test16-1"]
    assert sandbox_provider.commands == ["npm install --yes"]
    assert len(sandbox_provider.writes) == 1
    assert len(store.list_messages("proj-1")) == 1


@pytest.mark.anyio
async def test_transient_sandbox_failure_is_retried(
    settings, store, sandbox_provider, scripted_model, tool_call_message
) -> None:
    sandbox_provider.create = AsyncMock(side_effect=[ConnectionError("e2b timeout"), "sbx-retry"])
    model = scripted_model(_hello_world_script(tool_call_message))
    event = CodeAgentRunEvent.create("Build", "proj-1", event_id="evt-retry")

    output = await _run(event, settings, sandbox_provider, store, model)

    assert sandbox_provider.create.await_count == 2
    assert output.sandbox_url == "https://3000-sbx-retry.e2b.app"


@pytest.mark.anyio
async def test_persistent_sandbox_failure_aborts_the_run(settings, store, sandbox_provider, scripted_model) -> None:
    sandbox_provider.create = AsyncMock(side_effect=ConnectionError("e2b down"))
    event = CodeAgentRunEvent.create("Build", "proj-1", event_id="evt-down")

    with pytest.raises(StepFailedError):
        await _run(event, settings, sandbox_provider, store, scripted_model([]))

    assert sandbox_provider.create.await_count == settings.step_max_attempts
    assert store.list_messages("proj-1") == []


@pytest.mark.parametrize(
    "summary, files, expected",
    [
        (None, {}, True),
        (None, {"a": "b"}, True),
        ("<task_summary>x</task_summary>", {}, True),
        ("<task_summary>x</task_summary>", {"a": "b"}, False),
    ],
)
def test_error_classification(summary, files, expected) -> None:
    assert is_error_result(SharedStateSnapshot(files=files, summary=summary)) is expected


@pytest.mark.anyio
async def test_runaway_tool_loop_is_capped_and_persists_error(
    settings, store, sandbox_provider, scripted_model, tool_call_message
) -> None:
    settings = settings.model_copy(update={"agent_max_tool_rounds": 2, "max_iterations": 3})
    model = scripted_model(
        [],
        default=tool_call_message(("createOrUpdateFiles", {"files": [{"path": "a.txt", "content": "a"}]})),
    )
    event = CodeAgentRunEvent.create("Build forever", "proj-x", event_id="evt-runaway")

    output = await _run(event, settings, sandbox_provider, store, model)

    # Each of the three iterations stops after two tool rounds.
    assert len(model.calls) == 6
    assert output.summary is None
    assert output.files == {"a.txt": "a"}
    messages = store.list_messages("proj-x")
    assert [m.type for m in messages] == [MessageType.ERROR]
    assert messages[0].content == GENERIC_ERROR_MESSAGE
    assert messages[0].fragment is None
