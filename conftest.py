"""
Project-wide pytest fixtures.

Provides the fakes every package's tests share: an in-memory sandbox provider
that mimics the E2B surface, a scripted chat model that honours LangChain's
``bind_tools``/``ainvoke`` contract, and helpers to build tool-calling AI
messages. LLM construction is stubbed for every test so nothing reaches a real
model backend.
"""

from __future__ import annotations

import itertools
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import pytest
from dotenv import load_dotenv
from langchain_core.messages import AIMessage, BaseMessage


def _load_env_files(paths: Iterable[Path]) -> None:
    """Load local dotenv files without overriding any pre-set environment vars."""
    for env_path in paths:
        if env_path.exists():
            load_dotenv(env_path, override=False)


_REPO_ROOT = Path(__file__).resolve().parent
_load_env_files((_REPO_ROOT / ".env.test",))


class FakeCommandExit(Exception):
    """Mirrors the SDK exception raised for non-zero command exits."""


class FakeSandboxSession:
    def __init__(self, provider: "FakeSandboxProvider", sandbox_id: str) -> None:
        self._provider = provider
        self._sandbox_id = sandbox_id

    @property
    def sandbox_id(self) -> str:
        return self._sandbox_id

    async def run_command(self, command: str, *, on_stdout=None, on_stderr=None) -> str:
        self._provider.commands.append(command)
        stdout, stderr, exit_code = self._provider.command_results.get(command, ("", "", 0))
        if stdout and on_stdout is not None:
            on_stdout(stdout)
        if stderr and on_stderr is not None:
            on_stderr(stderr)
        if exit_code != 0:
            raise FakeCommandExit(f"exit status {exit_code}")
        return stdout

    async def write_file(self, path: str, content: str) -> None:
        if path in self._provider.failing_paths:
            raise OSError(f"write failed: {path}")
        self._provider.writes.append((path, content))
        self._provider.files[path] = content

    async def read_file(self, path: str) -> str:
        if path not in self._provider.files:
            raise FileNotFoundError(f"file not found: {path}")
        return self._provider.files[path]

    def get_host(self, port: int) -> str:
        return f"{port}-{self._sandbox_id}.e2b.app"


class FakeSandboxProvider:
    """In-memory stand-in for `E2BSandboxProvider`."""

    def __init__(self) -> None:
        self.files: Dict[str, str] = {}
        self.command_results: Dict[str, Tuple[str, str, int]] = {}
        self.failing_paths: set[str] = set()
        self.connect_error: Optional[Exception] = None
        self.created: List[str] = []
        self.commands: List[str] = []
        self.writes: List[Tuple[str, str]] = []
        self.connections = 0
        self._ids = itertools.count(1)

    async def create(self, template: str) -> str:
        sandbox_id = f"sbx-{template}-{next(self._ids)}"
        self.created.append(sandbox_id)
        return sandbox_id

    async def connect(self, sandbox_id: str) -> FakeSandboxSession:
        self.connections += 1
        if self.connect_error is not None:
            raise self.connect_error
        return FakeSandboxSession(self, sandbox_id)


class ScriptedChatModel:
    """Chat model stub that replays a fixed list of AI messages."""

    def __init__(self, responses: Sequence[AIMessage], default: Optional[AIMessage] = None) -> None:
        self.responses: List[AIMessage] = list(responses)
        self.default = default or AIMessage(content="Still working on it.")
        self.calls: List[List[BaseMessage]] = []
        self.bound_tools: List[Any] = []

    def bind_tools(self, tools: Sequence[Any], **_: Any) -> "ScriptedChatModel":
        self.bound_tools = list(tools)
        return self

    async def ainvoke(self, messages: Sequence[BaseMessage], *_: Any, **__: Any) -> AIMessage:
        self.calls.append(list(messages))
        if self.responses:
            return self.responses.pop(0)
        return self.default.model_copy()


class RecordingSteps:
    """Step runner that executes immediately and records step names."""

    def __init__(self) -> None:
        self.names: List[str] = []

    async def run(self, name: str, fn: Callable[[], Any]) -> Any:
        self.names.append(name)
        return await fn()


def make_tool_call_message(*calls: Tuple[str, Dict[str, Any]], content: str = "") -> AIMessage:
    tool_calls = [
        {"name": name, "args": args, "id": f"call-{name}-{index}", "type": "tool_call"}
        for index, (name, args) in enumerate(calls)
    ]
    return AIMessage(content=content, tool_calls=tool_calls)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def sandbox_provider() -> FakeSandboxProvider:
    return FakeSandboxProvider()


@pytest.fixture
def recording_steps() -> RecordingSteps:
    return RecordingSteps()


@pytest.fixture
def scripted_model() -> Callable[..., ScriptedChatModel]:
    return ScriptedChatModel


@pytest.fixture
def tool_call_message() -> Callable[..., AIMessage]:
    return make_tool_call_message


@pytest.fixture(autouse=True)
def stub_langchain_chat_models(monkeypatch: pytest.MonkeyPatch) -> None:
    """
    Prevent external LLM calls during tests by stubbing the chat model factory.
    """

    def _factory(*_: Any, **__: Any) -> ScriptedChatModel:
        return ScriptedChatModel([])

    monkeypatch.setattr(
        "codeagent_runtime.agent.init_chat_model",
        _factory,
        raising=True,
    )
