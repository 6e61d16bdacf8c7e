"""
This module provides the sandbox abstraction the code-agent tools run against.

A run owns exactly one remote sandbox, addressed only by its opaque identifier.
Tools never hold on to a live connection: every tool invocation reconnects by id,
which keeps each durable step self-contained and safe to re-run. The
`SandboxProvider` and `SandboxSession` protocols describe the surface the tools
need; `E2BSandboxProvider` implements them on top of E2B's async code-interpreter
sandboxes.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Union

from e2b_code_interpreter import AsyncSandbox

LOGGER = logging.getLogger(__name__)

OutputHandler = Callable[[str], Union[None, Awaitable[None]]]


class SandboxError(RuntimeError):
    """Sandbox operation failed."""


class SandboxSession(Protocol):
    """Connected handle to a single sandbox instance."""

    @property
    def sandbox_id(self) -> str:
        ...

    async def run_command(
        self,
        command: str,
        *,
        on_stdout: Optional[OutputHandler] = None,
        on_stderr: Optional[OutputHandler] = None,
    ) -> str:
        ...

    async def write_file(self, path: str, content: str) -> None:
        ...

    async def read_file(self, path: str) -> str:
        ...

    def get_host(self, port: int) -> str:
        ...


class SandboxProvider(Protocol):
    """Creates sandboxes from a template and reconnects to them by id."""

    async def create(self, template: str) -> str:
        ...

    async def connect(self, sandbox_id: str) -> SandboxSession:
        ...


class E2BSandboxSession:
    """`SandboxSession` backed by an `e2b_code_interpreter.AsyncSandbox`."""

    def __init__(self, sandbox: AsyncSandbox, *, command_timeout: Optional[float] = None) -> None:
        self._sandbox = sandbox
        self._command_timeout = command_timeout

    @property
    def sandbox_id(self) -> str:
        return self._sandbox.sandbox_id

    async def run_command(
        self,
        command: str,
        *,
        on_stdout: Optional[OutputHandler] = None,
        on_stderr: Optional[OutputHandler] = None,
    ) -> str:
        options: Dict[str, Any] = {}
        if self._command_timeout is not None:
            options["timeout"] = self._command_timeout
        # Non-zero exits raise CommandExitException from the SDK.
        result = await self._sandbox.commands.run(
            command,
            on_stdout=on_stdout,
            on_stderr=on_stderr,
            **options,
        )
        return result.stdout

    async def write_file(self, path: str, content: str) -> None:
        await self._sandbox.files.write(path, content)

    async def read_file(self, path: str) -> str:
        return await self._sandbox.files.read(path)

    def get_host(self, port: int) -> str:
        return self._sandbox.get_host(port)


class E2BSandboxProvider:
    """
    Provisions and reconnects E2B sandboxes.

    Args:
        api_key: Optional E2B API key; the SDK falls back to `E2B_API_KEY`.
        sandbox_timeout: Optional sandbox lifetime in seconds applied at creation.
        command_timeout: Optional per-command timeout in seconds.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        sandbox_timeout: Optional[int] = None,
        command_timeout: Optional[float] = None,
    ) -> None:
        self._api_key = api_key
        self._sandbox_timeout = sandbox_timeout
        self._command_timeout = command_timeout

    def _options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {}
        if self._api_key:
            options["api_key"] = self._api_key
        return options

    async def create(self, template: str) -> str:
        if not template or not template.strip():
            raise SandboxError("Sandbox template must be a non-empty string")
        options = self._options()
        if self._sandbox_timeout is not None:
            options["timeout"] = self._sandbox_timeout
        sandbox = await AsyncSandbox.create(template=template, **options)
        LOGGER.info("Created sandbox %s from template %s", sandbox.sandbox_id, template)
        return sandbox.sandbox_id

    async def connect(self, sandbox_id: str) -> E2BSandboxSession:
        if not sandbox_id:
            raise SandboxError("Sandbox id is required to connect")
        sandbox = await AsyncSandbox.connect(sandbox_id, **self._options())
        return E2BSandboxSession(sandbox, command_timeout=self._command_timeout)


__all__ = [
    "OutputHandler",
    "SandboxError",
    "SandboxSession",
    "SandboxProvider",
    "E2BSandboxSession",
    "E2BSandboxProvider",
]
