"""
This module defines the configuration settings for the code-agent runtime.

It uses Pydantic's `BaseSettings` to create a strongly-typed settings object
populated from environment variables prefixed with ``CODEAGENT_`` (and an
optional ``.env`` file). Everything tunable about a run lives here: the model and
its reasoning effort, the sandbox template and exposed port, the iteration cap,
durable-step retry policy, storage paths, and the Redis stream the worker reads.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RuntimeSettings(BaseSettings):
    """
    Configuration model for the code-agent runtime.

    Attributes:
        model: LangChain ``provider:model`` identifier for the agent's chat model.
        reasoning_effort: Reasoning effort passed to the model, or None to omit it.
        sandbox_template: E2B template the run's sandbox is created from.
        sandbox_port: Port whose public host is exposed as the sandbox URL.
        max_iterations: Maximum number of agent invocations per run.
        agent_max_tool_rounds: Tool rounds one agent turn may run before it is ended
            without a plain-text answer.
        context7_mcp_server_url: Optional Context7 MCP endpoint for doc lookups.
        database_path: SQLite file that stores persisted messages.
        step_journal_path: SQLite file for the step journal; None keeps it in memory.
    """

    model_config = SettingsConfigDict(
        env_prefix="CODEAGENT_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    # Model
    model: str = "openai:o4-mini"
    reasoning_effort: Optional[Literal["low", "medium", "high"]] = "high"

    # Sandbox
    sandbox_template: str = "lovableclone-test16"
    sandbox_port: int = 3000
    sandbox_timeout: Optional[int] = None
    command_timeout: Optional[float] = None
    e2b_api_key: Optional[str] = Field(default=None, validation_alias="E2B_API_KEY")

    # Orchestration
    max_iterations: int = Field(default=15, ge=1)
    agent_max_tool_rounds: int = Field(default=25, ge=1)

    # Auxiliary tool discovery
    context7_mcp_server_url: Optional[str] = None

    # Storage
    database_path: str = "./codeagent.db"
    step_journal_path: Optional[str] = None

    # Durable step retries
    step_max_attempts: int = Field(default=3, ge=1)
    step_retry_initial_delay: float = Field(default=1.0, ge=0.0)
    step_retry_max_delay: float = Field(default=10.0, ge=0.0)

    # Event worker
    redis_url: str = "redis://localhost:6379/0"
    event_stream_key: str = "codeagent:events"
    worker_max_attempts: int = Field(default=3, ge=1)
    worker_block_ms: int = Field(default=5000, ge=0)

    @field_validator("reasoning_effort", "context7_mcp_server_url", "step_journal_path", mode="before")
    @classmethod
    def _blank_as_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


@lru_cache(maxsize=1)
def get_settings() -> RuntimeSettings:
    return RuntimeSettings()


__all__ = ["RuntimeSettings", "get_settings"]
