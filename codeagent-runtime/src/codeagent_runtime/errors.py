"""Exception types raised by the code-agent runtime."""
from __future__ import annotations


class CodeAgentError(RuntimeError):
    """Base class for runtime failures that abort a run."""


class ConfigurationError(CodeAgentError):
    """Runtime settings are missing or inconsistent."""


class StepFailedError(CodeAgentError):
    """A durable step kept failing after all retry attempts."""

    def __init__(self, name: str, ordinal: int, attempts: int, cause: BaseException) -> None:
        self.name = name
        self.ordinal = ordinal
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"Step '{name}' (#{ordinal}) failed after {attempts} attempt(s): "
            f"{cause.__class__.__name__}: {cause}"
        )


__all__ = ["CodeAgentError", "ConfigurationError", "StepFailedError"]
