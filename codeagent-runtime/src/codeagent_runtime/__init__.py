"""
This module serves as the entry point for the `codeagent_runtime` package, which
runs the code agent against a sandbox: the agent network and its router, the
completion detector, durable steps, persistence and the event worker.

Like the other packages of the project, it exposes its public API lazily via
`__getattr__`, so importing the package stays cheap and submodules (which pull
in LangChain, LangGraph and the E2B SDK) are only loaded on first access.
"""

from importlib import import_module
from typing import Any, Dict, Tuple

__all__ = [
    "AgentNetwork",
    "CodeAgent",
    "DurableSteps",
    "MessageStore",
    "NetworkResult",
    "NetworkStatus",
    "RuntimeSettings",
    "build_code_agent",
    "configure_logging",
    "detect_completion",
    "get_settings",
    "is_error_result",
    "run_code_agent",
    "summary_router",
]


_ATTR_MODULE_MAP: Dict[str, Tuple[str, str]] = {
    "AgentNetwork": ("network", "AgentNetwork"),
    "CodeAgent": ("agent", "CodeAgent"),
    "DurableSteps": ("steps", "DurableSteps"),
    "MessageStore": ("persistence", "MessageStore"),
    "NetworkResult": ("network", "NetworkResult"),
    "NetworkStatus": ("state", "NetworkStatus"),
    "RuntimeSettings": ("config", "RuntimeSettings"),
    "build_code_agent": ("agent", "build_code_agent"),
    "configure_logging": ("logging_utils", "configure_logging"),
    "detect_completion": ("lifecycle", "detect_completion"),
    "get_settings": ("config", "get_settings"),
    "is_error_result": ("function", "is_error_result"),
    "run_code_agent": ("function", "run_code_agent"),
    "summary_router": ("router", "summary_router"),
}


def __getattr__(name: str) -> Any:
    """
    Lazily loads attributes from submodules of the `codeagent_runtime` package.

    Raises:
        AttributeError: If the requested attribute is not part of the public API.
    """
    try:
        module_name, attribute = _ATTR_MODULE_MAP[name]
    except KeyError as exc:  # pragma: no cover - guard against typos
        raise AttributeError(f"module 'codeagent_runtime' has no attribute {name!r}") from exc

    module = import_module(f".{module_name}", __name__)
    value = getattr(module, attribute)
    globals()[name] = value  # Cache for future lookups
    return value
