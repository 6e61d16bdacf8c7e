"""
Root logging setup for the ``codeagent`` CLI and its Redis event worker.

A run logs its durable-step replays and retries, tool failures, routing
decisions and the persisted outcome under ``codeagent_runtime.*`` and
``codeagent_tools.*``. Those records go to stdout so a worker's output can be
followed per run id. The clients a run talks to (E2B, the Context7 MCP
server over HTTP) log every request at INFO and are held at WARNING unless
the root level is stricter.

The level comes from the ``--log-level`` CLI flag when given, otherwise from
``CODEAGENT_LOG_LEVEL`` (default ``INFO``). ``CODEAGENT_LOG_FORMAT`` replaces
the record format and is read on every call.
"""
from __future__ import annotations

import logging
import os
import sys
from typing import Final, Optional, Tuple

DEFAULT_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DEFAULT_DATEFMT: Final[str] = "%Y-%m-%d %H:%M:%S"
CLIENT_LOGGERS: Final[Tuple[str, ...]] = ("httpx", "httpcore", "e2b", "mcp", "langchain_mcp_adapters")
_CONFIGURED: bool = False


def _resolve_level(name: Optional[str]) -> int:
    if not name:
        return logging.INFO
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: Optional[str] = None, *, force: bool = False) -> None:
    """
    Send code-agent logs to stdout.

    Args:
        level: Level name overriding ``CODEAGENT_LOG_LEVEL``.
        force: Drop existing root handlers and configure again.
    """
    global _CONFIGURED
    if _CONFIGURED and not force:
        return

    root_logger = logging.getLogger()
    if force:
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)

    resolved = _resolve_level(level or os.environ.get("CODEAGENT_LOG_LEVEL"))
    root_logger.setLevel(resolved)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            fmt=os.environ.get("CODEAGENT_LOG_FORMAT") or DEFAULT_FORMAT,
            datefmt=DEFAULT_DATEFMT,
        )
    )
    root_logger.addHandler(handler)

    for name in CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, resolved))

    _CONFIGURED = True


__all__ = ["CLIENT_LOGGERS", "configure_logging"]
