"""
This module loads auxiliary tools from the Context7 MCP server.

Context7 serves up-to-date library documentation over MCP. When
``CODEAGENT_CONTEXT7_MCP_SERVER_URL`` is configured, the code agent gets the
server's tools in addition to its sandbox tools; when it is not, no auxiliary
tools are loaded. Loading goes through `MultiServerMCPClient` with the
``streamable_http`` transport and is retried with exponential backoff. A server
that stays unreachable is skipped (with an error in the logs) rather than
failing the run, since the agent can work without documentation lookups.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import urlsplit, urlunsplit

from langchain_core.tools import BaseTool
from langchain_mcp_adapters.client import MultiServerMCPClient

LOGGER = logging.getLogger(__name__)

CONTEXT7_SERVER_NAME = "context7"


class MCPClientProtocol(Protocol):
    async def get_tools(self) -> List[BaseTool]:
        ...


def _sanitize_url(value: str) -> str:
    try:
        result = urlsplit(value)
    except ValueError:
        return value
    if result.username or result.password or result.query:
        hostname = result.hostname or ""
        netloc = hostname
        if result.port:
            netloc = f"{hostname}:{result.port}"
        # Context7 keys may travel in the query string.
        return urlunsplit((result.scheme, netloc, result.path, "", ""))
    return value


def build_server_config(server_url: Optional[str]) -> Dict[str, Dict[str, Any]]:
    if not server_url or not server_url.strip():
        return {}
    return {
        CONTEXT7_SERVER_NAME: {
            "url": server_url.strip(),
            "transport": "streamable_http",
        }
    }


def _describe_exception(exc: BaseException) -> str:
    if isinstance(exc, BaseExceptionGroup):
        parts = [_describe_exception(inner) for inner in exc.exceptions[:3]]
        extra = ""
        if len(exc.exceptions) > 3:
            extra = f" (+{len(exc.exceptions) - 3} more)"
        return f"{exc.__class__.__name__}: [{'; '.join(parts)}]{extra}"
    return f"{exc.__class__.__name__}: {exc}"


async def _load_tools_with_retry(
    client: MCPClientProtocol,
    *,
    attempts: int,
    initial_delay: float,
    max_delay: float,
) -> List[BaseTool]:
    attempts = max(1, attempts)
    delay = initial_delay
    max_delay = max(delay, max_delay)

    for attempt in range(1, attempts + 1):
        try:
            LOGGER.info("Loading MCP tools (attempt %s/%s)...", attempt, attempts)
            tools = await client.get_tools()
            LOGGER.info("Loaded %s MCP tool(s).", len(tools))
            return tools
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - need broad catch for retries.
            description = _describe_exception(exc)
            if attempt == attempts:
                LOGGER.error(
                    "MCP tool loading failed after %s attempt(s): %s; continuing without MCP tools",
                    attempts,
                    description,
                    exc_info=exc,
                )
                break
            LOGGER.warning(
                "MCP tool loading failed (attempt %s/%s): %s; retrying in %.2fs",
                attempt,
                attempts,
                description,
                delay,
            )
            await asyncio.sleep(delay)
            delay = min(max_delay, delay * 2)
    return []


async def aload_context7_tools(
    server_url: Optional[str],
    *,
    attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 10.0,
    client: Optional[MCPClientProtocol] = None,
) -> List[BaseTool]:
    """
    Loads the Context7 tools, or returns an empty list when no server is configured.

    Args:
        server_url: Streamable-HTTP endpoint of the Context7 MCP server.
        attempts: Maximum number of connection attempts.
        initial_delay: Delay before the first retry, doubled on every retry.
        max_delay: Upper bound for the retry delay.
        client: Pre-built client, mainly for tests.
    """
    config = build_server_config(server_url)
    if not config:
        LOGGER.debug("No Context7 MCP server configured; skipping MCP tool loading.")
        return []
    LOGGER.info(
        "MCP server configuration: %s",
        {name: {"transport": cfg["transport"], "url": _sanitize_url(cfg["url"])} for name, cfg in config.items()},
    )
    mcp_client = client if client is not None else MultiServerMCPClient(config)
    return await _load_tools_with_retry(
        mcp_client,
        attempts=attempts,
        initial_delay=initial_delay,
        max_delay=max_delay,
    )


__all__ = ["CONTEXT7_SERVER_NAME", "aload_context7_tools", "build_server_config"]
