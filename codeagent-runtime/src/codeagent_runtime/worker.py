"""
This module provides the event worker that feeds ``code-agent/run`` events from
a Redis stream into `run_code_agent`.

The worker keeps its read position in a Redis key next to the stream, so a
restarted worker continues where the previous one stopped. Entries are handled
strictly in stream order. When handling an entry fails, the cursor stays put
and the entry is attempted again on the next poll; attempt counts live in a
Redis hash and, once `max_attempts` is reached, the entry is logged and skipped.
Because runs journal their steps under the event id, a retried event replays
the steps that already completed instead of repeating them.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from redis.asyncio import Redis

from codeagent_contracts import CodeAgentRunEvent, RunOutput

LOGGER = logging.getLogger(__name__)

EventHandler = Callable[[CodeAgentRunEvent], Awaitable[RunOutput]]
StreamEntry = Tuple[str, Dict[str, str]]

INITIAL_CURSOR = "0-0"


def _decode_value(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _decode_entry(entry_id: Any, fields: Any) -> StreamEntry:
    decoded: Dict[str, str] = {}
    for key, value in (fields or {}).items():
        if key is None or value is None:
            continue
        decoded[_decode_value(key)] = _decode_value(value)
    return _decode_value(entry_id), decoded


class EventWorker:
    """
    Consumes trigger events from a Redis stream, one at a time.

    Args:
        redis: Async Redis client.
        handler: Coroutine that runs one event, normally `run_code_agent`.
        stream_key: Stream the events are appended to.
        max_attempts: Attempts per entry before it is skipped.
        block_ms: How long a read blocks waiting for new entries; 0 polls.
        poll_interval: Sleep between empty non-blocking polls, in seconds.
        batch_size: Maximum entries fetched per read.
    """

    def __init__(
        self,
        redis: Redis,
        handler: EventHandler,
        *,
        stream_key: str,
        max_attempts: int = 3,
        block_ms: int = 0,
        poll_interval: float = 1.0,
        batch_size: int = 5,
    ) -> None:
        self.redis = redis
        self.handler = handler
        self.stream_key = stream_key
        self.cursor_key = f"{stream_key}:cursor"
        self.attempts_key = f"{stream_key}:attempts"
        self.max_attempts = max(1, max_attempts)
        self.block_ms = max(0, block_ms)
        self.poll_interval = poll_interval
        self.batch_size = max(1, batch_size)

    async def get_cursor(self) -> str:
        value = await self.redis.get(self.cursor_key)
        return _decode_value(value) if value else INITIAL_CURSOR

    async def _read(self) -> List[StreamEntry]:
        cursor = await self.get_cursor()
        response = await self.redis.xread(
            {self.stream_key: cursor},
            count=self.batch_size,
            block=self.block_ms or None,
        )
        entries: List[StreamEntry] = []
        for _stream, items in response or []:
            for entry_id, fields in items:
                entries.append(_decode_entry(entry_id, fields))
        return entries

    async def _advance(self, entry_id: str) -> None:
        await self.redis.set(self.cursor_key, entry_id)
        await self.redis.hdel(self.attempts_key, entry_id)

    async def _handle_entry(self, entry_id: str, fields: Dict[str, str]) -> bool:
        """Returns True when the cursor may move past the entry."""
        try:
            event = CodeAgentRunEvent.from_stream_fields({"id": entry_id, **fields})
        except ValueError as exc:
            LOGGER.error("Skipping malformed event %s: %s", entry_id, exc)
            return True

        try:
            output = await self.handler(event)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - one failing event must not stop the worker
            attempts = int(await self.redis.hincrby(self.attempts_key, entry_id, 1))
            if attempts >= self.max_attempts:
                LOGGER.error(
                    "Event %s failed %s time(s); giving up: %s", event.id, attempts, exc, exc_info=exc
                )
                return True
            LOGGER.warning(
                "Event %s failed (attempt %s/%s): %s; will retry", event.id, attempts, self.max_attempts, exc
            )
            return False

        LOGGER.info("Event %s handled; sandbox %s", event.id, output.sandbox_url)
        return True

    async def poll_once(self) -> int:
        """
        Reads one batch and handles it in order.

        Returns:
            The number of entries the cursor moved past.
        """
        handled = 0
        for entry_id, fields in await self._read():
            if not await self._handle_entry(entry_id, fields):
                break
            await self._advance(entry_id)
            handled += 1
        return handled

    async def run_forever(self, stop: Optional[asyncio.Event] = None) -> None:
        LOGGER.info("Worker listening on stream %s", self.stream_key)
        while stop is None or not stop.is_set():
            handled = await self.poll_once()
            if not handled and not self.block_ms:
                await asyncio.sleep(self.poll_interval)


async def publish_event(redis: Redis, stream_key: str, event: CodeAgentRunEvent) -> str:
    """Appends `event` to the stream and returns the entry id."""
    entry_id = await redis.xadd(stream_key, event.to_stream_fields())
    return _decode_value(entry_id)


__all__ = ["EventWorker", "publish_event"]
