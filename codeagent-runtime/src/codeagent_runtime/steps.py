"""
Durable, memoized steps for code-agent runs.

Every side effect of a run (sandbox creation, each model call, each tool
invocation, the sandbox URL lookup and the final persistence write) executes
through `DurableSteps.run(name, fn)`. A step is identified by the run id, its
name and the number of times that name has already been used in the run. The
first successful output of a step is written to a journal; when the same run is
executed again (for example after the event worker retries a failed event), the
journaled outputs are returned in order instead of re-executing the work.

Outputs are stored as JSON, so a step's return value must be JSON-serializable.
The value handed back to the caller is always the decoded journal copy, which
keeps first executions and replays indistinguishable.
"""
from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, TypeVar

from .errors import CodeAgentError, StepFailedError

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class StepKey:
    run_id: str
    name: str
    ordinal: int


@dataclass(frozen=True)
class StepRecord:
    key: StepKey
    output: Any
    recorded_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class StepJournal(Protocol):
    def get(self, key: StepKey) -> Optional[StepRecord]:
        ...

    def record(self, key: StepKey, output: Any) -> StepRecord:
        """Stores `output` unless `key` is already present; returns the stored record."""
        ...

    def list_records(self, run_id: str) -> List[StepRecord]:
        ...


def _encode(output: Any) -> str:
    return json.dumps(output, sort_keys=True)


class MemoryStepJournal:
    """Process-local journal; replay only works within the same process."""

    def __init__(self) -> None:
        self._records: Dict[StepKey, StepRecord] = {}

    def get(self, key: StepKey) -> Optional[StepRecord]:
        return self._records.get(key)

    def record(self, key: StepKey, output: Any) -> StepRecord:
        existing = self._records.get(key)
        if existing is not None:
            return existing
        stored = StepRecord(key=key, output=json.loads(_encode(output)))
        self._records[key] = stored
        return stored

    def list_records(self, run_id: str) -> List[StepRecord]:
        records = [record for key, record in self._records.items() if key.run_id == run_id]
        return sorted(records, key=lambda record: record.recorded_at)


class SqliteStepJournal:
    """
    Journal persisted in a SQLite file.

    Rows are keyed by ``(run_id, name, ordinal)``. Inserts use ``ON CONFLICT DO
    NOTHING`` so the first recorded output of a step always wins.
    """

    def __init__(self, path: str):
        self.path = path

    @contextmanager
    def connect(self):
        con = sqlite3.connect(self.path, check_same_thread=False)
        try:
            con.row_factory = sqlite3.Row
            yield con
            con.commit()
        finally:
            con.close()

    def init_schema(self) -> None:
        with self.connect() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS steps (
                    run_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    ordinal INTEGER NOT NULL,
                    output TEXT NOT NULL,
                    recorded_at TEXT NOT NULL,
                    PRIMARY KEY (run_id, name, ordinal)
                )
                """
            )

    def get(self, key: StepKey) -> Optional[StepRecord]:
        with self.connect() as con:
            row = con.execute(
                "SELECT output, recorded_at FROM steps WHERE run_id = ? AND name = ? AND ordinal = ?",
                (key.run_id, key.name, key.ordinal),
            ).fetchone()
        if row is None:
            return None
        return StepRecord(key=key, output=json.loads(row["output"]), recorded_at=row["recorded_at"])

    def record(self, key: StepKey, output: Any) -> StepRecord:
        encoded = _encode(output)
        with self.connect() as con:
            con.execute(
                """
                INSERT INTO steps (run_id, name, ordinal, output, recorded_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(run_id, name, ordinal) DO NOTHING
                """,
                (key.run_id, key.name, key.ordinal, encoded, datetime.now(timezone.utc).isoformat()),
            )
        stored = self.get(key)
        if stored is None:
            raise CodeAgentError(
                f"Step {key.name!r} (#{key.ordinal}) of run {key.run_id} was not recorded in {self.path}"
            )
        return stored

    def list_records(self, run_id: str) -> List[StepRecord]:
        with self.connect() as con:
            rows = con.execute(
                "SELECT name, ordinal, output, recorded_at FROM steps WHERE run_id = ? ORDER BY recorded_at, rowid",
                (run_id,),
            ).fetchall()
        return [
            StepRecord(
                key=StepKey(run_id=run_id, name=row["name"], ordinal=row["ordinal"]),
                output=json.loads(row["output"]),
                recorded_at=row["recorded_at"],
            )
            for row in rows
        ]


def build_step_journal(path: Optional[str]) -> StepJournal:
    """Returns a SQLite journal when `path` is set, otherwise an in-memory one."""
    if not path:
        return MemoryStepJournal()
    journal = SqliteStepJournal(path)
    journal.init_schema()
    return journal


class DurableSteps:
    """
    Runs named steps at most once per ``(run_id, name, ordinal)``.

    Failures are retried with exponential backoff; once `max_attempts` is
    exhausted a `StepFailedError` is raised and nothing is journaled, so a
    later replay of the run executes the step again.
    """

    def __init__(
        self,
        run_id: str,
        journal: Optional[StepJournal] = None,
        *,
        max_attempts: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 10.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if not run_id:
            raise ValueError("run_id must be a non-empty string")
        self.run_id = run_id
        self.journal: StepJournal = journal if journal is not None else MemoryStepJournal()
        self.max_attempts = max(1, max_attempts)
        self.initial_delay = max(0.0, initial_delay)
        self.max_delay = max(self.initial_delay, max_delay)
        self._sleep = sleep
        self._ordinals: Dict[str, int] = {}
        self.executed: List[StepKey] = []
        self.replayed: List[StepKey] = []

    def _next_key(self, name: str) -> StepKey:
        ordinal = self._ordinals.get(name, 0)
        self._ordinals[name] = ordinal + 1
        return StepKey(run_id=self.run_id, name=name, ordinal=ordinal)

    async def run(self, name: str, fn: Callable[[], Awaitable[T]]) -> T:
        key = self._next_key(name)
        existing = self.journal.get(key)
        if existing is not None:
            LOGGER.debug("Replaying step %s #%s for run %s", name, key.ordinal, self.run_id)
            self.replayed.append(key)
            return existing.output

        delay = self.initial_delay
        for attempt in range(1, self.max_attempts + 1):
            try:
                output = await fn()
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001 - every failure is retried.
                if attempt == self.max_attempts:
                    LOGGER.error(
                        "Step %s #%s failed after %s attempt(s): %s",
                        name,
                        key.ordinal,
                        attempt,
                        exc,
                    )
                    raise StepFailedError(name, key.ordinal, attempt, exc) from exc
                LOGGER.warning(
                    "Step %s #%s failed (attempt %s/%s): %s; retrying in %.2fs",
                    name,
                    key.ordinal,
                    attempt,
                    self.max_attempts,
                    exc,
                    delay,
                )
                await self._sleep(delay)
                delay = min(self.max_delay, delay * 2)
                continue
            stored = self.journal.record(key, output)
            self.executed.append(key)
            return stored.output


__all__ = [
    "DurableSteps",
    "MemoryStepJournal",
    "SqliteStepJournal",
    "StepJournal",
    "StepKey",
    "StepRecord",
    "build_step_journal",
]
