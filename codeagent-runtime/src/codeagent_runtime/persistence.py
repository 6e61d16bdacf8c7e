"""
This module provides a lightweight SQLite access layer for the messages a run
persists.

The `MessageStore` class keeps one row per message in ``messages`` and, for
successful results, one row in ``fragments`` that links the live sandbox URL and
the produced file-set (stored as JSON) back to the message. It follows the same
connection-per-operation pattern throughout: every public method opens a
connection through `connect()`, which commits on success and always closes.
"""
from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional

from codeagent_contracts import FragmentRecord, MessageRecord, MessageRole, MessageType

LOGGER = logging.getLogger(__name__)


class MessageStore:
    """
    Manages all interactions with the SQLite database that stores run messages.

    Attributes:
        path: The file path to the SQLite database.
    """

    def __init__(self, path: str):
        self.path = path

    @contextmanager
    def connect(self):
        """
        Provides a connection to the SQLite database.

        Rows come back as `sqlite3.Row` objects; the transaction is committed
        when the block exits without an exception.
        """
        con = sqlite3.connect(self.path, check_same_thread=False)
        try:
            con.row_factory = sqlite3.Row
            con.execute("PRAGMA foreign_keys = ON")
            yield con
            con.commit()
        finally:
            con.close()

    def init_schema(self) -> None:
        """Creates the ``messages`` and ``fragments`` tables if they do not exist."""
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        with self.connect() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    id TEXT PRIMARY KEY,
                    project_id TEXT NOT NULL,
                    content TEXT NOT NULL,
                    role TEXT NOT NULL,
                    type TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS fragments (
                    id TEXT PRIMARY KEY,
                    message_id TEXT NOT NULL UNIQUE REFERENCES messages(id) ON DELETE CASCADE,
                    sandbox_url TEXT NOT NULL,
                    title TEXT NOT NULL,
                    files TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            con.execute("CREATE INDEX IF NOT EXISTS idx_messages_project ON messages(project_id, created_at)")

    def create_message(self, record: MessageRecord) -> str:
        """
        Inserts a message, and its fragment when present, in one transaction.

        Returns:
            The id of the stored message.
        """
        message_id = record.id or str(uuid.uuid4())
        with self.connect() as con:
            con.execute(
                """
                INSERT INTO messages (id, project_id, content, role, type, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    message_id,
                    record.project_id,
                    record.content,
                    record.role.value,
                    record.type.value,
                    record.created_at,
                ),
            )
            if record.fragment is not None:
                con.execute(
                    """
                    INSERT INTO fragments (id, message_id, sandbox_url, title, files, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        str(uuid.uuid4()),
                        message_id,
                        record.fragment.sandbox_url,
                        record.fragment.title,
                        json.dumps(record.fragment.files),
                        record.created_at,
                    ),
                )
        LOGGER.info(
            "Stored %s message %s for project %s", record.type.value, message_id, record.project_id
        )
        return message_id

    def _select(self, where: str, params: tuple) -> List[MessageRecord]:
        with self.connect() as con:
            rows = con.execute(
                f"""
                SELECT m.id, m.project_id, m.content, m.role, m.type, m.created_at,
                       f.sandbox_url, f.title, f.files
                FROM messages m
                LEFT JOIN fragments f ON f.message_id = m.id
                WHERE {where}
                ORDER BY m.created_at, m.rowid
                """,
                params,
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> MessageRecord:
        fragment = None
        if row["sandbox_url"] is not None:
            fragment = FragmentRecord(
                sandbox_url=row["sandbox_url"],
                title=row["title"],
                files=json.loads(row["files"]),
            )
        return MessageRecord(
            id=row["id"],
            project_id=row["project_id"],
            content=row["content"],
            role=MessageRole(row["role"]),
            type=MessageType(row["type"]),
            fragment=fragment,
            created_at=row["created_at"],
        )

    def get_message(self, message_id: str) -> Optional[MessageRecord]:
        records = self._select("m.id = ?", (message_id,))
        return records[0] if records else None

    def list_messages(self, project_id: str) -> List[MessageRecord]:
        return self._select("m.project_id = ?", (project_id,))


__all__ = ["MessageStore"]
