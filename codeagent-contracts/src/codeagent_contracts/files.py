"""
Shared contract for the file-set a run produces.

Agents write files into the sandbox in batches of `FileEntry` records. The
accumulated file-set is a plain `path -> content` mapping; later writes to the
same path replace earlier ones.
"""
from __future__ import annotations

from typing import Dict, Iterable, Mapping

from pydantic import BaseModel, Field, field_validator

FileSet = Dict[str, str]


class FileEntry(BaseModel):
    """A single file to create or overwrite in the sandbox."""

    path: str = Field(..., description="Path of the file inside the sandbox.")
    content: str = Field(..., description="Full text content to write.")

    @field_validator("path")
    @classmethod
    def _require_path(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("path must be a non-empty string")
        return value


def merge_file_batch(current: Mapping[str, str] | None, batch: Iterable[FileEntry]) -> FileSet:
    """
    Applies a write batch on top of an existing file-set.

    The input mapping is never mutated; a new mapping is returned with every
    entry of the batch applied in order (last write to a path wins).
    """
    merged: FileSet = dict(current or {})
    for entry in batch:
        merged[entry.path] = entry.content
    return merged


__all__ = ["FileEntry", "FileSet", "merge_file_batch"]
