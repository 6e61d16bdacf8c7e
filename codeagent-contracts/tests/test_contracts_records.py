"""Tests for persisted records, run output and file-set helpers."""
import pytest
from pydantic import ValidationError

from codeagent_contracts import (
    FRAGMENT_TITLE,
    GENERIC_ERROR_MESSAGE,
    FileEntry,
    FragmentRecord,
    MessageRecord,
    MessageRole,
    MessageType,
    RunOutput,
    merge_file_batch,
)


class TestMessageRecord:
    """Tests for MessageRecord factories and validation."""

    def test_error_record_uses_generic_message(self):
        record = MessageRecord.error("proj-1")
        assert record.content == GENERIC_ERROR_MESSAGE
        assert record.role is MessageRole.ASSISTANT
        assert record.type is MessageType.ERROR
        assert record.fragment is None

    def test_result_record_carries_fragment(self):
        record = MessageRecord.result(
            "proj-1",
            "<task_summary>done</task_summary>",
            sandbox_url="https://3000-sbx.e2b.app",
            files={"index.html": "<h1>Hello</h1>"},
        )
        assert record.type is MessageType.RESULT
        assert record.fragment is not None
        assert record.fragment.title == FRAGMENT_TITLE
        assert record.fragment.files == {"index.html": "<h1>Hello</h1>"}

    def test_error_record_cannot_carry_fragment(self):
        with pytest.raises(ValidationError):
            MessageRecord(
                project_id="proj-1",
                content="boom",
                type=MessageType.ERROR,
                fragment=FragmentRecord(sandbox_url="https://x"),
            )


class TestRunOutput:
    """Tests for RunOutput serialization."""

    def test_serializes_with_camel_case_alias(self):
        output = RunOutput(sandbox_url="https://host", files={"a.txt": "a"}, summary=None)
        dumped = output.model_dump(by_alias=True)
        assert dumped == {
            "sandboxUrl": "https://host",
            "title": FRAGMENT_TITLE,
            "files": {"a.txt": "a"},
            "summary": None,
        }


class TestMergeFileBatch:
    """Tests for file-set merging."""

    def test_last_write_wins_and_input_untouched(self):
        current = {"a.txt": "old", "b.txt": "keep"}
        merged = merge_file_batch(
            current,
            [FileEntry(path="a.txt", content="new"), FileEntry(path="c.txt", content="c"), FileEntry(path="a.txt", content="newest")],
        )
        assert merged == {"a.txt": "newest", "b.txt": "keep", "c.txt": "c"}
        assert current == {"a.txt": "old", "b.txt": "keep"}

    def test_handles_missing_current(self):
        assert merge_file_batch(None, []) == {}

    def test_rejects_blank_path(self):
        with pytest.raises(ValidationError):
            FileEntry(path=" ", content="x")
