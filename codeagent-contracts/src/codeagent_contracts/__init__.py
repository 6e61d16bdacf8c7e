"""
This package defines the shared data contracts used by the code-agent tools
and runtime.

It is the single source of truth for the structures that cross component
boundaries: the `code-agent/run` trigger event, the file entries agents write
into the sandbox, the message and fragment records persisted when a run ends,
and the output returned to the caller. The models are Pydantic-based so they
validate on the way in and serialize consistently on the way out.
"""
from .events import (
    CODE_AGENT_FUNCTION_ID,
    CODE_AGENT_RUN_EVENT,
    CodeAgentRunData,
    CodeAgentRunEvent,
)
from .files import FileEntry, FileSet, merge_file_batch
from .records import (
    FRAGMENT_TITLE,
    GENERIC_ERROR_MESSAGE,
    FragmentRecord,
    MessageRecord,
    MessageRole,
    MessageType,
    RunOutput,
)

__all__ = [
    "CODE_AGENT_FUNCTION_ID",
    "CODE_AGENT_RUN_EVENT",
    "CodeAgentRunData",
    "CodeAgentRunEvent",
    "FileEntry",
    "FileSet",
    "merge_file_batch",
    "FRAGMENT_TITLE",
    "GENERIC_ERROR_MESSAGE",
    "FragmentRecord",
    "MessageRecord",
    "MessageRole",
    "MessageType",
    "RunOutput",
]

__version__ = "0.1.0"
