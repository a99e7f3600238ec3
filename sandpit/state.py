"""State models for the agent loop."""

import posixpath
import threading
from dataclasses import dataclass, field
from operator import add
from typing import Annotated, Optional, TypedDict


class AgentState:
    """Summary and file map shared by one generation run.

    Tool handlers never touch this object directly: they return file updates
    and the loop folds them in through ``merge_files``, which serializes
    writers behind a lock.
    """

    def __init__(self, files: Optional[dict[str, str]] = None):
        """Initialize agent state.

        Args:
            files: Optional file map seeded from a previous run
        """
        self._lock = threading.Lock()
        self._summary = ""
        self._files: dict[str, str] = {_key(p): c for p, c in (files or {}).items()}

    @property
    def summary(self) -> str:
        with self._lock:
            return self._summary

    @property
    def files(self) -> dict[str, str]:
        """Copy of the current file map."""
        with self._lock:
            return dict(self._files)

    def set_summary(self, summary: str) -> None:
        with self._lock:
            self._summary = summary

    def merge_files(self, updates: list[tuple[str, str]]) -> int:
        """Apply file writes in order, last write wins per path.

        Args:
            updates: (path, content) pairs in the order they were requested

        Returns:
            Number of writes applied
        """
        with self._lock:
            for path, content in updates:
                key = _key(path)
                # Re-insert so map order follows write order
                self._files.pop(key, None)
                self._files[key] = content
            return len(updates)

    def get_file(self, path: str) -> Optional[str]:
        with self._lock:
            return self._files.get(_key(path))


def _key(path: str) -> str:
    """Map sandbox-relative spellings of a path (src/a.js, ./src/a.js) to /src/a.js."""
    clean = path.strip().replace("\\", "/").lstrip("/")
    if not clean:
        return path
    return "/" + posixpath.normpath(clean)


class RunState(TypedDict):
    """The state object passed through the LangGraph workflow.

    Attributes:
        messages: Conversation turns (user, assistant, tool results)
        iteration: Number of routing decisions that selected the agent
        status: "running", "completed", "exhausted" or "cancelled"
    """

    messages: Annotated[list[dict], add]
    iteration: int
    status: str


@dataclass
class RunResult:
    """Outcome of one generation run, handed to the persistence adapter."""

    summary: str = ""
    files: dict[str, str] = field(default_factory=dict)
    title: str = ""
    response: str = ""
    preview_handle: str = ""
    is_error: bool = False
    error: Optional[str] = None
    iterations: int = 0
    cancelled: bool = False
