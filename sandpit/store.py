"""Record store for messages and generated artifacts."""

import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

from pydantic import BaseModel, Field

from sandpit.constants import (
    ERROR_MESSAGE,
    ROLE_ASSISTANT,
    TYPE_ERROR,
    TYPE_RESULT,
)
from sandpit.state import RunResult

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MessageRecord(BaseModel):
    """A conversation message in a project."""

    id: str = Field(default_factory=_new_id)
    project_id: str
    content: str
    role: str
    type: str
    created_at: datetime = Field(default_factory=_now)


class ArtifactRecord(BaseModel):
    """The generated project attached to one assistant message."""

    model_config = {"frozen": True}

    id: str = Field(default_factory=_new_id)
    message_id: str
    project_id: str
    title: str
    files: dict[str, str]
    preview_handle: str
    created_at: datetime = Field(default_factory=_now)


class RecordStore(Protocol):
    """Narrow create/query interface to the external store."""

    def create_message(self, project_id: str, content: str, role: str, type: str) -> MessageRecord:
        ...

    def create_artifact(
        self, message_id: str, title: str, files: dict[str, str], preview_handle: str
    ) -> ArtifactRecord:
        ...

    def find_latest_artifact(self, project_id: str) -> Optional[ArtifactRecord]:
        ...

    def find_messages(self, project_id: str, limit: Optional[int] = None) -> list[MessageRecord]:
        ...


class InMemoryStore:
    """Thread-safe store kept in process memory."""

    def __init__(self):
        self._lock = threading.Lock()
        self._messages: list[MessageRecord] = []
        self._artifacts: list[ArtifactRecord] = []

    def create_message(self, project_id: str, content: str, role: str, type: str) -> MessageRecord:
        record = MessageRecord(project_id=project_id, content=content, role=role, type=type)
        with self._lock:
            self._messages.append(record)
            self._changed()
        return record

    def create_artifact(
        self, message_id: str, title: str, files: dict[str, str], preview_handle: str
    ) -> ArtifactRecord:
        """Create the artifact for an existing message.

        Args:
            message_id: Assistant message the artifact belongs to
            title: Artifact title
            files: Canonical project files
            preview_handle: Preview URL or token

        Returns:
            The created ArtifactRecord

        Raises:
            KeyError: If the message does not exist
            ValueError: If the message already has an artifact
        """
        with self._lock:
            message = next((m for m in self._messages if m.id == message_id), None)
            if message is None:
                raise KeyError(f"Message not found: {message_id}")
            if any(a.message_id == message_id for a in self._artifacts):
                raise ValueError(f"Message already has an artifact: {message_id}")

            record = ArtifactRecord(
                message_id=message_id,
                project_id=message.project_id,
                title=title,
                files=dict(files),
                preview_handle=preview_handle,
            )
            self._artifacts.append(record)
            self._changed()
        return record

    def find_latest_artifact(self, project_id: str) -> Optional[ArtifactRecord]:
        with self._lock:
            for record in reversed(self._artifacts):
                if record.project_id == project_id:
                    return record
        return None

    def find_artifact_for_message(self, message_id: str) -> Optional[ArtifactRecord]:
        with self._lock:
            return next((a for a in self._artifacts if a.message_id == message_id), None)

    def find_messages(self, project_id: str, limit: Optional[int] = None) -> list[MessageRecord]:
        """Return a project's messages, oldest first.

        Args:
            project_id: Project to query
            limit: Keep only the most recent ``limit`` messages

        Returns:
            List of MessageRecord
        """
        with self._lock:
            messages = [m for m in self._messages if m.project_id == project_id]
        if limit is not None:
            messages = messages[-limit:] if limit > 0 else []
        return messages

    def _changed(self) -> None:
        """Hook called with the lock held after every write."""


class JsonFileStore(InMemoryStore):
    """Store persisted to a single JSON file."""

    def __init__(self, path: Path):
        """Initialize and load existing records.

        Args:
            path: JSON file path (created on first write)
        """
        super().__init__()
        self.path = path
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return

        try:
            with open(self.path) as f:
                data = json.load(f)
            self._messages = [MessageRecord.model_validate(m) for m in data.get("messages", [])]
            self._artifacts = [ArtifactRecord.model_validate(a) for a in data.get("artifacts", [])]
        except (json.JSONDecodeError, IOError, ValueError) as e:
            logger.warning("Ignoring unreadable store %s: %s", self.path, e)

    def _changed(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "messages": [m.model_dump(mode="json") for m in self._messages],
            "artifacts": [a.model_dump(mode="json") for a in self._artifacts],
        }
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(temp_path, "w") as f:
            json.dump(data, f, indent=2)
        temp_path.replace(self.path)


def persist_run_result(store: RecordStore, project_id: str, result: RunResult) -> MessageRecord:
    """Write the outcome of a run as one assistant message.

    A successful run gets a RESULT message with its artifact attached. An
    error run gets a fixed ERROR message and no artifact.

    Args:
        store: Record store
        project_id: Project the run belongs to
        result: Run outcome

    Returns:
        The created assistant message
    """
    if result.is_error:
        logger.info("Persisting error for project %s: %s", project_id, result.error)
        return store.create_message(project_id, ERROR_MESSAGE, ROLE_ASSISTANT, TYPE_ERROR)

    message = store.create_message(project_id, result.response, ROLE_ASSISTANT, TYPE_RESULT)
    store.create_artifact(message.id, result.title, result.files, result.preview_handle)
    logger.info(
        "Persisted artifact '%s' (%d files) for project %s",
        result.title,
        len(result.files),
        project_id,
    )
    return message
