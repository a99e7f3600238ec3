"""File content variants accepted by the materializer."""

from dataclasses import dataclass
from typing import Any, Optional, Union


@dataclass(frozen=True)
class RawContent:
    """Content stored as a bare string."""

    text: str


@dataclass(frozen=True)
class CodedContent:
    """Content stored in the ``{"code": ...}`` wrapper."""

    text: str


FileContent = Union[RawContent, CodedContent]


class MalformedEntry(ValueError):
    """Raised when a file entry cannot be turned into text."""


def unwrap(value: Any) -> Optional[FileContent]:
    """Resolve a raw file-map value to a FileContent.

    Args:
        value: A string, a ``{"code": str}`` mapping, or any other value

    Returns:
        FileContent, or None when the content is empty after trimming

    Raises:
        MalformedEntry: For mappings without a ``code`` key
    """
    if isinstance(value, dict):
        if "code" not in value:
            raise MalformedEntry(f"object without 'code' key: {sorted(value)}")
        content: FileContent = CodedContent(_to_text(value["code"]))
    else:
        content = RawContent(_to_text(value))

    if not content.text.strip():
        return None
    return content


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)
