"""Logging setup and per-run transcript logging."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler


def setup_logging(level: str = "INFO") -> None:
    """Route stdlib logging through rich.

    Args:
        level: Log level name
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )

    # Silence noisy third-party loggers
    for name in ("httpx", "httpcore", "anthropic", "e2b"):
        logging.getLogger(name).setLevel(logging.WARNING)


class RunLogger:
    """Writes the transcript and artifacts of one generation run to disk."""

    def __init__(self, base_dir: Path, run_id: Optional[str] = None):
        """Initialize run logger.

        Args:
            base_dir: Directory under which .sandpit/runs/ is created
            run_id: Optional run ID (generated if not provided)
        """
        self.run_id = run_id or datetime.now().strftime("%Y%m%d_%H%M%S_%f")

        self.log_dir = base_dir / ".sandpit" / "runs" / self.run_id
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.transcript_path = self.log_dir / "transcript.ndjson"
        self.project_path = self.log_dir / "project.json"
        self.tools_dir = self.log_dir / "tools"
        self.tools_dir.mkdir(exist_ok=True)

        self._tool_counter = 0

    def log_message(
        self, role: str, content: str, tool_calls: Optional[list] = None
    ) -> None:
        """Log a conversation message.

        Args:
            role: Message role (user, assistant, tool)
            content: Message content
            tool_calls: Optional tool calls
        """
        entry = {
            "ts": datetime.now().isoformat(),
            "role": role,
            "content": content,
        }

        if tool_calls:
            entry["tool_calls"] = tool_calls

        with open(self.transcript_path, "a") as f:
            f.write(json.dumps(entry, default=str) + "\n")

    def save_tool_result(self, name: str, arguments: dict, result: str) -> None:
        """Save one tool call and its result.

        Args:
            name: Tool name
            arguments: Tool arguments as sent by the model
            result: Result text returned to the model
        """
        self._tool_counter += 1
        tool_path = self.tools_dir / f"{self._tool_counter:04d}_{name}.json"
        with open(tool_path, "w") as f:
            json.dump(
                {
                    "tool": name,
                    "timestamp": datetime.now().isoformat(),
                    "arguments": arguments,
                    "result": result,
                },
                f,
                indent=2,
                default=str,
            )

    def save_project(self, files: dict[str, str]) -> None:
        with open(self.project_path, "w") as f:
            json.dump(files, f, indent=2)

    def get_log_path(self) -> str:
        return str(self.log_dir.absolute())
