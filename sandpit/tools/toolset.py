"""Tools exposed to the coding agent: terminal, file writes, file reads."""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field, ValidationError

from sandpit.sandbox.base import SandboxHandle
from sandpit.state import AgentState

logger = logging.getLogger(__name__)

NOT_FOUND_TEMPLATE = "[not found: {path}]"


class RunCommandArgs(BaseModel):
    """Arguments for the terminal tool."""

    command: str = Field(min_length=1, description="Shell command to run")


class FileEntry(BaseModel):
    """A single file to create or overwrite."""

    path: str = Field(min_length=1, description="File path, e.g. src/App.js")
    content: str = Field(description="Full file content")


class WriteFilesArgs(BaseModel):
    """Arguments for the createOrUpdateFiles tool."""

    files: list[FileEntry] = Field(default_factory=list)


class ReadFilesArgs(BaseModel):
    """Arguments for the readFiles tool."""

    files: Optional[list[str]] = Field(None, description="Paths to read; omit for all files")


@dataclass
class ToolOutcome:
    """Result of one tool call.

    Attributes:
        result: Text handed back to the model
        files: File writes to fold into the agent state, in request order
    """

    result: str
    files: Optional[list[tuple[str, str]]] = None


class ToolSet:
    """Validates and dispatches the agent's tool calls."""

    def __init__(
        self,
        state: AgentState,
        sandbox: Optional[SandboxHandle] = None,
        max_workers: int = 4,
    ):
        """Initialize the tool set.

        Args:
            state: Agent state the read tool consults
            sandbox: Live sandbox (optional; file map only when None)
            max_workers: Thread pool size for concurrent tool calls
        """
        self.state = state
        self.sandbox = sandbox
        self.max_workers = max_workers

        self._handlers: dict[str, tuple[type[BaseModel], Callable[[Any], ToolOutcome]]] = {
            "terminal": (RunCommandArgs, self.run_command),
            "createOrUpdateFiles": (WriteFilesArgs, self.write_files),
            "readFiles": (ReadFilesArgs, self.read_files),
        }

    def definitions(self) -> list[dict]:
        """Get tool definitions for the LLM.

        Returns:
            List of tool definitions in OpenAI format
        """
        return [
            {
                "type": "function",
                "function": {
                    "name": "terminal",
                    "description": "Use the terminal to run shell commands in the sandbox.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "command": {
                                "type": "string",
                                "description": "Shell command to run",
                            }
                        },
                        "required": ["command"],
                    },
                },
            },
            {
                "type": "function",
                "function": {
                    "name": "createOrUpdateFiles",
                    "description": "Create or update files in the sandbox. Always send full file contents.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "files": {
                                "type": "array",
                                "items": {
                                    "type": "object",
                                    "properties": {
                                        "path": {"type": "string"},
                                        "content": {"type": "string"},
                                    },
                                    "required": ["path", "content"],
                                },
                            }
                        },
                        "required": ["files"],
                    },
                },
            },
            {
                "type": "function",
                "function": {
                    "name": "readFiles",
                    "description": "Read files from the sandbox. Omit 'files' to read every file written so far.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "files": {
                                "type": "array",
                                "items": {"type": "string"},
                            }
                        },
                    },
                },
            },
        ]

    def dispatch(self, name: str, arguments: Any) -> ToolOutcome:
        """Validate arguments and execute one tool call.

        Never raises: unknown tools, bad arguments and handler failures are
        all reported back to the model as text.

        Args:
            name: Tool name
            arguments: Raw arguments (dict or JSON string)

        Returns:
            ToolOutcome for the call
        """
        if name not in self._handlers:
            return ToolOutcome(f"Error: Unknown tool {name}")

        schema, handler = self._handlers[name]

        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments) if arguments.strip() else {}
            except json.JSONDecodeError as e:
                return ToolOutcome(f"Invalid arguments for {name}: {e}")

        try:
            parsed = schema.model_validate(arguments or {})
        except ValidationError as e:
            return ToolOutcome(f"Invalid arguments for {name}: {e}")

        try:
            return handler(parsed)
        except Exception as e:
            logger.exception("Tool %s failed", name)
            return ToolOutcome(f"Error executing {name}: {e}")

    def execute_all(self, tool_calls: list[dict]) -> list[ToolOutcome]:
        """Execute one turn's tool calls concurrently.

        Args:
            tool_calls: Tool calls in the order the model requested them

        Returns:
            Outcomes in the same order as ``tool_calls``
        """
        if not tool_calls:
            return []
        if len(tool_calls) == 1:
            call = tool_calls[0]
            return [self.dispatch(call["name"], call.get("arguments"))]

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = [
                pool.submit(self.dispatch, call["name"], call.get("arguments"))
                for call in tool_calls
            ]
            return [future.result() for future in futures]

    def run_command(self, args: RunCommandArgs) -> ToolOutcome:
        if self.sandbox is None:
            return ToolOutcome("Command failed: no sandbox available\nstdout: \nstderr: ")

        result = self.sandbox.run(args.command)
        if result.success:
            return ToolOutcome(result.stdout)

        reason = f"exit code {result.exit_code}"
        return ToolOutcome(
            f"Command failed: {reason}\nstdout: {result.stdout}\nstderr: {result.stderr}"
        )

    def write_files(self, args: WriteFilesArgs) -> ToolOutcome:
        """Write files to the sandbox and return them for the state fold.

        Args:
            args: Validated file entries

        Returns:
            ToolOutcome whose ``files`` preserve the requested order
        """
        updates: list[tuple[str, str]] = []
        errors = []

        for entry in args.files:
            if self.sandbox is not None:
                error = self.sandbox.write_file(entry.path, entry.content)
                if error:
                    errors.append(f"{entry.path}: {error}")
            updates.append((entry.path, entry.content))

        unique_paths = list(dict.fromkeys(path for path, _ in updates))
        lines = [f"Wrote {len(updates)} file(s): {', '.join(unique_paths) or 'none'}"]
        if errors:
            lines.append("Sandbox write errors:")
            lines.extend(f"- {error}" for error in errors)

        return ToolOutcome("\n".join(lines), files=updates)

    def read_files(self, args: ReadFilesArgs) -> ToolOutcome:
        """Read files, preferring the agent state over the sandbox.

        Args:
            args: Validated paths (None for the whole file map)

        Returns:
            ToolOutcome with a JSON array of {path, content}
        """
        if args.files is None:
            contents = [
                {"path": path, "content": content}
                for path, content in self.state.files.items()
            ]
            return ToolOutcome(json.dumps(contents))

        contents = []
        for path in args.files:
            contents.append({"path": path, "content": self._lookup(path)})
        return ToolOutcome(json.dumps(contents))

    def _lookup(self, path: str) -> str:
        content = self.state.get_file(path)
        if content is not None:
            return content

        if self.sandbox is not None:
            success, content, _ = self.sandbox.read_file(path)
            if success and content is not None:
                return content

        return NOT_FOUND_TEMPLATE.format(path=path)