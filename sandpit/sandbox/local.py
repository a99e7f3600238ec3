"""Local sandbox: a temporary directory with sandboxed subprocess execution."""

import logging
import os
import resource
import shutil
import subprocess
import tempfile
import time
import uuid
from pathlib import Path
from typing import Optional

from sandpit.constants import DANGEROUS_PATTERNS, DEFAULT_SANDBOX_TIMEOUT
from sandpit.sandbox.base import ExecResult

logger = logging.getLogger(__name__)


class LocalSandbox:
    """Runs commands and stores files inside a private working directory."""

    expires = False

    def __init__(
        self,
        root: Path,
        timeout: int = DEFAULT_SANDBOX_TIMEOUT,
        max_write_mb: int = 2,
        sandbox_id: Optional[str] = None,
        owns_root: bool = False,
    ):
        """Initialize local sandbox.

        Args:
            root: Working directory for commands and files
            timeout: Default command timeout in seconds
            max_write_mb: Maximum file size to write (MB)
            sandbox_id: Optional identifier (generated if not provided)
            owns_root: Whether close() should delete the root directory
        """
        self.root = root
        self.timeout = timeout
        self.max_write_bytes = max_write_mb * 1024 * 1024
        self.sandbox_id = sandbox_id or f"local-{uuid.uuid4().hex[:12]}"
        self.owns_root = owns_root

    @classmethod
    def create(cls, timeout: int = DEFAULT_SANDBOX_TIMEOUT) -> "LocalSandbox":
        """Create a sandbox rooted in a fresh temporary directory."""
        root = Path(tempfile.mkdtemp(prefix="sandpit-"))
        sandbox = cls(root, timeout=timeout, owns_root=True)
        logger.info("Created local sandbox %s at %s", sandbox.sandbox_id, root)
        return sandbox

    def run(self, command: str, timeout: Optional[int] = None) -> ExecResult:
        """Run a command in the sandbox root.

        Args:
            command: Command to execute
            timeout: Optional timeout override

        Returns:
            ExecResult with execution details
        """
        is_dangerous, reason = self.is_dangerous(command)
        if is_dangerous:
            return ExecResult(
                success=False,
                stdout="",
                stderr=f"Command blocked: {reason}",
                exit_code=-1,
                duration_ms=0,
                command=command,
            )

        timeout_val = timeout if timeout is not None else self.timeout
        start_time = time.time()

        try:
            process = subprocess.Popen(
                command,
                shell=True,
                cwd=str(self.root),
                env=self._prepare_env(),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                preexec_fn=self._setup_limits,
            )
        except OSError as e:
            return ExecResult(
                success=False,
                stdout="",
                stderr=f"Execution error: {e}",
                exit_code=-1,
                duration_ms=int((time.time() - start_time) * 1000),
                command=command,
            )

        try:
            stdout, stderr = process.communicate(timeout=timeout_val)
        except subprocess.TimeoutExpired:
            process.kill()
            stdout, stderr = process.communicate()
            return ExecResult(
                success=False,
                stdout=stdout or "",
                stderr=(stderr or "") + f"\nCommand timed out after {timeout_val}s",
                exit_code=-1,
                duration_ms=int((time.time() - start_time) * 1000),
                command=command,
            )

        exit_code = process.returncode
        return ExecResult(
            success=exit_code == 0,
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            duration_ms=int((time.time() - start_time) * 1000),
            command=command,
        )

    def write_file(self, path: str, content: str) -> Optional[str]:
        """Write content to a file, creating parent directories.

        Args:
            path: Path relative to the sandbox root
            content: Content to write

        Returns:
            Error message, or None on success
        """
        file_path = self._resolve_path(path)
        if not self._is_safe_path(file_path):
            return f"Path outside sandbox root: {path}"

        content_bytes = len(content.encode("utf-8"))
        if content_bytes > self.max_write_bytes:
            size_mb = content_bytes / (1024 * 1024)
            max_mb = self.max_write_bytes / (1024 * 1024)
            return f"Content too large: {size_mb:.2f} MB (max: {max_mb} MB)"

        # Write atomically (temp file + rename)
        temp_path = file_path.with_suffix(file_path.suffix + ".tmp")
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "w", encoding="utf-8") as f:
                f.write(content)
            temp_path.replace(file_path)
            return None
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            return f"Cannot write file: {e}"

    def read_file(self, path: str) -> tuple[bool, Optional[str], Optional[str]]:
        """Read a text file.

        Args:
            path: Path relative to the sandbox root

        Returns:
            Tuple of (success, content, error)
        """
        file_path = self._resolve_path(path)
        if not self._is_safe_path(file_path):
            return False, None, f"Path outside sandbox root: {path}"

        if not file_path.is_file():
            return False, None, f"File not found: {path}"

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                return True, f.read(), None
        except UnicodeDecodeError:
            return False, None, "File is not valid UTF-8 text"
        except OSError as e:
            return False, None, f"Cannot read file: {e}"

    def get_host(self, port: int) -> str:
        return f"http://localhost:{port}"

    def close(self) -> None:
        if self.owns_root and self.root.exists():
            shutil.rmtree(self.root, ignore_errors=True)
            logger.info("Removed local sandbox %s", self.sandbox_id)

    def is_dangerous(self, command: str) -> tuple[bool, str]:
        """Check if a command matches dangerous patterns.

        Args:
            command: Command to check

        Returns:
            Tuple of (is_dangerous, reason)
        """
        for pattern, reason in DANGEROUS_PATTERNS:
            if pattern.search(command):
                return True, reason

        return False, ""

    def _resolve_path(self, path: str) -> Path:
        # Generated paths are often written as "/src/App.js"
        return (self.root / path.lstrip("/")).resolve()

    def _is_safe_path(self, path: Path) -> bool:
        try:
            path.resolve().relative_to(self.root.resolve())
            return True
        except ValueError:
            return False

    def _prepare_env(self) -> dict[str, str]:
        """Prepare a minimal environment for sandboxed execution."""
        env = {}
        for var in ["PATH", "HOME", "USER", "LANG", "NODE_PATH"]:
            if var in os.environ:
                env[var] = os.environ[var]
        return env

    def _setup_limits(self) -> None:
        """Setup resource limits, called via preexec_fn in the child."""
        try:
            resource.setrlimit(resource.RLIMIT_CPU, (120, 120))
            resource.setrlimit(resource.RLIMIT_AS, (2 * 1024 * 1024 * 1024, 4 * 1024 * 1024 * 1024))
        except (ValueError, OSError):
            # Already limited more strictly, or not permitted here
            pass
