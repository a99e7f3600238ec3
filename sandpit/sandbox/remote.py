"""Remote sandbox backed by E2B."""

import logging
import time
from typing import Optional

from e2b import CommandExitException, TimeoutException
from e2b_code_interpreter import Sandbox

from sandpit.constants import DEFAULT_SANDBOX_TIMEOUT
from sandpit.sandbox.base import ExecResult

logger = logging.getLogger(__name__)

# Lifetime of the remote sandbox itself, independent of per-call timeouts
SANDBOX_LIFETIME = 30 * 60


class E2BSandbox:
    """Wraps one E2B sandbox for the duration of a generation run."""

    expires = True

    def __init__(self, sandbox: Sandbox, timeout: int = DEFAULT_SANDBOX_TIMEOUT):
        """Initialize from an existing E2B sandbox.

        Args:
            sandbox: Connected E2B sandbox
            timeout: Per-call timeout in seconds
        """
        self._sandbox = sandbox
        self.timeout = timeout
        self.sandbox_id = sandbox.sandbox_id

    @classmethod
    def create(
        cls,
        template: Optional[str] = None,
        timeout: int = DEFAULT_SANDBOX_TIMEOUT,
        api_key: Optional[str] = None,
    ) -> "E2BSandbox":
        """Create a new remote sandbox.

        Args:
            template: E2B template name (SDK default when empty)
            timeout: Per-call timeout in seconds
            api_key: E2B API key (falls back to E2B_API_KEY)

        Returns:
            E2BSandbox instance
        """
        kwargs = {"timeout": SANDBOX_LIFETIME}
        if template:
            kwargs["template"] = template
        if api_key:
            kwargs["api_key"] = api_key

        sandbox = Sandbox.create(**kwargs)
        logger.info("Created E2B sandbox %s", sandbox.sandbox_id)
        return cls(sandbox, timeout=timeout)

    def run(self, command: str, timeout: Optional[int] = None) -> ExecResult:
        """Run a command in the remote sandbox.

        Args:
            command: Command to execute
            timeout: Optional timeout override

        Returns:
            ExecResult with execution details
        """
        timeout_val = timeout if timeout is not None else self.timeout
        start_time = time.time()

        try:
            result = self._sandbox.commands.run(
                command,
                timeout=timeout_val,
                request_timeout=timeout_val,
            )
        except CommandExitException as e:
            return ExecResult(
                success=False,
                stdout=e.stdout or "",
                stderr=e.stderr or str(e),
                exit_code=e.exit_code,
                duration_ms=int((time.time() - start_time) * 1000),
                command=command,
            )
        except TimeoutException:
            return ExecResult(
                success=False,
                stdout="",
                stderr=f"Command timed out after {timeout_val}s",
                exit_code=-1,
                duration_ms=int((time.time() - start_time) * 1000),
                command=command,
            )
        except Exception as e:
            logger.warning("E2B command failed in %s: %s", self.sandbox_id, e)
            return ExecResult(
                success=False,
                stdout="",
                stderr=f"Sandbox error: {e}",
                exit_code=-1,
                duration_ms=int((time.time() - start_time) * 1000),
                command=command,
            )

        return ExecResult(
            success=result.exit_code == 0,
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.exit_code,
            duration_ms=int((time.time() - start_time) * 1000),
            command=command,
        )

    def write_file(self, path: str, content: str) -> Optional[str]:
        try:
            self._sandbox.files.write(path, content, request_timeout=self.timeout)
            return None
        except Exception as e:
            return f"Cannot write file: {e}"

    def read_file(self, path: str) -> tuple[bool, Optional[str], Optional[str]]:
        try:
            content = self._sandbox.files.read(path, request_timeout=self.timeout)
            return True, content, None
        except Exception as e:
            return False, None, f"Cannot read file: {e}"

    def get_host(self, port: int) -> str:
        return f"https://{self._sandbox.get_host(port)}"

    def close(self) -> None:
        try:
            self._sandbox.kill()
            logger.info("Killed E2B sandbox %s", self.sandbox_id)
        except Exception as e:
            logger.warning("Could not kill E2B sandbox %s: %s", self.sandbox_id, e)
