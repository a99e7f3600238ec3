"""Sandbox handle contract and provider factory."""

from dataclasses import dataclass
from typing import Optional, Protocol

from sandpit.config import Config


@dataclass
class ExecResult:
    """Result of command execution."""

    success: bool
    stdout: str
    stderr: str
    exit_code: int
    duration_ms: int
    command: str


class SandboxHandle(Protocol):
    """One sandboxed execution environment, valid for the lifetime of a run.

    Every operation reports failure as a value. A command that exits
    non-zero, times out, or cannot reach the sandbox yields an unsuccessful
    ``ExecResult``; file operations return error text.

    ``expires`` is true for providers that shut the sandbox down on their own
    after a fixed lifetime; those are left running after a successful run so
    the preview address stays reachable.
    """

    sandbox_id: str
    expires: bool

    def run(self, command: str, timeout: Optional[int] = None) -> ExecResult:
        ...

    def write_file(self, path: str, content: str) -> Optional[str]:
        ...

    def read_file(self, path: str) -> tuple[bool, Optional[str], Optional[str]]:
        ...

    def get_host(self, port: int) -> str:
        ...

    def close(self) -> None:
        ...


def make_sandbox(config: Config) -> SandboxHandle:
    """Create a sandbox for the configured provider.

    Args:
        config: Configuration object

    Returns:
        A freshly created sandbox handle

    Raises:
        ValueError: If the provider is unknown
    """
    provider = config.sandbox_provider.lower()
    if provider == "local":
        from sandpit.sandbox.local import LocalSandbox

        return LocalSandbox.create(timeout=config.sandbox_timeout)
    if provider == "e2b":
        from sandpit.sandbox.remote import E2BSandbox

        return E2BSandbox.create(
            template=config.e2b_template,
            timeout=config.sandbox_timeout,
            api_key=config.e2b_api_key,
        )
    raise ValueError(f"Unknown sandbox provider: {config.sandbox_provider}")
