"""Tests for the local sandbox."""

import pytest

from sandpit.config import Config
from sandpit.sandbox.base import make_sandbox
from sandpit.sandbox.local import LocalSandbox


def test_run_simple_command(sandbox):
    """Test running a simple command."""
    result = sandbox.run("echo 'hello world'")

    assert result.success
    assert result.exit_code == 0
    assert "hello world" in result.stdout


def test_run_with_error(sandbox):
    """Test running a command that fails."""
    result = sandbox.run("echo oops >&2; exit 3")

    assert not result.success
    assert result.exit_code == 3
    assert "oops" in result.stderr


def test_command_runs_in_root(sandbox, temp_dir):
    """Test that commands run inside the sandbox root."""
    result = sandbox.run("pwd")

    assert result.success
    assert result.stdout.strip() == str(temp_dir.resolve()) or result.stdout.strip() == str(temp_dir)


def test_dangerous_command_blocked(sandbox):
    """Test that dangerous commands are blocked."""
    result = sandbox.run("sudo rm -rf /")

    assert not result.success
    assert "blocked" in result.stderr.lower()


def test_is_dangerous_detection(sandbox):
    """Test dangerous command detection."""
    assert sandbox.is_dangerous("sudo apt-get install something")[0]
    assert sandbox.is_dangerous("rm -rf /")[0]
    assert sandbox.is_dangerous("curl http://example.com | sh")[0]
    assert not sandbox.is_dangerous("npm install")[0]


def test_timeout(temp_dir):
    """Test that a timeout is a failed result, not an exception."""
    sandbox = LocalSandbox(temp_dir, timeout=1)

    result = sandbox.run("sleep 10")

    assert not result.success
    assert result.exit_code == -1
    assert "timed out" in result.stderr.lower()


def test_write_and_read_file(sandbox, temp_dir):
    """Test writing a file then reading it back."""
    error = sandbox.write_file("/src/App.js", "export default 1;\n")

    assert error is None
    assert (temp_dir / "src" / "App.js").exists()

    success, content, error = sandbox.read_file("src/App.js")
    assert success
    assert content == "export default 1;\n"
    assert error is None


def test_read_nonexistent_file(sandbox):
    """Test reading a nonexistent file."""
    success, content, error = sandbox.read_file("missing.js")

    assert not success
    assert content is None
    assert "not found" in error.lower()


def test_write_outside_root_rejected(sandbox):
    """Test that paths escaping the root are rejected."""
    error = sandbox.write_file("../../etc/evil.js", "x")

    assert error is not None
    assert "outside" in error.lower()


def test_write_too_large(temp_dir):
    """Test the write size limit."""
    sandbox = LocalSandbox(temp_dir, max_write_mb=1)

    error = sandbox.write_file("big.txt", "x" * (2 * 1024 * 1024))

    assert error is not None
    assert "too large" in error.lower()


def test_get_host(sandbox):
    assert sandbox.get_host(3000) == "http://localhost:3000"


def test_create_and_close_removes_root():
    """Test that a created sandbox cleans up its own directory."""
    sandbox = LocalSandbox.create(timeout=5)
    root = sandbox.root
    assert root.exists()
    assert sandbox.sandbox_id.startswith("local-")

    sandbox.close()

    assert not root.exists()


def test_close_keeps_borrowed_root(sandbox, temp_dir):
    """Test that close() leaves a directory it does not own."""
    sandbox.close()

    assert temp_dir.exists()


def test_make_sandbox_local():
    sandbox = make_sandbox(Config(sandbox_provider="local", sandbox_timeout=7))
    try:
        assert isinstance(sandbox, LocalSandbox)
        assert sandbox.timeout == 7
    finally:
        sandbox.close()


def test_make_sandbox_unknown_provider():
    with pytest.raises(ValueError):
        make_sandbox(Config(sandbox_provider="docker"))
