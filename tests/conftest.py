"""Pytest configuration and fixtures."""

import tempfile
from pathlib import Path

import pytest

from sandpit.config import Config
from sandpit.sandbox.local import LocalSandbox
from sandpit.state import AgentState
from sandpit.store import InMemoryStore


class FakeLLM:
    """Scripted stand-in for the model client.

    Each ``complete`` call pops the next scripted item. A dict is returned
    as the response, an exception instance is raised, and a callable is
    called with the messages. Once the script runs out, ``default`` is used.
    """

    def __init__(self, script=None, default=None):
        self.script = list(script or [])
        self.default = default if default is not None else {"role": "assistant", "content": "Working on it."}
        self.calls = []

    def complete(self, messages, tools=None, temperature=None, max_tokens=None):
        self.calls.append({"messages": [dict(m) for m in messages], "tools": tools})
        item = self.script.pop(0) if self.script else self.default
        if isinstance(item, Exception):
            raise item
        if callable(item):
            item = item(messages)
        return dict(item)

    @property
    def tool_calls_made(self):
        return [c for c in self.calls if c["tools"]]


def reply(content="", tool_calls=None):
    """Build a model response."""
    response = {"role": "assistant", "content": content}
    if tool_calls:
        response["tool_calls"] = tool_calls
    return response


def tool_call(call_id, name, arguments):
    """Build one requested tool call."""
    return {"id": call_id, "name": name, "arguments": arguments}


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mock_config():
    """Create a mock configuration."""
    return Config(
        anthropic_api_key="test_key",
        max_iterations=5,
        max_tool_rounds=5,
        model_retries=1,
        tool_workers=4,
    )


@pytest.fixture
def sandbox(temp_dir):
    """Create a local sandbox rooted in the temp directory."""
    return LocalSandbox(temp_dir, timeout=10)


@pytest.fixture
def agent_state():
    return AgentState()


@pytest.fixture
def store():
    return InMemoryStore()
