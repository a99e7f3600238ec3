"""Tests for the agent tool set."""

import json
import threading

from sandpit.state import AgentState
from sandpit.tools.toolset import NOT_FOUND_TEMPLATE, ToolSet


def _fold(state, outcome):
    if outcome.files:
        state.merge_files(outcome.files)


def test_definitions_expose_three_tools(agent_state):
    """Test the tool names handed to the model."""
    toolset = ToolSet(agent_state)

    names = [d["function"]["name"] for d in toolset.definitions()]

    assert names == ["terminal", "createOrUpdateFiles", "readFiles"]


def test_last_write_wins_within_one_call(agent_state):
    """Test that duplicate paths in one call keep the last content."""
    toolset = ToolSet(agent_state)

    outcome = toolset.dispatch(
        "createOrUpdateFiles",
        {"files": [{"path": "a", "content": "1"}, {"path": "a", "content": "2"}]},
    )
    _fold(agent_state, outcome)
    read = toolset.dispatch("readFiles", {"files": ["a"]})

    assert json.loads(read.result) == [{"path": "a", "content": "2"}]


def test_write_empty_list(agent_state):
    """Test that an empty write is tolerated."""
    toolset = ToolSet(agent_state)

    outcome = toolset.dispatch("createOrUpdateFiles", {"files": []})

    assert outcome.files == []
    assert "Wrote 0 file(s)" in outcome.result


def test_write_goes_through_sandbox(agent_state, sandbox, temp_dir):
    """Test that writes reach the sandbox filesystem."""
    toolset = ToolSet(agent_state, sandbox=sandbox)

    outcome = toolset.dispatch(
        "createOrUpdateFiles", {"files": [{"path": "src/App.js", "content": "app"}]}
    )

    assert (temp_dir / "src" / "App.js").read_text() == "app"
    assert outcome.files == [("src/App.js", "app")]


def test_write_reports_sandbox_errors(agent_state, sandbox):
    """Test that failed sandbox writes are reported but still returned."""
    toolset = ToolSet(agent_state, sandbox=sandbox)

    outcome = toolset.dispatch(
        "createOrUpdateFiles", {"files": [{"path": "../../escape.js", "content": "x"}]}
    )

    assert "Sandbox write errors" in outcome.result
    assert outcome.files == [("../../escape.js", "x")]


def test_read_missing_file_returns_sentinel(agent_state):
    """Test that a missing file is data, not an error."""
    toolset = ToolSet(agent_state)

    outcome = toolset.dispatch("readFiles", {"files": ["nope.js"]})

    assert json.loads(outcome.result) == [
        {"path": "nope.js", "content": NOT_FOUND_TEMPLATE.format(path="nope.js")}
    ]


def test_read_without_paths_returns_whole_map():
    """Test that omitting paths serializes every file."""
    state = AgentState({"/src/App.js": "app", "/src/Foo.js": "foo"})
    toolset = ToolSet(state)

    outcome = toolset.dispatch("readFiles", {})

    assert {e["path"]: e["content"] for e in json.loads(outcome.result)} == state.files


def test_read_tolerates_leading_slash():
    """Test that /a and a name the same state entry."""
    state = AgentState({"src/App.js": "app"})
    toolset = ToolSet(state)

    outcome = toolset.dispatch("readFiles", {"files": ["/src/App.js"]})

    assert json.loads(outcome.result)[0]["content"] == "app"


def test_read_falls_back_to_sandbox(agent_state, sandbox):
    """Test that files only present in the sandbox are still readable."""
    sandbox.write_file("notes.txt", "from disk")
    toolset = ToolSet(agent_state, sandbox=sandbox)

    outcome = toolset.dispatch("readFiles", {"files": ["notes.txt"]})

    assert json.loads(outcome.result)[0]["content"] == "from disk"


def test_terminal_success(agent_state, sandbox):
    toolset = ToolSet(agent_state, sandbox=sandbox)

    outcome = toolset.dispatch("terminal", {"command": "echo hi"})

    assert outcome.result.strip() == "hi"


def test_terminal_failure_is_text(agent_state, sandbox):
    """Test that a failing command is reported with both streams."""
    toolset = ToolSet(agent_state, sandbox=sandbox)

    outcome = toolset.dispatch("terminal", {"command": "echo out; echo err >&2; exit 2"})

    assert outcome.result.startswith("Command failed: exit code 2")
    assert "stdout: out" in outcome.result
    assert "stderr: err" in outcome.result


def test_terminal_without_sandbox(agent_state):
    toolset = ToolSet(agent_state)

    outcome = toolset.dispatch("terminal", {"command": "ls"})

    assert outcome.result.startswith("Command failed")


def test_invalid_arguments(agent_state):
    """Test that schema violations are reported, not raised."""
    toolset = ToolSet(agent_state)

    assert toolset.dispatch("terminal", {}).result.startswith("Invalid arguments for terminal")
    assert toolset.dispatch("terminal", {"command": ""}).result.startswith("Invalid arguments")
    assert toolset.dispatch(
        "createOrUpdateFiles", {"files": [{"path": "a"}]}
    ).result.startswith("Invalid arguments for createOrUpdateFiles")


def test_json_string_arguments(agent_state):
    """Test that JSON-encoded arguments are accepted."""
    toolset = ToolSet(agent_state)

    outcome = toolset.dispatch(
        "createOrUpdateFiles", json.dumps({"files": [{"path": "a.js", "content": "x"}]})
    )
    assert outcome.files == [("a.js", "x")]

    bad = toolset.dispatch("readFiles", "{not json")
    assert bad.result.startswith("Invalid arguments for readFiles")


def test_unknown_tool(agent_state):
    toolset = ToolSet(agent_state)

    assert toolset.dispatch("deploy", {}).result == "Error: Unknown tool deploy"


def test_handler_exception_is_reported(agent_state):
    """Test that a crashing sandbox does not escape dispatch."""

    class BrokenSandbox:
        def run(self, command, timeout=None):
            raise RuntimeError("connection reset")

    toolset = ToolSet(agent_state, sandbox=BrokenSandbox())

    outcome = toolset.dispatch("terminal", {"command": "ls"})

    assert outcome.result == "Error executing terminal: connection reset"


def test_execute_all_preserves_order(agent_state):
    """Test that concurrent calls come back in request order."""
    release = threading.Event()

    class SlowFirstSandbox:
        def run(self, command, timeout=None):
            from sandpit.sandbox.base import ExecResult

            if command == "first":
                release.wait(timeout=5)
            else:
                release.set()
            return ExecResult(True, command, "", 0, 0, command)

    toolset = ToolSet(agent_state, sandbox=SlowFirstSandbox(), max_workers=2)

    outcomes = toolset.execute_all([
        {"id": "1", "name": "terminal", "arguments": {"command": "first"}},
        {"id": "2", "name": "terminal", "arguments": {"command": "second"}},
    ])

    assert [o.result for o in outcomes] == ["first", "second"]


def test_merge_order_across_calls(agent_state):
    """Test that folding outcomes in request order gives last-write-wins."""
    toolset = ToolSet(agent_state)

    outcomes = toolset.execute_all([
        {"id": "1", "name": "createOrUpdateFiles", "arguments": {"files": [{"path": "a", "content": "1"}]}},
        {"id": "2", "name": "createOrUpdateFiles", "arguments": {"files": [{"path": "a", "content": "2"}]}},
    ])
    for outcome in outcomes:
        _fold(agent_state, outcome)

    assert agent_state.get_file("a") == "2"
