"""Tests for run transcripts and prompt assembly."""

import json

from sandpit.constants import SUMMARY_TAG
from sandpit.prompts import SystemPromptBuilder
from sandpit.utils.logging import RunLogger


def test_run_logger_writes_transcript(temp_dir):
    """Test that messages, tool results and the project land on disk."""
    run_logger = RunLogger(temp_dir, run_id="run1")

    run_logger.log_message("user", "Build it")
    run_logger.log_message("assistant", "", tool_calls=[{"id": "t1", "name": "terminal"}])
    run_logger.save_tool_result("terminal", {"command": "ls"}, "ok")
    run_logger.save_project({"/src/App.js": "x"})

    log_dir = temp_dir / ".sandpit" / "runs" / "run1"
    lines = (log_dir / "transcript.ndjson").read_text().splitlines()
    assert [json.loads(line)["role"] for line in lines] == ["user", "assistant"]
    assert json.loads(lines[1])["tool_calls"][0]["id"] == "t1"

    tool_file = log_dir / "tools" / "0001_terminal.json"
    assert json.loads(tool_file.read_text())["result"] == "ok"
    assert json.loads((log_dir / "project.json").read_text()) == {"/src/App.js": "x"}
    assert run_logger.get_log_path().endswith("run1")


def test_system_prompt_sections():
    prompt = SystemPromptBuilder().build()

    assert SUMMARY_TAG in prompt
    assert "createOrUpdateFiles" in prompt
    assert "Existing Project" not in prompt


def test_system_prompt_lists_existing_files():
    prompt = SystemPromptBuilder(["/src/App.js", "/src/Header.js"]).build()

    assert "Existing Project" in prompt
    assert "- /src/Header.js" in prompt
