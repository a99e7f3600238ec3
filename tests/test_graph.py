"""Tests for the orchestration loop."""

from conftest import FakeLLM, reply, tool_call

from sandpit.config import Config
from sandpit.constants import ERROR_MESSAGE, FALLBACK_RESPONSE, FALLBACK_TITLE, SUMMARY_TAG, TYPE_ERROR
from sandpit.graph import AgentNetwork, RunContext
from sandpit.llm import LLM
from sandpit.materializer.pipeline import materialize
from sandpit.state import AgentState
from sandpit.store import InMemoryStore, persist_run_result

SUMMARY = "<task_summary>\nBuilt a todo app\n</task_summary>"
OPENING = [
    {"role": "system", "content": "You are a coding agent."},
    {"role": "user", "content": "Build a todo app"},
]


def make_network(llm, state=None, sleeps=None, **overrides):
    settings = {"anthropic_api_key": "test_key", "max_iterations": 5, "max_tool_rounds": 5, "model_retries": 1}
    settings.update(overrides)
    context = RunContext(config=Config(**settings), llm=llm, state=state or AgentState())
    sleep = sleeps.append if sleeps is not None else (lambda _: None)
    return AgentNetwork(context, sleep=sleep)


def write_call(call_id, path, content):
    return tool_call(call_id, "createOrUpdateFiles", {"files": [{"path": path, "content": content}]})


def test_iteration_bound_is_never_exceeded():
    """Test that a model that never finishes stops after exactly 3 turns."""
    llm = FakeLLM(default=reply("Still thinking."))
    network = make_network(llm, max_iterations=3)

    result = network.execute(OPENING)

    assert len(llm.calls) == 3
    assert result.is_error
    assert result.iterations == 3
    assert "No summary" in result.error


def test_summary_terminates_the_run():
    """Test the happy path: write files, emit the summary, derive title and response."""
    llm = FakeLLM([
        reply("Writing files.", [write_call("t1", "src/App.js", "export default 1;")]),
        reply(SUMMARY),
        reply("Todo App"),
        reply("I built a todo app for you."),
    ])
    network = make_network(llm)

    result = network.execute(OPENING)

    assert not result.is_error
    assert result.iterations == 1
    assert result.summary == SUMMARY
    assert result.files == {"/src/App.js": "export default 1;"}
    assert result.title == "Todo App"
    assert result.response == "I built a todo app for you."
    assert len(llm.calls) == 4


def test_tool_results_fed_back_in_order():
    """Test that each tool result follows its call in the conversation."""
    llm = FakeLLM([
        reply("", [write_call("t1", "a.js", "1"), write_call("t2", "a.js", "2")]),
        reply(SUMMARY),
    ])
    network = make_network(llm)

    result = network.execute(OPENING)

    second_call = llm.calls[1]["messages"]
    assert second_call[2]["role"] == "assistant"
    assert [m["tool_call_id"] for m in second_call[3:5]] == ["t1", "t2"]
    assert result.files == {"/a.js": "2"}


def test_empty_files_is_error_and_not_persisted():
    """Test that a summary with no files is an error with no artifact."""
    llm = FakeLLM([reply(SUMMARY)])
    network = make_network(llm)
    store = InMemoryStore()

    result = network.execute(OPENING)
    message = persist_run_result(store, "p1", result)

    assert result.is_error
    assert result.files == {}
    assert message.type == TYPE_ERROR
    assert message.content == ERROR_MESSAGE
    assert store.find_latest_artifact("p1") is None


def test_model_error_retried_within_turn():
    llm = FakeLLM([RuntimeError("overloaded"), reply(SUMMARY), reply("Title"), reply("Done.")])
    sleeps = []
    network = make_network(llm, state=AgentState({"src/App.js": "x"}), sleeps=sleeps)

    result = network.execute(OPENING)

    assert not result.is_error
    assert result.iterations == 1
    assert sleeps == [1.0]


def test_exhausted_retries_fed_back_as_text():
    """Test that a failing model ends the turn and the next turn sees the failure."""
    llm = FakeLLM([
        RuntimeError("overloaded"),
        RuntimeError("overloaded"),
        reply(SUMMARY),
        reply("Title"),
        reply("Done."),
    ])
    network = make_network(llm, state=AgentState({"src/App.js": "x"}))

    result = network.execute(OPENING)

    assert not result.is_error
    assert result.iterations == 2
    last = llm.calls[2]["messages"][-1]
    assert last["role"] == "user"
    assert "failed after 2 attempt(s)" in last["content"]


def test_tool_rounds_bounded_per_turn():
    llm = FakeLLM(default=reply("", [tool_call("t", "readFiles", {})]))
    network = make_network(llm, max_iterations=1, max_tool_rounds=2)

    result = network.execute(OPENING)

    assert len(llm.calls) == 2
    assert result.is_error


def test_cancelled_before_first_turn():
    llm = FakeLLM()
    network = make_network(llm)
    network.context.cancel_event.set()

    result = network.execute(OPENING)

    assert result.is_error
    assert result.cancelled
    assert llm.calls == []


def test_title_and_response_fallbacks():
    """Test that failed or empty helper output falls back to generic text."""
    llm = FakeLLM([reply(SUMMARY), RuntimeError("down"), reply("   ")])
    network = make_network(llm, state=AgentState({"src/App.js": "x"}))

    result = network.execute(OPENING)

    assert not result.is_error
    assert result.title == FALLBACK_TITLE
    assert result.response == FALLBACK_RESPONSE


def test_title_trimmed_to_three_words():
    network = make_network(FakeLLM([reply('"Shiny New Todo Board"')]))

    assert network.generate_title(SUMMARY) == "Shiny New Todo"


def test_unexpected_exception_becomes_error_result():
    """Test that an exception inside the loop never escapes execute()."""

    class BrokenLLM:
        def complete(self, messages, tools=None, temperature=None, max_tokens=None):
            return None

    network = make_network(BrokenLLM())

    result = network.execute(OPENING)

    assert result.is_error
    assert result.error.startswith("AttributeError")


def test_same_file_spelled_two_ways_keeps_latest_write():
    """Test that /src/App.js and src/App.js are one file and the newest write wins."""
    llm = FakeLLM([
        reply("", [write_call("t1", "/src/App.js", "v1")]),
        reply("", [write_call("t2", "src/App.js", "v2")]),
        reply("", [write_call("t3", "/src/App.js", "v3")]),
        reply(SUMMARY),
        reply("Todo App"),
        reply("Done."),
    ])
    network = make_network(llm)

    result = network.execute(OPENING)

    assert result.files == {"/src/App.js": "v3"}
    app = materialize(result.files).files["/src/App.js"]
    assert "v3" in app
    assert "v2" not in app


def test_unfinished_turn_hands_back_to_user():
    """Test that a turn ending in plain text is followed by a user nudge."""
    llm = FakeLLM(default=reply("Let me keep going.\n"))
    network = make_network(llm, max_iterations=2)

    network.execute(OPENING)

    second_call = llm.calls[1]["messages"]
    assert second_call[-2] == {"role": "assistant", "content": "Let me keep going.\n"}
    assert second_call[-1]["role"] == "user"
    assert SUMMARY_TAG in second_call[-1]["content"]
    _, converted = LLM(LLM.parse_model_string("anthropic:claude-haiku-4-5"), "test_key")._to_anthropic_messages(second_call)
    assert converted[-1]["role"] == "user"


def test_helper_calls_are_sent_without_tools():
    llm = FakeLLM([
        reply("", [write_call("t1", "src/App.js", "x")]),
        reply(SUMMARY),
        reply("Todo App"),
        reply("Done."),
    ])
    network = make_network(llm)

    network.execute(OPENING)

    assert len(llm.calls) == 4
    assert len(llm.tool_calls_made) == 2
