"""Tests for single-call generation."""

import json

import pytest
from conftest import FakeLLM, reply

from sandpit.constants import FALLBACK_TITLE
from sandpit.errors import GenerationError
from sandpit.oneshot import OneShotGenerator, build_prompt, parse_response

RESPONSE = {
    "projectTitle": "Todo App",
    "explanation": "A todo list with filters.",
    "files": {
        "/App.js": {"code": "import TodoList from './components/TodoList';\n"
                            "export default function App() { return <TodoList />; }\n"},
        "/components/TodoList.js": {"code": "export default function TodoList() { return <ul />; }\n"},
    },
    "generatedFiles": ["/App.js", "/components/TodoList.js"],
}


def test_parse_plain_json():
    parsed = parse_response(json.dumps(RESPONSE))

    assert parsed.projectTitle == "Todo App"
    assert set(parsed.files) == {"/App.js", "/components/TodoList.js"}


def test_parse_fenced_json_with_chatter():
    text = "Sure! Here it is:\n```json\n" + json.dumps(RESPONSE) + "\n```\nEnjoy."

    parsed = parse_response(text)

    assert parsed.generatedFiles == RESPONSE["generatedFiles"]


def test_parse_invalid_json():
    with pytest.raises(GenerationError):
        parse_response("I could not do that.")


def test_parse_wrong_shape():
    with pytest.raises(GenerationError):
        parse_response('{"files": ["not", "a", "map"]}')


def test_prompt_mentions_schema():
    prompt = build_prompt("Build a todo app")

    assert prompt.startswith("Build a todo app")
    assert '"projectTitle"' in prompt
    assert "lucide-react" in prompt


def test_generate_materializes_files():
    """Test that the structured response goes through the materializer."""
    llm = FakeLLM([reply(json.dumps(RESPONSE))])

    result = OneShotGenerator(llm).generate("Build a todo app")

    assert result.title == "Todo App"
    assert result.explanation == "A todo list with filters."
    files = result.project.files
    assert "/src/TodoList.js" in files
    assert "from './TodoList'" in files["/src/App.js"]
    assert result.project.placeholders == []


def test_generate_without_title_falls_back():
    data = dict(RESPONSE, projectTitle="  ")
    llm = FakeLLM([reply(json.dumps(data))])

    result = OneShotGenerator(llm).generate("Build a todo app")

    assert result.title == FALLBACK_TITLE


def test_generate_without_files_fails():
    llm = FakeLLM([reply(json.dumps({"projectTitle": "Empty", "files": {}}))])

    with pytest.raises(GenerationError):
        OneShotGenerator(llm).generate("Build a todo app")
