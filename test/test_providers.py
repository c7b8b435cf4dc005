import json

import pytest

from calendar_ai.errors import ProviderUnavailable
from extraction.task_extractor import ExtractionState, TaskExtractor
from llm.llm_client import LLMClient, create_provider
from llm.providers.ollama_provider import OllamaProvider
from llm.providers.openai_provider import OpenAIProvider
from llm.schemas import EXTRACTION_FUNCTION_SCHEMA, JSON_OBJECT_FORMAT


def test_openai_json_object_mode(monkeypatch, captured_http):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    captured_http["reply"] = {"choices": [{"message": {"content": '{"tasks": []}'}}]}

    out = OpenAIProvider().generate(system="sys", user="hi", response_format=JSON_OBJECT_FORMAT)
    assert out == '{"tasks": []}'
    sent = captured_http["requests"][0]
    assert sent["response_format"] == {"type": "json_object"}
    assert sent["messages"][0] == {"role": "system", "content": "sys"}
    assert "tools" not in sent


def test_openai_forced_function_call(monkeypatch, captured_http):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    captured_http["reply"] = {
        "choices": [
            {"message": {"tool_calls": [{"function": {"name": "extractTasks", "arguments": '{"tasks": []}'}}]}}
        ]
    }

    out = OpenAIProvider().generate(system="sys", user="hi", function_schema=EXTRACTION_FUNCTION_SCHEMA)
    assert out == '{"tasks": []}'
    sent = captured_http["requests"][0]
    assert sent["tool_choice"]["function"]["name"] == "extractTasks"
    assert "response_format" not in sent


def test_openai_without_tool_call_returns_nothing(monkeypatch, captured_http):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    captured_http["reply"] = {"choices": [{"message": {"content": "I can't"}}]}
    assert OpenAIProvider().generate(system="s", user="u", function_schema=EXTRACTION_FUNCTION_SCHEMA) is None


def test_ollama_uses_schema_as_format(captured_http):
    captured_http["reply"] = {"message": {"content": '{"tasks": []}'}}
    provider = OllamaProvider()
    provider.generate(system="s", user="u", function_schema=EXTRACTION_FUNCTION_SCHEMA)
    provider.generate(system="s", user="u", response_format=JSON_OBJECT_FORMAT)
    assert captured_http["requests"][0]["format"] == EXTRACTION_FUNCTION_SCHEMA["parameters"]
    assert captured_http["requests"][1]["format"] == "json"


def test_mock_provider_returns_tasks_payload():
    out = json.loads(create_provider("mock").generate(system="s", user="standup then gym"))
    assert [t["title"] for t in out["tasks"]] == ["Team meeting", "Go for a run"]


@pytest.mark.parametrize(
    "reply",
    [
        {"error": {"message": "The server is overloaded"}},
        {"choices": []},
        {"choices": [{"finish_reason": "length"}]},
    ],
)
def test_openai_unexpected_body_is_provider_unavailable(monkeypatch, captured_http, reply):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    captured_http["reply"] = reply
    with pytest.raises(ProviderUnavailable):
        OpenAIProvider().generate(system="s", user="u", response_format=JSON_OBJECT_FORMAT)


def test_ollama_unexpected_body_is_provider_unavailable(captured_http):
    captured_http["reply"] = ["not", "an", "object"]
    with pytest.raises(ProviderUnavailable):
        OllamaProvider().generate(system="s", user="u", response_format=JSON_OBJECT_FORMAT)


def test_unexpected_body_marks_extraction_failed(monkeypatch, captured_http):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    captured_http["reply"] = {"error": {"message": "The server is overloaded"}}
    extractor = TaskExtractor(llm_client=LLMClient(provider=OpenAIProvider()))
    with pytest.raises(ProviderUnavailable):
        extractor.extract("call mom")
    assert extractor.state == ExtractionState.FAILED
