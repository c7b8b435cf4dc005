import datetime as dt

import httpx
import pytest

from calendar_ai.errors import EmptyInput, EmptyResponse, ProviderUnavailable
from llm.llm_client import LLMClient, build_extraction_request, create_provider
from llm.schemas import EXTRACTION_FUNCTION_SCHEMA, JSON_OBJECT_FORMAT


def test_extract_tasks_raw_returns_provider_text(fake_provider_factory):
    provider = fake_provider_factory('{"tasks":[{"title":"Send invoice"}]}')
    client = LLMClient(provider=provider)
    out = client.extract_tasks_raw("Send invoice")
    assert out == '{"tasks":[{"title":"Send invoice"}]}'
    assert provider.calls[0]["user"] == "Send invoice"
    assert provider.calls[0]["response_format"] == JSON_OBJECT_FORMAT
    assert provider.calls[0]["function_schema"] is None


def test_function_call_mode_sends_schema(fake_provider_factory):
    provider = fake_provider_factory('{"tasks":[]}')
    client = LLMClient(provider=provider, mode="function_call")
    client.extract_tasks_raw("Anything")
    assert provider.calls[0]["function_schema"] == EXTRACTION_FUNCTION_SCHEMA
    assert provider.calls[0]["response_format"] is None


@pytest.mark.parametrize("text", ["", "   ", "\n"])
def test_empty_input_never_calls_provider(fake_provider_factory, text):
    provider = fake_provider_factory('{"tasks":[]}')
    client = LLMClient(provider=provider)
    with pytest.raises(EmptyInput):
        client.extract_tasks_raw(text)
    assert provider.calls == []


@pytest.mark.parametrize("content", [None, "", "  "])
def test_empty_provider_response(fake_provider_factory, content):
    client = LLMClient(provider=fake_provider_factory(content))
    with pytest.raises(EmptyResponse):
        client.extract_tasks_raw("Call mom")


def test_network_failure_is_provider_unavailable(fake_provider_factory):
    provider = fake_provider_factory(None, exc=httpx.ConnectError("connection refused"))
    client = LLMClient(provider=provider)
    with pytest.raises(ProviderUnavailable):
        client.extract_tasks_raw("Call mom")


def test_missing_openai_key_surfaces_on_first_call(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setattr("llm.llm_client.LLM_PROVIDER", "openai")
    # constructing the client must not fail
    client = LLMClient()
    with pytest.raises(ProviderUnavailable):
        client.extract_tasks_raw("Call mom")


def test_unknown_provider():
    with pytest.raises(ProviderUnavailable):
        create_provider("nope")


def test_system_prompt_carries_date_context():
    now = dt.datetime(2025, 3, 14, 8, 30)
    request = build_extraction_request("dentist tomorrow", now=now, timezone_name="Europe/Berlin")
    assert "2025-03-14" in request.system
    assert "2025-03-15" in request.system
    assert "Europe/Berlin" in request.system
    assert "DO NOT include descriptions" in request.system
    assert request.user == "dentist tomorrow"


def test_current_date_follows_the_requested_timezone():
    # UTC-12 and UTC+14 are always on different calendar days
    behind = build_extraction_request("standup", timezone_name="Etc/GMT+12")
    ahead = build_extraction_request("standup", timezone_name="Etc/GMT-14")

    def current_date(request):
        return next(line for line in request.system.splitlines() if line.startswith("- Current date:"))

    assert current_date(behind) != current_date(ahead)
    today_ahead = dt.datetime.now(dt.timezone(dt.timedelta(hours=14))).date().isoformat()
    assert current_date(ahead) == f"- Current date: {today_ahead}"
