import datetime as dt
import json

import pytest

from calendar_ai.errors import ExtractionParseError
from extraction.task_extractor import (
    ExtractionState,
    TaskExtractor,
    parse_extraction_payload,
    repair_task,
    validate_tasks,
)
from llm.llm_client import LLMClient


def _extractor(provider):
    return TaskExtractor(llm_client=LLMClient(provider=provider))


def test_missing_fields_get_defaults(fake_provider_factory):
    extractor = _extractor(fake_provider_factory('{"tasks":[{"title":"Call Bob"}]}'))
    result = extractor.extract("call bob")
    assert result.total == 1
    assert result.dropped == 0
    task = result.tasks[0]
    assert task.model_dump(exclude={"date"}) == {
        "title": "Call Bob",
        "description": "",
        "start_time": "12:00",
        "duration": 30,
        "priority": "medium",
    }
    assert extractor.state == ExtractionState.SUCCESS


def test_invalid_rows_are_dropped_not_fatal(fake_provider_factory, tasks_response):
    content = tasks_response(
        {"title": "Gym", "startTime": "07:00", "duration": 60, "priority": "low"},
        {"title": "Marathon", "startTime": "06:00", "duration": 1000, "priority": "high"},
        {"title": "Lunch", "startTime": "12:30", "duration": 45, "priority": "medium"},
    )
    result = _extractor(fake_provider_factory(content)).extract("my day")
    assert [t.title for t in result.tasks] == ["Gym", "Lunch"]
    assert result.dropped == 1
    assert result.total == 3


def test_unparseable_output_fails_whole_extraction(fake_provider_factory):
    extractor = _extractor(fake_provider_factory("Sure! Here are your tasks"))
    with pytest.raises(ExtractionParseError):
        extractor.extract("anything")
    assert extractor.state == ExtractionState.FAILED


def test_payload_shapes():
    assert parse_extraction_payload('[{"title": "A"}]') == [{"title": "A"}]
    assert parse_extraction_payload('{"tasks": [{"title": "A"}]}') == [{"title": "A"}]
    assert parse_extraction_payload('{"title": "A"}') == [{"title": "A"}]


@pytest.mark.parametrize("content", ['{"tasks": "A"}', '"just a string"', "42"])
def test_payload_shapes_rejected(content):
    with pytest.raises(ExtractionParseError):
        parse_extraction_payload(content)


def test_repair_coerces_model_quirks():
    repaired = repair_task(
        {
            "title": "  Standup ",
            "description": "made up by the model",
            "startTime": "9:07",
            "duration": "45",
            "priority": "HIGH",
            "date": "2025-06-02",
        }
    )
    assert repaired == {
        "title": "Standup",
        "description": "",
        "start_time": "09:00",
        "duration": 45,
        "priority": "high",
        "date": dt.date(2025, 6, 2),
    }


def test_repair_falls_back_to_defaults():
    repaired = repair_task({"title": "", "startTime": "soon", "duration": True, "priority": "urgent", "date": "someday"})
    assert repaired["title"] == "Untitled Task"
    assert repaired["start_time"] == "12:00"
    assert repaired["duration"] == 30
    assert repaired["priority"] == "medium"
    assert repaired["date"] is None


def test_snake_case_start_time_is_accepted():
    assert repair_task({"title": "A", "start_time": "14:20"})["start_time"] == "14:15"


def test_non_object_candidates_are_dropped():
    valid, dropped = validate_tasks([{"title": "A"}, "B", None, {"title": "C", "duration": 5}])
    assert [t.title for t in valid] == ["A"]
    assert dropped == 3


def test_empty_task_list_is_success(fake_provider_factory):
    result = _extractor(fake_provider_factory(json.dumps({"tasks": []}))).extract("nothing to do")
    assert result.tasks == []
    assert result.total == 0


def test_unexpected_provider_error_marks_extraction_failed(fake_provider_factory):
    extractor = _extractor(fake_provider_factory(None, exc=RuntimeError("boom")))
    with pytest.raises(RuntimeError):
        extractor.extract("anything")
    assert extractor.state == ExtractionState.FAILED


def test_extractors_sharing_a_client_keep_their_own_state(fake_provider_factory):
    client = LLMClient(provider=fake_provider_factory('{"tasks":[{"title":"Call Bob"}]}'))
    first = TaskExtractor(llm_client=client)
    second = TaskExtractor(llm_client=client)

    first.extract("call bob")
    assert first.state == ExtractionState.SUCCESS
    assert second.state == ExtractionState.IDLE
