from __future__ import annotations

import datetime as dt
import json
import logging
import math
from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import ValidationError

from calendar_ai.errors import ExtractionParseError
from calendar_ai.models import DEFAULT_DURATION_MIN, PRIORITIES, TaskExtract
from calendar_ai.timecodec import coerce_time_string, round_to_nearest_increment
from llm.llm_client import LLMClient
from llm.schemas import ExtractionResult

logger = logging.getLogger(__name__)

UNTITLED_TASK = "Untitled Task"
START_TIME_INCREMENT_MIN = 15


class ExtractionState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    SUCCESS = "success"
    FAILED = "failed"


def parse_extraction_payload(content: str) -> List[Any]:
    """Parse the model output and normalise it to a list of raw task candidates."""
    try:
        parsed = json.loads(content)
    except (TypeError, ValueError) as e:
        logger.error(f"Error parsing JSON response: {e}")
        raise ExtractionParseError()

    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        tasks = parsed.get("tasks")
        if isinstance(tasks, list):
            return tasks
        if tasks is None:
            # a single object is treated as a one-element array
            return [parsed]
    raise ExtractionParseError()


def _repair_duration(value: Any) -> int:
    if isinstance(value, bool):
        return DEFAULT_DURATION_MIN
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return DEFAULT_DURATION_MIN
    if isinstance(value, (int, float)) and math.isfinite(value):
        return int(round(value))
    return DEFAULT_DURATION_MIN


def _repair_date(value: Any) -> Optional[dt.date]:
    if not isinstance(value, str) or not value.strip():
        return None
    s = value.strip()
    try:
        return dt.date.fromisoformat(s[:10])
    except ValueError:
        logger.warning(f"Invalid date from model: {value!r}, leaving unset")
        return None


def repair_task(raw: dict) -> dict:
    """Fill missing or invalid fields of one model-produced task with defaults.

    Descriptions are always cleared: extraction never invents them.
    Out-of-range numeric durations are kept so validation can reject them.
    """
    title = raw.get("title")
    title = title.strip() if isinstance(title, str) else ""

    priority = raw.get("priority")
    if isinstance(priority, str):
        priority = priority.strip().lower()

    start_time = coerce_time_string(raw.get("startTime", raw.get("start_time")))

    return {
        "title": title or UNTITLED_TASK,
        "description": "",
        "start_time": round_to_nearest_increment(start_time, START_TIME_INCREMENT_MIN),
        "duration": _repair_duration(raw.get("duration")),
        "priority": priority if priority in PRIORITIES else "medium",
        "date": _repair_date(raw.get("date")),
    }


def validate_tasks(candidates: List[Any]) -> Tuple[List[TaskExtract], int]:
    """Repair and validate every candidate in isolation.

    Returns the valid tasks and the number of dropped candidates.
    """
    valid: List[TaskExtract] = []
    dropped = 0
    for index, raw in enumerate(candidates):
        if not isinstance(raw, dict):
            logger.warning(f"Task {index} is not an object, dropping it")
            dropped += 1
            continue
        try:
            valid.append(TaskExtract(**repair_task(raw)))
        except ValidationError as e:
            logger.warning(f"Task {index} validation error, dropping it: {e.errors()}")
            dropped += 1
    return valid, dropped


class TaskExtractor:
    """Free text -> validated TaskExtract list via one language-model call.

    ``state`` tracks a single extraction, so use one instance per request.
    The LLMClient can be shared.
    """

    def __init__(self, llm_client: Optional[LLMClient] = None, timezone_name: str = "America/Los_Angeles"):
        self.llm_client = llm_client or LLMClient()
        self.timezone_name = timezone_name
        self.state = ExtractionState.IDLE

    def extract(self, text: str, now: Optional[dt.datetime] = None) -> ExtractionResult:
        self.state = ExtractionState.REQUESTING
        try:
            content = self.llm_client.extract_tasks_raw(
                text, now=now, timezone_name=self.timezone_name
            )
            candidates = parse_extraction_payload(content)
        except Exception:
            self.state = ExtractionState.FAILED
            raise

        tasks, dropped = validate_tasks(candidates)
        self.state = ExtractionState.SUCCESS
        logger.info(f"Validation complete. Valid tasks: {len(tasks)} out of {len(candidates)}")
        return ExtractionResult(tasks=tasks, dropped=dropped, total=len(candidates))
