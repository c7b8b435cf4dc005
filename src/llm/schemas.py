from __future__ import annotations
from typing import Optional, List
from pydantic import BaseModel, Field

from calendar_ai.models import TaskExtract, MIN_DURATION_MIN, MAX_DURATION_MIN, PRIORITIES

JSON_OBJECT_FORMAT = {"type": "json_object"}

# Function-call variant: the model is forced to call this with a typed "tasks" argument.
EXTRACTION_FUNCTION_SCHEMA = {
    "name": "extractTasks",
    "description": "Extract tasks from user input",
    "parameters": {
        "type": "object",
        "properties": {
            "tasks": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "title": {"type": "string"},
                        "startTime": {"type": "string", "pattern": "^\\d{2}:\\d{2}$"},
                        "duration": {
                            "type": "number",
                            "minimum": MIN_DURATION_MIN,
                            "maximum": MAX_DURATION_MIN,
                        },
                        "priority": {"type": "string", "enum": list(PRIORITIES)},
                        "date": {"type": "string", "format": "date"},
                    },
                    "required": ["title", "startTime", "duration", "priority"],
                },
            }
        },
        "required": ["tasks"],
    },
}


class ExtractionRequest(BaseModel):
    system: str
    user: str
    response_format: Optional[dict] = None
    function_schema: Optional[dict] = None


class ExtractionResult(BaseModel):
    tasks: List[TaskExtract] = Field(default_factory=list)
    # elements the model returned that could not be repaired into a valid task
    dropped: int = 0
    total: int = 0
