from __future__ import annotations

import uuid
import datetime as dt
from typing import Literal, Optional, List

from pydantic import BaseModel, Field, field_validator, model_validator

from calendar_ai.timecodec import DEFAULT_START_TIME

Priority = Literal["high", "medium", "low"]
PRIORITIES = ("high", "medium", "low")

MIN_DURATION_MIN = 15
MAX_DURATION_MIN = 480
DEFAULT_DURATION_MIN = 30

# 24h wall-clock "HH:MM", 00:00 to 23:59
TIME_OF_DAY_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class TaskExtract(BaseModel):
    """A task candidate produced by extraction, not yet confirmed by the user."""

    title: str = Field(..., min_length=1)
    description: str = ""
    start_time: str = Field(DEFAULT_START_TIME, pattern=TIME_OF_DAY_PATTERN)
    duration: int = Field(DEFAULT_DURATION_MIN, ge=MIN_DURATION_MIN, le=MAX_DURATION_MIN)
    priority: Priority = "medium"
    date: Optional[dt.date] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("title must not be blank")
        return v2


class Task(BaseModel):
    """A confirmed task.

    ``time_of_day`` is always the wall-clock "HH:MM" value and ``start``/``end``
    are only set once the task has been anchored to a date.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    user_id: Optional[str] = None
    title: str = Field(..., min_length=1)
    description: str = ""
    time_of_day: str = Field(DEFAULT_START_TIME, pattern=TIME_OF_DAY_PATTERN)
    duration: int = Field(DEFAULT_DURATION_MIN, ge=MIN_DURATION_MIN, le=MAX_DURATION_MIN)
    priority: Priority = "medium"
    date: Optional[dt.date] = None
    start: Optional[dt.datetime] = None
    end: Optional[dt.datetime] = None
    category: Optional[str] = None
    is_ai_created: bool = False
    google_event_id: Optional[str] = None


class TaskCreate(BaseModel):
    """Payload for creating a single task. ``start`` is a full ISO instant."""

    title: str = Field(..., min_length=1)
    description: str = ""
    start: dt.datetime
    end: Optional[dt.datetime] = None
    duration: int = Field(DEFAULT_DURATION_MIN, ge=MIN_DURATION_MIN, le=MAX_DURATION_MIN)
    priority: Priority = "medium"
    category: Optional[str] = None
    is_ai_created: bool = False

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("title must not be blank")
        return v2

    @model_validator(mode="after")
    def fill_end(self) -> "TaskCreate":
        if self.end is None:
            self.end = self.start + dt.timedelta(minutes=self.duration)
        elif (self.end.tzinfo is None) != (self.start.tzinfo is None):
            raise ValueError("start and end must both carry a timezone or neither")
        elif self.end <= self.start:
            raise ValueError("end must be after start")
        return self


class CalendarTask(BaseModel):
    """A remote calendar event as shown in the month and day views."""

    id: str
    title: str = "Untitled Event"
    description: str = ""
    start: Optional[str] = None
    end: Optional[str] = None
    priority: Priority = "medium"
    is_all_day: bool = False
    is_ai_created: bool = False
    calendar_id: str = ""


class BatchCreateResult(BaseModel):
    created: List[Task] = Field(default_factory=list)
    failed: int = 0
    total: int = 0
    errors: List[str] = Field(default_factory=list)


class UserSession(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    user_id: str
    email: str
    name: Optional[str] = None
    image: Optional[str] = None

    access_token: str
    refresh_token: Optional[str] = None
    # unix seconds
    access_token_expires_at: float = 0.0

    # set when a token refresh failed; the session is kept so the UI can prompt re-auth
    error: Optional[str] = None

    def public_user(self) -> dict:
        return {
            "id": self.user_id,
            "email": self.email,
            "name": self.name,
            "image": self.image,
        }
