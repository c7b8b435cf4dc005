import asyncio
import logging
import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, model_validator

from api.dependencies import (
    CalendarFactory,
    get_calendar_factory,
    get_current_session,
    get_task_extractor,
    get_task_store,
)
from api.metrics import (
    TASKS_CREATED_TOTAL,
    TASKS_DROPPED_TOTAL,
    TASKS_EXTRACTED_TOTAL,
    TASK_CREATE_FAILURES_TOTAL,
    track_request,
)
from api.state import APP_TIMEZONE
from calendar_ai.models import Task, TaskCreate, TaskExtract, UserSession
from extraction.task_extractor import TaskExtractor
from integration.calendar_integration import CalendarIntegration, event_to_task
from scheduling.batch import create_tasks_concurrently
from scheduling.confirmation import ConfirmationSession
from scheduling.reconciliation import resolve_timezone, today_in
from storage.task_store import TaskStore

router = APIRouter()
logger = logging.getLogger(__name__)


class ExtractIn(BaseModel):
    text: str


class BatchIn(BaseModel):
    tasks: List[TaskExtract]
    # ISO date applied to every task without its own date
    date: Optional[str] = None


class MoveIn(BaseModel):
    start: dt.datetime
    end: dt.datetime

    @model_validator(mode="after")
    def end_after_start(self) -> "MoveIn":
        if (self.end.tzinfo is None) != (self.start.tzinfo is None):
            raise ValueError("start and end must both carry a timezone or neither")
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self


def _month_range(month: int, year: int, tz: dt.tzinfo):
    start = dt.datetime(year, month, 1, tzinfo=tz)
    if month == 12:
        end = dt.datetime(year + 1, 1, 1, tzinfo=tz)
    else:
        end = dt.datetime(year, month + 1, 1, tzinfo=tz)
    return start, end


async def _create_task(
    payload: TaskCreate,
    calendar: CalendarIntegration,
    task_store: TaskStore,
    user_id: str,
) -> Task:
    """Create the remote event, then record the task locally."""
    event_id = await asyncio.to_thread(calendar.create_event, payload)
    task = Task(
        title=payload.title,
        description=payload.description,
        time_of_day=payload.start.strftime("%H:%M"),
        duration=payload.duration,
        priority=payload.priority,
        date=payload.start.date(),
        start=payload.start,
        end=payload.end,
        category=payload.category,
        is_ai_created=payload.is_ai_created,
        google_event_id=event_id,
    )
    return task_store.add(user_id, task)


@router.post("/tasks/extract")
async def extract_tasks(
    payload: ExtractIn,
    session: UserSession = Depends(get_current_session),
    extractor: TaskExtractor = Depends(get_task_extractor),
):
    """Extract task candidates from free text. Nothing is saved."""
    with track_request("/tasks/extract"):
        logger.info(f"Extracting tasks for {session.email}")
        result = await asyncio.to_thread(extractor.extract, payload.text)

    TASKS_EXTRACTED_TOTAL.inc(len(result.tasks))
    TASKS_DROPPED_TOTAL.inc(result.dropped)
    return JSONResponse(
        content=[task.model_dump(mode="json") for task in result.tasks],
        headers={"X-Tasks-Dropped": str(result.dropped)},
    )


@router.post("/tasks")
async def create_task(
    payload: TaskCreate,
    session: UserSession = Depends(get_current_session),
    task_store: TaskStore = Depends(get_task_store),
    calendar_factory: CalendarFactory = Depends(get_calendar_factory),
) -> dict:
    with track_request("/tasks"):
        try:
            task = await _create_task(payload, calendar_factory(session), task_store, session.user_id)
        except Exception:
            TASK_CREATE_FAILURES_TOTAL.inc()
            raise
    TASKS_CREATED_TOTAL.inc()
    return task.model_dump(mode="json")


@router.post("/tasks/batch")
async def create_tasks_batch(
    payload: BatchIn,
    session: UserSession = Depends(get_current_session),
    task_store: TaskStore = Depends(get_task_store),
    calendar_factory: CalendarFactory = Depends(get_calendar_factory),
) -> dict:
    """Confirm a set of extracted tasks: anchor each to its date and create them in parallel."""
    with track_request("/tasks/batch"):
        confirmation = ConfirmationSession(
            payload.tasks,
            selected_date=payload.date,
            tz=resolve_timezone(APP_TIMEZONE),
        )
        # one client per task: the Google API client is not thread-safe
        result = await create_tasks_concurrently(
            confirmation.to_task_payloads(),
            lambda task: _create_task(task, calendar_factory(session), task_store, session.user_id),
        )

    TASKS_CREATED_TOTAL.inc(len(result.created))
    TASK_CREATE_FAILURES_TOTAL.inc(result.failed)
    return result.model_dump(mode="json")


@router.get("/tasks")
async def list_tasks(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1970, le=9999),
    event_id: Optional[str] = Query(None, alias="eventId"),
    session: UserSession = Depends(get_current_session),
    calendar_factory: CalendarFactory = Depends(get_calendar_factory),
):
    """Remote events for one month, or a single event when ``eventId`` is given."""
    calendar = calendar_factory(session)
    with track_request("/tasks"):
        if event_id:
            event = await asyncio.to_thread(calendar.get_event, event_id)
            return event_to_task(event).model_dump(mode="json")

        tz = resolve_timezone(APP_TIMEZONE)
        today = today_in(tz)
        time_min, time_max = _month_range(month or today.month, year or today.year, tz)
        events = await asyncio.to_thread(calendar.list_events, time_min, time_max)

    return [event_to_task(event).model_dump(mode="json") for event in events]


@router.patch("/tasks/{event_id}/move")
async def move_task(
    event_id: str,
    payload: MoveIn,
    session: UserSession = Depends(get_current_session),
    task_store: TaskStore = Depends(get_task_store),
    calendar_factory: CalendarFactory = Depends(get_calendar_factory),
) -> dict:
    """Persist a drag-reschedule commit."""
    calendar = calendar_factory(session)
    with track_request("/tasks/move"):
        patch = {
            "start": {"dateTime": payload.start.isoformat(), "timeZone": APP_TIMEZONE},
            "end": {"dateTime": payload.end.isoformat(), "timeZone": APP_TIMEZONE},
        }
        event = await asyncio.to_thread(calendar.update_event, event_id, patch)

    local = task_store.find_by_event_id(session.user_id, event_id)
    if local is not None:
        task_store.update(
            session.user_id,
            local.id,
            start=payload.start,
            end=payload.end,
            date=payload.start.date(),
            time_of_day=payload.start.strftime("%H:%M"),
        )
    logger.info(f"Moved event {event_id} to {payload.start.isoformat()}")
    return event_to_task(event).model_dump(mode="json")


@router.delete("/tasks")
async def delete_task(
    event_id: str = Query(..., alias="eventId"),
    session: UserSession = Depends(get_current_session),
    task_store: TaskStore = Depends(get_task_store),
    calendar_factory: CalendarFactory = Depends(get_calendar_factory),
) -> dict:
    calendar = calendar_factory(session)
    with track_request("/tasks/delete"):
        await asyncio.to_thread(calendar.delete_event, event_id)
    removed = task_store.remove_by_event_id(session.user_id, event_id)
    return {"deleted": event_id, "local_removed": removed}
