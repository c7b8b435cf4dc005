import logging
import os
import re
from datetime import datetime
from typing import List, Optional

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from calendar_ai.errors import NotAuthenticated, RemoteCalendarError, TaskNotFound
from calendar_ai.models import CalendarTask, PRIORITIES, TaskCreate

logger = logging.getLogger(__name__)

AI_CREATED_MARKER = "[Created by AI Calendar Assistant]"
PRIORITY_TAG_RE = re.compile(r"\[Priority: (high|medium|low)\]", re.IGNORECASE)
AI_MARKER_RE = re.compile(re.escape(AI_CREATED_MARKER), re.IGNORECASE)

APP_TIMEZONE = os.getenv("APP_TIMEZONE", "America/Los_Angeles").strip()
MAX_EVENTS_PER_CALENDAR = 100


def build_event_description(description: str, priority: str) -> str:
    tags = f"[Priority: {priority}]\n{AI_CREATED_MARKER}"
    if description:
        return f"{description}\n\n{tags}"
    return tags


def event_to_task(event: dict) -> CalendarTask:
    """Map a Google Calendar event to the task shape shown in the calendar views."""
    raw_description = event.get("description") or ""

    priority = "medium"
    match = PRIORITY_TAG_RE.search(raw_description)
    if match:
        priority = match.group(1).lower()

    is_ai_created = bool(AI_MARKER_RE.search(raw_description))
    clean_description = AI_MARKER_RE.sub("", PRIORITY_TAG_RE.sub("", raw_description)).strip()

    start = event.get("start") or {}
    end = event.get("end") or {}

    return CalendarTask(
        id=event.get("id", ""),
        title=event.get("summary") or "Untitled Event",
        description=clean_description,
        start=start.get("dateTime") or start.get("date"),
        end=end.get("dateTime") or end.get("date"),
        priority=priority if priority in PRIORITIES else "medium",
        is_all_day=not start.get("dateTime") and bool(start.get("date")),
        is_ai_created=is_ai_created,
        calendar_id=(event.get("organizer") or {}).get("email", ""),
    )


def _raise_for_http_error(e: HttpError, action: str) -> None:
    status = getattr(e.resp, "status", None)
    logger.error(f"Google Calendar {action} failed (status {status}): {e}")
    if status in (401, 403):
        raise NotAuthenticated("Google Calendar API authentication error")
    if status in (404, 410):
        raise TaskNotFound("Calendar event not found")
    raise RemoteCalendarError(f"Failed to {action}")


class CalendarIntegration:
    """Thin call-through to the Google Calendar v3 API.

    All methods block on HTTP; async callers run them with asyncio.to_thread.
    """

    def __init__(self, credentials: Optional[Credentials] = None, service=None, timezone_name: str = APP_TIMEZONE):
        self.credentials = credentials
        self.timezone_name = timezone_name
        self._service = service

    @property
    def service(self):
        if self._service is None:
            self._service = build(
                "calendar",
                "v3",
                credentials=self.credentials,
                cache_discovery=False,
            )
        return self._service

    def create_event(self, task: TaskCreate, calendar_id: str = "primary") -> str:
        """Insert an event for ``task`` and return the remote event id."""
        body = {
            "summary": task.title,
            "description": build_event_description(task.description, task.priority),
            "start": {"dateTime": task.start.isoformat(), "timeZone": self.timezone_name},
            "end": {"dateTime": task.end.isoformat(), "timeZone": self.timezone_name},
        }
        try:
            event = self.service.events().insert(calendarId=calendar_id, body=body).execute()
        except HttpError as e:
            _raise_for_http_error(e, "create calendar event")
        logger.info(f"Event created successfully: {event.get('id')}")
        return event["id"]

    def calendar_ids(self) -> List[str]:
        try:
            response = self.service.calendarList().list().execute()
        except HttpError as e:
            _raise_for_http_error(e, "list calendars")
        ids = [item["id"] for item in response.get("items", []) if item.get("id")]
        return ids or ["primary"]

    def list_events(self, time_min: datetime, time_max: datetime) -> List[dict]:
        """Events from every calendar the user can see. Failing calendars are skipped."""
        all_events: List[dict] = []
        calendar_ids = self.calendar_ids()
        for calendar_id in calendar_ids:
            try:
                response = (
                    self.service.events()
                    .list(
                        calendarId=calendar_id,
                        timeMin=time_min.isoformat(),
                        timeMax=time_max.isoformat(),
                        singleEvents=True,
                        orderBy="startTime",
                        maxResults=MAX_EVENTS_PER_CALENDAR,
                    )
                    .execute()
                )
            except HttpError as e:
                logger.error(f"Error fetching events from calendar {calendar_id}: {e}")
                continue
            all_events.extend(
                item for item in response.get("items", []) if item.get("status") != "cancelled"
            )

        logger.info(f"Found {len(all_events)} events across {len(calendar_ids)} calendars")
        return all_events

    def get_event(self, event_id: str) -> dict:
        for calendar_id in self.calendar_ids():
            try:
                return self.service.events().get(calendarId=calendar_id, eventId=event_id).execute()
            except HttpError as e:
                logger.debug(f"Event {event_id} not in calendar {calendar_id}: {e}")
        raise TaskNotFound("Event not found")

    def update_event(self, event_id: str, patch: dict, calendar_id: str = "primary") -> dict:
        try:
            return (
                self.service.events()
                .patch(calendarId=calendar_id, eventId=event_id, body=patch)
                .execute()
            )
        except HttpError as e:
            _raise_for_http_error(e, "update calendar event")

    def delete_event(self, event_id: str, calendar_id: str = "primary") -> None:
        try:
            self.service.events().delete(calendarId=calendar_id, eventId=event_id).execute()
        except HttpError as e:
            _raise_for_http_error(e, "delete calendar event")
        logger.info(f"Deleted calendar event {event_id}")
