import json

import httpx
import pytest
from cryptography.fernet import Fernet

from calendar_ai.errors import RemoteCalendarError, TaskNotFound


class FakeProvider:
    def __init__(self, response_text, exc=None):
        self._response_text = response_text
        self._exc = exc
        self.calls = []

    def generate(self, *, system: str, user: str, **kwargs):
        self.calls.append({"system": system, "user": user, **kwargs})
        if self._exc is not None:
            raise self._exc
        return self._response_text


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeHandle:
    def __init__(self, callback):
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Collects delayed callbacks so tests can fire them by hand."""

    def __init__(self):
        self.handles = []

    def __call__(self, delay_s, callback):
        handle = FakeHandle(callback)
        self.handles.append(handle)
        return handle

    def fire_next(self):
        pending = [h for h in self.handles if not h.cancelled]
        handle = pending[-1]
        self.handles.remove(handle)
        handle.callback()


class FakeCalendar:
    """Stands in for CalendarIntegration."""

    def __init__(self, events=None, fail_titles=()):
        self.events = list(events or [])
        self.fail_titles = set(fail_titles)
        self.created = []
        self.deleted = []
        self.updated = []
        self.listed_ranges = []

    def create_event(self, task, calendar_id="primary"):
        if task.title in self.fail_titles:
            raise RemoteCalendarError("Failed to create calendar event")
        self.created.append(task)
        return f"evt-{len(self.created)}"

    def list_events(self, time_min, time_max):
        self.listed_ranges.append((time_min, time_max))
        return list(self.events)

    def get_event(self, event_id):
        for event in self.events:
            if event["id"] == event_id:
                return event
        raise TaskNotFound("Event not found")

    def update_event(self, event_id, patch, calendar_id="primary"):
        self.updated.append((event_id, patch))
        return {"id": event_id, "summary": "Moved", **patch}

    def delete_event(self, event_id, calendar_id="primary"):
        self.deleted.append(event_id)


@pytest.fixture
def fake_provider_factory():
    def _make(response_text, exc=None):
        return FakeProvider(response_text, exc=exc)
    return _make


@pytest.fixture
def tasks_response():
    def _make(*tasks):
        return json.dumps({"tasks": list(tasks)})
    return _make


@pytest.fixture
def fernet_key():
    return Fernet.generate_key().decode()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_scheduler():
    return FakeScheduler()


@pytest.fixture
def fake_calendar_factory():
    def _make(events=None, fail_titles=()):
        return FakeCalendar(events=events, fail_titles=fail_titles)
    return _make


@pytest.fixture
def captured_http(monkeypatch):
    """Route every httpx.Client through a mock transport answering with ``reply``."""
    state = {"requests": [], "reply": {}}
    real_client = httpx.Client

    def handler(request):
        state["requests"].append(json.loads(request.content))
        return httpx.Response(200, json=state["reply"])

    monkeypatch.setattr(httpx, "Client", lambda **kw: real_client(transport=httpx.MockTransport(handler), **kw))
    return state
