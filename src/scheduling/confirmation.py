from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Callable, Dict, List, Optional

from calendar_ai.errors import TaskNotFound
from calendar_ai.models import TaskCreate, TaskExtract
from calendar_ai.timecodec import CONFIRMATION_SNAP_MINUTES, time_to_minutes, minutes_to_time
from scheduling.drag import DragRescheduleController, TimelineViewport
from scheduling.reconciliation import TaskDateBook, anchor, resolve_timezone

logger = logging.getLogger(__name__)

Observer = Callable[["ConfirmationSession"], None]

EDITABLE_FIELDS = {"title", "description", "start_time", "duration", "priority"}


class ConfirmationSession:
    """Extracted tasks waiting for the user to confirm, edit or cancel them.

    Tasks are keyed by their position in the extraction result. Every change
    is announced to the registered observers.
    """

    def __init__(
        self,
        extracts: List[TaskExtract],
        selected_date: Any = None,
        tz: Optional[dt.tzinfo] = None,
    ):
        self.tz = tz or resolve_timezone()
        self.tasks: Dict[int, TaskExtract] = {
            i: extract.model_copy(deep=True) for i, extract in enumerate(extracts)
        }
        self.dates = TaskDateBook(self.tasks.keys(), selected_date=selected_date)
        # tasks whose extraction carried an explicit date start with an override
        for key, extract in self.tasks.items():
            if extract.date is not None:
                self.dates.set_task_date(key, extract.date)

        self.open_picker_for: Optional[int] = None
        self.cancelled = False
        self._observers: List[Observer] = []

    # -- observers -----------------------------------------------------------

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def _notify(self) -> None:
        for observer in list(self._observers):
            observer(self)

    # -- edits -----------------------------------------------------------------

    def _get(self, key: int) -> TaskExtract:
        try:
            return self.tasks[key]
        except KeyError:
            raise TaskNotFound(f"No extracted task {key}")

    def update_field(self, key: int, field: str, value: Any) -> TaskExtract:
        """Edit one field in place, re-validating the task."""
        if field not in EDITABLE_FIELDS:
            raise ValueError(f"Field {field!r} cannot be edited")
        if field == "start_time":
            value = minutes_to_time(time_to_minutes(value))
        task = self._get(key)
        updated = TaskExtract(**{**task.model_dump(), field: value})
        self.tasks[key] = updated
        self._notify()
        return updated

    def remove(self, key: int) -> None:
        self._get(key)
        del self.tasks[key]
        self.dates.remove_key(key)
        if self.open_picker_for == key:
            self.open_picker_for = None
        self._notify()

    # -- dates -------------------------------------------------------------------

    def toggle_picker(self, key: Optional[int]) -> None:
        if key is not None:
            self._get(key)
        self.open_picker_for = None if self.open_picker_for == key else key
        self._notify()

    def set_task_date(self, key: int, value: Any) -> dt.date:
        self._get(key)
        new_date = self.dates.set_task_date(key, value)
        self.open_picker_for = None
        self._notify()
        return new_date

    def apply_date_to_all(self, value: Any) -> dt.date:
        new_date = self.dates.apply_to_all(value)
        self._notify()
        return new_date

    def date_for(self, key: int) -> dt.date:
        self._get(key)
        return self.dates.date_for(key)

    # -- timeline ------------------------------------------------------------------

    def drag_controller(
        self,
        viewport: Optional[TimelineViewport] = None,
        snap_minutes: int = CONFIRMATION_SNAP_MINUTES,
        **kwargs: Any,
    ) -> DragRescheduleController:
        """A drag controller over this session's tasks that commits back into it."""
        return DragRescheduleController(
            self.tasks,
            viewport=viewport,
            on_commit=lambda key, start_time: self.update_field(key, "start_time", start_time),
            snap_minutes=snap_minutes,
            **kwargs,
        )

    # -- promotion ---------------------------------------------------------------------

    def to_task_payloads(self) -> List[TaskCreate]:
        """Anchor every task to its date and build the create payloads."""
        payloads = []
        for key, task in self.tasks.items():
            start, end = anchor(self.dates.date_for(key), task.start_time, task.duration, self.tz)
            payloads.append(
                TaskCreate(
                    title=task.title,
                    description=task.description,
                    start=start,
                    end=end,
                    duration=task.duration,
                    priority=task.priority,
                    is_ai_created=True,
                )
            )
        return payloads

    def cancel(self) -> None:
        logger.info(f"Confirmation cancelled, discarding {len(self.tasks)} extracted tasks")
        self.tasks.clear()
        self.open_picker_for = None
        self.cancelled = True
        self._notify()
