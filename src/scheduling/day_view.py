"""Drag-to-reschedule over the confirmed tasks of one calendar day."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional

from calendar_ai.models import Task
from calendar_ai.timecodec import DAY_VIEW_SNAP_MINUTES
from scheduling.drag import DragRescheduleController, TimelineViewport
from scheduling.reconciliation import anchor, resolve_timezone, to_calendar_date

logger = logging.getLogger(__name__)

MoveHandler = Callable[[str, dt.datetime, dt.datetime], Any]


@dataclass
class DayViewSlot:
    start_time: str
    duration: int


class DayView:
    """The tasks of ``day`` laid out on the timeline, keyed by Google event id.

    A finished drag calls ``on_move(event_id, start, end)`` with the new
    instants, the body ``PATCH /tasks/{event_id}/move`` expects. Tasks that
    were never synced to Google have no event id and are not shown.
    """

    def __init__(
        self,
        day: Any,
        tasks: Iterable[Task],
        on_move: MoveHandler,
        tz: Optional[dt.tzinfo] = None,
    ):
        self.day = to_calendar_date(day)
        self.tz = tz or resolve_timezone()
        self.on_move = on_move
        self.slots: Dict[str, DayViewSlot] = {
            task.google_event_id: DayViewSlot(task.time_of_day, task.duration)
            for task in tasks
            if task.google_event_id
        }

    def drag_controller(
        self,
        viewport: Optional[TimelineViewport] = None,
        snap_minutes: int = DAY_VIEW_SNAP_MINUTES,
        **kwargs: Any,
    ) -> DragRescheduleController:
        return DragRescheduleController(
            self.slots,
            viewport=viewport,
            on_commit=self._commit,
            snap_minutes=snap_minutes,
            **kwargs,
        )

    def _commit(self, event_id: str, start_time: str) -> None:
        slot = self.slots[event_id]
        if start_time == slot.start_time:
            logger.debug(f"Task {event_id!r} dropped at its own slot, nothing to move")
            return
        slot.start_time = start_time
        start, end = anchor(self.day, start_time, slot.duration, self.tz)
        self.on_move(event_id, start, end)
