"""
Drag-to-reschedule controller for the vertical day timeline.

The dragged task is cloned into a working copy when the pointer goes down.
Pointer moves only ever touch the working copy; the committed task is
written exactly once, when the drag ends.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Hashable, Mapping, Optional

from calendar_ai.errors import DragInProgress, TaskNotFound
from calendar_ai.timecodec import (
    CONFIRMATION_SNAP_MINUTES,
    HOUR_HEIGHT_PX,
    clamp_minutes,
    minutes_to_pixels,
    minutes_to_time,
    pixels_to_minutes,
    time_to_minutes,
)

logger = logging.getLogger(__name__)

EDGE_THRESHOLD_PX = 40
MAX_SCROLL_STEP_PX = 20
AUTO_SCROLL_INTERVAL_S = 1 / 60
MIN_MOVE_INTERVAL_S = 1 / 60

Scheduler = Callable[[float, Callable[[], None]], Any]


def asyncio_scheduler(delay_s: float, callback: Callable[[], None]) -> Optional[asyncio.TimerHandle]:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.debug("No running event loop, auto-scroll repeat disabled")
        return None
    return loop.call_later(delay_s, callback)


class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


@dataclass
class TimelineViewport:
    """The scroll container of the timeline plus the pointer/selection UI state."""

    height: float = 400.0
    scroll_top: float = 0.0
    hour_height_px: float = HOUR_HEIGHT_PX
    content_height: Optional[float] = None
    cursor: str = "default"
    selection_enabled: bool = True

    def __post_init__(self):
        if self.content_height is None:
            self.content_height = 24 * self.hour_height_px

    @property
    def max_scroll_top(self) -> float:
        return max(0.0, self.content_height - self.height)

    def scroll_by(self, delta: float) -> float:
        """Scroll and return the distance actually scrolled."""
        before = self.scroll_top
        self.scroll_top = max(0.0, min(self.max_scroll_top, self.scroll_top + delta))
        return self.scroll_top - before


@dataclass
class _DragSession:
    key: Hashable
    working: Any
    original_start_time: str
    pointer_y: float
    last_move_at: float
    pending_pointer_y: Optional[float] = None
    previous_cursor: str = "default"
    previous_selection_enabled: bool = True
    scroll_handle: Any = None
    scroll_velocity: float = 0.0
    moves_applied: int = 0


class DragRescheduleController:
    """State machine ``IDLE -> DRAGGING -> IDLE`` over a mapping of timeline tasks.

    Tasks only need ``start_time`` ("HH:MM") and ``duration`` (minutes)
    attributes. ``on_commit(key, start_time)`` is called once per drag and is
    responsible for writing the committed value; without it the attribute is
    set on the task directly.
    """

    def __init__(
        self,
        tasks: Mapping[Hashable, Any],
        viewport: Optional[TimelineViewport] = None,
        on_commit: Optional[Callable[[Hashable, str], None]] = None,
        on_preview: Optional[Callable[[Hashable, Any], None]] = None,
        snap_minutes: int = CONFIRMATION_SNAP_MINUTES,
        clock: Callable[[], float] = time.monotonic,
        scheduler: Optional[Scheduler] = asyncio_scheduler,
        edge_threshold_px: float = EDGE_THRESHOLD_PX,
        max_scroll_step_px: float = MAX_SCROLL_STEP_PX,
        min_move_interval_s: float = MIN_MOVE_INTERVAL_S,
        auto_scroll_interval_s: float = AUTO_SCROLL_INTERVAL_S,
    ):
        self.tasks = tasks
        self.viewport = viewport or TimelineViewport()
        self.on_commit = on_commit
        self.on_preview = on_preview
        self.snap_minutes = snap_minutes
        self.clock = clock
        self.scheduler = scheduler
        self.edge_threshold_px = edge_threshold_px
        self.max_scroll_step_px = max_scroll_step_px
        self.min_move_interval_s = min_move_interval_s
        self.auto_scroll_interval_s = auto_scroll_interval_s
        self._session: Optional[_DragSession] = None

    # -- state -----------------------------------------------------------

    @property
    def state(self) -> DragState:
        return DragState.DRAGGING if self._session is not None else DragState.IDLE

    @property
    def dragging_key(self) -> Optional[Hashable]:
        return self._session.key if self._session else None

    @property
    def working(self) -> Any:
        return self._session.working if self._session else None

    @property
    def auto_scrolling(self) -> bool:
        return bool(self._session and self._session.scroll_handle is not None)

    def task_layout(self, task: Any) -> dict:
        hh = self.viewport.hour_height_px
        return {
            "top": minutes_to_pixels(time_to_minutes(task.start_time), hh),
            "height": minutes_to_pixels(task.duration, hh),
        }

    def placeholder(self) -> Optional[dict]:
        """Outline left at the dragged task's committed position."""
        if self._session is None:
            return None
        committed = self.tasks[self._session.key]
        return {"key": self._session.key, **self.task_layout(committed)}

    # -- pointer events ----------------------------------------------------

    def pointer_down(self, key: Hashable, pointer_y: float) -> Any:
        if self._session is not None:
            raise DragInProgress()
        if key not in self.tasks:
            raise TaskNotFound(f"No task {key!r} on the timeline")

        committed = self.tasks[key]
        self._session = _DragSession(
            key=key,
            working=copy.deepcopy(committed),
            original_start_time=committed.start_time,
            pointer_y=pointer_y,
            last_move_at=self.clock(),
            previous_cursor=self.viewport.cursor,
            previous_selection_enabled=self.viewport.selection_enabled,
        )
        self.viewport.cursor = "grabbing"
        self.viewport.selection_enabled = False
        logger.debug(f"Drag started for task {key!r} at {committed.start_time}")
        return self._session.working

    def pointer_move(self, pointer_y: float) -> bool:
        """Handle a pointer move. Returns False when the move was throttled."""
        session = self._session
        if session is None:
            return False

        now = self.clock()
        if now - session.last_move_at < self.min_move_interval_s:
            session.pending_pointer_y = pointer_y
            return False

        self._apply_pointer(pointer_y)
        session.last_move_at = now
        self._update_auto_scroll(pointer_y)
        return True

    def pointer_up(self, pointer_y: Optional[float] = None) -> Optional[str]:
        return self._finish(pointer_y)

    def pointer_cancel(self) -> Optional[str]:
        return self._finish(None)

    def lost_pointer_capture(self) -> Optional[str]:
        return self._finish(None)

    # -- internals -----------------------------------------------------------

    def _apply_pointer(self, pointer_y: float) -> None:
        session = self._session
        session.pointer_y = pointer_y
        session.pending_pointer_y = None
        offset_px = pointer_y + self.viewport.scroll_top
        minutes = pixels_to_minutes(offset_px, self.viewport.hour_height_px, self.snap_minutes)
        new_time = minutes_to_time(clamp_minutes(minutes))
        if new_time != session.working.start_time:
            session.working.start_time = new_time
            session.moves_applied += 1
            if self.on_preview:
                self.on_preview(session.key, session.working)

    def _scroll_velocity(self, pointer_y: float) -> float:
        threshold = self.edge_threshold_px
        if threshold <= 0:
            return 0.0
        if pointer_y < threshold:
            distance = max(0.0, pointer_y)
            direction = -1.0
        elif pointer_y > self.viewport.height - threshold:
            distance = max(0.0, self.viewport.height - pointer_y)
            direction = 1.0
        else:
            return 0.0
        # closer to the edge scrolls faster
        step = self.max_scroll_step_px * (threshold - distance) / threshold
        return direction * max(1.0, step)

    def _update_auto_scroll(self, pointer_y: float) -> None:
        session = self._session
        velocity = self._scroll_velocity(pointer_y)
        session.scroll_velocity = velocity
        if velocity == 0.0:
            self._cancel_auto_scroll()
            return
        self.viewport.scroll_by(velocity)
        if session.scroll_handle is None:
            self._schedule_auto_scroll()

    def _schedule_auto_scroll(self) -> None:
        if self.scheduler is None or self._session is None:
            return
        self._session.scroll_handle = self.scheduler(
            self.auto_scroll_interval_s, self._auto_scroll_tick
        )

    def _auto_scroll_tick(self) -> None:
        session = self._session
        if session is None:
            return
        session.scroll_handle = None
        if session.scroll_velocity == 0.0:
            return
        scrolled = self.viewport.scroll_by(session.scroll_velocity)
        if scrolled == 0.0:
            # reached the top or bottom of the timeline
            return
        # the content moved under a stationary pointer
        self._apply_pointer(session.pointer_y)
        self._schedule_auto_scroll()

    def _cancel_auto_scroll(self) -> None:
        session = self._session
        if session is None:
            return
        session.scroll_velocity = 0.0
        handle = session.scroll_handle
        session.scroll_handle = None
        if handle is not None:
            handle.cancel()

    def _finish(self, pointer_y: Optional[float]) -> Optional[str]:
        session = self._session
        if session is None:
            return None
        try:
            if pointer_y is not None:
                self._apply_pointer(pointer_y)
            elif session.pending_pointer_y is not None:
                self._apply_pointer(session.pending_pointer_y)
            self._cancel_auto_scroll()
            new_start = session.working.start_time
            self._commit(session.key, new_start)
            logger.info(
                f"Task {session.key!r} moved from {session.original_start_time} to {new_start}"
            )
            return new_start
        finally:
            self._cancel_auto_scroll()
            self.viewport.cursor = session.previous_cursor
            self.viewport.selection_enabled = session.previous_selection_enabled
            self._session = None

    def _commit(self, key: Hashable, start_time: str) -> None:
        if self.on_commit is not None:
            self.on_commit(key, start_time)
        else:
            self.tasks[key].start_time = start_time
