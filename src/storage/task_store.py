from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, List, Optional

from calendar_ai.models import Task

logger = logging.getLogger(__name__)


class TaskStore:
    """Per-user task records held in process memory."""

    def __init__(self):
        self._tasks: Dict[str, Dict[str, Task]] = defaultdict(dict)

    def add(self, user_id: str, task: Task) -> Task:
        stored = task.model_copy(update={"user_id": user_id})
        self._tasks[user_id][stored.id] = stored
        return stored

    def get(self, user_id: str, task_id: str) -> Optional[Task]:
        return self._tasks.get(user_id, {}).get(task_id)

    def find_by_event_id(self, user_id: str, event_id: str) -> Optional[Task]:
        for task in self._tasks.get(user_id, {}).values():
            if task.google_event_id == event_id:
                return task
        return None

    def list_for_user(self, user_id: str) -> List[Task]:
        tasks = list(self._tasks.get(user_id, {}).values())
        return sorted(tasks, key=lambda t: (t.start is None, t.start or 0, t.title))

    def update(self, user_id: str, task_id: str, **changes) -> Optional[Task]:
        current = self.get(user_id, task_id)
        if current is None:
            return None
        updated = current.model_copy(update=changes)
        self._tasks[user_id][task_id] = updated
        return updated

    def remove_by_event_id(self, user_id: str, event_id: str) -> bool:
        task = self.find_by_event_id(user_id, event_id)
        if task is None:
            return False
        del self._tasks[user_id][task.id]
        logger.info(f"Removed local task {task.id} (event {event_id})")
        return True

    def clear(self) -> None:
        self._tasks.clear()
