from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Sequence

from calendar_ai.models import BatchCreateResult, Task, TaskCreate

logger = logging.getLogger(__name__)


async def create_tasks_concurrently(
    payloads: Sequence[TaskCreate],
    create_one: Callable[[TaskCreate], Awaitable[Task]],
) -> BatchCreateResult:
    """Issue one create call per task in parallel and wait for all of them.

    A failing task does not cancel or roll back the others.
    """
    outcomes = await asyncio.gather(
        *(create_one(payload) for payload in payloads), return_exceptions=True
    )

    created: List[Task] = []
    errors: List[str] = []
    for payload, outcome in zip(payloads, outcomes):
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                # CancelledError and friends are not per-task failures
                raise outcome
            logger.warning(f"Failed to create task '{payload.title}': {outcome}")
            errors.append(f"{payload.title}: {outcome}")
        else:
            created.append(outcome)

    logger.info(f"Created {len(created)} of {len(payloads)} tasks")
    return BatchCreateResult(
        created=created,
        failed=len(errors),
        total=len(payloads),
        errors=errors,
    )
