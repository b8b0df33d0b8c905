"""
View tracking:
  POST /content/cases/{id}/view    — count a case view
  POST /content/threads/{id}/view  — count a thread view

Increments are fire-and-forget: the request returns 202 immediately and the
UPDATE runs in a background task. At most once, no ordering guarantee
relative to feed reads, failures are logged and counted only.
"""
import asyncio
import logging

from fastapi import APIRouter, Depends, status

from network32.repository import FeedRepository
from network32.routers.feed import get_repository
from network32.telemetry import CONTENT_VIEW_INCREMENTS_TOTAL

logger = logging.getLogger(__name__)
router = APIRouter()

# Strong references so pending tasks are not garbage-collected mid-flight
_pending: set[asyncio.Task] = set()


async def record_view(repository: FeedRepository, kind: str, content_id: str) -> None:
    try:
        found = await repository.increment_views(kind, content_id)
    except Exception as exc:
        logger.warning("View increment failed (%s %s): %s", kind, content_id, exc)
        CONTENT_VIEW_INCREMENTS_TOTAL.labels(kind=kind, outcome="error").inc()
        return
    outcome = "ok" if found else "missing"
    CONTENT_VIEW_INCREMENTS_TOTAL.labels(kind=kind, outcome=outcome).inc()


def _schedule(repository: FeedRepository, kind: str, content_id: str) -> None:
    task = asyncio.create_task(record_view(repository, kind, content_id))
    _pending.add(task)
    task.add_done_callback(_pending.discard)


@router.post("/cases/{case_id}/view", status_code=status.HTTP_202_ACCEPTED)
async def view_case(case_id: str, repository: FeedRepository = Depends(get_repository)):
    _schedule(repository, "case", case_id)
    return {"accepted": True}


@router.post("/threads/{thread_id}/view", status_code=status.HTTP_202_ACCEPTED)
async def view_thread(thread_id: str, repository: FeedRepository = Depends(get_repository)):
    _schedule(repository, "thread", thread_id)
    return {"accepted": True}
