"""
Feed endpoints:
  GET /feed/                          — merged, ranked feed page
  GET /feed/sidebar                   — all four sidebar aggregates
  GET /feed/suggested                 — professionals outside the viewer's network
  GET /feed/trending-procedures       — procedure counts, trailing window
  GET /feed/active-discussions        — threads by latest activity
  GET /feed/recent-clinics            — clinics by latest update
  GET /feed/settings/{user_id}        — saved feed preferences
  PUT /feed/settings/{user_id}        — save feed preferences

Ranking happens in the aggregator; this layer only resolves dependencies,
loads preferences and hydrates image keys into pre-signed MinIO URLs.
"""
import logging
import time

from fastapi import APIRouter, Depends, Query
from opentelemetry import trace

from network32.aggregator import FeedAggregator
from network32.clients import redis_client
from network32.clients.minio_client import get_presigned_url
from network32.config import settings
from network32.database import AsyncSessionLocal
from network32.repository import FeedRepository
from network32.schemas import (
    AuthorSummary,
    CasePayload,
    ClinicPayload,
    ClinicSummary,
    FeedFilter,
    FeedItem,
    FeedPreferences,
    FeedResponse,
    FeedSort,
    ProcedureCount,
    ProfessionalPayload,
    ProfessionalSummary,
    Sidebar,
    ThreadPayload,
    ThreadSummary,
)

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


# ─────────────────────────── Dependencies ─────────────────────────────────

def get_repository() -> FeedRepository:
    return FeedRepository(AsyncSessionLocal)


def get_aggregator(repository: FeedRepository = Depends(get_repository)) -> FeedAggregator:
    return FeedAggregator(repository)


async def load_preferences(
    user_id: str = Query(..., description="ID of the requesting user"),
) -> FeedPreferences:
    """Saved preferences, or defaults. A Redis outage must not take the feed down."""
    try:
        stored = await redis_client.get_feed_preferences(user_id)
    except Exception as exc:
        logger.warning("Feed preferences unavailable (user=%s): %s — using defaults", user_id, exc)
        return FeedPreferences()
    return stored or FeedPreferences()


# ─────────────────────────── Hydration ────────────────────────────────────

def _sign_author(author: AuthorSummary | None) -> AuthorSummary | None:
    if author is None:
        return None
    return author.model_copy(update={"profile_photo_url": get_presigned_url(author.profile_photo_url)})


def _hydrate(item: FeedItem) -> FeedItem:
    """Replace stored object keys with pre-signed URLs (returns a copy)."""
    p = item.payload
    if isinstance(p, CasePayload):
        payload = p.model_copy(update={
            "before_image_url": get_presigned_url(p.before_image_url),
            "after_image_url": get_presigned_url(p.after_image_url),
            "accessory_photos": [u for u in map(get_presigned_url, p.accessory_photos) if u],
            "author": _sign_author(p.author),
        })
    elif isinstance(p, ThreadPayload):
        payload = p.model_copy(update={
            "image_urls": [u for u in map(get_presigned_url, p.image_urls) if u],
            "author": _sign_author(p.author),
        })
    elif isinstance(p, ClinicPayload):
        payload = p.model_copy(update={
            "logo_url": get_presigned_url(p.logo_url),
            "owner": _sign_author(p.owner),
        })
    elif isinstance(p, ProfessionalPayload):
        payload = p.model_copy(update={
            "profile_photo_url": get_presigned_url(p.profile_photo_url),
        })
    else:
        payload = p
    return item.model_copy(update={"payload": payload})


# ─────────────────────────── Routes ───────────────────────────────────────

@router.get("/", response_model=FeedResponse)
async def get_feed(
    user_id: str = Query(..., description="ID of the requesting user"),
    filter: FeedFilter = Query(FeedFilter.ALL),
    sort: FeedSort = Query(FeedSort.LATEST),
    limit: int = Query(settings.feed_page_size, ge=0, le=settings.feed_max_page_size),
    offset: int = Query(0, ge=0),
    preferences: FeedPreferences = Depends(load_preferences),
    aggregator: FeedAggregator = Depends(get_aggregator),
):
    start_time = time.time()

    page = await aggregator.build_feed_page(
        user_id, filter, sort, limit, offset, preferences=preferences
    )

    with tracer.start_as_current_span("hydrate"):
        items = [_hydrate(i) for i in page.items]

    latency_ms = (time.time() - start_time) * 1000
    return FeedResponse(
        user_id=user_id,
        filter=filter,
        sort=sort,
        limit=limit,
        offset=offset,
        items=items,
        network_scoped=page.network_scoped,
        network_size=page.network_size,
        failed_types=page.failed_types,
        latency_ms=round(latency_ms, 2),
    )


@router.get("/sidebar", response_model=Sidebar)
async def get_sidebar(
    user_id: str = Query(...),
    limit: int = Query(settings.sidebar_limit, ge=0, le=settings.feed_max_page_size),
    aggregator: FeedAggregator = Depends(get_aggregator),
):
    sidebar = await aggregator.get_sidebar(user_id, limit)
    return sidebar.model_copy(update={
        "suggested_professionals": [
            p.model_copy(update={"profile_photo_url": get_presigned_url(p.profile_photo_url)})
            for p in sidebar.suggested_professionals
        ],
        "recent_clinics": [
            c.model_copy(update={"logo_url": get_presigned_url(c.logo_url)})
            for c in sidebar.recent_clinics
        ],
    })


@router.get("/suggested", response_model=list[ProfessionalSummary])
async def suggested_professionals(
    user_id: str = Query(...),
    limit: int = Query(settings.sidebar_limit, ge=0, le=settings.feed_max_page_size),
    aggregator: FeedAggregator = Depends(get_aggregator),
):
    return await aggregator.get_suggested_professionals(user_id, limit)


@router.get("/trending-procedures", response_model=list[ProcedureCount])
async def trending_procedures(
    limit: int = Query(settings.sidebar_limit, ge=0, le=settings.feed_max_page_size),
    aggregator: FeedAggregator = Depends(get_aggregator),
):
    return await aggregator.get_trending_procedures(limit)


@router.get("/active-discussions", response_model=list[ThreadSummary])
async def active_discussions(
    limit: int = Query(settings.sidebar_limit, ge=0, le=settings.feed_max_page_size),
    aggregator: FeedAggregator = Depends(get_aggregator),
):
    return await aggregator.get_active_discussions(limit)


@router.get("/recent-clinics", response_model=list[ClinicSummary])
async def recent_clinics(
    limit: int = Query(settings.sidebar_limit, ge=0, le=settings.feed_max_page_size),
    aggregator: FeedAggregator = Depends(get_aggregator),
):
    return await aggregator.get_recent_clinic_activity(limit)


@router.get("/settings/{user_id}", response_model=FeedPreferences)
async def get_feed_settings(user_id: str):
    return await redis_client.get_feed_preferences(user_id) or FeedPreferences()


@router.put("/settings/{user_id}", response_model=FeedPreferences)
async def put_feed_settings(user_id: str, body: FeedPreferences):
    await redis_client.set_feed_preferences(user_id, body)
    logger.info("Feed preferences updated for user %s", user_id)
    return body
