"""
Feed aggregation: fan-out, join, then rank.

  1. Validate arguments          — InvalidArgumentError before any I/O
  2. Resolve the viewer's network — only when the view is network-scoped
  3. Run the per-type fetchers concurrently, each isolated: a failure
     degrades that type to [] (logged + counted) instead of aborting
  4. Normalise rows into FeedItems, apply preference filters
  5. Rank the full merged set, slice the requested page

Each fetcher returns the newest `max(candidate_window, offset + limit)`
rows. The window does not move with `offset`, so every page of a given
sort ranks the same candidate set: pages partition it with no overlap,
and trending can surface older high-activity rows. Specialty preferences
are applied by the fetchers themselves, before the cap.

The four sidebar aggregates are independent reads with the same
fail-soft behaviour.
"""
import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Optional

from opentelemetry import trace

from network32.config import settings
from network32.exceptions import InvalidArgumentError, UpstreamFetchFailure
from network32.models import utcnow
from network32.ranking import ScoreWeights, normalize, paginate, parse_sort, rank, validate_window
from network32.repository import FeedRepository
from network32.schemas import (
    ClinicSummary,
    FeedFilter,
    FeedItem,
    FeedItemType,
    FeedPage,
    FeedPreferences,
    FeedSort,
    ProcedureCount,
    ProfessionalSummary,
    Sidebar,
    ThreadSummary,
)
from network32.telemetry import (
    FEED_FETCH_FAILURES_TOTAL,
    FEED_ITEMS_TOTAL,
    FEED_LATENCY,
    SIDEBAR_FAILURES_TOTAL,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

FILTER_TYPES: dict[FeedFilter, tuple[FeedItemType, ...]] = {
    FeedFilter.ALL: (
        FeedItemType.CASE,
        FeedItemType.THREAD,
        FeedItemType.CLINIC,
        FeedItemType.PROFESSIONAL,
    ),
    FeedFilter.CASES: (FeedItemType.CASE,),
    FeedFilter.THREADS: (FeedItemType.THREAD,),
    FeedFilter.CLINICS: (FeedItemType.CLINIC,),
    FeedFilter.PROFESSIONALS: (FeedItemType.PROFESSIONAL,),
}

# Types whose rows belong to a practitioner with a specialty; clinics never filter
SPECIALTY_FILTERED = frozenset(
    {FeedItemType.CASE, FeedItemType.THREAD, FeedItemType.PROFESSIONAL}
)

FETCHERS: dict[FeedItemType, str] = {
    FeedItemType.CASE: "fetch_cases",
    FeedItemType.THREAD: "fetch_threads",
    FeedItemType.CLINIC: "fetch_clinics",
    FeedItemType.PROFESSIONAL: "fetch_professionals",
}


def parse_filter(value) -> FeedFilter:
    try:
        return FeedFilter(value)
    except ValueError:
        raise InvalidArgumentError(f"Unknown filter {value!r}") from None


class FeedAggregator:
    def __init__(
        self,
        repository: FeedRepository,
        weights: Optional[ScoreWeights] = None,
        trending_window: Optional[timedelta] = None,
        candidate_window: Optional[int] = None,
    ) -> None:
        self.repository = repository
        self.weights = weights or ScoreWeights(
            case_save_weight=settings.feed_case_save_weight,
            thread_reply_weight=settings.feed_thread_reply_weight,
        )
        self.trending_window = trending_window or timedelta(days=settings.trending_window_days)
        self.candidate_window = (
            settings.feed_candidate_window if candidate_window is None else candidate_window
        )

    # ═══════════════════════════════════════════════════════════════════
    #  Main feed
    # ═══════════════════════════════════════════════════════════════════

    async def get_feed_items(
        self,
        user_id: str,
        filter: FeedFilter = FeedFilter.ALL,
        sort: FeedSort = FeedSort.LATEST,
        limit: int = 20,
        offset: int = 0,
    ) -> list[FeedItem]:
        page = await self.build_feed_page(user_id, filter, sort, limit, offset)
        return page.items

    async def build_feed_page(
        self,
        user_id: str,
        filter: FeedFilter = FeedFilter.ALL,
        sort: FeedSort = FeedSort.LATEST,
        limit: int = 20,
        offset: int = 0,
        preferences: Optional[FeedPreferences] = None,
    ) -> FeedPage:
        validate_window(limit, offset)
        feed_filter = parse_filter(filter)
        feed_sort = parse_sort(sort)
        preferences = preferences or FeedPreferences()

        start_time = time.perf_counter()
        try:
            with tracer.start_as_current_span("get_feed") as span:
                span.set_attribute("user.id", user_id)
                span.set_attribute("feed.filter", feed_filter.value)
                span.set_attribute("feed.sort", feed_sort.value)
                return await self._assemble(
                    span, user_id, feed_filter, feed_sort, limit, offset, preferences
                )
        finally:
            FEED_LATENCY.observe(time.perf_counter() - start_time)

    async def _assemble(
        self,
        span,
        user_id: str,
        feed_filter: FeedFilter,
        feed_sort: FeedSort,
        limit: int,
        offset: int,
        preferences: FeedPreferences,
    ) -> FeedPage:
        enabled = preferences.enabled_types()
        types = [t for t in FILTER_TYPES[feed_filter] if t in enabled]
        if not types:
            return FeedPage(items=[])

        # ── Network scope ────────────────────────────────────────────────
        network_scoped = feed_sort is FeedSort.MY_NETWORK or preferences.show_network_only
        scope: Optional[set[str]] = None
        if network_scoped:
            with tracer.start_as_current_span("resolve_network"):
                try:
                    scope = await self.repository.resolve_following(user_id)
                except Exception as exc:
                    logger.warning("Network lookup failed (user=%s): %s", user_id, exc)
                    raise UpstreamFetchFailure(
                        f"Could not resolve network for {user_id}", types
                    ) from exc
            span.set_attribute("feed.network_size", len(scope))
            if not scope:
                # No network yet: show nothing rather than global content
                return FeedPage(items=[], network_scoped=True, network_size=0)

        # ── Fan-out ──────────────────────────────────────────────────────
        per_type_limit = max(self.candidate_window, offset + limit)
        specialties = list(preferences.selected_specialties) or None
        results = await asyncio.gather(
            *(self._fetch_type(t, scope, per_type_limit, specialties) for t in types)
        )

        failed = [t for t, rows in zip(types, results) if rows is None]
        if failed and len(failed) == len(types):
            raise UpstreamFetchFailure(
                "All requested content fetches failed: "
                + ", ".join(t.value for t in failed),
                failed,
            )

        items: list[FeedItem] = []
        for item_type, rows in zip(types, results):
            for row in rows or []:
                items.append(normalize(item_type, row, self.weights))

        # ── Rank + page ──────────────────────────────────────────────────
        with tracer.start_as_current_span("rank"):
            ranked = rank(items, feed_sort)
            page_items = paginate(ranked, limit, offset)

        span.set_attribute("feed.merged", len(items))
        span.set_attribute("feed.returned", len(page_items))

        return FeedPage(
            items=page_items,
            network_scoped=network_scoped,
            network_size=len(scope) if scope is not None else None,
            failed_types=failed,
        )

    async def _fetch_type(
        self,
        item_type: FeedItemType,
        scope: Optional[set[str]],
        limit: int,
        specialties: Optional[list[str]] = None,
    ) -> Optional[list]:
        """Run one fetcher. Returns None (not raise) on failure."""
        kwargs = {}
        if specialties and item_type in SPECIALTY_FILTERED:
            kwargs["specialties"] = specialties
        with tracer.start_as_current_span(f"fetch_{item_type.value}") as span:
            try:
                fetch = getattr(self.repository, FETCHERS[item_type])
                rows = await fetch(scope, limit, **kwargs)
            except Exception as exc:
                logger.warning(
                    "Feed fetch for %s failed: %s — contributing no items",
                    item_type.value,
                    exc,
                )
                FEED_FETCH_FAILURES_TOTAL.labels(source=item_type.value).inc()
                span.set_attribute("fetch.failed", True)
                return None
            span.set_attribute("fetch.rows", len(rows))
            FEED_ITEMS_TOTAL.labels(type=item_type.value).inc(len(rows))
            return rows

    # ═══════════════════════════════════════════════════════════════════
    #  Sidebar aggregates
    # ═══════════════════════════════════════════════════════════════════

    async def get_suggested_professionals(
        self, user_id: str, limit: int = 5
    ) -> list[ProfessionalSummary]:
        validate_window(limit, 0)
        following = await self.repository.resolve_following(user_id)
        return await self.repository.suggested_professionals(following | {user_id}, limit)

    async def get_trending_procedures(
        self, limit: int = 5, now: Optional[datetime] = None
    ) -> list[ProcedureCount]:
        validate_window(limit, 0)
        # created_at is written as naive UTC by the models
        now = now or utcnow()
        return await self.repository.procedure_counts(now - self.trending_window, limit)

    async def get_active_discussions(self, limit: int = 5) -> list[ThreadSummary]:
        validate_window(limit, 0)
        return await self.repository.active_threads(limit)

    async def get_recent_clinic_activity(self, limit: int = 5) -> list[ClinicSummary]:
        validate_window(limit, 0)
        return await self.repository.recent_clinics(limit)

    async def get_sidebar(self, user_id: str, limit: int = 5) -> Sidebar:
        """All four aggregates concurrently; each one fails soft on its own."""
        validate_window(limit, 0)
        with tracer.start_as_current_span("get_sidebar") as span:
            span.set_attribute("user.id", user_id)
            names = (
                "suggested_professionals",
                "trending_procedures",
                "active_discussions",
                "recent_clinics",
            )
            results = await asyncio.gather(
                self.get_suggested_professionals(user_id, limit),
                self.get_trending_procedures(limit),
                self.get_active_discussions(limit),
                self.get_recent_clinic_activity(limit),
                return_exceptions=True,
            )

            values: dict[str, list] = {}
            failed: list[str] = []
            for name, result in zip(names, results):
                if isinstance(result, BaseException):
                    if not isinstance(result, Exception):
                        raise result
                    logger.warning("Sidebar aggregate %s failed: %s", name, result)
                    SIDEBAR_FAILURES_TOTAL.labels(aggregate=name).inc()
                    failed.append(name)
                    values[name] = []
                else:
                    values[name] = result
            return Sidebar(**values, failed=failed)
