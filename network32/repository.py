"""
Read paths against the relational store.

Every method opens its own session from the factory it was given, so the
per-type fetchers and sidebar queries can be awaited concurrently
(an AsyncSession must never be shared between concurrent tasks).

ORM rows are converted to typed payloads here; nothing past this module
sees an ORM object.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from network32.models import Case, Clinic, Follow, ForumThread, User
from network32.schemas import (
    CasePayload,
    ClinicPayload,
    ClinicSummary,
    ProcedureCount,
    ProfessionalPayload,
    ProfessionalSummary,
    ThreadPayload,
    ThreadSummary,
)

logger = logging.getLogger(__name__)

_VIEW_COUNTED = {"case": Case, "thread": ForumThread}


class FeedRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _scalars(self, stmt) -> list:
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    # ─────────────────────── Network membership ──────────────────────────

    async def resolve_following(self, user_id: str) -> set[str]:
        """IDs `user_id` follows. Unknown users simply follow nobody."""
        rows = await self._scalars(
            select(Follow.following_id).where(Follow.follower_id == user_id)
        )
        return set(rows)

    # ─────────────────────── Per-type fetchers ───────────────────────────
    # scope=None  → unscoped
    # scope=set() → nothing can match; return [] without touching the store
    # specialties → only rows whose author (or the professional) has one of them

    async def fetch_cases(
        self,
        scope: Optional[set[str]],
        limit: int,
        specialties: Optional[list[str]] = None,
    ) -> list[CasePayload]:
        if scope is not None and not scope:
            return []
        stmt = select(Case).order_by(Case.created_at.desc()).limit(limit)
        if scope is not None:
            stmt = stmt.where(Case.user_id.in_(sorted(scope)))
        if specialties:
            stmt = stmt.where(Case.author.has(User.specialty.in_(specialties)))
        rows = await self._scalars(stmt)
        return [CasePayload.model_validate(r, from_attributes=True) for r in rows]

    async def fetch_threads(
        self,
        scope: Optional[set[str]],
        limit: int,
        specialties: Optional[list[str]] = None,
    ) -> list[ThreadPayload]:
        if scope is not None and not scope:
            return []
        stmt = select(ForumThread).order_by(ForumThread.created_at.desc()).limit(limit)
        if scope is not None:
            stmt = stmt.where(ForumThread.author_id.in_(sorted(scope)))
        if specialties:
            stmt = stmt.where(ForumThread.author.has(User.specialty.in_(specialties)))
        rows = await self._scalars(stmt)
        return [ThreadPayload.model_validate(r, from_attributes=True) for r in rows]

    async def fetch_clinics(self, scope: Optional[set[str]], limit: int) -> list[ClinicPayload]:
        if scope is not None and not scope:
            return []
        stmt = select(Clinic).order_by(Clinic.created_at.desc()).limit(limit)
        if scope is not None:
            stmt = stmt.where(Clinic.owner_id.in_(sorted(scope)))
        rows = await self._scalars(stmt)
        return [ClinicPayload.model_validate(r, from_attributes=True) for r in rows]

    async def fetch_professionals(
        self,
        scope: Optional[set[str]],
        limit: int,
        specialties: Optional[list[str]] = None,
    ) -> list[ProfessionalPayload]:
        if scope is not None and not scope:
            return []
        stmt = select(User).order_by(User.created_at.desc()).limit(limit)
        if scope is not None:
            stmt = stmt.where(User.id.in_(sorted(scope)))
        if specialties:
            stmt = stmt.where(User.specialty.in_(specialties))
        rows = await self._scalars(stmt)
        return [ProfessionalPayload.model_validate(r, from_attributes=True) for r in rows]

    # ─────────────────────── Sidebar queries ─────────────────────────────

    async def suggested_professionals(
        self, exclude: set[str], limit: int
    ) -> list[ProfessionalSummary]:
        stmt = select(User).order_by(User.created_at.desc()).limit(limit)
        if exclude:
            stmt = stmt.where(User.id.not_in(sorted(exclude)))
        rows = await self._scalars(stmt)
        return [ProfessionalSummary.model_validate(r) for r in rows]

    async def procedure_counts(self, since: datetime, limit: int) -> list[ProcedureCount]:
        n = func.count(Case.id).label("n")
        stmt = (
            select(Case.procedure_type, n)
            .where(Case.created_at >= since)
            .group_by(Case.procedure_type)
            .order_by(desc("n"), Case.procedure_type)
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [ProcedureCount(procedure=p, count=c) for p, c in result.all()]

    async def active_threads(self, limit: int) -> list[ThreadSummary]:
        rows = await self._scalars(
            select(ForumThread).order_by(ForumThread.last_activity_at.desc()).limit(limit)
        )
        return [ThreadSummary.model_validate(r) for r in rows]

    async def recent_clinics(self, limit: int) -> list[ClinicSummary]:
        rows = await self._scalars(
            select(Clinic).order_by(Clinic.updated_at.desc()).limit(limit)
        )
        return [ClinicSummary.model_validate(r) for r in rows]

    # ─────────────────────── Counters ────────────────────────────────────

    async def increment_views(self, kind: str, content_id: str) -> bool:
        """Atomically bump views_count. Returns False if the row does not exist."""
        model = _VIEW_COUNTED.get(kind)
        if model is None:
            raise ValueError(f"No view counter for {kind!r}")
        async with self._session_factory() as session:
            result = await session.execute(
                update(model)
                .where(model.id == content_id)
                .values(views_count=model.views_count + 1)
            )
            await session.commit()
        logger.debug("Incremented %s views for %s", kind, content_id)
        return result.rowcount > 0
