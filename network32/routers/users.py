"""
Profile and social graph endpoints:
  GET  /users/{id}                      — fetch a profile
  GET  /users/{id}/stats                — follower / following / case counts
  GET  /users/{id}/followers            — list followers
  GET  /users/{id}/following            — list followed users
  GET  /users/{id}/is-following/{other} — edge check
  POST /users/follow                    — follow another user
  POST /users/unfollow                  — unfollow
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from opentelemetry import trace
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from network32.database import get_db
from network32.models import Case, Follow, User
from network32.schemas import FollowRequest, UserResponse, UserStats

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


async def _count(db: AsyncSession, stmt) -> int:
    return (await db.execute(stmt)).scalar_one()


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, db: AsyncSession = Depends(get_db)):
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/{user_id}/stats", response_model=UserStats)
async def get_user_stats(user_id: str, db: AsyncSession = Depends(get_db)):
    if not await db.get(User, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    return UserStats(
        user_id=user_id,
        follower_count=await _count(
            db, select(func.count()).select_from(Follow).where(Follow.following_id == user_id)
        ),
        following_count=await _count(
            db, select(func.count()).select_from(Follow).where(Follow.follower_id == user_id)
        ),
        case_count=await _count(
            db, select(func.count()).select_from(Case).where(Case.user_id == user_id)
        ),
    )


@router.post("/follow", status_code=status.HTTP_204_NO_CONTENT)
async def follow_user(body: FollowRequest, db: AsyncSession = Depends(get_db)):
    """
    Create a follower → following edge in the social graph.

    The edge takes effect on the follower's next "my_network" feed request;
    nothing is materialised ahead of time.
    """
    with tracer.start_as_current_span("follow_user"):
        if body.follower_id == body.following_id:
            raise HTTPException(status_code=400, detail="Cannot follow yourself")

        for uid in (body.follower_id, body.following_id):
            if not await db.get(User, uid):
                raise HTTPException(status_code=404, detail=f"User {uid} not found")

        existing = await db.get(Follow, (body.follower_id, body.following_id))
        if existing:
            return  # already following — idempotent

        db.add(Follow(follower_id=body.follower_id, following_id=body.following_id))
        try:
            await db.flush()
        except IntegrityError:
            # A concurrent request inserted the same edge first
            await db.rollback()
            return
        logger.info("%s followed %s", body.follower_id, body.following_id)


@router.post("/unfollow", status_code=status.HTTP_204_NO_CONTENT)
async def unfollow_user(body: FollowRequest, db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("unfollow_user"):
        await db.execute(
            delete(Follow).where(
                Follow.follower_id == body.follower_id,
                Follow.following_id == body.following_id,
            )
        )
        logger.info("%s unfollowed %s", body.follower_id, body.following_id)


@router.get("/{user_id}/followers")
async def list_followers(user_id: str, db: AsyncSession = Depends(get_db)):
    rows = await db.execute(
        select(Follow.follower_id)
        .where(Follow.following_id == user_id)
        .order_by(Follow.created_at.desc())
    )
    return {"user_id": user_id, "followers": [r[0] for r in rows.all()]}


@router.get("/{user_id}/following")
async def list_following(user_id: str, db: AsyncSession = Depends(get_db)):
    rows = await db.execute(
        select(Follow.following_id)
        .where(Follow.follower_id == user_id)
        .order_by(Follow.created_at.desc())
    )
    return {"user_id": user_id, "following": [r[0] for r in rows.all()]}


@router.get("/{user_id}/is-following/{other_id}")
async def is_following(user_id: str, other_id: str, db: AsyncSession = Depends(get_db)):
    edge = await db.get(Follow, (user_id, other_id))
    return {"follower_id": user_id, "following_id": other_id, "following": edge is not None}
