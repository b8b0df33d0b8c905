"""
Redis client wrapper.

Responsibilities:
  • Feed preferences — STRING (JSON) keyed by feed_settings:{user_id}

Preferences are per-user configuration; they are read once per feed
request and passed explicitly into the aggregator.
"""
import logging
from typing import Optional

import redis.asyncio as aioredis

from network32.config import settings
from network32.schemas import FeedPreferences

logger = logging.getLogger(__name__)

_redis: Optional[aioredis.Redis] = None


async def init_redis() -> None:
    global _redis
    _redis = aioredis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        decode_responses=True,
    )
    await _redis.ping()
    logger.info("Redis connected at %s:%s", settings.redis_host, settings.redis_port)


async def close_redis() -> None:
    if _redis is not None:
        await _redis.aclose()


def get_redis() -> aioredis.Redis:
    if _redis is None:
        raise RuntimeError("Redis not initialised — call init_redis() at startup")
    return _redis


# ─────────────────────── Feed preferences ─────────────────────────────────

def _settings_key(user_id: str) -> str:
    return f"feed_settings:{user_id}"


async def get_feed_preferences(user_id: str) -> Optional[FeedPreferences]:
    """Stored preferences for `user_id`, or None if the user never saved any."""
    r = get_redis()
    raw = await r.get(_settings_key(user_id))
    if raw is None:
        return None
    return FeedPreferences.model_validate_json(raw)


async def set_feed_preferences(user_id: str, preferences: FeedPreferences) -> None:
    r = get_redis()
    await r.set(
        _settings_key(user_id),
        preferences.model_dump_json(),
        ex=settings.feed_settings_ttl,
    )
    logger.debug("Saved feed preferences for user_id=%s", user_id)
