"""
Redis client wrapper.

Responsibilities:
  • Explorer session seeds — STRING keyed by explorer:{user_id}
                              value = random 64-bit seed
                              TTL   = remaining explorer-mode duration

A seed is written when a user switches explorer mode on. While it lives,
the feed seeds its shuffles with (seed, user, page), so flipping back to a
page within the same session shows the same posts. Without a seed (expired,
never set, Redis down) explorer pages are simply unseeded.
"""
import logging
import random
from typing import Optional

import redis.asyncio as aioredis

from app.config import settings

logger = logging.getLogger(__name__)

_redis: Optional[aioredis.Redis] = None


async def init_redis() -> None:
    global _redis
    client = aioredis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        decode_responses=True,
    )
    await client.ping()
    _redis = client
    logger.info("Redis connected at %s:%s", settings.redis_host, settings.redis_port)


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    if _redis is None:
        raise RuntimeError("Redis not initialised — call init_redis() at startup")
    return _redis


# ─────────────────────── Explorer Session Seed ────────────────────────────

EXPLORER_KEY = "explorer:{user_id}"


async def start_explorer_session(user_id: str, ttl_seconds: int) -> int:
    r = get_redis()
    seed = random.getrandbits(64)
    await r.set(EXPLORER_KEY.format(user_id=user_id), str(seed), ex=max(ttl_seconds, 1))
    return seed


async def get_explorer_seed(user_id: str) -> Optional[int]:
    r = get_redis()
    raw = await r.get(EXPLORER_KEY.format(user_id=user_id))
    return int(raw) if raw else None


async def end_explorer_session(user_id: str) -> None:
    r = get_redis()
    await r.delete(EXPLORER_KEY.format(user_id=user_id))
