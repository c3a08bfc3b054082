"""
Feed endpoints:
  GET /feed                       — composed feed page for a viewer
  GET /feed/location-suggestions  — locations the viewer engages with most

The feed endpoint is deliberately lenient about its query string: a bad
page/limit falls back to the default instead of a 422 and an unknown
media_type is ignored. following_only is true only for "true" (any case);
any other non-blank value counts as false, and a missing or blank one as
not supplied.
"""
import functools
import logging
import random
import time
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from opentelemetry import trace
from sqlalchemy.ext.asyncio import AsyncSession

from app.clients.redis_client import get_explorer_seed
from app.config import settings
from app.database import get_db
from app.deps import get_feed_composer, get_interaction_store
from app.feed.composer import FeedComposer, FeedUnavailableError, ViewerNotFoundError
from app.feed.types import FeedRequest
from app.models import User, utcnow
from app.routers.posts import build_feed_post
from app.schemas import FeedResponse, LocationSuggestion, LocationSuggestionsResponse
from app.stores.interactions import SqlInteractionStore
from app.stores.profiles import profile_from_user
from app.telemetry import FEED_LATENCY

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)

MEDIA_TYPES = ("image", "video")


def coerce_positive_int(raw: Optional[str], default: int) -> int:
    try:
        value = int(raw) if raw is not None else default
    except (TypeError, ValueError):
        return default
    return value if value >= 1 else default


def parse_following_only(raw: Optional[str]) -> Optional[bool]:
    if raw is None or not raw.strip():
        return None
    return raw.strip().lower() == "true"


async def explorer_rng(user_id: str, page: int) -> Optional[random.Random]:
    """Seeded RNG for the viewer's current explorer session, if any."""
    try:
        seed = await get_explorer_seed(user_id)
    except Exception as exc:
        logger.warning("Explorer seed lookup failed for %s: %s", user_id, exc)
        return None
    if seed is None:
        return None
    return random.Random(f"{seed}:{user_id}:{page}")


@router.get("/", response_model=FeedResponse)
async def get_feed(
    user_id: str = Query(..., description="ID of the requesting user"),
    page: Optional[str] = Query(None, description="Page number, default 1"),
    limit: Optional[str] = Query(None, description="Page size, default 10"),
    media_type: Optional[str] = Query(None, description="image | video"),
    following_only: Optional[str] = Query(None, description="true | false"),
    composer: FeedComposer = Depends(get_feed_composer),
):
    start_time = time.time()

    request = FeedRequest(
        user_id=user_id,
        page=coerce_positive_int(page, 1),
        page_size=coerce_positive_int(limit, settings.feed_default_page_size),
        media_type=media_type if media_type in MEDIA_TYPES else None,
        following_only=parse_following_only(following_only),
    )

    try:
        feed = await composer.compose(
            request, rng_source=functools.partial(explorer_rng, user_id, request.page)
        )
    except ViewerNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")
    except FeedUnavailableError:
        raise HTTPException(status_code=500, detail="Failed to load feed")

    FEED_LATENCY.labels(mode=feed.mode.value).observe(time.time() - start_time)

    return FeedResponse(
        posts=[build_feed_post(item) for item in feed.posts],
        total=feed.total,
        page=feed.page,
        total_pages=feed.total_pages,
        mode=feed.mode.value,
    )


@router.get("/location-suggestions", response_model=LocationSuggestionsResponse)
async def location_suggestions(
    user_id: str = Query(..., description="ID of the requesting user"),
    db: AsyncSession = Depends(get_db),
    interactions: SqlInteractionStore = Depends(get_interaction_store),
):
    """
    Suggest locations to save for personalized recommendations: the places
    whose posts the user liked or commented on most over the lookback
    window, minus the ones already saved.
    """
    with tracer.start_as_current_span("location_suggestions"):
        user = await db.get(User, user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")

        saved = set(profile_from_user(user).recommendation_locations)
        since = utcnow() - timedelta(days=settings.suggestion_lookback_days)
        counts = await interactions.recent_interaction_counts(user_id, since)

        suggestions: list[LocationSuggestion] = []
        for row in counts:
            if row.location in saved:
                continue
            suggestions.append(
                LocationSuggestion(**row.location.as_dict(), interactions=row.count)
            )
            if len(suggestions) >= settings.suggestion_limit:
                break

        return LocationSuggestionsResponse(user_id=user_id, suggestions=suggestions)
