"""
Feed mode selection.

Precedence (first match wins):
  1. Explorer      — explorer mode switched on and not yet expired
  2. Personalized  — recommendations on and at least one saved location
  3. Following     — following_only=true, or a non-video feed that did not
                     say either way
  4. Discovery     — everything else

Explorer expiry is lazy: a stale `explorer_mode_enabled=True` row is simply
treated as off once `explorer_mode_expires_at` has passed.
"""
from datetime import datetime
from typing import Optional

from app.feed.types import FeedMode, FeedRequest, RecommendationProfile


def is_explorer_active(profile: Optional[RecommendationProfile], now: datetime) -> bool:
    if profile is None or not profile.explorer_mode_enabled:
        return False
    expires_at = profile.explorer_mode_expires_at
    return expires_at is not None and expires_at > now


def select_mode(
    request: FeedRequest,
    profile: Optional[RecommendationProfile],
    now: datetime,
) -> FeedMode:
    if is_explorer_active(profile, now):
        return FeedMode.EXPLORER

    if profile is not None and profile.recommendation_enabled and profile.recommendation_locations:
        return FeedMode.PERSONALIZED

    if request.following_only is True:
        return FeedMode.FOLLOWING
    if request.media_type != "video" and request.following_only is None:
        return FeedMode.FOLLOWING

    return FeedMode.DISCOVERY
