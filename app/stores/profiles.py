"""ProfileStore — maps a users row onto a RecommendationProfile."""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.feed.types import RecommendationProfile, SavedLocation
from app.models import User

logger = logging.getLogger(__name__)


def profile_from_user(user: User) -> RecommendationProfile:
    locations = []
    for raw in user.recommendation_locations or []:
        if isinstance(raw, dict):
            locations.append(SavedLocation.from_dict(raw))
        else:
            logger.warning("Skipping malformed saved location for user %s: %r", user.user_id, raw)

    return RecommendationProfile(
        user_id=user.user_id,
        recommendation_enabled=bool(user.recommendation_enabled),
        recommendation_locations=locations,
        recommendation_radius=user.recommendation_radius or 0,
        explorer_mode_enabled=bool(user.explorer_mode_enabled),
        explorer_mode_expires_at=user.explorer_mode_expires_at,
        last_known_latitude=user.last_location_lat,
        last_known_longitude=user.last_location_lng,
    )


class SqlProfileStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def recommendation_profile(self, user_id: str) -> Optional[RecommendationProfile]:
        async with self._session_factory() as session:
            user = await session.get(User, user_id)
            if user is None:
                return None
            return profile_from_user(user)
