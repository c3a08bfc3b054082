"""
InteractionStore — per-user engagement with geo-tagged posts.

Likes and comments on a post that carries a country/city/district leave a
row here; the location-suggestion endpoint groups them back by location.
Writes use their own session so a failed insert never rolls back the like
or comment that triggered it.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.feed.types import SavedLocation
from app.models import LocationInteraction, Post

logger = logging.getLogger(__name__)


@dataclass
class LocationCount:
    location: SavedLocation
    count: int
    last_at: datetime


class SqlInteractionStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record(self, user_id: str, post: Post, interaction_type: str) -> Optional[str]:
        if not (post.country or post.city or post.district):
            return None
        async with self._session_factory() as session:
            row = LocationInteraction(
                user_id=user_id,
                country=post.country,
                city=post.city,
                district=post.district,
                interaction_type=interaction_type,
                post_id=post.post_id,
            )
            session.add(row)
            await session.commit()
            logger.debug(
                "Location interaction %s recorded for user %s on post %s",
                interaction_type, user_id, post.post_id,
            )
            return row.id

    async def recent_interaction_counts(
        self, user_id: str, since: datetime
    ) -> list[LocationCount]:
        """Interaction counts grouped by location, most engaged first."""
        last_at = func.max(LocationInteraction.created_at)
        q = (
            select(
                LocationInteraction.country,
                LocationInteraction.city,
                LocationInteraction.district,
                func.count(),
                last_at,
            )
            .where(
                LocationInteraction.user_id == user_id,
                LocationInteraction.created_at >= since,
            )
            .group_by(
                LocationInteraction.country,
                LocationInteraction.city,
                LocationInteraction.district,
            )
            .order_by(func.count().desc(), last_at.desc())
        )
        async with self._session_factory() as session:
            rows = (await session.execute(q)).all()
        return [
            LocationCount(
                location=SavedLocation(country=country, city=city, district=district),
                count=n,
                last_at=ts,
            )
            for country, city, district, n, ts in rows
        ]
