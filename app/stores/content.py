"""
ContentStore — filtered range queries over posts.

`ContentFilter` describes one sub-query declaratively; `SqlContentStore`
turns it into a SELECT. Every call opens its own session from the factory,
so the composer may run several queries concurrently.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models import Post

logger = logging.getLogger(__name__)


@dataclass
class ContentFilter:
    author_ids: Optional[list[str]] = None
    exclude_author_id: Optional[str] = None

    # geography
    country: Optional[str] = None
    country_not: Optional[str] = None      # implies country IS NOT NULL
    cities: Optional[list[str]] = None
    districts: Optional[list[str]] = None
    districts_not: Optional[list[str]] = None  # NULL districts still match
    has_coordinates: bool = False
    lat_between: Optional[tuple[float, float]] = None
    # (west, east); west > east wraps across the antimeridian
    lng_between: Optional[tuple[float, float]] = None

    media_type: Optional[str] = None
    visibility: Optional[str] = None
    created_after: Optional[datetime] = None

    # Entitlement check instead of a fixed visibility: public rows, the
    # viewer's own rows, and "friends" rows authored by one of friend_ids.
    visible_to: Optional[str] = None
    friend_ids: Optional[list[str]] = None

    # durable posts only (no stories); otherwise only rows unexpired at
    # active_at. stories_only keeps just the unexpired stories.
    durable_only: bool = True
    stories_only: bool = False
    active_at: Optional[datetime] = None


def build_query(f: ContentFilter) -> Select:
    q = select(Post)

    if f.stories_only:
        q = q.where(Post.expires_at.is_not(None), Post.expires_at > f.active_at)
    elif f.durable_only:
        q = q.where(Post.expires_at.is_(None))
    elif f.active_at is not None:
        q = q.where(or_(Post.expires_at.is_(None), Post.expires_at > f.active_at))

    if f.author_ids is not None:
        q = q.where(Post.user_id.in_(f.author_ids))
    if f.exclude_author_id is not None:
        q = q.where(Post.user_id != f.exclude_author_id)

    if f.country is not None:
        q = q.where(Post.country == f.country)
    if f.country_not is not None:
        q = q.where(Post.country.is_not(None), Post.country != f.country_not)
    if f.cities is not None:
        q = q.where(Post.city.in_(f.cities))
    if f.districts is not None:
        q = q.where(Post.district.in_(f.districts))
    if f.districts_not:
        q = q.where(or_(Post.district.is_(None), Post.district.not_in(f.districts_not)))

    if f.has_coordinates or f.lat_between or f.lng_between:
        q = q.where(Post.latitude.is_not(None), Post.longitude.is_not(None))
    if f.lat_between is not None:
        q = q.where(Post.latitude.between(*f.lat_between))
    if f.lng_between is not None:
        west, east = f.lng_between
        if west <= east:
            q = q.where(Post.longitude.between(west, east))
        else:
            q = q.where(or_(Post.longitude >= west, Post.longitude <= east))

    if f.media_type is not None:
        q = q.where(Post.media_type == f.media_type)
    if f.visibility is not None:
        q = q.where(Post.visibility == f.visibility)
    if f.visible_to is not None:
        q = q.where(
            or_(
                Post.visibility == "public",
                Post.user_id == f.visible_to,
                and_(Post.visibility == "friends", Post.user_id.in_(f.friend_ids or [])),
            )
        )
    if f.created_after is not None:
        q = q.where(Post.created_at >= f.created_after)

    return q


class SqlContentStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find(
        self,
        f: ContentFilter,
        *,
        offset: int = 0,
        limit: Optional[int] = None,
        count: bool = False,
    ) -> tuple[list[Post], Optional[int]]:
        """
        Run the filter newest-first. Returns (rows, total) where total is the
        exact number of matching rows when `count=True`, else None.
        """
        if f.author_ids is not None and not f.author_ids:
            return [], (0 if count else None)
        if f.cities is not None and not f.cities:
            return [], (0 if count else None)
        if f.districts is not None and not f.districts:
            return [], (0 if count else None)

        base = build_query(f)
        q = base.order_by(Post.created_at.desc(), Post.post_id).offset(offset)
        if limit is not None:
            q = q.limit(limit)

        async with self._session_factory() as session:
            rows = list((await session.execute(q)).scalars().all())
            total = None
            if count:
                total = (
                    await session.execute(
                        select(func.count()).select_from(base.subquery())
                    )
                ).scalar_one()
        return rows, total
