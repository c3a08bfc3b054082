"""Shared fixtures: a throwaway SQLite database plus helpers to populate it."""
import itertools
import os
from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.database import dispose_db, init_db
from app.feed.composer import FeedComposer
from app.models import Comment, Follow, Like, LocationInteraction, Post, User, utcnow
from app.stores.content import SqlContentStore
from app.stores.engagement import SqlEngagementStore
from app.stores.profiles import SqlProfileStore
from app.stores.social import SqlSocialGraphStore

# no trace collector in tests
os.environ.setdefault("OTEL_SDK_DISABLED", "true")


class Seeder:
    """Inserts rows directly, one committed session per call."""

    def __init__(self, session_factory):
        self.session_factory = session_factory
        self._names = itertools.count(1)
        self._ages = itertools.count(0)

    async def _add(self, *rows):
        async with self.session_factory() as session:
            session.add_all(rows)
            await session.commit()

    async def user(self, username=None, **fields) -> str:
        user = User(username=username or f"user{next(self._names)}", **fields)
        await self._add(user)
        return user.user_id

    async def post(self, user_id, age_minutes=None, **fields) -> str:
        """Later calls produce older posts unless age_minutes is given."""
        if age_minutes is None:
            age_minutes = next(self._ages)
        fields.setdefault("created_at", utcnow() - timedelta(minutes=age_minutes))
        post = Post(user_id=user_id, **fields)
        await self._add(post)
        return post.post_id

    async def posts(self, user_id, n, **fields) -> list[str]:
        return [await self.post(user_id, **fields) for _ in range(n)]

    async def follow(self, follower_id, followee_id):
        await self._add(Follow(follower_id=follower_id, followee_id=followee_id))

    async def like(self, user_id, post_id):
        await self._add(Like(user_id=user_id, post_id=post_id))

    async def comment(self, user_id, post_id, content="nice"):
        await self._add(Comment(user_id=user_id, post_id=post_id, content=content))

    async def interaction(self, user_id, post_id=None, age_days=0, kind="like", **location):
        await self._add(
            LocationInteraction(
                user_id=user_id,
                post_id=post_id,
                interaction_type=kind,
                created_at=utcnow() - timedelta(days=age_days),
                **location,
            )
        )


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'feed.db'}")
    await init_db(engine)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await dispose_db(engine)


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


@pytest.fixture
def content_store(session_factory):
    return SqlContentStore(session_factory)


@pytest.fixture
def composer(session_factory):
    return FeedComposer(
        content=SqlContentStore(session_factory),
        social=SqlSocialGraphStore(session_factory),
        profiles=SqlProfileStore(session_factory),
        engagement=SqlEngagementStore(session_factory),
        home_country="Moldova",
    )
