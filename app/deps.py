from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.database import get_session_factory
from app.feed.composer import FeedComposer
from app.stores.content import SqlContentStore
from app.stores.engagement import SqlEngagementStore
from app.stores.interactions import SqlInteractionStore
from app.stores.profiles import SqlProfileStore
from app.stores.social import SqlSocialGraphStore


async def get_feed_composer(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> FeedComposer:
    """Dependency for FeedComposer wired to the SQL stores."""
    return FeedComposer(
        content=SqlContentStore(session_factory),
        social=SqlSocialGraphStore(session_factory),
        profiles=SqlProfileStore(session_factory),
        engagement=SqlEngagementStore(session_factory),
    )


async def get_content_store(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> SqlContentStore:
    return SqlContentStore(session_factory)


async def get_social_store(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> SqlSocialGraphStore:
    return SqlSocialGraphStore(session_factory)


async def get_interaction_store(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> SqlInteractionStore:
    return SqlInteractionStore(session_factory)
