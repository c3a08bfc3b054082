"""SocialGraphStore — follower / following lookups."""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models import Follow


class SqlSocialGraphStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def following_of(self, user_id: str) -> set[str]:
        async with self._session_factory() as session:
            rows = await session.execute(
                select(Follow.followee_id).where(Follow.follower_id == user_id)
            )
            return set(rows.scalars().all())

    async def followers_of(self, user_id: str) -> set[str]:
        async with self._session_factory() as session:
            rows = await session.execute(
                select(Follow.follower_id).where(Follow.followee_id == user_id)
            )
            return set(rows.scalars().all())

    async def mutuals_of(self, user_id: str) -> set[str]:
        """Users that follow `user_id` and are followed back."""
        return (await self.following_of(user_id)) & (await self.followers_of(user_id))
