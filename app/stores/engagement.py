"""EngagementStore — batch like / comment lookups used to annotate feed pages."""
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models import Comment, Like


class SqlEngagementStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def liked_post_ids(self, user_id: str, post_ids: list[str]) -> set[str]:
        if not post_ids:
            return set()
        async with self._session_factory() as session:
            rows = await session.execute(
                select(Like.post_id).where(
                    Like.user_id == user_id, Like.post_id.in_(post_ids)
                )
            )
            return set(rows.scalars().all())

    async def comment_counts(self, post_ids: list[str]) -> dict[str, int]:
        if not post_ids:
            return {}
        async with self._session_factory() as session:
            rows = await session.execute(
                select(Comment.post_id, func.count())
                .where(Comment.post_id.in_(post_ids))
                .group_by(Comment.post_id)
            )
            return {pid: n for pid, n in rows.all()}
