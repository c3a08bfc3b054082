"""
SQLAlchemy ORM models.

Tables:
  users                 — profiles + recommendation / explorer settings
  follows               — social graph edges (follower → followee)
  posts                 — posts and stories (stories carry expires_at)
  likes                 — user × post engagement
  comments              — post comments
  location_interactions — per-user engagement with geo-tagged posts

All timestamps are naive UTC.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(255))
    avatar_url: Mapped[Optional[str]] = mapped_column(String(500))

    recommendation_enabled: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    # [{"country": ..., "city": ..., "district": ...}, ...], first is primary
    recommendation_locations: Mapped[Optional[list]] = mapped_column(JSON)
    recommendation_radius: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    explorer_mode_enabled: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    explorer_mode_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    last_location_lat: Mapped[Optional[float]] = mapped_column(Float)
    last_location_lng: Mapped[Optional[float]] = mapped_column(Float)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    # never loaded from a User; feeds query posts directly
    posts = relationship("Post", back_populates="author", lazy="raise")


class Follow(Base):
    __tablename__ = "follows"

    follower_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
    followee_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_followee", "followee_id"),
    )


class Post(Base):
    __tablename__ = "posts"

    post_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    content: Mapped[Optional[str]] = mapped_column(Text)
    media_url: Mapped[Optional[str]] = mapped_column(String(500))
    media_type: Mapped[Optional[str]] = mapped_column(
        String(20)
    )  # 'image' | 'video' | None
    visibility: Mapped[str] = mapped_column(
        String(20), default="public", nullable=False
    )  # 'public' | 'friends' | 'private'

    country: Mapped[Optional[str]] = mapped_column(String(100))
    city: Mapped[Optional[str]] = mapped_column(String(100))
    district: Mapped[Optional[str]] = mapped_column(String(100))
    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)

    like_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Non-null means the post is a story and never shows up in durable feeds
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    author = relationship("User", back_populates="posts", lazy="joined")

    __table_args__ = (
        Index("idx_posts_user", "user_id"),
        Index("idx_posts_created", "created_at"),
        Index("idx_posts_geo", "country", "city", "district"),
    )


class Like(Base):
    __tablename__ = "likes"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.post_id"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class Comment(Base):
    __tablename__ = "comments"

    comment_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.post_id"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_comments_post", "post_id"),
    )


class LocationInteraction(Base):
    __tablename__ = "location_interactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    country: Mapped[Optional[str]] = mapped_column(String(100))
    city: Mapped[Optional[str]] = mapped_column(String(100))
    district: Mapped[Optional[str]] = mapped_column(String(100))
    interaction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    post_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("posts.post_id")
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_location_interactions_user", "user_id", "created_at"),
    )
