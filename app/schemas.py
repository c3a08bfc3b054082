"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from app.config import settings


# ──────────────────────────── Users ───────────────────────────────────────

class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


class LocationIn(BaseModel):
    country: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=100)
    district: Optional[str] = Field(None, max_length=100)


class UserResponse(BaseModel):
    user_id: str
    username: str
    display_name: Optional[str]
    avatar_url: Optional[str] = None
    recommendation_enabled: bool = False
    recommendation_locations: Optional[list[LocationIn]] = None
    recommendation_radius: int = 0
    explorer_mode_enabled: bool = False
    explorer_mode_expires_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class FollowRequest(BaseModel):
    follower_id: str
    followee_id: str


class RecommendationSettingsUpdate(BaseModel):
    recommendation_enabled: bool
    # First location is the primary one
    recommendation_locations: list[LocationIn] = Field(
        default_factory=list, max_length=settings.max_recommendation_locations
    )
    recommendation_radius: int = Field(0, ge=0)


class ExplorerModeRequest(BaseModel):
    duration_minutes: int = Field(settings.explorer_default_minutes, ge=1, le=24 * 60)


class LastLocationUpdate(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


# ──────────────────────────── Posts ───────────────────────────────────────

class PostCreate(BaseModel):
    user_id: str
    content: Optional[str] = None
    # Media lives in object storage; clients upload first and send the URL
    media_url: Optional[str] = Field(None, max_length=500)
    media_type: Optional[str] = Field(None, pattern="^(image|video)$")
    visibility: str = Field("public", pattern="^(public|friends|private)$")
    country: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=100)
    district: Optional[str] = Field(None, max_length=100)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    # Set to publish a story instead of a durable post
    expires_in_hours: Optional[int] = Field(None, ge=1, le=168)


class PostResponse(BaseModel):
    post_id: str
    user_id: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    content: Optional[str]
    media_url: Optional[str]
    media_type: Optional[str]
    visibility: str
    country: Optional[str] = None
    city: Optional[str] = None
    district: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    like_count: int
    expires_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class LikeRequest(BaseModel):
    user_id: str


class LikeResponse(BaseModel):
    post_id: str
    is_liked: bool
    likes_count: int


class CommentCreate(BaseModel):
    user_id: str
    content: str = Field(..., min_length=1, max_length=2000)


class CommentResponse(BaseModel):
    comment_id: str
    post_id: str
    user_id: str
    content: str
    created_at: datetime

    class Config:
        from_attributes = True


# ──────────────────────────── Feed ────────────────────────────────────────

class FeedPost(PostResponse):
    """A post as served in a feed, annotated for the viewer."""
    likes_count: int
    comments_count: int
    is_liked: bool


class FeedResponse(BaseModel):
    posts: list[FeedPost]
    total: int
    page: int
    total_pages: int = Field(..., serialization_alias="totalPages")
    mode: str


class GeoMapResponse(BaseModel):
    posts: list[FeedPost]


class LocationSuggestion(BaseModel):
    country: Optional[str]
    city: Optional[str]
    district: Optional[str]
    interactions: int


class LocationSuggestionsResponse(BaseModel):
    user_id: str
    suggestions: list[LocationSuggestion]
