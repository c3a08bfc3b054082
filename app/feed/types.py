"""
Value types passed between the feed router, the stores and the composer.

None of these are persisted; they live for a single feed request.
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


class FeedMode(str, enum.Enum):
    EXPLORER = "explorer"
    PERSONALIZED = "personalized"
    FOLLOWING = "following"
    DISCOVERY = "discovery"


@dataclass(frozen=True)
class SavedLocation:
    country: Optional[str] = None
    city: Optional[str] = None
    district: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: dict) -> "SavedLocation":
        return cls(
            country=raw.get("country") or None,
            city=raw.get("city") or None,
            district=raw.get("district") or None,
        )

    def as_dict(self) -> dict:
        return {"country": self.country, "city": self.city, "district": self.district}


@dataclass
class RecommendationProfile:
    user_id: str
    recommendation_enabled: bool = False
    recommendation_locations: list[SavedLocation] = field(default_factory=list)
    recommendation_radius: int = 0          # meters, 0 = unlimited
    explorer_mode_enabled: bool = False
    explorer_mode_expires_at: Optional[datetime] = None
    last_known_latitude: Optional[float] = None
    last_known_longitude: Optional[float] = None

    @property
    def has_coordinates(self) -> bool:
        return self.last_known_latitude is not None and self.last_known_longitude is not None

    @property
    def saved_districts(self) -> list[str]:
        return _distinct(loc.district for loc in self.recommendation_locations)

    @property
    def saved_cities(self) -> list[str]:
        return _distinct(loc.city for loc in self.recommendation_locations)


@dataclass
class FeedRequest:
    user_id: str
    page: int = 1
    page_size: int = 10
    media_type: Optional[str] = None
    following_only: Optional[bool] = None   # None = not supplied

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass
class AnnotatedPost:
    post: Any                # app.models.Post
    likes_count: int = 0
    comments_count: int = 0
    is_liked: bool = False


@dataclass
class FeedPage:
    posts: list[AnnotatedPost]
    total: int
    page: int
    total_pages: int
    mode: FeedMode


def _distinct(values) -> list[str]:
    seen: list[str] = []
    for v in values:
        if v and v not in seen:
            seen.append(v)
    return seen
