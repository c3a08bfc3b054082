"""
User management endpoints:
  POST   /users                          — create a user profile
  GET    /users/{id}                     — fetch a user profile
  POST   /users/follow                   — follow another user
  POST   /users/unfollow                 — unfollow
  GET    /users/{id}/followers           — list followers
  GET    /users/{id}/following           — list followed users
  PUT    /users/{id}/recommendations     — personalized recommendation settings
  POST   /users/{id}/explorer-mode       — switch explorer mode on for a while
  DELETE /users/{id}/explorer-mode       — switch explorer mode off
  PUT    /users/{id}/location            — last known coordinates
"""
import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from opentelemetry import trace
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.clients.redis_client import end_explorer_session, start_explorer_session
from app.database import get_db
from app.models import Follow, User, utcnow
from app.schemas import (
    ExplorerModeRequest,
    FollowRequest,
    LastLocationUpdate,
    RecommendationSettingsUpdate,
    UserCreate,
    UserResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


async def _get_user(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(body: UserCreate, db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("create_user"):
        existing = await db.execute(
            select(User).where(User.username == body.username)
        )
        if existing.scalar_one_or_none():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Username '{body.username}' already taken",
            )

        user = User(
            username=body.username,
            display_name=body.display_name,
            avatar_url=body.avatar_url,
        )
        db.add(user)
        await db.flush()  # get user_id before commit

        logger.info("Created user %s (id=%s)", user.username, user.user_id)
        return user


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, db: AsyncSession = Depends(get_db)):
    return await _get_user(db, user_id)


@router.post("/follow", status_code=status.HTTP_204_NO_CONTENT)
async def follow_user(body: FollowRequest, db: AsyncSession = Depends(get_db)):
    """Create a follower → followee edge in the social graph."""
    with tracer.start_as_current_span("follow_user"):
        if body.follower_id == body.followee_id:
            raise HTTPException(status_code=400, detail="Cannot follow yourself")

        for uid in (body.follower_id, body.followee_id):
            if not await db.get(User, uid):
                raise HTTPException(status_code=404, detail=f"User {uid} not found")

        existing = await db.get(Follow, (body.follower_id, body.followee_id))
        if existing:
            return  # already following

        db.add(Follow(follower_id=body.follower_id, followee_id=body.followee_id))
        logger.info("%s followed %s", body.follower_id, body.followee_id)


@router.post("/unfollow", status_code=status.HTTP_204_NO_CONTENT)
async def unfollow_user(body: FollowRequest, db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("unfollow_user"):
        await db.execute(
            delete(Follow).where(
                Follow.follower_id == body.follower_id,
                Follow.followee_id == body.followee_id,
            )
        )


@router.get("/{user_id}/followers")
async def list_followers(user_id: str, db: AsyncSession = Depends(get_db)):
    rows = await db.execute(
        select(Follow.follower_id).where(Follow.followee_id == user_id)
    )
    return {"user_id": user_id, "followers": [r[0] for r in rows.all()]}


@router.get("/{user_id}/following")
async def list_following(user_id: str, db: AsyncSession = Depends(get_db)):
    rows = await db.execute(
        select(Follow.followee_id).where(Follow.follower_id == user_id)
    )
    return {"user_id": user_id, "following": [r[0] for r in rows.all()]}


@router.put("/{user_id}/recommendations", response_model=UserResponse)
async def update_recommendations(
    user_id: str,
    body: RecommendationSettingsUpdate,
    db: AsyncSession = Depends(get_db),
):
    """
    Replace the user's personalized-recommendation settings. Locations are
    kept in the given order; the first one is the primary location.
    Entries with no country, city or district are dropped.
    """
    with tracer.start_as_current_span("update_recommendations"):
        user = await _get_user(db, user_id)
        locations = [
            loc.model_dump()
            for loc in body.recommendation_locations
            if loc.country or loc.city or loc.district
        ]
        user.recommendation_enabled = body.recommendation_enabled
        user.recommendation_locations = locations
        user.recommendation_radius = body.recommendation_radius
        await db.flush()

        logger.info(
            "Recommendations for %s: enabled=%s locations=%d radius=%dm",
            user_id, body.recommendation_enabled, len(locations), body.recommendation_radius,
        )
        return user


@router.post("/{user_id}/explorer-mode", response_model=UserResponse)
async def enable_explorer_mode(
    user_id: str,
    body: ExplorerModeRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Turn explorer mode on for `duration_minutes`. Nothing turns it off
    again: the feed treats it as inactive once the expiry has passed.
    """
    with tracer.start_as_current_span("enable_explorer_mode"):
        user = await _get_user(db, user_id)
        user.explorer_mode_enabled = True
        user.explorer_mode_expires_at = utcnow() + timedelta(minutes=body.duration_minutes)
        await db.flush()

        try:
            await start_explorer_session(user_id, body.duration_minutes * 60)
        except Exception as exc:
            logger.warning("Explorer session seed not stored for %s: %s", user_id, exc)

        logger.info("Explorer mode on for %s until %s", user_id, user.explorer_mode_expires_at)
        return user


@router.delete("/{user_id}/explorer-mode", response_model=UserResponse)
async def disable_explorer_mode(user_id: str, db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("disable_explorer_mode"):
        user = await _get_user(db, user_id)
        user.explorer_mode_enabled = False
        user.explorer_mode_expires_at = None
        await db.flush()

        try:
            await end_explorer_session(user_id)
        except Exception as exc:
            logger.warning("Explorer session seed not cleared for %s: %s", user_id, exc)

        return user


@router.put("/{user_id}/location", status_code=status.HTTP_204_NO_CONTENT)
async def update_last_location(
    user_id: str,
    body: LastLocationUpdate,
    db: AsyncSession = Depends(get_db),
):
    user = await _get_user(db, user_id)
    user.last_location_lat = body.latitude
    user.last_location_lng = body.longitude
