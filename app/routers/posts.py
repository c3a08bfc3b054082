"""
Post endpoints:
  POST   /posts                       — create a post or a story
  GET    /posts/geo/map               — visible posts inside a bounding box
  GET    /posts/stories               — active stories from followed users
  GET    /posts/{id}                  — fetch a single post
  DELETE /posts/{id}                  — delete own post
  POST   /posts/{id}/like             — like / unlike toggle
  GET    /posts/{id}/comments         — list comments
  POST   /posts/{id}/comments         — add a comment
"""
import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from opentelemetry import trace
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.clients.kafka_producer import publish_notification
from app.database import get_db
from app.deps import get_content_store, get_feed_composer, get_interaction_store, get_social_store
from app.feed.composer import FeedComposer
from app.feed.types import AnnotatedPost
from app.models import Comment, Like, LocationInteraction, Post, User, utcnow
from app.schemas import (
    CommentCreate,
    CommentResponse,
    FeedPost,
    GeoMapResponse,
    LikeRequest,
    LikeResponse,
    PostCreate,
    PostResponse,
)
from app.stores.content import ContentFilter, SqlContentStore
from app.stores.interactions import SqlInteractionStore
from app.stores.social import SqlSocialGraphStore
from app.telemetry import POST_INGESTION_TOTAL

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def _post_fields(post: Post) -> dict:
    author = post.author
    return dict(
        post_id=post.post_id,
        user_id=post.user_id,
        username=author.username if author else None,
        display_name=author.display_name if author else None,
        avatar_url=author.avatar_url if author else None,
        content=post.content,
        media_url=post.media_url,
        media_type=post.media_type,
        visibility=post.visibility,
        country=post.country,
        city=post.city,
        district=post.district,
        latitude=post.latitude,
        longitude=post.longitude,
        like_count=post.like_count,
        expires_at=post.expires_at,
        created_at=post.created_at,
    )


def build_post_response(post: Post) -> PostResponse:
    return PostResponse(**_post_fields(post))


def build_feed_post(item: AnnotatedPost) -> FeedPost:
    return FeedPost(
        **_post_fields(item.post),
        likes_count=item.likes_count,
        comments_count=item.comments_count,
        is_liked=item.is_liked,
    )


async def _get_live_post(db: AsyncSession, post_id: str) -> Post:
    post = await db.get(Post, post_id)
    if not post or (post.expires_at is not None and post.expires_at <= utcnow()):
        raise HTTPException(status_code=404, detail="Post not found")
    return post


async def _record_interaction(
    interactions: SqlInteractionStore, user_id: str, post: Post, kind: str
) -> None:
    try:
        await interactions.record(user_id, post, kind)
    except Exception as exc:
        logger.warning(
            "Could not record %s location interaction (user=%s post=%s): %s",
            kind, user_id, post.post_id, exc,
        )


@router.post("/", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(body: PostCreate, db: AsyncSession = Depends(get_db)):
    """
    Persist a post. With `expires_in_hours` the post is a story: it shows up
    in /posts/stories until it expires and never in the feed.
    """
    with tracer.start_as_current_span("create_post") as span:
        user = await db.get(User, body.user_id)
        if not user:
            raise HTTPException(status_code=404, detail="Author not found")

        expires_at = None
        if body.expires_in_hours:
            expires_at = utcnow() + timedelta(hours=body.expires_in_hours)

        post = Post(
            user_id=body.user_id,
            content=body.content,
            media_url=body.media_url,
            media_type=body.media_type,
            visibility=body.visibility,
            country=body.country,
            city=body.city,
            district=body.district,
            latitude=body.latitude,
            longitude=body.longitude,
            expires_at=expires_at,
            author=user,
        )
        db.add(post)
        await db.flush()     # materialise post_id + defaults

        span.set_attribute("post.id", post.post_id)
        span.set_attribute("post.user_id", post.user_id)

        kind = "story" if expires_at else "post"
        POST_INGESTION_TOTAL.labels(kind=kind).inc()
        logger.info("%s created: %s by user %s", kind.capitalize(), post.post_id, post.user_id)
        return build_post_response(post)


@router.get("/geo/map", response_model=GeoMapResponse)
async def geo_map(
    user_id: str = Query(..., description="ID of the requesting user"),
    sw_lat: float = Query(..., ge=-90, le=90),
    sw_lng: float = Query(..., ge=-180, le=180),
    ne_lat: float = Query(..., ge=-90, le=90),
    ne_lng: float = Query(..., ge=-180, le=180),
    limit: int = Query(500, ge=1, le=2000),
    content: SqlContentStore = Depends(get_content_store),
    social: SqlSocialGraphStore = Depends(get_social_store),
    composer: FeedComposer = Depends(get_feed_composer),
):
    """
    Posts and stories with coordinates inside the box that the viewer may
    see: public posts, the viewer's own, and friends-only posts of mutual
    followers. A box with sw_lng > ne_lng spans the antimeridian.
    """
    if sw_lat > ne_lat:
        raise HTTPException(
            status_code=422,
            detail="sw_lat must not be north of ne_lat",
        )

    with tracer.start_as_current_span("geo_map") as span:
        mutuals = await social.mutuals_of(user_id)
        f = ContentFilter(
            lat_between=(sw_lat, ne_lat),
            lng_between=(sw_lng, ne_lng),
            durable_only=False,
            active_at=utcnow(),
            visible_to=user_id,
            friend_ids=sorted(mutuals),
        )
        rows, _ = await content.find(f, limit=limit)
        span.set_attribute("geo.posts", len(rows))

        annotated = await composer.annotate(user_id, rows)
        return GeoMapResponse(posts=[build_feed_post(item) for item in annotated])


@router.get("/stories", response_model=list[PostResponse])
async def list_stories(
    user_id: str = Query(..., description="ID of the requesting user"),
    content: SqlContentStore = Depends(get_content_store),
    social: SqlSocialGraphStore = Depends(get_social_store),
):
    following = await social.following_of(user_id)
    followers = await social.followers_of(user_id)
    f = ContentFilter(
        author_ids=sorted(following | {user_id}),
        stories_only=True,
        active_at=utcnow(),
        visible_to=user_id,
        friend_ids=sorted(following & followers),
    )
    rows, _ = await content.find(f)
    return [build_post_response(p) for p in rows]


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(post_id: str, db: AsyncSession = Depends(get_db)):
    return build_post_response(await _get_live_post(db, post_id))


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(
    post_id: str,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("delete_post"):
        post = await db.get(Post, post_id)
        if not post:
            raise HTTPException(status_code=404, detail="Post not found")
        if post.user_id != user_id:
            raise HTTPException(status_code=403, detail="Only the author can delete a post")

        await db.execute(delete(Like).where(Like.post_id == post_id))
        await db.execute(delete(Comment).where(Comment.post_id == post_id))
        await db.execute(
            delete(LocationInteraction).where(LocationInteraction.post_id == post_id)
        )
        await db.delete(post)
        logger.info("Post deleted: %s by user %s", post_id, user_id)


@router.post("/{post_id}/like", response_model=LikeResponse)
async def toggle_like(
    post_id: str,
    body: LikeRequest,
    db: AsyncSession = Depends(get_db),
    interactions: SqlInteractionStore = Depends(get_interaction_store),
):
    """
    Like the post, or unlike it if already liked. A new like on a geo-tagged
    post feeds the location-suggestion heuristic, and a like on someone
    else's post notifies its author.
    """
    with tracer.start_as_current_span("toggle_like") as span:
        post = await _get_live_post(db, post_id)
        if not await db.get(User, body.user_id):
            raise HTTPException(status_code=404, detail="User not found")

        existing = await db.get(Like, (body.user_id, post_id))
        if existing:
            await db.delete(existing)
            post.like_count = max(post.like_count - 1, 0)
            is_liked = False
        else:
            db.add(Like(user_id=body.user_id, post_id=post_id))
            post.like_count += 1
            is_liked = True

        await db.commit()
        span.set_attribute("like.is_liked", is_liked)

        if is_liked:
            await _record_interaction(interactions, body.user_id, post, "like")
            if post.user_id != body.user_id:
                await publish_notification(post.user_id, body.user_id, "like", post_id)

        logger.info(
            "Post %s %s by user %s", post_id, "liked" if is_liked else "unliked", body.user_id
        )
        return LikeResponse(post_id=post_id, is_liked=is_liked, likes_count=post.like_count)


@router.get("/{post_id}/comments", response_model=list[CommentResponse])
async def list_comments(post_id: str, db: AsyncSession = Depends(get_db)):
    await _get_live_post(db, post_id)
    rows = await db.execute(
        select(Comment)
        .where(Comment.post_id == post_id)
        .order_by(Comment.created_at, Comment.comment_id)
    )
    return rows.scalars().all()


@router.post(
    "/{post_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_comment(
    post_id: str,
    body: CommentCreate,
    db: AsyncSession = Depends(get_db),
    interactions: SqlInteractionStore = Depends(get_interaction_store),
):
    with tracer.start_as_current_span("create_comment"):
        post = await _get_live_post(db, post_id)
        if not await db.get(User, body.user_id):
            raise HTTPException(status_code=404, detail="User not found")

        comment = Comment(post_id=post_id, user_id=body.user_id, content=body.content)
        db.add(comment)
        await db.commit()

        await _record_interaction(interactions, body.user_id, post, "comment")
        if post.user_id != body.user_id:
            await publish_notification(post.user_id, body.user_id, "comment", post_id)

        return comment
