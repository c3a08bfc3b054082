"""
FeedComposer — turns a FeedRequest into one page of posts.

  Mode         │ Buckets (share of page)                   │ Order
  ─────────────┼───────────────────────────────────────────┼──────────────────
  Explorer     │ world 50% · home 30% · nearby 20%         │ shuffled
  Personalized │ district 60% · city 20% · home 10% ·      │ bucket order,
               │ world 10%                                 │ newest first
  Following    │ followed authors + self                   │ newest first
  Discovery    │ all public posts                          │ newest first

"home" is the platform's home country (settings.home_country); "world" is
any other non-null country.

Bucket queries are independent reads, so each mode issues them together
with asyncio.gather. A failing bucket is logged and served as empty; only
the profile lookup and the Following/Discovery page query are mandatory.
"""
import asyncio
import logging
import math
import random
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from opentelemetry import trace

from app.config import settings
from app.feed.buckets import (
    EXPLORER_WEIGHTS,
    OVERFETCH,
    PERSONALIZED_HOME_OVERFETCH,
    PERSONALIZED_WEIGHTS,
    ORDER,
    SHUFFLE,
    bucket_targets,
    dedupe_by_id,
    select_bucket,
    shuffled,
    within_band,
    within_radius,
)
from app.feed.modes import select_mode
from app.feed.types import (
    AnnotatedPost,
    FeedMode,
    FeedPage,
    FeedRequest,
    RecommendationProfile,
)
from app.models import Post, utcnow
from app.stores.content import ContentFilter
from app.telemetry import (
    FEED_BUCKET_ERRORS_TOTAL,
    FEED_BUCKET_POSTS_TOTAL,
    FEED_FALLBACKS_TOTAL,
    FEED_REQUESTS_TOTAL,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class FeedUnavailableError(Exception):
    """A mandatory query failed; the page cannot be built."""


class ViewerNotFoundError(Exception):
    pass


class FeedComposer:
    def __init__(
        self,
        content,
        social,
        profiles,
        engagement,
        *,
        home_country: str = settings.home_country,
        explorer_window_days: int = settings.explorer_window_days,
        nearby_min_m: float = settings.explorer_nearby_min_m,
        nearby_max_m: float = settings.explorer_nearby_max_m,
        nearby_candidates: int = settings.explorer_nearby_candidates,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._content = content
        self._social = social
        self._profiles = profiles
        self._engagement = engagement
        self.home_country = home_country
        self.explorer_window = timedelta(days=explorer_window_days)
        self.nearby_min_m = nearby_min_m
        self.nearby_max_m = nearby_max_m
        self.nearby_candidates = nearby_candidates
        self._clock = clock

    async def compose(
        self,
        request: FeedRequest,
        rng: Optional[random.Random] = None,
        rng_source: Optional[Callable[[], Awaitable[Optional[random.Random]]]] = None,
    ) -> FeedPage:
        """
        Build one page. Explorer pages shuffle with `rng`; when it is None,
        `rng_source` is awaited for one, and only once Explorer is chosen.
        """
        now = self._clock()

        with tracer.start_as_current_span("compose_feed") as span:
            span.set_attribute("user.id", request.user_id)

            try:
                profile = await self._profiles.recommendation_profile(request.user_id)
            except Exception as exc:
                logger.exception("Profile lookup failed for user %s", request.user_id)
                raise FeedUnavailableError("profile lookup failed") from exc
            if profile is None:
                raise ViewerNotFoundError(request.user_id)

            mode = select_mode(request, profile, now)
            logger.info(
                "Feed request user=%s page=%s size=%s media=%s following_only=%s → mode=%s",
                request.user_id, request.page, request.page_size,
                request.media_type, request.following_only, mode.value,
            )

            if mode is FeedMode.EXPLORER:
                if rng is None and rng_source is not None:
                    rng = await rng_source()
                posts = await self._compose_explorer(request, profile, now, rng)
                total = len(posts)
            elif mode is FeedMode.PERSONALIZED:
                posts = await self._compose_personalized(request, profile)
                total = len(posts)
            else:
                posts, total, mode = await self._compose_following(request, mode)

            span.set_attribute("feed.mode", mode.value)
            span.set_attribute("feed.posts_returned", len(posts))

        FEED_REQUESTS_TOTAL.labels(mode=mode.value).inc()
        return FeedPage(
            posts=await self.annotate(request.user_id, posts),
            total=total,
            page=request.page,
            total_pages=math.ceil(total / request.page_size),
            mode=mode,
        )

    # ── Explorer ─────────────────────────────────────────────────────────

    async def _compose_explorer(
        self,
        request: FeedRequest,
        profile: RecommendationProfile,
        now: datetime,
        rng: Optional[random.Random],
    ) -> list[Post]:
        mode = FeedMode.EXPLORER
        targets = bucket_targets(request.page_size, EXPLORER_WEIGHTS)
        since = now - self.explorer_window

        def world_home_filters(exclude_viewer: bool) -> tuple[ContentFilter, ContentFilter]:
            author = request.user_id if exclude_viewer else None
            world = ContentFilter(
                country_not=self.home_country, exclude_author_id=author,
                visibility="public", created_after=since,
            )
            home = ContentFilter(
                country=self.home_country, exclude_author_id=author,
                visibility="public", created_after=since,
            )
            return world, home

        world_f, home_f = world_home_filters(exclude_viewer=True)
        fetches = [
            self._fetch_bucket(mode, "world", world_f, targets["world"] * OVERFETCH),
            self._fetch_bucket(mode, "home", home_f, targets["home"] * OVERFETCH),
        ]
        if profile.has_coordinates:
            nearby_f = ContentFilter(
                has_coordinates=True, exclude_author_id=request.user_id,
                visibility="public", created_after=since,
            )
            fetches.append(self._fetch_bucket(mode, "nearby", nearby_f, self.nearby_candidates))

        world_rows, home_rows, *rest = await asyncio.gather(*fetches)

        nearby_rows: list[Post] = []
        if rest:
            nearby_rows = within_band(
                rest[0],
                profile.last_known_latitude,
                profile.last_known_longitude,
                self.nearby_min_m,
                self.nearby_max_m,
            )[: targets["nearby"] * OVERFETCH]

        nearby = select_bucket(nearby_rows, targets["nearby"], SHUFFLE, rng)
        world = select_bucket(world_rows, targets["world"], SHUFFLE, rng)
        home = select_bucket(home_rows, targets["home"], SHUFFLE, rng)
        combined = shuffled(dedupe_by_id(world + home + nearby), rng)

        if not combined:
            # Thin region: let the viewer's own posts back in
            logger.info("Explorer feed empty for user %s — relaxing author filter", request.user_id)
            FEED_FALLBACKS_TOTAL.labels(mode=mode.value, reason="relaxed_author").inc()
            world_f, home_f = world_home_filters(exclude_viewer=False)
            world_rows, home_rows = await asyncio.gather(
                self._fetch_bucket(mode, "world", world_f, targets["world"] * OVERFETCH),
                self._fetch_bucket(mode, "home", home_f, targets["home"] * OVERFETCH),
            )
            world = select_bucket(world_rows, targets["world"], SHUFFLE, rng)
            home = select_bucket(home_rows, targets["home"], SHUFFLE, rng)
            combined = shuffled(dedupe_by_id(world + home + nearby), rng)

        self._record_buckets(mode, world=world, home=home, nearby=nearby)
        return combined

    # ── Personalized ─────────────────────────────────────────────────────

    async def _compose_personalized(
        self,
        request: FeedRequest,
        profile: RecommendationProfile,
    ) -> list[Post]:
        mode = FeedMode.PERSONALIZED
        targets = bucket_targets(request.page_size, PERSONALIZED_WEIGHTS)
        districts = profile.saved_districts
        cities = profile.saved_cities

        async def nothing() -> list[Post]:
            return []

        district_rows, city_rows, home_rows, world_rows = await asyncio.gather(
            self._fetch_bucket(
                mode, "district",
                ContentFilter(districts=districts, visibility="public"),
                targets["district"] * OVERFETCH,
            ) if districts else nothing(),
            self._fetch_bucket(
                mode, "city",
                ContentFilter(cities=cities, districts_not=districts, visibility="public"),
                targets["city"] * OVERFETCH,
            ) if cities else nothing(),
            self._fetch_bucket(
                mode, "home",
                ContentFilter(country=self.home_country, visibility="public"),
                targets["home"] * PERSONALIZED_HOME_OVERFETCH,
            ),
            self._fetch_bucket(
                mode, "world",
                ContentFilter(country_not=self.home_country, visibility="public"),
                targets["world"] * OVERFETCH,
            ),
        )

        if profile.recommendation_radius > 0 and profile.has_coordinates:
            district_rows = within_radius(
                district_rows,
                profile.last_known_latitude,
                profile.last_known_longitude,
                profile.recommendation_radius,
            )

        district = select_bucket(district_rows, targets["district"], ORDER)
        city = select_bucket(city_rows, targets["city"], ORDER)
        shown = {p.post_id for p in district + city}
        home = select_bucket(
            [p for p in home_rows if p.post_id not in shown], targets["home"], ORDER
        )
        world = select_bucket(world_rows, targets["world"], ORDER)

        self._record_buckets(mode, district=district, city=city, home=home, world=world)
        return dedupe_by_id(district + city + home + world)

    # ── Following / Discovery ────────────────────────────────────────────

    async def _compose_following(
        self,
        request: FeedRequest,
        mode: FeedMode,
    ) -> tuple[list[Post], int, FeedMode]:
        f = ContentFilter(media_type=request.media_type)

        if mode is FeedMode.FOLLOWING:
            try:
                following, followers = await asyncio.gather(
                    self._social.following_of(request.user_id),
                    self._social.followers_of(request.user_id),
                )
            except Exception as exc:
                logger.exception("Following lookup failed for user %s", request.user_id)
                raise FeedUnavailableError("following lookup failed") from exc

            following.discard(request.user_id)
            if following:
                f.author_ids = sorted(following | {request.user_id})
                f.visible_to = request.user_id
                f.friend_ids = sorted(following & followers)
            else:
                logger.info("User %s follows nobody — serving discovery feed", request.user_id)
                FEED_FALLBACKS_TOTAL.labels(mode=mode.value, reason="no_follows").inc()
                mode = FeedMode.DISCOVERY

        if mode is FeedMode.DISCOVERY:
            f.visibility = "public"

        try:
            rows, total = await self._content.find(
                f, offset=request.offset, limit=request.page_size, count=True
            )
        except Exception as exc:
            logger.exception("%s feed query failed for user %s", mode.value, request.user_id)
            raise FeedUnavailableError("feed query failed") from exc

        FEED_BUCKET_POSTS_TOTAL.labels(mode=mode.value, bucket="page").inc(len(rows))
        return rows, total or 0, mode

    # ── Shared helpers ───────────────────────────────────────────────────

    async def annotate(self, user_id: str, posts: list[Post]) -> list[AnnotatedPost]:
        """Attach like / comment info, keeping the input order."""
        post_ids = [p.post_id for p in posts]
        liked: set[str] = set()
        comments: dict[str, int] = {}
        if post_ids:
            try:
                liked, comments = await asyncio.gather(
                    self._engagement.liked_post_ids(user_id, post_ids),
                    self._engagement.comment_counts(post_ids),
                )
            except Exception as exc:
                logger.warning("Engagement lookup failed for user %s: %s", user_id, exc)

        return [
            AnnotatedPost(
                post=p,
                likes_count=p.like_count or 0,
                comments_count=comments.get(p.post_id, 0),
                is_liked=p.post_id in liked,
            )
            for p in posts
        ]

    async def _fetch_bucket(
        self,
        mode: FeedMode,
        bucket: str,
        f: ContentFilter,
        limit: int,
    ) -> list[Post]:
        try:
            rows, _ = await self._content.find(f, limit=limit)
            return rows
        except Exception as exc:
            logger.warning("%s bucket %r failed, serving it empty: %s", mode.value, bucket, exc)
            FEED_BUCKET_ERRORS_TOTAL.labels(mode=mode.value, bucket=bucket).inc()
            return []

    @staticmethod
    def _record_buckets(mode: FeedMode, **buckets: list[Post]) -> None:
        span = trace.get_current_span()
        for name, rows in buckets.items():
            FEED_BUCKET_POSTS_TOTAL.labels(mode=mode.value, bucket=name).inc(len(rows))
            span.set_attribute(f"feed.bucket.{name}", len(rows))
