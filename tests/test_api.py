from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from app.database import get_session_factory
from app.main import app
from app.models import utcnow

BOTANICA = {"country": "Moldova", "city": "Chișinău", "district": "Botanica"}


@pytest.fixture
async def client(session_factory):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def _create_user(client, username):
    resp = await client.post("/users/", json={"username": username})
    assert resp.status_code == 201
    return resp.json()["user_id"]


async def _create_post(client, user_id, **fields):
    resp = await client.post("/posts/", json={"user_id": user_id, **fields})
    assert resp.status_code == 201
    return resp.json()["post_id"]


class TestFeedEndpoint:

    async def test_response_shape(self, client, seed):
        me, other = await seed.user(), await seed.user(username="ana")
        await seed.post(other, content="hello", like_count=4)

        resp = await client.get("/feed/", params={"user_id": me})

        assert resp.status_code == 200
        body = resp.json()
        assert body["mode"] == "discovery"
        assert body["total"] == 1
        assert body["page"] == 1
        assert body["totalPages"] == 1
        post = body["posts"][0]
        assert post["username"] == "ana"
        assert post["likes_count"] == 4
        assert post["comments_count"] == 0
        assert post["is_liked"] is False

    async def test_bad_paging_falls_back_to_defaults(self, client, seed):
        me, other = await seed.user(), await seed.user()
        await seed.posts(other, 12)

        resp = await client.get(
            "/feed/", params={"user_id": me, "page": "-3", "limit": "lots"}
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["page"] == 1
        assert len(body["posts"]) == 10
        assert body["totalPages"] == 2

    async def test_following_only_for_video(self, client, seed):
        me, followed, other = await seed.user(), await seed.user(), await seed.user()
        await seed.follow(me, followed)
        await seed.post(followed, media_type="video")
        await seed.post(other, media_type="video")

        vague = await client.get(
            "/feed/", params={"user_id": me, "media_type": "video", "following_only": "yes"}
        )
        strict = await client.get(
            "/feed/", params={"user_id": me, "media_type": "video", "following_only": "TRUE"}
        )

        assert vague.json()["mode"] == "discovery"
        assert vague.json()["total"] == 2
        assert strict.json()["mode"] == "following"
        assert strict.json()["total"] == 1

    @pytest.mark.parametrize("flag", ["yes", "1", "false", "nope"])
    async def test_any_other_flag_means_discovery(self, client, seed, flag):
        """A non-video feed only defaults to Following when the flag is absent"""
        me, followed, other = await seed.user(), await seed.user(), await seed.user()
        await seed.follow(me, followed)
        await seed.post(followed)
        await seed.post(other)

        resp = await client.get("/feed/", params={"user_id": me, "following_only": flag})

        assert resp.json()["mode"] == "discovery"
        assert resp.json()["total"] == 2

    @pytest.mark.parametrize("params", [{}, {"following_only": ""}, {"following_only": "  "}])
    async def test_missing_or_blank_flag_means_following(self, client, seed, params):
        me, followed, other = await seed.user(), await seed.user(), await seed.user()
        await seed.follow(me, followed)
        await seed.post(followed)
        await seed.post(other)

        resp = await client.get("/feed/", params={"user_id": me, **params})

        assert resp.json()["mode"] == "following"
        assert resp.json()["total"] == 1

    async def test_seed_lookup_only_for_explorer(self, client, seed, monkeypatch):
        looked_up = []

        async def fake_seed(user_id):
            looked_up.append(user_id)
            return 1234

        monkeypatch.setattr("app.routers.feed.get_explorer_seed", fake_seed)
        me = await seed.user()
        explorer = await seed.user(
            explorer_mode_enabled=True,
            explorer_mode_expires_at=utcnow() + timedelta(hours=1),
        )

        await client.get("/feed/", params={"user_id": me})
        assert looked_up == []

        resp = await client.get("/feed/", params={"user_id": explorer})
        assert resp.json()["mode"] == "explorer"
        assert looked_up == [explorer]

    async def test_unknown_media_type_is_ignored(self, client, seed):
        me, other = await seed.user(), await seed.user()
        await seed.post(other, media_type="image")
        await seed.post(other)

        resp = await client.get("/feed/", params={"user_id": me, "media_type": "gif"})
        assert resp.json()["total"] == 2

    async def test_unknown_user(self, client):
        resp = await client.get("/feed/", params={"user_id": "ghost"})
        assert resp.status_code == 404

    async def test_user_id_is_required(self, client):
        resp = await client.get("/feed/")
        assert resp.status_code == 422


class TestUserSettings:

    async def test_create_and_duplicate(self, client):
        await _create_user(client, "maria")
        resp = await client.post("/users/", json={"username": "maria"})
        assert resp.status_code == 409

    async def test_recommendations_drive_personalized_feed(self, client, seed):
        me = await _create_user(client, "maria")
        other = await seed.user()
        district_post = await seed.post(other, **BOTANICA)

        resp = await client.put(
            f"/users/{me}/recommendations",
            json={
                "recommendation_enabled": True,
                "recommendation_locations": [BOTANICA, {"country": "", "city": None}],
                "recommendation_radius": 0,
            },
        )
        assert resp.status_code == 200
        assert resp.json()["recommendation_locations"] == [BOTANICA]

        feed = (await client.get("/feed/", params={"user_id": me})).json()
        assert feed["mode"] == "personalized"
        assert feed["posts"][0]["post_id"] == district_post

    async def test_at_most_three_locations(self, client):
        me = await _create_user(client, "maria")
        resp = await client.put(
            f"/users/{me}/recommendations",
            json={
                "recommendation_enabled": True,
                "recommendation_locations": [BOTANICA] * 4,
            },
        )
        assert resp.status_code == 422

    async def test_explorer_mode_on_and_off(self, client, seed):
        me = await _create_user(client, "maria")
        other = await seed.user()
        await seed.post(other, country="Romania")

        on = await client.post(f"/users/{me}/explorer-mode", json={"duration_minutes": 30})
        assert on.status_code == 200
        assert on.json()["explorer_mode_enabled"] is True
        assert (await client.get("/feed/", params={"user_id": me})).json()["mode"] == "explorer"

        off = await client.delete(f"/users/{me}/explorer-mode")
        assert off.json()["explorer_mode_enabled"] is False
        assert off.json()["explorer_mode_expires_at"] is None
        assert (await client.get("/feed/", params={"user_id": me})).json()["mode"] == "discovery"

    async def test_follow_rules(self, client):
        a = await _create_user(client, "alice")
        b = await _create_user(client, "bobby")

        assert (await client.post("/users/follow", json={"follower_id": a, "followee_id": a})).status_code == 400
        assert (await client.post("/users/follow", json={"follower_id": a, "followee_id": "x"})).status_code == 404
        for _ in range(2):
            resp = await client.post("/users/follow", json={"follower_id": a, "followee_id": b})
            assert resp.status_code == 204

        assert (await client.get(f"/users/{a}/following")).json()["following"] == [b]
        assert (await client.get(f"/users/{b}/followers")).json()["followers"] == [a]

        await client.post("/users/unfollow", json={"follower_id": a, "followee_id": b})
        assert (await client.get(f"/users/{a}/following")).json()["following"] == []


class TestPostsAndEngagement:

    async def test_like_toggle_and_suggestions(self, client, seed):
        me = await _create_user(client, "maria")
        author = await seed.user()
        centru = await seed.post(author, country="Moldova", city="Chișinău", district="Centru")
        await seed.post(author, country="Romania", city="Iași")

        liked = await client.post(f"/posts/{centru}/like", json={"user_id": me})
        assert liked.json() == {"post_id": centru, "is_liked": True, "likes_count": 1}

        comment = await client.post(
            f"/posts/{centru}/comments", json={"user_id": me, "content": "frumos"}
        )
        assert comment.status_code == 201

        resp = await client.get("/feed/location-suggestions", params={"user_id": me})
        suggestions = resp.json()["suggestions"]
        assert suggestions == [
            {"country": "Moldova", "city": "Chișinău", "district": "Centru", "interactions": 2}
        ]

        unliked = await client.post(f"/posts/{centru}/like", json={"user_id": me})
        assert unliked.json()["is_liked"] is False
        assert unliked.json()["likes_count"] == 0

        comments = (await client.get(f"/posts/{centru}/comments")).json()
        assert [c["content"] for c in comments] == ["frumos"]

    async def test_suggestions_skip_saved_locations(self, client, seed):
        me = await seed.user(recommendation_enabled=True, recommendation_locations=[BOTANICA])
        await seed.interaction(me, **BOTANICA)
        await seed.interaction(me, country="Moldova", city="Bălți")

        resp = await client.get("/feed/location-suggestions", params={"user_id": me})
        assert [s["city"] for s in resp.json()["suggestions"]] == ["Bălți"]

    async def test_stories(self, client, seed):
        me = await _create_user(client, "maria")
        friend = await seed.user()
        await seed.follow(me, friend)
        story = await _create_post(client, friend, content="now", expires_in_hours=24)
        await _create_post(client, friend, content="durable")

        stories = (await client.get("/posts/stories", params={"user_id": me})).json()
        assert [s["post_id"] for s in stories] == [story]
        assert stories[0]["expires_at"] is not None

        feed = (await client.get("/feed/", params={"user_id": me})).json()
        assert story not in [p["post_id"] for p in feed["posts"]]

    async def test_expired_story_is_gone(self, client, seed):
        author = await seed.user()
        pid = await seed.post(author, expires_at=utcnow() - timedelta(minutes=1))
        assert (await client.get(f"/posts/{pid}")).status_code == 404

    async def test_geo_map_visibility(self, client, seed):
        me, mutual, stranger = await seed.user(), await seed.user(), await seed.user()
        await seed.follow(me, mutual)
        await seed.follow(mutual, me)
        here = dict(latitude=47.02, longitude=28.83)
        public = await seed.post(stranger, **here)
        friends = await seed.post(mutual, visibility="friends", **here)
        story = await seed.post(stranger, expires_at=utcnow() + timedelta(hours=2), **here)
        await seed.post(stranger, visibility="friends", **here)
        await seed.post(stranger, latitude=44.4, longitude=26.1)

        resp = await client.get(
            "/posts/geo/map",
            params={"user_id": me, "sw_lat": 46.9, "sw_lng": 28.7, "ne_lat": 47.1, "ne_lng": 29.0},
        )

        assert resp.status_code == 200
        assert {p["post_id"] for p in resp.json()["posts"]} == {public, friends, story}

    async def test_geo_map_requires_bounds(self, client, seed):
        me = await seed.user()
        resp = await client.get("/posts/geo/map", params={"user_id": me, "sw_lat": 46.9})
        assert resp.status_code == 422

    async def test_geo_map_rejects_inverted_latitudes(self, client, seed):
        me = await seed.user()
        resp = await client.get(
            "/posts/geo/map",
            params={"user_id": me, "sw_lat": 47.1, "sw_lng": 28.7, "ne_lat": 46.9, "ne_lng": 29.0},
        )
        assert resp.status_code == 422

    async def test_geo_map_across_the_antimeridian(self, client, seed):
        me, author = await seed.user(), await seed.user()
        fiji = await seed.post(author, latitude=-17.7, longitude=178.0)
        samoa = await seed.post(author, latitude=-13.8, longitude=-171.8)
        await seed.post(author, latitude=-15.0, longitude=150.0)

        resp = await client.get(
            "/posts/geo/map",
            params={"user_id": me, "sw_lat": -20, "sw_lng": 170, "ne_lat": -10, "ne_lng": -165},
        )

        assert resp.status_code == 200
        assert {p["post_id"] for p in resp.json()["posts"]} == {fiji, samoa}

    async def test_only_the_author_deletes(self, client, seed):
        author, other = await seed.user(), await seed.user()
        pid = await seed.post(author)
        await seed.like(other, pid)
        await seed.comment(other, pid)

        assert (await client.delete(f"/posts/{pid}", params={"user_id": other})).status_code == 403
        assert (await client.delete(f"/posts/{pid}", params={"user_id": author})).status_code == 204
        assert (await client.get(f"/posts/{pid}")).status_code == 404


async def test_health(client):
    resp = await client.get("/health")
    assert resp.json() == {"status": "ok", "service": "geo-feed-api"}
