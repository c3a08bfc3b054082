from datetime import timedelta

import pytest

from app.feed.modes import is_explorer_active, select_mode
from app.feed.types import FeedMode, FeedRequest, RecommendationProfile, SavedLocation
from app.models import utcnow
from app.routers.feed import coerce_positive_int, parse_following_only

NOW = utcnow()
BOTANICA = SavedLocation(country="Moldova", city="Chișinău", district="Botanica")


def _profile(**kw):
    return RecommendationProfile(user_id="u1", **kw)


def _request(**kw):
    return FeedRequest(user_id="u1", **kw)


class TestExplorerExpiry:

    def test_active_until_expiry(self):
        profile = _profile(
            explorer_mode_enabled=True,
            explorer_mode_expires_at=NOW + timedelta(minutes=5),
        )
        assert is_explorer_active(profile, NOW) is True

    def test_expired_ten_minutes_ago_is_inactive(self):
        profile = _profile(
            explorer_mode_enabled=True,
            explorer_mode_expires_at=NOW - timedelta(minutes=10),
        )
        assert is_explorer_active(profile, NOW) is False

    def test_missing_expiry_is_inactive(self):
        assert is_explorer_active(_profile(explorer_mode_enabled=True), NOW) is False

    def test_flag_off_is_inactive(self):
        profile = _profile(explorer_mode_expires_at=NOW + timedelta(hours=1))
        assert is_explorer_active(profile, NOW) is False

    def test_no_profile(self):
        assert is_explorer_active(None, NOW) is False


class TestSelectMode:

    def test_explorer_overrides_following_only(self):
        profile = _profile(
            explorer_mode_enabled=True,
            explorer_mode_expires_at=NOW + timedelta(minutes=30),
            recommendation_enabled=True,
            recommendation_locations=[BOTANICA],
        )
        assert select_mode(_request(following_only=True), profile, NOW) is FeedMode.EXPLORER

    def test_expired_explorer_falls_through_to_personalized(self):
        profile = _profile(
            explorer_mode_enabled=True,
            explorer_mode_expires_at=NOW - timedelta(minutes=10),
            recommendation_enabled=True,
            recommendation_locations=[BOTANICA],
        )
        assert select_mode(_request(), profile, NOW) is FeedMode.PERSONALIZED

    def test_expired_explorer_falls_through_to_following(self):
        profile = _profile(
            explorer_mode_enabled=True,
            explorer_mode_expires_at=NOW - timedelta(minutes=10),
        )
        assert select_mode(_request(), profile, NOW) is FeedMode.FOLLOWING

    def test_personalized_needs_a_saved_location(self):
        profile = _profile(recommendation_enabled=True)
        assert select_mode(_request(), profile, NOW) is FeedMode.FOLLOWING

    def test_personalized_needs_the_flag(self):
        profile = _profile(recommendation_locations=[BOTANICA])
        assert select_mode(_request(), profile, NOW) is FeedMode.FOLLOWING

    def test_non_video_without_flag_defaults_to_following(self):
        assert select_mode(_request(), _profile(), NOW) is FeedMode.FOLLOWING
        assert select_mode(_request(media_type="image"), _profile(), NOW) is FeedMode.FOLLOWING

    def test_video_without_flag_is_discovery(self):
        assert select_mode(_request(media_type="video"), _profile(), NOW) is FeedMode.DISCOVERY

    def test_explicit_following_only_for_video(self):
        request = _request(media_type="video", following_only=True)
        assert select_mode(request, _profile(), NOW) is FeedMode.FOLLOWING

    def test_explicit_false_is_discovery(self):
        assert select_mode(_request(following_only=False), _profile(), NOW) is FeedMode.DISCOVERY


class TestQueryParsing:

    @pytest.mark.parametrize("raw, expected", [
        (None, None),
        ("", None),
        ("   ", None),
        ("true", True),
        ("True", True),
        ("false", False),
        ("yes", False),
        ("1", False),
    ])
    def test_following_only(self, raw, expected):
        assert parse_following_only(raw) is expected

    @pytest.mark.parametrize("raw, expected", [
        (None, 10), ("3", 3), ("0", 10), ("-2", 10), ("ten", 10),
    ])
    def test_positive_int(self, raw, expected):
        assert coerce_positive_int(raw, 10) == expected

    def test_non_video_with_other_flag_is_discovery(self):
        request = _request(following_only=parse_following_only("yes"))
        assert select_mode(request, _profile(), NOW) is FeedMode.DISCOVERY
