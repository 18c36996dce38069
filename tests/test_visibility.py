from datetime import timedelta

import pytest

from conftest import NOW, ORIGIN, north_of
from pingradius.schemas.activity import Activity
from pingradius.services import visibility as vis
from pingradius.services.visibility import ViewerContext, VisibilityPolicy, parse_max_participants

policy = VisibilityPolicy(feed_radius_miles=50, buffer_minutes=30)


def _activity(**overrides):
    fields = dict(
        id="a1",
        kind="ping",
        creator_id="creator",
        title="Tacos",
        coordinates=ORIGIN,
        visibility_type="open",
        duration="2 hours",
        created_at=NOW,
        participants=["creator"],
        participant_count=1,
    )
    fields.update(overrides)
    return Activity(**fields)


def _viewer(user_id="viewer", **overrides):
    return ViewerContext(user_id=user_id, origin=overrides.pop("origin", ORIGIN), **overrides)


@pytest.mark.parametrize(
    "text, cap",
    [("2 people", 2), ("10", 10), ("Unlimited", None), ("unlimited people", None), ("", None), ("lots", None), (None, None)],
)
def test_parse_max_participants(text, cap):
    assert parse_max_participants(text) == cap


def test_open_activity_is_visible():
    decision = policy.evaluate(_activity(), _viewer(), NOW)
    assert decision.visible
    assert decision.distance_miles == 0


def test_no_coordinates_is_hidden():
    assert policy.evaluate(_activity(coordinates=None), _viewer(), NOW).reason == vis.NO_COORDINATES


def test_expired_ping_is_hidden():
    later = NOW + timedelta(hours=2, minutes=31)
    assert policy.evaluate(_activity(), _viewer(), later).reason == vis.EXPIRED
    assert policy.is_visible(_activity(), _viewer(), NOW + timedelta(hours=2, minutes=29))


def test_unparseable_duration_is_hidden():
    assert not policy.is_visible(_activity(duration="whenever"), _viewer(), NOW)


def test_event_must_start_in_the_future():
    upcoming = _activity(kind="event", duration=None, start_time=NOW + timedelta(hours=1))
    started = _activity(kind="event", duration=None, start_time=NOW)
    undated = _activity(kind="event", duration=None, start_time=None)
    assert policy.is_visible(upcoming, _viewer(), NOW)
    assert policy.evaluate(started, _viewer(), NOW).reason == vis.EXPIRED
    assert policy.is_visible(undated, _viewer(), NOW)


def test_friends_only_needs_active_connection():
    activity = _activity(visibility_type="friends-only")
    stranger = _viewer()
    friend = _viewer(active_connection_ids=frozenset({"creator"}))
    assert policy.evaluate(activity, stranger, NOW).reason == vis.PRIVACY
    assert policy.is_visible(activity, friend, NOW)
    assert policy.is_visible(activity, _viewer("creator"), NOW)


def test_invite_only_is_members_only():
    activity = _activity(visibility_type="invite-only", participants=["creator", "guest"], participant_count=2)
    friend = _viewer(active_connection_ids=frozenset({"creator"}))
    assert not policy.is_visible(activity, friend, NOW)
    assert policy.is_visible(activity, _viewer("guest"), NOW)
    assert policy.is_visible(activity, _viewer("creator"), NOW)


def test_distance_gate():
    near = _viewer(origin=north_of(ORIGIN, 49))
    far = _viewer(origin=north_of(ORIGIN, 51))
    assert policy.is_visible(_activity(), near, NOW)
    assert policy.evaluate(_activity(), far, NOW).reason == vis.TOO_FAR
    assert policy.evaluate(_activity(), _viewer(origin=None), NOW).reason == vis.TOO_FAR


def test_full_activity_hidden_from_strangers_only():
    activity = _activity(max_participants="2 people", participants=["creator", "p1"], participant_count=2)
    assert policy.evaluate(activity, _viewer("stranger"), NOW).reason == vis.FULL
    assert policy.is_visible(activity, _viewer("creator"), NOW)
    assert policy.is_visible(activity, _viewer("p1"), NOW)


def test_unlimited_is_never_full():
    activity = _activity(max_participants="Unlimited", participants=["creator"], participant_count=500)
    assert policy.is_visible(activity, _viewer("stranger"), NOW)


def test_blocked_pairs_are_hidden():
    assert policy.evaluate(_activity(), _viewer(blocked_ids=frozenset({"creator"})), NOW).reason == vis.BLOCKED
