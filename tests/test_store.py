from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import NOW, ORIGIN, connect
from pingradius.core.errors import (
    ActivityFullError,
    AlreadyParticipantError,
    NotFoundError,
    NotParticipantError,
    PermissionDeniedError,
    ValidationError,
)
from pingradius.schemas.activity import ActivityCreateRequest
from pingradius.schemas.enums import Collection, ConnectionStatus
from pingradius.schemas.notification import PingUpdatePayload
from pingradius.services.store import FilterSpec


def _create(store, creator="creator", **overrides):
    fields = dict(title="Tacos", duration="2 hours", coordinates=ORIGIN, connection_intents=["Food & Dining"])
    fields.update(overrides)
    return store.add_activity(creator, creator.title(), ActivityCreateRequest(**fields), NOW)


def test_creator_is_first_member(store):
    activity = _create(store)
    assert activity.participants == ["creator"]
    assert activity.participant_count == 1
    assert activity.status == "active"
    assert store.get_activity(activity.id).created_at == NOW


def test_join_and_leave_keep_count_in_sync(store):
    activity = _create(store)
    activity = store.join_activity(activity.id, "p1")
    activity = store.join_activity(activity.id, "p2")
    assert activity.participant_count == 3 == len(activity.participants)

    activity = store.leave_activity(activity.id, "p1")
    assert activity.participants == ["creator", "p2"]
    assert activity.participant_count == 2


def test_membership_errors(store):
    activity = _create(store, max_participants="2 people")
    store.join_activity(activity.id, "p1")

    with pytest.raises(AlreadyParticipantError):
        store.join_activity(activity.id, "p1")
    with pytest.raises(ActivityFullError):
        store.join_activity(activity.id, "p2")
    with pytest.raises(NotParticipantError):
        store.leave_activity(activity.id, "stranger")
    with pytest.raises(ValidationError):
        store.leave_activity(activity.id, "creator")
    with pytest.raises(NotFoundError):
        store.join_activity("missing", "p1")


def test_only_creator_removes_others(store):
    activity = _create(store)
    store.join_activity(activity.id, "p1")
    store.join_activity(activity.id, "p2")

    with pytest.raises(PermissionDeniedError):
        store.remove_participant(activity.id, "p2", "p1")

    activity = store.remove_participant(activity.id, "creator", "p1")
    assert activity.participants == ["creator", "p2"]


def test_concurrent_joins_never_lose_updates(store):
    activity = _create(store)
    users = [f"u{i}" for i in range(20)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda u: store.join_activity(activity.id, u), users))

    final = store.get_activity(activity.id)
    assert final.participant_count == 21
    assert sorted(final.participants) == sorted(["creator", *users])


def test_capacity_holds_under_concurrency(store):
    activity = _create(store, max_participants="5")
    joined, full = [], []

    def attempt(user_id):
        try:
            store.join_activity(activity.id, user_id)
            joined.append(user_id)
        except ActivityFullError:
            full.append(user_id)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(attempt, [f"u{i}" for i in range(10)]))

    assert len(joined) == 4
    assert len(full) == 6
    assert store.get_activity(activity.id).participant_count == 5


def test_update_activity_is_creator_only(store):
    activity = _create(store)
    with pytest.raises(PermissionDeniedError):
        store.update_activity(activity.id, "p1", {"title": "Nachos"})

    updated = store.update_activity(
        activity.id, "creator", {"title": "Nachos", "coordinates": {"lat": 41.0, "lng": -75.0}}
    )
    assert updated.title == "Nachos"
    assert updated.coordinates.lat == 41.0

    with pytest.raises(ValidationError):
        store.update_activity(activity.id, "creator", {"start_time": NOW})


def test_query_recent_active_activities(store):
    ids = [_create(store, title=f"t{i}").id for i in range(7)]
    store.add_activity(
        "creator",
        "Creator",
        ActivityCreateRequest(kind="event", title="Gig", start_time=NOW, coordinates=ORIGIN),
        NOW,
    )

    pings = store.query(Collection.pings, FilterSpec(status="active", limit=5))
    events = store.query(Collection.events, FilterSpec(status="active"))
    assert len(pings) == 5
    assert set(a.id for a in pings) <= set(ids)
    assert [e.title for e in events] == ["Gig"]


def test_connections_lookup(store, make_user):
    make_user("a")
    make_user("b")
    make_user("c")
    connect(store, "a", "b")
    connect(store, "a", "c", accept=False)

    assert store.active_connection_ids("a") == {"b"}
    assert store.active_connection_ids("c") == set()
    statuses = {c.other("a"): c.status for c in store.connections_for("a")}
    assert statuses == {"b": ConnectionStatus.active, "c": ConnectionStatus.pending}
    assert store.query(Collection.connections, FilterSpec(participant="a", status="active"))[0].other("a") == "b"


def test_connection_rules(store):
    conn = store.request_connection("a", "b")
    assert store.request_connection("b", "a").id == conn.id

    with pytest.raises(ValidationError):
        store.request_connection("a", "a")
    with pytest.raises(PermissionDeniedError):
        store.accept_connection(conn.id, "a")
    with pytest.raises(PermissionDeniedError):
        store.accept_connection(conn.id, "z")
    with pytest.raises(NotFoundError):
        store.accept_connection("nope", "b")


def test_user_round_trip_normalises_schedule_and_intents(store, make_user):
    user = make_user(
        "a",
        coords=ORIGIN,
        schedule={"Monday": {"start": "9:00", "end": "17:00"}, "funday": {"start": "1:00", "end": "2:00"}},
        intents=[" Food ", "food", "", "Sports"],
        mood_status="Busy",
    )
    assert user.availability_schedule.monday.start == "09:00"
    assert user.availability_schedule.tuesday is None
    assert user.connection_intents == ["Food", "Sports"]
    assert (user.coordinates.lat, user.coordinates.lng) == (ORIGIN.lat, ORIGIN.lng)
    assert user.location_updated_at == NOW
    assert user.mood_status == "Busy"
    assert user.expo_push_token == "ExponentPushToken[a]"


def test_notifications_are_capped_and_paginated(store):
    for i in range(8):
        store.append_notification("u", f"t{i}", "b", PingUpdatePayload(activity_id="a", update_type="details"))

    page = store.list_notifications("u", page=1, size=3)
    assert page.total == 5
    assert [n.title for n in page.items] == ["t7", "t6", "t5"]
    assert [n.title for n in store.list_notifications("u", page=2, size=3).items] == ["t4", "t3"]
    assert page.items[0].data.type == "ping_update"


def test_mark_read(store):
    n = store.append_notification("u", "t", "b", PingUpdatePayload(activity_id="a", update_type="details"))
    assert store.mark_read("u", n.id).read is True
    with pytest.raises(NotFoundError):
        store.mark_read("someone_else", n.id)


def test_writes_publish_after_commit(store):
    seen = []
    store.hub.add_listener(Collection.pings, lambda: seen.append(len(store.query(Collection.pings))))
    _create(store)
    _create(store)
    assert seen == [1, 2]
