import pytest
from fastapi.testclient import TestClient

from conftest import ALWAYS_OPEN, ORIGIN, PUSH_ON, north_of
from pingradius.main import create_app


@pytest.fixture
def client(service):
    with TestClient(create_app(service)) as c:
        yield c


def _as(user_id):
    return {"X-User-Id": user_id}


def _signup(client, user_id, coords=ORIGIN):
    profile = {
        "name": user_id.title(),
        "availability_schedule": ALWAYS_OPEN,
        "connection_intents": ["Food & Dining"],
        "notification_preferences": PUSH_ON,
    }
    assert client.put("/v1/users/me", json=profile, headers=_as(user_id)).status_code == 200
    r = client.post("/v1/users/me/location", json={"lat": coords.lat, "lng": coords.lng}, headers=_as(user_id))
    assert r.status_code == 200
    r = client.post("/v1/users/me/push-token", json={"token": f"ExponentPushToken[{user_id}]"}, headers=_as(user_id))
    assert r.status_code == 200


def _create(client, user_id, **overrides):
    body = {
        "title": "Tacos",
        "duration": "2 hours",
        "coordinates": {"lat": ORIGIN.lat, "lng": ORIGIN.lng},
        "visibility_radius": "10 miles",
        "connection_intents": ["Food & Dining"],
    }
    body.update(overrides)
    return client.post("/v1/activities", json=body, headers=_as(user_id))


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_identity_header_required(client):
    assert client.get("/v1/users/me").status_code == 401
    assert client.get("/v1/users/me", headers=_as("nobody")).status_code == 404


def test_profile_round_trip(client):
    _signup(client, "alice")
    me = client.get("/v1/users/me", headers=_as("alice")).json()
    assert me["name"] == "Alice"
    assert me["coordinates"] == {"lat": ORIGIN.lat, "lng": ORIGIN.lng}
    assert me["expo_push_token"] == "ExponentPushToken[alice]"


def test_rejects_bad_push_token_and_coordinates(client):
    _signup(client, "alice")
    r = client.post("/v1/users/me/push-token", json={"token": "not-a-token"}, headers=_as("alice"))
    assert r.status_code == 400
    r = client.post("/v1/users/me/location", json={"lat": 95, "lng": 0}, headers=_as("alice"))
    assert r.status_code == 422


def test_create_activity_reports_fan_out(client, gateway):
    _signup(client, "alice")
    _signup(client, "bob", north_of(ORIGIN, 5))
    _signup(client, "carol", north_of(ORIGIN, 15))

    r = _create(client, "alice")
    assert r.status_code == 200
    body = r.json()
    assert body["activity"]["participants"] == ["alice"]
    assert body["activity"]["participant_count"] == 1
    assert body["notifications"]["sent"] == 1
    assert [m.to for m in gateway.sent] == ["ExponentPushToken[bob]"]


def test_create_activity_validation(client):
    _signup(client, "alice")
    assert _create(client, "alice", duration="whenever").status_code == 422
    assert _create(client, "alice", title="").status_code == 422
    assert _create(client, "ghost").status_code == 404


def test_membership_flow(client):
    for uid in ("alice", "bob", "carol"):
        _signup(client, uid, north_of(ORIGIN, 500) if uid != "alice" else ORIGIN)
    activity_id = _create(client, "alice", max_participants="2 people").json()["activity"]["id"]

    r = client.post(f"/v1/activities/{activity_id}/join", headers=_as("bob"))
    assert r.status_code == 200
    assert r.json()["participant_count"] == 2

    assert client.post(f"/v1/activities/{activity_id}/join", headers=_as("bob")).status_code == 409
    assert client.post(f"/v1/activities/{activity_id}/join", headers=_as("carol")).status_code == 409

    assert client.post(f"/v1/activities/{activity_id}/leave", headers=_as("bob")).status_code == 200
    assert client.post(f"/v1/activities/{activity_id}/join", headers=_as("carol")).status_code == 200

    r = client.delete(f"/v1/activities/{activity_id}/participants/carol", headers=_as("bob"))
    assert r.status_code == 403
    r = client.delete(f"/v1/activities/{activity_id}/participants/carol", headers=_as("alice"))
    assert r.status_code == 200
    assert r.json()["participants"] == ["alice"]

    assert client.post(f"/v1/activities/{activity_id}/leave", headers=_as("alice")).status_code == 400
    assert client.post("/v1/activities/missing/join", headers=_as("bob")).status_code == 404


def test_edit_and_invite(client):
    for uid in ("alice", "bob"):
        _signup(client, uid, north_of(ORIGIN, 500) if uid != "alice" else ORIGIN)
    activity_id = _create(client, "alice").json()["activity"]["id"]

    r = client.patch(f"/v1/activities/{activity_id}", json={"title": "Late tacos"}, headers=_as("alice"))
    assert r.status_code == 200
    assert r.json()["activity"]["title"] == "Late tacos"
    assert client.patch(f"/v1/activities/{activity_id}", json={}, headers=_as("alice")).status_code == 400
    r = client.patch(f"/v1/activities/{activity_id}", json={"title": "Mine"}, headers=_as("bob"))
    assert r.status_code == 403

    r = client.post(f"/v1/activities/{activity_id}/invite", json={"user_id": "bob"}, headers=_as("alice"))
    assert r.status_code == 200
    assert r.json()["notifications"]["sent"] == 1

    inbox = client.get("/v1/notifications", headers=_as("bob")).json()
    assert inbox["total"] == 1
    assert inbox["items"][0]["data"]["type"] == "ping_invitation"
    assert inbox["items"][0]["body"] == 'Alice invited you to join "Late tacos"'


def test_feed(client):
    _signup(client, "alice")
    _signup(client, "bob", north_of(ORIGIN, 100))
    _create(client, "alice")

    assert client.get("/v1/feed", headers=_as("bob")).json()["items"] == []

    r = client.get("/v1/feed", params={"lat": ORIGIN.lat, "lng": ORIGIN.lng}, headers=_as("bob"))
    items = r.json()["items"]
    assert [i["activity"]["title"] for i in items] == ["Tacos"]
    assert items[0]["distance_miles"] == pytest.approx(0.0, abs=0.01)

    assert client.get("/v1/feed", params={"lat": 10}, headers=_as("bob")).status_code == 400
    assert client.get("/v1/feed", params={"lat": 100, "lng": 0}, headers=_as("bob")).status_code == 400


def test_connections(client):
    _signup(client, "alice")
    _signup(client, "bob")

    r = client.post("/v1/connect/request", json={"target_user_id": "bob"}, headers=_as("alice"))
    assert r.status_code == 200
    assert r.json()["status"] == "pending"
    connection_id = r.json()["id"]

    r = client.post("/v1/connect/accept", json={"connection_id": connection_id}, headers=_as("bob"))
    assert r.status_code == 200
    assert r.json()["status"] == "active"

    listed = client.get("/v1/connect", headers=_as("alice")).json()
    assert [c["id"] for c in listed] == [connection_id]


def test_notifications_paging_and_read(client, service):
    _signup(client, "alice")
    _signup(client, "bob", north_of(ORIGIN, 2))
    for n in range(3):
        _create(client, "alice", title=f"Tacos {n}")

    page = client.get("/v1/notifications", params={"page": 1, "size": 2}, headers=_as("bob")).json()
    assert page["total"] == 3
    assert len(page["items"]) == 2
    assert page["items"][0]["read"] is False

    notification_id = page["items"][0]["id"]
    r = client.post(f"/v1/notifications/{notification_id}/read", headers=_as("bob"))
    assert r.status_code == 200
    assert r.json()["read"] is True

    assert client.post(f"/v1/notifications/{notification_id}/read", headers=_as("alice")).status_code == 404
    assert client.get("/v1/notifications", params={"size": 500}, headers=_as("bob")).status_code == 422
