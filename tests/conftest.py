import os

# must be set before pingradius.core.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_LEVEL", "INFO")
os.environ.setdefault("DEBUG_MATCH_LOGS", "false")

import asyncio
from datetime import datetime

import pytest
from sqlalchemy.pool import StaticPool

from pingradius.core.db import build_engine, build_session_factory
from pingradius.core.errors import PushDeliveryError
from pingradius.core.init_db import init_db
from pingradius.schemas.location import CheckedCoordinates
from pingradius.schemas.user import UserUpsertRequest
from pingradius.services.engine import EngineService, EngineSettings
from pingradius.services.store import SqlDocumentStore

# Wednesday 2024-06-05 14:00
NOW = datetime(2024, 6, 5, 14, 0)

ORIGIN = CheckedCoordinates(lat=40.0, lng=-75.0)

# open 09:00-22:00 every day
ALWAYS_OPEN = {
    day: {"start": "09:00", "end": "22:00"}
    for day in ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
}

PUSH_ON = {"notifications_enabled": True, "activities": True, "events": True}

MILES_PER_DEGREE_LAT = 69.0934


def north_of(origin, miles: float) -> CheckedCoordinates:
    return CheckedCoordinates(lat=origin.lat + miles / MILES_PER_DEGREE_LAT, lng=origin.lng)


class FakePushGateway:
    """Records messages; tokens in `fail_for` raise, tokens in `hang_for` never return."""

    def __init__(self, fail_for=(), hang_for=()):
        self.fail_for = set(fail_for)
        self.hang_for = set(hang_for)
        self.sent = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def send(self, message):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            if message.to in self.hang_for:
                await asyncio.sleep(3600)
            if message.to in self.fail_for:
                raise PushDeliveryError(f"rejected {message.to}")
            self.sent.append(message)
            return {"data": {"status": "ok", "id": "ticket"}}
        finally:
            self.in_flight -= 1


@pytest.fixture
def db_engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(db_engine):
    return SqlDocumentStore(build_session_factory(db_engine), notification_cap=5)


@pytest.fixture
def gateway():
    return FakePushGateway()


@pytest.fixture
def service(store, gateway):
    settings = EngineSettings(push_timeout_seconds=0.5, store_timeout_seconds=5)
    return EngineService(store, gateway, settings, clock=lambda: NOW)


@pytest.fixture
def make_user(store):
    def _make(
        user_id,
        coords=None,
        schedule=ALWAYS_OPEN,
        intents=("Food & Dining",),
        token="auto",
        prefs=PUSH_ON,
        **extra,
    ):
        store.upsert_user(
            user_id,
            UserUpsertRequest(
                name=user_id.title(),
                availability_schedule=schedule,
                connection_intents=list(intents),
                notification_preferences=prefs,
                **extra,
            ),
        )
        if coords is not None:
            store.update_location(user_id, coords, NOW)
        if token == "auto":
            token = f"ExponentPushToken[{user_id}]"
        if token:
            store.set_push_token(user_id, token)
        return store.get_user(user_id)

    return _make


def connect(store, a, b, accept=True):
    conn = store.request_connection(a, b)
    if accept:
        conn = store.accept_connection(conn.id, b)
    return conn
