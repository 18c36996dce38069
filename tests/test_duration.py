from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from pingradius.services.duration import expires_at, is_still_active, parse_duration_minutes

T = datetime(2024, 6, 5, 14, 0)


@pytest.mark.parametrize(
    "text, minutes",
    [
        ("30 minutes", 30),
        ("1 hour", 60),
        ("2 hours", 120),
        ("3 hours", 180),
        ("4 hours", 240),
        ("All day", 1440),
        ("  all DAY ", 1440),
        ("1.5h", 90),
        ("2h", 120),
        ("45m", 45),
        ("2.5 hours", 150),
        ("about 3 hours", 180),
        ("the all day thing", 1440),
        ("20 mins", 20),
        ("90", 90),
    ],
)
def test_parse_duration(text, minutes):
    assert parse_duration_minutes(text) == minutes


@pytest.mark.parametrize("text", [None, "", "soon", "h", "-5", "-5m", "forever"])
def test_unparseable_duration(text):
    assert parse_duration_minutes(text) is None


def test_expiry_from_duration():
    assert expires_at(T, "1 hour") == T + timedelta(minutes=60)
    assert expires_at(T, "All day") == T + timedelta(minutes=1440)
    assert expires_at(None, "1 hour") is None
    assert expires_at(T, "whenever") is None


def _ping(duration, created_at=T):
    return SimpleNamespace(duration=duration, created_at=created_at)


def test_buffer_boundary():
    expiry = T + timedelta(hours=1)
    ping = _ping("1 hour")
    assert is_still_active(ping, expiry + timedelta(minutes=29), buffer_minutes=30)
    assert not is_still_active(ping, expiry + timedelta(minutes=31), buffer_minutes=30)


def test_buffer_is_configurable():
    ping = _ping("1 hour")
    at = T + timedelta(minutes=65)
    assert not is_still_active(ping, at, buffer_minutes=0)
    assert is_still_active(ping, at, buffer_minutes=10)


def test_two_hour_ping_lifecycle():
    ping = _ping("2 hours")
    assert is_still_active(ping, T.replace(hour=15, minute=59), buffer_minutes=30)
    assert is_still_active(ping, T.replace(hour=16, minute=29), buffer_minutes=30)
    assert not is_still_active(ping, T.replace(hour=16, minute=31), buffer_minutes=30)


def test_unknown_expiry_fails_closed():
    assert not is_still_active(_ping("whenever"), T)
    assert not is_still_active(_ping("1 hour", created_at=None), T)
