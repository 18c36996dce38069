import math

import pytest

from pingradius.schemas.location import CheckedCoordinates, Coordinates
from pingradius.services.geo import distance_km, distance_miles, km_to_miles

POINTS = [
    (0.0, 0.0),
    (40.7128, -74.0060),
    (51.5074, -0.1278),
    (-33.8688, 151.2093),
    (89.9, 179.9),
]


@pytest.mark.parametrize("lat, lng", POINTS)
def test_distance_to_self_is_zero(lat, lng):
    assert distance_km(lat, lng, lat, lng) == 0


def test_distance_is_symmetric():
    for lat1, lng1 in POINTS:
        for lat2, lng2 in POINTS:
            assert distance_km(lat1, lng1, lat2, lng2) == pytest.approx(distance_km(lat2, lng2, lat1, lng1))


def test_distance_london_paris():
    assert distance_km(51.5074, -0.1278, 48.8566, 2.3522) == pytest.approx(343.5, abs=1.0)


def test_antipodes_do_not_blow_up():
    assert distance_km(0, 0, 0, 180) == pytest.approx(math.pi * 6371)


def test_non_finite_inputs_stay_non_finite():
    assert math.isnan(distance_km(math.nan, 0, 0, 0))
    assert not math.isfinite(distance_km(0, math.inf, 0, 0))
    assert not math.isfinite(distance_miles(0, 0, -math.inf, 0))


def test_miles_conversion_is_central():
    assert km_to_miles(1) == pytest.approx(0.621371)
    assert distance_miles(0, 0, 0, 1) == pytest.approx(km_to_miles(distance_km(0, 0, 0, 1)))


def test_coordinates_distance():
    a = Coordinates(lat=40.0, lng=-75.0)
    b = Coordinates(lat=40.1, lng=-75.0)
    assert a.distance_miles_to(b) == pytest.approx(6.91, abs=0.05)


def test_checked_coordinates_reject_out_of_range():
    with pytest.raises(ValueError):
        CheckedCoordinates(lat=91, lng=0)
    with pytest.raises(ValueError):
        CheckedCoordinates(lat=0, lng=float("nan"))
