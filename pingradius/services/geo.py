import math

EARTH_RADIUS_KM = 6371
KM_TO_MILES = 0.621371


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance (haversine) in kilometers.
    NaN / inf inputs come back out as a non-finite result.
    """
    if not all(math.isfinite(v) for v in (lat1, lon1, lat2, lon2)):
        return math.nan

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = (
        math.sin(dphi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    )
    # float drift near antipodes
    if a > 1:
        a = 1.0
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def km_to_miles(km: float) -> float:
    return km * KM_TO_MILES


def distance_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    return km_to_miles(distance_km(lat1, lon1, lat2, lon2))
