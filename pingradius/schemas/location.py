import math

from pydantic import BaseModel, field_validator

from pingradius.services.geo import distance_miles


class Coordinates(BaseModel):
    lat: float
    lng: float

    def distance_miles_to(self, other: "Coordinates") -> float:
        return distance_miles(self.lat, self.lng, other.lat, other.lng)


class CheckedCoordinates(Coordinates):
    """Coordinates accepted from clients: finite and on the globe."""

    @field_validator("lat")
    @classmethod
    def valid_lat(cls, v: float) -> float:
        if not math.isfinite(v) or not -90 <= v <= 90:
            raise ValueError("lat must be within [-90, 90]")
        return v

    @field_validator("lng")
    @classmethod
    def valid_lng(cls, v: float) -> float:
        if not math.isfinite(v) or not -180 <= v <= 180:
            raise ValueError("lng must be within [-180, 180]")
        return v
