from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from pingradius.schemas.base import BaseSchema, to_naive_local
from pingradius.schemas.enums import WEEKDAYS, NotificationCategory
from pingradius.schemas.location import CheckedCoordinates, Coordinates
from pingradius.services.availability import ZERO_TIMES, normalize_hhmm


def normalize_intents(values: List[str] | None) -> List[str]:
    """Trimmed, non-empty, de-duplicated (case-insensitively) intent tags."""
    seen: set[str] = set()
    out: List[str] = []
    for raw in values or []:
        if not isinstance(raw, str):
            continue
        tag = raw.strip()
        if not tag or tag.lower() in seen:
            continue
        seen.add(tag.lower())
        out.append(tag)
    return out


# ---------- availability ----------
class DayWindow(BaseModel):
    start: Optional[str] = None
    end: Optional[str] = None

    @field_validator("start", "end", mode="before")
    @classmethod
    def clock_time(cls, v: Any) -> Optional[str]:
        # zero values are kept verbatim so the day still reads as unset
        if v in ZERO_TIMES:
            return v
        return normalize_hhmm(v)


class AvailabilitySchedule(BaseModel):
    monday: Optional[DayWindow] = None
    tuesday: Optional[DayWindow] = None
    wednesday: Optional[DayWindow] = None
    thursday: Optional[DayWindow] = None
    friday: Optional[DayWindow] = None
    saturday: Optional[DayWindow] = None
    sunday: Optional[DayWindow] = None

    @model_validator(mode="before")
    @classmethod
    def weekday_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        cleaned: Dict[str, Any] = {}
        for key, value in data.items():
            day = str(key).strip().lower()
            if day in WEEKDAYS and isinstance(value, (dict, DayWindow)):
                cleaned[day] = value
        return cleaned


# ---------- notification toggles ----------
class NotificationPreferences(BaseModel):
    notifications_enabled: bool = False
    activities: bool = True
    events: bool = True
    chats: bool = True
    connections: bool = True
    announcements: bool = True

    def allows(self, *categories: NotificationCategory) -> bool:
        """Global toggle on and at least one of `categories` enabled."""
        if not self.notifications_enabled:
            return False
        return any(getattr(self, c.value) for c in categories)


# ---------- profile ----------
class UserProfile(BaseSchema):
    id: str
    name: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    location_updated_at: Optional[datetime] = None
    availability_schedule: Optional[AvailabilitySchedule] = None
    connection_intents: List[str] = Field(default_factory=list)
    event_preferences: Dict[str, bool] = Field(default_factory=dict)
    expo_push_token: Optional[str] = None
    notification_preferences: NotificationPreferences = Field(default_factory=NotificationPreferences)
    blocked_users: List[str] = Field(default_factory=list)
    has_me_blocked: List[str] = Field(default_factory=list)
    mood_status: Optional[str] = None

    @field_validator("connection_intents", mode="before")
    @classmethod
    def clean_intents(cls, v: Any) -> List[str]:
        return normalize_intents(v)

    @field_validator("location_updated_at", mode="after")
    @classmethod
    def naive_local(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_local(v)

    def blocks(self, other_id: str) -> bool:
        """Either side of the pair has blocked the other."""
        return other_id in self.blocked_users or other_id in self.has_me_blocked


class UserUpsertRequest(BaseModel):
    name: Optional[str] = None
    availability_schedule: Optional[AvailabilitySchedule] = None
    connection_intents: List[str] = Field(default_factory=list)
    event_preferences: Dict[str, bool] = Field(default_factory=dict)
    notification_preferences: NotificationPreferences = Field(default_factory=NotificationPreferences)
    blocked_users: List[str] = Field(default_factory=list)
    has_me_blocked: List[str] = Field(default_factory=list)
    mood_status: Optional[str] = None

    @field_validator("connection_intents", mode="before")
    @classmethod
    def clean_intents(cls, v: Any) -> List[str]:
        return normalize_intents(v)


class LocationHeartbeatRequest(CheckedCoordinates):
    pass


class PushTokenRequest(BaseModel):
    token: str  # Expo push token
