from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from pingradius.schemas.base import BaseSchema, to_naive_local
from pingradius.schemas.enums import ActivityKind, VisibilityType
from pingradius.schemas.location import CheckedCoordinates, Coordinates
from pingradius.schemas.user import normalize_intents
from pingradius.services.duration import parse_duration_minutes


class Activity(BaseSchema):
    """A ping or an event as the engine sees it."""

    id: str
    kind: ActivityKind
    creator_id: str
    creator_name: str = ""
    title: str
    description: str = ""
    category: str = ""
    template: str = ""
    location: str = ""
    coordinates: Optional[Coordinates] = None
    visibility_type: VisibilityType = VisibilityType.open
    visibility_radius: str = ""
    duration: Optional[str] = None
    start_time: Optional[datetime] = None
    max_participants: str = "Unlimited"
    participants: List[str] = Field(default_factory=list)
    participant_count: int = 0
    status: str = "active"
    created_at: Optional[datetime] = None
    connection_intents: List[str] = Field(default_factory=list)
    event_preferences: Dict[str, bool] = Field(default_factory=dict)

    @field_validator("start_time", "created_at", mode="after")
    @classmethod
    def naive_local(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_local(v)

    def is_member(self, user_id: str) -> bool:
        return user_id == self.creator_id or user_id in self.participants

    @property
    def primary_time(self) -> Optional[datetime]:
        if self.kind == ActivityKind.event and self.start_time is not None:
            return self.start_time
        return self.created_at


class _ActivityFields(BaseModel):
    @field_validator("duration", check_fields=False)
    @classmethod
    def readable_duration(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and parse_duration_minutes(v) is None:
            raise ValueError(f"unrecognised duration: {v!r}")
        return v

    @field_validator("start_time", check_fields=False, mode="after")
    @classmethod
    def naive_local(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_local(v)


class ActivityCreateRequest(_ActivityFields):
    kind: ActivityKind = ActivityKind.ping
    title: str = Field(..., min_length=1)
    description: str = ""
    category: str = ""
    template: str = ""
    location: str = ""
    coordinates: Optional[CheckedCoordinates] = None
    visibility_type: VisibilityType = VisibilityType.open
    visibility_radius: str = "10 miles"
    duration: Optional[str] = None
    start_time: Optional[datetime] = None
    max_participants: str = "Unlimited"
    connection_intents: List[str] = Field(default_factory=list)
    event_preferences: Dict[str, bool] = Field(default_factory=dict)

    @field_validator("connection_intents", mode="before")
    @classmethod
    def clean_intents(cls, v: Any) -> List[str]:
        return normalize_intents(v)

    @model_validator(mode="after")
    def shape_matches_kind(self):
        if self.kind == ActivityKind.ping:
            if not self.duration:
                raise ValueError("a ping needs a duration")
            self.start_time = None
        else:
            if self.start_time is None:
                raise ValueError("an event needs a start_time")
            self.duration = None
        return self


class ActivityUpdateRequest(_ActivityFields):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    coordinates: Optional[CheckedCoordinates] = None
    visibility_type: Optional[VisibilityType] = None
    visibility_radius: Optional[str] = None
    duration: Optional[str] = None
    start_time: Optional[datetime] = None
    max_participants: Optional[str] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class InviteRequest(BaseModel):
    user_id: str


class ActivityWithDispatch(BaseModel):
    activity: Activity
    notifications: Dict[str, int]
