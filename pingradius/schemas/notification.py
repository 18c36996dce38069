from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from pingradius.schemas.base import BaseSchema


class PingEventPayload(BaseModel):
    type: Literal["ping_event"] = "ping_event"
    activity_id: str
    activity_kind: str = "ping"
    creator_name: str
    category: str = ""
    title: str = ""
    description: str = ""
    distance_miles: float = 0
    mood_category: Optional[str] = None


class PingInvitationPayload(BaseModel):
    type: Literal["ping_invitation"] = "ping_invitation"
    activity_id: str
    inviter_id: str
    inviter_name: str
    title: str = ""
    location: str = ""
    category: str = ""


class PingUpdatePayload(BaseModel):
    type: Literal["ping_update"] = "ping_update"
    activity_id: str
    update_type: str
    title: str = ""


NotificationPayload = Annotated[
    Union[PingEventPayload, PingInvitationPayload, PingUpdatePayload],
    Field(discriminator="type"),
]


class NotificationOut(BaseSchema):
    id: str
    user_id: str
    title: str
    body: str
    data: NotificationPayload
    timestamp: datetime
    read: bool = False


class NotificationPage(BaseModel):
    items: List[NotificationOut]
    page: int
    size: int
    total: int
