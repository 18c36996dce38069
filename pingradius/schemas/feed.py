from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from pingradius.schemas.activity import Activity
from pingradius.schemas.enums import ActivityKind


class FeedItem(BaseModel):
    kind: ActivityKind
    activity: Activity
    distance_miles: float
    primary_time: Optional[datetime] = None


class FeedResponse(BaseModel):
    items: List[FeedItem]
    generated_at: datetime
