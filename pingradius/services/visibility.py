"""
Who may see an activity in a geofenced feed.

Every gate must pass; anything that cannot be evaluated (no coordinates,
unparseable duration, unknown viewer location) hides the activity.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, Optional

from loguru import logger

from pingradius.core.match_config import ACTIVE_BUFFER_MINUTES, DEBUG_MATCH_LOGS, FEED_RADIUS_MILES
from pingradius.schemas.activity import Activity
from pingradius.schemas.enums import ActivityKind, VisibilityType
from pingradius.schemas.location import Coordinates
from pingradius.services.duration import is_still_active

_DIGITS = re.compile(r"\d+")

# decision reasons
NO_COORDINATES = "no_coordinates"
EXPIRED = "expired"
BLOCKED = "blocked"
PRIVACY = "privacy"
TOO_FAR = "too_far"
FULL = "full"


def parse_max_participants(text: str | None) -> Optional[int]:
    """
    "2 people" -> 2. "Unlimited", blank or digit-free text -> None (no cap).
    """
    if text is None:
        return None
    if "unlimited" in text.lower():
        return None
    m = _DIGITS.search(text)
    if not m:
        return None
    return int(m.group(0))


@dataclass(frozen=True)
class ViewerContext:
    user_id: str
    origin: Optional[Coordinates] = None
    active_connection_ids: FrozenSet[str] = field(default_factory=frozenset)
    # either direction of a block
    blocked_ids: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class VisibilityDecision:
    visible: bool
    reason: Optional[str] = None
    distance_miles: Optional[float] = None


class VisibilityPolicy:
    def __init__(
        self,
        feed_radius_miles: float = FEED_RADIUS_MILES,
        buffer_minutes: float = ACTIVE_BUFFER_MINUTES,
    ) -> None:
        self.feed_radius_miles = feed_radius_miles
        self.buffer_minutes = buffer_minutes

    def is_current(self, activity: Activity, now: datetime) -> bool:
        if activity.kind == ActivityKind.ping:
            return is_still_active(activity, now, self.buffer_minutes)
        # events without a start time count as upcoming
        if activity.start_time is None:
            return True
        return activity.start_time > now

    @staticmethod
    def passes_privacy(activity: Activity, viewer: ViewerContext) -> bool:
        if activity.visibility_type == VisibilityType.open:
            return True
        if activity.is_member(viewer.user_id):
            return True
        if activity.visibility_type == VisibilityType.friends_only:
            return activity.creator_id in viewer.active_connection_ids
        return False

    @staticmethod
    def is_full_for(activity: Activity, viewer: ViewerContext) -> bool:
        cap = parse_max_participants(activity.max_participants)
        if cap is None or activity.participant_count < cap:
            return False
        return not activity.is_member(viewer.user_id)

    def evaluate(self, activity: Activity, viewer: ViewerContext, now: datetime | None = None) -> VisibilityDecision:
        now = now or datetime.now()

        if activity.coordinates is None:
            return VisibilityDecision(False, NO_COORDINATES)

        if activity.creator_id in viewer.blocked_ids:
            return VisibilityDecision(False, BLOCKED)

        if not self.is_current(activity, now):
            return VisibilityDecision(False, EXPIRED)

        if not self.passes_privacy(activity, viewer):
            return VisibilityDecision(False, PRIVACY)

        if viewer.origin is None:
            return VisibilityDecision(False, TOO_FAR)
        dist = viewer.origin.distance_miles_to(activity.coordinates)
        if not math.isfinite(dist) or dist > self.feed_radius_miles:
            return VisibilityDecision(False, TOO_FAR, dist)

        if self.is_full_for(activity, viewer):
            return VisibilityDecision(False, FULL, dist)

        return VisibilityDecision(True, None, dist)

    def is_visible(self, activity: Activity, viewer: ViewerContext, now: datetime | None = None) -> bool:
        decision = self.evaluate(activity, viewer, now)
        if DEBUG_MATCH_LOGS and not decision.visible:
            logger.debug(
                f"[visibility] hidden | activity={activity.id} viewer={viewer.user_id} reason={decision.reason}"
            )
        return decision.visible
