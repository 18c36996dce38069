"""
Notification recipients for a newly created activity.

Friends-only activities draw from the creator's active connections and only
apply the radius when both sides have coordinates. Everything else draws from
all users and needs availability, a shared connection intent, and a position
inside the activity's radius.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, Iterable, List, Optional

from loguru import logger

from pingradius.core.match_config import (
    DEBUG_MATCH_LOGS,
    SEEKING_MOODS,
    SELECTIVE_MOODS,
    UNAVAILABLE_MOODS,
)
from pingradius.schemas.activity import Activity
from pingradius.schemas.enums import MoodCategory, VisibilityType
from pingradius.schemas.user import UserProfile
from pingradius.services.availability import is_available_at

_LEADING_NUMBER = re.compile(r"^\s*(\d+(?:\.\d+)?)")


def parse_radius_miles(text: str | None) -> Optional[float]:
    """"10 miles" -> 10.0. Anything without a leading number -> None."""
    if not text:
        return None
    m = _LEADING_NUMBER.match(text)
    if not m:
        return None
    value = float(m.group(1))
    return value if math.isfinite(value) else None


def mood_category(mood_status: str | None) -> MoodCategory:
    if not mood_status:
        return MoodCategory.neutral
    if mood_status in UNAVAILABLE_MOODS:
        return MoodCategory.unavailable
    if mood_status in SEEKING_MOODS:
        return MoodCategory.seeking
    if mood_status in SELECTIVE_MOODS:
        return MoodCategory.selective
    return MoodCategory.neutral


def intent_overlap(a: Iterable[str], b: Iterable[str]) -> FrozenSet[str]:
    return frozenset(t.lower() for t in a) & frozenset(t.lower() for t in b)


def preference_overlap(a: dict, b: dict) -> FrozenSet[str]:
    return frozenset(k for k, v in a.items() if v and b.get(k))


@dataclass(frozen=True)
class Match:
    user: UserProfile
    distance_miles: float = 0.0
    intent_overlap: FrozenSet[str] = field(default_factory=frozenset)
    # reported only; never gates
    preference_overlap: FrozenSet[str] = field(default_factory=frozenset)
    mood: MoodCategory = MoodCategory.neutral


class MatchScorer:
    def _log(self, activity: Activity, user: UserProfile, msg: str) -> None:
        if DEBUG_MATCH_LOGS:
            logger.debug(f"[match] activity={activity.id} user={user.id} {msg}")

    def select(
        self,
        activity: Activity,
        users: Iterable[UserProfile],
        creator_connection_ids: Iterable[str] = (),
        creator: UserProfile | None = None,
        now: datetime | None = None,
    ) -> List[Match]:
        now = now or datetime.now()
        friends_only = activity.visibility_type == VisibilityType.friends_only
        connected = set(creator_connection_ids)
        radius = parse_radius_miles(activity.visibility_radius)

        matches: List[Match] = []
        for user in users:
            if user.id == activity.creator_id:
                continue
            if friends_only and user.id not in connected:
                continue

            if user.blocks(activity.creator_id) or (creator is not None and creator.blocks(user.id)):
                self._log(activity, user, "skip: blocked")
                continue

            mood = mood_category(user.mood_status)
            if mood == MoodCategory.unavailable:
                self._log(activity, user, f"skip: mood={user.mood_status}")
                continue

            if not is_available_at(user.availability_schedule, now):
                self._log(activity, user, "skip: outside availability")
                continue

            overlap = intent_overlap(user.connection_intents, activity.connection_intents)
            if not friends_only and not overlap:
                self._log(activity, user, "skip: no shared intent")
                continue

            distance = 0.0
            have_coords = activity.coordinates is not None and user.coordinates is not None
            if have_coords:
                distance = activity.coordinates.distance_miles_to(user.coordinates)
                if radius is None or not math.isfinite(distance) or distance > radius:
                    self._log(activity, user, f"skip: {distance:.1f} mi outside radius={activity.visibility_radius!r}")
                    continue
            elif not friends_only:
                self._log(activity, user, "skip: missing coordinates")
                continue

            self._log(activity, user, f"match: {distance:.1f} mi")
            matches.append(
                Match(
                    user=user,
                    distance_miles=distance,
                    intent_overlap=overlap,
                    preference_overlap=preference_overlap(user.event_preferences, activity.event_preferences),
                    mood=mood,
                )
            )

        logger.info(f"[match] activity={activity.id} visibility={activity.visibility_type.value} matched={len(matches)}")
        return matches
