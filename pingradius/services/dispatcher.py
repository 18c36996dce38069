"""
Notification fan-out.

Each recipient is handled on its own: append the in-app notification, then
push. A failure for one recipient is logged and recorded in the report; it
never stops the others and never undoes the activity that triggered it.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from loguru import logger
from pydantic import BaseModel

from pingradius.core.config import PUSH_CONCURRENCY, PUSH_TIMEOUT_SECONDS, STORE_TIMEOUT_SECONDS
from pingradius.schemas.activity import Activity
from pingradius.schemas.enums import ActivityKind, MoodCategory, NotificationCategory
from pingradius.schemas.notification import (
    PingEventPayload,
    PingInvitationPayload,
    PingUpdatePayload,
)
from pingradius.schemas.user import UserProfile
from pingradius.services.matching import Match
from pingradius.services.push_gateway import PushGateway, PushMessage

NEW_ACTIVITY_CATEGORIES = (NotificationCategory.activities, NotificationCategory.events)


@dataclass
class DispatchReport:
    sent: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def summary(self) -> Dict[str, int]:
        return {"sent": len(self.sent), "skipped": len(self.skipped), "failed": len(self.failed)}


@dataclass
class _Delivery:
    user: UserProfile
    title: str
    body: str
    payload: BaseModel
    sound: Optional[str] = "default"
    priority: str = "high"
    # push only; the in-app record is written regardless
    push_allowed: bool = True


# ---------- copy ----------
def new_activity_copy(activity: Activity, creator_name: str, mood: MoodCategory, distance_miles: float) -> tuple[str, str]:
    title = f"🎯 {activity.title}"
    if distance_miles > 0:
        title += f" - {distance_miles:.1f} miles away"

    description = (activity.description or "").strip()
    noun = "event" if activity.kind == ActivityKind.event else "ping event"

    if mood == MoodCategory.seeking:
        body = (
            f"Perfect match! {creator_name}: {description}"
            if description
            else f"Great opportunity from {creator_name}! Join this {activity.category} activity."
        )
    elif mood == MoodCategory.selective:
        body = (
            f"{creator_name}: {description}"
            if description
            else f"{creator_name} invited you to a {activity.category} activity nearby."
        )
    else:
        body = f"{creator_name}: {description}" if description else f"{creator_name} created a new {noun}"
    return title, body


def delivery_settings(mood: MoodCategory) -> tuple[Optional[str], str]:
    """(sound, priority) for a recipient's mood."""
    if mood == MoodCategory.selective:
        return None, "normal"
    return "default", "high"


class NotificationDispatcher:
    def __init__(
        self,
        store,
        gateway: PushGateway,
        concurrency: int = PUSH_CONCURRENCY,
        timeout: float = PUSH_TIMEOUT_SECONDS,
        store_timeout: float = STORE_TIMEOUT_SECONDS,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.concurrency = max(1, concurrency)
        self.timeout = timeout
        self.store_timeout = store_timeout

    # --------------------------------------------------
    # FAN-OUT
    # --------------------------------------------------

    async def _deliver(self, job: _Delivery, sem: asyncio.Semaphore, report: DispatchReport) -> None:
        uid = job.user.id
        async with sem:
            try:
                # blocking store write; runs off the loop
                await asyncio.wait_for(
                    asyncio.to_thread(self.store.append_notification, uid, job.title, job.body, job.payload),
                    timeout=self.store_timeout,
                )

                if not job.push_allowed:
                    report.skipped.append(uid)
                    return

                message = PushMessage(
                    to=job.user.expo_push_token,
                    title=job.title,
                    body=job.body,
                    data=job.payload.model_dump(mode="json"),
                    sound=job.sound,
                    priority=job.priority,
                )
                await asyncio.wait_for(self.gateway.send(message), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.error(f"[dispatch] delivery timed out | user={uid}")
                report.failed.append(uid)
            except Exception as e:
                logger.error(f"[dispatch] delivery failed | user={uid} err={e}")
                report.failed.append(uid)
            else:
                report.sent.append(uid)

    async def _fan_out(self, jobs: List[_Delivery], report: DispatchReport) -> DispatchReport:
        if jobs:
            sem = asyncio.Semaphore(self.concurrency)
            await asyncio.gather(*(self._deliver(job, sem, report) for job in jobs))
        logger.info(f"[dispatch] done | {report.summary()}")
        return report

    # --------------------------------------------------
    # NEW ACTIVITY
    # --------------------------------------------------

    async def dispatch_new_activity(self, activity: Activity, matches: Iterable[Match]) -> DispatchReport:
        report = DispatchReport()
        jobs: List[_Delivery] = []

        for match in matches:
            user = match.user
            if user.id == activity.creator_id:
                continue
            if not user.expo_push_token or not user.notification_preferences.allows(*NEW_ACTIVITY_CATEGORIES):
                report.skipped.append(user.id)
                continue

            title, body = new_activity_copy(activity, activity.creator_name, match.mood, match.distance_miles)
            sound, priority = delivery_settings(match.mood)
            jobs.append(
                _Delivery(
                    user=user,
                    title=title,
                    body=body,
                    payload=PingEventPayload(
                        activity_id=activity.id,
                        activity_kind=activity.kind.value,
                        creator_name=activity.creator_name,
                        category=activity.category,
                        title=activity.title,
                        description=activity.description,
                        distance_miles=match.distance_miles or 0,
                        mood_category=match.mood.value,
                    ),
                    sound=sound,
                    priority=priority,
                )
            )

        logger.info(f"[dispatch] new activity | id={activity.id} recipients={len(jobs)} skipped={len(report.skipped)}")
        return await self._fan_out(jobs, report)

    # --------------------------------------------------
    # INVITATIONS / UPDATES
    # --------------------------------------------------

    def _events_push_allowed(self, user: UserProfile) -> bool:
        return bool(user.expo_push_token) and user.notification_preferences.allows(NotificationCategory.events)

    async def dispatch_invitation(self, activity: Activity, inviter: UserProfile, invitee: UserProfile) -> DispatchReport:
        inviter_name = inviter.name or "Someone"
        job = _Delivery(
            user=invitee,
            title="Activity Invitation",
            body=f'{inviter_name} invited you to join "{activity.title}"',
            payload=PingInvitationPayload(
                activity_id=activity.id,
                inviter_id=inviter.id,
                inviter_name=inviter_name,
                title=activity.title,
                location=activity.location,
                category=activity.category,
            ),
            push_allowed=self._events_push_allowed(invitee),
        )
        return await self._fan_out([job], DispatchReport())

    async def dispatch_update(
        self,
        activity: Activity,
        update_type: str,
        recipients: Iterable[UserProfile],
        editor_id: str | None = None,
    ) -> DispatchReport:
        jobs = [
            _Delivery(
                user=user,
                title="Activity Updated",
                body=f'The activity "{activity.title}" has been updated',
                payload=PingUpdatePayload(activity_id=activity.id, update_type=update_type, title=activity.title),
                push_allowed=self._events_push_allowed(user),
            )
            for user in recipients
            if user.id != editor_id
        ]
        return await self._fan_out(jobs, DispatchReport())

