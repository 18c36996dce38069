"""
EngineService: the one object the HTTP layer talks to.

Built once at startup with its store, push gateway, settings and optional
location provider, then passed to routes through a FastAPI dependency.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from loguru import logger

from pingradius.core import config
from pingradius.core import match_config
from pingradius.core.errors import AlreadyParticipantError, NotFoundError, PermissionDeniedError, ValidationError
from pingradius.schemas.activity import Activity, ActivityCreateRequest, ActivityUpdateRequest
from pingradius.schemas.connection import ConnectionOut
from pingradius.schemas.enums import ActivityKind, Collection, VisibilityType
from pingradius.schemas.feed import FeedItem, FeedResponse
from pingradius.schemas.location import Coordinates
from pingradius.schemas.notification import NotificationOut, NotificationPage
from pingradius.schemas.user import UserProfile, UserUpsertRequest
from pingradius.services.dispatcher import DispatchReport, NotificationDispatcher
from pingradius.services.feed import ActivityFeedAggregator, active_peers, build_feed
from pingradius.services.location import LocationProvider, resolve_position
from pingradius.services.matching import MatchScorer
from pingradius.services.push_gateway import PushGateway
from pingradius.services.store import FilterSpec, SqlDocumentStore
from pingradius.services.visibility import ViewerContext, VisibilityPolicy


@dataclass(frozen=True)
class EngineSettings:
    feed_radius_miles: float = match_config.FEED_RADIUS_MILES
    active_buffer_minutes: float = match_config.ACTIVE_BUFFER_MINUTES
    feed_snapshot_limit: int = match_config.FEED_SNAPSHOT_LIMIT
    feed_display_limit: int = match_config.FEED_DISPLAY_LIMIT
    push_concurrency: int = config.PUSH_CONCURRENCY
    push_timeout_seconds: float = config.PUSH_TIMEOUT_SECONDS
    store_timeout_seconds: float = config.STORE_TIMEOUT_SECONDS
    location_timeout_seconds: float = config.LOCATION_TIMEOUT_SECONDS


class EngineService:
    def __init__(
        self,
        store: SqlDocumentStore,
        push_gateway: PushGateway,
        settings: EngineSettings | None = None,
        location_provider: LocationProvider | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.settings = settings or EngineSettings()
        self.location_provider = location_provider
        self.clock = clock

        self.policy = VisibilityPolicy(
            feed_radius_miles=self.settings.feed_radius_miles,
            buffer_minutes=self.settings.active_buffer_minutes,
        )
        self.scorer = MatchScorer()
        self.dispatcher = NotificationDispatcher(
            store,
            push_gateway,
            concurrency=self.settings.push_concurrency,
            timeout=self.settings.push_timeout_seconds,
            store_timeout=self.settings.store_timeout_seconds,
        )

    async def _call(self, fn, *args):
        """Blocking store call from async code, bounded by the store timeout."""
        return await asyncio.wait_for(
            asyncio.to_thread(fn, *args),
            timeout=self.settings.store_timeout_seconds,
        )

    # --------------------------------------------------
    # USERS / CONNECTIONS
    # --------------------------------------------------

    def require_user(self, user_id: str) -> UserProfile:
        user = self.store.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def require_activity(self, activity_id: str) -> Activity:
        activity = self.store.get_activity(activity_id)
        if activity is None:
            raise NotFoundError("Activity not found")
        return activity

    def upsert_profile(self, user_id: str, req: UserUpsertRequest) -> UserProfile:
        return self.store.upsert_user(user_id, req)

    def update_location(self, user_id: str, coords: Coordinates) -> UserProfile:
        return self.store.update_location(user_id, coords, self.clock())

    def register_push_token(self, user_id: str, token: str) -> UserProfile:
        return self.store.set_push_token(user_id, token)

    def request_connection(self, requester_id: str, target_id: str) -> ConnectionOut:
        return self.store.request_connection(requester_id, target_id)

    def accept_connection(self, connection_id: str, accepter_id: str) -> ConnectionOut:
        return self.store.accept_connection(connection_id, accepter_id)

    def connections(self, user_id: str) -> List[ConnectionOut]:
        return self.store.connections_for(user_id)

    # --------------------------------------------------
    # ACTIVITIES
    # --------------------------------------------------

    async def create_activity(self, creator_id: str, req: ActivityCreateRequest) -> Tuple[Activity, DispatchReport]:
        """
        Persist the activity, then notify matching users.
        Matching or delivery problems are logged; the activity stays created.
        """
        creator = await self._call(self.require_user, creator_id)
        activity = await self._call(
            self.store.add_activity, creator_id, creator.name or "Someone", req, self.clock()
        )

        try:
            peers: set[str] = set()
            if activity.visibility_type == VisibilityType.friends_only:
                peers = await self._call(self.store.active_connection_ids, creator_id)
            users = await self._call(self.store.list_users)

            matches = self.scorer.select(activity, users, peers, creator=creator, now=self.clock())
            report = await self.dispatcher.dispatch_new_activity(activity, matches)
        except Exception as e:
            logger.error(f"[engine] notification fan-out aborted | activity={activity.id} err={e}")
            report = DispatchReport()

        return activity, report

    def join(self, activity_id: str, user_id: str) -> Activity:
        return self.store.join_activity(activity_id, user_id)

    def leave(self, activity_id: str, user_id: str) -> Activity:
        return self.store.leave_activity(activity_id, user_id)

    def remove_participant(self, activity_id: str, creator_id: str, user_id: str) -> Activity:
        return self.store.remove_participant(activity_id, creator_id, user_id)

    async def invite(self, activity_id: str, inviter_id: str, invitee_id: str) -> DispatchReport:
        activity = await self._call(self.require_activity, activity_id)
        if not activity.is_member(inviter_id):
            raise PermissionDeniedError("Only members can invite")
        if activity.is_member(invitee_id):
            raise AlreadyParticipantError("Already a participant")

        inviter = await self._call(self.require_user, inviter_id)
        invitee = await self._call(self.require_user, invitee_id)

        logger.info(f"[engine] invite | activity={activity_id} from={inviter_id} to={invitee_id}")
        return await self.dispatcher.dispatch_invitation(activity, inviter, invitee)

    async def update_activity(
        self, activity_id: str, editor_id: str, req: ActivityUpdateRequest
    ) -> Tuple[Activity, DispatchReport]:
        changes = req.changes()
        if not changes:
            raise ValidationError("No changes supplied")

        activity = await self._call(self.store.update_activity, activity_id, editor_id, changes)
        update_type = "privacy" if "visibility_type" in changes else "details"

        try:
            recipients = await self._call(
                self.store.query, Collection.users, FilterSpec(ids=tuple(activity.participants))
            )
            report = await self.dispatcher.dispatch_update(activity, update_type, recipients, editor_id=editor_id)
        except Exception as e:
            logger.error(f"[engine] update fan-out aborted | activity={activity_id} err={e}")
            report = DispatchReport()

        return activity, report

    # --------------------------------------------------
    # FEED
    # --------------------------------------------------

    async def feed(self, viewer_id: str, origin: Coordinates | None = None) -> FeedResponse:
        """One-shot feed. Store failures give an empty feed."""
        now = self.clock()
        items: List[FeedItem] = []
        try:
            viewer = await self._call(self.store.get_user, viewer_id)
            if origin is None:
                origin = await resolve_position(
                    self.location_provider,
                    fallback=viewer.coordinates if viewer else None,
                    timeout=self.settings.location_timeout_seconds,
                )

            connections = await self._call(self.store.connections_for, viewer_id)
            pings = await self._call(self.store.recent_activities, ActivityKind.ping, self.settings.feed_snapshot_limit)
            events = await self._call(self.store.recent_activities, ActivityKind.event, self.settings.feed_snapshot_limit)

            context = ViewerContext(
                user_id=viewer_id,
                origin=origin,
                active_connection_ids=active_peers(connections, viewer_id),
                blocked_ids=frozenset((viewer.blocked_users + viewer.has_me_blocked) if viewer else ()),
            )
            items = build_feed(pings, events, context, self.policy, now=now, limit=self.settings.feed_display_limit)
        except Exception as e:
            logger.error(f"[engine] feed read failed | viewer={viewer_id} err={e}")

        return FeedResponse(items=items, generated_at=now)

    def feed_session(
        self,
        viewer_id: str,
        origin: Coordinates | None = None,
        on_change: Optional[Callable[[List[FeedItem]], None]] = None,
    ) -> ActivityFeedAggregator:
        """Live feed for one viewer. Caller owns start()/stop()."""
        return ActivityFeedAggregator(
            self.store,
            viewer_id,
            policy=self.policy,
            origin=origin,
            snapshot_limit=self.settings.feed_snapshot_limit,
            display_limit=self.settings.feed_display_limit,
            on_change=on_change,
            clock=self.clock,
        )

    # --------------------------------------------------
    # NOTIFICATIONS
    # --------------------------------------------------

    def notifications(self, user_id: str, page: int = 1, size: int = 20) -> NotificationPage:
        return self.store.list_notifications(user_id, page, size)

    def mark_read(self, user_id: str, notification_id: str) -> NotificationOut:
        return self.store.mark_read(user_id, notification_id)
