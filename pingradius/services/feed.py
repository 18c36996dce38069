"""
Nearby activity feed.

build_feed is a pure function of the latest ping/event snapshots and the
viewer's context. ActivityFeedAggregator keeps those inputs current from live
subscriptions and recomputes the feed on every change.
"""
from __future__ import annotations

import asyncio
import threading
from datetime import datetime
from typing import Callable, FrozenSet, Iterable, List, Optional

from loguru import logger

from pingradius.core.config import STORE_TIMEOUT_SECONDS
from pingradius.core.match_config import DEBUG_MATCH_LOGS, FEED_DISPLAY_LIMIT, FEED_SNAPSHOT_LIMIT
from pingradius.schemas.activity import Activity
from pingradius.schemas.connection import ConnectionOut
from pingradius.schemas.enums import Collection, ConnectionStatus
from pingradius.schemas.feed import FeedItem
from pingradius.schemas.location import Coordinates
from pingradius.schemas.user import UserProfile
from pingradius.services.live import LatestValue, Subscription
from pingradius.services.store import FilterSpec
from pingradius.services.visibility import ViewerContext, VisibilityPolicy


def build_feed(
    pings: Iterable[Activity],
    events: Iterable[Activity],
    viewer: ViewerContext,
    policy: VisibilityPolicy,
    now: datetime | None = None,
    limit: int = FEED_DISPLAY_LIMIT,
) -> List[FeedItem]:
    now = now or datetime.now()
    items: List[FeedItem] = []

    for activity in [*pings, *events]:
        decision = policy.evaluate(activity, viewer, now)
        if not decision.visible:
            if DEBUG_MATCH_LOGS:
                logger.debug(f"[feed] hidden | viewer={viewer.user_id} activity={activity.id} reason={decision.reason}")
            continue
        items.append(
            FeedItem(
                kind=activity.kind,
                activity=activity,
                distance_miles=decision.distance_miles or 0.0,
                primary_time=activity.primary_time,
            )
        )

    items.sort(key=lambda i: i.primary_time or datetime.min, reverse=True)
    return items[:limit]


def active_peers(connections: Iterable[ConnectionOut], user_id: str) -> FrozenSet[str]:
    out = set()
    for conn in connections:
        if conn.status != ConnectionStatus.active:
            continue
        other = conn.other(user_id)
        if other:
            out.add(other)
    return frozenset(out)


class ActivityFeedAggregator:
    """
    One viewer's live feed.

    Inputs arrive through update_* (wired to store subscriptions by start(),
    or called directly). Each update recomputes synchronously; the result is
    available as `feed`, passed to `on_change`, and offered to async readers
    through a latest-only buffer.
    """

    def __init__(
        self,
        store,
        viewer_id: str,
        policy: VisibilityPolicy | None = None,
        origin: Coordinates | None = None,
        snapshot_limit: int = FEED_SNAPSHOT_LIMIT,
        display_limit: int = FEED_DISPLAY_LIMIT,
        on_change: Callable[[List[FeedItem]], None] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.viewer_id = viewer_id
        self.policy = policy or VisibilityPolicy()
        self.snapshot_limit = snapshot_limit
        self.display_limit = display_limit
        self.on_change = on_change
        self.clock = clock

        self._pings: List[Activity] = []
        self._events: List[Activity] = []
        self._connections: FrozenSet[str] = frozenset()
        self._blocked: FrozenSet[str] = frozenset()
        self._origin = origin
        self._profile_origin: Optional[Coordinates] = None

        self._lock = threading.RLock()
        self._subscriptions: List[Subscription] = []
        self._out: LatestValue[List[FeedItem]] = LatestValue()
        self.feed: List[FeedItem] = []

    # ---------- context ----------
    @property
    def origin(self) -> Optional[Coordinates]:
        return self._origin or self._profile_origin

    def viewer(self) -> ViewerContext:
        return ViewerContext(
            user_id=self.viewer_id,
            origin=self.origin,
            active_connection_ids=self._connections,
            blocked_ids=self._blocked,
        )

    # ---------- inputs ----------
    def update_pings(self, snapshot: List[Activity]) -> None:
        with self._lock:
            self._pings = list(snapshot)
            self.recompute()

    def update_events(self, snapshot: List[Activity]) -> None:
        with self._lock:
            self._events = list(snapshot)
            self.recompute()

    def update_connections(self, snapshot: List[ConnectionOut]) -> None:
        with self._lock:
            self._connections = active_peers(snapshot, self.viewer_id)
            self.recompute()

    def update_location(self, origin: Coordinates | None) -> None:
        with self._lock:
            self._origin = origin
            self.recompute()

    def update_profile(self, snapshot: List[UserProfile]) -> None:
        """Viewer's own profile: block lists, and last known position when no live fix is set."""
        with self._lock:
            me = next((u for u in snapshot if u.id == self.viewer_id), None)
            self._blocked = frozenset((me.blocked_users + me.has_me_blocked) if me else ())
            self._profile_origin = me.coordinates if me else None
            self.recompute()

    def recompute(self) -> List[FeedItem]:
        with self._lock:
            try:
                feed = build_feed(
                    self._pings,
                    self._events,
                    self.viewer(),
                    self.policy,
                    now=self.clock(),
                    limit=self.display_limit,
                )
            except Exception as e:
                logger.error(f"[feed] recompute failed | viewer={self.viewer_id} err={e}")
                feed = []
            self.feed = feed

            self._out.put(feed)
            if self.on_change is not None:
                self.on_change(feed)
        return feed

    # ---------- lifecycle ----------
    def start(self) -> "ActivityFeedAggregator":
        if self._subscriptions:
            return self

        recent = FilterSpec(status="active", limit=self.snapshot_limit)
        wiring = [
            (Collection.pings, recent, self.update_pings),
            (Collection.events, recent, self.update_events),
            (Collection.connections, FilterSpec(participant=self.viewer_id), self.update_connections),
            (Collection.users, FilterSpec(ids=(self.viewer_id,)), self.update_profile),
        ]
        for collection, spec, handler in wiring:
            sub = self.store.subscribe(collection, spec).on_snapshot(handler)
            self._subscriptions.append(sub)
            sub.start()

        logger.info(f"[feed] started | viewer={self.viewer_id} items={len(self.feed)}")
        return self

    def stop(self) -> None:
        for sub in self._subscriptions:
            sub.stop()
        self._subscriptions = []
        self._out.close()
        logger.info(f"[feed] stopped | viewer={self.viewer_id}")

    async def start_async(self, timeout: float = STORE_TIMEOUT_SECONDS) -> "ActivityFeedAggregator":
        """start() off the event loop, bounded by `timeout`. On timeout the feed stays empty."""
        try:
            await asyncio.wait_for(asyncio.to_thread(self.start), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(f"[feed] subscription setup timed out | viewer={self.viewer_id} after={timeout}s")
            self.feed = []
        return self

    def __aiter__(self) -> "ActivityFeedAggregator":
        return self

    async def __anext__(self) -> List[FeedItem]:
        return await self._out.get()
