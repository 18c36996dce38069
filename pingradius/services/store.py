"""
SQLAlchemy-backed document store.

Exposes the four collections the engine reads (users, connections, pings,
events) through `query` / `subscribe`, plus the writes the engine performs.
Every write commits before a change signal goes out on the hub, so live
subscribers always re-read committed state.
"""
from __future__ import annotations

import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional

from loguru import logger
from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from pingradius.core.config import NOTIFICATION_CAP
from pingradius.core.errors import (
    ActivityFullError,
    AlreadyParticipantError,
    NotFoundError,
    NotParticipantError,
    PermissionDeniedError,
    ValidationError,
)
from pingradius.models.activity import ActivityParticipant, ActivityRecord
from pingradius.models.notification import NotificationRecord
from pingradius.models.user import UserRecord
from pingradius.modules.connections import service as connections
from pingradius.modules.connections.models import Connection
from pingradius.schemas.activity import Activity, ActivityCreateRequest
from pingradius.schemas.connection import ConnectionOut
from pingradius.schemas.enums import ActivityKind, Collection
from pingradius.schemas.location import Coordinates
from pingradius.schemas.notification import NotificationOut, NotificationPage
from pingradius.schemas.user import UserProfile, UserUpsertRequest
from pingradius.services.live import ChangeHub, Subscription
from pingradius.services.visibility import parse_max_participants

_ACTIVITY_COLLECTIONS = {
    Collection.pings: ActivityKind.ping,
    Collection.events: ActivityKind.event,
}


@dataclass(frozen=True)
class FilterSpec:
    """
    Query filter shared by `query` and `subscribe`.

    status: activity status ("active") or connection status.
    participant: connections involving this user.
    ids: restrict users to these ids.
    limit: newest-first cap for activity collections.
    """

    status: Optional[str] = None
    participant: Optional[str] = None
    ids: Optional[tuple] = None
    limit: Optional[int] = None


def collection_for(kind: ActivityKind) -> Collection:
    return Collection.pings if kind == ActivityKind.ping else Collection.events


# ---------- record -> schema ----------
def _coords(lat: Optional[float], lng: Optional[float]) -> Optional[Coordinates]:
    if lat is None or lng is None:
        return None
    return Coordinates(lat=lat, lng=lng)


def _user_out(rec: UserRecord) -> UserProfile:
    return UserProfile(
        id=rec.id,
        name=rec.name,
        coordinates=_coords(rec.lat, rec.lng),
        location_updated_at=rec.location_updated_at,
        availability_schedule=rec.availability_schedule,
        connection_intents=rec.connection_intents or [],
        event_preferences=rec.event_preferences or {},
        expo_push_token=rec.expo_push_token,
        notification_preferences=rec.notification_preferences or {},
        blocked_users=rec.blocked_users or [],
        has_me_blocked=rec.has_me_blocked or [],
        mood_status=rec.mood_status,
    )


def _connection_out(conn: Connection) -> ConnectionOut:
    return ConnectionOut(
        id=conn.id,
        participants=conn.participants,
        status=conn.status,
        initiator=conn.initiator,
        created_at=conn.created_at,
    )


def _activity_out(rec: ActivityRecord, participants: List[str]) -> Activity:
    return Activity(
        id=rec.id,
        kind=rec.kind,
        creator_id=rec.creator_id,
        creator_name=rec.creator_name or "",
        title=rec.title,
        description=rec.description or "",
        category=rec.category or "",
        template=rec.template or "",
        location=rec.location or "",
        coordinates=_coords(rec.lat, rec.lng),
        visibility_type=rec.visibility_type,
        visibility_radius=rec.visibility_radius or "",
        duration=rec.duration,
        start_time=rec.start_time,
        max_participants=rec.max_participants or "Unlimited",
        participants=participants,
        participant_count=rec.participant_count,
        status=rec.status,
        created_at=rec.created_at,
        connection_intents=rec.connection_intents or [],
        event_preferences=rec.event_preferences or {},
    )


class SqlDocumentStore:
    def __init__(
        self,
        session_factory: sessionmaker,
        hub: ChangeHub | None = None,
        notification_cap: int = NOTIFICATION_CAP,
    ) -> None:
        self._session_factory = session_factory
        self.hub = hub or ChangeHub()
        self.notification_cap = notification_cap
        # SQLite has no row locks; serialise membership writers in this process as well
        self._membership_lock = threading.Lock()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _publish(self, *collections: Collection) -> None:
        for collection in collections:
            self.hub.publish(collection)

    # --------------------------------------------------
    # QUERY / SUBSCRIBE
    # --------------------------------------------------

    def query(self, collection: Collection, spec: FilterSpec | None = None) -> List[Any]:
        spec = spec or FilterSpec()
        with self._session() as db:
            if collection == Collection.users:
                q = db.query(UserRecord)
                if spec.ids is not None:
                    q = q.filter(UserRecord.id.in_(list(spec.ids)))
                return [_user_out(r) for r in q.order_by(UserRecord.id).all()]

            if collection == Collection.connections:
                if spec.participant:
                    rows = connections.connections_for(db, spec.participant)
                else:
                    rows = db.query(Connection).order_by(Connection.created_at.asc()).all()
                if spec.status:
                    rows = [c for c in rows if c.status == spec.status]
                return [_connection_out(c) for c in rows]

            kind = _ACTIVITY_COLLECTIONS[collection]
            q = db.query(ActivityRecord).filter(ActivityRecord.kind == kind.value)
            if spec.status:
                q = q.filter(ActivityRecord.status == spec.status)
            q = q.order_by(ActivityRecord.created_at.desc())
            if spec.limit:
                q = q.limit(spec.limit)
            return self._activities_out(db, q.all())

    def subscribe(self, collection: Collection, spec: FilterSpec | None = None) -> Subscription:
        """Unstarted subscription; call start() to begin receiving snapshots."""
        spec = spec or FilterSpec()
        return Subscription(
            self.hub,
            collection,
            lambda: self.query(collection, spec),
            name=f"{collection.value}:{spec}",
        )

    def recent_activities(self, kind: ActivityKind, limit: int) -> List[Activity]:
        return self.query(collection_for(kind), FilterSpec(status="active", limit=limit))

    # --------------------------------------------------
    # USERS
    # --------------------------------------------------

    def get_user(self, user_id: str) -> Optional[UserProfile]:
        with self._session() as db:
            rec = db.get(UserRecord, user_id)
            return _user_out(rec) if rec else None

    def list_users(self) -> List[UserProfile]:
        return self.query(Collection.users)

    def upsert_user(self, user_id: str, req: UserUpsertRequest) -> UserProfile:
        with self._session() as db:
            rec = db.get(UserRecord, user_id)
            if rec is None:
                rec = UserRecord(id=user_id)
                db.add(rec)

            rec.name = req.name
            rec.availability_schedule = (
                req.availability_schedule.model_dump(exclude_none=True)
                if req.availability_schedule is not None
                else None
            )
            rec.connection_intents = list(req.connection_intents)
            rec.event_preferences = dict(req.event_preferences)
            rec.notification_preferences = req.notification_preferences.model_dump()
            rec.blocked_users = list(req.blocked_users)
            rec.has_me_blocked = list(req.has_me_blocked)
            rec.mood_status = req.mood_status
            db.flush()
            out = _user_out(rec)

        self._publish(Collection.users)
        return out

    def update_location(self, user_id: str, coords: Coordinates, at: datetime | None = None) -> UserProfile:
        with self._session() as db:
            rec = db.get(UserRecord, user_id)
            if rec is None:
                raise NotFoundError("User not found")
            rec.lat = coords.lat
            rec.lng = coords.lng
            rec.location_updated_at = at or datetime.now()
            db.flush()
            out = _user_out(rec)

        self._publish(Collection.users)
        return out

    def set_push_token(self, user_id: str, token: str) -> UserProfile:
        with self._session() as db:
            rec = db.get(UserRecord, user_id)
            if rec is None:
                raise NotFoundError("User not found")
            rec.expo_push_token = token
            db.flush()
            out = _user_out(rec)

        self._publish(Collection.users)
        return out

    # --------------------------------------------------
    # CONNECTIONS
    # --------------------------------------------------

    def connections_for(self, user_id: str) -> List[ConnectionOut]:
        return self.query(Collection.connections, FilterSpec(participant=user_id))

    def active_connection_ids(self, user_id: str) -> set[str]:
        with self._session() as db:
            return connections.active_connection_ids(db, user_id)

    def request_connection(self, requester_id: str, target_id: str) -> ConnectionOut:
        with self._session() as db:
            out = _connection_out(connections.request_connection(db, requester_id, target_id))
        self._publish(Collection.connections)
        return out

    def accept_connection(self, connection_id: str, accepter_id: str) -> ConnectionOut:
        with self._session() as db:
            out = _connection_out(connections.accept_connection(db, connection_id, accepter_id))
        self._publish(Collection.connections)
        return out

    # --------------------------------------------------
    # ACTIVITIES
    # --------------------------------------------------

    def _activities_out(self, db: Session, records: Iterable[ActivityRecord]) -> List[Activity]:
        records = list(records)
        if not records:
            return []
        members: Dict[str, List[str]] = {r.id: [] for r in records}
        rows = (
            db.query(ActivityParticipant.activity_id, ActivityParticipant.user_id)
            .filter(ActivityParticipant.activity_id.in_(list(members)))
            .order_by(ActivityParticipant.id.asc())
            .all()
        )
        for activity_id, user_id in rows:
            members[activity_id].append(user_id)
        return [_activity_out(r, members[r.id]) for r in records]

    def _locked_activity(self, db: Session, activity_id: str) -> ActivityRecord:
        rec = (
            db.query(ActivityRecord)
            .filter(ActivityRecord.id == activity_id)
            .with_for_update()
            .one_or_none()
        )
        if rec is None:
            raise NotFoundError("Activity not found")
        return rec

    @staticmethod
    def _member_ids(db: Session, activity_id: str) -> List[str]:
        return [
            user_id
            for (user_id,) in db.query(ActivityParticipant.user_id)
            .filter(ActivityParticipant.activity_id == activity_id)
            .order_by(ActivityParticipant.id.asc())
            .all()
        ]

    @staticmethod
    def _recount(db: Session, rec: ActivityRecord) -> None:
        db.flush()
        rec.participant_count = (
            db.query(func.count(ActivityParticipant.id))
            .filter(ActivityParticipant.activity_id == rec.id)
            .scalar()
        )

    def add_activity(
        self,
        creator_id: str,
        creator_name: str,
        req: ActivityCreateRequest,
        created_at: datetime | None = None,
    ) -> Activity:
        activity_id = uuid.uuid4().hex
        coords = req.coordinates

        with self._session() as db:
            rec = ActivityRecord(
                id=activity_id,
                kind=req.kind.value,
                creator_id=creator_id,
                creator_name=creator_name,
                title=req.title,
                description=req.description,
                category=req.category,
                template=req.template,
                location=req.location,
                lat=coords.lat if coords else None,
                lng=coords.lng if coords else None,
                visibility_type=req.visibility_type.value,
                visibility_radius=req.visibility_radius,
                duration=req.duration,
                start_time=req.start_time,
                max_participants=req.max_participants,
                participant_count=0,
                status="active",
                connection_intents=list(req.connection_intents),
                event_preferences=dict(req.event_preferences),
                created_at=created_at or datetime.now(),
            )
            db.add(rec)
            db.flush()

            # creator is always the first member
            db.add(ActivityParticipant(activity_id=activity_id, user_id=creator_id))
            self._recount(db, rec)
            out = _activity_out(rec, [creator_id])

        logger.info(f"[activity] created | id={activity_id} kind={req.kind.value} creator={creator_id}")
        self._publish(collection_for(req.kind))
        return out

    def get_activity(self, activity_id: str) -> Optional[Activity]:
        with self._session() as db:
            rec = db.get(ActivityRecord, activity_id)
            if rec is None:
                return None
            return self._activities_out(db, [rec])[0]

    def update_activity(self, activity_id: str, editor_id: str, changes: Dict[str, Any]) -> Activity:
        with self._session() as db:
            rec = self._locked_activity(db, activity_id)
            if rec.creator_id != editor_id:
                raise PermissionDeniedError("Only the creator can edit this activity")

            for field, value in changes.items():
                if field == "coordinates":
                    rec.lat = value["lat"]
                    rec.lng = value["lng"]
                    continue
                if field == "duration" and rec.kind != ActivityKind.ping.value:
                    raise ValidationError("Only pings have a duration")
                if field == "start_time" and rec.kind != ActivityKind.event.value:
                    raise ValidationError("Only events have a start_time")
                if hasattr(value, "value"):
                    value = value.value
                setattr(rec, field, value)

            db.flush()
            out = self._activities_out(db, [rec])[0]

        logger.info(f"[activity] updated | id={activity_id} fields={sorted(changes)}")
        self._publish(collection_for(out.kind))
        return out

    def join_activity(self, activity_id: str, user_id: str) -> Activity:
        with self._membership_lock, self._session() as db:
            rec = self._locked_activity(db, activity_id)
            members = self._member_ids(db, activity_id)
            if user_id in members:
                raise AlreadyParticipantError("Already a participant")

            cap = parse_max_participants(rec.max_participants)
            if cap is not None and len(members) >= cap:
                raise ActivityFullError("Activity is full")

            db.add(ActivityParticipant(activity_id=activity_id, user_id=user_id))
            try:
                self._recount(db, rec)
            except IntegrityError as e:
                raise AlreadyParticipantError("Already a participant") from e

            out = _activity_out(rec, members + [user_id])

        logger.info(f"[activity] joined | id={activity_id} user={user_id} count={out.participant_count}")
        self._publish(collection_for(out.kind))
        return out

    def _drop_member(self, activity_id: str, user_id: str, actor_id: str) -> Activity:
        with self._membership_lock, self._session() as db:
            rec = self._locked_activity(db, activity_id)
            if actor_id != user_id and actor_id != rec.creator_id:
                raise PermissionDeniedError("Only the creator can remove other participants")
            if user_id == rec.creator_id:
                raise ValidationError("The creator cannot leave their own activity")

            deleted = (
                db.query(ActivityParticipant)
                .filter(
                    ActivityParticipant.activity_id == activity_id,
                    ActivityParticipant.user_id == user_id,
                )
                .delete(synchronize_session=False)
            )
            if not deleted:
                raise NotParticipantError("Not a participant")

            self._recount(db, rec)
            out = _activity_out(rec, self._member_ids(db, activity_id))

        logger.info(f"[activity] left | id={activity_id} user={user_id} by={actor_id} count={out.participant_count}")
        self._publish(collection_for(out.kind))
        return out

    def leave_activity(self, activity_id: str, user_id: str) -> Activity:
        return self._drop_member(activity_id, user_id, actor_id=user_id)

    def remove_participant(self, activity_id: str, creator_id: str, user_id: str) -> Activity:
        return self._drop_member(activity_id, user_id, actor_id=creator_id)

    # --------------------------------------------------
    # NOTIFICATIONS
    # --------------------------------------------------

    def append_notification(self, user_id: str, title: str, body: str, payload: BaseModel) -> NotificationOut:
        with self._session() as db:
            rec = NotificationRecord(
                id=uuid.uuid4().hex,
                user_id=user_id,
                title=title,
                body=body,
                data=payload.model_dump(mode="json"),
                timestamp=datetime.now(),
                read=False,
            )
            db.add(rec)
            db.flush()

            stale = [
                seq
                for (seq,) in db.query(NotificationRecord.seq)
                .filter(NotificationRecord.user_id == user_id)
                .order_by(NotificationRecord.seq.desc())
                .offset(self.notification_cap)
                .all()
            ]
            if stale:
                db.query(NotificationRecord).filter(NotificationRecord.seq.in_(stale)).delete(
                    synchronize_session=False
                )
                logger.debug(f"[notifications] trimmed | user={user_id} dropped={len(stale)}")

            return NotificationOut.model_validate(rec)

    def list_notifications(self, user_id: str, page: int = 1, size: int = 20) -> NotificationPage:
        page = max(page, 1)
        size = max(size, 1)
        with self._session() as db:
            q = db.query(NotificationRecord).filter(NotificationRecord.user_id == user_id)
            total = q.count()
            rows = q.order_by(NotificationRecord.seq.desc()).offset((page - 1) * size).limit(size).all()
            items = [NotificationOut.model_validate(r) for r in rows]
        return NotificationPage(items=items, page=page, size=size, total=total)

    def mark_read(self, user_id: str, notification_id: str) -> NotificationOut:
        with self._session() as db:
            rec = (
                db.query(NotificationRecord)
                .filter(
                    NotificationRecord.id == notification_id,
                    NotificationRecord.user_id == user_id,
                )
                .one_or_none()
            )
            if rec is None:
                raise NotFoundError("Notification not found")
            rec.read = True
            db.flush()
            return NotificationOut.model_validate(rec)
