from datetime import datetime

from sqlalchemy import (
    Column,
    String,
    Integer,
    Float,
    DateTime,
    JSON,
    Text,
    ForeignKey,
    CheckConstraint,
    UniqueConstraint,
    Index,
)

from pingradius.core.db import Base


class ActivityRecord(Base):
    """Pings and events share one table; `kind` splits the two collections."""

    __tablename__ = "activities"

    id = Column(String, primary_key=True, index=True)
    kind = Column(
        String,
        CheckConstraint("kind IN ('ping','event')", name="activities_kind_check"),
        nullable=False,
    )

    creator_id = Column(String, nullable=False, index=True)
    creator_name = Column(String, nullable=False, default="")

    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(String, nullable=False, default="")
    template = Column(String, nullable=False, default="")
    location = Column(String, nullable=False, default="")

    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)

    visibility_type = Column(
        String,
        CheckConstraint(
            "visibility_type IN ('open','invite-only','friends-only')",
            name="activities_visibility_check",
        ),
        nullable=False,
        default="open",
    )
    visibility_radius = Column(String, nullable=False, default="")

    duration = Column(String, nullable=True)      # pings
    start_time = Column(DateTime, nullable=True)  # events

    max_participants = Column(String, nullable=False, default="Unlimited")
    participant_count = Column(Integer, nullable=False, default=0)

    status = Column(String, nullable=False, default="active")

    connection_intents = Column(JSON, nullable=False, default=list)
    event_preferences = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (
        Index("idx_activities_kind_status_created", "kind", "status", "created_at"),
    )


class ActivityParticipant(Base):
    __tablename__ = "activity_participants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    activity_id = Column(String, ForeignKey("activities.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    joined_at = Column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (
        UniqueConstraint("activity_id", "user_id", name="activity_participants_unique"),
    )
