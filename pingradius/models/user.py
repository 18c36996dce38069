from datetime import datetime

from sqlalchemy import Column, String, Float, DateTime, JSON

from pingradius.core.db import Base


class UserRecord(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=True)

    # last known position
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    location_updated_at = Column(DateTime, nullable=True)

    # {"monday": {"start": "09:00", "end": "17:00"}, ...}
    availability_schedule = Column(JSON, nullable=True)
    connection_intents = Column(JSON, nullable=False, default=list)
    event_preferences = Column(JSON, nullable=False, default=dict)

    expo_push_token = Column(String, nullable=True)
    notification_preferences = Column(JSON, nullable=True)

    blocked_users = Column(JSON, nullable=False, default=list)
    has_me_blocked = Column(JSON, nullable=False, default=list)

    mood_status = Column(String, nullable=True)

    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)
