from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON, Index

from pingradius.core.db import Base


class NotificationRecord(Base):
    __tablename__ = "notifications"

    # insertion order; timestamps can tie
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, nullable=False, unique=True, index=True)
    user_id = Column(String, nullable=False, index=True)

    title = Column(String, nullable=False)
    body = Column(String, nullable=False)

    # typed payload, discriminated by data["type"]
    data = Column(JSON, nullable=False)

    timestamp = Column(DateTime, nullable=False, default=datetime.now)
    read = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("idx_notifications_user_ts", "user_id", "timestamp"),
    )
