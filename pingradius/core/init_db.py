from loguru import logger
from sqlalchemy.engine import Engine

from pingradius.core.db import Base, engine as default_engine

# Import all models so SQLAlchemy registers them
from pingradius.models.user import UserRecord  # noqa: F401
from pingradius.models.activity import ActivityRecord, ActivityParticipant  # noqa: F401
from pingradius.models.notification import NotificationRecord  # noqa: F401
from pingradius.modules.connections.models import Connection  # noqa: F401


def init_db(bind: Engine | None = None):
    logger.info("Creating database tables")
    Base.metadata.create_all(bind=bind or default_engine)
    logger.info("Database tables created")
