from datetime import datetime

from sqlalchemy import Column, String, DateTime, CheckConstraint

from pingradius.core.db import Base


class Connection(Base):
    __tablename__ = "connections"

    id = Column(String, primary_key=True, index=True)
    # the two participants; order carries no meaning
    user_a = Column(String, nullable=False, index=True)
    user_b = Column(String, nullable=False, index=True)
    initiator = Column(String, nullable=False)
    status = Column(
        String,
        CheckConstraint(
            "status IN ('pending','active')",
            name="connections_status_check",
        ),
        nullable=False,
    )
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    @property
    def participants(self) -> list[str]:
        return [self.user_a, self.user_b]
