from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from pingradius.schemas.base import BaseSchema
from pingradius.schemas.enums import ConnectionStatus


class ConnectionOut(BaseSchema):
    id: str
    participants: List[str]
    status: ConnectionStatus
    initiator: str
    created_at: Optional[datetime] = None

    def other(self, user_id: str) -> Optional[str]:
        return next((p for p in self.participants if p != user_id), None)


class ConnectRequest(BaseModel):
    target_user_id: str


class ConnectAccept(BaseModel):
    connection_id: str
