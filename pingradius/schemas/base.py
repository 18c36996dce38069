from datetime import datetime
from pydantic import BaseModel, ConfigDict


def to_naive_local(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


class BaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)
