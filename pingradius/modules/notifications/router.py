from fastapi import APIRouter, Depends, Query
from loguru import logger

from pingradius.api.deps import get_current_user_id, get_engine_service
from pingradius.core.errors import PingRadiusError, error_to_http
from pingradius.schemas.notification import NotificationOut, NotificationPage
from pingradius.services.engine import EngineService

router = APIRouter(prefix="/v1/notifications", tags=["notifications"])


@router.get("", response_model=NotificationPage)
def list_notifications(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    engine: EngineService = Depends(get_engine_service),
):
    logger.debug(f"Notifications list | user={user_id} page={page} size={size}")
    return engine.notifications(user_id, page, size)


@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_read(
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
    engine: EngineService = Depends(get_engine_service),
):
    try:
        return engine.mark_read(user_id, notification_id)
    except PingRadiusError as e:
        raise error_to_http(e)
