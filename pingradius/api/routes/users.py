from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from pingradius.api.deps import get_current_user_id, get_engine_service
from pingradius.core.errors import PingRadiusError, error_to_http
from pingradius.schemas.location import Coordinates
from pingradius.schemas.user import (
    LocationHeartbeatRequest,
    PushTokenRequest,
    UserProfile,
    UserUpsertRequest,
)
from pingradius.services.engine import EngineService
from pingradius.services.push_gateway import is_expo_token

router = APIRouter(prefix="/users", tags=["users"])


# ----------------------------
# PROFILE
# ----------------------------
@router.get("/me", response_model=UserProfile)
def get_me(
    user_id: str = Depends(get_current_user_id),
    engine: EngineService = Depends(get_engine_service),
):
    try:
        return engine.require_user(user_id)
    except PingRadiusError as e:
        raise error_to_http(e)


@router.put("/me", response_model=UserProfile)
def upsert_me(
    payload: UserUpsertRequest,
    user_id: str = Depends(get_current_user_id),
    engine: EngineService = Depends(get_engine_service),
):
    logger.info(f"Profile upsert | user={user_id}")
    return engine.upsert_profile(user_id, payload)


# ----------------------------
# LOCATION HEARTBEAT
# ----------------------------
@router.post("/me/location", response_model=UserProfile)
def location_heartbeat(
    payload: LocationHeartbeatRequest,
    user_id: str = Depends(get_current_user_id),
    engine: EngineService = Depends(get_engine_service),
):
    logger.debug(f"Location heartbeat | user={user_id} lat={payload.lat} lng={payload.lng}")
    try:
        return engine.update_location(user_id, Coordinates(lat=payload.lat, lng=payload.lng))
    except PingRadiusError as e:
        raise error_to_http(e)


# ----------------------------
# PUSH TOKEN
# ----------------------------
@router.post("/me/push-token", response_model=UserProfile)
def register_push_token(
    payload: PushTokenRequest,
    user_id: str = Depends(get_current_user_id),
    engine: EngineService = Depends(get_engine_service),
):
    token = payload.token.strip()
    if not is_expo_token(token):
        raise HTTPException(status_code=400, detail="Invalid Expo push token format")

    try:
        return engine.register_push_token(user_id, token)
    except PingRadiusError as e:
        raise error_to_http(e)
