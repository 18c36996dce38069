from fastapi import APIRouter, Depends
from loguru import logger

from pingradius.api.deps import get_current_user_id, get_engine_service
from pingradius.core.errors import PingRadiusError, error_to_http
from pingradius.schemas.activity import (
    Activity,
    ActivityCreateRequest,
    ActivityUpdateRequest,
    ActivityWithDispatch,
    InviteRequest,
)
from pingradius.services.engine import EngineService

router = APIRouter(prefix="/activities", tags=["activities"])


# ----------------------------
# CREATE / READ / EDIT
# ----------------------------
@router.post("", response_model=ActivityWithDispatch)
async def create_activity(
    payload: ActivityCreateRequest,
    user_id: str = Depends(get_current_user_id),
    engine: EngineService = Depends(get_engine_service),
):
    logger.info(f"Create activity | user={user_id} kind={payload.kind.value} visibility={payload.visibility_type.value}")
    try:
        activity, report = await engine.create_activity(user_id, payload)
    except PingRadiusError as e:
        raise error_to_http(e)
    return ActivityWithDispatch(activity=activity, notifications=report.summary())


@router.get("/{activity_id}", response_model=Activity)
def get_activity(
    activity_id: str,
    user_id: str = Depends(get_current_user_id),
    engine: EngineService = Depends(get_engine_service),
):
    try:
        return engine.require_activity(activity_id)
    except PingRadiusError as e:
        raise error_to_http(e)


@router.patch("/{activity_id}", response_model=ActivityWithDispatch)
async def update_activity(
    activity_id: str,
    payload: ActivityUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    engine: EngineService = Depends(get_engine_service),
):
    try:
        activity, report = await engine.update_activity(activity_id, user_id, payload)
    except PingRadiusError as e:
        raise error_to_http(e)
    return ActivityWithDispatch(activity=activity, notifications=report.summary())


# ----------------------------
# MEMBERSHIP
# ----------------------------
@router.post("/{activity_id}/join", response_model=Activity)
def join_activity(
    activity_id: str,
    user_id: str = Depends(get_current_user_id),
    engine: EngineService = Depends(get_engine_service),
):
    try:
        return engine.join(activity_id, user_id)
    except PingRadiusError as e:
        raise error_to_http(e)


@router.post("/{activity_id}/leave", response_model=Activity)
def leave_activity(
    activity_id: str,
    user_id: str = Depends(get_current_user_id),
    engine: EngineService = Depends(get_engine_service),
):
    try:
        return engine.leave(activity_id, user_id)
    except PingRadiusError as e:
        raise error_to_http(e)


@router.delete("/{activity_id}/participants/{participant_id}", response_model=Activity)
def remove_participant(
    activity_id: str,
    participant_id: str,
    user_id: str = Depends(get_current_user_id),
    engine: EngineService = Depends(get_engine_service),
):
    try:
        return engine.remove_participant(activity_id, user_id, participant_id)
    except PingRadiusError as e:
        raise error_to_http(e)


@router.post("/{activity_id}/invite")
async def invite(
    activity_id: str,
    payload: InviteRequest,
    user_id: str = Depends(get_current_user_id),
    engine: EngineService = Depends(get_engine_service),
):
    try:
        report = await engine.invite(activity_id, user_id, payload.user_id)
    except PingRadiusError as e:
        raise error_to_http(e)
    return {"ok": True, "notifications": report.summary()}
