from typing import List

from fastapi import APIRouter, Depends

from pingradius.api.deps import get_current_user_id, get_engine_service
from pingradius.core.errors import PingRadiusError, error_to_http
from pingradius.schemas.connection import ConnectAccept, ConnectionOut, ConnectRequest
from pingradius.services.engine import EngineService

router = APIRouter(prefix="/v1/connect", tags=["connections"])


@router.post("/request", response_model=ConnectionOut)
def connect_request(
    payload: ConnectRequest,
    user_id: str = Depends(get_current_user_id),
    engine: EngineService = Depends(get_engine_service),
):
    try:
        return engine.request_connection(user_id, payload.target_user_id)
    except PingRadiusError as e:
        raise error_to_http(e)


@router.post("/accept", response_model=ConnectionOut)
def connect_accept(
    payload: ConnectAccept,
    user_id: str = Depends(get_current_user_id),
    engine: EngineService = Depends(get_engine_service),
):
    try:
        return engine.accept_connection(payload.connection_id, user_id)
    except PingRadiusError as e:
        raise error_to_http(e)


@router.get("", response_model=List[ConnectionOut])
def list_connections(
    user_id: str = Depends(get_current_user_id),
    engine: EngineService = Depends(get_engine_service),
):
    return engine.connections(user_id)
