from fastapi import Header, HTTPException, Request
from loguru import logger

from pingradius.services.engine import EngineService


# ------------------------------------------------------------
# Caller identity
# ------------------------------------------------------------
def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Identity is asserted by the upstream gateway through X-User-Id."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id.strip()


# ------------------------------------------------------------
# Engine
# ------------------------------------------------------------
def get_engine_service(request: Request) -> EngineService:
    service = getattr(request.app.state, "engine_service", None)
    if service is None:
        logger.error("[deps] engine service requested before startup")
        raise HTTPException(status_code=503, detail="Engine not ready")
    return service
