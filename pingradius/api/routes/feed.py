from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from pingradius.api.deps import get_current_user_id, get_engine_service
from pingradius.schemas.feed import FeedResponse
from pingradius.schemas.location import CheckedCoordinates
from pingradius.services.engine import EngineService

router = APIRouter(tags=["feed"])


@router.get("/feed", response_model=FeedResponse)
async def get_feed(
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    user_id: str = Depends(get_current_user_id),
    engine: EngineService = Depends(get_engine_service),
):
    """Nearby activity for the caller. Without lat/lng the last known position is used."""
    origin = None
    if lat is not None or lng is not None:
        if lat is None or lng is None:
            raise HTTPException(status_code=400, detail="lat and lng must be given together")
        try:
            origin = CheckedCoordinates(lat=lat, lng=lng)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    return await engine.feed(user_id, origin)
