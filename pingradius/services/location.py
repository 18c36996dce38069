"""
Device geolocation boundary.

Providers are async and may hang or refuse permission; resolve_position
bounds both calls with a timeout and falls back to the last known fix.
"""
from __future__ import annotations

import asyncio
from typing import Optional, Protocol

from loguru import logger

from pingradius.core.config import LOCATION_TIMEOUT_SECONDS
from pingradius.schemas.location import Coordinates


class LocationProvider(Protocol):
    async def request_foreground_permission(self) -> bool:
        ...

    async def get_current_position(self) -> Coordinates:
        ...


class StaticLocationProvider:
    """Always reports the same fix. Used where the caller already knows the position."""

    def __init__(self, position: Coordinates | None) -> None:
        self.position = position

    async def request_foreground_permission(self) -> bool:
        return self.position is not None

    async def get_current_position(self) -> Coordinates:
        if self.position is None:
            raise LookupError("no position available")
        return self.position


async def resolve_position(
    provider: LocationProvider | None,
    fallback: Coordinates | None = None,
    timeout: float = LOCATION_TIMEOUT_SECONDS,
) -> Optional[Coordinates]:
    if provider is None:
        return fallback

    try:
        granted = await asyncio.wait_for(provider.request_foreground_permission(), timeout=timeout)
        if not granted:
            logger.info("[location] permission denied, using last known position")
            return fallback
        return await asyncio.wait_for(provider.get_current_position(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"[location] provider timed out after {timeout}s, using last known position")
        return fallback
    except Exception as e:
        logger.error(f"[location] provider failed: {e}")
        return fallback
