"""
Engine exceptions and their HTTP mapping.
Routes catch PingRadiusError and hand it to error_to_http so they stay thin.
"""
from __future__ import annotations

from fastapi import HTTPException


class PingRadiusError(Exception):
    """Base class for engine errors."""


class NotFoundError(PingRadiusError):
    pass


class PermissionDeniedError(PingRadiusError):
    pass


class ValidationError(PingRadiusError):
    pass


class ActivityFullError(PingRadiusError):
    pass


class AlreadyParticipantError(PingRadiusError):
    pass


class NotParticipantError(PingRadiusError):
    pass


class PushDeliveryError(PingRadiusError):
    """Push gateway refused or failed to accept a message."""


# (exception type, status code). First match wins.
ERROR_STATUS_RULES: list[tuple[type[PingRadiusError], int]] = [
    (NotFoundError, 404),
    (PermissionDeniedError, 403),
    (ValidationError, 400),
    (ActivityFullError, 409),
    (AlreadyParticipantError, 409),
    (NotParticipantError, 409),
    (PushDeliveryError, 502),
]


def error_to_http(exc: PingRadiusError) -> HTTPException:
    for exc_type, status_code in ERROR_STATUS_RULES:
        if isinstance(exc, exc_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))
