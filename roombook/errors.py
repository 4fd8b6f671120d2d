"""Domain error kinds raised by the managers.

Each kind is an ``HTTPException`` so routers can let it propagate unchanged;
``kind`` is the stable machine-readable name rendered next to ``detail``.
"""

from typing import Optional

from fastapi import HTTPException, status


class BookingError(HTTPException):
    kind = "error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str, headers: Optional[dict] = None):
        super().__init__(status_code=type(self).status_code, detail=detail, headers=headers)
        self.message = detail

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class ValidationFailed(BookingError):
    kind = "validation_failed"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFound(BookingError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class Forbidden(BookingError):
    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class Unauthorized(BookingError):
    kind = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, detail: str = "Could not validate credentials."):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class SchedulingConflict(BookingError):
    kind = "scheduling_conflict"
    status_code = status.HTTP_409_CONFLICT


class InvalidState(BookingError):
    kind = "invalid_state"
    status_code = status.HTTP_409_CONFLICT


class AlreadyInState(BookingError):
    kind = "already_in_state"
    status_code = status.HTTP_409_CONFLICT


class Conflict(BookingError):
    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT


class RoomUnavailable(BookingError):
    kind = "room_unavailable"
    status_code = status.HTTP_409_CONFLICT


class OrganizerInvalid(BookingError):
    kind = "organizer_invalid"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


__all__ = [
    "BookingError",
    "ValidationFailed",
    "NotFound",
    "Forbidden",
    "Unauthorized",
    "SchedulingConflict",
    "InvalidState",
    "AlreadyInState",
    "Conflict",
    "RoomUnavailable",
    "OrganizerInvalid",
]
