# Import models so they register with SQLAlchemy's Base metadata
from .user import User, UserRole
from .room import Room, RoomFeature, room_features_table
from .meeting import (
    Meeting,
    MeetingStatus,
    meeting_attendees_table,
    BLOCKING_STATUSES,
    TERMINAL_STATUSES,
    UTILIZED_STATUSES,
)

__all__ = [
    "User",
    "UserRole",
    "Room",
    "RoomFeature",
    "room_features_table",
    "Meeting",
    "MeetingStatus",
    "meeting_attendees_table",
    "BLOCKING_STATUSES",
    "TERMINAL_STATUSES",
    "UTILIZED_STATUSES",
]
