from .common import Page, PaginationInfo, PatchModel, MessageResponse
from .user import User, UserCreate, UserUpdate, UserRoleUpdate, UserSummary
from .room import Room, RoomCreate, RoomUpdate, RoomFeature, RoomFeatureCreate, RoomFeatureUpdate
from .meeting import Meeting, MeetingCreate, MeetingUpdate, MeetingFilter

__all__ = [
    "Page",
    "PaginationInfo",
    "PatchModel",
    "MessageResponse",
    "User",
    "UserCreate",
    "UserUpdate",
    "UserRoleUpdate",
    "UserSummary",
    "Room",
    "RoomCreate",
    "RoomUpdate",
    "RoomFeature",
    "RoomFeatureCreate",
    "RoomFeatureUpdate",
    "Meeting",
    "MeetingCreate",
    "MeetingUpdate",
    "MeetingFilter",
]
