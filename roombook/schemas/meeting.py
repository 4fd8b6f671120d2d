from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from roombook.models.meeting import MeetingStatus
from roombook.schemas.common import PatchModel
from roombook.schemas.room import RoomSummary
from roombook.schemas.user import UserSummary


def _normalise_id_list(value):
    if value is None:
        return None
    if not isinstance(value, (list, tuple, set)):
        raise ValueError("Expected a list of user IDs")
    return [str(item).strip() for item in value if str(item or "").strip()]


class MeetingCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    room_id: str = Field(..., min_length=1)
    is_recurring: bool = False
    recurrence_pattern: Optional[str] = None
    attendee_ids: List[str] = Field(default_factory=list)

    @field_validator("attendee_ids", mode="before")
    @classmethod
    def _normalise_attendees(cls, value):
        return _normalise_id_list(value) or []


class MeetingUpdate(PatchModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    room_id: Optional[str] = Field(None, min_length=1)
    status: Optional[MeetingStatus] = None
    is_recurring: Optional[bool] = None
    recurrence_pattern: Optional[str] = None
    # Omitted leaves attendees alone; [] removes them all.
    attendee_ids: Optional[List[str]] = None

    @field_validator("attendee_ids", mode="before")
    @classmethod
    def _normalise_attendees(cls, value):
        return _normalise_id_list(value)


class AttendeeAdd(BaseModel):
    user_id: str = Field(..., min_length=1)


class MeetingFilter(BaseModel):
    organizer_id: Optional[str] = None
    room_id: Optional[str] = None
    status: Optional[MeetingStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    user_id: Optional[str] = None


class Meeting(BaseModel):
    meeting_id: str
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    status: MeetingStatus
    is_recurring: bool
    recurrence_pattern: Optional[str] = None
    organizer_id: str
    room_id: str
    organizer: Optional[UserSummary] = None
    room: Optional[RoomSummary] = None
    attendees: List[UserSummary] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MeetingSummary(BaseModel):
    """Meeting shape used by reporting lists (no attendee roster)."""

    meeting_id: str
    title: str
    start_time: datetime
    end_time: datetime
    status: MeetingStatus
    organizer: Optional[UserSummary] = None
    room: Optional[RoomSummary] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
