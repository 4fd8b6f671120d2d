import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from roombook.auth.auth import get_current_active_user
from roombook.data.meeting_manager import MeetingManager, get_meeting_manager
from roombook.models.meeting import MeetingStatus
from roombook.models.user import User as UserModel
from roombook.schemas.common import Page
from roombook.schemas.meeting import (
    AttendeeAdd,
    Meeting,
    MeetingCreate,
    MeetingFilter,
    MeetingUpdate,
)
from roombook.schemas.room import ConflictingMeeting
from roombook.schemas.user import UserSummary
from roombook.utils.pagination import clamp_page, pagination_meta

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/meetings", tags=["meetings"])


class SlotAvailability(BaseModel):
    room_id: str
    start_time: datetime
    end_time: datetime
    available: bool
    conflicts: List[ConflictingMeeting]


def _page(items, total, page, limit) -> dict:
    return {
        "items": [Meeting.model_validate(item) for item in items],
        "pagination": pagination_meta(clamp_page(page, limit), total),
    }


@router.post("", response_model=Meeting, status_code=status.HTTP_201_CREATED)
def create_meeting(
    payload: MeetingCreate,
    current_user: UserModel = Depends(get_current_active_user),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    """Book a room; the caller becomes the organizer."""
    return meeting_manager.create_meeting(current_user.user_id, payload)


@router.get("", response_model=Page[Meeting])
def list_meetings(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    current_user: UserModel = Depends(get_current_active_user),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    items, total = meeting_manager.list_meetings(page, limit)
    return _page(items, total, page, limit)


@router.get("/filter", response_model=Page[Meeting])
def filter_meetings(
    organizer_id: Optional[str] = Query(None),
    room_id: Optional[str] = Query(None),
    status_filter: Optional[MeetingStatus] = Query(None, alias="status"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    user_id: Optional[str] = Query(None),
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    current_user: UserModel = Depends(get_current_active_user),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    meeting_filter = MeetingFilter(
        organizer_id=organizer_id,
        room_id=room_id,
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
        user_id=user_id,
    )
    items, total = meeting_manager.filter_meetings(meeting_filter, page, limit)
    return _page(items, total, page, limit)


@router.get("/upcoming", response_model=List[Meeting])
def upcoming_meetings(
    user_id: Optional[str] = Query(None),
    limit: Optional[int] = Query(None),
    current_user: UserModel = Depends(get_current_active_user),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    return meeting_manager.upcoming_meetings(user_id, limit)


@router.get("/date-range", response_model=List[Meeting])
def meetings_in_range(
    start_date: datetime = Query(...),
    end_date: datetime = Query(...),
    user_id: Optional[str] = Query(None),
    current_user: UserModel = Depends(get_current_active_user),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    return meeting_manager.meetings_in_range(start_date, end_date, user_id)


@router.get("/availability", response_model=SlotAvailability)
def check_slot(
    room_id: str = Query(...),
    start_time: datetime = Query(...),
    end_time: datetime = Query(...),
    exclude_meeting_id: Optional[str] = Query(None),
    current_user: UserModel = Depends(get_current_active_user),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    start, end = meeting_manager.validator.validate_range(start_time, end_time)
    conflicts = meeting_manager.conflicting_meetings(room_id, start, end, exclude_meeting_id)
    return SlotAvailability(
        room_id=room_id,
        start_time=start,
        end_time=end,
        available=not conflicts,
        conflicts=[ConflictingMeeting.model_validate(m) for m in conflicts],
    )


@router.get("/{meeting_id}", response_model=Meeting)
def get_meeting(
    meeting_id: str,
    current_user: UserModel = Depends(get_current_active_user),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    return meeting_manager.get_meeting(meeting_id)


@router.put("/{meeting_id}", response_model=Meeting)
def update_meeting(
    meeting_id: str,
    payload: MeetingUpdate,
    current_user: UserModel = Depends(get_current_active_user),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    return meeting_manager.update_meeting(meeting_id, current_user, payload)


@router.delete("/{meeting_id}", response_model=Meeting)
def delete_meeting(
    meeting_id: str,
    current_user: UserModel = Depends(get_current_active_user),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    return meeting_manager.delete_meeting(meeting_id, current_user)


@router.post("/{meeting_id}/start", response_model=Meeting)
def start_meeting(
    meeting_id: str,
    current_user: UserModel = Depends(get_current_active_user),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    return meeting_manager.start_meeting(meeting_id, current_user)


@router.post("/{meeting_id}/complete", response_model=Meeting)
def complete_meeting(
    meeting_id: str,
    current_user: UserModel = Depends(get_current_active_user),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    return meeting_manager.complete_meeting(meeting_id, current_user)


@router.post("/{meeting_id}/cancel", response_model=Meeting)
def cancel_meeting(
    meeting_id: str,
    current_user: UserModel = Depends(get_current_active_user),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    return meeting_manager.cancel_meeting(meeting_id, current_user)


@router.get("/{meeting_id}/attendees", response_model=List[UserSummary])
def list_attendees(
    meeting_id: str,
    current_user: UserModel = Depends(get_current_active_user),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    return meeting_manager.list_attendees(meeting_id)


@router.post("/{meeting_id}/attendees", response_model=Meeting)
def add_attendee(
    meeting_id: str,
    payload: AttendeeAdd,
    current_user: UserModel = Depends(get_current_active_user),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    return meeting_manager.add_attendee(meeting_id, current_user, payload.user_id)


@router.delete("/{meeting_id}/attendees/{user_id}", response_model=Meeting)
def remove_attendee(
    meeting_id: str,
    user_id: str,
    current_user: UserModel = Depends(get_current_active_user),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    return meeting_manager.remove_attendee(meeting_id, current_user, user_id)
