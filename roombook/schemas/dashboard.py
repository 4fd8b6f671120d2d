from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from roombook.schemas.meeting import MeetingSummary


class DashboardFilter(BaseModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    room_id: Optional[str] = None
    user_id: Optional[str] = None


class RoomUtilization(BaseModel):
    room_id: str
    room_name: str
    total_bookings: int
    total_hours: float
    utilization_rate: float


class MeetingStatusCount(BaseModel):
    status: str
    count: int


class MeetingMonthlyCount(BaseModel):
    month: str
    count: int


class UserActivity(BaseModel):
    user_id: str
    user_name: str
    user_email: str
    organized_meetings: int
    attended_meetings: int
    total_meetings: int


class DashboardStats(BaseModel):
    total_users: int
    active_users: int
    total_rooms: int
    active_rooms: int
    total_meetings: int
    upcoming_meetings: int
    completed_meetings: int
    cancelled_meetings: int
    room_utilization: List[RoomUtilization] = Field(default_factory=list)
    meetings_by_status: List[MeetingStatusCount] = Field(default_factory=list)
    meetings_by_month: List[MeetingMonthlyCount] = Field(default_factory=list)
    top_active_users: List[UserActivity] = Field(default_factory=list)
    recent_meetings: List[MeetingSummary] = Field(default_factory=list)
    upcoming_meetings_7d: List[MeetingSummary] = Field(default_factory=list)
