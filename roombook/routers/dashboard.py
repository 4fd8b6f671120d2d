from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from roombook.auth.auth import get_current_active_user
from roombook.data.dashboard_manager import DashboardManager, get_dashboard_manager
from roombook.models.user import User as UserModel
from roombook.schemas.dashboard import (
    DashboardFilter,
    DashboardStats,
    MeetingMonthlyCount,
    MeetingStatusCount,
    RoomUtilization,
    UserActivity,
)
from roombook.schemas.meeting import MeetingSummary

router = APIRouter(
    prefix="/api/dashboard",
    tags=["dashboard"],
    dependencies=[Depends(get_current_active_user)],
)


def dashboard_filter(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    room_id: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
) -> DashboardFilter:
    return DashboardFilter(
        start_date=start_date, end_date=end_date, room_id=room_id, user_id=user_id
    )


@router.get("/stats", response_model=DashboardStats)
def get_dashboard_stats(
    filters: DashboardFilter = Depends(dashboard_filter),
    dashboard: DashboardManager = Depends(get_dashboard_manager),
):
    return dashboard.dashboard_stats(filters)


@router.get("/room-utilization", response_model=List[RoomUtilization])
def get_room_utilization(
    filters: DashboardFilter = Depends(dashboard_filter),
    dashboard: DashboardManager = Depends(get_dashboard_manager),
):
    return dashboard.room_utilization(filters)


@router.get("/meetings-by-status", response_model=List[MeetingStatusCount])
def get_meetings_by_status(
    filters: DashboardFilter = Depends(dashboard_filter),
    dashboard: DashboardManager = Depends(get_dashboard_manager),
):
    return dashboard.meetings_by_status(filters)


@router.get("/meetings-by-month", response_model=List[MeetingMonthlyCount])
def get_meetings_by_month(
    filters: DashboardFilter = Depends(dashboard_filter),
    dashboard: DashboardManager = Depends(get_dashboard_manager),
):
    return dashboard.meetings_by_month(filters)


@router.get("/top-active-users", response_model=List[UserActivity])
def get_top_active_users(
    limit: Optional[int] = Query(None, ge=1, le=100),
    filters: DashboardFilter = Depends(dashboard_filter),
    dashboard: DashboardManager = Depends(get_dashboard_manager),
):
    return dashboard.top_active_users(filters, limit)


@router.get("/recent-meetings", response_model=List[MeetingSummary])
def get_recent_meetings(
    limit: Optional[int] = Query(None, ge=1, le=100),
    filters: DashboardFilter = Depends(dashboard_filter),
    dashboard: DashboardManager = Depends(get_dashboard_manager),
):
    return dashboard.recent_meetings(filters, limit)


@router.get("/upcoming-meetings-7d", response_model=List[MeetingSummary])
def get_upcoming_meetings_7d(
    filters: DashboardFilter = Depends(dashboard_filter),
    dashboard: DashboardManager = Depends(get_dashboard_manager),
):
    return dashboard.upcoming_meetings_7d(filters)
