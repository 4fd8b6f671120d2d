"""Reporting aggregator.

Every sub-aggregation narrows meetings with the same predicate built from the
dashboard filter: ``start_date`` bounds ``start_time >=``, ``end_date`` bounds
``end_time <=``, ``room_id`` matches exactly and ``user_id`` matches the
organizer or any attendee.
"""

import logging
import uuid
from collections import Counter
from datetime import timedelta
from typing import Dict, List, Optional

from fastapi import Depends
from sqlalchemy import distinct, func, or_
from sqlalchemy.orm import Session, joinedload

from roombook.config.loader import get_reporting_settings
from roombook.data.base_manager import BaseManager
from roombook.database import get_db
from roombook.models.meeting import (
    UTILIZED_STATUSES,
    Meeting,
    MeetingStatus,
    meeting_attendees_table,
)
from roombook.models.room import Room
from roombook.models.user import User
from roombook.schemas.dashboard import DashboardFilter
from roombook.utils.timeutils import as_utc_naive

logger = logging.getLogger("roombook.dashboard")

HOURS_PER_DAY = 24


class DashboardManager(BaseManager):
    def __init__(self, db: Session, validator=None, settings: Optional[Dict[str, int]] = None):
        super().__init__(db, validator)
        self.settings = settings or get_reporting_settings()

    @staticmethod
    def meeting_conditions(dashboard_filter: Optional[DashboardFilter]) -> list:
        conditions = []
        if dashboard_filter is None:
            return conditions
        if dashboard_filter.start_date is not None:
            conditions.append(Meeting.start_time >= as_utc_naive(dashboard_filter.start_date))
        if dashboard_filter.end_date is not None:
            conditions.append(Meeting.end_time <= as_utc_naive(dashboard_filter.end_date))
        if dashboard_filter.room_id:
            conditions.append(Meeting.room_id == dashboard_filter.room_id)
        if dashboard_filter.user_id:
            conditions.append(
                or_(
                    Meeting.organizer_id == dashboard_filter.user_id,
                    Meeting.attendees.any(User.user_id == dashboard_filter.user_id),
                )
            )
        return conditions

    def _count_meetings(self, conditions: list, status: Optional[MeetingStatus] = None) -> int:
        query = self.db.query(func.count(Meeting.meeting_id)).filter(*conditions)
        if status is not None:
            query = query.filter(Meeting.status == status.value)
        return query.scalar() or 0

    def room_utilization(self, dashboard_filter: Optional[DashboardFilter] = None) -> List[dict]:
        """
        Booked hours per room over scheduled and completed meetings.

        utilization_rate = hours / (window_days * 24) * 100. Rooms without
        bookings report zeros; rows are ordered by booking count, ties keep
        storage order.
        """
        conditions = self.meeting_conditions(dashboard_filter)
        rooms_query = self.db.query(Room)
        if dashboard_filter is not None and dashboard_filter.room_id:
            rooms_query = rooms_query.filter(Room.room_id == dashboard_filter.room_id)
        rooms = rooms_query.order_by(Room.created_at, Room.room_id).all()

        bookings = (
            self.db.query(Meeting.room_id, Meeting.start_time, Meeting.end_time)
            .filter(
                Meeting.status.in_([status.value for status in UTILIZED_STATUSES]),
                *conditions,
            )
            .all()
        )
        counts: Counter = Counter()
        hours: Counter = Counter()
        for room_id, start_time, end_time in bookings:
            counts[room_id] += 1
            hours[room_id] += (end_time - start_time).total_seconds() / 3600.0

        window_hours = self.settings["utilization_window_days"] * HOURS_PER_DAY
        rows = [
            {
                "room_id": room.room_id,
                "room_name": room.name,
                "total_bookings": counts[room.room_id],
                "total_hours": hours[room.room_id],
                "utilization_rate": hours[room.room_id] / window_hours * 100,
            }
            for room in rooms
        ]
        rows.sort(key=lambda row: row["total_bookings"], reverse=True)
        return rows

    def meetings_by_status(self, dashboard_filter: Optional[DashboardFilter] = None) -> List[dict]:
        conditions = self.meeting_conditions(dashboard_filter)
        results = (
            self.db.query(Meeting.status, func.count(Meeting.meeting_id))
            .filter(*conditions)
            .group_by(Meeting.status)
            .order_by(Meeting.status)
            .all()
        )
        return [{"status": status, "count": count} for status, count in results]

    def meetings_by_month(self, dashboard_filter: Optional[DashboardFilter] = None) -> List[dict]:
        """Meeting counts keyed by the ``YYYY-MM`` of their start, ascending."""
        conditions = self.meeting_conditions(dashboard_filter)
        starts = self.db.query(Meeting.start_time).filter(*conditions).all()
        months = Counter(start_time.strftime("%Y-%m") for (start_time,) in starts)
        return [{"month": month, "count": months[month]} for month in sorted(months)]

    def top_active_users(
        self, dashboard_filter: Optional[DashboardFilter] = None, limit: Optional[int] = None
    ) -> List[dict]:
        """Users ranked by organized + attended meetings; ties keep storage order."""
        limit = limit or self.settings["top_users_limit"]
        conditions = self.meeting_conditions(dashboard_filter)
        organized = dict(
            self.db.query(Meeting.organizer_id, func.count(distinct(Meeting.meeting_id)))
            .filter(*conditions)
            .group_by(Meeting.organizer_id)
            .all()
        )
        attended = dict(
            self.db.query(
                meeting_attendees_table.c.user_id,
                func.count(distinct(meeting_attendees_table.c.meeting_id)),
            )
            .join(Meeting, Meeting.meeting_id == meeting_attendees_table.c.meeting_id)
            .filter(*conditions)
            .group_by(meeting_attendees_table.c.user_id)
            .all()
        )
        users = self.db.query(User).order_by(User.created_at, User.user_id).all()
        rows = []
        for user in users:
            organized_count = organized.get(user.user_id, 0)
            attended_count = attended.get(user.user_id, 0)
            rows.append(
                {
                    "user_id": user.user_id,
                    "user_name": user.full_name,
                    "user_email": user.email,
                    "organized_meetings": organized_count,
                    "attended_meetings": attended_count,
                    "total_meetings": organized_count + attended_count,
                }
            )
        rows.sort(key=lambda row: row["total_meetings"], reverse=True)
        return rows[:limit]

    def _meeting_rows(self):
        return self.db.query(Meeting).options(
            joinedload(Meeting.organizer), joinedload(Meeting.room)
        )

    def recent_meetings(
        self, dashboard_filter: Optional[DashboardFilter] = None, limit: Optional[int] = None
    ) -> List[Meeting]:
        limit = limit or self.settings["recent_meetings_limit"]
        return (
            self._meeting_rows()
            .filter(*self.meeting_conditions(dashboard_filter))
            .order_by(Meeting.created_at.desc(), Meeting.meeting_id.desc())
            .limit(limit)
            .all()
        )

    def upcoming_meetings_7d(self, dashboard_filter: Optional[DashboardFilter] = None) -> List[Meeting]:
        """Scheduled meetings starting between now and the end of the upcoming window."""
        now = self.validator.now()
        horizon = now + timedelta(days=self.settings["upcoming_window_days"])
        return (
            self._meeting_rows()
            .filter(
                Meeting.start_time >= now,
                Meeting.start_time <= horizon,
                Meeting.status == MeetingStatus.SCHEDULED.value,
                *self.meeting_conditions(dashboard_filter),
            )
            .order_by(Meeting.start_time, Meeting.meeting_id)
            .all()
        )

    def dashboard_stats(self, dashboard_filter: Optional[DashboardFilter] = None) -> dict:
        req_id = uuid.uuid4()
        logger.debug(f"[{req_id}] Building dashboard stats with filter {dashboard_filter}.")
        conditions = self.meeting_conditions(dashboard_filter)
        stats = {
            "total_users": self.db.query(func.count(User.user_id)).scalar() or 0,
            "active_users": self.db.query(func.count(User.user_id))
            .filter(User.is_active.is_(True))
            .scalar()
            or 0,
            "total_rooms": self.db.query(func.count(Room.room_id)).scalar() or 0,
            "active_rooms": self.db.query(func.count(Room.room_id))
            .filter(Room.is_active.is_(True))
            .scalar()
            or 0,
            "total_meetings": self._count_meetings(conditions),
            "upcoming_meetings": self._count_meetings(conditions, MeetingStatus.SCHEDULED),
            "completed_meetings": self._count_meetings(conditions, MeetingStatus.COMPLETED),
            "cancelled_meetings": self._count_meetings(conditions, MeetingStatus.CANCELLED),
            "room_utilization": self.room_utilization(dashboard_filter),
            "meetings_by_status": self.meetings_by_status(dashboard_filter),
            "meetings_by_month": self.meetings_by_month(dashboard_filter),
            "top_active_users": self.top_active_users(dashboard_filter),
            "recent_meetings": self.recent_meetings(dashboard_filter),
            "upcoming_meetings_7d": self.upcoming_meetings_7d(dashboard_filter),
        }
        logger.info(
            f"[{req_id}] Dashboard stats: {stats['total_meetings']} meetings, "
            f"{stats['total_rooms']} rooms, {stats['total_users']} users."
        )
        return stats


def get_dashboard_manager(db: Session = Depends(get_db)) -> DashboardManager:
    """Dependency provider for DashboardManager."""
    return DashboardManager(db)
