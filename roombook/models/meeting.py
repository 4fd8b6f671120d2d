from enum import Enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    String,
    Table,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func  # For default timestamps

from roombook.database import Base


class MeetingStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


# Statuses that hold a room interval; only these take part in overlap checks.
BLOCKING_STATUSES = (MeetingStatus.SCHEDULED, MeetingStatus.IN_PROGRESS)
TERMINAL_STATUSES = (MeetingStatus.COMPLETED, MeetingStatus.CANCELLED)
# Statuses counted as booked time by room utilization reporting.
UTILIZED_STATUSES = (MeetingStatus.SCHEDULED, MeetingStatus.COMPLETED)

# Association table linking users to meetings as attendees
meeting_attendees_table = Table(
    "meeting_attendees",
    Base.metadata,
    Column(
        "meeting_id",
        String(20),
        ForeignKey("meetings.meeting_id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("user_id", String(20), ForeignKey("users.user_id"), primary_key=True),
    Column("added_at", DateTime, server_default=func.now()),
)


class Meeting(Base):
    __tablename__ = "meetings"

    meeting_id = Column(String(20), primary_key=True, index=True)
    title = Column(String, nullable=False, index=True)
    description = Column(String, nullable=True)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False, index=True)
    status = Column(String, default=MeetingStatus.SCHEDULED.value, nullable=False, index=True)
    is_recurring = Column(Boolean, default=False, nullable=False)
    recurrence_pattern = Column(String, nullable=True)  # stored as given, never expanded
    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, onupdate=func.now())

    organizer_id = Column(String(20), ForeignKey("users.user_id"), nullable=False, index=True)
    room_id = Column(String(20), ForeignKey("rooms.room_id"), nullable=False, index=True)

    organizer = relationship(
        "User",
        back_populates="organized_meetings",
        foreign_keys=[organizer_id],
    )
    room = relationship("Room", back_populates="meetings")

    attendees = relationship(
        "User",
        secondary=meeting_attendees_table,
        back_populates="attended_meetings",
        order_by="User.user_id",
    )

    @property
    def status_enum(self) -> MeetingStatus:
        return MeetingStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.status_enum.is_terminal

    @property
    def attendee_ids(self):
        return [user.user_id for user in self.attendees or []]

    def overlaps(self, start, end) -> bool:
        """Half-open interval test; meetings that merely touch do not overlap."""
        return self.start_time < end and self.end_time > start

    def __repr__(self):
        return (
            f"Meeting(meeting_id={self.meeting_id!r}, room_id={self.room_id!r}, "
            f"start={self.start_time}, end={self.end_time}, status={self.status!r})"
        )
