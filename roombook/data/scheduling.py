"""Overlap queries and the per-room booking guard.

Two meetings conflict when ``a.start < b.end and a.end > b.start`` and both
hold one of ``BLOCKING_STATUSES``. The check and the write that depends on it
must both happen inside ``room_booking_guard`` so that concurrent bookings of
the same room cannot both pass the check.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy import Select, select
from sqlalchemy.orm import Query, Session

from roombook.database import is_sqlite_session, write_lock_for
from roombook.models.meeting import BLOCKING_STATUSES, Meeting
from roombook.models.room import Room

logger = logging.getLogger("roombook.scheduling")

_BLOCKING_VALUES = [status.value for status in BLOCKING_STATUSES]


def overlapping_meetings_query(
    db: Session,
    room_id: str,
    start: datetime,
    end: datetime,
    exclude_meeting_id: Optional[str] = None,
) -> Query:
    query = db.query(Meeting).filter(
        Meeting.room_id == room_id,
        Meeting.status.in_(_BLOCKING_VALUES),
        Meeting.start_time < end,
        Meeting.end_time > start,
    )
    if exclude_meeting_id:
        query = query.filter(Meeting.meeting_id != exclude_meeting_id)
    return query


def busy_room_ids(start: datetime, end: datetime) -> Select:
    """Ids of rooms holding at least one blocking meeting that overlaps [start, end)."""
    return (
        select(Meeting.room_id)
        .where(
            Meeting.status.in_(_BLOCKING_VALUES),
            Meeting.start_time < end,
            Meeting.end_time > start,
        )
        .distinct()
    )


@contextmanager
def room_booking_guard(db: Session, *room_ids: Optional[str]) -> Iterator[None]:
    """
    Serialize bookings for the given rooms until the block exits.

    SQLite: the process-wide write lock is held for the whole block.
    Other backends: the room rows are locked with SELECT ... FOR UPDATE in
    sorted id order; the row locks last until the caller commits or rolls back.
    The caller must commit inside the block.
    """
    ids = sorted({room_id for room_id in room_ids if room_id})
    with write_lock_for(db):
        if ids and not is_sqlite_session(db):
            (
                db.query(Room.room_id)
                .filter(Room.room_id.in_(ids))
                .order_by(Room.room_id)
                .with_for_update()
                .all()
            )
        logger.debug(f"Booking guard acquired for rooms {ids}.")
        try:
            yield
        finally:
            logger.debug(f"Booking guard released for rooms {ids}.")
