import logging
import uuid
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from fastapi import Depends
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from roombook.auth.permissions import ensure_owner_or_role
from roombook.data.base_manager import BaseManager
from roombook.data.scheduling import overlapping_meetings_query, room_booking_guard
from roombook.database import get_db
from roombook.errors import (
    Conflict,
    InvalidState,
    NotFound,
    OrganizerInvalid,
    RoomUnavailable,
    SchedulingConflict,
    ValidationFailed,
)
from roombook.models.meeting import Meeting, MeetingStatus
from roombook.models.room import Room
from roombook.models.user import User, UserRole
from roombook.schemas.meeting import MeetingCreate, MeetingFilter, MeetingUpdate
from roombook.utils.identifiers import generate_meeting_id
from roombook.utils.pagination import clamp_page, paginate
from roombook.utils.timeutils import as_utc_naive

logger = logging.getLogger("roombook.meetings")

MEETING_ID_ATTEMPTS = 3

# Allowed source states for each explicit transition.
_TRANSITION_SOURCES = {
    MeetingStatus.IN_PROGRESS: (MeetingStatus.SCHEDULED,),
    MeetingStatus.COMPLETED: (MeetingStatus.SCHEDULED, MeetingStatus.IN_PROGRESS),
    MeetingStatus.CANCELLED: (MeetingStatus.SCHEDULED, MeetingStatus.IN_PROGRESS),
}


class MeetingManager(BaseManager):
    """Scheduling core: availability, bookings, status transitions and attendees."""

    def _meetings(self):
        return self.db.query(Meeting).options(
            joinedload(Meeting.organizer),
            joinedload(Meeting.room),
            selectinload(Meeting.attendees),
        )

    def get_meeting(self, meeting_id: str) -> Meeting:
        meeting = self._meetings().filter(Meeting.meeting_id == meeting_id).first()
        if meeting is None:
            logger.warning(f"Meeting {meeting_id} not found.")
            raise NotFound(f"Meeting {meeting_id} not found.")
        return meeting

    # --- Availability ---

    def conflicting_meetings(
        self,
        room_id: str,
        start: datetime,
        end: datetime,
        exclude_meeting_id: Optional[str] = None,
    ) -> List[Meeting]:
        start, end = as_utc_naive(start), as_utc_naive(end)
        return (
            overlapping_meetings_query(self.db, room_id, start, end, exclude_meeting_id)
            .order_by(Meeting.start_time)
            .all()
        )

    def is_available(
        self,
        room_id: str,
        start: datetime,
        end: datetime,
        exclude_meeting_id: Optional[str] = None,
    ) -> bool:
        """
        True iff no scheduled or in-progress meeting in ``room_id`` overlaps
        [start, end), ignoring ``exclude_meeting_id``. Callers that write based
        on the answer must hold ``room_booking_guard`` for the room.
        """
        start, end = as_utc_naive(start), as_utc_naive(end)
        query = overlapping_meetings_query(self.db, room_id, start, end, exclude_meeting_id)
        return query.first() is None

    def _bookable_room(self, room_id: str, req_id) -> Room:
        room = self.db.get(Room, room_id)
        if room is None:
            logger.warning(f"[{req_id}] Room {room_id} not found.")
            raise NotFound(f"Room {room_id} not found.")
        if not room.is_active:
            logger.warning(f"[{req_id}] Room {room_id} is inactive.")
            raise RoomUnavailable(f"Room {room_id} is not available for booking.")
        return room

    def _require_slot(self, req_id, room_id, start, end, exclude_meeting_id=None) -> None:
        if not self.is_available(room_id, start, end, exclude_meeting_id):
            logger.warning(
                f"[{req_id}] Room {room_id} is already booked between {start} and {end}."
            )
            raise SchedulingConflict(
                "Room is not available for the requested time slot."
            )

    # --- Attendees ---

    def _active_users(self, user_ids: Iterable[str], req_id) -> List[User]:
        """Resolve ids to active users; unknown or inactive ids are skipped."""
        wanted = list(user_ids)
        if not wanted:
            return []
        found = (
            self.db.query(User)
            .filter(User.user_id.in_(wanted), User.is_active.is_(True))
            .all()
        )
        by_id = {user.user_id: user for user in found}
        skipped = [user_id for user_id in wanted if user_id not in by_id]
        if skipped:
            logger.warning(f"[{req_id}] Skipping unknown or inactive attendees: {skipped}")
        return [by_id[user_id] for user_id in wanted if user_id in by_id]

    def _reconcile_attendees(self, meeting: Meeting, requested: List[str], req_id) -> None:
        listed = self.validator.unique_ids(requested, exclude=meeting.organizer_id)
        listed_set = set(listed)
        current = {user.user_id for user in meeting.attendees}
        removed = [user for user in meeting.attendees if user.user_id not in listed_set]
        for user in removed:
            meeting.attendees.remove(user)
        added = self._active_users([uid for uid in listed if uid not in current], req_id)
        meeting.attendees.extend(added)
        if removed or added:
            logger.info(
                f"[{req_id}] Attendees for {meeting.meeting_id}: "
                f"+{[u.user_id for u in added]} -{[u.user_id for u in removed]}"
            )

    # --- Mutations ---

    def create_meeting(self, organizer_id: str, payload: MeetingCreate) -> Meeting:
        req_id = uuid.uuid4()
        logger.debug(f"[{req_id}] Creating meeting '{payload.title}' in room {payload.room_id}.")
        start, end = self.validator.validate_window(payload.start_time, payload.end_time)
        title = self.validator.require_text(payload.title, "title")
        self._bookable_room(payload.room_id, req_id)
        attendee_ids = self.validator.unique_ids(payload.attendee_ids, exclude=organizer_id)

        # The room lock does not cover id allocation, so a booking in another
        # room can take the same id first. Each retry re-runs the slot check.
        for attempt in range(1, MEETING_ID_ATTEMPTS + 1):
            with room_booking_guard(self.db, payload.room_id):
                self._require_slot(req_id, payload.room_id, start, end)

                organizer = self.db.get(User, organizer_id)
                if organizer is None or not organizer.is_active:
                    logger.warning(f"[{req_id}] Organizer {organizer_id} missing or inactive.")
                    raise OrganizerInvalid("Organizer does not exist or is inactive.")

                meeting = Meeting(
                    meeting_id=generate_meeting_id(self.db),
                    title=title,
                    description=payload.description,
                    start_time=start,
                    end_time=end,
                    status=MeetingStatus.SCHEDULED.value,
                    is_recurring=bool(payload.is_recurring),
                    recurrence_pattern=payload.recurrence_pattern,
                    organizer_id=organizer.user_id,
                    room_id=payload.room_id,
                )
                meeting.attendees = self._active_users(attendee_ids, req_id)
                self.db.add(meeting)
                try:
                    self.db.commit()
                    break
                except IntegrityError as exc:
                    self.db.rollback()
                    if attempt == MEETING_ID_ATTEMPTS:
                        logger.error(f"[{req_id}] Gave up allocating a meeting id: {exc.orig}")
                        raise Conflict("Could not allocate a meeting id, please retry.")
                    logger.warning(
                        f"[{req_id}] Meeting id {meeting.meeting_id} taken, retrying "
                        f"({attempt}/{MEETING_ID_ATTEMPTS})."
                    )

        logger.info(
            f"[{req_id}] Meeting {meeting.meeting_id} booked in {meeting.room_id} "
            f"[{start} - {end}) by {organizer_id}."
        )
        return self.get_meeting(meeting.meeting_id)

    def update_meeting(self, meeting_id: str, caller: User, patch: MeetingUpdate) -> Meeting:
        """
        Sparse update. Only fields present in ``patch`` change; a present
        ``attendee_ids`` (even empty) replaces the attendee set.

        Every field is validated before the meeting is touched.
        """
        req_id = uuid.uuid4()
        meeting = self.get_meeting(meeting_id)
        ensure_owner_or_role(caller, meeting.organizer_id, UserRole.MANAGER, "update this meeting")
        if meeting.is_terminal:
            raise InvalidState(f"Cannot update a {meeting.status} meeting.")

        start_given = patch.provided("start_time") and patch.start_time is not None
        end_given = patch.provided("end_time") and patch.end_time is not None
        new_start = as_utc_naive(patch.start_time) if start_given else meeting.start_time
        new_end = as_utc_naive(patch.end_time) if end_given else meeting.end_time
        room_given = patch.provided("room_id") and patch.room_id is not None
        target_room_id = patch.room_id if room_given else meeting.room_id
        room_changed = target_room_id != meeting.room_id

        changes = {}
        if patch.provided("title") and patch.title is not None:
            changes["title"] = self.validator.require_text(patch.title, "title")
        if patch.provided("description"):
            changes["description"] = patch.description
        if patch.provided("status") and patch.status is not None:
            changes["status"] = self.validator.parse_status(patch.status).value
        if patch.provided("is_recurring") and patch.is_recurring is not None:
            changes["is_recurring"] = bool(patch.is_recurring)
        if patch.provided("recurrence_pattern"):
            changes["recurrence_pattern"] = patch.recurrence_pattern
        if room_changed:
            self._bookable_room(target_room_id, req_id)

        with room_booking_guard(self.db, meeting.room_id, target_room_id):
            if start_given or end_given:
                new_start, new_end = self.validator.validate_window(
                    new_start, new_end, check_past=new_start != meeting.start_time
                )
            if start_given or end_given or room_changed:
                self._require_slot(req_id, target_room_id, new_start, new_end, meeting.meeting_id)

            meeting.start_time = new_start
            meeting.end_time = new_end
            meeting.room_id = target_room_id
            for field, value in changes.items():
                setattr(meeting, field, value)
            if patch.provided("attendee_ids") and patch.attendee_ids is not None:
                self._reconcile_attendees(meeting, patch.attendee_ids, req_id)
            self._commit(req_id, "update meeting")

        logger.info(f"[{req_id}] Meeting {meeting_id} updated by {caller.user_id}.")
        return self.get_meeting(meeting_id)

    def delete_meeting(self, meeting_id: str, caller: User) -> Meeting:
        """Soft delete: the row stays, with status cancelled."""
        req_id = uuid.uuid4()
        meeting = self.get_meeting(meeting_id)
        ensure_owner_or_role(caller, meeting.organizer_id, UserRole.MANAGER, "delete this meeting")
        if meeting.status_enum is MeetingStatus.COMPLETED:
            raise InvalidState("Cannot delete a completed meeting.")
        meeting.status = MeetingStatus.CANCELLED.value
        self._commit(req_id, "cancel meeting")
        logger.info(f"[{req_id}] Meeting {meeting_id} cancelled (deleted) by {caller.user_id}.")
        return meeting

    def _transition(self, meeting_id: str, caller: User, target: MeetingStatus) -> Meeting:
        req_id = uuid.uuid4()
        meeting = self.get_meeting(meeting_id)
        ensure_owner_or_role(
            caller, meeting.organizer_id, UserRole.MANAGER, f"mark this meeting {target.value}"
        )
        current = meeting.status_enum
        if current not in _TRANSITION_SOURCES[target]:
            logger.warning(
                f"[{req_id}] Rejected transition {current.value} -> {target.value} for {meeting_id}."
            )
            raise InvalidState(
                f"Cannot move a {current.value} meeting to {target.value}."
            )
        meeting.status = target.value
        self._commit(req_id, f"mark meeting {target.value}")
        logger.info(f"[{req_id}] Meeting {meeting_id}: {current.value} -> {target.value}.")
        return meeting

    def start_meeting(self, meeting_id: str, caller: User) -> Meeting:
        return self._transition(meeting_id, caller, MeetingStatus.IN_PROGRESS)

    def complete_meeting(self, meeting_id: str, caller: User) -> Meeting:
        return self._transition(meeting_id, caller, MeetingStatus.COMPLETED)

    def cancel_meeting(self, meeting_id: str, caller: User) -> Meeting:
        return self._transition(meeting_id, caller, MeetingStatus.CANCELLED)

    def _editable_meeting(self, meeting_id: str, caller: User, action: str) -> Meeting:
        meeting = self.get_meeting(meeting_id)
        ensure_owner_or_role(caller, meeting.organizer_id, UserRole.MANAGER, action)
        if meeting.is_terminal:
            raise InvalidState(f"Cannot change attendees of a {meeting.status} meeting.")
        return meeting

    def add_attendee(self, meeting_id: str, caller: User, user_id: str) -> Meeting:
        """Idempotent; adding the organizer or an existing attendee changes nothing."""
        req_id = uuid.uuid4()
        meeting = self._editable_meeting(meeting_id, caller, "manage attendees of this meeting")
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found.")
        if not user.is_active:
            raise ValidationFailed(f"User {user_id} is inactive.")
        if user.user_id == meeting.organizer_id or user.user_id in meeting.attendee_ids:
            logger.debug(f"[{req_id}] {user_id} already part of {meeting_id}; nothing to add.")
            return meeting
        meeting.attendees.append(user)
        self._commit(req_id, "add attendee")
        logger.info(f"[{req_id}] Added attendee {user_id} to {meeting_id}.")
        return meeting

    def remove_attendee(self, meeting_id: str, caller: User, user_id: str) -> Meeting:
        req_id = uuid.uuid4()
        meeting = self._editable_meeting(meeting_id, caller, "manage attendees of this meeting")
        present = [user for user in meeting.attendees if user.user_id == user_id]
        if not present:
            logger.debug(f"[{req_id}] {user_id} is not an attendee of {meeting_id}.")
            return meeting
        meeting.attendees.remove(present[0])
        self._commit(req_id, "remove attendee")
        logger.info(f"[{req_id}] Removed attendee {user_id} from {meeting_id}.")
        return meeting

    def list_attendees(self, meeting_id: str) -> List[User]:
        return list(self.get_meeting(meeting_id).attendees)

    # --- Queries ---

    @staticmethod
    def _involving(user_id: str):
        return or_(
            Meeting.organizer_id == user_id,
            Meeting.attendees.any(User.user_id == user_id),
        )

    def list_meetings(self, page: Optional[int] = None, limit: Optional[int] = None) -> Tuple[List[Meeting], int]:
        page_request = clamp_page(page, limit)
        query = self._meetings().order_by(Meeting.start_time.desc(), Meeting.meeting_id)
        return paginate(query, page_request)

    def filter_meetings(
        self,
        meeting_filter: MeetingFilter,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Tuple[List[Meeting], int]:
        page_request = clamp_page(page, limit)
        query = self._meetings()
        if meeting_filter.organizer_id:
            query = query.filter(Meeting.organizer_id == meeting_filter.organizer_id)
        if meeting_filter.room_id:
            query = query.filter(Meeting.room_id == meeting_filter.room_id)
        if meeting_filter.status:
            query = query.filter(Meeting.status == MeetingStatus(meeting_filter.status).value)
        if meeting_filter.start_date:
            query = query.filter(Meeting.start_time >= as_utc_naive(meeting_filter.start_date))
        if meeting_filter.end_date:
            query = query.filter(Meeting.end_time <= as_utc_naive(meeting_filter.end_date))
        if meeting_filter.user_id:
            query = query.filter(self._involving(meeting_filter.user_id))
        query = query.order_by(Meeting.start_time.desc(), Meeting.meeting_id)
        return paginate(query, page_request)

    def upcoming_meetings(self, user_id: Optional[str] = None, limit: Optional[int] = None) -> List[Meeting]:
        page_request = clamp_page(1, limit)
        query = self._meetings().filter(
            Meeting.start_time > self.validator.now(),
            Meeting.status == MeetingStatus.SCHEDULED.value,
        )
        if user_id:
            query = query.filter(self._involving(user_id))
        return query.order_by(Meeting.start_time, Meeting.meeting_id).limit(page_request.limit).all()

    def meetings_in_range(
        self, start: datetime, end: datetime, user_id: Optional[str] = None
    ) -> List[Meeting]:
        """Meetings lying entirely inside [start, end]."""
        start, end = self.validator.validate_range(start, end)
        query = self._meetings().filter(Meeting.start_time >= start, Meeting.end_time <= end)
        if user_id:
            query = query.filter(self._involving(user_id))
        return query.order_by(Meeting.start_time, Meeting.meeting_id).all()


def get_meeting_manager(db: Session = Depends(get_db)) -> MeetingManager:
    """Dependency provider for MeetingManager."""
    return MeetingManager(db)
