"""Input checks shared by the managers.

Each manager owns a ``BookingValidator`` instance; there is no module-level
validator state.
"""

import re
from datetime import datetime
from typing import Iterable, List, Optional

from roombook.errors import ValidationFailed
from roombook.models.meeting import MeetingStatus
from roombook.models.user import UserRole
from roombook.utils.timeutils import as_utc_naive, utcnow

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

TITLE_MAX_LENGTH = 200
NAME_MAX_LENGTH = 100


class BookingValidator:
    def __init__(self, clock=utcnow):
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def validate_window(
        self,
        start: datetime,
        end: datetime,
        check_past: bool = True,
    ) -> tuple:
        """Normalise a [start, end) window to naive UTC and reject bad ones.

        ``end`` must be strictly after ``start``. With ``check_past`` a start
        before the current time is rejected as well.
        """
        if start is None or end is None:
            raise ValidationFailed("Both start_time and end_time are required.")
        start = as_utc_naive(start)
        end = as_utc_naive(end)
        if end <= start:
            raise ValidationFailed("end_time must be after start_time.")
        if check_past and start < self.now():
            raise ValidationFailed("Cannot schedule a meeting in the past.")
        return start, end

    def validate_range(self, start: datetime, end: datetime) -> tuple:
        return self.validate_window(start, end, check_past=False)

    @staticmethod
    def require_text(value: Optional[str], field: str, max_length: int = TITLE_MAX_LENGTH) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValidationFailed(f"{field} is required.")
        if len(cleaned) > max_length:
            raise ValidationFailed(f"{field} must be at most {max_length} characters.")
        return cleaned

    @staticmethod
    def validate_capacity(capacity) -> int:
        try:
            value = int(capacity)
        except (TypeError, ValueError):
            raise ValidationFailed("capacity must be an integer.")
        if value < 1:
            raise ValidationFailed("capacity must be at least 1.")
        return value

    @staticmethod
    def normalize_email(email: Optional[str]) -> str:
        cleaned = (email or "").strip().lower()
        if not cleaned or not _EMAIL_PATTERN.match(cleaned):
            raise ValidationFailed("A valid email address is required.")
        return cleaned

    @staticmethod
    def parse_role(value) -> UserRole:
        try:
            return UserRole.parse(value)
        except ValueError:
            allowed = ", ".join(role.value for role in UserRole)
            raise ValidationFailed(f"Invalid role '{value}'. Expected one of: {allowed}.")

    @staticmethod
    def parse_status(value) -> MeetingStatus:
        if isinstance(value, MeetingStatus):
            return value
        try:
            return MeetingStatus(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(status.value for status in MeetingStatus)
            raise ValidationFailed(f"Invalid status '{value}'. Expected one of: {allowed}.")

    @staticmethod
    def unique_ids(values: Optional[Iterable[str]], exclude: Optional[str] = None) -> List[str]:
        """Deduplicate identifiers preserving order, dropping blanks and ``exclude``."""
        cleaned: List[str] = []
        seen = set()
        for raw in values or []:
            identifier = str(raw or "").strip()
            if not identifier or identifier == exclude or identifier in seen:
                continue
            seen.add(identifier)
            cleaned.append(identifier)
        return cleaned
