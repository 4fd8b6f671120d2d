"""Human-readable identifiers for users, rooms, features and meetings.

Every identifier is ``<prefix>-<sequence>``; the sequence is one more than the
highest existing value sharing the prefix.
"""
import re
import string
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from roombook.models.meeting import Meeting
from roombook.models.room import Room, RoomFeature
from roombook.models.user import User

STEM_LENGTH = 6
SEQUENCE_WIDTH = 3
MEETING_SUFFIX_WIDTH = 4

_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_BASE36 = string.digits + string.ascii_uppercase


def name_stem(value: Optional[str], length: int = STEM_LENGTH) -> str:
    """Uppercase alphanumerics of ``value``, cut or padded with X to ``length``."""
    letters = _NON_ALNUM.sub("", (value or "").upper())
    return letters[:length].ljust(length, "X")


def to_base36(number: int) -> str:
    if number < 0:
        raise ValueError("number must be non-negative")
    encoded = ""
    while True:
        number, digit = divmod(number, 36)
        encoded = _BASE36[digit] + encoded
        if number == 0:
            return encoded


def _allocate(db: Session, column, prefix: str, base: int = 10) -> int:
    # Tails are zero padded but may outgrow the padding, so longer wins before
    # lexical order. Uppercase base36 digits sort correctly at equal length.
    newest = (
        db.query(column)
        .filter(column.like(f"{prefix}-%"))
        .order_by(func.length(column).desc(), column.desc())
        .limit(1)
        .scalar()
    )
    if newest is None:
        return 1
    try:
        return int(newest.rsplit("-", 1)[-1], base) + 1
    except ValueError:
        # Hand-entered rows with a non-numeric tail restart the counter.
        return 1


def user_id_prefix(first_name: Optional[str], last_name: Optional[str]) -> str:
    return f"USR-{name_stem(last_name)}{name_stem(first_name, 1)}"


def generate_user_id(db: Session, first_name: Optional[str], last_name: Optional[str]) -> str:
    """USR-<surname stem><first initial>-NNN, e.g. USR-LOVELAA-001."""
    prefix = user_id_prefix(first_name, last_name)
    return f"{prefix}-{_allocate(db, User.user_id, prefix):0{SEQUENCE_WIDTH}d}"


def generate_room_id(db: Session, name: Optional[str]) -> str:
    prefix = f"RM-{name_stem(name)}"
    return f"{prefix}-{_allocate(db, Room.room_id, prefix):0{SEQUENCE_WIDTH}d}"


def generate_feature_id(db: Session, name: Optional[str]) -> str:
    prefix = f"FTR-{name_stem(name)}"
    return f"{prefix}-{_allocate(db, RoomFeature.feature_id, prefix):0{SEQUENCE_WIDTH}d}"


def generate_meeting_id(db: Session, created_at: Optional[datetime] = None) -> str:
    """MTGYYYYMMDD-XXXX with a base36 counter that restarts each UTC day."""
    moment = created_at or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    prefix = f"MTG{moment:%Y%m%d}"
    sequence = _allocate(db, Meeting.meeting_id, prefix, base=36)
    return f"{prefix}-{to_base36(sequence).rjust(MEETING_SUFFIX_WIDTH, '0')}"
