from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from roombook.database import Base


class UserRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"

    @property
    def rank(self) -> int:
        return _ROLE_RANKS[self]

    def at_least(self, required: "UserRole") -> bool:
        """True when this role is the same as or more privileged than ``required``."""
        return self.rank >= UserRole(required).rank

    @classmethod
    def parse(cls, value) -> "UserRole":
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


_ROLE_RANKS = {
    UserRole.EMPLOYEE: 1,
    UserRole.MANAGER: 2,
    UserRole.ADMIN: 3,
}


class User(Base):
    __tablename__ = "users"

    user_id = Column(String(20), primary_key=True, index=True)
    provider_user_id = Column(String(128), unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    display_name = Column(String, nullable=True)
    profile_picture = Column(String, nullable=True)
    role = Column(String, default=UserRole.EMPLOYEE.value, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    organized_meetings = relationship(
        "Meeting",
        back_populates="organizer",
        foreign_keys="Meeting.organizer_id",
    )

    # Meetings this user attends (not organizes)
    attended_meetings = relationship(
        "Meeting",
        secondary="meeting_attendees",
        back_populates="attendees",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def role_enum(self) -> UserRole:
        return UserRole.parse(self.role)

    def is_manager(self) -> bool:
        return self.role_enum.at_least(UserRole.MANAGER)

    def is_admin(self) -> bool:
        return self.role_enum is UserRole.ADMIN
