from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from roombook.database import Base

# Association table linking rooms to the shared feature tags they offer
room_features_table = Table(
    "room_room_features",
    Base.metadata,
    Column(
        "room_id",
        String(20),
        ForeignKey("rooms.room_id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "feature_id",
        String(20),
        ForeignKey("room_features.feature_id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Room(Base):
    __tablename__ = "rooms"
    __table_args__ = (CheckConstraint("capacity >= 1", name="ck_rooms_capacity_positive"),)

    room_id = Column(String(20), primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(String, nullable=True)
    capacity = Column(Integer, nullable=False)
    location = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    features = relationship(
        "RoomFeature",
        secondary=room_features_table,
        back_populates="rooms",
        order_by="RoomFeature.name",
    )
    meetings = relationship("Meeting", back_populates="room")

    def __repr__(self) -> str:
        return f"Room(room_id={self.room_id!r}, name={self.name!r}, capacity={self.capacity})"


class RoomFeature(Base):
    __tablename__ = "room_features"

    feature_id = Column(String(20), primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False, index=True)
    description = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    rooms = relationship(
        "Room",
        secondary=room_features_table,
        back_populates="features",
    )
