from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from roombook.schemas.common import PatchModel


class RoomFeatureBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, json_schema_extra={"example": "Projector"})
    description: Optional[str] = None


class RoomFeatureCreate(RoomFeatureBase):
    pass


class RoomFeatureUpdate(PatchModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None


class RoomFeature(RoomFeatureBase):
    feature_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class RoomCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, json_schema_extra={"example": "Orion"})
    description: Optional[str] = None
    capacity: int = Field(..., ge=1, json_schema_extra={"example": 8})
    location: Optional[str] = Field(None, json_schema_extra={"example": "Floor 3, East wing"})
    feature_ids: List[str] = Field(default_factory=list)


class RoomUpdate(PatchModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=1)
    location: Optional[str] = None
    is_active: Optional[bool] = None
    # When sent, replaces the whole feature set.
    feature_ids: Optional[List[str]] = None


class Room(BaseModel):
    room_id: str
    name: str
    description: Optional[str] = None
    capacity: int
    location: Optional[str] = None
    is_active: bool
    features: List[RoomFeature] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class RoomSummary(BaseModel):
    room_id: str
    name: str
    capacity: int
    location: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ConflictingMeeting(BaseModel):
    meeting_id: str
    title: str
    start_time: datetime
    end_time: datetime
    status: str
    organizer_id: str

    model_config = ConfigDict(from_attributes=True)


class RoomAvailability(BaseModel):
    room_id: str
    start_time: datetime
    end_time: datetime
    available: bool
    conflicts: List[ConflictingMeeting] = Field(default_factory=list)
