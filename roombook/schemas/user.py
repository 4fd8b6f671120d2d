from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from roombook.models.user import UserRole
from roombook.schemas.common import PatchModel


class UserBase(BaseModel):
    email: str = Field(..., json_schema_extra={"example": "jane.doe@example.com"})
    first_name: str = Field(..., min_length=1, max_length=100, json_schema_extra={"example": "Jane"})
    last_name: str = Field(..., min_length=1, max_length=100, json_schema_extra={"example": "Doe"})
    display_name: Optional[str] = Field(None, max_length=200)
    profile_picture: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value


class UserCreate(UserBase):
    provider_user_id: str = Field(..., min_length=1, max_length=128)
    role: UserRole = UserRole.EMPLOYEE


class UserUpdate(PatchModel):
    email: Optional[str] = None
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    display_name: Optional[str] = Field(None, max_length=200)
    profile_picture: Optional[str] = None
    # Only admins may send these two.
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


class UserRoleUpdate(BaseModel):
    role: UserRole


class User(UserBase):
    user_id: str
    provider_user_id: str
    role: UserRole
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserSummary(BaseModel):
    """Compact user shape embedded in meeting responses."""

    user_id: str
    email: str
    first_name: str
    last_name: str
    display_name: Optional[str] = None
    role: UserRole

    model_config = ConfigDict(from_attributes=True)
