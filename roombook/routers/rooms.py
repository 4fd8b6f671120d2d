import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from roombook.auth.auth import get_current_active_user, require_role
from roombook.data.room_manager import RoomManager, get_room_manager
from roombook.models.user import User as UserModel
from roombook.models.user import UserRole
from roombook.schemas.common import MessageResponse, Page
from roombook.schemas.room import (
    Room,
    RoomAvailability,
    RoomCreate,
    RoomFeature,
    RoomFeatureCreate,
    RoomFeatureUpdate,
    RoomUpdate,
)
from roombook.utils.pagination import clamp_page, pagination_meta

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rooms", tags=["rooms"])
features_router = APIRouter(prefix="/api/room-features", tags=["room-features"])


def _page(items, total, page, limit) -> dict:
    return {
        "items": [Room.model_validate(item) for item in items],
        "pagination": pagination_meta(clamp_page(page, limit), total),
    }


@router.post("", response_model=Room, status_code=status.HTTP_201_CREATED)
def create_room(
    payload: RoomCreate,
    current_user: UserModel = Depends(require_role(UserRole.MANAGER)),
    room_manager: RoomManager = Depends(get_room_manager),
):
    return room_manager.create_room(current_user, payload)


@router.get("", response_model=Page[Room])
def list_rooms(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    current_user: UserModel = Depends(get_current_active_user),
    room_manager: RoomManager = Depends(get_room_manager),
):
    items, total = room_manager.list_rooms(page, limit)
    return _page(items, total, page, limit)


@router.get("/active", response_model=List[Room])
def list_active_rooms(
    current_user: UserModel = Depends(get_current_active_user),
    room_manager: RoomManager = Depends(get_room_manager),
):
    return room_manager.list_active_rooms()


@router.get("/available", response_model=List[Room])
def get_available_rooms(
    start_time: datetime = Query(...),
    end_time: datetime = Query(...),
    capacity: Optional[int] = Query(None, ge=1),
    current_user: UserModel = Depends(get_current_active_user),
    room_manager: RoomManager = Depends(get_room_manager),
):
    return room_manager.get_available_rooms(start_time, end_time, capacity)


@router.get("/search", response_model=Page[Room])
def search_rooms(
    q: str = Query("", description="Matches name, description or location"),
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    current_user: UserModel = Depends(get_current_active_user),
    room_manager: RoomManager = Depends(get_room_manager),
):
    items, total = room_manager.search_rooms(q, page, limit)
    return _page(items, total, page, limit)


@router.get("/{room_id}", response_model=Room)
def get_room(
    room_id: str,
    current_user: UserModel = Depends(get_current_active_user),
    room_manager: RoomManager = Depends(get_room_manager),
):
    return room_manager.get_room(room_id)


@router.put("/{room_id}", response_model=Room)
def update_room(
    room_id: str,
    payload: RoomUpdate,
    current_user: UserModel = Depends(require_role(UserRole.MANAGER)),
    room_manager: RoomManager = Depends(get_room_manager),
):
    return room_manager.update_room(current_user, room_id, payload)


@router.delete("/{room_id}", response_model=Room)
def delete_room(
    room_id: str,
    current_user: UserModel = Depends(require_role(UserRole.MANAGER)),
    room_manager: RoomManager = Depends(get_room_manager),
):
    return room_manager.delete_room(current_user, room_id)


@router.get("/{room_id}/availability", response_model=RoomAvailability)
def check_room_availability(
    room_id: str,
    start_time: datetime = Query(...),
    end_time: datetime = Query(...),
    current_user: UserModel = Depends(get_current_active_user),
    room_manager: RoomManager = Depends(get_room_manager),
):
    return room_manager.check_room_availability(room_id, start_time, end_time)


# --- Room features ---


@features_router.post("", response_model=RoomFeature, status_code=status.HTTP_201_CREATED)
def create_feature(
    payload: RoomFeatureCreate,
    current_user: UserModel = Depends(require_role(UserRole.MANAGER)),
    room_manager: RoomManager = Depends(get_room_manager),
):
    return room_manager.create_feature(current_user, payload)


@features_router.get("", response_model=List[RoomFeature])
def list_features(
    current_user: UserModel = Depends(get_current_active_user),
    room_manager: RoomManager = Depends(get_room_manager),
):
    return room_manager.list_features()


@features_router.get("/{feature_id}", response_model=RoomFeature)
def get_feature(
    feature_id: str,
    current_user: UserModel = Depends(get_current_active_user),
    room_manager: RoomManager = Depends(get_room_manager),
):
    return room_manager.get_feature(feature_id)


@features_router.put("/{feature_id}", response_model=RoomFeature)
def update_feature(
    feature_id: str,
    payload: RoomFeatureUpdate,
    current_user: UserModel = Depends(require_role(UserRole.MANAGER)),
    room_manager: RoomManager = Depends(get_room_manager),
):
    return room_manager.update_feature(current_user, feature_id, payload)


@features_router.delete("/{feature_id}", response_model=MessageResponse)
def delete_feature(
    feature_id: str,
    current_user: UserModel = Depends(require_role(UserRole.MANAGER)),
    room_manager: RoomManager = Depends(get_room_manager),
):
    room_manager.delete_feature(current_user, feature_id)
    return MessageResponse(message=f"Room feature {feature_id} deleted.")
