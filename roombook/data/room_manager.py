import logging
import uuid
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from fastapi import Depends
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from roombook.auth.permissions import ensure_role
from roombook.data.base_manager import BaseManager
from roombook.data.scheduling import busy_room_ids, overlapping_meetings_query
from roombook.database import get_db
from roombook.errors import AlreadyInState, Conflict, NotFound
from roombook.models.meeting import Meeting
from roombook.models.room import Room, RoomFeature
from roombook.models.user import User, UserRole
from roombook.schemas.room import (
    RoomCreate,
    RoomFeatureCreate,
    RoomFeatureUpdate,
    RoomUpdate,
)
from roombook.utils.identifiers import generate_feature_id, generate_room_id
from roombook.utils.pagination import clamp_page, paginate

logger = logging.getLogger("roombook.rooms")


class RoomManager(BaseManager):
    """Room catalog and room feature tags."""

    def _rooms(self):
        return self.db.query(Room).options(selectinload(Room.features))

    def get_room(self, room_id: str) -> Room:
        room = self._rooms().filter(Room.room_id == room_id).first()
        if room is None:
            logger.warning(f"Room {room_id} not found.")
            raise NotFound(f"Room {room_id} not found.")
        return room

    def list_rooms(self, page: Optional[int] = None, limit: Optional[int] = None) -> Tuple[List[Room], int]:
        page_request = clamp_page(page, limit)
        return paginate(self._rooms().order_by(Room.name, Room.room_id), page_request)

    def list_active_rooms(self) -> List[Room]:
        return (
            self._rooms()
            .filter(Room.is_active.is_(True))
            .order_by(Room.name, Room.room_id)
            .all()
        )

    def search_rooms(
        self, query_text: str, page: Optional[int] = None, limit: Optional[int] = None
    ) -> Tuple[List[Room], int]:
        page_request = clamp_page(page, limit)
        needle = f"%{(query_text or '').strip().lower()}%"
        query = (
            self._rooms()
            .filter(
                or_(
                    func.lower(Room.name).like(needle),
                    func.lower(func.coalesce(Room.description, "")).like(needle),
                    func.lower(func.coalesce(Room.location, "")).like(needle),
                )
            )
            .order_by(Room.name, Room.room_id)
        )
        return paginate(query, page_request)

    def _resolve_features(self, feature_ids: Optional[Iterable[str]], req_id) -> List[RoomFeature]:
        """Look up feature ids; unknown ids are dropped instead of failing the request."""
        wanted = self.validator.unique_ids(feature_ids)
        if not wanted:
            return []
        found = self.db.query(RoomFeature).filter(RoomFeature.feature_id.in_(wanted)).all()
        by_id = {feature.feature_id: feature for feature in found}
        missing = [feature_id for feature_id in wanted if feature_id not in by_id]
        if missing:
            logger.warning(f"[{req_id}] Ignoring unknown feature ids: {missing}")
        return [by_id[feature_id] for feature_id in wanted if feature_id in by_id]

    def create_room(self, caller: User, payload: RoomCreate) -> Room:
        req_id = uuid.uuid4()
        ensure_role(caller, UserRole.MANAGER, "create rooms")
        name = self.validator.require_text(payload.name, "name", 100)
        room = Room(
            room_id=generate_room_id(self.db, name),
            name=name,
            description=payload.description,
            capacity=self.validator.validate_capacity(payload.capacity),
            location=payload.location,
            is_active=True,
        )
        room.features = self._resolve_features(payload.feature_ids, req_id)
        self.db.add(room)
        self._commit(req_id, "create room")
        logger.info(f"[{req_id}] Created room {room.room_id} ({name}, capacity {room.capacity}).")
        return self.get_room(room.room_id)

    def update_room(self, caller: User, room_id: str, patch: RoomUpdate) -> Room:
        req_id = uuid.uuid4()
        ensure_role(caller, UserRole.MANAGER, "update rooms")
        room = self.get_room(room_id)
        if patch.provided("name") and patch.name is not None:
            room.name = self.validator.require_text(patch.name, "name", 100)
        if patch.provided("capacity") and patch.capacity is not None:
            room.capacity = self.validator.validate_capacity(patch.capacity)
        for field in ("description", "location"):
            if patch.provided(field):
                setattr(room, field, getattr(patch, field))
        if patch.provided("is_active") and patch.is_active is not None:
            room.is_active = bool(patch.is_active)
        if patch.provided("feature_ids"):
            room.features = self._resolve_features(patch.feature_ids, req_id)
        self._commit(req_id, "update room")
        logger.info(f"[{req_id}] Updated room {room_id}.")
        return self.get_room(room_id)

    def delete_room(self, caller: User, room_id: str) -> Room:
        """Rooms are never removed; deletion deactivates them."""
        req_id = uuid.uuid4()
        ensure_role(caller, UserRole.MANAGER, "delete rooms")
        room = self.get_room(room_id)
        if not room.is_active:
            logger.warning(f"[{req_id}] Room {room_id} is already inactive.")
            raise AlreadyInState(f"Room {room_id} is already inactive.")
        room.is_active = False
        self._commit(req_id, "deactivate room")
        logger.info(f"[{req_id}] Deactivated room {room_id}.")
        return room

    # --- Availability ---

    def get_available_rooms(
        self, start: datetime, end: datetime, capacity: Optional[int] = None
    ) -> List[Room]:
        """Active rooms of at least ``capacity`` seats with no blocking booking in [start, end)."""
        start, end = self.validator.validate_range(start, end)
        query = self._rooms().filter(
            Room.is_active.is_(True),
            Room.room_id.notin_(busy_room_ids(start, end)),
        )
        if capacity is not None:
            query = query.filter(Room.capacity >= capacity)
        return query.order_by(Room.capacity, Room.name, Room.room_id).all()

    def check_room_availability(self, room_id: str, start: datetime, end: datetime) -> Dict:
        start, end = self.validator.validate_range(start, end)
        room = self.get_room(room_id)
        conflicts = (
            overlapping_meetings_query(self.db, room.room_id, start, end)
            .order_by(Meeting.start_time)
            .all()
        )
        return {
            "room_id": room.room_id,
            "start_time": start,
            "end_time": end,
            "available": not conflicts,
            "conflicts": conflicts,
        }

    # --- Features ---

    def get_feature(self, feature_id: str) -> RoomFeature:
        feature = self.db.get(RoomFeature, feature_id)
        if feature is None:
            raise NotFound(f"Room feature {feature_id} not found.")
        return feature

    def list_features(self) -> List[RoomFeature]:
        return self.db.query(RoomFeature).order_by(RoomFeature.name).all()

    def _ensure_feature_name_free(self, name: str, exclude_id: Optional[str] = None) -> None:
        existing = (
            self.db.query(RoomFeature)
            .filter(func.lower(RoomFeature.name) == name.lower())
            .first()
        )
        if existing is not None and existing.feature_id != exclude_id:
            raise Conflict(f"A room feature named '{name}' already exists.")

    def create_feature(self, caller: User, payload: RoomFeatureCreate) -> RoomFeature:
        req_id = uuid.uuid4()
        ensure_role(caller, UserRole.MANAGER, "create room features")
        name = self.validator.require_text(payload.name, "name", 100)
        self._ensure_feature_name_free(name)
        feature = RoomFeature(
            feature_id=generate_feature_id(self.db, name),
            name=name,
            description=payload.description,
        )
        self.db.add(feature)
        self._commit(req_id, "create room feature", f"A room feature named '{name}' already exists.")
        self.db.refresh(feature)
        logger.info(f"[{req_id}] Created room feature {feature.feature_id} ({name}).")
        return feature

    def update_feature(self, caller: User, feature_id: str, patch: RoomFeatureUpdate) -> RoomFeature:
        req_id = uuid.uuid4()
        ensure_role(caller, UserRole.MANAGER, "update room features")
        feature = self.get_feature(feature_id)
        if patch.provided("name") and patch.name is not None:
            name = self.validator.require_text(patch.name, "name", 100)
            self._ensure_feature_name_free(name, exclude_id=feature_id)
            feature.name = name
        if patch.provided("description"):
            feature.description = patch.description
        self._commit(req_id, "update room feature", "A room feature with this name already exists.")
        self.db.refresh(feature)
        return feature

    def delete_feature(self, caller: User, feature_id: str) -> None:
        """Remove the feature and its room links; the rooms themselves are untouched."""
        req_id = uuid.uuid4()
        ensure_role(caller, UserRole.MANAGER, "delete room features")
        feature = self.get_feature(feature_id)
        feature.rooms.clear()
        self.db.delete(feature)
        self._commit(req_id, "delete room feature")
        logger.info(f"[{req_id}] Deleted room feature {feature_id}.")


def get_room_manager(db: Session = Depends(get_db)) -> RoomManager:
    """Dependency provider for RoomManager."""
    return RoomManager(db)
