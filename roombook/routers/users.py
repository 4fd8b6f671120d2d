import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from roombook.auth.auth import get_current_active_user, require_owner_or_role, require_role
from roombook.data.user_manager import UserManager, get_user_manager
from roombook.models.user import User as UserModel
from roombook.models.user import UserRole
from roombook.schemas.common import Page
from roombook.schemas.user import User, UserCreate, UserRoleUpdate, UserUpdate
from roombook.utils.pagination import clamp_page, pagination_meta

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


def _page(items, total, page, limit) -> dict:
    return {
        "items": [User.model_validate(item) for item in items],
        "pagination": pagination_meta(clamp_page(page, limit), total),
    }


@router.post("", response_model=User, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    current_user: UserModel = Depends(require_role(UserRole.ADMIN)),
    user_manager: UserManager = Depends(get_user_manager),
):
    return user_manager.create_user(current_user, payload)


@router.get("", response_model=Page[User])
def list_users(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    current_user: UserModel = Depends(get_current_active_user),
    user_manager: UserManager = Depends(get_user_manager),
):
    items, total = user_manager.list_users(page, limit)
    return _page(items, total, page, limit)


@router.get("/active", response_model=List[User])
def list_active_users(
    current_user: UserModel = Depends(get_current_active_user),
    user_manager: UserManager = Depends(get_user_manager),
):
    return user_manager.list_active_users()


@router.get("/search", response_model=Page[User])
def search_users(
    q: str = Query("", description="Matches name, display name or email"),
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    current_user: UserModel = Depends(get_current_active_user),
    user_manager: UserManager = Depends(get_user_manager),
):
    items, total = user_manager.search_users(q, page, limit)
    return _page(items, total, page, limit)


@router.post("/me/deactivate", response_model=User)
def deactivate_self(
    current_user: UserModel = Depends(get_current_active_user),
    user_manager: UserManager = Depends(get_user_manager),
):
    return user_manager.deactivate_self(current_user)


@router.get("/{user_id}", response_model=User)
def get_user(
    user_id: str,
    current_user: UserModel = Depends(get_current_active_user),
    user_manager: UserManager = Depends(get_user_manager),
):
    return user_manager.get_user(user_id)


@router.put("/{user_id}", response_model=User)
def update_user(
    user_id: str,
    payload: UserUpdate,
    current_user: UserModel = Depends(require_owner_or_role(UserRole.MANAGER)),
    user_manager: UserManager = Depends(get_user_manager),
):
    return user_manager.update_user(current_user, user_id, payload)


@router.delete("/{user_id}", response_model=User)
def delete_user(
    user_id: str,
    current_user: UserModel = Depends(require_role(UserRole.ADMIN)),
    user_manager: UserManager = Depends(get_user_manager),
):
    return user_manager.delete_user(current_user, user_id)


@router.put("/{user_id}/role", response_model=User)
def update_user_role(
    user_id: str,
    payload: UserRoleUpdate,
    current_user: UserModel = Depends(require_role(UserRole.ADMIN)),
    user_manager: UserManager = Depends(get_user_manager),
):
    return user_manager.update_user_role(current_user, user_id, payload.role)


@router.post("/{user_id}/activate", response_model=User)
def activate_user(
    user_id: str,
    current_user: UserModel = Depends(require_role(UserRole.ADMIN)),
    user_manager: UserManager = Depends(get_user_manager),
):
    return user_manager.activate_user(current_user, user_id)


@router.post("/{user_id}/deactivate", response_model=User)
def deactivate_user(
    user_id: str,
    current_user: UserModel = Depends(require_role(UserRole.ADMIN)),
    user_manager: UserManager = Depends(get_user_manager),
):
    return user_manager.deactivate_user(current_user, user_id)
