from .auth import (
    create_access_token,
    decode_access_token,
    refresh_access_token,
    get_bearer_token,
    get_current_active_user,
    require_role,
    require_owner_or_role,
    ACCESS_TOKEN_EXPIRE_MINUTES,
    ALGORITHM,
)
from .permissions import (
    has_role_at_least,
    is_owner_or_role,
    ensure_role,
    ensure_owner_or_role,
)

__all__ = [
    "create_access_token",
    "decode_access_token",
    "refresh_access_token",
    "get_bearer_token",
    "get_current_active_user",
    "require_role",
    "require_owner_or_role",
    "ACCESS_TOKEN_EXPIRE_MINUTES",
    "ALGORITHM",
    "has_role_at_least",
    "is_owner_or_role",
    "ensure_role",
    "ensure_owner_or_role",
]
