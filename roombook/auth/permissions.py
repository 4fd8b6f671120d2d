"""Role ordering checks.

Roles are totally ordered (admin > manager > employee), so every check here is
a rank comparison. These helpers raise ``Forbidden`` and are called by the
managers before each mutation; the FastAPI dependency wrappers live in
``roombook.auth.auth``.
"""

import logging
from typing import Optional

from roombook.errors import Forbidden
from roombook.models.user import User, UserRole

logger = logging.getLogger("auth_module")


def has_role_at_least(user: Optional[User], required: UserRole) -> bool:
    if user is None or not user.role:
        return False
    try:
        return UserRole.parse(user.role).at_least(required)
    except ValueError:
        logger.error(f"User {user.user_id} carries unknown role '{user.role}'.")
        return False


def is_owner_or_role(user: Optional[User], owner_id: Optional[str], required: UserRole) -> bool:
    if user is None:
        return False
    if owner_id is not None and user.user_id == owner_id:
        return True
    return has_role_at_least(user, required)


def ensure_role(user: User, required: UserRole, action: str = "perform this action") -> None:
    if not has_role_at_least(user, required):
        logger.warning(
            f"Role check failed: user {getattr(user, 'user_id', None)} "
            f"({getattr(user, 'role', None)}) needs {UserRole(required).value} to {action}."
        )
        raise Forbidden(f"You do not have permission to {action}.")


def ensure_owner_or_role(
    user: User,
    owner_id: Optional[str],
    required: UserRole,
    action: str = "modify this resource",
) -> None:
    """Allow the resource owner, or anyone ranked ``required`` or higher."""
    if not is_owner_or_role(user, owner_id, required):
        logger.warning(
            f"Ownership check failed: user {getattr(user, 'user_id', None)} "
            f"is not {owner_id} and lacks {UserRole(required).value} to {action}."
        )
        raise Forbidden(f"You do not have permission to {action}.")
