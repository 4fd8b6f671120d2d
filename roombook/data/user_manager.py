import logging
import uuid
from typing import List, Optional, Tuple

from fastapi import Depends
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from roombook.auth.identity import ResolvedIdentity
from roombook.auth.permissions import ensure_owner_or_role, ensure_role, has_role_at_least
from roombook.data.base_manager import BaseManager
from roombook.database import get_db
from roombook.errors import AlreadyInState, Conflict, Forbidden, NotFound
from roombook.models.user import User, UserRole
from roombook.schemas.user import UserCreate, UserUpdate
from roombook.utils.identifiers import generate_user_id
from roombook.utils.pagination import clamp_page, paginate
from roombook.utils.timeutils import utcnow

logger = logging.getLogger("roombook.users")


class UserManager(BaseManager):
    """User directory: lookups, profile edits, role and lifecycle changes."""

    # --- Lookups ---

    def get_user(self, user_id: str) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            logger.warning(f"User {user_id} not found.")
            raise NotFound(f"User {user_id} not found.")
        return user

    def get_user_by_email(self, email: str) -> Optional[User]:
        """Case-insensitive email lookup."""
        if not email:
            return None
        clean_email = email.strip().lower()
        return self.db.query(User).filter(func.lower(User.email) == clean_email).first()

    def get_user_by_provider_id(self, provider_user_id: str) -> Optional[User]:
        if not provider_user_id:
            return None
        return (
            self.db.query(User)
            .filter(User.provider_user_id == provider_user_id)
            .first()
        )

    def list_users(self, page: Optional[int] = None, limit: Optional[int] = None) -> Tuple[List[User], int]:
        page_request = clamp_page(page, limit)
        query = self.db.query(User).order_by(User.created_at.desc(), User.user_id)
        return paginate(query, page_request)

    def list_active_users(self) -> List[User]:
        return (
            self.db.query(User)
            .filter(User.is_active.is_(True))
            .order_by(User.first_name, User.last_name, User.user_id)
            .all()
        )

    def search_users(
        self, query_text: str, page: Optional[int] = None, limit: Optional[int] = None
    ) -> Tuple[List[User], int]:
        """Substring match on first/last/display name and email, case-insensitive."""
        page_request = clamp_page(page, limit)
        needle = f"%{(query_text or '').strip().lower()}%"
        query = (
            self.db.query(User)
            .filter(
                or_(
                    func.lower(User.first_name).like(needle),
                    func.lower(User.last_name).like(needle),
                    func.lower(func.coalesce(User.display_name, "")).like(needle),
                    func.lower(User.email).like(needle),
                )
            )
            .order_by(User.first_name, User.last_name, User.user_id)
        )
        return paginate(query, page_request)

    # --- Creation ---

    def _ensure_unique(self, email: Optional[str], provider_user_id: Optional[str], exclude_id: Optional[str] = None):
        if email:
            existing = self.get_user_by_email(email)
            if existing is not None and existing.user_id != exclude_id:
                raise Conflict(f"A user with email {email} already exists.")
        if provider_user_id:
            existing = self.get_user_by_provider_id(provider_user_id)
            if existing is not None and existing.user_id != exclude_id:
                raise Conflict("A user with this provider identity already exists.")

    def _insert_user(
        self,
        req_id,
        provider_user_id: str,
        email: str,
        first_name: str,
        last_name: str,
        display_name: Optional[str] = None,
        profile_picture: Optional[str] = None,
        role: UserRole = UserRole.EMPLOYEE,
    ) -> User:
        user = User(
            user_id=generate_user_id(self.db, first_name, last_name),
            provider_user_id=provider_user_id,
            email=email,
            first_name=first_name,
            last_name=last_name,
            display_name=display_name,
            profile_picture=profile_picture,
            role=UserRole.parse(role).value,
            is_active=True,
        )
        self.db.add(user)
        self._commit(req_id, "create user", f"A user with email {email} already exists.")
        self.db.refresh(user)
        logger.info(f"[{req_id}] Created user {user.user_id} ({email}) as {user.role}.")
        return user

    def create_user(self, caller: User, payload: UserCreate) -> User:
        """Admin-only explicit creation."""
        req_id = uuid.uuid4()
        ensure_role(caller, UserRole.ADMIN, "create users")
        email = self.validator.normalize_email(payload.email)
        self._ensure_unique(email, payload.provider_user_id)
        return self._insert_user(
            req_id,
            provider_user_id=payload.provider_user_id.strip(),
            email=email,
            first_name=self.validator.require_text(payload.first_name, "first_name", 100),
            last_name=self.validator.require_text(payload.last_name, "last_name", 100),
            display_name=payload.display_name,
            profile_picture=payload.profile_picture,
            role=payload.role,
        )

    def find_or_create_from_identity(self, identity: ResolvedIdentity) -> User:
        """
        Match by provider id, then by email (linking the provider id to the
        existing record), and otherwise create an active employee.
        """
        req_id = uuid.uuid4()
        user = self.get_user_by_provider_id(identity.provider_user_id)
        if user is not None:
            logger.debug(f"[{req_id}] Identity matched user {user.user_id} by provider id.")
            return user

        user = self.get_user_by_email(identity.email)
        if user is not None:
            logger.info(
                f"[{req_id}] Linking provider identity to existing user {user.user_id}."
            )
            user.provider_user_id = identity.provider_user_id
            if identity.display_name and not user.display_name:
                user.display_name = identity.display_name
            self._commit(req_id, "link provider identity")
            self.db.refresh(user)
            return user

        return self._insert_user(
            req_id,
            provider_user_id=identity.provider_user_id,
            email=self.validator.normalize_email(identity.email),
            first_name=identity.first_name,
            last_name=identity.last_name,
            display_name=identity.display_name,
        )

    def record_login(self, user: User) -> User:
        req_id = uuid.uuid4()
        user.last_login = utcnow()
        self._commit(req_id, "record login")
        self.db.refresh(user)
        return user

    # --- Updates ---

    def update_user(self, caller: User, user_id: str, patch: UserUpdate) -> User:
        """
        Sparse profile update. The user themself or a manager-or-above may edit;
        only admins may change ``role`` or ``is_active``.
        """
        req_id = uuid.uuid4()
        user = self.get_user(user_id)
        ensure_owner_or_role(caller, user.user_id, UserRole.MANAGER, "update this user")

        privileged = [name for name in ("role", "is_active") if patch.provided(name)]
        if privileged and not has_role_at_least(caller, UserRole.ADMIN):
            logger.warning(
                f"[{req_id}] {caller.user_id} tried to change {privileged} on {user_id}."
            )
            raise Forbidden("Only administrators can change role or active status.")

        if patch.provided("email") and patch.email is not None:
            email = self.validator.normalize_email(patch.email)
            self._ensure_unique(email, None, exclude_id=user.user_id)
            user.email = email
        for field in ("first_name", "last_name"):
            if patch.provided(field) and getattr(patch, field) is not None:
                setattr(
                    user,
                    field,
                    self.validator.require_text(getattr(patch, field), field, 100),
                )
        for field in ("display_name", "profile_picture"):
            if patch.provided(field):
                setattr(user, field, getattr(patch, field))
        if patch.provided("role") and patch.role is not None:
            user.role = self.validator.parse_role(patch.role).value
        if patch.provided("is_active") and patch.is_active is not None:
            user.is_active = bool(patch.is_active)

        self._commit(req_id, "update user", "A user with this email already exists.")
        self.db.refresh(user)
        logger.info(f"[{req_id}] Updated user {user_id}.")
        return user

    def update_user_role(self, caller: User, user_id: str, role) -> User:
        req_id = uuid.uuid4()
        ensure_role(caller, UserRole.ADMIN, "change user roles")
        new_role = self.validator.parse_role(role)
        user = self.get_user(user_id)
        previous = user.role
        user.role = new_role.value
        self._commit(req_id, "update user role")
        self.db.refresh(user)
        logger.info(f"[{req_id}] Role for {user_id} changed from {previous} to {new_role.value}.")
        return user

    def _set_active(self, req_id, user: User, active: bool) -> User:
        if bool(user.is_active) == active:
            state = "active" if active else "inactive"
            logger.warning(f"[{req_id}] User {user.user_id} is already {state}.")
            raise AlreadyInState(f"User {user.user_id} is already {state}.")
        user.is_active = active
        self._commit(req_id, "activate user" if active else "deactivate user")
        self.db.refresh(user)
        logger.info(
            f"[{req_id}] User {user.user_id} {'activated' if active else 'deactivated'}."
        )
        return user

    def activate_user(self, caller: User, user_id: str) -> User:
        req_id = uuid.uuid4()
        ensure_role(caller, UserRole.ADMIN, "activate users")
        return self._set_active(req_id, self.get_user(user_id), True)

    def deactivate_user(self, caller: User, user_id: str) -> User:
        req_id = uuid.uuid4()
        ensure_role(caller, UserRole.ADMIN, "deactivate users")
        return self._set_active(req_id, self.get_user(user_id), False)

    def delete_user(self, caller: User, user_id: str) -> User:
        """Users are never removed; deletion deactivates the record."""
        req_id = uuid.uuid4()
        ensure_role(caller, UserRole.ADMIN, "delete users")
        return self._set_active(req_id, self.get_user(user_id), False)

    def deactivate_self(self, caller: User) -> User:
        req_id = uuid.uuid4()
        return self._set_active(req_id, self.get_user(caller.user_id), False)


def get_user_manager(db: Session = Depends(get_db)) -> UserManager:
    """Dependency provider for UserManager."""
    req_id = uuid.uuid4()
    logger.debug(f"[{req_id}] get_user_manager called")
    return UserManager(db)
