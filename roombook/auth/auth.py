import logging
import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from roombook.auth.permissions import ensure_owner_or_role, ensure_role
from roombook.config.loader import get_access_token_expire_minutes, is_production_mode
from roombook.database import get_db
from roombook.errors import Unauthorized
from roombook.models.user import User as UserModel
from roombook.models.user import UserRole

logger = logging.getLogger("auth_module")


# --- Configuration ---
def generate_dev_key() -> str:
    """Generate a throwaway signing key for development environments ONLY."""
    key = secrets.token_urlsafe(48)
    logger.warning(
        "\n"
        + "*" * 80
        + "\n"
        + "DEVELOPMENT MODE: Using generated secret key.\n"
        + "Tokens will not survive a restart and this is NOT secure for production.\n"
        + "Set ROOMBOOK_JWT_SECRET_KEY in your environment variables for production.\n"
        + "*" * 80
    )
    return key


def validate_secret_key(key: str) -> bool:
    if not key:
        return False
    if len(key) < 32:
        logger.error("JWT secret key must be at least 32 characters long.")
        return False
    return True


def _load_secret_key() -> str:
    key = os.getenv("ROOMBOOK_JWT_SECRET_KEY")
    if not key:
        if is_production_mode():
            raise RuntimeError(
                "Missing ROOMBOOK_JWT_SECRET_KEY while ROOMBOOK_ENV is set to production. "
                + "Configure a strong static secret before startup."
            )
        return generate_dev_key()
    if not validate_secret_key(key):
        raise RuntimeError(
            "Invalid JWT secret key configuration. "
            + "The key must be at least 32 characters long. "
            + "Update ROOMBOOK_JWT_SECRET_KEY in your environment variables."
        )
    logger.info("JWT secret key validated and loaded from environment.")
    return key


SECRET_KEY = _load_secret_key()
ALGORITHM = "HS256"
JWT_ISSUER = os.getenv("ROOMBOOK_JWT_ISSUER", "roombook")
ACCESS_TOKEN_EXPIRE_MINUTES = get_access_token_expire_minutes()


# --- Token Utilities ---


def build_token_claims(user: UserModel) -> Dict[str, Any]:
    return {
        "sub": user.user_id,
        "email": user.email,
        "role": user.role,
        "provider_id": user.provider_user_id,
    }


def create_access_token(user: UserModel, expires_delta: Optional[timedelta] = None) -> str:
    """
    Issue a signed JWT for ``user``.
    The subject is the user's ``user_id``; role and email ride along for clients.
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = build_token_claims(user)
    to_encode.update({"exp": expire, "iat": now, "iss": JWT_ISSUER})

    try:
        encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    except JWTError as e:
        logger.error(
            f"Error creating access token for subject {user.user_id}: {str(e)}",
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not create access token due to an internal error.",
        )
    logger.info(f"Issued access token for subject: {user.user_id}")
    return encoded_jwt


def decode_access_token(token: str) -> Dict[str, Any]:
    """Verify signature, expiry and issuer; raises ``Unauthorized`` on any failure."""
    try:
        payload = jwt.decode(
            token,
            SECRET_KEY,
            algorithms=[ALGORITHM],
            issuer=JWT_ISSUER,
            options={"verify_aud": False},
        )
    except JWTError as e:
        logger.warning(f"Rejected access token: {str(e)}")
        raise Unauthorized("Invalid or expired token.")
    if not payload.get("sub"):
        logger.error("Token decoding error: 'sub' claim missing in token payload.")
        raise Unauthorized("Invalid or expired token.")
    return payload


def _load_active_user(db: Session, user_id: str) -> UserModel:
    user = db.get(UserModel, user_id)
    if user is None:
        logger.warning(f"Token subject {user_id} no longer exists.")
        raise Unauthorized("User associated with token not found.")
    if not user.is_active:
        logger.warning(f"Token subject {user_id} is deactivated.")
        raise Unauthorized("User account is inactive.")
    return user


def refresh_access_token(token: str, db: Session) -> str:
    """Reissue a token for a still-valid one, picking up the user's current role."""
    payload = decode_access_token(token)
    user = _load_active_user(db, payload["sub"])
    return create_access_token(user)


def get_bearer_token(request: Request) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    header = request.headers.get("Authorization")
    if not header:
        logger.debug("No Authorization header in request.")
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        logger.debug("Authorization header is not a bearer credential.")
        return None
    return token.strip()


# --- User Retrieval Dependencies ---


async def get_current_active_user(
    request: Request,
    token: Optional[str] = Depends(get_bearer_token),
    db: Session = Depends(get_db),
) -> UserModel:
    """
    Resolve the caller from the bearer token.
    Missing/invalid tokens, and tokens whose user is gone or inactive, are ``Unauthorized``.
    """
    if token is None:
        logger.warning("Authentication required: no bearer token supplied.")
        raise Unauthorized()
    payload = decode_access_token(token)
    user = _load_active_user(db, payload["sub"])
    # Plain snapshot for middlewares that run after the session is closed.
    request.state.caller = {
        "user_id": user.user_id,
        "email": user.email,
        "role": user.role,
    }
    logger.debug(f"Authenticated request as {user.user_id} ({user.role}).")
    return user


# --- Role Dependencies ---


def require_role(required: UserRole):
    """Dependency factory: caller's role must rank at least ``required``."""

    async def _dependency(
        current_user: UserModel = Depends(get_current_active_user),
    ) -> UserModel:
        ensure_role(current_user, required)
        return current_user

    return _dependency


def require_owner_or_role(required: UserRole, path_param: str = "user_id"):
    """
    Dependency factory: the caller must be the user named by ``path_param`` in
    the URL, or hold at least ``required``.
    """

    async def _dependency(
        request: Request,
        current_user: UserModel = Depends(get_current_active_user),
    ) -> UserModel:
        ensure_owner_or_role(current_user, request.path_params.get(path_param), required)
        return current_user

    return _dependency
