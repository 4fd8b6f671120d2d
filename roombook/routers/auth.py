import logging
import secrets

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel

from roombook.auth.auth import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    create_access_token,
    get_bearer_token,
    get_current_active_user,
    refresh_access_token,
)
from roombook.auth.identity import IdentityResolver, get_identity_resolver
from roombook.data.user_manager import UserManager, get_user_manager
from roombook.errors import Unauthorized
from roombook.models.user import User as UserModel
from roombook.schemas.common import MessageResponse
from roombook.schemas.user import User as UserSchema

logger = logging.getLogger("auth_module")

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginRedirect(BaseModel):
    auth_url: str
    state: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserSchema


class RefreshResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


@router.get("/login", response_model=LoginRedirect)
def login(resolver: IdentityResolver = Depends(get_identity_resolver)):
    """Hand the client the provider authorization URL and a random state value."""
    state = secrets.token_urlsafe(24)
    return LoginRedirect(auth_url=resolver.authorization_url(state), state=state)


@router.get("/callback", response_model=TokenResponse)
def callback(
    code: str = Query(..., min_length=1),
    state: str = Query(..., min_length=1),
    resolver: IdentityResolver = Depends(get_identity_resolver),
    user_manager: UserManager = Depends(get_user_manager),
):
    identity = resolver.exchange_code(code)
    user = user_manager.find_or_create_from_identity(identity)
    if not user.is_active:
        logger.warning(f"Login refused for deactivated user {user.user_id}.")
        raise Unauthorized("User account is inactive.")
    user = user_manager.record_login(user)
    token = create_access_token(user)
    logger.info(f"User {user.user_id} logged in via identity provider.")
    return TokenResponse(
        access_token=token,
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserSchema.model_validate(user),
    )


@router.post("/refresh", response_model=RefreshResponse)
def refresh(request: Request, user_manager: UserManager = Depends(get_user_manager)):
    token = get_bearer_token(request)
    if token is None:
        raise Unauthorized()
    return RefreshResponse(
        access_token=refresh_access_token(token, user_manager.db),
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.post("/logout", response_model=MessageResponse)
def logout(current_user: UserModel = Depends(get_current_active_user)):
    # Tokens are stateless; clients drop theirs.
    logger.info(f"User {current_user.user_id} logged out.")
    return MessageResponse(message="Logged out successfully.")


@router.get("/me", response_model=UserSchema)
def me(current_user: UserModel = Depends(get_current_active_user)):
    return current_user
