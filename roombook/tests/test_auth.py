from datetime import timedelta

import pytest
from jose import jwt

from conftest import auth_headers, make_user
from roombook.auth.auth import (
    ALGORITHM,
    JWT_ISSUER,
    create_access_token,
    decode_access_token,
    refresh_access_token,
    validate_secret_key,
)
from roombook.auth.permissions import (
    ensure_owner_or_role,
    ensure_role,
    has_role_at_least,
    is_owner_or_role,
)
from roombook.errors import Forbidden, Unauthorized
from roombook.models.user import UserRole


@pytest.mark.parametrize(
    "role, required, expected",
    [
        (UserRole.ADMIN, UserRole.MANAGER, True),
        (UserRole.ADMIN, UserRole.ADMIN, True),
        (UserRole.MANAGER, UserRole.MANAGER, True),
        (UserRole.MANAGER, UserRole.ADMIN, False),
        (UserRole.EMPLOYEE, UserRole.EMPLOYEE, True),
        (UserRole.EMPLOYEE, UserRole.MANAGER, False),
    ],
)
def test_role_ordering(db_session, role, required, expected):
    user = make_user(db_session, "Rank", role.value.title(), role)
    assert has_role_at_least(user, required) is expected


def test_owner_or_role(employee_user, other_employee, manager_user):
    assert is_owner_or_role(employee_user, employee_user.user_id, UserRole.MANAGER)
    assert not is_owner_or_role(other_employee, employee_user.user_id, UserRole.MANAGER)
    assert is_owner_or_role(manager_user, employee_user.user_id, UserRole.MANAGER)
    assert not is_owner_or_role(None, employee_user.user_id, UserRole.EMPLOYEE)

    with pytest.raises(Forbidden):
        ensure_owner_or_role(other_employee, employee_user.user_id, UserRole.MANAGER)
    with pytest.raises(Forbidden):
        ensure_role(employee_user, UserRole.ADMIN, "manage users")


def test_unknown_role_has_no_privileges(employee_user):
    employee_user.role = "superhero"
    assert not has_role_at_least(employee_user, UserRole.EMPLOYEE)


def test_validate_secret_key_length():
    assert not validate_secret_key("")
    assert not validate_secret_key("short")
    assert validate_secret_key("x" * 32)


def test_token_round_trip(employee_user):
    claims = decode_access_token(create_access_token(employee_user))
    assert claims["sub"] == employee_user.user_id
    assert claims["email"] == employee_user.email
    assert claims["role"] == "employee"
    assert claims["iss"] == JWT_ISSUER


def test_expired_and_forged_tokens_are_rejected(employee_user):
    expired = create_access_token(employee_user, expires_delta=timedelta(seconds=-5))
    with pytest.raises(Unauthorized):
        decode_access_token(expired)

    forged = jwt.encode(
        {"sub": employee_user.user_id, "iss": JWT_ISSUER},
        "not-the-real-secret-key-but-long-enough",
        algorithm=ALGORITHM,
    )
    with pytest.raises(Unauthorized):
        decode_access_token(forged)


def test_refresh_picks_up_current_role(db_session, employee_user):
    token = create_access_token(employee_user)
    employee_user.role = UserRole.MANAGER.value
    db_session.commit()
    refreshed = decode_access_token(refresh_access_token(token, db_session))
    assert refreshed["role"] == "manager"


def test_me_requires_a_token(client):
    response = client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["kind"] == "unauthorized"
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_me_returns_the_caller(client, employee_user):
    response = client.get("/api/auth/me", headers=auth_headers(employee_user))
    assert response.status_code == 200
    assert response.json()["user_id"] == employee_user.user_id


def test_inactive_user_token_is_rejected(client, db_session, employee_user):
    headers = auth_headers(employee_user)
    employee_user.is_active = False
    db_session.commit()
    response = client.get("/api/auth/me", headers=headers)
    assert response.status_code == 401


def test_refresh_endpoint(client, employee_user):
    response = client.post("/api/auth/refresh", headers=auth_headers(employee_user))
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert decode_access_token(body["access_token"])["sub"] == employee_user.user_id


def test_login_returns_provider_url(client):
    response = client.get("/api/auth/login")
    assert response.status_code == 200
    body = response.json()
    assert "/oauth2/v2.0/authorize?" in body["auth_url"]
    assert f"state={body['state']}" in body["auth_url"]
