import pytest

from conftest import auth_headers
from roombook.auth.identity import ResolvedIdentity, get_identity_resolver
from roombook.errors import Unauthorized
from roombook.main import app


class StubResolver:
    def __init__(self, identity=None):
        self.identity = identity

    def authorization_url(self, state):
        return f"https://login.example.com/authorize?state={state}"

    def exchange_code(self, code):
        if self.identity is None:
            raise Unauthorized("Failed to exchange authorization code.")
        return self.identity


@pytest.fixture
def resolver_override():
    def _install(identity):
        app.dependency_overrides[get_identity_resolver] = lambda: StubResolver(identity)

    yield _install
    app.dependency_overrides.pop(get_identity_resolver, None)


def test_callback_creates_user_and_issues_token(client, resolver_override):
    resolver_override(
        ResolvedIdentity(
            provider_user_id="aad-77",
            email="new.hire@example.com",
            first_name="New",
            last_name="Hire",
        )
    )
    response = client.get("/api/auth/callback", params={"code": "abc", "state": "xyz"})
    assert response.status_code == 200
    body = response.json()
    assert body["user"]["email"] == "new.hire@example.com"
    assert body["user"]["role"] == "employee"
    assert body["user"]["last_login"] is not None

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.json()["user_id"] == body["user"]["user_id"]


def test_callback_rejects_inactive_user(client, db_session, employee_user, resolver_override):
    employee_user.is_active = False
    db_session.commit()
    resolver_override(
        ResolvedIdentity(
            provider_user_id=employee_user.provider_user_id,
            email=employee_user.email,
            first_name=employee_user.first_name,
            last_name=employee_user.last_name,
        )
    )
    response = client.get("/api/auth/callback", params={"code": "abc", "state": "xyz"})
    assert response.status_code == 401


def test_callback_provider_failure(client, resolver_override):
    resolver_override(None)
    assert client.get("/api/auth/callback", params={"code": "abc", "state": "xyz"}).status_code == 401


def test_admin_creates_user(client, admin_user, employee_user):
    payload = {
        "email": "Fresh.Face@Example.com",
        "first_name": "Fresh",
        "last_name": "Face",
        "provider_user_id": "aad-fresh",
        "role": "manager",
    }
    forbidden = client.post("/api/users", json=payload, headers=auth_headers(employee_user))
    assert forbidden.status_code == 403

    created = client.post("/api/users", json=payload, headers=auth_headers(admin_user))
    assert created.status_code == 201
    assert created.json()["email"] == "fresh.face@example.com"
    assert created.json()["user_id"] == "USR-FACEXXF-001"

    duplicate = client.post("/api/users", json=payload, headers=auth_headers(admin_user))
    assert duplicate.status_code == 409


def test_owner_updates_profile(client, employee_user, other_employee):
    own = client.put(
        f"/api/users/{employee_user.user_id}",
        json={"display_name": "E."},
        headers=auth_headers(employee_user),
    )
    assert own.status_code == 200
    assert own.json()["display_name"] == "E."

    foreign = client.put(
        f"/api/users/{employee_user.user_id}",
        json={"display_name": "Nope"},
        headers=auth_headers(other_employee),
    )
    assert foreign.status_code == 403


def test_role_endpoint_is_admin_only(client, admin_user, manager_user, employee_user):
    url = f"/api/users/{employee_user.user_id}/role"
    assert client.put(url, json={"role": "manager"}, headers=auth_headers(manager_user)).status_code == 403
    response = client.put(url, json={"role": "manager"}, headers=auth_headers(admin_user))
    assert response.status_code == 200
    assert response.json()["role"] == "manager"


def test_deactivate_and_activate(client, admin_user, employee_user):
    headers = auth_headers(admin_user)
    url = f"/api/users/{employee_user.user_id}"
    assert client.delete(url, headers=headers).json()["is_active"] is False
    assert client.post(f"{url}/deactivate", headers=headers).status_code == 409
    assert client.post(f"{url}/activate", headers=headers).json()["is_active"] is True


def test_self_deactivation_locks_out(client, employee_user):
    headers = auth_headers(employee_user)
    response = client.post("/api/users/me/deactivate", headers=headers)
    assert response.status_code == 200
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_search_and_list_users(client, employee_user, other_employee):
    headers = auth_headers(employee_user)
    found = client.get("/api/users/search", params={"q": "olga"}, headers=headers).json()
    assert [u["user_id"] for u in found["items"]] == [other_employee.user_id]

    listing = client.get("/api/users", params={"limit": 1}, headers=headers).json()
    assert listing["pagination"]["total"] == 2
    assert listing["pagination"]["total_pages"] == 2


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_request_id_is_echoed(client, employee_user):
    response = client.get("/api/auth/me", headers={**auth_headers(employee_user), "X-Request-ID": "req-42"})
    assert response.headers["X-Request-ID"] == "req-42"


def test_callback_requires_state(client, resolver_override):
    resolver_override(None)
    assert client.get("/api/auth/callback", params={"code": "abc"}).status_code == 422
    assert client.get("/api/auth/callback", params={"code": "abc", "state": ""}).status_code == 422
