from urllib.parse import parse_qs

import httpx
import pytest

from roombook.auth.identity import IdentityResolver
from roombook.errors import Unauthorized

SETTINGS = {
    "client_id": "client-abc",
    "client_secret": "shh",
    "redirect_url": "http://testserver/api/auth/callback",
    "tenant": "contoso",
    "authority_url": "https://login.example.com",
    "graph_url": "https://graph.example.com/v1.0",
    "scopes": ["openid", "User.Read"],
    "timeout_seconds": 5,
}


def _resolver(handler) -> IdentityResolver:
    return IdentityResolver(settings=SETTINGS, client=httpx.Client(transport=httpx.MockTransport(handler)))


def _provider(profile, token_status=200, profile_status=200, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/oauth2/v2.0/token"):
            if seen is not None:
                seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(token_status, json={"access_token": "provider-token"})
        if request.url.path.endswith("/me"):
            if seen is not None:
                seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(profile_status, json=profile)
        return httpx.Response(404)

    return handler


def test_exchange_code_resolves_profile():
    seen = {}
    resolver = _resolver(
        _provider(
            {
                "id": "aad-1",
                "mail": "Jane.Doe@Example.com",
                "givenName": "Jane",
                "surname": "Doe",
                "displayName": "Jane Doe",
            },
            seen=seen,
        )
    )
    identity = resolver.exchange_code("auth-code")

    assert identity.provider_user_id == "aad-1"
    assert identity.email == "jane.doe@example.com"
    assert (identity.first_name, identity.last_name) == ("Jane", "Doe")
    assert seen["form"]["code"] == ["auth-code"]
    assert seen["form"]["grant_type"] == ["authorization_code"]
    assert seen["auth"] == "Bearer provider-token"


def test_missing_mail_falls_back_to_principal_name():
    resolver = _resolver(
        _provider({"id": "aad-2", "userPrincipalName": "kim@example.com", "displayName": "Kim Lee"})
    )
    identity = resolver.exchange_code("auth-code")
    assert identity.email == "kim@example.com"
    assert identity.first_name == "Kim"
    assert identity.last_name == "-"


@pytest.mark.parametrize(
    "token_status, profile_status, profile",
    [
        (400, 200, {"id": "aad-3", "mail": "x@example.com"}),
        (200, 401, {"id": "aad-3", "mail": "x@example.com"}),
        (200, 200, {"id": "aad-3"}),
    ],
)
def test_provider_failures_are_unauthorized(token_status, profile_status, profile):
    resolver = _resolver(_provider(profile, token_status, profile_status))
    with pytest.raises(Unauthorized):
        resolver.exchange_code("auth-code")


def test_transport_errors_are_unauthorized():
    def handler(request):
        raise httpx.ConnectError("provider down", request=request)

    with pytest.raises(Unauthorized):
        _resolver(handler).exchange_code("auth-code")


def test_blank_code_is_unauthorized():
    with pytest.raises(Unauthorized):
        _resolver(_provider({})).exchange_code("  ")


def test_authorization_url_targets_tenant():
    url = IdentityResolver(settings=SETTINGS).authorization_url("xyz")
    assert url.startswith("https://login.example.com/contoso/oauth2/v2.0/authorize?")
    assert "client_id=client-abc" in url
    assert "state=xyz" in url
