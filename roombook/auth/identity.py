"""OAuth code exchange against the external identity provider.

Defaults target the Microsoft identity platform: the authorization code is
redeemed at ``<authority>/<tenant>/oauth2/v2.0/token`` and the profile is read
from Graph ``/me``.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from roombook.config.loader import get_identity_provider_settings
from roombook.errors import Unauthorized

logger = logging.getLogger("auth_module")


@dataclass(frozen=True)
class ResolvedIdentity:
    provider_user_id: str
    email: str
    first_name: str
    last_name: str
    display_name: Optional[str] = None


class IdentityResolver:
    def __init__(
        self,
        settings: Optional[Dict[str, Any]] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.settings = settings or get_identity_provider_settings()
        self._client = client

    @property
    def _tenant_base(self) -> str:
        return f"{self.settings['authority_url']}/{self.settings['tenant']}/oauth2/v2.0"

    @property
    def token_url(self) -> str:
        return f"{self._tenant_base}/token"

    def authorization_url(self, state: str) -> str:
        query = urlencode(
            {
                "client_id": self.settings["client_id"],
                "response_type": "code",
                "redirect_uri": self.settings["redirect_url"],
                "response_mode": "query",
                "scope": " ".join(self.settings["scopes"]),
                "state": state,
            }
        )
        return f"{self._tenant_base}/authorize?{query}"

    def _http(self) -> httpx.Client:
        if self._client is not None:
            return self._client
        return httpx.Client(timeout=self.settings["timeout_seconds"])

    def exchange_code(self, code: str) -> ResolvedIdentity:
        """Redeem ``code`` and return the verified profile; any failure is ``Unauthorized``."""
        req_id = uuid.uuid4()
        if not code or not code.strip():
            logger.warning(f"[{req_id}] Empty authorization code.")
            raise Unauthorized("Authorization code is required.")

        client = self._http()
        try:
            access_token = self._redeem_code(client, code.strip(), req_id)
            profile = self._fetch_profile(client, access_token, req_id)
        except httpx.HTTPError as exc:
            logger.error(f"[{req_id}] Identity provider request failed: {exc}")
            raise Unauthorized("Failed to authenticate with the identity provider.")
        finally:
            if self._client is None:
                client.close()

        identity = self._to_identity(profile, req_id)
        logger.info(f"[{req_id}] Resolved identity for {identity.email}.")
        return identity

    def _redeem_code(self, client: httpx.Client, code: str, req_id) -> str:
        response = client.post(
            self.token_url,
            data={
                "client_id": self.settings["client_id"],
                "client_secret": self.settings["client_secret"],
                "code": code,
                "redirect_uri": self.settings["redirect_url"],
                "grant_type": "authorization_code",
                "scope": " ".join(self.settings["scopes"]),
            },
            headers={"Accept": "application/json"},
        )
        if response.status_code != 200:
            logger.warning(
                f"[{req_id}] Token exchange rejected with status {response.status_code}."
            )
            raise Unauthorized("Failed to exchange authorization code.")
        token = response.json().get("access_token")
        if not token:
            logger.warning(f"[{req_id}] Token response carried no access_token.")
            raise Unauthorized("Failed to exchange authorization code.")
        return token

    def _fetch_profile(self, client: httpx.Client, access_token: str, req_id) -> Dict[str, Any]:
        response = client.get(
            f"{self.settings['graph_url']}/me",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if response.status_code != 200:
            logger.warning(
                f"[{req_id}] Profile lookup rejected with status {response.status_code}."
            )
            raise Unauthorized("Failed to read user profile from the identity provider.")
        return response.json()

    @staticmethod
    def _to_identity(profile: Dict[str, Any], req_id) -> ResolvedIdentity:
        provider_user_id = str(profile.get("id") or "").strip()
        email = (profile.get("mail") or profile.get("userPrincipalName") or "").strip().lower()
        if not provider_user_id or not email:
            logger.warning(f"[{req_id}] Profile is missing id or email.")
            raise Unauthorized("Identity provider returned an incomplete profile.")
        display_name = profile.get("displayName") or None
        first_name = (profile.get("givenName") or "").strip()
        last_name = (profile.get("surname") or "").strip()
        if not first_name and display_name:
            first_name = display_name.split(" ")[0]
        return ResolvedIdentity(
            provider_user_id=provider_user_id,
            email=email,
            first_name=first_name or email.split("@")[0],
            last_name=last_name or "-",
            display_name=display_name,
        )


def get_identity_resolver() -> IdentityResolver:
    """Dependency provider for IdentityResolver."""
    return IdentityResolver()
