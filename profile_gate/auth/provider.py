"""
Auth0 sign-in, delegated to Authlib's Starlette OAuth client.

The client owns the OpenID Connect handshake (discovery, state/nonce,
code exchange, ID token validation). It keeps its handshake state in
`request.session`, so the login leg and the callback leg are tied together
only through the session.
"""

import json
import logging
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx
from authlib.integrations.starlette_client import OAuth, OAuthError
from fastapi import Request
from starlette.responses import Response

from profile_gate.config import Settings

logger = logging.getLogger(__name__)

AUTH0_SCOPE = "openid profile email"


@dataclass(frozen=True)
class LoginResult:
    """Outcome of the callback leg: a profile on success, a reason on failure."""

    profile: dict | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.profile is not None


def build_profile(userinfo: dict) -> dict:
    profile = dict(userinfo)
    profile["provider"] = "auth0"
    profile["id"] = userinfo.get("sub")
    profile["user_id"] = userinfo.get("sub")
    profile["_raw"] = json.dumps(userinfo)
    profile["_json"] = dict(userinfo)
    return profile


class Auth0Provider:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.oauth = OAuth()
        self.client = self.oauth.register(
            name="auth0",
            client_id=settings.auth0_client_id,
            client_secret=settings.auth0_client_secret,
            server_metadata_url=settings.server_metadata_url,
            client_kwargs={"scope": AUTH0_SCOPE},
        )

    async def begin_login(self, request: Request) -> Response:
        return await self.client.authorize_redirect(request, self.settings.auth0_callback_url)

    async def complete_login(self, request: Request) -> LoginResult:
        error = request.query_params.get("error")
        if error:
            description = request.query_params.get("error_description")
            return LoginResult(error=f"{error}: {description}" if description else error)

        try:
            token = await self.client.authorize_access_token(request)
            userinfo = token.get("userinfo")
            if not userinfo:
                userinfo = await self.client.userinfo(token=token)
        except OAuthError as e:
            return LoginResult(error=f"{e.error}: {e.description}" if e.description else str(e.error))
        except httpx.HTTPError as e:
            logger.warning(f"Identity provider request failed: {e}")
            return LoginResult(error="identity provider unreachable")

        if not userinfo or not userinfo.get("sub"):
            return LoginResult(error="identity provider returned no subject")
        return LoginResult(profile=build_profile(dict(userinfo)))

    def logout_url(self, return_to: str) -> str:
        params = {"client_id": self.settings.auth0_client_id, "returnTo": return_to}
        return f"https://{self.settings.auth0_domain}/v2/logout?{urlencode(params)}"
