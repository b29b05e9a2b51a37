"""
Google OAuth 2.0 authorization-code flow.

The user is redirected to Google's consent screen with a signed, short-lived
state value. On callback the code is exchanged for an access token and the
OpenID userinfo profile is read.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode

import httpx
from jose import JWTError, jwt

from quill.core.config import settings

logger = logging.getLogger(__name__)

AUTHORIZATION_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
USERINFO_ENDPOINT = "https://openidconnect.googleapis.com/v1/userinfo"
DEFAULT_TIMEOUT = 10.0


class OAuthError(Exception):
    """The provider rejected the exchange or returned an unusable profile"""


@dataclass(frozen=True)
class GoogleProfile:
    id: str
    email: str
    first_name: str
    last_name: Optional[str]
    picture: Optional[str]


def split_display_name(display_name: str) -> tuple[str, Optional[str]]:
    """'Wina Safitri' -> ('Wina', 'Safitri'); only the first two words are used"""
    parts = display_name.split()
    if not parts:
        return "", None
    return parts[0], parts[1] if len(parts) > 1 else None


class GoogleOAuthClient:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        callback_url: str,
        state_secret: str,
        state_expire_minutes: int = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.callback_url = callback_url
        self._state_secret = state_secret
        self._state_lifetime = timedelta(minutes=state_expire_minutes)
        # Tests inject httpx.MockTransport here
        self._transport = transport

    def create_state(self) -> str:
        expire = datetime.now(timezone.utc) + self._state_lifetime
        return jwt.encode(
            {"nonce": secrets.token_urlsafe(16), "purpose": "google-oauth", "exp": expire},
            self._state_secret,
            algorithm="HS256",
        )

    def verify_state(self, state: Optional[str]) -> bool:
        if not state:
            return False
        try:
            claims = jwt.decode(state, self._state_secret, algorithms=["HS256"])
        except JWTError:
            return False
        return claims.get("purpose") == "google-oauth"

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.callback_url,
            "response_type": "code",
            "scope": "openid email profile",
            "access_type": "offline",
            "prompt": "select_account",
            "state": state,
        }
        return f"{AUTHORIZATION_ENDPOINT}?{urlencode(params)}"

    async def fetch_profile(self, code: str) -> GoogleProfile:
        """Exchange an authorization code and read the signed-in user's profile"""
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=DEFAULT_TIMEOUT) as client:
                token_response = await client.post(
                    TOKEN_ENDPOINT,
                    data={
                        "code": code,
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "redirect_uri": self.callback_url,
                        "grant_type": "authorization_code",
                    },
                )
                token_response.raise_for_status()
                access_token = token_response.json().get("access_token")
                if not access_token:
                    raise OAuthError("token response has no access_token")

                userinfo_response = await client.get(
                    USERINFO_ENDPOINT,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                userinfo_response.raise_for_status()
                userinfo = userinfo_response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Google OAuth exchange failed: {e}")
            raise OAuthError("google authentication failed") from e

        return self._to_profile(userinfo)

    @staticmethod
    def _to_profile(userinfo: dict) -> GoogleProfile:
        subject = userinfo.get("sub")
        email = userinfo.get("email")
        if not subject or not email:
            raise OAuthError("google profile is missing id or email")

        first_name, last_name = split_display_name(userinfo.get("name") or "")
        return GoogleProfile(
            id=str(subject),
            email=email,
            first_name=userinfo.get("given_name") or first_name or email.split("@")[0],
            last_name=userinfo.get("family_name") or last_name,
            picture=userinfo.get("picture"),
        )


google_client = GoogleOAuthClient(
    client_id=settings.GOOGLE_CLIENT_ID,
    client_secret=settings.GOOGLE_CLIENT_SECRET,
    callback_url=settings.CALLBACK_URL,
    state_secret=settings.SECRET_KEY,
    state_expire_minutes=settings.OAUTH_STATE_EXPIRE_MINUTES,
)
