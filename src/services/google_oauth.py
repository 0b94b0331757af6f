"""Google OAuth 2.0 helpers for the sign-in flow."""

import logging
from urllib.parse import urlencode

import requests

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

SCOPES = [
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
]


class OAuthError(Exception):
    """Raised when the code exchange or the userinfo request fails."""


def build_auth_url(client_id: str, redirect_uri: str) -> str:
    """Build the Google consent screen URL."""
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": " ".join(SCOPES),
        "access_type": "offline",
        "prompt": "consent",
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


def exchange_code(code: str, client_id: str, client_secret: str, redirect_uri: str) -> dict:
    """Exchange an authorization code for tokens.

    Raises:
        OAuthError: If Google rejects the code or the request fails.
    """
    try:
        response = requests.post(
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": client_id,
                "client_secret": client_secret,
                "redirect_uri": redirect_uri,
                "grant_type": "authorization_code",
            },
            timeout=10,
        )
        tokens = response.json()
    except requests.RequestException as e:
        raise OAuthError(f"Token request failed: {e}") from e

    if "error" in tokens:
        raise OAuthError(tokens.get("error_description") or tokens["error"])
    return tokens


def fetch_user_info(access_token: str) -> dict:
    """Fetch the signed-in user's Google profile.

    Raises:
        OAuthError: If the request fails.
    """
    try:
        response = requests.get(
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=10,
        )
        response.raise_for_status()
        return response.json()
    except requests.RequestException as e:
        raise OAuthError(f"Userinfo request failed: {e}") from e
