"""REST client for the scan history and auth server."""

import logging

import requests
from pydantic import TypeAdapter
from pydantic import ValidationError

from src.config import HISTORY_API_URL
from src.datamodels import HistoryRecord

logger = logging.getLogger(__name__)

AUTH_NOT_CONFIGURED = "Google Client ID not configured"


class HistoryServiceError(Exception):
    """Raised when the history server cannot be reached or answers with an error."""


class HistorySaveError(HistoryServiceError):
    """Raised when a scan summary cannot be saved to history."""


class AuthNotConfiguredError(HistoryServiceError):
    """Raised when the server has no Google OAuth client configured."""


def save_history(
    user_id: str,
    original_text: str,
    translated_text: str,
    image_data: str | None,
    base_url: str = HISTORY_API_URL,
) -> int:
    """Store a scan summary for a user.

    Returns:
        Id of the new history record.

    Raises:
        HistorySaveError: If the request fails or the server rejects it.
    """
    payload = {
        "userId": user_id,
        "originalText": original_text,
        "translatedText": translated_text,
        "imageData": image_data,
    }
    try:
        response = requests.post(f"{base_url}/api/history", json=payload, timeout=10)
        response.raise_for_status()
        return int(response.json()["id"])
    except requests.RequestException as e:
        raise HistorySaveError(f"Failed to save history for user {user_id}: {e}") from e
    except (KeyError, ValueError, TypeError) as e:
        raise HistorySaveError(f"Invalid history save response: {e}") from e


def fetch_history(user_id: str, base_url: str = HISTORY_API_URL) -> list[HistoryRecord]:
    """Fetch a user's scan history, newest first.

    Raises:
        HistoryServiceError: If the request fails or returns invalid data.
    """
    try:
        response = requests.get(f"{base_url}/api/history", params={"userId": user_id}, timeout=10)
        response.raise_for_status()
        return TypeAdapter(list[HistoryRecord]).validate_python(response.json())
    except requests.RequestException as e:
        raise HistoryServiceError(f"Failed to fetch history for user {user_id}: {e}") from e
    except (ValidationError, ValueError) as e:
        raise HistoryServiceError(f"Invalid history response: {e}") from e


def get_auth_url(base_url: str = HISTORY_API_URL) -> str:
    """Get the Google sign-in URL from the server.

    Raises:
        AuthNotConfiguredError: If the server has no OAuth client id.
        HistoryServiceError: On any other failure.
    """
    try:
        response = requests.get(f"{base_url}/api/auth/url", timeout=10)
        data = response.json()
    except requests.RequestException as e:
        raise HistoryServiceError(f"Failed to fetch auth URL: {e}") from e
    except ValueError as e:
        raise HistoryServiceError(f"Invalid auth URL response: {e}") from e

    if not response.ok:
        error = data.get("error", response.reason) if isinstance(data, dict) else response.reason
        if error == AUTH_NOT_CONFIGURED:
            raise AuthNotConfiguredError(error)
        raise HistoryServiceError(f"Auth URL request failed: {error}")

    try:
        return data["url"]
    except (KeyError, TypeError) as e:
        raise HistoryServiceError(f"Invalid auth URL response: {e}") from e
