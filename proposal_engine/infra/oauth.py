"""Generation-service credentials: direct API key or OAuth2 client credentials."""

from __future__ import annotations

import logging
import time

import requests

from proposal_engine.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

OFFICIAL_OPENAI_BASE_URL = "https://api.openai.com/v1"

AUTH_MODE_API_KEY = "api_key"
AUTH_MODE_OAUTH = "oauth"

_OAUTH_SETTING_NAMES = ("OAUTH_URL", "CLIENT_ID", "CLIENT_SECRET", "AZURE_BASE_URL")


def fetch_oauth_access_token(
    oauth_url: str,
    client_id: str,
    client_secret: str,
    *,
    attempts: int = 3,
    timeout_seconds: int = 60,
    backoff_seconds: float = 2.0,
) -> str:
    """Exchange client credentials for a bearer token, retrying transient failures."""
    payload = {
        "grant_type": "client_credentials",
        "client_id": client_id,
        "client_secret": client_secret,
    }

    last_error: Exception | None = None
    with requests.Session() as session:
        for attempt_num in range(1, attempts + 1):
            try:
                response = session.post(oauth_url, data=payload, timeout=timeout_seconds)
                response.raise_for_status()
                token = response.json().get("access_token")
                if not token:
                    raise ValueError("token endpoint response has no access_token")
                logger.info("Obtained OAuth token for client_id=%s", client_id)
                return str(token)
            except (requests.exceptions.RequestException, ValueError) as exc:
                last_error = exc
                logger.warning(
                    "Token request %d/%d to %s failed: %s", attempt_num, attempts, oauth_url, exc
                )
                if attempt_num < attempts:
                    time.sleep(backoff_seconds * attempt_num)

    raise RuntimeError("Unable to obtain OAuth access token") from last_error


def _oauth_values(settings: Settings) -> dict[str, str]:
    return {name: getattr(settings, name, "").strip() for name in _OAUTH_SETTING_NAMES}


def detect_auth_mode(settings: Settings | None = None) -> str:
    """Pick the credential mode implied by the configured settings.

    An API key always wins. OAuth needs all four of its settings; a partial
    OAuth configuration is reported rather than silently ignored.
    """
    settings = settings or get_settings()

    if settings.OPENAI_API_KEY.strip():
        return AUTH_MODE_API_KEY

    oauth_values = _oauth_values(settings)
    if all(oauth_values.values()):
        return AUTH_MODE_OAUTH

    missing = [name for name, value in oauth_values.items() if not value]
    if len(missing) < len(oauth_values):
        raise ValueError("Incomplete OAuth configuration. Missing: " + ", ".join(missing))

    raise ValueError(
        "No generation service credentials configured. Set OPENAI_API_KEY, "
        "or OAUTH_URL, CLIENT_ID, CLIENT_SECRET and AZURE_BASE_URL."
    )


def resolve_credentials(settings: Settings | None = None) -> tuple[str, str, str]:
    """Return (api_key_or_token, base_url, mode)."""
    settings = settings or get_settings()
    mode = detect_auth_mode(settings)

    if mode == AUTH_MODE_API_KEY:
        return settings.OPENAI_API_KEY.strip(), OFFICIAL_OPENAI_BASE_URL, mode

    token = fetch_oauth_access_token(
        oauth_url=settings.OAUTH_URL.strip(),
        client_id=settings.CLIENT_ID.strip(),
        client_secret=settings.CLIENT_SECRET.strip(),
    )
    return token, settings.AZURE_BASE_URL.strip(), mode
