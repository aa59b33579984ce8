"""
Credential cookies — the only place session credentials cross the wire.

Two httpOnly cookies, both Fernet-encrypted (see ``connectors.encryption``):

* access cookie: base64 ``{"token": …, "expires_at": <unix ts | null>}``, max-age
  never longer than the access token's remaining validity (default 1 hour
  when Google didn't say).
* refresh cookie: the refresh token, 30 days.

When the browser drops an expired access cookie the session arrives with
only a refresh token, which the resolver treats as recoverable.
"""

from __future__ import annotations

import base64
import json
import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

from fastapi import Request, Response

from config.settings import Settings, config
from connectors.encryption import decrypt_value, encrypt_value
from utils.schemas import SessionCredentials

logger = logging.getLogger(__name__)


def load_credentials(request: Request, settings: Optional[Settings] = None) -> SessionCredentials:
    """Decode the inbound credential bundle; unreadable cookies count as absent."""
    settings = settings or config
    access_token, expires_at = decode_access_value(request.cookies.get(settings.access_cookie_name))

    refresh_token = None
    raw_refresh = request.cookies.get(settings.refresh_cookie_name)
    if raw_refresh:
        refresh_token = decrypt_value(raw_refresh) or None

    return SessionCredentials(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=expires_at,
    )


def persist_credentials(
    response: Response,
    credentials: SessionCredentials,
    settings: Optional[Settings] = None,
) -> None:
    """Write the full bundle onto ``response``; absent tokens delete their cookie."""
    settings = settings or config

    if credentials.access_token:
        max_age = credentials.seconds_until_expiry()
        if max_age is None:
            max_age = settings.default_access_token_max_age
        if max_age > 0:
            _set(response, settings.access_cookie_name, encode_access_value(credentials), max_age, settings)
        else:
            _delete(response, settings.access_cookie_name, settings)
    else:
        _delete(response, settings.access_cookie_name, settings)

    if credentials.refresh_token:
        _set(
            response,
            settings.refresh_cookie_name,
            encrypt_value(credentials.refresh_token),
            settings.refresh_token_max_age,
            settings,
        )
    else:
        _delete(response, settings.refresh_cookie_name, settings)


def clear_credentials(response: Response, settings: Optional[Settings] = None) -> None:
    """Logout: remove both cookies."""
    persist_credentials(response, SessionCredentials(), settings)


# ── Helpers ──────────────────────────────────────────────────────────────


def encode_access_value(credentials: SessionCredentials) -> str:
    """Base64 keeps the value cookie-safe even when encryption is disabled."""
    expires_at = credentials.expires_at.timestamp() if credentials.expires_at else None
    payload = json.dumps({"token": credentials.access_token, "expires_at": expires_at})
    return encrypt_value(base64.urlsafe_b64encode(payload.encode()).decode())


def decode_access_value(raw: Optional[str]) -> Tuple[Optional[str], Optional[datetime]]:
    if not raw:
        return None, None
    plaintext = decrypt_value(raw)
    if not plaintext:
        return None, None
    try:
        data = json.loads(base64.urlsafe_b64decode(plaintext.encode()))
    except ValueError:
        logger.warning("Discarding malformed access-token cookie")
        return None, None
    if not isinstance(data, dict) or not isinstance(data.get("token"), str) or not data["token"]:
        return None, None

    expires_at = None
    if isinstance(data.get("expires_at"), (int, float)):
        try:
            expires_at = datetime.fromtimestamp(data["expires_at"], tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            logger.warning("Discarding access-token cookie with unusable expiry")
            return None, None
    return data["token"], expires_at


def _set(response: Response, name: str, value: str, max_age: int, settings: Settings) -> None:
    response.set_cookie(
        name,
        value,
        max_age=max_age,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        path="/",
    )


def _delete(response: Response, name: str, settings: Settings) -> None:
    response.delete_cookie(
        name,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
    )
