"""
GoogleTokenIssuer — OAuth2 authorization-code and refresh-token exchanges.

Stateless: every call is one request to Google's token endpoint and the
result is returned to the caller.  Nothing here reads or writes session
credentials.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from config.settings import Settings, config
from connectors.exceptions import ExchangeError, RefreshError, RefreshErrorKind
from utils.schemas import TokenExchangeResult

logger = logging.getLogger(__name__)


class GoogleTokenIssuer:
    """Talks to the Google OAuth2 token endpoint."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or config
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.provider_timeout_seconds,
            transport=self._transport,
        )

    def get_auth_url(self, state: str) -> str:
        params = {
            "client_id": self.settings.google_client_id,
            "redirect_uri": self.settings.google_redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.settings.google_scopes),
            "access_type": "offline",       # gets refresh_token
            "prompt": "consent",            # force consent to always get refresh_token
            "state": state,
        }
        return f"{self.settings.google_auth_url}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> TokenExchangeResult:
        """Exchange the callback ``code`` for tokens. Raises ``ExchangeError``."""
        try:
            async with self._client() as client:
                resp = await client.post(
                    self.settings.google_token_url,
                    data={
                        "code": code,
                        "client_id": self.settings.google_client_id,
                        "client_secret": self.settings.google_client_secret,
                        "redirect_uri": self.settings.google_redirect_uri,
                        "grant_type": "authorization_code",
                    },
                )
        except httpx.HTTPError as exc:
            raise ExchangeError(f"token endpoint unreachable: {exc}") from exc

        if resp.status_code != 200:
            raise ExchangeError(_error_code(resp))

        data = _json_or_empty(resp)
        if not data.get("access_token"):
            raise ExchangeError("token response carried no access_token")

        logger.info("Authorization code exchanged (refresh_token=%s)", bool(data.get("refresh_token")))
        return _to_result(data)

    async def refresh(self, refresh_token: str) -> TokenExchangeResult:
        """
        Use a refresh token to mint a new access token.

        Raises ``RefreshError``; never retries on its own.
        """
        try:
            async with self._client() as client:
                resp = await client.post(
                    self.settings.google_token_url,
                    data={
                        "client_id": self.settings.google_client_id,
                        "client_secret": self.settings.google_client_secret,
                        "refresh_token": refresh_token,
                        "grant_type": "refresh_token",
                    },
                )
        except httpx.TimeoutException as exc:
            raise RefreshError(RefreshErrorKind.NETWORK_FAILURE, "token endpoint timed out") from exc
        except httpx.HTTPError as exc:
            raise RefreshError(RefreshErrorKind.NETWORK_FAILURE, str(exc) or type(exc).__name__) from exc

        status = resp.status_code
        if status == 429 or status >= 500:
            raise RefreshError(RefreshErrorKind.PROVIDER_UNAVAILABLE, f"token endpoint returned {status}")
        if 400 <= status < 500:
            raise RefreshError(RefreshErrorKind.INVALID_GRANT, _error_code(resp))

        data = _json_or_empty(resp)
        if not data.get("access_token"):
            raise RefreshError(
                RefreshErrorKind.PROVIDER_UNAVAILABLE,
                "refresh response carried no access_token",
            )

        logger.info("Access token refreshed (rotated refresh_token=%s)", bool(data.get("refresh_token")))
        return _to_result(data)


# ── Helpers ──────────────────────────────────────────────────────────────


def _json_or_empty(resp: httpx.Response) -> Dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _error_code(resp: httpx.Response) -> str:
    """Google reports ``{"error": "invalid_grant", "error_description": …}``."""
    data = _json_or_empty(resp)
    error = data.get("error")
    if isinstance(error, str) and error:
        return error
    return f"http_{resp.status_code}"


def _to_result(data: Dict[str, Any]) -> TokenExchangeResult:
    expires_at = None
    expires_in = data.get("expires_in")
    if isinstance(expires_in, (int, float)) and expires_in > 0:
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))

    return TokenExchangeResult(
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token") or None,
        expires_at=expires_at,
        token_type=data.get("token_type", "Bearer"),
        scopes=(data.get("scope") or "").split(),
    )
