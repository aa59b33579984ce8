"""
Google OAuth routes — login, callback, on-demand refresh, status, logout.

Route prefix: /api/v1/auth
"""

from __future__ import annotations

import hmac
import logging
import secrets
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from api.cookies import clear_credentials, persist_credentials
from api.dependencies import get_credential_store, get_session_resolver, get_token_issuer
from api.responses import PROVIDER_UNAVAILABLE, REAUTH_REQUIRED, error_response
from config.settings import config
from connectors.credentials import RequestCredentialStore
from connectors.exceptions import ExchangeError, RefreshError
from connectors.resolver import SessionResolver
from connectors.token_issuer import GoogleTokenIssuer
from utils.schemas import AuthRequired, SessionCredentials

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

# ── State token helpers (CSRF protection) ──────────────────────────────

_STATE_TTL = 600  # seconds


def _create_state() -> str:
    return secrets.token_urlsafe(24)


def _state_matches(request: Request, state: Optional[str]) -> bool:
    expected = request.cookies.get(config.state_cookie_name)
    if not state or not expected:
        return False
    return hmac.compare_digest(state, expected)


def _frontend_redirect(**params: str) -> RedirectResponse:
    response = RedirectResponse(f"{config.frontend_url}?{urlencode(params)}")
    response.delete_cookie(config.state_cookie_name, path="/")
    return response


# ── Routes ─────────────────────────────────────────────────────────────


@router.get("/google/login")
async def google_login(issuer: GoogleTokenIssuer = Depends(get_token_issuer)):
    """Redirect the browser to Google's consent screen."""
    if not config.is_oauth_configured():
        logger.error("Google OAuth login attempted without client id/secret")
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "oauth_not_configured",
            "Failed to initiate OAuth flow",
        )

    state = _create_state()
    response = RedirectResponse(issuer.get_auth_url(state))
    response.set_cookie(
        config.state_cookie_name,
        state,
        max_age=_STATE_TTL,
        httponly=True,
        secure=config.cookie_secure,
        samesite="lax",
        path="/",
    )
    return response


@router.get("/google/callback")
async def google_callback(
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    issuer: GoogleTokenIssuer = Depends(get_token_issuer),
) -> RedirectResponse:
    """
    Google redirects here after consent.

    Exchanges the code, sets the credential cookies and sends the browser
    back to the frontend.  Nothing is stored on any failure.
    """
    if error:
        logger.warning("OAuth consent returned error=%s", error)
        return _frontend_redirect(error=error)
    if not code:
        return _frontend_redirect(error="missing_code")
    if not _state_matches(request, state):
        logger.warning("OAuth callback with missing or mismatched state")
        return _frontend_redirect(error="invalid_state")

    try:
        result = await issuer.exchange_authorization_code(code)
    except ExchangeError as exc:
        logger.error("OAuth callback failed: %s", exc.reason)
        return _frontend_redirect(error="auth_failed")

    credentials = SessionCredentials().merged_with(result)
    response = _frontend_redirect(auth="success")
    persist_credentials(response, credentials)
    logger.info("Google account connected (refresh_token=%s)", bool(credentials.refresh_token))
    return response


@router.post("/google/refresh")
async def google_refresh(resolver: SessionResolver = Depends(get_session_resolver)) -> JSONResponse:
    """Force a refresh now, e.g. before a burst of calls from the frontend."""
    try:
        resolution = await resolver.force_refresh()
    except RefreshError as exc:
        return error_response(status.HTTP_503_SERVICE_UNAVAILABLE, PROVIDER_UNAVAILABLE, str(exc))

    if isinstance(resolution, AuthRequired):
        return error_response(status.HTTP_401_UNAUTHORIZED, REAUTH_REQUIRED, resolution.reason)

    response = JSONResponse({"success": True})
    persist_credentials(response, resolver.store.read())
    return response


@router.get("/status")
async def auth_status(store: RequestCredentialStore = Depends(get_credential_store)) -> Dict[str, Any]:
    """Cookie-only view of the session; makes no network call."""
    credentials = store.read()
    return {
        "authenticated": bool(credentials.access_token),
        "recoverable": credentials.is_recoverable,
    }


@router.post("/logout")
async def logout() -> JSONResponse:
    response = JSONResponse({"success": True, "message": "Logged out successfully"})
    clear_credentials(response)
    return response
