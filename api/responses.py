"""
Outcome → HTTP translation for provider-backed routes.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from fastapi import status
from fastapi.responses import JSONResponse

from api.cookies import persist_credentials
from utils.schemas import (
    AuthError,
    ExecutionResult,
    PermanentError,
    Success,
    TransientError,
)

logger = logging.getLogger(__name__)

REAUTH_REQUIRED = "reauthentication_required"
PROVIDER_UNAVAILABLE = "provider_unavailable"
BAD_REQUEST = "bad_request"


def error_response(status_code: int, code: str, detail: str = "") -> JSONResponse:
    return JSONResponse({"error": code, "detail": detail}, status_code=status_code)


def outcome_response(
    result: ExecutionResult,
    formatter: Optional[Callable[[Any], Any]] = None,
) -> JSONResponse:
    """
    Build the HTTP response for an ``execute()`` result.

    Rotated credentials are persisted whatever the outcome: the refresh
    itself succeeded even if the provider call after it did not.
    """
    outcome = result.outcome

    if isinstance(outcome, Success):
        body = formatter(outcome.payload) if formatter else outcome.payload
        response = JSONResponse(body, status_code=status.HTTP_200_OK)
    elif isinstance(outcome, AuthError):
        response = error_response(status.HTTP_401_UNAUTHORIZED, REAUTH_REQUIRED, outcome.reason)
    elif isinstance(outcome, TransientError):
        # Upstream 5xx → 502; rate limits, timeouts, token endpoint trouble → 503.
        code = (
            status.HTTP_502_BAD_GATEWAY
            if outcome.status_code and outcome.status_code >= 500
            else status.HTTP_503_SERVICE_UNAVAILABLE
        )
        response = error_response(code, PROVIDER_UNAVAILABLE, outcome.reason)
    elif isinstance(outcome, PermanentError):
        response = error_response(status.HTTP_400_BAD_REQUEST, BAD_REQUEST, outcome.reason)
    else:  # pragma: no cover - closed union
        raise TypeError(f"Unknown outcome {outcome!r}")

    if result.rotated_credentials is not None:
        persist_credentials(response, result.rotated_credentials)
        logger.debug("Persisted rotated credentials on response")

    return response
