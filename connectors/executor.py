"""
Provider request executor — performs Google API calls with the session's
access token and retries once after a refresh when the token is rejected.

Every raw response is classified exactly once, here, into a
``ProviderCallOutcome``; nothing downstream looks at status codes.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

import httpx

from config.settings import Settings, config
from connectors.exceptions import RefreshError
from connectors.resolver import Resolution, SessionResolver
from utils.schemas import (
    AuthError,
    AuthRequired,
    ExecutionResult,
    PermanentError,
    ProviderCallOutcome,
    ProviderRequest,
    ResolvedToken,
    Success,
    TokenSource,
    TransientError,
)

logger = logging.getLogger(__name__)

# 403 reasons that mean "slow down", not "this credential can't do that".
_TRANSIENT_403_REASONS = {
    "rateLimitExceeded",
    "userRateLimitExceeded",
    "quotaExceeded",
    "backendError",
}


class ProviderRequestExecutor:
    """Runs provider calls on behalf of one session."""

    def __init__(
        self,
        resolver: SessionResolver,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.resolver = resolver
        self.settings = settings or config
        self._transport = transport

    async def call(self, request: ProviderRequest, resolved: ResolvedToken) -> ProviderCallOutcome:
        """Perform one provider call with ``resolved.token`` attached. Never raises."""
        headers = {"Authorization": f"Bearer {resolved.token}"}
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.provider_timeout_seconds,
                transport=self._transport,
            ) as client:
                resp = await client.request(
                    request.method,
                    request.url,
                    params=request.params or None,
                    json=request.json_body,
                    headers=headers,
                )
        except httpx.TimeoutException:
            logger.warning("%s %s timed out", request.method, request.url)
            return TransientError(reason="provider request timed out")
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", request.method, request.url, exc)
            return TransientError(reason=f"provider unreachable: {exc}")

        outcome = classify_response(resp)
        if not isinstance(outcome, Success):
            logger.info(
                "%s %s → %s (%s)", request.method, request.url, outcome.kind, outcome.reason
            )
        return outcome

    async def execute(self, request: ProviderRequest) -> ExecutionResult:
        """
        Resolve a token, call the provider, and on ``AuthError`` refresh once
        and retry once.

        At most one refresh and two provider calls happen per invocation.
        A token that was refreshed in this invocation and is still rejected
        is not refreshed again.
        """
        calls = 0
        refreshed = False

        try:
            resolution = await self.resolver.resolve()
        except RefreshError as exc:
            return self._result(_refresh_failure(exc), calls, refreshed)
        if isinstance(resolution, AuthRequired):
            return self._result(_auth_required(resolution), calls, refreshed)
        refreshed = resolution.source is TokenSource.REFRESHED

        outcome = await self.call(request, resolution)
        calls += 1
        if not isinstance(outcome, AuthError) or refreshed:
            return self._result(outcome, calls, refreshed)

        logger.info("Provider rejected access token, forcing a refresh")
        try:
            retry: Resolution = await self.resolver.force_refresh(stale_access_token=resolution.token)
        except RefreshError as exc:
            return self._result(_refresh_failure(exc), calls, refreshed)
        if isinstance(retry, AuthRequired):
            return self._result(_auth_required(retry), calls, refreshed)
        refreshed = True

        outcome = await self.call(request, retry)
        calls += 1
        return self._result(outcome, calls, refreshed)

    def _result(self, outcome: ProviderCallOutcome, calls: int, refreshed: bool) -> ExecutionResult:
        return ExecutionResult(
            outcome=outcome,
            rotated_credentials=self.resolver.store.read() if refreshed else None,
            provider_calls=calls,
        )


# ── Classification ───────────────────────────────────────────────────────


def classify_response(resp: httpx.Response) -> ProviderCallOutcome:
    """Map a raw Google API response onto the closed outcome variant."""
    status = resp.status_code

    if 200 <= status < 300:
        if not resp.content:
            return Success(payload=None)
        try:
            return Success(payload=resp.json())
        except ValueError:
            return Success(payload=resp.text)

    message, reasons = _google_error(resp)

    if status == 401:
        return AuthError(reason=message or "invalid credentials")
    if status == 403:
        if _TRANSIENT_403_REASONS.intersection(reasons):
            return TransientError(reason=message or "rate limited", status_code=status)
        return PermanentError(reason=message or "forbidden", status_code=status)
    if status in (408, 429) or status >= 500:
        return TransientError(reason=message or f"provider returned {status}", status_code=status)
    return PermanentError(reason=message or f"provider returned {status}", status_code=status)


def _google_error(resp: httpx.Response) -> Tuple[str, List[str]]:
    """
    Pull message and reasons out of
    ``{"error": {"message": …, "errors": [{"reason": …}]}}``.
    """
    try:
        body: Any = resp.json()
    except ValueError:
        return "", []
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, str):
        return error, []
    if not isinstance(error, dict):
        return "", []

    reasons = [
        e["reason"]
        for e in error.get("errors") or []
        if isinstance(e, dict) and isinstance(e.get("reason"), str)
    ]
    return str(error.get("message") or ""), reasons


def _auth_required(resolution: AuthRequired) -> AuthError:
    return AuthError(reason=resolution.reason, auth_required=True)


def _refresh_failure(exc: RefreshError) -> TransientError:
    return TransientError(reason=f"token refresh failed ({exc.kind.value}): {exc.reason}")
