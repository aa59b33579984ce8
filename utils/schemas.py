"""
Pydantic schemas for the token lifecycle and provider-call orchestration.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ═══════════════════════════════════════════════════════════════════════════════
# Credentials
# ═══════════════════════════════════════════════════════════════════════════════


class SessionCredentials(BaseModel):
    """
    Everything a session knows about its provider grant.

    Immutable: a write always replaces the whole value, so the three fields
    can never be observed half-updated.
    """

    model_config = ConfigDict(frozen=True)

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None

    @property
    def is_empty(self) -> bool:
        return not self.access_token and not self.refresh_token

    @property
    def is_recoverable(self) -> bool:
        """No usable access token, but a refresh token can mint one."""
        return not self.access_token and bool(self.refresh_token)

    def access_token_expired(self, skew_seconds: int = 0, now: Optional[datetime] = None) -> bool:
        """True only when the expiry is known and already (nearly) passed."""
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return (self.expires_at - now).total_seconds() <= skew_seconds

    def seconds_until_expiry(self, now: Optional[datetime] = None) -> Optional[int]:
        if self.expires_at is None:
            return None
        now = now or datetime.now(timezone.utc)
        return max(int((self.expires_at - now).total_seconds()), 0)

    def merged_with(self, result: "TokenExchangeResult") -> "SessionCredentials":
        """Apply an exchange result, keeping the current refresh token if none was issued."""
        return SessionCredentials(
            access_token=result.access_token,
            refresh_token=result.refresh_token or self.refresh_token,
            expires_at=result.expires_at,
        )


class TokenExchangeResult(BaseModel):
    """Normalized token-endpoint response (code exchange or refresh)."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    token_type: str = "Bearer"
    scopes: List[str] = Field(default_factory=list)


# ═══════════════════════════════════════════════════════════════════════════════
# Session resolution
# ═══════════════════════════════════════════════════════════════════════════════


class TokenSource(str, Enum):
    EXISTING = "existing"
    REFRESHED = "refreshed"


class ResolvedToken(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    source: TokenSource


class AuthRequired(BaseModel):
    """The session cannot produce an access token without a new login."""

    model_config = ConfigDict(frozen=True)

    reason: str = "no_credentials"


# ═══════════════════════════════════════════════════════════════════════════════
# Provider calls
# ═══════════════════════════════════════════════════════════════════════════════


class ProviderRequest(BaseModel):
    """One provider API call, minus the credential."""

    model_config = ConfigDict(frozen=True)

    method: str = "GET"
    url: str
    params: Dict[str, Any] = Field(default_factory=dict)
    json_body: Optional[Dict[str, Any]] = None


class Success(BaseModel):
    kind: Literal["success"] = "success"
    payload: Any = None


class AuthError(BaseModel):
    kind: Literal["auth_error"] = "auth_error"
    reason: str
    # True when the session had nothing to refresh with (no network call made).
    auth_required: bool = False


class TransientError(BaseModel):
    kind: Literal["transient_error"] = "transient_error"
    reason: str
    status_code: Optional[int] = None


class PermanentError(BaseModel):
    kind: Literal["permanent_error"] = "permanent_error"
    reason: str
    status_code: Optional[int] = None


ProviderCallOutcome = Union[Success, AuthError, TransientError, PermanentError]


class ExecutionResult(BaseModel):
    """
    What ``execute()`` hands back to a route handler.

    ``rotated_credentials`` is set whenever a refresh succeeded during the
    call, whatever the final outcome; the handler must persist it.
    """

    outcome: ProviderCallOutcome = Field(discriminator="kind")
    rotated_credentials: Optional[SessionCredentials] = None
    provider_calls: int = 0
