"""
Token-endpoint failures raised by the token issuer.

Provider API failures are never raised; they are classified into
``ProviderCallOutcome`` values instead (see ``connectors.executor``).
"""

from __future__ import annotations

from enum import Enum


class TokenError(Exception):
    """Base class for token-endpoint failures."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ExchangeError(TokenError):
    """The authorization code was rejected (expired, reused, bad client) or the exchange failed."""


class RefreshErrorKind(str, Enum):
    INVALID_GRANT = "invalid_grant"
    NETWORK_FAILURE = "network_failure"
    PROVIDER_UNAVAILABLE = "provider_unavailable"


class RefreshError(TokenError):
    """
    A refresh-token exchange failed.

    ``INVALID_GRANT`` is terminal for the session; the other kinds are
    transient and left to the caller to retry.
    """

    def __init__(self, kind: RefreshErrorKind, reason: str) -> None:
        super().__init__(reason)
        self.kind = kind

    @property
    def retryable(self) -> bool:
        return self.kind is not RefreshErrorKind.INVALID_GRANT

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.reason}"
