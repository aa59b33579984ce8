"""
Session resolver — turns stored credentials into a usable access token.

Evaluated fresh for every request; the credential store is the source of
truth and nothing about a session is cached here.

States::

    no access token ──(refresh token?)──► recoverable ──refresh──► resolved
                    └──────────────────► unauthenticated (AuthRequired)
    access token ──► resolved (optimistic; the provider call validates it)
                 └── AuthError downstream ──► force_refresh

Credentials are never cleared here, not even after ``invalid_grant``;
only an explicit logout does that.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from config.settings import Settings, config
from connectors.credentials import CredentialStore
from connectors.exceptions import RefreshError, RefreshErrorKind
from connectors.single_flight import RefreshCoordinator, fingerprint
from connectors.token_issuer import GoogleTokenIssuer
from utils.schemas import AuthRequired, ResolvedToken, SessionCredentials, TokenSource

logger = logging.getLogger(__name__)

Resolution = Union[ResolvedToken, AuthRequired]


class SessionResolver:
    def __init__(
        self,
        store: CredentialStore,
        issuer: GoogleTokenIssuer,
        coordinator: Optional[RefreshCoordinator] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.store = store
        self.issuer = issuer
        self.settings = settings or config
        self.coordinator = coordinator or RefreshCoordinator(
            reuse_window_seconds=self.settings.refresh_reuse_window_seconds,
        )

    async def resolve(self) -> Resolution:
        """
        Return the stored access token, or refresh one if none is usable.

        The access token is not pre-validated against the provider; only a
        locally known expiry makes it unusable.

        Raises ``RefreshError`` for transient refresh failures.
        """
        creds = self.store.read()

        if creds.access_token:
            if not creds.access_token_expired(self.settings.token_expiry_skew_seconds):
                return ResolvedToken(token=creds.access_token, source=TokenSource.EXISTING)
            logger.info("Stored access token past its expiry, refreshing")

        return await self._refresh(creds, stale_access_token=creds.access_token)

    async def force_refresh(self, stale_access_token: Optional[str] = None) -> Resolution:
        """
        Refresh unconditionally, after the provider rejected ``stale_access_token``.

        Raises ``RefreshError`` for transient refresh failures.
        """
        creds = self.store.read()
        return await self._refresh(creds, stale_access_token=stale_access_token or creds.access_token)

    async def _refresh(self, creds: SessionCredentials, stale_access_token: Optional[str]) -> Resolution:
        if not creds.refresh_token:
            reason = "access_token_rejected" if creds.access_token else "no_credentials"
            logger.info("No refresh token available (%s)", reason)
            return AuthRequired(reason=reason)

        try:
            result = await self.coordinator.refresh(
                creds.refresh_token,
                self.issuer.refresh,
                stale_access_token=stale_access_token,
            )
        except RefreshError as exc:
            if exc.kind is RefreshErrorKind.INVALID_GRANT:
                logger.warning(
                    "Refresh token %s rejected (%s); re-authentication required",
                    fingerprint(creds.refresh_token),
                    exc.reason,
                )
                return AuthRequired(reason=RefreshErrorKind.INVALID_GRANT.value)
            logger.warning("Transient refresh failure: %s", exc)
            raise

        self.store.write(creds.merged_with(result))
        return ResolvedToken(token=result.access_token, source=TokenSource.REFRESHED)
