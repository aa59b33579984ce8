"""
FastAPI dependencies (shared across routes).

Process-wide objects (token issuer, refresh coordinator) are built once;
everything session-specific is built per request from the inbound cookies.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

import httpx
from fastapi import Depends, Request

from api.cookies import load_credentials
from config.settings import config
from connectors.credentials import RequestCredentialStore
from connectors.executor import ProviderRequestExecutor
from connectors.resolver import SessionResolver
from connectors.single_flight import RefreshCoordinator
from connectors.token_issuer import GoogleTokenIssuer


@lru_cache
def get_token_issuer() -> GoogleTokenIssuer:
    return GoogleTokenIssuer(config)


@lru_cache
def get_refresh_coordinator() -> RefreshCoordinator:
    return RefreshCoordinator(reuse_window_seconds=config.refresh_reuse_window_seconds)


def get_provider_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for provider API calls; ``None`` means httpx's default."""
    return None


def get_credential_store(request: Request) -> RequestCredentialStore:
    """Seed a request-scoped store from the credential cookies."""
    return RequestCredentialStore(load_credentials(request, config))


def get_session_resolver(
    store: RequestCredentialStore = Depends(get_credential_store),
    issuer: GoogleTokenIssuer = Depends(get_token_issuer),
    coordinator: RefreshCoordinator = Depends(get_refresh_coordinator),
) -> SessionResolver:
    return SessionResolver(store, issuer, coordinator=coordinator, settings=config)


def get_executor(
    resolver: SessionResolver = Depends(get_session_resolver),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_provider_transport),
) -> ProviderRequestExecutor:
    return ProviderRequestExecutor(resolver, settings=config, transport=transport)
