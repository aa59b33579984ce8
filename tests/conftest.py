"""
Shared fixtures — a scripted fake of Google's token endpoint and APIs.
"""

from __future__ import annotations

from typing import Any, Dict, List, Union
from urllib.parse import parse_qs

import httpx
import pytest

from config.settings import Settings
from connectors.encryption import reset_cipher
from connectors.token_issuer import GoogleTokenIssuer

TOKEN_URL = "https://oauth2.googleapis.com/token"
API_BASE = "https://www.googleapis.com"

Scripted = Union[httpx.Response, Exception]


class FakeGoogle:
    """
    Answers token-endpoint and API requests from queued responses and
    records every request it saw.
    """

    def __init__(self) -> None:
        self.token_responses: List[Scripted] = []
        self.api_responses: List[Scripted] = []
        self.token_requests: List[httpx.Request] = []
        self.api_requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "oauth2.googleapis.com":
            self.token_requests.append(request)
            queue = self.token_responses
        else:
            self.api_requests.append(request)
            queue = self.api_responses
        if not queue:
            raise AssertionError(f"unexpected request {request.method} {request.url}")
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    # ── scripting helpers ──

    def token_ok(self, access_token: str, refresh_token: str | None = None, expires_in: int = 3600) -> None:
        body: Dict[str, Any] = {"access_token": access_token, "expires_in": expires_in, "token_type": "Bearer"}
        if refresh_token:
            body["refresh_token"] = refresh_token
        self.token_responses.append(httpx.Response(200, json=body))

    def token_error(self, status: int, error: str = "invalid_grant") -> None:
        self.token_responses.append(httpx.Response(status, json={"error": error}))

    def api_ok(self, payload: Any) -> None:
        self.api_responses.append(httpx.Response(200, json=payload))

    def api_error(self, status: int, message: str = "", reason: str = "") -> None:
        error: Dict[str, Any] = {"code": status, "message": message}
        if reason:
            error["errors"] = [{"reason": reason, "message": message}]
        self.api_responses.append(httpx.Response(status, json={"error": error}))

    # ── inspection helpers ──

    def bearer_tokens(self) -> List[str]:
        return [r.headers["Authorization"].removeprefix("Bearer ") for r in self.api_requests]

    def token_form(self, index: int = -1) -> Dict[str, str]:
        parsed = parse_qs(self.token_requests[index].content.decode())
        return {k: v[0] for k, v in parsed.items()}


@pytest.fixture
def fake_google() -> FakeGoogle:
    return FakeGoogle()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        google_client_id="client-id",
        google_client_secret="client-secret",
        google_redirect_uri="http://testserver/api/v1/auth/google/callback",
        google_token_url=TOKEN_URL,
        google_api_base=API_BASE,
        provider_timeout_seconds=2,
    )


@pytest.fixture
def issuer(settings: Settings, fake_google: FakeGoogle) -> GoogleTokenIssuer:
    return GoogleTokenIssuer(settings, transport=fake_google.transport)


@pytest.fixture(autouse=True)
def _fresh_cipher():
    reset_cipher()
    yield
    reset_cipher()
