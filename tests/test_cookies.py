"""
Tests for credential cookies and their Fernet encryption.
"""

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest
from cryptography.fernet import Fernet
from fastapi import Response
from starlette.requests import Request

from api.cookies import clear_credentials, encode_access_value, load_credentials, persist_credentials
from config.settings import config
from connectors.encryption import decrypt_value, encrypt_value, is_encryption_enabled, reset_cipher
from utils.schemas import SessionCredentials


def _request_with(cookies: dict) -> Request:
    header = "; ".join(f"{k}={v}" for k, v in cookies.items())
    return Request({"type": "http", "headers": [(b"cookie", header.encode())]})


def _set_cookie_headers(response: Response) -> dict:
    headers = {}
    for raw in response.headers.getlist("set-cookie"):
        name = raw.split("=", 1)[0]
        headers[name] = raw
    return headers


@pytest.fixture
def encrypted(monkeypatch):
    monkeypatch.setattr(config, "token_encryption_key", Fernet.generate_key().decode())
    reset_cipher()
    yield
    reset_cipher()


class TestEncryption:
    def test_disabled_without_key(self, monkeypatch):
        monkeypatch.setattr(config, "token_encryption_key", "")
        reset_cipher()

        assert not is_encryption_enabled()
        assert encrypt_value("plain") == "plain"
        assert decrypt_value("plain") == "plain"

    def test_round_trip_with_key(self, encrypted):
        ciphertext = encrypt_value("refresh-token")

        assert is_encryption_enabled()
        assert ciphertext != "refresh-token"
        assert decrypt_value(ciphertext) == "refresh-token"

    def test_tampered_value_is_discarded(self, encrypted):
        assert decrypt_value("not-a-fernet-token") is None


class TestCredentialCookies:
    def test_persist_and_load_round_trip(self, encrypted):
        expires_at = datetime.now(timezone.utc).replace(microsecond=0) + timedelta(minutes=30)
        creds = SessionCredentials(access_token="at", refresh_token="rt", expires_at=expires_at)
        response = Response()

        persist_credentials(response, creds)
        headers = _set_cookie_headers(response)

        access_value = headers[config.access_cookie_name].split(";")[0].split("=", 1)[1].strip('"')
        refresh_value = headers[config.refresh_cookie_name].split(";")[0].split("=", 1)[1].strip('"')
        loaded = load_credentials(
            _request_with({config.access_cookie_name: access_value, config.refresh_cookie_name: refresh_value})
        )

        assert loaded == creds

    def test_access_cookie_lifetime_follows_token_expiry(self):
        creds = SessionCredentials(
            access_token="at",
            refresh_token="rt",
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=1200),
        )
        response = Response()

        persist_credentials(response, creds)
        headers = _set_cookie_headers(response)

        max_age = int(headers[config.access_cookie_name].split("Max-Age=")[1].split(";")[0])
        assert 1150 <= max_age <= 1200
        assert "HttpOnly" in headers[config.access_cookie_name]
        assert f"Max-Age={config.refresh_token_max_age}" in headers[config.refresh_cookie_name]

    def test_unknown_expiry_uses_default_lifetime(self):
        response = Response()

        persist_credentials(response, SessionCredentials(access_token="at", refresh_token="rt"))

        headers = _set_cookie_headers(response)
        assert f"Max-Age={config.default_access_token_max_age}" in headers[config.access_cookie_name]

    def test_clear_deletes_both_cookies(self):
        response = Response()

        clear_credentials(response)

        headers = _set_cookie_headers(response)
        assert "Max-Age=0" in headers[config.access_cookie_name]
        assert "Max-Age=0" in headers[config.refresh_cookie_name]

    def test_missing_cookies_load_as_empty(self):
        assert load_credentials(_request_with({})).is_empty

    def test_only_refresh_cookie_is_recoverable(self):
        loaded = load_credentials(_request_with({config.refresh_cookie_name: encrypt_value("rt")}))

        assert loaded.is_recoverable
        assert loaded.refresh_token == "rt"

    def test_garbage_access_cookie_is_ignored(self, encrypted):
        loaded = load_credentials(
            _request_with({config.access_cookie_name: "garbage", config.refresh_cookie_name: encrypt_value("rt")})
        )

        assert loaded.access_token is None
        assert loaded.refresh_token == "rt"

    @pytest.mark.parametrize(
        "payload",
        [{"token": 1}, {"token": ["at"]}, {"token": "at", "expires_at": 1e300}, {"token": "at", "expires_at": float("nan")}],
    )
    def test_malformed_access_payload_is_ignored(self, payload, monkeypatch):
        monkeypatch.setattr(config, "token_encryption_key", "")
        reset_cipher()
        value = base64.urlsafe_b64encode(json.dumps(payload).encode()).decode()

        loaded = load_credentials(
            _request_with({config.access_cookie_name: value, config.refresh_cookie_name: encrypt_value("rt")})
        )

        assert loaded.access_token is None
        assert loaded.expires_at is None
        assert loaded.refresh_token == "rt"

    def test_access_value_is_decodable_without_encryption(self, monkeypatch):
        monkeypatch.setattr(config, "token_encryption_key", "")
        reset_cipher()
        value = encode_access_value(SessionCredentials(access_token="at"))

        loaded = load_credentials(_request_with({config.access_cookie_name: value}))

        assert loaded.access_token == "at"
        assert loaded.expires_at is None
