"""
Application settings loaded from environment variables.
"""

from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # ── Google OAuth2 ───────────────────────────────────────────────────
    google_client_id: str = ""          # Google OAuth Web App client ID
    google_client_secret: str = ""      # Google OAuth Web App client secret
    google_redirect_uri: str = "http://localhost:8000/api/v1/auth/google/callback"
    # Write scopes are granted at consent so later send/modify routes need no re-consent.
    google_scopes: List[str] = [
        "https://www.googleapis.com/auth/calendar",
        "https://www.googleapis.com/auth/gmail.readonly",
        "https://www.googleapis.com/auth/gmail.send",
        "https://www.googleapis.com/auth/gmail.modify",
    ]
    google_auth_url: str = "https://accounts.google.com/o/oauth2/v2/auth"
    google_token_url: str = "https://oauth2.googleapis.com/token"
    google_api_base: str = "https://www.googleapis.com"

    # ── Security Secrets ──────────────────────────────────────────────────
    token_encryption_key: str = ""      # Fernet key for encrypting credential cookies

    # ── Token lifecycle ──────────────────────────────────────────────────
    provider_timeout_seconds: float = 15.0
    token_expiry_skew_seconds: int = 60
    refresh_reuse_window_seconds: float = 10.0

    # ── Credential cookies ───────────────────────────────────────────────
    access_cookie_name: str = "google_access_token"
    refresh_cookie_name: str = "google_refresh_token"
    state_cookie_name: str = "google_oauth_state"
    default_access_token_max_age: int = 3600           # 1 hour
    refresh_token_max_age: int = 30 * 24 * 60 * 60     # 30 days
    cookie_secure: bool = False
    cookie_samesite: str = "lax"

    # ── Server ───────────────────────────────────────────────────────────
    port: int = 8000
    host: str = "0.0.0.0"
    debug: bool = False
    cors_origins: list = ["http://localhost:3000"]
    frontend_url: str = "http://localhost:3000/"

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
    }

    def is_oauth_configured(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)


config = Settings()
