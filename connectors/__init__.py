"""
connectors — Google OAuth2 token lifecycle.

Provides:
  • Code → token and refresh-token exchanges (``token_issuer``)
  • Request-scoped credential storage (``credentials``)
  • Token resolution with transparent refresh (``resolver``)
  • Per-refresh-token single-flight (``single_flight``)
  • Authenticated provider calls with one refresh-and-retry (``executor``)
  • Fernet encryption of credential cookies (``encryption``)
"""
