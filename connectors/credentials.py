"""
Credential store — the session's access / refresh token pair for the
lifetime of one request.

The store never performs I/O.  It is seeded from whatever the transport
layer decoded (cookies, a session record, …) and remembers the value that
must be written back; the route handler persists it at the boundary
(see ``api.cookies``).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from utils.schemas import SessionCredentials

logger = logging.getLogger(__name__)


class CredentialStore(ABC):
    """Abstract read / write access to one session's credentials."""

    @abstractmethod
    def read(self) -> SessionCredentials:
        ...

    @abstractmethod
    def write(self, credentials: SessionCredentials) -> SessionCredentials:
        """Replace the stored credentials and return the value to persist."""
        ...


class RequestCredentialStore(CredentialStore):
    """
    Request-scoped store.

    Writes replace the whole ``SessionCredentials`` value, so they are
    atomic, and are visible to the next ``read()`` on the same instance.
    """

    def __init__(self, initial: Optional[SessionCredentials] = None) -> None:
        self._current = initial or SessionCredentials()
        self._pending: Optional[SessionCredentials] = None

    def read(self) -> SessionCredentials:
        return self._current

    def write(self, credentials: SessionCredentials) -> SessionCredentials:
        self._current = credentials
        self._pending = credentials
        logger.debug(
            "Credentials updated (access=%s refresh=%s)",
            bool(credentials.access_token),
            bool(credentials.refresh_token),
        )
        return credentials

    def clear(self) -> SessionCredentials:
        """Drop both tokens. Only explicit logout calls this."""
        return self.write(SessionCredentials())

    @property
    def pending(self) -> Optional[SessionCredentials]:
        """The value written during this request, or ``None`` if nothing changed."""
        return self._pending
