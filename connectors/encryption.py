"""
Cookie encryption — encrypt / decrypt credential values before they leave
the server.

Uses Fernet (AES-128-CBC + HMAC-SHA256) from the ``cryptography`` library.
The key is loaded from ``config.token_encryption_key``
(env var: ``TOKEN_ENCRYPTION_KEY``).

If no key is configured, encryption is **disabled** and cookie values are
written as plaintext (with a startup warning).  Generate a key with::

    python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
"""

from __future__ import annotations

import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from config.settings import config

logger = logging.getLogger(__name__)

_fernet: Optional[Fernet] = None
_initialised = False


def _init_fernet() -> None:
    """Lazy-initialise the Fernet cipher once."""
    global _fernet, _initialised

    _initialised = True
    key = config.token_encryption_key
    if not key:
        logger.warning(
            "TOKEN_ENCRYPTION_KEY not set — credential cookies will be stored as plaintext."
        )
        _fernet = None
        return

    try:
        _fernet = Fernet(key.encode() if isinstance(key, str) else key)
        logger.info("Cookie encryption enabled (Fernet/AES-128-CBC)")
    except ValueError as exc:
        logger.error("Failed to initialise Fernet with provided key: %s", exc)
        _fernet = None


def reset_cipher() -> None:
    """Forget the cached cipher so the next call re-reads the key."""
    global _fernet, _initialised
    _fernet = None
    _initialised = False


def encrypt_value(plaintext: str) -> str:
    """
    Encrypt a cookie value.

    Returns the Fernet ciphertext (URL-safe base64), or the plaintext
    unchanged when encryption is disabled.
    """
    if not _initialised:
        _init_fernet()
    if _fernet is None:
        return plaintext
    return _fernet.encrypt(plaintext.encode()).decode()


def decrypt_value(ciphertext: str) -> Optional[str]:
    """
    Decrypt a cookie value.

    Returns ``None`` for values that fail authentication (tampered, or
    written under another key) so the caller treats them as absent.
    """
    if not _initialised:
        _init_fernet()
    if _fernet is None:
        return ciphertext
    try:
        return _fernet.decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        logger.warning("Discarding credential cookie that failed decryption")
        return None


def is_encryption_enabled() -> bool:
    """Check whether cookie encryption is active."""
    if not _initialised:
        _init_fernet()
    return _fernet is not None
