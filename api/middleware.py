"""
Global middleware.
"""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request

logger = logging.getLogger(__name__)

_NO_STORE_PREFIXES = ("/api/v1/auth", "/api/v1/calendar", "/api/v1/mail")


def register_middleware(app: FastAPI) -> None:
    """Attach any app-level middleware."""

    @app.middleware("http")
    async def request_timer(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        # Responses may carry Set-Cookie with fresh credentials.
        if request.url.path.startswith(_NO_STORE_PREFIXES):
            response.headers["Cache-Control"] = "no-store"
        logger.debug(
            "%s %s → %d — %.3fs",
            request.method,
            request.url.path,
            response.status_code,
            elapsed,
        )
        return response
