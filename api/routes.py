"""
REST API routes backed by Google APIs.

Every handler goes through ``ProviderRequestExecutor.execute()`` and lets
``api.responses.outcome_response`` map the outcome and persist any rotated
credentials.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from api.dependencies import get_executor
from api.responses import outcome_response
from connectors.executor import ProviderRequestExecutor
from tools import calendar_tools, mail_tools

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/calendar/events")
async def list_calendar_events(
    time_min: Optional[str] = Query(None, alias="timeMin"),
    time_max: Optional[str] = Query(None, alias="timeMax"),
    max_results: int = Query(calendar_tools.DEFAULT_MAX_RESULTS, alias="maxResults", ge=1, le=2500),
    executor: ProviderRequestExecutor = Depends(get_executor),
) -> JSONResponse:
    """Events on the primary calendar, optionally bounded by ``timeMin``/``timeMax``."""
    request = calendar_tools.list_events_request(time_min, time_max, max_results)
    result = await executor.execute(request)
    logger.debug("calendar/events → %s after %d provider call(s)", result.outcome.kind, result.provider_calls)
    return outcome_response(result, calendar_tools.format_events)


@router.get("/mail/threads")
async def list_mail_threads(
    max_results: int = Query(mail_tools.DEFAULT_MAX_RESULTS, alias="maxResults", ge=1, le=50),
    label_ids: Optional[List[str]] = Query(None, alias="labelIds"),
    q: str = Query(""),
    executor: ProviderRequestExecutor = Depends(get_executor),
) -> JSONResponse:
    """Recent Gmail threads (``INBOX`` unless ``labelIds`` says otherwise)."""
    request = mail_tools.list_threads_request(max_results, label_ids, q)
    result = await executor.execute(request)
    logger.debug("mail/threads → %s after %d provider call(s)", result.outcome.kind, result.provider_calls)
    return outcome_response(result, mail_tools.format_threads)
