"""
Gmail requests — build ``users.threads.list`` calls and trim the result
down to what the inbox widget shows.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from config.settings import config
from utils.schemas import ProviderRequest

DEFAULT_MAX_RESULTS = 10


def list_threads_request(
    max_results: int = DEFAULT_MAX_RESULTS,
    label_ids: Optional[List[str]] = None,
    query: str = "",
) -> ProviderRequest:
    params: Dict[str, Any] = {
        "maxResults": min(max_results, 50),
        "labelIds": label_ids if label_ids is not None else ["INBOX"],
    }
    if query:
        params["q"] = query

    return ProviderRequest(
        method="GET",
        url=f"{config.google_api_base}/gmail/v1/users/me/threads",
        params=params,
    )


def format_threads(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        payload = {}
    threads = payload.get("threads") or []
    return {
        "success": True,
        "threadCount": len(threads),
        "resultSizeEstimate": payload.get("resultSizeEstimate", 0),
        "threads": [{"id": t.get("id"), "snippet": t.get("snippet", "")} for t in threads],
    }
