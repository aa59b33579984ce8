"""
Google Calendar requests — build ``events.list`` calls and reshape the
result for the calendar widget.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from config.settings import config
from utils.schemas import ProviderRequest

DEFAULT_MAX_RESULTS = 50


def list_events_request(
    time_min: Optional[str] = None,
    time_max: Optional[str] = None,
    max_results: int = DEFAULT_MAX_RESULTS,
    calendar_id: str = "primary",
) -> ProviderRequest:
    """``GET calendars/{calendarId}/events`` expanded to single events, by start time."""
    params: Dict[str, Any] = {
        "maxResults": max_results,
        "orderBy": "startTime",
        "singleEvents": "true",
    }
    if time_min:
        params["timeMin"] = time_min
    if time_max:
        params["timeMax"] = time_max

    return ProviderRequest(
        method="GET",
        url=f"{config.google_api_base}/calendar/v3/calendars/{calendar_id}/events",
        params=params,
    )


def _parse_event(event: Dict[str, Any]) -> Dict[str, Any]:
    start = event.get("start") or {}
    end = event.get("end") or {}
    return {
        "id": event.get("id"),
        "title": event.get("summary") or "Untitled Event",
        "start": start.get("dateTime") or start.get("date"),
        "end": end.get("dateTime") or end.get("date"),
        "allDay": "dateTime" not in start,
        "description": event.get("description", ""),
        "location": event.get("location", ""),
        "attendees": [a.get("email") for a in event.get("attendees") or [] if a.get("email")],
    }


def format_events(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        payload = {}
    items: List[Dict[str, Any]] = payload.get("items") or []
    events = [_parse_event(e) for e in items]
    return {
        "success": True,
        "events": events,
        "count": len(events),
        "nextPageToken": payload.get("nextPageToken"),
    }
