# meetslot/services/calendar_loader.py
from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from meetslot.core.errors import InvalidIntervalError
from meetslot.schemas.interval import as_utc
from meetslot.services.graph_client import GraphClient
from meetslot.services.participant import Participant

logger = logging.getLogger(__name__)

FREE_SHOW_AS = "free"

# Graph emits seven fractional digits; fromisoformat wants three or six.
_FRACTION_RE = re.compile(r"\.(\d+)")


def parse_graph_datetime(dt_obj: Any) -> Optional[datetime]:
    """
    Convert a Graph ``{"dateTime": ..., "timeZone": ...}`` object into an
    aware UTC datetime. Returns None when the value cannot be parsed.

    Events are requested with a UTC preference header, so naive values are
    treated as UTC.
    """
    if not isinstance(dt_obj, dict):
        return None
    raw = dt_obj.get("dateTime")
    if not isinstance(raw, str) or not raw:
        return None
    try:
        normalized = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), raw, count=1)
        value = datetime.fromisoformat(normalized.replace("Z", "+00:00"))
    except ValueError:
        return None
    return as_utc(value)


def events_to_busy_intervals(events: Iterable[Dict[str, Any]]) -> List[Tuple[datetime, datetime]]:
    """
    Turn Graph calendar events into ``(start, end)`` busy pairs.

    Skipped
    -------
    - cancelled events (``isCancelled``)
    - events shown as free (``showAs == "free"``)
    - events with missing or unparseable start/end timestamps
    """
    pairs: List[Tuple[datetime, datetime]] = []
    for event in events:
        event_id = event.get("id", "<unknown>")

        if event.get("isCancelled"):
            continue
        if str(event.get("showAs") or "").lower() == FREE_SHOW_AS:
            continue

        start = parse_graph_datetime(event.get("start"))
        end = parse_graph_datetime(event.get("end"))
        if start is None or end is None:
            logger.warning(
                "Skipping event %s with invalid timestamps (start=%r, end=%r)",
                event_id,
                event.get("start"),
                event.get("end"),
            )
            continue

        pairs.append((start, end))
    return pairs


def load_busy_events(participant: Participant, events: Iterable[Dict[str, Any]]) -> int:
    """
    Feed calendar events into a participant's busy schedule.

    Events rejected by the store (start >= end) are logged and dropped.
    Returns the number of busy intervals that were accepted.
    """
    accepted = 0
    for start, end in events_to_busy_intervals(events):
        try:
            participant.add_event(start, end)
        except InvalidIntervalError as exc:
            logger.warning("Dropping busy event for %s: %s", participant.id, exc)
            continue
        accepted += 1
    return accepted


class GraphCalendarSource:
    """
    Reads a user's calendar events for a date window from Microsoft Graph.
    """

    def __init__(self, graph_client: GraphClient, page_size: int = 100) -> None:
        self.graph = graph_client
        self.page_size = page_size

    async def fetch_events(
        self,
        user_id: str,
        range_start: datetime,
        range_end: datetime,
    ) -> List[Dict[str, Any]]:
        """
        Fetch every event overlapping the days of ``[range_start, range_end]``.

        Follows ``@odata.nextLink`` pagination. Raises GraphClientError on
        failure.
        """
        first_day = as_utc(range_start).date()
        last_day = as_utc(range_end).date()
        window_start = datetime.combine(first_day, datetime.min.time(), tzinfo=timezone.utc)
        window_end = datetime.combine(last_day, datetime.min.time(), tzinfo=timezone.utc) + timedelta(days=1)

        path = "/v1.0/me/calendarView" if user_id == "me" else f"/v1.0/users/{user_id}/calendarView"
        params: Optional[Dict[str, Any]] = {
            "startDateTime": window_start.isoformat(),
            "endDateTime": window_end.isoformat(),
            "$select": "id,subject,start,end,isAllDay,isCancelled,showAs",
            "$orderby": "start/dateTime asc",
            "$top": self.page_size,
        }
        headers = {"Prefer": 'outlook.timezone="UTC"'}

        events: List[Dict[str, Any]] = []
        next_path: Optional[str] = path
        while next_path:
            payload = await self.graph.get_json(next_path, params=params, headers=headers)
            events.extend(payload.get("value", []))
            next_path = payload.get("@odata.nextLink")
            # nextLink already carries the query string
            params = None

        return events
