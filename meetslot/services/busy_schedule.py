# meetslot/services/busy_schedule.py
from __future__ import annotations

from bisect import bisect_left
from datetime import datetime, timedelta
from typing import List

from meetslot.core.errors import InvalidIntervalError
from meetslot.schemas.interval import TimeInterval, as_utc


class BusySchedule:
    """
    Sorted collection of busy time ranges for a single participant.

    Responsibilities
    ----------------
    - Accept busy intervals in any order (one per calendar event).
    - Answer "is this range free?" for candidate slots.
    - Enumerate maximal free gaps inside a range.

    Notes
    -----
    - Intervals are sorted lazily: writes only mark the store dirty and
      the next read sorts once.
    - Intervals are never merged. Both queries handle overlapping busy
      ranges directly.
    """

    def __init__(self, owner_id: str = "") -> None:
        self.owner_id = owner_id
        self._events: List[TimeInterval] = []
        self._starts: List[datetime] = []
        self._max_end: List[datetime] = []
        self._sorted = True

    def __len__(self) -> int:
        return len(self._events)

    def add_event(self, start: datetime, end: datetime) -> TimeInterval:
        """
        Record a busy range ``[start, end)``.

        Raises InvalidIntervalError when ``start >= end``; the store is left
        unchanged in that case.
        """
        start = as_utc(start)
        end = as_utc(end)
        if start >= end:
            raise InvalidIntervalError(
                f"busy interval for {self.owner_id or 'participant'} must have "
                f"start < end (start={start.isoformat()}, end={end.isoformat()})"
            )

        interval = TimeInterval(start=start, end=end)
        self._events.append(interval)
        self._sorted = False
        return interval

    def _ensure_sorted(self) -> None:
        if self._sorted:
            return

        self._events.sort(key=lambda ev: ev.start)
        self._starts = [ev.start for ev in self._events]

        # Running maximum of end times, so a long event that starts early
        # is still found when probing a later range.
        self._max_end = []
        running = None
        for ev in self._events:
            running = ev.end if running is None or ev.end > running else running
            self._max_end.append(running)

        self._sorted = True

    def is_free(self, start: datetime, end: datetime) -> bool:
        """
        Return False if any stored interval overlaps ``[start, end)``.
        """
        self._ensure_sorted()
        if not self._events:
            return True

        start = as_utc(start)
        end = as_utc(end)

        # Only events starting before `end` can overlap; among those, the
        # largest end time decides.
        idx = bisect_left(self._starts, end)
        if idx == 0:
            return True
        return self._max_end[idx - 1] <= start

    def free_gaps(
        self,
        range_start: datetime,
        range_end: datetime,
        min_duration: timedelta = timedelta(0),
    ) -> List[TimeInterval]:
        """
        Return the maximal free gaps within ``[range_start, range_end]``.

        Gaps shorter than ``min_duration`` are dropped.
        """
        self._ensure_sorted()

        range_start = as_utc(range_start)
        range_end = as_utc(range_end)
        gaps: List[TimeInterval] = []
        if range_start >= range_end:
            return gaps

        cursor = range_start
        for ev in self._events:
            if ev.end <= range_start:
                continue
            if ev.start >= range_end:
                break

            if cursor < ev.start:
                gap_end = min(ev.start, range_end)
                if gap_end - cursor >= min_duration:
                    gaps.append(TimeInterval(start=cursor, end=gap_end))

            cursor = max(cursor, ev.end)

        if cursor < range_end and range_end - cursor >= min_duration:
            gaps.append(TimeInterval(start=cursor, end=range_end))

        return gaps

    def busy_intervals(self) -> List[TimeInterval]:
        """
        Return a sorted copy of the stored busy intervals.
        """
        self._ensure_sorted()
        return list(self._events)
