# meetslot/services/candidate_generator.py
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, List, Optional, Sequence

from meetslot.schemas.interval import TimeInterval, as_utc
from meetslot.services.participant import Participant

logger = logging.getLogger(__name__)

SLOT_STRIDE_MINUTES = 5


def choose_reference_participant(
    high_tier: Sequence[Participant],
    everyone: Sequence[Participant],
) -> Optional[Participant]:
    """
    The participant whose working hours bound each day's slot grid.

    First High-tier participant, otherwise the first participant overall.
    """
    if high_tier:
        return high_tier[0]
    if everyone:
        return everyone[0]
    return None


class CandidateGenerator:
    """
    Enumerates fixed-length candidate slots on a 5-minute grid.

    Rules
    -----
    - Slots start between the reference participant's start_hour and
      end_hour (exclusive), every 5 minutes.
    - A slot must end no later than end_hour:00 of the same local day.
    - Every High-tier participant must be available for the slot. With an
      empty High tier this filter always passes.
    - Local times that do not exist on a DST change day are skipped, so
      no two slots share a start instant.

    Day boundaries and the grid are laid out in the reference participant's
    working-hours timezone; emitted slots are UTC.
    """

    def __init__(
        self,
        duration_minutes: int,
        reference: Participant,
        high_tier: Sequence[Participant],
    ) -> None:
        self.duration = timedelta(minutes=duration_minutes)
        self.reference = reference
        self.high_tier = list(high_tier)

    @property
    def _hours(self):
        return self.reference.working_hours

    def iter_days(self, range_start: datetime, range_end: datetime) -> Iterator[date]:
        """
        Yield every local calendar day from range_start to range_end inclusive.
        """
        zone = self._hours.zone
        day = as_utc(range_start).astimezone(zone).date()
        last = as_utc(range_end).astimezone(zone).date()
        while day <= last:
            yield day
            day += timedelta(days=1)

    def slots_for_day(self, day: date) -> List[TimeInterval]:
        hours = self._hours
        zone = hours.zone
        day_limit = datetime(
            day.year, day.month, day.day, hours.end_hour, tzinfo=zone
        ).astimezone(timezone.utc)

        slots: List[TimeInterval] = []
        for hour in range(hours.start_hour, hours.end_hour):
            for minute in range(0, 60, SLOT_STRIDE_MINUTES):
                local_start = datetime(day.year, day.month, day.day, hour, minute)
                slot_start = local_start.replace(tzinfo=zone).astimezone(timezone.utc)
                # Wall times skipped by a DST change do not round-trip.
                if slot_start.astimezone(zone).replace(tzinfo=None) != local_start:
                    continue
                slot_end = slot_start + self.duration

                if slot_end > day_limit:
                    continue

                if all(p.is_available(slot_start, slot_end) for p in self.high_tier):
                    slots.append(TimeInterval(start=slot_start, end=slot_end))

        return slots

    def slots_for_range(self, range_start: datetime, range_end: datetime) -> List[TimeInterval]:
        """
        Concatenate per-day candidates in chronological order.
        """
        slots: List[TimeInterval] = []
        days = 0
        for day in self.iter_days(range_start, range_end):
            slots.extend(self.slots_for_day(day))
            days += 1
        logger.debug(
            "Generated %d candidate slots over %d day(s) using reference %s",
            len(slots),
            days,
            self.reference.id,
        )
        return slots
