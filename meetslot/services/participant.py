# meetslot/services/participant.py
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from meetslot.core.config import get_settings
from meetslot.schemas.interval import TimeInterval, as_utc
from meetslot.schemas.participant import Tier, WorkingHours
from meetslot.services.busy_schedule import BusySchedule


def weekday_sunday_first(value: datetime) -> int:
    """
    Weekday number with 0 = Sunday .. 6 = Saturday.
    """
    return value.isoweekday() % 7


class Participant:
    """
    A meeting invitee with a priority tier, working hours and busy calendar.

    The tier is fixed at construction and decides which roster list of a
    Schedule holds the participant. Each participant exclusively owns its
    BusySchedule.
    """

    def __init__(
        self,
        participant_id: str,
        display_name: str,
        tier: Tier | str,
        *,
        start_hour: Optional[int] = None,
        end_hour: Optional[int] = None,
        working_days: Optional[Iterable[int]] = None,
        timezone: Optional[str] = None,
    ) -> None:
        if not participant_id:
            raise ValueError("participant_id is required")

        self._id = participant_id
        self.display_name = display_name or participant_id
        self._tier = Tier(tier)

        overrides = {
            "start_hour": start_hour,
            "end_hour": end_hour,
            "working_days": frozenset(working_days) if working_days is not None else None,
            "timezone": timezone or get_settings().DEFAULT_TIMEZONE,
        }
        self.working_hours = WorkingHours(
            **{key: value for key, value in overrides.items() if value is not None}
        )
        self.busy_schedule = BusySchedule(participant_id)

    @property
    def id(self) -> str:
        return self._id

    @property
    def tier(self) -> Tier:
        return self._tier

    def __repr__(self) -> str:
        return f"<Participant(id='{self._id}', tier={self._tier.value})>"

    def add_event(self, start: datetime, end: datetime) -> TimeInterval:
        return self.busy_schedule.add_event(start, end)

    def is_available(self, start: datetime, end: datetime) -> bool:
        """
        True if the slot ``[start, end)`` is inside working hours and free.

        Rules
        -----
        1) Weekday of ``start`` (in the working-hours timezone) must be a
           working day.
        2) Hour of ``start`` must be >= start_hour.
        3) ``end`` must not be later than end_hour:00 on the same local day.
           This is an hour-granularity check: ending at 17:00 with
           end_hour=17 is accepted, ending at 17:01 is not.
        4) The busy schedule must report the range as free.
        """
        zone = self.working_hours.zone
        local_start = as_utc(start).astimezone(zone)
        local_end = as_utc(end).astimezone(zone)

        if weekday_sunday_first(local_start) not in self.working_hours.working_days:
            return False

        if local_start.hour < self.working_hours.start_hour:
            return False

        if local_end.date() != local_start.date():
            return False
        end_time = local_end.time()
        if end_time.hour > self.working_hours.end_hour or (
            end_time.hour == self.working_hours.end_hour
            and (end_time.minute or end_time.second or end_time.microsecond)
        ):
            return False

        return self.busy_schedule.is_free(start, end)

    def free_slots(
        self,
        range_start: datetime,
        range_end: datetime,
        min_duration: timedelta = timedelta(0),
    ) -> List[TimeInterval]:
        """
        Free gaps of the busy calendar within a range (working hours ignored).
        """
        return self.busy_schedule.free_gaps(range_start, range_end, min_duration)
