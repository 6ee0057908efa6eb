# meetslot/schemas/participant.py
from __future__ import annotations

from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# 0 = Sunday .. 6 = Saturday
MONDAY_TO_FRIDAY = frozenset({1, 2, 3, 4, 5})


class Tier(str, Enum):
    """
    Priority tier of a participant.

    HIGH attendance is a hard constraint; MID and LOW only affect the score.
    """

    HIGH = "High"
    MID = "Mid"
    LOW = "Low"


class WorkingHours(BaseModel):
    """
    Working-hour constraints of a single participant.

    Hours and weekdays are interpreted in ``timezone``. Weekdays use
    0 = Sunday .. 6 = Saturday.
    """

    model_config = ConfigDict(frozen=True)

    start_hour: int = Field(9, ge=0, le=23, description="First hour a meeting may start in.")
    end_hour: int = Field(17, ge=0, le=23, description="Hour by which a meeting must have ended.")
    working_days: frozenset[int] = Field(
        MONDAY_TO_FRIDAY,
        description="Weekdays the participant works on (0 = Sunday .. 6 = Saturday).",
    )
    timezone: str = Field("UTC", description="IANA timezone name for hour/weekday checks.")

    @field_validator("working_days")
    @classmethod
    def _check_days(cls, value: frozenset[int]) -> frozenset[int]:
        bad = sorted(d for d in value if not 0 <= d <= 6)
        if bad:
            raise ValueError(f"working_days must be within 0..6, got {bad}")
        return value

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone: {value!r}") from exc
        return value

    @model_validator(mode="after")
    def _check_hours(self) -> "WorkingHours":
        if self.start_hour >= self.end_hour:
            raise ValueError(
                f"start_hour must be before end_hour (start_hour={self.start_hour}, "
                f"end_hour={self.end_hour})"
            )
        return self

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)
