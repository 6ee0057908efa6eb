# meetslot/schemas/interval.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def as_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to an aware UTC datetime.

    Naive values are assumed to already be expressed in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TimeInterval(BaseModel):
    """
    Half-open time range ``[start, end)``.

    Used both for busy calendar ranges and for candidate meeting slots.
    Both endpoints are stored as aware UTC datetimes.
    """

    model_config = ConfigDict(frozen=True)

    start: datetime = Field(..., description="Inclusive start instant (UTC).")
    end: datetime = Field(..., description="Exclusive end instant (UTC).")

    @field_validator("start", "end")
    @classmethod
    def _normalize(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def _check_order(self) -> "TimeInterval":
        if self.start >= self.end:
            raise ValueError(
                f"interval start must be before end (start={self.start}, end={self.end})"
            )
        return self

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "TimeInterval") -> bool:
        """
        Two half-open intervals [a, b) and [c, d) overlap iff a < d and c < b.
        """
        return self.start < other.end and other.start < self.end
