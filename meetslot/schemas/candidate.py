# meetslot/schemas/candidate.py
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from meetslot.schemas.interval import TimeInterval
from meetslot.services.participant import Participant


def slot_id_for(interval: TimeInterval) -> str:
    """
    Stable identifier of a slot, derived from its UTC start instant.
    """
    return interval.start.strftime("slot-%Y%m%dT%H%MZ")


class ScoredCandidate(BaseModel):
    """
    A candidate meeting slot together with its attendance-based score.

    The participant lists hold references into the Schedule roster; they
    are not copies and do not outlive the roster in any meaningful way.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    slot_id: str = Field(..., description="Stable identifier of the slot.", examples=["slot-20240115T0900Z"])
    interval: TimeInterval = Field(..., description="The candidate slot [start, end).")
    score: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Combined preference score: Mid component * 0.4 + overall attendance * 0.6.",
        examples=[0.85],
    )
    mid_attendance_rate: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Fraction of Mid-tier participants available (0 when the Mid tier is empty).",
        examples=[0.5],
    )
    overall_attendance_rate: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Fraction of all participants available.",
        examples=[0.75],
    )
    available_participants: list[Participant] = Field(default_factory=list)
    unavailable_participants: list[Participant] = Field(default_factory=list)

    @property
    def start(self) -> datetime:
        return self.interval.start

    @property
    def end(self) -> datetime:
        return self.interval.end

    @property
    def duration_minutes(self) -> int:
        return int(self.interval.duration.total_seconds() // 60)

    @property
    def available_ids(self) -> list[str]:
        return [p.id for p in self.available_participants]

    @property
    def unavailable_ids(self) -> list[str]:
        return [p.id for p in self.unavailable_participants]
