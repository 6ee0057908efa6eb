# meetslot/services/scorer.py
from __future__ import annotations

from typing import Sequence

from meetslot.schemas.candidate import ScoredCandidate, slot_id_for
from meetslot.schemas.interval import TimeInterval
from meetslot.services.participant import Participant

MID_WEIGHT = 0.4
OVERALL_WEIGHT = 0.6


def preference_score(mid_rate: float, overall_rate: float) -> float:
    """
    Combine attendance rates into a single score in [0, 1].

    When no Mid-tier participant can attend (or the Mid tier is empty) the
    Mid component is fixed at MID_WEIGHT instead of 0.
    """
    mid_component = MID_WEIGHT if mid_rate == 0 else mid_rate * MID_WEIGHT
    return mid_component + overall_rate * OVERALL_WEIGHT


class SlotScorer:
    """
    Scores candidate slots against a fixed roster.

    Read-only: it never mutates participants or their busy schedules.
    """

    def __init__(
        self,
        high: Sequence[Participant],
        mid: Sequence[Participant],
        low: Sequence[Participant],
    ) -> None:
        self.high = list(high)
        self.mid = list(mid)
        self.low = list(low)

    @property
    def everyone(self) -> list[Participant]:
        return self.high + self.mid + self.low

    def score(self, slot: TimeInterval) -> ScoredCandidate:
        available: list[Participant] = []
        unavailable: list[Participant] = []
        mid_available = 0

        for tier_members, is_mid in ((self.high, False), (self.mid, True), (self.low, False)):
            for participant in tier_members:
                if participant.is_available(slot.start, slot.end):
                    available.append(participant)
                    if is_mid:
                        mid_available += 1
                else:
                    unavailable.append(participant)

        total = len(self.high) + len(self.mid) + len(self.low)
        mid_rate = mid_available / len(self.mid) if self.mid else 0.0
        overall_rate = len(available) / total if total else 0.0

        return ScoredCandidate(
            slot_id=slot_id_for(slot),
            interval=slot,
            score=preference_score(mid_rate, overall_rate),
            mid_attendance_rate=mid_rate,
            overall_attendance_rate=overall_rate,
            available_participants=available,
            unavailable_participants=unavailable,
        )
