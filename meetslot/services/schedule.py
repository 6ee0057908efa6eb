# meetslot/services/schedule.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, List, Optional

from meetslot.core.errors import (
    DuplicateParticipantError,
    EmptyRosterError,
    InvalidDurationError,
    InvalidRangeError,
)
from meetslot.schemas.candidate import ScoredCandidate
from meetslot.schemas.interval import as_utc
from meetslot.schemas.participant import Tier
from meetslot.services.candidate_generator import (
    CandidateGenerator,
    choose_reference_participant,
)
from meetslot.services.participant import Participant
from meetslot.services.scorer import SlotScorer

logger = logging.getLogger(__name__)


class Schedule:
    """
    Orchestrates candidate generation and scoring for one meeting request.

    Lifecycle
    ---------
    - Empty: constructed, no participants, ``results == []``.
    - Populated: after one or more ``add_user`` calls.
    - Scored: after ``generate()``; each call fully replaces ``results``.

    Busy calendars must be loaded into every participant before
    ``generate()`` is called; the schedule performs no calendar I/O and
    must not be mutated while ``generate()`` runs.
    """

    def __init__(
        self,
        start_date: datetime,
        end_date: datetime,
        meeting_duration_minutes: int,
        *,
        allow_duplicates: bool = True,
    ) -> None:
        start_date = as_utc(start_date)
        end_date = as_utc(end_date)
        if start_date > end_date:
            raise InvalidRangeError(
                f"start date must not be after end date (start={start_date.isoformat()}, "
                f"end={end_date.isoformat()})"
            )
        if isinstance(meeting_duration_minutes, bool) or not isinstance(meeting_duration_minutes, int):
            raise InvalidDurationError(
                f"meeting duration must be an integer number of minutes, got {meeting_duration_minutes!r}"
            )
        if meeting_duration_minutes <= 0:
            raise InvalidDurationError(
                f"meeting duration must be positive, got {meeting_duration_minutes}"
            )

        self.start_date = start_date
        self.end_date = end_date
        self.meeting_duration_minutes = meeting_duration_minutes
        self.allow_duplicates = allow_duplicates

        self._roster: Dict[Tier, List[Participant]] = {tier: [] for tier in Tier}
        self._results: List[ScoredCandidate] = []

    # ------------------------------------------------------------------ roster

    def add_user(self, participant: Participant) -> None:
        """
        Append a participant to the roster list of its tier.
        """
        if not self.allow_duplicates and self.find_user(participant.id) is not None:
            raise DuplicateParticipantError(
                f"participant {participant.id!r} is already part of this schedule"
            )
        self._roster[participant.tier].append(participant)

    def remove_user(self, participant_id: str) -> None:
        """
        Remove every roster entry with the given id. No-op if absent.
        """
        for tier, members in self._roster.items():
            self._roster[tier] = [p for p in members if p.id != participant_id]

    def find_user(self, participant_id: str) -> Optional[Participant]:
        for participant in self.all_participants():
            if participant.id == participant_id:
                return participant
        return None

    def participants_by_tier(self, tier: Tier | str) -> List[Participant]:
        return list(self._roster[Tier(tier)])

    @property
    def high(self) -> List[Participant]:
        return self.participants_by_tier(Tier.HIGH)

    @property
    def mid(self) -> List[Participant]:
        return self.participants_by_tier(Tier.MID)

    @property
    def low(self) -> List[Participant]:
        return self.participants_by_tier(Tier.LOW)

    def all_participants(self) -> List[Participant]:
        """
        Every participant, High first, then Mid, then Low.
        """
        return self.high + self.mid + self.low

    def total_count(self) -> int:
        return sum(len(members) for members in self._roster.values())

    # ----------------------------------------------------------------- results

    @property
    def results(self) -> List[ScoredCandidate]:
        return list(self._results)

    def top(self, n: int) -> List[ScoredCandidate]:
        return self._results[: max(n, 0)]

    def _require_roster(self) -> List[Participant]:
        everyone = self.all_participants()
        if not everyone:
            raise EmptyRosterError("cannot generate meeting slots for an empty roster")
        return everyone

    def generate(self) -> List[ScoredCandidate]:
        """
        Generate, score and rank every candidate slot in the date range.

        Returns the new ranked list (also available as ``results``). An
        empty roster yields an empty list rather than an exception.
        """
        try:
            everyone = self._require_roster()
        except EmptyRosterError as exc:
            logger.warning("Skipping slot generation: %s", exc)
            self._results = []
            return []

        high = self.high
        reference = choose_reference_participant(high, everyone)

        generator = CandidateGenerator(
            duration_minutes=self.meeting_duration_minutes,
            reference=reference,
            high_tier=high,
        )
        scorer = SlotScorer(high=high, mid=self.mid, low=self.low)

        slots = generator.slots_for_range(self.start_date, self.end_date)
        scored = [scorer.score(slot) for slot in slots]

        # list.sort is stable: equal scores keep chronological order.
        scored.sort(key=lambda candidate: candidate.score, reverse=True)

        self._results = scored
        logger.info(
            "Scored %d candidate slots for %d participant(s) between %s and %s",
            len(scored),
            len(everyone),
            self.start_date.date().isoformat(),
            self.end_date.date().isoformat(),
        )
        return list(scored)
