# meetslot/services/recommenders.py
from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from meetslot.core.config import get_settings
from meetslot.schemas.candidate import ScoredCandidate
from meetslot.schemas.participant import Tier
from meetslot.schemas.recommendation import (
    AttendeeStatus,
    RecommendationResult,
    SlotRecommendation,
    SuggestedAttendee,
)
from meetslot.services.gemini_client import GeminiClient, GeminiClientError

logger = logging.getLogger(__name__)


class RecommenderError(RuntimeError):
    """
    Raised when a re-ranking strategy cannot produce usable suggestions.
    """


class SlotRecommender(ABC):
    """
    Strategy that picks a handful of recommendations from ranked candidates.

    ``candidates`` is the Schedule's ranked list (best first), already
    truncated to the number of slots the strategy should consider.
    """

    source: str = "algorithm"

    @abstractmethod
    async def recommend(
        self,
        candidates: Sequence[ScoredCandidate],
        count: int,
    ) -> RecommendationResult:
        """
        Return at most ``count`` recommendations.

        Raises RecommenderError if no usable suggestions could be produced.
        """


def _percent(value: float) -> int:
    return max(0, min(100, int(round(value * 100))))


class AlgorithmicRecommender(SlotRecommender):
    """
    Deterministic recommender built purely on the engine's ranking.

    Rules
    -----
    - Takes the first ``count`` candidates in ranked order.
    - score      = candidate score mapped to 0..100
    - confidence = round(score * 0.9 + 5), clamped to 30..95
    - Available High-tier participants are 'suggest', every other
      available participant and every unavailable non-High participant
      is 'optional'.
    """

    source = "algorithm"

    async def recommend(
        self,
        candidates: Sequence[ScoredCandidate],
        count: int,
    ) -> RecommendationResult:
        suggestions = [self._to_recommendation(c) for c in list(candidates)[: max(count, 0)]]
        return RecommendationResult(
            source="algorithm",
            suggestions=suggestions,
            explainability=(
                "Slots ranked by 0.4 x Mid-tier attendance + 0.6 x overall attendance; "
                "every High-tier participant is free in each slot."
            ),
        )

    @staticmethod
    def _to_recommendation(candidate: ScoredCandidate) -> SlotRecommendation:
        score = _percent(candidate.score)
        confidence = max(30, min(95, int(round(score * 0.9 + 5))))

        attendees: List[SuggestedAttendee] = []
        for participant in candidate.available_participants:
            status = AttendeeStatus.SUGGEST if participant.tier == Tier.HIGH else AttendeeStatus.OPTIONAL
            attendees.append(SuggestedAttendee(participant_id=participant.id, status=status))
        for participant in candidate.unavailable_participants:
            if participant.tier != Tier.HIGH:
                attendees.append(
                    SuggestedAttendee(participant_id=participant.id, status=AttendeeStatus.OPTIONAL)
                )

        missing = len(candidate.unavailable_participants)
        if missing:
            reason = f"{missing} participant(s) have conflicts during this time"
        else:
            reason = "All participants are free during this time slot"
        reason += (
            f" (Mid attendance {_percent(candidate.mid_attendance_rate)}%, "
            f"overall {_percent(candidate.overall_attendance_rate)}%)."
        )

        return SlotRecommendation(
            slot_id=candidate.slot_id,
            start=candidate.start,
            end=candidate.end,
            score=score,
            confidence=confidence,
            reason=reason,
            suggested_attendees=attendees,
        )


SYSTEM_INSTRUCTION = """
You are an expert meeting scheduler assistant.
Your job: from the provided candidate timeslots (already ranked by an attendance score), choose and explain
the top meeting times most likely to maximize presence of high-priority participants.
Return EXACTLY a JSON object adhering to the schema requested below, and nothing else.
""".strip()

OUTPUT_SCHEMA = """
{
  "suggestions": [
    {
      "timeslot": { "id": "", "startISO": "", "endISO": "" },
      "score": number,        // 0..100
      "confidence": number,   // 0..100
      "reason": "string",
      "suggestedAttendees": [ { "participantId": "", "status": "suggest" | "optional" } ],
      "practicalNotes": [ "string" ]
    }
  ],
  "explainability": "short summary explaining how scores were computed (1-3 sentences)"
}
""".strip()

_FENCE_START = re.compile(r"^```(?:json)?\s*")
_FENCE_END = re.compile(r"\s*```$")


def serialize_candidates(candidates: Sequence[ScoredCandidate]) -> str:
    """
    One line per candidate, in ranked order.
    """
    lines = []
    for c in candidates:
        lines.append(
            f"- id:{c.slot_id} start:{c.start.isoformat()} end:{c.end.isoformat()} "
            f"duration:{c.duration_minutes}m score:{c.score:.3f} "
            f"available:[{', '.join(c.available_ids)}] "
            f"unavailable:[{', '.join(c.unavailable_ids)}]"
        )
    return "\n".join(lines)


def serialize_participants(candidates: Sequence[ScoredCandidate]) -> str:
    seen: Dict[str, str] = {}
    for c in candidates:
        for p in c.available_participants + c.unavailable_participants:
            seen.setdefault(p.id, f"- id:{p.id} name:{p.display_name} priority:{p.tier.value}")
    return "\n".join(seen.values())


def build_prompt(candidates: Sequence[ScoredCandidate], count: int, context_notes: Optional[str] = None) -> str:
    return f"""
TIMESLOTS (ranked candidate list):
{serialize_candidates(candidates)}

PARTICIPANTS:
{serialize_participants(candidates)}

CONTEXT NOTES:
{context_notes or "None"}

RULES:
1) Choose from the provided timeslots only, referring to them by id.
2) High-priority participants are already free in every listed slot; prefer slots where more Mid and Low participants can attend.
3) Provide {count} suggested timeslots.
4) For each suggestion include: timeslot (id/startISO/endISO), confidence 0-100, score 0-100, why you selected it
   (2-4 sentences), suggestedAttendees (participantId + status 'suggest'|'optional') and practical scheduling notes.

OUTPUT SCHEMA (RETURN EXACT JSON following this shape):
{OUTPUT_SCHEMA}
""".strip()


def extract_json(text: str) -> Dict[str, Any]:
    """
    Parse the model reply, tolerating a surrounding markdown code fence.
    """
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_END.sub("", _FENCE_START.sub("", cleaned))
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise RecommenderError(f"Re-ranker reply is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise RecommenderError("Re-ranker reply is not a JSON object")
    return payload


def _clamp_percent(value: Any) -> int:
    return max(0, min(100, int(round(float(value)))))


class GeminiRecommender(SlotRecommender):
    """
    Re-ranks the engine's top candidates with the Gemini API.

    Any transport failure, unparseable reply or reference to an unknown
    slot id is reported as RecommenderError so the caller can fall back.
    """

    source = "gemini"

    def __init__(self, client: GeminiClient, context_notes: Optional[str] = None) -> None:
        self.client = client
        self.context_notes = context_notes

    async def recommend(
        self,
        candidates: Sequence[ScoredCandidate],
        count: int,
    ) -> RecommendationResult:
        if not candidates:
            raise RecommenderError("No candidates to re-rank")

        prompt = build_prompt(candidates, count, self.context_notes)
        try:
            text = await self.client.generate(SYSTEM_INSTRUCTION, prompt)
        except GeminiClientError as exc:
            raise RecommenderError(str(exc)) from exc

        payload = extract_json(text)
        suggestions = self._parse_suggestions(payload, candidates)[:count]
        if not suggestions:
            raise RecommenderError("Re-ranker returned no usable suggestions")

        explainability = payload.get("explainability")
        return RecommendationResult(
            source="gemini",
            suggestions=suggestions,
            explainability=explainability if isinstance(explainability, str) else None,
            raw=payload,
        )

    @staticmethod
    def _parse_suggestions(
        payload: Dict[str, Any],
        candidates: Sequence[ScoredCandidate],
    ) -> List[SlotRecommendation]:
        raw_suggestions = payload.get("suggestions")
        if not isinstance(raw_suggestions, list):
            raise RecommenderError("Re-ranker returned unexpected schema (no suggestions list)")

        by_id = {c.slot_id: c for c in candidates}
        parsed: List[SlotRecommendation] = []

        for item in raw_suggestions:
            if not isinstance(item, dict):
                raise RecommenderError("Re-ranker suggestion is not an object")
            slot = item.get("timeslot") or {}
            slot_id = slot.get("id") if isinstance(slot, dict) else None
            candidate = by_id.get(slot_id)
            if candidate is None:
                raise RecommenderError(f"Re-ranker referenced unknown slot id {slot_id!r}")

            try:
                parsed.append(
                    SlotRecommendation(
                        slot_id=candidate.slot_id,
                        start=candidate.start,
                        end=candidate.end,
                        score=_clamp_percent(item.get("score", 0)),
                        confidence=_clamp_percent(item.get("confidence", 0)),
                        reason=str(item.get("reason") or ""),
                        suggested_attendees=item.get("suggestedAttendees") or [],
                        practical_notes=[str(n) for n in item.get("practicalNotes") or []],
                    )
                )
            except (TypeError, ValueError, OverflowError, ValidationError) as exc:
                raise RecommenderError(f"Re-ranker suggestion for {slot_id} is malformed: {exc}") from exc

        return parsed


async def recommend_slots(
    candidates: Sequence[ScoredCandidate],
    primary: Optional[SlotRecommender] = None,
    fallback: Optional[SlotRecommender] = None,
    count: Optional[int] = None,
    top_n: Optional[int] = None,
) -> RecommendationResult:
    """
    Produce recommendations from a ranked candidate list.

    Behavior
    --------
    - Only the first ``top_n`` candidates are shown to the strategies.
    - ``primary`` (e.g. GeminiRecommender) is tried first when given.
    - On RecommenderError, or when no primary is configured, the
      deterministic ``fallback`` (AlgorithmicRecommender by default) is
      used. The error text is kept in ``raw``.
    - An empty candidate list never reaches the external service.
    """
    settings = get_settings()
    count = settings.RECOMMENDATION_COUNT if count is None else count
    top_n = settings.RERANK_TOP_N if top_n is None else top_n
    fallback = fallback or AlgorithmicRecommender()

    shortlist = list(candidates)[: max(top_n, 0)]
    error: Optional[str] = None

    if primary is not None and shortlist:
        try:
            return await primary.recommend(shortlist, count)
        except RecommenderError as exc:
            error = str(exc)
            logger.warning("Re-ranking with %s failed, using algorithmic ranking: %s", primary.source, exc)

    result = await fallback.recommend(shortlist, count)
    if error is not None:
        result = result.model_copy(update={"raw": {"error": error}})
    return result
