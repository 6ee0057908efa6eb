# meetslot/services/meeting_planner.py
from __future__ import annotations

import logging
from typing import List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from meetslot.schemas.candidate import ScoredCandidate
from meetslot.schemas.recommendation import RecommendationResult
from meetslot.services.calendar_loader import GraphCalendarSource, load_busy_events
from meetslot.services.gemini_client import get_gemini_client
from meetslot.services.graph_client import GraphClientError
from meetslot.services.recommenders import GeminiRecommender, SlotRecommender, recommend_slots
from meetslot.services.schedule import Schedule

logger = logging.getLogger(__name__)


class MeetingPlan(BaseModel):
    """
    Outcome of planning one meeting: the full ranked list plus the
    recommendations picked from it.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    candidates: List[ScoredCandidate] = Field(default_factory=list)
    recommendation: RecommendationResult

    @property
    def has_slots(self) -> bool:
        return bool(self.candidates)


def default_recommender() -> Optional[SlotRecommender]:
    """
    GeminiRecommender when an API key is configured, otherwise None.
    """
    client = get_gemini_client()
    if client is None:
        return None
    return GeminiRecommender(client)


async def plan_meeting(
    schedule: Schedule,
    calendar_source: Optional[GraphCalendarSource] = None,
    recommender: Optional[SlotRecommender] = None,
    count: Optional[int] = None,
) -> MeetingPlan:
    """
    Load calendars (optional), rank every slot and pick recommendations.

    Behavior
    --------
    - With a calendar source, each participant's events for the schedule's
      date range are fetched and loaded before scoring. A failed fetch
      (Graph error or transport error) is logged and leaves that
      participant with no busy intervals.
    - Without one, busy data must already be loaded into the participants.
    - Without an explicit recommender, Gemini is used only when configured;
      the algorithmic ranking is the fallback either way.
    - An empty ranked list means "no available slots", not an error.
    """
    if calendar_source is not None:
        for participant in schedule.all_participants():
            try:
                events = await calendar_source.fetch_events(
                    participant.id, schedule.start_date, schedule.end_date
                )
            except (GraphClientError, httpx.HTTPError) as exc:
                logger.error("Calendar fetch failed for %s: %s", participant.id, exc)
                continue
            accepted = load_busy_events(participant, events)
            logger.info("Loaded %d busy interval(s) for %s", accepted, participant.id)

    candidates = schedule.generate()
    if not candidates:
        logger.info("No available slots for the requested constraints")

    if recommender is None:
        recommender = default_recommender()

    recommendation = await recommend_slots(candidates, primary=recommender, count=count)
    return MeetingPlan(candidates=candidates, recommendation=recommendation)
