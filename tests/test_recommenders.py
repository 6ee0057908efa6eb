# tests/test_recommenders.py
import json

import pytest

from meetslot.schemas.recommendation import AttendeeStatus
from meetslot.services.gemini_client import GeminiClientError
from meetslot.services.participant import Participant
from meetslot.services.recommenders import (
    AlgorithmicRecommender,
    GeminiRecommender,
    RecommenderError,
    extract_json,
    recommend_slots,
    serialize_candidates,
)
from meetslot.services.schedule import Schedule

from conftest import MONDAY, at


class FakeGeminiClient:
    """
    Stand-in for GeminiClient that returns a canned reply.
    """

    def __init__(self, reply: str = "", raise_error: bool = False):
        self.reply = reply
        self.raise_error = raise_error
        self.calls = 0
        self.last_prompt = None

    async def generate(self, system_instruction: str, prompt: str) -> str:
        self.calls += 1
        self.last_prompt = prompt
        if self.raise_error:
            raise GeminiClientError("Simulated Gemini outage")
        return self.reply


def _ranked():
    schedule = Schedule(MONDAY, MONDAY, 30)
    boss = Participant("boss@example.com", "Boss", "High")
    dev = Participant("dev@example.com", "Dev", "Mid", start_hour=10)
    intern = Participant("intern@example.com", "Intern", "Low")
    intern.add_event(at(13), at(17))
    for p in (boss, dev, intern):
        schedule.add_user(p)
    return schedule.generate()


def _gemini_reply(slot_ids, fenced: bool = False) -> str:
    body = json.dumps(
        {
            "suggestions": [
                {
                    "timeslot": {"id": sid, "startISO": "", "endISO": ""},
                    "score": 88.4,
                    "confidence": 140,
                    "reason": "Everyone important is free.",
                    "suggestedAttendees": [{"participantId": "boss@example.com", "status": "suggest"}],
                    "practicalNotes": ["Send a tentative invite first"],
                }
                for sid in slot_ids
            ],
            "explainability": "Picked the highest attendance slots.",
        }
    )
    return f"```json\n{body}\n```" if fenced else body


@pytest.mark.asyncio
async def test_algorithmic_recommender_takes_top_candidates_in_order():
    ranked = _ranked()

    result = await AlgorithmicRecommender().recommend(ranked, 3)

    assert result.source == "algorithm"
    assert [s.slot_id for s in result.suggestions] == [c.slot_id for c in ranked[:3]]
    top = result.suggestions[0]
    assert top.score == 100
    assert top.confidence == 95
    assert "All participants are free" in top.reason


@pytest.mark.asyncio
async def test_algorithmic_recommender_attendee_statuses():
    ranked = _ranked()
    afternoon = next(c for c in ranked if c.start == at(14))

    result = await AlgorithmicRecommender().recommend([afternoon], 1)
    statuses = {a.participant_id: a.status for a in result.suggestions[0].suggested_attendees}

    assert statuses == {
        "boss@example.com": AttendeeStatus.SUGGEST,
        "dev@example.com": AttendeeStatus.OPTIONAL,
        "intern@example.com": AttendeeStatus.OPTIONAL,
    }
    assert "1 participant(s) have conflicts" in result.suggestions[0].reason


def test_serialize_candidates_lists_ids_and_participants():
    ranked = _ranked()

    text = serialize_candidates(ranked[:2])
    lines = text.splitlines()

    assert len(lines) == 2
    assert lines[0].startswith(f"- id:{ranked[0].slot_id} start:")
    assert "duration:30m" in lines[0]
    assert "available:[boss@example.com, dev@example.com, intern@example.com]" in lines[0]


def test_extract_json_strips_markdown_fence():
    assert extract_json('```json\n{"a": 1}\n```') == {"a": 1}
    assert extract_json('{"a": 2}') == {"a": 2}
    with pytest.raises(RecommenderError):
        extract_json("not json at all")
    with pytest.raises(RecommenderError):
        extract_json("[1, 2]")


@pytest.mark.asyncio
async def test_gemini_recommender_parses_reply():
    ranked = _ranked()
    ids = [ranked[2].slot_id, ranked[0].slot_id]
    client = FakeGeminiClient(_gemini_reply(ids, fenced=True))

    result = await GeminiRecommender(client).recommend(ranked[:10], 3)

    assert result.source == "gemini"
    assert [s.slot_id for s in result.suggestions] == ids
    first = result.suggestions[0]
    assert first.start == ranked[2].start
    assert first.score == 88
    assert first.confidence == 100
    assert first.suggested_attendees[0].status == AttendeeStatus.SUGGEST
    assert first.practical_notes == ["Send a tentative invite first"]
    assert result.explainability == "Picked the highest attendance slots."
    assert ranked[0].slot_id in client.last_prompt


@pytest.mark.asyncio
async def test_gemini_recommender_rejects_unknown_slot():
    ranked = _ranked()
    client = FakeGeminiClient(_gemini_reply(["slot-19990101T0000Z"]))

    with pytest.raises(RecommenderError):
        await GeminiRecommender(client).recommend(ranked[:5], 3)


@pytest.mark.asyncio
async def test_gemini_recommender_wraps_client_errors():
    client = FakeGeminiClient(raise_error=True)

    with pytest.raises(RecommenderError):
        await GeminiRecommender(client).recommend(_ranked()[:5], 3)


@pytest.mark.asyncio
async def test_gemini_recommender_rejects_non_finite_scores():
    ranked = _ranked()
    reply = (
        '{"suggestions": [{"timeslot": {"id": "%s"}, "score": 1e999, "confidence": 50}]}'
        % ranked[0].slot_id
    )

    with pytest.raises(RecommenderError):
        await GeminiRecommender(FakeGeminiClient(reply)).recommend(ranked[:5], 3)

    result = await recommend_slots(ranked, primary=GeminiRecommender(FakeGeminiClient(reply)), count=1)
    assert result.source == "algorithm"
    assert "error" in result.raw


@pytest.mark.asyncio
async def test_recommend_slots_without_primary_is_algorithmic():
    ranked = _ranked()

    result = await recommend_slots(ranked, count=3, top_n=10)

    assert result.source == "algorithm"
    assert len(result.suggestions) == 3
    assert result.raw is None


@pytest.mark.asyncio
async def test_recommend_slots_falls_back_on_failure():
    ranked = _ranked()
    client = FakeGeminiClient("I would pick Monday morning!")

    result = await recommend_slots(ranked, primary=GeminiRecommender(client), count=2, top_n=5)

    assert client.calls == 1
    assert result.source == "algorithm"
    assert [s.slot_id for s in result.suggestions] == [c.slot_id for c in ranked[:2]]
    assert "error" in result.raw


@pytest.mark.asyncio
async def test_recommend_slots_uses_primary_when_it_succeeds():
    ranked = _ranked()
    client = FakeGeminiClient(_gemini_reply([ranked[1].slot_id]))

    result = await recommend_slots(ranked, primary=GeminiRecommender(client), count=3, top_n=5)

    assert result.source == "gemini"
    assert [s.slot_id for s in result.suggestions] == [ranked[1].slot_id]


@pytest.mark.asyncio
async def test_recommend_slots_never_calls_service_without_candidates():
    client = FakeGeminiClient(raise_error=True)

    result = await recommend_slots([], primary=GeminiRecommender(client))

    assert client.calls == 0
    assert result.source == "algorithm"
    assert result.suggestions == []


@pytest.mark.asyncio
async def test_recommend_slots_defaults_come_from_settings(monkeypatch):
    monkeypatch.setenv("RECOMMENDATION_COUNT", "2")

    result = await recommend_slots(_ranked())

    assert len(result.suggestions) == 2
