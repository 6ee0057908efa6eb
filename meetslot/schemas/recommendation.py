# meetslot/schemas/recommendation.py
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class AttendeeStatus(str, Enum):
    SUGGEST = "suggest"
    OPTIONAL = "optional"


class SuggestedAttendee(BaseModel):
    participant_id: str = Field(..., alias="participantId", examples=["lead@example.com"])
    status: AttendeeStatus = Field(
        ...,
        description="'suggest' for attendees the invite should target, 'optional' otherwise.",
    )

    model_config = ConfigDict(populate_by_name=True)


class SlotRecommendation(BaseModel):
    """
    One recommended meeting time, either produced by the algorithmic
    fallback or parsed from the re-ranking service.
    """

    slot_id: str = Field(..., description="Identifier of the ranked candidate this refers to.")
    start: datetime = Field(..., description="UTC start of the recommended slot.")
    end: datetime = Field(..., description="UTC end of the recommended slot.")
    score: int = Field(..., ge=0, le=100, description="Recommendation score on a 0..100 scale.")
    confidence: int = Field(..., ge=0, le=100, description="Confidence on a 0..100 scale.")
    reason: str = Field("", description="Short free-text justification.")
    suggested_attendees: list[SuggestedAttendee] = Field(default_factory=list)
    practical_notes: list[str] = Field(default_factory=list)


class RecommendationResult(BaseModel):
    """
    Final recommendation payload handed to the caller.
    """

    source: Literal["gemini", "algorithm"] = Field(
        ...,
        description="Which strategy produced the suggestions.",
    )
    suggestions: list[SlotRecommendation] = Field(default_factory=list)
    explainability: str | None = Field(
        None,
        description="Short summary of how the suggestions were scored.",
    )
    raw: dict | None = Field(
        None,
        description="Raw re-ranker payload, or error details when the fallback was used.",
    )
