"""Classification verdict models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class InterestVerdict(BaseModel):
    """Whether an event matches the user's interests."""

    is_match: bool = False
    score: int = Field(default=0, ge=0, le=100)
    keyword_matches: list[str] = Field(default_factory=list)
    llm_reason: str | None = None  # Only set when an LLM contributed


class SpeakerVerdict(BaseModel):
    """Whether an event offers a chance to give a talk."""

    has_opportunity: bool = False
    has_lt_slot: bool = False
    has_cfp: bool = False
    detected_keywords: list[str] = Field(default_factory=list)


class Classification(BaseModel):
    """Combined verdicts for one event."""

    interest: InterestVerdict = Field(default_factory=InterestVerdict)
    speaker: SpeakerVerdict = Field(default_factory=SpeakerVerdict)
    excluded: bool = False
    is_popular: bool = False

    @property
    def is_match(self) -> bool:
        return self.interest.is_match or self.speaker.has_opportunity

    @classmethod
    def negative(cls, excluded: bool = False) -> Classification:
        """Both verdicts negative, score 0."""
        return cls(excluded=excluded)
