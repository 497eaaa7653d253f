"""Hybrid event classifier.

Combines keyword heuristics, a participant-count threshold and a single LLM
call into one interest/speaker verdict per event.

## Policy (in order)

1. Title contains an exclude keyword -> excluded, nothing else runs
2. ``accepted >= min_participants`` -> popular: interest match with score 80,
   speaker verdict from the text heuristics, no LLM call
3. LLM configured -> one combined prompt for both verdicts; any failure
   yields the negative default
4. LLM disabled -> keyword matching and speaker heuristics decide

## LLM response format

```json
{
  "interest": {"is_match": true, "score": 75, "reason": "..."},
  "speaker": {"has_opportunity": true, "has_lt_slot": true, "has_cfp": false}
}
```
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import BaseModel, ValidationError, field_validator

from connpass_watcher.config import InterestSettings
from connpass_watcher.llm.base import LLMProvider
from connpass_watcher.matching.text import (
    analyze_speaker_opportunity,
    match_keywords,
    strip_html,
)
from connpass_watcher.models.event import Event
from connpass_watcher.models.verdict import (
    Classification,
    InterestVerdict,
    SpeakerVerdict,
)

logger = logging.getLogger(__name__)

POPULAR_SCORE = 80
MAX_DESCRIPTION_CHARS = 2000

FENCED_JSON_PATTERN = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
TRAILING_COMMA_PATTERN = re.compile(r",\s*([}\]])")

PROMPT_TEMPLATE = """You are an event recommendation assistant. Decide whether the event below matches the user's interests, and whether it offers the user a chance to speak (lightning talk slot or call for proposals).

## User profile
{profile}

## Interest keywords
{keywords}

## Event
Title: {title}
Catch: {catch}
Description: {description}
Place: {place}
Starts at: {started_at}

## Criteria
1. Relevance of the event content to the user's interests
2. Fit between the user's skill level and the event's audience
3. Speaking opportunity: an LT/speaker slot, or an open call for proposals

## Output
Reply with JSON only, in exactly this shape:
{{
  "interest": {{"is_match": true or false, "score": integer 0-100, "reason": "one or two sentences"}},
  "speaker": {{"has_opportunity": true or false, "has_lt_slot": true or false, "has_cfp": true or false}}
}}"""


class LLMResponseError(ValueError):
    """Raised when the LLM output cannot be turned into verdicts."""


class _InterestPayload(BaseModel):
    is_match: bool
    score: int
    reason: str | None = None

    @field_validator("score", mode="before")
    @classmethod
    def clamp_score(cls, v: Any) -> int:
        return max(0, min(100, int(round(float(v)))))


class _SpeakerPayload(BaseModel):
    has_opportunity: bool
    has_lt_slot: bool = False
    has_cfp: bool = False
    detected_keywords: list[str] | None = None


class _CombinedPayload(BaseModel):
    interest: _InterestPayload
    speaker: _SpeakerPayload


def _escape_newlines_in_strings(text: str) -> str:
    """Escape raw newlines that appear inside JSON string literals."""
    out: list[str] = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            elif ch == "\n":
                out.append("\\n")
                continue
            elif ch == "\r":
                out.append("\\r")
                continue
        elif ch == '"':
            in_string = True
        out.append(ch)
    return "".join(out)


def extract_json(text: str) -> dict[str, Any]:
    """Pull a JSON object out of free-form model output.

    Accepts fenced (```json) or bare objects, and repairs trailing commas and
    unescaped newlines inside string values.

    Raises:
        LLMResponseError: If no JSON object can be parsed
    """
    fenced = FENCED_JSON_PATTERN.search(text)
    candidate = fenced.group(1) if fenced else text

    start = candidate.find("{")
    end = candidate.rfind("}")
    if start == -1 or end <= start:
        raise LLMResponseError("No JSON object found in response")
    candidate = candidate[start : end + 1]

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        repaired = TRAILING_COMMA_PATTERN.sub(r"\1", _escape_newlines_in_strings(candidate))
        try:
            data = json.loads(repaired)
        except json.JSONDecodeError as e:
            raise LLMResponseError(f"Invalid JSON in response: {e}") from e

    if not isinstance(data, dict):
        raise LLMResponseError("Response JSON is not an object")
    return data


def parse_llm_response(text: str) -> tuple[InterestVerdict, SpeakerVerdict]:
    """Turn model output into verdicts.

    Raises:
        LLMResponseError: If the JSON is missing or lacks required fields
    """
    data = extract_json(text)
    try:
        payload = _CombinedPayload.model_validate(data)
    except ValidationError as e:
        raise LLMResponseError(f"Missing or invalid fields: {e}") from e

    interest = InterestVerdict(
        is_match=payload.interest.is_match,
        score=payload.interest.score,
        llm_reason=payload.interest.reason or None,
    )
    speaker_data = payload.speaker
    speaker = SpeakerVerdict(
        has_opportunity=(
            speaker_data.has_opportunity or speaker_data.has_lt_slot or speaker_data.has_cfp
        ),
        has_lt_slot=speaker_data.has_lt_slot,
        has_cfp=speaker_data.has_cfp,
        detected_keywords=speaker_data.detected_keywords or [],
    )
    return interest, speaker


class HybridClassifier:
    """Classify events by interest and speaking opportunity.

    Example:
        ```python
        classifier = HybridClassifier(settings.interests, llm=provider)

        if not classifier.is_excluded(event):
            classification = await classifier.classify(event)
        ```
    """

    def __init__(self, interests: InterestSettings, llm: LLMProvider | None = None):
        """Initialize the classifier.

        Args:
            interests: Keywords, exclude keywords, profile and threshold
            llm: LLM provider, or None to rely on heuristics only
        """
        self.interests = interests
        self.llm = llm

    def is_excluded(self, event: Event) -> bool:
        """Check the title against the exclude keywords."""
        title = event.title.lower()
        return any(kw.lower() in title for kw in self.interests.exclude_keywords if kw)

    def is_popular(self, event: Event) -> bool:
        return event.accepted >= self.interests.min_participants

    async def classify(self, event: Event) -> Classification:
        """Produce the interest and speaker verdicts for one event.

        Never raises for LLM failures; those yield the negative default.
        """
        if self.is_excluded(event):
            logger.debug(f"Event {event.id} excluded by title keyword")
            return Classification.negative(excluded=True)

        if self.is_popular(event):
            logger.debug(f"Event {event.id} is popular ({event.accepted} accepted)")
            return Classification(
                interest=InterestVerdict(
                    is_match=True,
                    score=POPULAR_SCORE,
                    keyword_matches=[f"popular({event.accepted})"],
                ),
                speaker=analyze_speaker_opportunity(event),
                is_popular=True,
            )

        if self.llm is None:
            return Classification(
                interest=match_keywords(event, self.interests.keywords),
                speaker=analyze_speaker_opportunity(event),
            )

        return await self._classify_with_llm(event)

    def build_prompt(self, event: Event) -> str:
        description = strip_html(event.description)[:MAX_DESCRIPTION_CHARS]
        return PROMPT_TEMPLATE.format(
            profile=self.interests.profile or "(not provided)",
            keywords=", ".join(self.interests.keywords) or "(none)",
            title=event.title,
            catch=event.catch,
            description=description,
            place=event.place or "TBD",
            started_at=event.started_at.isoformat(),
        )

    async def _classify_with_llm(self, event: Event) -> Classification:
        prompt = self.build_prompt(event)
        try:
            response_text = await self.llm.generate_text(prompt)
            interest, speaker = parse_llm_response(response_text)
        except Exception as e:
            logger.error(
                f"LLM classification failed for event {event.id} "
                f"({self.llm.name}): {e}"
            )
            return Classification.negative()

        logger.debug(
            f"LLM classification for event {event.id}: "
            f"interest={interest.is_match} ({interest.score}), "
            f"speaker={speaker.has_opportunity}"
        )
        return Classification(interest=interest, speaker=speaker)
