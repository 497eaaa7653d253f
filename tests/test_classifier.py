"""Tests for the hybrid classifier and LLM response parsing."""

from unittest.mock import AsyncMock

import pytest

from connpass_watcher.config import InterestSettings
from connpass_watcher.llm.base import LLMError
from connpass_watcher.matching.classifier import (
    POPULAR_SCORE,
    HybridClassifier,
    LLMResponseError,
    extract_json,
    parse_llm_response,
)


@pytest.fixture
def interests() -> InterestSettings:
    return InterestSettings(
        keywords=["Python", "Rust"],
        exclude_keywords=["book club"],
        profile="Backend engineer",
        min_participants=50,
    )


class TestExtractJson:
    """Tests for lenient JSON extraction."""

    def test_bare_object(self):
        """A bare JSON object parses as-is."""
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_fenced_object_with_prose(self):
        """JSON inside a fenced block is found among prose."""
        text = 'Here you go:\n```json\n{"a": 1}\n```\nThanks!'
        assert extract_json(text) == {"a": 1}

    def test_trailing_commas(self):
        """Trailing commas before closing brackets are repaired."""
        assert extract_json('{"a": [1, 2,], "b": 3,}') == {"a": [1, 2], "b": 3}

    def test_raw_newline_in_string(self):
        """Raw newlines inside string values are escaped."""
        data = extract_json('{"reason": "line one\nline two"}')
        assert data["reason"] == "line one\nline two"

    def test_no_object(self):
        """Text without an object is rejected."""
        with pytest.raises(LLMResponseError):
            extract_json("I cannot help with that.")


class TestParseLLMResponse:
    """Tests for turning model output into verdicts."""

    def test_full_response(self):
        """Both verdicts are read from the combined payload."""
        interest, speaker = parse_llm_response(
            '{"interest": {"is_match": true, "score": 85, "reason": "Rust topic"},'
            ' "speaker": {"has_opportunity": false, "has_lt_slot": true, "has_cfp": false}}'
        )
        assert interest.is_match is True
        assert interest.score == 85
        assert interest.llm_reason == "Rust topic"
        assert interest.keyword_matches == []
        # An LT slot implies an opportunity
        assert speaker.has_opportunity is True
        assert speaker.has_lt_slot is True

    def test_score_is_clamped(self):
        """Out-of-range scores are clamped to 0-100."""
        interest, _ = parse_llm_response(
            '{"interest": {"is_match": true, "score": 140},'
            ' "speaker": {"has_opportunity": false}}'
        )
        assert interest.score == 100

    def test_missing_speaker_section(self):
        """A payload without the speaker section is invalid."""
        with pytest.raises(LLMResponseError):
            parse_llm_response('{"interest": {"is_match": true, "score": 50}}')


class TestHybridClassifier:
    """Tests for the classification policy."""

    async def test_excluded_title(self, interests, make_event, mock_llm):
        """Exclude keywords win over everything, without calling the LLM."""
        classifier = HybridClassifier(interests, llm=mock_llm)
        event = make_event(title="Book Club Night", accepted=60)

        assert classifier.is_excluded(event) is True
        result = await classifier.classify(event)

        assert result.excluded is True
        assert result.is_match is False
        mock_llm.generate_text.assert_not_called()

    async def test_popular_event_skips_llm(self, interests, make_event, mock_llm):
        """Popular events match with score 80 and no LLM call."""
        classifier = HybridClassifier(interests, llm=mock_llm)
        event = make_event(title="Cloud Native Day", accepted=120, description="")

        result = await classifier.classify(event)

        assert result.is_popular is True
        assert result.interest.is_match is True
        assert result.interest.score == POPULAR_SCORE
        assert result.interest.keyword_matches == ["popular(120)"]
        mock_llm.generate_text.assert_not_called()

    async def test_popular_threshold_is_inclusive(self, interests, make_event):
        """accepted == min_participants counts as popular."""
        classifier = HybridClassifier(interests)
        result = await classifier.classify(make_event(accepted=50))
        assert result.is_popular is True

    async def test_popular_event_still_gets_speaker_heuristics(self, interests, make_event):
        """Speaker detection runs on the popular path."""
        classifier = HybridClassifier(interests)
        event = make_event(title="Cloud Native LT Night", accepted=80, description="")

        result = await classifier.classify(event)

        assert result.speaker.has_lt_slot is True
        assert result.speaker.has_opportunity is True

    async def test_llm_verdict_used_below_threshold(self, interests, sample_event, mock_llm):
        """Below the threshold the LLM decides both facets."""
        classifier = HybridClassifier(interests, llm=mock_llm)

        result = await classifier.classify(sample_event)

        mock_llm.generate_text.assert_awaited_once()
        assert result.interest.is_match is True
        assert result.interest.score == 70
        assert result.interest.llm_reason == "Python topic"
        assert result.speaker.has_opportunity is False

    async def test_llm_failure_is_negative(self, interests, sample_event, mock_llm):
        """Transport errors give the negative default, never raise."""
        mock_llm.generate_text = AsyncMock(side_effect=LLMError("boom", provider="mock"))
        classifier = HybridClassifier(interests, llm=mock_llm)

        result = await classifier.classify(sample_event)

        assert result.is_match is False
        assert result.interest.score == 0
        assert result.speaker.has_opportunity is False

    async def test_malformed_llm_output_is_negative(self, interests, sample_event, mock_llm):
        """Unparseable output is treated like a failure."""
        mock_llm.generate_text = AsyncMock(return_value="Sure! This event looks great.")
        classifier = HybridClassifier(interests, llm=mock_llm)

        result = await classifier.classify(sample_event)

        assert result.is_match is False
        assert result.interest.score == 0

    async def test_heuristics_when_llm_disabled(self, interests, make_event):
        """Without an LLM, keywords and speaker heuristics decide."""
        classifier = HybridClassifier(interests, llm=None)
        event = make_event(title="Rust入門", catch="", description="")

        result = await classifier.classify(event)

        assert result.interest.is_match is True
        assert result.interest.keyword_matches == ["Rust"]
        assert result.interest.score == 50
        assert result.interest.llm_reason is None

    def test_prompt_contains_event_and_profile(self, interests, sample_event):
        """The prompt carries profile, keywords and stripped description."""
        prompt = HybridClassifier(interests).build_prompt(sample_event)
        assert "Backend engineer" in prompt
        assert "Python, Rust" in prompt
        assert sample_event.title in prompt
        assert "<p>" not in prompt
