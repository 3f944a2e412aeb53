"""Unit tests for call outcome classification."""

import pytest

from coldcall.integrations.llm import LLMResult
from coldcall.models import CallOutcome
from coldcall.services.outcome_classifier import (
    CallOutcomeClassifier,
    classify_by_keywords,
    keyword_summary,
    parse_outcome_response,
)

from factories import fake_llm


class TestKeywordClassifier:
    """Keyword precedence used when the LLM is unavailable."""

    @pytest.mark.parametrize(
        "transcript,expected",
        [
            ("Sure, tell me more about it", CallOutcome.INTERESTED),
            ("Yes I'm interested", CallOutcome.INTERESTED),
            ("Please call back on Friday", CallOutcome.CALLBACK),
            ("Let's set up a meeting", CallOutcome.CALLBACK),
            ("Remove me from your list", CallOutcome.NOT_INTERESTED),
            ("Reached voicemail", CallOutcome.VM_LEFT),
            ("Left a message after the beep", CallOutcome.VM_LEFT),
            ("", CallOutcome.NO_ANSWER),
            ("Hello? Hello?", CallOutcome.NO_ANSWER),
        ],
    )
    def test_trigger_words(self, transcript, expected):
        assert classify_by_keywords(transcript) == expected

    def test_case_insensitive(self):
        assert classify_by_keywords("TELL ME MORE") == CallOutcome.INTERESTED

    def test_not_interested_matches_interested_first(self):
        """Test that "not interested" hits the earlier ``interested`` rule."""
        assert classify_by_keywords("I'm not interested") == CallOutcome.INTERESTED

    def test_precedence_callback_over_voicemail(self):
        assert classify_by_keywords("leave a message and I'll call back") == CallOutcome.CALLBACK

    def test_keyword_summary_reports_length(self):
        assert keyword_summary("abcde") == "Call completed. Duration: 5 characters."


class TestParseOutcomeResponse:
    def test_valid_response(self):
        parsed = parse_outcome_response(
            LLMResult(success=True, data={"summary": "They want a demo.", "outcome": "Interested"})
        )
        assert parsed.outcome == CallOutcome.INTERESTED
        assert parsed.summary == "They want a demo."
        assert parsed.source == "llm"

    def test_unknown_outcome_rejected(self):
        assert parse_outcome_response(
            LLMResult(success=True, data={"summary": "x", "outcome": "maybe"})
        ) is None

    def test_missing_summary_defaults(self):
        parsed = parse_outcome_response(LLMResult(success=True, data={"outcome": "callback"}))
        assert parsed.summary == "Call completed"

    def test_failed_result(self):
        assert parse_outcome_response(LLMResult.failed("timeout")) is None


class TestCallOutcomeClassifier:
    """The classifier always produces an outcome."""

    @pytest.mark.asyncio
    async def test_llm_path(self):
        llm = fake_llm(
            LLMResult(success=True, data={"summary": "Asked to be removed.", "outcome": "not_interested"})
        )
        result = await CallOutcomeClassifier(llm_client=llm).classify("remove me please")

        assert result.outcome == CallOutcome.NOT_INTERESTED
        assert result.source == "llm"
        messages = llm.complete_json.await_args.args[0]
        assert messages[1] == {"role": "user", "content": "remove me please"}

    @pytest.mark.asyncio
    async def test_fallback_on_llm_failure(self, unconfigured_llm):
        result = await CallOutcomeClassifier(llm_client=unconfigured_llm).classify(
            "We got your voicemail"
        )
        assert result.outcome == CallOutcome.VM_LEFT
        assert result.source == "keywords"
        assert result.summary == "Call completed. Duration: 21 characters."

    @pytest.mark.asyncio
    async def test_fallback_on_malformed_payload(self):
        llm = fake_llm(LLMResult(success=True, data={"result": "ok"}))
        result = await CallOutcomeClassifier(llm_client=llm).classify("let's schedule a meeting")
        assert result.outcome == CallOutcome.CALLBACK
        assert result.source == "keywords"
