"""Tests for completion text normalization."""

import json

import pytest

from tradecopilot.errors import MalformedResponseError
from tradecopilot.llm.normalizer import (
    DISCLAIMER,
    ERROR_APOLOGY,
    FORMAT_APOLOGY,
    NO_INSIGHT_HINT,
    PARSE_ISSUE_HINT,
    ResponseNormalizer,
    apply_disclaimer,
    is_real_insight,
    parse_analysis_json,
)


@pytest.fixture
def normalizer():
    return ResponseNormalizer("always")


def test_well_formed_detailed_response(normalizer):
    raw = json.dumps(
        {
            "narrative": "Bull flag on the 5m.",
            "confluences": ["VWAP hold", "Higher lows"],
            "risks": ["News at 10am"],
            "scenarios": {"bull": "Break 4500", "bear": "Lose VWAP", "invalidation": "Below 4480"},
            "checklist": ["Wait for close above flag"],
            "psychology_hint": "Don't chase.",
            "memory_hint": "Trades ES flags",
        }
    )

    normalized = normalizer.normalize(raw, request_analysis=True)
    result = normalized.result

    assert normalized.fallback is False
    assert result.narrative == f"Bull flag on the 5m.\n\n{DISCLAIMER}"
    assert result.confluences == ["VWAP hold", "Higher lows"]
    assert result.scenarios.invalidation == "Below 4480"
    assert result.psychology_hint == "Don't chase."
    assert result.memory_hint == "Trades ES flags"


def test_non_json_text_falls_back_verbatim(normalizer):
    normalized = normalizer.normalize("Sure! Looks like a bull flag.")

    assert normalized.fallback is True
    assert normalized.result.narrative.startswith("Sure! Looks like a bull flag.")
    assert normalized.result.memory_hint == PARSE_ISSUE_HINT
    assert normalized.result.confluences is None


def test_empty_text_falls_back_to_apology(normalizer):
    normalized = normalizer.normalize("")

    assert normalized.fallback is True
    assert normalized.result.narrative.startswith(FORMAT_APOLOGY)
    assert normalized.result.memory_hint == PARSE_ISSUE_HINT


def test_missing_memory_hint_gets_default(normalizer):
    result = normalizer.normalize(json.dumps({"narrative": "Hold."})).result

    assert result.memory_hint == NO_INSIGHT_HINT
    assert not is_real_insight(result.memory_hint)


@pytest.mark.parametrize("hint", [None, "null", "None", "  N/A ", ""])
def test_null_like_memory_hint_becomes_none(normalizer, hint):
    result = normalizer.normalize(json.dumps({"narrative": "Hold.", "memory_hint": hint})).result

    assert result.memory_hint is None
    assert "memory_hint" in result.to_payload()


def test_missing_narrative_uses_legacy_keys_then_apology(normalizer):
    assert normalizer.normalize('{"feedback": "From feedback"}').result.narrative.startswith("From feedback")
    assert normalizer.normalize('{"response": "From response"}').result.narrative.startswith("From response")
    assert normalizer.normalize('{"memory_hint": null}').result.narrative.startswith(FORMAT_APOLOGY)


def test_fenced_json_is_decoded(normalizer):
    raw = '```json\n{"narrative": "Fenced", "memory_hint": "likes fences"}\n```'

    normalized = normalizer.normalize(raw)

    assert normalized.fallback is False
    assert normalized.result.memory_hint == "likes fences"


def test_json_array_is_malformed():
    with pytest.raises(MalformedResponseError):
        parse_analysis_json('["not", "an", "object"]')


def test_disclaimer_is_idempotent():
    once = apply_disclaimer("Hold the runner.")

    assert once == f"Hold the runner.\n\n{DISCLAIMER}"
    assert apply_disclaimer(once) == once
    assert apply_disclaimer("Educational content — Not financial advice") == (
        "Educational content — Not financial advice"
    )


def test_model_supplied_disclaimer_not_duplicated(normalizer):
    raw = json.dumps({"narrative": f"Hold.\n\n{DISCLAIMER}", "memory_hint": None})

    narrative = normalizer.normalize(raw).result.narrative

    assert narrative.count("Not financial advice") == 1


def test_disclaimer_policies():
    raw = json.dumps({"narrative": "Hold.", "memory_hint": None})

    assert ResponseNormalizer("never").normalize(raw).result.narrative == "Hold."
    assert ResponseNormalizer("analysis").normalize(raw).result.narrative == "Hold."
    assert ResponseNormalizer("analysis").normalize(raw, request_analysis=True).result.narrative.endswith(
        DISCLAIMER
    )
    assert ResponseNormalizer("bogus").disclaimer_policy == "always"


def test_list_fields_are_coerced(normalizer):
    raw = json.dumps({"narrative": "x", "risks": "Single risk", "checklist": ["a", "", None, 3]})

    result = normalizer.normalize(raw).result

    assert result.risks == ["Single risk"]
    assert result.checklist == ["a", "3"]


def test_error_feedback_shape(normalizer):
    payload = normalizer.error_feedback().to_payload()

    assert payload["narrative"].startswith(ERROR_APOLOGY)
    assert payload["confluences"] == []
    assert payload["risks"] == ["Technical analysis temporarily unavailable"]
    assert payload["scenarios"] == {"bull": "", "bear": "", "invalidation": ""}
    assert payload["checklist"] == ["Try submitting your analysis request again"]
    assert payload["memory_hint"] is None


def test_is_real_insight():
    assert is_real_insight("Prefers pullback entries")
    assert not is_real_insight(None)
    assert not is_real_insight("")
    assert not is_real_insight(NO_INSIGHT_HINT)
    assert not is_real_insight(PARSE_ISSUE_HINT)
