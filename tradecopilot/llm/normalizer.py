"""
Normalization of raw completion text into an AnalysisResult.

The model is asked for strict JSON, but replies are not always well formed.
Whatever comes back, callers get an AnalysisResult with a non-empty
`narrative` and a `memory_hint` key (string or None).
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel

from tradecopilot.errors import MalformedResponseError

logger = logging.getLogger(__name__)

DISCLAIMER = "Educational content — Not financial advice."
_DISCLAIMER_MARKER = DISCLAIMER.rstrip(".")

NO_INSIGHT_HINT = "No specific trading insight from this interaction"
PARSE_ISSUE_HINT = "User experienced parsing issues with AI response"
FORMAT_APOLOGY = "I'm having trouble with response formatting. Please try again."
ERROR_APOLOGY = (
    "I apologize, but I encountered an error while analyzing your request. "
    "Please try again or contact support if the issue persists."
)

# Spellings of "no insight" that models emit as strings instead of JSON null
_NULL_STRINGS = {"", "null", "none", "n/a"}

_FENCE_RE = re.compile(r"^```(?:json)?\s*([\s\S]*?)\s*```$", re.IGNORECASE)

DISCLAIMER_POLICIES = ("always", "analysis", "never")


class Scenarios(BaseModel):
    """Bull/bear/invalidation scenarios for a setup."""

    bull: Optional[str] = None
    bear: Optional[str] = None
    invalidation: Optional[str] = None


class AnalysisResult(BaseModel):
    """Coaching feedback returned for one analysis request."""

    narrative: str
    confluences: Optional[list[str]] = None
    risks: Optional[list[str]] = None
    scenarios: Optional[Scenarios] = None
    checklist: Optional[list[str]] = None
    psychology_hint: Optional[str] = None
    memory_hint: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        """Serialize, dropping absent optional fields but always keeping memory_hint."""
        data = self.model_dump(exclude_none=True)
        data["memory_hint"] = self.memory_hint
        return data


@dataclass
class NormalizedResult:
    """
    Outcome of normalization.

    `fallback` is True when the raw text could not be decoded. Both variants
    carry the same public AnalysisResult shape.
    """

    result: AnalysisResult
    fallback: bool = False


def is_real_insight(memory_hint: Optional[str]) -> bool:
    """True if a memory hint is worth persisting as a memory note."""
    if not memory_hint:
        return False
    return memory_hint not in (NO_INSIGHT_HINT, PARSE_ISSUE_HINT)


def apply_disclaimer(narrative: str) -> str:
    """Append the disclaimer once; a narrative that already carries it is returned unchanged."""
    if _DISCLAIMER_MARKER in narrative:
        return narrative
    return f"{narrative}\n\n{DISCLAIMER}"


def parse_analysis_json(raw_text: str) -> dict[str, Any]:
    """
    Decode raw completion text into a JSON object.

    A surrounding ``` or ```json fence is stripped first.

    Raises:
        MalformedResponseError: if the text is not a JSON object
    """
    text = (raw_text or "").strip()
    if not text:
        raise MalformedResponseError("Empty completion text", raw_text)

    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1).strip()

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Completion is not valid JSON: {e}", raw_text) from e

    if not isinstance(parsed, dict):
        raise MalformedResponseError(
            f"Completion JSON is a {type(parsed).__name__}, expected an object", raw_text
        )
    return parsed


def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _as_text_list(value: Any) -> Optional[list[str]]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return None
    items = [text for text in (_as_text(item) for item in value) if text]
    return items


def _as_scenarios(value: Any) -> Optional[Scenarios]:
    if not isinstance(value, dict):
        return None
    return Scenarios(
        bull=_as_text(value.get("bull")),
        bear=_as_text(value.get("bear")),
        invalidation=_as_text(value.get("invalidation")),
    )


def _as_memory_hint(parsed: dict[str, Any]) -> Optional[str]:
    if "memory_hint" not in parsed:
        return NO_INSIGHT_HINT

    value = parsed["memory_hint"]
    if value is None:
        return None
    if not isinstance(value, str):
        value = json.dumps(value) if isinstance(value, (dict, list)) else str(value)
    value = value.strip()
    if value.lower() in _NULL_STRINGS:
        return None
    return value


class ResponseNormalizer:
    """
    Turns raw completion text into an AnalysisResult. Never raises.

    Disclaimer policy:
    - always: every narrative ends with the disclaimer
    - analysis: only detailed-analysis narratives do
    - never: narratives are left as the model wrote them
    """

    def __init__(self, disclaimer_policy: str = "always"):
        if disclaimer_policy not in DISCLAIMER_POLICIES:
            logger.warning(f"Unknown disclaimer policy '{disclaimer_policy}', using 'always'")
            disclaimer_policy = "always"
        self.disclaimer_policy = disclaimer_policy

    def disclaimer_active(self, request_analysis: bool) -> bool:
        if self.disclaimer_policy == "always":
            return True
        if self.disclaimer_policy == "analysis":
            return request_analysis
        return False

    def finish_narrative(self, narrative: str, request_analysis: bool) -> str:
        if self.disclaimer_active(request_analysis):
            return apply_disclaimer(narrative)
        return narrative

    def normalize(self, raw_text: str, request_analysis: bool = False) -> NormalizedResult:
        try:
            parsed = parse_analysis_json(raw_text)
        except MalformedResponseError as e:
            logger.warning(f"Failed to parse completion, using fallback structure: {e}")
            return NormalizedResult(result=self._fallback(raw_text, request_analysis), fallback=True)

        # Older prompt variants used other key names for the narrative.
        narrative = (
            _as_text(parsed.get("narrative"))
            or _as_text(parsed.get("feedback"))
            or _as_text(parsed.get("response"))
            or FORMAT_APOLOGY
        )

        result = AnalysisResult(
            narrative=self.finish_narrative(narrative, request_analysis),
            confluences=_as_text_list(parsed.get("confluences")),
            risks=_as_text_list(parsed.get("risks")),
            scenarios=_as_scenarios(parsed.get("scenarios")),
            checklist=_as_text_list(parsed.get("checklist")),
            psychology_hint=_as_text(parsed.get("psychology_hint")),
            memory_hint=_as_memory_hint(parsed),
        )
        if "memory_hint" not in parsed:
            logger.debug("Completion had no memory_hint, added default")
        return NormalizedResult(result=result)

    def _fallback(self, raw_text: str, request_analysis: bool) -> AnalysisResult:
        narrative = raw_text if raw_text and raw_text.strip() else FORMAT_APOLOGY
        return AnalysisResult(
            narrative=self.finish_narrative(narrative, request_analysis),
            memory_hint=PARSE_ISSUE_HINT,
        )

    def error_feedback(self, request_analysis: bool = False) -> AnalysisResult:
        """Friendly feedback returned alongside an error, so the UI always has a body to render."""
        return AnalysisResult(
            narrative=self.finish_narrative(ERROR_APOLOGY, request_analysis),
            confluences=[],
            risks=["Technical analysis temporarily unavailable"],
            scenarios=Scenarios(bull="", bear="", invalidation=""),
            checklist=["Try submitting your analysis request again"],
            memory_hint=None,
        )
