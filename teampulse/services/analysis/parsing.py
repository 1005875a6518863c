"""
LLM Response Parsing
Strict JSON parsing of model output into AnalysisResponsePayload
"""
import json
import logging
import math
import re
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError

from teampulse.core.errors import AnalysisParseError
from teampulse.models.schemas.analysis import AnalysisResponsePayload, Insights
from teampulse.services.intelligence.aggregator import round_half_up

logger = logging.getLogger(__name__)

_CODE_FENCE_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?```$", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """Remove one surrounding ``` / ```json fence, if present."""
    stripped = text.strip()
    match = _CODE_FENCE_RE.match(stripped)
    return match.group(1).strip() if match else stripped


def parse_response(text: Any) -> Tuple[AnalysisResponsePayload, Dict[str, Any]]:
    """
    Parse model output.

    Returns the validated payload and the raw dict (for variant summary keys).
    Raises AnalysisParseError for anything that is not a JSON object of the
    expected shape.
    """
    if not isinstance(text, str) or not text.strip():
        raise AnalysisParseError("Empty response from LLM")

    body = strip_code_fence(text)
    try:
        data = json.loads(body)
    except (ValueError, RecursionError) as e:
        raise AnalysisParseError(f"Response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise AnalysisParseError(f"Response JSON is a {type(data).__name__}, expected an object")

    try:
        payload = AnalysisResponsePayload.model_validate(data)
    except ValidationError as e:
        raise AnalysisParseError(f"Response does not match the expected shape: {e.error_count()} error(s)") from e

    return payload, data


def clamp_score(value: Optional[float], default: int) -> int:
    """Clamp a model-provided score to 0-100; missing or non-finite values use the default."""
    if value is None or not math.isfinite(value):
        return default
    return max(0, min(100, round_half_up(value)))


def build_insights(
    payload: AnalysisResponsePayload,
    raw: Dict[str, Any],
    summary_key: str,
    default_summary: str,
) -> Insights:
    summary = raw.get(summary_key)
    if not isinstance(summary, str) or not summary.strip():
        summary = payload.summary if payload.summary and payload.summary.strip() else default_summary

    return Insights(
        summary=summary.strip(),
        key_findings=payload.key_findings or [],
        recommendations=payload.recommendations or [],
        risk_factors=payload.risk_factors or [],
        opportunities=payload.opportunities or [],
    )
