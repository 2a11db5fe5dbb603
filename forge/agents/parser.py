"""Evaluation result parser.

Decodes an oracle's free-text answer into an EvaluationResult. All
handling of responses that ignore the requested JSON shape lives here.

Rules:
- The outermost ``{...}`` substring is decoded as JSON
- ``verdict`` must be approve, reject or concern
- ``confidence`` is clamped to [1, 10]; missing, zero or non-numeric becomes 5
- ``suggested_tier`` / ``suggested_impact`` are kept only when integral and
  in range (tier 1-4, impact 1-10)
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from forge.core.exceptions import InvalidVerdict, MalformedResponse
from forge.models import DEFAULT_CONFIDENCE, MAX_CONFIDENCE, MIN_CONFIDENCE, EvaluationResult, Verdict


logger = logging.getLogger(__name__)

_JSON_OBJECT_PATTERN = re.compile(r"\{.*\}", re.DOTALL)
_VALID_VERDICTS = frozenset(v.value for v in Verdict)
_TIER_RANGE = (1, 4)
_IMPACT_RANGE = (1, 10)


def clamp_confidence(raw: Any) -> int:
    """Clamp a raw confidence value into [1, 10].

    Falsy and non-numeric values fall back to the default of 5.
    """
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or not raw:
        return DEFAULT_CONFIDENCE
    return int(min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, round(raw))))


def _optional_int(raw: Any, low: int, high: int) -> int | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, float) and raw.is_integer():
        raw = int(raw)
    if isinstance(raw, int) and low <= raw <= high:
        return raw
    return None


def parse_evaluation(text: str, agent_name: str | None = None) -> EvaluationResult:
    """Decode oracle text into an EvaluationResult.

    Args:
        text: Raw oracle response.
        agent_name: Role slug for error attribution.

    Returns:
        The decoded EvaluationResult.

    Raises:
        MalformedResponse: No JSON object found, or it does not decode.
        InvalidVerdict: Verdict is missing or outside the closed set.
    """
    match = _JSON_OBJECT_PATTERN.search(text or "")
    if match is None:
        raise MalformedResponse("No JSON found in oracle response", raw_text=text, agent_name=agent_name)

    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise MalformedResponse(
            f"Oracle response JSON did not decode: {e.msg}",
            raw_text=text,
            agent_name=agent_name,
        ) from e

    if not isinstance(payload, dict):
        raise MalformedResponse("Oracle response JSON is not an object", raw_text=text, agent_name=agent_name)

    verdict = payload.get("verdict")
    if verdict not in _VALID_VERDICTS:
        raise InvalidVerdict(verdict, raw_text=text, agent_name=agent_name)

    reasoning = payload.get("reasoning")
    if not isinstance(reasoning, str):
        reasoning = "" if reasoning is None else str(reasoning)

    result = EvaluationResult(
        verdict=Verdict(verdict),
        reasoning=reasoning,
        confidence=clamp_confidence(payload.get("confidence")),
        suggested_tier=_optional_int(payload.get("suggested_tier"), *_TIER_RANGE),
        suggested_impact=_optional_int(payload.get("suggested_impact"), *_IMPACT_RANGE),
    )
    logger.debug("Parsed %s verdict (confidence %d) for %s", result.verdict.value, result.confidence, agent_name)
    return result
