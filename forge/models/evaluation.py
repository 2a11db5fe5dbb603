"""Evaluation, deliberation and decision schemas.

Models:
- Verdict: closed three-state judgment (approve, reject, concern)
- Decision: outcome of a vote
- EvaluationResult: one role's structured judgment, immutable once recorded
- EvaluationRecord: an EvaluationResult as persisted against a brief
- DeliberationRound: one role's result tagged with its round number
- DecisionReport: aggregate outcome of one evaluation phase
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================

class Verdict(str, Enum):
    """A role's judgment.

    ``concern`` is a soft positive, distinct from both poles.
    """

    APPROVE = "approve"
    REJECT = "reject"
    CONCERN = "concern"


class Decision(str, Enum):
    """Outcome of the weighted vote."""

    APPROVED = "approved"
    REJECTED = "rejected"


# =============================================================================
# Results
# =============================================================================

MIN_CONFIDENCE = 1
MAX_CONFIDENCE = 10
DEFAULT_CONFIDENCE = 5


class EvaluationResult(BaseModel):
    """Structured judgment from one role for one subject.

    Attributes:
        verdict: approve, reject or concern
        reasoning: Free-text explanation
        confidence: Integer 1-10 (clamped on parse)
        suggested_tier: Optional outcome tier suggestion (1-4)
        suggested_impact: Optional impact suggestion (1-10)
    """

    model_config = ConfigDict(frozen=True)

    verdict: Verdict
    reasoning: str = ""
    confidence: int = Field(default=DEFAULT_CONFIDENCE, ge=MIN_CONFIDENCE, le=MAX_CONFIDENCE)
    suggested_tier: int | None = None
    suggested_impact: int | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EvaluationRecord(BaseModel):
    """An evaluation row as written to the store."""

    model_config = ConfigDict(frozen=True)

    brief_id: str
    agent: str
    evaluation_type: str
    result: EvaluationResult
    created_at: datetime = Field(default_factory=_utcnow)


class DeliberationRound(BaseModel):
    """One role's verdict in one deliberation round.

    ``revised_from`` is set only in round 2, and only when the verdict
    changed from round 1. None means the role held firm.
    """

    model_config = ConfigDict(frozen=True)

    brief_id: str
    agent: str
    round: int = Field(ge=1, le=2)
    verdict: Verdict
    reasoning: str = ""
    confidence: int = Field(default=DEFAULT_CONFIDENCE, ge=MIN_CONFIDENCE, le=MAX_CONFIDENCE)
    revised_from: Verdict | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def changed(self) -> bool:
        return self.revised_from is not None


class DecisionReport(BaseModel):
    """Aggregate outcome of one evaluation phase. Append-only."""

    model_config = ConfigDict(frozen=True)

    brief_id: str
    decision: Decision
    summary: str
    weighted_score: float
    dissenting_views: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def approved(self) -> bool:
        return self.decision is Decision.APPROVED
