"""Confidence-weighted voting.

Per-voter contribution:
- approve: +confidence
- concern: +confidence * concern_weight (0.3 by default)
- reject:  -confidence

The brief is approved only when the sum is strictly greater than zero.
A sum of exactly 0.0 rejects: ties favour not building.

Pure and deterministic: identical vote tuples always produce the same
score, decision and summary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import assert_never

from forge.models import Decision, DecisionReport, Verdict


logger = logging.getLogger(__name__)

DEFAULT_CONCERN_WEIGHT = 0.3


@dataclass(frozen=True, slots=True)
class Vote:
    """One voter's final verdict."""

    agent: str
    verdict: Verdict
    confidence: int
    reasoning: str = ""


@dataclass(frozen=True, slots=True)
class VoteTally:
    """Full tally: the report to persist plus the per-voter breakdown line."""

    report: DecisionReport
    breakdown: str
    approvals: int
    concerns: int
    rejections: int

    @property
    def approved(self) -> bool:
        return self.report.approved

    @property
    def headline(self) -> str:
        """Audit line, e.g. ``Weighted vote: 10.5 -> APPROVED | gatekeeper: approve (conf 8, score +8.0)``."""
        label = "APPROVED" if self.approved else "REJECTED"
        return f"Weighted vote: {self.report.weighted_score:.1f} -> {label} | {self.breakdown}"


def contribution(verdict: Verdict, confidence: int, concern_weight: float = DEFAULT_CONCERN_WEIGHT) -> float:
    """Signed score contribution of one vote."""
    match verdict:
        case Verdict.APPROVE:
            return float(confidence)
        case Verdict.CONCERN:
            return confidence * concern_weight
        case Verdict.REJECT:
            return -float(confidence)
        case _:
            assert_never(verdict)


def tally_votes(
    brief_id: str,
    votes: list[Vote],
    concern_weight: float = DEFAULT_CONCERN_WEIGHT,
) -> VoteTally:
    """Aggregate final verdicts into a DecisionReport.

    Args:
        brief_id: Brief the decision belongs to.
        votes: Final verdict per voter (Round 2, or Round 1 fallback).
        concern_weight: Fraction of confidence a concern contributes.

    Returns:
        VoteTally holding the DecisionReport and breakdown.
    """
    score = 0.0
    parts: list[str] = []
    dissent: list[str] = []
    counts = {Verdict.APPROVE: 0, Verdict.CONCERN: 0, Verdict.REJECT: 0}

    for vote in votes:
        delta = contribution(vote.verdict, vote.confidence, concern_weight)
        score += delta
        counts[vote.verdict] += 1
        parts.append(f"{vote.agent}: {vote.verdict.value} (conf {vote.confidence}, score {delta:+.1f})")
        if vote.verdict is Verdict.REJECT:
            dissent.append(f"{vote.agent}: {vote.reasoning}")

    # Round away float noise from the concern weight so ties land on exactly 0.0
    score = round(score, 6)
    decision = Decision.APPROVED if score > 0 else Decision.REJECTED

    approvals = counts[Verdict.APPROVE]
    concerns = counts[Verdict.CONCERN]
    rejections = counts[Verdict.REJECT]
    verb = "approved" if decision is Decision.APPROVED else "rejected"
    summary = (
        f"Brief {verb} with weighted score {score:.1f}. "
        f"{approvals} approvals, {concerns} concerns, {rejections} rejections."
    )

    report = DecisionReport(
        brief_id=brief_id,
        decision=decision,
        summary=summary,
        weighted_score=score,
        dissenting_views=" | ".join(dissent) if dissent else None,
    )
    logger.debug("Tallied %d votes for %s: %.1f (%s)", len(votes), brief_id, score, decision.value)
    return VoteTally(
        report=report,
        breakdown=", ".join(parts),
        approvals=approvals,
        concerns=concerns,
        rejections=rejections,
    )
