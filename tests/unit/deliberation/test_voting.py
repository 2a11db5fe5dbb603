"""Unit tests for forge.deliberation.voting."""

import pytest

from forge.deliberation.voting import Vote, contribution, tally_votes
from forge.models import Decision, Verdict


def _vote(agent: str, verdict: Verdict, confidence: int, reasoning: str = "") -> Vote:
    return Vote(agent=agent, verdict=verdict, confidence=confidence, reasoning=reasoning)


class TestContribution:

    def test_approve_adds_confidence(self) -> None:
        assert contribution(Verdict.APPROVE, 8) == 8.0

    def test_concern_adds_weighted_confidence(self) -> None:
        assert contribution(Verdict.CONCERN, 5) == pytest.approx(1.5)

    def test_reject_subtracts_confidence(self) -> None:
        assert contribution(Verdict.REJECT, 4) == -4.0

    def test_custom_concern_weight(self) -> None:
        assert contribution(Verdict.CONCERN, 10, concern_weight=0.5) == 5.0


class TestTallyVotes:

    def test_mixed_council_approves(self) -> None:
        votes = [
            _vote("gatekeeper", Verdict.APPROVE, 8),
            _vote("skeptic", Verdict.APPROVE, 6),
            _vote("cynic", Verdict.CONCERN, 5),
            _vote("accountant", Verdict.REJECT, 5, "Payback is two years."),
        ]

        tally = tally_votes("b-1", votes)

        assert tally.report.weighted_score == pytest.approx(10.5)
        assert tally.report.decision is Decision.APPROVED
        assert tally.approved
        assert (tally.approvals, tally.concerns, tally.rejections) == (2, 1, 1)
        assert tally.report.summary == "Brief approved with weighted score 10.5. 2 approvals, 1 concerns, 1 rejections."
        assert tally.report.dissenting_views == "accountant: Payback is two years."
        assert tally.headline.startswith("Weighted vote: 10.5 -> APPROVED | gatekeeper: approve (conf 8, score +8.0)")
        assert "accountant: reject (conf 5, score -5.0)" in tally.breakdown

    def test_exact_zero_rejects(self) -> None:
        votes = [
            _vote("gatekeeper", Verdict.APPROVE, 5),
            _vote("skeptic", Verdict.REJECT, 5, "No."),
        ]

        tally = tally_votes("b-1", votes)

        assert tally.report.weighted_score == 0.0
        assert tally.report.decision is Decision.REJECTED

    def test_concern_tie_with_reject_rejects(self) -> None:
        votes = [
            _vote("gatekeeper", Verdict.CONCERN, 10),
            _vote("skeptic", Verdict.REJECT, 3),
        ]

        tally = tally_votes("b-1", votes)

        assert tally.report.weighted_score == 0.0
        assert tally.report.decision is Decision.REJECTED

    def test_all_concerns_approve(self) -> None:
        votes = [_vote(slug, Verdict.CONCERN, 5) for slug in ("gatekeeper", "skeptic", "cynic")]

        tally = tally_votes("b-1", votes)

        assert tally.report.weighted_score == pytest.approx(4.5)
        assert tally.approved
        assert tally.report.dissenting_views is None

    def test_no_votes_rejects(self) -> None:
        tally = tally_votes("b-1", [])

        assert tally.report.weighted_score == 0.0
        assert not tally.approved

    def test_rejections_join_dissent(self) -> None:
        votes = [
            _vote("skeptic", Verdict.REJECT, 7, "Unclear."),
            _vote("cynic", Verdict.REJECT, 6, "Unmaintained."),
        ]

        tally = tally_votes("b-1", votes)

        assert tally.report.dissenting_views == "skeptic: Unclear. | cynic: Unmaintained."
        assert tally.headline.startswith("Weighted vote: -13.0 -> REJECTED")

    def test_deterministic(self) -> None:
        votes = [
            _vote("gatekeeper", Verdict.APPROVE, 9),
            _vote("cynic", Verdict.CONCERN, 3),
            _vote("accountant", Verdict.REJECT, 7, "Too costly."),
        ]

        first = tally_votes("b-1", votes)
        second = tally_votes("b-1", list(votes))

        assert first.report.weighted_score == second.report.weighted_score
        assert first.report.decision == second.report.decision
        assert first.report.summary == second.report.summary
        assert first.breakdown == second.breakdown
