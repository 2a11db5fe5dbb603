"""Unit tests for forge.agents.roles."""

import pytest

from forge.agents.roles import (
    BRAND_GUARDIAN,
    CRITIC,
    EVALUATOR_ROLES,
    GATEKEEPER,
    Evaluator,
    Reviewer,
    describe_verdict,
    verdict_log_level,
)
from forge.core.exceptions import MalformedResponse, OracleUnavailable
from forge.models import DeliberationRound, LogLevel, Verdict
from tests.fakes.fake_oracle import FakeOracle, verdict_json


class TestRoleDefinitions:

    def test_four_distinct_evaluators(self) -> None:
        slugs = [role.slug for role in EVALUATOR_ROLES]

        assert slugs == ["gatekeeper", "skeptic", "cynic", "accountant"]
        assert len({role.criteria for role in EVALUATOR_ROLES}) == 4

    def test_only_gatekeeper_suggests_outcome(self) -> None:
        assert [role.slug for role in EVALUATOR_ROLES if role.suggests_outcome] == ["gatekeeper"]

    def test_reviewers_are_not_evaluators(self) -> None:
        assert CRITIC not in EVALUATOR_ROLES
        assert BRAND_GUARDIAN not in EVALUATOR_ROLES

    def test_verdict_log_levels(self) -> None:
        assert verdict_log_level(Verdict.REJECT) is LogLevel.WARN
        assert verdict_log_level(Verdict.CONCERN) is LogLevel.INFO
        assert verdict_log_level(Verdict.APPROVE) is LogLevel.INFO

    def test_describe_verdict(self) -> None:
        assert describe_verdict(Verdict.CONCERN) == "raised concerns"


class TestEvaluator:

    @pytest.mark.asyncio
    async def test_evaluate_records_row_and_journal(self, store, journal, make_brief) -> None:
        brief = make_brief()
        oracle = FakeOracle({"gatekeeper": verdict_json("reject", 9, "Tier 2 claim is inflated.")})
        evaluator = Evaluator(GATEKEEPER, oracle, store, journal, model="eval-model", timeout=30)

        result = await evaluator.evaluate(brief, history=[])

        assert result.verdict is Verdict.REJECT
        assert result.confidence == 9
        assert len(store.evaluations) == 1
        record = store.evaluations[0]
        assert record.agent == "gatekeeper"
        assert record.evaluation_type == "strategic_filter"
        assert [entry.action for entry in store.logs] == [
            "Evaluating brief (strategic_filter)...",
            "Rejected: Tier 2 claim is inflated.",
        ]
        assert store.logs[-1].level is LogLevel.WARN

    @pytest.mark.asyncio
    async def test_evaluate_passes_model_timeout_and_label(self, store, journal, make_brief) -> None:
        oracle = FakeOracle({"gatekeeper": verdict_json("approve")})
        evaluator = Evaluator(GATEKEEPER, oracle, store, journal, model="eval-model", timeout=30)

        await evaluator.evaluate(make_brief())

        options = oracle.calls[0].options
        assert options.model == "eval-model"
        assert options.timeout == 30
        assert options.label == "gatekeeper"
        assert options.capabilities == ()

    @pytest.mark.asyncio
    async def test_evaluate_propagates_parse_failure(self, store, journal, make_brief) -> None:
        oracle = FakeOracle({"gatekeeper": "no json at all"})
        evaluator = Evaluator(GATEKEEPER, oracle, store, journal)

        with pytest.raises(MalformedResponse):
            await evaluator.evaluate(make_brief())

        assert store.evaluations == []

    @pytest.mark.asyncio
    async def test_evaluate_propagates_oracle_failure(self, store, journal, make_brief) -> None:
        oracle = FakeOracle({"gatekeeper": OracleUnavailable("spawn failed")})
        evaluator = Evaluator(GATEKEEPER, oracle, store, journal)

        with pytest.raises(OracleUnavailable):
            await evaluator.evaluate(make_brief())

    @pytest.mark.asyncio
    async def test_deliberate_sees_round_one_and_writes_nothing(self, store, journal, make_brief) -> None:
        brief = make_brief()
        oracle = FakeOracle({"gatekeeper": verdict_json("concern", 6, "Persuaded by the cynic.")})
        evaluator = Evaluator(GATEKEEPER, oracle, store, journal)
        round1 = [
            DeliberationRound(brief_id=brief.id, agent="cynic", round=1, verdict=Verdict.REJECT,
                              reasoning="Nobody will maintain this.", confidence=8),
        ]

        result = await evaluator.deliberate(brief, round1)

        assert result.verdict is Verdict.CONCERN
        assert "Nobody will maintain this." in oracle.calls[0].task
        assert "second round" in oracle.calls[0].task
        assert store.evaluations == []


class TestReviewer:

    @pytest.mark.asyncio
    async def test_review_includes_subject(self, store, journal, make_brief) -> None:
        oracle = FakeOracle({"critic": verdict_json("concern", 6, "Missing tests.")})
        critic = Reviewer(CRITIC, oracle, store, journal)

        result = await critic.review(make_brief(), "## Files\n- app.py")

        assert result.verdict is Verdict.CONCERN
        task = oracle.calls[0].task
        assert "## Implementation plan" in task
        assert "- app.py" in task
        assert store.evaluations[0].evaluation_type == "plan_review"
        assert store.logs[0].action == "Reviewing implementation plan..."
