"""Unit tests for forge.deliberation.coordinator."""

import pytest

from forge.agents.roles import EVALUATOR_ROLES, Evaluator
from forge.core.exceptions import InsufficientQuorum, OracleNonZeroExit, OracleUnavailable
from forge.deliberation.coordinator import DeliberationCoordinator
from forge.models import LogLevel, Verdict
from tests.fakes.fake_oracle import FakeOracle, verdict_json


def _coordinator(oracle, store, journal, min_quorum: int = 2) -> DeliberationCoordinator:
    evaluators = [Evaluator(role, oracle, store, journal) for role in EVALUATOR_ROLES]
    return DeliberationCoordinator(evaluators, store, journal, min_quorum=min_quorum)


class TestRoundOne:

    @pytest.mark.asyncio
    async def test_all_evaluators_succeed(self, oracle, store, journal, make_brief) -> None:
        brief = make_brief()

        outcome = await _coordinator(oracle, store, journal).round_one(brief, history=[])

        assert [row.agent for row in outcome.round1] == ["gatekeeper", "skeptic", "cynic", "accountant"]
        assert all(row.round == 1 for row in outcome.round1)
        assert outcome.failed == []
        assert len(store.rounds) == 4
        assert len(store.evaluations) == 4
        assert store.logs[0].action == "Round 1: 4 agents evaluating independently..."

    @pytest.mark.asyncio
    async def test_failed_role_is_excluded(self, oracle, store, journal, make_brief) -> None:
        oracle.script("cynic", OracleUnavailable("cli missing"))

        outcome = await _coordinator(oracle, store, journal).round_one(make_brief())

        assert [row.agent for row in outcome.round1] == ["gatekeeper", "skeptic", "accountant"]
        assert outcome.failed == ["cynic"]
        errors = [entry for entry in store.logs if entry.level is LogLevel.ERROR]
        assert [(e.agent, e.action) for e in errors] == [("Cynic", "Evaluation failed: cli missing")]

    @pytest.mark.asyncio
    async def test_malformed_answer_counts_as_failure(self, oracle, store, journal, make_brief) -> None:
        oracle.script("skeptic", "I'd rather not answer in JSON.")

        outcome = await _coordinator(oracle, store, journal).round_one(make_brief())

        assert outcome.failed == ["skeptic"]
        assert len(outcome.round1) == 3

    @pytest.mark.asyncio
    async def test_below_quorum_raises_and_persists_no_rounds(self, oracle, store, journal, make_brief) -> None:
        for slug in ("skeptic", "cynic", "accountant"):
            oracle.script(slug, OracleNonZeroExit("exit 1", exit_code=1))

        with pytest.raises(InsufficientQuorum) as exc_info:
            await _coordinator(oracle, store, journal).round_one(make_brief())

        assert exc_info.value.succeeded == 1
        assert exc_info.value.required == 2
        assert exc_info.value.total == 4
        assert store.rounds == []
        assert "need at least 2 to proceed" in store.logs[-1].action

    @pytest.mark.asyncio
    async def test_exact_quorum_proceeds(self, oracle, store, journal, make_brief) -> None:
        oracle.script("cynic", OracleUnavailable("down"))
        oracle.script("accountant", OracleUnavailable("down"))

        outcome = await _coordinator(oracle, store, journal).round_one(make_brief())

        assert len(outcome.round1) == 2


class TestRoundTwo:

    @pytest.mark.asyncio
    async def test_revision_and_holding_firm(self, oracle, store, journal, make_brief) -> None:
        brief = make_brief()
        coordinator = _coordinator(oracle, store, journal)

        outcome = await coordinator.deliberate(brief, history=[])

        by_agent = {row.agent: row for row in outcome.round2}
        assert by_agent["skeptic"].revised_from is Verdict.CONCERN
        assert by_agent["skeptic"].verdict is Verdict.APPROVE
        assert by_agent["gatekeeper"].revised_from is None
        assert [row.agent for row in outcome.revised] == ["skeptic"]
        actions = [entry.action for entry in store.logs]
        assert "Revised verdict: concern -> approve: Scope is contained to one page." in actions
        assert "Held firm: reject: Marginal payback." in actions
        assert len(store.rounds) == 8

    @pytest.mark.asyncio
    async def test_only_round_one_successes_participate(self, oracle, store, journal, make_brief) -> None:
        oracle.script("cynic", OracleUnavailable("down"))

        outcome = await _coordinator(oracle, store, journal).deliberate(make_brief())

        assert [row.agent for row in outcome.round2] == ["gatekeeper", "skeptic", "accountant"]
        assert oracle.count("cynic") == 1
        assert {v.agent for v in outcome.votes} == {"gatekeeper", "skeptic", "accountant"}

    @pytest.mark.asyncio
    async def test_round_two_failure_falls_back_to_round_one(self, oracle, store, journal, make_brief) -> None:
        oracle.script("accountant", verdict_json("reject", 4, "Too costly."), OracleUnavailable("timeout"))

        outcome = await _coordinator(oracle, store, journal).deliberate(make_brief())

        fallback = next(row for row in outcome.round2 if row.agent == "accountant")
        assert fallback.round == 2
        assert fallback.verdict is Verdict.REJECT
        assert fallback.confidence == 4
        assert fallback.reasoning == "Too costly."
        assert fallback.revised_from is None
        assert len(outcome.round2) == len(outcome.round1)
        assert any(e.action == "Deliberation failed: timeout" for e in store.logs)

    @pytest.mark.asyncio
    async def test_votes_come_from_round_two(self, oracle, store, journal, make_brief) -> None:
        outcome = await _coordinator(oracle, store, journal).deliberate(make_brief())

        votes = {vote.agent: vote for vote in outcome.votes}
        assert votes["skeptic"].verdict is Verdict.APPROVE
        assert votes["skeptic"].confidence == 6


class TestConstruction:

    def test_requires_evaluators(self, store, journal) -> None:
        with pytest.raises(ValueError):
            DeliberationCoordinator([], store, journal)
