"""Two-round deliberation coordinator.

Round 1: every evaluator judges the brief concurrently. A failed role is
journaled and excluded; the round still completes. Fewer successes than
the quorum raises InsufficientQuorum.

Round 2: only Round 1 successes take part. Each is re-invoked with every
Round 1 verdict visible and may hold firm or revise. A Round 2 failure
falls back to that role's Round 1 result, so the Round 2 voter set always
equals the Round 1 success set.

Both rounds are barriers: a round returns only after every dispatched call
has settled. Rows for a round are persisted before the next step starts.

Pattern: ParallelAgent fan-out with asyncio.gather(return_exceptions=True)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from forge.core.exceptions import InsufficientQuorum
from forge.core.logging import get_logger
from forge.deliberation.voting import Vote
from forge.models import Brief, BriefHistoryEntry, DeliberationRound, EvaluationResult, Verdict

if TYPE_CHECKING:
    from forge.agents.roles import Evaluator
    from forge.store.journal import BuildJournal
    from forge.store.protocols import StoreProtocol


logger = get_logger(__name__)

_PIPELINE_AGENT = "Pipeline"


@dataclass(slots=True)
class DeliberationOutcome:
    """Rows from both rounds plus the roles that failed Round 1."""

    round1: list[DeliberationRound] = field(default_factory=list)
    round2: list[DeliberationRound] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def votes(self) -> list[Vote]:
        """Final verdict set used for voting."""
        return [
            Vote(agent=row.agent, verdict=row.verdict, confidence=row.confidence, reasoning=row.reasoning)
            for row in self.round2
        ]

    @property
    def revised(self) -> list[DeliberationRound]:
        return [row for row in self.round2 if row.changed]


def _error_message(error: BaseException) -> str:
    return str(error) or type(error).__name__


def _reraise_cancellation(results: list[object]) -> None:
    for result in results:
        if isinstance(result, BaseException) and not isinstance(result, Exception):
            raise result


class DeliberationCoordinator:
    """Runs Round 1 and Round 2 for one brief.

    Example:
        >>> coordinator = DeliberationCoordinator(evaluators, store, journal)
        >>> outcome = await coordinator.deliberate(brief, history)
        >>> tally = tally_votes(brief.id, outcome.votes)
    """

    def __init__(
        self,
        evaluators: list[Evaluator],
        store: StoreProtocol,
        journal: BuildJournal,
        min_quorum: int = 2,
    ) -> None:
        if not evaluators:
            raise ValueError("At least one evaluator is required")
        self._evaluators = list(evaluators)
        self._store = store
        self._journal = journal
        self.min_quorum = min_quorum

    @property
    def evaluators(self) -> list[Evaluator]:
        return list(self._evaluators)

    async def deliberate(
        self,
        brief: Brief,
        history: list[BriefHistoryEntry] | None = None,
    ) -> DeliberationOutcome:
        """Run both rounds back to back."""
        outcome = await self.round_one(brief, history)
        outcome.round2 = await self.round_two(brief, outcome.round1)
        return outcome

    # -------------------------------------------------------------------------
    # Round 1
    # -------------------------------------------------------------------------

    async def round_one(
        self,
        brief: Brief,
        history: list[BriefHistoryEntry] | None = None,
    ) -> DeliberationOutcome:
        """Independent concurrent evaluation.

        Raises:
            InsufficientQuorum: Fewer than ``min_quorum`` roles succeeded.
        """
        total = len(self._evaluators)
        await self._journal.info(brief.id, _PIPELINE_AGENT, f"Round 1: {total} agents evaluating independently...")

        results = await asyncio.gather(
            *(evaluator.evaluate(brief, history) for evaluator in self._evaluators),
            return_exceptions=True,
        )
        _reraise_cancellation(results)

        outcome = DeliberationOutcome()
        for evaluator, result in zip(self._evaluators, results):
            if isinstance(result, Exception):
                outcome.failed.append(evaluator.slug)
                logger.warning("evaluation_failed", brief_id=brief.id, agent=evaluator.slug, error=_error_message(result))
                await self._journal.error(brief.id, evaluator.name, f"Evaluation failed: {_error_message(result)}")
                continue
            outcome.round1.append(_to_row(brief.id, evaluator.slug, 1, result))

        if len(outcome.round1) < self.min_quorum:
            await self._journal.error(
                brief.id,
                _PIPELINE_AGENT,
                f"Only {len(outcome.round1)} agent(s) completed Round 1, need at least {self.min_quorum} to proceed",
            )
            raise InsufficientQuorum(len(outcome.round1), self.min_quorum, total)

        await self._persist(outcome.round1)
        return outcome

    # -------------------------------------------------------------------------
    # Round 2
    # -------------------------------------------------------------------------

    async def round_two(self, brief: Brief, round1: list[DeliberationRound]) -> list[DeliberationRound]:
        """Informed re-evaluation by Round 1 successes, with fallback."""
        await self._journal.info(brief.id, _PIPELINE_AGENT, "Round 2: Agents deliberating after seeing team verdicts...")

        by_slug = {row.agent: row for row in round1}
        participants = [e for e in self._evaluators if e.slug in by_slug]

        results = await asyncio.gather(
            *(evaluator.deliberate(brief, round1) for evaluator in participants),
            return_exceptions=True,
        )
        _reraise_cancellation(results)

        rows: list[DeliberationRound] = []
        for evaluator, result in zip(participants, results):
            first = by_slug[evaluator.slug]
            if isinstance(result, Exception):
                logger.warning("deliberation_failed", brief_id=brief.id, agent=evaluator.slug, error=_error_message(result))
                await self._journal.error(brief.id, evaluator.name, f"Deliberation failed: {_error_message(result)}")
                rows.append(first.model_copy(update={"round": 2, "revised_from": None}))
                continue

            revised_from = first.verdict if result.verdict != first.verdict else None
            row = _to_row(brief.id, evaluator.slug, 2, result, revised_from)
            if revised_from is not None:
                await self._journal.info(
                    brief.id,
                    evaluator.name,
                    f"Revised verdict: {revised_from.value} -> {result.verdict.value}: {result.reasoning}",
                )
            else:
                await self._journal.info(brief.id, evaluator.name, f"Held firm: {result.verdict.value}: {result.reasoning}")
            rows.append(row)

        await self._persist(rows)
        return rows

    async def _persist(self, rows: list[DeliberationRound]) -> None:
        await asyncio.gather(*(self._store.write_deliberation_round(row) for row in rows))


def _to_row(
    brief_id: str,
    agent: str,
    round_number: int,
    result: EvaluationResult,
    revised_from: Verdict | None = None,
) -> DeliberationRound:
    return DeliberationRound(
        brief_id=brief_id,
        agent=agent,
        round=round_number,
        verdict=result.verdict,
        reasoning=result.reasoning,
        confidence=result.confidence,
        revised_from=revised_from,
    )
