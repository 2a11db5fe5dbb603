"""Plan-critique loop.

A bounded negotiation between the Critic and the Architect:

    for each of max_revisions critique calls:
        critique current plan
        approve          -> stop, approved
        otherwise        -> if another critique call remains, architect revises

The loop always ends in a state that lets the build proceed. Running out
of critique calls is a warning. A critic or architect failure ends the
loop early with the last good plan.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from forge.core.exceptions import ForgeError
from forge.models import Brief, Verdict

if TYPE_CHECKING:
    from forge.agents.roles import Reviewer
    from forge.store.journal import BuildJournal


logger = logging.getLogger(__name__)

DEFAULT_MAX_REVISIONS = 2

PlanReviser = Callable[[Brief, str, str], Awaitable[str]]


class LoopExit(str, Enum):
    """Why the loop stopped."""

    APPROVED = "approved"
    EXHAUSTED = "exhausted"
    CRITIC_FAILED = "critic_failed"
    ARCHITECT_FAILED = "architect_failed"


@dataclass(frozen=True, slots=True)
class PlanCritiqueOutcome:
    """Final plan and how the loop got there."""

    plan: str
    approved: bool
    critique_calls: int
    revisions: int
    exit_reason: LoopExit


class PlanCritiqueLoop:
    """Critique and revise a plan up to ``max_revisions`` critique calls."""

    def __init__(
        self,
        critic: Reviewer,
        reviser: PlanReviser,
        journal: BuildJournal,
        max_revisions: int = DEFAULT_MAX_REVISIONS,
    ) -> None:
        if max_revisions < 1:
            raise ValueError("max_revisions must be at least 1")
        self._critic = critic
        self._reviser = reviser
        self._journal = journal
        self.max_revisions = max_revisions

    async def run(self, brief: Brief, plan: str) -> PlanCritiqueOutcome:
        current = plan
        calls = 0
        revisions = 0

        for revision in range(self.max_revisions):
            try:
                calls += 1
                result = await self._critic.review(brief, current)
            except ForgeError as e:
                await self._journal.error(brief.id, self._critic.name, f"Review failed: {e}")
                logger.warning("Critic failed for %s, proceeding with current plan: %s", brief.id, e)
                return PlanCritiqueOutcome(current, False, calls, revisions, LoopExit.CRITIC_FAILED)

            if result.verdict is Verdict.APPROVE:
                return PlanCritiqueOutcome(current, True, calls, revisions, LoopExit.APPROVED)

            if revision >= self.max_revisions - 1:
                break

            await self._journal.info(
                brief.id,
                "Pipeline",
                f"Critic raised concerns (round {revision + 1}). Architect revising plan...",
            )
            try:
                revised = await self._reviser(brief, current, result.reasoning)
            except ForgeError as e:
                await self._journal.error(brief.id, "Architect", f"Plan revision failed: {e}")
                logger.warning("Architect revision failed for %s: %s", brief.id, e)
                return PlanCritiqueOutcome(current, False, calls, revisions, LoopExit.ARCHITECT_FAILED)

            if revised.strip():
                current = revised
                revisions += 1
                await self._journal.info(brief.id, "Architect", f"Plan revised (v{revisions + 1}) addressing Critic feedback")
            else:
                await self._journal.warn(brief.id, "Architect", "Revision came back empty, keeping previous plan")

        await self._journal.warn(brief.id, "Pipeline", "Max Critic revisions reached. Proceeding to build.")
        return PlanCritiqueOutcome(current, False, calls, revisions, LoopExit.EXHAUSTED)
