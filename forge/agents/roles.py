"""Evaluator and reviewer roles.

Four evaluator roles judge every brief from the same input with distinct
criteria. Two reviewer roles follow the same call/parse/record shape but
judge a plan (Critic) or build output (Brand Guardian).

Each call:
1. journals that the role started
2. invokes the oracle
3. parses the answer into an EvaluationResult
4. writes an evaluation row
5. journals the verdict (warn level on reject)

Roles never mutate the brief. The state machine owns brief updates.

Pattern: Participant wrapping an injected client
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, assert_never

from forge.agents.parser import parse_evaluation
from forge.agents.prompts import deliberation_prompt, evaluation_prompt, review_prompt
from forge.models import (
    Brief,
    BriefHistoryEntry,
    DeliberationRound,
    EvaluationRecord,
    EvaluationResult,
    LogLevel,
    Verdict,
)
from forge.oracle.protocols import OracleOptions, OracleProtocol

if TYPE_CHECKING:
    from forge.store.journal import BuildJournal
    from forge.store.protocols import StoreProtocol


# =============================================================================
# Role definitions
# =============================================================================

@dataclass(frozen=True, slots=True)
class RoleDefinition:
    """Static description of a judging perspective.

    Attributes:
        name: Display name used in the audit trail
        slug: Stable identifier used in stored rows
        evaluation_type: Category recorded with each evaluation row
        criteria: Judging criteria handed to the oracle
        suggests_outcome: Whether the role proposes tier/impact corrections
        subject_title: Heading for the reviewed material (reviewers only)
    """

    name: str
    slug: str
    evaluation_type: str
    criteria: str
    suggests_outcome: bool = False
    subject_title: str = "Subject"


GATEKEEPER = RoleDefinition(
    name="Gatekeeper",
    slug="gatekeeper",
    evaluation_type="strategic_filter",
    criteria=(
        "Judge the brief against the outcome tiers (1 Foundation, 2 Leverage, "
        "3 Growth, 4 Reach). Lower tiers matter more. Call out inflated tier "
        "claims and weigh opportunity cost."
    ),
    suggests_outcome=True,
)

SKEPTIC = RoleDefinition(
    name="Skeptic",
    slug="skeptic",
    evaluation_type="devils_advocate",
    criteria=(
        "Reject by default. The brief must be clear enough to start from, a single "
        "deliverable, worth the time, not solvable with existing tools, and "
        "honest about its tier."
    ),
)

CYNIC = RoleDefinition(
    name="Cynic",
    slug="cynic",
    evaluation_type="failure_modes",
    criteria=(
        "Look for the ways this work fails after it ships: maintenance burden, "
        "hidden dependencies, abandoned half-features and unowned operations."
    ),
)

ACCOUNTANT = RoleDefinition(
    name="Accountant",
    slug="accountant",
    evaluation_type="cost_benefit",
    criteria=(
        "Estimate build and review cost against the expected benefit and payback "
        "period. Approve only when the return clearly exceeds the cost."
    ),
)

CRITIC = RoleDefinition(
    name="Critic",
    slug="critic",
    evaluation_type="plan_review",
    criteria=(
        "Review the implementation plan for missing steps, wrong files, risky "
        "changes and unverifiable outcomes. Approve a plan a builder can execute."
    ),
    subject_title="Implementation plan",
)

BRAND_GUARDIAN = RoleDefinition(
    name="Brand Guardian",
    slug="brand_guardian",
    evaluation_type="compliance_review",
    criteria=(
        "Review the build output for tone, naming and visual consistency with "
        "the project's existing conventions. Flag anything off-brand."
    ),
    subject_title="Build output",
)

EVALUATOR_ROLES: tuple[RoleDefinition, ...] = (GATEKEEPER, SKEPTIC, CYNIC, ACCOUNTANT)


def verdict_log_level(verdict: Verdict) -> LogLevel:
    """Audit level for a verdict: warn on reject, info otherwise."""
    match verdict:
        case Verdict.REJECT:
            return LogLevel.WARN
        case Verdict.APPROVE | Verdict.CONCERN:
            return LogLevel.INFO
        case _:
            assert_never(verdict)


def describe_verdict(verdict: Verdict) -> str:
    match verdict:
        case Verdict.APPROVE:
            return "approved"
        case Verdict.REJECT:
            return "rejected"
        case Verdict.CONCERN:
            return "raised concerns"
        case _:
            assert_never(verdict)


# =============================================================================
# Role runtime
# =============================================================================

class _Role:
    """Shared call/parse/record/journal behaviour."""

    def __init__(
        self,
        definition: RoleDefinition,
        oracle: OracleProtocol,
        store: StoreProtocol,
        journal: BuildJournal,
        model: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.definition = definition
        self._oracle = oracle
        self._store = store
        self._journal = journal
        self._model = model
        self._timeout = timeout

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def slug(self) -> str:
        return self.definition.slug

    async def _judge(self, prompt: str) -> EvaluationResult:
        result = await self._oracle.invoke(
            prompt,
            OracleOptions(model=self._model, timeout=self._timeout, label=self.slug),
        )
        return parse_evaluation(result.text, agent_name=self.slug)

    async def _record(self, brief_id: str, result: EvaluationResult) -> None:
        await self._store.write_evaluation(EvaluationRecord(
            brief_id=brief_id,
            agent=self.slug,
            evaluation_type=self.definition.evaluation_type,
            result=result,
        ))
        await self._journal.record(
            brief_id,
            self.name,
            f"{describe_verdict(result.verdict).capitalize()}: {result.reasoning}",
            verdict_log_level(result.verdict),
            result.model_dump(mode="json"),
        )


class Evaluator(_Role):
    """One evaluator role bound to an oracle.

    ``evaluate`` is the Round 1 independent judgment. ``deliberate`` is the
    Round 2 re-judgment with every Round 1 verdict visible; it does not
    write an evaluation row, the coordinator records it as a round.
    """

    async def evaluate(
        self,
        brief: Brief,
        history: list[BriefHistoryEntry] | None = None,
    ) -> EvaluationResult:
        await self._journal.info(brief.id, self.name, f"Evaluating brief ({self.definition.evaluation_type})...")
        result = await self._judge(evaluation_prompt(self.definition, brief, history))
        await self._record(brief.id, result)
        return result

    async def deliberate(self, brief: Brief, round1: list[DeliberationRound]) -> EvaluationResult:
        return await self._judge(deliberation_prompt(self.definition, brief, round1))


class Reviewer(_Role):
    """Reviewer role judging a plan or build output instead of a raw brief."""

    async def review(self, brief: Brief, subject: str) -> EvaluationResult:
        await self._journal.info(brief.id, self.name, f"Reviewing {self.definition.subject_title.lower()}...")
        result = await self._judge(review_prompt(self.definition, brief, subject))
        await self._record(brief.id, result)
        return result
