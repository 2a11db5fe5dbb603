"""Store protocol.

The store owns persistence for briefs and everything written about them.
Every write is either an append-only insert or a single-row update keyed
by id, so re-entering a stage after a crash never corrupts earlier rows.

Pattern: Protocol duck typing with @runtime_checkable
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from forge.models import (
        Brief,
        BriefHistoryEntry,
        BriefStatus,
        BuildLogEntry,
        DecisionReport,
        DeliberationRound,
        EvaluationRecord,
        PipelineStage,
        RevisionRequest,
        RevisionStatus,
    )


@runtime_checkable
class StoreProtocol(Protocol):
    """Persistence boundary used by the pipeline."""

    # -------------------------------------------------------------------------
    # Briefs
    # -------------------------------------------------------------------------

    async def get_brief(self, brief_id: str) -> Brief:
        """Fetch a brief with its project.

        Raises:
            BriefNotFoundError: If no brief has this id.
        """
        ...

    async def update_brief(self, brief_id: str, **fields: Any) -> None:
        """Apply a single-row update to a brief."""
        ...

    async def list_briefs(
        self,
        status: BriefStatus | None = None,
        stage: PipelineStage | None = None,
    ) -> list[Brief]:
        """List briefs, optionally filtered by status and stage, oldest first."""
        ...

    async def fetch_brief_history(
        self,
        limit: int,
        exclude_id: str | None = None,
    ) -> list[BriefHistoryEntry]:
        """Most recent ``limit`` briefs with their latest decision, newest first."""
        ...

    # -------------------------------------------------------------------------
    # Append-only writers
    # -------------------------------------------------------------------------

    async def append_log(self, entry: BuildLogEntry) -> None:
        ...

    async def write_evaluation(self, record: EvaluationRecord) -> None:
        ...

    async def write_deliberation_round(self, row: DeliberationRound) -> None:
        ...

    async def write_decision_report(self, report: DecisionReport) -> None:
        ...

    # -------------------------------------------------------------------------
    # Revision intake
    # -------------------------------------------------------------------------

    async def enqueue_revision(self, brief_id: str, feedback: str) -> RevisionRequest:
        """Append feedback with the next revision number for the brief."""
        ...

    async def next_pending_revision(self, brief_id: str) -> RevisionRequest | None:
        """Oldest pending revision for the brief, if any."""
        ...

    async def list_pending_revision_briefs(self) -> list[str]:
        """Brief ids that have at least one pending revision."""
        ...

    async def update_revision_status(self, revision_id: str, status: RevisionStatus) -> None:
        ...
