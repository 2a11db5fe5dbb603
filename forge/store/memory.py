"""In-memory store.

Keeps every row in process memory behind an asyncio.Lock. Used for local
runs and as the store double in tests, where the recorded rows are read
back directly through the public lists.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any

from forge.core.exceptions import BriefNotFoundError, StoreError
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


class InMemoryStore:
    """Dict-backed implementation of StoreProtocol.

    Attributes:
        logs: Audit entries in write order
        evaluations: Evaluation rows in write order
        rounds: Deliberation rows in write order
        decisions: Decision reports in write order
        revisions: Revision requests in enqueue order
    """

    def __init__(self, briefs: list[Brief] | None = None) -> None:
        self._briefs: dict[str, Brief] = {}
        self._lock = asyncio.Lock()
        self.logs: list[BuildLogEntry] = []
        self.evaluations: list[EvaluationRecord] = []
        self.rounds: list[DeliberationRound] = []
        self.decisions: list[DecisionReport] = []
        self.revisions: list[RevisionRequest] = []
        self.stage_history: dict[str, list[PipelineStage | None]] = {}
        for brief in briefs or []:
            self.add_brief(brief)

    def add_brief(self, brief: Brief) -> None:
        """Seed a brief synchronously."""
        self._briefs[brief.id] = brief
        self.stage_history.setdefault(brief.id, [])

    def brief(self, brief_id: str) -> Brief:
        """Current persisted brief, without awaiting."""
        return self._briefs[brief_id]

    # -------------------------------------------------------------------------
    # Briefs
    # -------------------------------------------------------------------------

    async def get_brief(self, brief_id: str) -> Brief:
        async with self._lock:
            try:
                return self._briefs[brief_id].model_copy(deep=True)
            except KeyError:
                raise BriefNotFoundError(brief_id) from None

    async def update_brief(self, brief_id: str, **fields: Any) -> None:
        async with self._lock:
            current = self._briefs.get(brief_id)
            if current is None:
                raise BriefNotFoundError(brief_id)
            unknown = set(fields) - set(Brief.model_fields)
            if unknown:
                raise StoreError(f"Unknown brief fields: {sorted(unknown)}", operation="update_brief")
            fields["updated_at"] = datetime.now(timezone.utc)
            self._briefs[brief_id] = current.model_copy(update=fields)
            if "pipeline_stage" in fields:
                self.stage_history.setdefault(brief_id, []).append(fields["pipeline_stage"])

    async def list_briefs(
        self,
        status: BriefStatus | None = None,
        stage: PipelineStage | None = None,
    ) -> list[Brief]:
        async with self._lock:
            return [
                b.model_copy(deep=True)
                for b in self._briefs.values()
                if (status is None or b.status == status)
                and (stage is None or b.pipeline_stage == stage)
            ]

    async def fetch_brief_history(
        self,
        limit: int,
        exclude_id: str | None = None,
    ) -> list[BriefHistoryEntry]:
        async with self._lock:
            latest: dict[str, DecisionReport] = {}
            for report in self.decisions:
                latest[report.brief_id] = report
            candidates = [b for b in self._briefs.values() if b.id != exclude_id]
            candidates.reverse()
            entries = []
            for b in candidates[:limit]:
                report = latest.get(b.id)
                entries.append(BriefHistoryEntry(
                    id=b.id,
                    title=b.title,
                    brief_type=b.brief_type,
                    status=b.status,
                    outcome_tier=b.outcome_tier,
                    impact_score=b.impact_score,
                    decision=report.decision.value if report else None,
                    weighted_score=report.weighted_score if report else None,
                ))
            return entries

    # -------------------------------------------------------------------------
    # Append-only writers
    # -------------------------------------------------------------------------

    async def append_log(self, entry: BuildLogEntry) -> None:
        async with self._lock:
            self.logs.append(entry)

    async def write_evaluation(self, record: EvaluationRecord) -> None:
        async with self._lock:
            self.evaluations.append(record)

    async def write_deliberation_round(self, row: DeliberationRound) -> None:
        async with self._lock:
            self.rounds.append(row)

    async def write_decision_report(self, report: DecisionReport) -> None:
        async with self._lock:
            self.decisions.append(report)

    # -------------------------------------------------------------------------
    # Revision intake
    # -------------------------------------------------------------------------

    async def enqueue_revision(self, brief_id: str, feedback: str) -> RevisionRequest:
        async with self._lock:
            if brief_id not in self._briefs:
                raise BriefNotFoundError(brief_id)
            numbers = [r.revision_number for r in self.revisions if r.brief_id == brief_id]
            request = RevisionRequest(
                id=str(uuid.uuid4()),
                brief_id=brief_id,
                feedback=feedback,
                revision_number=max(numbers, default=0) + 1,
            )
            self.revisions.append(request)
            return request

    async def next_pending_revision(self, brief_id: str) -> RevisionRequest | None:
        async with self._lock:
            for request in self.revisions:
                if request.brief_id == brief_id and request.status is RevisionStatus.PENDING:
                    return request
            return None

    async def list_pending_revision_briefs(self) -> list[str]:
        async with self._lock:
            seen: list[str] = []
            for request in self.revisions:
                if request.status is RevisionStatus.PENDING and request.brief_id not in seen:
                    seen.append(request.brief_id)
            return seen

    async def update_revision_status(self, revision_id: str, status: RevisionStatus) -> None:
        async with self._lock:
            for i, request in enumerate(self.revisions):
                if request.id == revision_id:
                    self.revisions[i] = request.model_copy(update={"status": status})
                    return
            raise StoreError(f"Revision '{revision_id}' not found", operation="update_revision_status")
