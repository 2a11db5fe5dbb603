"""Pydantic schemas for briefs, evaluations, revisions and audit logs.

Pattern: Typed Data Transfer Objects (DTOs)
"""

from forge.models.brief import (
    IN_FLIGHT_STATUSES,
    REVISABLE_STATUSES,
    Brief,
    BriefHistoryEntry,
    BriefStatus,
    BriefType,
    PipelineStage,
    Project,
)
from forge.models.evaluation import (
    DEFAULT_CONFIDENCE,
    MAX_CONFIDENCE,
    MIN_CONFIDENCE,
    Decision,
    DecisionReport,
    DeliberationRound,
    EvaluationRecord,
    EvaluationResult,
    Verdict,
)
from forge.models.log import BuildLogEntry, LogLevel
from forge.models.revision import RevisionRequest, RevisionStatus


__all__ = [
    "DEFAULT_CONFIDENCE",
    "IN_FLIGHT_STATUSES",
    "MAX_CONFIDENCE",
    "MIN_CONFIDENCE",
    "REVISABLE_STATUSES",
    "Brief",
    "BriefHistoryEntry",
    "BriefStatus",
    "BriefType",
    "BuildLogEntry",
    "Decision",
    "DecisionReport",
    "DeliberationRound",
    "EvaluationRecord",
    "EvaluationResult",
    "LogLevel",
    "PipelineStage",
    "Project",
    "RevisionRequest",
    "RevisionStatus",
    "Verdict",
]
