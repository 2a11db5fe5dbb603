"""Brief and project schemas.

Models:
- BriefStatus: coarse lifecycle status of a brief
- BriefType: build (produces a pull request) or run (produces output files)
- PipelineStage: fine-grained stage while a brief is in flight
- Project: repository and context a brief works against
- Brief: the unit of work moving through the pipeline
- BriefHistoryEntry: compact summary of a prior brief shown to evaluators

Invariant: ``pipeline_stage`` is only meaningful while the status is an
in-flight status. It is cleared whenever the brief returns to intake or
lands in review/done through the failure funnel.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================

class BriefStatus(str, Enum):
    """Lifecycle status of a brief."""

    INTAKE = "intake"
    EVALUATING = "evaluating"
    BUILDING = "building"
    REVISING = "revising"
    REVIEW = "review"
    DONE = "done"


IN_FLIGHT_STATUSES = frozenset({
    BriefStatus.EVALUATING,
    BriefStatus.BUILDING,
    BriefStatus.REVISING,
})

# Statuses from which reviewer feedback may re-plan and rebuild a brief.
REVISABLE_STATUSES = frozenset({
    BriefStatus.REVIEW,
    BriefStatus.DONE,
    BriefStatus.REVISING,
})


class BriefType(str, Enum):
    """What a brief produces when it executes."""

    BUILD = "build"
    RUN = "run"


class PipelineStage(str, Enum):
    """Stage values exposed to the UI while a brief is in flight."""

    GATEKEEPER = "gatekeeper"
    DELIBERATING = "deliberating"
    VOTING = "voting"
    PLANNING = "planning"
    PLAN_APPROVAL = "plan_approval"
    PLAN_APPROVED = "plan_approved"
    CRITIC_REVIEW = "critic_review"
    BUILDING = "building"
    BRAND_REVIEW = "brand_review"
    BUILD_COMPLETE = "build_complete"
    RUNNING = "running"
    TASK_COMPLETE = "task_complete"
    DEPLOYING = "deploying"
    DEPLOY_COMPLETE = "deploy_complete"


# =============================================================================
# Project
# =============================================================================

class Project(BaseModel):
    """Repository and context a brief is executed against.

    Attributes:
        id: Project identifier
        name: Display name
        repo_url: Remote repository URL, e.g. https://github.com/acme/site
        default_branch: Branch pull requests target
        local_path: Checked-out working copy on this host, if any
        deploy_notes: Free-text deployment instructions for the deploy stage
        context_notes: Extra project context shown to planning roles
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    repo_url: str | None = None
    default_branch: str = "main"
    local_path: str | None = None
    deploy_notes: str | None = None
    context_notes: str | None = None


# =============================================================================
# Brief
# =============================================================================

class Brief(BaseModel):
    """The unit of requested work.

    Mutated only by the pipeline state machine; evaluators and reviewers
    return results that the state machine persists.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    title: str
    description: str = ""
    brief_type: BriefType = BriefType.BUILD
    status: BriefStatus = BriefStatus.INTAKE
    pipeline_stage: PipelineStage | None = None

    architect_plan: str | None = None
    pr_url: str | None = None
    output_paths: list[str] = Field(default_factory=list)
    repo_url: str | None = None
    branch: str | None = None

    fast_track: bool = False
    auto_deploy: bool = False
    require_plan_approval: bool = False

    outcome_tier: int | None = Field(default=None, ge=1, le=4)
    outcome_type: str | None = None
    impact_score: int | None = Field(default=None, ge=1, le=10)

    project: Project | None = None
    rejection_reason: str | None = None
    failure_reason: str | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_in_flight(self) -> bool:
        """True while the brief is in a status that carries a pipeline stage."""
        return self.status in IN_FLIGHT_STATUSES

    @property
    def is_revisable(self) -> bool:
        return self.status in REVISABLE_STATUSES

    @property
    def is_run(self) -> bool:
        return self.brief_type is BriefType.RUN

    @property
    def target_repo_url(self) -> str | None:
        """Project repository, falling back to the brief's own repo URL."""
        if self.project and self.project.repo_url:
            return self.project.repo_url
        return self.repo_url


class BriefHistoryEntry(BaseModel):
    """Summary of a prior brief, used by evaluators for pattern detection."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    brief_type: BriefType
    status: BriefStatus
    outcome_tier: int | None = None
    impact_score: int | None = None
    decision: str | None = None
    weighted_score: float | None = None
