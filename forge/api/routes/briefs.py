"""Brief API routes.

Service Endpoints:
- POST /v1/briefs/{brief_id}/advance       - schedule the initial pipeline run
- POST /v1/briefs/{brief_id}/plan-approval - approve a paused plan and resume
- POST /v1/briefs/{brief_id}/revisions     - enqueue reviewer feedback
- GET  /v1/briefs/{brief_id}               - current status and artifacts

Execution happens in the background; the POST endpoints return 202 once
the work is scheduled.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from forge.api.dependencies import get_runner, get_store
from forge.core.constants import API_PREFIX
from forge.core.exceptions import BriefInFlightError, BriefStateError
from forge.models import Brief, BriefStatus, BriefType, PipelineStage
from forge.pipeline.runner import PipelineRunner
from forge.store.protocols import StoreProtocol


logger = logging.getLogger(__name__)

# Briefs that have not been through evaluation yet take no reviewer feedback.
_UNREVISABLE_STATUSES = frozenset({BriefStatus.INTAKE, BriefStatus.EVALUATING})


# =============================================================================
# Router Configuration
# =============================================================================

router = APIRouter(
    prefix=f"{API_PREFIX}/briefs",
    tags=["Briefs"],
)


# =============================================================================
# Request/Response Models
# =============================================================================

class BriefView(BaseModel):
    """Externally visible state of a brief.

    Attributes:
        id: Brief identifier
        title: Brief title
        brief_type: build or run
        status: Lifecycle status
        pipeline_stage: Stage while in flight, else None
        in_flight: Whether an execution currently holds the brief
        architect_plan: Latest plan, if any
        pr_url: Pull request produced by a build
        output_paths: Files produced by a run
        rejection_reason: Why evaluation rejected the brief
        failure_reason: Why the pipeline routed the brief to review
    """

    id: str
    title: str
    brief_type: BriefType
    status: BriefStatus
    pipeline_stage: PipelineStage | None = None
    in_flight: bool = False
    architect_plan: str | None = None
    pr_url: str | None = None
    output_paths: list[str] = Field(default_factory=list)
    rejection_reason: str | None = None
    failure_reason: str | None = None

    @classmethod
    def from_brief(cls, brief: Brief, in_flight: bool = False) -> BriefView:
        return cls(
            id=brief.id,
            title=brief.title,
            brief_type=brief.brief_type,
            status=brief.status,
            pipeline_stage=brief.pipeline_stage,
            in_flight=in_flight,
            architect_plan=brief.architect_plan,
            pr_url=brief.pr_url,
            output_paths=brief.output_paths,
            rejection_reason=brief.rejection_reason,
            failure_reason=brief.failure_reason,
        )


class ScheduledResponse(BaseModel):
    """Response for endpoints that schedule background work."""

    brief_id: str
    scheduled: bool = True
    status: BriefStatus
    pipeline_stage: PipelineStage | None = None


class RevisionCreateRequest(BaseModel):
    """Reviewer feedback to revise a finished brief."""

    feedback: str = Field(
        ...,
        min_length=1,
        description="What the reviewer wants changed",
    )


class RevisionCreateResponse(BaseModel):
    brief_id: str
    revision_id: str
    revision_number: int
    scheduled: bool = True


# =============================================================================
# API Endpoints
# =============================================================================

@router.post(
    "/{brief_id}/advance",
    response_model=ScheduledResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start the pipeline for a brief in evaluating",
)
async def advance_brief(
    brief_id: str,
    runner: PipelineRunner = Depends(get_runner),
    store: StoreProtocol = Depends(get_store),
) -> ScheduledResponse:
    """Schedule the initial pipeline run.

    Raises:
        BriefNotFoundError: 404
        BriefInFlightError: 409, an execution already holds the brief
        BriefStateError: 409, the brief is not in ``evaluating``
    """
    brief = await store.get_brief(brief_id)
    if runner.registry.is_active(brief_id):
        raise BriefInFlightError(brief_id)
    if brief.status is not BriefStatus.EVALUATING:
        raise BriefStateError(brief_id, BriefStatus.EVALUATING.value, brief.status.value)

    runner.schedule(brief_id)
    logger.info("Scheduled pipeline for brief %s", brief_id)
    return ScheduledResponse(brief_id=brief_id, status=brief.status, pipeline_stage=brief.pipeline_stage)


@router.post(
    "/{brief_id}/plan-approval",
    response_model=ScheduledResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Approve a plan waiting at plan_approval",
)
async def approve_plan(
    brief_id: str,
    runner: PipelineRunner = Depends(get_runner),
) -> ScheduledResponse:
    if runner.registry.is_active(brief_id):
        raise BriefInFlightError(brief_id)
    outcome = await runner.state_machine.approve_plan(brief_id)
    runner.schedule(brief_id)
    logger.info("Plan approved for brief %s, resuming", brief_id)
    return ScheduledResponse(brief_id=brief_id, status=outcome.status, pipeline_stage=outcome.stage)


@router.post(
    "/{brief_id}/revisions",
    response_model=RevisionCreateResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Enqueue reviewer feedback",
)
async def create_revision(
    brief_id: str,
    request: RevisionCreateRequest,
    runner: PipelineRunner = Depends(get_runner),
    store: StoreProtocol = Depends(get_store),
) -> RevisionCreateResponse:
    """Record feedback as the next revision request.

    If the brief is busy the request stays pending and is drained when the
    current execution finishes or on the next poll.

    Raises:
        BriefNotFoundError: 404
        BriefStateError: 409, the brief is in ``intake`` or ``evaluating``
    """
    brief = await store.get_brief(brief_id)
    if brief.status in _UNREVISABLE_STATUSES:
        raise BriefStateError(brief_id, BriefStatus.REVIEW.value, brief.status.value)

    revision = await store.enqueue_revision(brief_id, request.feedback)
    scheduled = not runner.registry.is_active(brief_id)
    if scheduled:
        runner.schedule(brief_id)
    return RevisionCreateResponse(
        brief_id=brief_id,
        revision_id=revision.id,
        revision_number=revision.revision_number,
        scheduled=scheduled,
    )


@router.get(
    "/{brief_id}",
    response_model=BriefView,
    summary="Get brief status",
)
async def get_brief(
    brief_id: str,
    runner: PipelineRunner = Depends(get_runner),
    store: StoreProtocol = Depends(get_store),
) -> BriefView:
    brief = await store.get_brief(brief_id)
    return BriefView.from_brief(brief, in_flight=runner.registry.is_active(brief_id))


__all__ = [
    "BriefView",
    "RevisionCreateRequest",
    "RevisionCreateResponse",
    "ScheduledResponse",
    "router",
]
