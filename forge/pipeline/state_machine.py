"""Pipeline state machine.

Build briefs:
    gatekeeper -> deliberating -> voting -> planning -> [plan_approval]
    -> critic_review -> building -> brand_review -> build_complete
    [-> deploying -> deploy_complete when auto_deploy]

Run briefs:
    gatekeeper -> deliberating -> voting -> planning -> [plan_approval]
    -> running -> task_complete

Branches:
- fast_track skips evaluation and starts at building/planning
- require_plan_approval pauses at plan_approval until an external
  transition to plan_approved, then resumes at critique (never evaluation)
- auto_deploy runs after the advisory brand review, only for build briefs

Entry points:
- advance: initial run for a brief in ``evaluating``
- approve_plan / resume: the plan approval gate
- revise: plan revision from reviewer feedback, then build again

Failure routing:
- rejection or missing quorum returns the brief to ``intake``
- any stage-fatal failure goes through ``_fail``: journal the error, then
  status ``review``, stage cleared, failure reason recorded
- critique and brand review fail open

Every stage re-reads the persisted brief before acting.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from forge.core.constants import OUTPUT_PATH_PATTERN, PULL_REQUEST_URL_PATTERN
from forge.core.exceptions import (
    BriefStateError,
    ForgeError,
    InsufficientQuorum,
    OracleError,
    StageFailure,
)
from forge.core.logging import bind_stage, get_logger
from forge.deliberation.voting import DEFAULT_CONCERN_WEIGHT, tally_votes
from forge.models import (
    Brief,
    BriefStatus,
    Decision,
    LogLevel,
    PipelineStage,
    Verdict,
)
from forge.pipeline.plan_loop import PlanCritiqueLoop

if TYPE_CHECKING:
    from forge.agents.roles import Reviewer
    from forge.deliberation.coordinator import DeliberationCoordinator
    from forge.deliberation.history import HistoryProvider
    from forge.pipeline.executor import StageExecutor
    from forge.store.journal import BuildJournal
    from forge.store.protocols import StoreProtocol


logger = get_logger(__name__)

_PIPELINE = "Pipeline"
_ARCHITECT = "Architect"
_BUILDER = "Builder"
_RUNNER = "Runner"
_DEPLOYER = "Deployer"

_SUMMARY_PREVIEW_CHARS = 100
_BRAND_REVIEW_OUTPUT_CHARS = 12000

# Sentinel distinguishing "leave stage alone" from "clear stage"
_UNSET = object()


# =============================================================================
# Results
# =============================================================================

class PipelineOutcome(BaseModel):
    """Where a pipeline invocation left the brief."""

    model_config = ConfigDict(frozen=True)

    brief_id: str
    status: BriefStatus
    stage: PipelineStage | None = None
    decision: Decision | None = None
    reason: str | None = None
    pr_url: str | None = None
    output_paths: list[str] = Field(default_factory=list)

    @property
    def paused(self) -> bool:
        return self.stage is PipelineStage.PLAN_APPROVAL


@dataclass(frozen=True, slots=True)
class PipelinePolicy:
    """Tunable pipeline behaviour."""

    concern_weight: float = DEFAULT_CONCERN_WEIGHT
    fast_track_skips_critique: bool = True
    repo_base_path: str = "/var/www"


def resolve_workdir(brief: Brief, repo_base_path: str) -> str | None:
    """Working copy for build/deploy.

    The project's local path wins. Otherwise the repository name from the
    repo URL is looked up under ``repo_base_path``.
    """
    if brief.project and brief.project.local_path:
        return brief.project.local_path
    repo_url = brief.target_repo_url
    if not repo_url:
        return None
    name = repo_url.rstrip("/").rsplit("/", 1)[-1].removesuffix(".git")
    if not name:
        return None
    return f"{repo_base_path.rstrip('/')}/{name}"


def first_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line.strip()[:_SUMMARY_PREVIEW_CHARS]
    return ""


# =============================================================================
# State machine
# =============================================================================

class PipelineStateMachine:
    """Owns every brief mutation made by the pipeline."""

    def __init__(
        self,
        store: StoreProtocol,
        journal: BuildJournal,
        coordinator: DeliberationCoordinator,
        history: HistoryProvider,
        executor: StageExecutor,
        critic: Reviewer,
        brand_guardian: Reviewer,
        max_plan_revisions: int = 2,
        policy: PipelinePolicy | None = None,
    ) -> None:
        self._store = store
        self._journal = journal
        self._coordinator = coordinator
        self._history = history
        self._executor = executor
        self._brand_guardian = brand_guardian
        self._policy = policy or PipelinePolicy()
        self._plan_loop = PlanCritiqueLoop(
            critic=critic,
            reviser=self._revise_for_critic,
            journal=journal,
            max_revisions=max_plan_revisions,
        )

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    async def advance(self, brief_id: str) -> PipelineOutcome:
        """Initial run of a brief in ``evaluating``.

        Raises:
            BriefStateError: The brief is not in ``evaluating``.
        """
        brief = await self._store.get_brief(brief_id)
        if brief.status is not BriefStatus.EVALUATING:
            raise BriefStateError(brief_id, BriefStatus.EVALUATING.value, brief.status.value)

        logger.info("pipeline_advance", brief_id=brief_id, fast_track=brief.fast_track, brief_type=brief.brief_type.value)

        decision: Decision | None = None
        if brief.fast_track:
            await self._journal.info(brief_id, _PIPELINE, "Fast track: skipping evaluation")
        else:
            evaluated = await self._evaluate(brief)
            if evaluated.decision is not Decision.APPROVED:
                return evaluated
            decision = evaluated.decision

        await self._set(brief_id, status=BriefStatus.BUILDING, stage=PipelineStage.PLANNING)
        try:
            await self._plan(brief_id)
            brief = await self._store.get_brief(brief_id)
            if brief.require_plan_approval:
                return await self._pause_for_approval(brief, decision)
            return await self._after_plan(brief_id, decision)
        except StageFailure as e:
            return await self._fail(brief_id, e, decision)

    async def approve_plan(self, brief_id: str) -> PipelineOutcome:
        """External approval: plan_approval -> plan_approved.

        Raises:
            BriefStateError: The brief is not waiting for approval.
        """
        brief = await self._store.get_brief(brief_id)
        if brief.pipeline_stage is not PipelineStage.PLAN_APPROVAL:
            current = brief.pipeline_stage.value if brief.pipeline_stage else brief.status.value
            raise BriefStateError(brief_id, PipelineStage.PLAN_APPROVAL.value, current)
        await self._set(brief_id, stage=PipelineStage.PLAN_APPROVED)
        await self._journal.info(brief_id, _PIPELINE, "Plan approved")
        return PipelineOutcome(brief_id=brief_id, status=brief.status, stage=PipelineStage.PLAN_APPROVED)

    async def resume(self, brief_id: str) -> PipelineOutcome:
        """Continue a brief whose plan was approved. Never re-runs evaluation.

        Raises:
            BriefStateError: The brief is not in ``plan_approved``.
        """
        brief = await self._store.get_brief(brief_id)
        if brief.pipeline_stage is not PipelineStage.PLAN_APPROVED:
            current = brief.pipeline_stage.value if brief.pipeline_stage else brief.status.value
            raise BriefStateError(brief_id, PipelineStage.PLAN_APPROVED.value, current)

        logger.info("pipeline_resume", brief_id=brief_id)
        await self._journal.info(brief_id, _PIPELINE, "Resuming after plan approval")
        try:
            return await self._after_plan(brief_id, None)
        except StageFailure as e:
            return await self._fail(brief_id, e)

    async def revise(self, brief_id: str, feedback: str, revision_number: int) -> PipelineOutcome:
        """Revise the plan from reviewer feedback, then execute again.

        Skips evaluation and critique. Only briefs in review, done or
        already revising can be revised.

        Raises:
            BriefStateError: The brief is in any other status.
        """
        brief = await self._store.get_brief(brief_id)
        if not brief.is_revisable:
            raise BriefStateError(brief_id, BriefStatus.REVIEW.value, brief.status.value)

        logger.info("pipeline_revision", brief_id=brief_id, revision=revision_number)
        await self._set(brief_id, status=BriefStatus.REVISING, stage=PipelineStage.PLANNING)
        brief = await self._store.get_brief(brief_id)

        try:
            if not brief.architect_plan:
                await self._journal.warn(brief_id, _PIPELINE, "No existing plan to revise, running full planning")
                await self._plan(brief_id)
            else:
                await self._journal.info(
                    brief_id,
                    _ARCHITECT,
                    f"Revising plan based on feedback (revision {revision_number})...",
                )
                try:
                    revised = await self._executor.revise(
                        brief,
                        brief.architect_plan,
                        feedback,
                        feedback_title=f"Reviewer feedback (revision {revision_number})",
                    )
                except OracleError as e:
                    raise StageFailure(f"Revision planning failed: {e}", PipelineStage.PLANNING.value, e, _ARCHITECT) from e
                if not revised:
                    raise StageFailure("Revision planning returned an empty plan", PipelineStage.PLANNING.value, agent_name=_ARCHITECT)
                await self._store.update_brief(brief_id, architect_plan=revised)
                await self._journal.info(
                    brief_id,
                    _ARCHITECT,
                    f"Plan revised (v{revision_number + 1}) addressing reviewer feedback",
                )

            brief = await self._store.get_brief(brief_id)
            if brief.is_run:
                return await self._run(brief_id)
            return await self._build_and_ship(brief_id, None)
        except StageFailure as e:
            return await self._fail(brief_id, e)

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    async def _evaluate(self, brief: Brief) -> PipelineOutcome:
        history = await self._history.load(exclude_brief_id=brief.id)
        if history is None:
            await self._journal.warn(brief.id, _PIPELINE, "Could not load brief history, proceeding without it")

        await self._set(brief.id, stage=PipelineStage.GATEKEEPER)
        try:
            outcome = await self._coordinator.round_one(brief, history)
        except InsufficientQuorum as e:
            await self._set(brief.id, status=BriefStatus.INTAKE, stage=None, failure_reason=str(e))
            logger.warning("quorum_failed", brief_id=brief.id, succeeded=e.succeeded, required=e.required)
            return PipelineOutcome(brief_id=brief.id, status=BriefStatus.INTAKE, reason=str(e))

        await self._set(brief.id, stage=PipelineStage.DELIBERATING)
        outcome.round2 = await self._coordinator.round_two(brief, outcome.round1)

        await self._set(brief.id, stage=PipelineStage.VOTING)
        tally = tally_votes(brief.id, outcome.votes, self._policy.concern_weight)
        await self._journal.record(
            brief.id,
            _PIPELINE,
            tally.headline,
            LogLevel.INFO if tally.approved else LogLevel.WARN,
        )
        await self._store.write_decision_report(tally.report)
        logger.info(
            "vote_tallied",
            brief_id=brief.id,
            score=tally.report.weighted_score,
            decision=tally.report.decision.value,
            revised=len(outcome.revised),
        )

        if tally.approved:
            return PipelineOutcome(brief_id=brief.id, status=BriefStatus.EVALUATING, decision=Decision.APPROVED)

        rejection = " | ".join(v.reasoning for v in outcome.votes if v.verdict is Verdict.REJECT)
        rejection = rejection or tally.report.summary
        await self._set(brief.id, status=BriefStatus.INTAKE, stage=None, rejection_reason=rejection)
        return PipelineOutcome(
            brief_id=brief.id,
            status=BriefStatus.INTAKE,
            decision=Decision.REJECTED,
            reason=rejection,
        )

    # -------------------------------------------------------------------------
    # Planning and critique
    # -------------------------------------------------------------------------

    async def _plan(self, brief_id: str) -> str:
        await self._set(brief_id, stage=PipelineStage.PLANNING)
        brief = await self._store.get_brief(brief_id)
        await self._journal.info(brief_id, _ARCHITECT, "Designing implementation plan...")

        try:
            plan = await self._executor.plan(brief)
        except OracleError as e:
            raise StageFailure(f"Planning failed: {e}", PipelineStage.PLANNING.value, e, _ARCHITECT) from e
        if not plan:
            raise StageFailure("Planning failed: architect returned an empty plan", PipelineStage.PLANNING.value, agent_name=_ARCHITECT)

        await self._store.update_brief(brief_id, architect_plan=plan)
        await self._journal.info(brief_id, _ARCHITECT, f"Plan complete: {first_line(plan) or 'Plan created'}")
        return plan

    async def _pause_for_approval(self, brief: Brief, decision: Decision | None) -> PipelineOutcome:
        await self._set(brief.id, stage=PipelineStage.PLAN_APPROVAL)
        await self._journal.info(brief.id, _PIPELINE, "Plan ready, waiting for approval")
        logger.info("pipeline_paused", brief_id=brief.id)
        return PipelineOutcome(
            brief_id=brief.id,
            status=brief.status,
            stage=PipelineStage.PLAN_APPROVAL,
            decision=decision,
        )

    async def _after_plan(self, brief_id: str, decision: Decision | None) -> PipelineOutcome:
        brief = await self._store.get_brief(brief_id)
        if brief.is_run:
            return await self._run(brief_id, decision)

        if brief.fast_track and self._policy.fast_track_skips_critique:
            await self._journal.info(brief_id, _PIPELINE, "Fast track: skipping critic review")
        else:
            await self._critique(brief_id)
        return await self._build_and_ship(brief_id, decision)

    async def _critique(self, brief_id: str) -> None:
        await self._set(brief_id, stage=PipelineStage.CRITIC_REVIEW)
        brief = await self._store.get_brief(brief_id)
        if not brief.architect_plan:
            await self._journal.warn(brief_id, "Critic", "No architect plan found, skipping review")
            return

        outcome = await self._plan_loop.run(brief, brief.architect_plan)
        if outcome.plan != brief.architect_plan:
            await self._store.update_brief(brief_id, architect_plan=outcome.plan)
        logger.info(
            "critique_finished",
            brief_id=brief_id,
            exit_reason=outcome.exit_reason.value,
            critique_calls=outcome.critique_calls,
            revisions=outcome.revisions,
        )

    async def _revise_for_critic(self, brief: Brief, plan: str, feedback: str) -> str:
        return await self._executor.revise(brief, plan, feedback)

    # -------------------------------------------------------------------------
    # Build, brand review, deploy
    # -------------------------------------------------------------------------

    async def _build_and_ship(self, brief_id: str, decision: Decision | None) -> PipelineOutcome:
        output = await self._build(brief_id)
        await self._brand_review(brief_id, output)

        brief = await self._store.get_brief(brief_id)
        if brief.auto_deploy:
            await self._set(brief_id, stage=PipelineStage.BUILD_COMPLETE)
            return await self._deploy(brief_id, decision)

        await self._set(brief_id, status=BriefStatus.REVIEW, stage=PipelineStage.BUILD_COMPLETE)
        logger.info("build_complete", brief_id=brief_id, pr_url=brief.pr_url)
        return PipelineOutcome(
            brief_id=brief_id,
            status=BriefStatus.REVIEW,
            stage=PipelineStage.BUILD_COMPLETE,
            decision=decision,
            pr_url=brief.pr_url,
        )

    async def _build(self, brief_id: str) -> str:
        await self._set(brief_id, stage=PipelineStage.BUILDING)
        brief = await self._store.get_brief(brief_id)
        if not brief.architect_plan:
            raise StageFailure("No architect plan found, cannot build", PipelineStage.BUILDING.value, agent_name=_BUILDER)

        workdir = resolve_workdir(brief, self._policy.repo_base_path)
        if workdir is None:
            raise StageFailure("No repository URL or local path, cannot build", PipelineStage.BUILDING.value, agent_name=_BUILDER)

        await self._journal.info(brief_id, _BUILDER, f"Starting build in {workdir}...")
        try:
            result = await self._executor.build(brief, brief.architect_plan, workdir)
        except OracleError as e:
            raise StageFailure(f"Build failed: {e}", PipelineStage.BUILDING.value, e, _BUILDER) from e

        match = PULL_REQUEST_URL_PATTERN.search(result.text)
        if match:
            await self._store.update_brief(brief_id, pr_url=match.group(0))
            await self._journal.info(brief_id, _BUILDER, f"PR created: {match.group(0)}")
        await self._journal.info(
            brief_id,
            _BUILDER,
            "Build complete",
            {"input_units": result.input_units, "output_units": result.output_units, "model": result.model_id},
        )
        return result.text

    async def _brand_review(self, brief_id: str, build_output: str) -> None:
        await self._set(brief_id, stage=PipelineStage.BRAND_REVIEW)
        brief = await self._store.get_brief(brief_id)
        subject = build_output[-_BRAND_REVIEW_OUTPUT_CHARS:]
        if brief.pr_url:
            subject = f"Pull request: {brief.pr_url}\n\n{subject}"
        try:
            result = await self._brand_guardian.review(brief, subject)
        except ForgeError as e:
            await self._journal.warn(brief_id, self._brand_guardian.name, f"Brand review failed, continuing: {e}")
            return
        if result.verdict is not Verdict.APPROVE:
            await self._journal.warn(brief_id, _PIPELINE, "Brand review is advisory, continuing")

    async def _deploy(self, brief_id: str, decision: Decision | None) -> PipelineOutcome:
        await self._set(brief_id, stage=PipelineStage.DEPLOYING)
        brief = await self._store.get_brief(brief_id)
        workdir = resolve_workdir(brief, self._policy.repo_base_path)
        if workdir is None:
            raise StageFailure("No repository URL or local path, cannot deploy", PipelineStage.DEPLOYING.value, agent_name=_DEPLOYER)

        await self._journal.info(brief_id, _DEPLOYER, f"Deploying from {workdir}...")
        try:
            result = await self._executor.deploy(brief, workdir)
        except OracleError as e:
            raise StageFailure(f"Deploy failed: {e}", PipelineStage.DEPLOYING.value, e, _DEPLOYER) from e

        await self._journal.info(brief_id, _DEPLOYER, f"Deploy complete: {first_line(result.text) or 'no output'}")
        await self._set(brief_id, status=BriefStatus.DONE, stage=PipelineStage.DEPLOY_COMPLETE)
        return PipelineOutcome(
            brief_id=brief_id,
            status=BriefStatus.DONE,
            stage=PipelineStage.DEPLOY_COMPLETE,
            decision=decision,
            pr_url=brief.pr_url,
        )

    # -------------------------------------------------------------------------
    # Run briefs
    # -------------------------------------------------------------------------

    async def _run(self, brief_id: str, decision: Decision | None = None) -> PipelineOutcome:
        await self._set(brief_id, stage=PipelineStage.RUNNING)
        brief = await self._store.get_brief(brief_id)
        if not brief.architect_plan:
            raise StageFailure("No architect plan found, cannot run", PipelineStage.RUNNING.value, agent_name=_RUNNER)
        if brief.auto_deploy:
            await self._journal.info(brief_id, _PIPELINE, "Auto-deploy does not apply to run briefs")

        workdir = brief.project.local_path if brief.project else None
        await self._journal.info(brief_id, _RUNNER, "Running task...")
        try:
            result = await self._executor.run(brief, brief.architect_plan, workdir)
        except OracleError as e:
            raise StageFailure(f"Run failed: {e}", PipelineStage.RUNNING.value, e, _RUNNER) from e

        paths = list(dict.fromkeys(OUTPUT_PATH_PATTERN.findall(result.text)))
        await self._journal.info(
            brief_id,
            _RUNNER,
            f"Task complete, {len(paths)} output(s)",
            {"output_paths": paths} if paths else None,
        )
        await self._set(
            brief_id,
            status=BriefStatus.REVIEW,
            stage=PipelineStage.TASK_COMPLETE,
            output_paths=paths,
        )
        return PipelineOutcome(
            brief_id=brief_id,
            status=BriefStatus.REVIEW,
            stage=PipelineStage.TASK_COMPLETE,
            decision=decision,
            output_paths=paths,
        )

    # -------------------------------------------------------------------------
    # Persistence helpers
    # -------------------------------------------------------------------------

    async def _set(
        self,
        brief_id: str,
        status: BriefStatus | None = None,
        stage: object = _UNSET,
        **fields: object,
    ) -> None:
        update: dict[str, object] = dict(fields)
        if status is not None:
            update["status"] = status
        if stage is not _UNSET:
            update["pipeline_stage"] = stage
        await self._store.update_brief(brief_id, **update)
        if "pipeline_stage" in update:
            stage_name = getattr(stage, "value", stage)
            bind_stage(stage_name)
            logger.debug("stage_changed", brief_id=brief_id, stage=stage_name)

    async def _fail(
        self,
        brief_id: str,
        failure: StageFailure,
        decision: Decision | None = None,
    ) -> PipelineOutcome:
        """Universal failure funnel: journal, then review with stage cleared."""
        reason = str(failure)
        await self._journal.error(brief_id, failure.agent_name or _PIPELINE, reason)
        await self._set(brief_id, status=BriefStatus.REVIEW, stage=None, failure_reason=reason)
        logger.warning("stage_failed", brief_id=brief_id, stage=failure.stage, reason=reason)
        return PipelineOutcome(
            brief_id=brief_id,
            status=BriefStatus.REVIEW,
            stage=None,
            decision=decision,
            reason=reason,
        )
