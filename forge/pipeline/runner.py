"""Pipeline runner.

Dispatches briefs to the state machine with at most one active execution
per brief, and keeps track of background executions so shutdown can wait
for them.

Dispatch by persisted state:
- status ``evaluating``            -> advance
- pipeline stage ``plan_approved`` -> resume
- pending revision requests        -> drain them one at a time while the
                                      status is review, done or revising

Unexpected errors are logged, journaled as "Pipeline error" and routed to
``review`` so no brief is left in a transient stage.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from forge.agents.roles import BRAND_GUARDIAN, CRITIC, EVALUATOR_ROLES, Evaluator, Reviewer
from forge.core.config import Settings
from forge.core.constants import Timeouts
from forge.core.exceptions import BriefInFlightError, BriefNotFoundError, BriefStateError, ForgeError
from forge.core.logging import brief_log_context, get_logger
from forge.deliberation.coordinator import DeliberationCoordinator
from forge.deliberation.history import HistoryProvider
from forge.models import BriefStatus, PipelineStage, RevisionStatus
from forge.pipeline.executor import RetryConfig, StageExecutor, StageTimeouts
from forge.pipeline.inflight import InFlightRegistry
from forge.pipeline.state_machine import PipelineOutcome, PipelinePolicy, PipelineStateMachine
from forge.store.journal import BuildJournal

if TYPE_CHECKING:
    from forge.oracle.protocols import OracleProtocol
    from forge.store.protocols import StoreProtocol


logger = get_logger(__name__)


class PipelineRunner:
    """Entry point for executing briefs.

    Example:
        ```python
        runner = create_runner(settings, store, oracle)
        await runner.catch_up()
        runner.schedule("brief-1")
        await runner.shutdown()
        ```
    """

    def __init__(
        self,
        state_machine: PipelineStateMachine,
        store: StoreProtocol,
        journal: BuildJournal,
        registry: InFlightRegistry | None = None,
    ) -> None:
        self.state_machine = state_machine
        self._store = store
        self._journal = journal
        self.registry = registry if registry is not None else InFlightRegistry()
        self._tasks: set[asyncio.Task[list[PipelineOutcome]]] = set()

    # -------------------------------------------------------------------------
    # Processing
    # -------------------------------------------------------------------------

    async def process(self, brief_id: str) -> list[PipelineOutcome]:
        """Run whatever the brief's persisted state calls for.

        Raises:
            BriefInFlightError: Another execution holds the brief.
            BriefNotFoundError: The brief does not exist.
        """
        async with self.registry.claim(brief_id):
            with brief_log_context(brief_id):
                return await self._dispatch(brief_id)

    async def _dispatch(self, brief_id: str) -> list[PipelineOutcome]:
        brief = await self._store.get_brief(brief_id)
        outcomes: list[PipelineOutcome] = []
        try:
            if brief.status is BriefStatus.EVALUATING:
                outcomes.append(await self.state_machine.advance(brief_id))
            elif brief.pipeline_stage is PipelineStage.PLAN_APPROVED:
                outcomes.append(await self.state_machine.resume(brief_id))
            outcomes.extend(await self._drain_revisions(brief_id))
        except BriefStateError:
            raise
        except Exception as e:
            await self._route_unexpected(brief_id, e)
            raise
        return outcomes

    async def _drain_revisions(self, brief_id: str) -> list[PipelineOutcome]:
        outcomes: list[PipelineOutcome] = []
        while True:
            brief = await self._store.get_brief(brief_id)
            if not brief.is_revisable:
                # Rejected, paused or still running; revisions stay pending.
                return outcomes
            request = await self._store.next_pending_revision(brief_id)
            if request is None:
                return outcomes

            await self._store.update_revision_status(request.id, RevisionStatus.IN_PROGRESS)
            try:
                outcomes.append(
                    await self.state_machine.revise(brief_id, request.feedback, request.revision_number)
                )
            finally:
                await self._store.update_revision_status(request.id, RevisionStatus.COMPLETED)

    async def _route_unexpected(self, brief_id: str, error: Exception) -> None:
        message = str(error) or type(error).__name__
        logger.error("pipeline_error", brief_id=brief_id, error=message, error_type=type(error).__name__)
        await self._journal.error(brief_id, "Pipeline", f"Pipeline error: {message}")
        try:
            await self._store.update_brief(
                brief_id,
                status=BriefStatus.REVIEW,
                pipeline_stage=None,
                failure_reason=f"Pipeline error: {message}",
            )
        except ForgeError as e:
            logger.error("pipeline_error_routing_failed", brief_id=brief_id, error=str(e))

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def schedule(self, brief_id: str) -> asyncio.Task[list[PipelineOutcome]]:
        """Process a brief in the background."""
        task = asyncio.create_task(self._process_logged(brief_id), name=f"brief:{brief_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _process_logged(self, brief_id: str) -> list[PipelineOutcome]:
        try:
            return await self.process(brief_id)
        except BriefInFlightError:
            logger.info("brief_already_in_flight", brief_id=brief_id)
        except BriefNotFoundError:
            logger.warning("brief_not_found", brief_id=brief_id)
        except BriefStateError as e:
            logger.info("brief_state_changed", brief_id=brief_id, expected=e.expected, actual=e.actual)
        except Exception:
            logger.exception("brief_processing_failed", brief_id=brief_id)
        return []

    @property
    def active_count(self) -> int:
        return len(self.registry)

    async def catch_up(self) -> None:
        """Process briefs left in ``evaluating`` (e.g. after a restart), one at a time."""
        pending = await self._store.list_briefs(status=BriefStatus.EVALUATING)
        if pending:
            logger.info("catch_up", count=len(pending))
        for brief in pending:
            await self._process_logged(brief.id)

    async def poll_once(self) -> list[str]:
        """Schedule every brief that has work waiting. Returns the scheduled ids."""
        ids: list[str] = [b.id for b in await self._store.list_briefs(status=BriefStatus.EVALUATING)]
        ids += [b.id for b in await self._store.list_briefs(stage=PipelineStage.PLAN_APPROVED)]
        ids += await self._store.list_pending_revision_briefs()

        scheduled = []
        for brief_id in dict.fromkeys(ids):
            if self.registry.is_active(brief_id):
                continue
            self.schedule(brief_id)
            scheduled.append(brief_id)
        return scheduled

    async def shutdown(self, timeout: float = Timeouts.SHUTDOWN_GRACE) -> None:
        """Wait for active executions to finish."""
        if not self._tasks:
            return
        logger.info("waiting_for_pipelines", count=len(self._tasks))
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("pipelines_cancelled", count=len(pending))


# =============================================================================
# Assembly
# =============================================================================

def create_state_machine(
    settings: Settings,
    store: StoreProtocol,
    oracle: OracleProtocol,
    journal: BuildJournal | None = None,
) -> PipelineStateMachine:
    """Wire roles, coordinator and executor from Settings."""
    journal = journal or BuildJournal(store)
    evaluators = [
        Evaluator(role, oracle, store, journal, settings.evaluator_model, settings.evaluation_timeout_seconds)
        for role in EVALUATOR_ROLES
    ]
    executor = StageExecutor(
        oracle,
        journal,
        architect_model=settings.architect_model,
        builder_model=settings.builder_model,
        timeouts=StageTimeouts(
            planning=settings.planning_timeout_seconds,
            build=settings.build_timeout_seconds,
            run=settings.run_timeout_seconds,
            deploy=settings.deploy_timeout_seconds,
        ),
        retry=RetryConfig(max_retries=settings.stage_retries, initial_delay=settings.retry_backoff_seconds),
    )
    return PipelineStateMachine(
        store=store,
        journal=journal,
        coordinator=DeliberationCoordinator(evaluators, store, journal, settings.min_quorum),
        history=HistoryProvider(store, settings.history_limit),
        executor=executor,
        critic=Reviewer(CRITIC, oracle, store, journal, settings.evaluator_model, settings.evaluation_timeout_seconds),
        brand_guardian=Reviewer(
            BRAND_GUARDIAN, oracle, store, journal, settings.evaluator_model, settings.evaluation_timeout_seconds
        ),
        max_plan_revisions=settings.max_plan_revisions,
        policy=PipelinePolicy(
            concern_weight=settings.concern_weight,
            fast_track_skips_critique=settings.fast_track_skips_critique,
            repo_base_path=settings.repo_base_path,
        ),
    )


def create_runner(settings: Settings, store: StoreProtocol, oracle: OracleProtocol) -> PipelineRunner:
    journal = BuildJournal(store)
    return PipelineRunner(create_state_machine(settings, store, oracle, journal), store, journal)
