"""Execution roles: planning, plan revision, build, run and deploy.

Each call goes through the oracle with a stage-specific model, timeout,
working directory and capability allow-list. Transport failures
(OracleUnavailable) may be retried with exponential backoff when the
stage's RetryConfig allows it. Signalled failures are never retried.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from forge.agents.prompts import (
    architect_prompt,
    architect_revision_prompt,
    builder_prompt,
    deployer_prompt,
    load_project_context,
    runner_prompt,
)
from forge.core.constants import Capabilities, Timeouts
from forge.core.exceptions import OracleUnavailable
from forge.core.logging import get_logger
from forge.models import Brief
from forge.oracle.protocols import OracleOptions, OracleProtocol, OracleResult

if TYPE_CHECKING:
    from forge.store.journal import BuildJournal


logger = get_logger(__name__)


class RetryConfig(BaseModel):
    """Configuration for stage retry behavior."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(
        default=0,
        ge=0,
        le=10,
        description="Maximum number of retry attempts",
    )
    backoff_factor: float = Field(
        default=2.0,
        ge=1.0,
        le=10.0,
        description="Exponential backoff multiplier",
    )
    initial_delay: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Initial delay in seconds before first retry",
    )


@dataclass(frozen=True, slots=True)
class StageTimeouts:
    """Per-stage oracle timeouts in seconds."""

    planning: float = Timeouts.ORACLE_DEFAULT
    build: float = Timeouts.ORACLE_DEFAULT
    run: float = Timeouts.ORACLE_DEFAULT
    deploy: float = Timeouts.ORACLE_DEFAULT


class StageExecutor:
    """Oracle calls for the plan/build/run/deploy roles."""

    def __init__(
        self,
        oracle: OracleProtocol,
        journal: BuildJournal,
        architect_model: str | None = None,
        builder_model: str | None = None,
        timeouts: StageTimeouts | None = None,
        retry: RetryConfig | None = None,
    ) -> None:
        self._oracle = oracle
        self._journal = journal
        self._architect_model = architect_model
        self._builder_model = builder_model
        self._timeouts = timeouts or StageTimeouts()
        self._retry = retry or RetryConfig()

    # -------------------------------------------------------------------------
    # Architect
    # -------------------------------------------------------------------------

    def _architect_options(self, brief: Brief, label: str) -> OracleOptions:
        local_path = brief.project.local_path if brief.project else None
        return OracleOptions(
            model=self._architect_model,
            context_path=local_path,
            capabilities=Capabilities.READ_ONLY if local_path else (),
            timeout=self._timeouts.planning,
            label=label,
        )

    async def plan(self, brief: Brief) -> str:
        """Produce an implementation plan for the brief."""
        context = load_project_context(brief.project.local_path if brief.project else None)
        result = await self._call(brief.id, architect_prompt(brief, context), self._architect_options(brief, "architect"))
        return result.text.strip()

    async def revise(
        self,
        brief: Brief,
        plan: str,
        feedback: str,
        feedback_title: str = "Critic feedback",
    ) -> str:
        """Revise ``plan`` to address ``feedback``."""
        context = load_project_context(brief.project.local_path if brief.project else None)
        prompt = architect_revision_prompt(brief, plan, feedback, feedback_title, context)
        result = await self._call(brief.id, prompt, self._architect_options(brief, "architect"))
        return result.text.strip()

    # -------------------------------------------------------------------------
    # Builder / Runner / Deployer
    # -------------------------------------------------------------------------

    async def build(self, brief: Brief, plan: str, workdir: str) -> OracleResult:
        options = OracleOptions(
            model=self._builder_model,
            context_path=workdir,
            capabilities=Capabilities.BUILD,
            timeout=self._timeouts.build,
            label="builder",
        )
        return await self._call(brief.id, builder_prompt(brief, plan, load_project_context(workdir)), options)

    async def run(self, brief: Brief, plan: str, workdir: str | None) -> OracleResult:
        options = OracleOptions(
            model=self._builder_model,
            context_path=workdir,
            capabilities=Capabilities.RUN if workdir else (),
            timeout=self._timeouts.run,
            label="runner",
        )
        return await self._call(brief.id, runner_prompt(brief, plan, load_project_context(workdir)), options)

    async def deploy(self, brief: Brief, workdir: str) -> OracleResult:
        options = OracleOptions(
            model=self._builder_model,
            context_path=workdir,
            capabilities=Capabilities.DEPLOY,
            timeout=self._timeouts.deploy,
            label="deployer",
        )
        return await self._call(brief.id, deployer_prompt(brief, load_project_context(workdir)), options)

    # -------------------------------------------------------------------------
    # Retry
    # -------------------------------------------------------------------------

    async def _call(self, brief_id: str, prompt: str, options: OracleOptions) -> OracleResult:
        """Invoke the oracle, retrying transport failures per RetryConfig."""
        attempt = 0
        while True:
            try:
                return await self._oracle.invoke(prompt, options)
            except OracleUnavailable as e:
                attempt += 1
                if attempt > self._retry.max_retries:
                    raise
                delay = self._retry.initial_delay * (self._retry.backoff_factor ** (attempt - 1))
                logger.warning("oracle_retry", brief_id=brief_id, label=options.label, attempt=attempt, delay=delay)
                await self._journal.warn(
                    brief_id,
                    options.label.capitalize(),
                    f"Call failed ({e}), retrying in {delay:.0f}s (attempt {attempt}/{self._retry.max_retries})",
                )
                await asyncio.sleep(delay)
