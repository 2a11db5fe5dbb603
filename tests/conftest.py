"""Test configuration and shared fixtures.

Pattern: Pytest fixtures, conftest.py
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from forge.core.config import Settings
from forge.models import Brief, BriefStatus, Project
from forge.pipeline.runner import PipelineRunner, create_state_machine
from forge.pipeline.state_machine import PipelineStateMachine
from forge.store.journal import BuildJournal
from forge.store.memory import InMemoryStore
from tests.fakes.fake_oracle import FakeOracle, verdict_json


PLAN = """## Files
- src/pages/pricing.tsx

## Approach
Add a static pricing page linked from the nav.
"""

BUILD_OUTPUT = """Implemented the pricing page and opened a pull request.
https://github.com/acme/site/pull/42
"""


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Create test settings with safe defaults."""
    return Settings(
        _env_file=None,
        repo_base_path=str(tmp_path),
        retry_backoff_seconds=0.0,
        history_limit=5,
        log_level="DEBUG",
    )


# ============================================================================
# Store Fixtures
# ============================================================================

@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def journal(store: InMemoryStore) -> BuildJournal:
    return BuildJournal(store)


@pytest.fixture
def make_brief() -> Callable[..., Brief]:
    """Factory for briefs ready to enter the pipeline."""

    def _make(**overrides: Any) -> Brief:
        data: dict[str, Any] = {
            "id": "brief-1",
            "title": "Add pricing page",
            "description": "Publish our three plans with a comparison table.",
            "status": BriefStatus.EVALUATING,
            "repo_url": "https://github.com/acme/site",
            "outcome_tier": 2,
            "impact_score": 6,
        }
        data.update(overrides)
        return Brief(**data)

    return _make


@pytest.fixture
def project() -> Project:
    return Project(
        id="proj-1",
        name="Acme Site",
        repo_url="https://github.com/acme/site.git",
        deploy_notes="Run make deploy",
    )


# ============================================================================
# Oracle Fixtures
# ============================================================================

@pytest.fixture
def oracle() -> FakeOracle:
    """Oracle scripted for a brief that is approved and builds cleanly."""
    return FakeOracle({
        "gatekeeper": verdict_json("approve", 8, "Foundation work, tier claim is honest.", suggested_tier=2),
        "skeptic": [
            verdict_json("concern", 5, "Scope could creep into billing."),
            verdict_json("approve", 6, "Scope is contained to one page."),
        ],
        "cynic": verdict_json("approve", 7, "Low maintenance burden."),
        "accountant": verdict_json("reject", 3, "Marginal payback."),
        "critic": verdict_json("approve", 8, "Plan is executable."),
        "brand_guardian": verdict_json("approve", 7, "On brand."),
        "architect": PLAN,
        "builder": BUILD_OUTPUT,
        "runner": "Report written.\nOUTPUT: /tmp/report.md\n",
        "deployer": "Deployed to production.",
    })


# ============================================================================
# Pipeline Fixtures
# ============================================================================

@pytest.fixture
def state_machine(
    test_settings: Settings,
    store: InMemoryStore,
    oracle: FakeOracle,
    journal: BuildJournal,
) -> PipelineStateMachine:
    return create_state_machine(test_settings, store, oracle, journal)


@pytest.fixture
def runner(
    state_machine: PipelineStateMachine,
    store: InMemoryStore,
    journal: BuildJournal,
) -> PipelineRunner:
    return PipelineRunner(state_machine, store, journal)
