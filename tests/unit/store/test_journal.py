"""Unit tests for forge.store.journal."""

from unittest.mock import AsyncMock

import pytest

from forge.core.exceptions import StoreError
from forge.models import LogLevel
from forge.store.journal import BuildJournal


class TestBuildJournal:

    @pytest.mark.asyncio
    async def test_levels(self, store, journal) -> None:
        await journal.info("b-1", "Architect", "Designing implementation plan...")
        await journal.warn("b-1", "Critic", "No architect plan found, skipping review")
        await journal.error("b-1", "Builder", "Build failed: timeout", {"exit_code": 1})

        assert [(e.agent, e.level) for e in store.logs] == [
            ("Architect", LogLevel.INFO),
            ("Critic", LogLevel.WARN),
            ("Builder", LogLevel.ERROR),
        ]
        assert store.logs[2].details == {"exit_code": 1}
        assert store.logs[0].details is None

    @pytest.mark.asyncio
    async def test_store_failure_does_not_propagate(self) -> None:
        store = AsyncMock()
        store.append_log.side_effect = StoreError("db down", operation="append_log")

        await BuildJournal(store).info("b-1", "Pipeline", "Round 1: 4 agents evaluating independently...")

        store.append_log.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self) -> None:
        store = AsyncMock()
        store.append_log.side_effect = RuntimeError("bug")

        with pytest.raises(RuntimeError):
            await BuildJournal(store).warn("b-1", "Pipeline", "x")
