"""Unit tests for forge.deliberation.history."""

from unittest.mock import AsyncMock

import pytest

from forge.core.exceptions import StoreError
from forge.deliberation.history import HistoryProvider
from forge.models import BriefStatus, Decision, DecisionReport


class TestHistoryProvider:

    @pytest.mark.asyncio
    async def test_newest_first_excluding_current(self, store, make_brief) -> None:
        store.add_brief(make_brief(id="a", title="First", status=BriefStatus.DONE))
        store.add_brief(make_brief(id="b", title="Second", status=BriefStatus.INTAKE))
        store.add_brief(make_brief(id="c", title="Current"))
        await store.write_decision_report(
            DecisionReport(brief_id="b", decision=Decision.REJECTED, summary="no", weighted_score=-3.0)
        )

        history = await HistoryProvider(store, limit=10).load(exclude_brief_id="c")

        assert [entry.id for entry in history] == ["b", "a"]
        assert history[0].decision == "rejected"
        assert history[0].weighted_score == -3.0
        assert history[1].decision is None

    @pytest.mark.asyncio
    async def test_limit_is_applied(self, store, make_brief) -> None:
        for i in range(5):
            store.add_brief(make_brief(id=f"b{i}"))

        history = await HistoryProvider(store, limit=2).load()

        assert [entry.id for entry in history] == ["b4", "b3"]

    @pytest.mark.asyncio
    async def test_zero_limit_skips_store(self) -> None:
        store = AsyncMock()

        assert await HistoryProvider(store, limit=0).load() == []
        store.fetch_brief_history.assert_not_called()

    @pytest.mark.asyncio
    async def test_store_failure_returns_none(self) -> None:
        store = AsyncMock()
        store.fetch_brief_history.side_effect = StoreError("db down", operation="fetch_brief_history")

        assert await HistoryProvider(store, limit=5).load(exclude_brief_id="x") is None
