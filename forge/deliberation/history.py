"""Brief history provider.

Supplies summaries of recent briefs so evaluators can spot patterns
(repeated asks, tier inflation, abandoned themes). A read failure never
blocks evaluation; it simply proceeds without history.
"""

from __future__ import annotations

from forge.core.exceptions import StoreError
from forge.core.logging import get_logger
from forge.models import BriefHistoryEntry
from forge.store.protocols import StoreProtocol


logger = get_logger(__name__)


class HistoryProvider:
    """Read-only view of recent briefs and their latest decisions."""

    def __init__(self, store: StoreProtocol, limit: int = 10) -> None:
        self._store = store
        self.limit = limit

    async def load(self, exclude_brief_id: str | None = None) -> list[BriefHistoryEntry] | None:
        """Most recent briefs, or None when history could not be read."""
        if self.limit <= 0:
            return []
        try:
            history = await self._store.fetch_brief_history(self.limit, exclude_id=exclude_brief_id)
        except StoreError as e:
            logger.warning("history_unavailable", brief_id=exclude_brief_id, error=str(e))
            return None
        logger.debug("history_loaded", brief_id=exclude_brief_id, count=len(history))
        return history
