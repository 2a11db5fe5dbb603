"""Build journal: the per-brief audit trail.

Stage logic records checkpoints here instead of writing log rows inline.
Each entry is persisted through the store as a BuildLogEntry and mirrored
to structlog. A failed journal write is reported as a warning and never
interrupts the stage that produced it.
"""

from __future__ import annotations

from typing import Any

from forge.core.exceptions import StoreError
from forge.core.logging import get_logger
from forge.models import BuildLogEntry, LogLevel
from forge.store.protocols import StoreProtocol


logger = get_logger(__name__)


class BuildJournal:
    """Writer for BuildLogEntry rows.

    Example:
        ```python
        journal = BuildJournal(store)
        await journal.info(brief.id, "Architect", "Designing implementation plan...")
        await journal.error(brief.id, "Builder", "Build failed: timeout")
        ```
    """

    def __init__(self, store: StoreProtocol) -> None:
        self._store = store

    async def record(
        self,
        brief_id: str,
        agent: str,
        action: str,
        level: LogLevel = LogLevel.INFO,
        details: dict[str, Any] | None = None,
    ) -> None:
        entry = BuildLogEntry(brief_id=brief_id, agent=agent, action=action, level=level, details=details)

        match level:
            case LogLevel.ERROR:
                logger.error("build_log", brief_id=brief_id, agent=agent, action=action)
            case LogLevel.WARN:
                logger.warning("build_log", brief_id=brief_id, agent=agent, action=action)
            case _:
                logger.info("build_log", brief_id=brief_id, agent=agent, action=action)

        try:
            await self._store.append_log(entry)
        except StoreError as e:
            logger.warning(
                "build_log_write_failed",
                brief_id=brief_id,
                agent=agent,
                operation=e.operation,
                error=str(e),
            )

    async def info(self, brief_id: str, agent: str, action: str, details: dict[str, Any] | None = None) -> None:
        await self.record(brief_id, agent, action, LogLevel.INFO, details)

    async def warn(self, brief_id: str, agent: str, action: str, details: dict[str, Any] | None = None) -> None:
        await self.record(brief_id, agent, action, LogLevel.WARN, details)

    async def error(self, brief_id: str, agent: str, action: str, details: dict[str, Any] | None = None) -> None:
        await self.record(brief_id, agent, action, LogLevel.ERROR, details)
