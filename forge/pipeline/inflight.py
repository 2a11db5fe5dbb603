"""In-flight registry.

At most one pipeline execution per brief id at a time; many different
briefs may run concurrently. A claim is released on every exit path,
including errors and cancellation.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from forge.core.exceptions import BriefInFlightError


class InFlightRegistry:
    """Lock-guarded set of brief ids with an active execution.

    Example:
        ```python
        registry = InFlightRegistry()
        async with registry.claim(brief_id):
            await state_machine.advance(brief_id)
        ```
    """

    def __init__(self) -> None:
        self._active: set[str] = set()
        self._lock = asyncio.Lock()

    async def try_acquire(self, brief_id: str) -> bool:
        async with self._lock:
            if brief_id in self._active:
                return False
            self._active.add(brief_id)
            return True

    async def release(self, brief_id: str) -> None:
        async with self._lock:
            self._active.discard(brief_id)

    @asynccontextmanager
    async def claim(self, brief_id: str) -> AsyncIterator[None]:
        """Hold the brief for the duration of the block.

        Raises:
            BriefInFlightError: The brief is already claimed.
        """
        if not await self.try_acquire(brief_id):
            raise BriefInFlightError(brief_id)
        try:
            yield
        finally:
            await self.release(brief_id)

    def is_active(self, brief_id: str) -> bool:
        return brief_id in self._active

    @property
    def active(self) -> frozenset[str]:
        return frozenset(self._active)

    def __len__(self) -> int:
        return len(self._active)
