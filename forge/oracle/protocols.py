"""Oracle protocol and call options.

An oracle accepts a task description and returns unstructured text plus
usage metadata, or fails with OracleUnavailable / OracleNonZeroExit.
No retries happen behind this interface; retry policy belongs to the
stage that makes the call.

Pattern: Protocol duck typing with @runtime_checkable
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Protocol, runtime_checkable


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OracleOptions:
    """Per-call options.

    Attributes:
        model: Model identifier, or None for the backend default
        context_path: Working directory the call may read from
        capabilities: Side-effecting tools granted to the call
        timeout: Seconds before the call is abandoned
        label: Role slug used in log output
    """

    model: str | None = None
    context_path: str | None = None
    capabilities: tuple[str, ...] = ()
    timeout: float | None = None
    label: str = "oracle"

    def resolve_context(self) -> OracleOptions:
        """Drop the context path and capabilities if the path does not exist.

        A missing directory degrades the call to a context-free invocation
        instead of failing it.
        """
        if self.context_path is None or os.path.isdir(self.context_path):
            return self
        logger.warning(
            "Context path %s does not exist for %s, invoking without context",
            self.context_path,
            self.label,
        )
        return replace(self, context_path=None, capabilities=())


@dataclass(frozen=True, slots=True)
class OracleResult:
    """Decoded oracle response."""

    text: str
    input_units: int = 0
    output_units: int = 0
    model_id: str = ""
    metadata: dict[str, object] = field(default_factory=dict)


@runtime_checkable
class OracleProtocol(Protocol):
    """Protocol for reasoning backends.

    Example:
        >>> class EchoOracle:
        ...     async def invoke(self, task, options=None) -> OracleResult:
        ...         return OracleResult(text=task)
        >>>
        >>> isinstance(EchoOracle(), OracleProtocol)
        True
    """

    async def invoke(self, task: str, options: OracleOptions | None = None) -> OracleResult:
        """Run one reasoning call.

        Args:
            task: Full prompt text.
            options: Model, context, capability and timeout options.

        Returns:
            OracleResult with the response text and usage.

        Raises:
            OracleUnavailable: On transport/process failure or timeout.
            OracleNonZeroExit: When the backend signalled failure.
        """
        ...
