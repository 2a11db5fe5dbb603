"""Fake oracle for unit testing.

Scripted in-memory implementation of OracleProtocol. Replies are queued per
call label (the role slug or stage name carried in OracleOptions.label);
the last reply for a label repeats once its queue is down to one entry.

Pattern: FakeClient for testing
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from forge.oracle.protocols import OracleOptions, OracleResult


Reply = str | OracleResult | Exception


def verdict_json(
    verdict: str,
    confidence: Any = 7,
    reasoning: str = "Looks reasonable.",
    **extra: Any,
) -> str:
    """Evaluator answer with a little prose around the JSON object."""
    payload = {"verdict": verdict, "reasoning": reasoning, "confidence": confidence, **extra}
    return f"Here is my assessment:\n{json.dumps(payload)}\nThanks."


@dataclass
class OracleCall:
    task: str
    options: OracleOptions


class FakeOracle:
    """Fake oracle returning scripted replies.

    Attributes:
        calls: Every invocation in call order

    Example:
        >>> oracle = FakeOracle({"gatekeeper": [verdict_json("approve"), verdict_json("concern")]})
        >>> result = await oracle.invoke("...", OracleOptions(label="gatekeeper"))
    """

    def __init__(
        self,
        replies: dict[str, Reply | list[Reply]] | None = None,
        default: Reply = "",
    ) -> None:
        self._replies: dict[str, list[Reply]] = {
            label: list(reply) if isinstance(reply, list) else [reply]
            for label, reply in (replies or {}).items()
        }
        self._default = default
        self.calls: list[OracleCall] = []

    def script(self, label: str, *replies: Reply) -> None:
        """Replace the queued replies for ``label``."""
        self._replies[label] = list(replies)

    def _next(self, label: str) -> Reply:
        queue = self._replies.get(label)
        if not queue:
            return self._default
        if len(queue) == 1:
            return queue[0]
        return queue.pop(0)

    async def invoke(self, task: str, options: OracleOptions | None = None) -> OracleResult:
        options = options or OracleOptions()
        self.calls.append(OracleCall(task, options))
        reply = self._next(options.label)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, OracleResult):
            return reply
        return OracleResult(text=reply, input_units=100, output_units=50, model_id=options.model or "fake-model")

    def calls_for(self, label: str) -> list[OracleCall]:
        return [call for call in self.calls if call.options.label == label]

    def count(self, label: str) -> int:
        return len(self.calls_for(label))
