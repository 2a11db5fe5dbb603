"""Subprocess oracle backed by a reasoning CLI.

Spawns ``<command> -p --output-format json --model <model>
[--allowedTools a,b,c]`` with the prompt on stdin and the context path as
working directory, then decodes the JSON envelope.

The CLI's own session marker is stripped from the child environment so a
nested invocation starts a fresh session.
"""

from __future__ import annotations

import asyncio
import json
import os
from typing import Any

from forge.core.exceptions import OracleNonZeroExit, OracleUnavailable
from forge.core.logging import get_logger
from forge.oracle.protocols import OracleOptions, OracleResult


logger = get_logger(__name__)

_NESTED_SESSION_ENV_VARS = ("CLAUDECODE",)
_STDERR_TAIL_CHARS = 2000


class CliOracle:
    """Oracle that shells out to a local reasoning CLI.

    Attributes:
        command: Executable name or path
        default_model: Model used when options do not name one
        default_timeout: Seconds before the child process is killed
    """

    def __init__(
        self,
        command: str = "claude",
        default_model: str | None = None,
        default_timeout: float = 300.0,
    ) -> None:
        self.command = command
        self.default_model = default_model
        self.default_timeout = default_timeout

    def build_args(self, options: OracleOptions) -> list[str]:
        """Build the CLI argument vector for one call."""
        args = [self.command, "-p", "--output-format", "json"]
        model = options.model or self.default_model
        if model:
            args += ["--model", model]
        if options.capabilities:
            args += ["--allowedTools", ",".join(options.capabilities)]
        return args

    @staticmethod
    def _child_env() -> dict[str, str]:
        env = dict(os.environ)
        for name in _NESTED_SESSION_ENV_VARS:
            env.pop(name, None)
        return env

    async def invoke(self, task: str, options: OracleOptions | None = None) -> OracleResult:
        """Run the CLI once and decode its output.

        Raises:
            OracleUnavailable: Spawn failure or timeout (the child is killed).
            asyncio.CancelledError: Re-raised after the child is killed.
            OracleNonZeroExit: The CLI exited with a non-zero code.
        """
        options = (options or OracleOptions()).resolve_context()
        timeout = options.timeout or self.default_timeout
        args = self.build_args(options)

        logger.debug("oracle_spawn", label=options.label, model=options.model, cwd=options.context_path)
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=options.context_path,
                env=self._child_env(),
            )
        except OSError as e:
            raise OracleUnavailable(
                f"Failed to start {self.command}: {e}",
                cause=e,
                agent_name=options.label,
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(input=task.encode("utf-8")),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise OracleUnavailable(
                f"{self.command} timed out after {timeout:.0f}s",
                cause=e,
                timed_out=True,
                agent_name=options.label,
            ) from e
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            logger.warning("oracle_cancelled", label=options.label, pid=proc.pid)
            raise

        out = stdout.decode("utf-8", errors="replace")
        err = stderr.decode("utf-8", errors="replace")

        if proc.returncode != 0:
            raise OracleNonZeroExit(
                f"{self.command} exited with code {proc.returncode}: {err[-_STDERR_TAIL_CHARS:].strip()}",
                exit_code=proc.returncode if proc.returncode is not None else -1,
                stderr=err,
                agent_name=options.label,
            )

        return self.decode_output(out, options.model or self.default_model or "")

    @staticmethod
    def decode_output(stdout: str, fallback_model: str) -> OracleResult:
        """Decode the JSON envelope, falling back to raw stdout.

        The envelope looks like ``{"result": "...", "is_error": false,
        "usage": {"input_tokens": n, "output_tokens": m}, "modelUsage":
        {"<model-id>": {...}}}``.
        """
        try:
            envelope: Any = json.loads(stdout)
        except json.JSONDecodeError:
            return OracleResult(text=stdout.strip(), model_id=fallback_model)

        if not isinstance(envelope, dict):
            return OracleResult(text=stdout.strip(), model_id=fallback_model)

        if envelope.get("is_error"):
            raise OracleNonZeroExit(
                f"Oracle reported an error: {str(envelope.get('result', ''))[:_STDERR_TAIL_CHARS]}",
                exit_code=1,
                stderr=str(envelope.get("result", "")),
            )

        usage = envelope.get("usage") or {}
        model_usage = envelope.get("modelUsage") or {}
        model_id = next(iter(model_usage), fallback_model) if isinstance(model_usage, dict) else fallback_model

        return OracleResult(
            text=str(envelope.get("result", "")),
            input_units=int(usage.get("input_tokens", 0) or 0),
            output_units=int(usage.get("output_tokens", 0) or 0),
            model_id=model_id,
            metadata={
                "duration_ms": envelope.get("duration_ms"),
                "cost_usd": envelope.get("total_cost_usd"),
                "session_id": envelope.get("session_id"),
            },
        )
