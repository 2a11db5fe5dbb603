"""Unit tests for forge.oracle.cli.

The subprocess layer is replaced with a scripted process object so no
real CLI is spawned.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from forge.core.exceptions import OracleNonZeroExit, OracleUnavailable
from forge.oracle.cli import CliOracle
from forge.oracle.protocols import OracleOptions


class FakeProcess:
    def __init__(self, stdout: str = "", stderr: str = "", returncode: int = 0, hang: bool = False) -> None:
        self._stdout = stdout.encode()
        self._stderr = stderr.encode()
        self._hang = hang
        self.returncode: int | None = None if hang else returncode
        self.stdin_data: bytes | None = None
        self.killed = False
        self.pid = 4242

    async def communicate(self, input: bytes | None = None) -> tuple[bytes, bytes]:
        self.stdin_data = input
        if self._hang:
            await asyncio.sleep(60)
        return self._stdout, self._stderr

    def kill(self) -> None:
        self.killed = True
        self.returncode = -9

    async def wait(self) -> int:
        return self.returncode


@pytest.fixture
def spawn(monkeypatch):
    """Patch subprocess creation; returns a recorder with the spawned process."""

    class Recorder:
        process = FakeProcess()
        args: tuple[str, ...] = ()
        kwargs: dict[str, Any] = {}
        error: Exception | None = None

    async def fake_exec(*args: str, **kwargs: Any) -> FakeProcess:
        if Recorder.error is not None:
            raise Recorder.error
        Recorder.args = args
        Recorder.kwargs = kwargs
        return Recorder.process

    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)
    return Recorder


def _envelope(**overrides: Any) -> str:
    data = {
        "type": "result",
        "result": "## Files\n- a.html",
        "is_error": False,
        "duration_ms": 1200,
        "total_cost_usd": 0.02,
        "session_id": "s-1",
        "usage": {"input_tokens": 321, "output_tokens": 54},
        "modelUsage": {"claude-sonnet-4-5": {"inputTokens": 321}},
    }
    data.update(overrides)
    return json.dumps(data)


class TestBuildArgs:

    def test_minimal(self) -> None:
        assert CliOracle("claude").build_args(OracleOptions()) == ["claude", "-p", "--output-format", "json"]

    def test_model_and_capabilities(self) -> None:
        args = CliOracle("claude", default_model="fallback").build_args(
            OracleOptions(model="opus", capabilities=("Read", "Bash"))
        )

        assert args[-4:] == ["--model", "opus", "--allowedTools", "Read,Bash"]

    def test_default_model_used(self) -> None:
        args = CliOracle("claude", default_model="fallback").build_args(OracleOptions())

        assert args[-2:] == ["--model", "fallback"]


class TestInvoke:

    @pytest.mark.asyncio
    async def test_decodes_envelope(self, spawn, tmp_path) -> None:
        spawn.process = FakeProcess(stdout=_envelope())

        result = await CliOracle().invoke(
            "Plan this.",
            OracleOptions(context_path=str(tmp_path), capabilities=("Read",), label="architect"),
        )

        assert result.text == "## Files\n- a.html"
        assert (result.input_units, result.output_units) == (321, 54)
        assert result.model_id == "claude-sonnet-4-5"
        assert result.metadata["session_id"] == "s-1"
        assert spawn.process.stdin_data == b"Plan this."
        assert spawn.kwargs["cwd"] == str(tmp_path)
        assert "--allowedTools" in spawn.args

    @pytest.mark.asyncio
    async def test_missing_context_path_degrades(self, spawn) -> None:
        spawn.process = FakeProcess(stdout=_envelope())

        await CliOracle().invoke("x", OracleOptions(context_path="/does/not/exist", capabilities=("Bash",)))

        assert spawn.kwargs["cwd"] is None
        assert "--allowedTools" not in spawn.args

    @pytest.mark.asyncio
    async def test_strips_nested_session_marker(self, spawn, monkeypatch) -> None:
        monkeypatch.setenv("CLAUDECODE", "1")
        monkeypatch.setenv("FORGE_MARKER", "kept")
        spawn.process = FakeProcess(stdout=_envelope())

        await CliOracle().invoke("x")

        assert "CLAUDECODE" not in spawn.kwargs["env"]
        assert spawn.kwargs["env"]["FORGE_MARKER"] == "kept"

    @pytest.mark.asyncio
    async def test_plain_text_output(self, spawn) -> None:
        spawn.process = FakeProcess(stdout="  just text\n")

        result = await CliOracle(default_model="m").invoke("x")

        assert result.text == "just text"
        assert result.model_id == "m"
        assert result.input_units == 0

    @pytest.mark.asyncio
    async def test_envelope_error_flag(self, spawn) -> None:
        spawn.process = FakeProcess(stdout=_envelope(is_error=True, result="rate limited"))

        with pytest.raises(OracleNonZeroExit) as exc_info:
            await CliOracle().invoke("x")

        assert "rate limited" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, spawn) -> None:
        spawn.process = FakeProcess(stderr="auth required\n", returncode=2)

        with pytest.raises(OracleNonZeroExit) as exc_info:
            await CliOracle().invoke("x", OracleOptions(label="builder"))

        error = exc_info.value
        assert error.exit_code == 2
        assert error.stderr == "auth required\n"
        assert error.agent_name == "builder"
        assert str(error) == "claude exited with code 2: auth required"

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, spawn) -> None:
        spawn.process = FakeProcess(hang=True)

        with pytest.raises(OracleUnavailable) as exc_info:
            await CliOracle().invoke("x", OracleOptions(timeout=0.01))

        assert exc_info.value.timed_out
        assert spawn.process.killed

    @pytest.mark.asyncio
    async def test_cancellation_kills_process(self, spawn) -> None:
        spawn.process = FakeProcess(hang=True)
        call = asyncio.create_task(CliOracle().invoke("x", OracleOptions(timeout=60, label="builder")))
        while spawn.process.stdin_data is None:
            await asyncio.sleep(0)

        call.cancel()

        with pytest.raises(asyncio.CancelledError):
            await call
        assert spawn.process.killed
        assert spawn.process.returncode == -9

    @pytest.mark.asyncio
    async def test_spawn_failure(self, spawn) -> None:
        spawn.error = FileNotFoundError("claude")

        with pytest.raises(OracleUnavailable) as exc_info:
            await CliOracle().invoke("x")

        assert not exc_info.value.timed_out
        assert isinstance(exc_info.value.cause, FileNotFoundError)


class TestDecodeOutput:

    def test_non_object_json_is_text(self) -> None:
        result = CliOracle.decode_output("[1, 2]", "m")

        assert result.text == "[1, 2]"

    def test_missing_usage(self) -> None:
        result = CliOracle.decode_output(json.dumps({"result": "ok"}), "m")

        assert result.text == "ok"
        assert result.model_id == "m"
        assert (result.input_units, result.output_units) == (0, 0)
