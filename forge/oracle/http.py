"""HTTP oracle for OpenAI-compatible chat completions endpoints.

Used where reasoning runs as a service rather than a local CLI. The
context path and capabilities cannot be honoured over HTTP, so the
context path is only used to look up project instruction text by the
prompt layer; tools are never granted.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import BaseModel, Field, ValidationError

from forge.core.exceptions import OracleNonZeroExit, OracleUnavailable
from forge.oracle.protocols import OracleOptions, OracleResult


logger = logging.getLogger(__name__)


# =============================================================================
# Request/Response Models
# =============================================================================

class ChatMessage(BaseModel):
    """Chat message."""

    role: str = Field(..., description="Message role: user, system, assistant")
    content: str = Field(..., description="Message content")


class ChatCompletionRequest(BaseModel):
    """OpenAI-compatible chat completion request."""

    model: str = Field(..., description="Model ID")
    messages: list[ChatMessage] = Field(..., description="Conversation messages")
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    max_tokens: int = Field(default=8192, gt=0)
    stream: bool = Field(default=False)


class ChatCompletionChoice(BaseModel):
    """Choice in chat completion response."""

    index: int
    message: ChatMessage
    finish_reason: str | None = None


class Usage(BaseModel):
    """Token usage statistics."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletionResponse(BaseModel):
    """OpenAI-compatible chat completion response."""

    id: str = ""
    model: str
    choices: list[ChatCompletionChoice]
    usage: Usage | None = None


# =============================================================================
# HTTP Oracle
# =============================================================================

class HttpOracle:
    """Oracle that posts to ``/v1/chat/completions``.

    Usage:
        oracle = HttpOracle("http://localhost:8085", default_model="qwen2.5-7b")
        result = await oracle.invoke("Evaluate this brief ...")
        await oracle.close()
    """

    def __init__(
        self,
        base_url: str,
        default_model: str,
        api_key: str | None = None,
        default_timeout: float = 300.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.default_model = default_model
        self.default_timeout = default_timeout
        self._api_key = api_key
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client (lazy initialization)."""
        if self._client is None:
            headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else None
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.default_timeout,
                headers=headers,
            )
        return self._client

    async def close(self) -> None:
        """Release HTTP client resources."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def invoke(self, task: str, options: OracleOptions | None = None) -> OracleResult:
        """Send one chat completion.

        Raises:
            OracleUnavailable: Connection failure or timeout.
            OracleNonZeroExit: Non-2xx response or undecodable body.
        """
        options = (options or OracleOptions()).resolve_context()
        if options.capabilities:
            logger.debug("HTTP oracle ignores capabilities for %s", options.label)

        request = ChatCompletionRequest(
            model=options.model or self.default_model,
            messages=[ChatMessage(role="user", content=task)],
        )
        client = self._get_client()

        try:
            response = await client.post(
                "/v1/chat/completions",
                json=request.model_dump(),
                timeout=options.timeout or self.default_timeout,
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise OracleUnavailable(
                f"Chat completion timed out for {options.label}",
                cause=e,
                timed_out=True,
                agent_name=options.label,
            ) from e
        except httpx.HTTPStatusError as e:
            raise OracleNonZeroExit(
                f"Chat completion failed with HTTP {e.response.status_code}",
                exit_code=e.response.status_code,
                stderr=e.response.text,
                agent_name=options.label,
            ) from e
        except httpx.HTTPError as e:
            raise OracleUnavailable(
                f"Chat completion request failed: {e}",
                cause=e,
                agent_name=options.label,
            ) from e

        try:
            parsed = ChatCompletionResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise OracleNonZeroExit(
                f"Undecodable chat completion body: {e}",
                exit_code=response.status_code,
                stderr=response.text,
                agent_name=options.label,
            ) from e

        if not parsed.choices:
            raise OracleNonZeroExit(
                "Chat completion returned no choices",
                exit_code=response.status_code,
                agent_name=options.label,
            )

        usage = parsed.usage or Usage()
        return OracleResult(
            text=parsed.choices[0].message.content,
            input_units=usage.prompt_tokens,
            output_units=usage.completion_tokens,
            model_id=parsed.model,
            metadata={"finish_reason": parsed.choices[0].finish_reason},
        )
