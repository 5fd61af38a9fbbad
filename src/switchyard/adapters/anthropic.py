"""Anthropic Messages API adapter (text only)."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from switchyard.adapters._errors import wrap_provider_error
from switchyard.adapters.base import AdapterCapabilities
from switchyard.adapters.models import SessionStore
from switchyard.catalog import ContentType
from switchyard.errors import APIError
from switchyard.result import GenerateResult, StreamResult

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from switchyard.request import GenerateRequest

_ANTHROPIC_MAX_TOKENS = 8192


class AnthropicAdapter:
    """Anthropic Messages API adapter."""

    def __init__(self, api_key: str, *, name: str = "anthropic") -> None:
        """Initialize with an API key."""
        self.api_key = api_key
        self.name = name
        self._client: Any = None
        self._sessions = SessionStore()

    def _get_client(self) -> Any:
        """Lazily initialize and return the async Anthropic client."""
        if self._client is None:
            try:
                from anthropic import AsyncAnthropic
            except ImportError as e:
                raise APIError(
                    "anthropic package not installed",
                    hint="pip install anthropic",
                ) from e
            self._client = AsyncAnthropic(api_key=self.api_key)
        return self._client

    @property
    def capabilities(self) -> AdapterCapabilities:
        """Return supported feature flags."""
        return AdapterCapabilities(
            job_status=False,
            streaming=True,
            embeddings=False,
            token_counting=True,
            sessions=True,
        )

    def _build_messages(self, request: GenerateRequest) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        for turn in self._sessions.history(request.session_id):
            _append_message(messages, {"role": turn.role, "content": turn.content})
        _append_message(messages, {"role": "user", "content": request.prompt})
        return messages

    def _create_kwargs(self, request: GenerateRequest, model_id: str) -> dict[str, Any]:
        create_kwargs: dict[str, Any] = {
            "model": model_id,
            "messages": self._build_messages(request),
            "max_tokens": request.max_tokens or _ANTHROPIC_MAX_TOKENS,
        }
        if request.system_instruction:
            create_kwargs["system"] = request.system_instruction
        if request.temperature is not None:
            create_kwargs["temperature"] = request.temperature
        if request.top_p is not None:
            create_kwargs["top_p"] = request.top_p
        return create_kwargs

    async def generate(self, request: GenerateRequest, model_id: str) -> GenerateResult:
        """Generate a text response using the Messages API."""
        if request.content_type is not ContentType.TEXT:
            return GenerateResult.failed(
                f"Unsupported content type '{request.content_type.value}' for Anthropic.",
                provider=self.name,
                model=model_id,
            )

        try:
            client = self._get_client()
            response = await client.messages.create(
                **self._create_kwargs(request, model_id)
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            err = wrap_provider_error(
                e,
                provider=self.name,
                phase="generate",
                message="Anthropic generate failed",
            )
            return GenerateResult.failed(str(err), provider=self.name, model=model_id)

        text, usage = _parse_response(response)
        if not text:
            return GenerateResult.failed(
                "No text returned from Anthropic generation.",
                provider=self.name,
                model=model_id,
            )
        self._sessions.record(request.session_id, request.prompt, text)
        return GenerateResult.completed(
            text, provider=self.name, model=model_id, usage=usage
        )

    async def generate_stream(
        self, request: GenerateRequest, model_id: str
    ) -> AsyncIterator[StreamResult]:
        """Stream text deltas, ending with the full text."""
        if request.content_type is not ContentType.TEXT:
            yield StreamResult(
                status="error",
                error=f"Streaming is only supported for text, not '{request.content_type.value}'.",
                provider=self.name,
                model=model_id,
            )
            return

        chunks: list[str] = []
        try:
            client = self._get_client()
            async with client.messages.stream(
                **self._create_kwargs(request, model_id)
            ) as stream:
                async for delta in stream.text_stream:
                    if delta:
                        chunks.append(delta)
                        yield StreamResult(
                            status="partial",
                            data=delta,
                            provider=self.name,
                            model=model_id,
                        )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            err = wrap_provider_error(
                e, provider=self.name, phase="stream", message="Anthropic stream failed"
            )
            yield StreamResult(
                status="error", error=str(err), provider=self.name, model=model_id
            )
            return

        text = "".join(chunks)
        self._sessions.record(request.session_id, request.prompt, text)
        yield StreamResult(
            status="completed", data=text, provider=self.name, model=model_id
        )

    async def count_tokens(self, request: GenerateRequest, model_id: str) -> int:
        """Count input tokens for the request, including session history."""
        count_kwargs: dict[str, Any] = {
            "model": model_id,
            "messages": self._build_messages(request),
        }
        if request.system_instruction:
            count_kwargs["system"] = request.system_instruction
        try:
            client = self._get_client()
            response = await client.messages.count_tokens(**count_kwargs)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise wrap_provider_error(
                e,
                provider=self.name,
                phase="count_tokens",
                message="Anthropic token count failed",
            ) from e
        return int(getattr(response, "input_tokens", 0))

    async def end_chat_session(self, session_id: str) -> None:
        """Forget the conversation kept for *session_id*."""
        self._sessions.end(session_id)

    async def aclose(self) -> None:
        """Close underlying async client resources."""
        client = self._client
        if client is None:
            return
        self._client = None
        await client.close()


def _parse_response(response: Any) -> tuple[str, dict[str, int]]:
    """Return the joined text blocks and normalized token usage."""
    text_parts = [
        getattr(block, "text", "")
        for block in getattr(response, "content", None) or []
        if getattr(block, "type", None) == "text"
    ]
    text = "\n\n".join(text_parts)

    usage: dict[str, int] = {}
    usage_raw = getattr(response, "usage", None)
    if usage_raw is not None:
        input_tokens = int(getattr(usage_raw, "input_tokens", 0))
        output_tokens = int(getattr(usage_raw, "output_tokens", 0))
        usage = {
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "total_tokens": input_tokens + output_tokens,
        }
    return text, usage


def _append_message(messages: list[dict[str, Any]], msg: dict[str, Any]) -> None:
    """Append *msg*, merging into the previous message when roles match.

    Anthropic requires strict user/assistant alternation.
    """
    if messages and messages[-1]["role"] == msg["role"]:
        messages[-1]["content"] = f"{messages[-1]['content']}\n\n{msg['content']}"
    else:
        messages.append(msg)
