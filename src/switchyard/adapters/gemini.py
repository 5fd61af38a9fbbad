"""Google Gemini adapter: text, Veo video jobs, embeddings, token counting."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from switchyard.adapters._errors import wrap_provider_error
from switchyard.adapters.base import AdapterCapabilities
from switchyard.adapters.models import SessionStore
from switchyard.catalog import ContentType
from switchyard.errors import APIError
from switchyard.result import GenerateResult, JobStatusResult, StreamResult

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from switchyard.request import GenerateRequest

logger = logging.getLogger(__name__)


class GeminiAdapter:
    """Google Gemini API adapter built on ``google-genai``."""

    def __init__(self, api_key: str, *, name: str = "gemini") -> None:
        """Create adapter with an API key."""
        self.api_key = api_key
        self.name = name
        self._client: Any = None
        self._sessions = SessionStore()

    def _get_client(self) -> Any:
        """Lazy-initialize the Gemini client."""
        if self._client is None:
            try:
                from google import genai
            except ImportError as e:
                raise APIError(
                    "google-genai package not installed",
                    hint="pip install google-genai",
                ) from e
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    @property
    def capabilities(self) -> AdapterCapabilities:
        """Return supported feature flags."""
        return AdapterCapabilities(
            job_status=True,
            streaming=True,
            embeddings=True,
            token_counting=True,
            sessions=True,
        )

    def _contents(self, request: GenerateRequest) -> list[Any]:
        """Build the turn list: session history, then the new prompt."""
        from google.genai import types

        contents: list[Any] = []
        for turn in self._sessions.history(request.session_id):
            role = "model" if turn.role == "assistant" else "user"
            contents.append(
                types.Content(role=role, parts=[types.Part.from_text(text=turn.content)])
            )
        contents.append(
            types.Content(role="user", parts=[types.Part.from_text(text=request.prompt)])
        )
        return contents

    def _config(self, request: GenerateRequest) -> Any:
        from google.genai import types

        config_kwargs: dict[str, Any] = {}
        if request.system_instruction is not None:
            config_kwargs["system_instruction"] = request.system_instruction
        if request.temperature is not None:
            config_kwargs["temperature"] = request.temperature
        if request.top_p is not None:
            config_kwargs["top_p"] = request.top_p
        if request.max_tokens is not None:
            config_kwargs["max_output_tokens"] = request.max_tokens
        return types.GenerateContentConfig(**config_kwargs)

    async def generate(self, request: GenerateRequest, model_id: str) -> GenerateResult:
        """Generate text or start a video job."""
        try:
            if request.content_type is ContentType.TEXT:
                return await self._generate_text(request, model_id)
            if request.content_type is ContentType.VIDEO:
                return await self._start_video(request, model_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            err = wrap_provider_error(
                e, provider=self.name, phase="generate", message="Gemini generate failed"
            )
            return GenerateResult.failed(str(err), provider=self.name, model=model_id)
        return GenerateResult.failed(
            f"Unsupported type '{request.content_type.value}' for the Gemini adapter.",
            provider=self.name,
            model=model_id,
        )

    async def _generate_text(
        self, request: GenerateRequest, model_id: str
    ) -> GenerateResult:
        client = self._get_client()
        response = await client.aio.models.generate_content(
            model=model_id,
            contents=self._contents(request),
            config=self._config(request),
        )
        if not response:
            raise APIError("Gemini returned an empty response.")
        text = getattr(response, "text", None)
        if not text:
            raise APIError("No text returned from Gemini generation.")

        self._sessions.record(request.session_id, request.prompt, text)
        return GenerateResult.completed(
            text,
            provider=self.name,
            model=model_id,
            usage=_parse_usage(getattr(response, "usage_metadata", None)),
        )

    async def _start_video(
        self, request: GenerateRequest, model_id: str
    ) -> GenerateResult:
        client = self._get_client()
        operation = await client.aio.models.generate_videos(
            model=model_id, prompt=request.prompt
        )
        operation_name = getattr(operation, "name", None)
        if not isinstance(operation_name, str):
            raise APIError("Gemini video generation did not return an operation name")
        logger.debug("Gemini video operation %s started", operation_name)
        return GenerateResult.pending(operation_name, provider=self.name, model=model_id)

    async def check_job_status(self, provider_job_id: str) -> JobStatusResult:
        """Poll a long-running video operation."""
        from google.genai import types

        client = self._get_client()
        try:
            operation = await client.aio.operations.get(
                types.GenerateVideosOperation(name=provider_job_id)
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            err = wrap_provider_error(
                e, provider=self.name, phase="job_status", message="Gemini job poll failed"
            )
            return JobStatusResult(status="failed", error=str(err))

        if not getattr(operation, "done", False):
            return JobStatusResult(status="pending")

        error = getattr(operation, "error", None)
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            return JobStatusResult(status="failed", error=message or "Video job failed")

        videos = getattr(getattr(operation, "response", None), "generated_videos", None)
        uri = getattr(getattr(videos[0], "video", None), "uri", None) if videos else None
        if not uri:
            return JobStatusResult(
                status="failed", error="Video job finished without a video."
            )
        return JobStatusResult(status="completed", data=uri)

    async def generate_stream(
        self, request: GenerateRequest, model_id: str
    ) -> AsyncIterator[StreamResult]:
        """Stream text chunks, ending with the full text."""
        if request.content_type is not ContentType.TEXT:
            yield StreamResult(
                status="error",
                error=f"Streaming is only supported for text, not '{request.content_type.value}'.",
                provider=self.name,
                model=model_id,
            )
            return

        client = self._get_client()
        chunks: list[str] = []
        try:
            stream = await client.aio.models.generate_content_stream(
                model=model_id,
                contents=self._contents(request),
                config=self._config(request),
            )
            async for chunk in stream:
                text = getattr(chunk, "text", None)
                if text:
                    chunks.append(text)
                    yield StreamResult(
                        status="partial", data=text, provider=self.name, model=model_id
                    )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            err = wrap_provider_error(
                e, provider=self.name, phase="stream", message="Gemini stream failed"
            )
            yield StreamResult(
                status="error", error=str(err), provider=self.name, model=model_id
            )
            return

        full = "".join(chunks)
        self._sessions.record(request.session_id, request.prompt, full)
        yield StreamResult(
            status="completed", data=full, provider=self.name, model=model_id
        )

    async def embed_content(
        self, texts: Sequence[str], model_id: str
    ) -> list[list[float]]:
        """Embed *texts* with ``embed_content``."""
        client = self._get_client()
        try:
            response = await client.aio.models.embed_content(
                model=model_id, contents=list(texts)
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise wrap_provider_error(
                e, provider=self.name, phase="embed", message="Gemini embedding failed"
            ) from e
        return [list(e.values) for e in response.embeddings or []]

    async def count_tokens(self, request: GenerateRequest, model_id: str) -> int:
        """Count prompt tokens, including session history."""
        client = self._get_client()
        try:
            response = await client.aio.models.count_tokens(
                model=model_id, contents=self._contents(request)
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise wrap_provider_error(
                e, provider=self.name, phase="count_tokens", message="Gemini token count failed"
            ) from e
        return int(response.total_tokens or 0)

    async def end_chat_session(self, session_id: str) -> None:
        """Forget the conversation kept for *session_id*."""
        self._sessions.end(session_id)


def _parse_usage(um: Any) -> dict[str, int]:
    # Gemini SDK attrs → adapter-agnostic keys
    if um is None:
        return {}
    return {
        "input_tokens": int(getattr(um, "prompt_token_count", 0) or 0),
        "output_tokens": int(getattr(um, "candidates_token_count", 0) or 0),
        "total_tokens": int(getattr(um, "total_token_count", 0) or 0),
    }
