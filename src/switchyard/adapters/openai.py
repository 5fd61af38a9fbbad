"""OpenAI adapter: chat text, images, speech, Sora video jobs, embeddings."""

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

_IMAGE_SIZE = "1024x1024"
_SPEECH_VOICE = "alloy"
_VIDEO_PENDING_STATES = frozenset({"queued", "in_progress"})


class OpenAIAdapter:
    """OpenAI API adapter built on the async ``openai`` client."""

    def __init__(self, api_key: str, *, name: str = "openai") -> None:
        """Initialize with an API key."""
        self.api_key = api_key
        self.name = name
        self._client: Any = None
        self._sessions = SessionStore()

    def _get_client(self) -> Any:
        """Lazily initialize and return the OpenAI client."""
        if self._client is None:
            try:
                from openai import AsyncOpenAI
            except ImportError as e:
                raise APIError(
                    "openai package not installed",
                    hint="pip install openai",
                ) from e
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    @property
    def capabilities(self) -> AdapterCapabilities:
        """Return supported feature flags."""
        return AdapterCapabilities(
            job_status=True,
            streaming=True,
            embeddings=True,
            token_counting=False,
            sessions=True,
        )

    async def generate(self, request: GenerateRequest, model_id: str) -> GenerateResult:
        """Dispatch on content type and normalize the outcome."""
        try:
            if request.content_type is ContentType.TEXT:
                return await self._generate_text(request, model_id)
            if request.content_type is ContentType.IMAGE:
                return await self._generate_image(request, model_id)
            if request.content_type is ContentType.AUDIO:
                return await self._generate_speech(request, model_id)
            if request.content_type is ContentType.VIDEO:
                return await self._start_video(request, model_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            err = wrap_provider_error(
                e, provider=self.name, phase="generate", message="OpenAI generate failed"
            )
            return GenerateResult.failed(str(err), provider=self.name, model=model_id)
        return GenerateResult.failed(
            f"Unsupported content type '{request.content_type.value}' for OpenAI.",
            provider=self.name,
            model=model_id,
        )

    def _messages(self, request: GenerateRequest) -> list[dict[str, str]]:
        messages: list[dict[str, str]] = []
        if request.system_instruction:
            messages.append({"role": "system", "content": request.system_instruction})
        for turn in self._sessions.history(request.session_id):
            messages.append({"role": turn.role, "content": turn.content})
        messages.append({"role": "user", "content": request.prompt})
        return messages

    def _chat_kwargs(self, request: GenerateRequest, model_id: str) -> dict[str, Any]:
        create_kwargs: dict[str, Any] = {
            "model": model_id,
            "messages": self._messages(request),
        }
        if request.temperature is not None:
            create_kwargs["temperature"] = request.temperature
        if request.top_p is not None:
            create_kwargs["top_p"] = request.top_p
        if request.max_tokens is not None:
            create_kwargs["max_tokens"] = request.max_tokens
        return create_kwargs

    async def _generate_text(
        self, request: GenerateRequest, model_id: str
    ) -> GenerateResult:
        client = self._get_client()
        response = await client.chat.completions.create(
            **self._chat_kwargs(request, model_id)
        )
        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            raise APIError("No content returned from OpenAI text generation.")

        self._sessions.record(request.session_id, request.prompt, content)
        return GenerateResult.completed(
            content,
            provider=self.name,
            model=model_id,
            usage=_parse_usage(getattr(response, "usage", None)),
        )

    async def _generate_image(
        self, request: GenerateRequest, model_id: str
    ) -> GenerateResult:
        client = self._get_client()
        response = await client.images.generate(
            model=model_id,
            prompt=request.prompt,
            n=1,
            size=_IMAGE_SIZE,
        )
        data = getattr(response, "data", None) or []
        first = data[0] if data else None
        image = getattr(first, "url", None) or getattr(first, "b64_json", None)
        if not image:
            raise APIError("No image returned from OpenAI image generation.")
        return GenerateResult.completed(image, provider=self.name, model=model_id)

    async def _generate_speech(
        self, request: GenerateRequest, model_id: str
    ) -> GenerateResult:
        client = self._get_client()
        response = await client.audio.speech.create(
            model=model_id,
            voice=_SPEECH_VOICE,
            input=request.prompt,
        )
        audio = getattr(response, "content", None)
        if not audio:
            raise APIError("No audio returned from OpenAI speech generation.")
        return GenerateResult.completed(audio, provider=self.name, model=model_id)

    async def _start_video(
        self, request: GenerateRequest, model_id: str
    ) -> GenerateResult:
        client = self._get_client()
        video = await client.videos.create(model=model_id, prompt=request.prompt)
        video_id = getattr(video, "id", None)
        if not isinstance(video_id, str):
            raise APIError("OpenAI video generation did not return a job id")
        logger.debug("OpenAI video job %s started", video_id)
        return GenerateResult.pending(video_id, provider=self.name, model=model_id)

    async def check_job_status(self, provider_job_id: str) -> JobStatusResult:
        """Map a Sora video job's status onto pending/completed/failed."""
        client = self._get_client()
        try:
            video = await client.videos.retrieve(provider_job_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            err = wrap_provider_error(
                e, provider=self.name, phase="job_status", message="OpenAI job poll failed"
            )
            return JobStatusResult(status="failed", error=str(err))

        status = getattr(video, "status", None)
        if status in _VIDEO_PENDING_STATES:
            return JobStatusResult(status="pending")
        if status == "completed":
            return JobStatusResult(
                status="completed", data=f"openai://video/{provider_job_id}"
            )
        error = getattr(video, "error", None)
        message = getattr(error, "message", None) or f"Video job ended as {status!r}"
        return JobStatusResult(status="failed", error=message)

    async def generate_stream(
        self, request: GenerateRequest, model_id: str
    ) -> AsyncIterator[StreamResult]:
        """Stream chat completion deltas, ending with the full text."""
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
            stream = await client.chat.completions.create(
                **self._chat_kwargs(request, model_id), stream=True
            )
            async for chunk in stream:
                choices = getattr(chunk, "choices", None) or []
                delta = getattr(choices[0].delta, "content", None) if choices else None
                if delta:
                    chunks.append(delta)
                    yield StreamResult(
                        status="partial", data=delta, provider=self.name, model=model_id
                    )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            err = wrap_provider_error(
                e, provider=self.name, phase="stream", message="OpenAI stream failed"
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

    async def embed_content(
        self, texts: Sequence[str], model_id: str
    ) -> list[list[float]]:
        """Embed *texts* with the embeddings endpoint."""
        client = self._get_client()
        try:
            response = await client.embeddings.create(model=model_id, input=list(texts))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise wrap_provider_error(
                e, provider=self.name, phase="embed", message="OpenAI embedding failed"
            ) from e
        return [list(item.embedding) for item in response.data]

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


def _parse_usage(usage_raw: Any) -> dict[str, int]:
    if usage_raw is None:
        return {}
    return {
        "input_tokens": int(getattr(usage_raw, "prompt_tokens", 0) or 0),
        "output_tokens": int(getattr(usage_raw, "completion_tokens", 0) or 0),
        "total_tokens": int(getattr(usage_raw, "total_tokens", 0) or 0),
    }
