"""Mock adapter for testing and offline use."""

from __future__ import annotations

import hashlib
import itertools
from typing import TYPE_CHECKING

from switchyard.adapters.base import AdapterCapabilities
from switchyard.catalog import ContentType
from switchyard.result import GenerateResult, JobStatusResult, StreamResult

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from switchyard.request import GenerateRequest

_EMBEDDING_DIMENSIONS = 8


class MockAdapter:
    """Mock adapter returning synthetic, deterministic responses.

    Text echoes the prompt. Video requests start a job that completes after
    ``polls_until_complete`` status checks.
    """

    def __init__(self, *, name: str = "mock", polls_until_complete: int = 1) -> None:
        if polls_until_complete < 1:
            raise ValueError("polls_until_complete must be >= 1")
        self.name = name
        self.polls_until_complete = polls_until_complete
        self._job_polls: dict[str, int] = {}
        self._job_counter = itertools.count(1)

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

    async def generate(self, request: GenerateRequest, model_id: str) -> GenerateResult:
        """Return a deterministic mock response."""
        if request.content_type is ContentType.VIDEO:
            job_id = f"mock-job-{next(self._job_counter)}"
            self._job_polls[job_id] = 0
            return GenerateResult.pending(job_id, provider=self.name, model=model_id)
        if request.content_type is ContentType.TEXT:
            return GenerateResult.completed(
                f"echo: {request.prompt[:100]}",
                provider=self.name,
                model=model_id,
                usage={"input_tokens": 10, "output_tokens": 10, "total_tokens": 20},
            )
        return GenerateResult.completed(
            f"mock://{request.content_type.value}/{model_id}",
            provider=self.name,
            model=model_id,
        )

    async def check_job_status(self, provider_job_id: str) -> JobStatusResult:
        """Report pending until the job has been polled enough times."""
        polls = self._job_polls.get(provider_job_id)
        if polls is None:
            return JobStatusResult(status="failed", error="Unknown mock job.")
        polls += 1
        if polls < self.polls_until_complete:
            self._job_polls[provider_job_id] = polls
            return JobStatusResult(status="pending")
        del self._job_polls[provider_job_id]
        return JobStatusResult(status="completed", data=f"mock://video/{provider_job_id}")

    async def generate_stream(
        self, request: GenerateRequest, model_id: str
    ) -> AsyncIterator[StreamResult]:
        """Yield the echo one word at a time."""
        text = f"echo: {request.prompt[:100]}"
        words = text.split(" ")
        for i, word in enumerate(words):
            delta = word if i == len(words) - 1 else f"{word} "
            yield StreamResult(
                status="partial", data=delta, provider=self.name, model=model_id
            )
        yield StreamResult(
            status="completed", data=text, provider=self.name, model=model_id
        )

    async def embed_content(
        self, texts: Sequence[str], model_id: str
    ) -> list[list[float]]:
        """Return hash-derived vectors; equal texts embed identically."""
        vectors: list[list[float]] = []
        for text in texts:
            digest = hashlib.sha256(f"{model_id}:{text}".encode()).digest()
            vectors.append([b / 255 for b in digest[:_EMBEDDING_DIMENSIONS]])
        return vectors

    async def count_tokens(self, request: GenerateRequest, model_id: str) -> int:  # noqa: ARG002
        """Approximate tokens as whitespace-separated words."""
        return len(request.prompt.split())

    async def end_chat_session(self, session_id: str) -> None:  # noqa: ARG002
        """Mock sessions keep no state."""
        return None
