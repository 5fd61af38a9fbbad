"""Adapter protocol: the uniform interface every backend implements."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from switchyard.request import GenerateRequest
    from switchyard.result import GenerateResult, JobStatusResult, StreamResult


@dataclass(frozen=True)
class AdapterCapabilities:
    """Optional features an adapter implements.

    The orchestrator consults these flags before calling an optional method;
    a ``False`` flag means the method must not be called.
    """

    job_status: bool = False
    streaming: bool = False
    embeddings: bool = False
    token_counting: bool = False
    sessions: bool = False


@runtime_checkable
class Adapter(Protocol):
    """Backend integration.

    ``generate`` is required. The remaining methods are optional and are
    only invoked when the matching ``capabilities`` flag is set.
    """

    name: str

    async def generate(self, request: GenerateRequest, model_id: str) -> GenerateResult:
        """Generate content, returning completed, pending, or failed."""
        ...

    @property
    def capabilities(self) -> AdapterCapabilities:
        """Feature flags for optional methods."""
        ...

    async def check_job_status(self, provider_job_id: str) -> JobStatusResult:
        """Return the status of a provider-native job (``job_status``)."""
        ...

    def generate_stream(
        self, request: GenerateRequest, model_id: str
    ) -> AsyncIterator[StreamResult]:
        """Yield partial results, ending with completed or error (``streaming``)."""
        ...

    async def embed_content(
        self, texts: Sequence[str], model_id: str
    ) -> list[list[float]]:
        """Return one embedding vector per text (``embeddings``)."""
        ...

    async def count_tokens(self, request: GenerateRequest, model_id: str) -> int:
        """Return the prompt token count (``token_counting``)."""
        ...

    async def end_chat_session(self, session_id: str) -> None:
        """Discard state kept for *session_id* (``sessions``)."""
        ...
