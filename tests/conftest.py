"""Pytest configuration and fixtures.

Provides environment isolation, logging configuration, shared test doubles
and catalog builders. All fixtures here are autouse unless noted.
"""

from __future__ import annotations

from contextlib import suppress
from dataclasses import dataclass, field
import logging
import os
from typing import TYPE_CHECKING

import pytest

from switchyard.adapters.base import AdapterCapabilities
from switchyard.catalog import ContentType, ModelSpec, ProviderSpec, Quality
from switchyard.config import Config
from switchyard.result import GenerateResult, JobStatusResult, StreamResult

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from switchyard.request import GenerateRequest

# =============================================================================
# Test Doubles
# =============================================================================


@dataclass
class FakeAdapter:
    """Adapter test double for orchestrator behavior verification.

    Returns ``outcome`` from every ``generate`` call (raising it when it is an
    exception) and records what it was asked to do.
    """

    name: str = "fake"
    outcome: GenerateResult | BaseException | None = None
    job_statuses: list[JobStatusResult] = field(default_factory=list)
    stream_items: list[StreamResult] = field(default_factory=list)
    stream_error: BaseException | None = None
    calls: list[tuple[str, str]] = field(default_factory=list)
    job_polls: list[str] = field(default_factory=list)
    ended_sessions: list[str] = field(default_factory=list)
    closed: bool = False
    _capabilities: AdapterCapabilities = field(default_factory=AdapterCapabilities)

    @property
    def capabilities(self) -> AdapterCapabilities:
        return self._capabilities

    async def generate(self, request: GenerateRequest, model_id: str) -> GenerateResult:
        self.calls.append((request.prompt, model_id))
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        if self.outcome is None:
            return GenerateResult.completed(
                f"{self.name}:{request.prompt}", provider=self.name, model=model_id
            )
        return self.outcome

    async def check_job_status(self, provider_job_id: str) -> JobStatusResult:
        self.job_polls.append(provider_job_id)
        if not self.job_statuses:
            return JobStatusResult(status="pending")
        return self.job_statuses.pop(0)

    async def generate_stream(
        self, request: GenerateRequest, model_id: str
    ) -> AsyncIterator[StreamResult]:
        self.calls.append((request.prompt, model_id))
        for item in self.stream_items:
            yield item
        if self.stream_error is not None:
            raise self.stream_error

    async def embed_content(
        self, texts: Sequence[str], model_id: str
    ) -> list[list[float]]:
        del model_id
        return [[float(len(t))] for t in texts]

    async def count_tokens(self, request: GenerateRequest, model_id: str) -> int:
        del model_id
        return len(request.prompt)

    async def end_chat_session(self, session_id: str) -> None:
        self.ended_sessions.append(session_id)

    async def aclose(self) -> None:
        self.closed = True


def failed(name: str, error: str = "boom") -> GenerateResult:
    """Shorthand for a failed adapter result."""
    return GenerateResult.failed(error, provider=name)


def text_model(
    model_id: str,
    cost: float,
    quality: str = "medium",
    latency: float | None = None,
) -> ModelSpec:
    """Build a text ModelSpec."""
    return ModelSpec(
        id=model_id,
        content_type=ContentType.TEXT,
        cost=cost,
        quality=Quality(quality),
        avg_latency_ms=latency,
    )


def mock_provider(name: str, *models: ModelSpec) -> ProviderSpec:
    """Build a provider that needs no credential."""
    return ProviderSpec(name=name, kind="mock", models=models)


def make_config(*providers: ProviderSpec) -> Config:
    """Build a Config over *providers*."""
    return Config(providers=providers)


# =============================================================================
# Shared Catalog Fixtures
# =============================================================================


@pytest.fixture
def three_providers() -> tuple[ProviderSpec, ...]:
    """A (cost 0.02, medium, 1000ms), B (0.05, high, 500ms), C (0.03, low, 200ms)."""
    return (
        mock_provider("A", text_model("a-1", 0.02, "medium", 1000)),
        mock_provider("B", text_model("b-1", 0.05, "high", 500)),
        mock_provider("C", text_model("c-1", 0.03, "low", 200)),
    )


# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "dotenv.load_dotenv", lambda *_args, **_kwargs: False, raising=False
        )


@pytest.fixture(autouse=True)
def isolate_provider_env(request, monkeypatch):
    """Ensure a clean provider environment for each test.

    Clears OPENAI_*, GEMINI_* and ANTHROPIC_* env vars to prevent test
    pollution. Opt-out: @pytest.mark.allow_env_pollution
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return

    for key in list(os.environ.keys()):
        if key.startswith(("GEMINI_", "OPENAI_", "ANTHROPIC_")) or key.endswith(
            "_API_KEY"
        ):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
