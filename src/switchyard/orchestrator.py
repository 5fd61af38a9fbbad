"""Fallback orchestration across ranked (provider, model) candidates."""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from dataclasses import replace
import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Self

from switchyard.adapters import build_adapter
from switchyard.errors import CapabilityError
from switchyard.jobs import JobRegistry
from switchyard.result import GenerateResult, StreamResult
from switchyard.selection import select_candidates

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping, Sequence
    from types import TracebackType

    from switchyard.adapters.base import Adapter
    from switchyard.catalog import Candidate
    from switchyard.config import Config
    from switchyard.request import GenerateRequest
    from switchyard.result import JobStatusResult

_logger = logging.getLogger(__name__)

NO_SUITABLE_PROVIDER = "No suitable provider found for the given request and strategy."
ALL_PROVIDERS_FAILED = "All configured providers failed to generate a response."
NO_STREAMING_PROVIDER = "No configured provider could stream a response."


class Orchestrator:
    """Route requests to the best available provider, falling back in order.

    Per-candidate failures (failed results, raised exceptions, unregistered
    providers) are logged and absorbed; only exhausting every candidate
    surfaces as a failed result. ``generate`` and ``get_job_result`` never
    raise for request-level failures.

    Example:
        async with Orchestrator(config) as orchestrator:
            result = await orchestrator.generate(
                GenerateRequest(content_type="text", prompt="Hello")
            )
    """

    def __init__(
        self,
        config: Config,
        *,
        adapters: Mapping[str, Adapter] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Build adapters for every configured provider.

        Args:
            config: Validated configuration.
            adapters: Explicit adapters keyed by provider name. When given,
                no adapters are built from *config*.
            logger: Logger to report attempts and failures to.
        """
        self.config = config
        self.catalog = config.catalog
        self.jobs = JobRegistry()
        self._logger = logger if logger is not None else _logger

        if adapters is not None:
            self._adapters: dict[str, Adapter] = dict(adapters)
        else:
            self._adapters = {}
            for spec in self.catalog:
                adapter = build_adapter(spec, config)
                if adapter is not None:
                    self._adapters[spec.name] = adapter

        self._logger.info(
            "Orchestrator initialized with adapters: %s",
            ", ".join(sorted(self._adapters)) or "none",
        )

    @property
    def adapters(self) -> Mapping[str, Adapter]:
        return MappingProxyType(self._adapters)

    def candidates(self, request: GenerateRequest) -> list[Candidate]:
        """Return the ranked candidates for *request*."""
        candidates = select_candidates(self.catalog, request)
        self._logger.debug(
            "Provider priority list for strategy '%s': %s",
            request.strategy,
            ", ".join(c.label for c in candidates),
        )
        return candidates

    async def generate(self, request: GenerateRequest) -> GenerateResult:
        """Generate with the best candidate, falling back until one succeeds.

        A completed or pending result ends the search. Pending results are
        registered and returned carrying an orchestrator job id; the
        provider-native id stays available as ``provider_job_id``.
        """
        self._logger.info(
            "Received generate request: type=%s strategy=%s quality=%s",
            request.content_type.value,
            request.strategy,
            request.quality.value if request.quality else None,
        )
        candidates = self.candidates(request)
        if not candidates:
            return GenerateResult.failed(NO_SUITABLE_PROVIDER)

        for candidate in candidates:
            name = candidate.provider.name
            model_id = candidate.model.id
            adapter = self._adapters.get(name)
            if adapter is None:
                self._logger.error("Adapter not initialized for provider: %s", name)
                continue

            self._logger.info("Attempting to generate with %s using model %s", name, model_id)
            try:
                result = await adapter.generate(request, model_id)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._logger.error(
                    "Exception with provider %s: %s. Trying next provider.", name, e
                )
                continue

            if not isinstance(result, GenerateResult):
                self._logger.error(
                    "Provider %s returned %s instead of a result. Trying next provider.",
                    name,
                    type(result).__name__,
                )
                continue

            result = replace(
                result,
                provider=result.provider or name,
                model=result.model or model_id,
            )
            if result.status == "completed":
                self._logger.info("Successfully generated content with %s", name)
                return result
            if result.status == "pending":
                if result.job_id:
                    job_id = self.jobs.register(name, result.job_id)
                    self._logger.info("Started job %s with %s", job_id, name)
                    return result.with_job_id(job_id)
                self._logger.warning(
                    "Provider %s returned pending without a job id. Trying next provider.",
                    name,
                )
                continue
            self._logger.warning(
                "Generation failed with %s: %s. Trying next provider.", name, result.error
            )

        return GenerateResult.failed(ALL_PROVIDERS_FAILED)

    async def get_job_result(self, job_id: str) -> JobStatusResult:
        """Poll the job behind *job_id*; terminal outcomes retire the id."""
        return await self.jobs.get_job_result(job_id, self._adapters)

    async def generate_stream(
        self, request: GenerateRequest
    ) -> AsyncIterator[StreamResult]:
        """Stream from the best candidate whose adapter supports streaming.

        Candidates that fail before producing output are skipped like failed
        generate calls. Once the first element has been yielded the stream is
        committed to that candidate and ends with its terminal element.
        """
        candidates = self.candidates(request)
        if not candidates:
            yield StreamResult(status="error", error=NO_SUITABLE_PROVIDER)
            return

        for candidate in candidates:
            name = candidate.provider.name
            model_id = candidate.model.id
            adapter = self._adapters.get(name)
            if adapter is None:
                self._logger.error("Adapter not initialized for provider: %s", name)
                continue
            if not adapter.capabilities.streaming:
                self._logger.debug("Provider %s cannot stream; skipping", name)
                continue

            started = False
            try:
                async with aclosing(adapter.generate_stream(request, model_id)) as stream:
                    async for item in stream:
                        if not started and item.status == "error":
                            self._logger.warning(
                                "Streaming failed with %s: %s. Trying next provider.",
                                name,
                                item.error,
                            )
                            break
                        started = True
                        yield item
                        if item.is_terminal:
                            return
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if started:
                    yield StreamResult(
                        status="error", error=str(e), provider=name, model=model_id
                    )
                    return
                self._logger.error(
                    "Exception while streaming with %s: %s. Trying next provider.", name, e
                )
                continue

            if started:
                yield StreamResult(
                    status="error",
                    error="Stream ended without a terminal element.",
                    provider=name,
                    model=model_id,
                )
                return

        yield StreamResult(status="error", error=NO_STREAMING_PROVIDER)

    def _require(self, provider: str, capability: str) -> Adapter:
        adapter = self._adapters.get(provider)
        if adapter is None:
            raise CapabilityError(
                f"No adapter is registered for provider '{provider}'",
                provider=provider,
                capability=capability,
            )
        if not getattr(adapter.capabilities, capability):
            raise CapabilityError(
                f"Provider '{provider}' does not support {capability.replace('_', ' ')}",
                provider=provider,
                capability=capability,
            )
        return adapter

    async def embed_content(
        self, provider: str, model_id: str, texts: Sequence[str]
    ) -> list[list[float]]:
        """Embed *texts* with a specific provider.

        Raises:
            CapabilityError: If the provider has no adapter or cannot embed.
        """
        adapter = self._require(provider, "embeddings")
        return await adapter.embed_content(texts, model_id)

    async def count_tokens(
        self, provider: str, model_id: str, request: GenerateRequest
    ) -> int:
        """Count prompt tokens with a specific provider.

        Raises:
            CapabilityError: If the provider has no adapter or cannot count tokens.
        """
        adapter = self._require(provider, "token_counting")
        return await adapter.count_tokens(request, model_id)

    async def end_chat_session(self, provider: str, session_id: str) -> None:
        """Discard session state kept by a provider's adapter.

        Raises:
            CapabilityError: If the provider has no adapter or keeps no sessions.
        """
        adapter = self._require(provider, "sessions")
        await adapter.end_chat_session(session_id)

    async def aclose(self) -> None:
        """Close adapters that hold client resources."""
        for name, adapter in self._adapters.items():
            aclose: Any = getattr(adapter, "aclose", None)
            if not callable(aclose):
                continue
            try:
                await aclose()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                # Cleanup should never mask the primary failure.
                self._logger.warning("Adapter cleanup failed for %s: %s", name, exc)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
