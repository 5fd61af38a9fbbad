"""Fallback orchestrator behavior with adapter test doubles."""

from __future__ import annotations

import asyncio
import logging

import pytest

from switchyard.adapters.base import AdapterCapabilities
from switchyard.adapters.mock import MockAdapter
from switchyard.catalog import ContentType, ModelSpec, ProviderSpec, Quality
from switchyard.config import Config
from switchyard.errors import CapabilityError
from switchyard.jobs import JOB_NOT_FOUND, derive_job_id
from switchyard.orchestrator import (
    ALL_PROVIDERS_FAILED,
    NO_STREAMING_PROVIDER,
    NO_SUITABLE_PROVIDER,
    Orchestrator,
)
from switchyard.request import GenerateRequest
from switchyard.result import GenerateResult, JobStatusResult, StreamResult
from tests.conftest import FakeAdapter, failed, make_config

pytestmark = pytest.mark.integration

TEXT = GenerateRequest(content_type="text", prompt="Write a haiku")


def _orchestrator(providers, **adapters: FakeAdapter) -> Orchestrator:
    return Orchestrator(make_config(*providers), adapters=adapters)


# =============================================================================
# Fallback
# =============================================================================


@pytest.mark.asyncio
async def test_first_success_is_returned_without_trying_others(three_providers) -> None:
    a, b, c = FakeAdapter(name="A"), FakeAdapter(name="B"), FakeAdapter(name="C")
    orch = _orchestrator(three_providers, A=a, B=b, C=c)

    result = await orch.generate(TEXT)

    assert result.status == "completed"
    assert result.provider == "A"
    assert result.model == "a-1"
    assert result.data == "A:Write a haiku"
    assert (b.calls, c.calls) == ([], [])


@pytest.mark.asyncio
async def test_falls_back_to_third_candidate(three_providers, caplog) -> None:
    """Two failures are logged, the third candidate's success is returned."""
    a = FakeAdapter(name="A", outcome=failed("A", "rate limited"))
    c = FakeAdapter(name="C", outcome=failed("C", "server down"))
    b = FakeAdapter(name="B")
    orch = _orchestrator(three_providers, A=a, B=b, C=c)

    with caplog.at_level(logging.INFO, logger="switchyard"):
        result = await orch.generate(TEXT)

    assert result.status == "completed"
    assert result.provider == "B"
    assert result.error is None
    assert [len(x.calls) for x in (a, c, b)] == [1, 1, 1]
    assert "rate limited" in caplog.text
    assert "server down" in caplog.text


@pytest.mark.asyncio
async def test_exhaustion_invokes_each_adapter_exactly_once(three_providers) -> None:
    adapters = {n: FakeAdapter(name=n, outcome=failed(n)) for n in ("A", "B", "C")}
    orch = _orchestrator(three_providers, **adapters)

    result = await orch.generate(TEXT)

    assert result.status == "failed"
    assert result.error == ALL_PROVIDERS_FAILED
    assert result.data is None
    assert all(len(a.calls) == 1 for a in adapters.values())


@pytest.mark.asyncio
async def test_adapter_exception_is_treated_as_candidate_failure(
    three_providers, caplog
) -> None:
    a = FakeAdapter(name="A", outcome=RuntimeError("connection reset"))
    orch = _orchestrator(
        three_providers, A=a, B=FakeAdapter(name="B"), C=FakeAdapter(name="C")
    )

    with caplog.at_level(logging.ERROR, logger="switchyard"):
        result = await orch.generate(TEXT)

    assert result.status == "completed"
    assert result.provider == "C"
    assert "connection reset" in caplog.text


@pytest.mark.asyncio
async def test_non_result_outcome_is_treated_as_candidate_failure(
    three_providers, caplog
) -> None:
    a = FakeAdapter(name="A", outcome={"status": "completed", "data": "x"})
    c = FakeAdapter(name="C")
    orch = _orchestrator(three_providers, A=a, C=c)

    with caplog.at_level(logging.ERROR, logger="switchyard"):
        result = await orch.generate(TEXT)

    assert (result.status, result.provider) == ("completed", "C")
    assert len(a.calls) == len(c.calls) == 1
    assert "returned dict instead of a result" in caplog.text


@pytest.mark.asyncio
async def test_cancellation_is_not_absorbed(three_providers) -> None:
    a = FakeAdapter(name="A", outcome=asyncio.CancelledError())
    orch = _orchestrator(three_providers, A=a, C=FakeAdapter(name="C"))

    with pytest.raises(asyncio.CancelledError):
        await orch.generate(TEXT)


@pytest.mark.asyncio
async def test_missing_adapter_is_skipped(three_providers, caplog) -> None:
    c = FakeAdapter(name="C")
    orch = _orchestrator(three_providers, C=c)

    with caplog.at_level(logging.ERROR, logger="switchyard"):
        result = await orch.generate(TEXT)

    assert result.provider == "C"
    assert "Adapter not initialized for provider: A" in caplog.text


@pytest.mark.asyncio
async def test_no_adapter_at_all_is_exhaustion(three_providers) -> None:
    orch = _orchestrator(three_providers)

    result = await orch.generate(TEXT)

    assert result.status == "failed"
    assert result.error == ALL_PROVIDERS_FAILED


@pytest.mark.asyncio
async def test_no_candidate_is_reported_without_calling_adapters(
    three_providers,
) -> None:
    a = FakeAdapter(name="A")
    orch = _orchestrator(three_providers, A=a)

    result = await orch.generate(GenerateRequest(content_type="video", prompt="x"))

    assert result.status == "failed"
    assert result.error == NO_SUITABLE_PROVIDER
    assert a.calls == []


@pytest.mark.asyncio
async def test_quality_filter_restricts_attempts(three_providers) -> None:
    adapters = {n: FakeAdapter(name=n) for n in ("A", "B", "C")}
    orch = _orchestrator(three_providers, **adapters)

    result = await orch.generate(
        GenerateRequest(content_type="text", prompt="x", quality="low")
    )

    assert result.provider == "C"
    assert adapters["A"].calls == []


@pytest.mark.asyncio
async def test_result_is_stamped_with_provider_and_model(three_providers) -> None:
    bare = GenerateResult.completed("hello")
    orch = _orchestrator(three_providers, A=FakeAdapter(name="A", outcome=bare))

    result = await orch.generate(TEXT)

    assert (result.provider, result.model, result.data) == ("A", "a-1", "hello")


# =============================================================================
# Jobs
# =============================================================================


@pytest.mark.asyncio
async def test_pending_result_registers_one_job_and_polls_to_completion(
    three_providers,
) -> None:
    a = FakeAdapter(
        name="A",
        outcome=GenerateResult.pending("native-42"),
        job_statuses=[
            JobStatusResult(status="pending"),
            JobStatusResult(status="completed", data="https://cdn/video.mp4"),
        ],
        _capabilities=AdapterCapabilities(job_status=True),
    )
    orch = _orchestrator(three_providers, A=a)

    started = await orch.generate(TEXT)

    assert started.status == "pending"
    assert started.job_id == derive_job_id("A", "native-42")
    assert started.provider_job_id == "native-42"
    assert len(orch.jobs) == 1

    first = await orch.get_job_result(started.job_id)
    assert first.status == "pending"
    assert started.job_id in orch.jobs

    second = await orch.get_job_result(started.job_id)
    assert second.status == "completed"
    assert second.data == "https://cdn/video.mp4"
    assert len(orch.jobs) == 0

    again = await orch.get_job_result(started.job_id)
    assert again.status == "failed"
    assert again.error == JOB_NOT_FOUND
    assert a.job_polls == ["native-42", "native-42"]


@pytest.mark.asyncio
async def test_pending_without_job_status_fails_at_poll_time(three_providers) -> None:
    a = FakeAdapter(name="A", outcome=GenerateResult.pending("native-1"))
    orch = _orchestrator(three_providers, A=a)

    started = await orch.generate(TEXT)
    assert started.status == "pending"

    polled = await orch.get_job_result(started.job_id)

    assert polled.status == "failed"
    assert polled.error == "Provider 'A' does not support checking job status."
    assert a.job_polls == []


@pytest.mark.asyncio
async def test_pending_without_job_id_falls_through(three_providers) -> None:
    a = FakeAdapter(name="A", outcome=GenerateResult(status="pending"))
    orch = _orchestrator(three_providers, A=a, C=FakeAdapter(name="C"))

    result = await orch.generate(TEXT)

    assert result.provider == "C"
    assert len(orch.jobs) == 0


@pytest.mark.asyncio
async def test_unknown_job_id_is_not_found(three_providers) -> None:
    orch = _orchestrator(three_providers)

    result = await orch.get_job_result("job-does-not-exist")

    assert result.status == "failed"
    assert result.error == JOB_NOT_FOUND


@pytest.mark.asyncio
async def test_mock_video_job_round_trip() -> None:
    video = ProviderSpec(
        name="studio",
        kind="mock",
        models=(
            ModelSpec(
                id="veo-mock",
                content_type=ContentType.VIDEO,
                cost=1.0,
                quality=Quality.HIGH,
            ),
        ),
    )
    mock = MockAdapter(name="studio", polls_until_complete=2)
    orch = Orchestrator(Config(providers=(video,)), adapters={"studio": mock})

    started = await orch.generate(GenerateRequest(content_type="video", prompt="a cat"))
    assert started.status == "pending"

    assert (await orch.get_job_result(started.job_id)).status == "pending"
    done = await orch.get_job_result(started.job_id)
    assert done.status == "completed"
    assert done.data == f"mock://video/{started.provider_job_id}"


# =============================================================================
# Streaming
# =============================================================================

_STREAMS = AdapterCapabilities(streaming=True)


@pytest.mark.asyncio
async def test_stream_skips_adapters_without_streaming(three_providers) -> None:
    a = FakeAdapter(name="A")
    c = FakeAdapter(
        name="C",
        _capabilities=_STREAMS,
        stream_items=[
            StreamResult(status="partial", data="Hel"),
            StreamResult(status="partial", data="lo"),
            StreamResult(status="completed", data="Hello"),
        ],
    )
    orch = _orchestrator(three_providers, A=a, C=c)

    items = [item async for item in orch.generate_stream(TEXT)]

    assert [i.status for i in items] == ["partial", "partial", "completed"]
    assert items[-1].data == "Hello"
    assert a.calls == []


@pytest.mark.asyncio
async def test_stream_falls_back_when_first_element_is_error(three_providers) -> None:
    a = FakeAdapter(
        name="A",
        _capabilities=_STREAMS,
        stream_items=[StreamResult(status="error", error="overloaded")],
    )
    c = FakeAdapter(
        name="C",
        _capabilities=_STREAMS,
        stream_items=[StreamResult(status="completed", data="ok")],
    )
    orch = _orchestrator(three_providers, A=a, C=c)

    items = [item async for item in orch.generate_stream(TEXT)]

    assert [(i.status, i.data) for i in items] == [("completed", "ok")]


@pytest.mark.asyncio
async def test_stream_error_after_output_ends_the_stream(three_providers) -> None:
    a = FakeAdapter(
        name="A",
        _capabilities=_STREAMS,
        stream_items=[StreamResult(status="partial", data="Hal")],
        stream_error=RuntimeError("socket closed"),
    )
    c = FakeAdapter(name="C", _capabilities=_STREAMS)
    orch = _orchestrator(three_providers, A=a, C=c)

    items = [item async for item in orch.generate_stream(TEXT)]

    assert [i.status for i in items] == ["partial", "error"]
    assert items[-1].error == "socket closed"
    assert c.calls == []


@pytest.mark.asyncio
async def test_stream_without_terminal_element_gets_one(three_providers) -> None:
    a = FakeAdapter(
        name="A",
        _capabilities=_STREAMS,
        stream_items=[StreamResult(status="partial", data="x")],
    )
    orch = _orchestrator(three_providers, A=a)

    items = [item async for item in orch.generate_stream(TEXT)]

    assert items[-1].status == "error"
    assert items[-1].is_terminal


@pytest.mark.asyncio
async def test_stream_reports_when_nobody_can_stream(three_providers) -> None:
    orch = _orchestrator(three_providers, A=FakeAdapter(name="A"))

    items = [item async for item in orch.generate_stream(TEXT)]

    assert [(i.status, i.error) for i in items] == [("error", NO_STREAMING_PROVIDER)]


@pytest.mark.asyncio
async def test_stream_reports_no_candidate(three_providers) -> None:
    orch = _orchestrator(three_providers)

    items = [
        item
        async for item in orch.generate_stream(
            GenerateRequest(content_type="audio", prompt="x")
        )
    ]

    assert [(i.status, i.error) for i in items] == [("error", NO_SUITABLE_PROVIDER)]


# =============================================================================
# Optional Capabilities
# =============================================================================


@pytest.mark.asyncio
async def test_optional_capabilities_dispatch_to_named_provider(
    three_providers,
) -> None:
    a = FakeAdapter(
        name="A",
        _capabilities=AdapterCapabilities(
            embeddings=True, token_counting=True, sessions=True
        ),
    )
    orch = _orchestrator(three_providers, A=a)

    assert await orch.embed_content("A", "a-1", ["ab", "abcd"]) == [[2.0], [4.0]]
    assert await orch.count_tokens("A", "a-1", TEXT) == len(TEXT.prompt)
    await orch.end_chat_session("A", "session-1")
    assert a.ended_sessions == ["session-1"]


@pytest.mark.asyncio
async def test_missing_capability_raises_capability_error(three_providers) -> None:
    orch = _orchestrator(three_providers, A=FakeAdapter(name="A"))

    with pytest.raises(CapabilityError) as exc:
        await orch.embed_content("A", "a-1", ["x"])
    assert exc.value.provider == "A"
    assert exc.value.capability == "embeddings"

    with pytest.raises(CapabilityError):
        await orch.count_tokens("A", "a-1", TEXT)
    with pytest.raises(CapabilityError):
        await orch.end_chat_session("A", "s")


@pytest.mark.asyncio
async def test_unknown_provider_raises_capability_error(three_providers) -> None:
    orch = _orchestrator(three_providers)

    with pytest.raises(CapabilityError, match="No adapter"):
        await orch.embed_content("nobody", "m", ["x"])


# =============================================================================
# Construction and Lifecycle
# =============================================================================


def test_builds_adapters_from_config(three_providers) -> None:
    orch = Orchestrator(make_config(*three_providers))

    assert set(orch.adapters) == {"A", "B", "C"}
    assert all(isinstance(a, MockAdapter) for a in orch.adapters.values())


def test_unknown_provider_kind_gets_no_adapter(caplog) -> None:
    spec = ProviderSpec(name="mystery", kind="telepathy")

    with caplog.at_level(logging.WARNING, logger="switchyard"):
        orch = Orchestrator(Config(providers=(spec,)))

    assert "mystery" not in orch.adapters
    assert "No adapter found for provider: mystery" in caplog.text


@pytest.mark.asyncio
async def test_async_context_manager_closes_adapters(three_providers) -> None:
    a = FakeAdapter(name="A")

    async with _orchestrator(three_providers, A=a) as orch:
        await orch.generate(TEXT)

    assert a.closed is True
