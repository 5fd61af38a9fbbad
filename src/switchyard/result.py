"""Result shapes returned by adapters and the orchestrator.

Each result is tagged by ``status``. Failure information travels only in
these shapes: a result never carries both ``data`` and ``error``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Literal

from switchyard.errors import SwitchyardError

GenerateStatus = Literal["completed", "pending", "failed"]
JobStatus = Literal["pending", "completed", "failed"]
StreamStatus = Literal["partial", "completed", "error"]

#: Keys: ``input_tokens``, ``output_tokens``, ``total_tokens``.
TokenUsage = dict[str, int]


def _check_exclusive(data: Any, error: str | None) -> None:
    if data is not None and error is not None:
        raise SwitchyardError("A result cannot carry both data and error")


@dataclass(frozen=True)
class GenerateResult:
    """Outcome of one generate call: completed, pending, or failed."""

    status: GenerateStatus
    provider: str | None = None
    model: str | None = None
    data: Any = None
    error: str | None = None
    #: On adapter results, the provider-native job id; on orchestrator
    #: results, the orchestrator-issued job id.
    job_id: str | None = None
    #: Provider-native job id, kept alongside the orchestrator id.
    provider_job_id: str | None = None
    usage: TokenUsage = field(default_factory=dict)

    def __post_init__(self) -> None:
        _check_exclusive(self.data, self.error)

    @classmethod
    def completed(
        cls,
        data: Any,
        *,
        provider: str | None = None,
        model: str | None = None,
        usage: TokenUsage | None = None,
    ) -> GenerateResult:
        return cls(
            status="completed",
            provider=provider,
            model=model,
            data=data,
            usage=dict(usage or {}),
        )

    @classmethod
    def pending(
        cls,
        job_id: str,
        *,
        provider: str | None = None,
        model: str | None = None,
    ) -> GenerateResult:
        return cls(status="pending", provider=provider, model=model, job_id=job_id)

    @classmethod
    def failed(
        cls,
        error: str,
        *,
        provider: str | None = None,
        model: str | None = None,
    ) -> GenerateResult:
        return cls(status="failed", provider=provider, model=model, error=error)

    @property
    def ok(self) -> bool:
        return self.status == "completed"

    def with_job_id(self, job_id: str) -> GenerateResult:
        """Return a copy addressed by *job_id*, keeping the native id."""
        return replace(self, job_id=job_id, provider_job_id=self.job_id)


@dataclass(frozen=True)
class JobStatusResult:
    """Status of an asynchronous job."""

    status: JobStatus
    data: Any = None
    error: str | None = None

    def __post_init__(self) -> None:
        _check_exclusive(self.data, self.error)

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")


@dataclass(frozen=True)
class StreamResult:
    """One element of a streamed generation.

    ``partial`` elements carry a text delta; the stream ends with exactly one
    ``completed`` (full text) or ``error`` element.
    """

    status: StreamStatus
    data: str | None = None
    error: str | None = None
    provider: str | None = None
    model: str | None = None

    def __post_init__(self) -> None:
        _check_exclusive(self.data, self.error)

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "error")
