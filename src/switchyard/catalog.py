"""Capability catalog: providers and the models they expose."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from switchyard._http import DEFAULT_AUTH_HEADER, DEFAULT_AUTH_SCHEME
from switchyard.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping


class ContentType(str, Enum):
    """Kind of content a model produces."""

    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"


class Quality(str, Enum):
    """Ordered quality tier: low < medium < high."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        """Sort rank where the best tier sorts first (high=1, low=3)."""
        return _QUALITY_RANK[self]


_QUALITY_RANK: dict[Quality, int] = {
    Quality.HIGH: 1,
    Quality.MEDIUM: 2,
    Quality.LOW: 3,
}

# Provider names handled by the generic HTTP adapter.
CUSTOM_PROVIDER_KINDS = frozenset({"custom"})


@dataclass(frozen=True)
class ModelSpec:
    """A model exposed by a provider."""

    id: str
    content_type: ContentType
    cost: float
    quality: Quality
    #: ``None`` means unknown; unknown latencies sort after known ones.
    avg_latency_ms: float | None = None

    def __post_init__(self) -> None:
        """Validate numeric invariants early."""
        if not self.id:
            raise ConfigurationError("Model id must be a non-empty string")
        if self.cost < 0:
            raise ConfigurationError(
                f"Model {self.id!r} has negative cost {self.cost}",
                hint="Costs are non-negative numbers in a caller-defined unit.",
            )
        if self.avg_latency_ms is not None and self.avg_latency_ms < 0:
            raise ConfigurationError(
                f"Model {self.id!r} has negative avg_latency_ms {self.avg_latency_ms}",
                hint="Omit avg_latency_ms when the latency is unknown.",
            )


@dataclass(frozen=True)
class ModelOverride:
    """Per-model protocol overrides for generic backends."""

    request_template: str | None = None
    response_path: str | None = None


@dataclass(frozen=True)
class ProviderSpec:
    """A provider, its credential, models, and generic-backend metadata."""

    name: str
    api_key: str | None = None
    models: tuple[ModelSpec, ...] = ()
    #: Adapter family; defaults to ``name`` (``"openai"``, ``"gemini"``, ...).
    kind: str | None = None
    base_url: str | None = None
    health_check_path: str | None = None
    auth_header: str = DEFAULT_AUTH_HEADER
    auth_scheme: str = DEFAULT_AUTH_SCHEME
    request_template: str | None = None
    response_path: str | None = None
    embedding_url: str | None = None
    model_overrides: Mapping[str, ModelOverride] = field(
        default_factory=dict, hash=False
    )

    def __post_init__(self) -> None:
        """Reject malformed providers at construction time."""
        if not self.name:
            raise ConfigurationError("Provider name must be a non-empty string")
        object.__setattr__(self, "models", tuple(self.models))
        seen: set[str] = set()
        for model in self.models:
            if model.id in seen:
                raise ConfigurationError(
                    f"Provider {self.name!r} declares model {model.id!r} twice",
                )
            seen.add(model.id)
        if self.is_custom:
            if not self.base_url:
                raise ConfigurationError(
                    f"Custom provider {self.name!r} requires base_url",
                    hint="Set base_url to the backend's generate endpoint.",
                )
            object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        unknown = set(self.model_overrides) - seen
        if unknown:
            raise ConfigurationError(
                f"Provider {self.name!r} has overrides for unknown models: "
                f"{', '.join(sorted(unknown))}",
            )

    @property
    def adapter_kind(self) -> str:
        """Adapter family used to build this provider's adapter."""
        return (self.kind or self.name).lower()

    @property
    def is_custom(self) -> bool:
        """Whether this provider is served by the generic HTTP adapter."""
        return self.adapter_kind in CUSTOM_PROVIDER_KINDS

    def template_for(self, model_id: str) -> str | None:
        """Return the request template for *model_id*, preferring overrides."""
        override = self.model_overrides.get(model_id)
        if override is not None and override.request_template is not None:
            return override.request_template
        return self.request_template

    def response_path_for(self, model_id: str) -> str | None:
        """Return the response path for *model_id*, preferring overrides."""
        override = self.model_overrides.get(model_id)
        if override is not None and override.response_path is not None:
            return override.response_path
        return self.response_path

    def __repr__(self) -> str:
        """Return a representation with the credential redacted."""
        return (
            f"ProviderSpec(name={self.name!r}, kind={self.adapter_kind!r}, "
            f"api_key={'[REDACTED]' if self.api_key else None}, "
            f"models={[m.id for m in self.models]!r}, base_url={self.base_url!r})"
        )


@dataclass(frozen=True)
class Candidate:
    """A (provider, model) pair eligible for a request."""

    provider: ProviderSpec
    model: ModelSpec

    @property
    def label(self) -> str:
        """Human-readable ``provider/model`` label."""
        return f"{self.provider.name}/{self.model.id}"


class Catalog:
    """Immutable, ordered collection of provider descriptors."""

    def __init__(self, providers: tuple[ProviderSpec, ...] | list[ProviderSpec]) -> None:
        providers = tuple(providers)
        names: set[str] = set()
        for provider in providers:
            if provider.name in names:
                raise ConfigurationError(
                    f"Duplicate provider name: {provider.name!r}",
                    hint="Provider names are the adapter lookup key and must be unique.",
                )
            names.add(provider.name)
        self._providers = providers

    @property
    def providers(self) -> tuple[ProviderSpec, ...]:
        return self._providers

    def get(self, name: str) -> ProviderSpec | None:
        """Return the provider named *name*, or ``None``."""
        for provider in self._providers:
            if provider.name == name:
                return provider
        return None

    def entries(self) -> Iterator[Candidate]:
        """Yield every (provider, model) pair in catalog order."""
        for provider in self._providers:
            for model in provider.models:
                yield Candidate(provider=provider, model=model)

    def __iter__(self) -> Iterator[ProviderSpec]:
        return iter(self._providers)

    def __len__(self) -> int:
        return len(self._providers)

    def __repr__(self) -> str:
        return f"Catalog(providers={[p.name for p in self._providers]!r})"
