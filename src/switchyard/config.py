"""Configuration: pydantic-validated catalog input and a frozen runtime Config.

Raw provider mappings (from code, JSON or TOML) pass through the pydantic
schema wall once; everything downstream works with frozen dataclasses.
Malformed entries are rejected here, before any request is served.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import json
import os
from pathlib import Path
import re
import tomllib
from typing import TYPE_CHECKING, Any

from dotenv import load_dotenv
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from switchyard._http import (
    DEFAULT_AUTH_HEADER,
    DEFAULT_AUTH_SCHEME,
    DEFAULT_TIMEOUT_S,
    HEALTH_CACHE_TTL_S,
)
from switchyard.catalog import (
    CUSTOM_PROVIDER_KINDS,
    Catalog,
    ContentType,
    ModelOverride,
    ModelSpec,
    ProviderSpec,
    Quality,
)
from switchyard.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

load_dotenv()

#: Adapter families backed by a vendor SDK; these require an API key.
SDK_PROVIDER_KINDS = frozenset({"openai", "gemini", "google", "anthropic"})

# Provider-specific API key environment variable names
_API_KEY_ENV_VARS: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "google": "GEMINI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}

_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]+")


def api_key_env_var(provider_name: str, kind: str | None = None) -> str:
    """Return the environment variable consulted for a provider's API key."""
    known = _API_KEY_ENV_VARS.get((kind or provider_name).lower())
    if known is not None:
        return known
    return f"{_NON_ALNUM_RE.sub('_', provider_name).strip('_').upper()}_API_KEY"


# --- Schema (pydantic wall) ---


class _Settings(BaseModel):
    # Accept both snake_case and camelCase keys.
    model_config = ConfigDict(
        extra="forbid", populate_by_name=True, alias_generator=to_camel
    )


class ModelSettings(_Settings):
    """Schema for one model entry."""

    id: str = Field(min_length=1)
    content_type: ContentType = Field(
        validation_alias=AliasChoices("type", "contentType", "content_type")
    )
    cost: float = Field(ge=0)
    quality: Quality
    avg_latency_ms: float | None = Field(default=None, ge=0)

    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, v: Any) -> Any:
        """Trim surrounding whitespace on model identifiers."""
        if isinstance(v, str):
            return v.strip()
        return v

    def to_spec(self) -> ModelSpec:
        return ModelSpec(
            id=self.id,
            content_type=self.content_type,
            cost=self.cost,
            quality=self.quality,
            avg_latency_ms=self.avg_latency_ms,
        )


class ModelOverrideSettings(_Settings):
    """Schema for per-model template/path overrides."""

    request_template: str | None = None
    response_path: str | None = None


class ProviderSettings(_Settings):
    """Schema for one provider entry."""

    name: str = Field(min_length=1)
    kind: str | None = None
    api_key: SecretStr | None = None
    models: list[ModelSettings] = Field(default_factory=list)
    base_url: str | None = None
    health_check_path: str | None = None
    auth_header: str = DEFAULT_AUTH_HEADER
    auth_scheme: str = DEFAULT_AUTH_SCHEME
    request_template: str | None = None
    response_path: str | None = None
    embedding_url: str | None = None
    model_overrides: dict[str, ModelOverrideSettings] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _custom_requires_base_url(self) -> ProviderSettings:
        kind = (self.kind or self.name).lower()
        if kind in CUSTOM_PROVIDER_KINDS and not self.base_url:
            raise ValueError(f"custom provider {self.name!r} requires base_url")
        return self

    def to_spec(self) -> ProviderSpec:
        return ProviderSpec(
            name=self.name,
            kind=self.kind,
            api_key=self.api_key.get_secret_value() if self.api_key else None,
            models=tuple(m.to_spec() for m in self.models),
            base_url=self.base_url,
            health_check_path=self.health_check_path,
            auth_header=self.auth_header,
            auth_scheme=self.auth_scheme,
            request_template=self.request_template,
            response_path=self.response_path,
            embedding_url=self.embedding_url,
            model_overrides={
                model_id: ModelOverride(
                    request_template=o.request_template,
                    response_path=o.response_path,
                )
                for model_id, o in self.model_overrides.items()
            },
        )


class ConfigSettings(_Settings):
    """Schema for a whole configuration file."""

    providers: list[ProviderSettings]
    use_mock: bool = False
    request_timeout_s: float = Field(default=DEFAULT_TIMEOUT_S, gt=0)
    health_ttl_s: float = Field(default=HEALTH_CACHE_TTL_S, ge=0)


_PROVIDERS_ADAPTER = TypeAdapter(list[ProviderSettings])


def _config_error(e: ValidationError) -> ConfigurationError:
    first = e.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    detail = f"{location}: {first['msg']}" if location else first["msg"]
    return ConfigurationError(
        f"Invalid provider configuration ({e.error_count()} error(s)); {detail}",
        hint="Each provider needs a name and models with id, type, cost and quality.",
    )


def load_catalog(data: Sequence[Mapping[str, Any]]) -> tuple[ProviderSpec, ...]:
    """Validate raw provider mappings and return immutable ProviderSpecs.

    Raises:
        ConfigurationError: If any entry is malformed.
    """
    try:
        settings = _PROVIDERS_ADAPTER.validate_python(list(data))
    except ValidationError as e:
        raise _config_error(e) from e
    return tuple(s.to_spec() for s in settings)


# --- Runtime config ---


@dataclass(frozen=True)
class Config:
    """Immutable configuration for an Orchestrator.

    API keys for SDK-backed providers are auto-resolved from standard
    environment variables (``OPENAI_API_KEY``, ``GEMINI_API_KEY``,
    ``ANTHROPIC_API_KEY``) and otherwise from ``<NAME>_API_KEY``.

    Example:
        config = Config(providers=load_catalog([...]))
    """

    providers: tuple[ProviderSpec, ...]
    #: Route every provider to the in-process mock adapter.
    use_mock: bool = False
    request_timeout_s: float = DEFAULT_TIMEOUT_S
    health_ttl_s: float = HEALTH_CACHE_TTL_S

    def __post_init__(self) -> None:
        """Auto-resolve API keys and validate configuration."""
        if self.request_timeout_s <= 0:
            raise ConfigurationError(
                f"request_timeout_s must be > 0, got {self.request_timeout_s}"
            )
        if self.health_ttl_s < 0:
            raise ConfigurationError(
                f"health_ttl_s must be >= 0, got {self.health_ttl_s}",
                hint="This controls how long a health probe result is reused.",
            )

        resolved: list[ProviderSpec] = []
        for spec in self.providers:
            if spec.api_key is None:
                env_key = os.environ.get(api_key_env_var(spec.name, spec.kind))
                if env_key:
                    spec = replace(spec, api_key=env_key)
            if (
                not self.use_mock
                and spec.adapter_kind in SDK_PROVIDER_KINDS
                and not spec.api_key
            ):
                env_var = api_key_env_var(spec.name, spec.kind)
                raise ConfigurationError(
                    f"API key required for {spec.name}",
                    hint=f"Set {env_var} environment variable or pass api_key=...",
                )
            resolved.append(spec)
        object.__setattr__(self, "providers", tuple(resolved))

        # Duplicate names are rejected here rather than at request time.
        Catalog(self.providers)

    @property
    def catalog(self) -> Catalog:
        return Catalog(self.providers)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Config:
        """Build a Config from a raw mapping such as a parsed config file."""
        try:
            settings = ConfigSettings.model_validate(dict(data))
        except ValidationError as e:
            raise _config_error(e) from e
        return cls(
            providers=tuple(p.to_spec() for p in settings.providers),
            use_mock=settings.use_mock,
            request_timeout_s=settings.request_timeout_s,
            health_ttl_s=settings.health_ttl_s,
        )

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"Config(providers={[p.name for p in self.providers]!r}, "
            f"use_mock={self.use_mock}, request_timeout_s={self.request_timeout_s})"
        )

    __repr__ = __str__


def load_config(path: str | os.PathLike[str]) -> Config:
    """Load a Config from a ``.json`` or ``.toml`` file.

    Raises:
        ConfigurationError: If the file is missing, unreadable, or invalid.
    """
    file_path = Path(path)
    try:
        raw = file_path.read_bytes()
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {file_path}: {e}") from e

    suffix = file_path.suffix.lower()
    try:
        if suffix == ".toml":
            data = tomllib.loads(raw.decode("utf-8"))
        elif suffix == ".json":
            data = json.loads(raw)
        else:
            raise ConfigurationError(
                f"Unsupported config file type: {file_path.suffix!r}",
                hint="Use a .json or .toml file.",
            )
    except (tomllib.TOMLDecodeError, json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Cannot parse config file {file_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {file_path} must contain an object")
    return Config.from_mapping(data)
