"""Generate requests: what the caller wants produced and how to rank providers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from switchyard.catalog import ContentType, Quality
from switchyard.errors import ConfigurationError

Strategy = Literal["cost", "latency", "quality"]
STRATEGIES: tuple[Strategy, ...] = ("cost", "latency", "quality")


@dataclass(frozen=True)
class GenerateRequest:
    """A content-generation request.

    ``content_type`` and ``quality`` accept enum members or their string
    values; both are normalized to enums.

    Example:
        request = GenerateRequest(content_type="text", prompt="Hi", strategy="latency")
    """

    content_type: ContentType
    prompt: str
    strategy: Strategy = "cost"
    #: Exact quality tier filter; no coercion between tiers.
    quality: Quality | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    system_instruction: str | None = None
    #: Opaque key for stateful multi-turn use with adapters that keep sessions.
    session_id: str | None = None

    def __post_init__(self) -> None:
        """Normalize enums and validate generation parameters."""
        try:
            object.__setattr__(self, "content_type", ContentType(self.content_type))
        except ValueError as e:
            raise ConfigurationError(
                f"Unknown content type: {self.content_type!r}",
                hint=f"Supported types: {', '.join(t.value for t in ContentType)}",
            ) from e

        if self.quality is not None:
            try:
                object.__setattr__(self, "quality", Quality(self.quality))
            except ValueError as e:
                raise ConfigurationError(
                    f"Unknown quality tier: {self.quality!r}",
                    hint="Use 'low', 'medium' or 'high'.",
                ) from e

        if self.strategy not in STRATEGIES:
            raise ConfigurationError(
                f"Unknown strategy: {self.strategy!r}",
                hint="Use 'cost', 'latency' or 'quality'.",
            )
        if not isinstance(self.prompt, str):
            raise ConfigurationError(
                f"prompt must be a string, got {type(self.prompt).__name__}"
            )
        if self.temperature is not None and self.temperature < 0:
            raise ConfigurationError(
                f"temperature must be >= 0, got {self.temperature}"
            )
        if self.top_p is not None and not 0 <= self.top_p <= 1:
            raise ConfigurationError(f"top_p must be within [0, 1], got {self.top_p}")
        if self.max_tokens is not None and (
            not isinstance(self.max_tokens, int) or self.max_tokens <= 0
        ):
            raise ConfigurationError(
                "max_tokens must be a positive integer",
                hint="Pass max_tokens=1024 or omit it to use the provider default.",
            )

    def fields(self) -> dict[str, Any]:
        """Return request fields for payloads, omitting unset optional values."""
        out: dict[str, Any] = {
            "type": self.content_type.value,
            "prompt": self.prompt,
        }
        if self.system_instruction is not None:
            out["systemPrompt"] = self.system_instruction
        if self.temperature is not None:
            out["temperature"] = self.temperature
        if self.max_tokens is not None:
            out["maxTokens"] = self.max_tokens
        if self.top_p is not None:
            out["topP"] = self.top_p
        if self.session_id is not None:
            out["sessionId"] = self.session_id
        return out
