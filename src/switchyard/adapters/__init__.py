"""Adapter implementations and the factory that maps providers onto them."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .base import Adapter, AdapterCapabilities
from .custom import CustomAdapter
from .mock import MockAdapter

if TYPE_CHECKING:
    from switchyard.catalog import ProviderSpec
    from switchyard.config import Config

logger = logging.getLogger(__name__)


def build_adapter(spec: ProviderSpec, config: Config) -> Adapter | None:
    """Build the adapter for *spec*, or ``None`` when no adapter family matches.

    SDK adapters import their vendor package lazily, on first call.
    """
    if config.use_mock:
        return MockAdapter(name=spec.name)

    kind = spec.adapter_kind
    if spec.is_custom:
        return CustomAdapter(
            spec,
            timeout_s=config.request_timeout_s,
            health_ttl_s=config.health_ttl_s,
        )
    if kind == "mock":
        return MockAdapter(name=spec.name)

    # Config has already rejected SDK providers without a key.
    api_key = spec.api_key or ""

    if kind == "openai":
        from .openai import OpenAIAdapter

        return OpenAIAdapter(api_key, name=spec.name)

    if kind in ("gemini", "google"):
        from .gemini import GeminiAdapter

        return GeminiAdapter(api_key, name=spec.name)

    if kind == "anthropic":
        from .anthropic import AnthropicAdapter

        return AnthropicAdapter(api_key, name=spec.name)

    logger.warning("No adapter found for provider: %s", spec.name)
    return None


__all__ = [
    "Adapter",
    "AdapterCapabilities",
    "CustomAdapter",
    "MockAdapter",
    "build_adapter",
]
