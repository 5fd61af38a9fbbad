"""Switchyard: route content generation across AI providers with fallback.

Public API:
    - Orchestrator: Ranked selection, fallback, and job polling
    - GenerateRequest: What to produce and how to rank providers
    - Config / load_config / load_catalog: Provider catalog configuration
"""

from __future__ import annotations

import logging

from switchyard.adapters import Adapter, AdapterCapabilities, build_adapter
from switchyard.catalog import (
    Candidate,
    Catalog,
    ContentType,
    ModelOverride,
    ModelSpec,
    ProviderSpec,
    Quality,
)
from switchyard.config import Config, load_catalog, load_config
from switchyard.errors import (
    APIError,
    CapabilityError,
    ConfigurationError,
    SwitchyardError,
    TemplateError,
)
from switchyard.health import HealthGate
from switchyard.jobs import JobRegistry
from switchyard.orchestrator import Orchestrator
from switchyard.request import GenerateRequest
from switchyard.result import GenerateResult, JobStatusResult, StreamResult
from switchyard.selection import select_candidates

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("switchyard-ai")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("switchyard").addHandler(logging.NullHandler())

__all__ = [
    "APIError",
    "Adapter",
    "AdapterCapabilities",
    "Candidate",
    "CapabilityError",
    "Catalog",
    "Config",
    "ConfigurationError",
    "ContentType",
    "GenerateRequest",
    "GenerateResult",
    "HealthGate",
    "JobRegistry",
    "JobStatusResult",
    "ModelOverride",
    "ModelSpec",
    "Orchestrator",
    "ProviderSpec",
    "Quality",
    "StreamResult",
    "SwitchyardError",
    "TemplateError",
    "build_adapter",
    "load_catalog",
    "load_config",
    "select_candidates",
]
