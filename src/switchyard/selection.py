"""Candidate selection: filter the catalog and rank eligible models."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from switchyard.catalog import Candidate, Catalog
    from switchyard.request import GenerateRequest, Strategy


def _cost_key(candidate: Candidate) -> float:
    return candidate.model.cost


def _latency_key(candidate: Candidate) -> float:
    latency = candidate.model.avg_latency_ms
    return math.inf if latency is None else latency


def _quality_key(candidate: Candidate) -> int:
    return candidate.model.quality.rank


_SORT_KEYS: dict[Strategy, Callable[[Candidate], float]] = {
    "cost": _cost_key,
    "latency": _latency_key,
    "quality": _quality_key,
}


def select_candidates(catalog: Catalog, request: GenerateRequest) -> list[Candidate]:
    """Return eligible (provider, model) pairs for *request*, best first.

    Eligibility is decided by content type alone, narrowed by an exact
    quality match when the request sets one. ``sorted`` is stable, so ties
    keep catalog order under every strategy.

    An empty list means no suitable provider; it is not an error.
    """
    candidates = [
        c for c in catalog.entries() if c.model.content_type == request.content_type
    ]
    if request.quality is not None:
        candidates = [c for c in candidates if c.model.quality == request.quality]
    return sorted(candidates, key=_SORT_KEYS[request.strategy])
