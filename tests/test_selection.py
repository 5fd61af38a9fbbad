"""Candidate selection: filtering and strategy ordering."""

from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st
import pytest

from switchyard.catalog import Catalog, ContentType, ModelSpec, ProviderSpec, Quality
from switchyard.request import GenerateRequest
from switchyard.selection import select_candidates
from tests.conftest import mock_provider, text_model

pytestmark = pytest.mark.unit


def _labels(catalog: Catalog, **request_kwargs: object) -> list[str]:
    request = GenerateRequest(content_type="text", prompt="hi", **request_kwargs)
    return [c.provider.name for c in select_candidates(catalog, request)]


# =============================================================================
# Strategy Ordering
# =============================================================================


def test_cost_strategy_orders_cheapest_first(three_providers) -> None:
    assert _labels(Catalog(three_providers), strategy="cost") == ["A", "C", "B"]


def test_quality_strategy_orders_best_tier_first(three_providers) -> None:
    assert _labels(Catalog(three_providers), strategy="quality") == ["B", "A", "C"]


def test_latency_strategy_orders_fastest_first(three_providers) -> None:
    assert _labels(Catalog(three_providers), strategy="latency") == ["C", "B", "A"]


def test_cost_order_ignores_catalog_order() -> None:
    catalog = Catalog(
        (
            mock_provider("C", text_model("c", 1.0)),
            mock_provider("A", text_model("a", 0.0)),
            mock_provider("B", text_model("b", 0.1)),
        )
    )
    assert _labels(catalog, strategy="cost") == ["A", "B", "C"]


def test_quality_order_puts_high_then_medium_then_low() -> None:
    catalog = Catalog(
        (
            mock_provider("A", text_model("a", 0.0, "low")),
            mock_provider("B", text_model("b", 0.0, "high")),
            mock_provider("C", text_model("c", 0.0, "medium")),
        )
    )
    assert _labels(catalog, strategy="quality") == ["B", "C", "A"]


def test_latency_strategy_sorts_unknown_latency_last() -> None:
    catalog = Catalog(
        (
            mock_provider("unknown", text_model("u", 0.01)),
            mock_provider("slow", text_model("s", 0.01, latency=9000)),
            mock_provider("fast", text_model("f", 0.01, latency=10)),
        )
    )
    assert _labels(catalog, strategy="latency") == ["fast", "slow", "unknown"]


def test_ties_keep_catalog_order() -> None:
    catalog = Catalog(
        (
            mock_provider("first", text_model("m1", 0.01, "high")),
            mock_provider("second", text_model("m2", 0.01, "high")),
            mock_provider("third", text_model("m3", 0.01, "high")),
        )
    )
    for strategy in ("cost", "latency", "quality"):
        assert _labels(catalog, strategy=strategy) == ["first", "second", "third"]


def test_models_of_one_provider_are_ranked_individually() -> None:
    catalog = Catalog(
        (
            mock_provider("p", text_model("p-big", 0.09), text_model("p-small", 0.01)),
            mock_provider("q", text_model("q-mid", 0.05)),
        )
    )
    request = GenerateRequest(content_type="text", prompt="hi")
    assert [c.label for c in select_candidates(catalog, request)] == [
        "p/p-small",
        "q/q-mid",
        "p/p-big",
    ]


# =============================================================================
# Filtering
# =============================================================================


def test_quality_filter_is_exact_match(three_providers) -> None:
    assert _labels(Catalog(three_providers), quality="high") == ["B"]
    assert _labels(Catalog(three_providers), quality="low") == ["C"]


def test_content_type_filter_excludes_other_types() -> None:
    image = ModelSpec(id="img", content_type=ContentType.IMAGE, cost=0.0, quality=Quality.HIGH)
    catalog = Catalog(
        (
            ProviderSpec(name="pics", kind="mock", models=(image,)),
            mock_provider("words", text_model("t", 1.0)),
        )
    )
    assert _labels(catalog) == ["words"]


def test_no_eligible_model_yields_empty_list(three_providers) -> None:
    request = GenerateRequest(content_type="video", prompt="a cat")
    assert select_candidates(Catalog(three_providers), request) == []


def test_empty_catalog_yields_empty_list() -> None:
    request = GenerateRequest(content_type="text", prompt="hi")
    assert select_candidates(Catalog(()), request) == []


# =============================================================================
# Properties
# =============================================================================

_models = st.lists(
    st.tuples(
        st.floats(min_value=0, max_value=100, allow_nan=False),
        st.sampled_from(list(Quality)),
        st.one_of(st.none(), st.floats(min_value=0, max_value=10_000, allow_nan=False)),
    ),
    max_size=8,
)


def _catalog_from(models: list[tuple[float, Quality, float | None]]) -> Catalog:
    return Catalog(
        tuple(
            mock_provider(f"p{i}", text_model(f"m{i}", cost, quality.value, latency))
            for i, (cost, quality, latency) in enumerate(models)
        )
    )


@settings(max_examples=50)
@given(models=_models)
def test_cost_ordering_is_non_decreasing_and_complete(models) -> None:
    catalog = _catalog_from(models)
    ranked = select_candidates(catalog, GenerateRequest(content_type="text", prompt="x"))

    costs = [c.model.cost for c in ranked]
    assert costs == sorted(costs)
    assert len(ranked) == len(models)


@settings(max_examples=50)
@given(models=_models)
def test_latency_ordering_places_known_before_unknown(models) -> None:
    catalog = _catalog_from(models)
    ranked = select_candidates(
        catalog, GenerateRequest(content_type="text", prompt="x", strategy="latency")
    )

    latencies = [c.model.avg_latency_ms for c in ranked]
    known = [v for v in latencies if v is not None]
    assert latencies[: len(known)] == sorted(known)
    assert all(v is None for v in latencies[len(known) :])


@settings(max_examples=50)
@given(models=_models, tier=st.sampled_from(list(Quality)))
def test_quality_filter_never_returns_other_tiers(models, tier) -> None:
    catalog = _catalog_from(models)
    ranked = select_candidates(
        catalog, GenerateRequest(content_type="text", prompt="x", quality=tier)
    )
    assert all(c.model.quality is tier for c in ranked)
