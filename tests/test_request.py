"""Request and catalog value objects."""

from __future__ import annotations

from dataclasses import replace

import pytest

from switchyard.catalog import (
    Candidate,
    Catalog,
    ContentType,
    ModelOverride,
    ProviderSpec,
    Quality,
)
from switchyard.errors import ConfigurationError
from switchyard.request import GenerateRequest
from tests.conftest import mock_provider, text_model

pytestmark = pytest.mark.unit


def test_strings_are_normalized_to_enums() -> None:
    request = GenerateRequest(content_type="image", prompt="x", quality="high")

    assert request.content_type is ContentType.IMAGE
    assert request.quality is Quality.HIGH
    assert request.strategy == "cost"


@pytest.mark.parametrize(
    ("kwargs", "fragment"),
    [
        ({"content_type": "smell"}, "content type"),
        ({"quality": "premium"}, "quality"),
        ({"strategy": "random"}, "strategy"),
        ({"temperature": -0.1}, "temperature"),
        ({"top_p": 1.5}, "top_p"),
        ({"max_tokens": 0}, "max_tokens"),
    ],
)
def test_invalid_requests_are_rejected(kwargs: dict, fragment: str) -> None:
    params = {"content_type": "text", "prompt": "x", **kwargs}

    with pytest.raises(ConfigurationError, match=fragment):
        GenerateRequest(**params)


def test_fields_omit_unset_values() -> None:
    assert GenerateRequest(content_type="text", prompt="p").fields() == {
        "type": "text",
        "prompt": "p",
    }
    assert GenerateRequest(
        content_type="text", prompt="p", max_tokens=10, system_instruction="s"
    ).fields() == {"type": "text", "prompt": "p", "maxTokens": 10, "systemPrompt": "s"}


def test_quality_rank_orders_high_first() -> None:
    assert sorted(Quality, key=lambda q: q.rank) == [
        Quality.HIGH,
        Quality.MEDIUM,
        Quality.LOW,
    ]


def test_catalog_entries_follow_declaration_order() -> None:
    catalog = Catalog(
        (
            mock_provider("x", text_model("x1", 1), text_model("x2", 1)),
            mock_provider("y", text_model("y1", 1)),
        )
    )

    assert [c.label for c in catalog.entries()] == ["x/x1", "x/x2", "y/y1"]
    assert catalog.get("y").name == "y"
    assert catalog.get("z") is None


def test_provider_specs_and_candidates_are_hashable() -> None:
    spec = ProviderSpec(
        name="c",
        kind="custom",
        base_url="http://localhost:8000",
        models=(text_model("m", 1),),
        model_overrides={"m": ModelOverride(response_path="out")},
    )
    candidate = Candidate(provider=spec, model=spec.models[0])

    assert hash(spec) == hash(replace(spec, model_overrides={}))
    assert {candidate, Candidate(provider=spec, model=spec.models[0])} == {candidate}
