"""Tests for the Claude-backed description enricher (API calls stubbed)."""

from __future__ import annotations

import asyncio
import json
from dataclasses import replace
from pathlib import Path

import pytest

from pbip_doc.enrichment.ai_descriptions import (
    MeasureDescriptionGenerator,
    build_prompt,
    is_heuristic,
    referenced_measures,
)
from pbip_doc.enrichment.descriptions import describe_measure
from pbip_doc.models import Measure, ProjectMetadata, ProjectModel, Relationship, Table


def _measure(name: str, formula: str, description: str | None = None) -> Measure:
    if description is None:
        description = describe_measure(name, formula)
    return Measure(name=name, table="Sales", formula=formula, description=description)


def _model(*measures: Measure) -> ProjectModel:
    return ProjectModel(
        metadata=ProjectMetadata(title="Contoso Sales"),
        measures=measures,
        tables=(
            Table(name="Sales", columns=("Amount", "CustomerID"), measure_count=len(measures)),
            Table(name="Customer", columns=("ID",), measure_count=0),
        ),
        relationships=(
            Relationship("Sales", "Customer", "CustomerID", "ID"),
            Relationship("Budget", "Calendar", "Date", "Date"),
        ),
    )


@pytest.fixture
def generator(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> MeasureDescriptionGenerator:
    gen = MeasureDescriptionGenerator(api_key="test-key", cache_path=tmp_path / "cache.json")
    gen.prompts = []

    def fake_ask(prompt: str) -> str:
        gen.prompts.append(prompt)
        return "  Revenue from all\n orders.  "

    monkeypatch.setattr(gen, "_ask", fake_ask)
    return gen


def test_prompt_carries_draft_columns_and_own_relationships() -> None:
    total = _measure("TotalSales", "SUM(Sales[Amount])")
    share = _measure("Share", "DIVIDE([TotalSales], 100)")
    model = _model(total, share)

    prompt = build_prompt(share, model)

    assert "Report: Contoso Sales" in prompt
    assert "Columns of Sales: Amount, CustomerID" in prompt
    assert "- Sales.CustomerID -> Customer.ID" in prompt
    assert "Budget" not in prompt
    assert "Uses measures: TotalSales" in prompt
    assert prompt.endswith("Draft description: Calculated measure: Share")


def test_referenced_measures_ignore_columns_and_self() -> None:
    total = _measure("TotalSales", "SUM(Sales[Amount]) + [TotalSales]")
    model = _model(total)

    assert referenced_measures(total, model) == []


def test_heuristic_descriptions_are_replaced(generator: MeasureDescriptionGenerator) -> None:
    model = _model(_measure("TotalSales", "SUM(Sales[Amount])"))

    enriched = asyncio.run(generator.enrich_model(model))

    assert enriched.measures[0].description == "Revenue from all orders."
    assert model.measures[0].description == "Calculates the total of Sales"
    assert enriched.tables == model.tables


def test_user_edited_descriptions_are_kept(generator: MeasureDescriptionGenerator) -> None:
    edited = _measure("TotalSales", "SUM(Sales[Amount])", description="Written by hand")
    model = _model(edited)

    enriched = asyncio.run(generator.enrich_model(model))

    assert not is_heuristic(edited)
    assert enriched.measures == model.measures
    assert generator.prompts == []


def test_cache_is_keyed_by_the_model_snapshot(generator: MeasureDescriptionGenerator, tmp_path: Path) -> None:
    model = _model(_measure("TotalSales", "SUM(Sales[Amount])"))

    asyncio.run(generator.enrich_model(model))
    asyncio.run(generator.enrich_model(model))
    assert len(generator.prompts) == 1

    relinked = replace(model, relationships=())
    asyncio.run(generator.enrich_model(relinked))
    assert len(generator.prompts) == 2

    cache = json.loads((tmp_path / "cache.json").read_text(encoding="utf-8"))
    assert list(cache.values()) == ["Revenue from all orders."] * 2


def test_api_failure_keeps_heuristic(monkeypatch: pytest.MonkeyPatch) -> None:
    gen = MeasureDescriptionGenerator(api_key="test-key")

    def failing(prompt: str) -> str:
        raise RuntimeError("rate limited")

    monkeypatch.setattr(gen, "_ask", failing)
    model = _model(_measure("Ratio", "DIVIDE(1, 2)"))

    enriched = asyncio.run(gen.enrich_model(model))

    assert enriched.measures[0].description == "Calculated measure: Ratio"
