"""Tests for kaleidoscope.selection module."""

from __future__ import annotations

import random

from kaleidoscope.selection import LaunchUnit, ProviderCatalog, SelectionTable, expand_labels


def test_catalog_preserves_order(catalog: ProviderCatalog):
    assert catalog.providers == ("OpenAI", "github-copilot")
    assert catalog.models_for("OpenAI") == ("gpt-5", "gpt-4.1", "o3")
    assert catalog.models_for("missing") == ()
    assert catalog.index_of("github-copilot") == 1
    assert catalog.index_of("missing") == 0


def test_expand_labels_numbers_duplicates():
    assert expand_labels({"A": 2, "B": 1}) == [("A", "A"), ("A-2", "A"), ("B", "B")]


def test_expand_labels_skips_taken():
    assert expand_labels({"A": 2}, taken={"A", "A-2"}) == [("A-3", "A"), ("A-4", "A")]


def test_count_never_negative(catalog: ProviderCatalog):
    table = SelectionTable(catalog)
    rng = random.Random(7)
    for _ in range(200):
        if rng.random() < 0.5:
            table.increment("OpenAI", "o3")
        else:
            table.decrement("OpenAI", "o3")
        assert table.count("OpenAI", "o3") >= 0


def test_selected_follows_catalog_order(catalog: ProviderCatalog):
    table = SelectionTable(catalog)
    table.increment("OpenAI", "o3")
    table.increment("OpenAI", "gpt-5")
    table.increment("OpenAI", "gpt-5")
    table.increment("github-copilot", "gpt-5")

    assert table.selected("OpenAI") == [("gpt-5", 2), ("o3", 1)]
    assert table.total("OpenAI") == 3
    assert table.total("github-copilot") == 1


def test_expand_builds_launch_units(catalog: ProviderCatalog):
    table = SelectionTable(catalog)
    table.increment("OpenAI", "gpt-5")
    table.increment("OpenAI", "gpt-5")

    units = table.expand("OpenAI")
    assert units == [
        LaunchUnit(label="gpt-5", base_model="gpt-5", provider="OpenAI"),
        LaunchUnit(label="gpt-5-2", base_model="gpt-5", provider="OpenAI"),
    ]
    assert units[1].model_id == "OpenAI/gpt-5"


def test_defaults_round_trip(catalog: ProviderCatalog):
    table = SelectionTable(catalog)
    table.apply_defaults("OpenAI", ["o3", "o3", "gpt-5"])
    table.apply_defaults("github-copilot", ["claude-sonnet-4"])

    assert table.as_defaults() == {
        "OpenAI": ["gpt-5", "o3", "o3"],
        "github-copilot": ["claude-sonnet-4"],
    }


def test_stale_default_model_is_kept_last(catalog: ProviderCatalog):
    table = SelectionTable(catalog)
    table.apply_defaults("OpenAI", ["retired-model", "gpt-5"])
    assert table.selected("OpenAI") == [("gpt-5", 1), ("retired-model", 1)]
