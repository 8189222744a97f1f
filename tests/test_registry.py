"""Tests for SourceRegistry and AggregationConfig."""

from __future__ import annotations

import pytest
from conftest import StaticAdapter, make_descriptor

from library_search.application.search.config import AggregationConfig, ScoringWeights
from library_search.application.search.registry import SourceRegistry
from library_search.shared.exceptions import ConfigurationError, DuplicateSourceError, UnknownSourceError

# ============================================================
# SourceRegistry
# ============================================================


class TestSourceRegistry:
    def test_register_and_lookup(self):
        registry = SourceRegistry()
        registry.register(make_descriptor("a"), StaticAdapter())
        assert "a" in registry
        assert len(registry) == 1
        assert registry.descriptor("a").id == "a"

    def test_duplicate_rejected(self):
        registry = SourceRegistry()
        registry.register(make_descriptor("a"), StaticAdapter())
        with pytest.raises(DuplicateSourceError):
            registry.register(make_descriptor("a"), StaticAdapter())

    def test_replace(self):
        registry = SourceRegistry()
        registry.register(make_descriptor("a"), StaticAdapter())
        new_adapter = StaticAdapter()
        registry.register(make_descriptor("a", priority=5), new_adapter, replace=True)
        assert registry.get("a").adapter is new_adapter
        assert len(registry) == 1

    def test_unregister(self):
        registry = SourceRegistry()
        registry.register(make_descriptor("a"), StaticAdapter())
        registry.unregister("a")
        assert "a" not in registry
        with pytest.raises(UnknownSourceError):
            registry.unregister("a")

    def test_snapshot_is_isolated_from_later_changes(self):
        registry = SourceRegistry()
        registry.register(make_descriptor("a"), StaticAdapter())
        snapshot = registry.snapshot()
        registry.register(make_descriptor("b"), StaticAdapter())
        registry.unregister("a")
        assert [s.id for s in snapshot] == ["a"]
        assert registry.ids() == ["b"]

    def test_snapshot_priority_order_is_stable(self):
        registry = SourceRegistry()
        for source_id, priority in [("low", 0), ("high", 10), ("mid1", 5), ("mid2", 5)]:
            registry.register(make_descriptor(source_id, priority=priority), StaticAdapter())
        assert registry.ids() == ["high", "mid1", "mid2", "low"]

    def test_select(self):
        registry = SourceRegistry()
        registry.register(make_descriptor("a"), StaticAdapter())
        registry.register(make_descriptor("b", priority=1), StaticAdapter())
        assert [s.id for s in registry.select(["a", "b", "a"])] == ["b", "a"]
        with pytest.raises(UnknownSourceError):
            registry.select(["a", "missing"])


# ============================================================
# AggregationConfig
# ============================================================


class TestAggregationConfig:
    def test_defaults(self):
        config = AggregationConfig()
        assert config.default_timeout == 10.0
        assert config.title_similarity_threshold == 0.85
        assert config.scoring == ScoringWeights(10.0, 8.0, 6.0, 4.0, 15.0)

    def test_from_dict_coerces_strings(self):
        config = AggregationConfig.from_dict(
            {"default_timeout": "2.5", "enrichment_enabled": "false", "max_records_per_source": "10", "email": "x"}
        )
        assert config.default_timeout == 2.5
        assert config.enrichment_enabled is False
        assert config.max_records_per_source == 10

    def test_weights_flat_and_nested(self):
        config = AggregationConfig.from_dict({"scoring": {"title": 20}, "isbn_exact_weight": 30})
        assert config.scoring.title == 20.0
        assert config.scoring.isbn_exact == 30.0
        assert config.scoring.author == 8.0

    def test_empty_mapping(self):
        assert AggregationConfig.from_dict(None) == AggregationConfig()

    @pytest.mark.parametrize(
        "bad",
        [{"default_timeout": 0}, {"title_similarity_threshold": 1.5}, {"default_timeout": "soon"}],
    )
    def test_invalid_values(self, bad):
        with pytest.raises(ConfigurationError):
            AggregationConfig.from_dict(bad)

    def test_to_dict_round_trip(self):
        config = AggregationConfig(default_timeout=3.0)
        assert AggregationConfig.from_dict(config.to_dict()) == config
