"""Tests for the DI container and environment settings."""

from __future__ import annotations

from conftest import FakeCitationProvider, StaticAdapter, make_source
from dependency_injector import providers

from library_search.application.enrichment.overlay import EnrichmentOverlay
from library_search.application.search.aggregator import LibrarySearchAggregator
from library_search.application.search.registry import SourceRegistry
from library_search.container import ApplicationContainer, load_settings_from_env
from library_search.domain.entities import Query


class TestLoadSettingsFromEnv:
    def test_mapped_and_blank_values(self):
        settings = load_settings_from_env(
            {
                "LIBRARY_SEARCH_CONTACT_EMAIL": "me@example.com",
                "LIBRARY_SEARCH_TIMEOUT": "4",
                "GOOGLE_BOOKS_API_KEY": "   ",
                "UNRELATED": "x",
            }
        )
        assert settings == {"email": "me@example.com", "default_timeout": "4"}

    def test_empty_environment(self):
        assert load_settings_from_env({}) == {}


class TestApplicationContainer:
    def test_config_flows_into_aggregator(self):
        container = ApplicationContainer()
        container.config.from_dict({"default_timeout": "4", "enrichment_enabled": "false", "title_weight": 12})

        aggregator = container.aggregator()
        assert isinstance(aggregator, LibrarySearchAggregator)
        assert aggregator.config.default_timeout == 4.0
        assert aggregator.config.enrichment_enabled is False
        assert aggregator.scorer.weights.title == 12.0

    def test_singletons(self):
        container = ApplicationContainer()
        assert container.aggregator() is container.aggregator()
        assert container.registry() is container.aggregator().registry
        assert container.overlay() is container.aggregator().overlay

    def test_unconfigured_uses_builtin_sources(self):
        container = ApplicationContainer()
        assert container.registry().ids() == ["loc_sru", "loc_json", "open_library", "google_books", "openalex"]

    def test_registry_from_catalogue_file(self, tmp_path):
        path = tmp_path / "sources.yaml"
        path.write_text("- id: ol\n  adapter: open_library\n  priority: 4\n", encoding="utf-8")
        container = ApplicationContainer()
        container.config.from_dict({"sources_file": str(path)})
        assert container.registry().ids() == ["ol"]

    def test_enrichment_providers(self):
        container = ApplicationContainer()
        container.config.from_dict({"email": "me@example.com"})
        names = [p.name for p in container.enrichment_providers()]
        assert names == ["crossref", "openalex", "semantic_scholar", "unpaywall", "openalex_pdf"]
        assert isinstance(container.overlay(), EnrichmentOverlay)

    async def test_override_for_tests(self):
        container = ApplicationContainer()
        fake = SourceRegistry([make_source("alpha", StaticAdapter([{"key": "a1", "title": "Alpha Book"}]))])
        container.registry.override(providers.Object(fake))
        container.enrichment_providers.override(providers.Object([FakeCitationProvider(counts={"alpha:a1": 3})]))
        container.config.from_dict({"provider_min_interval": 0})

        result = await container.aggregator().search(Query(text="alpha"))
        [record] = result.records
        assert record.citation_info.count == 3
