"""
Application DI Container (dependency-injector).

Wires configuration, the source registry, the enrichment providers and the
aggregator. Environment variables are read only by ``load_settings_from_env``.

Usage::

    from library_search.container import ApplicationContainer, load_settings_from_env

    container = ApplicationContainer()
    container.config.from_dict(load_settings_from_env())

    aggregator = container.aggregator()
    result = await aggregator.search(Query(text="pride and prejudice"))

    # In tests, override any provider:
    container.registry.override(providers.Object(SourceRegistry([fake_source])))
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any

from dependency_injector import containers, providers

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

# Environment variable -> settings key
ENV_SETTINGS: dict[str, str] = {
    "LIBRARY_SEARCH_CONTACT_EMAIL": "email",
    "LIBRARY_SEARCH_SOURCES": "sources_file",
    "LIBRARY_SEARCH_TIMEOUT": "default_timeout",
    "LIBRARY_SEARCH_ENRICH": "enrichment_enabled",
    "LIBRARY_SEARCH_ENRICHMENT_BUDGET": "enrichment_budget",
    "GOOGLE_BOOKS_API_KEY": "google_books_api_key",
    "SEMANTIC_SCHOLAR_API_KEY": "semantic_scholar_api_key",
    "LIBRARY_SEARCH_LOG_LEVEL": "log_level",
}


def load_settings_from_env(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Collect settings from environment variables; unset or blank ones are left out."""
    environ = os.environ if environ is None else environ
    settings: dict[str, Any] = {}
    for env_name, key in ENV_SETTINGS.items():
        value = environ.get(env_name, "").strip()
        if value:
            settings[key] = value
    return settings


def _create_aggregation_config(settings: dict[str, Any] | None) -> object:
    from library_search.application.search.config import AggregationConfig

    return AggregationConfig.from_dict(settings)


def _create_registry(settings: dict[str, Any] | None) -> object:
    """Registry from the YAML catalogue when configured, built-in sources otherwise."""
    from library_search.application.search.registry import SourceRegistry
    from library_search.infrastructure.sources.catalog import build_sources, load_catalogue

    settings = settings or {}
    entries = load_catalogue(settings["sources_file"]) if settings.get("sources_file") else None
    sources = build_sources(entries, settings)
    logger.info(f"Source registry: {', '.join(s.id for s in sources) or '(empty)'}")
    return SourceRegistry(sources)


def _create_enrichment_providers(email: str | None, semantic_scholar_api_key: str | None) -> list[object]:
    from library_search.infrastructure.enrichment import (
        CrossRefCitationProvider,
        OpenAlexCitationProvider,
        OpenAlexClient,
        OpenAlexPdfProvider,
        SemanticScholarCitationProvider,
        UnpaywallPdfProvider,
    )

    openalex = OpenAlexClient(email=email)
    return [
        CrossRefCitationProvider(email=email),
        OpenAlexCitationProvider(openalex),
        SemanticScholarCitationProvider(api_key=semantic_scholar_api_key),
        UnpaywallPdfProvider(email=email),
        OpenAlexPdfProvider(openalex),
    ]


def _create_overlay(providers_: list[Any], config: Any) -> object:
    from library_search.application.enrichment.overlay import EnrichmentOverlay

    return EnrichmentOverlay(
        providers_,
        provider_timeout=config.provider_timeout,
        min_interval=config.provider_min_interval,
        max_in_flight=config.enrichment_max_in_flight,
    )


def _create_aggregator(registry: Any, config: Any, overlay: Any) -> object:
    from library_search.application.search.aggregator import LibrarySearchAggregator

    return LibrarySearchAggregator(registry, config, overlay=overlay)


class ApplicationContainer(containers.DeclarativeContainer):
    """Central DI container for library search.

    - ``aggregation_config``: AggregationConfig built from ``config``
    - ``registry``: SourceRegistry (YAML catalogue or built-in sources)
    - ``enrichment_providers``: citation and PDF providers
    - ``overlay``: EnrichmentOverlay over those providers
    - ``aggregator``: LibrarySearchAggregator
    """

    config = providers.Configuration()

    aggregation_config = providers.Singleton(_create_aggregation_config, settings=config)

    registry = providers.Singleton(_create_registry, settings=config)

    enrichment_providers = providers.Singleton(
        _create_enrichment_providers,
        email=config.email,
        semantic_scholar_api_key=config.semantic_scholar_api_key,
    )

    overlay = providers.Singleton(
        _create_overlay,
        providers_=enrichment_providers,
        config=aggregation_config,
    )

    aggregator = providers.Singleton(
        _create_aggregator,
        registry=registry,
        config=aggregation_config,
        overlay=overlay,
    )


__all__ = ["ENV_SETTINGS", "ApplicationContainer", "load_settings_from_env"]
