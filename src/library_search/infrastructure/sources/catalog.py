"""
Source catalogue - Which catalogs to search, loaded from YAML.

A catalogue is a list of entries:

    - id: loc_sru
      adapter: sru_marc
      display_name: Library of Congress
      country: United States
      city: Washington, D.C.
      institution: Library of Congress
      timeout: 8
      priority: 10
      options:
        base_url: http://lx2.loc.gov:210/LCDB

``adapter`` picks a factory from ADAPTERS; ``options`` are passed to it.
When no file is configured the built-in DEFAULT_SOURCES are used.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from library_search.domain.entities import AdapterFamily, RegisteredSource, SourceDescriptor
from library_search.shared.exceptions import ConfigurationError, ErrorContext

from .google_books import GoogleBooksAdapter
from .loc import LocSearchAdapter
from .open_library import OpenLibraryAdapter
from .openalex_works import OpenAlexWorksAdapter
from .sru_marc import SruMarcAdapter

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from library_search.domain.ports import SourceAdapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdapterSpec:
    family: AdapterFamily
    factory: Callable[..., SourceAdapter]
    # Settings keys injected as keyword arguments, e.g. {"api_key": "google_books_api_key"}
    settings: Mapping[str, str]


ADAPTERS: dict[str, AdapterSpec] = {
    "open_library": AdapterSpec(AdapterFamily.JSON_CATALOG, OpenLibraryAdapter, {}),
    "google_books": AdapterSpec(AdapterFamily.JSON_CATALOG, GoogleBooksAdapter, {"api_key": "google_books_api_key"}),
    "loc_json": AdapterSpec(AdapterFamily.JSON_CATALOG, LocSearchAdapter, {}),
    "sru_marc": AdapterSpec(AdapterFamily.MARC21, SruMarcAdapter, {}),
    "openalex_works": AdapterSpec(AdapterFamily.BIBLIOGRAPHIC_API, OpenAlexWorksAdapter, {"email": "email"}),
}


DEFAULT_SOURCES: list[dict[str, Any]] = [
    {
        "id": "loc_sru",
        "adapter": "sru_marc",
        "display_name": "Library of Congress",
        "country": "United States",
        "city": "Washington, D.C.",
        "institution": "Library of Congress",
        "priority": 10,
        "options": {"base_url": "http://lx2.loc.gov:210/LCDB", "service_name": "LOC SRU"},
    },
    {
        "id": "loc_json",
        "adapter": "loc_json",
        "display_name": "Library of Congress (loc.gov)",
        "country": "United States",
        "city": "Washington, D.C.",
        "institution": "Library of Congress",
        "priority": 5,
    },
    {
        "id": "open_library",
        "adapter": "open_library",
        "display_name": "Open Library",
        "country": "United States",
        "city": "San Francisco",
        "institution": "Internet Archive",
        "priority": 3,
    },
    {
        "id": "google_books",
        "adapter": "google_books",
        "display_name": "Google Books",
        "priority": 2,
    },
    {
        "id": "openalex",
        "adapter": "openalex_works",
        "display_name": "OpenAlex",
        "priority": 1,
    },
]


def load_catalogue(path: str | Path) -> list[dict[str, Any]]:
    """Read a YAML source catalogue (a list, or a mapping with a ``sources`` list)."""
    path = Path(path).expanduser()
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(
            f"Source catalogue not found: {path}",
            context=ErrorContext(input_value=str(path), suggestion="Check LIBRARY_SEARCH_SOURCES"),
        ) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in source catalogue {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("sources")
    if not isinstance(data, list):
        raise ConfigurationError(f"Source catalogue {path} must contain a list of sources")
    logger.info(f"Loaded {len(data)} source entries from {path}")
    return data


def descriptor_from_entry(entry: Mapping[str, Any]) -> SourceDescriptor:
    source_id = entry.get("id")
    adapter_name = entry.get("adapter")
    if not source_id or not adapter_name:
        raise ConfigurationError("Source entry needs both 'id' and 'adapter'", context=ErrorContext(input_value=entry))
    spec = ADAPTERS.get(adapter_name)
    if spec is None:
        raise ConfigurationError(
            f"Unknown adapter '{adapter_name}' for source {source_id}",
            context=ErrorContext(source_id=source_id, suggestion=f"One of: {', '.join(sorted(ADAPTERS))}"),
        )

    try:
        family = AdapterFamily(entry["family"]) if entry.get("family") else spec.family
        timeout = entry.get("timeout")
        return SourceDescriptor(
            id=str(source_id),
            display_name=str(entry.get("display_name") or source_id),
            family=family,
            country=str(entry.get("country") or ""),
            city=str(entry.get("city") or ""),
            institution=str(entry.get("institution") or ""),
            timeout=float(timeout) if timeout is not None else None,
            priority=int(entry.get("priority") or 0),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid source entry {source_id}: {e}", context=ErrorContext(source_id=source_id)) from e


def build_adapter(entry: Mapping[str, Any], settings: Mapping[str, Any] | None = None) -> SourceAdapter:
    """Instantiate the adapter named by ``entry['adapter']`` with its options."""
    spec = ADAPTERS[entry["adapter"]]
    settings = settings or {}
    kwargs: dict[str, Any] = {}
    for arg, key in spec.settings.items():
        if settings.get(key):
            kwargs[arg] = settings[key]
    kwargs.update(entry.get("options") or {})
    if entry.get("timeout") is not None:
        kwargs.setdefault("timeout", float(entry["timeout"]))
    try:
        return spec.factory(**kwargs)
    except TypeError as e:
        raise ConfigurationError(
            f"Bad options for source {entry.get('id')}: {e}",
            context=ErrorContext(source_id=entry.get("id"), input_value=entry.get("options")),
        ) from e


def build_sources(
    entries: Iterable[Mapping[str, Any]] | None = None,
    settings: Mapping[str, Any] | None = None,
) -> list[RegisteredSource]:
    """Descriptors + adapters for every catalogue entry (DEFAULT_SOURCES when ``entries`` is None)."""
    sources: list[RegisteredSource] = []
    for entry in DEFAULT_SOURCES if entries is None else entries:
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Source entry must be a mapping, got {type(entry).__name__}")
        if entry.get("enabled") is False:
            logger.debug(f"Source {entry.get('id')} disabled in catalogue")
            continue
        descriptor = descriptor_from_entry(entry)
        sources.append(RegisteredSource(descriptor=descriptor, adapter=build_adapter(entry, settings)))
    return sources
