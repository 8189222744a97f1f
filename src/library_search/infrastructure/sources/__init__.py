"""
Catalog adapters.

Every adapter exposes ``async search(query, options) -> list`` and returns
raw records in its source's own shape.
"""

from .base_client import BaseAPIClient
from .catalog import ADAPTERS, DEFAULT_SOURCES, build_adapter, build_sources, descriptor_from_entry, load_catalogue
from .google_books import GoogleBooksAdapter
from .loc import LocSearchAdapter
from .open_library import OpenLibraryAdapter
from .openalex_works import OpenAlexWorksAdapter
from .sru_marc import SruMarcAdapter, build_cql, marcxml_to_json, parse_sru_response

__all__ = [
    "ADAPTERS",
    "DEFAULT_SOURCES",
    "BaseAPIClient",
    "GoogleBooksAdapter",
    "LocSearchAdapter",
    "OpenAlexWorksAdapter",
    "OpenLibraryAdapter",
    "SruMarcAdapter",
    "build_adapter",
    "build_cql",
    "build_sources",
    "descriptor_from_entry",
    "load_catalogue",
    "marcxml_to_json",
    "parse_sru_response",
]
