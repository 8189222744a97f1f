"""
Enrichment providers.

Citation: CrossRef, OpenAlex, Semantic Scholar.
PDF access: Unpaywall, OpenAlex.

Providers return ``None`` when they have nothing to say; HTTP failures
are logged by the base client and also come back as ``None``.
"""

from .crossref import CrossRefCitationProvider
from .openalex import OpenAlexCitationProvider, OpenAlexClient, OpenAlexPdfProvider
from .semantic_scholar import SemanticScholarCitationProvider
from .unpaywall import UnpaywallPdfProvider

__all__ = [
    "CrossRefCitationProvider",
    "OpenAlexCitationProvider",
    "OpenAlexClient",
    "OpenAlexPdfProvider",
    "SemanticScholarCitationProvider",
    "UnpaywallPdfProvider",
]
