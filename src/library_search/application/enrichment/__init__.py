"""Citation / PDF enrichment overlay."""

from .overlay import EnrichmentOverlay, merge_citations, merge_pdf_links
from .stats import citation_stats, h_index, pdf_stats, summarize

__all__ = [
    "EnrichmentOverlay",
    "citation_stats",
    "h_index",
    "merge_citations",
    "merge_pdf_links",
    "pdf_stats",
    "summarize",
]
