"""
Command-line entry point.

    python -m library_search "pride and prejudice" --type title
    python -m library_search "9780141439518" --json --no-enrich
    python -m library_search --check

Settings come from the environment (see ``container.ENV_SETTINGS``);
command-line flags override them.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import TYPE_CHECKING, Any

from library_search.container import ApplicationContainer, load_settings_from_env
from library_search.domain.entities import Query, SearchType
from library_search.shared.exceptions import LibrarySearchError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from library_search.domain.entities import AggregationResult, SourceHealth

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="library-search",
        description="Search several library catalogs at once and merge the results",
    )
    parser.add_argument("query", nargs="?", default="", help="Search text (title, author, ISBN or keywords)")
    parser.add_argument(
        "--type",
        dest="search_type",
        choices=[t.value for t in SearchType],
        default=SearchType.ALL.value,
        help="Index to search (default: all)",
    )
    parser.add_argument("--sources", help="Comma-separated source ids to query (default: all registered)")
    parser.add_argument("--catalogue", help="YAML source catalogue (overrides LIBRARY_SEARCH_SOURCES)")
    parser.add_argument("--timeout", type=float, help="Per-source deadline in seconds")
    parser.add_argument("--no-enrich", action="store_true", help="Skip citation and PDF enrichment")
    parser.add_argument("--limit", type=int, default=20, help="Records to print in text mode (default: 20)")
    parser.add_argument("--json", action="store_true", help="Print the full result as JSON")
    parser.add_argument("--check", action="store_true", help="Probe every source and report which are online")
    parser.add_argument("--log-level", help="Logging level (default: WARNING)")
    return parser


def settings_from_args(args: argparse.Namespace, environ: dict[str, str] | None = None) -> dict[str, Any]:
    settings = load_settings_from_env(environ)
    if args.catalogue:
        settings["sources_file"] = args.catalogue
    if args.timeout is not None:
        settings["default_timeout"] = args.timeout
    if args.no_enrich:
        settings["enrichment_enabled"] = False
    if args.log_level:
        settings["log_level"] = args.log_level
    return settings


def format_result(result: AggregationResult, limit: int = 20) -> str:
    lines = [f'{result.total_results} records for "{result.query.search_text}" in {result.total_elapsed_ms:.0f}ms']
    for entry in result.per_source_status:
        detail = f"{entry.count} records" if entry.status.value == "ok" else (entry.error_detail or entry.status.value)
        lines.append(f"  [{entry.status.value:>7}] {entry.source_id}: {detail}")
    lines.append("")

    for i, record in enumerate(result.records[:limit], 1):
        authors = ", ".join(record.authors[:3]) or "Unknown author"
        lines.append(f"{i:>3}. {record.title} ({record.year})")
        lines.append(f"     {authors}")
        extras = [f"sources: {', '.join(sorted(record.contributing_source_ids))}"]
        if record.isbn:
            extras.append(f"ISBN {record.isbn}")
        if record.citation_info is not None:
            extras.append(f"cited {record.citation_info.count}x")
        if record.pdf_access is not None and record.pdf_access.best_url:
            extras.append(f"PDF {record.pdf_access.best_url}")
        lines.append(f"     {' | '.join(extras)}")
    if result.total_results > limit:
        lines.append(f"... {result.total_results - limit} more (use --json for everything)")
    return "\n".join(lines)


def format_health(health: Sequence[SourceHealth]) -> str:
    lines = []
    for h in health:
        suffix = f" - {h.error}" if h.error else ""
        lines.append(f"{h.status:>7}  {h.source_id} ({h.elapsed_ms:.0f}ms){suffix}")
    return "\n".join(lines)


async def _close_clients(container: ApplicationContainer) -> None:
    clients: list[Any] = [source.adapter for source in container.registry().snapshot()]
    clients.extend(container.enrichment_providers())
    for client in clients:
        close = getattr(client, "close", None)
        if close is not None:
            await close()


async def run(args: argparse.Namespace, container: ApplicationContainer) -> str:
    aggregator = container.aggregator()
    try:
        if args.check:
            health = await aggregator.check_sources()
            return json.dumps([h.to_dict() for h in health], indent=2) if args.json else format_health(health)

        source_ids = [s.strip() for s in args.sources.split(",") if s.strip()] if args.sources else None
        query = Query(text=args.query, search_type=args.search_type)
        result = await aggregator.search(query, source_ids=source_ids, enrich=False if args.no_enrich else None)
        if args.json:
            return json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
        return format_result(result, args.limit)
    finally:
        await _close_clients(container)


def main(argv: Sequence[str] | None = None, container: ApplicationContainer | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.check and not args.query.strip():
        parser.error("a query is required unless --check is given")

    settings = settings_from_args(args)
    logging.basicConfig(level=str(settings.get("log_level", "WARNING")).upper(), format=LOG_FORMAT)

    if container is None:
        container = ApplicationContainer()
        container.config.from_dict(settings)

    try:
        output = asyncio.run(run(args, container))
    except LibrarySearchError as e:
        logger.error(f"{type(e).__name__}: {e}")
        print(f"error: {e}", file=sys.stderr)
        return 2
    print(output)
    return 0


__all__ = ["build_parser", "format_health", "format_result", "main", "run", "settings_from_args"]
