"""Tests for the command-line entry point."""

from __future__ import annotations

import json

import pytest
from conftest import FailingAdapter, StaticAdapter, make_source
from dependency_injector import providers

from library_search.application.search.aggregator import LibrarySearchAggregator
from library_search.application.search.registry import SourceRegistry
from library_search.container import ApplicationContainer
from library_search.domain.entities import Query
from library_search.presentation.cli import build_parser, format_result, main, settings_from_args


def fake_container(*sources) -> ApplicationContainer:
    container = ApplicationContainer()
    container.registry.override(providers.Object(SourceRegistry(sources)))
    container.enrichment_providers.override(providers.Object([]))
    return container


@pytest.fixture
def container():
    return fake_container(
        make_source("alpha", StaticAdapter([{"key": "a1", "title": "Alpha Book", "author_name": ["Ann Smith"]}])),
        make_source("broken", FailingAdapter()),
    )


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args(["pride and prejudice"])
        assert args.query == "pride and prejudice"
        assert args.search_type == "all"
        assert args.limit == 20
        assert not args.json and not args.check and not args.no_enrich

    def test_rejects_unknown_type(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["x", "--type", "barcode"])

    def test_flags_override_environment(self):
        args = build_parser().parse_args(["x", "--timeout", "3", "--no-enrich", "--catalogue", "mine.yaml"])
        settings = settings_from_args(args, {"LIBRARY_SEARCH_TIMEOUT": "9", "LIBRARY_SEARCH_CONTACT_EMAIL": "me@x.org"})
        assert settings == {
            "email": "me@x.org",
            "default_timeout": 3.0,
            "enrichment_enabled": False,
            "sources_file": "mine.yaml",
        }


class TestFormatResult:
    async def test_lists_sources_and_records(self, container):
        result = await LibrarySearchAggregator(container.registry()).search(Query(text="alpha"))
        text = format_result(result)
        assert text.startswith('1 records for "alpha"')
        assert "[     ok] alpha: 1 records" in text
        assert "[  error] broken: ConnectionError" in text
        assert "  1. Alpha Book" in text
        assert "Ann Smith" in text

    async def test_limit(self, container):
        result = await LibrarySearchAggregator(container.registry()).search(Query(text="alpha"))
        assert "Alpha Book" not in format_result(result, limit=0)


class TestMain:
    def test_text_search(self, container, capsys):
        assert main(["alpha", "--no-enrich"], container=container) == 0
        out = capsys.readouterr().out
        assert "Alpha Book" in out

    def test_json_search(self, container, capsys):
        assert main(["alpha", "--json", "--type", "title", "--sources", "alpha"], container=container) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["query"]["search_type"] == "title"
        assert [s["source_id"] for s in data["per_source_status"]] == ["alpha"]

    def test_check(self, container, capsys):
        assert main(["--check", "--json"], container=container) == 0
        health = {h["source_id"]: h["status"] for h in json.loads(capsys.readouterr().out)}
        assert health == {"alpha": "online", "broken": "offline"}

    def test_unknown_source_exit_code(self, container, capsys):
        assert main(["alpha", "--sources", "nope"], container=container) == 2
        assert "nope" in capsys.readouterr().err

    def test_query_required(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 2
