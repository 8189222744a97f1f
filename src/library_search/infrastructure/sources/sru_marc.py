"""
SRU (Search/Retrieve via URL) adapter returning MARC21 records.

Sends a CQL ``searchRetrieve`` request with ``recordSchema=marcxml`` and
converts every MARCXML ``record`` element into MARC-in-JSON:

    {
        "leader": "00000cam a2200000 a 4500",
        "fields": [
            {"001": "12345"},
            {"245": {"ind1": "1", "ind2": "0", "subfields": [{"a": "Pride and prejudice /"}]}},
        ],
    }

which the MARC21 normalization strategy maps. Used for the Library of
Congress SRU endpoint and for Z39.50 gateways that expose SRU.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import defusedxml.ElementTree as ET  # Security: prevent XML attacks

from library_search.domain.entities import SearchType
from library_search.infrastructure.sources.base_client import BaseAPIClient
from library_search.shared.exceptions import SourceError

if TYPE_CHECKING:
    from xml.etree.ElementTree import Element

    from library_search.domain.entities import Query
    from library_search.domain.ports import SearchOptions

logger = logging.getLogger(__name__)

MARC_NS = "http://www.loc.gov/MARC21/slim"
SRU_DIAGNOSTIC_NS = "http://www.loc.gov/zing/srw/diagnostic/"

DEFAULT_INDEXES: dict[str, str] = {
    SearchType.TITLE.value: "dc.title",
    SearchType.AUTHOR.value: "dc.creator",
    SearchType.ISBN.value: "bath.isbn",
    SearchType.SUBJECT.value: "dc.subject",
    SearchType.KEYWORD.value: "cql.anywhere",
    SearchType.ALL.value: "cql.anywhere",
}


def build_cql(query: Query, indexes: dict[str, str] | None = None) -> str:
    """CQL clause for the query's search type, e.g. ``dc.title="pride and prejudice"``."""
    indexes = {**DEFAULT_INDEXES, **(indexes or {})}
    index = indexes.get(query.effective_search_type.value, indexes[SearchType.ALL.value])
    term = query.isbn if query.effective_search_type == SearchType.ISBN and query.isbn else query.search_text
    term = term.replace("\\", "\\\\").replace('"', '\\"')
    return f'{index}="{term}"'


def marcxml_to_json(record: Element) -> dict[str, Any]:
    """Convert one MARCXML ``record`` element to MARC-in-JSON."""
    ns = {"marc": MARC_NS}
    leader_elem = record.find("marc:leader", ns)
    fields: list[dict[str, Any]] = []

    for child in record:
        tag = child.get("tag")
        local = child.tag.rsplit("}", 1)[-1]
        if local == "controlfield" and tag:
            fields.append({tag: child.text or ""})
        elif local == "datafield" and tag:
            subfields = [{sub.get("code", ""): sub.text or ""} for sub in child.findall("marc:subfield", ns)]
            fields.append(
                {
                    tag: {
                        "ind1": child.get("ind1", " "),
                        "ind2": child.get("ind2", " "),
                        "subfields": subfields,
                    }
                }
            )

    return {
        "leader": leader_elem.text if leader_elem is not None and leader_elem.text else "",
        "fields": fields,
    }


def parse_sru_response(xml_text: str) -> list[dict[str, Any]]:
    """
    All MARC records in an SRU response.

    Raises:
        SourceError: the body is not XML or carries an SRU diagnostic.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise SourceError(f"SRU response is not valid XML: {e}", retryable=False) from e

    diagnostic = root.find(f".//{{{SRU_DIAGNOSTIC_NS}}}message")
    if diagnostic is not None and diagnostic.text:
        raise SourceError(f"SRU diagnostic: {diagnostic.text}", retryable=False)

    return [marcxml_to_json(record) for record in root.iter(f"{{{MARC_NS}}}record")]


class SruMarcAdapter(BaseAPIClient):
    """
    SRU client for one MARC21 catalog.

    Args:
        base_url: SRU endpoint, e.g. ``http://lx2.loc.gov:210/LCDB``
        indexes: search type -> CQL index overrides
        version: SRU protocol version
    """

    _service_name = "SRU"
    _raise_errors = True
    _MAX_RETRIES = 1

    def __init__(
        self,
        base_url: str,
        *,
        indexes: dict[str, str] | None = None,
        version: str = "1.1",
        service_name: str | None = None,
        timeout: float = 10.0,
        min_interval: float = 0.1,
        **kwargs: Any,
    ) -> None:
        self._indexes = dict(indexes or {})
        self._version = version
        if service_name:
            self._service_name = service_name
        super().__init__(
            base_url=base_url,
            timeout=timeout,
            min_interval=min_interval,
            headers={"Accept": "application/xml, text/xml"},
            **kwargs,
        )

    def build_params(self, query: Query, limit: int) -> dict[str, Any]:
        return {
            "version": self._version,
            "operation": "searchRetrieve",
            "query": build_cql(query, self._indexes),
            "maximumRecords": limit,
            "recordSchema": "marcxml",
        }

    async def search(self, query: Query, options: SearchOptions) -> list[dict[str, Any]]:
        body = await self._make_request(
            self._base_url, params=self.build_params(query, options.max_records), expect_json=False
        )
        if not body:
            return []
        records = parse_sru_response(body)
        logger.debug(f"{self._service_name}: {len(records)} MARC records")
        return records
