"""
Source Entities - Registered catalogs and their raw answers.

Key Entities:
    - SourceDescriptor: static metadata of one remote catalog
    - RegisteredSource: descriptor + the adapter that talks to it
    - RawSourceResult: what one adapter call produced (transient)
    - SourceStatusEntry: per-source line in the final report
    - SourceHealth: result of a health probe
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from library_search.domain.ports import SourceAdapter
    from library_search.shared.exceptions import ErrorKind


class AdapterFamily(Enum):
    """Shape of the raw records an adapter returns."""

    MARC21 = "marc21"  # MARC-in-JSON field/subfield records
    JSON_CATALOG = "json_catalog"  # Library catalog JSON (Open Library, Google Books, loc.gov)
    BIBLIOGRAPHIC_API = "bibliographic_api"  # Scholarly metadata APIs (OpenAlex)


class SourceStatus(Enum):
    OK = "ok"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(frozen=True)
class SourceDescriptor:
    """
    Static metadata of one source.

    ``timeout`` of None means "use the coordinator default". Sources with a
    higher ``priority`` are dispatched (and reported) first and win ties
    when a merged record picks its canonical fields.
    """

    id: str
    display_name: str
    family: AdapterFamily
    country: str = ""
    city: str = ""
    institution: str = ""
    timeout: float | None = None
    priority: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.family, str):
            object.__setattr__(self, "family", AdapterFamily(self.family))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "family": self.family.value,
            "country": self.country,
            "city": self.city,
            "institution": self.institution,
            "timeout": self.timeout,
            "priority": self.priority,
        }


@dataclass(frozen=True)
class RegisteredSource:
    descriptor: SourceDescriptor
    adapter: SourceAdapter

    @property
    def id(self) -> str:
        return self.descriptor.id


@dataclass
class RawSourceResult:
    """Outcome of one adapter call. ``records`` is opaque until normalized."""

    source_id: str
    status: SourceStatus
    records: list[Any] = field(default_factory=list)
    error: ErrorKind | None = None
    error_detail: str | None = None
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status == SourceStatus.OK


@dataclass(frozen=True)
class SourceStatusEntry:
    """One line of the per-source status report."""

    source_id: str
    status: SourceStatus
    count: int = 0
    elapsed_ms: float = 0.0
    error_detail: str | None = None
    skipped: int = 0

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "source_id": self.source_id,
            "status": self.status.value,
            "count": self.count,
            "elapsed_ms": round(self.elapsed_ms, 1),
        }
        if self.error_detail:
            result["error"] = self.error_detail
        if self.skipped:
            result["skipped"] = self.skipped
        return result


@dataclass(frozen=True)
class SourceHealth:
    """Result of probing one source."""

    source_id: str
    status: str  # "online" | "offline"
    elapsed_ms: float
    error: str | None = None

    @property
    def online(self) -> bool:
        return self.status == "online"

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "status": self.status,
            "elapsed_ms": round(self.elapsed_ms, 1),
            "error": self.error,
        }
