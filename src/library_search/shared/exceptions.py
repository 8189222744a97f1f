"""
Exception hierarchy for library search.

    LibrarySearchError
    ├── SourceError
    │   ├── SourceTimeout
    │   └── RateLimitError
    ├── ValidationError
    │   └── InvalidQueryError
    ├── DataError
    │   └── NormalizationError
    ├── EnrichmentFailure
    └── ConfigurationError
        ├── DuplicateSourceError
        └── UnknownSourceError

Source and provider errors stop at the fan-out and enrichment boundaries,
where they become status entries. Only contract violations reach the
caller: a missing query, an unknown source id, a broken source catalogue.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, ClassVar


class ErrorSeverity(Enum):
    WARNING = auto()  # recoverable, processing continues
    ERROR = auto()  # the operation failed
    CRITICAL = auto()  # nothing can run until it is fixed
    TRANSIENT = auto()  # likely to pass on its own


class ErrorCategory(Enum):
    SOURCE = "source"
    VALIDATION = "validation"
    DATA = "data"
    ENRICHMENT = "enrichment"
    CONFIGURATION = "config"


class ErrorKind(Enum):
    """Failure kind recorded on a raw source result."""

    SOURCE_TIMEOUT = "source_timeout"
    SOURCE_ERROR = "source_error"


@dataclass(frozen=True, slots=True)
class ErrorContext:
    source_id: str | None = None
    operation: str | None = None
    input_value: Any = None
    suggestion: str | None = None
    retry_after: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class LibrarySearchError(Exception):
    """
    Base class; subclasses pick their category, severity and retry default
    through class attributes.
    """

    category: ClassVar[ErrorCategory] = ErrorCategory.SOURCE
    default_severity: ClassVar[ErrorSeverity] = ErrorSeverity.ERROR
    default_retryable: ClassVar[bool] = False

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        severity: ErrorSeverity | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.context = context or ErrorContext()
        self.severity = severity or self.default_severity
        self.retryable = self.default_retryable if retryable is None else retryable

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "error": str(self),
            "category": self.category.value,
            "severity": self.severity.name.lower(),
            "retryable": self.retryable,
        }
        ctx = self.context
        for key, value in (
            ("source_id", ctx.source_id),
            ("suggestion", ctx.suggestion),
            ("retry_after_seconds", ctx.retry_after),
        ):
            if value:
                data[key] = value
        return data


# =============================================================================
# Sources
# =============================================================================


class SourceError(LibrarySearchError):
    """Transport or parse failure inside a source adapter."""

    default_retryable = True

    def __init__(
        self,
        message: str,
        *,
        source_id: str | None = None,
        context: ErrorContext | None = None,
        retryable: bool | None = None,
    ) -> None:
        context = context or ErrorContext(source_id=source_id)
        super().__init__(message, context=context, retryable=retryable)
        self.source_id = source_id or context.source_id


class SourceTimeout(SourceError):
    """A source did not answer within its deadline."""

    default_severity = ErrorSeverity.TRANSIENT

    def __init__(self, source_id: str, timeout: float) -> None:
        super().__init__(f"{source_id}: no response within {timeout:.3f}s", source_id=source_id)
        self.timeout = timeout


class RateLimitError(SourceError):
    """A remote API, or an open circuit breaker, is refusing requests."""

    default_severity = ErrorSeverity.TRANSIENT

    def __init__(
        self,
        message: str = "API rate limit exceeded",
        *,
        retry_after: float = 1.0,
        source_id: str | None = None,
    ) -> None:
        context = ErrorContext(source_id=source_id, suggestion="Wait and retry the request", retry_after=retry_after)
        super().__init__(message, source_id=source_id, context=context)


# =============================================================================
# Validation and data
# =============================================================================


class ValidationError(LibrarySearchError):
    category = ErrorCategory.VALIDATION
    default_severity = ErrorSeverity.WARNING


class InvalidQueryError(ValidationError):
    """The pipeline was handed something that is not a Query."""

    def __init__(self, query: Any, reason: str = "Query is required") -> None:
        super().__init__(
            f"Invalid query: {reason}",
            context=ErrorContext(
                input_value=query,
                suggestion='Build a Query, e.g. Query(text="pride and prejudice")',
            ),
        )


class DataError(LibrarySearchError):
    category = ErrorCategory.DATA
    default_severity = ErrorSeverity.WARNING


class NormalizationError(DataError):
    """One raw record could not be mapped to the canonical schema."""

    def __init__(self, message: str, *, source_id: str | None = None, record: Any = None) -> None:
        prefix = f"Normalization error ({source_id})" if source_id else "Normalization error"
        super().__init__(f"{prefix}: {message}", context=ErrorContext(source_id=source_id, input_value=record))


# =============================================================================
# Enrichment
# =============================================================================


class EnrichmentFailure(LibrarySearchError):
    """A citation or PDF provider failed for one record. Never fatal."""

    category = ErrorCategory.ENRICHMENT
    default_severity = ErrorSeverity.WARNING

    def __init__(self, provider: str, message: str, *, record_id: str | None = None) -> None:
        super().__init__(f"{provider}: {message}", context=ErrorContext(operation="enrich", input_value=record_id))
        self.provider = provider


# =============================================================================
# Configuration
# =============================================================================


class ConfigurationError(LibrarySearchError):
    category = ErrorCategory.CONFIGURATION
    default_severity = ErrorSeverity.CRITICAL


class DuplicateSourceError(ConfigurationError):
    def __init__(self, source_id: str) -> None:
        super().__init__(
            f"Source already registered: {source_id}",
            context=ErrorContext(source_id=source_id, suggestion="Unregister it first or pass replace=True"),
        )


class UnknownSourceError(ConfigurationError):
    def __init__(self, source_id: str) -> None:
        super().__init__(f"Source not registered: {source_id}", context=ErrorContext(source_id=source_id))
