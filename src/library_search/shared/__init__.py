"""Shared utilities: exception hierarchy, async helpers, text normalization."""

from .async_utils import CircuitBreaker, MinIntervalLimiter, call_maybe_async, run_with_deadline
from .exceptions import (
    ConfigurationError,
    DuplicateSourceError,
    EnrichmentFailure,
    ErrorCategory,
    ErrorContext,
    ErrorKind,
    ErrorSeverity,
    InvalidQueryError,
    LibrarySearchError,
    NormalizationError,
    RateLimitError,
    SourceError,
    SourceTimeout,
    UnknownSourceError,
)

__all__ = [
    "CircuitBreaker",
    "ConfigurationError",
    "DuplicateSourceError",
    "EnrichmentFailure",
    "ErrorCategory",
    "ErrorContext",
    "ErrorKind",
    "ErrorSeverity",
    "InvalidQueryError",
    "LibrarySearchError",
    "MinIntervalLimiter",
    "NormalizationError",
    "RateLimitError",
    "SourceError",
    "SourceTimeout",
    "UnknownSourceError",
    "call_maybe_async",
    "run_with_deadline",
]
