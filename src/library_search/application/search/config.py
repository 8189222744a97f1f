"""
Aggregation configuration.

Every tunable the pipeline uses lives here: per-source deadlines, the
merge threshold, the scoring weights and the enrichment budget. Values
are plain dataclasses so the container can build them from a mapping.

Example:
    >>> config = AggregationConfig.from_dict({"default_timeout": 5, "title_weight": 12})
    >>> config.scoring.title
    12.0
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

from library_search.shared.exceptions import ConfigurationError, ErrorContext


@dataclass(frozen=True)
class ScoringWeights:
    """Points awarded per match kind; the sum is the relevance score."""

    title: float = 10.0
    author: float = 8.0
    subject: float = 6.0
    description: float = 4.0
    isbn_exact: float = 15.0

    def to_dict(self) -> dict[str, float]:
        return {
            "title": self.title,
            "author": self.author,
            "subject": self.subject,
            "description": self.description,
            "isbn_exact": self.isbn_exact,
        }


@dataclass(frozen=True)
class AggregationConfig:
    # Fan-out
    default_timeout: float = 10.0
    max_records_per_source: int = 25

    # Deduplication
    title_similarity_threshold: float = 0.85
    max_year_gap: int = 1
    ambiguity_margin: float = 0.10

    # Scoring
    scoring: ScoringWeights = field(default_factory=ScoringWeights)

    # Enrichment
    enrichment_enabled: bool = True
    enrichment_budget: float = 15.0
    provider_timeout: float = 5.0
    provider_min_interval: float = 0.1
    enrichment_max_in_flight: int = 8

    def __post_init__(self) -> None:
        if self.default_timeout <= 0:
            raise ConfigurationError(
                f"default_timeout must be positive, got {self.default_timeout}",
                context=ErrorContext(input_value=self.default_timeout),
            )
        if not 0.0 < self.title_similarity_threshold <= 1.0:
            raise ConfigurationError(
                f"title_similarity_threshold must be in (0, 1], got {self.title_similarity_threshold}",
                context=ErrorContext(input_value=self.title_similarity_threshold),
            )
        if self.enrichment_max_in_flight < 1:
            raise ConfigurationError("enrichment_max_in_flight must be at least 1")
        if self.max_records_per_source < 1:
            raise ConfigurationError("max_records_per_source must be at least 1")

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> AggregationConfig:
        """
        Build from a flat mapping.

        Scoring weights may be given as a nested ``scoring`` mapping or as
        flat ``<name>_weight`` keys. ``None`` values and unknown keys are
        ignored.
        """
        if not data:
            return cls()

        weight_names = {f.name for f in fields(ScoringWeights)}
        weights: dict[str, float] = {}
        nested = data.get("scoring")
        if isinstance(nested, dict):
            weights.update({k: float(v) for k, v in nested.items() if k in weight_names and v is not None})
        for name in weight_names:
            value = data.get(f"{name}_weight")
            if value is not None:
                weights[name] = float(value)

        kwargs: dict[str, Any] = {}
        try:
            for f in fields(cls):
                if f.name == "scoring":
                    continue
                value = data.get(f.name)
                if value is None:
                    continue
                kwargs[f.name] = _coerce(value, f.default)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid aggregation setting: {e}") from e

        return cls(scoring=ScoringWeights(**weights), **kwargs)

    def to_dict(self) -> dict[str, Any]:
        result = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "scoring"}
        result["scoring"] = self.scoring.to_dict()
        return result


def _coerce(value: Any, default: Any) -> Any:
    """Coerce a config value to the type of its default (env vars arrive as strings)."""
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return value
