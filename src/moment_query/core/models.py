from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple

# ---------------------------------------------------------------------------
# Closed vocabularies
# ---------------------------------------------------------------------------

MICRO_FACTORS: Tuple[str, ...] = ("company", "competition", "partners", "customers")
MACRO_FACTORS: Tuple[str, ...] = (
    "economic",
    "geo_political",
    "regulation",
    "technology",
    "environment",
    "supply_chain",
)
CONFIDENCE_LEVELS: Tuple[str, ...] = ("low", "medium", "high")
SOURCE_KINDS: Tuple[str, ...] = ("company", "technology")


class MomentValidationError(ValueError):
    """Raised when a moment record violates the corpus invariants."""


def to_naive_utc(value: datetime) -> datetime:
    """Drop tz info after converting aware datetimes to UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class MomentSource:
    kind: str  # 'company' or 'technology'
    name: str
    id: str = ""

    def __post_init__(self) -> None:
        if self.kind not in SOURCE_KINDS:
            raise MomentValidationError(f"Unknown source kind: {self.kind!r}. Expected one of {SOURCE_KINDS}.")


@dataclass(frozen=True)
class MomentEntities:
    companies: Tuple[str, ...] = ()
    technologies: Tuple[str, ...] = ()
    people: Tuple[str, ...] = ()
    locations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MomentClassification:
    micro_factors: Tuple[str, ...] = ()
    macro_factors: Tuple[str, ...] = ()
    confidence: str = "medium"
    keywords: Tuple[str, ...] = ()
    reasoning: str = ""

    def __post_init__(self) -> None:
        bad_micro = [f for f in self.micro_factors if f not in MICRO_FACTORS]
        if bad_micro:
            raise MomentValidationError(f"Unknown micro factors: {bad_micro}. Expected a subset of {MICRO_FACTORS}.")
        bad_macro = [f for f in self.macro_factors if f not in MACRO_FACTORS]
        if bad_macro:
            raise MomentValidationError(f"Unknown macro factors: {bad_macro}. Expected a subset of {MACRO_FACTORS}.")
        if self.confidence not in CONFIDENCE_LEVELS:
            raise MomentValidationError(
                f"Unknown confidence level: {self.confidence!r}. Expected one of {CONFIDENCE_LEVELS}."
            )


@dataclass(frozen=True)
class Moment:
    """
    A classified, timestamped business or technology event.

    Moments are owned by the hydration layer and never mutated here. The
    query engine only reads them; any "change" to the corpus is a full swap
    through QueryExecutor.update_data.
    """
    id: str
    title: str
    description: str
    content: str
    extracted_at: datetime
    source: MomentSource
    entities: MomentEntities = field(default_factory=MomentEntities)
    classification: MomentClassification = field(default_factory=MomentClassification)
    impact_score: int = 0
    impact_reasoning: str = ""
    estimated_date: Optional[datetime] = None

    def __post_init__(self) -> None:
        if isinstance(self.impact_score, bool) or not isinstance(self.impact_score, int):
            raise MomentValidationError(f"Impact score must be an integer, got {self.impact_score!r}.")
        if not 0 <= self.impact_score <= 100:
            raise MomentValidationError(f"Impact score {self.impact_score} outside 0-100 for moment {self.id}.")
        # frozen: normalise timestamps through object.__setattr__
        object.__setattr__(self, "extracted_at", to_naive_utc(self.extracted_at))
        if self.estimated_date is not None:
            object.__setattr__(self, "estimated_date", to_naive_utc(self.estimated_date))

    @property
    def factors(self) -> List[str]:
        return [*self.classification.micro_factors, *self.classification.macro_factors]

    @property
    def named_entities(self) -> List[str]:
        """Companies followed by technologies, the pair used for clustering and charts."""
        return [*self.entities.companies, *self.entities.technologies]

    @property
    def linked_entities(self) -> List[str]:
        """Companies, technologies and people: the set used for co-occurrence."""
        return [*self.entities.companies, *self.entities.technologies, *self.entities.people]
