"""
Intent and result structures shared by the executor and the parser.

QueryIntent is what the parser produces and the executor consumes;
QueryResults is the uniform envelope every pipeline returns.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from moment_query.core.models import Moment
from moment_query.core.timeframes import Timeframe

INTENT_TYPES: Tuple[str, ...] = (
    "search",
    "analysis",
    "comparison",
    "trend",
    "pattern",
    "filter",
    "aggregate",
    "temporal",
)
VISUALIZATION_HINTS: Tuple[str, ...] = ("cards", "chart", "timeline", "network", "table", "heatmap")
AGGREGATIONS: Tuple[str, ...] = ("count", "sum", "average", "max", "min")
RESULT_TYPES: Tuple[str, ...] = ("moments", "summary", "insights", "comparison")
ENTITY_CATEGORIES: Tuple[str, ...] = ("companies", "technologies", "people", "locations", "concepts")


def _dedupe(values: List[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for v in values:
        key = v.lower()
        if v and key not in seen:
            seen.add(key)
            out.append(v)
    return out


# ---------------------------------------------------------------------------
# Intent
# ---------------------------------------------------------------------------

@dataclass
class IntentEntities:
    companies: List[str] = field(default_factory=list)
    technologies: List[str] = field(default_factory=list)
    people: List[str] = field(default_factory=list)
    locations: List[str] = field(default_factory=list)
    concepts: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        for name in ENTITY_CATEGORIES:
            setattr(self, name, _dedupe(list(getattr(self, name))))

    def category(self, name: str) -> List[str]:
        return getattr(self, name)

    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in ENTITY_CATEGORIES)

    def overridden_by(self, other: Optional["IntentEntities"]) -> "IntentEntities":
        """Per category: ``other`` wins wherever it has values."""
        if other is None:
            return IntentEntities(**{n: list(getattr(self, n)) for n in ENTITY_CATEGORIES})
        return IntentEntities(
            **{n: list(getattr(other, n) or getattr(self, n)) for n in ENTITY_CATEGORIES}
        )

    @classmethod
    def combine(cls, *parts: "IntentEntities") -> "IntentEntities":
        return cls(**{n: [v for p in parts for v in getattr(p, n)] for n in ENTITY_CATEGORIES})


@dataclass(frozen=True)
class FactorSelection:
    micro: Tuple[str, ...] = ()
    macro: Tuple[str, ...] = ()

    def is_empty(self) -> bool:
        return not self.micro and not self.macro


@dataclass(frozen=True)
class IntentFilters:
    impact_threshold: Optional[int] = None
    confidence_level: Optional[str] = None  # 'low', 'medium', 'high'
    source_type: Optional[str] = None  # 'company', 'technology'

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def overridden_by(self, other: Optional["IntentFilters"]) -> "IntentFilters":
        if other is None:
            return self
        merged = {
            f.name: getattr(other, f.name) if getattr(other, f.name) is not None else getattr(self, f.name)
            for f in fields(self)
        }
        return IntentFilters(**merged)


@dataclass
class QueryIntent:
    """
    Structured representation of one natural-language question.

    ``confidence`` is clamped to 0-100 on construction so every producer,
    not only the parser, respects the range. The visualization hint must be
    one of VISUALIZATION_HINTS. ``type`` and ``aggregation`` are checked by
    the executor, which reports unknown values as an error result.
    """
    type: str = "search"
    entities: IntentEntities = field(default_factory=IntentEntities)
    timeframe: Optional[Timeframe] = None
    factors: Optional[FactorSelection] = None
    filters: Optional[IntentFilters] = None
    metrics: List[str] = field(default_factory=list)
    aggregation: Optional[str] = None
    visualization: str = "cards"
    confidence: int = 50

    def __post_init__(self) -> None:
        if self.visualization not in VISUALIZATION_HINTS:
            raise ValueError(f"Unknown visualization hint: {self.visualization!r}")
        self.confidence = int(min(100, max(0, round(self.confidence))))


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Correlation:
    entity1: str
    entity2: str
    strength: float  # 0-1
    count: int
    type: str = "co-occurrence"


@dataclass
class EntityComparison:
    kind: str  # 'companies' or 'technologies'
    moment_count: int
    average_impact: int
    high_impact_count: int
    recent_activity: int
    top_factors: List[str]


@dataclass(frozen=True)
class TimelinePoint:
    moment_id: str
    date: datetime
    title: str
    impact: int
    entities: Tuple[str, ...]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.moment_id,
            "date": self.date.isoformat(),
            "title": self.title,
            "impact": self.impact,
            "entities": list(self.entities),
        }


@dataclass
class Visualization:
    type: str  # 'cards', 'timeline', 'bar', 'line', 'network', 'heatmap', 'table'
    config: Dict[str, Any]
    data: Any


@dataclass
class ResultData:
    moments: Optional[List[Moment]] = None
    summary: Optional[str] = None
    insights: List[str] = field(default_factory=list)
    metrics: Dict[str, Any] = field(default_factory=dict)
    correlations: List[Correlation] = field(default_factory=list)
    comparison: Dict[str, EntityComparison] = field(default_factory=dict)
    timeline: List[TimelinePoint] = field(default_factory=list)


@dataclass
class QueryResults:
    type: str
    data: ResultData
    explanation: str
    confidence: int
    visualization: Optional[Visualization] = None
    processing_time: float = 0.0  # milliseconds

    def __post_init__(self) -> None:
        if self.type not in RESULT_TYPES:
            raise ValueError(f"Unknown result type: {self.type!r}")
