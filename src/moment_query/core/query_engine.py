from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from moment_query.core import visualization as viz
from moment_query.core.analytics import (
    AnalysisThresholds,
    analysis_insights,
    average_impact,
    chronological,
    find_activity_peaks,
    find_clusters,
    find_correlations,
    find_sequences,
    high_impact,
    identify_patterns,
    temporal_insights,
    time_span_days,
    top_factors,
)
from moment_query.core.catalog import EntityCatalog
from moment_query.core.filters import filter_by_entities, filter_by_entity_name, run_filter_chain
from moment_query.core.models import Moment
from moment_query.core.trends import build_trend_snapshot, trend_insights
from moment_query.core.types import (
    AGGREGATIONS,
    INTENT_TYPES,
    EntityComparison,
    QueryIntent,
    QueryResults,
    ResultData,
    Visualization,
)

if TYPE_CHECKING:
    from moment_query.conversation.types import QueryContext

logger = logging.getLogger(__name__)

Pipeline = Callable[[QueryIntent, Sequence[Moment], datetime], QueryResults]


class QueryEngineError(Exception):
    """Custom exception for query engine failures."""


@dataclass(frozen=True)
class CorpusSnapshot:
    """
    One immutable generation of the corpus.

    update_data builds a new snapshot and swaps the reference; queries grab
    the reference once, so a swap mid-query never mixes two generations.
    """
    moments: Tuple[Moment, ...] = ()
    catalog: EntityCatalog = EntityCatalog()
    loaded_at: Optional[datetime] = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ---------------------------------------------------------------------------
# Explanation helpers
# ---------------------------------------------------------------------------

def _describe_criteria(intent: QueryIntent) -> str:
    parts: List[str] = []
    for category in ("companies", "technologies", "people", "locations", "concepts"):
        names = intent.entities.category(category)
        if names:
            parts.append(f"{category}: {', '.join(names)}")

    if intent.timeframe is not None and intent.timeframe.relative:
        parts.append(f"timeframe: {intent.timeframe.relative}")

    if intent.factors is not None:
        if intent.factors.micro:
            parts.append(f"micro factors: {', '.join(intent.factors.micro)}")
        if intent.factors.macro:
            parts.append(f"macro factors: {', '.join(intent.factors.macro)}")

    filters = intent.filters
    if filters is not None:
        if filters.impact_threshold is not None:
            parts.append(f"impact ≥ {filters.impact_threshold}")
        if filters.confidence_level:
            parts.append(f"confidence: {filters.confidence_level}")
        if filters.source_type:
            parts.append(f"source: {filters.source_type}")

    return f" matching {', '.join(parts)}" if parts else ""


def _error_results(exc: BaseException) -> QueryResults:
    message = str(exc) or exc.__class__.__name__
    return QueryResults(
        type="summary",
        data=ResultData(summary=f"Error processing query: {message}"),
        explanation="An error occurred while processing your query. Please try rephrasing your question.",
        confidence=0,
    )


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

class QueryExecutor:
    """
    Runs parsed intents against an in-memory moment corpus.

    ``execute_query`` is the single recovery boundary: any failure inside a
    pipeline is logged and returned as a confidence-0 summary result.
    """

    def __init__(
        self,
        thresholds: Optional[AnalysisThresholds] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.thresholds = thresholds or AnalysisThresholds()
        self._clock = clock or _utc_now
        self._lock = threading.Lock()
        self._corpus = CorpusSnapshot()
        self._pipelines: Dict[str, Pipeline] = {name: getattr(self, f"_run_{name}") for name in INTENT_TYPES}

    # -- corpus -------------------------------------------------------------

    def update_data(
        self,
        moments: Iterable[Moment],
        companies: Iterable[Any] = (),
        technologies: Iterable[Any] = (),
    ) -> None:
        """Replace the whole corpus (no incremental updates)."""
        snapshot = CorpusSnapshot(
            moments=tuple(moments),
            catalog=EntityCatalog.from_entries(companies, technologies),
            loaded_at=self._clock(),
        )
        with self._lock:
            self._corpus = snapshot
        logger.info("Corpus replaced: %d moments, %d catalog entities.", len(snapshot.moments), len(snapshot.catalog))

    def _snapshot(self) -> CorpusSnapshot:
        with self._lock:
            return self._corpus

    @property
    def moments(self) -> Tuple[Moment, ...]:
        return self._snapshot().moments

    @property
    def catalog(self) -> EntityCatalog:
        return self._snapshot().catalog

    @property
    def has_data(self) -> bool:
        return self._snapshot().loaded_at is not None

    # -- entry point --------------------------------------------------------

    def execute_query(self, intent: QueryIntent, context: Optional[QueryContext] = None) -> QueryResults:
        started = time.perf_counter()
        corpus = self._snapshot()
        try:
            pipeline = self._pipelines.get(intent.type)
            if pipeline is None:
                raise QueryEngineError(f"Unsupported intent type: {intent.type!r}")
            results = pipeline(intent, corpus.moments, self._clock())
        except Exception as exc:
            logger.exception("Query execution failed for intent %r", getattr(intent, "type", None))
            results = _error_results(exc)

        results.processing_time = max(0.0, (time.perf_counter() - started) * 1000.0)
        logger.info(
            "Executed %s query over %d moments in %.1f ms (confidence=%d).",
            getattr(intent, "type", "?"),
            len(corpus.moments),
            results.processing_time,
            results.confidence,
        )
        return results

    # -- pipelines ----------------------------------------------------------

    def _ranked(self, intent: QueryIntent, moments: Sequence[Moment], now: datetime) -> List[Moment]:
        filtered = run_filter_chain(moments, intent, now)
        # impact desc, then most recent first
        return sorted(filtered, key=lambda m: (m.impact_score, m.extracted_at), reverse=True)

    def _run_search(self, intent: QueryIntent, moments: Sequence[Moment], now: datetime) -> QueryResults:
        ranked = self._ranked(intent, moments, now)
        return QueryResults(
            type="moments",
            data=ResultData(
                moments=ranked,
                metrics={
                    "total_found": len(ranked),
                    "average_impact": average_impact(ranked),
                    "high_impact_count": len(high_impact(ranked, self.thresholds.high_impact)),
                },
            ),
            visualization=viz.for_hint(intent.visualization, ranked),
            explanation=f"Found {len(ranked)} moments{_describe_criteria(intent)}.",
            confidence=intent.confidence,
        )

    def _run_filter(self, intent: QueryIntent, moments: Sequence[Moment], now: datetime) -> QueryResults:
        ranked = self._ranked(intent, moments, now)
        effectiveness = len(ranked) / max(1, len(moments))
        return QueryResults(
            type="moments",
            data=ResultData(
                moments=ranked,
                metrics={
                    "total_found": len(ranked),
                    "average_impact": average_impact(ranked),
                    "high_impact_count": len(high_impact(ranked, self.thresholds.high_impact)),
                    "filter_effectiveness": round(effectiveness, 4),
                },
            ),
            visualization=viz.for_hint(intent.visualization, ranked),
            explanation=f"Applied filters and found {len(ranked)} matching moments out of {len(moments)} total.",
            confidence=intent.confidence,
        )

    def _run_analysis(self, intent: QueryIntent, moments: Sequence[Moment], now: datetime) -> QueryResults:
        filtered = run_filter_chain(moments, intent, now)
        insights = analysis_insights(filtered, self.thresholds, now)
        correlations = find_correlations(filtered, self.thresholds)
        patterns = identify_patterns(filtered, self.thresholds)

        return QueryResults(
            type="insights",
            data=ResultData(
                moments=filtered,
                insights=[*insights, *patterns],
                correlations=correlations,
                metrics={
                    "total_analyzed": len(filtered),
                    "insights_generated": len(insights),
                    "correlations_found": len(correlations),
                },
            ),
            visualization=viz.for_hint(intent.visualization, filtered),
            explanation=(
                f"Analysis of {len(filtered)} moments revealed {len(insights)} key insights "
                f"and {len(correlations)} correlations."
            ),
            confidence=intent.confidence,
        )

    def _compare_entity(self, moments: Sequence[Moment], name: str, kind: str, now: datetime) -> EntityComparison:
        matched = filter_by_entity_name(moments, name, kind)
        cutoff = now - timedelta(days=self.thresholds.comparison_recent_days)
        return EntityComparison(
            kind=kind,
            moment_count=len(matched),
            average_impact=average_impact(matched),
            high_impact_count=len(high_impact(matched, self.thresholds.high_impact)),
            recent_activity=sum(1 for m in matched if m.extracted_at > cutoff),
            top_factors=top_factors(matched, 3),
        )

    def _run_comparison(self, intent: QueryIntent, moments: Sequence[Moment], now: datetime) -> QueryResults:
        comparison: Dict[str, EntityComparison] = {}
        for kind in ("companies", "technologies"):
            names = intent.entities.category(kind)
            if len(names) < 2:
                continue
            for name in names:
                comparison[name] = self._compare_entity(moments, name, kind, now)

        insights: List[str] = []
        if len(comparison) >= 2:
            # max() keeps the first entity on ties
            best = max(comparison, key=lambda n: comparison[n].average_impact)
            insights.append(f"{best} has the highest average impact score")
            busiest = max(comparison, key=lambda n: comparison[n].moment_count)
            insights.append(f"{busiest} has the most moments ({comparison[busiest].moment_count})")
            explanation = (
                f"Compared {len(comparison)} entities across impact, activity, and key factors."
            )
        else:
            insights.append("Comparison needs at least two companies or two technologies.")
            explanation = "Not enough entities of the same kind were found to compare."

        rows = [{"entity": name, **vars(stats)} for name, stats in comparison.items()]
        return QueryResults(
            type="comparison",
            data=ResultData(
                insights=insights,
                comparison=comparison,
                metrics={"entities_compared": len(comparison)},
            ),
            visualization=Visualization("bar", {"comparison": True}, rows),
            explanation=explanation,
            confidence=intent.confidence,
        )

    def _run_trend(self, intent: QueryIntent, moments: Sequence[Moment], now: datetime) -> QueryResults:
        filtered = run_filter_chain(moments, intent, now)
        snapshot = build_trend_snapshot(filtered, "week", tolerance=self.thresholds.trend_tolerance)
        insights = trend_insights(snapshot)

        return QueryResults(
            type="insights",
            data=ResultData(
                moments=filtered,
                insights=insights,
                metrics={
                    "total_periods": snapshot.total_periods,
                    "peak_activity": snapshot.peak_activity,
                    "average_activity": round(snapshot.average_activity, 2),
                },
            ),
            visualization=Visualization(
                "line",
                {"trend": True, "period": snapshot.period},
                [{"period": b.period, "count": b.count, "averageImpact": b.average_impact} for b in snapshot.buckets],
            ),
            explanation=(
                f"Trend analysis of {len(filtered)} moments shows {len(insights)} significant trends over time."
            ),
            confidence=intent.confidence,
        )

    def _run_pattern(self, intent: QueryIntent, moments: Sequence[Moment], now: datetime) -> QueryResults:
        filtered = filter_by_entities(moments, intent.entities)
        patterns = identify_patterns(filtered, self.thresholds)
        clusters = find_clusters(filtered, self.thresholds)
        sequences = find_sequences(filtered, self.thresholds)
        found = [*patterns, *clusters, *sequences]

        return QueryResults(
            type="insights",
            data=ResultData(
                moments=filtered,
                insights=found,
                metrics={
                    "patterns_found": len(patterns),
                    "clusters_identified": len(clusters),
                    "sequences_detected": len(sequences),
                },
            ),
            visualization=Visualization("network", {"patterns": True}, viz.network_data(filtered)),
            explanation=f"Pattern analysis discovered {len(found)} significant patterns in {len(filtered)} moments.",
            confidence=intent.confidence,
        )

    def _aggregate(self, moments: Sequence[Moment], operation: str) -> Dict[str, int]:
        if operation not in AGGREGATIONS:
            raise QueryEngineError(f"Unsupported aggregation: {operation!r}")
        scores = [m.impact_score for m in moments]
        if operation == "count":
            return {
                "total_moments": len(moments),
                "high_impact_moments": len(high_impact(moments, self.thresholds.high_impact)),
                "unique_companies": len({c for m in moments for c in m.entities.companies}),
                "unique_technologies": len({t for m in moments for t in m.entities.technologies}),
            }
        if operation == "sum":
            return {"total_impact_score": sum(scores), "total_moments": len(moments)}
        if operation == "average":
            return {"average_impact_score": average_impact(moments)}
        if operation == "max":
            return {"max_impact_score": max(scores, default=0)}
        return {"min_impact_score": min(scores, default=0)}

    def _run_aggregate(self, intent: QueryIntent, moments: Sequence[Moment], now: datetime) -> QueryResults:
        filtered = run_filter_chain(moments, intent, now)
        operation = intent.aggregation or "count"
        aggregations = self._aggregate(filtered, operation)
        summary = ", ".join(f"{key}: {value}" for key, value in aggregations.items())

        return QueryResults(
            type="summary",
            data=ResultData(summary=summary, metrics=dict(aggregations)),
            visualization=Visualization(
                "bar",
                {"aggregation": operation},
                [{"key": key, "value": value} for key, value in aggregations.items()],
            ),
            explanation=f"Aggregated {len(filtered)} moments using {operation} operation.",
            confidence=intent.confidence,
        )

    def _run_temporal(self, intent: QueryIntent, moments: Sequence[Moment], now: datetime) -> QueryResults:
        ordered = chronological(run_filter_chain(moments, intent, now))
        timeline = viz.timeline_points(ordered)
        peaks = find_activity_peaks(ordered, self.thresholds.activity_peak_ratio)

        return QueryResults(
            type="insights",
            data=ResultData(
                moments=ordered,
                insights=temporal_insights(ordered, self.thresholds),
                timeline=timeline,
                metrics={
                    "time_span_days": time_span_days(ordered),
                    "activity_peaks": len(peaks),
                },
            ),
            visualization=Visualization("timeline", {"temporal": True}, [p.as_dict() for p in timeline]),
            explanation=f"Temporal analysis of {len(ordered)} moments across {len(timeline)} time points.",
            confidence=intent.confidence,
        )
