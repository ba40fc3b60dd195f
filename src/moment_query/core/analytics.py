from __future__ import annotations

import itertools
import math
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Sequence, Tuple

import pandas as pd

from moment_query import config
from moment_query.core.types import Correlation
from moment_query.core.data_loader import moments_to_frame
from moment_query.core.models import Moment


@dataclass(frozen=True)
class AnalysisThresholds:
    """
    Heuristic knobs used by the analytical pipelines.

    Defaults come from moment_query.config (and therefore the environment);
    pass an instance to QueryExecutor to tune a single engine.
    """
    high_impact: int = config.HIGH_IMPACT_THRESHOLD
    co_occurrence_min: int = config.CO_OCCURRENCE_MIN_COUNT
    correlation_scale: float = config.CORRELATION_STRENGTH_SCALE
    max_correlations: int = config.MAX_CORRELATIONS
    factor_dominance: float = config.FACTOR_DOMINANCE_RATIO
    busy_day_min: int = config.BUSY_DAY_MIN_MOMENTS
    activity_peak_ratio: float = config.ACTIVITY_PEAK_RATIO
    sequence_window_days: int = config.SEQUENCE_WINDOW_DAYS
    max_sequences: int = config.MAX_SEQUENCES
    max_clusters: int = config.MAX_CLUSTERS
    recent_days: int = config.RECENT_ACTIVITY_DAYS
    comparison_recent_days: int = config.COMPARISON_RECENT_DAYS
    trend_tolerance: float = config.TREND_TOLERANCE


@dataclass(frozen=True)
class PeriodBucket:
    period: str  # 'YYYY-MM-DD' for day/week (week = Sunday start), 'YYYY-MM' for month
    count: int
    average_impact: int


# ---------------------------------------------------------------------------
# Basic measures
# ---------------------------------------------------------------------------

def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def average_impact(moments: Sequence[Moment]) -> int:
    if not moments:
        return 0
    return round_half_up(sum(m.impact_score for m in moments) / max(1, len(moments)))


def high_impact(moments: Sequence[Moment], threshold: int) -> List[Moment]:
    return [m for m in moments if m.impact_score >= threshold]


def count_factors(moments: Sequence[Moment]) -> Dict[str, int]:
    """Factor frequencies, most frequent first (ties alphabetical)."""
    counts = Counter(f for m in moments for f in m.factors)
    return dict(sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])))


def top_factors(moments: Sequence[Moment], limit: int = 3) -> List[str]:
    return list(count_factors(moments))[:limit]


def chronological(moments: Sequence[Moment]) -> List[Moment]:
    return sorted(moments, key=lambda m: (m.extracted_at, m.id))


def time_span_days(moments: Sequence[Moment]) -> int:
    if not moments:
        return 0
    dates = [m.extracted_at for m in moments]
    return (max(dates) - min(dates)).days


# ---------------------------------------------------------------------------
# Time bucketing
# ---------------------------------------------------------------------------

def bucket_moments(moments: Sequence[Moment], period: str = "day") -> List[PeriodBucket]:
    """Group moments by day, calendar week (Sunday start) or month, oldest first."""
    if not moments:
        return []

    frame = moments_to_frame(moments)
    day = frame["extracted_at"].dt.normalize()
    if period == "day":
        keys = day.dt.strftime("%Y-%m-%d")
    elif period == "week":
        week_start = day - pd.to_timedelta((day.dt.dayofweek + 1) % 7, unit="D")
        keys = week_start.dt.strftime("%Y-%m-%d")
    elif period == "month":
        keys = day.dt.strftime("%Y-%m")
    else:
        raise ValueError(f"Unsupported bucketing period: {period!r}")

    grouped = (
        frame.assign(period=keys)
        .groupby("period", sort=True)
        .agg(count=("id", "size"), mean_impact=("impact_score", "mean"))
    )
    return [
        PeriodBucket(period=str(key), count=int(row["count"]), average_impact=round_half_up(float(row["mean_impact"])))
        for key, row in grouped.iterrows()
    ]


def find_activity_peaks(moments: Sequence[Moment], ratio: float) -> List[PeriodBucket]:
    """Days whose moment count exceeds ``ratio`` times the mean daily count."""
    daily = bucket_moments(moments, "day")
    mean_count = sum(b.count for b in daily) / max(1, len(daily))
    return [b for b in daily if b.count > mean_count * ratio]


# ---------------------------------------------------------------------------
# Insight generators
# ---------------------------------------------------------------------------

def analysis_insights(moments: Sequence[Moment], thresholds: AnalysisThresholds, now: datetime) -> List[str]:
    if not moments:
        return ["No moments found matching your criteria."]

    insights: List[str] = []

    strong = high_impact(moments, thresholds.high_impact)
    if strong:
        insights.append(f"{len(strong)} high-impact moments identified (score ≥{thresholds.high_impact})")

    factor_counts = count_factors(moments)
    if factor_counts:
        factor, n = next(iter(factor_counts.items()))
        insights.append(f"Most common factor: {factor} ({n} occurrences)")

    cutoff = now - timedelta(days=thresholds.recent_days)
    recent = [m for m in moments if m.extracted_at > cutoff]
    if recent:
        insights.append(f"{len(recent)} moments from the past {_days_label(thresholds.recent_days)}")

    return insights


def _days_label(days: int) -> str:
    if days == 7:
        return "week"
    return f"{days} days"


def find_correlations(moments: Sequence[Moment], thresholds: AnalysisThresholds) -> List[Correlation]:
    """Entity pairs that co-occur in at least ``co_occurrence_min`` moments."""
    pairs: Counter = Counter()
    for m in moments:
        names = sorted(set(m.linked_entities))
        pairs.update(itertools.combinations(names, 2))

    ranked = sorted(
        ((pair, n) for pair, n in pairs.items() if n >= thresholds.co_occurrence_min),
        key=lambda item: (-item[1], item[0]),
    )
    scale = thresholds.correlation_scale if thresholds.correlation_scale > 0 else 1.0
    return [
        Correlation(entity1=a, entity2=b, strength=round(min(n / scale, 1.0), 4), count=n)
        for (a, b), n in ranked[: thresholds.max_correlations]
    ]


def identify_patterns(moments: Sequence[Moment], thresholds: AnalysisThresholds) -> List[str]:
    """Busy days and dominant factors."""
    patterns: List[str] = []
    if not moments:
        return patterns

    busy = [b for b in bucket_moments(moments, "day") if b.count >= thresholds.busy_day_min]
    if busy:
        patterns.append(f"{len(busy)} days with high activity ({thresholds.busy_day_min}+ moments)")

    floor = len(moments) * thresholds.factor_dominance
    dominant = [f for f, n in count_factors(moments).items() if n >= floor]
    if dominant:
        patterns.append(f"Dominant factors: {', '.join(dominant)}")

    return patterns


def find_clusters(moments: Sequence[Moment], thresholds: AnalysisThresholds) -> List[str]:
    """Moments sharing exactly the same company + technology set."""
    groups: Dict[Tuple[str, ...], int] = {}
    for m in moments:
        key = tuple(sorted(set(m.named_entities)))
        if key:
            groups[key] = groups.get(key, 0) + 1

    ranked = sorted(((k, n) for k, n in groups.items() if n >= 2), key=lambda kv: (-kv[1], kv[0]))
    return [
        f"Cluster around {' & '.join(key[:2])}: {n} moments"
        for key, n in ranked[: thresholds.max_clusters]
    ]


def _clip(text: str, width: int = 30) -> str:
    return text if len(text) <= width else text[:width].rstrip() + "..."


def _shared(first: Sequence[str], second: Sequence[str]) -> List[str]:
    other = set(second)
    out: List[str] = []
    for item in first:
        if item in other and item not in out:
            out.append(item)
    return out


def find_sequences(moments: Sequence[Moment], thresholds: AnalysisThresholds) -> List[str]:
    """
    Chronologically adjacent moments that share an entity or a factor and
    happen within ``sequence_window_days`` of each other.
    """
    ordered = chronological(moments)
    sequences: List[str] = []
    for current, nxt in zip(ordered, ordered[1:]):
        shared = _shared(current.linked_entities, nxt.linked_entities) or _shared(current.factors, nxt.factors)
        if not shared:
            continue
        days = (nxt.extracted_at - current.extracted_at).days
        if days > thresholds.sequence_window_days:
            continue
        sequences.append(
            f"Sequential pattern: {_clip(current.title)} → {_clip(nxt.title)} "
            f"({days} days apart; shared: {', '.join(shared)})"
        )
        if len(sequences) >= thresholds.max_sequences:
            break
    return sequences


def temporal_insights(moments: Sequence[Moment], thresholds: AnalysisThresholds) -> List[str]:
    if not moments:
        return []
    insights = [f"Analysis spans {time_span_days(moments)} days"]
    peaks = find_activity_peaks(moments, thresholds.activity_peak_ratio)
    if peaks:
        insights.append(f"{len(peaks)} activity peaks identified")
    return insights
