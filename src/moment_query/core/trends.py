from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from moment_query.core.analytics import PeriodBucket, bucket_moments
from moment_query.core.models import Moment


@dataclass
class TrendFact:
    """
    A single period-over-period change for one metric.
    """
    metric: str  # 'activity' (moments per period) or 'impact' (mean impact)
    period_start: str
    period_end: str
    value_start: float
    value_end: float
    delta: float
    direction: str  # 'increase', 'decrease', 'no_change'


@dataclass
class TrendSnapshot:
    """
    Canonical facts behind a trend answer.

    Insight strings are derived only from these facts, so the explanation a
    user sees can always be traced back to the bucket counts.
    """
    period: str
    buckets: List[PeriodBucket]
    activity: Optional[TrendFact]
    impact: Optional[TrendFact]

    @property
    def total_periods(self) -> int:
        return len(self.buckets)

    @property
    def peak_activity(self) -> int:
        return max((b.count for b in self.buckets), default=0)

    @property
    def average_activity(self) -> float:
        return sum(b.count for b in self.buckets) / max(1, len(self.buckets))


def _direction_from_delta(delta: float, tolerance: float = 0.0) -> str:
    """
    Interpret a numeric delta as 'increase', 'decrease', or 'no_change'.

    Tolerance is used to treat very small changes as 'no_change' to avoid
    over-interpreting small fluctuations.
    """
    if math.isnan(delta):
        return "no_change"
    if delta > tolerance:
        return "increase"
    if delta < -tolerance:
        return "decrease"
    return "no_change"


def _fact(metric: str, previous: PeriodBucket, recent: PeriodBucket, tolerance: float) -> TrendFact:
    if metric == "activity":
        start, end = float(previous.count), float(recent.count)
    else:
        start, end = float(previous.average_impact), float(recent.average_impact)
    delta = end - start
    return TrendFact(
        metric=metric,
        period_start=previous.period,
        period_end=recent.period,
        value_start=start,
        value_end=end,
        delta=delta,
        direction=_direction_from_delta(delta, tolerance=tolerance),
    )


def build_trend_snapshot(moments: Sequence[Moment], period: str = "week", tolerance: float = 0.0) -> TrendSnapshot:
    """
    Bucket moments by ``period`` and compare the two most recent buckets.

    With fewer than two buckets there is nothing to compare and both facts
    are None.
    """
    buckets = bucket_moments(moments, period)
    if len(buckets) < 2:
        return TrendSnapshot(period=period, buckets=buckets, activity=None, impact=None)

    previous, recent = buckets[-2], buckets[-1]
    return TrendSnapshot(
        period=period,
        buckets=buckets,
        activity=_fact("activity", previous, recent, tolerance),
        impact=_fact("impact", previous, recent, tolerance),
    )


def trend_insights(snapshot: TrendSnapshot) -> List[str]:
    insights: List[str] = []

    activity = snapshot.activity
    if activity is not None:
        now_n, before_n = int(activity.value_end), int(activity.value_start)
        if activity.direction == "increase":
            insights.append(f"Activity increased recently: {now_n} vs {before_n} moments")
        elif activity.direction == "decrease":
            insights.append(f"Activity decreased recently: {now_n} vs {before_n} moments")
        else:
            insights.append(f"Activity held steady: {now_n} moments per {snapshot.period}")

    impact = snapshot.impact
    if impact is not None:
        now_i, before_i = int(impact.value_end), int(impact.value_start)
        if impact.direction == "increase":
            insights.append(f"Impact trending up: {now_i} vs {before_i}")
        elif impact.direction == "decrease":
            insights.append(f"Impact trending down: {now_i} vs {before_i}")

    return insights
