"""
Tests for trend facts and the analytics helpers behind the pattern pipeline.
"""

import math
from datetime import datetime

import pytest

from moment_query.core.analytics import (
    AnalysisThresholds,
    bucket_moments,
    find_activity_peaks,
    find_sequences,
    round_half_up,
)
from moment_query.core.trends import _direction_from_delta, build_trend_snapshot, trend_insights


class TestDirection:

    @pytest.mark.parametrize(
        "delta,tolerance,expected",
        [
            (2.0, 0.0, "increase"),
            (-2.0, 0.0, "decrease"),
            (0.0, 0.0, "no_change"),
            (0.5, 1.0, "no_change"),
            (-0.5, 1.0, "no_change"),
            (math.nan, 0.0, "no_change"),
        ],
    )
    def test_direction(self, delta, tolerance, expected):
        assert _direction_from_delta(delta, tolerance=tolerance) == expected


class TestSnapshot:

    def test_single_bucket_has_no_facts(self, make_moment):
        snapshot = build_trend_snapshot([make_moment("a", when=datetime(2024, 12, 10))])

        assert snapshot.total_periods == 1
        assert snapshot.activity is None
        assert trend_insights(snapshot) == []

    def test_steady_activity(self, make_moment):
        moments = [
            make_moment("a", when=datetime(2024, 12, 3), impact=40),
            make_moment("b", when=datetime(2024, 12, 10), impact=40),
        ]

        insights = trend_insights(build_trend_snapshot(moments))

        assert insights == ["Activity held steady: 1 moments per week"]

    def test_tolerance_absorbs_small_changes(self, corpus):
        snapshot = build_trend_snapshot(corpus, "week", tolerance=5)

        assert snapshot.activity.direction == "no_change"
        assert snapshot.impact.direction == "increase"
        assert trend_insights(snapshot) == [
            "Activity held steady: 3 moments per week",
            "Impact trending up: 65 vs 50",
        ]

    def test_monthly_buckets(self, corpus):
        periods = [b.period for b in bucket_moments(corpus, "month")]
        assert periods == ["2024-06", "2024-07", "2024-08", "2024-09", "2024-10", "2024-11", "2024-12"]

    def test_unknown_period(self, corpus):
        with pytest.raises(ValueError):
            bucket_moments(corpus, "fortnight")


class TestHelpers:

    def test_round_half_up(self):
        assert round_half_up(52.5) == 53
        assert round_half_up(62.4) == 62

    def test_sequences_respect_window(self, make_moment):
        moments = [
            make_moment("a", "First", companies=["Acme"], when=datetime(2024, 12, 1)),
            make_moment("b", "Second", companies=["Acme"], when=datetime(2024, 12, 12)),
        ]

        assert find_sequences(moments, AnalysisThresholds()) == []
        assert len(find_sequences(moments, AnalysisThresholds(sequence_window_days=14))) == 1

    def test_sequences_fall_back_to_factors(self, make_moment):
        moments = [
            make_moment("a", "First", companies=["Acme"], macro=["economic"], when=datetime(2024, 12, 1)),
            make_moment("b", "Second", companies=["Globex"], macro=["economic"], when=datetime(2024, 12, 3)),
        ]

        assert find_sequences(moments, AnalysisThresholds()) == [
            "Sequential pattern: First → Second (2 days apart; shared: economic)"
        ]

    def test_activity_peaks(self, make_moment):
        busy = [make_moment(f"busy{i}", when=datetime(2024, 12, 10, 9, i)) for i in range(4)]
        quiet = [make_moment(f"q{i}", when=datetime(2024, 12, i + 1)) for i in range(3)]

        peaks = find_activity_peaks(busy + quiet, ratio=1.5)

        assert [p.period for p in peaks] == ["2024-12-10"]
