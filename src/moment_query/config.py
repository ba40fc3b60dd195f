from __future__ import annotations

import os


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# App identity
# ---------------------------------------------------------------------------

APP_NAME = "Moment Query Engine"
APP_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Impact scoring
#
# Moments are scored 0-100 by the extraction pipeline. The tiers below are the
# ones users refer to in natural language ("high impact", "moderate", ...).
# ---------------------------------------------------------------------------

HIGH_IMPACT_THRESHOLD = _env_int("MOMENT_QUERY_HIGH_IMPACT", 70)
MEDIUM_IMPACT_THRESHOLD = _env_int("MOMENT_QUERY_MEDIUM_IMPACT", 40)
LOW_IMPACT_THRESHOLD = _env_int("MOMENT_QUERY_LOW_IMPACT", 20)

# ---------------------------------------------------------------------------
# Analysis heuristics
#
# These are tuning knobs rather than fixed rules. Every value can be
# overridden per process through the environment, or per executor instance
# through AnalysisThresholds.
# ---------------------------------------------------------------------------

CO_OCCURRENCE_MIN_COUNT = _env_int("MOMENT_QUERY_CO_OCCURRENCE_MIN", 2)
CORRELATION_STRENGTH_SCALE = _env_float("MOMENT_QUERY_CORRELATION_SCALE", 5.0)
MAX_CORRELATIONS = _env_int("MOMENT_QUERY_MAX_CORRELATIONS", 10)

FACTOR_DOMINANCE_RATIO = _env_float("MOMENT_QUERY_FACTOR_DOMINANCE", 0.3)
BUSY_DAY_MIN_MOMENTS = _env_int("MOMENT_QUERY_BUSY_DAY_MIN", 3)
ACTIVITY_PEAK_RATIO = _env_float("MOMENT_QUERY_ACTIVITY_PEAK_RATIO", 1.5)

SEQUENCE_WINDOW_DAYS = _env_int("MOMENT_QUERY_SEQUENCE_WINDOW_DAYS", 7)
MAX_SEQUENCES = _env_int("MOMENT_QUERY_MAX_SEQUENCES", 3)
MAX_CLUSTERS = _env_int("MOMENT_QUERY_MAX_CLUSTERS", 5)

RECENT_ACTIVITY_DAYS = _env_int("MOMENT_QUERY_RECENT_DAYS", 7)
COMPARISON_RECENT_DAYS = _env_int("MOMENT_QUERY_COMPARISON_RECENT_DAYS", 30)

# Changes smaller than this (in moments per week or mean impact points) are
# reported as "no change" by the trend pipeline.
TREND_TOLERANCE = _env_float("MOMENT_QUERY_TREND_TOLERANCE", 0.0)

MAX_NETWORK_LINKS = _env_int("MOMENT_QUERY_MAX_NETWORK_LINKS", 50)
MAX_CHART_ENTITIES = _env_int("MOMENT_QUERY_MAX_CHART_ENTITIES", 10)

# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------

MAX_HISTORY_ENTRIES = _env_int("MOMENT_QUERY_MAX_HISTORY", 50)
MAX_SUGGESTIONS = _env_int("MOMENT_QUERY_MAX_SUGGESTIONS", 8)
SUGGESTION_SOURCE_ENTRIES = _env_int("MOMENT_QUERY_SUGGESTION_SOURCES", 5)

DEFAULT_SUGGESTIONS = [
    "Show me all high impact moments",
    "What are the trending technologies?",
    "Compare OpenAI and Anthropic",
    "Moments related to AI regulation",
    "Analysis of Q4 2024 activity",
]
