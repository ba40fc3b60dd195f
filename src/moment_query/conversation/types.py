"""
Shared data structures for the conversational layer.

QueryContext snapshots the host application for one question, and
ConversationEntry ties that question to its intent and results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from moment_query.core.types import QueryIntent, QueryResults


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DateRange:
    earliest: datetime
    latest: datetime


@dataclass(frozen=True)
class CorpusStats:
    total_moments: int = 0
    companies_count: int = 0
    technologies_count: int = 0
    date_range: Optional[DateRange] = None


@dataclass
class QueryContext:
    """Read-only snapshot of the host application's state for one query."""
    active_view: Optional[str] = None  # 'moments', 'dashboard', 'graph', 'patterns', ...
    selected_entities: List[str] = field(default_factory=list)
    current_timeframe: Optional[str] = None
    recent_queries: List["ConversationEntry"] = field(default_factory=list)
    stats: CorpusStats = field(default_factory=CorpusStats)


# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------

@dataclass
class ConversationEntry:
    id: str
    text: str
    timestamp: datetime
    parsed_intent: Optional[QueryIntent] = None
    results: Optional[QueryResults] = None
    loading: bool = True
    error: Optional[str] = None

    @property
    def is_successful(self) -> bool:
        return not self.loading and not self.error and self.results is not None
