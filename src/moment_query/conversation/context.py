from __future__ import annotations

from typing import Any, Iterable, List, Optional, Sequence

from moment_query.conversation.state import ConversationHistory
from moment_query.conversation.types import CorpusStats, DateRange, QueryContext
from moment_query.core.models import Moment


def corpus_stats(moments: Sequence[Moment], companies: Iterable[Any] = (), technologies: Iterable[Any] = ()) -> CorpusStats:
    date_range = None
    if moments:
        dates = [m.extracted_at for m in moments]
        date_range = DateRange(earliest=min(dates), latest=max(dates))
    return CorpusStats(
        total_moments=len(moments),
        companies_count=len(list(companies)),
        technologies_count=len(list(technologies)),
        date_range=date_range,
    )


class QueryContextBuilder:
    """Snapshots the host application's state into a QueryContext."""

    def __init__(self, recent_limit: int = 5) -> None:
        self.recent_limit = recent_limit

    def build(
        self,
        active_view: Optional[str],
        moments: Sequence[Moment] = (),
        companies: Iterable[Any] = (),
        technologies: Iterable[Any] = (),
        selected_entities: Optional[List[str]] = None,
        current_timeframe: Optional[str] = None,
        history: Optional[ConversationHistory] = None,
    ) -> QueryContext:
        recent = history.get_recent(self.recent_limit) if history is not None else []
        return QueryContext(
            active_view=active_view,
            selected_entities=list(selected_entities or []),
            current_timeframe=current_timeframe,
            recent_queries=recent,
            stats=corpus_stats(moments, companies, technologies),
        )
