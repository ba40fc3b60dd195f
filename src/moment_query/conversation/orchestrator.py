"""
Main entry point for the conversational layer.

QueryOrchestrator wires the parser and the executor into a single call that
turns a question into a ConversationEntry. It is the only public boundary
that promises never to raise: failures end up in ``entry.error``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional
from uuid import uuid4

from moment_query.conversation.intent_parser import QueryParser
from moment_query.conversation.state import ConversationHistory
from moment_query.conversation.types import ConversationEntry, QueryContext
from moment_query.core.models import Moment
from moment_query.core.query_engine import QueryExecutor
from moment_query.core.types import QueryIntent, QueryResults, ResultData

logger = logging.getLogger(__name__)

NOT_INITIALIZED_MESSAGE = "Query system not initialized. Please wait for data to load."


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def not_initialized_results() -> QueryResults:
    return QueryResults(
        type="summary",
        data=ResultData(summary=NOT_INITIALIZED_MESSAGE),
        explanation=NOT_INITIALIZED_MESSAGE,
        confidence=0,
        processing_time=0.0,
    )


class QueryOrchestrator:
    def __init__(
        self,
        parser: Optional[QueryParser] = None,
        executor: Optional[QueryExecutor] = None,
        history: Optional[ConversationHistory] = None,
        id_factory: Callable[[], Any] = uuid4,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.parser = parser or QueryParser()
        self.executor = executor or QueryExecutor()
        self.history = history
        self._id_factory = id_factory
        self._clock = clock
        if self.executor.has_data:
            self.parser.set_catalog(self.executor.catalog)

    @property
    def is_initialized(self) -> bool:
        return self.executor.has_data

    def update_data(
        self,
        moments: Iterable[Moment],
        companies: Iterable[Any] = (),
        technologies: Iterable[Any] = (),
    ) -> None:
        """Install a new corpus and refresh the parser's known-entity catalog."""
        self.executor.update_data(moments, companies, technologies)
        self.parser.set_catalog(self.executor.catalog)

    def parse_query(self, text: str, context: Optional[QueryContext] = None) -> QueryIntent:
        return self.parser.parse_query(text, context)

    def execute_query(self, intent: QueryIntent, context: Optional[QueryContext] = None) -> QueryResults:
        if not self.is_initialized:
            logger.warning("Query executed before any data was loaded.")
            return not_initialized_results()
        return self.executor.execute_query(intent, context)

    def process_query(self, text: str, context: Optional[QueryContext] = None) -> ConversationEntry:
        """
        Parse and execute ``text``.

        The returned entry always has ``loading`` False. On failure ``error``
        holds the message and ``results`` stays None.
        """
        entry = ConversationEntry(id=str(self._id_factory()), text=text, timestamp=self._clock())

        try:
            entry.parsed_intent = self.parse_query(text, context)
            entry.results = self.execute_query(entry.parsed_intent, context)
        except Exception as exc:
            logger.exception("Failed to process query %r", text)
            entry.results = None
            entry.error = str(exc) or exc.__class__.__name__
        finally:
            entry.loading = False

        if self.history is not None:
            self.history.add(entry)
        return entry
