from __future__ import annotations

import dataclasses
import logging
from collections import deque
from typing import Deque, List, Optional

from moment_query import config
from moment_query.conversation.types import ConversationEntry

logger = logging.getLogger(__name__)


class ConversationHistory:
    """
    Bounded log of conversation entries, newest first.

    Once ``max_entries`` is reached the oldest entry is dropped on every add.
    Suggestions are derived from the most recent successful entries.
    """

    def __init__(self, max_entries: int = config.MAX_HISTORY_ENTRIES) -> None:
        self.max_entries = max(1, max_entries)
        self._entries: Deque[ConversationEntry] = deque(maxlen=self.max_entries)

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, entry: ConversationEntry) -> None:
        self._entries.appendleft(entry)

    def update(self, entry_id: str, **changes) -> Optional[ConversationEntry]:
        """Replace the entry with ``entry_id`` by a copy carrying ``changes``; None if unknown."""
        for index, entry in enumerate(self._entries):
            if entry.id == entry_id:
                updated = dataclasses.replace(entry, **changes)
                self._entries[index] = updated
                return updated
        logger.debug("No history entry with id %s to update.", entry_id)
        return None

    def clear(self) -> None:
        self._entries.clear()

    def get_recent(self, limit: int = 10) -> List[ConversationEntry]:
        return list(self._entries)[: max(0, limit)]

    def get_all(self) -> List[ConversationEntry]:
        return list(self._entries)

    def get_successful(self, limit: int = 5) -> List[ConversationEntry]:
        return [e for e in self._entries if e.is_successful][: max(0, limit)]

    def get_suggestions(self) -> List[str]:
        """
        Follow-up questions built from recent successful queries, topped up
        with the default suggestions. Deduplicated, at most MAX_SUGGESTIONS.
        """
        suggestions: List[str] = []
        for entry in self.get_successful(config.SUGGESTION_SOURCE_ENTRIES):
            intent = entry.parsed_intent
            if intent is None:
                continue
            for company in intent.entities.companies:
                suggestions.append(f"Show me trends for {company}")
            for technology in intent.entities.technologies:
                suggestions.append(f"Analysis of {technology} developments")
            if intent.timeframe is not None:
                suggestions.append(f"What happened {intent.timeframe.describe()}?")

        suggestions.extend(config.DEFAULT_SUGGESTIONS)
        return list(dict.fromkeys(suggestions))[: config.MAX_SUGGESTIONS]
