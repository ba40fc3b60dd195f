"""
Tests for ConversationHistory: bounds, ordering, updates and suggestions.
"""

from moment_query import config
from moment_query.conversation.state import ConversationHistory
from moment_query.conversation.types import ConversationEntry
from moment_query.core.timeframes import Timeframe
from moment_query.core.types import IntentEntities, QueryIntent, QueryResults, ResultData


def _entry(entry_id, now, *, intent=None, successful=True, error=None):
    results = QueryResults(type="moments", data=ResultData(), explanation="", confidence=50) if successful else None
    return ConversationEntry(
        id=entry_id,
        text=f"question {entry_id}",
        timestamp=now,
        parsed_intent=intent,
        results=results,
        loading=False,
        error=error,
    )


class TestBounds:

    def test_keeps_newest_fifty(self, now):
        history = ConversationHistory()
        for i in range(60):
            history.add(_entry(f"e{i}", now))

        entries = history.get_all()

        assert len(history) == 50
        assert entries[0].id == "e59"
        assert entries[-1].id == "e10"

    def test_custom_size(self, now):
        history = ConversationHistory(max_entries=3)
        for i in range(5):
            history.add(_entry(f"e{i}", now))

        assert [e.id for e in history.get_all()] == ["e4", "e3", "e2"]

    def test_get_recent_defaults_to_ten(self, now):
        history = ConversationHistory()
        for i in range(15):
            history.add(_entry(f"e{i}", now))

        recent = history.get_recent()

        assert len(recent) == 10
        assert recent[0].id == "e14"
        assert [e.id for e in history.get_recent(2)] == ["e14", "e13"]

    def test_clear(self, now):
        history = ConversationHistory()
        history.add(_entry("e0", now))
        history.clear()

        assert history.get_all() == []


class TestUpdates:

    def test_update_by_id(self, now):
        history = ConversationHistory()
        history.add(_entry("e0", now))
        history.add(_entry("e1", now))

        updated = history.update("e0", error="timeout")

        assert updated.error == "timeout"
        assert history.get_all()[1].error == "timeout"
        assert history.get_all()[0].error is None

    def test_update_unknown_id(self, now):
        history = ConversationHistory()
        history.add(_entry("e0", now))

        assert history.update("missing", error="x") is None

    def test_successful_filter(self, now):
        history = ConversationHistory()
        history.add(_entry("ok", now))
        history.add(_entry("failed", now, successful=False, error="boom"))
        loading = _entry("loading", now)
        loading.loading = True
        history.add(loading)

        assert [e.id for e in history.get_successful()] == ["ok"]


class TestSuggestions:

    def test_defaults_when_empty(self):
        history = ConversationHistory()
        assert history.get_suggestions() == config.DEFAULT_SUGGESTIONS[: config.MAX_SUGGESTIONS]

    def test_templates_from_successful_entries(self, now):
        history = ConversationHistory()
        intent = QueryIntent(
            entities=IntentEntities(companies=["Acme"], technologies=["RoboX"]),
            timeframe=Timeframe(relative="last 3 months"),
        )
        history.add(_entry("e0", now, intent=intent))

        suggestions = history.get_suggestions()

        assert suggestions[:3] == [
            "Show me trends for Acme",
            "Analysis of RoboX developments",
            "What happened in the last 3 months?",
        ]
        assert len(suggestions) <= 8

    def test_failed_entries_are_ignored(self, now):
        history = ConversationHistory()
        intent = QueryIntent(entities=IntentEntities(companies=["Globex"]))
        history.add(_entry("e0", now, intent=intent, successful=False, error="boom"))

        assert "Show me trends for Globex" not in history.get_suggestions()

    def test_deduplicated_and_capped(self, now):
        history = ConversationHistory()
        for i in range(6):
            intent = QueryIntent(entities=IntentEntities(companies=["Acme", f"Co{i}"]))
            history.add(_entry(f"e{i}", now, intent=intent))

        suggestions = history.get_suggestions()

        assert len(suggestions) == 8
        assert len(set(suggestions)) == len(suggestions)
        assert suggestions.count("Show me trends for Acme") == 1
