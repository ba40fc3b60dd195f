"""
Tests for QueryParser.

Covers pattern selection (arg-max, view boost, short-match penalty), entity
extraction with preserved casing, generic extractors and the never-raise
fallback.
"""

import pytest

from moment_query.conversation.intent_parser import QueryParser
from moment_query.conversation.types import QueryContext
from moment_query.core.catalog import EntityCatalog
from moment_query.core.types import IntentEntities, QueryIntent


class TestPatternSelection:
    """Which intent type wins, and with what confidence."""

    def test_search_keeps_original_casing(self, parser):
        intent = parser.parse_query("show me moments about Acme")

        assert intent.type == "search"
        assert intent.entities.companies == ["Acme"]
        assert intent.confidence == 85
        assert intent.visualization == "cards"

    def test_camel_case_company_is_not_a_technology(self, parser):
        intent = parser.parse_query("Show me moments about OpenAI")

        assert intent.entities.companies == ["OpenAI"]
        assert intent.entities.technologies == []

    def test_active_view_boosts_relevant_intent(self, parser):
        intent = parser.parse_query("show me moments about Acme", QueryContext(active_view="moments"))
        assert intent.confidence == 95

    def test_irrelevant_view_gives_no_boost(self, parser):
        intent = parser.parse_query("show me moments about Acme", QueryContext(active_view="graph"))
        assert intent.confidence == 85

    def test_patterns_after_is_retyped_to_pattern(self, parser):
        intent = parser.parse_query("what patterns emerged after Acme")

        assert intent.type == "pattern"
        assert intent.confidence == 90
        assert intent.visualization == "network"
        assert intent.entities.companies == ["Acme"]

    def test_patterns_view_boost_is_clamped(self, parser):
        intent = parser.parse_query("what patterns emerged after Acme", QueryContext(active_view="patterns"))
        assert intent.confidence == 100

    def test_comparison_collects_both_sides(self, parser):
        intent = parser.parse_query("compare Acme and Globex")

        assert intent.type == "comparison"
        assert intent.entities.companies == ["Acme", "Globex"]
        assert intent.visualization == "chart"
        assert intent.confidence == 85

    def test_comparison_with_three_entities(self, parser):
        intent = parser.parse_query("compare Acme, Globex and Initech")
        assert intent.entities.companies == ["Acme", "Globex", "Initech"]

    def test_how_many_is_count_aggregate(self, parser):
        intent = parser.parse_query("how many moments")

        assert intent.type == "aggregate"
        assert intent.aggregation == "count"
        assert intent.entities.is_empty()
        assert "count" in intent.metrics

    def test_average_aggregate_extracts_technology(self, parser):
        intent = parser.parse_query("average impact of AI moments")

        assert intent.type == "aggregate"
        assert intent.aggregation == "average"
        assert intent.entities.technologies == ["AI"]

    def test_short_match_is_penalised(self, parser):
        intent = parser.parse_query("sum x")

        assert intent.type == "aggregate"
        assert intent.aggregation == "sum"
        assert intent.confidence == 65

    def test_temporal_captures_timeframe(self, parser):
        intent = parser.parse_query("show me activity in the last 3 months")

        assert intent.type == "temporal"
        assert intent.timeframe is not None
        assert intent.timeframe.relative == "last 3 months"
        assert intent.visualization == "timeline"

    def test_quarter_timeframe(self, parser):
        intent = parser.parse_query("show me activity in Q4 2024")

        assert intent.type == "temporal"
        assert intent.timeframe.relative == "q4 2024"
        assert intent.entities.is_empty()

    def test_trend(self, parser):
        intent = parser.parse_query("trending AI")

        assert intent.type == "trend"
        assert intent.entities.technologies == ["AI"]
        assert intent.confidence == 80
        assert intent.visualization == "chart"

    def test_high_impact_filter(self, parser):
        intent = parser.parse_query("Show me all high impact moments")

        assert intent.type == "filter"
        assert intent.filters.impact_threshold == 70
        assert intent.entities.is_empty()

    def test_filter_keeps_requested_tier(self, parser):
        intent = parser.parse_query("moments with low impact")

        assert intent.type == "filter"
        assert intent.filters.impact_threshold == 20


class TestFallback:
    """No pattern, empty text, or a broken extractor."""

    def test_unmatched_text_is_generic_search(self, parser):
        intent = parser.parse_query("hello there")

        assert intent.type == "search"
        assert intent.confidence == 50
        assert intent.visualization == "cards"

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_input(self, parser, text):
        intent = parser.parse_query(text)

        assert intent.type == "search"
        assert intent.confidence == 50
        assert intent.entities.is_empty()

    def test_extractor_failure_never_raises(self, parser, monkeypatch):
        def boom(_text):
            raise RuntimeError("extractor exploded")

        monkeypatch.setattr(parser, "extract_entities", boom)
        intent = parser.parse_query("show me moments about Acme")

        assert intent.type == "search"
        assert intent.confidence == 50

    def test_fallback_still_runs_generic_extractors(self, parser):
        intent = parser.parse_query("regulation news affecting customers in the last 2 weeks")

        assert intent.type == "search"
        assert intent.factors.micro == ("customers",)
        assert intent.factors.macro == ("regulation",)
        assert intent.timeframe.relative == "last 2 weeks"


class TestGenericExtractors:
    """Extractors that run over the whole question."""

    def test_catalog_lookup_uses_catalog_casing(self):
        parser = QueryParser(EntityCatalog.from_entries(["Acme"], ["RoboX"]))
        intent = parser.parse_query("any news on robox?")

        assert intent.entities.technologies == ["RoboX"]

    def test_set_catalog_replaces_lookup(self, parser):
        assert parser.parse_query("any news on robox?").entities.technologies == []
        parser.set_catalog(EntityCatalog.from_entries([], ["RoboX"]))
        assert parser.parse_query("any news on robox?").entities.technologies == ["RoboX"]

    def test_people_and_locations(self, parser):
        entities = parser.extract_entities("What did CEO Jane Smith announce in Berlin?")

        assert entities.people == ["Jane Smith"]
        assert entities.locations == ["Berlin"]

    def test_month_names_are_not_locations(self, parser):
        assert parser.extract_entities("launches in March").locations == []

    def test_company_list(self, parser):
        entities = parser.extract_entities("companies like Acme and Globex")
        assert entities.companies == ["Acme", "Globex"]

    def test_concept_vocabulary(self, parser):
        entities = parser.extract_entities("latest on quantum computing and data privacy")
        assert entities.concepts == ["data privacy", "quantum computing"]

    def test_filters(self, parser):
        filters = parser.extract_filters("high impact technology moments with low confidence")

        assert filters.impact_threshold == 70
        assert filters.confidence_level == "low"
        assert filters.source_type == "technology"

    def test_source_type_needs_exactly_one_vocabulary(self, parser):
        assert parser.extract_filters("companies and technologies") is None

    def test_no_filters(self, parser):
        assert parser.extract_filters("show me moments") is None

    def test_metrics(self, parser):
        assert parser.extract_metrics("average impact growth") == ["impact", "average", "growth"]

    @pytest.mark.parametrize(
        "intent_type,text,expected",
        [
            ("search", "show a timeline of acme", "timeline"),
            ("search", "acme as a heatmap", "heatmap"),
            ("temporal", "acme", "timeline"),
            ("pattern", "acme", "network"),
            ("aggregate", "acme", "chart"),
            ("search", "acme", "cards"),
            ("search", "list moments about acme", "cards"),
            ("search", "acme as a table", "table"),
        ],
    )
    def test_visualization(self, intent_type, text, expected):
        assert QueryParser.infer_visualization(intent_type, text) == expected


class TestIntentTypes:
    """Invariants of the intent dataclasses."""

    def test_confidence_is_clamped(self):
        assert QueryIntent(confidence=150).confidence == 100
        assert QueryIntent(confidence=-5).confidence == 0

    def test_entities_are_deduplicated_case_insensitively(self):
        entities = IntentEntities(companies=["Acme", "acme", "Globex"])
        assert entities.companies == ["Acme", "Globex"]

    def test_override_is_per_category(self):
        generic = IntentEntities(companies=["Acme"], concepts=["blockchain"])
        specific = IntentEntities(companies=["Globex"])

        merged = generic.overridden_by(specific)

        assert merged.companies == ["Globex"]
        assert merged.concepts == ["blockchain"]
