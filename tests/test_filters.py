"""
Tests for the filter chain stages.
"""

from moment_query.core.filters import (
    apply_filters,
    filter_by_entities,
    filter_by_entity_name,
    filter_by_factors,
    filter_by_timeframe,
    matches_category,
    run_filter_chain,
)
from moment_query.core.timeframes import Timeframe
from moment_query.core.types import FactorSelection, IntentEntities, IntentFilters, QueryIntent


class TestEntityMatching:

    def test_requested_name_inside_entity(self, make_moment):
        m = make_moment("a", "Alpha", companies=["Acme Corp"])
        assert matches_category(m, "companies", ["acme"])

    def test_entity_inside_requested_name(self, make_moment):
        m = make_moment("a", "Alpha", companies=["Acme"])
        assert matches_category(m, "companies", ["Acme Corporation"])

    def test_source_name_counts(self, make_moment):
        m = make_moment("a", "Alpha", source_name="Globex")
        assert matches_category(m, "companies", ["Globex"])

    def test_raw_content_counts(self, make_moment):
        m = make_moment("a", "Alpha", content="Quiet week for Initech.")
        assert matches_category(m, "companies", ["initech"])

    def test_concepts_also_look_at_title(self, make_moment):
        m = make_moment("a", "Robot maker expands", content="nothing here")

        assert matches_category(m, "concepts", ["robot"])
        assert not matches_category(m, "companies", ["robot"])

    def test_empty_request_is_wildcard(self, make_moment):
        assert matches_category(make_moment("a", "Alpha"), "people", [])

    def test_and_across_categories(self, make_moment):
        both = make_moment("both", "Alpha", companies=["Acme"], technologies=["RoboX"])
        only_company = make_moment("company", "Beta", companies=["Acme"])

        kept = filter_by_entities(
            [both, only_company],
            IntentEntities(companies=["Acme"], technologies=["RoboX"]),
        )

        assert [m.id for m in kept] == ["both"]

    def test_or_within_category(self, make_moment):
        acme = make_moment("acme", "Alpha", companies=["Acme"])
        globex = make_moment("globex", "Beta", companies=["Globex"])

        kept = filter_by_entities([acme, globex], IntentEntities(companies=["Acme", "Globex"]))

        assert [m.id for m in kept] == ["acme", "globex"]

    def test_entity_name_for_comparison(self, corpus):
        assert [m.id for m in filter_by_entity_name(corpus, "Hooli", "companies")] == ["m9", "m10"]
        assert [m.id for m in filter_by_entity_name(corpus, "robox", "technologies")] == ["m1", "m2"]
        assert filter_by_entity_name(corpus, "  ", "companies") == []


class TestOtherStages:

    def test_timeframe_window(self, corpus, now):
        kept = filter_by_timeframe(corpus, Timeframe(relative="last 7 days"), now)
        assert sorted(m.id for m in kept) == ["m1", "m2", "m3"]

    def test_unresolvable_timeframe_is_noop(self, corpus, now):
        assert len(filter_by_timeframe(corpus, Timeframe(relative="someday"), now)) == len(corpus)

    def test_factors_or_within_and_between(self, corpus):
        either_micro = filter_by_factors(corpus, FactorSelection(micro=("partners", "customers")))
        assert sorted(m.id for m in either_micro) == ["m2", "m9"]

        micro_and_macro = filter_by_factors(corpus, FactorSelection(micro=("company",), macro=("technology",)))
        assert [m.id for m in micro_and_macro] == ["m1"]

    def test_generic_filters(self, corpus):
        assert [m.id for m in apply_filters(corpus, IntentFilters(confidence_level="high"))] == ["m5"]
        assert sorted(m.id for m in apply_filters(corpus, IntentFilters(source_type="technology"))) == ["m6", "m8"]
        assert len(apply_filters(corpus, IntentFilters())) == len(corpus)


class TestChain:

    def test_chain_is_monotonic(self, corpus, now):
        intents = [
            QueryIntent(),
            QueryIntent(entities=IntentEntities(companies=["Acme", "Globex"])),
            QueryIntent(
                entities=IntentEntities(companies=["Acme", "Globex"]),
                timeframe=Timeframe(relative="last 30 days"),
            ),
            QueryIntent(
                entities=IntentEntities(companies=["Acme", "Globex"]),
                timeframe=Timeframe(relative="last 30 days"),
                factors=FactorSelection(macro=("economic",)),
            ),
            QueryIntent(
                entities=IntentEntities(companies=["Acme", "Globex"]),
                timeframe=Timeframe(relative="last 30 days"),
                factors=FactorSelection(macro=("economic",)),
                filters=IntentFilters(impact_threshold=70),
            ),
        ]

        sizes = [len(run_filter_chain(corpus, intent, now)) for intent in intents]

        assert sizes == [10, 4, 4, 2, 1]
