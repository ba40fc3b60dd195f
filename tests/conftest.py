"""
Shared pytest fixtures for the moment query engine tests.

Fixture Organization
--------------------
- **now**: fixed "current time" (Sunday 2024-12-15 12:00 UTC)
- **make_moment**: builder for Moment objects with sensible defaults
- **corpus**: ten moments across five companies and three technologies
- **executor**: QueryExecutor loaded with ``corpus`` and pinned to ``now``
- **parser**: QueryParser with no catalog
"""

from datetime import datetime
from typing import Callable, List, Optional, Sequence

import pytest

from moment_query.conversation.intent_parser import QueryParser
from moment_query.core.models import Moment, MomentClassification, MomentEntities, MomentSource
from moment_query.core.query_engine import QueryExecutor

NOW = datetime(2024, 12, 15, 12, 0, 0)


def _build_moment(
    moment_id: str,
    title: str = "Untitled moment",
    *,
    when: Optional[datetime] = None,
    companies: Sequence[str] = (),
    technologies: Sequence[str] = (),
    people: Sequence[str] = (),
    locations: Sequence[str] = (),
    micro: Sequence[str] = (),
    macro: Sequence[str] = (),
    impact: int = 50,
    confidence: str = "medium",
    source_kind: str = "company",
    source_name: Optional[str] = None,
    description: str = "",
    content: Optional[str] = None,
) -> Moment:
    if source_name is None:
        names = companies if source_kind == "company" else technologies
        source_name = names[0] if names else "Unknown"
    return Moment(
        id=moment_id,
        title=title,
        description=description,
        content=content if content is not None else f"{title}. {description}".strip(),
        extracted_at=when or NOW,
        source=MomentSource(kind=source_kind, name=source_name, id=f"src-{moment_id}"),
        entities=MomentEntities(
            companies=tuple(companies),
            technologies=tuple(technologies),
            people=tuple(people),
            locations=tuple(locations),
        ),
        classification=MomentClassification(
            micro_factors=tuple(micro),
            macro_factors=tuple(macro),
            confidence=confidence,
        ),
        impact_score=impact,
    )


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_moment() -> Callable[..., Moment]:
    """Moment builder.

    Example:
        def test_something(make_moment):
            m = make_moment("m1", "Acme launch", companies=["Acme"], impact=80)
    """
    return _build_moment


@pytest.fixture
def corpus() -> List[Moment]:
    """Ten moments; three of them (m1, m3, m5) score 70 or more."""
    at = lambda y, mo, d: datetime(y, mo, d, 10, 0, 0)  # noqa: E731
    return [
        _build_moment(
            "m1", "Acme launches RoboX assistant", when=at(2024, 12, 10),
            companies=["Acme"], technologies=["RoboX"], micro=["company"], macro=["technology"], impact=80,
        ),
        _build_moment(
            "m2", "Acme signs RoboX distribution deal", when=at(2024, 12, 13),
            companies=["Acme"], technologies=["RoboX"], micro=["partners"], macro=["economic"], impact=40,
        ),
        _build_moment(
            "m3", "Globex closes funding round", when=at(2024, 12, 12),
            companies=["Globex"], macro=["economic"], impact=75,
        ),
        _build_moment(
            "m4", "Globex trims workforce", when=at(2024, 11, 20),
            companies=["Globex"], micro=["company"], impact=30,
        ),
        _build_moment(
            "m5", "Initech faces new regulation", when=at(2024, 10, 5),
            companies=["Initech"], macro=["regulation"], impact=90, confidence="high",
        ),
        _build_moment(
            "m6", "New AI chip announced", when=at(2024, 12, 1),
            technologies=["AI"], macro=["technology"], impact=50, source_kind="technology",
        ),
        _build_moment(
            "m7", "Umbrella expands warehouse network", when=at(2024, 9, 15),
            companies=["Umbrella"], macro=["supply_chain"], impact=20, confidence="low",
        ),
        _build_moment(
            "m8", "Blockchain pilot stalls", when=at(2024, 8, 1),
            technologies=["Blockchain"], macro=["technology"], impact=10, source_kind="technology",
        ),
        _build_moment(
            "m9", "Hooli wins enterprise customer", when=at(2024, 7, 10),
            companies=["Hooli"], micro=["customers"], impact=60,
        ),
        _build_moment(
            "m10", "Hooli enters competitive market", when=at(2024, 6, 1),
            companies=["Hooli"], micro=["competition"], impact=65,
        ),
    ]


@pytest.fixture
def executor(corpus: List[Moment]) -> QueryExecutor:
    engine = QueryExecutor(clock=lambda: NOW)
    engine.update_data(
        corpus,
        companies=["Acme", "Globex", "Initech", "Umbrella", "Hooli"],
        technologies=[{"name": "RoboX"}, {"name": "AI"}, {"name": "Blockchain"}],
    )
    return engine


@pytest.fixture
def parser() -> QueryParser:
    return QueryParser()
