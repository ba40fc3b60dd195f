from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from moment_query.core.types import FactorSelection, IntentEntities, IntentFilters, QueryIntent
from moment_query.core.models import Moment
from moment_query.core.timeframes import Timeframe, resolve_window

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Entity matching
# ---------------------------------------------------------------------------

def _bidirectional(name: str, values: Iterable[str]) -> bool:
    return any(v and (name in v.lower() or v.lower() in name) for v in values)


def _category_values(moment: Moment, category: str) -> Sequence[str]:
    if category == "concepts":
        return ()
    return getattr(moment.entities, category)


def matches_category(moment: Moment, category: str, names: Sequence[str]) -> bool:
    """
    True if any requested name matches the moment for this category.

    A name matches when it is a substring of (or contains) one of the
    moment's entities of that category, or appears in the source name or the
    raw content. Concepts have no entity list and also look at title and
    description.
    """
    wanted = [n.lower().strip() for n in names if n and n.strip()]
    if not wanted:
        return True

    source_name = moment.source.name.lower()
    text = moment.content.lower()
    if category == "concepts":
        text = " ".join([moment.content, moment.title, moment.description]).lower()

    values = _category_values(moment, category)
    return any(
        _bidirectional(name, values) or name in source_name or name in text
        for name in wanted
    )


def filter_by_entities(moments: Sequence[Moment], entities: Optional[IntentEntities]) -> List[Moment]:
    """AND across categories; an empty category is a wildcard."""
    if entities is None or entities.is_empty():
        return list(moments)
    active = [(c, entities.category(c)) for c in ("companies", "technologies", "concepts", "people", "locations")]
    active = [(c, names) for c, names in active if names]
    return [m for m in moments if all(matches_category(m, c, names) for c, names in active)]


def filter_by_entity_name(moments: Sequence[Moment], name: str, kind: str) -> List[Moment]:
    """
    Moments attributed to one compared entity.

    Companies also count moments whose source is the company; technologies
    only look at the technology entity list.
    """
    needle = name.lower().strip()
    if not needle:
        return []
    if kind == "companies":
        return [
            m for m in moments
            if any(needle in c.lower() for c in m.entities.companies) or needle in m.source.name.lower()
        ]
    return [m for m in moments if any(needle in t.lower() for t in m.entities.technologies)]


# ---------------------------------------------------------------------------
# Timeframe, factors, generic filters
# ---------------------------------------------------------------------------

def filter_by_timeframe(moments: Sequence[Moment], timeframe: Optional[Timeframe], now: datetime) -> List[Moment]:
    window = resolve_window(timeframe, now)
    if window is None:
        if timeframe is not None:
            logger.debug("Timeframe %r not resolvable; ignoring.", timeframe.relative)
        return list(moments)
    start, end = window
    return [m for m in moments if start <= m.extracted_at <= end]


def filter_by_factors(moments: Sequence[Moment], factors: Optional[FactorSelection]) -> List[Moment]:
    """OR within micro, OR within macro, AND between the two groups."""
    if factors is None or factors.is_empty():
        return list(moments)

    def _ok(m: Moment) -> bool:
        micro_ok = not factors.micro or any(f in m.classification.micro_factors for f in factors.micro)
        macro_ok = not factors.macro or any(f in m.classification.macro_factors for f in factors.macro)
        return micro_ok and macro_ok

    return [m for m in moments if _ok(m)]


def apply_filters(moments: Sequence[Moment], filters: Optional[IntentFilters]) -> List[Moment]:
    if filters is None or filters.is_empty():
        return list(moments)
    out: List[Moment] = []
    for m in moments:
        if filters.impact_threshold is not None and m.impact_score < filters.impact_threshold:
            continue
        if filters.confidence_level and m.classification.confidence != filters.confidence_level:
            continue
        if filters.source_type and m.source.kind != filters.source_type:
            continue
        out.append(m)
    return out


def run_filter_chain(moments: Sequence[Moment], intent: QueryIntent, now: datetime) -> List[Moment]:
    """
    Entity match, timeframe window, factor membership, generic filters.

    Each stage only removes moments, so adding a constraint anywhere can
    never grow the result.
    """
    result = filter_by_entities(moments, intent.entities)
    result = filter_by_timeframe(result, intent.timeframe, now)
    result = filter_by_factors(result, intent.factors)
    result = apply_filters(result, intent.filters)
    logger.debug("Filter chain kept %d of %d moments.", len(result), len(moments))
    return result
