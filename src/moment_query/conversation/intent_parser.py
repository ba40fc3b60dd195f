"""
Rule-based intent parser.

Turns a free-text question into a QueryIntent in two passes:

1. An ordered table of IntentPattern records is evaluated against the
   normalised text. Every entry that matches is scored (base confidence,
   adjusted for the active view and the length of the match) and the
   highest score wins; ties go to the earlier entry.
2. Generic extractors (entities, timeframe, factors, metrics, filters,
   visualization hint) run over the whole question. Fields the winning
   pattern populated take precedence over the generic ones.

Nothing here is statistical: the same text and context always give the
same intent.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from moment_query import config
from moment_query.conversation.types import QueryContext
from moment_query.core.catalog import EntityCatalog
from moment_query.core.timeframes import Timeframe, extract_timeframe, strip_timeframes
from moment_query.core.types import (
    ENTITY_CATEGORIES,
    FactorSelection,
    IntentEntities,
    IntentFilters,
    QueryIntent,
)

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 50
VIEW_BOOST = 10
SHORT_MATCH_PENALTY = 15
SHORT_MATCH_LENGTH = 10

# Intent types that fit naturally with each application view.
RELEVANT_INTENTS: Dict[str, Sequence[str]] = {
    "moments": ("search", "filter", "temporal"),
    "dashboard": ("analysis", "aggregate", "trend"),
    "graph": ("pattern", "comparison"),
    "patterns": ("pattern", "analysis"),
}

DEFAULT_VISUALIZATION: Dict[str, str] = {
    "temporal": "timeline",
    "comparison": "chart",
    "aggregate": "chart",
    "trend": "chart",
    "pattern": "network",
}

AGGREGATION_KEYWORDS: Dict[str, str] = {
    "how many": "count",
    "count": "count",
    "total": "count",
    "sum": "sum",
    "average": "average",
    "mean": "average",
    "max": "max",
    "maximum": "max",
    "min": "min",
    "minimum": "min",
}

# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

_PUNCT = " \t\"'`?!.,;:()[]"

# Words that carry no entity meaning at the edges of a captured phrase.
FILLER_WORDS = frozenset(
    """
    a an the all any some me my our us we i of in on for about to with at by from over
    during since after following regarding concerning related there is are was were be been
    what which who how do does did have has had happened happening show find get list
    moment moments event events activity activities trend trends news update updates item items
    impact score scores development developments thing things recent recently latest
    high medium low significant important major minor moderate new
    company companies technology technologies tech firm firms startup startups
    """.split()
)

_SPLIT_RE = re.compile(r"\s*(?:,|;|&|\band\b|\bor\b|\bvs\b\.?|\bversus\b)\s*", re.IGNORECASE)
_TECH_RE = re.compile(
    r"\b(?:ai|artificial\s+intelligence|machine\s+learning|ml|algorithms?|neural|deep\s+learning|llms?)\b",
    re.IGNORECASE,
)
_CORP_SUFFIX_RE = re.compile(r"\b(?:inc|corp|corporation|llc|ltd|plc|gmbh|ag)\b\.?$", re.IGNORECASE)
_PROPER_RE = re.compile(r"^[A-Z][\w.&'-]*(?:\s+[A-Z][\w.&'-]*)*$")

_COMPANY_LIST_RE = re.compile(
    r"\b(?:compan(?:y|ies)|corporations?|firms?|businesses|startups?)\s+"
    r"(?:like|such\s+as|named|called|including)\s+([^.?!;]+)",
    re.IGNORECASE,
)
_TECH_LIST_RE = re.compile(
    r"\b(?:technolog(?:y|ies)|tech|tools?|platforms?)\s+"
    r"(?:like|such\s+as|named|called|including)\s+([^.?!;]+)",
    re.IGNORECASE,
)
_PEOPLE_RE = re.compile(
    r"\b(?i:ceo|cto|cfo|founder|co-founder|executive|president|chairman|chairwoman|leader|person)"
    r"\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)+)"
)
_LOCATION_RE = re.compile(r"\b(?:[Ii]n|[Ff]rom|[Aa]t)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)")
_NOT_PLACES = frozenset(
    """
    january february march april may june july august september october november december
    monday tuesday wednesday thursday friday saturday sunday
    """.split()
)

CONCEPT_PATTERNS: List[re.Pattern] = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\bai\s+regulation\b",
        r"\bmachine\s+learning\b",
        r"\bartificial\s+intelligence\b",
        r"\bdeep\s+learning\b",
        r"\bneural\s+networks?\b",
        r"\bdata\s+privacy\b",
        r"\bcybersecurity\b",
        r"\bcloud\s+computing\b",
        r"\bquantum\s+computing\b",
        r"\bblockchain\b",
        r"\bcryptocurrency\b",
        r"\bfintech\b",
        r"\bhealthtech\b",
        r"\bedtech\b",
    )
]

MICRO_FACTOR_KEYWORDS: Dict[str, re.Pattern] = {
    "company": re.compile(r"\b(?:compan(?:y|ies)|firms?|business(?:es)?|startups?)\b"),
    "competition": re.compile(r"\b(?:compet\w*|rivals?|rivalry|versus|vs)\b"),
    "partners": re.compile(r"\b(?:partner\w*|alliances?|collaborat\w*)\b"),
    "customers": re.compile(r"\b(?:customers?|clients?|users?)\b"),
}
MACRO_FACTOR_KEYWORDS: Dict[str, re.Pattern] = {
    "economic": re.compile(r"\b(?:economic\w*|financ\w*|markets?|revenue|funding)\b"),
    "geo_political": re.compile(r"\b(?:geopolitic\w*|geo-political|international|global|countr(?:y|ies))\b"),
    "regulation": re.compile(r"\b(?:regulat\w*|laws?|legal|compliance|polic(?:y|ies))\b"),
    "technology": re.compile(r"\b(?:technolog\w*|ai|innovation\w*|breakthroughs?)\b"),
    "environment": re.compile(r"\b(?:environment\w*|sustainab\w*|climate)\b"),
    "supply_chain": re.compile(r"\b(?:supply|logistics|production)\b"),
}
METRIC_KEYWORDS: Dict[str, re.Pattern] = {
    "impact": re.compile(r"\b(?:impact\w*|importance|significant)\b"),
    "count": re.compile(r"\b(?:count|number|total|how\s+many)\b"),
    "average": re.compile(r"\b(?:average|mean)\b"),
    "growth": re.compile(r"\b(?:growth|grow\w*|increas\w*|trend\w*)\b"),
    "confidence": re.compile(r"\b(?:confidence|certainty)\b"),
}
# "list" is a search verb ("list moments about X"), so it is not a table hint.
VISUALIZATION_KEYWORDS: List[tuple] = [
    ("chart", re.compile(r"\b(?:chart|graph|plot)\b")),
    ("timeline", re.compile(r"\b(?:timeline|chronolog\w*|time\s+series)\b")),
    ("network", re.compile(r"\b(?:network|connections?|relationships?)\b")),
    ("table", re.compile(r"\b(?:table|tabular|spreadsheet)\b")),
    ("heatmap", re.compile(r"\b(?:heat\s*map|matrix)\b")),
]

_IMPACT_TIERS = [
    (re.compile(r"\b(?:high[\s-]+impact|significant|important)\b"), config.HIGH_IMPACT_THRESHOLD),
    (re.compile(r"\b(?:medium[\s-]+impact|moderate)\b"), config.MEDIUM_IMPACT_THRESHOLD),
    (re.compile(r"\b(?:low[\s-]+impact|minor)\b"), config.LOW_IMPACT_THRESHOLD),
]
_CONFIDENCE_TIERS = [
    (re.compile(r"\b(?:high\s+confidence|certain|sure)\b"), "high"),
    (re.compile(r"\b(?:medium\s+confidence|likely)\b"), "medium"),
    (re.compile(r"\b(?:low\s+confidence|uncertain)\b"), "low"),
]
_COMPANY_WORD_RE = re.compile(r"\bcompan(?:y|ies)\b")
_TECH_WORD_RE = re.compile(r"\btechnolog")


# ---------------------------------------------------------------------------
# Pattern table
# ---------------------------------------------------------------------------

@dataclass
class PatternFields:
    """Fields a pattern extractor can set; None means "leave to the generic extractors"."""
    type: Optional[str] = None
    entities: Optional[IntentEntities] = None
    timeframe: Optional[Timeframe] = None
    filters: Optional[IntentFilters] = None
    aggregation: Optional[str] = None


Extractor = Callable[[re.Match, str], PatternFields]


@dataclass(frozen=True)
class IntentPattern:
    matcher: re.Pattern
    intent_type: str
    extractor: Extractor
    base_confidence: int


def _group(match: re.Match, source: str, index: int) -> str:
    """Text of a capture group, sliced from ``source`` so the user's casing survives."""
    if match.group(index) is None:
        return ""
    return source[match.start(index):match.end(index)]


def _trim_filler(phrase: str) -> str:
    tokens = phrase.strip(_PUNCT).split()
    while tokens and tokens[0].lower().strip(_PUNCT) in FILLER_WORDS:
        tokens.pop(0)
    while tokens and tokens[-1].lower().strip(_PUNCT) in FILLER_WORDS:
        tokens.pop()
    return " ".join(tokens).strip(_PUNCT)


def _split_names(phrase: str) -> List[str]:
    names = (_trim_filler(part) for part in _SPLIT_RE.split(phrase or ""))
    return [n for n in names if n]


def _find_locations(text: str) -> List[str]:
    return [
        m.group(1)
        for m in _LOCATION_RE.finditer(text or "")
        if m.group(1).split()[0].lower() not in _NOT_PLACES
    ]


class QueryParser:
    """
    Natural-language question -> QueryIntent.

    ``catalog`` is the known-entity lookup hook; the orchestrator refreshes
    it whenever the corpus changes.
    """

    def __init__(self, catalog: Optional[EntityCatalog] = None) -> None:
        self._catalog = catalog
        self.patterns: List[IntentPattern] = self._build_patterns()

    def set_catalog(self, catalog: Optional[EntityCatalog]) -> None:
        self._catalog = catalog

    @property
    def catalog(self) -> Optional[EntityCatalog]:
        return self._catalog

    # -- table --------------------------------------------------------------

    def _build_patterns(self) -> List[IntentPattern]:
        return [
            IntentPattern(
                re.compile(
                    r"\b(?:show|find|get|display|list)\s+(?:me\s+)?(?:all\s+)?(?:the\s+)?moments?\s+"
                    r"(?:related\s+to|about|for|concerning|regarding)\s+(.+)"
                ),
                "search",
                self._entities_from_group,
                85,
            ),
            IntentPattern(
                re.compile(
                    r"\b(?:what|how)\s+(?:are\s+)?(?:the\s+)?(?:patterns?|trends?)\s+"
                    r"(?:emerged?|appeared?|developed?)\s+(?:after|following|since)\s+(.+)"
                ),
                "analysis",
                self._patterns_after,
                90,
            ),
            IntentPattern(
                re.compile(
                    r"\b(?:analy[sz]e|analysis\s+of|insights?\s+(?:on|into))\s+"
                    r"(?!(?:me\s+)?(?:activity|moments|trends)\s+(?:in|during|for)\b)(.+)"
                ),
                "analysis",
                self._entities_from_group,
                80,
            ),
            IntentPattern(
                re.compile(
                    r"\b(?:find|discover|show|identify)\s+(?:me\s+)?(?:the\s+)?(?:any\s+)?"
                    r"(?:patterns?|clusters?|sequences?)(?:\s+(?:in|for|around|among|across|involving)\s+(.+))?"
                ),
                "pattern",
                self._entities_from_group,
                80,
            ),
            IntentPattern(
                re.compile(r"\b(?:show|analy[sz]e|track)\s+(?:me\s+)?(?:activity|moments|trends)\s+(?:in|during|for)\s+(.+)"),
                "temporal",
                self._temporal,
                80,
            ),
            IntentPattern(
                re.compile(r"\b(?:compare|contrast)\s+(.+?)\s+(?:and|vs\.?|versus|with)\s+(.+)"),
                "comparison",
                self._comparison,
                85,
            ),
            IntentPattern(
                re.compile(r"\b(how\s+many|count|total|sum|average|mean|maximum|max|minimum|min)\b\s*(.*)"),
                "aggregate",
                self._aggregate,
                80,
            ),
            IntentPattern(
                re.compile(r"\b(?:moments?\s+with|high\s+impact|significant)\s+(.+)"),
                "filter",
                self._filter,
                75,
            ),
            IntentPattern(
                re.compile(r"\b(?:trending|emerging|growing|declining)\s+(.+)"),
                "trend",
                self._entities_from_group,
                80,
            ),
        ]

    # -- pattern extractors --------------------------------------------------

    def _entities_from_group(self, match: re.Match, source: str) -> PatternFields:
        return PatternFields(entities=self.parse_entity_string(_group(match, source, 1)))

    def _patterns_after(self, match: re.Match, source: str) -> PatternFields:
        fields = self._entities_from_group(match, source)
        fields.type = "pattern"
        return fields

    def _temporal(self, match: re.Match, source: str) -> PatternFields:
        phrase = _group(match, source, 1)
        return PatternFields(timeframe=extract_timeframe(phrase), entities=self.parse_entity_string(phrase))

    def _comparison(self, match: re.Match, source: str) -> PatternFields:
        left = self.parse_entity_string(_group(match, source, 1))
        right = self.parse_entity_string(_group(match, source, 2))
        return PatternFields(entities=IntentEntities.combine(left, right))

    def _aggregate(self, match: re.Match, source: str) -> PatternFields:
        keyword = re.sub(r"\s+", " ", match.group(1))
        return PatternFields(
            aggregation=AGGREGATION_KEYWORDS.get(keyword, "count"),
            entities=self.parse_entity_string(_group(match, source, 2)),
        )

    def _filter(self, match: re.Match, source: str) -> PatternFields:
        # "moments with low impact" keeps its own tier; otherwise the high floor
        threshold = self._impact_tier(source.lower()) or config.HIGH_IMPACT_THRESHOLD
        return PatternFields(
            filters=IntentFilters(impact_threshold=threshold),
            entities=self.parse_entity_string(_group(match, source, 1)),
        )

    # -- entity string parsing ----------------------------------------------

    def _classify(self, name: str) -> str:
        if self._catalog is not None:
            if self._catalog.lookup(name, "technologies"):
                return "technologies"
            if self._catalog.lookup(name, "companies"):
                return "companies"
        if _TECH_RE.search(name):
            return "technologies"
        if _CORP_SUFFIX_RE.search(name) or _PROPER_RE.match(name):
            return "companies"
        return "concepts"

    def parse_entity_string(self, phrase: str) -> IntentEntities:
        """
        Split a captured phrase into names and classify each one.

        Timeframe phrases and "in/from/at <Place>" are taken out first so
        they never end up as company or concept names.
        """
        buckets: Dict[str, List[str]] = {c: [] for c in ENTITY_CATEGORIES}
        if not phrase or not phrase.strip():
            return IntentEntities()

        text = strip_timeframes(phrase)
        for place in _find_locations(text):
            buckets["locations"].append(place)
            text = re.sub(r"\b(?:[Ii]n|[Ff]rom|[Aa]t)\s+" + re.escape(place) + r"\b", " ", text)

        for name in _split_names(text):
            buckets[self._classify(name)].append(name)
        return IntentEntities(**buckets)

    # -- generic extractors --------------------------------------------------

    def extract_entities(self, original: str) -> IntentEntities:
        companies = [n for m in _COMPANY_LIST_RE.finditer(original) for n in _split_names(m.group(1))]
        technologies = [n for m in _TECH_LIST_RE.finditer(original) for n in _split_names(m.group(1))]
        if self._catalog is not None:
            companies.extend(self._catalog.lookup(original, "companies"))
            technologies.extend(self._catalog.lookup(original, "technologies"))

        people = [m.group(1) for m in _PEOPLE_RE.finditer(original)]
        known = {n.lower() for n in companies + technologies + people}
        locations = [p for p in _find_locations(original) if p.lower() not in known]
        concepts = [m.group(0) for pattern in CONCEPT_PATTERNS for m in pattern.finditer(original)]

        return IntentEntities(
            companies=companies,
            technologies=technologies,
            people=people,
            locations=locations,
            concepts=concepts,
        )

    @staticmethod
    def extract_factors(normalized: str) -> Optional[FactorSelection]:
        micro = tuple(f for f, pattern in MICRO_FACTOR_KEYWORDS.items() if pattern.search(normalized))
        macro = tuple(f for f, pattern in MACRO_FACTOR_KEYWORDS.items() if pattern.search(normalized))
        if not micro and not macro:
            return None
        return FactorSelection(micro=micro, macro=macro)

    @staticmethod
    def extract_metrics(normalized: str) -> List[str]:
        return [name for name, pattern in METRIC_KEYWORDS.items() if pattern.search(normalized)]

    @staticmethod
    def _impact_tier(normalized: str) -> Optional[int]:
        for pattern, threshold in _IMPACT_TIERS:
            if pattern.search(normalized):
                return threshold
        return None

    def extract_filters(self, normalized: str) -> Optional[IntentFilters]:
        confidence = next((level for pattern, level in _CONFIDENCE_TIERS if pattern.search(normalized)), None)

        has_company = bool(_COMPANY_WORD_RE.search(normalized))
        has_tech = bool(_TECH_WORD_RE.search(normalized))
        source_type = None
        if has_company != has_tech:
            source_type = "company" if has_company else "technology"

        filters = IntentFilters(
            impact_threshold=self._impact_tier(normalized),
            confidence_level=confidence,
            source_type=source_type,
        )
        return None if filters.is_empty() else filters

    @staticmethod
    def infer_visualization(intent_type: str, normalized: str) -> str:
        for hint, pattern in VISUALIZATION_KEYWORDS:
            if pattern.search(normalized):
                return hint
        return DEFAULT_VISUALIZATION.get(intent_type, "cards")

    # -- selection -----------------------------------------------------------

    @staticmethod
    def score(pattern: IntentPattern, match: re.Match, context: Optional[QueryContext]) -> int:
        confidence = pattern.base_confidence
        view = context.active_view if context is not None else None
        if view and pattern.intent_type in RELEVANT_INTENTS.get(view, ()):
            confidence += VIEW_BOOST
        if len(match.group(0)) < SHORT_MATCH_LENGTH:
            confidence -= SHORT_MATCH_PENALTY
        return max(0, min(100, confidence))

    def select_pattern(self, normalized: str, context: Optional[QueryContext]):
        """Arg-max over the table; returns (pattern, match, confidence) or None."""
        best = None
        for pattern in self.patterns:
            match = pattern.matcher.search(normalized)
            if match is None:
                continue
            confidence = self.score(pattern, match, context)
            logger.debug("Pattern %s matched %r (confidence=%d).", pattern.intent_type, match.group(0), confidence)
            if best is None or confidence > best[2]:
                best = (pattern, match, confidence)
        return best

    # -- public entry point --------------------------------------------------

    def parse_query(self, text: str, context: Optional[QueryContext] = None) -> QueryIntent:
        """
        Parse ``text`` into a QueryIntent. Never raises: on any extractor
        failure the error is logged and a generic search intent is returned.
        """
        original = (text or "").strip()
        if not original:
            return QueryIntent()

        try:
            return self._parse(original, context)
        except Exception:
            logger.exception("Failed to parse query %r; using a generic search.", original)
            return QueryIntent(confidence=FALLBACK_CONFIDENCE)

    def _parse(self, original: str, context: Optional[QueryContext]) -> QueryIntent:
        normalized = original.lower()
        # Slice spans from the original text only when lowercasing kept offsets.
        source = original if len(original) == len(normalized) else normalized

        entities = self.extract_entities(original)
        timeframe = extract_timeframe(original)
        factors = self.extract_factors(normalized)
        metrics = self.extract_metrics(normalized)
        filters = self.extract_filters(normalized)

        best = self.select_pattern(normalized, context)
        if best is None:
            logger.debug("No intent pattern matched %r; falling back to search.", original)
            return QueryIntent(
                type="search",
                entities=entities,
                timeframe=timeframe,
                factors=factors,
                metrics=metrics,
                filters=filters,
                visualization=self.infer_visualization("search", normalized),
                confidence=FALLBACK_CONFIDENCE,
            )

        pattern, match, confidence = best
        fields = pattern.extractor(match, source)
        intent_type = fields.type or pattern.intent_type

        if fields.filters is not None:
            filters = (filters or IntentFilters()).overridden_by(fields.filters)

        intent = QueryIntent(
            type=intent_type,
            entities=entities.overridden_by(fields.entities),
            timeframe=fields.timeframe or timeframe,
            factors=factors,
            metrics=metrics,
            filters=filters,
            aggregation=fields.aggregation,
            visualization=self.infer_visualization(intent_type, normalized),
            confidence=confidence,
        )
        logger.debug("Parsed %r as %s (confidence=%d).", original, intent.type, intent.confidence)
        return intent
