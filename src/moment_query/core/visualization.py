"""
Visualization payload builders.

The engine never renders anything; it only describes data in shapes the
rendering layer understands (timeline, bar, line, network, heatmap, table).
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List, Optional, Sequence

from moment_query import config
from moment_query.core.types import TimelinePoint, Visualization
from moment_query.core.analytics import chronological
from moment_query.core.models import Moment


def timeline_points(moments: Sequence[Moment]) -> List[TimelinePoint]:
    return [
        TimelinePoint(
            moment_id=m.id,
            date=m.extracted_at,
            title=m.title,
            impact=m.impact_score,
            entities=tuple(m.named_entities),
        )
        for m in chronological(moments)
    ]


def chart_data(moments: Sequence[Moment], limit: int = config.MAX_CHART_ENTITIES) -> List[Dict[str, Any]]:
    counts = Counter(e for m in moments for e in m.named_entities)
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:limit]
    return [{"entity": entity, "count": n} for entity, n in ranked]


def network_data(moments: Sequence[Moment], max_links: int = config.MAX_NETWORK_LINKS) -> Dict[str, Any]:
    nodes: List[str] = []
    links: List[Dict[str, Any]] = []
    for m in moments:
        names = list(dict.fromkeys(m.named_entities))
        for name in names:
            if name not in nodes:
                nodes.append(name)
        for i, source in enumerate(names):
            for target in names[i + 1:]:
                links.append({"source": source, "target": target, "weight": m.impact_score / 100})
    return {
        "nodes": [{"id": name, "group": 1} for name in nodes],
        "links": links[:max_links],
    }


def heatmap_data(moments: Sequence[Moment]) -> Dict[str, Dict[str, int]]:
    """Factor x entity co-occurrence counts."""
    matrix: Dict[str, Dict[str, int]] = {}
    for m in moments:
        for factor in m.factors:
            row = matrix.setdefault(factor, {})
            for entity in m.named_entities:
                row[entity] = row.get(entity, 0) + 1
    return matrix


def table_rows(moments: Sequence[Moment]) -> List[Dict[str, Any]]:
    return [
        {
            "id": m.id,
            "title": m.title,
            "date": m.extracted_at.isoformat(),
            "impact": m.impact_score,
            "source": m.source.name,
            "confidence": m.classification.confidence,
        }
        for m in moments
    ]


def for_hint(hint: Optional[str], moments: Sequence[Moment]) -> Optional[Visualization]:
    """Payload for a parser visualization hint; 'cards' needs none."""
    if hint == "timeline":
        return Visualization("timeline", {"showImpact": True}, [p.as_dict() for p in timeline_points(moments)])
    if hint == "chart":
        return Visualization("bar", {"metric": "impact"}, chart_data(moments))
    if hint == "network":
        return Visualization("network", {"showRelationships": True}, network_data(moments))
    if hint == "heatmap":
        return Visualization("heatmap", {"factors": True}, heatmap_data(moments))
    if hint == "table":
        return Visualization("table", {"columns": ["title", "date", "impact", "source", "confidence"]}, table_rows(moments))
    return None
