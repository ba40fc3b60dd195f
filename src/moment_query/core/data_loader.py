from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from moment_query.core.models import (
    Moment,
    MomentClassification,
    MomentEntities,
    MomentSource,
    MomentValidationError,
)

logger = logging.getLogger(__name__)

FRAME_COLUMNS = ["id", "title", "extracted_at", "impact_score", "source_kind", "source_name"]


class DataLoaderError(Exception):
    """Raised when a batch of moment records cannot be loaded."""


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def _pick(record: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key; records arrive in camelCase or snake_case."""
    for key in keys:
        if key in record and record[key] is not None:
            return record[key]
    return default


def _normalize_text(x: Any) -> str:
    if x is None:
        return ""
    s = str(x).replace("\u00A0", " ").strip()
    if s.lower() in {"nan", "none", "null"}:
        return ""
    return s


def _string_tuple(values: Any) -> tuple:
    if not values:
        return ()
    if isinstance(values, str):
        values = [values]
    cleaned = [_normalize_text(v) for v in values]
    return tuple(v for v in cleaned if v)


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an ISO string, datetime or pandas Timestamp into a naive
    UTC datetime. Naive inputs are taken to already be UTC.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MomentValidationError("Missing timestamp.")
    try:
        ts = pd.to_datetime(value, utc=True)
    except (ValueError, TypeError) as exc:
        raise MomentValidationError(f"Unparseable timestamp: {value!r}") from exc
    if pd.isna(ts):
        raise MomentValidationError(f"Unparseable timestamp: {value!r}")
    return ts.tz_localize(None).to_pydatetime()


def _parse_impact(raw: Any) -> int:
    if isinstance(raw, Mapping):
        raw = raw.get("score")
    if raw is None:
        raise MomentValidationError("Missing impact score.")
    try:
        return int(round(float(raw)))
    except (TypeError, ValueError) as exc:
        raise MomentValidationError(f"Impact score is not numeric: {raw!r}") from exc


# ---------------------------------------------------------------------------
# Record -> Moment
# ---------------------------------------------------------------------------

def moment_from_record(record: Mapping[str, Any]) -> Moment:
    """
    Build a Moment from a hydration record.

    Accepts the persisted JSON shape (``extractedAt``, ``source.type``,
    ``classification.microFactors``, ``impact.score``,
    ``timeline.estimatedDate``) as well as snake_case equivalents.
    """
    moment_id = _normalize_text(_pick(record, "id"))
    if not moment_id:
        raise MomentValidationError("Moment record has no id.")

    source_raw: Mapping[str, Any] = _pick(record, "source", default={}) or {}
    source = MomentSource(
        kind=_normalize_text(_pick(source_raw, "type", "kind")).lower(),
        name=_normalize_text(_pick(source_raw, "name")),
        id=_normalize_text(_pick(source_raw, "id")),
    )

    entities_raw: Mapping[str, Any] = _pick(record, "entities", default={}) or {}
    entities = MomentEntities(
        companies=_string_tuple(entities_raw.get("companies")),
        technologies=_string_tuple(entities_raw.get("technologies")),
        people=_string_tuple(entities_raw.get("people")),
        locations=_string_tuple(entities_raw.get("locations")),
    )

    cls_raw: Mapping[str, Any] = _pick(record, "classification", default={}) or {}
    classification = MomentClassification(
        micro_factors=_string_tuple(_pick(cls_raw, "microFactors", "micro_factors")),
        macro_factors=_string_tuple(_pick(cls_raw, "macroFactors", "macro_factors")),
        confidence=_normalize_text(_pick(cls_raw, "confidence", default="medium")).lower() or "medium",
        keywords=_string_tuple(cls_raw.get("keywords")),
        reasoning=_normalize_text(cls_raw.get("reasoning")),
    )

    impact_raw = _pick(record, "impact", "impact_score")
    impact_reasoning = ""
    if isinstance(impact_raw, Mapping):
        impact_reasoning = _normalize_text(impact_raw.get("reasoning"))

    estimated: Optional[datetime] = None
    timeline_raw = _pick(record, "timeline", default={}) or {}
    estimated_raw = _pick(timeline_raw, "estimatedDate", "estimated_date") or _pick(record, "estimated_date")
    if estimated_raw:
        try:
            estimated = parse_timestamp(estimated_raw)
        except MomentValidationError:
            logger.warning("Ignoring unparseable estimated date %r on moment %s.", estimated_raw, moment_id)

    return Moment(
        id=moment_id,
        title=_normalize_text(_pick(record, "title")),
        description=_normalize_text(_pick(record, "description")),
        content=_normalize_text(_pick(record, "content")),
        extracted_at=parse_timestamp(_pick(record, "extractedAt", "extracted_at")),
        source=source,
        entities=entities,
        classification=classification,
        impact_score=_parse_impact(impact_raw),
        impact_reasoning=impact_reasoning,
        estimated_date=estimated,
    )


def load_moments(records: Iterable[Mapping[str, Any]], strict: bool = False) -> List[Moment]:
    """
    Convert a batch of records into moments.

    With ``strict=False`` invalid records are skipped and logged; with
    ``strict=True`` the first invalid record aborts the batch.
    """
    moments: List[Moment] = []
    skipped = 0
    for idx, record in enumerate(records):
        try:
            moments.append(moment_from_record(record))
        except MomentValidationError as exc:
            if strict:
                raise DataLoaderError(f"Record #{idx} is invalid: {exc}") from exc
            skipped += 1
            logger.warning("Skipping record #%d: %s", idx, exc)

    logger.info("Loaded %d moments (%d skipped).", len(moments), skipped)
    return moments


# ---------------------------------------------------------------------------
# Corpus projection
# ---------------------------------------------------------------------------

def moments_to_frame(moments: Sequence[Moment]) -> pd.DataFrame:
    """Project moments into a flat frame used for time bucketing."""
    if not moments:
        frame = pd.DataFrame({c: [] for c in FRAME_COLUMNS})
        frame["extracted_at"] = pd.to_datetime(frame["extracted_at"])
        frame["impact_score"] = frame["impact_score"].astype(int)
        return frame

    rows: List[Dict[str, Any]] = [
        {
            "id": m.id,
            "title": m.title,
            "extracted_at": m.extracted_at,
            "impact_score": m.impact_score,
            "source_kind": m.source.kind,
            "source_name": m.source.name,
        }
        for m in moments
    ]
    frame = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    frame["extracted_at"] = pd.to_datetime(frame["extracted_at"])
    return frame
