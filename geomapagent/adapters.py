"""Conversion between GeoTargetSet and the legacy results shape.

Older front ends and the reference store exchange analyses as
``{"areas": [...], "locations": [...], "mapDesign": ...}`` where each entry
carries a 1-5 ``priority`` instead of a confidence. Candidate details that
have no legacy field travel under an ``_agent`` key.

Mapping rules:
- priority = round((1 - confidence) * 4 + 1), clamped to 1..5
- confidence = ``_agent.confidence`` when present, else 1 - (priority - 1) / 4
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from geomapagent.models.geo_targets import (
    PLACE,
    REGION,
    GeoTarget,
    GeoTargetSet,
    PlaceResolution,
    RegionResolution,
)
from geomapagent.utils.date_utils import epoch_millis

logger = logging.getLogger(__name__)

DEFAULT_AREA_COLOR = "#6CA7A1"

_LEVEL_TO_TYPE = {0: "country", 1: "state", 2: "city"}
_TYPE_TO_LEVEL = {v: k for k, v in _LEVEL_TO_TYPE.items()}


def confidence_to_priority(confidence: float) -> int:
    """Map a [0, 1] confidence to a 1 (highest) .. 5 (lowest) priority."""
    return max(1, min(5, int(round((1.0 - confidence) * 4 + 1))))


def priority_to_confidence(priority: Any) -> float:
    try:
        value = float(priority)
    except (TypeError, ValueError):
        value = 3.0
    return max(0.0, min(1.0, 1.0 - (value - 1.0) / 4.0))


def _entry_confidence(entry: Dict[str, Any]) -> float:
    agent = entry.get("_agent") or {}
    confidence = agent.get("confidence") if isinstance(agent, dict) else None
    if isinstance(confidence, (int, float)) and not isinstance(confidence, bool) and confidence:
        return max(0.0, min(1.0, float(confidence)))
    return priority_to_confidence(entry.get("priority", 3))


def _admin_level(entry: Dict[str, Any]) -> int:
    level = entry.get("gadm_level")
    if isinstance(level, int) and level in (0, 1, 2):
        return level
    return _TYPE_TO_LEVEL.get(str(entry.get("type") or "").lower(), 0)


# ── GeoTargetSet -> legacy ─────────────────────────────────────────────────────

def to_legacy(target_set: Optional[GeoTargetSet]) -> Dict[str, Any]:
    """Convert a candidate set to ``{areas, locations, mapDesign}``.

    Entries are sorted by priority (most central first).
    """
    if target_set is None:
        return {"areas": [], "locations": [], "mapDesign": None}

    areas: List[Dict[str, Any]] = []
    locations: List[Dict[str, Any]] = []
    for target in target_set.candidates:
        res = target.resolved
        agent = {
            "id": target.id,
            "confidence": target.confidence,
            "role": target.role,
            "validated": res.validated,
            "needs_review": res.needs_review,
            "suggestion": res.suggestion,
        }
        if target.is_region:
            agent["entities"] = list(res.entities) or None
            agent["canonical"] = res.canonical
            if target.color:
                agent["color"] = target.color
            areas.append({
                "name": target.name,
                "iso_code": res.code,
                "type": _LEVEL_TO_TYPE.get(res.admin_level, "country"),
                "gadm_level": res.admin_level,
                "priority": confidence_to_priority(target.confidence),
                "suggestedColor": target.color or DEFAULT_AREA_COLOR,
                "reason": target.evidence_span,
                "_agent": agent,
            })
        else:
            locations.append({
                "name": target.name,
                "type": res.place_type,
                "country": res.country_code,
                "coordinates": list(res.coordinates) if res.coordinates else None,
                "priority": confidence_to_priority(target.confidence),
                "context": target.evidence_span,
                "_agent": agent,
            })

    areas.sort(key=lambda a: a["priority"])
    locations.sort(key=lambda loc: loc["priority"])
    return {"areas": areas, "locations": locations, "mapDesign": None}


# ── legacy -> GeoTargetSet ─────────────────────────────────────────────────────

def _apply_review(res, agent: Dict[str, Any], name: str) -> None:
    res.validated = bool(agent.get("validated", False))
    if agent.get("needs_review"):
        res.mark_review(agent.get("suggestion") or f'Review "{name}" before mapping it')
    else:
        res.suggestion = agent.get("suggestion")


def from_legacy(results: Dict[str, Any], source_text: str = "") -> GeoTargetSet:
    """Convert ``{areas, locations}`` back into a GeoTargetSet.

    Raises:
        ValueError: If ``results`` is not a dict or an entry has no name.
    """
    if not isinstance(results, dict):
        raise ValueError(f"Legacy results must be a dict, got {type(results).__name__}")

    stamp = epoch_millis()
    candidates: List[GeoTarget] = []

    for index, area in enumerate(results.get("areas") or []):
        if not isinstance(area, dict) or not area.get("name"):
            raise ValueError(f"Legacy area {index} has no name")
        agent = area.get("_agent") if isinstance(area.get("_agent"), dict) else {}
        entities = [str(e) for e in agent.get("entities") or []]
        res = RegionResolution(
            admin_level=_admin_level(area),
            code=area.get("iso_code") or None,
            entities=entities,
            canonical=agent.get("canonical"),
            needs_decomposition=len(entities) > 1,
        )
        _apply_review(res, agent, area["name"])
        candidates.append(GeoTarget(
            id=str(agent.get("id") or f"region_{stamp}_{index}"),
            kind=REGION,
            name=str(area["name"]),
            confidence=_entry_confidence(area),
            evidence_span=area.get("reason") or "",
            role=agent.get("role"),
            resolved=res,
            color=agent.get("color"),
            raw={"iso_code": area.get("iso_code"), "type": area.get("type")},
        ))

    for index, location in enumerate(results.get("locations") or []):
        if not isinstance(location, dict) or not location.get("name"):
            raise ValueError(f"Legacy location {index} has no name")
        agent = location.get("_agent") if isinstance(location.get("_agent"), dict) else {}
        coords = location.get("coordinates") or location.get("coords")
        if not (isinstance(coords, list) and len(coords) >= 2):
            coords = None
        res = PlaceResolution(
            coordinates=[float(coords[0]), float(coords[1])] if coords else None,
            country_code=location.get("country"),
            place_type=location.get("type") or "city",
        )
        _apply_review(res, agent, location["name"])
        candidates.append(GeoTarget(
            id=str(agent.get("id") or f"place_{stamp}_{index}"),
            kind=PLACE,
            name=str(location["name"]),
            confidence=_entry_confidence(location),
            evidence_span=location.get("context") or "",
            role=agent.get("role"),
            resolved=res,
            raw={"coordinates": coords, "country": location.get("country")},
        ))

    logger.debug("from_legacy: converted %d candidates", len(candidates))
    return GeoTargetSet(source_text=source_text, candidates=candidates)


def validation_stats(target_set: Optional[GeoTargetSet]) -> Dict[str, Any]:
    """Count validated and review-flagged candidates.

    Returns:
        Dict with ``total``, ``validated``, ``needs_review`` and ``errors``
        (one ``{name, kind, suggestion}`` per flagged candidate).
    """
    if target_set is None:
        return {"total": 0, "validated": 0, "needs_review": 0, "errors": []}
    validated = 0
    needs_review = 0
    errors: List[Dict[str, Any]] = []
    for target in target_set.candidates:
        if target.resolved.validated:
            validated += 1
        if target.resolved.needs_review:
            needs_review += 1
            errors.append({
                "name": target.name,
                "kind": target.kind,
                "suggestion": target.resolved.suggestion,
            })
    return {
        "total": len(target_set.candidates),
        "validated": validated,
        "needs_review": needs_review,
        "errors": errors,
    }
