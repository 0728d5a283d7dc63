"""Candidate entity data models for GeoMapAgent.

Defines GeoTarget (one extracted candidate), its region/place resolution
records, and GeoTargetSet (one extraction run).
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from geomapagent.utils.date_utils import utc_now_iso

REGION = "region"
PLACE = "place"
VALID_KINDS = (REGION, PLACE)

ROLE_EVENT_LOCATION = "event_location"
ROLE_DIRECT_PARTICIPANT = "direct_participant"
ROLE_STAKEHOLDER = "geopolitical_stakeholder"
VALID_ROLES = (ROLE_EVENT_LOCATION, ROLE_DIRECT_PARTICIPANT, ROLE_STAKEHOLDER)


@dataclass
class _Resolution:
    """Validation fields shared by region and place resolutions."""

    validated: bool = False
    needs_review: bool = False
    suggestion: Optional[str] = None

    def mark_review(self, suggestion: str) -> None:
        """Flag the candidate for human review.

        Raises:
            ValueError: If ``suggestion`` is empty; a review marker must always
                tell the reviewer what to do.
        """
        if not suggestion or not suggestion.strip():
            raise ValueError("A review marker requires a non-empty suggestion")
        self.validated = False
        self.needs_review = True
        self.suggestion = suggestion


@dataclass
class RegionResolution(_Resolution):
    """Resolver output for a region candidate."""

    admin_level: int = 0                       # 0 country, 1 state/province, 2 city/county
    code: Optional[str] = None                 # ISO 3166-1 alpha-3
    entities: List[str] = field(default_factory=list)
    canonical: Optional[str] = None
    needs_decomposition: bool = False

    @property
    def is_decomposition(self) -> bool:
        """True when one name denotes several administrative units."""
        return len(self.entities) > 1

    def render_codes(self) -> List[str]:
        """Codes a map should highlight for this region."""
        if self.is_decomposition:
            return list(self.entities)
        return [self.code] if self.code else []


@dataclass
class PlaceResolution(_Resolution):
    """Resolver output for a place candidate."""

    coordinates: Optional[List[float]] = None  # [lon, lat]
    country_code: Optional[str] = None
    place_type: str = "city"

    @property
    def lon(self) -> Optional[float]:
        return self.coordinates[0] if self.coordinates else None

    @property
    def lat(self) -> Optional[float]:
        return self.coordinates[1] if self.coordinates else None


Resolution = Union[RegionResolution, PlaceResolution]


@dataclass
class GeoTarget:
    """One candidate entity extracted from a news text."""

    id: str
    kind: str                                  # "region" | "place"
    name: str
    confidence: float
    evidence_span: str = ""
    evidence_start: int = -1
    evidence_end: int = -1
    role: Optional[str] = None
    resolved: Optional[Resolution] = None
    color: Optional[str] = None                # user override
    display_name: Optional[str] = None         # user override
    raw: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.resolved is None:
            self.resolved = RegionResolution() if self.kind == REGION else PlaceResolution()

    @property
    def is_region(self) -> bool:
        return self.kind == REGION

    @property
    def is_place(self) -> bool:
        return self.kind == PLACE

    @property
    def label(self) -> str:
        """Name shown on the map: the user's override, else the extracted name."""
        return self.display_name or self.name

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeoTarget":
        kind = data.get("kind", REGION)
        resolved_data = dict(data.get("resolved") or {})
        if kind == REGION:
            resolved: Resolution = RegionResolution(**_known_fields(RegionResolution, resolved_data))
        else:
            resolved = PlaceResolution(**_known_fields(PlaceResolution, resolved_data))
        return cls(
            id=str(data["id"]),
            kind=kind,
            name=str(data.get("name", "")),
            confidence=float(data.get("confidence", 0.0)),
            evidence_span=data.get("evidence_span", "") or "",
            evidence_start=int(data.get("evidence_start", -1)),
            evidence_end=int(data.get("evidence_end", -1)),
            role=data.get("role"),
            resolved=resolved,
            color=data.get("color"),
            display_name=data.get("display_name"),
            raw=dict(data.get("raw") or {}),
        )


@dataclass
class GeoTargetSet:
    """One extraction run: the source text and its ordered candidates."""

    source_text: str
    source_url: Optional[str] = None
    created_at: str = field(default_factory=utc_now_iso)
    candidates: List[GeoTarget] = field(default_factory=list)
    selected_ids: List[str] = field(default_factory=list)
    from_reference: bool = False
    reference_similarity: Optional[float] = None

    def get(self, target_id: str) -> Optional[GeoTarget]:
        """Look up a candidate by id."""
        for target in self.candidates:
            if target.id == target_id:
                return target
        return None

    def regions(self) -> List[GeoTarget]:
        return [t for t in self.candidates if t.is_region]

    def places(self) -> List[GeoTarget]:
        return [t for t in self.candidates if t.is_place]

    def selected(self) -> List[GeoTarget]:
        """Selected candidates, in candidate order."""
        chosen = set(self.selected_ids)
        return [t for t in self.candidates if t.id in chosen]

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeoTargetSet":
        return cls(
            source_text=data.get("source_text", ""),
            source_url=data.get("source_url"),
            created_at=data.get("created_at") or utc_now_iso(),
            candidates=[GeoTarget.from_dict(c) for c in data.get("candidates", [])],
            selected_ids=list(data.get("selected_ids", [])),
            from_reference=bool(data.get("from_reference", False)),
            reference_similarity=data.get("reference_similarity"),
        )


def _known_fields(cls: type, data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in dataclasses.fields(cls)}
    return {k: v for k, v in data.items() if k in names}
