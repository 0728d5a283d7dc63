"""Reference store data models for GeoMapAgent.

ReferenceRecord is one persisted past analysis; ReferenceMatch is the result
of a similarity lookup, with its areas and locations already filtered to the
accepted-confidence floors.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ReferenceRecord:
    """One accepted past analysis.

    ``areas`` and ``locations`` use the legacy area/location dict shape
    (``name``, ``iso_code`` / ``coordinates``, ``_agent.confidence``) so a
    store written by older front ends stays readable.
    """

    id: str
    source_text: str
    keywords: List[str] = field(default_factory=list)
    areas: List[Dict[str, Any]] = field(default_factory=list)
    locations: List[Dict[str, Any]] = field(default_factory=list)
    markers: List[Dict[str, Any]] = field(default_factory=list)
    map_design: Optional[Dict[str, Any]] = None
    timestamp: str = ""
    source: str = "local_reference"

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReferenceRecord":
        return cls(
            id=str(data.get("id") or ""),
            source_text=data.get("source_text") or "",
            keywords=[str(k) for k in data.get("keywords") or []],
            areas=[a for a in data.get("areas") or [] if isinstance(a, dict)],
            locations=[loc for loc in data.get("locations") or [] if isinstance(loc, dict)],
            markers=[m for m in data.get("markers") or [] if isinstance(m, dict)],
            # Older stores wrote the camel-cased key
            map_design=data.get("map_design", data.get("mapDesign")),
            timestamp=data.get("timestamp") or "",
            source=data.get("source") or "local_reference",
        )


@dataclass
class ReferenceMatch:
    """Best-scoring record for a text, plus its filtered candidates."""

    record: ReferenceRecord
    similarity: float
    areas: List[Dict[str, Any]] = field(default_factory=list)
    locations: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def markers(self) -> List[Dict[str, Any]]:
        return self.record.markers

    @property
    def map_design(self) -> Optional[Dict[str, Any]]:
        return self.record.map_design

    def as_results(self) -> Dict[str, Any]:
        """Legacy results dict consumed by adapters.from_legacy()."""
        return {
            "areas": list(self.areas),
            "locations": list(self.locations),
            "markers": list(self.markers),
            "mapDesign": self.map_design,
            "similarity": self.similarity,
            "source": self.record.source,
            "timestamp": self.record.timestamp,
        }
