"""GeoMapAgent data models package.

All candidate, reference and map-spec schemas are defined here as typed
dataclasses with to_dict() / from_dict() helpers.
"""

from geomapagent.models.geo_targets import (
    PLACE,
    REGION,
    GeoTarget,
    GeoTargetSet,
    PlaceResolution,
    RegionResolution,
)
from geomapagent.models.map_spec import MapSpec, default_style_tokens
from geomapagent.models.reference import ReferenceMatch, ReferenceRecord
from geomapagent.models.session import PhaseRecord, SessionContext, SessionState

__all__ = [
    "REGION",
    "PLACE",
    "GeoTarget",
    "GeoTargetSet",
    "RegionResolution",
    "PlaceResolution",
    "MapSpec",
    "default_style_tokens",
    "ReferenceRecord",
    "ReferenceMatch",
    "PhaseRecord",
    "SessionContext",
    "SessionState",
]
