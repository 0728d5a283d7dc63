"""GeoMapAgent boundary code index."""

from geomapagent.index.boundary_index import BoundaryCodeIndex, CodeCheck

__all__ = [
    "BoundaryCodeIndex",
    "CodeCheck",
]
