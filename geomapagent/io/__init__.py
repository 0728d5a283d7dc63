"""GeoMapAgent I/O package.

File read/write operations only. No business logic in this layer.
"""

from geomapagent.io.persistence import load_json, save_json

__all__ = [
    "save_json",
    "load_json",
]
