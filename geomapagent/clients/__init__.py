"""GeoMapAgent clients package.

HTTP API clients only. No business logic in this layer.
Each client handles connection management, retries, and response parsing.
"""

from geomapagent.clients.geocoding_client import MapboxGeocoder
from geomapagent.clients.llm_client import LLMClient

__all__ = [
    "LLMClient",
    "MapboxGeocoder",
]
