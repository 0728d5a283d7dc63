"""GeoMapAgent: news text to reviewable map targets and map specifications.

Public API surface:
    - MapAgentConfig: Runtime configuration
    - MapAgentOrchestrator: Text analysis, candidate review and map spec entry point
    - Error taxonomy raised by process_text() and generate_map_spec()
"""

__version__ = "1.0.0"
__author__ = "GeoMapAgent Contributors"

from config.settings import MapAgentConfig
from geomapagent.errors import (
    GeoMapAgentError,
    MalformedResponse,
    NoActiveSession,
    QuotaExceeded,
    SchemaInvalid,
    ServiceError,
    ServiceTimeout,
    Timeout,
    describe,
)
from geomapagent.orchestrator import MapAgentOrchestrator

__all__ = [
    "__version__",
    "MapAgentConfig",
    "MapAgentOrchestrator",
    "GeoMapAgentError",
    "ServiceError",
    "ServiceTimeout",
    "Timeout",
    "QuotaExceeded",
    "MalformedResponse",
    "SchemaInvalid",
    "NoActiveSession",
    "describe",
]
