"""GeoMapAgent configuration package."""

from config.defaults import (
    LLM_BACKEND,
    MIN_CANDIDATE_CONFIDENCE,
    NO_EVIDENCE_MIN_CONFIDENCE,
    REFERENCE_MAX_RECORDS,
    REFERENCE_RELEVANCE_FLOOR,
    REFERENCE_REUSE_THRESHOLD,
)
from config.settings import MapAgentConfig

__all__ = [
    "MapAgentConfig",
    "LLM_BACKEND",
    "MIN_CANDIDATE_CONFIDENCE",
    "NO_EVIDENCE_MIN_CONFIDENCE",
    "REFERENCE_MAX_RECORDS",
    "REFERENCE_RELEVANCE_FLOOR",
    "REFERENCE_REUSE_THRESHOLD",
]
