"""GeoMapAgent: MapAgentConfig and environment-based configuration loading.

Agents read thresholds and credentials from a MapAgentConfig instance, never
from the environment directly. Secrets (Gemini, Anthropic, Ollama, Mapbox)
are only ever taken from environment variables or a local .env file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from config.defaults import (
    ANTHROPIC_MODEL,
    DEFAULT_LOG_LEVEL,
    GEMINI_API_BASE,
    GEMINI_MODEL,
    GEMINI_PROXY_ENDPOINT,
    GEOCODING_REQUEST_TIMEOUT,
    GEOCODING_RESULT_LIMIT,
    LLM_BACKEND,
    LLM_BACKOFF_BASE,
    LLM_DEFAULT_MAX_TOKENS,
    LLM_MAX_RATE_LIMIT_RETRIES,
    LLM_MIN_MAX_TOKENS,
    LLM_REQUEST_TIMEOUT,
    LLM_TEMPERATURE,
    LOG_LEVELS,
    MAP_BOUNDS_PADDING_DEG,
    MAPBOX_GEOCODING_URL,
    MIN_CANDIDATE_CONFIDENCE,
    NO_EVIDENCE_MIN_CONFIDENCE,
    OLLAMA_API_KEY,
    OLLAMA_HOST,
    OLLAMA_MODEL,
    REFERENCE_MAX_RECORDS,
    REFERENCE_PLACE_MIN_CONFIDENCE,
    REFERENCE_REGION_MIN_CONFIDENCE,
    REFERENCE_RELEVANCE_FLOOR,
    REFERENCE_REUSE_THRESHOLD,
    REFERENCE_STORE_PATH,
    RESOLVER_MAX_WORKERS,
)

# A missing .env is fine; real environment variables still apply
load_dotenv()


@dataclass
class MapAgentConfig:
    """Single configuration object shared by the orchestrator and its agents.

    Defaults come from config.defaults; string fields backed by the
    environment are read when the instance is created.
    """

    # ── Text-understanding service ────────────────────────────────────────────
    llm_backend: str = field(default_factory=lambda: os.getenv("LLM_BACKEND", LLM_BACKEND))
    gemini_model: str = field(default_factory=lambda: os.getenv("GEMINI_MODEL", GEMINI_MODEL))
    gemini_api_base: str = GEMINI_API_BASE
    gemini_proxy_endpoint: str = field(
        default_factory=lambda: os.getenv("GEMINI_PROXY_ENDPOINT", GEMINI_PROXY_ENDPOINT)
    )
    anthropic_model: str = field(
        default_factory=lambda: os.getenv("ANTHROPIC_MODEL", ANTHROPIC_MODEL)
    )
    ollama_model: str = field(default_factory=lambda: os.getenv("OLLAMA_MODEL", OLLAMA_MODEL))
    ollama_host: str = field(default_factory=lambda: os.getenv("OLLAMA_HOST", OLLAMA_HOST))
    ollama_api_key: str = field(
        default_factory=lambda: os.getenv("OLLAMA_API_KEY", OLLAMA_API_KEY)
    )
    llm_temperature: float = LLM_TEMPERATURE
    llm_max_tokens: int = LLM_DEFAULT_MAX_TOKENS
    llm_min_max_tokens: int = LLM_MIN_MAX_TOKENS
    llm_request_timeout: float = LLM_REQUEST_TIMEOUT
    llm_max_rate_limit_retries: int = LLM_MAX_RATE_LIMIT_RETRIES
    llm_backoff_base: float = LLM_BACKOFF_BASE

    # ── API credentials (from environment only) ────────────────────────────────
    gemini_api_key: Optional[str] = field(default_factory=lambda: os.getenv("GEMINI_API_KEY"))
    anthropic_api_key: Optional[str] = field(
        default_factory=lambda: os.getenv("ANTHROPIC_API_KEY")
    )
    mapbox_token: Optional[str] = field(default_factory=lambda: os.getenv("MAPBOX_TOKEN"))

    # ── Geocoding ──────────────────────────────────────────────────────────────
    mapbox_geocoding_url: str = MAPBOX_GEOCODING_URL
    geocoding_request_timeout: int = GEOCODING_REQUEST_TIMEOUT
    geocoding_result_limit: int = GEOCODING_RESULT_LIMIT

    # ── Candidate filtering ────────────────────────────────────────────────────
    min_candidate_confidence: float = MIN_CANDIDATE_CONFIDENCE
    no_evidence_min_confidence: float = NO_EVIDENCE_MIN_CONFIDENCE
    resolver_max_workers: int = RESOLVER_MAX_WORKERS

    # ── Reference retrieval ────────────────────────────────────────────────────
    reference_store_path: str = field(
        default_factory=lambda: os.getenv("REFERENCE_STORE_PATH", REFERENCE_STORE_PATH)
    )
    reference_relevance_floor: float = REFERENCE_RELEVANCE_FLOOR
    reference_reuse_threshold: float = REFERENCE_REUSE_THRESHOLD
    reference_max_records: int = REFERENCE_MAX_RECORDS
    reference_region_min_confidence: float = REFERENCE_REGION_MIN_CONFIDENCE
    reference_place_min_confidence: float = REFERENCE_PLACE_MIN_CONFIDENCE
    enable_reference_reuse: bool = True

    # ── Map specification ──────────────────────────────────────────────────────
    map_bounds_padding_deg: float = MAP_BOUNDS_PADDING_DEG

    # ── Logging ────────────────────────────────────────────────────────────────
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL))

    def __post_init__(self) -> None:
        self.llm_backend = self.llm_backend.lower()
        self.log_level = str(self.log_level).upper()
        if self.log_level not in LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {', '.join(LOG_LEVELS)}, got {self.log_level}"
            )
        for name in (
            "min_candidate_confidence",
            "no_evidence_min_confidence",
            "reference_relevance_floor",
            "reference_reuse_threshold",
            "reference_region_min_confidence",
            "reference_place_min_confidence",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")
        if self.reference_max_records < 1:
            raise ValueError(
                f"reference_max_records must be positive, got {self.reference_max_records}"
            )
        if self.llm_max_rate_limit_retries < 0:
            raise ValueError("llm_max_rate_limit_retries must not be negative")
