"""GeoMapAgent: default threshold values and configuration constants.

All tuneable values live here. Never hard-code magic numbers in source files.
Import constants from this module; override via MapAgentConfig at runtime.
"""

# ── Confidence thresholds ──────────────────────────────────────────────────────
# Minimum confidence for a candidate to survive the post-resolution filter
MIN_CANDIDATE_CONFIDENCE: float = 0.75

# Candidates without any evidence text are kept only at or above this confidence
NO_EVIDENCE_MIN_CONFIDENCE: float = 0.85

# Characters of source text inspected on each side of a located evidence quote
NOISE_CONTEXT_WINDOW: int = 50

# Confidence assigned when the service omits one
DEFAULT_CANDIDATE_CONFIDENCE: float = 0.5

# ── Evidence span location ─────────────────────────────────────────────────────
# Prefix length used for the last-resort evidence match
EVIDENCE_PREFIX_CHARS: int = 20

# Evidence must be longer than this before a prefix match is attempted
EVIDENCE_PREFIX_MIN_LENGTH: int = 10

# ── Boundary code validation ───────────────────────────────────────────────────
# Maximum edit distance for "did you mean" code suggestions
SIMILAR_CODE_MAX_DISTANCE: int = 2

# Maximum number of suggested near-match codes
SIMILAR_CODE_MAX_RESULTS: int = 3

# ── Resolver ───────────────────────────────────────────────────────────────────
# Worker threads for per-candidate resolution fan-out
RESOLVER_MAX_WORKERS: int = 8

# ── Reference retrieval ────────────────────────────────────────────────────────
# Number of keywords kept per text
REFERENCE_MAX_KEYWORDS: int = 30

# A record must score above this to be considered a match at all
REFERENCE_RELEVANCE_FLOOR: float = 0.3

# The orchestrator only skips extraction above this similarity
REFERENCE_REUSE_THRESHOLD: float = 0.7

# Maximum persisted records; oldest evicted by timestamp
REFERENCE_MAX_RECORDS: int = 100

# Characters of source text stored per record
REFERENCE_SOURCE_TEXT_CHARS: int = 1000

# Accepted-candidate floors applied on save and on retrieval
REFERENCE_REGION_MIN_CONFIDENCE: float = 0.75
REFERENCE_PLACE_MIN_CONFIDENCE: float = 0.70

# Confidence assumed for stored entries that carry none
REFERENCE_DEFAULT_CONFIDENCE: float = 0.8

# Similarity weights (area overlap, keyword overlap, recency)
REFERENCE_WEIGHT_AREA: float = 0.65
REFERENCE_WEIGHT_KEYWORD: float = 0.25
REFERENCE_WEIGHT_RECENCY: float = 0.10

# Recency decays linearly to zero over this many days
REFERENCE_RECENCY_DAYS: int = 180

# Current on-disk schema version of the reference store
REFERENCE_SCHEMA_VERSION: int = 1

# Default reference store location
REFERENCE_STORE_PATH: str = "data/reference_store.json"

# ── Map specification ──────────────────────────────────────────────────────────
MAP_SPEC_VERSION: str = "1.0"

# Degrees of padding around place markers when computing bounds
MAP_BOUNDS_PADDING_DEG: float = 5.0

# ── Text-understanding service ─────────────────────────────────────────────────
# Default active backend: "gemini", "anthropic" or "ollama"
LLM_BACKEND: str = "gemini"

# Gemini model identifier and REST endpoint template
GEMINI_MODEL: str = "gemini-2.0-flash"
GEMINI_API_BASE: str = "https://generativelanguage.googleapis.com/v1beta/models"

# Optional backend proxy that accepts the same generateContent body.
# When set, requests go here instead of the public endpoint and no key is sent.
GEMINI_PROXY_ENDPOINT: str = ""

# Anthropic model identifier
ANTHROPIC_MODEL: str = "claude-sonnet-4-6"

# Ollama model identifier and server
OLLAMA_MODEL: str = "gemma3:27b"
OLLAMA_HOST: str = "http://localhost:11434"
OLLAMA_API_KEY: str = ""

# Hard deadline for one service request (seconds)
LLM_REQUEST_TIMEOUT: float = 30.0

# Retry ceiling for rate-limited (HTTP 429) responses
LLM_MAX_RATE_LIMIT_RETRIES: int = 3

# Backoff used when the service gives no retry hint (seconds, doubles per attempt)
LLM_BACKOFF_BASE: float = 2.0

# Minimum max_tokens for structured extraction calls
LLM_MIN_MAX_TOKENS: int = 256

# Default temperature and max_tokens for extraction calls
LLM_TEMPERATURE: float = 0.1
LLM_DEFAULT_MAX_TOKENS: int = 4096

# ── Geocoding ──────────────────────────────────────────────────────────────────
MAPBOX_GEOCODING_URL: str = "https://api.mapbox.com/geocoding/v5/mapbox.places"
GEOCODING_REQUEST_TIMEOUT: int = 10
GEOCODING_RESULT_LIMIT: int = 5

# ── Logging ────────────────────────────────────────────────────────────────────
DEFAULT_LOG_LEVEL: str = "INFO"

# Levels accepted for LOG_LEVEL and --log-level
LOG_LEVELS: tuple = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
