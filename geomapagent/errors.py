"""Exception taxonomy for GeoMapAgent.

Service failures (timeouts, exhausted rate-limit retries, unparseable replies)
are raised and propagate to the caller of process_text(). Per-candidate
problems are never raised: they are recorded on the candidate as a review
marker with a suggestion.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class GeoMapAgentError(RuntimeError):
    """Base class for all GeoMapAgent errors."""


class ServiceError(GeoMapAgentError):
    """The text-understanding service failed or answered with an HTTP error."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ServiceTimeout(ServiceError):
    """A service request exceeded its deadline."""


# Short alias matching the public error vocabulary
Timeout = ServiceTimeout


class QuotaExceeded(ServiceError):
    """Rate-limit retries were exhausted."""

    def __init__(self, message: str, attempts: int = 0) -> None:
        super().__init__(message, status_code=429)
        self.attempts = attempts


class MalformedResponse(GeoMapAgentError):
    """A reply could not be parsed even after JSON repair."""

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


class SchemaInvalid(GeoMapAgentError):
    """A structural check failed.

    The pipeline records these rather than raising them; the class exists so
    callers that want strict behaviour can raise from a ValidationReport.
    """

    def __init__(self, errors: List[str]) -> None:
        super().__init__("; ".join(errors) or "schema check failed")
        self.errors = list(errors)


class NoActiveSession(GeoMapAgentError):
    """A map specification was requested before any extraction completed."""


def describe(exc: BaseException) -> Dict[str, Any]:
    """Render an exception as a single actionable message for UI surfaces.

    Args:
        exc: Exception raised by process_text() or generate_map_spec().

    Returns:
        Dict with ``error`` (class name) and ``message`` keys.
    """
    if isinstance(exc, ServiceTimeout):
        message = "The analysis service did not answer in time. Try again shortly."
    elif isinstance(exc, QuotaExceeded):
        message = "The analysis service is rate limited. Wait a minute and retry."
    elif isinstance(exc, MalformedResponse):
        message = "The analysis service returned an unreadable answer. Retry the analysis."
    elif isinstance(exc, NoActiveSession):
        message = "Analyse a news text before generating a map."
    elif isinstance(exc, ServiceError):
        message = f"The analysis service failed: {exc}"
    else:
        message = str(exc) or exc.__class__.__name__
    return {"error": exc.__class__.__name__, "message": message}
