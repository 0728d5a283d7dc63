"""ValidationAgent: tolerant JSON parsing and structural checks.

Every other component routes untrusted JSON through this agent:
- repair_and_parse_json(): parse, and on failure repair once and re-parse
- check_geo_target_set(): candidate shape (id, name, kind, confidence)
- check_geojson(): GeoJSON type vocabulary and type-specific required fields
- check_legacy_results(): legacy {areas, locations} shape

Schema failures are recorded and reported, never raised by the pipeline.
Running counters are exposed through get_stats() for observability.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from geomapagent.agents.base import BaseAgent
from geomapagent.errors import MalformedResponse, SchemaInvalid
from geomapagent.models.geo_targets import VALID_KINDS, GeoTargetSet

logger = logging.getLogger(__name__)

GEOJSON_TYPES = (
    "FeatureCollection",
    "Feature",
    "Point",
    "LineString",
    "Polygon",
    "MultiPoint",
    "MultiLineString",
    "MultiPolygon",
    "GeometryCollection",
)

LEGACY_AREA_TYPES = ("country", "state", "city")

_FENCE_OPEN_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"\s*```$")
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


@dataclass
class ValidationReport:
    """Outcome of a structural check."""

    valid: bool
    errors: List[str] = field(default_factory=list)

    def raise_if_invalid(self) -> None:
        """Raise SchemaInvalid carrying the errors when the check failed."""
        if not self.valid:
            raise SchemaInvalid(self.errors)


@dataclass
class GeoJSONCheck:
    """Outcome of a GeoJSON check: the parsed value or an error."""

    valid: bool
    value: Optional[Any] = None
    error: Optional[str] = None


def repair_json_text(text: str) -> str:
    """Apply the repair pipeline to a malformed JSON reply.

    Steps, in order: strip fenced-code markers, drop text before the first
    ``{``/``[`` and after the last ``}``/``]``, remove trailing commas before
    closing brackets, and turn single quotes into double quotes.
    """
    fixed = text.strip()
    fixed = _FENCE_OPEN_RE.sub("", fixed)
    fixed = _FENCE_CLOSE_RE.sub("", fixed)

    starts = [i for i in (fixed.find("{"), fixed.find("[")) if i >= 0]
    if starts:
        fixed = fixed[min(starts):]
    ends = [i for i in (fixed.rfind("}"), fixed.rfind("]")) if i >= 0]
    if ends:
        fixed = fixed[: max(ends) + 1]

    fixed = _TRAILING_COMMA_RE.sub(r"\1", fixed)
    fixed = fixed.replace("'", '"')
    return fixed


class ValidationAgent(BaseAgent):
    """Defensive parser and shape checker for service replies and stored data."""

    name = "ValidationAgent"
    version = "1.0.0"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stats: Dict[str, int] = {}
        self.reset_stats()

    # ── Pipeline entry point ───────────────────────────────────────────────────

    def run(self, context: Any) -> ValidationReport:
        """Check the session's current candidate set and record the report."""
        report = self.check_geo_target_set(context.target_set)
        context.validation_reports.append(report)
        if not report.valid:
            for error in report.errors:
                context.add_warning(f"Schema: {error}")
        return report

    # ── JSON ───────────────────────────────────────────────────────────────────

    def repair_and_parse_json(self, text: str) -> Any:
        """Parse JSON text, repairing common model-output defects once.

        Valid JSON is returned as parsed, without touching the repair path.

        Args:
            text: Raw reply text.

        Returns:
            Parsed Python value.

        Raises:
            MalformedResponse: If the text is not a string, or still fails to
                parse after repair (the message carries both parse errors).
        """
        if not isinstance(text, str):
            self._bump("json_errors")
            raise MalformedResponse("Reply is not a string", raw=repr(text)[:200])

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            original_error = exc

        self._bump("json_errors")
        repaired = repair_json_text(text)
        try:
            parsed = json.loads(repaired)
        except json.JSONDecodeError as exc:
            logger.warning(
                "ValidationAgent: JSON repair failed (first 200 chars): %.200s", text
            )
            raise MalformedResponse(
                f"JSON parse failed: {original_error}. Auto-repair also failed: {exc}",
                raw=text,
            ) from exc

        self._bump("auto_fixed")
        logger.info("ValidationAgent: reply repaired after parse error: %s", original_error)
        return parsed

    # ── Candidate sets ─────────────────────────────────────────────────────────

    def check_geo_target_set(self, target_set: Any) -> ValidationReport:
        """Check that every candidate has id, name, kind and a [0, 1] confidence.

        Args:
            target_set: GeoTargetSet or its dict form.

        Returns:
            ValidationReport; failures also increment ``schema_errors``.
        """
        if isinstance(target_set, GeoTargetSet):
            data: Any = target_set.to_dict()
        else:
            data = target_set

        errors: List[str] = []
        if not isinstance(data, dict):
            errors.append("Candidate set must be an object")
        elif not isinstance(data.get("candidates"), list):
            errors.append('Candidate set must contain a "candidates" list')
        else:
            for index, candidate in enumerate(data["candidates"]):
                if not isinstance(candidate, dict):
                    errors.append(f"Candidate {index} must be an object")
                    continue
                if not candidate.get("id"):
                    errors.append(f'Candidate {index} is missing "id"')
                if not candidate.get("name"):
                    errors.append(f'Candidate {index} is missing "name"')
                if candidate.get("kind") not in VALID_KINDS:
                    errors.append(f'Candidate {index} "kind" must be "region" or "place"')
                confidence = candidate.get("confidence")
                if (
                    isinstance(confidence, bool)
                    or not isinstance(confidence, (int, float))
                    or not 0.0 <= confidence <= 1.0
                ):
                    errors.append(f'Candidate {index} "confidence" must be a number in [0, 1]')

        if errors:
            self._bump("schema_errors")
            logger.warning("ValidationAgent: %d schema error(s): %s", len(errors), errors[0])
        return ValidationReport(valid=not errors, errors=errors)

    # ── GeoJSON ────────────────────────────────────────────────────────────────

    def check_geojson(self, value: Any) -> GeoJSONCheck:
        """Check a GeoJSON value (object or JSON text).

        Returns:
            GeoJSONCheck with the parsed value when valid, else an error.
        """
        if isinstance(value, str):
            try:
                value = self.repair_and_parse_json(value)
            except MalformedResponse as exc:
                return self._geojson_error(f"Invalid JSON: {exc}")

        if not isinstance(value, dict):
            return self._geojson_error("GeoJSON must be an object")

        geo_type = value.get("type")
        if not geo_type:
            return self._geojson_error('GeoJSON is missing the required "type" field')
        if geo_type not in GEOJSON_TYPES:
            return self._geojson_error(
                f'Invalid GeoJSON type "{geo_type}". Valid types: {", ".join(GEOJSON_TYPES)}'
            )

        if geo_type == "FeatureCollection":
            if not isinstance(value.get("features"), list):
                return self._geojson_error('FeatureCollection must contain a "features" list')
        elif geo_type == "Feature":
            geometry = value.get("geometry")
            if not isinstance(geometry, dict) or not geometry.get("type"):
                return self._geojson_error('Feature must contain a "geometry" object with a type')
        elif geo_type == "GeometryCollection":
            if not isinstance(value.get("geometries"), list) and not value.get("coordinates"):
                return self._geojson_error('GeometryCollection must contain "geometries"')
        elif not value.get("coordinates"):
            return self._geojson_error(f'Geometry "{geo_type}" must contain "coordinates"')

        return GeoJSONCheck(valid=True, value=value)

    def _geojson_error(self, message: str) -> GeoJSONCheck:
        self._bump("geojson_errors")
        return GeoJSONCheck(valid=False, error=message)

    # ── Legacy results ─────────────────────────────────────────────────────────

    def check_legacy_results(self, results: Any) -> ValidationReport:
        """Check the legacy ``{areas, locations}`` shape used by stored references."""
        errors: List[str] = []
        if not isinstance(results, dict):
            return ValidationReport(valid=False, errors=["Results must be an object"])

        for index, area in enumerate(results.get("areas") or []):
            if not isinstance(area, dict) or not area.get("name"):
                errors.append(f'Area {index} is missing "name"')
                continue
            if area.get("type") and area["type"] not in LEGACY_AREA_TYPES:
                errors.append(f'Area {index} "type" must be country, state or city')
            code = area.get("iso_code")
            if code is not None and (not isinstance(code, str) or len(code) != 3):
                errors.append(f'Area {index} "iso_code" must be a 3-letter code')

        for index, location in enumerate(results.get("locations") or []):
            if not isinstance(location, dict) or not location.get("name"):
                errors.append(f'Location {index} is missing "name"')
                continue
            coords = location.get("coordinates")
            if coords is not None and (not isinstance(coords, list) or len(coords) < 2):
                errors.append(f'Location {index} "coordinates" needs at least 2 values')

        if errors:
            self._bump("schema_errors")
        return ValidationReport(valid=not errors, errors=errors)

    # ── Counters ───────────────────────────────────────────────────────────────

    def _bump(self, key: str) -> None:
        with self._lock:
            self._stats[key] += 1

    def get_stats(self) -> Dict[str, int]:
        """Snapshot of the running counters."""
        with self._lock:
            return dict(self._stats)

    def reset_stats(self) -> None:
        with self._lock:
            self._stats = {
                "json_errors": 0,
                "schema_errors": 0,
                "geojson_errors": 0,
                "auto_fixed": 0,
            }

    def reset(self) -> None:
        self.reset_stats()
