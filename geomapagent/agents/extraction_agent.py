"""ExtractionAgent: news text to candidate regions and places.

Builds the extraction prompt, sends it to the text-understanding service,
parses the reply through the ValidationAgent, maps it to GeoTarget objects,
locates each evidence quote in the source text and applies the noise filter.
Output is sorted by confidence, highest first.

Service errors (ServiceTimeout, QuotaExceeded, ServiceError) and unparseable
replies (MalformedResponse) propagate to the orchestrator.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from config.defaults import (
    DEFAULT_CANDIDATE_CONFIDENCE,
    EVIDENCE_PREFIX_CHARS,
    EVIDENCE_PREFIX_MIN_LENGTH,
)
from geomapagent.agents.base import BaseAgent
from geomapagent.agents.noise_filter import NoiseFilter
from geomapagent.agents.validation_agent import ValidationAgent
from geomapagent.clients.llm_client import LLMClient
from geomapagent.data.country_codes import lookup_country_code
from geomapagent.errors import MalformedResponse
from geomapagent.models.geo_targets import (
    PLACE,
    REGION,
    VALID_ROLES,
    GeoTarget,
    GeoTargetSet,
    PlaceResolution,
    RegionResolution,
)
from geomapagent.utils.date_utils import epoch_millis
from geomapagent.utils.text import locate_evidence, normalize_name

logger = logging.getLogger(__name__)

_ADMIN_LEVEL_BY_TYPE = {"country": 0, "state": 1, "city": 2}

_PLACE_TYPES = ("city", "landmark", "port", "airport")

_PROMPT_TEMPLATE = """You are a geographic information extraction specialist. From the news text
below, extract only the locations where the event happens and the parties
that take part in it directly.

## Data availability
- Country fill layers are keyed by ISO 3166-1 alpha-3 codes (USA, CHN, TWN,
  AZE, ARM). Output those codes directly.
- Break region names such as "South Caucasus" or "Middle East" down into
  their member countries, each with its own code.
- Never output supranational codes (EU, AU, APEC).
- Prefer country or state/province level; city boundaries may be missing.

## Include
1. Event locations: where the event itself takes place (a war breaks out,
   an attack hits, a disaster strikes, a ceremony is held as the event).
2. Direct participants: signatories of an agreement, warring parties,
   direct targets of sanctions.

## Exclude
- Datelines and bureau locations ("Reuters London bureau", "CNA, Washington, 8th").
- Sources and spokespeople ("according to officials in X", "X spokesperson said").
- Reporter locations and local media ("reported from X", "X local media").
- Signing venues that are not where the event happens ("signed at the White House").
- Mediators, hosts and witnesses that do not sign ("brokered by X", "mediated by X").
- Background, history and comparisons ("historically in X", "similar to X").
- Neighbouring references ("neighbouring X", "bordering X").
- Countries that only react ("X expressed concern").

## Confidence rubric (by semantic role, not by frequency)
- 0.90-1.00: event location
- 0.85-0.90: direct participant
- 0.75-0.85: important geopolitical stakeholder
- below 0.75: exclude

## Evidence
- "evidence" must be a literal substring of the news text, copied exactly.
- If the only evidence contains a noise phrase listed above, exclude the location.

## News text
{text}

## Output format
Return only this JSON object and nothing else:
{{
  "regions": [
    {{
      "name": "region name as written in the text",
      "iso_code": "ISO 3166-1 alpha-3 code",
      "type": "country|state|city",
      "gadm_level": 0,
      "confidence": 0.0,
      "role": "event_location|direct_participant|geopolitical_stakeholder",
      "evidence": "exact quote from the text"
    }}
  ],
  "places": [
    {{
      "name": "place name as written in the text",
      "type": "city|landmark|port|airport",
      "country": "country the place belongs to",
      "coordinates": [longitude, latitude],
      "confidence": 0.0,
      "role": "event_location|direct_participant",
      "evidence": "exact quote from the text"
    }}
  ]
}}

If the same location appears several times, report it once with its highest
confidence and its most central role."""


def build_extraction_prompt(text: str) -> str:
    """Render the extraction prompt for one news text."""
    return _PROMPT_TEMPLATE.format(text=text)


def _clamp_confidence(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return DEFAULT_CANDIDATE_CONFIDENCE
    try:
        number = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CANDIDATE_CONFIDENCE
    if number != number:   # NaN
        return DEFAULT_CANDIDATE_CONFIDENCE
    return max(0.0, min(1.0, number))


def _admin_level(item: Dict[str, Any]) -> int:
    level = item.get("gadm_level")
    if isinstance(level, int) and not isinstance(level, bool) and level in (0, 1, 2):
        return level
    if isinstance(level, str) and level.strip().isdigit() and int(level) in (0, 1, 2):
        return int(level)
    return _ADMIN_LEVEL_BY_TYPE.get(str(item.get("type") or "").lower(), 0)


def _role(item: Dict[str, Any]) -> Optional[str]:
    role = item.get("role")
    if isinstance(role, str):
        # "event_location, direct_participant": keep the first recognised role
        for part in role.replace("|", ",").split(","):
            part = part.strip()
            if part in VALID_ROLES:
                return part
    return None


class ExtractionAgent(BaseAgent):
    """Turns news text into a GeoTargetSet.

    Args:
        llm: Text-understanding service client.
        validator: Shared ValidationAgent used to parse replies.
        noise_filter: Rule table applied to the mapped candidates.
    """

    name = "ExtractionAgent"
    version = "1.0.0"

    def __init__(
        self,
        llm: LLMClient,
        validator: Optional[ValidationAgent] = None,
        noise_filter: Optional[NoiseFilter] = None,
    ) -> None:
        self.llm = llm
        self.validator = validator or ValidationAgent()
        self.noise_filter = noise_filter or NoiseFilter()

    def run(self, context: Any) -> GeoTargetSet:
        return self.extract(context.source_text, context.source_url)

    def extract(self, text: str, source_url: Optional[str] = None) -> GeoTargetSet:
        """Extract candidates from one news text.

        Raises:
            MalformedResponse: If the reply is not a JSON object after repair.
        """
        logger.info("ExtractionAgent: extracting from %d characters", len(text))
        reply = self.llm.generate(build_extraction_prompt(text))
        parsed = self.validator.repair_and_parse_json(reply)
        if not isinstance(parsed, dict):
            raise MalformedResponse(
                f"Expected a JSON object with regions and places, got {type(parsed).__name__}",
                raw=str(reply)[:500],
            )

        candidates = self.map_reply(parsed, text)
        candidates = self.noise_filter.filter(candidates, text)
        candidates.sort(key=lambda t: t.confidence, reverse=True)

        logger.info("ExtractionAgent: %d candidates after noise filter", len(candidates))
        return GeoTargetSet(source_text=text, source_url=source_url, candidates=candidates)

    def map_reply(self, parsed: Dict[str, Any], source_text: str) -> List[GeoTarget]:
        """Map the ``{"regions": [...], "places": [...]}`` reply to GeoTargets."""
        stamp = epoch_millis()
        targets: List[GeoTarget] = []

        regions = parsed.get("regions") if isinstance(parsed.get("regions"), list) else []
        for index, item in enumerate(regions):
            if not isinstance(item, dict) or not normalize_name(str(item.get("name") or "")):
                logger.debug("ExtractionAgent: skipping region entry %d without a name", index)
                continue
            evidence = str(item.get("evidence") or "")
            start, end = self._locate(source_text, evidence)
            targets.append(GeoTarget(
                id=f"region_{stamp}_{index}",
                kind=REGION,
                name=normalize_name(str(item["name"])),
                confidence=_clamp_confidence(item.get("confidence")),
                evidence_span=evidence,
                evidence_start=start,
                evidence_end=end,
                role=_role(item),
                resolved=RegionResolution(admin_level=_admin_level(item)),
                raw={
                    "iso_code": item.get("iso_code"),
                    "gadm_level": item.get("gadm_level"),
                    "type": item.get("type"),
                    "role": item.get("role"),
                },
            ))

        places = parsed.get("places") if isinstance(parsed.get("places"), list) else []
        for index, item in enumerate(places):
            if not isinstance(item, dict) or not normalize_name(str(item.get("name") or "")):
                logger.debug("ExtractionAgent: skipping place entry %d without a name", index)
                continue
            evidence = str(item.get("evidence") or "")
            start, end = self._locate(source_text, evidence)
            coords = item.get("coordinates")
            if not (isinstance(coords, list) and len(coords) >= 2):
                coords = None
            country = item.get("country")
            place_type = str(item.get("type") or "city").lower()
            targets.append(GeoTarget(
                id=f"place_{stamp}_{index}",
                kind=PLACE,
                name=normalize_name(str(item["name"])),
                confidence=_clamp_confidence(item.get("confidence")),
                evidence_span=evidence,
                evidence_start=start,
                evidence_end=end,
                role=_role(item),
                resolved=PlaceResolution(
                    country_code=lookup_country_code(country) if isinstance(country, str) else None,
                    place_type=place_type if place_type in _PLACE_TYPES else "city",
                ),
                raw={
                    "coordinates": coords,
                    "country": country,
                    "type": item.get("type"),
                    "role": item.get("role"),
                },
            ))

        missing = sum(1 for t in targets if t.evidence_span and t.evidence_start < 0)
        if missing:
            logger.warning(
                "ExtractionAgent: %d evidence quote(s) not found in the source text", missing
            )
        return targets

    @staticmethod
    def _locate(source_text: str, evidence: str):
        return locate_evidence(
            source_text,
            evidence,
            prefix_chars=EVIDENCE_PREFIX_CHARS,
            prefix_min_length=EVIDENCE_PREFIX_MIN_LENGTH,
        )
