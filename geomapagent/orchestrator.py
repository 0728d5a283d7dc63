"""GeoMapAgent orchestrator.

Sequences the agents for one news text and holds the resulting session:

  RETRIEVING        ReferenceAgent looks for a similar past analysis
  REUSE_CANDIDATE   a close match (> reuse threshold, with areas) skips extraction
  EXTRACTING        ExtractionAgent calls the text-understanding service
  VALIDATING        ValidationAgent checks candidate shapes (recorded, not fatal)
  RESOLVING         ResolverAgent assigns codes and coordinates
  VALIDATING        shapes checked again after resolution
  FILTERING         candidates below the confidence floor are dropped
  DEDUPLICATING     one region per code, highest confidence wins
  READY             candidates await selection and map generation

One process_text() call runs at a time per orchestrator; overlapping calls
wait for the lock. Service errors propagate to the caller and leave the
orchestrator IDLE with its previous session intact.

Usage:
    from config.settings import MapAgentConfig
    from geomapagent import MapAgentOrchestrator

    orchestrator = MapAgentOrchestrator(MapAgentConfig())
    target_set = orchestrator.process_text(news_text)
    spec = orchestrator.generate_map_spec([t.id for t in target_set.candidates[:3]])
"""

from __future__ import annotations

import logging
import secrets
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from config.settings import MapAgentConfig
from geomapagent.adapters import from_legacy, to_legacy, validation_stats
from geomapagent.agents.base import AgentStatus, BaseAgent
from geomapagent.agents.extraction_agent import ExtractionAgent
from geomapagent.agents.map_spec_generator import MapSpecGenerator
from geomapagent.agents.noise_filter import NoiseFilter
from geomapagent.agents.reference_agent import ReferenceAgent
from geomapagent.agents.resolver_agent import ResolverAgent
from geomapagent.agents.validation_agent import ValidationAgent
from geomapagent.clients.geocoding_client import MapboxGeocoder
from geomapagent.clients.llm_client import LLMClient
from geomapagent.data.synonyms import SynonymTable
from geomapagent.errors import MalformedResponse, NoActiveSession, SchemaInvalid
from geomapagent.index.boundary_index import BoundaryCodeIndex
from geomapagent.interfaces import (
    BoundaryProvider,
    CoordinateLookup,
    NamedLocationResolver,
    NullCoordinateLookup,
)
from geomapagent.io.persistence import dumps
from geomapagent.models.geo_targets import GeoTarget, GeoTargetSet
from geomapagent.models.map_spec import MapSpec
from geomapagent.models.reference import ReferenceRecord
from geomapagent.models.session import TRANSITIONS, SessionContext, SessionState
from geomapagent.utils.date_utils import epoch_millis, utc_now
from geomapagent.utils.logging_utils import get_session_logger

logger = logging.getLogger(__name__)


def filter_by_confidence(candidates: List[GeoTarget], threshold: float) -> List[GeoTarget]:
    """Keep candidates at or above ``threshold``, preserving order."""
    kept = [t for t in candidates if t.confidence >= threshold]
    if len(kept) < len(candidates):
        logger.info(
            "Orchestrator: confidence filter %.2f dropped %d candidate(s)",
            threshold, len(candidates) - len(kept),
        )
    return kept


def deduplicate_regions(candidates: List[GeoTarget]) -> List[GeoTarget]:
    """Keep one region per resolved code; places follow the regions.

    Among regions sharing a code the highest confidence wins (the earlier one
    on ties) and takes the slot of the first occurrence. Regions whose code is
    shorter than three characters are dropped. Unresolved regions (no code)
    are kept so a reviewer can fix them.
    """
    regions: List[GeoTarget] = []
    slot_by_code: Dict[str, int] = {}
    for target in candidates:
        if not target.is_region:
            continue
        code = target.resolved.code
        if code is None:
            regions.append(target)
            continue
        key = code.strip().upper()
        if len(key) < 3:
            logger.info("Orchestrator: dropping %s with malformed code %r", target.name, code)
            continue
        if key in slot_by_code:
            index = slot_by_code[key]
            if target.confidence > regions[index].confidence:
                logger.debug(
                    "Orchestrator: %s replaces %s for %s", target.name, regions[index].name, key
                )
                regions[index] = target
            continue
        slot_by_code[key] = len(regions)
        regions.append(target)

    places = [t for t in candidates if t.is_place]
    return regions + places


class MapAgentOrchestrator:
    """Entry point for text analysis and map specification.

    Args:
        config: Runtime configuration; defaults to MapAgentConfig().
        llm: Text-understanding client; built from config when omitted.
        boundary_provider: Loaded boundary dataset used to verify codes.
        coordinate_lookup: Primary place geocoder. Defaults to MapboxGeocoder
            when a Mapbox token is configured, else a no-op lookup.
        location_resolver: Secondary place resolver.
        synonyms: Synonym table override.
        reference: Reference store override.
        clock: Zero-argument callable returning an aware datetime.
    """

    def __init__(
        self,
        config: Optional[MapAgentConfig] = None,
        llm: Optional[LLMClient] = None,
        boundary_provider: Optional[BoundaryProvider] = None,
        coordinate_lookup: Optional[CoordinateLookup] = None,
        location_resolver: Optional[NamedLocationResolver] = None,
        synonyms: Optional[SynonymTable] = None,
        reference: Optional[ReferenceAgent] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config or MapAgentConfig()
        self._clock = clock or utc_now

        if coordinate_lookup is None:
            if self.config.mapbox_token:
                coordinate_lookup = MapboxGeocoder.from_config(self.config)
            else:
                coordinate_lookup = NullCoordinateLookup()

        self.llm = llm or LLMClient.from_config(self.config)
        self.validator = ValidationAgent()
        self.extractor = ExtractionAgent(
            self.llm,
            validator=self.validator,
            noise_filter=NoiseFilter(
                no_evidence_min_confidence=self.config.no_evidence_min_confidence
            ),
        )
        self.resolver = ResolverAgent(
            synonyms=synonyms or SynonymTable(),
            boundary_index=BoundaryCodeIndex(boundary_provider),
            coordinate_lookup=coordinate_lookup,
            location_resolver=location_resolver,
            max_workers=self.config.resolver_max_workers,
        )
        self.reference = reference or ReferenceAgent.from_config(self.config, clock=self._clock)
        self.spec_generator = MapSpecGenerator(
            bounds_padding=self.config.map_bounds_padding_deg, clock=self._clock
        )

        self._lock = threading.Lock()
        self._state = SessionState.IDLE
        self._target_set: Optional[GeoTargetSet] = None
        self._map_spec: Optional[MapSpec] = None
        self._context: Optional[SessionContext] = None

    # ── State machine ──────────────────────────────────────────────────────────

    @property
    def state(self) -> str:
        return self._state

    def _transition(self, new_state: str) -> None:
        if new_state not in TRANSITIONS.get(self._state, ()):
            raise RuntimeError(f"Illegal state transition {self._state} -> {new_state}")
        logger.debug("Orchestrator: %s -> %s", self._state, new_state)
        self._state = new_state

    def _run_phase(self, context: SessionContext, phase_name: str, agent: BaseAgent) -> Any:
        """Run one agent, recording its timing on the session's phase log.

        Exceptions are recorded as FAILED and re-raised.
        """
        record = context.log_phase_start(phase_name)
        try:
            result = agent._run_timed(context)
        except Exception:
            context.log_phase_end(record, status=AgentStatus.FAILED)
            raise
        context.log_phase_end(record, status=AgentStatus.OK)
        logger.debug("Orchestrator: phase %s took %.3fs", phase_name, record.elapsed_seconds)
        return result

    def _check(self, context: SessionContext, phase_name: str) -> None:
        self._transition(SessionState.VALIDATING)
        report = self._run_phase(context, phase_name, self.validator)
        if not report.valid:
            logger.warning(
                "Orchestrator: %s found %d schema error(s); continuing",
                phase_name, len(report.errors),
            )

    # ── Processing ─────────────────────────────────────────────────────────────

    def process_text(self, text: str, source_url: Optional[str] = None) -> GeoTargetSet:
        """Analyse one news text and return the surviving candidates.

        Raises:
            ValueError: If ``text`` is empty.
            ServiceTimeout, QuotaExceeded, ServiceError: From the service call.
            MalformedResponse: If the service reply cannot be parsed.
        """
        if not text or not text.strip():
            raise ValueError("News text must not be empty")

        with self._lock:
            session_id = f"sess_{epoch_millis(self._clock())}_{secrets.token_hex(3)}"
            slog = get_session_logger("orchestrator", session_id)
            context = SessionContext(
                config=self.config,
                session_id=session_id,
                source_text=text,
                source_url=source_url,
                start_time=self._clock(),
            )
            self._state = SessionState.IDLE
            slog.info("Processing %d characters", len(text))

            try:
                target_set = self._process(context, slog)
            except Exception as exc:
                self._state = SessionState.IDLE
                context.end_time = self._clock()
                slog.error("Processing failed: %s", exc)
                raise

            context.end_time = self._clock()
            self._context = context
            self._target_set = target_set
            self._map_spec = None
            slog.info(
                "Ready: %d candidates (%s)",
                len(target_set.candidates),
                "reference" if target_set.from_reference else "extraction",
            )
            return target_set

    def _process(self, context: SessionContext, slog: logging.LoggerAdapter) -> GeoTargetSet:
        cfg = self.config
        self._transition(SessionState.RETRIEVING)
        if cfg.enable_reference_reuse:
            context.reference_match = self._run_phase(context, "retrieve", self.reference)

        match = context.reference_match
        target_set: Optional[GeoTargetSet] = None
        if match is not None and match.similarity > cfg.reference_reuse_threshold and match.areas:
            self._transition(SessionState.REUSE_CANDIDATE)
            results = match.as_results()
            try:
                self.validator.check_legacy_results(results).raise_if_invalid()
                target_set = from_legacy(results, context.source_text)
            except (SchemaInvalid, ValueError, TypeError) as exc:
                slog.warning("Reference conversion failed, extracting instead: %s", exc)
                context.add_warning(f"Reference reuse failed: {exc}")
            else:
                target_set.source_url = context.source_url
                target_set.from_reference = True
                target_set.reference_similarity = match.similarity
                context.target_set = target_set
                slog.info("Reusing reference %s (similarity %.3f)", match.record.id, match.similarity)
        elif match is not None:
            slog.info("Reference similarity %.3f too low for reuse", match.similarity)

        if target_set is None:
            self._transition(SessionState.EXTRACTING)
            context.target_set = self._run_phase(context, "extract", self.extractor)
            self._check(context, "check_extracted")

        self._transition(SessionState.RESOLVING)
        self._run_phase(context, "resolve", self.resolver)
        self._check(context, "check_resolved")

        target_set = context.target_set
        self._transition(SessionState.FILTERING)
        target_set.candidates = filter_by_confidence(
            target_set.candidates, cfg.min_candidate_confidence
        )

        self._transition(SessionState.DEDUPLICATING)
        target_set.candidates = deduplicate_regions(target_set.candidates)

        self._transition(SessionState.READY)
        return target_set

    # ── Map specification ──────────────────────────────────────────────────────

    def generate_map_spec(
        self,
        selected_ids: Iterable[str],
        customizations: Optional[Dict[str, Any]] = None,
    ) -> MapSpec:
        """Build a MapSpec from the chosen candidates.

        Args:
            selected_ids: Candidate ids to include; unknown ids are ignored.
            customizations: ``colors`` and ``names`` keyed by candidate id,
                ``style_tokens`` overrides and a ``title``.

        Raises:
            NoActiveSession: If no text has been processed yet.
        """
        with self._lock:
            if self._target_set is None:
                raise NoActiveSession("No analysed text; call process_text() first")
            custom = dict(customizations or {})
            if "styleTokens" in custom and "style_tokens" not in custom:
                custom["style_tokens"] = custom.pop("styleTokens")

            known = {t.id for t in self._target_set.candidates}
            ids = list(dict.fromkeys(selected_ids))
            unknown = [i for i in ids if i not in known]
            if unknown:
                logger.warning("Orchestrator: ignoring unknown candidate ids %s", unknown)
            self._target_set.selected_ids = [i for i in ids if i in known]

            self._map_spec = self.spec_generator.generate(self._target_set, custom)
            return self._map_spec

    def export_spec(self) -> str:
        """Serialize the current MapSpec to JSON.

        Raises:
            NoActiveSession: If no map spec has been generated or imported.
        """
        if self._map_spec is None:
            raise NoActiveSession("No map specification to export")
        return dumps(self._map_spec.to_dict())

    def import_spec(self, data: Any) -> MapSpec:
        """Replace the current MapSpec with one loaded from JSON text or a dict.

        Raises:
            MalformedResponse: If the text is not JSON or lacks required keys.
        """
        if isinstance(data, str):
            data = self.validator.repair_and_parse_json(data)
        if not isinstance(data, dict):
            raise MalformedResponse("Map spec JSON must be an object")
        try:
            spec = MapSpec.from_dict(data)
        except ValueError as exc:
            raise MalformedResponse(str(exc)) from exc
        self._map_spec = spec
        logger.info("Orchestrator: imported map spec %s", spec.map_id)
        return spec

    # ── Session helpers ────────────────────────────────────────────────────────

    def current_state(self) -> Dict[str, Any]:
        """Snapshot for UI surfaces: state name, candidates and map spec."""
        return {
            "state": self._state,
            "target_set": self._target_set,
            "map_spec": self._map_spec,
            "warnings": list(self._context.warnings) if self._context else [],
            "phase_log": list(self._context.phase_log) if self._context else [],
        }

    def reset(self) -> None:
        """Drop the current session and return to IDLE."""
        with self._lock:
            self._target_set = None
            self._map_spec = None
            self._context = None
            self._state = SessionState.IDLE
            self.resolver.reset()
        logger.info("Orchestrator: reset")

    def accept_current(
        self,
        markers: Optional[List[Dict[str, Any]]] = None,
        map_design: Optional[Dict[str, Any]] = None,
    ) -> ReferenceRecord:
        """Save the current session into the reference store.

        Only the selected candidates are saved when a selection exists.

        Raises:
            NoActiveSession: If no text has been processed yet.
        """
        with self._lock:
            if self._target_set is None:
                raise NoActiveSession("No analysed text to accept")
            target_set = self._target_set
            if target_set.selected_ids:
                target_set = GeoTargetSet(
                    source_text=target_set.source_text,
                    source_url=target_set.source_url,
                    candidates=target_set.selected(),
                )
            results = to_legacy(target_set)
            results["mapDesign"] = map_design
            return self.reference.save(target_set.source_text, results, markers=markers)

    def validation_stats(self) -> Dict[str, Any]:
        """Validator counters plus per-candidate review counts for the session."""
        return {
            "validator": self.validator.get_stats(),
            "candidates": validation_stats(self._target_set),
        }
