"""ResolverAgent: names to standardized codes and coordinates.

Regions resolve through the synonym table, then the static country table,
and every code found is checked against the BoundaryCodeIndex. Places try the
injected coordinate lookup, then the named-location resolver, then the
external geocoder stub, and finally the coordinates the extractor supplied.

Unresolved candidates are never raised: they come back with needs_review set
and a suggestion telling the reviewer what to fix. Only an unexpected
collaborator exception propagates, and only after every task has settled.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, List, Optional

from config.defaults import RESOLVER_MAX_WORKERS
from geomapagent.agents.base import BaseAgent
from geomapagent.data.country_codes import lookup_country_code
from geomapagent.data.synonyms import SynonymTable
from geomapagent.index.boundary_index import BoundaryCodeIndex
from geomapagent.interfaces import (
    CoordinateLookup,
    NamedLocationResolver,
    NullCoordinateLookup,
    NullNamedLocationResolver,
)
from geomapagent.models.geo_targets import GeoTarget, PlaceResolution, RegionResolution
from geomapagent.utils.geo_utils import validate_coordinates
from geomapagent.utils.text import normalize_name

logger = logging.getLogger(__name__)


class ResolverAgent(BaseAgent):
    """Resolves candidate regions and places concurrently.

    Args:
        synonyms: Canonical synonym table.
        boundary_index: Code verifier for the loaded boundary dataset.
        coordinate_lookup: Primary place geocoder.
        location_resolver: Secondary gazetteer-style resolver.
        max_workers: Thread-pool size for the per-candidate fan-out.
    """

    name = "ResolverAgent"
    version = "1.0.0"

    def __init__(
        self,
        synonyms: Optional[SynonymTable] = None,
        boundary_index: Optional[BoundaryCodeIndex] = None,
        coordinate_lookup: Optional[CoordinateLookup] = None,
        location_resolver: Optional[NamedLocationResolver] = None,
        max_workers: int = RESOLVER_MAX_WORKERS,
    ) -> None:
        self.synonyms = synonyms or SynonymTable()
        self.boundary_index = boundary_index or BoundaryCodeIndex()
        self.coordinate_lookup = coordinate_lookup or NullCoordinateLookup()
        self.location_resolver = location_resolver or NullNamedLocationResolver()
        self.max_workers = max(1, max_workers)

    def run(self, context: Any) -> List[GeoTarget]:
        """Resolve the session's current candidates in place."""
        target_set = context.target_set
        target_set.candidates = self.resolve(target_set.candidates)
        return target_set.candidates

    def reset(self) -> None:
        self.boundary_index.clear_cache()

    # ── Fan-out ────────────────────────────────────────────────────────────────

    def resolve(self, candidates: List[GeoTarget]) -> List[GeoTarget]:
        """Resolve every candidate; results keep input order.

        Raises:
            Exception: The first collaborator exception (in input order), once
                all tasks have finished.
        """
        if not candidates:
            return []

        workers = min(self.max_workers, len(candidates))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self.resolve_single, target) for target in candidates]
            wait(futures)

        resolved: List[GeoTarget] = []
        for target, future in zip(candidates, futures):
            exc = future.exception()
            if exc is not None:
                logger.error("Resolver: collaborator failed on %s: %s", target.name, exc)
                raise exc
            resolved.append(future.result())

        review = sum(1 for t in resolved if t.resolved.needs_review)
        logger.info(
            "Resolver: resolved %d candidates (%d need review)", len(resolved), review
        )
        return resolved

    def resolve_single(self, target: GeoTarget) -> GeoTarget:
        if target.is_region:
            return self.resolve_region(target)
        if target.is_place:
            return self.resolve_place(target)
        return target

    # ── Regions ────────────────────────────────────────────────────────────────

    def resolve_region(self, target: GeoTarget) -> GeoTarget:
        """Assign a code (or a decomposition) to a region candidate."""
        name = normalize_name(target.name)
        res = target.resolved
        if not isinstance(res, RegionResolution):
            res = RegionResolution()
            target.resolved = res
        res.validated, res.needs_review, res.suggestion = False, False, None

        entry = self.synonyms.lookup(name)
        if entry is not None and entry.entities:
            res.code = entry.entities[0]
            res.canonical = entry.canonical
            if entry.is_decomposition:
                res.entities = list(entry.entities)
                res.needs_decomposition = True
                res.suggestion = (
                    f"{name} spans several countries ({', '.join(entry.entities)}); "
                    f"currently shown as {res.code}"
                )
                logger.info(
                    "Resolver: %s -> %s (entities: %s)",
                    name, entry.canonical, ", ".join(entry.entities),
                )
            else:
                res.entities = []
                res.needs_decomposition = False
                logger.debug("Resolver: %s -> %s via synonym table", name, res.code)
            self._verify_code(target, res, res.code)
            return target

        code = lookup_country_code(name)
        if code:
            res.code = code
            logger.debug("Resolver: %s -> %s via country table", name, code)
            self._verify_code(target, res, code)
            return target

        res.code = None
        suggestion = (
            f'Could not auto-resolve "{name}". Check the spelling or assign a '
            "3-letter ISO code manually"
        )
        hinted = target.raw.get("iso_code")
        if hinted:
            suggestion += f" (the extraction suggested {hinted})"
        res.mark_review(suggestion)
        logger.warning("Resolver: could not resolve region %s", name)
        return target

    def _verify_code(self, target: GeoTarget, res: RegionResolution, code: str) -> None:
        check = self.boundary_index.validate(code, res.admin_level)
        if not check.verified:
            res.validated = False
            logger.info("Resolver: %s -> %s (unverified, no boundary source)", target.name, code)
            return
        if check.valid:
            res.validated = True
            logger.debug("Resolver: %s -> %s (verified)", target.name, code)
            return
        res.mark_review(check.suggestion or f"Code {code} failed boundary validation")
        logger.warning("Resolver: %s -> %s failed validation: %s", target.name, code, res.suggestion)

    # ── Places ─────────────────────────────────────────────────────────────────

    def resolve_place(self, target: GeoTarget) -> GeoTarget:
        """Assign coordinates to a place candidate; the first source to answer wins."""
        name = normalize_name(target.name)
        res = target.resolved
        if not isinstance(res, PlaceResolution):
            res = PlaceResolution()
            target.resolved = res
        res.validated, res.needs_review, res.suggestion = False, False, None

        coords = self.coordinate_lookup.resolve_name(name, res.country_code)
        if coords:
            self._apply_coordinates(target, res, coords, source="coordinate lookup")
            return target

        found = self.location_resolver.resolve_location(name)
        if found and found.get("lat") is not None and found.get("lon") is not None:
            if found.get("country_code"):
                res.country_code = found["country_code"]
            self._apply_coordinates(
                target, res, [found["lon"], found["lat"]], source="location resolver"
            )
            return target

        coords = self._geocode_external(name)
        if coords:
            self._apply_coordinates(target, res, coords, source="external geocoder")
            return target

        supplied = target.raw.get("coordinates")
        if supplied:
            # Model output mixes up axis order often enough to allow a swap here
            self._apply_coordinates(
                target, res, supplied, source="extraction", allow_swap=True
            )
            return target

        res.coordinates = None
        res.mark_review(f'Could not resolve coordinates for "{name}". Set them manually')
        logger.warning("Resolver: could not resolve place %s", name)
        return target

    def _apply_coordinates(
        self,
        target: GeoTarget,
        res: PlaceResolution,
        coords: Any,
        source: str,
        allow_swap: bool = False,
    ) -> None:
        check = validate_coordinates(coords, allow_swap=allow_swap)
        if check.valid:
            res.coordinates = check.coordinates
            res.validated = True
            if check.swapped:
                logger.info("Resolver: swapped [lat, lon] pair for %s", target.name)
            logger.debug("Resolver: %s -> %s via %s", target.name, res.coordinates, source)
            return
        res.coordinates = None
        res.mark_review(check.suggestion or "Coordinates failed validation")
        logger.warning(
            "Resolver: %s coordinates from %s rejected: %s", target.name, source, res.suggestion
        )

    def _geocode_external(self, name: str) -> Optional[List[float]]:
        """Public-gazetteer geocoder slot, disabled.

        The public gazetteer's usage policy forbids bulk automated lookups, so
        this source never answers. Deployments inject a CoordinateLookup
        (e.g. MapboxGeocoder) instead.
        """
        logger.debug("Resolver: external geocoder disabled, skipping %s", name)
        return None
