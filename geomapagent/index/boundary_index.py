"""BoundaryCodeIndex: verifies that a standardized code is renderable.

The index is built lazily from the injected BoundaryProvider on first use and
owned by one orchestrator instance, so separate sessions never share state.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from config.defaults import SIMILAR_CODE_MAX_DISTANCE, SIMILAR_CODE_MAX_RESULTS
from geomapagent.interfaces import BoundaryProvider, NullBoundaryProvider
from geomapagent.utils.levenshtein_utils import nearest

logger = logging.getLogger(__name__)


@dataclass
class CodeCheck:
    """Verdict for one code at one admin level."""

    valid: bool
    suggestion: Optional[str] = None
    similar: List[str] = field(default_factory=list)
    verified: bool = True       # False when no boundary source was available


class BoundaryCodeIndex:
    """Lazily built set of country-level codes from the loaded boundary source.

    Args:
        provider: Boundary dataset collaborator. Defaults to NullBoundaryProvider,
            which leaves the index unavailable.
        max_distance: Largest edit distance for near-match suggestions.
        max_results: Maximum number of near-match suggestions.
    """

    def __init__(
        self,
        provider: Optional[BoundaryProvider] = None,
        max_distance: int = SIMILAR_CODE_MAX_DISTANCE,
        max_results: int = SIMILAR_CODE_MAX_RESULTS,
    ) -> None:
        self._provider = provider or NullBoundaryProvider()
        self._max_distance = max_distance
        self._max_results = max_results
        self._codes: Set[str] = set()
        self._initialized = False
        self._available = False
        self._cache: Dict[Tuple[str, int], CodeCheck] = {}
        self._lock = threading.Lock()

    # ── Lifecycle ──────────────────────────────────────────────────────────────

    def _ensure_initialized(self) -> None:
        with self._lock:
            if self._initialized:
                return
            self._initialized = True
            if not self._provider.is_source_loaded():
                logger.warning(
                    "BoundaryCodeIndex: no boundary source loaded; codes will not be verified"
                )
                return
            self._codes = {
                str(code).upper()
                for code in self._provider.loaded_codes()
                if isinstance(code, str) and len(code) == 3
            }
            self._available = True
            logger.info("BoundaryCodeIndex: indexed %d country codes", len(self._codes))

    @property
    def available(self) -> bool:
        """True when a boundary source was loaded at initialization."""
        self._ensure_initialized()
        return self._available

    def available_codes(self) -> List[str]:
        """Sorted country-level codes in the index."""
        self._ensure_initialized()
        return sorted(self._codes)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def reinitialize(self) -> None:
        """Drop the index and cache; the next validate() re-reads the provider."""
        with self._lock:
            self._codes = set()
            self._cache.clear()
            self._initialized = False
            self._available = False

    # ── Validation ─────────────────────────────────────────────────────────────

    def validate(self, code: Optional[str], admin_level: int = 0) -> CodeCheck:
        """Check a code against the loaded boundary dataset.

        Supranational and malformed codes are rejected before the cache is
        consulted. Level-0 codes are checked for membership; levels 1 and 2
        are accepted as-is. When no boundary source is loaded, well-formed
        codes are accepted unverified.

        Args:
            code: Candidate standardized code (case-insensitive).
            admin_level: 0 country, 1 state/province, 2 city/county.

        Returns:
            CodeCheck verdict.
        """
        normalized = (code or "").strip().upper()

        if normalized == "EU" or (len(normalized) == 2 and normalized.isalpha()):
            return CodeCheck(
                valid=False,
                suggestion=(
                    f'"{normalized}" is a supranational code, not a single country. '
                    "Decompose it into member-country codes (e.g. FRA, DEU, ITA) or skip it"
                ),
            )
        if len(normalized) != 3 or not normalized.isalpha():
            return CodeCheck(
                valid=False,
                suggestion=(
                    f'Invalid code format: "{code}". Expected a 3-letter ISO 3166-1 '
                    "alpha-3 code such as TWN, USA or CHN"
                ),
            )

        self._ensure_initialized()
        if not self._available:
            return CodeCheck(valid=True, verified=False)

        key = (normalized, int(admin_level))
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            return cached

        if int(admin_level) == 0:
            if normalized in self._codes:
                result = CodeCheck(valid=True)
            else:
                similar = nearest(
                    normalized, self._codes,
                    max_distance=self._max_distance, limit=self._max_results,
                )
                suggestion = f'Code "{normalized}" is not present in the loaded boundary data'
                if similar:
                    suggestion += f". Did you mean: {', '.join(similar)}"
                result = CodeCheck(valid=False, suggestion=suggestion, similar=similar)
        else:
            # Sub-national membership is not enumerated by the provider
            result = CodeCheck(valid=True)

        with self._lock:
            self._cache[key] = result
        return result
