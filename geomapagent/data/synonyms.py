"""Geographic synonym table for GeoMapAgent.

One canonical-entity table plus an alias index derived once at construction.
A name may map to several standardized codes (a contested region touching two
countries, or a macro-region spanning many); those are decompositions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

COUNTRY = "country"
REGION = "region"


@dataclass(frozen=True)
class SynonymEntry:
    """One canonical geographic entity and its alternate spellings."""

    canonical: str
    entities: Tuple[str, ...]
    classification: str = COUNTRY
    aliases: Tuple[str, ...] = ()

    @property
    def is_decomposition(self) -> bool:
        return len(self.entities) > 1


_MIDDLE_EAST = (
    "SAU", "IRN", "IRQ", "ISR", "ARE", "KWT", "QAT", "BHR", "OMN", "YEM", "JOR", "LBN", "SYR",
)

DEFAULT_ENTRIES: Tuple[SynonymEntry, ...] = (
    # ── Contested and macro regions ────────────────────────────────────────────
    SynonymEntry(
        "Nagorno-Karabakh", ("ARM", "AZE"), REGION,
        ("納卡區", "納戈爾諾-卡拉巴赫", "納戈爾諾卡拉巴赫", "Nagorno Karabakh"),
    ),
    SynonymEntry("Artsakh", ("ARM",), REGION, ("阿爾察赫",)),
    SynonymEntry("South Caucasus", ("ARM", "AZE", "GEO"), REGION, ("南高加索地區", "外高加索", "南高加索")),
    SynonymEntry("Middle East", _MIDDLE_EAST, REGION, ("中東地區", "中東")),
    # ── Countries ──────────────────────────────────────────────────────────────
    SynonymEntry("Azerbaijan", ("AZE",), COUNTRY, ("亞塞拜然", "阿塞拜疆")),
    SynonymEntry("Armenia", ("ARM",), COUNTRY, ("亞美尼亞",)),
    SynonymEntry("Turkey", ("TUR",), COUNTRY, ("土耳其", "Türkiye")),
    SynonymEntry("Iran", ("IRN",), COUNTRY, ("伊朗", "Islamic Republic of Iran", "伊朗伊斯蘭共和國")),
    SynonymEntry("Georgia", ("GEO",), COUNTRY, ("喬治亞", "格鲁吉亚", "格魯吉亞")),
    SynonymEntry("Taiwan", ("TWN",), COUNTRY, ("台灣", "臺灣", "Republic of China", "ROC")),
    SynonymEntry("China", ("CHN",), COUNTRY, ("中國", "中华人民共和国", "PRC", "People's Republic of China")),
    SynonymEntry(
        "United States", ("USA",), COUNTRY,
        ("美國", "United States of America", "US", "U.S.", "U.S.A.", "USA"),
    ),
    SynonymEntry(
        "United Kingdom", ("GBR",), COUNTRY,
        ("英國", "United Kingdom of Great Britain and Northern Ireland", "UK", "U.K.",
         "Britain", "Great Britain"),
    ),
    SynonymEntry("Russia", ("RUS",), COUNTRY, ("俄羅斯", "Russian Federation", "Россия")),
    SynonymEntry("South Korea", ("KOR",), COUNTRY, ("韓國", "Republic of Korea", "ROK", "Korea", "大韓民國")),
)


class SynonymTable:
    """Name -> SynonymEntry lookup over a canonical-entity table.

    Args:
        entries: Canonical entries; defaults to DEFAULT_ENTRIES.

    Raises:
        ValueError: If one alias (case-insensitive) is claimed by two
            different canonical entries.
    """

    def __init__(self, entries: Optional[Iterable[SynonymEntry]] = None) -> None:
        self._entries: Tuple[SynonymEntry, ...] = tuple(
            entries if entries is not None else DEFAULT_ENTRIES
        )
        self._by_canonical: Dict[str, SynonymEntry] = {}
        self._by_canonical_lower: Dict[str, SynonymEntry] = {}
        self._by_alias: Dict[str, SynonymEntry] = {}
        self._build_index()

    def _build_index(self) -> None:
        for entry in self._entries:
            self._by_canonical[entry.canonical] = entry
            self._by_canonical_lower[entry.canonical.lower()] = entry

        for entry in self._entries:
            for alias in entry.aliases:
                key = alias.strip().lower()
                owner = self._by_alias.get(key) or self._by_canonical_lower.get(key)
                if owner is not None and owner.canonical != entry.canonical:
                    raise ValueError(
                        f"Alias '{alias}' is claimed by both '{owner.canonical}' "
                        f"and '{entry.canonical}'"
                    )
                self._by_alias[key] = entry

        logger.debug(
            "SynonymTable: %d canonical entries, %d aliases",
            len(self._entries), len(self._by_alias),
        )

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> List[SynonymEntry]:
        return list(self._entries)

    def lookup(self, name: str) -> Optional[SynonymEntry]:
        """Resolve a name: exact canonical, case-insensitive canonical, then alias.

        Args:
            name: Surface name as extracted (surrounding whitespace ignored).

        Returns:
            Matching SynonymEntry, or None.
        """
        if not name or not isinstance(name, str):
            return None
        key = name.strip()
        if not key:
            return None
        entry = self._by_canonical.get(key)
        if entry is not None:
            return entry
        lowered = key.lower()
        return self._by_canonical_lower.get(lowered) or self._by_alias.get(lowered)

    def aliases_for(self, canonical: str) -> List[str]:
        """All known spellings of a canonical entity, canonical name first."""
        entry = self._by_canonical.get(canonical) or self._by_canonical_lower.get(
            (canonical or "").lower()
        )
        if entry is None:
            return []
        return [entry.canonical, *entry.aliases]

    def decomposed_entities(self, name: str) -> Optional[List[str]]:
        """Codes for a name that denotes several units, else None."""
        entry = self.lookup(name)
        if entry is not None and entry.is_decomposition:
            return list(entry.entities)
        return None
