"""ReferenceAgent: reuse of past analyses for similar news texts.

Accepted analyses are persisted as ReferenceRecords in a JSON store. For a
new text, every record is scored on three signals and the best record above
the relevance floor is returned:

    similarity = 0.65 * area score + 0.25 * keyword score + 0.10 * recency

Area score: how strongly the record's areas (code, full name, name parts,
keyword overlap) appear in the new text. Keyword score: weighted overlap of
the two keyword lists, with words longer than four characters weighted 1.5.
Recency: linear decay to zero over 180 whole days.

Store format: {"schema_version": 1, "records": [...]}. A bare JSON array
written by older front ends is read as version 0 and upgraded on next save.
"""

from __future__ import annotations

import logging
import secrets
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from config.defaults import (
    REFERENCE_DEFAULT_CONFIDENCE,
    REFERENCE_MAX_KEYWORDS,
    REFERENCE_MAX_RECORDS,
    REFERENCE_PLACE_MIN_CONFIDENCE,
    REFERENCE_RECENCY_DAYS,
    REFERENCE_REGION_MIN_CONFIDENCE,
    REFERENCE_RELEVANCE_FLOOR,
    REFERENCE_SCHEMA_VERSION,
    REFERENCE_SOURCE_TEXT_CHARS,
    REFERENCE_STORE_PATH,
    REFERENCE_WEIGHT_AREA,
    REFERENCE_WEIGHT_KEYWORD,
    REFERENCE_WEIGHT_RECENCY,
)
from geomapagent.agents.base import BaseAgent
from geomapagent.io.persistence import load_json, remove_file, save_json
from geomapagent.models.reference import ReferenceMatch, ReferenceRecord
from geomapagent.utils.date_utils import days_since, epoch_millis, parse_timestamp, to_iso, utc_now
from geomapagent.utils.text import contains_word, extract_keywords

logger = logging.getLogger(__name__)

_NAME_PART_STOP_WORDS = frozenset({"the", "of", "and"})


def _entry_confidence(entry: Dict[str, Any]) -> float:
    """Confidence stored under ``_agent``; entries without one count as core."""
    agent = entry.get("_agent")
    if isinstance(agent, dict) and isinstance(agent.get("confidence"), (int, float)):
        return float(agent["confidence"])
    return REFERENCE_DEFAULT_CONFIDENCE


# ── Similarity components ──────────────────────────────────────────────────────

def area_score(areas: Sequence[Dict[str, Any]], text_lower: str, keywords: Sequence[str]) -> float:
    """Weighted share of the record's areas that the new text mentions.

    Each matched area contributes ``score * weight``; unmatched areas do not
    add weight. Tiers, first match wins: code (1.0, weight 1.5), full name
    (0.9, 1.3), name parts (up to 0.8, 1.0), keyword overlap (0.5, 0.7).
    """
    matched = 0.0
    total_weight = 0.0
    for area in areas:
        code = str(area.get("iso_code") or "").lower()
        name = str(area.get("name") or "").lower().strip()
        parts = [p for p in name.split() if len(p) > 2 and p not in _NAME_PART_STOP_WORDS]

        score, weight = 0.0, 1.0
        if code and contains_word(text_lower, code):
            score, weight = 1.0, 1.5
        elif name and name in text_lower:
            score, weight = 0.9, 1.3
        elif parts:
            hits = sum(
                1 for part in parts
                if part in text_lower or any(part in kw or kw in part for kw in keywords)
            )
            if hits:
                score, weight = min(0.8, hits / len(parts)), 1.0

        if score == 0.0 and name:
            if any(
                kw in name or name in kw or any(part in kw or kw in part for part in parts)
                for kw in keywords
            ):
                score, weight = 0.5, 0.7

        if score > 0.0:
            matched += score * weight
            total_weight += weight

    if total_weight == 0.0:
        return 0.0
    return min(1.0, matched / total_weight)


def keyword_score(
    current_keywords: Sequence[str],
    current_text_lower: str,
    reference_keywords: Sequence[str],
    reference_text_lower: str,
) -> float:
    """Weighted overlap of keywords present on both sides."""
    current_set = set(current_keywords)
    reference_set = set(reference_keywords)
    matched = 0.0
    total_weight = 0.0
    for keyword in current_set | reference_set:
        current_freq = 1 if keyword in current_set else 0
        reference_freq = 1 if keyword in reference_set else 0
        in_current = 1 if keyword in current_text_lower else 0
        in_reference = 1 if keyword in reference_text_lower else 0
        if not (current_freq or in_current) or not (reference_freq or in_reference):
            continue
        strength = min(1.0, (max(current_freq, in_current) + max(reference_freq, in_reference)) / 2)
        weight = 1.5 if len(keyword) > 4 else 1.0
        matched += strength * weight
        total_weight += weight
    if total_weight == 0.0:
        return 0.0
    return min(1.0, matched / total_weight)


def recency_score(timestamp: str, now: datetime, horizon_days: int = REFERENCE_RECENCY_DAYS) -> float:
    """Linear decay from 1 (today) to 0 at ``horizon_days`` whole days."""
    days = days_since(timestamp, now)
    if days is None:
        return 0.0
    return max(0.0, 1.0 - days / float(horizon_days))


class ReferenceAgent(BaseAgent):
    """Persistent reference store with similarity lookup.

    Args:
        store_path: JSON file holding the records.
        max_records: Cap on stored records; the oldest are evicted.
        relevance_floor: Matches must score strictly above this.
        region_min_confidence: Floor for stored and returned areas.
        place_min_confidence: Floor for stored and returned locations.
        clock: Zero-argument callable returning an aware datetime. Tests pass
            a fixed clock so scores are reproducible.
    """

    name = "ReferenceAgent"
    version = "1.0.0"

    def __init__(
        self,
        store_path: str | Path = REFERENCE_STORE_PATH,
        max_records: int = REFERENCE_MAX_RECORDS,
        relevance_floor: float = REFERENCE_RELEVANCE_FLOOR,
        region_min_confidence: float = REFERENCE_REGION_MIN_CONFIDENCE,
        place_min_confidence: float = REFERENCE_PLACE_MIN_CONFIDENCE,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store_path = Path(store_path)
        self.max_records = max_records
        self.relevance_floor = relevance_floor
        self.region_min_confidence = region_min_confidence
        self.place_min_confidence = place_min_confidence
        self._clock = clock or utc_now
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: Any, clock: Optional[Callable[[], datetime]] = None) -> "ReferenceAgent":
        return cls(
            store_path=config.reference_store_path,
            max_records=config.reference_max_records,
            relevance_floor=config.reference_relevance_floor,
            region_min_confidence=config.reference_region_min_confidence,
            place_min_confidence=config.reference_place_min_confidence,
            clock=clock,
        )

    def run(self, context: Any) -> Optional[ReferenceMatch]:
        return self.find_similar(context.source_text)

    # ── Store I/O ──────────────────────────────────────────────────────────────

    def _read_records(self) -> List[ReferenceRecord]:
        data = load_json(self.store_path)
        if data is None:
            return []
        if isinstance(data, list):
            raw_records = data
            logger.info("ReferenceAgent: read unversioned store %s", self.store_path)
        elif isinstance(data, dict) and isinstance(data.get("records"), list):
            version = data.get("schema_version")
            if version != REFERENCE_SCHEMA_VERSION:
                logger.warning(
                    "ReferenceAgent: store schema_version %r, expected %d; reading anyway",
                    version, REFERENCE_SCHEMA_VERSION,
                )
            raw_records = data["records"]
        else:
            logger.warning("ReferenceAgent: unrecognised store layout in %s", self.store_path)
            return []
        return [ReferenceRecord.from_dict(r) for r in raw_records if isinstance(r, dict)]

    def _write_records(self, records: List[ReferenceRecord]) -> None:
        payload = {
            "schema_version": REFERENCE_SCHEMA_VERSION,
            "records": [r.to_dict() for r in records],
        }
        try:
            save_json(payload, self.store_path)
        except (OSError, TypeError, ValueError) as exc:
            logger.error("ReferenceAgent: failed to write %s: %s", self.store_path, exc)
            raise

    def records(self) -> List[ReferenceRecord]:
        """All stored records, in store order."""
        with self._lock:
            return self._read_records()

    def clear(self) -> None:
        """Delete every stored record."""
        with self._lock:
            remove_file(self.store_path)
        logger.info("ReferenceAgent: cleared %s", self.store_path)

    # ── Scoring ────────────────────────────────────────────────────────────────

    def similarity(
        self,
        record: ReferenceRecord,
        text_lower: str,
        keywords: Sequence[str],
        now: datetime,
    ) -> float:
        """Weighted similarity between a stored record and a new text, capped at 1."""
        reference_keywords = record.keywords or extract_keywords(
            record.source_text, REFERENCE_MAX_KEYWORDS
        )
        score = (
            REFERENCE_WEIGHT_AREA * area_score(record.areas, text_lower, keywords)
            + REFERENCE_WEIGHT_KEYWORD * keyword_score(
                keywords, text_lower, reference_keywords, record.source_text.lower()
            )
            + REFERENCE_WEIGHT_RECENCY * recency_score(record.timestamp, now)
        )
        return min(1.0, score)

    def find_similar(self, text: str) -> Optional[ReferenceMatch]:
        """Return the best-scoring record above the relevance floor, or None.

        Ties keep the earlier record, so repeated calls against an unchanged
        store and a fixed clock return the same record and score.
        """
        if not text or not text.strip():
            logger.debug("ReferenceAgent: empty text, skipping lookup")
            return None

        records = self.records()
        if not records:
            logger.info("ReferenceAgent: reference store is empty")
            return None

        now = self._clock()
        text_lower = text.lower()
        keywords = extract_keywords(text, REFERENCE_MAX_KEYWORDS)

        best: Optional[Tuple[ReferenceRecord, float]] = None
        for record in records:
            score = self.similarity(record, text_lower, keywords, now)
            if score > self.relevance_floor and (best is None or score > best[1]):
                best = (record, score)

        if best is None:
            logger.info("ReferenceAgent: no record above %.2f among %d", self.relevance_floor, len(records))
            return None

        record, score = best
        areas = [a for a in record.areas if _entry_confidence(a) >= self.region_min_confidence]
        locations = [
            loc for loc in record.locations if _entry_confidence(loc) >= self.place_min_confidence
        ]
        logger.info(
            "ReferenceAgent: matched %s (similarity %.3f, %d areas, %d locations)",
            record.id, score, len(areas), len(locations),
        )
        return ReferenceMatch(record=record, similarity=score, areas=areas, locations=locations)

    # ── Saving ─────────────────────────────────────────────────────────────────

    def save(
        self,
        text: str,
        results: Dict[str, Any],
        markers: Optional[List[Dict[str, Any]]] = None,
    ) -> ReferenceRecord:
        """Persist an accepted analysis.

        Args:
            text: Source news text.
            results: Legacy results dict (``areas``, ``locations``, optional
                ``mapDesign`` / ``map_design``).
            markers: Marker hints (name, coordinates, color, shape).

        Returns:
            The stored record.
        """
        now = self._clock()
        areas = [
            a for a in results.get("areas") or []
            if isinstance(a, dict) and _entry_confidence(a) >= self.region_min_confidence
        ]
        locations = [
            loc for loc in results.get("locations") or []
            if isinstance(loc, dict) and _entry_confidence(loc) >= self.place_min_confidence
        ]
        record = ReferenceRecord(
            id=f"ref_{epoch_millis(now)}_{secrets.token_hex(5)[:9]}",
            source_text=text[:REFERENCE_SOURCE_TEXT_CHARS],
            keywords=extract_keywords(text, REFERENCE_MAX_KEYWORDS),
            areas=areas,
            locations=locations,
            markers=[
                {
                    "name": m.get("name"),
                    "coordinates": m.get("coordinates"),
                    "color": m.get("color"),
                    "shape": m.get("shape") or "pin",
                }
                for m in markers or []
                if isinstance(m, dict)
            ],
            map_design=results.get("map_design", results.get("mapDesign")),
            timestamp=to_iso(now),
        )

        with self._lock:
            records = self._read_records()
            records.append(record)
            if len(records) > self.max_records:
                records.sort(key=self._sort_key, reverse=True)
                evicted = len(records) - self.max_records
                records = records[: self.max_records]
                logger.info("ReferenceAgent: evicted %d oldest record(s)", evicted)
            self._write_records(records)

        logger.info(
            "ReferenceAgent: saved %s (%d areas, %d locations; store holds %d)",
            record.id, len(areas), len(locations), len(records),
        )
        return record

    @staticmethod
    def _sort_key(record: ReferenceRecord) -> float:
        moment = parse_timestamp(record.timestamp)
        return moment.timestamp() if moment is not None else 0.0
