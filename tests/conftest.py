"""Shared pytest fixtures for GeoMapAgent tests.

- mock_llm_client returns a canned extraction reply without real API calls
- boundary providers and coordinate lookups are in-memory fakes
- the clock is fixed so reference similarity scores are reproducible
- every reference store lives under pytest's tmp_path
- No real external HTTP calls are made in any test
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

FIXED_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

BOUNDARY_CODES = [
    "ARM", "AZE", "GEO", "TUR", "IRN", "TWN", "CHN", "USA", "GBR", "RUS", "KOR", "JPN",
    "SAU", "IRQ", "ISR", "ARE", "KWT", "QAT", "BHR", "OMN", "YEM", "JOR", "LBN", "SYR",
    "UKR", "FRA", "DEU",
]

# Armenia and Azerbaijan are signatories; Turkey only mediated
PEACE_DEAL_TEXT = (
    "Armenia and Azerbaijan signed a peace agreement on Friday, ending decades of "
    "conflict over the disputed border. The deal came after talks mediated by Turkey "
    "in recent months."
)

PEACE_DEAL_REPLY: Dict[str, Any] = {
    "regions": [
        {
            "name": "Armenia",
            "iso_code": "ARM",
            "type": "country",
            "gadm_level": 0,
            "confidence": 0.88,
            "role": "direct_participant",
            "evidence": "Armenia and Azerbaijan signed a peace agreement",
        },
        {
            "name": "Azerbaijan",
            "iso_code": "AZE",
            "type": "country",
            "gadm_level": 0,
            "confidence": 0.87,
            "role": "direct_participant",
            "evidence": "Armenia and Azerbaijan signed a peace agreement",
        },
        {
            "name": "Turkey",
            "iso_code": "TUR",
            "type": "country",
            "gadm_level": 0,
            "confidence": 0.80,
            "role": "geopolitical_stakeholder",
            "evidence": "talks mediated by Turkey",
        },
    ],
    "places": [],
}


class FakeCoordinateLookup:
    """CoordinateLookup over a fixed name -> [lon, lat] table."""

    def __init__(self, table: Optional[Dict[str, List[float]]] = None) -> None:
        self.table = dict(table or {})
        self.calls: List[tuple] = []

    def resolve_name(self, name: str, country_hint: Optional[str] = None) -> Optional[List[float]]:
        self.calls.append((name, country_hint))
        coords = self.table.get(name)
        return list(coords) if coords is not None else None


class FakeLocationResolver:
    """NamedLocationResolver over a fixed name -> {lat, lon, country_code} table."""

    def __init__(self, table: Optional[Dict[str, Dict[str, Any]]] = None) -> None:
        self.table = dict(table or {})

    def resolve_location(self, name: str) -> Optional[Dict[str, Any]]:
        found = self.table.get(name)
        return dict(found) if found is not None else None


# ── Clock and configuration ────────────────────────────────────────────────────

@pytest.fixture
def fixed_clock():
    """Zero-argument clock pinned to FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest.fixture
def reference_store_path(tmp_path):
    """Reference store path under tmp_path (file not created yet)."""
    return tmp_path / "reference_store.json"


@pytest.fixture
def config(reference_store_path):
    """MapAgentConfig isolated from the developer's environment."""
    from config.settings import MapAgentConfig

    return MapAgentConfig(
        llm_backend="gemini",
        gemini_api_key="test-key",
        gemini_proxy_endpoint="",
        mapbox_token=None,
        reference_store_path=str(reference_store_path),
        resolver_max_workers=4,
        log_level="DEBUG",
    )


# ── Collaborators ──────────────────────────────────────────────────────────────

@pytest.fixture
def boundary_provider():
    """Boundary provider with a fixed set of country codes loaded."""
    from geomapagent.interfaces import StaticBoundaryProvider

    return StaticBoundaryProvider(BOUNDARY_CODES)


@pytest.fixture
def coordinate_lookup():
    """Coordinate lookup that knows a handful of cities."""
    return FakeCoordinateLookup({
        "Taipei": [121.5654, 25.0330],
        "Baku": [49.8671, 40.4093],
        "Yerevan": [44.5152, 40.1872],
    })


@pytest.fixture
def location_resolver():
    return FakeLocationResolver({
        "Stepanakert": {"lat": 39.8153, "lon": 46.7519, "country_code": "AZE"},
    })


@pytest.fixture
def mock_llm_client():
    """Mock LLMClient whose generate() returns the peace-deal extraction reply."""
    from geomapagent.clients.llm_client import LLMClient

    client = MagicMock(spec=LLMClient)
    client.backend = "mock"
    client.generate.return_value = json.dumps(PEACE_DEAL_REPLY)
    return client


@pytest.fixture
def reference_agent(reference_store_path, fixed_clock):
    """ReferenceAgent over an empty tmp_path store with a fixed clock."""
    from geomapagent.agents.reference_agent import ReferenceAgent

    return ReferenceAgent(store_path=reference_store_path, clock=fixed_clock)


@pytest.fixture
def orchestrator(config, mock_llm_client, boundary_provider, coordinate_lookup,
                 location_resolver, reference_agent, fixed_clock):
    """Fully wired orchestrator with every external collaborator faked."""
    from geomapagent.orchestrator import MapAgentOrchestrator

    return MapAgentOrchestrator(
        config,
        llm=mock_llm_client,
        boundary_provider=boundary_provider,
        coordinate_lookup=coordinate_lookup,
        location_resolver=location_resolver,
        reference=reference_agent,
        clock=fixed_clock,
    )


# ── Model factories ────────────────────────────────────────────────────────────

@pytest.fixture
def make_region():
    """Factory for region GeoTargets."""
    from geomapagent.models.geo_targets import REGION, GeoTarget

    def _make(name: str, confidence: float = 0.9, target_id: Optional[str] = None,
              evidence: str = "", **raw: Any) -> GeoTarget:
        return GeoTarget(
            id=target_id or f"region_{name.lower().replace(' ', '_')}",
            kind=REGION,
            name=name,
            confidence=confidence,
            evidence_span=evidence,
            raw=dict(raw),
        )

    return _make


@pytest.fixture
def make_place():
    """Factory for place GeoTargets."""
    from geomapagent.models.geo_targets import PLACE, GeoTarget

    def _make(name: str, confidence: float = 0.9, target_id: Optional[str] = None,
              evidence: str = "", **raw: Any) -> GeoTarget:
        return GeoTarget(
            id=target_id or f"place_{name.lower().replace(' ', '_')}",
            kind=PLACE,
            name=name,
            confidence=confidence,
            evidence_span=evidence,
            raw=dict(raw),
        )

    return _make


@pytest.fixture
def peace_deal_text():
    return PEACE_DEAL_TEXT


@pytest.fixture
def peace_deal_reply():
    return json.loads(json.dumps(PEACE_DEAL_REPLY))
