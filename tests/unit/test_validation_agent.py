"""Unit tests for geomapagent.agents.validation_agent.

Covers:
- repair_and_parse_json: valid passthrough, repair pipeline, failure messages
- check_geo_target_set: candidate shape errors
- check_geojson: type vocabulary and required fields
- check_legacy_results: stored {areas, locations} shape
- counters exposed through get_stats()
"""

from __future__ import annotations

import json
from types import SimpleNamespace

import pytest

from geomapagent.agents.validation_agent import ValidationAgent, repair_json_text
from geomapagent.errors import MalformedResponse, SchemaInvalid
from geomapagent.models.geo_targets import GeoTargetSet


@pytest.fixture
def agent():
    return ValidationAgent()


# ── repair_and_parse_json ──────────────────────────────────────────────────────

class TestRepairAndParse:
    def test_valid_json_untouched(self, agent):
        """Valid JSON parses as-is and never enters the repair path."""
        text = '{"regions": [{"name": "Taiwan"}], "places": []}'
        assert agent.repair_and_parse_json(text) == json.loads(text)
        assert agent.get_stats()["auto_fixed"] == 0
        assert agent.get_stats()["json_errors"] == 0

    def test_strips_json_fence(self, agent):
        text = '```json\n{"regions": []}\n```'
        assert agent.repair_and_parse_json(text) == {"regions": []}

    def test_drops_leading_and_trailing_prose(self, agent):
        text = 'Here is the result: {"places": []} Hope this helps.'
        assert agent.repair_and_parse_json(text) == {"places": []}

    def test_removes_trailing_commas(self, agent):
        text = '{"regions": [{"name": "Iran",},],}'
        assert agent.repair_and_parse_json(text) == {"regions": [{"name": "Iran"}]}

    def test_single_quotes_replaced(self, agent):
        assert agent.repair_and_parse_json("{'name': 'Baku'}") == {"name": "Baku"}

    def test_repair_counts_as_auto_fixed(self, agent):
        agent.repair_and_parse_json("```{'a': 1,}```")
        stats = agent.get_stats()
        assert stats["json_errors"] == 1
        assert stats["auto_fixed"] == 1

    def test_unrepairable_raises_with_both_errors(self, agent):
        """A reply that fails after repair raises MalformedResponse naming both errors."""
        with pytest.raises(MalformedResponse) as exc_info:
            agent.repair_and_parse_json("no json here at all")
        assert "JSON parse failed" in str(exc_info.value)
        assert "Auto-repair also failed" in str(exc_info.value)
        assert exc_info.value.raw == "no json here at all"

    def test_non_string_raises(self, agent):
        with pytest.raises(MalformedResponse):
            agent.repair_and_parse_json(None)

    def test_repair_is_idempotent(self):
        """Repairing already-repaired text changes nothing."""
        once = repair_json_text("```json\n{'regions': [1, 2,],}\n```")
        assert repair_json_text(once) == once


# ── check_geo_target_set ───────────────────────────────────────────────────────

class TestCheckGeoTargetSet:
    def test_valid_set(self, agent, make_region, make_place):
        target_set = GeoTargetSet(
            source_text="x", candidates=[make_region("Taiwan"), make_place("Taipei")]
        )
        report = agent.check_geo_target_set(target_set)
        assert report.valid
        assert report.errors == []

    def test_missing_fields_reported(self, agent):
        report = agent.check_geo_target_set({
            "candidates": [{"id": "", "name": "", "kind": "river", "confidence": 1.5}]
        })
        assert not report.valid
        assert len(report.errors) == 4
        assert agent.get_stats()["schema_errors"] == 1

    def test_boolean_confidence_rejected(self, agent):
        report = agent.check_geo_target_set({
            "candidates": [{"id": "a", "name": "A", "kind": "region", "confidence": True}]
        })
        assert not report.valid

    def test_candidates_must_be_list(self, agent):
        assert not agent.check_geo_target_set({"candidates": "none"}).valid
        assert not agent.check_geo_target_set([]).valid

    def test_run_records_report_and_warnings(self, agent):
        """run() stores the report on the session and surfaces errors as warnings."""
        warnings = []
        context = SimpleNamespace(
            target_set={"candidates": [{"id": "a", "name": "", "kind": "region", "confidence": 0.9}]},
            validation_reports=[],
            add_warning=warnings.append,
        )
        report = agent.run(context)
        assert context.validation_reports == [report]
        assert warnings and warnings[0].startswith("Schema:")


# ── check_geojson ──────────────────────────────────────────────────────────────

class TestCheckGeoJSON:
    def test_feature_collection(self, agent):
        check = agent.check_geojson({"type": "FeatureCollection", "features": []})
        assert check.valid

    def test_json_text_accepted(self, agent):
        check = agent.check_geojson('{"type": "Point", "coordinates": [121.5, 25.0]}')
        assert check.valid
        assert check.value["coordinates"] == [121.5, 25.0]

    def test_missing_type(self, agent):
        check = agent.check_geojson({"features": []})
        assert not check.valid
        assert '"type"' in check.error

    def test_unknown_type_lists_vocabulary(self, agent):
        check = agent.check_geojson({"type": "Circle"})
        assert not check.valid
        assert "FeatureCollection" in check.error

    def test_feature_needs_geometry(self, agent):
        assert not agent.check_geojson({"type": "Feature"}).valid

    def test_geometry_needs_coordinates(self, agent):
        assert not agent.check_geojson({"type": "Polygon"}).valid
        assert agent.get_stats()["geojson_errors"] == 1

    def test_invalid_text(self, agent):
        check = agent.check_geojson("not geojson")
        assert not check.valid
        assert check.error.startswith("Invalid JSON")


# ── check_legacy_results ───────────────────────────────────────────────────────

class TestCheckLegacyResults:
    def test_valid_results(self, agent):
        results = {
            "areas": [{"name": "Taiwan", "iso_code": "TWN", "type": "country"}],
            "locations": [{"name": "Taipei", "coordinates": [121.5, 25.0]}],
        }
        assert agent.check_legacy_results(results).valid

    def test_bad_area_type_and_code(self, agent):
        report = agent.check_legacy_results({
            "areas": [{"name": "Taiwan", "iso_code": "TW", "type": "island"}]
        })
        assert len(report.errors) == 2

    def test_short_coordinates(self, agent):
        report = agent.check_legacy_results({"locations": [{"name": "X", "coordinates": [1]}]})
        assert not report.valid

    def test_failed_report_raises_schema_invalid(self, agent):
        report = agent.check_legacy_results({"areas": [{"name": "Taiwan", "iso_code": "TW"}]})
        with pytest.raises(SchemaInvalid) as excinfo:
            report.raise_if_invalid()
        assert excinfo.value.errors == ['Area 0 "iso_code" must be a 3-letter code']

    def test_passing_report_does_not_raise(self, agent):
        report = agent.check_legacy_results({"areas": [{"name": "Taiwan", "iso_code": "TWN"}]})
        report.raise_if_invalid()

    def test_stats_reset(self, agent):
        agent.check_legacy_results({"areas": [{}]})
        agent.reset()
        assert all(v == 0 for v in agent.get_stats().values())
