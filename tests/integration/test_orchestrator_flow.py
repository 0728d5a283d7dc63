"""Integration tests for MapAgentOrchestrator.

Runs whole process_text -> generate_map_spec sessions with the text service,
boundary dataset and geocoders faked. Covers:
- noise filtering of mediators and datelines
- unresolvable regions retained for review
- out-of-range coordinates rejected, never clamped
- deduplication by code
- reference reuse after accept_current()
- map spec customizations, export and import
- error propagation and session state
"""

from __future__ import annotations

import json
import threading
import time

import pytest

from geomapagent.errors import MalformedResponse, NoActiveSession, ServiceTimeout
from geomapagent.models.map_spec import LAYER_REGION_MARKERS, LAYER_REGIONS
from geomapagent.models.session import SessionState


def _region(name, confidence, evidence, **extra):
    return {"name": name, "type": "country", "confidence": confidence,
            "role": "event_location", "evidence": evidence, **extra}


def _place(name, confidence, evidence, **extra):
    return {"name": name, "type": "city", "confidence": confidence,
            "role": "event_location", "evidence": evidence, **extra}


def _reply(mock_llm_client, regions=(), places=()):
    mock_llm_client.generate.return_value = json.dumps(
        {"regions": list(regions), "places": list(places)}
    )


def _by_name(target_set):
    return {t.name: t for t in target_set.candidates}


# ── Extraction path ────────────────────────────────────────────────────────────

class TestExtractionPath:
    def test_signatories_kept_mediator_dropped(self, orchestrator, peace_deal_text):
        target_set = orchestrator.process_text(peace_deal_text, source_url="https://news.example/a")

        assert [t.name for t in target_set.candidates] == ["Armenia", "Azerbaijan"]
        for target in target_set.candidates:
            assert target.role == "direct_participant"
            assert target.confidence >= 0.85
            assert target.resolved.validated
        assert [t.resolved.code for t in target_set.candidates] == ["ARM", "AZE"]
        assert not target_set.from_reference
        assert orchestrator.state == SessionState.READY

    def test_dateline_dropped_regardless_of_confidence(self, orchestrator, mock_llm_client):
        text = "The agency reported from Washington that talks had stalled. Russian strikes hit Ukraine overnight."
        _reply(
            mock_llm_client,
            regions=[_region("Ukraine", 0.92, "Russian strikes hit Ukraine overnight")],
            places=[_place("Washington", 0.99,
                           "The agency reported from Washington that talks had stalled")],
        )
        target_set = orchestrator.process_text(text)
        assert [t.name for t in target_set.candidates] == ["Ukraine"]

    def test_unresolvable_region_retained_for_review(self, orchestrator, mock_llm_client):
        text = "Freedonia closed its border crossings on Tuesday."
        _reply(mock_llm_client, regions=[
            _region("Freedonia", 0.9, "Freedonia closed its border crossings", iso_code="FRD"),
        ])
        target_set = orchestrator.process_text(text)

        freedonia = _by_name(target_set)["Freedonia"]
        assert freedonia.resolved.code is None
        assert freedonia.resolved.needs_review
        assert "Freedonia" in freedonia.resolved.suggestion

        stats = orchestrator.validation_stats()
        assert stats["candidates"]["needs_review"] == 1
        assert stats["candidates"]["errors"][0]["name"] == "Freedonia"

    def test_swapped_lookup_coordinates_rejected(self, orchestrator, mock_llm_client,
                                                 coordinate_lookup):
        coordinate_lookup.table["Urumqi"] = [40, 95]
        text = "Officials in Urumqi confirmed the closure. Pilgrims gathered in Lhasa."
        _reply(mock_llm_client, places=[
            _place("Urumqi", 0.9, "Officials in Urumqi confirmed the closure"),
            _place("Lhasa", 0.88, "Pilgrims gathered in Lhasa", coordinates=[29.65, 91.1]),
        ])
        places = _by_name(orchestrator.process_text(text))

        urumqi = places["Urumqi"].resolved
        assert urumqi.coordinates is None
        assert urumqi.needs_review
        assert urumqi.suggestion.startswith("Latitude 95 is out of range (-90 to 90)")

        # The extraction reply had the pair as [lat, lon]
        assert places["Lhasa"].resolved.coordinates == [91.1, 29.65]

    def test_regions_deduplicated_by_code(self, orchestrator, mock_llm_client):
        text = ("Protests spread across Taiwan. 台灣官員宣布戒嚴。 "
                "The European Union announced sanctions. Police cleared crowds in Taipei.")
        _reply(
            mock_llm_client,
            regions=[
                _region("Taiwan", 0.8, "Protests spread across Taiwan"),
                _region("台灣", 0.95, "台灣官員宣布戒嚴"),
                _region("European Union", 0.9, "The European Union announced sanctions"),
            ],
            places=[_place("Taipei", 0.9, "Police cleared crowds in Taipei")],
        )
        target_set = orchestrator.process_text(text)

        assert [t.name for t in target_set.candidates] == ["台灣", "Taipei"]
        assert target_set.candidates[0].resolved.code == "TWN"
        assert target_set.candidates[1].resolved.coordinates == [121.5654, 25.0330]

    def test_low_confidence_dropped(self, orchestrator, mock_llm_client):
        text = "Georgia and Armenia held talks about trade."
        _reply(mock_llm_client, regions=[
            _region("Georgia", 0.7, "Georgia and Armenia held talks"),
            _region("Armenia", 0.8, "Georgia and Armenia held talks"),
        ])
        assert [t.name for t in orchestrator.process_text(text).candidates] == ["Armenia"]

    def test_phase_log(self, orchestrator, peace_deal_text):
        orchestrator.process_text(peace_deal_text)
        phases = orchestrator.current_state()["phase_log"]
        assert [p.phase_name for p in phases] == [
            "retrieve", "extract", "check_extracted", "resolve", "check_resolved",
        ]
        assert all(p.status == "OK" for p in phases)
        assert all(p.end_time is not None and p.elapsed_seconds >= 0.0 for p in phases)

    def test_reuse_disabled_skips_retrieval(self, orchestrator, peace_deal_text):
        orchestrator.config.enable_reference_reuse = False
        orchestrator.process_text(peace_deal_text)
        names = [p.phase_name for p in orchestrator.current_state()["phase_log"]]
        assert "retrieve" not in names


# ── Reference reuse ────────────────────────────────────────────────────────────

class TestReferenceReuse:
    def test_accepted_analysis_reused(self, orchestrator, mock_llm_client, peace_deal_text):
        first = orchestrator.process_text(peace_deal_text)
        record = orchestrator.accept_current()
        assert [a["name"] for a in record.areas] == ["Armenia", "Azerbaijan"]

        second = orchestrator.process_text(peace_deal_text, source_url="https://news.example/b")

        assert mock_llm_client.generate.call_count == 1
        assert second.from_reference
        assert second.reference_similarity == pytest.approx(0.935)
        assert second.source_url == "https://news.example/b"
        assert [t.id for t in second.candidates] == [t.id for t in first.candidates]
        assert [t.resolved.code for t in second.candidates] == ["ARM", "AZE"]
        phases = [p.phase_name for p in orchestrator.current_state()["phase_log"]]
        assert phases == ["retrieve", "resolve", "check_resolved"]

    def test_malformed_stored_record_falls_back_to_extraction(
        self, orchestrator, mock_llm_client, reference_store_path, peace_deal_text
    ):
        orchestrator.process_text(peace_deal_text)
        orchestrator.accept_current()
        store = json.loads(reference_store_path.read_text(encoding="utf-8"))
        store["records"][0]["areas"][0]["type"] = "continent"
        reference_store_path.write_text(json.dumps(store), encoding="utf-8")

        target_set = orchestrator.process_text(peace_deal_text)

        assert not target_set.from_reference
        assert mock_llm_client.generate.call_count == 2
        assert [t.name for t in target_set.candidates] == ["Armenia", "Azerbaijan"]
        warnings = orchestrator.current_state()["warnings"]
        assert len(warnings) == 1
        assert warnings[0].startswith("Reference reuse failed: Area 0")
        assert orchestrator.validation_stats()["validator"]["schema_errors"] == 1
        phases = [p.phase_name for p in orchestrator.current_state()["phase_log"]]
        assert phases[:2] == ["retrieve", "extract"]

    def test_unrelated_text_extracts(self, orchestrator, mock_llm_client, peace_deal_text):
        orchestrator.process_text(peace_deal_text)
        orchestrator.accept_current()
        _reply(mock_llm_client, regions=[_region("Japan", 0.9, "Heavy snow hit Japan")])

        target_set = orchestrator.process_text("Heavy snow hit Japan this weekend.")

        assert not target_set.from_reference
        assert mock_llm_client.generate.call_count == 2

    def test_accept_saves_selection_only(self, orchestrator, reference_agent, peace_deal_text):
        target_set = orchestrator.process_text(peace_deal_text)
        armenia = target_set.candidates[0]
        orchestrator.generate_map_spec([armenia.id])

        record = orchestrator.accept_current(
            markers=[{"name": "Yerevan", "coordinates": [44.5, 40.2]}],
            map_design={"theme": "light"},
        )

        assert [a["name"] for a in record.areas] == ["Armenia"]
        assert record.map_design == {"theme": "light"}
        assert [r.id for r in reference_agent.records()] == [record.id]


# ── Map specification ──────────────────────────────────────────────────────────

class TestMapSpec:
    def test_customizations(self, orchestrator, peace_deal_text):
        armenia, azerbaijan = orchestrator.process_text(peace_deal_text).candidates
        spec = orchestrator.generate_map_spec(
            [armenia.id, azerbaijan.id],
            {
                "colors": {armenia.id: "#ff0000"},
                "names": {armenia.id: "Hayastan"},
                "styleTokens": {"colors": {"semantic": {"highlight": "#000000"}}},
                "title": "Peace deal",
            },
        )
        highlight = spec.layer(LAYER_REGIONS)
        assert highlight["filter"]["values"] == ["ARM", "AZE"]
        assert highlight["style"]["fill_color_by_code"] == {"ARM": "#ff0000"}
        assert highlight["style"]["fill_color"] == "#000000"

        markers = spec.layer(LAYER_REGION_MARKERS)["source"]["data"]["features"]
        assert markers[0]["properties"]["name"] == "Hayastan"
        assert spec.metadata["title"] == "Peace deal"

    def test_decomposed_region_renders_all_codes(self, orchestrator, mock_llm_client):
        text = "Shelling resumed in Nagorno-Karabakh on Sunday."
        _reply(mock_llm_client, regions=[
            _region("Nagorno-Karabakh", 0.9, "Shelling resumed in Nagorno-Karabakh"),
        ])
        karabakh = orchestrator.process_text(text).candidates[0]
        spec = orchestrator.generate_map_spec([karabakh.id])

        assert spec.layer(LAYER_REGIONS)["filter"]["values"] == ["ARM", "AZE"]
        marker_ids = [f["properties"]["id"]
                      for f in spec.layer(LAYER_REGION_MARKERS)["source"]["data"]["features"]]
        assert marker_ids == [f"{karabakh.id}_ARM", f"{karabakh.id}_AZE"]

    def test_unknown_ids_ignored(self, orchestrator, peace_deal_text):
        armenia = orchestrator.process_text(peace_deal_text).candidates[0]
        spec = orchestrator.generate_map_spec(["region_missing", armenia.id, armenia.id])
        assert orchestrator.current_state()["target_set"].selected_ids == [armenia.id]
        assert spec.layer(LAYER_REGIONS)["filter"]["values"] == ["ARM"]

    def test_export_import_round_trip(self, orchestrator, peace_deal_text):
        ids = [t.id for t in orchestrator.process_text(peace_deal_text).candidates]
        spec = orchestrator.generate_map_spec(ids)
        exported = orchestrator.export_spec()

        orchestrator.reset()
        imported = orchestrator.import_spec(exported)

        assert imported == spec
        assert json.loads(orchestrator.export_spec()) == json.loads(exported)

    def test_import_dict(self, orchestrator, peace_deal_text):
        ids = [t.id for t in orchestrator.process_text(peace_deal_text).candidates]
        spec = orchestrator.generate_map_spec(ids)
        assert orchestrator.import_spec(spec.to_dict()) == spec

    @pytest.mark.parametrize("payload", [
        "definitely not json",
        '{"map_id": "map_1"}',
        "[1, 2]",
    ])
    def test_import_malformed(self, orchestrator, payload):
        with pytest.raises(MalformedResponse):
            orchestrator.import_spec(payload)


# ── Session state and errors ───────────────────────────────────────────────────

class TestSession:
    def test_no_session_yet(self, orchestrator):
        assert orchestrator.state == SessionState.IDLE
        with pytest.raises(NoActiveSession):
            orchestrator.generate_map_spec(["region_x"])
        with pytest.raises(NoActiveSession):
            orchestrator.export_spec()
        with pytest.raises(NoActiveSession):
            orchestrator.accept_current()

    def test_export_before_generate(self, orchestrator, peace_deal_text):
        orchestrator.process_text(peace_deal_text)
        with pytest.raises(NoActiveSession):
            orchestrator.export_spec()

    def test_empty_text_rejected(self, orchestrator, mock_llm_client):
        with pytest.raises(ValueError, match="must not be empty"):
            orchestrator.process_text("   ")
        mock_llm_client.generate.assert_not_called()

    def test_service_error_keeps_previous_session(self, orchestrator, mock_llm_client,
                                                  peace_deal_text):
        first = orchestrator.process_text(peace_deal_text)
        mock_llm_client.generate.side_effect = ServiceTimeout("Extraction timed out")

        with pytest.raises(ServiceTimeout):
            orchestrator.process_text("Floods hit Georgia after days of rain.")

        assert orchestrator.state == SessionState.IDLE
        assert orchestrator.current_state()["target_set"] is first

    def test_malformed_reply_propagates(self, orchestrator, mock_llm_client):
        mock_llm_client.generate.return_value = "I found no locations."
        with pytest.raises(MalformedResponse):
            orchestrator.process_text("Nothing to see here.")
        assert orchestrator.state == SessionState.IDLE

    def test_reset(self, orchestrator, peace_deal_text):
        orchestrator.process_text(peace_deal_text)
        orchestrator.reset()
        snapshot = orchestrator.current_state()
        assert snapshot["state"] == SessionState.IDLE
        assert snapshot["target_set"] is None
        with pytest.raises(NoActiveSession):
            orchestrator.generate_map_spec([])

    def test_overlapping_calls_serialized(self, orchestrator, mock_llm_client, peace_deal_text,
                                          peace_deal_reply):
        """A second process_text waits for the first to finish."""
        active = []
        peak = []
        guard = threading.Lock()

        def slow_generate(*args, **kwargs):
            with guard:
                active.append(1)
                peak.append(len(active))
            time.sleep(0.05)
            with guard:
                active.pop()
            return json.dumps(peace_deal_reply)

        mock_llm_client.generate.side_effect = slow_generate
        threads = [threading.Thread(target=orchestrator.process_text, args=(peace_deal_text,))
                   for _ in range(3)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert mock_llm_client.generate.call_count == 3
        assert max(peak) == 1
        assert orchestrator.state == SessionState.READY
