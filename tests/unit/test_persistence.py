"""Unit tests for geomapagent.io.persistence.

Covers:
- save_json: parent dirs, atomic replace, model and Path encoding, readable CJK
- load_json: missing, corrupt and empty files
- remove_file and dumps
"""

from __future__ import annotations

import json
import os

import pytest

from geomapagent.io.persistence import dumps, load_json, remove_file, save_json
from geomapagent.models.map_spec import MapSpec
from geomapagent.models.reference import ReferenceRecord


# ── save_json ──────────────────────────────────────────────────────────────────

class TestSaveJson:
    def test_writes_nested_store(self, tmp_path):
        """Parent directories are created for a store path that does not exist yet."""
        target = tmp_path / "data" / "refs" / "reference_store.json"
        payload = {"schema_version": 1, "records": []}

        save_json(payload, target)

        assert json.loads(target.read_text(encoding="utf-8")) == payload

    def test_cjk_written_unescaped(self, tmp_path):
        target = tmp_path / "record.json"
        save_json({"source_text": "亞塞拜然與亞美尼亞簽署和平協議"}, target)
        assert "亞塞拜然" in target.read_text(encoding="utf-8")

    def test_replaces_previous_content(self, tmp_path):
        target = tmp_path / "store.json"
        save_json({"records": [1]}, target)
        save_json({"records": [1, 2]}, target)
        assert load_json(target) == {"records": [1, 2]}

    def test_models_use_to_dict(self, tmp_path):
        """Objects with to_dict() are encoded through it."""
        target = tmp_path / "spec.json"
        spec = MapSpec(map_id="map_1", bounds={"west": 0, "east": 1, "south": 0, "north": 1})

        save_json({"spec": spec}, target)

        assert load_json(target)["spec"] == spec.to_dict()

    def test_dataclass_and_path(self, tmp_path):
        target = tmp_path / "record.json"
        record = ReferenceRecord(id="ref_1", source_text="text")

        save_json({"record": record, "where": tmp_path}, target)

        loaded = load_json(target)
        assert loaded["record"]["id"] == "ref_1"
        assert loaded["where"] == str(tmp_path)

    def test_unserializable_raises(self, tmp_path):
        with pytest.raises(TypeError):
            save_json({"bad": object()}, tmp_path / "bad.json")
        assert not (tmp_path / "bad.json").exists()

    def test_failed_rename_leaves_no_temp_file(self, tmp_path, monkeypatch):
        """If the atomic rename fails the old file survives and no .tmp is left."""
        target = tmp_path / "store.json"
        save_json({"records": ["kept"]}, target)

        def failing_replace(src, dst):
            raise OSError("Disk full")

        monkeypatch.setattr(os, "replace", failing_replace)
        with pytest.raises(OSError, match="Disk full"):
            save_json({"records": []}, target)

        assert json.loads(target.read_text(encoding="utf-8")) == {"records": ["kept"]}
        assert list(tmp_path.glob("*.tmp")) == []

    def test_string_path(self, tmp_path):
        target = str(tmp_path / "store.json")
        save_json([], target)
        assert load_json(target) == []


# ── load_json ──────────────────────────────────────────────────────────────────

class TestLoadJson:
    def test_missing_file(self, tmp_path):
        assert load_json(tmp_path / "nope.json") is None

    def test_corrupt_file(self, tmp_path):
        target = tmp_path / "store.json"
        target.write_text('{"records": [', encoding="utf-8")
        assert load_json(target) is None

    def test_empty_file(self, tmp_path):
        target = tmp_path / "store.json"
        target.write_text("", encoding="utf-8")
        assert load_json(target) is None

    def test_bare_array(self, tmp_path):
        target = tmp_path / "legacy.json"
        target.write_text('[{"id": "ref_1"}]', encoding="utf-8")
        assert load_json(target) == [{"id": "ref_1"}]


# ── remove_file / dumps ────────────────────────────────────────────────────────

class TestRemoveFile:
    def test_removes_existing(self, tmp_path):
        target = tmp_path / "store.json"
        target.write_text("{}", encoding="utf-8")
        assert remove_file(target) is True
        assert not target.exists()

    def test_missing_is_not_an_error(self, tmp_path):
        assert remove_file(tmp_path / "nope.json") is False


class TestDumps:
    def test_compact_and_readable(self):
        assert dumps({"name": "台北"}, indent=None) == '{"name": "台北"}'

    def test_default_indent(self):
        assert dumps({"a": 1}) == '{\n  "a": 1\n}'
