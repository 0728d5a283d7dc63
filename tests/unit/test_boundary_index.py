"""Unit tests for geomapagent.index.boundary_index."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from geomapagent.index.boundary_index import BoundaryCodeIndex
from geomapagent.interfaces import NullBoundaryProvider, StaticBoundaryProvider


@pytest.fixture
def index():
    return BoundaryCodeIndex(StaticBoundaryProvider(["TWN", "USA", "CHN", "AZE", "ARM", "AUT"]))


# ── Format checks ──────────────────────────────────────────────────────────────

class TestFormat:
    def test_supranational_eu_rejected(self, index):
        """EU is rejected with a decompose-into-members suggestion."""
        check = index.validate("EU")
        assert not check.valid
        assert "supranational" in check.suggestion

    def test_two_letter_code_rejected_as_supranational(self, index):
        check = index.validate("AU")
        assert not check.valid
        assert "Decompose" in check.suggestion

    def test_wrong_length_rejected(self, index):
        """Codes that are not exactly three letters are malformed."""
        check = index.validate("TWNX")
        assert not check.valid
        assert "Invalid code format" in check.suggestion

    def test_none_rejected(self, index):
        assert not index.validate(None).valid

    def test_digits_rejected(self, index):
        assert not index.validate("T1N").valid


# ── Membership ─────────────────────────────────────────────────────────────────

class TestMembership:
    def test_loaded_code_is_valid(self, index):
        check = index.validate("TWN")
        assert check.valid
        assert check.verified

    def test_lower_case_code_accepted(self, index):
        assert index.validate("twn").valid

    def test_missing_code_gets_near_matches(self, index):
        """Unknown codes suggest loaded codes within two edits."""
        check = index.validate("AZR")
        assert not check.valid
        assert "AZE" in check.similar
        assert "Did you mean" in check.suggestion

    def test_near_matches_capped_at_three(self):
        provider = StaticBoundaryProvider(["AAB", "AAC", "AAD", "AAE", "AAF"])
        check = BoundaryCodeIndex(provider).validate("AAA")
        assert len(check.similar) == 3

    def test_sub_national_levels_accepted(self, index):
        """Levels 1 and 2 are accepted without membership checks."""
        assert index.validate("XYZ", admin_level=1).valid
        assert index.validate("XYZ", admin_level=2).valid

    def test_available_codes_sorted(self, index):
        assert index.available_codes() == ["ARM", "AUT", "AZE", "CHN", "TWN", "USA"]


# ── Availability and caching ───────────────────────────────────────────────────

class TestLifecycle:
    def test_no_source_accepts_unverified(self):
        """Without a boundary source, well-formed codes pass unverified."""
        index = BoundaryCodeIndex(NullBoundaryProvider())
        check = index.validate("ZZZ")
        assert check.valid
        assert not check.verified
        assert not index.available

    def test_no_source_still_rejects_malformed(self):
        index = BoundaryCodeIndex(NullBoundaryProvider())
        assert not index.validate("EU").valid

    def test_provider_read_once(self):
        """The provider is enumerated once, lazily."""
        provider = MagicMock()
        provider.is_source_loaded.return_value = True
        provider.loaded_codes.return_value = ["TWN"]
        index = BoundaryCodeIndex(provider)
        provider.loaded_codes.assert_not_called()
        index.validate("TWN")
        index.validate("USA")
        assert provider.loaded_codes.call_count == 1

    def test_results_cached_until_cleared(self, index):
        first = index.validate("ZZZ")
        assert index.validate("ZZZ") is first
        index.clear_cache()
        assert index.validate("ZZZ") is not first

    def test_reinitialize_rereads_provider(self):
        provider = MagicMock()
        provider.is_source_loaded.return_value = True
        provider.loaded_codes.return_value = ["TWN"]
        index = BoundaryCodeIndex(provider)
        assert not index.validate("USA").valid
        provider.loaded_codes.return_value = ["TWN", "USA"]
        index.reinitialize()
        assert index.validate("USA").valid


# ── Providers ──────────────────────────────────────────────────────────────────

class TestProviders:
    def test_static_provider_membership_case_insensitive(self):
        provider = StaticBoundaryProvider(["TWN", "usa"])
        assert provider.is_code_loaded("twn")
        assert provider.is_code_loaded("USA")
        assert not provider.is_code_loaded("JPN")
        assert not provider.is_code_loaded("")

    def test_null_provider_has_nothing_loaded(self):
        provider = NullBoundaryProvider()
        assert not provider.is_source_loaded()
        assert list(provider.loaded_codes()) == []
        assert not provider.is_code_loaded("TWN")
