"""Unit tests for geomapagent.utils.geo_utils."""

from __future__ import annotations

import pytest

from geomapagent.utils.geo_utils import (
    WORLD_BOUNDS,
    bounds_for_points,
    country_centroid,
    looks_lat_first,
    validate_coordinates,
)


# ── validate_coordinates ───────────────────────────────────────────────────────

class TestValidateCoordinates:
    def test_valid_pair(self):
        check = validate_coordinates([121.5654, 25.033])
        assert check.valid
        assert check.coordinates == [121.5654, 25.033]
        assert not check.swapped

    def test_out_of_range_latitude_rejected_with_hint(self):
        """[40, 95] is never clamped or silently swapped."""
        check = validate_coordinates([40, 95])
        assert not check.valid
        assert check.coordinates is None
        assert check.suggestion == (
            "Latitude 95 is out of range (-90 to 90); "
            "if the pair is [lat, lon], supply it as [95, 40]"
        )

    def test_lat_first_swapped_when_allowed(self):
        check = validate_coordinates([40, 95], allow_swap=True)
        assert check.valid
        assert check.coordinates == [95.0, 40.0]
        assert check.swapped

    def test_swap_is_idempotent(self):
        first = validate_coordinates([29.65, 91.1], allow_swap=True)
        second = validate_coordinates(first.coordinates, allow_swap=True)
        assert second.coordinates == first.coordinates == [91.1, 29.65]
        assert not second.swapped

    def test_ambiguous_pair_left_alone(self):
        """Both values fit a latitude, so the order cannot be inferred."""
        check = validate_coordinates([45.0, 40.0], allow_swap=True)
        assert check.coordinates == [45.0, 40.0]
        assert not check.swapped

    def test_longitude_out_of_range(self):
        check = validate_coordinates([200, 10])
        assert not check.valid
        assert check.suggestion == "Longitude 200 is out of range (-180 to 180)"

    @pytest.mark.parametrize("coords", [None, "12,34", [1.0], {"lon": 1, "lat": 2}])
    def test_not_a_pair(self, coords):
        check = validate_coordinates(coords)
        assert not check.valid
        assert "[longitude, latitude]" in check.suggestion

    @pytest.mark.parametrize("coords", [["a", "b"], [float("nan"), 1.0], [1.0, float("inf")]])
    def test_non_numeric(self, coords):
        assert validate_coordinates(coords).suggestion == "Coordinates must be numeric"

    def test_numeric_strings_accepted(self):
        assert validate_coordinates(["49.87", "40.41"]).coordinates == [49.87, 40.41]


class TestLooksLatFirst:
    def test_cases(self):
        assert looks_lat_first([25.0, 121.5])
        assert not looks_lat_first([121.5, 25.0])
        assert not looks_lat_first([10.0, 20.0])
        assert not looks_lat_first([1.0])


# ── Centroids and bounds ───────────────────────────────────────────────────────

class TestCountryCentroid:
    def test_case_insensitive(self):
        assert country_centroid("twn") == (23.70, 120.96)

    def test_unknown(self):
        assert country_centroid("XKX") is None
        assert country_centroid("") is None


class TestBoundsForPoints:
    def test_empty_is_world(self):
        assert bounds_for_points([]) == WORLD_BOUNDS

    def test_world_is_a_copy(self):
        bounds = bounds_for_points([])
        bounds["west"] = 0.0
        assert WORLD_BOUNDS["west"] == -180.0

    def test_padding_clamped_to_valid_range(self):
        bounds = bounds_for_points([[178.0, 88.0], [-179.0, -89.0]], padding=5.0)
        assert bounds == {"west": -180.0, "east": 180.0, "south": -90.0, "north": 90.0}

    def test_accepts_generator(self):
        bounds = bounds_for_points((p for p in [[10.0, 20.0]]), padding=1.0)
        assert bounds == {"west": 9.0, "east": 11.0, "south": 19.0, "north": 21.0}
