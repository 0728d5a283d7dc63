"""Geographic utility functions for GeoMapAgent.

Pure coordinate checks and lookups with no I/O.
Coordinates are always ordered [longitude, latitude].
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

# Approximate country centroids (lat, lon) for countries that commonly appear
# in international news. Keyed by ISO 3166-1 alpha-3 code (upper case).
_COUNTRY_CENTROIDS: Dict[str, Tuple[float, float]] = {
    "ARE": (23.42, 53.85),
    "ARG": (-38.42, -63.62),
    "ARM": (40.07, 45.04),
    "AUS": (-25.27, 133.78),
    "AZE": (40.14, 47.58),
    "BRA": (-14.24, -51.93),
    "CAN": (56.13, -106.35),
    "CHN": (35.86, 104.20),
    "DEU": (51.17, 10.45),
    "EGY": (26.10, 31.24),
    "ESP": (40.46, -3.75),
    "FRA": (46.60, 1.89),
    "GBR": (55.38, -3.44),
    "GEO": (42.32, 43.36),
    "IDN": (-0.79, 113.92),
    "IND": (20.59, 78.96),
    "IRN": (32.43, 53.69),
    "IRQ": (33.22, 43.68),
    "ISR": (31.05, 34.85),
    "ITA": (41.87, 12.57),
    "JOR": (30.59, 36.24),
    "JPN": (36.20, 138.25),
    "KOR": (35.91, 127.77),
    "LBN": (33.85, 35.86),
    "MEX": (23.63, -102.55),
    "PHL": (12.88, 121.77),
    "POL": (51.92, 19.15),
    "RUS": (61.52, 105.32),
    "SAU": (23.89, 45.08),
    "SYR": (34.80, 38.99),
    "THA": (15.87, 100.99),
    "TUR": (38.96, 35.24),
    "TWN": (23.70, 120.96),
    "UKR": (48.38, 31.17),
    "USA": (39.83, -98.58),
    "VNM": (14.06, 108.28),
    "YEM": (15.55, 48.52),
    "ZAF": (-30.56, 22.94),
}

# World view used when nothing constrains the bounds
WORLD_BOUNDS: Dict[str, float] = {"west": -180.0, "east": 180.0, "south": -85.0, "north": 85.0}


@dataclass
class CoordinateCheck:
    """Outcome of validating a coordinate pair."""

    valid: bool
    coordinates: Optional[List[float]] = None   # normalized [lon, lat]
    swapped: bool = False
    suggestion: Optional[str] = None


def _as_float(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def looks_lat_first(coords: Sequence[float]) -> bool:
    """True when a pair reads as [lat, lon]: first fits a latitude, second only a longitude."""
    first = _as_float(coords[0]) if len(coords) > 1 else None
    second = _as_float(coords[1]) if len(coords) > 1 else None
    if first is None or second is None:
        return False
    return abs(first) <= 90 and 90 < abs(second) <= 180


def validate_coordinates(coords: Any, allow_swap: bool = False) -> CoordinateCheck:
    """Validate and normalize a coordinate pair to [lon, lat].

    Pairs from sources that are known to mix up axis order (model output)
    are passed with ``allow_swap=True``; those are swapped when they read as
    [lat, lon] per looks_lat_first(). A pair that is already a valid
    [lon, lat] never reads that way, so validation is idempotent. Every other
    pair is range-checked as given: out-of-range values are rejected with a
    message and never clamped or silently reordered.

    Args:
        coords: Sequence of two numbers, nominally [lon, lat].
        allow_swap: Apply the lat-first heuristic before range checks.

    Returns:
        CoordinateCheck with the normalized pair when valid.
    """
    if not isinstance(coords, (list, tuple)) or len(coords) < 2:
        return CoordinateCheck(
            valid=False,
            suggestion="Coordinates must be a [longitude, latitude] pair",
        )

    lon = _as_float(coords[0])
    lat = _as_float(coords[1])
    if lon is None or lat is None:
        return CoordinateCheck(valid=False, suggestion="Coordinates must be numeric")

    swapped = False
    if allow_swap and looks_lat_first([lon, lat]):
        lon, lat = lat, lon
        swapped = True

    if not -180.0 <= lon <= 180.0:
        return CoordinateCheck(
            valid=False,
            suggestion=f"Longitude {lon:g} is out of range (-180 to 180)",
        )
    if not -90.0 <= lat <= 90.0:
        hint = ""
        if looks_lat_first([lon, lat]):
            hint = f"; if the pair is [lat, lon], supply it as [{lat:g}, {lon:g}]"
        return CoordinateCheck(
            valid=False,
            suggestion=f"Latitude {lat:g} is out of range (-90 to 90){hint}",
        )

    return CoordinateCheck(valid=True, coordinates=[lon, lat], swapped=swapped)


def country_centroid(iso3: str) -> Optional[Tuple[float, float]]:
    """Look up the approximate centroid for an ISO alpha-3 country code.

    Args:
        iso3: ISO 3166-1 alpha-3 code (case-insensitive).

    Returns:
        Tuple of (lat, lon), or None if the country is not in the table.
    """
    if not iso3:
        return None
    return _COUNTRY_CENTROIDS.get(iso3.upper())


def bounds_for_points(
    points: Iterable[Sequence[float]],
    padding: float = 5.0,
) -> Dict[str, float]:
    """Compute a padded bounding box around [lon, lat] points.

    Args:
        points: Iterable of [lon, lat] pairs.
        padding: Degrees added on every side.

    Returns:
        Dict with west/east/south/north keys, or the world view when empty.
    """
    lons: List[float] = []
    lats: List[float] = []
    for point in points:
        lons.append(float(point[0]))
        lats.append(float(point[1]))
    if not lons:
        return dict(WORLD_BOUNDS)
    return {
        "west": max(-180.0, min(lons) - padding),
        "east": min(180.0, max(lons) + padding),
        "south": max(-90.0, min(lats) - padding),
        "north": min(90.0, max(lats) + padding),
    }
