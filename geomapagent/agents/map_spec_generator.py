"""MapSpecGenerator: selected candidates to a renderer-independent MapSpec.

Layers, in drawing order:
  boundaries         country boundary base layer
  regions_highlight  choropleth over the selected region codes
  region_markers     centroid markers for regions with a known centroid
  places             point markers for resolved places
  labels             text labels for resolved places

Decomposed regions (one name, several codes) contribute every entity code to
the highlight filter and one centroid marker per code.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from config.defaults import MAP_BOUNDS_PADDING_DEG, MAP_SPEC_VERSION
from geomapagent.models.geo_targets import GeoTarget, GeoTargetSet
from geomapagent.models.map_spec import (
    LAYER_BOUNDARIES,
    LAYER_LABELS,
    LAYER_PLACES,
    LAYER_REGION_MARKERS,
    LAYER_REGIONS,
    MapSpec,
    default_style_tokens,
    merge_style_tokens,
)
from geomapagent.utils.date_utils import epoch_millis, to_iso, utc_now
from geomapagent.utils.geo_utils import bounds_for_points, country_centroid

logger = logging.getLogger(__name__)

_BOUNDARY_SOURCE = {"type": "mapbox", "source_id": "boundaries-adm0"}


def _point_feature(coordinates: List[float], properties: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": list(coordinates)},
        "properties": properties,
    }


def _feature_collection(features: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"type": "geojson", "data": {"type": "FeatureCollection", "features": features}}


class MapSpecGenerator:
    """Builds MapSpec objects from a candidate set and user customizations.

    Args:
        bounds_padding: Degrees of padding around place markers.
        clock: Zero-argument callable returning an aware datetime.
    """

    def __init__(
        self,
        bounds_padding: float = MAP_BOUNDS_PADDING_DEG,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.bounds_padding = bounds_padding
        self._clock = clock or utc_now

    def apply_customizations(
        self, targets: List[GeoTarget], customizations: Optional[Dict[str, Any]]
    ) -> None:
        """Copy ``colors[id]`` and ``names[id]`` overrides onto the targets."""
        custom = customizations or {}
        colors = custom.get("colors") or {}
        names = custom.get("names") or {}
        for target in targets:
            if target.id in colors:
                target.color = colors[target.id]
            if target.id in names:
                target.display_name = names[target.id] or None

    def generate(
        self,
        target_set: GeoTargetSet,
        customizations: Optional[Dict[str, Any]] = None,
    ) -> MapSpec:
        """Generate a MapSpec from the set's selected candidates.

        Args:
            target_set: Candidate set with ``selected_ids`` filled in.
            customizations: Optional ``colors``, ``names``, ``style_tokens``
                and ``title`` overrides.
        """
        custom = customizations or {}
        selected = target_set.selected()
        self.apply_customizations(selected, custom)

        style = merge_style_tokens(default_style_tokens(), custom.get("style_tokens"))
        now = self._clock()

        regions = [t for t in selected if t.is_region]
        places = [t for t in selected if t.is_place and t.resolved.coordinates]
        skipped = sum(1 for t in selected if t.is_place and not t.resolved.coordinates)
        if skipped:
            logger.warning("MapSpecGenerator: %d selected place(s) have no coordinates", skipped)

        spec = MapSpec(
            version=MAP_SPEC_VERSION,
            map_id=f"map_{epoch_millis(now)}",
            bounds=bounds_for_points(
                (p.resolved.coordinates for p in places), padding=self.bounds_padding
            ),
            layers=self._layers(regions, places, style),
            style=style,
            metadata={
                "title": custom.get("title") or "Map",
                "source": target_set.source_url or "unknown",
                "date": now.strftime("%Y-%m-%d"),
                "generated_at": to_iso(now),
            },
        )
        logger.info(
            "MapSpecGenerator: %s with %d layers (%d regions, %d places)",
            spec.map_id, len(spec.layers), len(regions), len(places),
        )
        return spec

    # ── Layers ─────────────────────────────────────────────────────────────────

    def _layers(
        self, regions: List[GeoTarget], places: List[GeoTarget], style: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        semantic = style["colors"]["semantic"]
        typography = style["typography"]
        boundaries = style["boundaries"]

        layers: List[Dict[str, Any]] = [{
            "id": LAYER_BOUNDARIES,
            "type": "boundary",
            "source": dict(_BOUNDARY_SOURCE),
            "style": {
                "stroke_color": boundaries.get("stroke_color", "#cccccc"),
                "stroke_width": boundaries.get("stroke_width", 1),
                "fill_color": boundaries.get("fill_color", "transparent"),
            },
        }]

        if regions:
            codes: List[str] = []
            color_by_code: Dict[str, str] = {}
            for region in regions:
                for code in region.resolved.render_codes():
                    if code not in codes:
                        codes.append(code)
                    if region.color:
                        color_by_code[code] = region.color

            highlight_style: Dict[str, Any] = {
                "fill_color": semantic.get("highlight", "#ff6b6b"),
                "fill_opacity": 0.6,
                "stroke_color": semantic.get("primary", "#4c6ef5"),
                "stroke_width": 2,
            }
            if color_by_code:
                highlight_style["fill_color_by_code"] = color_by_code
            layers.append({
                "id": LAYER_REGIONS,
                "type": "choropleth",
                "source": dict(_BOUNDARY_SOURCE),
                "style": highlight_style,
                "filter": {"field": "iso_code", "operator": "in", "values": codes},
            })

            markers = self._region_markers(regions)
            if markers:
                layers.append({
                    "id": LAYER_REGION_MARKERS,
                    "type": "point",
                    "source": _feature_collection(markers),
                    "style": {
                        "marker_color": semantic.get("secondary", "#748ffc"),
                        "marker_size": 10,
                        "marker_shape": "circle",
                    },
                })

        if places:
            features = [
                _point_feature(p.resolved.coordinates, {"name": p.label, "id": p.id})
                for p in places
            ]
            layers.append({
                "id": LAYER_PLACES,
                "type": "point",
                "source": _feature_collection(features),
                "style": {
                    "marker_color": semantic.get("primary", "#4c6ef5"),
                    "marker_size": 12,
                    "marker_shape": "circle",
                },
            })
            layers.append({
                "id": LAYER_LABELS,
                "type": "label",
                "source": _feature_collection([dict(f) for f in features]),
                "style": {
                    "text_color": typography.get("text_color", "#333333"),
                    "text_size": typography.get("label_size", 12),
                    "text_font": typography.get("font_family", "Arial"),
                    "text_anchor": "left",
                    "text_offset": [8, 0],
                },
            })

        return layers

    @staticmethod
    def _region_markers(regions: List[GeoTarget]) -> List[Dict[str, Any]]:
        markers: List[Dict[str, Any]] = []
        for region in regions:
            codes = region.resolved.render_codes()
            for code in codes:
                centroid = country_centroid(code)
                if centroid is None:
                    logger.debug("MapSpecGenerator: no known centroid for %s", code)
                    continue
                lat, lon = centroid
                marker_id = region.id if len(codes) == 1 else f"{region.id}_{code}"
                markers.append(_point_feature(
                    [lon, lat],
                    {
                        "name": region.label,
                        "id": marker_id,
                        "type": "region_marker",
                        "iso_code": code,
                    },
                ))
        return markers
