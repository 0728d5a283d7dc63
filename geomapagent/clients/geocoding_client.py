"""Mapbox forward-geocoding client.

Implements the CoordinateLookup interface over the Mapbox Geocoding API.
Lookups are best-effort: a missing token or any HTTP failure yields None so
the resolver can fall through to its next source.
"""

from __future__ import annotations

import logging
from typing import List, Optional
from urllib.parse import quote

import requests
from requests import Session
from requests.adapters import HTTPAdapter

from config.defaults import GEOCODING_REQUEST_TIMEOUT, GEOCODING_RESULT_LIMIT, MAPBOX_GEOCODING_URL
from geomapagent.utils.geo_utils import validate_coordinates

logger = logging.getLogger(__name__)


class MapboxGeocoder:
    """Coordinate lookup backed by Mapbox forward geocoding.

    Args:
        token: Mapbox access token. Without one every lookup returns None.
        base_url: Geocoding endpoint (``.../geocoding/v5/mapbox.places``).
        timeout: Per-request timeout in seconds.
        limit: Number of features requested; only the best is used.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: str = MAPBOX_GEOCODING_URL,
        timeout: float = GEOCODING_REQUEST_TIMEOUT,
        limit: int = GEOCODING_RESULT_LIMIT,
    ) -> None:
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.limit = limit
        self._session = Session()
        adapter = HTTPAdapter(max_retries=0)
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)

    @classmethod
    def from_config(cls, config) -> "MapboxGeocoder":
        return cls(
            token=config.mapbox_token,
            base_url=config.mapbox_geocoding_url,
            timeout=config.geocoding_request_timeout,
            limit=config.geocoding_result_limit,
        )

    def resolve_name(self, name: str, country_hint: Optional[str] = None) -> Optional[List[float]]:
        """Return ``[lon, lat]`` for a place name, or None.

        Args:
            name: Place name as written in the source text.
            country_hint: ISO 3166-1 alpha-2 code restricting the search. Other
                code formats are ignored since Mapbox only accepts alpha-2.
        """
        if not self.token:
            logger.debug("MapboxGeocoder: no token configured, skipping %s", name)
            return None
        if not name or not name.strip():
            return None

        url = f"{self.base_url}/{quote(name.strip())}.json"
        params = {"access_token": self.token, "limit": self.limit}
        if country_hint and len(country_hint) == 2 and country_hint.isalpha():
            params["country"] = country_hint.lower()

        try:
            resp = self._session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            logger.warning("MapboxGeocoder: request failed for %s: %s", name, exc)
            return None

        if resp.status_code != 200:
            logger.warning("MapboxGeocoder: HTTP %d for %s", resp.status_code, name)
            return None

        try:
            features = resp.json().get("features") or []
        except (ValueError, AttributeError) as exc:
            logger.warning("MapboxGeocoder: unreadable response for %s: %s", name, exc)
            return None
        if not features:
            logger.info("MapboxGeocoder: no match for %s", name)
            return None

        check = validate_coordinates(features[0].get("center"))
        if not check.valid:
            logger.warning("MapboxGeocoder: bad center for %s: %s", name, check.suggestion)
            return None
        return check.coordinates

    def close(self) -> None:
        self._session.close()
