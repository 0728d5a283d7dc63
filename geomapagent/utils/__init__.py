"""GeoMapAgent utilities package.

All utilities are stateless pure functions with no external calls or side effects.
"""

from geomapagent.utils.date_utils import parse_timestamp, utc_now, utc_now_iso
from geomapagent.utils.geo_utils import country_centroid, validate_coordinates
from geomapagent.utils.levenshtein_utils import distance, nearest
from geomapagent.utils.text import extract_keywords, locate_evidence, normalize_name

__all__ = [
    "parse_timestamp",
    "utc_now",
    "utc_now_iso",
    "country_centroid",
    "validate_coordinates",
    "nearest",
    "distance",
    "extract_keywords",
    "locate_evidence",
    "normalize_name",
]
