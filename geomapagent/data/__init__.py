"""GeoMapAgent static reference data: synonym entities and country codes."""

from geomapagent.data.country_codes import COUNTRY_NAME_TO_CODE, lookup_country_code
from geomapagent.data.synonyms import SynonymEntry, SynonymTable

__all__ = [
    "SynonymEntry",
    "SynonymTable",
    "COUNTRY_NAME_TO_CODE",
    "lookup_country_code",
]
