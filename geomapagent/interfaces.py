"""Collaborator interfaces injected into GeoMapAgent.

The core never reaches into the map renderer directly. It talks to three
narrow capabilities, each with a no-op default so the pipeline runs (with
reduced verification) when the caller supplies nothing.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, runtime_checkable


@runtime_checkable
class BoundaryProvider(Protocol):
    """Answers questions about the currently loaded boundary dataset."""

    def is_source_loaded(self) -> bool:
        """True when a boundary source is loaded and its codes can be enumerated."""
        ...

    def loaded_codes(self) -> Iterable[str]:
        """Enumerate administrative codes present in the loaded source."""
        ...

    def is_code_loaded(self, code: str) -> bool:
        """True when ``code`` is renderable right now."""
        ...


@runtime_checkable
class CoordinateLookup(Protocol):
    """Primary place-name geocoder."""

    def resolve_name(self, name: str, country_hint: Optional[str] = None) -> Optional[List[float]]:
        """Return ``[lon, lat]`` for a place name, or None."""
        ...


@runtime_checkable
class NamedLocationResolver(Protocol):
    """Secondary place-name resolver (gazetteer style)."""

    def resolve_location(self, name: str) -> Optional[Dict[str, Any]]:
        """Return a dict with ``lat``, ``lon`` and optional ``country_code``, or None."""
        ...


class NullBoundaryProvider:
    """No boundary dataset loaded; codes cannot be verified."""

    def is_source_loaded(self) -> bool:
        return False

    def loaded_codes(self) -> Iterable[str]:
        return ()

    def is_code_loaded(self, code: str) -> bool:
        return False


class StaticBoundaryProvider:
    """Boundary provider over a fixed code list.

    Useful for batch runs against a known dataset and for tests.
    """

    def __init__(self, codes: Sequence[str]) -> None:
        self._codes = [str(c) for c in codes]
        self._lookup = {c.upper() for c in self._codes}

    def is_source_loaded(self) -> bool:
        return True

    def loaded_codes(self) -> Iterable[str]:
        return list(self._codes)

    def is_code_loaded(self, code: str) -> bool:
        return bool(code) and code.upper() in self._lookup


class NullCoordinateLookup:
    """Coordinate lookup that never finds anything."""

    def resolve_name(self, name: str, country_hint: Optional[str] = None) -> Optional[List[float]]:
        return None


class NullNamedLocationResolver:
    """Named-location resolver that never finds anything."""

    def resolve_location(self, name: str) -> Optional[Dict[str, Any]]:
        return None
