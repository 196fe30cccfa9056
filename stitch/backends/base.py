"""Search backend capability shared by every backend family."""

from __future__ import annotations

from typing import Any, Protocol

from stitch.common.constants import API_METHODS
from stitch.common.models import GeocoderQuery


class SearchBackend(Protocol):
    name: str

    def autocomplete(self, query: GeocoderQuery) -> dict[str, Any]: ...

    def search(self, query: GeocoderQuery) -> dict[str, Any]: ...

    def reverse(self, query: GeocoderQuery) -> dict[str, Any]: ...


def call_backend(backend: SearchBackend, method: str, query: GeocoderQuery) -> dict[str, Any]:
    if method not in API_METHODS:
        raise ValueError(f"Unsupported geocoder method: {method}")
    return getattr(backend, method)(query)
