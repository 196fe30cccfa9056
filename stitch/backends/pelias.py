"""Pelias-compatible backend (geocode.earth, self-hosted transit instances)."""

from __future__ import annotations

from typing import Any

from stitch.common.errors import BackendError, ConfigError
from stitch.common.http import HttpClient
from stitch.common.models import BackendDescriptor, GeocoderQuery


def build_pelias_params(query: GeocoderQuery) -> dict[str, str]:
    params: dict[str, str] = {}
    if query.text:
        params["text"] = query.text
    if query.boundary is not None:
        params["boundary.rect.min_lat"] = str(query.boundary.min_lat)
        params["boundary.rect.min_lon"] = str(query.boundary.min_lon)
        params["boundary.rect.max_lat"] = str(query.boundary.max_lat)
        params["boundary.rect.max_lon"] = str(query.boundary.max_lon)
    if query.focus_point is not None:
        params["focus.point.lat"] = str(query.focus_point.lat)
        if query.focus_point.lon is not None:
            params["focus.point.lon"] = str(query.focus_point.lon)
    if query.point is not None:
        params["point.lat"] = str(query.point.lat)
        if query.point.lon is not None:
            params["point.lon"] = str(query.point.lon)
    params["size"] = str(query.size)
    if query.layers:
        params["layers"] = ",".join(query.layers)
    return params


class PeliasBackend:
    def __init__(self, descriptor: BackendDescriptor, http_client: HttpClient) -> None:
        if not descriptor.base_url:
            raise ConfigError(f"Pelias backend {descriptor.name} has no base_url")
        self.name = descriptor.name
        self.descriptor = descriptor
        self.http_client = http_client

    def _fetch(self, endpoint: str, query: GeocoderQuery) -> dict[str, Any]:
        params = build_pelias_params(query)
        params.update(self.descriptor.params)
        if self.descriptor.api_key:
            params["api_key"] = self.descriptor.api_key

        payload = self.http_client.get_json(
            f"{self.descriptor.base_url}/{endpoint}",
            params=params,
            rate_limit_per_sec=self.descriptor.rate_limit_per_sec,
            backend=self.name,
        )
        if not isinstance(payload, dict) or not isinstance(payload.get("features"), list):
            raise BackendError(f"Malformed Pelias response from {self.name}")
        payload.setdefault("type", "FeatureCollection")
        return payload

    def autocomplete(self, query: GeocoderQuery) -> dict[str, Any]:
        return self._fetch("autocomplete", query)

    def search(self, query: GeocoderQuery) -> dict[str, Any]:
        return self._fetch("search", query)

    def reverse(self, query: GeocoderQuery) -> dict[str, Any]:
        return self._fetch("reverse", query)
