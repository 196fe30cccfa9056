"""HERE Geocoding & Search backend, converted to Pelias-shaped GeoJSON."""

from __future__ import annotations

from typing import Any

from stitch.common.errors import BackendError, ConfigError
from stitch.common.http import HttpClient
from stitch.common.models import BackendDescriptor, GeocoderQuery

ENDPOINTS = {
    "autocomplete": "https://autosuggest.search.hereapi.com/v1/autosuggest",
    "search": "https://geocode.search.hereapi.com/v1/geocode",
    "reverse": "https://revgeocode.search.hereapi.com/v1/revgeocode",
}
PATHS = {"autocomplete": "autosuggest", "search": "geocode", "reverse": "revgeocode"}

LAYER_BY_RESULT_TYPE = {
    "place": "venue",
    "houseNumber": "address",
    "addressBlock": "address",
    "street": "street",
    "intersection": "intersection",
    "locality": "locality",
    "postalCodePoint": "postalcode",
    "administrativeArea": "region",
}


def _here_params(query: GeocoderQuery) -> dict[str, str]:
    params: dict[str, str] = {"limit": str(query.size)}
    if query.text:
        params["q"] = query.text
    if query.boundary is not None:
        b = query.boundary
        params["in"] = f"bbox:{b.min_lon},{b.min_lat},{b.max_lon},{b.max_lat}"
    elif query.focus_point is not None and query.focus_point.lon is not None:
        params["at"] = f"{query.focus_point.lat},{query.focus_point.lon}"
    return params


def _reverse_params(query: GeocoderQuery) -> dict[str, str]:
    if query.point is None or query.point.lon is None:
        raise BackendError("HERE reverse geocoding requires point.lat and point.lon")
    return {"at": f"{query.point.lat},{query.point.lon}", "limit": str(query.size)}


def here_item_to_feature(item: dict[str, Any]) -> dict[str, Any] | None:
    position = item.get("position")
    if not position:
        access = item.get("access") or []
        position = access[0] if access else None
    # Query suggestions (chainQuery, categoryQuery) have no position.
    if not position or position.get("lat") is None or position.get("lng") is None:
        return None

    result_type = item.get("resultType", "")
    address = item.get("address") or {}
    title = item.get("title")
    properties: dict[str, Any] = {
        "gid": f"here:{result_type}:{item.get('id')}",
        "id": item.get("id"),
        "source": "here",
        "name": title,
        "label": address.get("label") or title,
        "layer": LAYER_BY_RESULT_TYPE.get(result_type, result_type),
        "addendum": {
            "here": {
                "result_type": result_type,
                "categories": list(item.get("categories") or []),
            }
        },
    }
    if item.get("distance") is not None:
        properties["distance"] = item["distance"]

    address_fields = {
        "housenumber": "houseNumber",
        "street": "street",
        "postalcode": "postalCode",
        "locality": "city",
        "region": "state",
        "country": "countryName",
        "country_code": "countryCode",
    }
    for prop, key in address_fields.items():
        if address.get(key):
            properties[prop] = address[key]

    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [position["lng"], position["lat"]]},
        "properties": properties,
    }


class HereBackend:
    def __init__(self, descriptor: BackendDescriptor, http_client: HttpClient) -> None:
        if not descriptor.api_key:
            raise ConfigError(f"HERE backend {descriptor.name} has no api_key")
        self.name = descriptor.name
        self.descriptor = descriptor
        self.http_client = http_client

    def _url(self, method: str) -> str:
        if self.descriptor.base_url:
            return f"{self.descriptor.base_url}/{PATHS[method]}"
        return ENDPOINTS[method]

    def _fetch(self, method: str, params: dict[str, str]) -> dict[str, Any]:
        params.update(self.descriptor.params)
        params["apiKey"] = str(self.descriptor.api_key)
        payload = self.http_client.get_json(
            self._url(method),
            params=params,
            rate_limit_per_sec=self.descriptor.rate_limit_per_sec,
            backend=self.name,
        )
        if not isinstance(payload, dict) or not isinstance(payload.get("items"), list):
            raise BackendError(f"Malformed HERE response from {self.name}")

        features = []
        for item in payload["items"]:
            feature = here_item_to_feature(item)
            if feature is not None:
                features.append(feature)
        return {"type": "FeatureCollection", "features": features}

    def autocomplete(self, query: GeocoderQuery) -> dict[str, Any]:
        return self._fetch("autocomplete", _here_params(query))

    def search(self, query: GeocoderQuery) -> dict[str, Any]:
        return self._fetch("search", _here_params(query))

    def reverse(self, query: GeocoderQuery) -> dict[str, Any]:
        return self._fetch("reverse", _reverse_params(query))
