"""Best-effort conversion of raw query-string parameters into a GeocoderQuery."""

from __future__ import annotations

import re
from typing import Mapping

from stitch.common.constants import DEFAULT_SIZE, PREFERRED_LAYERS
from stitch.common.models import BoundaryRect, GeocoderQuery, LonLat

# Characters that break Pelias full-text parsing.
_UNSAFE_TEXT_RE = re.compile(r"[@&]")

_RECT_KEYS = (
    "boundary.rect.min_lat",
    "boundary.rect.min_lon",
    "boundary.rect.max_lat",
    "boundary.rect.max_lon",
)


def sanitize_text(text: str) -> str:
    return _UNSAFE_TEXT_RE.sub(" ", text)


def _safe_float(value: object) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _safe_int(value: object) -> int | None:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _lon_lat(params: Mapping[str, str], prefix: str) -> LonLat | None:
    lat = _safe_float(params.get(f"{prefix}.lat"))
    if lat is None:
        return None
    return LonLat(lat=lat, lon=_safe_float(params.get(f"{prefix}.lon")))


def _boundary(params: Mapping[str, str]) -> BoundaryRect | None:
    values = [_safe_float(params.get(key)) for key in _RECT_KEYS]
    if any(value is None for value in values):
        return None
    min_lat, min_lon, max_lat, max_lon = values
    return BoundaryRect(min_lat=min_lat, min_lon=min_lon, max_lat=max_lat, max_lon=max_lon)


def _layers(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return PREFERRED_LAYERS
    layers = tuple(layer.strip() for layer in raw.split(",") if layer.strip())
    return layers or PREFERRED_LAYERS


def normalize_query(params: Mapping[str, str] | None) -> GeocoderQuery:
    """Build a GeocoderQuery from Pelias-style parameters.

    Missing or unparseable values are dropped or defaulted; this never raises.
    """
    params = params or {}
    size = _safe_int(params.get("size"))
    return GeocoderQuery(
        text=params.get("text"),
        boundary=_boundary(params),
        focus_point=_lon_lat(params, "focus.point"),
        point=_lon_lat(params, "point"),
        size=size if size is not None and size > 0 else DEFAULT_SIZE,
        layers=_layers(params.get("layers")),
    )
