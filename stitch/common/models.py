"""Data models shared across the stitcher."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from stitch.common.constants import (
    DEFAULT_MAX_DISTANCE,
    DEFAULT_PRECISION_DIGITS,
    DEFAULT_SIZE,
    DEFAULT_TRANSIT_CATEGORY_PREFIXES,
    PREFERRED_LAYERS,
)


@dataclass(frozen=True)
class LonLat:
    lat: float
    lon: float | None


@dataclass(frozen=True)
class BoundaryRect:
    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float


@dataclass(frozen=True)
class GeocoderQuery:
    text: str | None = None
    boundary: BoundaryRect | None = None
    focus_point: LonLat | None = None
    point: LonLat | None = None
    size: int = DEFAULT_SIZE
    layers: tuple[str, ...] = PREFERRED_LAYERS


@dataclass(frozen=True)
class BackendDescriptor:
    name: str
    type: str
    base_url: str | None = None
    api_key: str | None = None
    params: dict[str, str] = field(default_factory=dict)
    rate_limit_per_sec: float | None = None


@dataclass(frozen=True)
class DedupeRules:
    check_name_duplicates: bool = True
    max_distance: float = DEFAULT_MAX_DISTANCE
    precision_digits: int = DEFAULT_PRECISION_DIGITS
    transit_category_prefixes: tuple[str, ...] = DEFAULT_TRANSIT_CATEGORY_PREFIXES


def empty_feature_collection() -> dict[str, Any]:
    return {"type": "FeatureCollection", "features": []}
