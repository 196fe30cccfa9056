"""Geometry helpers for GeoJSON features."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Sequence

from pyproj import Geod

from stitch.common.constants import DEFAULT_PRECISION_DIGITS
from stitch.common.models import LonLat

_WGS84 = Geod(ellps="WGS84")


def point_coordinates(feature: dict[str, Any] | None) -> list[float] | None:
    if not feature:
        return None
    geometry = feature.get("geometry") or {}
    if geometry.get("type") != "Point":
        return None
    coordinates = geometry.get("coordinates")
    if not coordinates or len(coordinates) < 2:
        return None
    return coordinates


def round_coordinate(value: float, digits: int = DEFAULT_PRECISION_DIGITS) -> Decimal:
    # Decimal(float) is the exact binary value, so halves round the way toFixed does.
    return Decimal(value).quantize(Decimal(1).scaleb(-digits), rounding=ROUND_HALF_UP)


def points_roughly_equal(
    a: Sequence[float],
    b: Sequence[float],
    digits: int = DEFAULT_PRECISION_DIGITS,
) -> bool:
    """Compare two GeoJSON positions on lon/lat rounded to ``digits`` places.

    Four digits is roughly ten metres, which is the tolerance used to decide
    that two sources describe the same place.
    """
    if len(a) < 2 or len(b) < 2:
        return False
    return all(round_coordinate(x, digits) == round_coordinate(y, digits) for x, y in zip(a[:2], b[:2]))


def distance_m(position: Sequence[float], focus_point: LonLat) -> int:
    lon, lat = float(position[0]), float(position[1])
    _fwd, _back, dist = _WGS84.inv(lon, lat, float(focus_point.lon), float(focus_point.lat))
    return int(round(dist))
