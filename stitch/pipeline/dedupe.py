"""Duplicate classification between feature sets reported by different backends."""

from __future__ import annotations

from typing import Any, Iterable

from stitch.common.geometry import point_coordinates, points_roughly_equal
from stitch.common.models import DedupeRules


def _properties(feature: dict[str, Any]) -> dict[str, Any]:
    return feature.get("properties") or {}


def _name(feature: dict[str, Any]) -> str:
    return str(_properties(feature).get("name") or "").lower()


def _category_ids(categories: Iterable[Any]) -> list[str]:
    ids: list[str] = []
    for category in categories:
        if isinstance(category, dict):
            category_id = category.get("id")
        else:
            category_id = category
        if category_id:
            ids.append(str(category_id))
    return ids


def is_transit_stop(feature: dict[str, Any], rules: DedupeRules = DedupeRules()) -> bool:
    addendum = _properties(feature).get("addendum") or {}

    # Only some OSM stops carry an operator tag, so this misses a few.
    osm = addendum.get("osm") or {}
    if osm.get("operator"):
        return True

    here = addendum.get("here") or {}
    return any(
        category_id.startswith(prefix)
        for category_id in _category_ids(here.get("categories") or [])
        for prefix in rules.transit_category_prefixes
    )


def _exceeds_distance(feature: dict[str, Any], max_distance: float) -> bool:
    distance = _properties(feature).get("distance")
    try:
        return distance is not None and float(distance) > max_distance
    except (TypeError, ValueError):
        return False


def fails_name_or_distance_gate(
    feature: dict[str, Any],
    others: list[dict[str, Any]],
    rules: DedupeRules = DedupeRules(),
) -> bool:
    name = _name(feature)
    # An unnamed feature has nothing to match.
    if rules.check_name_duplicates and name:
        if any(name in _name(other) for other in others):
            return True
    return _exceeds_distance(feature, rules.max_distance)


def has_matching_point(
    feature: dict[str, Any],
    others: list[dict[str, Any]],
    rules: DedupeRules = DedupeRules(),
) -> bool:
    coordinates = point_coordinates(feature)
    if coordinates is None:
        return False
    for other in others:
        other_coordinates = point_coordinates(other)
        if other_coordinates is None:
            continue
        if points_roughly_equal(coordinates, other_coordinates, rules.precision_digits):
            return True
    return False


def keep_feature(
    feature: dict[str, Any],
    others: list[dict[str, Any]],
    rules: DedupeRules = DedupeRules(),
) -> bool:
    """Decide whether ``feature`` survives against the features of another source.

    The name/distance gate rejects first, even for features that are not real
    duplicates. Past it, only transit stops are candidates for removal, and
    they go when another source has a Point at the same rounded position.
    """
    if fails_name_or_distance_gate(feature, others, rules):
        return False
    if not is_transit_stop(feature, rules):
        return True
    return not has_matching_point(feature, others, rules)


def filter_duplicates(
    features: list[dict[str, Any]],
    others: list[dict[str, Any]],
    rules: DedupeRules = DedupeRules(),
) -> list[dict[str, Any]]:
    return [feature for feature in features if keep_feature(feature, others, rules)]
