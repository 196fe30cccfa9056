"""Merge two geocoder responses into one, custom features first."""

from __future__ import annotations

import copy
from functools import cmp_to_key
from typing import Any

from stitch.common.geometry import distance_m, point_coordinates
from stitch.common.models import DedupeRules, LonLat, empty_feature_collection
from stitch.pipeline.dedupe import filter_duplicates


def _focus_comparator(focus_point: LonLat):
    def _compare(a: dict[str, Any], b: dict[str, Any]) -> int:
        a_coordinates = point_coordinates(a)
        b_coordinates = point_coordinates(b)
        # Features without a Point can't be ranked and keep their place.
        if a_coordinates is None or b_coordinates is None:
            return 0
        return distance_m(a_coordinates, focus_point) - distance_m(b_coordinates, focus_point)

    return _compare


def sort_by_focus_point(features: list[dict[str, Any]], focus_point: LonLat) -> list[dict[str, Any]]:
    return sorted(features, key=cmp_to_key(_focus_comparator(focus_point)))


def _usable_focus_point(focus_point: LonLat | None) -> bool:
    return focus_point is not None and focus_point.lat is not None and focus_point.lon is not None


def rank_features(
    features: list[dict[str, Any]],
    focus_point: LonLat | None = None,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    ranked = sort_by_focus_point(features, focus_point) if _usable_focus_point(focus_point) else list(features)
    if limit is not None:
        ranked = ranked[:limit]
    return ranked


def merge_responses(
    custom: dict[str, Any],
    primary: dict[str, Any],
    focus_point: LonLat | None = None,
    *,
    rules: DedupeRules = DedupeRules(),
    custom_limit: int | None = None,
) -> dict[str, Any]:
    """Combine ``custom`` (authoritative) and ``primary`` into a new collection.

    Primary features duplicating a custom feature are dropped. Custom features
    are ordered by distance to ``focus_point`` when one is given and come first
    in the output. Everything except ``features`` is taken from ``primary``.
    Neither input is modified.
    """
    custom_features = copy.deepcopy(custom.get("features") or [])
    primary_copy = copy.deepcopy(primary)
    primary_features = primary_copy.get("features") or []

    kept_primary = filter_duplicates(primary_features, custom_features, rules)

    custom_features = rank_features(custom_features, focus_point, custom_limit)

    merged = dict(primary_copy)
    merged.setdefault("type", "FeatureCollection")
    merged["features"] = [*custom_features, *kept_primary]
    return merged


def fold_responses(
    responses: list[dict[str, Any]],
    focus_point: LonLat | None = None,
    *,
    rules: DedupeRules = DedupeRules(),
    custom_limit: int | None = None,
) -> dict[str, Any]:
    """Fold responses left to right; each later response is the custom side.

    Later responses therefore win duplicate conflicts and lead the output.
    ``custom_limit`` caps only the last response, after the accumulated
    features have been filtered against all of its features.
    """
    if not responses:
        return empty_feature_collection()

    accumulated = copy.deepcopy(responses[0])
    last = len(responses) - 1
    for idx, response in enumerate(responses[1:], start=1):
        accumulated = merge_responses(
            response,
            accumulated,
            focus_point,
            rules=rules,
            custom_limit=custom_limit if idx == last else None,
        )
    return accumulated
