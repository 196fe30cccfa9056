"""Decide whether a backend's answer is good enough to skip its backup."""

from __future__ import annotations

from typing import Any

from stitch.common.constants import PREFERRED_LAYERS


def results_are_satisfactory(response: dict[str, Any] | None, query_text: str | None) -> bool:
    features = (response or {}).get("features") or []
    if not features:
        return False

    properties = [feature.get("properties") or {} for feature in features]
    has_preferred_layer = any(props.get("layer") in PREFERRED_LAYERS for props in properties)
    needle = (query_text or "").lower()
    has_name_match = any(needle in str(props.get("name") or "").lower() for props in properties)
    return has_preferred_layer and has_name_match
