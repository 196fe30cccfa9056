from __future__ import annotations

from pathlib import Path

import pytest

from stitch.common.fs import read_json
from stitch.common.models import LonLat
from stitch.pipeline.merge import fold_responses

FIXTURES = Path(__file__).resolve().parents[1] / "fixtures"
SNAPSHOTS = read_json(FIXTURES / "expected" / "merge_snapshots.json")


@pytest.mark.regression
@pytest.mark.parametrize("scenario", sorted(SNAPSHOTS))
def test_fold_matches_snapshot(scenario: str):
    snapshot = SNAPSHOTS[scenario]
    responses = [read_json(FIXTURES / name) for name in snapshot["responses"]]
    focus = snapshot["focus_point"]
    focus_point = LonLat(lat=focus["lat"], lon=focus["lon"]) if focus else None

    merged = fold_responses(responses, focus_point)

    assert [feature["properties"]["gid"] for feature in merged["features"]] == snapshot["gids"]
    assert merged["geocoding"]["timestamp"] == snapshot["timestamp"]
