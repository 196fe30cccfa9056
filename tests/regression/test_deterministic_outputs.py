from pathlib import Path

import pytest

from stitch.common.fs import read_json, write_json
from stitch.common.models import LonLat
from stitch.pipeline.merge import fold_responses

FIXTURES = Path(__file__).resolve().parents[1] / "fixtures"


def _fold_to(path: Path, focus_point: LonLat | None) -> bytes:
    responses = [
        read_json(FIXTURES / "primary_response.json"),
        read_json(FIXTURES / "primary_response_bus.json"),
        read_json(FIXTURES / "transit_response.json"),
    ]
    write_json(path, fold_responses(responses, focus_point))
    return path.read_bytes()


@pytest.mark.regression
@pytest.mark.parametrize("focus_point", [None, LonLat(lat=37.793899, lon=-122.43634)])
def test_merged_output_is_byte_stable_for_same_inputs(tmp_path: Path, focus_point):
    assert _fold_to(tmp_path / "first.json", focus_point) == _fold_to(tmp_path / "second.json", focus_point)


@pytest.mark.regression
def test_empty_responses_fold_to_empty_collection(tmp_path: Path):
    empty = {"type": "FeatureCollection", "features": []}
    merged = fold_responses([empty, empty, empty])

    write_json(tmp_path / "empty.json", merged)
    assert read_json(tmp_path / "empty.json") == empty
