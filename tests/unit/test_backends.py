import pytest

from stitch.backends.base import call_backend
from stitch.backends.here import HereBackend, here_item_to_feature
from stitch.backends.pelias import PeliasBackend, build_pelias_params
from stitch.backends.registry import build_backend
from stitch.common.errors import BackendError, ConfigError
from stitch.common.models import BackendDescriptor, BoundaryRect, GeocoderQuery, LonLat
from stitch.pipeline.dedupe import is_transit_stop


class FakeHttpClient:
    def __init__(self, payload):
        self.payload = payload
        self.calls = []

    def get_json(self, url, *, params=None, headers=None, timeout=None, rate_limit_per_sec=None, backend=None):
        self.calls.append({"url": url, "params": params, "rate_limit_per_sec": rate_limit_per_sec, "backend": backend})
        return self.payload


HERE_BUS_STOP = {
    "title": "164th St SE & Mill Creek Blvd",
    "id": "here:pds:place:840c22yz-abc",
    "resultType": "place",
    "address": {
        "label": "164th St SE & Mill Creek Blvd, Mill Creek, WA 98012, United States",
        "countryCode": "USA",
        "countryName": "United States",
        "state": "Washington",
        "city": "Mill Creek",
        "postalCode": "98012",
    },
    "position": {"lat": 47.88028, "lng": -122.23846},
    "distance": 412,
    "categories": [{"id": "400-4100-0036", "name": "Bus Stop", "primary": True}],
}


def test_build_pelias_params():
    query = GeocoderQuery(
        text="mill creek",
        boundary=BoundaryRect(min_lat=47.0, min_lon=-123.0, max_lat=48.0, max_lon=-122.0),
        focus_point=LonLat(lat=47.88, lon=-122.23),
        size=10,
    )

    params = build_pelias_params(query)

    assert params["text"] == "mill creek"
    assert params["boundary.rect.min_lat"] == "47.0"
    assert params["boundary.rect.max_lon"] == "-122.0"
    assert params["focus.point.lat"] == "47.88"
    assert params["focus.point.lon"] == "-122.23"
    assert params["size"] == "10"
    assert params["layers"] == "venue,address,street,intersection"
    assert "point.lat" not in params


def test_pelias_fetch_merges_descriptor_params_and_key():
    client = FakeHttpClient({"features": [], "geocoding": {"version": "0.2"}})
    descriptor = BackendDescriptor(
        name="transit",
        type="PELIAS",
        base_url="http://localhost:4000/v1",
        api_key="secret",
        params={"sources": "transit"},
        rate_limit_per_sec=5.0,
    )

    response = PeliasBackend(descriptor, client).autocomplete(GeocoderQuery(text="steiner"))

    assert response == {"type": "FeatureCollection", "features": [], "geocoding": {"version": "0.2"}}
    call = client.calls[0]
    assert call["url"] == "http://localhost:4000/v1/autocomplete"
    assert call["params"]["sources"] == "transit"
    assert call["params"]["api_key"] == "secret"
    assert call["rate_limit_per_sec"] == 5.0
    assert call["backend"] == "transit"


def test_pelias_reverse_sends_point():
    client = FakeHttpClient({"type": "FeatureCollection", "features": []})
    backend = PeliasBackend(BackendDescriptor(name="ge", type="PELIAS", base_url="https://api.geocode.earth/v1"), client)

    call_backend(backend, "reverse", GeocoderQuery(point=LonLat(lat=47.6, lon=-122.3)))

    call = client.calls[0]
    assert call["url"] == "https://api.geocode.earth/v1/reverse"
    assert call["params"]["point.lat"] == "47.6"
    assert call["params"]["point.lon"] == "-122.3"
    assert "text" not in call["params"]


@pytest.mark.parametrize("payload", [None, [], {"error": "oops"}, {"features": "none"}])
def test_pelias_malformed_payload(payload):
    backend = PeliasBackend(BackendDescriptor(name="ge", type="PELIAS", base_url="http://x"), FakeHttpClient(payload))
    with pytest.raises(BackendError):
        backend.search(GeocoderQuery(text="x"))


def test_pelias_requires_base_url():
    with pytest.raises(ConfigError):
        PeliasBackend(BackendDescriptor(name="ge", type="PELIAS"), FakeHttpClient({}))


def test_here_item_to_feature():
    feature = here_item_to_feature(HERE_BUS_STOP)

    assert feature["geometry"] == {"type": "Point", "coordinates": [-122.23846, 47.88028]}
    props = feature["properties"]
    assert props["gid"] == "here:place:here:pds:place:840c22yz-abc"
    assert props["layer"] == "venue"
    assert props["name"] == "164th St SE & Mill Creek Blvd"
    assert props["locality"] == "Mill Creek"
    assert props["distance"] == 412
    assert props["addendum"]["here"]["categories"][0]["id"] == "400-4100-0036"
    assert is_transit_stop(feature) is True


def test_here_item_without_position_is_skipped():
    assert here_item_to_feature({"title": "Starbucks", "resultType": "chainQuery", "href": "https://x"}) is None


def test_here_item_uses_access_position_when_missing():
    item = {"title": "Main St", "resultType": "street", "access": [{"lat": 1.5, "lng": 2.5}]}
    feature = here_item_to_feature(item)
    assert feature["geometry"]["coordinates"] == [2.5, 1.5]
    assert feature["properties"]["layer"] == "street"


def test_here_search_builds_params_and_converts():
    client = FakeHttpClient({"items": [HERE_BUS_STOP, {"title": "Coffee", "resultType": "categoryQuery"}]})
    backend = HereBackend(BackendDescriptor(name="here", type="HERE", api_key="k"), client)

    response = backend.search(GeocoderQuery(text="164th", focus_point=LonLat(lat=47.88, lon=-122.23), size=5))

    assert response["type"] == "FeatureCollection"
    assert len(response["features"]) == 1
    call = client.calls[0]
    assert call["url"] == "https://geocode.search.hereapi.com/v1/geocode"
    assert call["params"] == {"limit": "5", "q": "164th", "at": "47.88,-122.23", "apiKey": "k"}


def test_here_boundary_wins_over_focus_and_base_url_overrides_host():
    client = FakeHttpClient({"items": []})
    backend = HereBackend(BackendDescriptor(name="here", type="HERE", api_key="k", base_url="http://here.test/v1"), client)

    backend.autocomplete(
        GeocoderQuery(
            text="mill",
            boundary=BoundaryRect(min_lat=47.0, min_lon=-123.0, max_lat=48.0, max_lon=-122.0),
            focus_point=LonLat(lat=47.5, lon=-122.5),
        )
    )

    call = client.calls[0]
    assert call["url"] == "http://here.test/v1/autosuggest"
    assert call["params"]["in"] == "bbox:-123.0,47.0,-122.0,48.0"
    assert "at" not in call["params"]


def test_here_reverse_requires_point():
    backend = HereBackend(BackendDescriptor(name="here", type="HERE", api_key="k"), FakeHttpClient({"items": []}))
    with pytest.raises(BackendError):
        backend.reverse(GeocoderQuery(point=LonLat(lat=47.0, lon=None)))


def test_here_malformed_payload():
    backend = HereBackend(BackendDescriptor(name="here", type="HERE", api_key="k"), FakeHttpClient({"features": []}))
    with pytest.raises(BackendError):
        backend.search(GeocoderQuery(text="x"))


def test_registry_builds_by_type():
    client = FakeHttpClient({})
    assert isinstance(build_backend(BackendDescriptor(name="a", type="pelias", base_url="http://x"), client), PeliasBackend)
    assert isinstance(build_backend(BackendDescriptor(name="b", type="HERE", api_key="k"), client), HereBackend)
    with pytest.raises(ConfigError):
        build_backend(BackendDescriptor(name="c", type="GOOGLE"), client)


def test_call_backend_rejects_unknown_method():
    with pytest.raises(ValueError):
        call_backend(object(), "geocode", GeocoderQuery(text="x"))
