from __future__ import annotations

import logging

import pytest
import requests

from stitch.common.errors import BackendError
from stitch.common.http import HostRateLimiter, HttpClient, HttpRequestError, RetryConfig, RetryableHttpError


class FakeResponse:
    def __init__(self, status_code: int, payload=None, raises_json: bool = False):
        self.status_code = status_code
        self._payload = payload
        self._raises_json = raises_json

    def json(self):
        if self._raises_json:
            raise ValueError("bad json")
        return self._payload


def test_http_get_json_success(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    seen = {}

    def fake_request(**kwargs):
        seen.update(kwargs)
        return FakeResponse(200, {"features": []})

    monkeypatch.setattr(client.session, "request", fake_request)
    payload = client.get_json("https://api.geocode.earth/v1/search", params={"text": "mill creek"})

    assert payload == {"features": []}
    assert seen["method"] == "GET"
    assert seen["params"] == {"text": "mill creek"}
    assert seen["headers"]["Accept"] == "application/json"


def test_http_retryable_status_raises_retryable_error(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    monkeypatch.setattr(client.session, "request", lambda **_kwargs: FakeResponse(503, {"x": 1}))

    with pytest.raises(RetryableHttpError):
        client.get_json("https://example.com")


def test_http_client_error_is_not_retried(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=3, multiplier=0.0, max_wait=0.0))
    calls = []

    def fake_request(**_kwargs):
        calls.append(1)
        return FakeResponse(401, {"error": "bad key"})

    monkeypatch.setattr(client.session, "request", fake_request)

    with pytest.raises(HttpRequestError) as exc_info:
        client.get_json("https://example.com")
    assert not isinstance(exc_info.value, RetryableHttpError)
    assert len(calls) == 1


def test_http_retries_then_succeeds(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=3, multiplier=0.0, max_wait=0.0))
    responses = [FakeResponse(429), FakeResponse(200, {"ok": True})]
    monkeypatch.setattr(client.session, "request", lambda **_kwargs: responses.pop(0))

    assert client.get_json("https://example.com") == {"ok": True}


def test_http_retries_are_logged_with_attempt(monkeypatch, caplog):
    caplog.set_level(logging.WARNING, logger="geocoder_stitch")
    client = HttpClient(retry=RetryConfig(max_attempts=2, multiplier=0.0, max_wait=0.0))
    monkeypatch.setattr(client.session, "request", lambda **_kwargs: FakeResponse(502))

    with pytest.raises(RetryableHttpError):
        client.get_json("https://api.geocode.earth/v1/search", params={"api_key": "secret"}, backend="geocode_earth")

    retries = [r for r in caplog.records if getattr(r, "event", None) == "HTTP_RETRY"]
    assert len(retries) == 1
    assert retries[0].attempt == 1
    assert retries[0].backend == "geocode_earth"
    assert "secret" not in retries[0].getMessage()


def test_http_connection_error_is_a_backend_error(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))

    def fake_request(**_kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(client.session, "request", fake_request)

    with pytest.raises(BackendError) as exc_info:
        client.get_json("https://example.com")
    assert exc_info.value.error_code == "HTTP_ERROR"


def test_http_invalid_json_raises(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    monkeypatch.setattr(client.session, "request", lambda **_kwargs: FakeResponse(200, raises_json=True))

    with pytest.raises(HttpRequestError):
        client.get_json("https://example.com")


def test_rate_limiter_keeps_one_bucket_per_host():
    limiter = HostRateLimiter()
    limiter.acquire("api.geocode.earth", 10)
    limiter.acquire("api.geocode.earth", 10)
    limiter.acquire("geocode.search.hereapi.com", 5)

    assert set(limiter.buckets) == {"api.geocode.earth", "geocode.search.hereapi.com"}
