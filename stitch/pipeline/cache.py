"""Backend invocation with optional read/write-through caching."""

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any, Protocol

from cachetools import LRUCache

from stitch.backends.base import SearchBackend, call_backend
from stitch.common.errors import CacheError
from stitch.common.logging import default_logger, log_event
from stitch.common.models import GeocoderQuery, empty_feature_collection
from stitch.common.time_utils import elapsed_ms


class GeocoderCache(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryCache:
    """In-process LRU cache; entries never expire."""

    def __init__(self, max_entries: int = 1000) -> None:
        self._entries: LRUCache[str, str] = LRUCache(maxsize=max_entries)
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise CacheError(f"Cache values must be strings, got {type(value).__name__}")
        with self._lock:
            self._entries[key] = value

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def cache_key(query: GeocoderQuery, namespace: str | None = None) -> str:
    focus = query.focus_point
    lat = "" if focus is None else focus.lat
    lon = "" if focus is None or focus.lon is None else focus.lon
    key = f"{query.text or ''}:{lat}:{lon}"
    if namespace:
        return f"{namespace}|{key}"
    return key


def _read_cache(cache: GeocoderCache, key: str, logger: logging.Logger, fields: dict) -> dict[str, Any] | None:
    try:
        cached = cache.get(key)
        if cached is None:
            return None
        decoded = json.loads(cached)
        if not isinstance(decoded, dict):
            raise CacheError(f"Cached value for {key!r} is not a FeatureCollection")
        return decoded
    except Exception as exc:  # cache adapters may raise anything
        log_event(
            logger,
            f"cache read failed: {exc}",
            level=logging.WARNING,
            event="CACHE_READ_FAIL",
            status="error",
            error_code=getattr(exc, "error_code", "CACHE_ERROR"),
            **fields,
        )
        return None


def _write_cache(cache: GeocoderCache, key: str, response: dict[str, Any], logger: logging.Logger, fields: dict) -> None:
    try:
        cache.set(key, json.dumps(response))
    except Exception as exc:
        log_event(
            logger,
            f"cache write failed: {exc}",
            level=logging.WARNING,
            event="CACHE_WRITE_FAIL",
            status="error",
            error_code=getattr(exc, "error_code", "CACHE_ERROR"),
            **fields,
        )


def cached_backend_call(
    backend: SearchBackend,
    method: str,
    query: GeocoderQuery,
    cache: GeocoderCache | None = None,
    *,
    namespace: str | None = None,
    logger: logging.Logger | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Run one backend call, consulting ``cache`` first when one is given.

    Queries without text never reach the cache or the backend. Cache failures
    are logged and ignored; backend failures propagate.
    """
    if not query.text:
        return empty_feature_collection()

    logger = logger or default_logger()
    fields = {"request_id": request_id, "method": method, "backend": getattr(backend, "name", None)}
    key = cache_key(query, namespace)

    if cache is not None:
        cached = _read_cache(cache, key, logger, fields)
        if cached is not None:
            log_event(logger, "cache hit", level=logging.DEBUG, event="CACHE_HIT", status="ok", **fields)
            return cached
        log_event(logger, "cache miss", level=logging.DEBUG, event="CACHE_MISS", status="ok", **fields)

    started_at = time.monotonic()
    response = call_backend(backend, method, query)
    log_event(
        logger,
        "backend call",
        event="BACKEND_CALL",
        status="ok",
        duration_ms=elapsed_ms(started_at),
        features_out=len(response.get("features") or []),
        **fields,
    )

    if cache is not None:
        _write_cache(cache, key, response, logger, fields)
    return response
