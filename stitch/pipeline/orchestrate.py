"""Fan a geocoder request out to every backend and stitch the answers together."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from types import TracebackType
from typing import Any, Mapping

from stitch.backends.base import SearchBackend, call_backend
from stitch.backends.registry import build_backend
from stitch.common.config_loader import StitchConfig
from stitch.common.constants import API_METHODS
from stitch.common.errors import BackendError
from stitch.common.http import HttpClient, RetryConfig, TimeoutConfig
from stitch.common.ids import generate_request_id
from stitch.common.logging import default_logger, log_event
from stitch.common.models import GeocoderQuery
from stitch.common.time_utils import elapsed_ms
from stitch.pipeline.cache import GeocoderCache, MemoryCache, cached_backend_call
from stitch.pipeline.merge import fold_responses
from stitch.pipeline.quality import results_are_satisfactory
from stitch.pipeline.query import normalize_query, sanitize_text


def _outcome(future: Future) -> tuple[dict[str, Any] | None, Exception | None]:
    try:
        return future.result(), None
    except Exception as exc:
        return None, exc


class Stitcher:
    def __init__(
        self,
        config: StitchConfig,
        backends: list[SearchBackend],
        backups: list[SearchBackend | None],
        transit: SearchBackend,
        *,
        cache: GeocoderCache | None = None,
        logger: logging.Logger | None = None,
        http_client: HttpClient | None = None,
    ) -> None:
        if not backends:
            raise ValueError("At least one primary backend is required")
        if len(backups) != len(backends):
            raise ValueError("Every primary backend needs a backup slot (use None for no backup)")
        self.config = config
        self.backends = list(backends)
        self.backups = list(backups)
        self.transit = transit
        self.cache = cache
        self.logger = logger or default_logger()
        self.http_client = http_client

    @classmethod
    def from_config(
        cls,
        config: StitchConfig,
        *,
        cache: GeocoderCache | None = None,
        logger: logging.Logger | None = None,
    ) -> "Stitcher":
        http_client = HttpClient(
            timeout=TimeoutConfig(connect=config.http.connect_timeout, read=config.http.read_timeout),
            retry=RetryConfig(max_attempts=config.http.max_attempts, max_wait=config.http.max_wait),
            logger=logger,
        )
        backends = [build_backend(descriptor, http_client) for descriptor in config.geocoders]
        backups = [
            build_backend(descriptor, http_client) if descriptor is not None else None
            for descriptor in config.backup_geocoders
        ]
        transit = build_backend(config.transit, http_client)
        if cache is None and config.cache.enabled:
            cache = MemoryCache(max_entries=config.cache.max_entries)
        return cls(
            config,
            backends,
            backups,
            transit,
            cache=cache,
            logger=logger,
            http_client=http_client,
        )

    def close(self) -> None:
        if self.http_client is not None:
            self.http_client.close()

    def __enter__(self) -> "Stitcher":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def autocomplete(self, params: Mapping[str, str], request_id: str | None = None) -> dict[str, Any]:
        return self.run("autocomplete", params, request_id=request_id)

    def search(self, params: Mapping[str, str], request_id: str | None = None) -> dict[str, Any]:
        return self.run("search", params, request_id=request_id)

    def reverse(self, params: Mapping[str, str], request_id: str | None = None) -> dict[str, Any]:
        return self.run("reverse", params, request_id=request_id)

    def run(self, method: str, params: Mapping[str, str], request_id: str | None = None) -> dict[str, Any]:
        if method not in API_METHODS:
            raise ValueError(f"Unsupported geocoder method: {method}")
        request_id = request_id or generate_request_id()
        started_at = time.monotonic()

        cleaned = dict(params or {})
        if cleaned.get("text"):
            cleaned["text"] = sanitize_text(cleaned["text"])
        query = normalize_query(cleaned)

        log_event(self.logger, "request start", request_id=request_id, method=method, event="REQUEST_START", status="ok")
        if method == "reverse":
            # Reverse lookups have no text to gate or dedupe on; the first geocoder answers alone.
            response = call_backend(self.backends[0], "reverse", query)
        else:
            response = self._stitch(method, query, request_id)

        log_event(
            self.logger,
            "request end",
            request_id=request_id,
            method=method,
            event="REQUEST_END",
            status="ok",
            duration_ms=elapsed_ms(started_at),
            features_out=len(response.get("features") or []),
        )
        return response

    def _submit(
        self,
        executor: ThreadPoolExecutor,
        backend: SearchBackend,
        method: str,
        query: GeocoderQuery,
        request_id: str,
        *,
        use_cache: bool,
    ) -> Future:
        return executor.submit(
            cached_backend_call,
            backend,
            method,
            query,
            self.cache if use_cache else None,
            namespace=f"{backend.name}:{method}",
            logger=self.logger,
            request_id=request_id,
        )

    def _gate(
        self,
        idx: int,
        method: str,
        query: GeocoderQuery,
        outcome: tuple[dict[str, Any] | None, Exception | None],
        request_id: str,
    ) -> dict[str, Any]:
        response, error = outcome
        backend = self.backends[idx]
        backup = self.backups[idx]

        if backup is None:
            if error is not None:
                raise error
            return response
        if error is not None and not isinstance(error, BackendError):
            raise error
        if error is None and results_are_satisfactory(response, query.text):
            return response

        log_event(
            self.logger,
            f"falling back from {backend.name} to {backup.name}",
            request_id=request_id,
            method=method,
            backend=backup.name,
            event="FALLBACK",
            status="error" if error is not None else "unsatisfactory",
            error_code=getattr(error, "error_code", None),
        )
        # Backup answers are live and used as they come back.
        return cached_backend_call(
            backup,
            method,
            query,
            None,
            logger=self.logger,
            request_id=request_id,
        )

    def _stitch(self, method: str, query: GeocoderQuery, request_id: str) -> dict[str, Any]:
        max_workers = self.config.max_workers or len(self.backends) + 1
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            primary_futures = [
                self._submit(executor, backend, method, query, request_id, use_cache=True)
                for backend in self.backends
            ]
            transit_future = self._submit(executor, self.transit, method, query, request_id, use_cache=False)
            primary_outcomes = [_outcome(future) for future in primary_futures]
            transit_response, transit_error = _outcome(transit_future)

        if transit_error is not None:
            raise transit_error

        responses = [
            self._gate(idx, method, query, outcome, request_id)
            for idx, outcome in enumerate(primary_outcomes)
        ]
        # Transit goes last so its stops win duplicate conflicts and lead the output.
        responses.append(transit_response)

        merged = fold_responses(
            responses,
            query.focus_point,
            rules=self.config.dedupe,
            custom_limit=self.config.custom_result_limit,
        )
        log_event(
            self.logger,
            "merged responses",
            request_id=request_id,
            method=method,
            event="MERGE",
            status="ok",
            features_in=sum(len(r.get("features") or []) for r in responses),
            features_out=len(merged.get("features") or []),
        )
        return merged
