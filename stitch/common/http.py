"""Shared HTTP transport for geocoder backends."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from types import TracebackType
from typing import Any
from urllib.parse import urlparse

import requests
from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from stitch.common.constants import USER_AGENT
from stitch.common.errors import BackendError
from stitch.common.logging import default_logger, log_event

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 5.0
    read: float = 15.0


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    multiplier: float = 0.5
    max_wait: float = 5.0


class HttpRequestError(BackendError):
    error_code = "HTTP_ERROR"


class RetryableHttpError(HttpRequestError):
    pass


class TokenBucket:
    def __init__(self, rate_per_sec: float, capacity: float | None = None) -> None:
        self.rate_per_sec = rate_per_sec
        self.capacity = capacity if capacity is not None else rate_per_sec
        self.tokens = self.capacity
        self.updated_at = time.monotonic()
        self.lock = threading.Lock()

    def acquire(self, tokens: float = 1.0) -> None:
        while True:
            with self.lock:
                now = time.monotonic()
                self.tokens = min(self.capacity, self.tokens + (now - self.updated_at) * self.rate_per_sec)
                self.updated_at = now
                if self.tokens >= tokens:
                    self.tokens -= tokens
                    return
                wait_for = max((tokens - self.tokens) / self.rate_per_sec, 0.01)
            time.sleep(wait_for)


class HostRateLimiter:
    """One token bucket per host; the first caller's rate sticks for that host."""

    def __init__(self) -> None:
        self.buckets: dict[str, TokenBucket] = {}
        self.lock = threading.Lock()

    def acquire(self, host: str, rate_per_sec: float, tokens: float = 1.0) -> None:
        with self.lock:
            bucket = self.buckets.get(host)
            if bucket is None:
                bucket = TokenBucket(rate_per_sec=rate_per_sec, capacity=max(rate_per_sec, 1.0))
                self.buckets[host] = bucket
        bucket.acquire(tokens=tokens)


class HttpClient:
    """GET-only JSON client shared by every backend of a Stitcher.

    Retries connection failures and retryable statuses with jittered
    exponential backoff; every other failure surfaces as ``HttpRequestError``.
    """

    def __init__(
        self,
        *,
        timeout: TimeoutConfig | None = None,
        retry: RetryConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.timeout = timeout or TimeoutConfig()
        self.retry = retry or RetryConfig()
        self.logger = logger or default_logger()
        self.session = requests.Session()
        self.limiter = HostRateLimiter()

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _headers(self, headers: dict[str, str] | None) -> dict[str, str]:
        out = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        if headers:
            out.update(headers)
        return out

    def _get_json_once(
        self,
        url: str,
        host: str,
        params: dict[str, Any] | None,
        headers: dict[str, str] | None,
        timeout: TimeoutConfig,
        rate_limit_per_sec: float | None,
    ) -> Any:
        if rate_limit_per_sec is not None and rate_limit_per_sec > 0:
            self.limiter.acquire(host, rate_limit_per_sec)

        # Messages carry the host only; query strings hold api keys.
        try:
            response = self.session.request(
                method="GET",
                url=url,
                params=params,
                headers=self._headers(headers),
                timeout=(timeout.connect, timeout.read),
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise RetryableHttpError(f"Connection failure for {host}: {type(exc).__name__}") from exc
        except requests.RequestException as exc:
            raise HttpRequestError(f"Request failure for {host}: {type(exc).__name__}") from exc

        status = response.status_code
        if status in RETRYABLE_STATUS_CODES:
            raise RetryableHttpError(f"Retryable HTTP status {status} from {host}")
        if status >= 400:
            raise HttpRequestError(f"HTTP status {status} from {host}")

        try:
            return response.json()
        except ValueError as exc:
            raise HttpRequestError(f"Invalid JSON payload from {host}") from exc

    def _log_retry(self, backend: str | None, host: str):
        def _before_sleep(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome is not None else None
            log_event(
                self.logger,
                f"retrying {host}: {exc}",
                level=logging.WARNING,
                backend=backend,
                event="HTTP_RETRY",
                status="retry",
                attempt=state.attempt_number,
                error_code=getattr(exc, "error_code", None),
            )

        return _before_sleep

    def get_json(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
        rate_limit_per_sec: float | None = None,
        backend: str | None = None,
    ) -> Any:
        host = urlparse(url).netloc
        retrying = Retrying(
            stop=stop_after_attempt(self.retry.max_attempts),
            wait=wait_exponential_jitter(initial=self.retry.multiplier, max=self.retry.max_wait, jitter=0.5),
            retry=retry_if_exception_type(RetryableHttpError),
            before_sleep=self._log_retry(backend, host),
            reraise=True,
        )
        return retrying(
            self._get_json_once,
            url,
            host,
            params,
            headers,
            timeout or self.timeout,
            rate_limit_per_sec,
        )
