"""HTTP client utilities: retries, timeouts and a callback-style relay."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable, Iterable, Mapping, MutableMapping
from dataclasses import dataclass
from typing import Any, Optional, TypeVar

import requests

logger = logging.getLogger("pio_helpers.http")

DEFAULT_HEADERS = {"User-Agent": "PlatformIO"}
# Relay callers inspect the status themselves
ANY_STATUS = range(100, 600)
# Only these are resent after a transient failure
IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})

T = TypeVar("T")


@dataclass(frozen=True)
class HttpClientConfig:
    timeout_seconds: float = 15.0
    max_retries: int = 3
    backoff_initial: float = 0.35
    backoff_max: float = 5.0
    jitter_range: tuple[float, float] = (1.25, 2.25)
    retry_statuses: tuple[int, ...] = (408, 425, 429, 500, 502, 503, 504)


class HttpClient:
    def __init__(self, config: HttpClientConfig | None = None, *, session: requests.Session | None = None) -> None:
        self._config = config or HttpClientConfig()
        self._session = session or requests.Session()

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, object] | None = None,
        json: object | None = None,
        data: object | None = None,
        timeout: float | None = None,
        ok_statuses: Iterable[int] | None = None,
    ) -> requests.Response:
        attempt = 0
        backoff = self._config.backoff_initial
        timeout_value = timeout or self._config.timeout_seconds
        max_retries = self._config.max_retries if method.upper() in IDEMPOTENT_METHODS else 0

        while True:
            start = time.perf_counter()
            try:
                response = self._session.request(
                    method,
                    url,
                    headers=_clone_mapping(headers),
                    params=params,
                    json=json,
                    data=data,
                    timeout=timeout_value,
                )
            except requests.RequestException as exc:
                logger.warning(
                    "http_request_error",
                    extra={"method": method, "url": url, "attempt": attempt, "error": str(exc)},
                )
                if attempt >= max_retries:
                    raise
                _sleep(backoff, self._config)
                backoff = min(self._config.backoff_max, backoff * 2)
                attempt += 1
                continue

            duration_ms = int((time.perf_counter() - start) * 1000)
            status = response.status_code
            logger.debug(
                "http_request",
                extra={"method": method, "url": url, "status": status, "attempt": attempt, "duration_ms": duration_ms},
            )

            if _should_retry(status, attempt, max_retries, self._config):
                _sleep(backoff, self._config)
                backoff = min(self._config.backoff_max, backoff * 2)
                attempt += 1
                continue

            if ok_statuses and status in ok_statuses:
                return response

            response.raise_for_status()
            return response


def process_http_request(
    url: str,
    callback: Callable[[Optional[Exception], Optional[requests.Response], Optional[str]], T],
    *,
    method: str = "GET",
    headers: Mapping[str, str] | None = None,
    client: HttpClient | None = None,
    timeout: float | None = None,
    session: requests.Session | None = None,
    **kwargs: Any,
) -> T:
    """Relay one request and hand ``(error, response, body)`` to ``callback``.

    The ``PlatformIO`` User-Agent is sent unless ``headers`` are given. HTTP
    error statuses are not errors here; only transport failures are. Without an
    explicit ``client`` the request is sent once.
    """
    if client is None:
        client = HttpClient(HttpClientConfig(max_retries=0), session=session)
    if headers is None:
        headers = DEFAULT_HEADERS
    logger.info("process_http_request %s %s", method, url)
    try:
        response = client.request(method, url, headers=headers, timeout=timeout, ok_statuses=ANY_STATUS, **kwargs)
    except requests.RequestException as exc:
        return callback(exc, getattr(exc, "response", None), None)
    return callback(None, response, response.text)


def _should_retry(status: int, attempt: int, max_retries: int, config: HttpClientConfig) -> bool:
    return status in config.retry_statuses and attempt < max_retries


def _sleep(backoff: float, config: HttpClientConfig) -> None:
    jitter = random.uniform(*config.jitter_range)
    time.sleep(backoff * jitter)


def _clone_mapping(mapping: Mapping[str, str] | None) -> MutableMapping[str, str] | None:
    if mapping is None:
        return None
    return dict(mapping)
