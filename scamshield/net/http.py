# file: scamshield/net/http.py
"""
Async HTTP utilities (httpx) with retries, exponential backoff, and per-host rate limiting.

Every call to the report API goes through `request_with_retries` so that lookups
stay cancellable and never block the caller's event loop.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, cast
from urllib.parse import urlparse

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


def _host_for_url(url: str) -> str:
    parsed = urlparse(url)
    return parsed.netloc or parsed.path


class PerHostRateLimiter:
    """Enforce a minimum interval between requests to the same host."""

    def __init__(self, *, rate_per_second: float = 1.0) -> None:
        self._min_interval = 0.0 if rate_per_second <= 0 else (1.0 / rate_per_second)
        self._locks: dict[str, asyncio.Lock] = {}
        self._next_allowed: dict[str, float] = {}

    async def wait(self, host: str) -> None:
        if self._min_interval <= 0:
            return

        lock = self._locks.setdefault(host, asyncio.Lock())
        async with lock:
            now = time.monotonic()
            next_allowed = self._next_allowed.get(host, now)
            if next_allowed > now:
                await asyncio.sleep(next_allowed - now)
                now = next_allowed
            self._next_allowed[host] = now + self._min_interval


@dataclass(frozen=True, slots=True)
class HttpClientConfig:
    timeout_seconds: float = 10.0
    max_retries: int = 2
    backoff_base_seconds: float = 0.5
    backoff_max_seconds: float = 8.0
    rate_limit_per_host_per_second: float = 0.0
    user_agent: str = "scamshield/0.1"


@asynccontextmanager
async def build_async_client(
    config: HttpClientConfig, *, transport: httpx.AsyncBaseTransport | None = None
) -> AsyncIterator[httpx.AsyncClient]:
    timeout = httpx.Timeout(config.timeout_seconds)
    headers = {"User-Agent": config.user_agent, "Accept": "application/json"}
    async with httpx.AsyncClient(
        timeout=timeout, headers=headers, follow_redirects=True, transport=transport
    ) as client:
        yield client


def compute_backoff(attempt: int, *, base: float, cap: float) -> float:
    """Exponential backoff for `attempt` (0-based) with +/-20% jitter."""

    raw = min(cap, base * (2**attempt))
    return float(raw * random.uniform(0.8, 1.2))


def _retry_after_seconds(resp: httpx.Response) -> float | None:
    value = resp.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


async def request_with_retries(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    config: HttpClientConfig,
    rate_limiter: PerHostRateLimiter | None = None,
    **kwargs: Any,
) -> httpx.Response:
    """
    Make an HTTP request with bounded retries and backoff.

    Retries on transport errors and on HTTP 429/5xx. Any other error status is
    raised immediately as `httpx.HTTPStatusError` (a 404 is an answer, not a
    transient failure).
    """

    if config.max_retries < 0:
        raise ValueError("max_retries must be >= 0")

    host = _host_for_url(url)

    for attempt in range(config.max_retries + 1):
        if rate_limiter is not None:
            await rate_limiter.wait(host)

        try:
            resp = await client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            if attempt >= config.max_retries:
                raise
            logger.debug("%s %s failed (%s); retrying", method, url, exc)
            await asyncio.sleep(
                compute_backoff(
                    attempt, base=config.backoff_base_seconds, cap=config.backoff_max_seconds
                )
            )
            continue

        if resp.status_code in RETRYABLE_STATUS and attempt < config.max_retries:
            sleep_for = _retry_after_seconds(resp)
            if sleep_for is None:
                sleep_for = compute_backoff(
                    attempt, base=config.backoff_base_seconds, cap=config.backoff_max_seconds
                )
            await resp.aread()
            logger.debug("%s %s returned %s; retrying in %.2fs", method, url, resp.status_code, sleep_for)
            await asyncio.sleep(sleep_for)
            continue

        resp.raise_for_status()
        return resp

    raise RuntimeError("request_with_retries: exhausted attempts without a response")


def _json_object(resp: httpx.Response) -> dict[str, Any]:
    data = resp.json()
    if not isinstance(data, dict):
        raise ValueError("Expected a JSON object at the top level")
    return cast(dict[str, Any], data)


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    config: HttpClientConfig,
    rate_limiter: PerHostRateLimiter | None = None,
    params: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """GET a JSON object using `request_with_retries`."""

    resp = await request_with_retries(
        client, "GET", url, config=config, rate_limiter=rate_limiter, params=params
    )
    return _json_object(resp)


async def post_json(
    client: httpx.AsyncClient,
    url: str,
    payload: dict[str, Any],
    *,
    config: HttpClientConfig,
    rate_limiter: PerHostRateLimiter | None = None,
) -> dict[str, Any]:
    """POST a JSON body and return the JSON object the server answers with."""

    resp = await request_with_retries(
        client, "POST", url, config=config, rate_limiter=rate_limiter, json=payload
    )
    return _json_object(resp)
