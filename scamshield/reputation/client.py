# file: scamshield/reputation/client.py
"""
Client for the scam-report API.

Endpoints consumed:
    GET  /report/{number}  -> {number, risk_score, no_of_times_reported}; 404 if unknown
    POST /reportCall       -> {message, report}

The client never touches the block list; callers decide whether a report
justifies blocking (see `scamshield.reputation.decision`).
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote, urlparse

import httpx

from scamshield.core.parser import sanitize_digits
from scamshield.errors import (
    InvalidEndpointError,
    InvalidNumberError,
    LookupDecodeError,
    LookupNetworkError,
    NumberNotFoundError,
)
from scamshield.net.http import (
    HttpClientConfig,
    PerHostRateLimiter,
    get_json,
    post_json,
)
from scamshield.reputation.report import CallReport, NumberReport

logger = logging.getLogger(__name__)


def _validate_base_url(base_url: str) -> str:
    parsed = urlparse(base_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidEndpointError(f"Invalid report API URL: {base_url!r}")
    return base_url.rstrip("/")


class NumberIntelligenceClient:
    """Async lookups against the report API, sharing one httpx client."""

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        base_url: str,
        http_config: HttpClientConfig,
        rate_limiter: PerHostRateLimiter | None = None,
    ) -> None:
        self._client = client
        self._base_url = base_url
        self._http_config = http_config
        self._rate_limiter = rate_limiter

    def _url(self, path: str) -> str:
        return f"{_validate_base_url(self._base_url)}/{path.lstrip('/')}"

    async def lookup(self, number: str | int) -> NumberReport:
        """
        Fetch the risk report for a number.

        Raises:
            InvalidNumberError: no digits in `number`.
            InvalidEndpointError: bad base URL.
            NumberNotFoundError: the server has no record (HTTP 404).
            LookupNetworkError: transport errors or unexpected HTTP status.
            LookupDecodeError: response is not a valid report.
        """

        digits = sanitize_digits(str(number))
        if not digits:
            raise InvalidNumberError(f"Not a phone number: {number!r}")
        url = self._url(f"report/{quote(digits, safe='')}")

        try:
            payload = await get_json(
                self._client, url, config=self._http_config, rate_limiter=self._rate_limiter
            )
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                raise NumberNotFoundError(digits) from exc
            raise LookupNetworkError(
                f"Report API returned HTTP {exc.response.status_code} for {digits}"
            ) from exc
        except httpx.InvalidURL as exc:
            raise InvalidEndpointError(str(exc)) from exc
        except httpx.HTTPError as exc:
            raise LookupNetworkError(f"{type(exc).__name__}: {exc}") from exc
        except ValueError as exc:
            raise LookupDecodeError(f"Report API returned invalid JSON: {exc}") from exc

        try:
            report = NumberReport.from_payload(payload)
        except ValueError as exc:
            raise LookupDecodeError(f"Unexpected report payload: {exc}") from exc

        logger.debug(
            "Lookup %s: risk=%s reported=%s", digits, report.risk_score, report.times_reported
        )
        return report

    async def lookup_or_empty(self, number: str | int) -> NumberReport:
        """Like `lookup`, but an unknown number yields a zero-risk report."""

        try:
            return await self.lookup(number)
        except NumberNotFoundError as exc:
            logger.info("No reports for %s; treating as zero risk", exc.number)
            return NumberReport.empty(exc.number)

    async def report_call(self, report: CallReport) -> dict[str, Any]:
        """Submit a call report; returns the server's `{message, report}` answer."""

        url = self._url("reportCall")
        try:
            return await post_json(
                self._client,
                url,
                report.to_payload(),
                config=self._http_config,
                rate_limiter=self._rate_limiter,
            )
        except httpx.HTTPStatusError as exc:
            message = ""
            try:
                body = exc.response.json()
                if isinstance(body, dict):
                    message = str(body.get("message") or "")
            except ValueError:
                pass
            raise LookupNetworkError(
                f"reportCall rejected (HTTP {exc.response.status_code}) {message}".strip()
            ) from exc
        except httpx.InvalidURL as exc:
            raise InvalidEndpointError(str(exc)) from exc
        except httpx.HTTPError as exc:
            raise LookupNetworkError(f"{type(exc).__name__}: {exc}") from exc
        except ValueError as exc:
            raise LookupDecodeError(f"reportCall returned invalid JSON: {exc}") from exc
