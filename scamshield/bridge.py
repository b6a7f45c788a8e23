# file: scamshield/bridge.py
"""
Reload coordination between the main app and the call-directory extension.

The extension does not observe the store live: after every successful
mutation the app must ask the host to re-invoke it. Reloads are decoupled
from the mutation. A failed reload never rolls the store back; the externally
visible block list is merely stale until a later reload succeeds.

Concurrent reloads for one extension coalesce: a call that arrives while a run
is queued (not yet started) shares that run. Callers must not assume one host
invocation per call.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from scamshield.errors import ReloadError
from scamshield.hosts import ExtensionHost
from scamshield.net.http import compute_backoff

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION_ID = "com.scamshield.app.CallDirectory"


@dataclass(frozen=True, slots=True)
class ReloadRequest:
    extension_id: str
    requested_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))


@dataclass(frozen=True, slots=True)
class ReloadOutcome:
    request: ReloadRequest
    ok: bool
    attempts: int
    error: ReloadError | None = None
    coalesced: bool = False

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


def _retrieve(fut: "asyncio.Future[ReloadOutcome]") -> None:
    # Mark exceptions as retrieved when every caller was cancelled.
    if not fut.cancelled():
        fut.exception()


class BlockListExtensionBridge:
    def __init__(
        self,
        host: ExtensionHost,
        *,
        extension_id: str = DEFAULT_EXTENSION_ID,
        timeout_seconds: float = 10.0,
        max_retries: int = 2,
        backoff_base_seconds: float = 0.5,
        backoff_max_seconds: float = 8.0,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._host = host
        self.extension_id = extension_id
        self._timeout = timeout_seconds
        self._max_retries = max_retries
        self._backoff_base = backoff_base_seconds
        self._backoff_max = backoff_max_seconds
        self._locks: dict[str, asyncio.Lock] = {}
        self._queued: dict[str, asyncio.Task[ReloadOutcome]] = {}

    async def reload(self, extension_id: str | None = None) -> ReloadOutcome:
        """
        Ask the host to re-invoke the extension.

        Returns an outcome; failures are reported through `outcome.error`
        (a `ReloadError`) rather than raised. The run itself is owned by the
        bridge, so cancelling one caller never cancels a run other callers
        are waiting on.
        """

        ext = extension_id or self.extension_id
        request = ReloadRequest(extension_id=ext)

        queued = self._queued.get(ext)
        if queued is not None:
            logger.debug("Coalescing reload of %s into queued run", ext)
            outcome = await asyncio.shield(queued)
            return dataclasses.replace(outcome, request=request, coalesced=True)

        run = asyncio.ensure_future(self._locked_run(request))
        run.add_done_callback(_retrieve)
        self._queued[ext] = run
        return await asyncio.shield(run)

    async def _locked_run(self, request: ReloadRequest) -> ReloadOutcome:
        ext = request.extension_id
        me = asyncio.current_task()
        lock = self._locks.setdefault(ext, asyncio.Lock())
        try:
            async with lock:
                # From here on the run has started; later calls queue a new one.
                if self._queued.get(ext) is me:
                    del self._queued[ext]
                return await self._run(request)
        finally:
            if self._queued.get(ext) is me:
                del self._queued[ext]

    async def _run(self, request: ReloadRequest) -> ReloadOutcome:
        ext = request.extension_id
        reason = "no attempt made"
        attempts = self._max_retries + 1

        for attempt in range(attempts):
            try:
                await asyncio.wait_for(self._host.reload_extension(ext), timeout=self._timeout)
            except asyncio.TimeoutError:
                reason = f"timed out after {self._timeout:g}s"
            except Exception as exc:
                reason = f"{type(exc).__name__}: {exc}"
            else:
                logger.info("Reloaded %s", ext, extra={"attempts": attempt + 1})
                return ReloadOutcome(request=request, ok=True, attempts=attempt + 1)

            logger.warning("Reload of %s failed (attempt %d/%d): %s", ext, attempt + 1, attempts, reason)
            if attempt < attempts - 1:
                await asyncio.sleep(
                    compute_backoff(attempt, base=self._backoff_base, cap=self._backoff_max)
                )

        error = ReloadError(ext, reason, attempts=attempts)
        logger.error("%s", error)
        return ReloadOutcome(request=request, ok=False, attempts=attempts, error=error)
