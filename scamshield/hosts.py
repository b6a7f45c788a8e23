# file: scamshield/hosts.py
"""
Extension hosts: the OS side of the reload protocol.

A host receives a reload request for an extension identifier and invokes the
call-directory extension. Hosts raise `ExtensionHostError` when they decline or
fail; `BlockListExtensionBridge` turns that into a `ReloadError` outcome.

- `LocalExtensionHost` runs the provider in a worker thread against a
  read-only view of the shared store. Used in tests and in single-process runs.
- `SubprocessExtensionHost` launches the extension entry point as a separate
  process, so the extension only ever sees what was durably written.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
import time
from abc import ABC, abstractmethod
from typing import Sequence

from scamshield.container import SharedContainer
from scamshield.extension import CallDirectoryProvider, RecordingContext
from scamshield.errors import ScamshieldError
from scamshield.store import DEFAULT_COLLECTION_KEY, BlockListStore

logger = logging.getLogger(__name__)


class ExtensionHostError(ScamshieldError):
    """The host could not (or would not) invoke the extension."""


class ReloadRejectedError(ExtensionHostError):
    """The host declined the reload by policy (e.g. rate limiting)."""


class ExtensionHost(ABC):
    """Base interface for extension hosts."""

    name: str

    @abstractmethod
    async def reload_extension(self, extension_id: str) -> None:
        """Invoke the extension once; raise `ExtensionHostError` on failure."""

        raise NotImplementedError


class LocalExtensionHost(ExtensionHost):
    """
    In-process host.

    Keeps the entries applied by the last completed invocation, which is what
    the telephony layer would block.
    """

    name = "local"

    def __init__(
        self,
        container: SharedContainer,
        *,
        extension_id: str,
        key: str = DEFAULT_COLLECTION_KEY,
        min_interval_seconds: float = 0.0,
    ) -> None:
        self._container = container
        self._extension_id = extension_id
        self._key = key
        self._min_interval = min_interval_seconds
        self._last_invoked: float | None = None
        self.invocations = 0
        self.applied_entries: list[int] = []

    def is_blocked(self, number: int) -> bool:
        return number in self.applied_entries

    async def reload_extension(self, extension_id: str) -> None:
        if extension_id != self._extension_id:
            raise ExtensionHostError(f"No call-directory extension named {extension_id!r}")

        now = time.monotonic()
        if (
            self._min_interval > 0
            and self._last_invoked is not None
            and now - self._last_invoked < self._min_interval
        ):
            raise ReloadRejectedError("Reload rate limit exceeded")
        self._last_invoked = now
        self.invocations += 1

        store = BlockListStore.open_readonly(self._container, key=self._key)
        provider = CallDirectoryProvider(store)
        context = RecordingContext()
        await asyncio.to_thread(provider.begin_request, context)

        if not context.completed:
            raise ExtensionHostError(f"Extension cancelled the request: {context.error}")
        self.applied_entries = list(context.entries)
        logger.debug("Applied %d blocking entries", len(self.applied_entries))


def default_extension_command(config_path: str | None = None) -> list[str]:
    cmd = [sys.executable, "-m", "scamshield"]
    if config_path:
        cmd += ["--config", config_path]
    return cmd + ["extension", "run"]


class SubprocessExtensionHost(ExtensionHost):
    """
    Host that runs the extension as its own process.

    The child must print a JSON object `{state, entries, error}` on stdout and
    exit with 0 when the request completed.
    """

    name = "subprocess"

    def __init__(self, command: Sequence[str] | None = None) -> None:
        self._command = list(command) if command is not None else default_extension_command()
        self.applied_entries: list[int] = []

    async def reload_extension(self, extension_id: str) -> None:
        try:
            proc = await asyncio.create_subprocess_exec(
                *self._command,
                "--extension-id",
                extension_id,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ExtensionHostError(f"Cannot launch extension process: {exc}") from exc

        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise

        try:
            result = json.loads(stdout.decode("utf-8") or "{}")
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ExtensionHostError(f"Extension produced unreadable output: {exc}") from exc

        if proc.returncode != 0 or not isinstance(result, dict) or result.get("state") != "completed":
            detail = result.get("error") if isinstance(result, dict) else None
            detail = detail or stderr.decode("utf-8", errors="replace").strip()
            raise ExtensionHostError(
                f"Extension exited with {proc.returncode}: {detail or 'no details'}"
            )

        entries = result.get("entries")
        self.applied_entries = [int(n) for n in entries] if isinstance(entries, list) else []
