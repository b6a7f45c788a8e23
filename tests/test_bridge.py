# file: tests/test_bridge.py
from __future__ import annotations

import asyncio

import pytest

from scamshield.bridge import BlockListExtensionBridge
from scamshield.container import SharedContainer
from scamshield.errors import ReloadError
from scamshield.hosts import ExtensionHost, ExtensionHostError, LocalExtensionHost, ReloadRejectedError
from scamshield.store import BlockListStore

EXTENSION_ID = "com.scamshield.app.CallDirectory"


@pytest.fixture(autouse=True)
def _no_backoff(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("scamshield.bridge.compute_backoff", lambda attempt, *, base, cap: 0.0)


class _FlakyHost(ExtensionHost):
    name = "flaky"

    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0

    async def reload_extension(self, extension_id: str) -> None:
        self.calls += 1
        if self.calls <= self.failures:
            raise ReloadRejectedError("rate limited")


class _SlowHost(ExtensionHost):
    name = "slow"

    def __init__(self, delay: float) -> None:
        self.delay = delay
        self.calls = 0

    async def reload_extension(self, extension_id: str) -> None:
        self.calls += 1
        await asyncio.sleep(self.delay)


class _GatedHost(ExtensionHost):
    name = "gated"

    def __init__(self) -> None:
        self.gate = asyncio.Event()
        self.calls = 0

    async def reload_extension(self, extension_id: str) -> None:
        self.calls += 1
        await self.gate.wait()


async def test_reload_succeeds_after_transient_failures() -> None:
    host = _FlakyHost(failures=2)
    bridge = BlockListExtensionBridge(host, extension_id=EXTENSION_ID, max_retries=2)
    outcome = await bridge.reload()
    assert outcome.ok
    assert outcome.attempts == 3
    assert outcome.error is None
    outcome.raise_for_error()


async def test_reload_retries_are_bounded_and_surface_reload_error() -> None:
    host = _FlakyHost(failures=100)
    bridge = BlockListExtensionBridge(host, extension_id=EXTENSION_ID, max_retries=1)
    outcome = await bridge.reload()
    assert not outcome.ok
    assert host.calls == 2
    assert isinstance(outcome.error, ReloadError)
    assert "rate limited" in outcome.error.reason
    with pytest.raises(ReloadError):
        outcome.raise_for_error()


async def test_reload_times_out_instead_of_hanging() -> None:
    host = _SlowHost(delay=5.0)
    bridge = BlockListExtensionBridge(
        host, extension_id=EXTENSION_ID, timeout_seconds=0.01, max_retries=0
    )
    outcome = await bridge.reload()
    assert not outcome.ok
    assert outcome.error is not None and "timed out" in outcome.error.reason


async def test_concurrent_reloads_coalesce() -> None:
    host = _SlowHost(delay=0.05)
    bridge = BlockListExtensionBridge(host, extension_id=EXTENSION_ID)
    outcomes = await asyncio.gather(*(bridge.reload() for _ in range(5)))
    assert all(o.ok for o in outcomes)
    # The first call queues a run; the other four share it before it starts.
    assert host.calls == 1
    assert sum(o.coalesced for o in outcomes) == 4


async def test_reload_issued_during_a_run_gets_a_fresh_run() -> None:
    host = _GatedHost()
    bridge = BlockListExtensionBridge(host, extension_id=EXTENSION_ID)

    first = asyncio.create_task(bridge.reload())
    while host.calls == 0:
        await asyncio.sleep(0)
    second = asyncio.create_task(bridge.reload())
    await asyncio.sleep(0)
    host.gate.set()

    assert (await first).coalesced is False
    assert (await second).coalesced is False
    assert host.calls == 2


async def test_cancelling_the_queuing_caller_does_not_cancel_coalesced_callers() -> None:
    host = _GatedHost()
    bridge = BlockListExtensionBridge(host, extension_id=EXTENSION_ID)

    running = asyncio.create_task(bridge.reload())
    while host.calls == 0:
        await asyncio.sleep(0)

    queuing = asyncio.create_task(bridge.reload())
    await asyncio.sleep(0)
    coalesced = asyncio.create_task(bridge.reload())
    await asyncio.sleep(0)

    queuing.cancel()
    host.gate.set()
    first, shared = await asyncio.gather(running, coalesced)

    assert queuing.cancelled()
    assert first.ok and not first.coalesced
    assert shared.ok and shared.coalesced
    # The queued run still happened even though the caller that queued it left.
    assert host.calls == 2


async def test_failed_reload_does_not_roll_back_store(
    store: BlockListStore, container: SharedContainer
) -> None:
    store.add(94771234567)
    bridge = BlockListExtensionBridge(
        _FlakyHost(failures=100), extension_id=EXTENSION_ID, max_retries=0
    )
    outcome = await bridge.reload()
    assert not outcome.ok
    assert store.list() == [94771234567]


async def test_local_host_applies_latest_store_snapshot(
    store: BlockListStore, container: SharedContainer
) -> None:
    host = LocalExtensionHost(container, extension_id=EXTENSION_ID)
    bridge = BlockListExtensionBridge(host, extension_id=EXTENSION_ID)

    store.add(94779999999)
    store.add(94771234567)
    assert (await bridge.reload()).ok
    assert host.applied_entries == [94771234567, 94779999999]

    store.add(94770000001)
    assert host.is_blocked(94770000001) is False
    assert (await bridge.reload()).ok
    assert host.applied_entries == [94770000001, 94771234567, 94779999999]
    assert host.invocations == 2


async def test_local_host_unknown_extension_fails(container: SharedContainer) -> None:
    host = LocalExtensionHost(container, extension_id=EXTENSION_ID)
    with pytest.raises(ExtensionHostError):
        await host.reload_extension("com.example.Other")


async def test_local_host_rate_limit_rejects_rapid_reloads(
    store: BlockListStore, container: SharedContainer
) -> None:
    host = LocalExtensionHost(container, extension_id=EXTENSION_ID, min_interval_seconds=60.0)
    await host.reload_extension(EXTENSION_ID)
    with pytest.raises(ReloadRejectedError):
        await host.reload_extension(EXTENSION_ID)
    assert host.invocations == 1
