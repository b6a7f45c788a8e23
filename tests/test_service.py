# file: tests/test_service.py
from __future__ import annotations

import asyncio

import httpx
import pytest

from scamshield.bridge import BlockListExtensionBridge
from scamshield.container import SharedContainer
from scamshield.errors import InvalidNumberError
from scamshield.hosts import ExtensionHost, LocalExtensionHost, ReloadRejectedError
from scamshield.net.http import HttpClientConfig
from scamshield.reputation.client import NumberIntelligenceClient
from scamshield.service import BlockingPolicy, BlockingService, BlockResult, BlockStatus
from scamshield.store import BlockListStore

EXTENSION_ID = "com.scamshield.app.CallDirectory"

REPORTS = {
    "94771234567": {"number": "94771234567", "risk_score": 90, "no_of_times_reported": 14},
    "94775555555": {"number": "94775555555", "risk_score": 5, "no_of_times_reported": 0},
}


def _report_api(request: httpx.Request) -> httpx.Response:
    number = request.url.path.rsplit("/", 1)[-1]
    if number in REPORTS:
        return httpx.Response(200, json=REPORTS[number])
    return httpx.Response(404, json={"message": "Number not found in reports"})


class _RejectingHost(ExtensionHost):
    name = "rejecting"

    async def reload_extension(self, extension_id: str) -> None:
        raise ReloadRejectedError("rate limited")


@pytest.fixture
def host(container: SharedContainer) -> LocalExtensionHost:
    return LocalExtensionHost(container, extension_id=EXTENSION_ID)


@pytest.fixture
def bridge(host: LocalExtensionHost) -> BlockListExtensionBridge:
    return BlockListExtensionBridge(host, extension_id=EXTENSION_ID, max_retries=0)


async def test_block_after_lookup_is_visible_to_next_extension_invocation(
    store: BlockListStore, bridge: BlockListExtensionBridge, host: LocalExtensionHost
) -> None:
    store.add(94779999999)
    async with httpx.AsyncClient(transport=httpx.MockTransport(_report_api)) as http:
        intel = NumberIntelligenceClient(
            client=http, base_url="http://reports.test", http_config=HttpClientConfig(max_retries=0)
        )
        service = BlockingService(store, bridge, intel=intel)
        result = await service.block("+94 77 123 4567")

    assert result.status is BlockStatus.BLOCKED
    assert result.report is not None and result.report.risk_score == 90
    assert result.reload is not None and result.reload.ok
    assert host.applied_entries == [94771234567, 94779999999]
    assert host.is_blocked(94771234567)


async def test_unknown_number_is_not_blocked_and_flow_continues(
    store: BlockListStore, bridge: BlockListExtensionBridge, host: LocalExtensionHost
) -> None:
    async with httpx.AsyncClient(transport=httpx.MockTransport(_report_api)) as http:
        intel = NumberIntelligenceClient(
            client=http, base_url="http://reports.test", http_config=HttpClientConfig(max_retries=0)
        )
        service = BlockingService(store, bridge, intel=intel)
        unknown = await service.block("94770000000")
        low = await service.block("94775555555")
        forced = await service.block("94770000000", force=True)

    assert unknown.status is BlockStatus.SKIPPED_LOW_RISK
    assert unknown.report is not None and unknown.report.risk_score == 0
    assert low.status is BlockStatus.SKIPPED_LOW_RISK
    assert forced.status is BlockStatus.BLOCKED
    assert store.list() == [94770000000]
    assert host.invocations == 1


async def test_lookup_failure_does_not_block(
    store: BlockListStore, bridge: BlockListExtensionBridge
) -> None:
    def down(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(down)) as http:
        intel = NumberIntelligenceClient(
            client=http, base_url="http://reports.test", http_config=HttpClientConfig(max_retries=0)
        )
        service = BlockingService(store, bridge, intel=intel)
        result = await service.block("94771234567")

    assert result.status is BlockStatus.LOOKUP_FAILED
    assert store.list() == []


async def test_block_is_idempotent_and_skips_reload(
    store: BlockListStore, bridge: BlockListExtensionBridge, host: LocalExtensionHost
) -> None:
    service = BlockingService(store, bridge)
    first = await service.block(94771234567)
    second = await service.block("94771234567")
    assert first.status is BlockStatus.BLOCKED
    assert second.status is BlockStatus.ALREADY_BLOCKED
    assert second.reload is None
    assert store.list() == [94771234567]
    assert host.invocations == 1


async def test_per_number_locks_are_released_after_use(
    store: BlockListStore, bridge: BlockListExtensionBridge
) -> None:
    service = BlockingService(store, bridge)

    await asyncio.gather(*(service.block(94770000000 + i) for i in range(20)))
    await asyncio.gather(
        service.unblock(94770000000),
        service.block(94770000000),
        service.unblock(94770000000),
    )
    with pytest.raises(InvalidNumberError):
        await service.block("not a number")

    assert service._locks == {}
    assert len(store.list()) == 19


async def test_failed_reload_keeps_mutation_and_reports_pending(store: BlockListStore) -> None:
    bridge = BlockListExtensionBridge(_RejectingHost(), extension_id=EXTENSION_ID, max_retries=0)
    service = BlockingService(store, bridge)
    result = await service.block(94771234567)
    assert result.status is BlockStatus.BLOCKED_PENDING_RELOAD
    assert "take effect shortly" in result.message
    assert store.list() == [94771234567]


async def test_unblock_round_trip(
    store: BlockListStore, bridge: BlockListExtensionBridge, host: LocalExtensionHost
) -> None:
    service = BlockingService(store, bridge)
    await service.block(94771234567)
    result = await service.unblock("+94 77 123 4567")
    assert result.status is BlockStatus.UNBLOCKED
    assert await service.blocked_numbers() == []
    assert host.applied_entries == []

    missing = await service.unblock(94771234567)
    assert missing.status is BlockStatus.NOT_BLOCKED


async def test_invalid_number_is_rejected(
    store: BlockListStore, bridge: BlockListExtensionBridge
) -> None:
    service = BlockingService(store, bridge)
    with pytest.raises(InvalidNumberError):
        await service.block("not a number")


async def test_operations_on_one_number_complete_in_issue_order(
    store: BlockListStore, bridge: BlockListExtensionBridge
) -> None:
    updates: list[BlockResult] = []
    service = BlockingService(store, bridge, on_update=updates.append)

    await asyncio.gather(
        service.block(94771234567),
        service.unblock(94771234567),
        service.block(94771234567),
    )

    assert [u.status for u in updates] == [
        BlockStatus.BLOCKED,
        BlockStatus.UNBLOCKED,
        BlockStatus.BLOCKED,
    ]
    assert store.list() == [94771234567]


async def test_policy_threshold_is_applied(
    store: BlockListStore, bridge: BlockListExtensionBridge
) -> None:
    async with httpx.AsyncClient(transport=httpx.MockTransport(_report_api)) as http:
        intel = NumberIntelligenceClient(
            client=http, base_url="http://reports.test", http_config=HttpClientConfig(max_retries=0)
        )
        service = BlockingService(store, bridge, intel=intel, policy=BlockingPolicy(threshold=5))
        result = await service.block("94775555555")

    assert result.status is BlockStatus.BLOCKED
    assert result.decision is not None and result.decision.score == 5
