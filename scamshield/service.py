# file: scamshield/service.py
"""
Block/unblock flow used by the main app.

    lookup (optional) -> decision -> store mutation (durable) -> reload signal

Operations on the same number are applied in the order they were issued;
operations on different numbers run independently.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Callable, Mapping

from scamshield.bridge import BlockListExtensionBridge, ReloadOutcome
from scamshield.core.parser import display_number, normalize_number
from scamshield.errors import NumberLookupError
from scamshield.reputation.client import NumberIntelligenceClient
from scamshield.reputation.decision import BlockDecision, decide_block
from scamshield.reputation.report import NumberReport
from scamshield.store import AddOutcome, BlockListStore, RemoveOutcome

logger = logging.getLogger(__name__)


class BlockStatus(str, Enum):
    BLOCKED = "blocked"
    ALREADY_BLOCKED = "already_blocked"
    BLOCKED_PENDING_RELOAD = "blocked_pending_reload"
    SKIPPED_LOW_RISK = "skipped_low_risk"
    LOOKUP_FAILED = "lookup_failed"
    UNBLOCKED = "unblocked"
    NOT_BLOCKED = "not_blocked"
    UNBLOCKED_PENDING_RELOAD = "unblocked_pending_reload"


_MESSAGES: dict[BlockStatus, str] = {
    BlockStatus.BLOCKED: "{display} is now blocked.",
    BlockStatus.ALREADY_BLOCKED: "{display} is already blocked.",
    BlockStatus.BLOCKED_PENDING_RELOAD: "{display} was blocked; the change will take effect shortly.",
    BlockStatus.SKIPPED_LOW_RISK: "{display} was not blocked: risk score below threshold.",
    BlockStatus.LOOKUP_FAILED: "{display} was not blocked: could not check its reports.",
    BlockStatus.UNBLOCKED: "{display} is no longer blocked.",
    BlockStatus.NOT_BLOCKED: "{display} was not blocked.",
    BlockStatus.UNBLOCKED_PENDING_RELOAD: "{display} was unblocked; the change will take effect shortly.",
}


@dataclass(frozen=True, slots=True)
class BlockResult:
    number: int
    status: BlockStatus
    report: NumberReport | None = None
    decision: BlockDecision | None = None
    reload: ReloadOutcome | None = None
    detail: str = ""

    @property
    def message(self) -> str:
        return _MESSAGES[self.status].format(display=display_number(self.number))

    def to_dict(self) -> dict[str, Any]:
        return {
            "number": self.number,
            "status": self.status.value,
            "message": self.message,
            "report": None if self.report is None else self.report.to_dict(),
            "decision": None if self.decision is None else self.decision.to_dict(),
            "reload": None
            if self.reload is None
            else {
                "ok": self.reload.ok,
                "attempts": self.reload.attempts,
                "coalesced": self.reload.coalesced,
                "error": None if self.reload.error is None else str(self.reload.error),
            },
            "detail": self.detail,
        }


@dataclass
class BlockingPolicy:
    threshold: int = 70
    weights: Mapping[str, float] = field(default_factory=dict)


@dataclass
class _NumberLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0



class BlockingService:
    def __init__(
        self,
        store: BlockListStore,
        bridge: BlockListExtensionBridge,
        *,
        intel: NumberIntelligenceClient | None = None,
        policy: BlockingPolicy | None = None,
        on_update: Callable[[BlockResult], None] | None = None,
    ) -> None:
        self._store = store
        self._bridge = bridge
        self._intel = intel
        self._policy = policy or BlockingPolicy()
        self._on_update = on_update
        self._locks: dict[int, _NumberLock] = {}

    @contextlib.asynccontextmanager
    async def _number_lock(self, number: int) -> AsyncIterator[None]:
        entry = self._locks.get(number)
        if entry is None:
            entry = self._locks[number] = _NumberLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[number]

    def _publish(self, result: BlockResult) -> BlockResult:
        if self._on_update is not None:
            self._on_update(result)
        return result

    async def block(
        self, number: str | int, *, force: bool = False, consult_intel: bool = True
    ) -> BlockResult:
        """
        Block a number.

        With an intelligence client and `consult_intel`, the number is only
        blocked when its report crosses the policy threshold, unless `force`.
        An unknown number (404) counts as zero risk.
        """

        value = normalize_number(number)
        async with self._number_lock(value):
            report: NumberReport | None = None
            decision: BlockDecision | None = None

            if self._intel is not None and consult_intel:
                try:
                    report = await self._intel.lookup_or_empty(value)
                except NumberLookupError as exc:
                    logger.warning("Lookup for %s failed: %s", value, exc)
                    if not force:
                        return self._publish(
                            BlockResult(value, BlockStatus.LOOKUP_FAILED, detail=str(exc))
                        )

                if report is not None:
                    decision = decide_block(
                        report, threshold=self._policy.threshold, weights=self._policy.weights
                    )
                    if not decision.should_block and not force:
                        return self._publish(
                            BlockResult(
                                value, BlockStatus.SKIPPED_LOW_RISK, report=report, decision=decision
                            )
                        )

            outcome = await asyncio.to_thread(self._store.add, value)
            if outcome is AddOutcome.ALREADY_PRESENT:
                return self._publish(
                    BlockResult(value, BlockStatus.ALREADY_BLOCKED, report=report, decision=decision)
                )

            reload = await self._bridge.reload()
            status = BlockStatus.BLOCKED if reload.ok else BlockStatus.BLOCKED_PENDING_RELOAD
            return self._publish(
                BlockResult(value, status, report=report, decision=decision, reload=reload)
            )

    async def unblock(self, number: str | int) -> BlockResult:
        value = normalize_number(number)
        async with self._number_lock(value):
            outcome = await asyncio.to_thread(self._store.remove, value)
            if outcome is RemoveOutcome.NOT_PRESENT:
                return self._publish(BlockResult(value, BlockStatus.NOT_BLOCKED))

            reload = await self._bridge.reload()
            status = BlockStatus.UNBLOCKED if reload.ok else BlockStatus.UNBLOCKED_PENDING_RELOAD
            return self._publish(BlockResult(value, status, reload=reload))

    async def blocked_numbers(self) -> list[int]:
        return await asyncio.to_thread(self._store.list)
