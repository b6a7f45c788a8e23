# file: scamshield/extension.py
"""
Call-directory extension.

The provider runs in its own process (see `scamshield extension run`) each time
the host decides to invoke it. It reads the shared block list, hands each
number to the host in ascending order and signals completion exactly once.
It never writes to the store.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from scamshield.errors import ScamshieldError, StoreUnavailableError

logger = logging.getLogger(__name__)


class ProviderState(str, Enum):
    STARTED = "started"
    POPULATING = "populating"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EntryOrderError(ScamshieldError):
    """Blocking entries were not strictly increasing; the host rejects the whole request."""


class RequestAlreadyFinishedError(ScamshieldError):
    """The context was completed or cancelled more than once."""


class BlockListReader(Protocol):
    def list(self) -> list[int]:  # pragma: no cover - helper protocol
        ...


class CallDirectoryContext(ABC):
    """Host side of one extension invocation."""

    @abstractmethod
    def add_blocking_entry(self, number: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def complete_request(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def cancel_request(self, error: Exception) -> None:
        raise NotImplementedError


@dataclass
class RecordingContext(CallDirectoryContext):
    """
    Context that records entries and enforces the host contract:
    strictly increasing numbers, and a single completion signal.
    """

    entries: list[int] = field(default_factory=list)
    completed: bool = False
    error: Exception | None = None

    @property
    def finished(self) -> bool:
        return self.completed or self.error is not None

    def add_blocking_entry(self, number: int) -> None:
        if self.finished:
            raise RequestAlreadyFinishedError("Entry added after the request finished")
        if self.entries and number <= self.entries[-1]:
            raise EntryOrderError(
                f"Entry {number} is not greater than previous entry {self.entries[-1]}"
            )
        self.entries.append(number)

    def complete_request(self) -> None:
        if self.finished:
            raise RequestAlreadyFinishedError("Request already finished")
        self.completed = True

    def cancel_request(self, error: Exception) -> None:
        if self.finished:
            raise RequestAlreadyFinishedError("Request already finished")
        self.error = error

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": ProviderState.COMPLETED.value if self.completed else ProviderState.CANCELLED.value,
            "entries": list(self.entries),
            "error": None if self.error is None else f"{type(self.error).__name__}: {self.error}",
        }


class CallDirectoryProvider:
    """
    Single-shot populate-then-complete task.

    `begin_request` moves STARTED -> POPULATING -> COMPLETED, or to CANCELLED
    when the block list cannot be read.
    """

    def __init__(self, store: BlockListReader) -> None:
        self._store = store
        self.state = ProviderState.STARTED

    def begin_request(self, context: CallDirectoryContext) -> ProviderState:
        if self.state is not ProviderState.STARTED:
            raise RequestAlreadyFinishedError(f"Provider already ran (state={self.state.value})")

        self.state = ProviderState.POPULATING
        try:
            numbers = self._store.list()
        except (StoreUnavailableError, OSError) as exc:
            logger.warning("Block list unavailable; cancelling request: %s", exc)
            self.state = ProviderState.CANCELLED
            context.cancel_request(exc)
            return self.state

        try:
            for number in numbers:
                context.add_blocking_entry(number)
        except EntryOrderError as exc:
            logger.error("Host rejected entry sequence: %s", exc)
            self.state = ProviderState.CANCELLED
            context.cancel_request(exc)
            return self.state

        context.complete_request()
        self.state = ProviderState.COMPLETED
        logger.info("Call directory populated", extra={"entries": len(numbers)})
        return self.state
