# file: scamshield/store.py
"""
Durable, process-shared block-list store (SQLite).

The block list is a single named collection (default key "BlockedNumbers")
whose value is the complete, sorted JSON array of blocked numbers. Every
mutation rewrites the whole row inside one `BEGIN IMMEDIATE` transaction, so a
reader in another process sees either the previous or the next snapshot and a
crash can never leave a partially written list behind.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import closing
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from scamshield.container import SharedContainer
from scamshield.core.parser import INT64_MAX, normalize_number
from scamshield.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION_KEY = "BlockedNumbers"


class AddOutcome(str, Enum):
    ADDED = "added"
    ALREADY_PRESENT = "already_present"


class RemoveOutcome(str, Enum):
    REMOVED = "removed"
    NOT_PRESENT = "not_present"


def _decode_numbers(value_json: str) -> list[int]:
    raw = json.loads(value_json)
    if not isinstance(raw, list):
        raise ValueError("collection value must be a JSON array")
    numbers: set[int] = set()
    for item in raw:
        if isinstance(item, bool) or not isinstance(item, int):
            raise ValueError(f"non-integer entry in collection: {item!r}")
        if item < 0 or item > INT64_MAX:
            raise ValueError(f"entry out of 64-bit range: {item}")
        numbers.add(item)
    return sorted(numbers)


class BlockListStore:
    """
    Block list persisted in the shared container.

    Use `BlockListStore(container)` in the main app and
    `BlockListStore.open_readonly(container)` in the extension.
    """

    def __init__(
        self,
        container: SharedContainer,
        *,
        key: str = DEFAULT_COLLECTION_KEY,
        read_only: bool = False,
        busy_timeout_seconds: float = 5.0,
    ) -> None:
        self.container = container
        self.key = key
        self.read_only = read_only
        self._busy_timeout = busy_timeout_seconds
        if not read_only:
            self._init_db()

    @classmethod
    def open_readonly(
        cls, container: SharedContainer, *, key: str = DEFAULT_COLLECTION_KEY
    ) -> "BlockListStore":
        return cls(container, key=key, read_only=True)

    @property
    def path(self) -> Path:
        return self.container.blocklist_path

    def _connect(self) -> sqlite3.Connection:
        try:
            if self.read_only:
                uri = f"{self.path.resolve().as_uri()}?mode=ro"
                conn = sqlite3.connect(uri, uri=True, timeout=self._busy_timeout)
            else:
                conn = sqlite3.connect(
                    self.path, timeout=self._busy_timeout, isolation_level=None
                )
                # The commit must hit the disk before a reload is signalled.
                conn.execute("PRAGMA synchronous=FULL;")
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Cannot open block list at {self.path}: {exc}") from exc
        return conn

    def _init_db(self) -> None:
        self.container.ensure()
        try:
            with closing(self._connect()) as conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS collections (
                        key TEXT PRIMARY KEY,
                        value_json TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    );
                    """)
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Cannot initialize block list at {self.path}: {exc}") from exc

    def _read(self, conn: sqlite3.Connection) -> list[int]:
        row = conn.execute(
            "SELECT value_json FROM collections WHERE key = ?", (self.key,)
        ).fetchone()
        if row is None:
            return []
        try:
            return _decode_numbers(row[0])
        except ValueError as exc:
            raise StoreUnavailableError(f"Block list {self.key!r} is corrupt: {exc}") from exc

    def _replace(self, conn: sqlite3.Connection, numbers: list[int]) -> None:
        value_json = json.dumps(sorted(set(numbers)), separators=(",", ":"))
        conn.execute(
            "INSERT OR REPLACE INTO collections(key, value_json, updated_at) VALUES (?, ?, ?)",
            (self.key, value_json, datetime.now(tz=timezone.utc).isoformat()),
        )

    def _mutate(self, op: Any) -> Any:
        if self.read_only:
            raise PermissionError("Block list was opened read-only")
        with closing(self._connect()) as conn:
            try:
                conn.execute("BEGIN IMMEDIATE")
                current = self._read(conn)
                result, updated = op(current)
                if updated is not None:
                    self._replace(conn, updated)
                conn.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
        return result

    def add(self, number: str | int) -> AddOutcome:
        """Add a number. Adding a number that is already blocked is a no-op success."""

        value = normalize_number(number)

        def op(current: list[int]) -> tuple[AddOutcome, list[int] | None]:
            if value in current:
                return AddOutcome.ALREADY_PRESENT, None
            return AddOutcome.ADDED, [*current, value]

        try:
            outcome = self._mutate(op)
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Cannot write block list: {exc}") from exc
        logger.info("Block list add", extra={"number": value, "outcome": outcome.value})
        return outcome

    def remove(self, number: str | int) -> RemoveOutcome:
        value = normalize_number(number)

        def op(current: list[int]) -> tuple[RemoveOutcome, list[int] | None]:
            if value not in current:
                return RemoveOutcome.NOT_PRESENT, None
            return RemoveOutcome.REMOVED, [n for n in current if n != value]

        try:
            outcome = self._mutate(op)
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Cannot write block list: {exc}") from exc
        logger.info("Block list remove", extra={"number": value, "outcome": outcome.value})
        return outcome

    def clear(self) -> int:
        """Empty the block list. Returns how many numbers were removed."""

        def op(current: list[int]) -> tuple[int, list[int] | None]:
            return len(current), ([] if current else None)

        try:
            return int(self._mutate(op))
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Cannot write block list: {exc}") from exc

    def list(self) -> list[int]:
        """
        Return blocked numbers in strictly ascending numeric order.

        A read-only store with no database file yet (first run) reads as empty.
        """

        if self.read_only:
            if not self.container.path.exists():
                return []
            if not self.container.path.is_dir():
                raise StoreUnavailableError(
                    f"Shared container {self.container.path} is not a directory"
                )
            if not self.path.exists():
                return []
        try:
            with closing(self._connect()) as conn:
                return self._read(conn)
        except sqlite3.OperationalError as exc:
            if "no such table" in str(exc):
                return []
            raise StoreUnavailableError(f"Cannot read block list: {exc}") from exc
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Cannot read block list: {exc}") from exc

    def contains(self, number: str | int) -> bool:
        return normalize_number(number) in self.list()
