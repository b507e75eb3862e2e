"""
Versioned Key-Value Ledger

In-process ledger with per-key version numbers and optimistic multi-key
transactions. A transaction remembers the version of every key it read and
buffers every write; commit applies all writes atomically, or raises
ConflictError if any key it read has moved on since.

Optionally persists to a JSON file after every commit.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Final, Optional, TypeVar

from core.errors import ConflictError, StorageError


logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES: Final[int] = 5


# =============================================================================
# Stored Values
# =============================================================================


@dataclass(frozen=True)
class VersionedValue:
    """A ledger value and the version that wrote it (first write is 1)."""

    value: bytes
    version: int


# =============================================================================
# Transaction
# =============================================================================


class Transaction:
    """
    Unit of work against a Ledger.

    Reads see the transaction's own buffered writes first. Nothing is
    visible to other readers until the ledger commits the transaction.
    """

    def __init__(self, ledger: "Ledger"):
        self._ledger = ledger
        self._reads: dict[str, int] = {}
        self._writes: dict[str, bytes] = {}

    def get(self, key: str) -> Optional[bytes]:
        """Read a key; None if absent."""
        if key in self._writes:
            return self._writes[key]

        stored = self._ledger._read(key)
        version = stored.version if stored else 0
        self._reads.setdefault(key, version)
        return stored.value if stored else None

    def put(self, key: str, value: bytes) -> None:
        """Buffer a write."""
        if not isinstance(value, (bytes, bytearray)):
            raise TypeError("Ledger values must be bytes")
        self._writes[key] = bytes(value)

    @property
    def read_versions(self) -> dict[str, int]:
        """Versions observed for every key read."""
        return dict(self._reads)

    @property
    def writes(self) -> dict[str, bytes]:
        """Buffered writes."""
        return dict(self._writes)


# =============================================================================
# Ledger
# =============================================================================


class Ledger:
    """
    Versioned key-value ledger.

    Uses in-memory storage with optional JSON file persistence.
    """

    def __init__(
        self,
        persist_path: Optional[str] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ):
        """
        Initialise ledger.

        Args:
            persist_path: Optional path to persist state to a JSON file
            max_retries: Re-executions allowed by run() after a conflict
        """
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")

        self._state: dict[str, VersionedValue] = {}
        self._lock = threading.RLock()
        self._persist_path = Path(persist_path) if persist_path else None
        self._max_retries = max_retries

        if self._persist_path and self._persist_path.exists():
            self._load_from_file()

    # =========================================================================
    # Persistence
    # =========================================================================

    def _save_to_file(self, state: dict[str, VersionedValue]) -> None:
        """Persist state to file."""
        if not self._persist_path:
            return

        data = {
            "entries": {
                key: {
                    "value": base64.b64encode(entry.value).decode("ascii"),
                    "version": entry.version,
                }
                for key, entry in state.items()
            },
            "saved_at": datetime.utcnow().isoformat(),
        }

        try:
            self._persist_path.parent.mkdir(parents=True, exist_ok=True)
            self._persist_path.write_text(json.dumps(data, indent=2))
        except OSError as e:
            raise StorageError(f"Could not write ledger file {self._persist_path}: {e}") from e

    def _load_from_file(self) -> None:
        """Load state from file."""
        try:
            data = json.loads(self._persist_path.read_text())
            for key, entry in data.get("entries", {}).items():
                self._state[key] = VersionedValue(
                    value=base64.b64decode(entry["value"], validate=True),
                    version=int(entry["version"]),
                )
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError, binascii.Error) as e:
            raise StorageError(f"Could not load ledger file {self._persist_path}: {e}") from e

    # =========================================================================
    # Reads & Writes
    # =========================================================================

    def _read(self, key: str) -> Optional[VersionedValue]:
        with self._lock:
            return self._state.get(key)

    def get(self, key: str) -> Optional[bytes]:
        """Read the committed value of a key; None if absent."""
        stored = self._read(key)
        return stored.value if stored else None

    def version(self, key: str) -> int:
        """Get the committed version of a key (0 if absent)."""
        stored = self._read(key)
        return stored.version if stored else 0

    def put(self, key: str, value: bytes) -> None:
        """Write a single key in its own transaction."""
        tx = self.begin()
        tx.put(key, value)
        self.commit(tx)

    def keys(self, prefix: str = "") -> list[str]:
        """List committed keys, optionally filtered by prefix."""
        with self._lock:
            return sorted(k for k in self._state if k.startswith(prefix))

    # =========================================================================
    # Transactions
    # =========================================================================

    def begin(self) -> Transaction:
        """Start a new transaction."""
        return Transaction(self)

    def commit(self, tx: Transaction) -> None:
        """
        Atomically apply a transaction's writes.

        Raises:
            ConflictError: If a key read by the transaction changed
            StorageError: If persistence fails (nothing is applied)
        """
        writes = tx.writes
        with self._lock:
            for key, seen in tx.read_versions.items():
                current = self._state.get(key)
                if (current.version if current else 0) != seen:
                    raise ConflictError(f"Key {key} changed during transaction")

            if not writes:
                return

            new_state = dict(self._state)
            for key, value in writes.items():
                previous = new_state.get(key)
                new_state[key] = VersionedValue(
                    value=value,
                    version=(previous.version if previous else 0) + 1,
                )

            self._save_to_file(new_state)
            self._state = new_state

    def run(self, operation: Callable[[Transaction], T]) -> T:
        """
        Execute an operation in a transaction, retrying on conflict.

        The operation is re-run from scratch against fresh state after each
        conflict, so it must not have side effects outside the transaction.

        Args:
            operation: Callable receiving the transaction

        Returns:
            The operation's return value

        Raises:
            ConflictError: If every attempt conflicted
        """
        attempts = self._max_retries + 1
        for attempt in range(1, attempts + 1):
            tx = self.begin()
            result = operation(tx)
            try:
                self.commit(tx)
            except ConflictError:
                if attempt == attempts:
                    raise
                logger.debug("Transaction conflict, retrying (attempt %d of %d)", attempt, attempts)
                continue
            return result

        raise ConflictError("Transaction could not be committed")


# =============================================================================
# Singleton Instance
# =============================================================================

_ledger_instance: Optional[Ledger] = None


def get_ledger(
    persist_path: Optional[str] = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> Ledger:
    """
    Get the ledger singleton.

    Args:
        persist_path: Optional path for persistence (only used on first call)
        max_retries: Conflict retries (only used on first call)

    Returns:
        Ledger instance
    """
    global _ledger_instance
    if _ledger_instance is None:
        _ledger_instance = Ledger(persist_path, max_retries)
    return _ledger_instance


def reset_ledger() -> None:
    """Reset the singleton instance (for testing)."""
    global _ledger_instance
    _ledger_instance = None
