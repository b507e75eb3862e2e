"""
Audit Log - Append-Only Record of Every Mutation

Each entry is written twice inside the mutating transaction:

- to the document's own holder under ``malog:<documentId>``
  (``{"MALogs": [...]}``)
- to the single global log under ``bcLogsKey``

Entries are never changed or removed. Order is append order.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Final, Optional

from core.errors import SerializationError
from core.ledger.codec import decode_json, encode_json
from core.ledger.collections import MA_LOG_KEYS
from core.ledger.keys import EntityKind, KeyNamespace
from core.ledger.store import Transaction


GLOBAL_LOG_KEY: Final[str] = "bcLogsKey"
TIMESTAMP_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class AuditLogEntry:
    """One immutable audit record."""

    document_id: str
    buyer_id: str
    reviewer_id: str
    status: str
    action: str
    text: str
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "mortgageApplicationId": self.document_id,
            "buyerId": self.buyer_id,
            "reviewerId": self.reviewer_id,
            "status": self.status,
            "action": self.action,
            "text": self.text,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuditLogEntry":
        try:
            return cls(
                document_id=data["mortgageApplicationId"],
                buyer_id=data.get("buyerId", ""),
                reviewer_id=data.get("reviewerId", ""),
                status=data.get("status", ""),
                action=data["action"],
                text=data.get("text", ""),
                timestamp=data["timestamp"],
            )
        except (KeyError, TypeError) as e:
            raise SerializationError(f"Malformed audit entry: {e}") from e


class AuditLog:
    """Per-document and global audit logs stored in the ledger."""

    def __init__(
        self,
        namespace: KeyNamespace,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._namespace = namespace
        self._clock = clock or datetime.now

    def _holder_key(self, document_id: str) -> str:
        return self._namespace.key(EntityKind.MA_LOG, document_id)

    @staticmethod
    def _read_entries(raw: Optional[bytes], what: str) -> list[dict[str, Any]]:
        if not raw:
            return []
        data = decode_json(raw, what=what)
        if isinstance(data, dict):
            data = data.get("MALogs") or []
        if not isinstance(data, list):
            raise SerializationError(f"Malformed {what}")
        return data

    def append(
        self,
        tx: Transaction,
        action: str,
        text: str,
        status: str,
        document_id: str,
        buyer_id: str = "",
        reviewer_id: str = "",
    ) -> AuditLogEntry:
        """
        Append a timestamped entry to the document's log and the global log.

        Args:
            tx: The mutating operation's transaction
            action: Operation name, e.g. "UpdateMortgageApplication"
            text: Human-readable description of the change
            status: Document status after the change
            document_id: Id of the document that changed
            buyer_id: Buyer on the document, if any
            reviewer_id: Reviewing bank on the document, if any

        Returns:
            The entry written
        """
        entry = AuditLogEntry(
            document_id=document_id,
            buyer_id=buyer_id,
            reviewer_id=reviewer_id,
            status=status,
            action=action,
            text=text,
            timestamp=self._clock().strftime(TIMESTAMP_FORMAT),
        )

        holder_key = self._holder_key(document_id)
        entries = self._read_entries(tx.get(holder_key), what=f"audit log {document_id}")
        entries.append(entry.to_dict())
        tx.put(holder_key, encode_json({"MALogs": entries}))

        global_entries = self._read_entries(tx.get(GLOBAL_LOG_KEY), what="global audit log")
        global_entries.append(entry.to_dict())
        tx.put(GLOBAL_LOG_KEY, encode_json(global_entries))

        MA_LOG_KEYS.append(tx, document_id, unique=True)
        return entry

    def document_entries(self, tx: Transaction, document_id: str) -> list[AuditLogEntry]:
        """All entries for one document, oldest first; empty if none."""
        raw = tx.get(self._holder_key(document_id))
        return [
            AuditLogEntry.from_dict(e)
            for e in self._read_entries(raw, what=f"audit log {document_id}")
        ]

    def all_entries(self, tx: Transaction) -> list[AuditLogEntry]:
        """Every entry ever appended, oldest first."""
        raw = tx.get(GLOBAL_LOG_KEY)
        return [
            AuditLogEntry.from_dict(e)
            for e in self._read_entries(raw, what="global audit log")
        ]

    def logged_document_ids(self, tx: Transaction) -> list[str]:
        """Ids of documents that have at least one entry."""
        return MA_LOG_KEYS.ids(tx)
