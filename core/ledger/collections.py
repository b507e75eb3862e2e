"""
Indexed Collections - Named Id Lists in the Ledger

A registry is a JSON list of ids stored under a well-known key. Appends
are read-modify-write inside the caller's transaction, so concurrent
appends to the same list conflict and retry instead of overwriting each
other.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Iterable

from core.errors import SerializationError
from core.ledger.codec import decode_json, encode_json
from core.ledger.store import Transaction


@dataclass(frozen=True)
class Registry:
    """A named list of ids."""

    name: str

    def ids(self, tx: Transaction) -> list[str]:
        """Read the list (absent means empty)."""
        raw = tx.get(self.name)
        if not raw:
            return []

        data = decode_json(raw, what=f"registry {self.name}")
        if not isinstance(data, list) or not all(isinstance(i, str) for i in data):
            raise SerializationError(f"Registry {self.name} is not a list of ids")
        return data

    def append(self, tx: Transaction, entity_id: str, unique: bool = False) -> list[str]:
        """
        Append an id and write the list back.

        Args:
            tx: Current transaction
            entity_id: Id to append
            unique: Skip the write if the id is already present

        Returns:
            The list after the append
        """
        ids = self.ids(tx)
        if unique and entity_id in ids:
            return ids

        ids.append(entity_id)
        tx.put(self.name, encode_json(ids))
        return ids

    def replace(self, tx: Transaction, entity_ids: Iterable[str]) -> list[str]:
        """Overwrite the list."""
        ids = list(entity_ids)
        tx.put(self.name, encode_json(ids))
        return ids


# =============================================================================
# Well-Known Registries
# =============================================================================

LAND_KEYS: Final[Registry] = Registry("landKeys")
PROPERTY_KEYS: Final[Registry] = Registry("propertyKeys")
PROPERTY_AD_KEYS: Final[Registry] = Registry("propertyAdKeys")
MORTGAGE_APPLICATION_KEYS: Final[Registry] = Registry("maKeys")
SALES_CONTRACT_KEYS: Final[Registry] = Registry("scKeys")
APPRAISER_APPLICATION_KEYS: Final[Registry] = Registry("aaKeys")
MA_LOG_KEYS: Final[Registry] = Registry("maLogKeys")
