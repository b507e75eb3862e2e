"""
Party Records - Per-Role Foreign-Key Lists

A party record is the only index from a participant to the documents it
takes part in. Each role holds a fixed set of id lists:

- Buyer: mortgageApplications, salesContracts
- Seller: salesContracts
- Bank: mortgageApplications, salesContracts
- Appraiser: appraiserApplications
- Auditor: none

Records are created lazily on first reference and only ever grow.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Final, Optional

from core.errors import SerializationError
from core.ledger.codec import decode_json_object, encode_json
from core.ledger.keys import KeyNamespace
from core.ledger.store import Transaction
from core.marketplace.schema import Role


logger = logging.getLogger(__name__)


class DocumentList(Enum):
    """Foreign-key lists a party record may hold. Values are JSON keys."""

    MORTGAGE_APPLICATIONS = "mortgageApplications"
    SALES_CONTRACTS = "salesContracts"
    APPRAISER_APPLICATIONS = "appraiserApplications"


# =============================================================================
# Party Types
# =============================================================================


@dataclass
class Party:
    """Common shape of every party record: id, role and document lists."""

    ROLE: ClassVar[Role]
    LISTS: ClassVar[tuple[DocumentList, ...]] = ()

    id: str
    documents: dict[DocumentList, list[str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        unknown = set(self.documents) - set(self.LISTS)
        if unknown:
            raise ValueError(
                f"{self.ROLE.label} does not hold {sorted(d.value for d in unknown)}"
            )
        for document_list in self.LISTS:
            self.documents.setdefault(document_list, [])

    @property
    def role(self) -> Role:
        return self.ROLE

    def holds(self, document_list: DocumentList) -> bool:
        """Check whether this role keeps the given list."""
        return document_list in self.LISTS

    def document_ids(self, document_list: DocumentList) -> list[str]:
        """Get a copy of a list; empty for lists the role does not hold."""
        return list(self.documents.get(document_list, []))

    def add_document(self, document_list: DocumentList, document_id: str) -> None:
        """Append a document id to one of this party's lists."""
        if not self.holds(document_list):
            raise ValueError(f"{self.ROLE.label} does not hold {document_list.value}")
        self.documents[document_list].append(document_id)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "affiliation": self.ROLE.value}
        for document_list in self.LISTS:
            data[document_list.value] = list(self.documents[document_list])
        return data

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Party":
        """Rebuild the right Party subclass from its stored affiliation."""
        try:
            party_type = PARTY_TYPES[Role(data["affiliation"])]
            documents = {
                document_list: [str(i) for i in (data.get(document_list.value) or [])]
                for document_list in party_type.LISTS
            }
            return party_type(id=str(data["id"]), documents=documents)
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError(f"Malformed party record: {e}") from e


@dataclass
class Buyer(Party):
    ROLE: ClassVar[Role] = Role.BUYER
    LISTS: ClassVar[tuple[DocumentList, ...]] = (
        DocumentList.MORTGAGE_APPLICATIONS,
        DocumentList.SALES_CONTRACTS,
    )


@dataclass
class Seller(Party):
    ROLE: ClassVar[Role] = Role.SELLER
    LISTS: ClassVar[tuple[DocumentList, ...]] = (DocumentList.SALES_CONTRACTS,)


@dataclass
class Bank(Party):
    ROLE: ClassVar[Role] = Role.BANK
    LISTS: ClassVar[tuple[DocumentList, ...]] = (
        DocumentList.MORTGAGE_APPLICATIONS,
        DocumentList.SALES_CONTRACTS,
    )


@dataclass
class Appraiser(Party):
    ROLE: ClassVar[Role] = Role.APPRAISER
    LISTS: ClassVar[tuple[DocumentList, ...]] = (DocumentList.APPRAISER_APPLICATIONS,)


@dataclass
class Auditor(Party):
    ROLE: ClassVar[Role] = Role.AUDITOR


PARTY_TYPES: Final[dict[Role, type[Party]]] = {
    Role.BUYER: Buyer,
    Role.SELLER: Seller,
    Role.BANK: Bank,
    Role.APPRAISER: Appraiser,
    Role.AUDITOR: Auditor,
}


# =============================================================================
# Repository
# =============================================================================


class PartyRepository:
    """Reads and writes party records under their role's key prefix."""

    def __init__(self, namespace: KeyNamespace):
        self._namespace = namespace

    def _key(self, role: Role, party_id: str) -> str:
        return self._namespace.key(role.entity_kind, party_id)

    def get(self, tx: Transaction, role: Role, party_id: str) -> Optional[Party]:
        """Read a party record without creating it; None if absent."""
        raw = tx.get(self._key(role, party_id))
        if not raw:
            return None

        party = Party.from_dict(decode_json_object(raw, what=f"{role.label} {party_id}"))
        if party.role is not role:
            raise SerializationError(
                f"Record for {role.label} {party_id} has affiliation {party.role.label}"
            )
        return party

    def get_or_create(self, tx: Transaction, role: Role, party_id: str) -> Party:
        """Read a party record, creating and persisting an empty one if absent."""
        party = self.get(tx, role, party_id)
        if party is not None:
            return party

        party = PARTY_TYPES[role](id=party_id)
        self.save(tx, party)
        logger.info("Created %s record %s", role.label, party_id)
        return party

    def save(self, tx: Transaction, party: Party) -> None:
        """Unconditionally overwrite a party record."""
        tx.put(self._key(party.role, party.id), encode_json(party.to_dict()))

    def add_document(
        self,
        tx: Transaction,
        role: Role,
        party_id: str,
        document_list: DocumentList,
        document_id: str,
    ) -> Party:
        """Append a document id to a party's list, creating the party if needed."""
        party = self.get_or_create(tx, role, party_id)
        party.add_document(document_list, document_id)
        self.save(tx, party)
        return party
