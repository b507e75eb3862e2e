"""
Key Namespace - Deterministic Ledger Keys per Entity Kind

Every entity is stored under ``prefix(kind) + id``. The prefix table is
built once at start-up and shared by reference; it cannot be mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Final, Mapping, Union

from core.errors import InvalidKindError


# =============================================================================
# Entity Kinds
# =============================================================================


class EntityKind(Enum):
    """Kinds of entity that live in the ledger key space."""

    LAND = "land"
    PERMIT = "permit"
    MORTGAGE_APPLICATION = "mortgage_application"
    SALES_CONTRACT = "sales_contract"
    APPRAISER_APPLICATION = "appraiser_application"
    PROPERTY = "property"
    PROPERTY_AD = "property_ad"
    BUYER = "buyer"
    SELLER = "seller"
    BANK = "bank"
    APPRAISER = "appraiser"
    USER = "user"
    AUDITOR = "auditor"
    MA_LOG = "malog"


DEFAULT_PREFIXES: Final[Mapping[EntityKind, str]] = MappingProxyType({
    EntityKind.LAND: "land:",
    EntityKind.PERMIT: "permit:",
    EntityKind.MORTGAGE_APPLICATION: "ma:",
    EntityKind.SALES_CONTRACT: "sc:",
    EntityKind.APPRAISER_APPLICATION: "aa:",
    EntityKind.PROPERTY: "prop:",
    EntityKind.PROPERTY_AD: "propad:",
    EntityKind.BUYER: "buyer:",
    EntityKind.SELLER: "seller:",
    EntityKind.BANK: "bank:",
    EntityKind.APPRAISER: "appraiser:",
    EntityKind.USER: "user:",
    EntityKind.AUDITOR: "auditor:",
    EntityKind.MA_LOG: "malog:",
})


# =============================================================================
# Namespace
# =============================================================================


@dataclass(frozen=True)
class KeyNamespace:
    """
    Immutable mapping from (kind, id) to ledger key.

    The prefix table must be injective: no two kinds share a prefix and no
    prefix starts another one, so keys of different kinds can never collide.
    """

    prefixes: Mapping[EntityKind, str] = field(default_factory=lambda: DEFAULT_PREFIXES)

    def __post_init__(self) -> None:
        """Freeze and validate the prefix table."""
        frozen = MappingProxyType(dict(self.prefixes))
        object.__setattr__(self, "prefixes", frozen)

        values = list(frozen.values())
        if any(not prefix for prefix in values):
            raise ValueError("Key prefixes must be non-empty")

        for i, prefix in enumerate(values):
            for j, other in enumerate(values):
                if i != j and other.startswith(prefix):
                    raise ValueError(
                        f"Key prefix {prefix!r} collides with {other!r}"
                    )

    def prefix(self, kind: Union[EntityKind, str]) -> str:
        """Get the prefix for a kind (enum member or its value)."""
        if isinstance(kind, str):
            try:
                kind = EntityKind(kind)
            except ValueError:
                raise InvalidKindError(f"Invalid entity kind: {kind}") from None

        try:
            return self.prefixes[kind]
        except KeyError:
            raise InvalidKindError(f"Invalid entity kind: {kind.value}") from None

    def key(self, kind: Union[EntityKind, str], entity_id: str) -> str:
        """Build the ledger key for an entity."""
        return self.prefix(kind) + entity_id


_default_namespace: Final[KeyNamespace] = KeyNamespace()


def default_namespace() -> KeyNamespace:
    """Get the shared namespace built from DEFAULT_PREFIXES."""
    return _default_namespace
