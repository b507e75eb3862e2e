"""
Caller Identity

Maps an authenticated caller name onto (caller id, role). The default
resolver reads the caller's user record from the ledger; the record is
written by CreateUser.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from core.errors import SerializationError, UnauthenticatedError
from core.ledger.codec import decode_json_object, encode_json
from core.ledger.keys import EntityKind, KeyNamespace
from core.ledger.store import Ledger, Transaction
from core.marketplace.schema import Role


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    """Resolved identity of the party making a call."""

    caller_id: str
    role: Role


@dataclass(frozen=True)
class CallerContext:
    """What the transport knows about the caller before resolution."""

    username: Optional[str] = None


@dataclass(frozen=True)
class UserRecord:
    """Registered user: id and numeric affiliation code."""

    id: str
    affiliation: int

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "affiliation": self.affiliation}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserRecord":
        try:
            affiliation = data["affiliation"]
            if isinstance(affiliation, bool) or not isinstance(affiliation, int):
                raise TypeError("affiliation must be an integer")
            return cls(id=str(data["id"]), affiliation=affiliation)
        except (KeyError, TypeError) as e:
            raise SerializationError(f"Malformed user record: {e}") from e


class IdentityResolver(Protocol):
    """Anything that can turn a caller context into a Caller."""

    def resolve(self, context: CallerContext) -> Caller:
        ...


# =============================================================================
# User Records
# =============================================================================


class UserRepository:
    """User records stored under the ``user:`` prefix."""

    def __init__(self, namespace: KeyNamespace):
        self._namespace = namespace

    def key(self, user_id: str) -> str:
        return self._namespace.key(EntityKind.USER, user_id)

    def get(self, tx: Transaction, user_id: str) -> Optional[UserRecord]:
        raw = tx.get(self.key(user_id))
        if not raw:
            return None
        return UserRecord.from_dict(decode_json_object(raw, what=f"user {user_id}"))

    def save(self, tx: Transaction, user: UserRecord) -> None:
        tx.put(self.key(user.id), encode_json(user.to_dict()))


# =============================================================================
# Ledger-Backed Resolver
# =============================================================================


class LedgerIdentityResolver:
    """Resolves callers from their user records in the ledger."""

    def __init__(self, ledger: Ledger, namespace: KeyNamespace):
        self._ledger = ledger
        self._users = UserRepository(namespace)

    def resolve(self, context: CallerContext) -> Caller:
        """
        Resolve a caller.

        Raises:
            UnauthenticatedError: If no name is given, no user record exists
                or the stored affiliation is not a positive role code
        """
        username = (context.username or "").strip()
        if not username:
            raise UnauthenticatedError("No caller identity supplied")

        user = self._users.get(self._ledger.begin(), username)
        if user is None:
            logger.warning("Unknown caller %s", username)
            raise UnauthenticatedError(f"Unknown caller: {username}")

        if user.affiliation <= 0:
            raise UnauthenticatedError(f"Caller {username} has no affiliation")
        try:
            role = Role(user.affiliation)
        except ValueError:
            raise UnauthenticatedError(
                f"Caller {username} has unknown affiliation {user.affiliation}"
            ) from None

        return Caller(caller_id=user.id, role=role)
