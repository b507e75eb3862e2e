"""
Marketplace Errors - Exception Taxonomy

Every failure raised by the ledger, the workflow engine and the dispatch
layer derives from MarketplaceError and carries a stable ``code`` that the
web layer maps onto an HTTP status.
"""

from __future__ import annotations

from typing import ClassVar


class MarketplaceError(Exception):
    """Base exception for all marketplace errors."""

    code: ClassVar[str] = "MARKETPLACE_ERROR"


class InvalidInputError(MarketplaceError):
    """Raised for wrong arity, blank identifiers or out-of-range values."""

    code: ClassVar[str] = "INVALID_INPUT"


class InvalidKindError(InvalidInputError):
    """Raised when an entity kind has no prefix in the key namespace."""

    code: ClassVar[str] = "INVALID_KIND"


class DocumentExistsError(InvalidInputError):
    """Raised when creating a document whose id is already taken."""

    code: ClassVar[str] = "ALREADY_EXISTS"


class SerializationError(MarketplaceError):
    """Raised when a payload or stored value is not well-formed JSON of the expected shape."""

    code: ClassVar[str] = "SERIALIZATION_FAILURE"


class UnauthenticatedError(MarketplaceError):
    """Raised when the caller identity or role cannot be resolved."""

    code: ClassVar[str] = "UNAUTHENTICATED"


class ForbiddenError(MarketplaceError):
    """Raised when a resolved caller lacks rights for the operation or field."""

    code: ClassVar[str] = "FORBIDDEN"


class NotFoundError(MarketplaceError):
    """Raised when a requested document does not exist."""

    code: ClassVar[str] = "NOT_FOUND"


class StorageError(MarketplaceError):
    """Raised when the ledger cannot be read or written."""

    code: ClassVar[str] = "STORAGE_FAILURE"


class ConflictError(StorageError):
    """Raised when a transaction read a key that changed before commit."""

    code: ClassVar[str] = "CONFLICT"
