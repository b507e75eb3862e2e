"""
Property Marketplace - Core Business Logic

Layers, leaves first:
1. Ledger (versioned key-value store, key namespace, id registries)
2. Marketplace (parties, documents, workflow rules, audit log)
3. Dispatch (named operations run in one ledger transaction each)
"""

from .errors import (
    MarketplaceError,
    InvalidInputError,
    InvalidKindError,
    DocumentExistsError,
    SerializationError,
    UnauthenticatedError,
    ForbiddenError,
    NotFoundError,
    StorageError,
    ConflictError,
)

from .ledger import Ledger, Transaction, KeyNamespace, EntityKind, default_namespace

from .marketplace import (
    Role,
    Caller,
    CallerContext,
    MarketplaceWorkflow,
    Dispatcher,
    build_dispatcher,
    get_dispatcher,
    reset_dispatcher,
)

__all__ = [
    "MarketplaceError",
    "InvalidInputError",
    "InvalidKindError",
    "DocumentExistsError",
    "SerializationError",
    "UnauthenticatedError",
    "ForbiddenError",
    "NotFoundError",
    "StorageError",
    "ConflictError",
    "Ledger",
    "Transaction",
    "KeyNamespace",
    "EntityKind",
    "default_namespace",
    "Role",
    "Caller",
    "CallerContext",
    "MarketplaceWorkflow",
    "Dispatcher",
    "build_dispatcher",
    "get_dispatcher",
    "reset_dispatcher",
]
