"""
Marketplace Workflow Layer

Parties, documents, audit log and the dispatch entry points that run
every operation inside one ledger transaction.
"""

from .schema import (
    Role,
    JsonRecord,
    Land,
    Property,
    PropertyAd,
    PersonalInfo,
    FinancialInfo,
    MortgageApplication,
    SalesContract,
    AppraiserApplication,
    MortgageApplicationUpdate,
    AppraiserApplicationUpdate,
    SalesContractUpdate,
)
from .parties import (
    DocumentList,
    Party,
    Buyer,
    Seller,
    Bank,
    Appraiser,
    Auditor,
    PARTY_TYPES,
    PartyRepository,
)
from .identity import (
    Caller,
    CallerContext,
    UserRecord,
    UserRepository,
    IdentityResolver,
    LedgerIdentityResolver,
)
from .audit import AuditLog, AuditLogEntry, GLOBAL_LOG_KEY
from .workflow import MarketplaceWorkflow
from .dispatch import (
    EntryPoint,
    Operation,
    OPERATIONS,
    Dispatcher,
    build_dispatcher,
    get_dispatcher,
    reset_dispatcher,
)

__all__ = [
    "Role",
    "JsonRecord",
    "Land",
    "Property",
    "PropertyAd",
    "PersonalInfo",
    "FinancialInfo",
    "MortgageApplication",
    "SalesContract",
    "AppraiserApplication",
    "MortgageApplicationUpdate",
    "AppraiserApplicationUpdate",
    "SalesContractUpdate",
    "DocumentList",
    "Party",
    "Buyer",
    "Seller",
    "Bank",
    "Appraiser",
    "Auditor",
    "PARTY_TYPES",
    "PartyRepository",
    "Caller",
    "CallerContext",
    "UserRecord",
    "UserRepository",
    "IdentityResolver",
    "LedgerIdentityResolver",
    "AuditLog",
    "AuditLogEntry",
    "GLOBAL_LOG_KEY",
    "MarketplaceWorkflow",
    "EntryPoint",
    "Operation",
    "OPERATIONS",
    "Dispatcher",
    "build_dispatcher",
    "get_dispatcher",
    "reset_dispatcher",
]
