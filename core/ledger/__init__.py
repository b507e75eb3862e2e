"""
Ledger Layer - Versioned key-value storage, key namespace and registries.
"""

from core.ledger.codec import decode_json, decode_json_object, encode_json
from core.ledger.collections import (
    Registry,
    LAND_KEYS,
    PROPERTY_KEYS,
    PROPERTY_AD_KEYS,
    MORTGAGE_APPLICATION_KEYS,
    SALES_CONTRACT_KEYS,
    APPRAISER_APPLICATION_KEYS,
    MA_LOG_KEYS,
)
from core.ledger.keys import (
    DEFAULT_PREFIXES,
    EntityKind,
    KeyNamespace,
    default_namespace,
)
from core.ledger.store import (
    DEFAULT_MAX_RETRIES,
    Ledger,
    Transaction,
    VersionedValue,
    get_ledger,
    reset_ledger,
)

__all__ = [
    "decode_json",
    "decode_json_object",
    "encode_json",
    "Registry",
    "LAND_KEYS",
    "PROPERTY_KEYS",
    "PROPERTY_AD_KEYS",
    "MORTGAGE_APPLICATION_KEYS",
    "SALES_CONTRACT_KEYS",
    "APPRAISER_APPLICATION_KEYS",
    "MA_LOG_KEYS",
    "DEFAULT_PREFIXES",
    "EntityKind",
    "KeyNamespace",
    "default_namespace",
    "DEFAULT_MAX_RETRIES",
    "Ledger",
    "Transaction",
    "VersionedValue",
    "get_ledger",
    "reset_ledger",
]
