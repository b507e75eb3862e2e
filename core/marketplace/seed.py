"""
Reference data written by Setup: four land parcels, the properties built
on them and a listing for each. Registries are overwritten, so running
Setup again leaves the same state.
"""

from __future__ import annotations

import logging
from typing import Final

from core.ledger.collections import LAND_KEYS, PROPERTY_AD_KEYS, PROPERTY_KEYS
from core.ledger.keys import KeyNamespace
from core.ledger.store import Transaction
from core.marketplace.schema import JsonRecord, Land, Property, PropertyAd


logger = logging.getLogger(__name__)


REGISTERED_PRICE: Final[int] = 500000

# (land id, address, owner)
LANDS: Final[tuple[tuple[str, str, str], ...]] = (
    ("land1", "Madison Ave, New York, Ny", "jack24"),
    ("land2", "Fremont, California, CA", "mark14"),
    ("land3", "San Francisco, California, CA", "jane24"),
    ("land4", "Los Angeles, California, CA", "bill24"),
)

# (property id, land id, permit id, address, owner)
PROPERTIES: Final[tuple[tuple[str, str, str, str, str], ...]] = (
    ("property1", "land1", "permit1", "4305 22nd street, Flushing, New York, Ny", "jack24"),
    ("property2", "land2", "permit2", "2156 Madison Ave, New York, Ny", "mark14"),
    ("property3", "land3", "permit3", "660 Madison Ave, New York, Ny", "jane24"),
    ("property4", "land4", "permit4", "200 Madison Ave, New York, Ny", "bill24"),
)

# (ad id, property id, address, seller, bank, listed price)
PROPERTY_ADS: Final[tuple[tuple[str, str, str, str, str, int], ...]] = (
    ("propertyAd1", "property1", "4305 22nd street, Flushing, New York, Ny", "jack24", "Bank Of America", 1000000),
    ("propertyAd2", "property2", "2156 Madison Ave, Apartment no: 202, New York, Ny", "mark14", "Wells Fargo Mortgage", 1500000),
    ("propertyAd3", "property3", "660 Madison Ave, Apartment no: 302, New York, Ny", "jane24", "CitiMortgage", 2000000),
    ("propertyAd4", "property4", "200 Madison Ave, Apartment no: 402, New York, Ny", "bill24", "JP Morgan", 2500000),
)


def build_lands(timestamp: str) -> list[Land]:
    return [
        Land(
            id=land_id,
            description="Residential area",
            address=address,
            owner_id=owner,
            last_modified_date=timestamp,
        )
        for land_id, address, owner in LANDS
    ]


def build_properties(timestamp: str) -> list[Property]:
    return [
        Property(
            id=property_id,
            land_id=land_id,
            permit_id=permit_id,
            description="Residential House",
            address=address,
            owner_id=owner,
            registered_price=REGISTERED_PRICE,
            last_modified_date=timestamp,
        )
        for property_id, land_id, permit_id, address, owner in PROPERTIES
    ]


def build_property_ads(timestamp: str) -> list[PropertyAd]:
    properties = {p.id: p for p in build_properties(timestamp)}
    ads = []
    for ad_id, property_id, address, seller, bank, price in PROPERTY_ADS:
        listed = properties[property_id]
        ads.append(
            PropertyAd(
                id=ad_id,
                land_id=listed.land_id,
                permit_id=listed.permit_id,
                property_id=property_id,
                description="description",
                address=address,
                seller_id=seller,
                bank_id=bank,
                listed_price=price,
                last_modified_date=timestamp,
            )
        )
    return ads


def _write_all(tx: Transaction, namespace: KeyNamespace, records: list[JsonRecord]) -> list[str]:
    ids = []
    for record in records:
        tx.put(namespace.key(record.KIND, record.id), record.to_json())
        ids.append(record.id)
    return ids


def seed_reference_data(tx: Transaction, namespace: KeyNamespace, timestamp: str) -> None:
    """Write every seed record and overwrite the land, property and ad registries."""
    LAND_KEYS.replace(tx, _write_all(tx, namespace, build_lands(timestamp)))
    PROPERTY_KEYS.replace(tx, _write_all(tx, namespace, build_properties(timestamp)))
    PROPERTY_AD_KEYS.replace(tx, _write_all(tx, namespace, build_property_ads(timestamp)))
    logger.info(
        "Seeded %d lands, %d properties and %d property ads",
        len(LANDS), len(PROPERTIES), len(PROPERTY_ADS),
    )
