"""
Marketplace Workflow - Authorization-Aware Document State Machine

Decides who may create, read and change each document kind, merges
partial updates, keeps party foreign-key lists in step with document
creation and writes an audit entry for every mutation.

Every method takes the transaction of the public operation it belongs to.
Nothing here commits; if a method raises, the caller discards the
transaction and none of the writes made so far become visible.

Access rules:

- Mortgage application: created by a Buyer; read by its buyer, its
  reviewing bank or an Auditor; the reviewer may change status, linked
  sales contract and approved amount, an Appraiser may change fair
  market value.
- Appraiser application: created by a Bank; read by its appraiser, its
  reviewer or an Auditor; changed only by its appraiser. A fair market
  value change is copied onto the linked mortgage application.
- Sales contract: created by a Buyer; read by its seller, buyer, reviewing
  bank or an Auditor; changed by its seller or buyer, each signing only
  their own signature field.
- Property ads: readable by anyone.
- Audit logs: readable by Auditors only.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional, TypeVar, Union

from core.errors import (
    DocumentExistsError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from core.ledger.codec import encode_json
from core.ledger.collections import (
    APPRAISER_APPLICATION_KEYS,
    MORTGAGE_APPLICATION_KEYS,
    PROPERTY_AD_KEYS,
    SALES_CONTRACT_KEYS,
)
from core.ledger.keys import KeyNamespace
from core.ledger.store import Transaction
from core.marketplace.audit import TIMESTAMP_FORMAT, AuditLog
from core.marketplace.identity import Caller, UserRecord, UserRepository
from core.marketplace.parties import DocumentList, PartyRepository
from core.marketplace.schema import (
    AppraiserApplication,
    AppraiserApplicationUpdate,
    JsonRecord,
    MortgageApplication,
    MortgageApplicationUpdate,
    PropertyAd,
    Role,
    SalesContract,
    SalesContractUpdate,
)
from core.marketplace.seed import seed_reference_data


logger = logging.getLogger(__name__)

R = TypeVar("R", bound=JsonRecord)

Payload = Union[str, bytes]

SUBMITTED_STATUS = "Submitted"


def _as_bytes(payload: Payload) -> bytes:
    return payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)


def _require_id(value: str, what: str) -> str:
    value = (value or "").strip()
    if not value:
        raise InvalidInputError(f"{what} is required")
    return value


class MarketplaceWorkflow:
    """Workflow operations for every document kind."""

    def __init__(
        self,
        namespace: KeyNamespace,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._namespace = namespace
        self._clock = clock or datetime.now
        self._parties = PartyRepository(namespace)
        self._users = UserRepository(namespace)
        self._audit = AuditLog(namespace, clock=self._clock)

    @property
    def parties(self) -> PartyRepository:
        return self._parties

    @property
    def audit(self) -> AuditLog:
        return self._audit

    # =========================================================================
    # Helpers
    # =========================================================================

    def _now(self) -> str:
        return self._clock().strftime(TIMESTAMP_FORMAT)

    def _load(self, tx: Transaction, record_type: type[R], doc_id: str) -> tuple[R, bytes]:
        """Read and parse a document; NotFoundError if absent."""
        raw = tx.get(self._namespace.key(record_type.KIND, doc_id))
        if not raw:
            raise NotFoundError(f"{record_type.__name__} {doc_id} not found")
        return record_type.from_json(raw), raw

    def _insert(self, tx: Transaction, record_type: type[JsonRecord], doc_id: str, raw: bytes) -> None:
        """Store a new document exactly as received."""
        key = self._namespace.key(record_type.KIND, doc_id)
        if tx.get(key):
            raise DocumentExistsError(f"{record_type.__name__} {doc_id} already exists")
        tx.put(key, raw)

    def _overwrite(self, tx: Transaction, record: JsonRecord, doc_id: str) -> bytes:
        record.last_modified_date = self._now()
        raw = record.to_json()
        tx.put(self._namespace.key(record.KIND, doc_id), raw)
        return raw

    @staticmethod
    def _require_role(caller: Caller, role: Role, action: str) -> None:
        if caller.role is not role:
            logger.warning("%s refused for %s %s", action, caller.role.label, caller.caller_id)
            raise ForbiddenError(f"Only a {role.label} may {action}")

    @staticmethod
    def _authorize_read(caller: Caller, what: str, *allowed_ids: str) -> None:
        if caller.role is Role.AUDITOR:
            return
        if caller.caller_id and caller.caller_id in allowed_ids:
            return
        logger.warning("Read of %s refused for %s", what, caller.caller_id)
        raise ForbiddenError(f"Caller {caller.caller_id} may not access {what}")

    @staticmethod
    def _check_submitter(caller: Caller, buyer_id: str, what: str) -> None:
        _require_id(buyer_id, "buyerId")
        # Exact match; the body is stored verbatim
        if buyer_id != caller.caller_id:
            raise ForbiddenError(
                f"Caller {caller.caller_id} may not submit {what} for buyer {buyer_id}"
            )

    # =========================================================================
    # Users
    # =========================================================================

    def create_user(self, tx: Transaction, user_id: str, affiliation_code: str) -> bytes:
        """
        Register a user and create its party record.

        Repeating the call with the same role changes nothing.

        Raises:
            InvalidInputError: Blank id, bad role code, or the id is already
                registered with a different role
        """
        user_id = _require_id(user_id, "User id")
        role = Role.from_code(affiliation_code)

        existing = self._users.get(tx, user_id)
        if existing is not None and existing.affiliation != role.value:
            raise InvalidInputError(
                f"User {user_id} is already registered with affiliation {existing.affiliation}"
            )
        if existing is None:
            self._users.save(tx, UserRecord(id=user_id, affiliation=role.value))
            logger.info("Registered user %s as %s", user_id, role.label)

        self._parties.get_or_create(tx, role, user_id)
        return user_id.encode("utf-8")

    # =========================================================================
    # Mortgage Applications
    # =========================================================================

    def create_mortgage_application(
        self, tx: Transaction, caller: Caller, ma_id: str, body: Payload
    ) -> bytes:
        """
        Submit a mortgage application.

        The body is stored byte-for-byte. The id is added to the registry,
        to the caller's buyer record and to the reviewing bank's record.

        Args:
            tx: Operation transaction
            caller: Submitting buyer
            ma_id: New application id
            body: MortgageApplication JSON; ``reviewerId`` names the bank

        Returns:
            The stored bytes

        Raises:
            ForbiddenError: Caller is not a Buyer, or submits for another buyer
            InvalidInputError: Blank id, buyer or reviewer, negative amount
            DocumentExistsError: Id already taken
        """
        self._require_role(caller, Role.BUYER, "submit mortgage applications")
        ma_id = _require_id(ma_id, "Mortgage application id")
        raw = _as_bytes(body)

        application = MortgageApplication.from_json(raw)
        reviewer_id = _require_id(application.reviewer_id, "reviewerId")
        self._check_submitter(caller, application.buyer_id, "mortgage applications")

        self._insert(tx, MortgageApplication, ma_id, raw)
        MORTGAGE_APPLICATION_KEYS.append(tx, ma_id)
        self._parties.add_document(
            tx, Role.BUYER, caller.caller_id, DocumentList.MORTGAGE_APPLICATIONS, ma_id
        )
        self._parties.add_document(
            tx, Role.BANK, reviewer_id, DocumentList.MORTGAGE_APPLICATIONS, ma_id
        )
        self._audit.append(
            tx,
            action="CreateMortgageApplication",
            text=f"{caller.caller_id} Submitted new MortgageApplication",
            status=SUBMITTED_STATUS,
            document_id=ma_id,
            buyer_id=caller.caller_id,
            reviewer_id=reviewer_id,
        )

        logger.info("Mortgage application %s submitted by %s", ma_id, caller.caller_id)
        return raw

    def get_mortgage_application(
        self, tx: Transaction, caller: Caller, ma_id: str
    ) -> tuple[MortgageApplication, bytes]:
        """Read a mortgage application as its buyer, reviewer or an Auditor."""
        application, raw = self._load(tx, MortgageApplication, ma_id)
        self._authorize_read(
            caller,
            f"mortgage application {ma_id}",
            application.buyer_id,
            application.reviewer_id,
        )
        return application, raw

    def update_mortgage_application(
        self,
        tx: Transaction,
        caller: Caller,
        ma_id: str,
        payload: Union[Payload, MortgageApplicationUpdate],
    ) -> Optional[bytes]:
        """
        Apply a partial update to a mortgage application.

        The reviewing bank may set status, salesContractId and
        approvedAmount; an Appraiser may set fairMarketValue. Empty strings
        and zero amounts are ignored.

        Returns:
            The re-serialised document, or None if nothing changed
        """
        application, _ = self._load(tx, MortgageApplication, ma_id)
        updates = (
            payload
            if isinstance(payload, MortgageApplicationUpdate)
            else MortgageApplicationUpdate.from_json(payload)
        )

        changes: list[str] = []
        if caller.caller_id == application.reviewer_id:
            if updates.status:
                changes.append(f"changed status from {application.status} to {updates.status}")
                application.status = updates.status
            if updates.sales_contract_id:
                application.sales_contract_id = updates.sales_contract_id
                changes.append(f"updated sales contract Id to {updates.sales_contract_id}")
            if updates.approved_amount:
                application.approved_amount = updates.approved_amount
                changes.append(f"updated approved amount to {updates.approved_amount}")
        elif caller.role is Role.APPRAISER:
            if updates.fair_market_value:
                application.fair_market_value = updates.fair_market_value
                changes.append(f"updated fair market value to {updates.fair_market_value}")
        else:
            logger.warning("Update of mortgage application %s refused for %s", ma_id, caller.caller_id)
            raise ForbiddenError(
                f"Caller {caller.caller_id} may not update mortgage application {ma_id}"
            )

        if not changes:
            logger.debug("Mortgage application %s: nothing to update", ma_id)
            return None

        raw = self._overwrite(tx, application, ma_id)
        self._audit.append(
            tx,
            action="UpdateMortgageApplication",
            text=f"{caller.caller_id} " + " and ".join(changes),
            status=application.status,
            document_id=ma_id,
            buyer_id=application.buyer_id,
            reviewer_id=application.reviewer_id,
        )
        return raw

    def get_mortgage_applications(self, tx: Transaction, caller: Caller) -> bytes:
        """List the caller's mortgage applications (Buyer or Bank)."""
        if caller.role not in (Role.BUYER, Role.BANK):
            raise ForbiddenError(f"A {caller.role.label} has no mortgage applications")

        ids = self._party_documents(tx, caller, DocumentList.MORTGAGE_APPLICATIONS)
        return encode_json(
            [self.get_mortgage_application(tx, caller, i)[0].to_dict() for i in ids]
        )

    # =========================================================================
    # Appraiser Applications
    # =========================================================================

    def create_appraiser_application(
        self, tx: Transaction, caller: Caller, aa_id: str, body: Payload
    ) -> bytes:
        """Raise an appraisal request (Bank only) and assign it to an appraiser."""
        self._require_role(caller, Role.BANK, "create appraiser applications")
        aa_id = _require_id(aa_id, "Appraiser application id")
        raw = _as_bytes(body)

        application = AppraiserApplication.from_json(raw)
        appraiser_id = _require_id(application.appraiser_id, "appraiserId")

        self._insert(tx, AppraiserApplication, aa_id, raw)
        APPRAISER_APPLICATION_KEYS.append(tx, aa_id)
        self._parties.add_document(
            tx, Role.APPRAISER, appraiser_id, DocumentList.APPRAISER_APPLICATIONS, aa_id
        )
        self._audit.append(
            tx,
            action="CreateAppraiserApplication",
            text=f"{caller.caller_id} Submitted new AppraiserApplication",
            status=SUBMITTED_STATUS,
            document_id=aa_id,
            reviewer_id=application.reviewer_id or caller.caller_id,
        )

        logger.info("Appraiser application %s assigned to %s", aa_id, appraiser_id)
        return raw

    def get_appraiser_application(
        self, tx: Transaction, caller: Caller, aa_id: str
    ) -> tuple[AppraiserApplication, bytes]:
        application, raw = self._load(tx, AppraiserApplication, aa_id)
        self._authorize_read(
            caller,
            f"appraiser application {aa_id}",
            application.appraiser_id,
            application.reviewer_id,
        )
        return application, raw

    def update_appraiser_application(
        self, tx: Transaction, caller: Caller, aa_id: str, payload: Payload
    ) -> Optional[bytes]:
        """
        Apply the appraiser's partial update.

        A new fair market value is also written onto the linked mortgage
        application, acting as an Appraiser.
        """
        application, _ = self.get_appraiser_application(tx, caller, aa_id)
        if caller.caller_id != application.appraiser_id:
            logger.warning("Update of appraiser application %s refused for %s", aa_id, caller.caller_id)
            raise ForbiddenError(
                f"Caller {caller.caller_id} may not update appraiser application {aa_id}"
            )

        updates = AppraiserApplicationUpdate.from_json(payload)
        changes: list[str] = []
        if updates.status:
            changes.append(f"changed status from {application.status} to {updates.status}")
            application.status = updates.status
        if updates.fair_market_value:
            application.fair_market_value = updates.fair_market_value
            changes.append(f"updated fair market value to {updates.fair_market_value}")

        if not changes:
            logger.debug("Appraiser application %s: nothing to update", aa_id)
            return None

        raw = self._overwrite(tx, application, aa_id)
        self._audit.append(
            tx,
            action="UpdateAppraiserApplication",
            text=f"{caller.caller_id} " + " and ".join(changes),
            status=application.status,
            document_id=aa_id,
            reviewer_id=application.reviewer_id,
        )

        if updates.fair_market_value and application.mortgage_application_id:
            self.update_mortgage_application(
                tx,
                Caller(caller_id=caller.caller_id, role=Role.APPRAISER),
                application.mortgage_application_id,
                MortgageApplicationUpdate(fair_market_value=updates.fair_market_value),
            )
        return raw

    def get_appraiser_applications(self, tx: Transaction, caller: Caller) -> bytes:
        """List the appraiser applications assigned to the caller."""
        if caller.role is not Role.APPRAISER:
            raise ForbiddenError(f"A {caller.role.label} has no appraiser applications")

        ids = self._party_documents(tx, caller, DocumentList.APPRAISER_APPLICATIONS)
        return encode_json(
            [self.get_appraiser_application(tx, caller, i)[0].to_dict() for i in ids]
        )

    # =========================================================================
    # Sales Contracts
    # =========================================================================

    def create_sales_contract(
        self, tx: Transaction, caller: Caller, sc_id: str, body: Payload
    ) -> bytes:
        """
        Propose a sales contract (Buyer only).

        The id is added to the registry and to the seller's, the caller's
        and the reviewing bank's ``salesContracts`` lists.
        """
        self._require_role(caller, Role.BUYER, "create sales contracts")
        sc_id = _require_id(sc_id, "Sales contract id")
        raw = _as_bytes(body)

        contract = SalesContract.from_json(raw)
        seller_id = _require_id(contract.seller_id, "sellerId")
        reviewer_id = _require_id(contract.reviewer_id, "reviewerId")
        self._check_submitter(caller, contract.buyer_id, "sales contracts")

        self._insert(tx, SalesContract, sc_id, raw)
        SALES_CONTRACT_KEYS.append(tx, sc_id)
        self._parties.add_document(tx, Role.SELLER, seller_id, DocumentList.SALES_CONTRACTS, sc_id)
        self._parties.add_document(tx, Role.BUYER, caller.caller_id, DocumentList.SALES_CONTRACTS, sc_id)
        self._parties.add_document(tx, Role.BANK, reviewer_id, DocumentList.SALES_CONTRACTS, sc_id)
        self._audit.append(
            tx,
            action="CreateSalesContract",
            text=f"{caller.caller_id} Submitted new SalesContract",
            status=SUBMITTED_STATUS,
            document_id=sc_id,
            buyer_id=caller.caller_id,
            reviewer_id=reviewer_id,
        )

        logger.info("Sales contract %s created by %s with seller %s", sc_id, caller.caller_id, seller_id)
        return raw

    def get_sales_contract(
        self, tx: Transaction, caller: Caller, sc_id: str
    ) -> tuple[SalesContract, bytes]:
        contract, raw = self._load(tx, SalesContract, sc_id)
        self._authorize_read(
            caller,
            f"sales contract {sc_id}",
            contract.seller_id,
            contract.buyer_id,
            contract.reviewer_id,
        )
        return contract, raw

    def update_sales_contract(
        self, tx: Transaction, caller: Caller, sc_id: str, payload: Payload
    ) -> Optional[bytes]:
        """
        Apply a buyer's or seller's partial update.

        Either party may set status and price. Each may sign only its own
        signature field.
        """
        contract, _ = self.get_sales_contract(tx, caller, sc_id)
        is_buyer = caller.caller_id == contract.buyer_id
        is_seller = caller.caller_id == contract.seller_id
        if not (is_buyer or is_seller):
            logger.warning("Update of sales contract %s refused for %s", sc_id, caller.caller_id)
            raise ForbiddenError(f"Caller {caller.caller_id} may not update sales contract {sc_id}")

        updates = SalesContractUpdate.from_json(payload)
        if updates.buyer_signature and not is_buyer:
            raise ForbiddenError("Only the buyer may set buyerSignature")
        if updates.seller_signature and not is_seller:
            raise ForbiddenError("Only the seller may set sellerSignature")

        changes: list[str] = []
        if updates.status:
            changes.append(f"changed status from {contract.status} to {updates.status}")
            contract.status = updates.status
        if updates.buyer_signature:
            contract.buyer_signature = updates.buyer_signature
            changes.append(f"Buyer: {contract.buyer_id} Signed")
        if updates.seller_signature:
            contract.seller_signature = updates.seller_signature
            changes.append(f"Seller: {contract.seller_id} Signed")
        if updates.price:
            contract.price = updates.price
            changes.append(f"Price updated to: {updates.price}")

        if not changes:
            logger.debug("Sales contract %s: nothing to update", sc_id)
            return None

        raw = self._overwrite(tx, contract, sc_id)
        self._audit.append(
            tx,
            action="UpdateSalesContract",
            text=f"{caller.caller_id} " + " and ".join(changes),
            status=contract.status,
            document_id=sc_id,
            buyer_id=contract.buyer_id,
            reviewer_id=contract.reviewer_id,
        )
        return raw

    def get_sales_contracts(self, tx: Transaction, caller: Caller) -> bytes:
        """List the caller's sales contracts (Buyer, Seller or Bank)."""
        if caller.role not in (Role.BUYER, Role.SELLER, Role.BANK):
            raise ForbiddenError(f"A {caller.role.label} has no sales contracts")

        ids = self._party_documents(tx, caller, DocumentList.SALES_CONTRACTS)
        return encode_json(
            [self.get_sales_contract(tx, caller, i)[0].to_dict() for i in ids]
        )

    def _party_documents(self, tx: Transaction, caller: Caller, document_list: DocumentList) -> list[str]:
        party = self._parties.get(tx, caller.role, caller.caller_id)
        return party.document_ids(document_list) if party else []

    # =========================================================================
    # Property Ads
    # =========================================================================

    def get_property_ad(self, tx: Transaction, ad_id: str) -> tuple[PropertyAd, bytes]:
        return self._load(tx, PropertyAd, ad_id)

    def get_property_ads(self, tx: Transaction) -> bytes:
        ads = [self._load(tx, PropertyAd, i)[0] for i in PROPERTY_AD_KEYS.ids(tx)]
        return encode_json([ad.to_dict() for ad in ads])

    # =========================================================================
    # Audit Logs
    # =========================================================================

    def get_auditor_ma_logs(self, tx: Transaction, caller: Caller, document_id: str) -> bytes:
        """Every audit entry of one document (Auditor only)."""
        self._require_role(caller, Role.AUDITOR, "read audit logs")
        return encode_json([e.to_dict() for e in self._audit.document_entries(tx, document_id)])

    def get_auditor_bc_logs(self, tx: Transaction, caller: Caller) -> bytes:
        """Every audit entry ever appended, in append order (Auditor only)."""
        self._require_role(caller, Role.AUDITOR, "read audit logs")
        return encode_json([e.to_dict() for e in self._audit.all_entries(tx)])

    # =========================================================================
    # Setup
    # =========================================================================

    def setup(self, tx: Transaction) -> None:
        """Seed reference lands, properties and property ads."""
        seed_reference_data(tx, self._namespace, self._now())
