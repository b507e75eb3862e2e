"""
Tests for the Mortgage Application Workflow

Tests covering:
1. Creation stores the body verbatim and indexes it for buyer and bank
2. Read access: buyer, reviewing bank, auditor
3. Field-level update rights: reviewer vs appraiser vs others
4. Empty updates are no-ops
5. Audit entries for every change
6. Failed operations leave no writes
"""

from __future__ import annotations

import json

import pytest

from core.errors import (
    DocumentExistsError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    SerializationError,
)
from tests.helpers import FIXED_TIMESTAMP, as_caller, audit_entries, party_record


@pytest.fixture
def submitted(marketplace, mortgage_body):
    """A mortgage application ma1 from buyer1, reviewed by bank1."""
    marketplace.invoke(as_caller("buyer1"), "CreateMortgageApplication", ["ma1", mortgage_body()])
    return marketplace


# =============================================================================
# Create
# =============================================================================


class TestCreateMortgageApplication:
    """Tests for submitting applications."""

    def test_buyer_reads_back_identical_bytes(self, marketplace, mortgage_body):
        body = mortgage_body()
        marketplace.invoke(as_caller("buyer1"), "CreateMortgageApplication", ["ma1", body])

        raw = marketplace.query(as_caller("buyer1"), "GetMortgageApplication", ["ma1"])
        assert raw == body.encode("utf-8")

        document = json.loads(raw)
        assert document["buyerId"] == "buyer1"
        assert document["reviewerId"] == "bank1"

    def test_id_indexed_exactly_once_for_buyer_and_bank(self, submitted):
        buyer = party_record(submitted, "buyer:buyer1")
        bank = party_record(submitted, "bank:bank1")

        assert buyer["mortgageApplications"] == ["ma1"]
        assert bank["mortgageApplications"] == ["ma1"]
        assert json.loads(submitted.ledger.get("maKeys")) == ["ma1"]

    def test_creation_is_audited(self, submitted):
        entries = audit_entries(submitted, "ma1")

        assert entries == [{
            "mortgageApplicationId": "ma1",
            "buyerId": "buyer1",
            "reviewerId": "bank1",
            "status": "Submitted",
            "action": "CreateMortgageApplication",
            "text": "buyer1 Submitted new MortgageApplication",
            "timestamp": FIXED_TIMESTAMP,
        }]

    def test_unregistered_bank_record_created_lazily(self, marketplace, mortgage_body):
        body = mortgage_body(reviewer_id="Bank Of America")
        marketplace.invoke(as_caller("buyer1"), "CreateMortgageApplication", ["ma1", body])

        bank = party_record(marketplace, "bank:Bank Of America")
        assert bank["affiliation"] == 3
        assert bank["mortgageApplications"] == ["ma1"]

    @pytest.mark.parametrize("caller", ["seller1", "bank1", "appraiser1", "auditor1"])
    def test_only_buyers_may_submit(self, marketplace, mortgage_body, caller):
        with pytest.raises(ForbiddenError):
            marketplace.invoke(as_caller(caller), "CreateMortgageApplication", ["ma1", mortgage_body()])
        assert marketplace.ledger.get("ma:ma1") is None

    def test_cannot_submit_for_another_buyer(self, marketplace, mortgage_body):
        with pytest.raises(ForbiddenError):
            marketplace.invoke(
                as_caller("buyer2"), "CreateMortgageApplication", ["ma1", mortgage_body("buyer1")]
            )

    @pytest.mark.parametrize("buyer_id", ["", "   "])
    def test_buyer_id_is_required(self, marketplace, mortgage_body, buyer_id):
        with pytest.raises(InvalidInputError):
            marketplace.invoke(
                as_caller("buyer1"), "CreateMortgageApplication", ["ma1", mortgage_body(buyer_id)]
            )

        assert marketplace.ledger.get("ma:ma1") is None
        assert party_record(marketplace, "buyer:buyer1")["mortgageApplications"] == []

    def test_missing_buyer_id_keeps_buyer_listing_usable(self, marketplace, mortgage_body):
        body = json.loads(mortgage_body())
        del body["buyerId"]
        with pytest.raises(InvalidInputError):
            marketplace.invoke(as_caller("buyer1"), "CreateMortgageApplication", ["ma1", json.dumps(body)])

        marketplace.invoke(as_caller("buyer1"), "CreateMortgageApplication",
                           ["ma2", mortgage_body(id="ma2")])
        listed = json.loads(marketplace.query(as_caller("buyer1"), "GetMortgageApplications"))
        assert [d["id"] for d in listed] == ["ma2"]

    def test_padded_buyer_id_is_forbidden(self, marketplace, mortgage_body):
        with pytest.raises(ForbiddenError):
            marketplace.invoke(
                as_caller("buyer1"), "CreateMortgageApplication", ["ma1", mortgage_body(" buyer1 ")]
            )

    def test_reviewer_is_required(self, marketplace, mortgage_body):
        with pytest.raises(InvalidInputError):
            marketplace.invoke(
                as_caller("buyer1"), "CreateMortgageApplication", ["ma1", mortgage_body(reviewer_id=" ")]
            )

    def test_duplicate_id_rejected_without_side_effects(self, submitted, mortgage_body):
        with pytest.raises(DocumentExistsError):
            submitted.invoke(as_caller("buyer1"), "CreateMortgageApplication", ["ma1", mortgage_body()])

        assert party_record(submitted, "buyer:buyer1")["mortgageApplications"] == ["ma1"]
        assert len(audit_entries(submitted, "ma1")) == 1

    def test_negative_amount_rejected(self, marketplace, mortgage_body):
        with pytest.raises(InvalidInputError):
            marketplace.invoke(
                as_caller("buyer1"), "CreateMortgageApplication", ["ma1", mortgage_body(requestedAmount=-100)]
            )
        assert marketplace.ledger.get("maKeys") is None

    def test_missing_body_is_invalid_input(self, marketplace):
        with pytest.raises(InvalidInputError):
            marketplace.invoke(as_caller("buyer1"), "CreateMortgageApplication", ["ma1"])


# =============================================================================
# Read
# =============================================================================


class TestGetMortgageApplication:
    """Tests for read authorization."""

    @pytest.mark.parametrize("caller", ["buyer1", "bank1", "auditor1"])
    def test_allowed_readers(self, submitted, caller):
        assert submitted.query(as_caller(caller), "GetMortgageApplication", ["ma1"])

    @pytest.mark.parametrize("caller", ["buyer2", "bank2", "seller1", "appraiser1"])
    def test_everyone_else_is_forbidden(self, submitted, caller):
        with pytest.raises(ForbiddenError):
            submitted.query(as_caller(caller), "GetMortgageApplication", ["ma1"])

    def test_absent_document_is_not_found(self, marketplace):
        with pytest.raises(NotFoundError):
            marketplace.query(as_caller("auditor1"), "GetMortgageApplication", ["nope"])


class TestGetMortgageApplications:
    """Tests for listing a party's applications."""

    def test_buyer_and_bank_see_their_applications(self, submitted, mortgage_body):
        submitted.invoke(as_caller("buyer2"), "CreateMortgageApplication",
                         ["ma2", mortgage_body("buyer2", id="ma2")])

        buyer_view = json.loads(submitted.query(as_caller("buyer1"), "GetMortgageApplications"))
        bank_view = json.loads(submitted.query(as_caller("bank1"), "GetMortgageApplications"))

        assert [d["id"] for d in buyer_view] == ["ma1"]
        assert [d["id"] for d in bank_view] == ["ma1", "ma2"]

    def test_party_without_documents_gets_empty_list(self, marketplace):
        assert json.loads(marketplace.query(as_caller("bank2"), "GetMortgageApplications")) == []

    @pytest.mark.parametrize("caller", ["seller1", "appraiser1", "auditor1"])
    def test_other_roles_forbidden(self, marketplace, caller):
        with pytest.raises(ForbiddenError):
            marketplace.query(as_caller(caller), "GetMortgageApplications")


# =============================================================================
# Update
# =============================================================================


class TestUpdateMortgageApplication:
    """Tests for partial updates and field-level authorization."""

    def test_reviewer_changes_status_only(self, submitted):
        raw = submitted.invoke(as_caller("bank1"), "UpdateMortgageApplication",
                               ["ma1", '{"status": "Under Review"}'])

        document = json.loads(raw)
        assert document["status"] == "Under Review"
        assert document["approvedAmount"] == 0
        assert document["salesContractId"] == ""
        assert document["lastModifiedDate"] == FIXED_TIMESTAMP

        entries = audit_entries(submitted, "ma1")
        assert len(entries) == 2
        assert entries[-1]["action"] == "UpdateMortgageApplication"
        assert entries[-1]["text"] == "bank1 changed status from Submitted to Under Review"
        assert entries[-1]["status"] == "Under Review"

    def test_stored_document_matches_returned_document(self, submitted):
        raw = submitted.invoke(as_caller("bank1"), "UpdateMortgageApplication",
                               ["ma1", '{"approvedAmount": 750000}'])
        assert submitted.query(as_caller("buyer1"), "GetMortgageApplication", ["ma1"]) == raw

    def test_combined_change_text_in_fixed_order(self, submitted):
        submitted.invoke(
            as_caller("bank1"),
            "UpdateMortgageApplication",
            ["ma1", '{"approvedAmount": 750000, "salesContractId": "sc1", "status": "Approved"}'],
        )

        text = audit_entries(submitted, "ma1")[-1]["text"]
        assert text == (
            "bank1 changed status from Submitted to Approved"
            " and updated sales contract Id to sc1"
            " and updated approved amount to 750000"
        )

    def test_empty_update_is_noop(self, submitted):
        version = submitted.ledger.version("ma:ma1")

        result = submitted.invoke(
            as_caller("bank1"),
            "UpdateMortgageApplication",
            ["ma1", '{"status": "  ", "salesContractId": "", "approvedAmount": 0}'],
        )

        assert result is None
        assert submitted.ledger.version("ma:ma1") == version
        assert len(audit_entries(submitted, "ma1")) == 1

    def test_reviewer_cannot_set_fair_market_value(self, submitted):
        result = submitted.invoke(as_caller("bank1"), "UpdateMortgageApplication",
                                  ["ma1", '{"fairMarketValue": 900000}'])
        assert result is None

    def test_appraiser_sets_fair_market_value(self, submitted):
        raw = submitted.invoke(as_caller("appraiser1"), "UpdateMortgageApplication",
                               ["ma1", '{"fairMarketValue": 900000, "status": "Hacked"}'])

        document = json.loads(raw)
        assert document["fairMarketValue"] == 900000
        assert document["status"] == "Submitted"
        assert audit_entries(submitted, "ma1")[-1]["text"] == (
            "appraiser1 updated fair market value to 900000"
        )

    @pytest.mark.parametrize("caller", ["buyer1", "bank2", "seller1", "auditor1"])
    def test_everyone_else_is_forbidden(self, submitted, caller):
        with pytest.raises(ForbiddenError):
            submitted.invoke(as_caller(caller), "UpdateMortgageApplication",
                             ["ma1", '{"status": "Approved"}'])

    def test_unknown_fields_survive_update(self, marketplace, mortgage_body):
        body = mortgage_body(notes="first-time buyer")
        marketplace.invoke(as_caller("buyer1"), "CreateMortgageApplication", ["ma1", body])

        raw = marketplace.invoke(as_caller("bank1"), "UpdateMortgageApplication",
                                 ["ma1", '{"status": "Approved"}'])
        document = json.loads(raw)
        assert document["notes"] == "first-time buyer"
        assert document["personalInfo"] == json.loads(body)["personalInfo"]

    def test_update_of_absent_document_is_not_found(self, marketplace):
        with pytest.raises(NotFoundError):
            marketplace.invoke(as_caller("bank1"), "UpdateMortgageApplication",
                               ["nope", '{"status": "Approved"}'])

    def test_malformed_payload_changes_nothing(self, submitted):
        version = submitted.ledger.version("ma:ma1")
        with pytest.raises(SerializationError):
            submitted.invoke(as_caller("bank1"), "UpdateMortgageApplication", ["ma1", "{oops"])
        assert submitted.ledger.version("ma:ma1") == version
