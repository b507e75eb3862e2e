"""
Tests for Party Records

Tests covering:
1. Each role holds its own document lists
2. Lazy creation happens once and never resets lists
3. Read-only lookup has no side effects
4. Stored layout
"""

from __future__ import annotations

import json

import pytest

from core.errors import SerializationError
from core.ledger import default_namespace
from core.marketplace.parties import (
    Appraiser,
    Auditor,
    Bank,
    Buyer,
    DocumentList,
    Party,
    PartyRepository,
    Seller,
)
from core.marketplace.schema import Role


@pytest.fixture
def repository():
    return PartyRepository(default_namespace())


class TestPartyTypes:
    """Tests for the per-role record shapes."""

    def test_lists_per_role(self):
        assert Buyer.LISTS == (DocumentList.MORTGAGE_APPLICATIONS, DocumentList.SALES_CONTRACTS)
        assert Bank.LISTS == (DocumentList.MORTGAGE_APPLICATIONS, DocumentList.SALES_CONTRACTS)
        assert Seller.LISTS == (DocumentList.SALES_CONTRACTS,)
        assert Appraiser.LISTS == (DocumentList.APPRAISER_APPLICATIONS,)
        assert Auditor.LISTS == ()

    def test_new_party_has_empty_lists(self):
        buyer = Buyer(id="buyer1")
        assert buyer.document_ids(DocumentList.MORTGAGE_APPLICATIONS) == []
        assert buyer.document_ids(DocumentList.SALES_CONTRACTS) == []

    def test_cannot_add_to_list_role_does_not_hold(self):
        seller = Seller(id="seller1")
        assert not seller.holds(DocumentList.MORTGAGE_APPLICATIONS)
        with pytest.raises(ValueError):
            seller.add_document(DocumentList.MORTGAGE_APPLICATIONS, "ma1")

    def test_to_dict_layout(self):
        bank = Bank(id="bank1")
        bank.add_document(DocumentList.SALES_CONTRACTS, "sc1")

        assert bank.to_dict() == {
            "id": "bank1",
            "affiliation": 3,
            "mortgageApplications": [],
            "salesContracts": ["sc1"],
        }

    def test_auditor_holds_only_identity(self):
        assert Auditor(id="auditor1").to_dict() == {"id": "auditor1", "affiliation": 5}

    def test_from_dict_picks_subclass(self):
        party = Party.from_dict({"id": "a1", "affiliation": 4, "appraiserApplications": ["aa1"]})
        assert isinstance(party, Appraiser)
        assert party.role is Role.APPRAISER
        assert party.document_ids(DocumentList.APPRAISER_APPLICATIONS) == ["aa1"]

    def test_from_dict_unknown_affiliation(self):
        with pytest.raises(SerializationError):
            Party.from_dict({"id": "x", "affiliation": 9})


class TestPartyRepository:
    """Tests for lazy creation and persistence."""

    def test_get_absent_returns_none_and_writes_nothing(self, ledger, repository):
        tx = ledger.begin()
        assert repository.get(tx, Role.BUYER, "buyer1") is None
        assert tx.writes == {}

    def test_get_or_create_persists_new_record(self, ledger, repository):
        tx = ledger.begin()
        party = repository.get_or_create(tx, Role.SELLER, "seller1")
        ledger.commit(tx)

        assert isinstance(party, Seller)
        assert json.loads(ledger.get("seller:seller1")) == {
            "id": "seller1",
            "affiliation": 2,
            "salesContracts": [],
        }

    def test_get_or_create_does_not_reset_existing_lists(self, ledger, repository):
        tx = ledger.begin()
        repository.add_document(tx, Role.BUYER, "buyer1", DocumentList.MORTGAGE_APPLICATIONS, "ma1")
        ledger.commit(tx)

        tx = ledger.begin()
        party = repository.get_or_create(tx, Role.BUYER, "buyer1")
        assert party.document_ids(DocumentList.MORTGAGE_APPLICATIONS) == ["ma1"]
        assert tx.writes == {}

    def test_add_document_appends(self, ledger, repository):
        tx = ledger.begin()
        repository.add_document(tx, Role.BANK, "bank1", DocumentList.SALES_CONTRACTS, "sc1")
        repository.add_document(tx, Role.BANK, "bank1", DocumentList.SALES_CONTRACTS, "sc2")
        ledger.commit(tx)

        bank = repository.get(ledger.begin(), Role.BANK, "bank1")
        assert bank.document_ids(DocumentList.SALES_CONTRACTS) == ["sc1", "sc2"]

    def test_same_id_different_roles_are_separate_records(self, ledger, repository):
        tx = ledger.begin()
        repository.get_or_create(tx, Role.BUYER, "pat")
        repository.get_or_create(tx, Role.SELLER, "pat")
        ledger.commit(tx)

        assert ledger.keys("buyer:") == ["buyer:pat"]
        assert ledger.keys("seller:") == ["seller:pat"]

    def test_record_with_wrong_affiliation_rejected(self, ledger, repository):
        ledger.put("bank:x", b'{"id": "x", "affiliation": 1}')
        with pytest.raises(SerializationError):
            repository.get(ledger.begin(), Role.BANK, "x")
