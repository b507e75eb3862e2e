"""
Shared fixtures for the marketplace tests.
"""

from __future__ import annotations

import json

import pytest

from core.ledger import Ledger, reset_ledger
from core.marketplace import CallerContext, build_dispatcher, reset_dispatcher
from tests.helpers import FIXED_NOW


# (user id, role code)
USERS = [
    ("buyer1", "1"),
    ("buyer2", "1"),
    ("seller1", "2"),
    ("bank1", "3"),
    ("bank2", "3"),
    ("appraiser1", "4"),
    ("appraiser2", "4"),
    ("auditor1", "5"),
]


@pytest.fixture(autouse=True)
def reset_singletons():
    """Keep module-level singletons from leaking between tests."""
    reset_ledger()
    reset_dispatcher()
    yield
    reset_ledger()
    reset_dispatcher()


@pytest.fixture
def ledger():
    """Fresh in-memory ledger."""
    return Ledger()


@pytest.fixture
def dispatcher(ledger):
    """Dispatcher over the fresh ledger with a fixed clock."""
    return build_dispatcher(ledger, clock=lambda: FIXED_NOW)


@pytest.fixture
def marketplace(dispatcher):
    """Dispatcher with every test user registered."""
    for user_id, code in USERS:
        dispatcher.invoke(CallerContext(), "CreateUser", [user_id, code])
    return dispatcher


@pytest.fixture
def mortgage_body():
    """Build a MortgageApplication JSON body."""

    def build(buyer_id: str = "buyer1", reviewer_id: str = "bank1", **overrides) -> str:
        data = {
            "id": "ma1",
            "propertyId": "property1",
            "landId": "land1",
            "permitId": "permit1",
            "buyerId": buyer_id,
            "appraiserApplicationId": "",
            "salesContractId": "",
            "personalInfo": {
                "firstname": "Ada",
                "lastname": "Lovelace",
                "dob": "1990-12-10",
                "phone": "555-0100",
                "mobile": "555-0101",
                "email": "ada@example.com",
            },
            "financialInfo": {
                "monthlySalary": 12000,
                "otherIncome": 500,
                "otherExpenditure": 1500,
                "monthlyRent": 2500,
                "monthlyLoanPayment": 0,
            },
            "status": "Submitted",
            "requestedAmount": 800000,
            "fairMarketValue": 0,
            "approvedAmount": 0,
            "reviewerId": reviewer_id,
            "lastModifiedDate": "2024-01-01 09:00:00",
        }
        data.update(overrides)
        return json.dumps(data)

    return build


@pytest.fixture
def appraiser_body():
    """Build an AppraiserApplication JSON body."""

    def build(
        mortgage_application_id: str = "ma1",
        appraiser_id: str = "appraiser1",
        reviewer_id: str = "bank1",
        **overrides,
    ) -> str:
        data = {
            "id": "aa1",
            "mortgageApplicationId": mortgage_application_id,
            "appraiserId": appraiser_id,
            "reviewerId": reviewer_id,
            "propertyId": "property1",
            "status": "Requested",
            "fairMarketValue": 0,
            "lastModifiedDate": "2024-01-02 09:00:00",
        }
        data.update(overrides)
        return json.dumps(data)

    return build


@pytest.fixture
def contract_body():
    """Build a SalesContract JSON body."""

    def build(
        buyer_id: str = "buyer1",
        seller_id: str = "seller1",
        reviewer_id: str = "bank1",
        **overrides,
    ) -> str:
        data = {
            "id": "sc1",
            "propertyId": "property1",
            "buyerId": buyer_id,
            "sellerId": seller_id,
            "reviewerId": reviewer_id,
            "buyerSignature": "",
            "sellerSignature": "",
            "status": "Draft",
            "price": 900000,
            "lastModifiedDate": "2024-01-03 09:00:00",
        }
        data.update(overrides)
        return json.dumps(data)

    return build
