"""
Helpers shared by the workflow and dispatch tests.
"""

from __future__ import annotations

import json
from datetime import datetime

from core.marketplace import CallerContext, Dispatcher


FIXED_NOW = datetime(2024, 1, 15, 10, 30, 0)
FIXED_TIMESTAMP = "2024-01-15 10:30:00"


def as_caller(user_id: str) -> CallerContext:
    return CallerContext(username=user_id)


def party_record(dispatcher: Dispatcher, key: str) -> dict:
    """Committed party record under a full ledger key."""
    return json.loads(dispatcher.ledger.get(key))


def audit_entries(dispatcher: Dispatcher, document_id: str) -> list[dict]:
    """Per-document audit entries, read as the auditor1 user."""
    raw = dispatcher.query(as_caller("auditor1"), "GetAuditorMALogs", [document_id])
    return json.loads(raw)
