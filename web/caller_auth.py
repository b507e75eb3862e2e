"""
Caller Authentication - Signed Caller Tokens

Callers present an ``X-Caller-Token`` header naming who they are. The token
is a base64 JSON payload with an HMAC-SHA256 signature and an expiry; the
caller's role is not in the token but looked up from its user record.

Security:
- Tokens signed with CALLER_TOKEN_SECRET
- Tokens expire after CALLER_TOKEN_HOURS
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import os
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Final, Optional

from fastapi import Request

from core.marketplace.identity import CallerContext
from utils.config import Config


# =============================================================================
# Configuration
# =============================================================================

CALLER_TOKEN_HEADER: Final[str] = "X-Caller-Token"

_ephemeral_secret: Optional[str] = None


def get_caller_token_secret() -> str:
    """Get the token signing secret from environment."""
    global _ephemeral_secret
    secret = os.getenv("CALLER_TOKEN_SECRET")
    if secret:
        return secret
    # Development only: tokens do not survive a restart
    if _ephemeral_secret is None:
        _ephemeral_secret = secrets.token_hex(32)
    return _ephemeral_secret


def get_token_hours() -> int:
    """Token lifetime in hours."""
    return Config.load().caller_token_hours


# =============================================================================
# Caller Sessions
# =============================================================================


@dataclass(frozen=True)
class CallerSession:
    """An authenticated caller, as carried by a token."""

    caller_id: str
    issued_at: datetime
    expires_at: datetime

    @property
    def is_expired(self) -> bool:
        return datetime.utcnow() > self.expires_at

    def to_dict(self) -> dict:
        return {
            "caller_id": self.caller_id,
            "issued_at": self.issued_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CallerSession":
        return cls(
            caller_id=data["caller_id"],
            issued_at=datetime.fromisoformat(data["issued_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
        )


def create_session(caller_id: str, hours: Optional[int] = None) -> CallerSession:
    now = datetime.utcnow()
    return CallerSession(
        caller_id=caller_id,
        issued_at=now,
        expires_at=now + timedelta(hours=get_token_hours() if hours is None else hours),
    )


def _signature(payload_b64: str, secret: str) -> str:
    return hmac.new(secret.encode(), payload_b64.encode(), hashlib.sha256).hexdigest()


def sign_session(session: CallerSession, secret: str) -> str:
    """
    Sign and encode a session as a header token.

    Format: base64(json_payload).signature
    """
    payload = json.dumps(session.to_dict(), separators=(",", ":"))
    payload_b64 = base64.urlsafe_b64encode(payload.encode()).decode()
    return f"{payload_b64}.{_signature(payload_b64, secret)}"


def verify_session(token: str, secret: str) -> Optional[CallerSession]:
    """
    Verify and decode a signed token.

    Returns CallerSession if valid and not expired, None otherwise.
    """
    try:
        payload_b64, signature = token.rsplit(".", 1)
        if not hmac.compare_digest(signature, _signature(payload_b64, secret)):
            return None

        payload = base64.urlsafe_b64decode(payload_b64.encode()).decode()
        session = CallerSession.from_dict(json.loads(payload))
        if session.is_expired:
            return None
        return session

    except (ValueError, KeyError, TypeError, binascii.Error):
        return None


def issue_caller_token(caller_id: str, hours: Optional[int] = None) -> str:
    """Issue a signed token for a caller id."""
    return sign_session(create_session(caller_id, hours), get_caller_token_secret())


# =============================================================================
# Request Helpers
# =============================================================================


def caller_context_from_request(request: Request) -> CallerContext:
    """
    Build the caller context from the request header.

    A missing or invalid token yields an anonymous context, which the
    identity resolver rejects for every operation that needs a caller.
    """
    token = request.headers.get(CALLER_TOKEN_HEADER)
    if not token:
        return CallerContext()

    session = verify_session(token, get_caller_token_secret())
    return CallerContext(username=session.caller_id if session else None)
