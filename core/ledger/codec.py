"""
JSON encoding helpers for ledger values.

Ledger values are opaque bytes; everything the marketplace stores is
compact UTF-8 JSON.
"""

from __future__ import annotations

import json
from typing import Any, Union

from core.errors import SerializationError


def encode_json(data: Any) -> bytes:
    """Serialize data to compact UTF-8 JSON bytes."""
    return json.dumps(data, separators=(",", ":")).encode("utf-8")


def decode_json(raw: Union[bytes, str], what: str = "value") -> Any:
    """
    Parse JSON bytes or text.

    Args:
        raw: Bytes read from the ledger or a payload string
        what: Short description used in the error message

    Raises:
        SerializationError: If the input is not valid JSON
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise SerializationError(f"Could not decode {what}: {e}") from e

    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise SerializationError(f"Could not parse {what}: {e}") from e


def decode_json_object(raw: Union[bytes, str], what: str = "value") -> dict[str, Any]:
    """Parse JSON that must be an object."""
    data = decode_json(raw, what)
    if not isinstance(data, dict):
        raise SerializationError(f"Expected a JSON object for {what}")
    return data
