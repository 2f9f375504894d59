"""
Transaction reference helpers.

formatId: CURRENCY-XXX-DDMMHHMMSS-NNNNN (last three phone digits, local timestamp, sequence)
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

FORMAT_ID_RE = re.compile(r"[A-Z]{3}-\d{3}-\d{10}-\d{5}")


def validate_transaction_id(transaction_id: str) -> bool:
    return bool(FORMAT_ID_RE.fullmatch(transaction_id or ""))


def receipt_number(format_id: str, fallback: Optional[datetime] = None) -> str:
    """
    RCP-<timestamp>-<sequence> from a well-formed format id, or RCP-<epoch ms>
    otherwise.
    """
    if validate_transaction_id(format_id):
        parts = format_id.split("-")
        return f"RCP-{parts[2]}-{parts[3]}"
    ts = fallback or datetime.now()
    return f"RCP-{int(ts.timestamp() * 1000)}"


__all__ = [
    "FORMAT_ID_RE",
    "receipt_number",
    "validate_transaction_id",
]
