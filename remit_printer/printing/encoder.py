"""
ESC/POS receipt encoder.

Turns a Transaction into a self-contained byte stream for a thermal printer:

    ESC @            initialize
    ESC a '1'        center: header block
    ESC a '0'        left: metadata, client, financial blocks
    GS k 0x49 n d..  barcode of the transaction reference (n = byte length)
    ESC a '1'        center: footer
    GS V 0x42 0x00   feed and full cut
    ESC p 0 0x32 0x96  cash drawer pulse (optional)

Pure function of its inputs: the "printed at" time is passed in by the caller.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional

from escpos.constants import ESC, GS

from .errors import EncodingError
from .ids import receipt_number
from .models import Transaction

INITIALIZE = ESC + b"@"
ALIGN_LEFT = ESC + b"a0"
ALIGN_CENTER = ESC + b"a1"
CUT_FULL = GS + b"V\x42\x00"
CASH_DRAWER_PULSE = ESC + b"p\x00\x32\x96"
BARCODE_PREFIX = GS + b"k\x49"
FEED_NO_CUT = b"\n\n\n\n"

MAX_BARCODE_LEN = 255
PLACEHOLDER_CLIENT = "Walk-in Customer"

PAPER_COLUMNS = {"58mm": 32, "80mm": 48}

_CURRENCY_RE = re.compile(r"[A-Za-z]{3}")


@dataclass(frozen=True)
class ReceiptOptions:
    header_title: str = "RJB TRANZ"
    paper_width: str = "80mm"
    auto_cut: bool = True
    cash_drawer: bool = True
    currency_symbol: str = "$"

    @property
    def columns(self) -> int:
        return PAPER_COLUMNS.get(self.paper_width, PAPER_COLUMNS["80mm"])

    @classmethod
    def from_config(cls, cfg: Optional[Mapping[str, Any]]) -> "ReceiptOptions":
        cfg = cfg or {}
        return cls(
            header_title=str(cfg.get("header_title") or cls.header_title),
            paper_width=str(cfg.get("paper_width") or cls.paper_width),
            auto_cut=bool(cfg.get("auto_cut", True)),
            cash_drawer=bool(cfg.get("cash_drawer", True)),
            currency_symbol=str(cfg.get("currency_symbol", "$")),
        )


def _clean(value: Any) -> str:
    # Control characters in user data would be read by the printer as commands.
    s = "" if value is None else str(value)
    return "".join(" " if (ord(c) < 32 or ord(c) == 127) else c for c in s)


def _text(s: str) -> bytes:
    return _clean(s).encode("ascii", errors="replace")


def _line(s: str = "") -> bytes:
    return _text(s) + b"\n"


def _money(value: float) -> str:
    return f"{value:,.2f}"


def _check_number(name: str, value: Any) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError) as e:
        raise EncodingError(f"{name} is not a number: {value!r}") from e
    if not math.isfinite(v):
        raise EncodingError(f"{name} must be finite, got {value!r}")
    if v < 0:
        raise EncodingError(f"{name} must be non-negative, got {value!r}")
    return v


def _check_currency(name: str, code: str) -> str:
    if not isinstance(code, str) or not _CURRENCY_RE.fullmatch(code):
        raise EncodingError(f"{name} must be a 3-letter currency code, got {code!r}")
    return code.upper()


def barcode_payload(transaction: Transaction) -> bytes:
    """
    Barcode data for a transaction: its uniqueId, or the record id when no
    uniqueId was assigned. The one-byte length prefix caps it at 255 bytes.
    """
    ref = transaction.unique_id or transaction.id
    if not ref:
        raise EncodingError("transaction has no id to encode in the barcode")
    try:
        data = ref.encode("ascii")
    except UnicodeEncodeError as e:
        raise EncodingError("barcode data must be ASCII") from e
    if len(data) > MAX_BARCODE_LEN:
        raise EncodingError(f"barcode data is {len(data)} bytes; at most {MAX_BARCODE_LEN} fit the length prefix")
    return data


def encode_receipt(
    transaction: Transaction,
    printed_at: datetime,
    options: Optional[ReceiptOptions] = None,
) -> bytes:
    """
    Encode a transaction receipt as ESC/POS bytes.

    Raises:
        EncodingError: amounts not finite/non-negative, bad currency codes, or a
        barcode reference that does not fit the one-byte length prefix.
    """
    opts = options or ReceiptOptions()

    amount = _check_number("amount", transaction.amount)
    fee = _check_number("fee", transaction.fee)
    rate = _check_number("exchange rate", transaction.exchange_rate)
    from_ccy = _check_currency("source currency", transaction.from_currency)
    to_ccy = _check_currency("destination currency", transaction.to_currency)
    barcode = barcode_payload(transaction)

    rule = "=" * 24
    sep = "-" * opts.columns
    sym = opts.currency_symbol
    created = transaction.created_at
    client = transaction.client_name.strip() if transaction.client_name else ""

    out: List[bytes] = [INITIALIZE]

    # Header
    out.append(ALIGN_CENTER)
    out.append(_line(f" {opts.header_title} ".center(24, "=")))
    out.append(_line("REMITTANCE RECEIPT"))
    out.append(_line(rule))
    out.append(_line())

    # Metadata
    out.append(ALIGN_LEFT)
    out.append(_line(f"Transaction ID: {transaction.id}"))
    out.append(_line(f"Date: {created.strftime('%Y-%m-%d')}"))
    out.append(_line(f"Time: {created.strftime('%H:%M:%S')}"))
    if transaction.format_id:
        out.append(_line(f"Ref: {transaction.format_id}"))
        out.append(_line(f"Receipt No: {receipt_number(transaction.format_id, created)}"))
    out.append(_line())

    # Client
    out.append(_line(f"Client: {client or PLACEHOLDER_CLIENT}"))
    if transaction.client_email:
        out.append(_line(f"Email: {transaction.client_email}"))
    if transaction.phone_number:
        out.append(_line(f"Phone: {transaction.phone_number}"))
    out.append(_line(f"Type: {transaction.transaction_type.upper()}"))
    out.append(_line(sep))

    # Financials
    out.append(_line(f"Amount: {sym}{_money(amount)}"))
    out.append(_line(f"From: {from_ccy}"))
    out.append(_line(f"To: {to_ccy}"))
    out.append(_line(f"Rate: {rate:.4f}"))
    out.append(_line(f"Fee: {sym}{_money(fee)}"))
    out.append(_line(f"Status: {transaction.status.upper()}"))
    out.append(_line())

    # Barcode
    out.append(BARCODE_PREFIX + bytes([len(barcode)]) + barcode)
    out.append(b"\n\n")

    # Footer
    out.append(ALIGN_CENTER)
    out.append(_line("Thank you for choosing"))
    out.append(_line(opts.header_title))
    out.append(_line(rule))
    out.append(_line(f"Printed: {printed_at.strftime('%Y-%m-%d %H:%M:%S')}"))

    out.append(CUT_FULL if opts.auto_cut else FEED_NO_CUT)
    if opts.cash_drawer:
        out.append(CASH_DRAWER_PULSE)

    return b"".join(out)


def build_test_transaction(now: datetime) -> Transaction:
    """Sample transaction used for test prints."""
    return Transaction(
        id=f"TEST-{int(now.timestamp() * 1000)}",
        client_name="Test Customer",
        client_email="test@example.com",
        amount=100.0,
        from_currency="USD",
        to_currency="GHS",
        exchange_rate=12.45,
        fee=5.0,
        status="completed",
        created_at=now,
    )


__all__ = [
    "ALIGN_CENTER",
    "ALIGN_LEFT",
    "BARCODE_PREFIX",
    "CASH_DRAWER_PULSE",
    "CUT_FULL",
    "INITIALIZE",
    "MAX_BARCODE_LEN",
    "PLACEHOLDER_CLIENT",
    "ReceiptOptions",
    "barcode_payload",
    "build_test_transaction",
    "encode_receipt",
]
