"""
Data types shared by the receipt printing pipeline.

- Transaction: read-only remittance record handed in by the data layer
- PrintJob: one queued receipt, with a denormalized snapshot of the transaction
- PrinterStatus: immutable health snapshot produced by the monitor
- ProcessSummary: result of one queue processing pass

Dict helpers speak the UI's camelCase shape; attributes stay snake_case.
"""

from __future__ import annotations

import math
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def finite_or_none(value: Any) -> Optional[float]:
    """NaN and infinities have no JSON representation; report them as null."""
    try:
        v = float(value)
    except (TypeError, ValueError):
        return None
    return v if math.isfinite(v) else None


def parse_timestamp(value: Any) -> datetime:
    """
    Accept a datetime or an ISO-8601 string (a trailing 'Z' is allowed).
    Naive values are assumed to be UTC.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        s = value.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        dt = datetime.fromisoformat(s)
    else:
        raise ValueError(f"invalid timestamp: {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class JobStatus(str, Enum):
    PENDING = "pending"
    PRINTING = "printing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class ConnectionState(str, Enum):
    CHECKING = "checking"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        if k in data and data[k] is not None:
            return data[k]
    return default


@dataclass(frozen=True)
class Transaction:
    id: str
    client_name: str
    amount: float
    from_currency: str
    to_currency: str
    exchange_rate: float
    fee: float
    status: str
    created_at: datetime
    transaction_type: str = "send"
    unique_id: str = ""
    format_id: str = ""
    client_email: Optional[str] = None
    phone_number: Optional[str] = None
    receipt_printed: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Transaction":
        """
        Build a Transaction from the UI/database shape (camelCase) or snake_case keys.
        Raises ValueError/KeyError/TypeError on malformed input.
        """
        tx_id = _pick(data, "id")
        if tx_id is None:
            raise KeyError("id")
        return cls(
            id=str(tx_id),
            client_name=str(_pick(data, "clientName", "client_name", default="") or ""),
            amount=float(_pick(data, "amount", default=0)),
            from_currency=str(_pick(data, "fromCurrency", "from_currency", default="")),
            to_currency=str(_pick(data, "toCurrency", "to_currency", default="")),
            exchange_rate=float(_pick(data, "exchangeRate", "exchange_rate", default=0)),
            fee=float(_pick(data, "fee", default=0)),
            status=str(_pick(data, "status", default="pending")),
            created_at=parse_timestamp(_pick(data, "createdAt", "created_at", default=utc_now())),
            transaction_type=str(_pick(data, "transactionType", "transaction_type", default="send")),
            unique_id=str(_pick(data, "uniqueId", "unique_id", default="") or ""),
            format_id=str(_pick(data, "formatId", "format_id", default="") or ""),
            client_email=_pick(data, "clientEmail", "client_email"),
            phone_number=_pick(data, "phoneNumber", "phone_number"),
            receipt_printed=bool(_pick(data, "receiptPrinted", "receipt_printed", default=False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "clientName": self.client_name,
            "clientEmail": self.client_email,
            "amount": self.amount,
            "fromCurrency": self.from_currency,
            "toCurrency": self.to_currency,
            "exchangeRate": self.exchange_rate,
            "fee": self.fee,
            "status": self.status,
            "createdAt": self.created_at.isoformat(),
            "receiptPrinted": self.receipt_printed,
            "phoneNumber": self.phone_number,
            "transactionType": self.transaction_type,
            "uniqueId": self.unique_id,
            "formatId": self.format_id,
        }


def new_job_id() -> str:
    return f"PRINT-{uuid.uuid4().hex[:16].upper()}"


@dataclass
class PrintJob:
    """
    A queued receipt. client_name/amount/currency are copied from the
    transaction at enqueue time and are not refreshed afterwards.
    """

    id: str
    transaction_id: str
    client_name: str
    amount: float
    currency: str
    transaction: Transaction
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = field(default_factory=utc_now)
    updated_at: Optional[datetime] = None
    error: Optional[str] = None

    @classmethod
    def from_transaction(cls, transaction: Transaction, job_id: Optional[str] = None) -> "PrintJob":
        now = utc_now()
        return cls(
            id=job_id or new_job_id(),
            transaction_id=transaction.id,
            client_name=transaction.client_name,
            amount=transaction.amount,
            currency=transaction.from_currency,
            transaction=transaction,
            status=JobStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "transactionId": self.transaction_id,
            "clientName": self.client_name,
            "amount": finite_or_none(self.amount),
            "currency": self.currency,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
            "error": self.error,
        }


DEFAULT_MODEL = "EPSON TM-T20III ESC/POS Thermal Printer"


@dataclass(frozen=True)
class PrinterStatus:
    """
    Point-in-time printer health. Never mutated; the monitor swaps in a new
    instance on every poll so errors from an earlier poll cannot linger.
    """

    connected: bool
    paper_level: int = 0
    model: str = DEFAULT_MODEL
    temperature: int = 0
    errors: Tuple[str, ...] = ()
    checked_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        object.__setattr__(self, "paper_level", max(0, min(100, int(self.paper_level))))
        object.__setattr__(self, "temperature", int(self.temperature))
        object.__setattr__(self, "errors", tuple(str(e) for e in self.errors))

    @classmethod
    def disconnected(cls, *errors: str, model: str = DEFAULT_MODEL) -> "PrinterStatus":
        return cls(connected=False, paper_level=0, model=model, temperature=0, errors=tuple(errors))

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], model: str = DEFAULT_MODEL) -> "PrinterStatus":
        connected = bool(raw.get("connected", False))
        errors = list(raw.get("errors") or [])
        if not connected and not errors:
            errors = ["printer offline"]
        return cls(
            connected=connected,
            paper_level=int(raw.get("paper_level", 0) or 0),
            model=str(raw.get("model") or model),
            temperature=int(raw.get("temperature", 0) or 0),
            errors=tuple(errors),
        )

    def is_low_paper(self, threshold: int = 20) -> bool:
        return self.paper_level < threshold

    def warnings(self, threshold: int = 20) -> List[str]:
        out: List[str] = []
        if self.connected and self.is_low_paper(threshold):
            out.append("Low paper - replace soon")
        return out

    def to_dict(self, low_paper_threshold: int = 20) -> Dict[str, Any]:
        return {
            "connected": self.connected,
            "paperLevel": self.paper_level,
            "model": self.model,
            "temperature": self.temperature,
            "errors": list(self.errors),
            "checkedAt": self.checked_at.isoformat(),
            "lowPaper": self.is_low_paper(low_paper_threshold),
            "warnings": self.warnings(low_paper_threshold),
        }


@dataclass
class ProcessSummary:
    succeeded: int = 0
    failed: int = 0
    jobs: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, int]:
        return {"succeeded": self.succeeded, "failed": self.failed}


__all__ = [
    "DEFAULT_MODEL",
    "ConnectionState",
    "JobStatus",
    "PrintJob",
    "PrinterStatus",
    "ProcessSummary",
    "Transaction",
    "finite_or_none",
    "new_job_id",
    "parse_timestamp",
    "utc_now",
]
