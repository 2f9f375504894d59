from __future__ import annotations

"""
Pydantic schemas for the Remit Printer API (v1).

Only the shape of a transaction is checked here. Whether it can actually be
rendered (finite amounts, 3-letter currencies, barcode length) is decided by
the encoder when the job is processed, so enqueueing always succeeds for a
well-formed record.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from remit_printer.printing.models import Transaction


def _has_control_chars(s: str) -> bool:
    return any((ord(c) < 32 and c not in "\n\r\t") or ord(c) == 127 for c in s)


class TransactionIn(BaseModel):
    """A remittance transaction as sent by the CRM front end."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(min_length=1, max_length=128, description="Transaction record id")
    client_name: str = Field(default="", alias="clientName", max_length=200)
    client_email: Optional[str] = Field(default=None, alias="clientEmail", max_length=254)
    amount: float = Field(description="Amount in the source currency")
    from_currency: str = Field(alias="fromCurrency", examples=["USD"])
    to_currency: str = Field(alias="toCurrency", examples=["GHS", "NGN", "KES"])
    exchange_rate: float = Field(alias="exchangeRate")
    fee: float = 0.0
    status: str = "pending"
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    receipt_printed: bool = Field(default=False, alias="receiptPrinted")
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber", max_length=40)
    transaction_type: str = Field(default="send", alias="transactionType")
    unique_id: str = Field(default="", alias="uniqueId")
    format_id: str = Field(default="", alias="formatId")

    @field_validator("id", "client_name")
    @classmethod
    def _no_control_chars(cls, v: str) -> str:
        v = (v or "").strip()
        if _has_control_chars(v):
            raise ValueError("control characters not allowed")
        return v

    @field_validator("status", "transaction_type")
    @classmethod
    def _lower(cls, v: str) -> str:
        return (v or "").strip().lower()

    def to_transaction(self) -> Transaction:
        data: Dict[str, Any] = self.model_dump(by_alias=True)
        if data.get("createdAt") is None:
            data.pop("createdAt", None)
        return Transaction.from_dict(data)


class Links(BaseModel):
    self: str
    retry: Optional[str] = None


class JobOut(BaseModel):
    id: str
    transactionId: str
    clientName: str
    amount: Optional[float] = None
    currency: str
    status: str
    createdAt: str
    updatedAt: Optional[str] = None
    error: Optional[str] = None
    links: Optional[Links] = None


class JobListOut(BaseModel):
    jobs: List[JobOut]
    counts: Dict[str, int]


__all__ = ["JobListOut", "JobOut", "Links", "TransactionIn"]
