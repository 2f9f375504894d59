# Ensure the repository root is on sys.path so `remit_printer` can be imported in tests.

import sys
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest


def _ensure_repo_root_on_syspath() -> None:
    # This file lives at: <repo_root>/tests/conftest.py
    # We want to add <repo_root> to sys.path (if not already present).
    here = Path(__file__).resolve()
    repo_root = here.parent.parent
    repo_str = str(repo_root)
    if repo_str not in sys.path:
        sys.path.insert(0, repo_str)


_ensure_repo_root_on_syspath()

from remit_printer.printing.models import Transaction  # noqa: E402

CREATED_AT = datetime(2024, 5, 1, 14, 30, 5, tzinfo=timezone.utc)
PRINTED_AT = datetime(2024, 5, 1, 15, 0, 0, tzinfo=timezone.utc)


class FakeHandle:
    """Scriptable printer handle: fixed status, recorded writes."""

    def __init__(
        self,
        connected: bool = True,
        paper_level: int = 80,
        temperature: int = 42,
        errors: Optional[List[str]] = None,
        write_result: bool = True,
        write_exc: Optional[Exception] = None,
        query_exc: Optional[Exception] = None,
        query_delay: float = 0.0,
        write_delay: float = 0.0,
    ):
        self.connected = connected
        self.paper_level = paper_level
        self.temperature = temperature
        self.errors = errors
        self.write_result = write_result
        self.write_exc = write_exc
        self.query_exc = query_exc
        self.query_delay = query_delay
        self.write_delay = write_delay
        self.model = "Fake TM-T20"
        self.written: List[bytes] = []
        self.queries = 0
        self._lock = threading.Lock()

    def query_status(self) -> Dict[str, Any]:
        with self._lock:
            self.queries += 1
        if self.query_delay:
            time.sleep(self.query_delay)
        if self.query_exc is not None:
            raise self.query_exc
        return {
            "connected": self.connected,
            "paper_level": self.paper_level,
            "model": self.model,
            "temperature": self.temperature,
            "errors": list(self.errors or []),
        }

    def write_bytes(self, data: bytes) -> bool:
        if self.write_delay:
            time.sleep(self.write_delay)
        if self.write_exc is not None:
            raise self.write_exc
        with self._lock:
            self.written.append(data)
        return self.write_result


def _make_tx(**overrides: Any) -> Transaction:
    fields: Dict[str, Any] = {
        "id": "tx-0001",
        "client_name": "Ama Mensah",
        "client_email": "ama@example.com",
        "amount": 100.0,
        "from_currency": "USD",
        "to_currency": "GHS",
        "exchange_rate": 12.45,
        "fee": 5.0,
        "status": "completed",
        "created_at": CREATED_AT,
        "phone_number": "+233 20 123 4567",
        "transaction_type": "send",
        "unique_id": "RJB4K9Q2Z7A",
        "format_id": "USD-567-0105143005-00042",
    }
    fields.update(overrides)
    return Transaction(**fields)


@pytest.fixture
def make_tx():
    return _make_tx


@pytest.fixture
def fake_handle():
    return FakeHandle


@pytest.fixture
def printed_at() -> datetime:
    return PRINTED_AT
