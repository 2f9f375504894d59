from __future__ import annotations

"""
SQLite persistence for the print queue.

Features:
- DB path resolution with env/XDG defaults (see core.config.get_db_path)
- PRAGMAs for reliability: WAL, synchronous=NORMAL
- Schema bootstrap with a schema_version table
- SqliteJobStore: a JobStore that survives restarts, so failed and
  interrupted jobs remain inspectable after a crash
"""

import json
import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from remit_printer.core.config import ensure_dir, get_db_path
from remit_printer.printing.errors import JobNotFoundError
from remit_printer.printing.models import JobStatus, PrintJob, Transaction, finite_or_none, parse_timestamp
from remit_printer.printing.print_queue import JobStore

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


def _ensure_parent_dir(p: str) -> None:
    if p != ":memory:":
        ensure_dir(str(Path(p).parent))


def _apply_pragmas(db: sqlite3.Connection) -> None:
    try:
        db.execute("PRAGMA journal_mode = WAL")
    except sqlite3.DatabaseError as e:
        logger.debug("WAL not available: %s", e)
    db.execute("PRAGMA synchronous = NORMAL")


def _connect(path: Optional[str] = None) -> sqlite3.Connection:
    db_path = path or get_db_path()
    _ensure_parent_dir(db_path)
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    _apply_pragmas(conn)
    return conn


def _ensure_schema(db: sqlite3.Connection) -> None:
    """
    Create tables if not present and ensure schema_version is initialized.
    """
    with db:
        db.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
              version INTEGER NOT NULL
            )
            """,
        )
        db.execute(
            """
            CREATE TABLE IF NOT EXISTS print_jobs (
              seq             INTEGER PRIMARY KEY AUTOINCREMENT,
              id              TEXT NOT NULL UNIQUE,
              transaction_id  TEXT NOT NULL,
              client_name     TEXT NOT NULL,
              amount          REAL,
              currency        TEXT NOT NULL,
              status          TEXT NOT NULL,
              created_at      TEXT NOT NULL,
              updated_at      TEXT,
              error           TEXT,
              transaction_json TEXT NOT NULL
            )
            """,
        )
        db.execute("CREATE INDEX IF NOT EXISTS idx_print_jobs_status ON print_jobs(status)")

        cur = db.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1")
        if cur.fetchone() is None:
            db.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def _row_to_job(row: sqlite3.Row) -> PrintJob:
    tx = Transaction.from_dict(json.loads(row["transaction_json"]))
    return PrintJob(
        id=row["id"],
        transaction_id=row["transaction_id"],
        client_name=row["client_name"],
        amount=float(row["amount"]) if row["amount"] is not None else tx.amount,
        currency=row["currency"],
        transaction=tx,
        status=JobStatus(row["status"]),
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]) if row["updated_at"] else None,
        error=row["error"],
    )


class SqliteJobStore(JobStore):
    """
    JobStore backed by a single SQLite connection shared across threads
    (access serialized by a lock).
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path or get_db_path()
        self._lock = threading.Lock()
        self._db = _connect(self.path)
        _ensure_schema(self._db)
        logger.info("Print job store opened at %s", self.path)

    def add(self, job: PrintJob) -> None:
        with self._lock, self._db:
            self._db.execute(
                """
                INSERT INTO print_jobs (id, transaction_id, client_name, amount, currency, status,
                                        created_at, updated_at, error, transaction_json)
                VALUES (?,?,?,?,?,?,?,?,?,?)
                """,
                (
                    job.id,
                    job.transaction_id,
                    job.client_name,
                    finite_or_none(job.amount),
                    job.currency,
                    job.status.value,
                    _iso(job.created_at),
                    _iso(job.updated_at),
                    job.error,
                    json.dumps(job.transaction.to_dict()),
                ),
            )

    def get(self, job_id: str) -> Optional[PrintJob]:
        with self._lock:
            row = self._db.execute("SELECT * FROM print_jobs WHERE id = ?", (job_id,)).fetchone()
        return _row_to_job(row) if row else None

    def all(self) -> List[PrintJob]:
        with self._lock:
            rows = self._db.execute("SELECT * FROM print_jobs ORDER BY seq ASC").fetchall()
        return [_row_to_job(r) for r in rows]

    def save(self, job: PrintJob) -> None:
        # Snapshot fields are immutable; only lifecycle columns are written.
        with self._lock, self._db:
            cur = self._db.execute(
                "UPDATE print_jobs SET status = ?, updated_at = ?, error = ? WHERE id = ?",
                (job.status.value, _iso(job.updated_at), job.error, job.id),
            )
            if cur.rowcount == 0:
                raise JobNotFoundError(job.id)

    def close(self) -> None:
        with self._lock:
            self._db.close()


__all__ = ["SCHEMA_VERSION", "SqliteJobStore"]
