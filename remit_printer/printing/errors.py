"""
Exception taxonomy for the printing subsystem.

Only IllegalTransitionError (and JobNotFoundError) are meant to escape to
callers; the rest are converted into job/printer state by the monitor and the
queue processor.
"""

from __future__ import annotations


class PrintingError(Exception):
    """Base class for receipt printing errors."""


class EncodingError(PrintingError, ValueError):
    """Transaction data cannot be rendered into an ESC/POS stream."""


class PrinterConnectionError(PrintingError, ConnectionError):
    """Printer unreachable or status query timed out."""


class WriteError(PrintingError, IOError):
    """Device rejected the byte stream or the write timed out."""


class IllegalTransitionError(PrintingError, RuntimeError):
    def __init__(self, job_id: str, current: str, requested: str, reason: str = ""):
        self.job_id = job_id
        self.current = current
        self.requested = requested
        msg = f"Illegal transition for job {job_id}: {current} -> {requested}"
        super().__init__(f"{msg} ({reason})" if reason else msg)


class JobNotFoundError(PrintingError, KeyError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(job_id)

    def __str__(self) -> str:
        return f"Print job not found: {self.job_id}"


__all__ = [
    "EncodingError",
    "IllegalTransitionError",
    "JobNotFoundError",
    "PrinterConnectionError",
    "PrintingError",
    "WriteError",
]
