"""
Logging setup for Remit Printer.

Log lines come from two kinds of threads: Flask request handlers (which carry
a request id) and the printer monitor/processor threads (which carry a print
job id when one is being handled). Both ids are attached to every record so
one formatter works for all of them.

Environment:
- REMITPRINTER_LOG_LEVEL: root level (default INFO)
- REMITPRINTER_JSON_LOGS: "true" for one JSON object per line
- REMITPRINTER_DEVICE_LOG_LEVEL: level for python-escpos/pyusb loggers (default WARNING)
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Union

# python-escpos and pyusb log every transfer at DEBUG.
DEVICE_LOGGERS = ("escpos", "usb")


class RequestIdFilter(logging.Filter):
    """
    Attach request_id/path from the Flask request context, and a job_id
    default, to every record. Outside a request (monitor thread, scripts)
    request_id and path are "-".
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        try:
            from flask import g, has_request_context, request  # lazy import

            in_request = has_request_context()
            record.request_id = getattr(g, "request_id", "-") if in_request else "-"
            record.path = request.path if in_request else "-"
        except Exception:
            record.request_id = "-"
            record.path = "-"
        if not hasattr(record, "job_id"):
            record.job_id = "-"
        return True


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record: ts, level, logger, thread, msg, request_id,
    plus path/job_id when known and exc when an exception is attached.
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        base: Dict[str, Any] = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }
        for key in ("path", "job_id"):
            value = getattr(record, key, "-")
            if value not in (None, "-"):
                base[key] = value
        if record.exc_info:
            base["exc"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False)


PLAIN_FORMAT = "[%(asctime)s] %(levelname)s %(threadName)s %(request_id)s %(name)s: %(message)s"


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "false").lower() in ("1", "true", "yes")


def configure_logging(level: Union[str, int, None] = None) -> logging.Logger:
    """
    Install a single handler on the root logger.

    - Level comes from `level`, else REMITPRINTER_LOG_LEVEL, else INFO
    - Existing root handlers are replaced, so repeated create_app() calls do not duplicate output
    - JSON or plain formatting per REMITPRINTER_JSON_LOGS
    - systemd's JournalHandler when the bindings are installed, else stderr
    - printer driver loggers are capped at REMITPRINTER_DEVICE_LOG_LEVEL
    - Flask's app logger propagates to root instead of keeping its own handler

    Returns the root logger.
    """
    root = logging.getLogger()
    root.setLevel(level or os.environ.get("REMITPRINTER_LOG_LEVEL", "INFO").upper())
    root.handlers = []

    formatter: logging.Formatter = JsonFormatter() if _env_flag("REMITPRINTER_JSON_LOGS") else logging.Formatter(PLAIN_FORMAT)

    try:
        from systemd.journal import JournalHandler  # type: ignore

        handler: logging.Handler = JournalHandler(SYSLOG_IDENTIFIER="remit-printer")
    except Exception:
        handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    handler.addFilter(RequestIdFilter())
    root.addHandler(handler)

    device_level = os.environ.get("REMITPRINTER_DEVICE_LOG_LEVEL", "WARNING").upper()
    for name in DEVICE_LOGGERS:
        logging.getLogger(name).setLevel(device_level)

    flask_logger = logging.getLogger("flask.app")
    flask_logger.handlers = []
    flask_logger.propagate = True

    return root


__all__ = ["DEVICE_LOGGERS", "JsonFormatter", "RequestIdFilter", "configure_logging"]
