from __future__ import annotations

"""
Health endpoint for Remit Printer.

This blueprint exposes `/healthz`, reporting:
- Overall status ("ok" or "degraded")
- Monitor state and queue counts (via PrintService.status)
- Latest printer snapshot (connected, paper level, errors)
"""

from typing import Any, Dict

from flask import Blueprint, current_app

health_bp = Blueprint("health", __name__)


@health_bp.get("/healthz")
def healthz():
    svc = current_app.extensions["remit_printer"]
    status: Dict[str, Any] = {"status": "ok"}
    status.update(svc.status())

    snap = svc.printer_status()
    status["printer_ok"] = snap.connected
    status["paper_level"] = snap.paper_level
    if not snap.connected:
        status["status"] = "degraded"
        status["reason"] = "printer_disconnected"
        status["errors"] = list(snap.errors)
    elif not status["monitor_running"]:
        status["status"] = "degraded"
        status["reason"] = "monitor_stopped"

    warnings = snap.warnings(svc.low_paper_threshold)
    if warnings:
        status["warnings"] = warnings
    return status, 200
