from __future__ import annotations

"""
JSON API (v1) for Remit Printer.

Endpoints:
- POST /api/v1/print-jobs                 : Enqueue a receipt for a transaction. 201 + Location
- GET  /api/v1/print-jobs                 : List jobs (newest first), ?status= and ?limit=
- GET  /api/v1/print-jobs/<job_id>        : Fetch one job
- POST /api/v1/print-jobs/<job_id>/retry  : Re-enqueue a failed job. 201
- POST /api/v1/print-jobs/process         : Drain pending jobs. {"succeeded", "failed"}
- GET  /api/v1/printer/status             : Latest printer snapshot
- POST /api/v1/printer/poll               : Poll the printer now
- POST /api/v1/printer/test-print         : Print a sample receipt
"""

from typing import Any, Dict, Optional

from flask import Blueprint, current_app, jsonify, request, url_for
from pydantic import ValidationError

from remit_printer.printing.errors import IllegalTransitionError, JobNotFoundError, PrinterConnectionError, WriteError
from remit_printer.printing.models import JobStatus, PrintJob
from remit_printer.printing.service import PrintService
from . import schemas

api_bp = Blueprint("api", __name__, url_prefix="/api/v1")


def get_service() -> PrintService:
    return current_app.extensions["remit_printer"]


def _json_error(msg: str, code: int = 400):
    return jsonify({"error": msg}), code


def _job_model(job: PrintJob) -> schemas.JobOut:
    links = schemas.Links(self=url_for("api.get_job", job_id=job.id))
    if job.status is JobStatus.FAILED:
        links.retry = url_for("api.retry_job", job_id=job.id)
    return schemas.JobOut(**job.to_dict(), links=links)


def _job_payload(job: PrintJob) -> Dict[str, Any]:
    return _job_model(job).model_dump()


@api_bp.post("/print-jobs")
def submit_job():
    """
    Validate a transaction and enqueue a receipt print job for it.
    """
    if not request.is_json:
        return _json_error("Expected application/json body", 415)
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _json_error("invalid JSON payload", 400)
    # Accept either the bare transaction or {"transaction": {...}}
    if isinstance(data.get("transaction"), dict):
        data = data["transaction"]

    try:
        tx = schemas.TransactionIn.model_validate(data).to_transaction()
    except ValidationError as e:
        try:
            first = e.errors()[0]
            loc = ".".join(str(p) for p in first.get("loc", ()))
            msg = f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))
        except Exception:
            msg = str(e)
        return _json_error(msg, 400)
    except (TypeError, ValueError, KeyError) as e:
        return _json_error(f"invalid transaction: {e}", 400)

    job = get_service().enqueue(tx)
    current_app.logger.info("POST /print-jobs queued %s for transaction %s", job.id, job.transaction_id)
    resp = jsonify(_job_payload(job))
    resp.status_code = 201
    resp.headers["Location"] = url_for("api.get_job", job_id=job.id)
    return resp


@api_bp.get("/print-jobs")
def list_jobs():
    svc = get_service()
    status = (request.args.get("status") or "").strip().lower()
    limit: Optional[int] = None
    raw_limit = request.args.get("limit")
    if raw_limit not in (None, ""):
        try:
            limit = max(0, int(raw_limit))
        except ValueError:
            return _json_error("limit must be an integer", 400)

    if status:
        try:
            wanted = JobStatus(status)
        except ValueError:
            return _json_error(f"unknown status: {status}", 400)
        jobs = list(reversed(svc.queue.jobs_by_status(wanted)))
        if limit is not None:
            jobs = jobs[:limit]
    else:
        jobs = svc.recent_jobs(limit)

    body = schemas.JobListOut(
        jobs=[_job_model(job) for job in jobs],
        counts=svc.queue.counts(),
    )
    return jsonify(body.model_dump())


@api_bp.get("/print-jobs/<job_id>")
def get_job(job_id: str):
    job = get_service().queue.get(job_id)
    if job is None:
        return _json_error("not_found", 404)
    return jsonify(_job_payload(job))


@api_bp.post("/print-jobs/<job_id>/retry")
def retry_job(job_id: str):
    try:
        job = get_service().queue.requeue(job_id)
    except JobNotFoundError:
        return _json_error("not_found", 404)
    except IllegalTransitionError as e:
        return _json_error(str(e), 409)
    current_app.logger.info("POST /print-jobs/%s/retry queued %s", job_id, job.id)
    resp = jsonify(_job_payload(job))
    resp.status_code = 201
    resp.headers["Location"] = url_for("api.get_job", job_id=job.id)
    return resp


@api_bp.post("/print-jobs/process")
def process_jobs():
    summary = get_service().process_pending()
    current_app.logger.info(
        "POST /print-jobs/process succeeded=%d failed=%d", summary.succeeded, summary.failed
    )
    return jsonify(summary.to_dict())


def _status_payload(svc: PrintService) -> Dict[str, Any]:
    body = svc.printer_status().to_dict(svc.low_paper_threshold)
    body["state"] = svc.monitor.state.value
    return body


@api_bp.get("/printer/status")
def printer_status():
    return jsonify(_status_payload(get_service()))


@api_bp.post("/printer/poll")
def printer_poll():
    svc = get_service()
    svc.poll()
    return jsonify(_status_payload(svc))


@api_bp.post("/printer/test-print")
def test_print():
    try:
        tx = get_service().test_print()
    except PrinterConnectionError as e:
        return _json_error(str(e), 503)
    except WriteError as e:
        current_app.logger.warning("Test print failed: %s", e)
        return _json_error(f"Test print failed: {e}", 503)
    return jsonify({"ok": True, "transactionId": tx.id})
