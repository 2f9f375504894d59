import threading
from typing import List

import pytest

from remit_printer.printing.encoder import CUT_FULL, INITIALIZE, encode_receipt
from remit_printer.printing.errors import PrinterConnectionError, WriteError
from remit_printer.printing.models import JobStatus
from remit_printer.printing.monitor import PrinterMonitor
from remit_printer.printing.print_queue import PrintQueue
from remit_printer.printing.processor import BUSY, QueueProcessor


class SpyEncoder:
    def __init__(self):
        self.calls: List[str] = []

    def __call__(self, transaction, printed_at, options=None):
        self.calls.append(transaction.id)
        return encode_receipt(transaction, printed_at, options)


def _setup(handle, printed_at, **kwargs):
    queue = PrintQueue()
    monitor = PrinterMonitor(handle, timeout=1.0)
    monitor.poll()
    spy = SpyEncoder()
    proc = QueueProcessor(queue, monitor, handle, encoder=spy, clock=lambda: printed_at, **kwargs)
    return queue, monitor, proc, spy


def test_three_jobs_complete_in_enqueue_order(make_tx, fake_handle, printed_at):
    handle = fake_handle(connected=True, paper_level=80)
    queue, _, proc, spy = _setup(handle, printed_at)
    txs = [
        make_tx(id="tx-1", amount=100, from_currency="USD", to_currency="GHS", unique_id="RJBAAAA0001"),
        make_tx(id="tx-2", amount=250, from_currency="USD", to_currency="NGN", unique_id="RJBAAAA0002"),
        make_tx(id="tx-3", amount=75, from_currency="USD", to_currency="KES", unique_id="RJBAAAA0003"),
    ]
    jobs = [queue.enqueue(t) for t in txs]

    summary = proc.process_pending()

    assert summary.to_dict() == {"succeeded": 3, "failed": 0}
    assert summary.jobs == [j.id for j in jobs]
    assert [queue.get(j.id).status for j in jobs] == [JobStatus.COMPLETED] * 3
    assert spy.calls == ["tx-1", "tx-2", "tx-3"]
    assert len(handle.written) == 3
    for data, uid in zip(handle.written, ["RJBAAAA0001", "RJBAAAA0002", "RJBAAAA0003"]):
        assert data.startswith(INITIALIZE)
        assert CUT_FULL in data
        assert uid.encode() in data


def test_disconnected_printer_fails_jobs_without_encoding(make_tx, fake_handle, printed_at):
    handle = fake_handle(connected=False, errors=["USB connection timeout"])
    queue, _, proc, spy = _setup(handle, printed_at)
    job = queue.enqueue(make_tx())

    summary = proc.process_pending()

    assert summary.to_dict() == {"succeeded": 0, "failed": 1}
    stored = queue.get(job.id)
    assert stored.status is JobStatus.FAILED
    assert "printer disconnected" in stored.error
    assert "USB connection timeout" in stored.error
    assert spy.calls == []
    assert handle.written == []


def test_disconnected_jobs_pass_through_printing(make_tx, fake_handle, printed_at):
    handle = fake_handle(connected=False)
    queue, _, proc, _ = _setup(handle, printed_at)
    seen = []
    queue.add_listener(lambda job, prev: seen.append((prev, job.status)))
    queue.enqueue(make_tx())
    proc.process_pending()
    assert seen == [
        (None, JobStatus.PENDING),
        (JobStatus.PENDING, JobStatus.PRINTING),
        (JobStatus.PRINTING, JobStatus.FAILED),
    ]


def test_unencodable_job_fails_and_others_still_print(make_tx, fake_handle, printed_at):
    handle = fake_handle()
    queue, _, proc, spy = _setup(handle, printed_at)
    ok_1 = queue.enqueue(make_tx(id="tx-1"))
    bad = queue.enqueue(make_tx(id="tx-2", unique_id="RJB" + "X" * 300))
    ok_2 = queue.enqueue(make_tx(id="tx-3"))

    summary = proc.process_pending()

    assert summary.to_dict() == {"succeeded": 2, "failed": 1}
    assert queue.get(bad.id).status is JobStatus.FAILED
    assert queue.get(bad.id).error.startswith("encoding error")
    assert queue.get(ok_1.id).status is JobStatus.COMPLETED
    assert queue.get(ok_2.id).status is JobStatus.COMPLETED
    assert len(queue) == 3
    assert spy.calls == ["tx-1", "tx-2", "tx-3"]
    assert len(handle.written) == 2


def test_rejected_write_fails_job(make_tx, fake_handle, printed_at):
    handle = fake_handle(write_result=False)
    queue, _, proc, _ = _setup(handle, printed_at)
    job = queue.enqueue(make_tx())
    assert proc.process_pending().failed == 1
    assert queue.get(job.id).error == "printer rejected write"


def test_write_exception_fails_job(make_tx, fake_handle, printed_at):
    handle = fake_handle(write_exc=OSError("device not found"))
    queue, _, proc, _ = _setup(handle, printed_at)
    job = queue.enqueue(make_tx())
    assert proc.process_pending().to_dict() == {"succeeded": 0, "failed": 1}
    assert "device not found" in queue.get(job.id).error


def test_write_timeout_fails_job_instead_of_hanging(make_tx, fake_handle, printed_at):
    handle = fake_handle(write_delay=0.5)
    queue, _, proc, _ = _setup(handle, printed_at, write_timeout=0.05)
    job = queue.enqueue(make_tx())
    summary = proc.process_pending()
    assert summary.failed == 1
    assert "timeout" in queue.get(job.id).error


def test_unexpected_encoder_error_is_isolated(make_tx, fake_handle, printed_at):
    handle = fake_handle()
    queue = PrintQueue()
    monitor = PrinterMonitor(handle)
    monitor.poll()

    def flaky(tx, printed_at, options=None):
        if tx.id == "tx-1":
            raise KeyError("missing template")
        return encode_receipt(tx, printed_at, options)

    proc = QueueProcessor(queue, monitor, handle, encoder=flaky, clock=lambda: printed_at)
    first = queue.enqueue(make_tx(id="tx-1"))
    second = queue.enqueue(make_tx(id="tx-2"))
    assert proc.process_pending().to_dict() == {"succeeded": 1, "failed": 1}
    assert queue.get(first.id).status is JobStatus.FAILED
    assert queue.get(second.id).status is JobStatus.COMPLETED


def test_at_most_one_job_printing_during_pass(make_tx, fake_handle, printed_at):
    handle = fake_handle()
    queue, _, proc, _ = _setup(handle, printed_at)
    observed = []
    queue.add_listener(lambda job, prev: observed.append(len(queue.jobs_by_status(JobStatus.PRINTING))))
    for i in range(5):
        queue.enqueue(make_tx(id=f"tx-{i}"))

    proc.process_pending()

    assert max(observed) == 1
    assert queue.jobs_by_status(JobStatus.PRINTING) == []


def test_concurrent_passes_keep_single_printer_invariant(make_tx, fake_handle, printed_at):
    handle = fake_handle(write_delay=0.01)
    queue, _, proc, _ = _setup(handle, printed_at)
    observed = []
    queue.add_listener(lambda job, prev: observed.append(len(queue.jobs_by_status(JobStatus.PRINTING))))
    for i in range(6):
        queue.enqueue(make_tx(id=f"tx-{i}"))

    results = []
    threads = [threading.Thread(target=lambda: results.append(proc.process_pending())) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert max(observed) == 1
    assert sum(r.succeeded for r in results) == 6
    assert sum(r.failed for r in results) == 0
    assert len(handle.written) == 6


def test_jobs_enqueued_during_pass_wait_for_next_pass(make_tx, fake_handle, printed_at):
    handle = fake_handle()
    queue, _, proc, _ = _setup(handle, printed_at)
    late = []

    def enqueue_once(job, prev):
        if job.status is JobStatus.PRINTING and not late:
            late.append(queue.enqueue(make_tx(id="tx-late")))

    queue.add_listener(enqueue_once)
    queue.enqueue(make_tx(id="tx-early"))

    first = proc.process_pending()
    assert first.succeeded == 1
    assert queue.get(late[0].id).status is JobStatus.PENDING

    second = proc.process_pending()
    assert second.succeeded == 1
    assert queue.get(late[0].id).status is JobStatus.COMPLETED


def test_empty_queue_pass(fake_handle, printed_at):
    _, _, proc, _ = _setup(fake_handle(), printed_at)
    assert proc.process_pending().to_dict() == {"succeeded": 0, "failed": 0}


def test_processor_reads_latest_snapshot_without_polling(make_tx, fake_handle, printed_at):
    handle = fake_handle(connected=True)
    queue, _, proc, _ = _setup(handle, printed_at)
    handle.connected = False  # not visible until the next poll
    queries = handle.queries
    queue.enqueue(make_tx())
    assert proc.process_pending().succeeded == 1
    assert handle.queries == queries


def test_test_print_requires_connection(fake_handle, printed_at):
    _, _, proc, spy = _setup(fake_handle(connected=False), printed_at)
    with pytest.raises(PrinterConnectionError):
        proc.test_print()
    assert spy.calls == []


def test_test_print_writes_sample_receipt(fake_handle, printed_at):
    handle = fake_handle()
    _, _, proc, _ = _setup(handle, printed_at)
    tx = proc.test_print()
    assert tx.client_name == "Test Customer"
    assert len(handle.written) == 1
    assert b"Test Customer" in handle.written[0]


def test_test_print_surfaces_write_errors(fake_handle, printed_at):
    _, _, proc, _ = _setup(fake_handle(write_result=False), printed_at)
    with pytest.raises(WriteError):
        proc.test_print()


class HangingFirstWrite:
    """Printer whose first write blocks until released."""

    def __init__(self):
        self.release = threading.Event()
        self.calls = 0
        self.written: List[bytes] = []

    def query_status(self):
        return {"connected": True, "paper_level": 90}

    def write_bytes(self, data):
        self.calls += 1
        if self.calls == 1:
            self.release.wait(5)
        self.written.append(data)
        return True


def test_stuck_write_fails_later_jobs_as_busy_not_timeout(make_tx, printed_at):
    handle = HangingFirstWrite()
    queue, _, proc, _ = _setup(handle, printed_at, write_timeout=0.1)
    first = queue.enqueue(make_tx(id="tx-a"))
    second = queue.enqueue(make_tx(id="tx-b"))

    summary = proc.process_pending()

    assert summary.to_dict() == {"succeeded": 0, "failed": 2}
    assert queue.get(first.id).error == "write timeout after 0.1s (delivery unknown)"
    assert queue.get(second.id).error == BUSY
    assert handle.calls == 1

    # once the stuck write returns, the printer is usable again
    handle.release.set()
    proc._inflight.result(timeout=2)
    retry = queue.requeue(second.id)
    assert proc.process_pending().succeeded == 1
    assert queue.get(retry.id).status is JobStatus.COMPLETED
    assert handle.calls == 2
