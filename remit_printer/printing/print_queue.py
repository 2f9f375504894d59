"""
Print queue: ordered job list plus the job state machine.

    pending -> printing -> completed
                        -> failed

completed and failed are terminal. At most one job may be `printing` at a
time; the queue refuses to claim a second one.

Jobs live in a JobStore. InMemoryJobStore is the default; a durable store
(see remit_printer.core.db.SqliteJobStore) can be swapped in without touching
the processor. Callers always receive copies, never the stored objects.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Union

from .errors import IllegalTransitionError, JobNotFoundError
from .models import JobStatus, PrintJob, Transaction, utc_now

logger = logging.getLogger(__name__)

JobListener = Callable[[PrintJob, Optional[JobStatus]], None]

TRANSITIONS: Dict[JobStatus, frozenset] = {
    JobStatus.PENDING: frozenset({JobStatus.PRINTING}),
    JobStatus.PRINTING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}

INTERRUPTED = "interrupted"


def can_transition(current: JobStatus, new: JobStatus) -> bool:
    return new in TRANSITIONS.get(current, frozenset())


class JobStore(ABC):
    """Storage for print jobs, kept in enqueue order."""

    @abstractmethod
    def add(self, job: PrintJob) -> None: ...

    @abstractmethod
    def get(self, job_id: str) -> Optional[PrintJob]: ...

    @abstractmethod
    def all(self) -> List[PrintJob]: ...

    @abstractmethod
    def save(self, job: PrintJob) -> None:
        """Persist the current state of an existing job."""

    def close(self) -> None:
        return None


class InMemoryJobStore(JobStore):
    def __init__(self) -> None:
        self._jobs: "OrderedDict[str, PrintJob]" = OrderedDict()

    def add(self, job: PrintJob) -> None:
        self._jobs[job.id] = replace(job)

    def get(self, job_id: str) -> Optional[PrintJob]:
        job = self._jobs.get(job_id)
        return replace(job) if job else None

    def all(self) -> List[PrintJob]:
        return [replace(j) for j in self._jobs.values()]

    def save(self, job: PrintJob) -> None:
        if job.id not in self._jobs:
            raise JobNotFoundError(job.id)
        self._jobs[job.id] = replace(job)


def _coerce_status(status: Union[JobStatus, str]) -> JobStatus:
    return status if isinstance(status, JobStatus) else JobStatus(str(status))


class PrintQueue:
    def __init__(self, store: Optional[JobStore] = None):
        self.store = store or InMemoryJobStore()
        self._lock = threading.RLock()
        self._listeners: List[JobListener] = []
        self._recover_interrupted()

    def _recover_interrupted(self) -> None:
        # A job still `printing` at startup belongs to a run that died mid-write.
        with self._lock:
            for job in self.store.all():
                if job.status is JobStatus.PRINTING:
                    job.status = JobStatus.FAILED
                    job.error = INTERRUPTED
                    job.updated_at = utc_now()
                    self.store.save(job)
                    logger.warning("Marked interrupted print job %s as failed", job.id)

    def add_listener(self, listener: JobListener) -> None:
        """Register a callback receiving (job, previous_status) on enqueue and every transition."""
        self._listeners.append(listener)

    def _notify(self, job: PrintJob, previous: Optional[JobStatus]) -> None:
        for listener in list(self._listeners):
            try:
                listener(replace(job), previous)
            except Exception:
                logger.exception("Print job listener failed")

    # ----- operations --------------------------------------------------------

    def enqueue(self, transaction: Transaction) -> PrintJob:
        job = PrintJob.from_transaction(transaction)
        with self._lock:
            self.store.add(job)
        logger.info("Queued print job %s for transaction %s", job.id, job.transaction_id)
        self._notify(job, None)
        return replace(job)

    def get(self, job_id: str) -> Optional[PrintJob]:
        with self._lock:
            return self.store.get(job_id)

    def jobs_by_status(self, status: Union[JobStatus, str]) -> List[PrintJob]:
        wanted = _coerce_status(status)
        with self._lock:
            return [j for j in self.store.all() if j.status is wanted]

    def list_jobs(self, limit: Optional[int] = None) -> List[PrintJob]:
        """Jobs newest first, optionally truncated for display."""
        with self._lock:
            items = self.store.all()
        items.reverse()
        return items[:limit] if limit is not None and limit >= 0 else items

    def counts(self) -> Dict[str, int]:
        out = {s.value: 0 for s in JobStatus}
        with self._lock:
            for j in self.store.all():
                out[j.status.value] += 1
        return out

    def update_status(
        self,
        job_id: str,
        new_status: Union[JobStatus, str],
        error: Optional[str] = None,
    ) -> PrintJob:
        """
        Move a job to `new_status`.

        Raises:
            JobNotFoundError: unknown job id.
            IllegalTransitionError: the move is not in TRANSITIONS, or another
            job is already printing. The stored job is left untouched.
        """
        target = _coerce_status(new_status)
        with self._lock:
            job = self.store.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            previous = job.status
            if not can_transition(previous, target):
                raise IllegalTransitionError(job_id, previous.value, target.value)
            if target is JobStatus.PRINTING:
                busy = [j.id for j in self.store.all() if j.status is JobStatus.PRINTING]
                if busy:
                    raise IllegalTransitionError(
                        job_id, previous.value, target.value, reason=f"job {busy[0]} is already printing"
                    )
            job.status = target
            job.error = error if target is JobStatus.FAILED else None
            job.updated_at = utc_now()
            self.store.save(job)
        logger.info("Print job %s: %s -> %s", job_id, previous.value, target.value)
        self._notify(job, previous)
        return replace(job)

    def requeue(self, job_id: str) -> PrintJob:
        """
        Manual retry: enqueue a new job from a failed job's transaction
        snapshot. The failed job stays in the queue as history.
        """
        with self._lock:
            job = self.store.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            if job.status is not JobStatus.FAILED:
                raise IllegalTransitionError(job_id, job.status.value, "requeue", reason="only failed jobs can be retried")
            return self.enqueue(job.transaction)

    def __len__(self) -> int:
        with self._lock:
            return len(self.store.all())


__all__ = [
    "INTERRUPTED",
    "InMemoryJobStore",
    "JobListener",
    "JobStore",
    "PrintQueue",
    "TRANSITIONS",
    "can_transition",
]
