"""
Job Queue
=========

A small persistent queue of background jobs (article generation, video
renders, IndexNow pings). Jobs live in ``data/jobs/jobs.json``; nothing here
executes work, workers poll the queue and report status back.

Statuses: queued -> processing -> completed | failed

Usage:
    from torquepress.jobs import get_queue

    queue = get_queue()
    ticket = queue.enqueue("video-render", {"slug": "rav4-vs-cr-v"})
    queue.update_status(ticket["id"], "processing", progress=10)
"""

from __future__ import annotations

import logging
import random
import string
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from torquepress.errors import NotFoundError
from torquepress.persistence import DATA_DIR, load_json, now_iso, save_json

logger = logging.getLogger("torquepress.jobs")

JOBS_DATA_DIR = DATA_DIR / "jobs"
MAX_JOBS = 1000

VALID_JOB_STATUSES = ("queued", "processing", "completed", "failed")
FINISHED_STATUSES = ("completed", "failed")

_ID_ALPHABET = string.ascii_lowercase + string.digits


class JobNotFoundError(NotFoundError):
    """No job has the requested id."""


def _new_job_id() -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=7))
    return f"job_{int(time.time() * 1000)}_{suffix}"


@dataclass
class Job:
    """A unit of background work and its progress."""
    type: str
    payload: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=_new_job_id)
    status: str = "queued"
    title: Optional[str] = None
    progress: int = 0
    current_step: str = "Queued"
    error: Optional[str] = None
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)
    completed_at: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Job":
        known = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in data.items() if k in known}
        return cls(**filtered)


def _validate_status(status: str) -> None:
    if status not in VALID_JOB_STATUSES:
        raise ValueError(
            f"Invalid status '{status}'. Valid: {', '.join(VALID_JOB_STATUSES)}"
        )


class JobQueue:
    """File-backed job queue. Use ``get_queue()`` for the shared instance."""

    def __init__(self, data_dir: Optional[Path] = None) -> None:
        self._data_dir = Path(data_dir) if data_dir else JOBS_DATA_DIR
        self._jobs_file = self._data_dir / "jobs.json"
        self._jobs: Optional[List[Job]] = None

    # -- Persistence --------------------------------------------------------

    @property
    def jobs(self) -> List[Job]:
        if self._jobs is None:
            self._jobs = [Job.from_dict(j) for j in load_json(self._jobs_file, [])]
        return self._jobs

    def _save(self) -> None:
        save_json(self._jobs_file, [j.to_dict() for j in self.jobs])

    def _enforce_max_jobs(self) -> None:
        """Drop the oldest finished jobs, then the oldest of any kind."""
        excess = len(self.jobs) - MAX_JOBS
        if excess <= 0:
            return
        finished = sorted(
            (j for j in self.jobs if j.status in FINISHED_STATUSES),
            key=lambda j: j.created_at,
        )
        drop = {j.id for j in finished[:excess]}
        if len(drop) < excess:
            remaining = sorted(
                (j for j in self.jobs if j.id not in drop), key=lambda j: j.created_at,
            )
            drop.update(j.id for j in remaining[: excess - len(drop)])
        self._jobs = [j for j in self.jobs if j.id not in drop]

    # -- Operations ---------------------------------------------------------

    def enqueue(
        self, job_type: str, payload: Optional[Dict[str, Any]] = None, title: Optional[str] = None,
    ) -> Dict[str, str]:
        """Queue a job. Returns ``{"id": ..., "status": "queued"}``."""
        if not job_type:
            raise ValueError("Job type is required")
        job = Job(type=job_type, payload=dict(payload or {}), title=title)
        self.jobs.append(job)
        self._enforce_max_jobs()
        self._save()
        logger.info("Enqueued %s job: %s", job_type, job.id)
        return {"id": job.id, "status": job.status}

    def get(self, job_id: str) -> Job:
        """
        Raises:
            JobNotFoundError: if no job has ``job_id``.
        """
        for job in self.jobs:
            if job.id == job_id:
                return job
        raise JobNotFoundError(f"Job not found: {job_id}")

    def list(self, status: Optional[str] = None, job_type: Optional[str] = None) -> List[Job]:
        """Jobs newest first, optionally filtered by status and type."""
        if status:
            _validate_status(status)
        results = self.jobs
        if status:
            results = [j for j in results if j.status == status]
        if job_type:
            results = [j for j in results if j.type == job_type]
        # Queue order breaks ties between jobs created in the same second.
        order = {j.id: i for i, j in enumerate(self.jobs)}
        return sorted(results, key=lambda j: (j.created_at, order[j.id]), reverse=True)

    def update_status(
        self,
        job_id: str,
        status: str,
        progress: Optional[int] = None,
        current_step: Optional[str] = None,
        error: Optional[str] = None,
    ) -> Job:
        """Move a job to ``status`` and record progress.

        Raises:
            JobNotFoundError: unknown ``job_id``.
            ValueError: invalid ``status``.
        """
        _validate_status(status)
        job = self.get(job_id)
        old_status = job.status

        job.status = status
        if progress is not None:
            job.progress = max(0, min(100, int(progress)))
        if current_step is not None:
            job.current_step = current_step
        if error is not None:
            job.error = error
        job.updated_at = now_iso()

        if status in FINISHED_STATUSES:
            job.completed_at = job.completed_at or job.updated_at
            if status == "completed":
                job.progress = 100
                if current_step is None:
                    job.current_step = "Complete"

        self._save()
        logger.info("Job %s: %s -> %s", job_id, old_status, status)
        return job

    def get_stats(self) -> Dict[str, Any]:
        by_status: Dict[str, int] = {s: 0 for s in VALID_JOB_STATUSES}
        by_type: Dict[str, int] = {}
        for job in self.jobs:
            by_status[job.status] = by_status.get(job.status, 0) + 1
            by_type[job.type] = by_type.get(job.type, 0) + 1
        return {"total": len(self.jobs), "by_status": by_status, "by_type": by_type}


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_queue: Optional[JobQueue] = None


def get_queue(data_dir: Optional[Path] = None) -> JobQueue:
    """Get the shared JobQueue (a new one when ``data_dir`` is given)."""
    global _queue
    if _queue is None or data_dir is not None:
        _queue = JobQueue(data_dir=data_dir)
    return _queue


def enqueue_job(job_type: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, str]:
    return get_queue().enqueue(job_type, payload)
