"""
In-memory registry of background transcription jobs.

Jobs are looked up by id (status polling, cancellation) and dropped a
while after they finish.
"""

import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from scribevault.transcription.models import TranscriptionJob

logger = logging.getLogger(__name__)


class JobRegistry:
    """Thread-safe store of TranscriptionJob objects keyed by job id."""

    def __init__(self, ttl_seconds: float = 600, clock: Callable[[], float] = time.time) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._jobs: Dict[str, TranscriptionJob] = {}
        self._owners: Dict[str, str] = {}
        self._lock = threading.Lock()

    def create(self, user_id: str) -> TranscriptionJob:
        job = TranscriptionJob()
        with self._lock:
            self._purge_locked()
            self._jobs[job.job_id] = job
            self._owners[job.job_id] = user_id
        logger.debug("Registered job %s for user %s", job.job_id, user_id)
        return job

    def get(self, job_id: str, user_id: Optional[str] = None) -> Optional[TranscriptionJob]:
        """Return the job, or None if unknown, expired or owned by someone else."""
        with self._lock:
            self._purge_locked()
            job = self._jobs.get(job_id)
            if job is None:
                return None
            if user_id is not None and self._owners.get(job_id) != user_id:
                return None
            return job

    def cancel(self, job_id: str, user_id: Optional[str] = None) -> bool:
        job = self.get(job_id, user_id)
        if job is None:
            return False
        job.cancel_event.set()
        logger.info("Cancellation requested for job %s", job_id)
        return True

    def active_jobs(self) -> List[TranscriptionJob]:
        with self._lock:
            return [job for job in self._jobs.values() if not job.is_finished]

    def cancel_all(self) -> int:
        """Signal every unfinished job to stop; returns how many were signalled."""
        jobs = self.active_jobs()
        for job in jobs:
            job.cancel_event.set()
        if jobs:
            logger.info("Cancellation requested for %d running jobs", len(jobs))
        return len(jobs)

    def _purge_locked(self) -> None:
        now = self._clock()
        expired = [
            job_id
            for job_id, job in self._jobs.items()
            if job.is_finished and now - job.finished_at > self._ttl
        ]
        for job_id in expired:
            del self._jobs[job_id]
            self._owners.pop(job_id, None)
        if expired:
            logger.debug("Purged %d finished jobs", len(expired))
