"""
Data models for the transcription module.
"""

import threading
import time
import uuid
from enum import Enum
from typing import Any, Dict, Optional

from scribevault.errors import InvalidStepTransition


class ProviderStatus(str, Enum):
    """Statuses reported by the provider for a transcript."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class StepKey(str, Enum):
    """Pipeline steps, in execution order."""

    INIT = "init"
    UPLOAD = "upload"
    TRANSCRIBE = "transcribe"
    SAVE_DB = "save_db"
    SAVE_FILE = "save_file"
    COMPLETE = "complete"


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    ERROR = "error"


STEP_ORDER = tuple(StepKey)

_ALLOWED_TRANSITIONS = {
    StepStatus.PENDING: {StepStatus.IN_PROGRESS},
    StepStatus.IN_PROGRESS: {StepStatus.SUCCESS, StepStatus.ERROR},
    StepStatus.SUCCESS: set(),
    StepStatus.ERROR: set(),
}


class TranscriptionJob:
    """
    Step bookkeeping for one orchestrated upload.

    Statuses only move forward (pending → in_progress → success | error),
    and a step can start only when every earlier step succeeded, so the
    steps map always reads as: success…, at most one in_progress/error,
    pending….
    """

    def __init__(self, job_id: Optional[str] = None) -> None:
        self.job_id = job_id or uuid.uuid4().hex
        self.created_at = time.time()
        self.finished_at: Optional[float] = None
        self.transcript_id: Optional[str] = None
        self.result: Optional[Dict[str, Any]] = None
        self.error: Optional[str] = None
        self.cancel_event = threading.Event()
        self._lock = threading.Lock()
        self._steps: Dict[StepKey, Dict[str, Any]] = {
            key: {"status": StepStatus.PENDING, "error": None} for key in STEP_ORDER
        }

    def status_of(self, step: StepKey) -> StepStatus:
        return self._steps[step]["status"]

    def mark(self, step: StepKey, status: StepStatus, error: Optional[str] = None) -> None:
        with self._lock:
            current = self._steps[step]["status"]
            if status not in _ALLOWED_TRANSITIONS[current]:
                raise InvalidStepTransition(
                    f"Step '{step.value}' cannot go from {current.value} to {status.value}"
                )
            if status == StepStatus.IN_PROGRESS:
                for earlier in STEP_ORDER[: STEP_ORDER.index(step)]:
                    if self._steps[earlier]["status"] != StepStatus.SUCCESS:
                        raise InvalidStepTransition(
                            f"Step '{step.value}' cannot start before "
                            f"'{earlier.value}' succeeded"
                        )
            self._steps[step] = {"status": status, "error": error}

    def start(self, step: StepKey) -> None:
        self.mark(step, StepStatus.IN_PROGRESS)

    def succeed(self, step: StepKey) -> None:
        self.mark(step, StepStatus.SUCCESS)

    def fail(self, step: StepKey, error: str) -> None:
        self.mark(step, StepStatus.ERROR, error)
        self.error = error
        self.finished_at = time.time()

    @property
    def is_finished(self) -> bool:
        return self.finished_at is not None

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """JSON-ready copy of the steps map, in step order."""
        with self._lock:
            return {
                key.value: {"status": value["status"].value, "error": value["error"]}
                for key, value in self._steps.items()
            }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "transcript_id": self.transcript_id,
            "steps": self.snapshot(),
            "finished": self.is_finished,
            "error": self.error,
            "result": self.result,
        }
