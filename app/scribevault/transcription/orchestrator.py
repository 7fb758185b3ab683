"""
Transcription job orchestrator.

Drives one uploaded file through the provider and into local storage:

1. init       check the file and work out when it was recorded
2. upload     push the audio bytes to the provider
3. transcribe submit the job and poll until it is terminal
4. save_db    store the provider backup and the transcript record
5. save_file  write the transcript text next to the other transcripts
6. complete   marker step

Steps run strictly in order and the first failure stops the job; the
remaining steps stay ``pending``. Nothing is retried here; only the
``transcribe`` step waits (through the Poller).
"""

import logging
import os
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from scribevault.errors import (
    InputError,
    PersistenceError,
    ScribeVaultError,
    TranscriptionStepError,
)
from scribevault.transcription.models import StepKey, TranscriptionJob
from scribevault.transcription.text_utils import (
    flatten_utterances,
    normalize_utterances,
    transcript_filename,
)

logger = logging.getLogger(__name__)

# Provider options echoed back in the payload and kept with the record
RECORDED_OPTION_KEYS = (
    "language_code",
    "speech_model",
    "entity_detection",
    "sentiment_analysis",
    "speaker_labels",
    "speakers_expected",
    "punctuate",
    "format_text",
)


def parse_recorded_at(value: Any) -> Optional[datetime]:
    """
    Parse a caller-supplied recording timestamp.

    Accepts a ``datetime``, an ISO-8601 string or epoch milliseconds.
    Naive values are taken as UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) or (isinstance(value, str) and value.isdigit()):
        parsed = datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise InputError(f"Invalid file_modified_date: {value!r}") from exc
    else:
        raise InputError(f"Invalid file_modified_date: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class JobOrchestrator:
    """Runs the upload → transcribe → persist pipeline for one file."""

    def __init__(self, client, poller, transcripts, backups, transcripts_dir: str) -> None:
        self._client = client
        self._poller = poller
        self._transcripts = transcripts
        self._backups = backups
        self._transcripts_dir = transcripts_dir

    def run_job(
        self,
        user_id: str,
        file_path: str,
        file_metadata: Dict[str, Any],
        options: Dict[str, Any],
        job: Optional[TranscriptionJob] = None,
        cancel_event: Optional[threading.Event] = None,
        user_role: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Execute every step and return the stored transcript record.

        Raises TranscriptionStepError on the first failing step.
        """
        job = job or TranscriptionJob()
        cancel_event = cancel_event or job.cancel_event
        file_name = file_metadata.get("file_name") or os.path.basename(file_path or "")

        logger.info(
            "Starting transcription job %s for user %s (file: %s)",
            job.job_id, user_id, file_name,
        )

        recorded_at = self._run_step(
            job, StepKey.INIT,
            lambda: self._init(file_path, file_metadata.get("recorded_at")),
        )
        upload_url = self._run_step(job, StepKey.UPLOAD, lambda: self._upload(file_path))
        payload = self._run_step(
            job, StepKey.TRANSCRIBE,
            lambda: self._transcribe(job, upload_url, options, cancel_event),
        )

        record = self._run_step(
            job, StepKey.SAVE_DB,
            lambda: self._save_db(
                job, user_id, user_role, file_name, recorded_at, payload,
                os.path.basename(file_path),
            ),
        )
        self._run_step(
            job, StepKey.SAVE_FILE,
            lambda: self._save_file(job, record["transcript_file"], record["transcription"]),
        )
        self._run_step(job, StepKey.COMPLETE, lambda: None)

        job.result = record
        job.finished_at = datetime.now(timezone.utc).timestamp()
        logger.info(
            "Job %s completed successfully (transcript %s)", job.job_id, job.transcript_id
        )
        return record

    # ── Step runner ──────────────────────────────────────────────────────

    def _run_step(self, job: TranscriptionJob, step: StepKey, action: Callable[[], Any]) -> Any:
        job.start(step)
        logger.info("Job %s: step %s in progress", job.job_id, step.value)
        try:
            result = action()
        except ScribeVaultError as exc:
            message = self._with_transcript_id(job, exc.message)
            self._abort(job, step, message, exc.status_code)
            raise TranscriptionStepError(
                step.value, message, job.snapshot(), job.transcript_id, exc.status_code
            ) from exc
        except Exception as exc:
            message = self._with_transcript_id(
                job, f"Unexpected error during {step.value}: {exc}"
            )
            logger.error("Job %s: %s", job.job_id, message, exc_info=True)
            self._abort(job, step, message, 500)
            raise TranscriptionStepError(
                step.value, message, job.snapshot(), job.transcript_id
            ) from exc
        job.succeed(step)
        return result

    @staticmethod
    def _with_transcript_id(job: TranscriptionJob, message: str) -> str:
        if job.transcript_id and job.transcript_id not in message:
            return f"{message} (transcript_id={job.transcript_id})"
        return message

    def _abort(self, job: TranscriptionJob, step: StepKey, message: str, status_code: int) -> None:
        job.fail(step, message)
        logger.error(
            "Job %s failed at step %s (transcript %s, status %d): %s",
            job.job_id, step.value, job.transcript_id, status_code, message,
        )

    # ── Steps ────────────────────────────────────────────────────────────

    def _init(self, file_path: str, recorded_at_override: Any) -> datetime:
        if not file_path or not os.path.isfile(file_path):
            raise InputError("No audio file provided")
        recorded_at = parse_recorded_at(recorded_at_override)
        if recorded_at is None:
            recorded_at = datetime.fromtimestamp(os.stat(file_path).st_mtime, tz=timezone.utc)
        return recorded_at

    def _upload(self, file_path: str) -> str:
        with open(file_path, "rb") as fh:
            data = fh.read()
        logger.debug("Uploading %d bytes from %s", len(data), file_path)
        return self._client.upload(data)

    def _transcribe(
        self,
        job: TranscriptionJob,
        upload_url: str,
        options: Dict[str, Any],
        cancel_event: threading.Event,
    ) -> Dict[str, Any]:
        job.transcript_id = self._client.submit(upload_url, options)
        logger.info("Job %s submitted as transcript %s", job.job_id, job.transcript_id)
        return self._poller.poll(job.transcript_id, cancel_event)

    def _save_db(
        self,
        job: TranscriptionJob,
        user_id: str,
        user_role: Optional[str],
        file_name: str,
        recorded_at: datetime,
        payload: Dict[str, Any],
        audio_file: str,
    ) -> Dict[str, Any]:
        text = flatten_utterances(payload)
        output_name = transcript_filename(file_name, recorded_at)
        self._backups.insert_backup(
            transcript_id=job.transcript_id,
            user_id=user_id,
            user_role=user_role,
            file_name=file_name,
            file_recorded_at=recorded_at,
            raw_payload=payload,
        )
        record = self._transcripts.insert_transcript_record(
            user_id=user_id,
            file_name=file_name,
            file_recorded_at=recorded_at,
            transcript_id=job.transcript_id,
            transcription=text,
            utterances=normalize_utterances(payload),
            audio_duration=payload.get("audio_duration"),
            options={key: payload.get(key) for key in RECORDED_OPTION_KEYS},
            audio_file=audio_file,
            transcript_file=output_name,
        )
        logger.info(
            "Transcript %s stored as record %s", job.transcript_id, record["transcription_id"]
        )
        return record

    def _save_file(self, job: TranscriptionJob, output_name: str, text: str) -> str:
        path = os.path.join(self._transcripts_dir, output_name)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "w", encoding="utf-8") as fh:
                fh.write(text)
        except OSError as exc:
            raise PersistenceError(
                f"Failed to write transcript file {output_name}: {exc}", job.transcript_id
            ) from exc
        logger.info("Transcript saved to %s", path)
        return path
