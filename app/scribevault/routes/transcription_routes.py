"""
Transcription API routes.

Endpoints:
    POST   /api/transcriptions                         upload & transcribe (waits)
    POST   /api/transcriptions/jobs                    upload & transcribe in background
    GET    /api/transcriptions/jobs/{job_id}           background job steps
    DELETE /api/transcriptions/jobs/{job_id}           cancel a background job
    GET    /api/transcriptions                         list stored transcriptions
    GET    /api/transcriptions/by-provider/{transcript_id}
    GET    /api/transcriptions/{transcription_id}
    GET    /api/transcriptions/{transcription_id}/export
    DELETE /api/transcriptions/{transcription_id}      delete record (+ provider / files)
"""

import asyncio
import json
import logging
import os
import time
from datetime import datetime
from functools import partial
from typing import Any, Dict, Optional

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    UploadFile,
)
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response
from pydantic import BaseModel, Field, ValidationError

from commons import limiter, stored_upload_name
from configs.config import get_config
from scribevault.auth.tokens import get_current_user, is_admin
from scribevault.deletion.coordinator import DeleteTargets
from scribevault.dependencies import (
    get_deletion_coordinator,
    get_job_registry,
    get_orchestrator,
    get_transcript_repository,
)
from scribevault.errors import (
    ForbiddenError,
    InputError,
    NotFoundError,
    ScribeVaultError,
    TranscriptionStepError,
)
from scribevault.export.converter import export_transcript
from scribevault.transcription.models import TranscriptionJob
from security import (
    safe_error_response,
    validate_file_extension,
    validate_hex_id,
    validate_transcript_id,
)

logger = logging.getLogger(__name__)

cfg = get_config()

router = APIRouter(prefix="/api", tags=["transcription"])

# Seconds between client-disconnect checks while a job runs
DISCONNECT_CHECK_INTERVAL = 1.0


# ── Pydantic request bodies ─────────────────────────────────────────────


class TranscriptionOptions(BaseModel):
    speaker_labels: bool = True
    speakers_expected: Optional[int] = Field(default=None, ge=1, le=10)
    sentiment_analysis: bool = False
    entity_detection: bool = False
    speech_model: str = Field(default="nano", min_length=1, max_length=30)
    language_code: str = Field(
        default="en", min_length=2, max_length=10, pattern=r"^[a-z]{2}(_[a-z]{2})?$"
    )
    punctuate: bool = True
    format_text: bool = True


class DeleteTranscriptionRequest(BaseModel):
    delete_from_provider: bool = False
    delete_server_files: bool = False


# ── Helpers ──────────────────────────────────────────────────────────────


def parse_options(raw: str) -> Dict[str, Any]:
    """Merge caller options (JSON object) over the configured defaults."""
    try:
        supplied = json.loads(raw) if raw and raw.strip() else {}
    except ValueError as exc:
        raise InputError("Options must be a JSON object") from exc
    if not isinstance(supplied, dict):
        raise InputError("Options must be a JSON object")
    try:
        options = TranscriptionOptions(**{**cfg.DEFAULT_TRANSCRIPTION_OPTIONS, **supplied})
    except ValidationError as exc:
        raise InputError(f"Invalid transcription options: {exc.errors()[0]['msg']}") from exc
    return options.model_dump(exclude_none=True)


async def save_upload(file: UploadFile) -> str:
    """Stream the upload into UPLOAD_DIR and return its path."""
    validate_file_extension(file.filename)
    os.makedirs(cfg.UPLOAD_DIR, exist_ok=True)
    upload_path = os.path.join(cfg.UPLOAD_DIR, stored_upload_name(file.filename))

    total_bytes = 0
    with open(upload_path, "wb") as out:
        while True:
            chunk = await file.read(1024 * 1024)
            if not chunk:
                break
            total_bytes += len(chunk)
            if total_bytes > cfg.MAX_UPLOAD_SIZE:
                out.close()
                os.remove(upload_path)
                raise HTTPException(
                    status_code=413,
                    detail=(
                        f"File too large. Maximum allowed size is "
                        f"{cfg.MAX_UPLOAD_SIZE // (1024 ** 2)} MB."
                    ),
                )
            out.write(chunk)
    logger.debug("Upload saved to %s (%d bytes)", upload_path, total_bytes)
    return upload_path


def load_owned_record(transcripts, transcription_id: str, current_user: dict) -> Dict[str, Any]:
    record = transcripts.get_transcript(transcription_id)
    if record is None:
        raise NotFoundError("Transcription not found")
    if not is_admin(current_user) and record.get("user_id") != current_user["user_id"]:
        logger.warning(
            "User %s denied access to transcription %s",
            current_user["user_id"], transcription_id,
        )
        raise ForbiddenError("You do not have access to this transcription")
    return record


async def run_watching_disconnect(request: Request, job: TranscriptionJob, run):
    """
    Run ``run`` in a worker thread; if the client goes away, set the job's
    cancel event so polling stops at the next tick.
    """
    task = asyncio.ensure_future(run_in_threadpool(run))
    while not task.done():
        done, _ = await asyncio.wait({task}, timeout=DISCONNECT_CHECK_INTERVAL)
        if done:
            break
        if not job.cancel_event.is_set() and await request.is_disconnected():
            logger.warning("Client disconnected; cancelling job %s", job.job_id)
            job.cancel_event.set()
    return task.result()


def run_background_job(orchestrator, job: TranscriptionJob, **kwargs) -> None:
    try:
        orchestrator.run_job(job=job, cancel_event=job.cancel_event, **kwargs)
    except TranscriptionStepError as exc:
        # the job object already holds the failed step for status polling
        logger.warning("Background job %s stopped at %s: %s", job.job_id, exc.step, exc.message)
    except Exception:
        logger.exception("Background job %s crashed", job.job_id)
        if job.finished_at is None:
            job.finished_at = time.time()


# ── Upload & Transcribe ──────────────────────────────────────────────────


@router.post("/transcriptions")
@limiter.limit("10/hour")
async def create_transcription(
    request: Request,
    file: UploadFile = File(...),
    options: str = Form(default=""),
    file_modified_date: str = Form(default=""),
    current_user: dict = Depends(get_current_user),
    orchestrator=Depends(get_orchestrator),
) -> dict:
    """Upload an audio file and wait for the finished transcript."""
    parsed_options = parse_options(options)
    job = TranscriptionJob()
    logger.info(
        "Transcription request %s from user %s for file: %s",
        job.job_id, current_user["user_id"], file.filename,
    )

    try:
        upload_path = await save_upload(file)
        record = await run_watching_disconnect(
            request,
            job,
            partial(
                orchestrator.run_job,
                user_id=current_user["user_id"],
                file_path=upload_path,
                file_metadata={
                    "file_name": file.filename,
                    "recorded_at": file_modified_date or None,
                },
                options=parsed_options,
                job=job,
                cancel_event=job.cancel_event,
                user_role=current_user.get("role"),
            ),
        )
    except (HTTPException, ScribeVaultError):
        raise
    except Exception as exc:
        safe_error_response(exc, context="transcription")

    return {
        "success": True,
        "message": "Transcription completed successfully",
        "data": record,
        "steps": job.snapshot(),
    }


@router.post("/transcriptions/jobs", status_code=202)
@limiter.limit("10/hour")
async def create_transcription_job(
    request: Request,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    options: str = Form(default=""),
    file_modified_date: str = Form(default=""),
    current_user: dict = Depends(get_current_user),
    orchestrator=Depends(get_orchestrator),
    registry=Depends(get_job_registry),
) -> dict:
    """Upload an audio file and transcribe it in the background."""
    parsed_options = parse_options(options)
    try:
        upload_path = await save_upload(file)
    except HTTPException:
        raise
    except Exception as exc:
        safe_error_response(exc, context="upload")

    job = registry.create(current_user["user_id"])
    background_tasks.add_task(
        run_background_job,
        orchestrator,
        job,
        user_id=current_user["user_id"],
        file_path=upload_path,
        file_metadata={"file_name": file.filename, "recorded_at": file_modified_date or None},
        options=parsed_options,
        user_role=current_user.get("role"),
    )
    logger.info("Background transcription job %s queued", job.job_id)
    return {"success": True, "job_id": job.job_id, "steps": job.snapshot()}


# ── Background job status ────────────────────────────────────────────────


@router.get("/transcriptions/jobs/{job_id}")
@limiter.limit("120/minute")
def get_transcription_job(
    request: Request,
    job_id: str,
    current_user: dict = Depends(get_current_user),
    registry=Depends(get_job_registry),
) -> dict:
    validate_hex_id(job_id, "job ID")
    job = registry.get(job_id, current_user["user_id"])
    if job is None:
        raise NotFoundError("Job not found")
    return {"success": True, **job.to_dict()}


@router.delete("/transcriptions/jobs/{job_id}")
@limiter.limit("30/minute")
def cancel_transcription_job(
    request: Request,
    job_id: str,
    current_user: dict = Depends(get_current_user),
    registry=Depends(get_job_registry),
) -> dict:
    validate_hex_id(job_id, "job ID")
    if not registry.cancel(job_id, current_user["user_id"]):
        raise NotFoundError("Job not found")
    return {"success": True, "message": "Cancellation requested", "job_id": job_id}


# ── Read ─────────────────────────────────────────────────────────────────


@router.get("/transcriptions")
@limiter.limit("60/minute")
def list_transcriptions(
    request: Request,
    file_name: Optional[str] = Query(default=None, max_length=255),
    transcript_id: Optional[str] = Query(default=None, max_length=64),
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    order_by: str = Query(default="created_at", pattern=r"^(created_at|file_recorded_at|file_name)$"),
    direction: str = Query(default="desc", pattern=r"^(asc|desc)$"),
    current_user: dict = Depends(get_current_user),
    transcripts=Depends(get_transcript_repository),
) -> dict:
    """List the caller's transcriptions (every user's for admins)."""
    records = transcripts.list_transcripts(
        user_id=None if is_admin(current_user) else current_user["user_id"],
        file_name=file_name,
        transcript_id=transcript_id,
        date_from=date_from,
        date_to=date_to,
        order_by=order_by,
        direction=direction,
    )
    return {"success": True, "data": records, "total": len(records)}


@router.get("/transcriptions/by-provider/{transcript_id}")
@limiter.limit("60/minute")
def get_transcription_by_provider_id(
    request: Request,
    transcript_id: str,
    current_user: dict = Depends(get_current_user),
    transcripts=Depends(get_transcript_repository),
) -> dict:
    validate_transcript_id(transcript_id)
    record = transcripts.get_transcript_by_provider_id(transcript_id)
    if record is None:
        raise NotFoundError("Transcription not found")
    return {
        "success": True,
        "data": load_owned_record(transcripts, record["transcription_id"], current_user),
    }


@router.get("/transcriptions/{transcription_id}")
@limiter.limit("60/minute")
def get_transcription(
    request: Request,
    transcription_id: str,
    current_user: dict = Depends(get_current_user),
    transcripts=Depends(get_transcript_repository),
) -> dict:
    validate_hex_id(transcription_id, "transcription ID")
    return {
        "success": True,
        "data": load_owned_record(transcripts, transcription_id, current_user),
    }


# ── Export ───────────────────────────────────────────────────────────────


@router.get("/transcriptions/{transcription_id}/export")
@limiter.limit("30/minute")
def export_transcription(
    request: Request,
    transcription_id: str,
    format: str = Query(default="txt", max_length=10),
    current_user: dict = Depends(get_current_user),
    transcripts=Depends(get_transcript_repository),
) -> Response:
    """Download the transcript as txt, pdf or docx."""
    validate_hex_id(transcription_id, "transcription ID")
    record = load_owned_record(transcripts, transcription_id, current_user)
    result = export_transcript(record, format)
    return Response(
        content=result.buffer,
        media_type=result.mime,
        headers={"Content-Disposition": f'attachment; filename="{result.file_name}"'},
    )


# ── Delete ───────────────────────────────────────────────────────────────


@router.delete("/transcriptions/{transcription_id}")
@limiter.limit("10/minute")
def delete_transcription(
    request: Request,
    transcription_id: str,
    body: Optional[DeleteTranscriptionRequest] = None,
    current_user: dict = Depends(get_current_user),
    coordinator=Depends(get_deletion_coordinator),
) -> dict:
    """Delete the record and, on request, the provider job and server files."""
    validate_hex_id(transcription_id, "transcription ID")
    body = body or DeleteTranscriptionRequest()
    return coordinator.delete(
        transcription_id,
        DeleteTargets(
            delete_from_provider=body.delete_from_provider,
            delete_server_files=body.delete_server_files,
        ),
        user_id=current_user["user_id"],
        is_admin=is_admin(current_user),
    )
