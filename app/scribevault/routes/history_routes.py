"""
History API routes.

Endpoints:
    GET    /api/history                          reconciled provider history
    POST   /api/history/{transcript_id}/restore  rebuild a record from its backup
    DELETE /api/history/{transcript_id}          delete the job at the provider
"""

import logging

from fastapi import APIRouter, Depends, Query, Request

from commons import limiter
from scribevault.auth.tokens import get_current_user, is_admin
from scribevault.dependencies import get_history_service
from security import validate_transcript_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["history"])


@router.get("/history")
@limiter.limit("30/minute")
def get_history(
    request: Request,
    current_user: dict = Depends(get_current_user),
    history=Depends(get_history_service),
) -> dict:
    """Provider jobs that have a local backup, newest first (provider order)."""
    entries = history.reconcile(current_user["user_id"], is_admin(current_user))
    return {"success": True, "data": entries, "total": len(entries)}


@router.post("/history/{transcript_id}/restore", status_code=201)
@limiter.limit("10/minute")
def restore_history_entry(
    request: Request,
    transcript_id: str,
    current_user: dict = Depends(get_current_user),
    history=Depends(get_history_service),
) -> dict:
    validate_transcript_id(transcript_id)
    record = history.restore(transcript_id, current_user["user_id"], is_admin(current_user))
    return {
        "success": True,
        "message": "Transcription restored from backup",
        "data": record,
    }


@router.delete("/history/{transcript_id}")
@limiter.limit("10/minute")
def delete_history_entry(
    request: Request,
    transcript_id: str,
    purge_backup: bool = Query(default=False),
    current_user: dict = Depends(get_current_user),
    history=Depends(get_history_service),
) -> dict:
    """Delete a job at the provider; ``purge_backup`` also drops the local backup."""
    validate_transcript_id(transcript_id)
    outcome = history.delete_remote(
        transcript_id, current_user["user_id"], is_admin(current_user), purge_backup
    )
    logger.info("History entry %s removed at provider", transcript_id)
    return {"success": True, "message": "Transcript deleted at provider", "results": outcome}
