"""
History reconciliation.

Merges the provider's live transcript listing with the locally held
backups. Only provider jobs that have a local backup are shown: the
provider account may hold jobs that do not belong to the caller, and the
backup is the only proof of ownership we have.

When the provider reports ``audio_url == "deleted_by_user"`` the audio and
transcript content are gone at the provider; the entry is still shown
with the file metadata from the backup, but without any content.
"""

import logging
from typing import Any, Dict, List, Optional

from scribevault.database.backup_repository import decode_backup_payload
from scribevault.errors import ForbiddenError, NotFoundError, PersistenceError
from scribevault.transcription.text_utils import (
    flatten_utterances,
    format_audio_duration,
    normalize_utterances,
)

logger = logging.getLogger(__name__)

DELETION_SENTINEL = "deleted_by_user"


def _history_entry(listing: Dict[str, Any], backup: Dict[str, Any], **content) -> Dict[str, Any]:
    entry = {
        "transcript_id": listing["id"],
        "created_at": listing.get("created"),
        "status": listing.get("status"),
        "audio_url": listing.get("audio_url"),
        "audio_duration": "",
        "speech_model": None,
        "language": None,
        "transcription": "",
        "utterances": None,
        "file_name": backup.get("file_name"),
        "file_recorded_at": backup.get("file_recorded_at"),
    }
    entry.update(content)
    return entry


class HistoryService:
    """Reconciled history plus the backup-driven history actions."""

    def __init__(self, client, backups, transcripts, page_size: int = 20) -> None:
        self._client = client
        self._backups = backups
        self._transcripts = transcripts
        self._page_size = page_size

    # ── Reconcile ────────────────────────────────────────────────────────

    def reconcile(self, user_id: str, is_admin: bool = False) -> List[Dict[str, Any]]:
        """
        Return the caller's history, in provider listing order.

        Non-admin callers only see jobs whose backup they own.
        """
        listing = self._client.list_jobs(limit=self._page_size)
        backups = self._backups.get_backups_by_ids(
            [item["id"] for item in listing], user_id, is_admin
        )
        backups_by_id = {backup["transcript_id"]: backup for backup in backups}

        history = []
        for item in listing:
            backup = backups_by_id.get(item["id"])
            if backup is None:
                logger.debug("Dropping provider job %s: no local backup", item["id"])
                continue

            if item.get("audio_url") == DELETION_SENTINEL:
                history.append(_history_entry(item, backup, audio_url=DELETION_SENTINEL))
                continue

            payload = decode_backup_payload(backup)
            if payload is None:
                # unreadable backups are dropped rather than failing the whole view
                continue

            try:
                entry = _history_entry(
                    item,
                    backup,
                    status=item.get("status") or payload.get("status"),
                    audio_duration=format_audio_duration(payload.get("audio_duration")),
                    speech_model=payload.get("speech_model"),
                    language=payload.get("language_code"),
                    transcription=flatten_utterances(payload),
                    utterances=normalize_utterances(payload),
                )
            except (AttributeError, TypeError, ValueError) as exc:
                logger.warning(
                    "Dropping provider job %s: backup payload is malformed: %s", item["id"], exc
                )
                continue
            history.append(entry)

        logger.info(
            "History for user %s: %d of %d provider jobs matched a backup",
            user_id, len(history), len(listing),
        )
        return history

    # ── Backup actions ───────────────────────────────────────────────────

    def _owned_backup(self, transcript_id: str, user_id: str, is_admin: bool) -> Dict[str, Any]:
        backup = self._backups.get_backup(transcript_id)
        if backup is None:
            raise NotFoundError(f"No backup found for transcript {transcript_id}")
        if not is_admin and backup.get("user_id") != user_id:
            raise ForbiddenError("You do not have access to this transcript")
        return backup

    def restore(self, transcript_id: str, user_id: str, is_admin: bool = False) -> Dict[str, Any]:
        """
        Recreate a local transcript record from its backup.

        Raises ConflictError when a record for the transcript already exists.
        """
        backup = self._owned_backup(transcript_id, user_id, is_admin)
        payload = decode_backup_payload(backup)
        if payload is None:
            raise PersistenceError("Backup payload cannot be read", transcript_id)

        # insert_transcript_record raises ConflictError on an existing record
        record = self._transcripts.insert_transcript_record(
            user_id=backup["user_id"],
            file_name=backup.get("file_name"),
            file_recorded_at=backup.get("file_recorded_at"),
            transcript_id=transcript_id,
            transcription=flatten_utterances(payload),
            utterances=normalize_utterances(payload),
            audio_duration=payload.get("audio_duration"),
            options={
                "language_code": payload.get("language_code"),
                "speech_model": payload.get("speech_model"),
            },
        )
        logger.info("Transcript %s restored from backup for user %s", transcript_id, user_id)
        return record

    def delete_remote(
        self,
        transcript_id: str,
        user_id: str,
        is_admin: bool = False,
        purge_backup: bool = False,
    ) -> Dict[str, Any]:
        """Delete a job at the provider; optionally drop the local backup too."""
        self._owned_backup(transcript_id, user_id, is_admin)
        self._client.delete_job(transcript_id)

        backup_deleted: Optional[bool] = None
        if purge_backup:
            backup_deleted = self._backups.delete_backup(transcript_id)
        logger.info(
            "Provider job %s deleted by user %s (backup purged: %s)",
            transcript_id, user_id, bool(backup_deleted),
        )
        return {"transcript_id": transcript_id, "provider_deleted": True, "backup_deleted": backup_deleted}
