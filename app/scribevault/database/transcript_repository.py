"""
Repository for transcript records.

A transcript record is the durable, locally owned result of one completed
provider job: the flattened speaker-labelled text, the normalized
utterances and the file metadata needed to find the files on disk again.
"""

import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from configs.config import get_config
from scribevault.database.connection import get_db
from scribevault.errors import ConflictError, PersistenceError

logger = logging.getLogger(__name__)
cfg = get_config()

ORDERABLE_FIELDS = frozenset({"created_at", "file_recorded_at", "file_name"})


def _clean(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if document is not None:
        document.pop("_id", None)
    return document


class TranscriptRepository:
    """Repository for managing transcript documents in MongoDB."""

    def __init__(self, db: Optional[Database] = None):
        self._db = db if db is not None else get_db()
        self._collection: Collection = self._db[cfg.TRANSCRIPTIONS_COLLECTION]

    # ── Create ───────────────────────────────────────────────────────────

    def insert_transcript_record(
        self,
        user_id: str,
        file_name: str,
        file_recorded_at: Optional[datetime],
        transcript_id: str,
        transcription: str,
        utterances: Optional[List[Dict[str, Any]]] = None,
        audio_duration: Optional[float] = None,
        options: Optional[Dict[str, Any]] = None,
        audio_file: Optional[str] = None,
        transcript_file: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Insert a new transcript record and return it."""
        record = {
            "transcription_id": uuid.uuid4().hex,
            "user_id": user_id,
            "file_name": file_name,
            "file_recorded_at": file_recorded_at,
            "transcript_id": transcript_id,
            "transcription": transcription,
            "utterances": utterances,
            "audio_duration": audio_duration,
            "options": options or {},
            "audio_file": audio_file,
            "transcript_file": transcript_file,
            "created_at": datetime.now(timezone.utc),
        }
        try:
            self._collection.insert_one(record)
        except DuplicateKeyError:
            logger.warning("Transcript %s already has a local record", transcript_id)
            raise ConflictError(f"Transcript {transcript_id} already exists")
        except PyMongoError as exc:
            logger.error(
                "Error inserting transcript %s: %s", transcript_id, exc, exc_info=True
            )
            raise PersistenceError(
                f"Failed to store transcription: {exc}", transcript_id
            ) from exc

        logger.debug(
            "Transcript record %s created for transcript %s",
            record["transcription_id"], transcript_id,
        )
        return _clean(record)

    # ── Read ─────────────────────────────────────────────────────────────

    def get_transcript(self, transcription_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a record by its local id."""
        try:
            return _clean(self._collection.find_one({"transcription_id": transcription_id}))
        except PyMongoError as exc:
            raise PersistenceError(f"Failed to read transcription: {exc}") from exc

    def get_transcript_by_provider_id(self, transcript_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a record by the provider's transcript id."""
        try:
            return _clean(self._collection.find_one({"transcript_id": transcript_id}))
        except PyMongoError as exc:
            raise PersistenceError(f"Failed to read transcription: {exc}") from exc

    def list_transcripts(
        self,
        user_id: Optional[str] = None,
        file_name: Optional[str] = None,
        transcript_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        order_by: str = "created_at",
        direction: str = "desc",
    ) -> List[Dict[str, Any]]:
        """
        Return records matching the filters.

        ``user_id=None`` lists every user's records (admin view).
        ``date_from`` / ``date_to`` bound ``file_recorded_at`` inclusively.
        """
        query: Dict[str, Any] = {}
        if user_id is not None:
            query["user_id"] = user_id
        if file_name:
            query["file_name"] = {"$regex": re.escape(file_name), "$options": "i"}
        if transcript_id:
            query["transcript_id"] = transcript_id
        if date_from or date_to:
            bounds: Dict[str, Any] = {}
            if date_from:
                bounds["$gte"] = date_from
            if date_to:
                bounds["$lte"] = date_to
            query["file_recorded_at"] = bounds

        sort_field = order_by if order_by in ORDERABLE_FIELDS else "created_at"
        sort_dir = ASCENDING if direction.lower() == "asc" else DESCENDING

        try:
            records = list(self._collection.find(query).sort(sort_field, sort_dir))
        except PyMongoError as exc:
            raise PersistenceError(f"Failed to list transcriptions: {exc}") from exc

        logger.debug("Retrieved %d transcript records (filters=%s)", len(records), query)
        return [_clean(r) for r in records]

    # ── Delete ───────────────────────────────────────────────────────────

    def delete_transcript(self, transcription_id: str) -> bool:
        """Remove a record. Returns False when nothing matched."""
        try:
            result = self._collection.delete_one({"transcription_id": transcription_id})
        except PyMongoError as exc:
            logger.error(
                "Error deleting transcript %s: %s", transcription_id, exc, exc_info=True
            )
            raise PersistenceError(f"Failed to delete transcription: {exc}") from exc

        if result.deleted_count > 0:
            logger.info("Transcript record %s deleted", transcription_id)
            return True
        logger.warning("Transcript record %s delete failed — no match", transcription_id)
        return False
