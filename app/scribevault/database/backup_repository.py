"""
Repository for provider backups.

A backup keeps the provider's full response for a completed job so the
transcript can be reconstructed after the provider deletes or mutates it.
The payload is stored as an opaque JSON string tagged with
``payload_version``; readers must go through ``decode_backup_payload``.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from configs.config import get_config
from scribevault.database.connection import get_db
from scribevault.errors import PersistenceError

logger = logging.getLogger(__name__)
cfg = get_config()

PAYLOAD_VERSION = 1


def encode_payload(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, default=str, sort_keys=True)


def decode_backup_payload(backup: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Return the stored provider payload, or None if it cannot be trusted."""
    version = backup.get("payload_version")
    if version != PAYLOAD_VERSION:
        logger.warning(
            "Backup %s has unsupported payload_version %r",
            backup.get("transcript_id"), version,
        )
        return None
    try:
        payload = json.loads(backup.get("raw_payload") or "")
    except (TypeError, ValueError) as exc:
        logger.warning(
            "Backup %s has a malformed payload: %s", backup.get("transcript_id"), exc
        )
        return None
    if not isinstance(payload, dict):
        logger.warning("Backup %s payload is not an object", backup.get("transcript_id"))
        return None
    return payload


class BackupRepository:
    """Repository for managing provider backup documents in MongoDB."""

    def __init__(self, db: Optional[Database] = None):
        self._db = db if db is not None else get_db()
        self._collection: Collection = self._db[cfg.BACKUPS_COLLECTION]

    def insert_backup(
        self,
        transcript_id: str,
        user_id: str,
        file_name: str,
        file_recorded_at: Optional[datetime],
        raw_payload: Dict[str, Any],
        user_role: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Store the provider payload for a completed job."""
        document = {
            "transcript_id": transcript_id,
            "user_id": user_id,
            "user_role": user_role,
            "file_name": file_name,
            "file_recorded_at": file_recorded_at,
            "payload_version": PAYLOAD_VERSION,
            "raw_payload": encode_payload(raw_payload),
            "created_at": datetime.now(timezone.utc),
        }
        try:
            self._collection.insert_one(document)
        except DuplicateKeyError as exc:
            logger.error("Backup for transcript %s already exists", transcript_id)
            raise PersistenceError("Backup already exists", transcript_id) from exc
        except PyMongoError as exc:
            logger.error(
                "Error inserting backup for %s: %s", transcript_id, exc, exc_info=True
            )
            raise PersistenceError(f"Failed to store backup: {exc}", transcript_id) from exc

        document.pop("_id", None)
        logger.debug("Backup stored for transcript %s (user %s)", transcript_id, user_id)
        return document

    def get_backup(self, transcript_id: str) -> Optional[Dict[str, Any]]:
        try:
            backup = self._collection.find_one({"transcript_id": transcript_id})
        except PyMongoError as exc:
            raise PersistenceError(f"Failed to read backup: {exc}", transcript_id) from exc
        if backup:
            backup.pop("_id", None)
        return backup

    def get_backups_by_ids(
        self, transcript_ids: Iterable[str], user_id: str, is_admin: bool = False
    ) -> List[Dict[str, Any]]:
        """
        Return the backups for ``transcript_ids``.

        Non-admin callers only see their own backups.
        """
        ids = list(transcript_ids)
        if not ids:
            return []
        query: Dict[str, Any] = {"transcript_id": {"$in": ids}}
        if not is_admin:
            query["user_id"] = user_id
        try:
            backups = list(self._collection.find(query))
        except PyMongoError as exc:
            raise PersistenceError(f"Failed to read backups: {exc}") from exc
        for backup in backups:
            backup.pop("_id", None)
        logger.debug(
            "Found %d backups for %d transcript ids (admin=%s)",
            len(backups), len(ids), is_admin,
        )
        return backups

    def delete_backup(self, transcript_id: str) -> bool:
        try:
            result = self._collection.delete_one({"transcript_id": transcript_id})
        except PyMongoError as exc:
            raise PersistenceError(f"Failed to delete backup: {exc}", transcript_id) from exc
        if result.deleted_count > 0:
            logger.info("Backup for transcript %s deleted", transcript_id)
            return True
        logger.warning("Backup for transcript %s delete failed — no match", transcript_id)
        return False
