"""
Deletion of a stored transcription across its three locations:

* the local database record (always deleted, failure is fatal)
* the job at the provider (optional)
* the uploaded audio and transcript text files on disk (optional)

Every requested target is attempted even if an earlier one failed. Only a
failed local-record deletion fails the operation; other failures are
reported in the outcome message.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from scribevault.errors import DeletionError, ForbiddenError, NotFoundError, ScribeVaultError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeleteTargets:
    """Optional deletion targets; the local record is always included."""

    delete_from_provider: bool = False
    delete_server_files: bool = False


def _result(requested: bool, success: Optional[bool] = None, error: Optional[str] = None) -> Dict[str, Any]:
    return {"requested": requested, "success": success, "error": error}


class DeletionCoordinator:
    def __init__(self, transcripts, client, transcripts_dir: str, upload_dir: str) -> None:
        self._transcripts = transcripts
        self._client = client
        self._transcripts_dir = transcripts_dir
        self._upload_dir = upload_dir

    def delete(
        self,
        transcription_id: str,
        targets: DeleteTargets,
        user_id: str,
        is_admin: bool = False,
    ) -> Dict[str, Any]:
        """
        Delete a transcription and return ``{success, message, results}``.

        Raises:
            NotFoundError / ForbiddenError: unknown record or not the owner.
            DeletionError: the local record could not be deleted.
        """
        record = self._transcripts.get_transcript(transcription_id)
        if record is None:
            raise NotFoundError("Transcription not found")
        if not is_admin and record.get("user_id") != user_id:
            raise ForbiddenError("You do not have access to this transcription")

        transcript_id = record.get("transcript_id")
        logger.info(
            "Deleting transcription %s (transcript %s): provider=%s files=%s",
            transcription_id, transcript_id,
            targets.delete_from_provider, targets.delete_server_files,
        )

        results = {
            "database": self._delete_record(transcription_id),
            "provider": (
                self._delete_provider_job(transcript_id)
                if targets.delete_from_provider else _result(False)
            ),
            "files": (
                self._delete_files(record) if targets.delete_server_files else _result(False)
            ),
        }

        if not results["database"]["success"]:
            message = f"Failed to delete transcription: {results['database']['error']}"
            logger.error("Transcription %s: %s", transcription_id, message)
            raise DeletionError(message, results)

        caveats = [
            f"{target} deletion failed ({outcome['error']})"
            for target, outcome in results.items()
            if outcome["requested"] and outcome["success"] is False
        ]
        message = "Transcription deleted successfully"
        if caveats:
            message += ", but " + "; ".join(caveats)
            logger.warning("Transcription %s: %s", transcription_id, message)
        return {"success": True, "message": message, "results": results}

    # ── Targets ──────────────────────────────────────────────────────────

    def _delete_record(self, transcription_id: str) -> Dict[str, Any]:
        try:
            deleted = self._transcripts.delete_transcript(transcription_id)
        except ScribeVaultError as exc:
            return _result(True, False, exc.message)
        except Exception as exc:
            logger.error("Deleting record %s failed: %s", transcription_id, exc, exc_info=True)
            return _result(True, False, str(exc) or type(exc).__name__)
        if not deleted:
            return _result(True, False, "record no longer exists")
        return _result(True, True)

    def _delete_provider_job(self, transcript_id: Optional[str]) -> Dict[str, Any]:
        if not transcript_id:
            return _result(True, False, "no provider transcript id on record")
        try:
            self._client.delete_job(transcript_id)
        except ScribeVaultError as exc:
            logger.warning("Provider deletion of %s failed: %s", transcript_id, exc.message)
            return _result(True, False, exc.message)
        except Exception as exc:
            logger.warning("Provider deletion of %s failed: %s", transcript_id, exc, exc_info=True)
            return _result(True, False, str(exc) or type(exc).__name__)
        return _result(True, True)

    def _delete_files(self, record: Dict[str, Any]) -> Dict[str, Any]:
        paths: List[str] = []
        if record.get("audio_file"):
            paths.append(os.path.join(self._upload_dir, os.path.basename(record["audio_file"])))
        if record.get("transcript_file"):
            paths.append(
                os.path.join(self._transcripts_dir, os.path.basename(record["transcript_file"]))
            )

        errors = []
        for path in paths:
            try:
                os.remove(path)
                logger.info("Deleted file %s", path)
            except FileNotFoundError:
                logger.debug("File %s already gone", path)
            except OSError as exc:
                logger.warning("Could not delete %s: %s", path, exc)
                errors.append(f"{os.path.basename(path)}: {exc.strerror or exc}")

        if errors:
            return _result(True, False, "; ".join(errors))
        return _result(True, True)
