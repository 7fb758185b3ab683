"""
Exception taxonomy shared by the transcription pipeline, the history
engine and the HTTP layer.

Every error carries an HTTP-equivalent ``status_code`` so route handlers
can translate it into the ``{"success": false, "message": ...}`` envelope
without knowing which component raised it.
"""

from typing import Any, Dict, Optional


class ScribeVaultError(Exception):
    """Base class for all domain errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InputError(ScribeVaultError):
    """Missing file, bad options, unsupported export format…"""

    status_code = 400


class ForbiddenError(ScribeVaultError):
    status_code = 403


class NotFoundError(ScribeVaultError):
    status_code = 404


class ConflictError(ScribeVaultError):
    status_code = 409


class ProviderError(ScribeVaultError):
    """The speech-to-text provider rejected or failed a request."""

    status_code = 502

    def __init__(self, message: str, transcript_id: Optional[str] = None) -> None:
        if transcript_id and transcript_id not in message:
            message = f"{message} (transcript_id={transcript_id})"
        super().__init__(message)
        self.transcript_id = transcript_id


class ProviderSchemaError(ProviderError):
    """A provider response did not have the expected shape."""


class PollTimeoutError(ProviderError):
    """Polling gave up before the provider reached a terminal status."""

    status_code = 504


class PollCancelledError(ProviderError):
    """Polling was stopped because the owning request went away."""

    status_code = 499


class PersistenceError(ScribeVaultError):
    """A local write (database or file) failed."""

    status_code = 500

    def __init__(self, message: str, transcript_id: Optional[str] = None) -> None:
        if transcript_id and transcript_id not in message:
            message = f"{message} (transcript_id={transcript_id})"
        super().__init__(message)
        self.transcript_id = transcript_id


class InvalidStepTransition(ScribeVaultError):
    """A step status change would break step monotonicity."""


class TranscriptionStepError(ScribeVaultError):
    """A pipeline step failed; the remaining steps were not attempted."""

    def __init__(
        self,
        step: str,
        message: str,
        steps: Dict[str, Dict[str, Any]],
        transcript_id: Optional[str] = None,
        status_code: int = 500,
    ) -> None:
        super().__init__(message)
        self.step = step
        self.steps = steps
        self.transcript_id = transcript_id
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "message": self.message,
            "step": self.step,
            "steps": self.steps,
            "transcript_id": self.transcript_id,
        }


class DeletionError(ScribeVaultError):
    """The mandatory local-record deletion failed."""

    def __init__(self, message: str, results: Dict[str, Any]) -> None:
        super().__init__(message)
        self.results = results
