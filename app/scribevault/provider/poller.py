"""
Status poller for provider transcription jobs.

Fetches the job status at a fixed interval until the provider reports a
terminal state. Polling is bounded by a wall-clock timeout (and optionally
an attempt cap) and stops as soon as the caller's cancel event is set.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from scribevault.errors import PollCancelledError, PollTimeoutError, ProviderError
from scribevault.transcription.models import ProviderStatus

logger = logging.getLogger(__name__)


class Poller:
    """Blocks until a provider job is ``completed`` or ``failed``."""

    def __init__(
        self,
        client,
        interval: float = 5.0,
        timeout: Optional[float] = 30 * 60,
        max_attempts: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if timeout is None and max_attempts is None:
            raise ValueError("Poller needs a timeout or a max_attempts bound")
        self._client = client
        self._interval = interval
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._clock = clock

    @classmethod
    def from_config(cls, client, cfg) -> "Poller":
        return cls(
            client,
            interval=cfg.POLL_INTERVAL_SECONDS,
            timeout=cfg.POLL_TIMEOUT_SECONDS,
            max_attempts=cfg.POLL_MAX_ATTEMPTS,
        )

    def poll(
        self, transcript_id: str, cancel_event: Optional[threading.Event] = None
    ) -> Dict[str, Any]:
        """
        Return the completed transcript payload.

        Raises:
            ProviderError: the provider reported ``failed``.
            PollTimeoutError: the timeout or attempt cap was reached first.
            PollCancelledError: ``cancel_event`` was set.
        """
        cancel_event = cancel_event or threading.Event()
        deadline = None if self._timeout is None else self._clock() + self._timeout
        attempts = 0

        while True:
            if cancel_event.is_set():
                logger.info("Polling of transcript %s cancelled", transcript_id)
                raise PollCancelledError("Transcription polling cancelled", transcript_id)

            attempts += 1
            payload = self._client.get_status(transcript_id)
            status = payload.get("status")
            logger.debug(
                "Poll #%d for transcript %s → %s", attempts, transcript_id, status
            )

            if status == ProviderStatus.COMPLETED:
                logger.info("Transcription %s completed", transcript_id)
                return payload
            if status == ProviderStatus.FAILED:
                reason = payload.get("error") or "unknown error"
                logger.error("Transcription %s failed: %s", transcript_id, reason)
                raise ProviderError(
                    f"Transcription {transcript_id} failed: {reason}", transcript_id
                )

            if self._max_attempts is not None and attempts >= self._max_attempts:
                raise PollTimeoutError(
                    f"Transcription {transcript_id} still '{status}' after "
                    f"{attempts} status checks",
                    transcript_id,
                )
            if deadline is not None and self._clock() + self._interval > deadline:
                raise PollTimeoutError(
                    f"Transcription {transcript_id} still '{status}' after "
                    f"{self._timeout:.0f}s",
                    transcript_id,
                )

            # wait() returns early when the event is set
            cancel_event.wait(self._interval)
