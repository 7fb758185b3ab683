"""
AssemblyAI REST client.

A thin, stateless wrapper around the five provider operations the service
needs. The client holds configuration only (API key, base URL, timeout);
one instance is built from the settings at startup and injected wherever
the provider is called.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from scribevault.errors import ProviderError, ProviderSchemaError

logger = logging.getLogger(__name__)

LISTING_FIELDS = ("id", "created", "status", "audio_url")


class AssemblyAIClient:
    """Speech-to-text provider client."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = 60,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key:
            raise ProviderError(
                "ASSEMBLYAI_API_KEY is not set. Cannot talk to the transcription provider."
            )
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"authorization": api_key})

    @classmethod
    def from_config(cls, cfg) -> "AssemblyAIClient":
        return cls(
            api_key=cfg.ASSEMBLYAI_API_KEY,
            base_url=cfg.ASSEMBLYAI_BASE_URL,
            timeout=cfg.PROVIDER_REQUEST_TIMEOUT_SECONDS,
        )

    # ── HTTP helper ──────────────────────────────────────────────────────

    def _request(
        self, method: str, path: str, transcript_id: Optional[str] = None, **kwargs
    ) -> Any:
        url = f"{self._base_url}{path}"
        try:
            response = self._session.request(method, url, timeout=self._timeout, **kwargs)
            response.raise_for_status()
        except requests.HTTPError as exc:
            detail = _error_detail(exc.response)
            logger.error("Provider %s %s failed: %s", method, path, detail)
            raise ProviderError(f"Provider request failed: {detail}", transcript_id) from exc
        except requests.RequestException as exc:
            logger.error("Provider %s %s failed: %s", method, path, exc)
            raise ProviderError(f"Provider unreachable: {exc}", transcript_id) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderSchemaError(
                f"Provider returned a non-JSON response for {path}", transcript_id
            ) from exc

    # ── Operations ───────────────────────────────────────────────────────

    def upload(self, data: bytes) -> str:
        """Upload raw audio bytes and return the ingestion URL."""
        body = self._request(
            "POST",
            "/v2/upload",
            data=data,
            headers={"content-type": "application/octet-stream"},
        )
        upload_url = body.get("upload_url") if isinstance(body, dict) else None
        if not upload_url:
            raise ProviderError("Invalid response from provider during upload")
        logger.info("Upload successful: %s", upload_url)
        return upload_url

    def submit(self, ingestion_ref: str, options: Dict[str, Any]) -> str:
        """Request a transcription and return the provider's transcript id."""
        payload = {**options, "audio_url": ingestion_ref}
        body = self._request("POST", "/v2/transcript", json=payload)
        transcript_id = body.get("id") if isinstance(body, dict) else None
        if not transcript_id:
            raise ProviderError("Provider did not return a transcript id")
        logger.info("Transcription requested, transcript_id=%s", transcript_id)
        return transcript_id

    def get_status(self, transcript_id: str) -> Dict[str, Any]:
        """Return the full transcript payload, including ``status``."""
        body = self._request("GET", f"/v2/transcript/{transcript_id}", transcript_id)
        if not isinstance(body, dict) or "status" not in body:
            raise ProviderSchemaError("Transcript response has no status", transcript_id)
        return body

    def list_jobs(self, limit: int = 20) -> List[Dict[str, Any]]:
        """
        Return the first page of the account's transcripts.

        Only ``{"transcripts": [{id, created, status, audio_url}, ...]}`` is
        accepted; any other shape raises ProviderSchemaError.
        """
        body = self._request("GET", "/v2/transcript", params={"limit": limit})
        transcripts = body.get("transcripts") if isinstance(body, dict) else None
        if not isinstance(transcripts, list):
            raise ProviderSchemaError("Transcript listing has no 'transcripts' list")

        listing = []
        for item in transcripts:
            if not isinstance(item, dict) or any(f not in item for f in LISTING_FIELDS):
                raise ProviderSchemaError(f"Unexpected transcript listing entry: {item!r}")
            listing.append({field: item[field] for field in LISTING_FIELDS})
        logger.debug("Provider listing returned %d transcripts", len(listing))
        return listing

    def delete_job(self, transcript_id: str) -> Dict[str, Any]:
        """Delete a transcript (and its audio) at the provider."""
        body = self._request("DELETE", f"/v2/transcript/{transcript_id}", transcript_id)
        logger.info("Transcript %s deleted at provider", transcript_id)
        return body if isinstance(body, dict) else {}


def _error_detail(response: Optional[requests.Response]) -> str:
    if response is None:
        return "no response"
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("error"):
        return f"HTTP {response.status_code}: {body['error']}"
    return f"HTTP {response.status_code}"
