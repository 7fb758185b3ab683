import os
import tempfile

# Settings are read at import time, so point them somewhere harmless first
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="scribevault-uploads-"))
os.environ.setdefault("TRANSCRIPTS_DIR", tempfile.mkdtemp(prefix="scribevault-out-"))
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="scribevault-logs-"))

import mongomock
import pytest

from scribevault.database.backup_repository import BackupRepository
from scribevault.database.connection import ensure_indexes
from scribevault.database.transcript_repository import TranscriptRepository
from scribevault.errors import ProviderError


class FakeProviderClient:
    """In-memory stand-in for AssemblyAIClient."""

    def __init__(self, statuses=None, listing=None, transcript_id="job-1"):
        self.transcript_id = transcript_id
        self.statuses = list(statuses or [])
        self.listing = list(listing or [])
        self.uploaded = []
        self.submitted = []
        self.deleted = []
        self.status_calls = 0
        self.upload_error = None
        self.delete_error = None

    def upload(self, data):
        if self.upload_error:
            raise self.upload_error
        self.uploaded.append(data)
        return "https://cdn.example/upload/1"

    def submit(self, ingestion_ref, options):
        self.submitted.append((ingestion_ref, options))
        return self.transcript_id

    def get_status(self, transcript_id):
        self.status_calls += 1
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0]

    def list_jobs(self, limit=20):
        return self.listing[:limit]

    def delete_job(self, transcript_id):
        if self.delete_error:
            raise self.delete_error
        self.deleted.append(transcript_id)
        return {"id": transcript_id}


def completed_payload(transcript_id="job-1", **extra):
    payload = {
        "id": transcript_id,
        "status": "completed",
        "text": "hi yo",
        "utterances": [
            {"speaker": 1, "text": "hi", "start": 0, "end": 900},
            {"speaker": 2, "text": "yo", "start": 1000, "end": 1800},
        ],
        "audio_duration": 125,
        "speech_model": "nano",
        "language_code": "en",
    }
    payload.update(extra)
    return payload


@pytest.fixture
def mongo_db():
    db = mongomock.MongoClient()["scribevault_test"]
    ensure_indexes(db)
    return db


@pytest.fixture
def transcripts(mongo_db):
    return TranscriptRepository(db=mongo_db)


@pytest.fixture
def backups(mongo_db):
    return BackupRepository(db=mongo_db)


@pytest.fixture
def provider():
    return FakeProviderClient(statuses=[{"id": "job-1", "status": "processing"}, completed_payload()])


@pytest.fixture
def failing_provider():
    client = FakeProviderClient(statuses=[completed_payload()])
    client.delete_error = ProviderError("Provider request failed: HTTP 500", "job-1")
    return client


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "uploads" / "meeting.mp3"
    path.parent.mkdir()
    path.write_bytes(b"ID3-fake-audio")
    return path
